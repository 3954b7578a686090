"""
FastAPI Application

Entry point for the SmartSupply replenishment API:
    uvicorn smartsupply.main:app
"""

from smartsupply.serving.api import create_api_app

app = create_api_app()


@app.get("/api/v1/info")
async def api_info():
    """API information endpoint."""
    return {
        "name": app.title,
        "version": app.version,
        "documentation": app.docs_url,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

"""
Replenishment API Endpoints

Upload a sales export (and optionally a fixed-stock rules file) and get the
per-product replenishment table back, as JSON or as an Excel workbook.
"""

import math
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response
from pydantic import BaseModel

from smartsupply.config import Settings, get_settings
from smartsupply.export import export_filename, export_results_to_excel
from smartsupply.models import CalculationOutcome, ProcessingInfo, ProductResult, ProductStatus
from smartsupply.planning import calculate, filter_results

logger = structlog.get_logger(__name__)
router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class ProductResultResponse(BaseModel):
    """One row of the replenishment table"""
    id: str
    name: str
    current_period_sales: float
    sales_periods: List[float]
    average_weekly_sales: float
    coverage_weeks: Optional[float]
    coverage_unbounded: bool
    current_stock: float
    ideal_stock: float
    units_to_order: int
    status: ProductStatus
    error: Optional[str]

    @classmethod
    def from_result(cls, result: ProductResult) -> "ProductResultResponse":
        unbounded = math.isinf(result.coverage_weeks)
        return cls(
            id=result.id,
            name=result.name,
            current_period_sales=result.current_period_sales,
            sales_periods=list(result.sales_periods),
            average_weekly_sales=result.average_weekly_sales,
            coverage_weeks=None if unbounded else result.coverage_weeks,
            coverage_unbounded=unbounded,
            current_stock=result.current_stock,
            ideal_stock=result.ideal_stock,
            units_to_order=result.units_to_order,
            status=result.status,
            error=result.error,
        )


class CalculationResponse(BaseModel):
    """Calculation outcome, filtered"""
    results: List[ProductResultResponse]
    period_labels: List[str]
    processing_info: ProcessingInfo
    warnings: List[str]
    weeks_to_analyze: int
    periods_divisor: int
    total_results: int
    filtered_results: int


async def _run_calculation(
    settings: Settings,
    transactions_file: UploadFile,
    rules_file: Optional[UploadFile],
    weeks_to_analyze: Optional[int],
    periods_divisor: Optional[int],
) -> CalculationOutcome:
    transactions = await transactions_file.read()
    rules = await rules_file.read() if rules_file is not None and rules_file.filename else None

    outcome = await run_in_threadpool(
        calculate,
        transactions,
        rules_file=rules,
        weeks_to_analyze=weeks_to_analyze,
        periods_divisor=periods_divisor,
        settings=settings,
        transactions_name=transactions_file.filename,
        rules_name=rules_file.filename if rules is not None else None,
    )

    if not outcome.succeeded:
        logger.warning("Calculation failed", file=transactions_file.filename, error=outcome.error)
        raise HTTPException(
            status_code=422,
            detail={"error": outcome.error, "warnings": list(outcome.warnings)},
        )
    return outcome


@router.post("/calculate", response_model=CalculationResponse)
async def calculate_replenishment(
    transactions_file: UploadFile = File(..., description="Sales transactions (.csv, .xlsx or .xls)"),
    rules_file: Optional[UploadFile] = File(None, description="Fixed ideal stock rules"),
    weeks_to_analyze: Optional[int] = Form(None, ge=2, le=20),
    periods_divisor: Optional[int] = Form(None, ge=1, le=52),
    sku: Optional[str] = Form(None, description="Comma-separated product id terms"),
    name: Optional[str] = Form(None, description="Comma-separated product name terms"),
    settings: Settings = Depends(get_settings),
) -> CalculationResponse:
    """
    Calculate reorder quantities for every product in the uploaded file.

    The sku and name filters narrow the returned rows only; processing info
    always describes the whole file.
    """
    outcome = await _run_calculation(settings, transactions_file, rules_file, weeks_to_analyze, periods_divisor)
    filtered = filter_results(outcome.results, sku, name)

    return CalculationResponse(
        results=[ProductResultResponse.from_result(r) for r in filtered],
        period_labels=list(outcome.period_labels),
        processing_info=outcome.processing_info,
        warnings=list(outcome.warnings),
        weeks_to_analyze=len(outcome.period_labels),
        periods_divisor=periods_divisor or settings.engine.default_periods_divisor,
        total_results=len(outcome.results),
        filtered_results=len(filtered),
    )


@router.post("/export")
async def export_replenishment(
    transactions_file: UploadFile = File(...),
    rules_file: Optional[UploadFile] = File(None),
    weeks_to_analyze: Optional[int] = Form(None, ge=2, le=20),
    periods_divisor: Optional[int] = Form(None, ge=1, le=52),
    sku: Optional[str] = Form(None),
    name: Optional[str] = Form(None),
    settings: Settings = Depends(get_settings),
) -> Response:
    """Same calculation, returned as an .xlsx download of the filtered rows."""
    outcome = await _run_calculation(settings, transactions_file, rules_file, weeks_to_analyze, periods_divisor)
    filtered = filter_results(outcome.results, sku, name)
    source_name = transactions_file.filename or "transactions"

    content = await run_in_threadpool(
        export_results_to_excel,
        filtered,
        outcome.period_labels,
        source_name,
        len(outcome.period_labels),
        periods_divisor or settings.engine.default_periods_divisor,
        outcome.processing_info,
    )

    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{export_filename(source_name)}"'},
    )

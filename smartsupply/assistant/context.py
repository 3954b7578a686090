"""
Assistant Context

Read-only slice of the results handed to the conversational assistant.
"""

import json
from typing import Any, Dict, List, Sequence

from smartsupply.models import ProductResult

SYSTEM_PROMPT_TEMPLATE = (
    "You are an expert supply chain analyst. The user has shared an extract of "
    "their inventory replenishment calculation as JSON. The data is a snapshot "
    "of the view they are currently filtering. Answer their questions about it "
    "clearly and concisely, using markdown for lists and emphasis. Never invent "
    "figures that are not in the data.\n\n"
    "Data context for this session:\n{context}"
)

GREETING_MESSAGE = "Hello, can you give me a summary of this data?"


def build_assistant_context(results: Sequence[ProductResult], limit: int = 20) -> List[Dict[str, Any]]:
    """First `limit` results reduced to the fields the assistant may see"""
    context = []
    for product in list(results)[:limit]:
        context.append({
            "ID": product.id,
            "Name": product.name,
            "average_weekly_sales": round(product.average_weekly_sales, 2),
            "current_stock": product.current_stock,
            "ideal_stock": product.ideal_stock,
            "units_to_order": product.units_to_order,
            "status": product.status.value,
            "error": product.error,
        })
    return context


def build_system_prompt(context: List[Dict[str, Any]]) -> str:
    return SYSTEM_PROMPT_TEMPLATE.format(context=json.dumps(context, indent=2, ensure_ascii=False, default=str))

"""
Excel Export

Serializes calculation results into a workbook mirroring the results table:
ID, Name, current period sales, period sales newest to oldest, then the
replenishment figures. Formatting only; no business logic.
"""

import io
import math
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd
import structlog

from smartsupply.models import ProcessingInfo, ProductResult, ProductStatus

logger = structlog.get_logger(__name__)

RESULTS_SHEET = "Replenishment"
SUMMARY_SHEET = "Summary"
UNBOUNDED_MARK = "∞"

LEADING_COLUMNS = ["ID", "Name", "Current Period Sales"]
TRAILING_COLUMNS = [
    "Avg Weekly Sales",
    "Coverage Weeks",
    "Current Stock",
    "Ideal Stock",
    "Units To Order",
    "Status",
    "Error Detail",
]


def status_text(product: ProductResult) -> str:
    if product.error:
        return "Error"
    return "Fixed" if product.status == ProductStatus.FIXED else "Normal"


def _coverage_cell(value: float):
    return UNBOUNDED_MARK if math.isinf(value) else round(value, 1)


def build_results_frame(results: Sequence[ProductResult], period_labels: Sequence[str]) -> pd.DataFrame:
    """Results as a DataFrame in on-screen column order (newest period first)"""
    columns = columns_for(period_labels)

    rows = []
    for product in results:
        rows.append(
            [product.id, product.name, product.current_period_sales]
            + list(reversed(product.sales_periods))
            + [
                round(product.average_weekly_sales, 2),
                _coverage_cell(product.coverage_weeks),
                product.current_stock,
                product.ideal_stock,
                product.units_to_order,
                status_text(product),
                product.error or "",
            ]
        )
    return pd.DataFrame(rows, columns=columns)


def build_summary_frame(
    source_name: str,
    weeks_to_analyze: int,
    periods_divisor: int,
    processing_info: ProcessingInfo,
    generated_at: Optional[datetime] = None,
) -> pd.DataFrame:
    generated_at = generated_at or datetime.now()
    return pd.DataFrame(
        [
            ("Source File", source_name),
            ("Weeks Analyzed", weeks_to_analyze),
            ("Periods Divisor", periods_divisor),
            ("Total Transactions", processing_info.total_transactions),
            ("Unique Products", processing_info.unique_products),
            ("Generated At", generated_at.strftime("%Y-%m-%d %H:%M:%S")),
        ],
        columns=["Parameter", "Value"],
    )


def export_results_to_excel(
    results: Sequence[ProductResult],
    period_labels: Sequence[str],
    source_name: str,
    weeks_to_analyze: int,
    periods_divisor: int,
    processing_info: ProcessingInfo,
    generated_at: Optional[datetime] = None,
) -> bytes:
    """
    Build the replenishment workbook.

    Returns:
        The .xlsx file as bytes
    """
    sheets: Dict[str, Tuple[pd.DataFrame, bool]] = {
        RESULTS_SHEET: (build_results_frame(results, period_labels), False),
        SUMMARY_SHEET: (
            build_summary_frame(source_name, weeks_to_analyze, periods_divisor, processing_info, generated_at),
            False,
        ),
    }

    output = io.BytesIO()
    with pd.ExcelWriter(output, engine="xlsxwriter") as writer:
        for sheet_name, (df, include_index) in sheets.items():
            df.to_excel(writer, sheet_name=sheet_name, index=include_index)

            # Auto-adjust column widths
            worksheet = writer.sheets[sheet_name]
            for idx, col in enumerate(df.columns):
                series = df[col]
                data_len = series.astype(str).map(len).max() if not series.empty else 0
                max_len = max(data_len, len(str(col))) + 2
                worksheet.set_column(idx, idx, max_len)

            if sheet_name == RESULTS_SHEET:
                worksheet.freeze_panes(1, 2)

    logger.info("Results exported", source=source_name, products=len(results))
    return output.getvalue()


def export_filename(source_name: str, when: Optional[datetime] = None) -> str:
    """replenishment_<source stem>_<YYYYMMDD>.xlsx"""
    when = when or datetime.now()
    stem = Path(source_name).stem or "results"
    return f"replenishment_{stem}_{when.strftime('%Y%m%d')}.xlsx"


def columns_for(period_labels: Sequence[str]) -> List[str]:
    """Exported header row for a set of period labels"""
    return LEADING_COLUMNS + list(reversed(period_labels)) + TRAILING_COLUMNS

"""
Rule Loader

Reads the optional replenishment rules file: one row per product whose
ideal stock is fixed by the planner instead of computed from sales.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import pandas as pd
import structlog

from smartsupply.config import Settings, get_settings
from smartsupply.models import ReplenishmentRule
from .decoders import ambiguous_numbers, clean_text, clean_text_column, decode_numbers, is_blank
from .readers import FIRST_DATA_ROW, TableSource, locate_columns, read_table, source_name

logger = structlog.get_logger(__name__)

REQUIRED_COLUMNS = ("product_id", "fixed_ideal_stock")


@dataclass
class ParsedRules:
    """Output of the rule loader; rules keep first-seen product order"""
    rules: Dict[str, ReplenishmentRule] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)


class RuleLoader:
    """
    Loads per-product fixed ideal stock overrides.

    Example:
        rules = RuleLoader().parse("reglas.xlsx").rules
        rules["P1"].fixed_ideal_stock
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def parse(self, source: Optional[TableSource], name: Optional[str] = None) -> ParsedRules:
        """
        Parse a rules file. Without a file there are simply no rules.

        Raises:
            FileFormatError: unreadable/empty file or missing required headers
        """
        parsed = ParsedRules()
        if source is None:
            return parsed

        name = name or source_name(source, default="rules")
        table = read_table(source, name=name, sheet=self.settings.engine.excel_sheet)
        df = table.frame

        columns = self.settings.columns
        located = locate_columns(
            df,
            {
                "product_id": columns.product_id,
                "fixed_ideal_stock": columns.fixed_ideal_stock,
                "product_name": columns.product_name,
            },
            required=REQUIRED_COLUMNS,
            file_name=name,
        )

        separator = self.settings.engine.decimal_separator
        ids = clean_text_column(df[located["product_id"]])
        raw_stock = df[located["fixed_ideal_stock"]]
        fixed_stock = decode_numbers(raw_stock, separator)
        ambiguous = ambiguous_numbers(raw_stock, separator)
        if "product_name" in located:
            names = clean_text_column(df[located["product_name"]])
        else:
            names = pd.Series("", index=df.index, dtype=object)

        warnings: List[Tuple[int, str]] = [
            (row, f"Rules row {row}: wrong number of fields; rule skipped.") for row in table.malformed_rows
        ]
        for index in df.index:
            row_number = int(index) + FIRST_DATA_ROW
            product_id = ids.at[index]
            if not product_id:
                warnings.append((row_number, f"Rules row {row_number}: missing product identifier; rule skipped."))
                continue

            value = fixed_stock.at[index]
            if pd.isna(value):
                raw = raw_stock.at[index]
                if ambiguous.at[index]:
                    reason = "is ambiguous (thousands or decimal separator?)"
                else:
                    reason = "is not a number"
                shown = "empty" if is_blank(raw) else f"'{clean_text(raw)}'"
                warnings.append((
                    row_number,
                    f"Rules row {row_number}: fixed ideal stock {shown} for product '{product_id}' "
                    f"{reason}; rule skipped.",
                ))
                continue
            if value < 0:
                warnings.append((
                    row_number,
                    f"Rules row {row_number}: fixed ideal stock {value:g} for product '{product_id}' "
                    f"is negative; rule skipped.",
                ))
                continue

            if product_id in parsed.rules:
                previous = parsed.rules[product_id].fixed_ideal_stock
                warnings.append((
                    row_number,
                    f"Rules row {row_number}: duplicate rule for product '{product_id}'; "
                    f"fixed ideal stock {previous:g} replaced by {value:g}.",
                ))

            parsed.rules[product_id] = ReplenishmentRule(
                product_id=product_id,
                fixed_ideal_stock=float(value),
                product_name=names.at[index] or None,
            )

        parsed.warnings = [message for _, message in sorted(warnings, key=lambda w: w[0])]

        logger.info(
            "Rules parsed",
            file=name,
            total_rows=table.total_rows,
            rules=len(parsed.rules),
            warnings=len(parsed.warnings),
        )
        return parsed

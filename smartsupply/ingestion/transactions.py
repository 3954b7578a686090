"""
Transaction Parser

Turns an uploaded sales export into typed TransactionRecord rows.
Handles:
- Header-driven column mapping (aliases from ColumnSettings)
- Column-wise decoding of dates and quantities
- Row-level rejection with a readable warning, never whole-file failure
- Optional stock-on-hand column (latest reading per product)
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
import structlog

from smartsupply.config import Settings, get_settings
from smartsupply.models import StockLevel, TransactionRecord
from .decoders import (
    ambiguous_numbers,
    clean_text,
    clean_text_column,
    decode_dates,
    decode_numbers,
    is_blank,
)
from .readers import FIRST_DATA_ROW, TableSource, locate_columns, read_table, source_name

logger = structlog.get_logger(__name__)

REQUIRED_COLUMNS = ("product_id", "product_name", "date", "quantity")
MALFORMED_ROW_PROBLEM = "wrong number of fields"


@dataclass
class ParsedTransactions:
    """Output of the transaction parser"""
    records: List[TransactionRecord] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    total_rows: int = 0
    stock_levels: Dict[str, StockLevel] = field(default_factory=dict)

    @property
    def rejected_rows(self) -> int:
        return self.total_rows - len(self.records)


def describe_undecoded(label: str, raw: Any, product_id: str, ambiguous: bool = False) -> str:
    """Reason text for a cell that did not decode"""
    if is_blank(raw):
        return f"missing {label} for product '{product_id}'"
    if ambiguous:
        return (
            f"ambiguous {label} '{clean_text(raw)}' for product '{product_id}' "
            f"(thousands or decimal separator? set ENGINE_DECIMAL_SEPARATOR)"
        )
    return f"invalid {label} '{clean_text(raw)}' for product '{product_id}'"


class TransactionParser:
    """
    Stateless parser for sales transaction files.

    Example:
        parser = TransactionParser()
        parsed = parser.parse("ventas.xlsx")
        print(len(parsed.records), parsed.warnings)
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def parse(self, source: TableSource, name: Optional[str] = None) -> ParsedTransactions:
        """
        Parse a transactions file.

        Raises:
            FileFormatError: unreadable/empty file or missing required headers
        """
        name = name or source_name(source)
        table = read_table(source, name=name, sheet=self.settings.engine.excel_sheet)
        df = table.frame

        columns = self.settings.columns
        located = locate_columns(
            df,
            {
                "product_id": columns.product_id,
                "product_name": columns.product_name,
                "date": columns.date,
                "quantity": columns.quantity,
                "stock": columns.stock,
            },
            required=REQUIRED_COLUMNS,
            file_name=name,
        )

        engine = self.settings.engine
        ids = clean_text_column(df[located["product_id"]])
        names = clean_text_column(df[located["product_name"]])
        raw_dates = df[located["date"]]
        dates = decode_dates(raw_dates, engine.date_formats)
        raw_quantities = df[located["quantity"]]
        quantities = decode_numbers(raw_quantities, engine.decimal_separator)
        ambiguous = ambiguous_numbers(raw_quantities, engine.decimal_separator)

        missing_id = ids == ""
        bad_date = ~missing_id & dates.isna()
        bad_quantity = ~missing_id & ~bad_date & quantities.isna()
        negative = ~missing_id & ~bad_date & (quantities < 0)
        valid = ~(missing_id | bad_date | bad_quantity | negative)

        problems: List[Tuple[int, str]] = [(row, MALFORMED_ROW_PROBLEM) for row in table.malformed_rows]
        for index in df.index[~valid]:
            product_id = ids.at[index]
            if missing_id.at[index]:
                problem = "missing product identifier"
            elif bad_date.at[index]:
                problem = describe_undecoded("date", raw_dates.at[index], product_id)
            elif bad_quantity.at[index]:
                problem = describe_undecoded(
                    "quantity", raw_quantities.at[index], product_id, ambiguous.at[index]
                )
            else:
                problem = f"negative quantity {quantities.at[index]:g} for product '{product_id}'"
            problems.append((int(index) + FIRST_DATA_ROW, problem))

        sales = pd.DataFrame({
            "product_id": ids,
            "product_name": names.mask(names == "", ids),
            "date": dates,
            "quantity": quantities,
        })[valid]

        parsed = ParsedTransactions(
            records=[
                TransactionRecord(
                    product_id=row.product_id,
                    product_name=row.product_name,
                    date=row.date.date(),
                    quantity=float(row.quantity),
                )
                for row in sales.itertuples(index=False)
            ],
            warnings=[f"Row {row}: {problem}; row skipped." for row, problem in sorted(problems, key=lambda p: p[0])],
            total_rows=table.total_rows,
        )

        if "stock" in located:
            raw_stock = df[located["stock"]]
            parsed.stock_levels = self._latest_stock(
                sales[clean_text_column(raw_stock)[valid] != ""].assign(raw=raw_stock)
            )

        logger.info(
            "Transactions parsed",
            file=name,
            total_rows=parsed.total_rows,
            valid_rows=len(parsed.records),
            rejected_rows=parsed.rejected_rows,
            stock_column=located.get("stock"),
        )
        return parsed

    def _latest_stock(self, readings: pd.DataFrame) -> Dict[str, StockLevel]:
        """
        Stock level per product from its most recent reading.

        Readings on the same date resolve to the later row.
        """
        latest = readings.sort_values("date", kind="stable").groupby("product_id", sort=False).tail(1)
        separator = self.settings.engine.decimal_separator
        quantities = decode_numbers(latest["raw"], separator)
        ambiguous = ambiguous_numbers(latest["raw"], separator)

        levels: Dict[str, StockLevel] = {}
        for index, reading in latest.iterrows():
            as_of = reading["date"].date()
            if pd.isna(quantities.at[index]):
                kind = "ambiguous" if ambiguous.at[index] else "invalid"
                levels[reading["product_id"]] = StockLevel(
                    quantity=None,
                    as_of=as_of,
                    problem=f"{kind} stock value '{clean_text(reading['raw'])}' in row {int(index) + FIRST_DATA_ROW}",
                )
            else:
                levels[reading["product_id"]] = StockLevel(quantity=float(quantities.at[index]), as_of=as_of)
        return levels

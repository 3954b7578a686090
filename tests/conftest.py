"""
Test Suite Configuration

The sample sales file spans February and early March 2025. The latest sale
is Wednesday 2025-03-05, so with Monday weeks the current period starts on
2025-03-03 and four complete periods start on 2025-02-03 (2025-W06).
"""
from datetime import datetime
from pathlib import Path
from typing import List, Sequence

import pandas as pd
import pytest

from smartsupply.config import Settings
from smartsupply.config.settings import AssistantSettings, EngineSettings

SALES_HEADER = ["SKU", "Nombre", "Fecha", "Cantidad", "Stock"]

SALES_ROWS = [
    ["A-100", "Shirt Alpha", "2025-01-20", "100", ""],
    ["A-100", "Shirt Alpha", "03/02/2025", "10", ""],
    ["A-100", "Shirt Alpha", "2025-02-12", "5", ""],
    ["A-100", "Shirt Alpha", "2025-02-14", "5", ""],
    ["B-200", "Widget B", "2025-02-18", "6", "50"],
    ["A-100", "Shirt Alpha", "2025-02-20", "8", ""],
    ["A-100", "Shirt Alpha", "2025-02-27", "12", "30"],
    ["A-100", "Shirt Alpha", "2025-03-04", "3", "25"],
    ["B-200", "Widget B", "2025-02-19", "abc", ""],
    ["C-300", "Cap Gamma", "2025-03-05", "2", ""],
]

RULES_HEADER = ["ID", "Nombre", "Stock Fijo"]

RULES_ROWS = [
    ["C-300", "Cap Gamma", "20"],
    ["D-400", "Belt Delta", "15"],
]

EXPECTED_LABELS = ("2025-W06", "2025-W07", "2025-W08", "2025-W09")


def to_csv_bytes(header: Sequence[str], rows: List[Sequence[str]], sep: str = ",") -> bytes:
    lines = [sep.join(header)] + [sep.join(row) for row in rows]
    return ("\n".join(lines) + "\n").encode("utf-8")


@pytest.fixture
def settings() -> Settings:
    """Settings with the documented engine defaults and the assistant off"""
    return Settings(
        engine=EngineSettings(),
        assistant=AssistantSettings(enabled=False),
    )


@pytest.fixture
def sales_bytes() -> bytes:
    return to_csv_bytes(SALES_HEADER, SALES_ROWS)


@pytest.fixture
def sales_csv(tmp_path: Path, sales_bytes: bytes) -> Path:
    path = tmp_path / "sales.csv"
    path.write_bytes(sales_bytes)
    return path


@pytest.fixture
def rules_csv(tmp_path: Path) -> Path:
    path = tmp_path / "rules.csv"
    path.write_bytes(to_csv_bytes(RULES_HEADER, RULES_ROWS))
    return path


@pytest.fixture
def sales_xlsx(tmp_path: Path) -> Path:
    """Same sales as an Excel workbook with native dates and numbers"""
    rows = []
    for sku, name, raw_date, quantity, stock in SALES_ROWS:
        if "/" in raw_date:
            sale_date = datetime.strptime(raw_date, "%d/%m/%Y")
        else:
            sale_date = datetime.strptime(raw_date, "%Y-%m-%d")
        rows.append([
            sku,
            name,
            sale_date,
            int(quantity) if quantity.isdigit() else quantity,
            int(stock) if stock else None,
        ])

    path = tmp_path / "sales.xlsx"
    pd.DataFrame(rows, columns=SALES_HEADER).to_excel(path, index=False)
    return path

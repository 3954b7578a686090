"""
Unit Tests - Transaction Parser and Rule Loader
"""
from datetime import date

import pytest

from conftest import RULES_HEADER, to_csv_bytes
from smartsupply.config import Settings
from smartsupply.config.settings import AssistantSettings, EngineSettings
from smartsupply.exceptions import FileFormatError
from smartsupply.ingestion import RuleLoader, TransactionParser


class TestTransactionParser:
    """Tests for TransactionParser"""

    def test_parses_valid_rows(self, settings, sales_csv):
        """Test valid rows become records and bad rows become warnings"""
        parsed = TransactionParser(settings).parse(sales_csv)

        assert parsed.total_rows == 10
        assert len(parsed.records) == 9
        assert parsed.rejected_rows == 1
        assert parsed.warnings == ["Row 10: invalid quantity 'abc' for product 'B-200'; row skipped."]

        first = parsed.records[0]
        assert first.product_id == "A-100"
        assert first.product_name == "Shirt Alpha"
        assert first.date == date(2025, 1, 20)
        assert first.quantity == 100.0

    def test_day_first_dates(self, settings, sales_csv):
        """Test dd/mm/yyyy text dates are accepted"""
        parsed = TransactionParser(settings).parse(sales_csv)

        assert parsed.records[1].date == date(2025, 2, 3)

    def test_latest_stock_reading_wins(self, settings, sales_csv):
        """Test the stock column keeps the most recent reading per product"""
        parsed = TransactionParser(settings).parse(sales_csv)

        assert parsed.stock_levels["A-100"].quantity == 25.0
        assert parsed.stock_levels["A-100"].as_of == date(2025, 3, 4)
        assert parsed.stock_levels["B-200"].quantity == 50.0
        assert "C-300" not in parsed.stock_levels

    def test_invalid_stock_reading_is_reported(self, settings):
        """Test an undecodable stock cell is kept as a problem, not a value"""
        data = to_csv_bytes(
            ["SKU", "Nombre", "Fecha", "Cantidad", "Stock"],
            [["A", "Alpha", "2025-03-03", "1", "lots"]],
        )

        parsed = TransactionParser(settings).parse(data, name="sales.csv")

        level = parsed.stock_levels["A"]
        assert level.quantity is None
        assert level.problem == "invalid stock value 'lots' in row 2"

    @pytest.mark.parametrize(
        "row, warning",
        [
            (["", "Alpha", "2025-03-03", "1"], "Row 2: missing product identifier; row skipped."),
            (["A", "Alpha", "", "1"], "Row 2: missing date for product 'A'; row skipped."),
            (["A", "Alpha", "someday", "1"], "Row 2: invalid date 'someday' for product 'A'; row skipped."),
            (["A", "Alpha", "2025-03-03", ""], "Row 2: missing quantity for product 'A'; row skipped."),
            (["A", "Alpha", "2025-03-03", "-4"], "Row 2: negative quantity -4 for product 'A'; row skipped."),
        ],
    )
    def test_rejected_rows(self, settings, row, warning):
        """Test each rejection reason produces its own warning"""
        data = to_csv_bytes(["SKU", "Nombre", "Fecha", "Cantidad"], [row, ["B", "Beta", "2025-03-03", "2"]])

        parsed = TransactionParser(settings).parse(data, name="sales.csv")

        assert parsed.warnings == [warning]
        assert [r.product_id for r in parsed.records] == ["B"]

    def test_row_with_extra_fields_is_skipped(self, settings):
        """Test an unquoted comma in a product name rejects only that row"""
        data = (
            b"SKU,Nombre,Fecha,Cantidad\n"
            b"A,Shirt,2025-02-10,5\n"
            b"B,Shirt, blue,2025-02-11,3\n"
            b"A,Shirt,2025-02-20,abc\n"
        )

        parsed = TransactionParser(settings).parse(data, name="sales.csv")

        assert parsed.total_rows == 3
        assert parsed.rejected_rows == 2
        assert [r.date for r in parsed.records] == [date(2025, 2, 10)]
        assert parsed.warnings == [
            "Row 3: wrong number of fields; row skipped.",
            "Row 4: invalid quantity 'abc' for product 'A'; row skipped.",
        ]

    def test_ambiguous_quantity_is_rejected(self, settings):
        """Test 1.234 is reported instead of read as one unit"""
        data = to_csv_bytes(
            ["SKU", "Nombre", "Fecha", "Cantidad"],
            [["A", "Alpha", "2025-03-03", "1.234"], ["B", "Beta", "2025-03-03", "1.5"]],
        )

        parsed = TransactionParser(settings).parse(data, name="sales.csv")

        assert [r.quantity for r in parsed.records] == [1.5]
        assert parsed.warnings == [
            "Row 2: ambiguous quantity '1.234' for product 'A' "
            "(thousands or decimal separator? set ENGINE_DECIMAL_SEPARATOR); row skipped."
        ]

    def test_configured_decimal_comma(self):
        """Test a fixed separator convention reads thousands and decimals"""
        settings = Settings(
            engine=EngineSettings(decimal_separator=","),
            assistant=AssistantSettings(enabled=False),
        )
        data = to_csv_bytes(
            ["SKU", "Nombre", "Fecha", "Cantidad", "Stock"],
            [["A", "Alpha", "2025-03-03", "1.234", "1.500"], ["B", "Beta", "2025-03-03", "2,5", ""]],
            sep=";",
        )

        parsed = TransactionParser(settings).parse(data, name="sales.csv")

        assert parsed.warnings == []
        assert [r.quantity for r in parsed.records] == [1234.0, 2.5]
        assert parsed.stock_levels["A"].quantity == 1500.0

    def test_ambiguous_stock_reading_is_reported(self, settings):
        data = to_csv_bytes(
            ["SKU", "Nombre", "Fecha", "Cantidad", "Stock"],
            [["A", "Alpha", "2025-03-03", "1", "1.500"]],
        )

        parsed = TransactionParser(settings).parse(data, name="sales.csv")

        assert parsed.stock_levels["A"].quantity is None
        assert parsed.stock_levels["A"].problem == "ambiguous stock value '1.500' in row 2"

    def test_missing_name_falls_back_to_id(self, settings):
        """Test a blank product name is replaced by the identifier"""
        data = to_csv_bytes(["SKU", "Nombre", "Fecha", "Cantidad"], [["A", "", "2025-03-03", "1"]])

        parsed = TransactionParser(settings).parse(data, name="sales.csv")

        assert parsed.records[0].product_name == "A"

    def test_english_headers_and_decimal_comma(self, settings):
        """Test header aliases and locale-formatted quantities"""
        data = to_csv_bytes(
            ["product_id", "Product Name", "Date", "Qty"],
            [["A", "Alpha", "2025-03-03", "1,5"]],
            sep=";",
        )

        parsed = TransactionParser(settings).parse(data, name="sales.csv")

        assert parsed.records[0].quantity == 1.5

    def test_missing_required_header(self, settings):
        """Test a file without a date column is rejected"""
        data = to_csv_bytes(["SKU", "Nombre", "Cantidad"], [["A", "Alpha", "1"]])

        with pytest.raises(FileFormatError) as exc_info:
            TransactionParser(settings).parse(data, name="sales.csv")

        assert exc_info.value.missing_columns == ["date"]
        assert str(exc_info.value).startswith("sales.csv: required columns not found")

    def test_excel_workbook(self, settings, sales_xlsx, sales_csv):
        """Test an Excel workbook parses to the same records as the CSV"""
        from_excel = TransactionParser(settings).parse(sales_xlsx)
        from_csv = TransactionParser(settings).parse(sales_csv)

        assert from_excel.records == from_csv.records
        assert from_excel.warnings == from_csv.warnings


class TestRuleLoader:
    """Tests for RuleLoader"""

    def test_no_file_means_no_rules(self, settings):
        """Test rules are optional"""
        parsed = RuleLoader(settings).parse(None)

        assert parsed.rules == {}
        assert parsed.warnings == []

    def test_parses_rules(self, settings, rules_csv):
        """Test fixed ideal stock per product"""
        parsed = RuleLoader(settings).parse(rules_csv)

        assert list(parsed.rules) == ["C-300", "D-400"]
        assert parsed.rules["D-400"].fixed_ideal_stock == 15.0
        assert parsed.rules["D-400"].product_name == "Belt Delta"

    def test_duplicate_rule_last_wins(self, settings):
        """Test a repeated product keeps the last value with a warning"""
        data = to_csv_bytes(RULES_HEADER, [["A", "Alpha", "10"], ["A", "Alpha", "12"]])

        parsed = RuleLoader(settings).parse(data, name="rules.csv")

        assert parsed.rules["A"].fixed_ideal_stock == 12.0
        assert parsed.warnings == [
            "Rules row 3: duplicate rule for product 'A'; fixed ideal stock 10 replaced by 12."
        ]

    def test_rule_row_with_extra_fields_is_skipped(self, settings):
        """Test a malformed rules row is skipped with a warning"""
        data = b"ID,Nombre,Stock Fijo\nA,Alpha,10\nB,Beta, Gamma,5\nC,Gamma,7\n"

        parsed = RuleLoader(settings).parse(data, name="rules.csv")

        assert list(parsed.rules) == ["A", "C"]
        assert parsed.warnings == ["Rules row 3: wrong number of fields; rule skipped."]

    def test_ambiguous_rule_value_is_skipped(self, settings):
        data = to_csv_bytes(RULES_HEADER, [["A", "Alpha", "1.000"]])

        parsed = RuleLoader(settings).parse(data, name="rules.csv")

        assert parsed.rules == {}
        assert parsed.warnings == [
            "Rules row 2: fixed ideal stock '1.000' for product 'A' "
            "is ambiguous (thousands or decimal separator?); rule skipped."
        ]

    def test_invalid_rules_skipped(self, settings):
        """Test blank ids, non-numeric and negative values are skipped"""
        data = to_csv_bytes(
            RULES_HEADER,
            [["", "x", "5"], ["A", "Alpha", "many"], ["B", "Beta", "-1"], ["C", "Gamma", "0"]],
        )

        parsed = RuleLoader(settings).parse(data, name="rules.csv")

        assert list(parsed.rules) == ["C"]
        assert len(parsed.warnings) == 3
        assert parsed.warnings[0] == "Rules row 2: missing product identifier; rule skipped."
        assert "'many'" in parsed.warnings[1]
        assert "is negative" in parsed.warnings[2]

    def test_missing_required_header(self, settings):
        """Test a rules file without a fixed stock column is rejected"""
        data = to_csv_bytes(["ID", "Nombre"], [["A", "Alpha"]])

        with pytest.raises(FileFormatError, match="rules.csv: required columns not found"):
            RuleLoader(settings).parse(data, name="rules.csv")

"""
Unit Tests - Command Line Interface
"""
import pytest

from smartsupply import cli
from smartsupply.assistant.session import NOT_CONFIGURED_MESSAGE
from smartsupply.config import get_settings


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(cli, "configure_logging", lambda level=None: None)


@pytest.fixture
def assistant_disabled(monkeypatch):
    monkeypatch.setenv("ASSISTANT_ENABLED", "false")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestCli:
    """Tests for the smartsupply command"""

    def test_calculate_prints_table(self, sales_csv, capsys):
        exit_code = cli.main(["calculate", str(sales_csv), "--weeks", "4", "--divisor", "4"])

        out = capsys.readouterr().out
        assert exit_code == 0
        assert "10 transactions, 3 products" in out
        assert "2025-W06 .. 2025-W09" in out
        assert "A-100" in out
        assert "no stock reading found" in out

    def test_calculate_with_filter_and_export(self, sales_csv, rules_csv, tmp_path, capsys):
        target = tmp_path / "out.xlsx"

        exit_code = cli.main([
            "calculate", str(sales_csv),
            "--rules", str(rules_csv),
            "--weeks", "4",
            "--sku", "A-",
            "--export", str(target),
        ])

        out = capsys.readouterr().out
        assert exit_code == 0
        assert "Exported 1 row(s)" in out
        rows = [line for line in out.splitlines() if line.startswith(("A-100", "B-200", "C-300", "D-400"))]
        assert len(rows) == 1
        assert rows[0].startswith("A-100")
        assert target.read_bytes()[:2] == b"PK"

    def test_unusable_file_exits_non_zero(self, tmp_path, capsys):
        path = tmp_path / "sales.csv"
        path.write_text("SKU\nA\n", encoding="utf-8")

        exit_code = cli.main(["calculate", str(path)])

        assert exit_code == 1
        assert "required columns not found" in capsys.readouterr().err

    def test_out_of_range_weeks(self, sales_csv):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["calculate", str(sales_csv), "--weeks", "30"])

        assert exc_info.value.code == 2

    def test_ask_without_assistant(self, sales_csv, capsys, assistant_disabled):
        exit_code = cli.main(["ask", str(sales_csv), "Which product sells most?"])

        assert exit_code == 0
        assert NOT_CONFIGURED_MESSAGE in capsys.readouterr().out

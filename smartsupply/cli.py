"""
Command Line Interface

Usage:
    smartsupply calculate sales.xlsx --rules rules.csv --weeks 8 --divisor 4
    smartsupply calculate sales.csv --export out.xlsx --sku A-,B-
    smartsupply ask sales.csv "Which products are closest to running out?"
"""

import argparse
import math
import sys
from datetime import date
from pathlib import Path
from typing import List, Optional

from smartsupply.assistant import AssistantSession
from smartsupply.config import get_settings
from smartsupply.config.logging import configure_logging
from smartsupply.export import export_results_to_excel
from smartsupply.export.excel import status_text
from smartsupply.models import CalculationOutcome, ProductResult
from smartsupply.planning import calculate, filter_results


def _add_calculation_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("transactions", type=Path, help="Sales transactions file (.csv, .xlsx, .xls)")
    parser.add_argument("--rules", type=Path, default=None, help="Fixed ideal stock rules file")
    parser.add_argument("--weeks", type=int, default=None, help="Complete weeks to analyse (2-20)")
    parser.add_argument("--divisor", type=int, default=None, help="Divisor for the weekly average (1-52)")
    parser.add_argument(
        "--reference-date",
        type=date.fromisoformat,
        default=None,
        help="Anchor date for the period windows (YYYY-MM-DD); defaults to the latest sale",
    )
    parser.add_argument("--sku", default=None, help="Comma-separated product id filter")
    parser.add_argument("--name", default=None, help="Comma-separated product name filter")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="smartsupply", description="SmartSupply replenishment calculator")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    calc = subparsers.add_parser("calculate", help="Calculate reorder quantities")
    _add_calculation_arguments(calc)
    calc.add_argument("--export", type=Path, default=None, help="Write the results to this .xlsx file")

    ask = subparsers.add_parser("ask", help="Ask the assistant about the results")
    _add_calculation_arguments(ask)
    ask.add_argument("question", nargs="?", default=None, help="Question (default: summary request)")

    return parser


def _format_row(product: ProductResult) -> str:
    coverage = "inf" if math.isinf(product.coverage_weeks) else f"{product.coverage_weeks:.1f}"
    line = (
        f"{product.id:<14} {product.name[:28]:<28} "
        f"{product.average_weekly_sales:>9.2f} {coverage:>8} "
        f"{product.current_stock:>9g} {product.ideal_stock:>9g} {product.units_to_order:>8d}  "
        f"{status_text(product)}"
    )
    if product.error:
        line += f"  ({product.error})"
    return line


def print_outcome(outcome: CalculationOutcome, results: List[ProductResult]) -> None:
    info = outcome.processing_info
    print(f"📊 {info.total_transactions:,} transactions, {info.unique_products:,} products")
    if outcome.period_labels:
        print(f"   Periods: {outcome.period_labels[0]} .. {outcome.period_labels[-1]}")
    print()
    print(
        f"{'ID':<14} {'Name':<28} {'Avg/Week':>9} {'Coverage':>8} "
        f"{'Stock':>9} {'Ideal':>9} {'Order':>8}  Status"
    )
    for product in results:
        print(_format_row(product))
    if outcome.warnings:
        print()
        print(f"⚠️  {len(outcome.warnings)} warning(s):")
        for warning in outcome.warnings:
            print(f"   - {warning}")


def _run(args: argparse.Namespace) -> Optional[CalculationOutcome]:
    outcome = calculate(
        args.transactions,
        rules_file=args.rules,
        weeks_to_analyze=args.weeks,
        periods_divisor=args.divisor,
        reference_date=args.reference_date,
    )
    if not outcome.succeeded:
        print(f"❌ {outcome.error}", file=sys.stderr)
        return None
    return outcome


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    settings = get_settings()
    for value, low, high, flag in (
        (args.weeks, 2, 20, "--weeks"),
        (args.divisor, 1, 52, "--divisor"),
    ):
        if value is not None and not low <= value <= high:
            parser.error(f"{flag} must be between {low} and {high}")

    outcome = _run(args)
    if outcome is None:
        return 1
    results = filter_results(outcome.results, args.sku, args.name)

    if args.command == "calculate":
        print_outcome(outcome, results)
        if args.export:
            content = export_results_to_excel(
                results,
                outcome.period_labels,
                args.transactions.name,
                len(outcome.period_labels),
                args.divisor or settings.engine.default_periods_divisor,
                outcome.processing_info,
            )
            args.export.write_bytes(content)
            print(f"✅ Exported {len(results)} row(s) to {args.export}")
        return 0

    session = AssistantSession(results, settings=settings.assistant)
    reply = session.send(args.question) if args.question else session.greet()
    for chunk in reply:
        sys.stdout.write(chunk)
        sys.stdout.flush()
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())

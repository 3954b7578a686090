"""
Replenishment Engine

Orchestrates one calculation run:

    Idle -> Parsing -> Aggregating -> Calculating -> Done
                 \\-> Failed (file format error, or any unexpected fault)

Each engine instance runs exactly once and owns every object it creates;
nothing survives between runs, so concurrent runs on different instances
never share state.
"""

import time
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Tuple

import structlog

from smartsupply.config import Settings, get_settings
from smartsupply.exceptions import FileFormatError
from smartsupply.ingestion.decoders import clean_text, parse_number
from smartsupply.ingestion.readers import TableSource
from smartsupply.ingestion.rules import RuleLoader
from smartsupply.ingestion.transactions import TransactionParser
from smartsupply.models import (
    CalculationOutcome,
    EngineState,
    ProductResult,
    RunParameters,
    StockLevel,
)
from .aggregation import PeriodAggregator
from .calculator import ReplenishmentCalculator
from .diagnostics import DiagnosticsCollector

logger = structlog.get_logger(__name__)


class ReplenishmentEngine:
    """
    Single-use façade over parser, rule loader, aggregator and calculator.

    Example:
        engine = ReplenishmentEngine(
            "ventas.xlsx",
            rules_source="reglas.xlsx",
            parameters=RunParameters(weeks_to_analyze=8, periods_divisor=4),
        )
        outcome = engine.run()
    """

    def __init__(
        self,
        transactions_source: TableSource,
        rules_source: Optional[TableSource] = None,
        parameters: Optional[RunParameters] = None,
        stock_source: Optional[Mapping[str, Any]] = None,
        settings: Optional[Settings] = None,
        transactions_name: Optional[str] = None,
        rules_name: Optional[str] = None,
    ):
        self.settings = settings or get_settings()
        self.parameters = parameters or RunParameters(
            weeks_to_analyze=self.settings.engine.default_weeks_to_analyze,
            periods_divisor=self.settings.engine.default_periods_divisor,
        )
        self.transactions_source = transactions_source
        self.rules_source = rules_source
        self.transactions_name = transactions_name
        self.rules_name = rules_name
        self.stock_source = dict(stock_source) if stock_source is not None else None

        self.diagnostics = DiagnosticsCollector()
        self._state = EngineState.IDLE

    @property
    def state(self) -> EngineState:
        return self._state

    def _transition(self, state: EngineState) -> None:
        logger.debug("Engine state change", previous=self._state.value, state=state.value)
        self._state = state

    def run(self) -> CalculationOutcome:
        """
        Execute the run.

        Only file format problems and unexpected faults fail the run; they
        are reported through `CalculationOutcome.error`, never raised.

        Raises:
            RuntimeError: the engine already ran
        """
        if self._state != EngineState.IDLE:
            raise RuntimeError(f"Engine already ran (state: {self._state.value}); create a new engine")

        started = time.perf_counter()
        weeks = self.parameters.weeks_to_analyze
        divisor = self.parameters.periods_divisor
        logger.info("Starting replenishment calculation", weeks_to_analyze=weeks, periods_divisor=divisor)

        try:
            self._transition(EngineState.PARSING)
            parsed = TransactionParser(self.settings).parse(self.transactions_source, name=self.transactions_name)
            self.diagnostics.count_transactions(parsed.total_rows)
            self.diagnostics.extend(parsed.warnings, stage="parsing")

            rules = RuleLoader(self.settings).parse(self.rules_source, name=self.rules_name)
            self.diagnostics.extend(rules.warnings, stage="rules")

            self._transition(EngineState.AGGREGATING)
            aggregation = PeriodAggregator(self.settings).aggregate(
                parsed.records,
                weeks,
                extra_products=[(pid, rule.product_name or "") for pid, rule in rules.rules.items()],
                reference_date=self.parameters.reference_date,
            )
            self.diagnostics.observe_products(aggregation.aggregates.keys())
            self.diagnostics.extend(aggregation.warnings, stage="aggregation")

            sold_products = {record.product_id for record in parsed.records}
            for product_id in rules.rules:
                if product_id not in sold_products:
                    self.diagnostics.add_warning(
                        f"Rule for product '{product_id}' has no sales transactions; "
                        f"its result uses the fixed ideal stock only.",
                        stage="rules",
                    )

            self._transition(EngineState.CALCULATING)
            calculator = ReplenishmentCalculator(self.settings)
            results: List[ProductResult] = []
            for product_id, aggregate in aggregation.aggregates.items():
                stock, problem = self._resolve_stock(product_id, parsed.stock_levels)
                results.append(
                    calculator.calculate(
                        aggregate,
                        rules.rules.get(product_id),
                        stock,
                        divisor,
                        stock_problem=problem,
                    )
                )

            flagged = sum(1 for r in results if r.has_error)
            if flagged:
                self.diagnostics.add_warning(
                    f"{flagged} product(s) could not be fully calculated; see the error on each row.",
                    stage="calculation",
                )

            self._transition(EngineState.DONE)
        except FileFormatError as e:
            logger.error("Input file rejected", error=str(e), state=self._state.value)
            return self._fail(str(e))
        except Exception as e:
            logger.exception("Replenishment calculation failed", state=self._state.value)
            return self._fail(f"Unexpected error while calculating replenishment: {e}")

        info, warnings = self.diagnostics.snapshot()
        logger.info(
            "Replenishment calculation complete",
            products=len(results),
            total_transactions=info.total_transactions,
            warnings=len(warnings),
            duration_seconds=round(time.perf_counter() - started, 3),
        )
        return CalculationOutcome(
            results=tuple(results),
            period_labels=tuple(aggregation.period_labels),
            processing_info=info,
            warnings=warnings,
            state=self._state,
        )

    def _fail(self, message: str) -> CalculationOutcome:
        self._transition(EngineState.FAILED)
        info, warnings = self.diagnostics.snapshot()
        return CalculationOutcome(
            processing_info=info,
            warnings=warnings,
            error=message,
            state=self._state,
        )

    def _resolve_stock(
        self, product_id: str, stock_levels: Dict[str, StockLevel]
    ) -> Tuple[Optional[float], Optional[str]]:
        """Caller-supplied stock wins over the stock column of the sales file"""
        if self.stock_source is not None and product_id in self.stock_source:
            raw = self.stock_source[product_id]
            quantity = parse_number(raw, self.settings.engine.decimal_separator)
            if quantity is None:
                return None, f"invalid stock value '{clean_text(raw)}' supplied"
            return quantity, None

        level = stock_levels.get(product_id)
        if level is None:
            return None, "no stock reading found"
        return level.quantity, level.problem


def calculate(
    transactions_file: TableSource,
    rules_file: Optional[TableSource] = None,
    weeks_to_analyze: Optional[int] = None,
    periods_divisor: Optional[int] = None,
    stock_source: Optional[Mapping[str, Any]] = None,
    reference_date: Optional[date] = None,
    settings: Optional[Settings] = None,
    transactions_name: Optional[str] = None,
    rules_name: Optional[str] = None,
) -> CalculationOutcome:
    """
    Run one replenishment calculation.

    Args:
        transactions_file: Sales file (path, bytes or binary file object)
        rules_file: Optional rules file
        weeks_to_analyze: Complete weeks analysed (2-20)
        periods_divisor: Divisor for the weekly average (1-52)
        stock_source: Optional product_id -> current stock mapping
        reference_date: Optional anchor for the period windows
        settings: Settings override

    Returns:
        CalculationOutcome

    Raises:
        pydantic.ValidationError: parameters out of range
    """
    settings = settings or get_settings()
    parameters = RunParameters(
        weeks_to_analyze=settings.engine.default_weeks_to_analyze if weeks_to_analyze is None else weeks_to_analyze,
        periods_divisor=settings.engine.default_periods_divisor if periods_divisor is None else periods_divisor,
        reference_date=reference_date,
    )
    engine = ReplenishmentEngine(
        transactions_file,
        rules_source=rules_file,
        parameters=parameters,
        stock_source=stock_source,
        settings=settings,
        transactions_name=transactions_name,
        rules_name=rules_name,
    )
    return engine.run()

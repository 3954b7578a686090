"""
Replenishment Planning Module
"""
from .aggregation import PeriodAggregator, AggregationResult, period_labels
from .calculator import ReplenishmentCalculator, round_half_up
from .diagnostics import DiagnosticsCollector
from .engine import ReplenishmentEngine, calculate
from .filters import filter_results

__all__ = [
    "PeriodAggregator",
    "AggregationResult",
    "period_labels",
    "ReplenishmentCalculator",
    "round_half_up",
    "DiagnosticsCollector",
    "ReplenishmentEngine",
    "calculate",
    "filter_results",
]

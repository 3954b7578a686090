"""
Replenishment Calculator

Derives demand, coverage, ideal stock and order quantity for one product.

Formulas:
    Average Weekly Sales = sum(period totals) / periods divisor
    Coverage Weeks       = current stock / average weekly sales
    Ideal Stock          = fixed rule value, or average weekly sales * target coverage weeks
    Units To Order       = max(0, ideal stock - current stock), rounded half up
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

import structlog

from smartsupply.config import Settings, get_settings
from smartsupply.models import (
    COVERAGE_UNBOUNDED,
    ProductAggregate,
    ProductResult,
    ProductStatus,
    ReplenishmentRule,
)

logger = structlog.get_logger(__name__)


def round_half_up(value: float) -> int:
    """Round to a whole unit, halves away from zero (2.5 -> 3)"""
    return int(Decimal(repr(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_average_weekly_sales(total_sales: float, periods_divisor: int) -> float:
    assert periods_divisor >= 1, "periods_divisor must be at least 1"
    return total_sales / periods_divisor


def calculate_coverage_weeks(current_stock: float, average_weekly_sales: float) -> float:
    """
    Weeks the current stock lasts at the average demand.

    Without demand, any positive stock lasts indefinitely
    (COVERAGE_UNBOUNDED) and no stock covers nothing.
    """
    if average_weekly_sales > 0:
        return max(0.0, current_stock / average_weekly_sales)
    return COVERAGE_UNBOUNDED if current_stock > 0 else 0.0


def calculate_units_to_order(ideal_stock: float, current_stock: float) -> int:
    return round_half_up(max(0.0, ideal_stock - current_stock))


class ReplenishmentCalculator:
    """
    Per-product replenishment figures.

    Example:
        calculator = ReplenishmentCalculator()
        result = calculator.calculate(aggregate, rule=None, current_stock=5, periods_divisor=2)
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    def target_coverage_weeks(self) -> float:
        return self.settings.engine.target_coverage_weeks

    def ideal_stock_for(self, average_weekly_sales: float, rule: Optional[ReplenishmentRule]):
        """Ideal stock and the status explaining where it came from"""
        if rule is not None:
            return rule.fixed_ideal_stock, ProductStatus.FIXED
        return float(round_half_up(average_weekly_sales * self.target_coverage_weeks)), ProductStatus.NORMAL

    def calculate(
        self,
        aggregate: ProductAggregate,
        rule: Optional[ReplenishmentRule],
        current_stock: Optional[float],
        periods_divisor: int,
        stock_problem: Optional[str] = None,
    ) -> ProductResult:
        """
        Build the result row for one product.

        A missing or negative stock never drops the product: the row keeps
        its sales figures, ideal stock and status, stock-dependent fields
        default to zero and `error` explains the problem.
        """
        average = calculate_average_weekly_sales(aggregate.total_sales, periods_divisor)
        ideal_stock, status = self.ideal_stock_for(average, rule)

        error = None
        if current_stock is None:
            error = f"Current stock unavailable for product '{aggregate.product_id}'"
            if stock_problem:
                error = f"{error}: {stock_problem}"
        elif current_stock < 0:
            error = f"Negative current stock ({current_stock:g}) for product '{aggregate.product_id}'"

        if error:
            logger.warning("Product calculated with error", product_id=aggregate.product_id, error=error)
            stock, coverage, units = 0.0, 0.0, 0
        else:
            stock = float(current_stock)
            coverage = calculate_coverage_weeks(stock, average)
            units = calculate_units_to_order(ideal_stock, stock)

        return ProductResult(
            id=aggregate.product_id,
            name=aggregate.product_name,
            current_period_sales=aggregate.current_period_total,
            sales_periods=tuple(aggregate.period_totals),
            average_weekly_sales=average,
            coverage_weeks=coverage,
            current_stock=stock,
            ideal_stock=ideal_stock,
            units_to_order=units,
            status=status,
            error=error,
        )

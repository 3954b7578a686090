"""
Replenishment Domain Models

Typed records flowing between the engine stages. Parsed inputs are frozen
dataclasses; everything leaving the engine is a frozen Pydantic model so the
API and export layers can serialize it directly.
"""

import math
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

# Coverage reported when there is stock but no demand to consume it
COVERAGE_UNBOUNDED = math.inf


class ProductStatus(str, Enum):
    """How a product's ideal stock was determined"""
    NORMAL = "Normal"  # Computed from sales history
    FIXED = "Fixed"  # Set by a replenishment rule


class EngineState(str, Enum):
    """Lifecycle of a single calculation run"""
    IDLE = "idle"
    PARSING = "parsing"
    AGGREGATING = "aggregating"
    CALCULATING = "calculating"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class TransactionRecord:
    """One valid sale row"""
    product_id: str
    product_name: str
    date: date
    quantity: float


@dataclass(frozen=True)
class ReplenishmentRule:
    """Per-product override of the ideal stock target"""
    product_id: str
    fixed_ideal_stock: float
    product_name: Optional[str] = None


@dataclass(frozen=True)
class StockLevel:
    """Decoded stock-on-hand reading for a product"""
    quantity: Optional[float]
    as_of: Optional[date] = None
    problem: Optional[str] = None


@dataclass
class ProductAggregate:
    """Weekly sales totals for one product, oldest period first"""
    product_id: str
    product_name: str
    period_totals: List[float] = field(default_factory=list)
    current_period_total: float = 0.0

    @property
    def total_sales(self) -> float:
        return sum(self.period_totals)


class RunParameters(BaseModel):
    """Immutable configuration of one calculation run"""

    model_config = ConfigDict(frozen=True)

    weeks_to_analyze: int = Field(default=8, ge=2, le=20, description="Complete weeks analysed")
    periods_divisor: int = Field(default=4, ge=1, le=52, description="Divisor for the weekly average")
    reference_date: Optional[date] = Field(
        default=None,
        description="Anchor for the period windows; defaults to the latest transaction date",
    )


class ProductResult(BaseModel):
    """Final replenishment figures for one product"""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    current_period_sales: float = 0.0
    sales_periods: Tuple[float, ...] = ()
    average_weekly_sales: float = 0.0
    coverage_weeks: float = 0.0
    current_stock: float = 0.0
    ideal_stock: float = 0.0
    units_to_order: int = 0
    status: ProductStatus = ProductStatus.NORMAL
    error: Optional[str] = None

    @property
    def has_error(self) -> bool:
        return self.error is not None


class ProcessingInfo(BaseModel):
    """Run-level counters"""

    model_config = ConfigDict(frozen=True)

    total_transactions: int = 0
    unique_products: int = 0


class CalculationOutcome(BaseModel):
    """Everything a caller receives from one run"""

    model_config = ConfigDict(frozen=True)

    results: Tuple[ProductResult, ...] = ()
    period_labels: Tuple[str, ...] = ()
    processing_info: ProcessingInfo = Field(default_factory=ProcessingInfo)
    warnings: Tuple[str, ...] = ()
    error: Optional[str] = None
    state: EngineState = EngineState.DONE

    @property
    def succeeded(self) -> bool:
        return self.error is None

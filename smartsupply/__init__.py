"""
SmartSupply Replenishment Engine

Turns sales transaction exports into per-product reorder quantities.
"""
from .exceptions import FileFormatError, SmartSupplyError
from .models import (
    CalculationOutcome,
    ProcessingInfo,
    ProductResult,
    ProductStatus,
    RunParameters,
)
from .planning import ReplenishmentEngine, calculate

__version__ = "1.0.0"

__all__ = [
    "calculate",
    "ReplenishmentEngine",
    "RunParameters",
    "CalculationOutcome",
    "ProductResult",
    "ProductStatus",
    "ProcessingInfo",
    "FileFormatError",
    "SmartSupplyError",
]

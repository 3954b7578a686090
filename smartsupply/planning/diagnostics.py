"""
Run Diagnostics

Accumulates warnings and counters while a calculation runs. Warnings keep
insertion order and are never deduplicated; callers display them verbatim.
"""

from typing import Iterable, List, Set, Tuple

import structlog

from smartsupply.models import ProcessingInfo

logger = structlog.get_logger(__name__)


class DiagnosticsCollector:
    """
    Collects row-level and run-level diagnostics for one run.

    Example:
        diagnostics = DiagnosticsCollector()
        diagnostics.count_transactions(120)
        diagnostics.extend(parsed.warnings, stage="parsing")
        info, warnings = diagnostics.snapshot()
    """

    def __init__(self):
        self._warnings: List[str] = []
        self._product_ids: Set[str] = set()
        self._total_transactions = 0

    def add_warning(self, message: str, stage: str = "engine") -> None:
        self._warnings.append(message)
        logger.warning("Processing warning", stage=stage, message=message)

    def extend(self, messages: Iterable[str], stage: str = "engine") -> None:
        for message in messages:
            self.add_warning(message, stage=stage)

    def count_transactions(self, rows: int) -> None:
        """Count raw transaction rows, including rows later rejected"""
        self._total_transactions += rows

    def observe_products(self, product_ids: Iterable[str]) -> None:
        self._product_ids.update(product_ids)

    @property
    def warning_count(self) -> int:
        return len(self._warnings)

    def processing_info(self) -> ProcessingInfo:
        return ProcessingInfo(
            total_transactions=self._total_transactions,
            unique_products=len(self._product_ids),
        )

    def snapshot(self) -> Tuple[ProcessingInfo, Tuple[str, ...]]:
        """Read-only view of everything collected so far"""
        return self.processing_info(), tuple(self._warnings)

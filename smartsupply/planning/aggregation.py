"""
Period Aggregation

Buckets transactions per product into consecutive 7-day sales periods.

With the calendar policy, periods are weeks starting on the configured
weekday. The period containing the anchor date (latest sale, unless a
reference date is given) is still accumulating: it is reported separately
as the current period and never enters the historical totals.

With the rolling policy, the newest period ends on the anchor date itself
and there is no current period.

Either way the `weeks_to_analyze` complete periods are returned oldest first.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import polars as pl
import structlog

from smartsupply.config import Settings, get_settings
from smartsupply.models import ProductAggregate, TransactionRecord

logger = structlog.get_logger(__name__)

DAYS_PER_PERIOD = 7
WINDOW_CALENDAR = "calendar"
WINDOW_ROLLING = "rolling"


@dataclass
class AggregationResult:
    """Aggregates plus the period calendar they were built on"""
    aggregates: Dict[str, ProductAggregate]
    period_starts: List[date]
    current_period_start: date
    ignored_transactions: int = 0
    warnings: List[str] = field(default_factory=list)
    window_policy: str = WINDOW_CALENDAR

    @property
    def period_labels(self) -> List[str]:
        if self.window_policy == WINDOW_ROLLING:
            return [start.isoformat() for start in self.period_starts]
        return period_labels(self.period_starts)


def period_label(start: date) -> str:
    """ISO week identifier of a period start, e.g. 2025-W07"""
    iso_year, iso_week, _ = start.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def period_labels(period_starts: Iterable[date]) -> List[str]:
    return [period_label(start) for start in period_starts]


class PeriodAggregator:
    """
    Weekly sales aggregation per product.

    Example:
        result = PeriodAggregator().aggregate(records, weeks_to_analyze=8)
        result.aggregates["P1"].period_totals
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def period_start(self, day: date) -> date:
        """First day of the sales period containing `day`"""
        offset = (day.weekday() - self.settings.engine.week_start_day) % DAYS_PER_PERIOD
        return day - timedelta(days=offset)

    @property
    def rolling(self) -> bool:
        return self.settings.engine.window_policy == WINDOW_ROLLING

    def build_calendar(self, anchor: date, weeks_to_analyze: int) -> Tuple[List[date], date]:
        """
        Complete period starts (oldest first) and the current period start.

        Rolling windows end on the anchor, so the "current" period starts
        the day after it and never holds sales.
        """
        if self.rolling:
            current_start = anchor + timedelta(days=1)
        else:
            current_start = self.period_start(anchor)
        starts = [
            current_start - timedelta(days=DAYS_PER_PERIOD * (weeks_to_analyze - i))
            for i in range(weeks_to_analyze)
        ]
        return starts, current_start

    def aggregate(
        self,
        records: Sequence[TransactionRecord],
        weeks_to_analyze: int,
        extra_products: Iterable[Tuple[str, str]] = (),
        reference_date: Optional[date] = None,
    ) -> AggregationResult:
        """
        Aggregate transactions into weekly totals.

        Args:
            records: Valid transactions
            weeks_to_analyze: Number of complete periods kept
            extra_products: (product_id, product_name) pairs that must get an
                aggregate even without sales, e.g. products known from rules
            reference_date: Anchor date; defaults to the latest transaction

        Returns:
            AggregationResult with one aggregate per product, in order of first
            appearance (records first, then extra products)
        """
        assert weeks_to_analyze >= 1, "weeks_to_analyze must be positive"

        if reference_date is not None:
            anchor = reference_date
        elif records:
            anchor = max(r.date for r in records)
        else:
            anchor = date.today()

        period_starts, current_start = self.build_calendar(anchor, weeks_to_analyze)

        aggregates: Dict[str, ProductAggregate] = {}
        for record in records:
            aggregate = aggregates.get(record.product_id)
            if aggregate is None:
                aggregates[record.product_id] = ProductAggregate(
                    product_id=record.product_id,
                    product_name=record.product_name,
                    period_totals=[0.0] * weeks_to_analyze,
                )
            else:
                aggregate.product_name = record.product_name

        for product_id, product_name in extra_products:
            if product_id not in aggregates:
                aggregates[product_id] = ProductAggregate(
                    product_id=product_id,
                    product_name=product_name or product_id,
                    period_totals=[0.0] * weeks_to_analyze,
                )

        older, newer = 0, 0
        if records:
            buckets = self._bucket_totals(records, current_start)
            for row in buckets.iter_rows(named=True):
                bucket = row["bucket"]
                if bucket == 0 and not self.rolling:
                    aggregates[row["product_id"]].current_period_total += row["quantity"]
                elif -weeks_to_analyze <= bucket < 0:
                    aggregates[row["product_id"]].period_totals[weeks_to_analyze + bucket] += row["quantity"]
                elif bucket < -weeks_to_analyze:
                    older += row["transactions"]
                else:
                    newer += row["transactions"]

        warnings: List[str] = []
        if older:
            warnings.append(
                f"{older} transaction(s) dated before {period_starts[0].isoformat()} fall outside "
                f"the {weeks_to_analyze}-week analysis window and were not used for averages."
            )
        if newer and self.rolling:
            warnings.append(f"{newer} transaction(s) dated after {anchor.isoformat()} were not used.")
        elif newer:
            warnings.append(
                f"{newer} transaction(s) dated after the current period "
                f"(starting {current_start.isoformat()}) were not used."
            )

        logger.info(
            "Sales aggregated",
            products=len(aggregates),
            weeks=weeks_to_analyze,
            window_policy=self.settings.engine.window_policy,
            window_start=period_starts[0].isoformat(),
            current_period_start=current_start.isoformat(),
            ignored_transactions=older + newer,
        )

        return AggregationResult(
            aggregates=aggregates,
            period_starts=period_starts,
            current_period_start=current_start,
            ignored_transactions=older + newer,
            warnings=warnings,
            window_policy=self.settings.engine.window_policy,
        )

    @staticmethod
    def _bucket_totals(records: Sequence[TransactionRecord], current_start: date) -> pl.DataFrame:
        """
        Sum quantities per product and period index.

        Bucket 0 is the current period, -1 the most recent complete period,
        and so on backwards.
        """
        df = pl.DataFrame(
            {
                "product_id": [r.product_id for r in records],
                "date": [r.date for r in records],
                "quantity": [r.quantity for r in records],
            },
            schema={"product_id": pl.Utf8, "date": pl.Date, "quantity": pl.Float64},
        )

        return (
            df.with_columns(
                (pl.col("date") - pl.lit(current_start)).dt.total_days().alias("offset_days")
            )
            .with_columns(
                (pl.col("offset_days") / DAYS_PER_PERIOD).floor().cast(pl.Int64).alias("bucket")
            )
            .group_by(["product_id", "bucket"])
            .agg([
                pl.col("quantity").sum().alias("quantity"),
                pl.len().alias("transactions"),
            ])
            .sort(["product_id", "bucket"])
        )

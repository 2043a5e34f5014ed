"""
Chart series construction for analysis buckets.

Buckets come out of the aggregator in first-seen order; charts need them
sorted along the period axis, labelled, and with NaN values turned into
gaps.
"""

import math
from typing import List, Sequence, Tuple

from app.schemas.analysis import (
    AnalysisConfig,
    Bucket,
    ChartPoint,
    ChartSeries,
    MetricKind,
    MonthlyBucket,
    PeriodType,
    Season,
    SeasonalBucket,
)


# Order of seasons within one calendar year on the chart axis
SEASON_ORDER = [Season.WINTER, Season.SPRING, Season.SUMMER, Season.AUTUMN]

X_LABELS = {
    PeriodType.ANNUAL: "Year",
    PeriodType.SEASONAL: "Year - season",
    PeriodType.MONTHLY: "Year - month",
}


def period_label(bucket: Bucket) -> str:
    """
    Label a bucket on the period axis.

    Examples:
        2020, 2020-winter, 2020-01
    """
    if isinstance(bucket, SeasonalBucket):
        return f"{bucket.year}-{bucket.season.value}"
    if isinstance(bucket, MonthlyBucket):
        return f"{bucket.year}-{bucket.month:02d}"
    return str(bucket.year)


def sort_key(bucket: Bucket) -> Tuple[int, int]:
    if isinstance(bucket, SeasonalBucket):
        return (bucket.year, SEASON_ORDER.index(bucket.season))
    if isinstance(bucket, MonthlyBucket):
        return (bucket.year, bucket.month)
    return (bucket.year, 0)


def value_label(config: AnalysisConfig) -> str:
    """Describe the plotted value, e.g. 'Days with TX above 30.0 °C'."""
    metric = config.metric
    if metric.kind == MetricKind.AVERAGE:
        return f"Mean {metric.field.value} (°C)"
    direction = "above" if metric.kind == MetricKind.COUNT_ABOVE else "below"
    return f"Days with {metric.field.value} {direction} {metric.threshold} °C"


def build_chart_series(buckets: Sequence[Bucket], config: AnalysisConfig) -> ChartSeries:
    """
    Map buckets to a chart series sorted by period.

    Args:
        buckets: Buckets from one analysis run
        config: Configuration that produced them

    Returns:
        ChartSeries with one point per bucket; NaN values become null
    """
    points: List[ChartPoint] = [
        ChartPoint(
            label=period_label(bucket),
            year=bucket.year,
            value=None if math.isnan(bucket.value) else bucket.value,
        )
        for bucket in sorted(buckets, key=sort_key)
    ]

    return ChartSeries(
        period=config.period,
        x_label=X_LABELS[config.period],
        y_label=value_label(config),
        points=points,
    )

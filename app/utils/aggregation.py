"""
Aggregation engine for daily temperature records.

This module narrows a record set by year range, month and season, groups the
remaining records into annual, seasonal or monthly buckets and reduces each
bucket to a single value.

RULES:
1. Year bounds are inclusive; month and season filters apply together
2. Seasons are fixed calendar groups: DJF winter, MAM spring, JJA summer, SON autumn
3. Seasonal buckets use the calendar year of each record (Jan/Feb and Dec of the
   same year share one winter bucket)
4. Threshold counts are strict: a value equal to the threshold counts toward
   neither "above" nor "below"
5. Missing values (NaN) propagate into averages and are never counted

All functions are pure: no I/O, no shared state. Every run recomputes from
scratch.
"""

import math
from typing import Dict, Hashable, Iterable, List, Sequence

from app.schemas.analysis import (
    ALL,
    AnalysisConfig,
    AnnualBucket,
    Bucket,
    FilterSpec,
    MetricKind,
    MetricSpec,
    MonthlyBucket,
    PeriodType,
    Record,
    Season,
    SeasonalBucket,
    TemperatureField,
)
from app.utils.logging_config import get_logger

logger = get_logger(__name__)


# ============================================================================
# SEASON DEFINITIONS
# ============================================================================

SEASON_MONTHS = {
    Season.SPRING: (3, 4, 5),
    Season.SUMMER: (6, 7, 8),
    Season.AUTUMN: (9, 10, 11),
    Season.WINTER: (12, 1, 2),
}

MONTH_TO_SEASON = {
    month: season
    for season, months in SEASON_MONTHS.items()
    for month in months
}


def season_of(month: int) -> Season:
    """
    Get the season a month belongs to.

    Every month 1-12 maps to exactly one season.

    Args:
        month: Month (1-12)

    Returns:
        Season containing the month

    Example:
        >>> season_of(1)
        <Season.WINTER: 'winter'>
        >>> season_of(7)
        <Season.SUMMER: 'summer'>
    """
    return MONTH_TO_SEASON[month]


# ============================================================================
# FILTER
# ============================================================================

def filter_records(records: Iterable[Record], spec: FilterSpec) -> List[Record]:
    """
    Keep the records matching a filter.

    A record is kept when its year lies within [year_start, year_end] (a
    null bound is ignored), its month equals spec.month unless that is
    'all', and its month lies in spec.season unless that is 'all'.
    Conflicting month and season filters give an empty list.

    Args:
        records: Records in input order
        spec: Filter specification

    Returns:
        Matching records, input order preserved, no deduplication
    """
    season_months = None if spec.season == ALL else SEASON_MONTHS[spec.season]

    kept = []
    for record in records:
        if spec.year_start is not None and record.year < spec.year_start:
            continue
        if spec.year_end is not None and record.year > spec.year_end:
            continue
        if spec.month != ALL and record.month != spec.month:
            continue
        if season_months is not None and record.month not in season_months:
            continue
        kept.append(record)

    return kept


# ============================================================================
# METRIC REDUCER
# ============================================================================

def extract_values(records: Iterable[Record], field: TemperatureField) -> List[float]:
    """
    Extract the TX or TN value of each record, once per record.

    Args:
        records: Records to read
        field: Field to extract

    Returns:
        List of values in record order (NaN where missing)
    """
    if field == TemperatureField.TX:
        return [record.tx for record in records]
    return [record.tn for record in records]


def reduce_values(values: Sequence[float], metric: MetricSpec) -> float:
    """
    Reduce a list of values to one number.

    - average: arithmetic mean; NaN for an empty list (a hole, not zero)
    - countAbove: number of values strictly greater than the threshold
    - countBelow: number of values strictly less than the threshold

    Args:
        values: Values extracted from one bucket
        metric: Metric specification

    Returns:
        Reduced value

    Examples:
        >>> reduce_values([10.0, 20.0, 15.0], MetricSpec(kind='average'))
        15.0
        >>> reduce_values([10.0, 20.0, 15.0], MetricSpec(kind='countAbove', threshold=15))
        1.0
    """
    if metric.kind == MetricKind.AVERAGE:
        if not values:
            return math.nan
        return sum(values) / len(values)
    elif metric.kind == MetricKind.COUNT_ABOVE:
        return float(sum(1 for v in values if v > metric.threshold))
    elif metric.kind == MetricKind.COUNT_BELOW:
        return float(sum(1 for v in values if v < metric.threshold))
    else:
        raise ValueError(f"Unknown metric kind: {metric.kind}")


# ============================================================================
# AGGREGATOR
# ============================================================================

def bucket_key(record: Record, period: PeriodType) -> Hashable:
    """
    Build the grouping key of a record.

    Args:
        record: Record to key
        period: Grouping granularity

    Returns:
        year for annual, (year, season) for seasonal, (year, month) for monthly
    """
    if period == PeriodType.ANNUAL:
        return record.year
    elif period == PeriodType.SEASONAL:
        return (record.year, season_of(record.month))
    elif period == PeriodType.MONTHLY:
        return (record.year, record.month)
    else:
        raise ValueError(f"Unknown period type: {period}")


def group_records(records: Iterable[Record], period: PeriodType) -> Dict[Hashable, List[Record]]:
    """
    Group records by period key in a single pass.

    Groups are ordered by the first time their key is seen. Every record
    lands in exactly one group and no group is empty.
    """
    groups: Dict[Hashable, List[Record]] = {}
    for record in records:
        groups.setdefault(bucket_key(record, period), []).append(record)
    return groups


def make_bucket(key: Hashable, period: PeriodType, value: float) -> Bucket:
    """Rebuild the bucket fields from a grouping key."""
    if period == PeriodType.ANNUAL:
        return AnnualBucket(year=key, value=value)
    elif period == PeriodType.SEASONAL:
        year, season = key
        return SeasonalBucket(year=year, season=season, value=value)
    elif period == PeriodType.MONTHLY:
        year, month = key
        return MonthlyBucket(year=year, month=month, value=value)
    else:
        raise ValueError(f"Unknown period type: {period}")


def aggregate_records(
    records: Iterable[Record],
    period: PeriodType,
    metric: MetricSpec
) -> List[Bucket]:
    """
    Group records by period and reduce each group with a metric.

    Args:
        records: Filtered records
        period: Grouping granularity
        metric: Metric applied to each group

    Returns:
        One bucket per group, in first-seen key order. No records gives
        no buckets.

    Example:
        >>> aggregate_records(records, PeriodType.MONTHLY, MetricSpec(field='TX'))
        [MonthlyBucket(year=2020, month=1, value=15.0), MonthlyBucket(year=2020, month=2, value=15.0)]
    """
    groups = group_records(records, period)

    buckets = []
    for key, members in groups.items():
        values = extract_values(members, metric.field)
        buckets.append(make_bucket(key, period, reduce_values(values, metric)))

    logger.debug(
        f"Aggregated into {len(buckets)} {period.value} buckets "
        f"({metric.field.value} {metric.kind.value})"
    )
    return buckets


def run_analysis(records: Iterable[Record], config: AnalysisConfig) -> List[Bucket]:
    """
    Filter then aggregate records with one configuration.

    Args:
        records: All loaded records
        config: Filter, period and metric to apply

    Returns:
        Buckets for the filtered records
    """
    filtered = filter_records(records, config.filter)
    return aggregate_records(filtered, config.period, config.metric)

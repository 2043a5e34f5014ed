"""
Delimited-text export of analysis buckets.

Column order follows the field order of the bucket shape for the period:
- annual:   year, value
- seasonal: year, season, value
- monthly:  year, month, value

NaN values are written as empty cells so the gap survives a round trip.
"""

import io
from typing import Dict, List, Sequence

import pandas as pd

from app.schemas.analysis import (
    AnnualBucket,
    Bucket,
    MonthlyBucket,
    PeriodType,
    SeasonalBucket,
)


BUCKET_MODELS = {
    PeriodType.ANNUAL: AnnualBucket,
    PeriodType.SEASONAL: SeasonalBucket,
    PeriodType.MONTHLY: MonthlyBucket,
}


def export_columns(period: PeriodType) -> List[str]:
    """Get the export column names for a period, in declaration order."""
    return list(BUCKET_MODELS[period].model_fields)


def buckets_to_frame(buckets: Sequence[Bucket], period: PeriodType) -> pd.DataFrame:
    """
    Build a DataFrame with one row per bucket, in bucket order.

    Args:
        buckets: Buckets of a single period type
        period: Period the buckets were grouped by

    Returns:
        DataFrame with the period's export columns
    """
    columns = export_columns(period)
    rows = [bucket.model_dump(mode="python") for bucket in buckets]
    frame = pd.DataFrame(rows, columns=columns)
    if "season" in frame.columns:
        frame["season"] = frame["season"].map(lambda s: getattr(s, "value", s))
    return frame


def export_buckets_csv(
    buckets: Sequence[Bucket],
    period: PeriodType,
    delimiter: str = ","
) -> str:
    """
    Serialize buckets to delimited text with a header row.

    An empty bucket list still produces the header.

    Args:
        buckets: Buckets to export
        period: Period the buckets were grouped by
        delimiter: Column separator

    Returns:
        CSV text
    """
    frame = buckets_to_frame(buckets, period)
    return frame.to_csv(index=False, sep=delimiter, na_rep="", lineterminator="\n")


def read_exported_csv(text: str, delimiter: str = ",") -> List[Dict]:
    """
    Read text written by export_buckets_csv back into row dicts.

    Empty value cells come back as NaN.
    """
    frame = pd.read_csv(io.StringIO(text), sep=delimiter)
    frame["value"] = frame["value"].astype(float)
    return frame.to_dict(orient="records")

"""
Pydantic schemas for temperature analysis.

This module defines the record, configuration and bucket types shared by the
aggregation engine, the loader/exporter utilities and the API routers.

Mode flags (period, field, metric kind, season) are closed string enums so
that invalid tokens are rejected when configuration is constructed and the
aggregation code can branch exhaustively over them.
"""

import math
from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)


ALL = "all"


# ============================================================================
# ENUMERATIONS
# ============================================================================

class Season(str, Enum):
    """Fixed three-month seasons."""

    SPRING = "spring"
    SUMMER = "summer"
    AUTUMN = "autumn"
    WINTER = "winter"


class PeriodType(str, Enum):
    """Time granularity used to group records."""

    ANNUAL = "annual"
    SEASONAL = "seasonal"
    MONTHLY = "monthly"


class TemperatureField(str, Enum):
    """Record field a metric is computed over."""

    TX = "TX"  # daily maximum
    TN = "TN"  # daily minimum


class MetricKind(str, Enum):
    """Reduction applied to the values of one bucket."""

    AVERAGE = "average"
    COUNT_ABOVE = "countAbove"
    COUNT_BELOW = "countBelow"


# ============================================================================
# RECORDS
# ============================================================================

class Record(BaseModel):
    """
    One daily temperature observation.

    Missing TX/TN values are stored as NaN rather than dropped; the
    aggregation engine propagates them into bucket values.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    year: int = Field(..., description="Calendar year")
    month: int = Field(..., ge=1, le=12, description="Month (1-12)")
    day: int = Field(..., ge=1, le=31, description="Day of month (1-31)")
    tx: float = Field(math.nan, alias="TX", description="Daily maximum temperature °C")
    tn: float = Field(math.nan, alias="TN", description="Daily minimum temperature °C")

    @field_validator("tx", "tn", mode="before")
    @classmethod
    def missing_as_nan(cls, v):
        """Treat null and empty values as NaN."""
        if v is None or v == "":
            return math.nan
        return v

    @field_serializer("tx", "tn", when_used="json")
    def nan_as_null(self, v: float) -> Optional[float]:
        return None if math.isnan(v) else v


# ============================================================================
# CONFIGURATION
# ============================================================================

class FilterSpec(BaseModel):
    """
    Record filter.

    A null year bound is unbounded on that side. Month and season filters
    apply conjunctively, so a month outside the selected season yields an
    empty result rather than an error.
    """

    model_config = ConfigDict(frozen=True)

    year_start: Optional[int] = Field(None, description="First year (inclusive), null for unbounded")
    year_end: Optional[int] = Field(None, description="Last year (inclusive), null for unbounded")
    month: Union[Literal["all"], int] = Field(ALL, description="Month 1-12 or 'all'")
    season: Union[Literal["all"], Season] = Field(ALL, description="Season or 'all'")

    @field_validator("month")
    @classmethod
    def validate_month(cls, v: Union[str, int]) -> Union[str, int]:
        if v != ALL and not 1 <= v <= 12:
            raise ValueError(f"month must be between 1 and 12 or 'all', got {v}")
        return v

    @model_validator(mode="after")
    def validate_year_range(self) -> "FilterSpec":
        if (
            self.year_start is not None
            and self.year_end is not None
            and self.year_start > self.year_end
        ):
            raise ValueError(
                f"year_start ({self.year_start}) must be less than or equal to year_end ({self.year_end})"
            )
        return self


class MetricSpec(BaseModel):
    """Which field to extract and how to reduce it."""

    model_config = ConfigDict(frozen=True)

    field: TemperatureField = Field(TemperatureField.TX, description="TX or TN")
    kind: MetricKind = Field(MetricKind.AVERAGE, description="average, countAbove or countBelow")
    threshold: float = Field(0.0, allow_inf_nan=False, description="Threshold °C for count metrics")


class AnalysisConfig(BaseModel):
    """Complete set of parameters one analysis run depends on."""

    model_config = ConfigDict(frozen=True)

    filter: FilterSpec = Field(default_factory=FilterSpec)
    period: PeriodType = PeriodType.ANNUAL
    metric: MetricSpec = Field(default_factory=MetricSpec)


class AnalysisConfigUpdate(BaseModel):
    """Partial configuration change; omitted parts are left as they are."""

    filter: Optional[FilterSpec] = None
    period: Optional[PeriodType] = None
    metric: Optional[MetricSpec] = None


# ============================================================================
# BUCKETS
# ============================================================================

class BucketBase(BaseModel):
    """
    Common bucket configuration.

    A NaN value means the bucket had no usable data. It is serialized as
    null so that charts show a gap instead of a zero. Extra keys are
    forbidden so each bucket shape validates against exactly one model.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("value", mode="before", check_fields=False)
    @classmethod
    def null_as_nan(cls, v):
        return math.nan if v is None else v

    @field_serializer("value", when_used="json", check_fields=False)
    def nan_as_null(self, v: float) -> Optional[float]:
        return None if math.isnan(v) else v


class AnnualBucket(BucketBase):
    year: int
    value: float


class SeasonalBucket(BucketBase):
    year: int
    season: Season
    value: float


class MonthlyBucket(BucketBase):
    year: int
    month: int
    value: float


Bucket = Union[AnnualBucket, SeasonalBucket, MonthlyBucket]


# ============================================================================
# API REQUESTS / RESPONSES
# ============================================================================

class AnalysisRequest(AnalysisConfig):
    """Records plus configuration for a stateless analysis run."""

    records: List[Record] = Field(default_factory=list, description="Daily records")

    def to_config(self) -> AnalysisConfig:
        return AnalysisConfig(filter=self.filter, period=self.period, metric=self.metric)


class AnalysisResponse(BaseModel):
    """Result of one analysis run."""

    period: PeriodType
    metric: MetricSpec
    record_count: int = Field(..., description="Records received")
    filtered_count: int = Field(..., description="Records remaining after filtering")
    bucket_count: int
    buckets: List[Bucket]


class RecordsResponse(BaseModel):
    """Records parsed from an uploaded file."""

    filename: Optional[str] = None
    record_count: int
    records: List[Record]


class ChartPoint(BaseModel):
    """One point of a chart series; value is null for gaps."""

    label: str = Field(..., description="Period label, e.g. 2020, 2020-winter, 2020-01")
    year: int
    value: Optional[float] = None


class ChartSeries(BaseModel):
    """Bucket values mapped to a 2-D series along the period axis."""

    period: PeriodType
    x_label: str
    y_label: str
    points: List[ChartPoint]


class SessionResponse(BaseModel):
    """State of an analysis session after its latest recomputation."""

    session_id: str
    revision: int
    config: AnalysisConfig
    record_count: int
    buckets: List[Bucket]

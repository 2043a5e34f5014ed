# Pydantic schemas package

from app.schemas.analysis import (
    ALL, Season, PeriodType, TemperatureField, MetricKind,
    Record, FilterSpec, MetricSpec, AnalysisConfig, AnalysisConfigUpdate,
    AnnualBucket, SeasonalBucket, MonthlyBucket, Bucket,
    AnalysisRequest, AnalysisResponse, RecordsResponse,
    ChartPoint, ChartSeries, SessionResponse,
)

__all__ = [
    # Enumerations
    "ALL", "Season", "PeriodType", "TemperatureField", "MetricKind",

    # Records and configuration
    "Record", "FilterSpec", "MetricSpec", "AnalysisConfig", "AnalysisConfigUpdate",

    # Buckets
    "AnnualBucket", "SeasonalBucket", "MonthlyBucket", "Bucket",

    # API schemas
    "AnalysisRequest", "AnalysisResponse", "RecordsResponse",
    "ChartPoint", "ChartSeries", "SessionResponse",
]

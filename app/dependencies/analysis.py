"""
Request dependencies for analysis endpoints.

Builds an AnalysisConfig from query parameters (used by the file upload
endpoints, where the body is the file itself) and reads uploaded files.
"""

from typing import Optional

from fastapi import HTTPException, Query, UploadFile, status
from pydantic import ValidationError

from app.config import settings
from app.schemas.analysis import (
    AnalysisConfig,
    FilterSpec,
    MetricKind,
    MetricSpec,
    PeriodType,
    TemperatureField,
)
from app.utils.loader import RecordParseError, parse_records
from app.utils.logging_config import get_logger

logger = get_logger(__name__)


def _validation_detail(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in error['loc']) or 'filter'}: {error['msg']}"
        for error in exc.errors()
    )


def analysis_config_params(
    year_start: Optional[int] = Query(None, description="First year (inclusive)", examples=[2010]),
    year_end: Optional[int] = Query(None, description="Last year (inclusive)", examples=[2020]),
    month: str = Query("all", description="Month 1-12 or 'all'", examples=["all", "6"]),
    season: str = Query("all", description="spring, summer, autumn, winter or 'all'", examples=["all"]),
    period: PeriodType = Query(PeriodType.ANNUAL, description="annual, seasonal or monthly"),
    field: TemperatureField = Query(TemperatureField.TX, description="TX or TN"),
    kind: MetricKind = Query(MetricKind.AVERAGE, description="average, countAbove or countBelow"),
    threshold: float = Query(0.0, description="Threshold °C for count metrics"),
) -> AnalysisConfig:
    """
    Build and validate an analysis configuration from query parameters.

    Raises:
        HTTPException: 400 if the filter or metric is invalid
    """
    try:
        return AnalysisConfig(
            filter=FilterSpec(
                year_start=year_start,
                year_end=year_end,
                month=month,
                season=season,
            ),
            period=period,
            metric=MetricSpec(field=field, kind=kind, threshold=threshold),
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid analysis parameters: {_validation_detail(e)}"
        )


def read_upload(
    file: UploadFile,
    delimiter: str = ",",
    has_header: bool = False
):
    """
    Read an uploaded file and parse it into records.

    Raises:
        HTTPException: 413 if the file is too large, 400 if it cannot be parsed
    """
    content = file.file.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large. Maximum {settings.MAX_UPLOAD_BYTES} bytes allowed."
        )

    try:
        return parse_records(content, delimiter=delimiter, has_header=has_header)
    except RecordParseError as e:
        logger.warning(f"Failed to parse upload '{file.filename}': {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File parse failed: {e}"
        )


def upload_options(
    delimiter: str = Query(settings.CSV_DELIMITER, min_length=1, max_length=1, description="Column separator"),
    has_header: bool = Query(False, description="Skip the first line"),
) -> dict:
    return {"delimiter": delimiter, "has_header": has_header}

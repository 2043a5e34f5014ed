"""
Analysis router - stateless temperature aggregation endpoints.

Every request carries its own records (JSON body or uploaded file) and
configuration; results are computed from scratch and nothing is stored.
"""

from fastapi import APIRouter, Depends, File, Request, Response, UploadFile

from slowapi import Limiter
from slowapi.util import get_remote_address

from app.config import settings
from app.dependencies.analysis import analysis_config_params, read_upload, upload_options
from app.schemas.analysis import (
    AnalysisConfig,
    AnalysisRequest,
    AnalysisResponse,
    ChartSeries,
    RecordsResponse,
)
from app.utils.aggregation import aggregate_records, filter_records, run_analysis
from app.utils.chart import build_chart_series
from app.utils.export import export_buckets_csv
from app.utils.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/analysis",
    tags=["Analysis"],
    responses={
        400: {"description": "Bad request - Invalid parameters or unparseable file"},
        413: {"description": "Uploaded file too large"},
    },
)

limiter = Limiter(key_func=get_remote_address)


def _analyze(records, config: AnalysisConfig) -> AnalysisResponse:
    filtered = filter_records(records, config.filter)
    buckets = aggregate_records(filtered, config.period, config.metric)

    logger.info(
        f"Analysis: {len(records)} records, {len(filtered)} after filter, "
        f"{len(buckets)} {config.period.value} buckets"
    )

    return AnalysisResponse(
        period=config.period,
        metric=config.metric,
        record_count=len(records),
        filtered_count=len(filtered),
        bucket_count=len(buckets),
        buckets=buckets,
    )


def csv_attachment(content: str) -> Response:
    """Wrap exported CSV text as a file download."""
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{settings.EXPORT_FILENAME}"'},
    )


# ============================================================================
# JSON ENDPOINTS
# ============================================================================

@router.post("", response_model=AnalysisResponse)
@limiter.limit("100/minute")
def analyze(request: Request, body: AnalysisRequest):
    """
    Aggregate records sent as JSON.

    **Filter**: year range (inclusive, null = unbounded), month (1-12 or
    'all') and season (spring/summer/autumn/winter or 'all'). Month and
    season apply together; a month outside the season gives no buckets.

    **Period**: `annual`, `seasonal` or `monthly`.

    **Metric**: `average` of TX/TN, or `countAbove` / `countBelow` a
    threshold (strict comparison; equal values count toward neither).

    **Example request**:
    ```
    POST /api/v1/analysis
    {"records": [{"year": 2020, "month": 1, "day": 1, "TX": 10, "TN": 2}],
     "period": "monthly", "metric": {"field": "TX", "kind": "average"}}
    ```

    **Rate limit**: 100 requests per minute

    Returns:
        AnalysisResponse: Buckets in first-seen period order
    """
    return _analyze(body.records, body.to_config())


@router.post("/chart", response_model=ChartSeries)
@limiter.limit("100/minute")
def analyze_chart(request: Request, body: AnalysisRequest):
    """
    Aggregate records and return a chart series sorted along the period axis.

    Buckets without data are returned with a null value so they render as
    gaps.
    """
    config = body.to_config()
    buckets = run_analysis(body.records, config)
    return build_chart_series(buckets, config)


@router.post("/export", response_class=Response)
@limiter.limit("100/minute")
def analyze_export(request: Request, body: AnalysisRequest):
    """
    Aggregate records and download the buckets as CSV.

    Columns follow the bucket shape: `year,value`, `year,season,value` or
    `year,month,value`. Missing values are written as empty cells.
    """
    config = body.to_config()
    buckets = run_analysis(body.records, config)
    return csv_attachment(export_buckets_csv(buckets, config.period, settings.CSV_DELIMITER))


# ============================================================================
# FILE UPLOAD ENDPOINTS
# ============================================================================

@router.post("/records", response_model=RecordsResponse)
@limiter.limit("30/minute")
def parse_upload(
    request: Request,
    file: UploadFile = File(..., description="Headerless CSV: year,month,day,TX,TN"),
    options: dict = Depends(upload_options),
):
    """
    Parse an uploaded file into records without analysing it.

    Useful to check a file before running analyses on it.

    Raises:
        HTTPException: 400 if the file cannot be parsed, 413 if too large
    """
    records = read_upload(file, **options)
    return RecordsResponse(filename=file.filename, record_count=len(records), records=records)


@router.post("/upload", response_model=AnalysisResponse)
@limiter.limit("30/minute")
def analyze_upload(
    request: Request,
    file: UploadFile = File(..., description="Headerless CSV: year,month,day,TX,TN"),
    options: dict = Depends(upload_options),
    config: AnalysisConfig = Depends(analysis_config_params),
):
    """
    Parse an uploaded file and aggregate it in one step.

    **Example request**:
    ```
    POST /api/v1/analysis/upload?period=seasonal&field=TN&kind=countBelow&threshold=0
    ```

    **Rate limit**: 30 requests per minute

    Raises:
        HTTPException: 400 if the file or parameters are invalid, 413 if too large
    """
    logger.info(f"Upload analysis request: file={file.filename}, period={config.period.value}")
    records = read_upload(file, **options)
    return _analyze(records, config)

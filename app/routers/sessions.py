"""
Sessions router - interactive analysis over an uploaded file.

A session keeps the uploaded records and the current configuration in
memory. Changing any parameter (or the records) recomputes the buckets from
scratch, so clients can tweak filters and metrics without re-uploading.
Sessions are not persisted.
"""

from fastapi import APIRouter, Depends, File, HTTPException, Request, Response, UploadFile, status
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.config import settings
from app.dependencies.analysis import analysis_config_params, read_upload, upload_options
from app.routers.analysis import csv_attachment
from app.schemas.analysis import (
    AnalysisConfig,
    AnalysisConfigUpdate,
    ChartSeries,
    SessionResponse,
)
from app.utils.chart import build_chart_series
from app.utils.export import export_buckets_csv
from app.utils.logging_config import get_logger
from app.utils.sessions import AnalysisSession, SessionNotFoundError, session_store

logger = get_logger(__name__)

router = APIRouter(
    prefix="/sessions",
    tags=["Analysis Sessions"],
    responses={
        404: {"description": "Session not found"},
        400: {"description": "Bad request - Invalid parameters or unparseable file"},
    },
)

limiter = Limiter(key_func=get_remote_address)


def get_session(session_id: str) -> AnalysisSession:
    """Resolve a session id or fail with 404."""
    try:
        return session_store.get(session_id)
    except SessionNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session '{session_id}' not found"
        )


def session_response(session: AnalysisSession) -> SessionResponse:
    snapshot = session.snapshot()
    return SessionResponse(
        session_id=session.session_id,
        revision=snapshot.revision,
        config=snapshot.config,
        record_count=snapshot.record_count,
        buckets=snapshot.buckets,
    )


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_session(
    request: Request,
    file: UploadFile = File(..., description="Headerless CSV: year,month,day,TX,TN"),
    options: dict = Depends(upload_options),
    config: AnalysisConfig = Depends(analysis_config_params),
):
    """
    Upload a file and start an analysis session.

    The initial configuration comes from the query parameters (same as
    `POST /analysis/upload`). The response carries the session id used by
    the other endpoints.

    **Rate limit**: 30 requests per minute
    """
    records = read_upload(file, **options)
    session = session_store.create(records, config)
    return session_response(session)


@router.get("/{session_id}", response_model=SessionResponse)
@limiter.limit("100/minute")
def read_session(request: Request, session_id: str):
    """Get the current configuration and buckets of a session."""
    return session_response(get_session(session_id))


@router.patch("/{session_id}", response_model=SessionResponse)
@limiter.limit("100/minute")
def update_session(request: Request, session_id: str, changes: AnalysisConfigUpdate):
    """
    Change the filter, period and/or metric of a session.

    Omitted parts keep their current value. Buckets are recomputed from
    scratch; if two updates overlap, the later one wins.

    **Example request**:
    ```
    PATCH /api/v1/sessions/{session_id}
    {"period": "monthly", "metric": {"field": "TN", "kind": "countBelow", "threshold": 0}}
    ```
    """
    session = get_session(session_id)
    session.update(filter=changes.filter, period=changes.period, metric=changes.metric)
    logger.info(f"Session {session_id} updated to revision {session.revision}")
    return session_response(session)


@router.put("/{session_id}/records", response_model=SessionResponse)
@limiter.limit("30/minute")
def replace_session_records(
    request: Request,
    session_id: str,
    file: UploadFile = File(..., description="Headerless CSV: year,month,day,TX,TN"),
    options: dict = Depends(upload_options),
):
    """Replace the records of a session with a new file and recompute."""
    session = get_session(session_id)
    records = read_upload(file, **options)
    session.load_records(records)
    return session_response(session)


@router.get("/{session_id}/chart", response_model=ChartSeries)
@limiter.limit("100/minute")
def read_session_chart(request: Request, session_id: str):
    """Get the session's buckets as a chart series sorted by period."""
    snapshot = get_session(session_id).snapshot()
    return build_chart_series(snapshot.buckets, snapshot.config)


@router.get("/{session_id}/export", response_class=Response)
@limiter.limit("100/minute")
def export_session(request: Request, session_id: str):
    """Download the session's buckets as CSV."""
    snapshot = get_session(session_id).snapshot()
    return csv_attachment(
        export_buckets_csv(snapshot.buckets, snapshot.config.period, settings.CSV_DELIMITER)
    )


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("100/minute")
def delete_session(request: Request, session_id: str):
    """Discard a session."""
    try:
        session_store.delete(session_id)
    except SessionNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session '{session_id}' not found"
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)

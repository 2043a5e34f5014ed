"""
In-memory analysis sessions.

An AnalysisSession owns a record set and the current analysis configuration
and recomputes its buckets from scratch whenever either changes. Sessions
are kept in process memory only and are lost on restart.

Concurrent updates to one session resolve as "last write wins": every
recomputation is tagged with a revision number and a result is only
published if no newer recomputation has started in the meantime.
"""

import threading
import uuid
from collections import OrderedDict
from typing import List, NamedTuple, Optional, Sequence, Tuple

from app.config import settings
from app.schemas.analysis import (
    AnalysisConfig,
    Bucket,
    FilterSpec,
    MetricSpec,
    PeriodType,
    Record,
)
from app.utils.aggregation import run_analysis
from app.utils.logging_config import get_logger

logger = get_logger(__name__)


class SessionNotFoundError(KeyError):
    """Raised when a session id is unknown or has been evicted."""


class SessionSnapshot(NamedTuple):
    """Consistent view of one published recomputation."""

    revision: int
    config: AnalysisConfig
    record_count: int
    buckets: List[Bucket]


class AnalysisSession:
    """
    Recompute-on-change controller for one record set.

    Attributes:
        session_id: Identifier used by the session store
        revision: Number of the latest started recomputation
    """

    def __init__(
        self,
        records: Sequence[Record] = (),
        config: Optional[AnalysisConfig] = None,
        session_id: Optional[str] = None
    ):
        self.session_id = session_id or uuid.uuid4().hex
        self._lock = threading.Lock()
        self._records: Tuple[Record, ...] = tuple(records)
        self._config = config or AnalysisConfig()
        self._revision = 0
        self._published_revision = 0
        self._published_config = self._config
        self._published_record_count = 0
        self._buckets: List[Bucket] = []
        self._recompute()

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def published_revision(self) -> int:
        return self._published_revision

    @property
    def config(self) -> AnalysisConfig:
        return self._config

    @property
    def records(self) -> Tuple[Record, ...]:
        return self._records

    @property
    def record_count(self) -> int:
        return len(self._records)

    @property
    def buckets(self) -> List[Bucket]:
        """Buckets of the latest published recomputation."""
        return list(self._buckets)

    def snapshot(self) -> SessionSnapshot:
        """Get the latest published result together with the inputs that produced it."""
        with self._lock:
            return SessionSnapshot(
                revision=self._published_revision,
                config=self._published_config,
                record_count=self._published_record_count,
                buckets=list(self._buckets),
            )

    def load_records(self, records: Sequence[Record]) -> List[Bucket]:
        """Replace the record set and recompute."""
        with self._lock:
            self._records = tuple(records)
        logger.info(f"Session {self.session_id}: loaded {len(records)} records")
        return self._recompute()

    def update(
        self,
        filter: Optional[FilterSpec] = None,
        period: Optional[PeriodType] = None,
        metric: Optional[MetricSpec] = None
    ) -> List[Bucket]:
        """
        Change any part of the configuration and recompute.

        Args:
            filter: New filter, or None to keep the current one
            period: New period, or None to keep the current one
            metric: New metric, or None to keep the current one

        Returns:
            Buckets of the latest published recomputation
        """
        with self._lock:
            self._config = AnalysisConfig(
                filter=filter if filter is not None else self._config.filter,
                period=period if period is not None else self._config.period,
                metric=metric if metric is not None else self._config.metric,
            )
        return self._recompute()

    def _recompute(self) -> List[Bucket]:
        with self._lock:
            self._revision += 1
            revision = self._revision
            records = self._records
            config = self._config

        buckets = run_analysis(records, config)

        with self._lock:
            if revision == self._revision:
                self._buckets = buckets
                self._published_revision = revision
                self._published_config = config
                self._published_record_count = len(records)
            else:
                logger.debug(
                    f"Session {self.session_id}: discarded stale result "
                    f"(revision {revision}, latest {self._revision})"
                )
            return list(self._buckets)


class SessionStore:
    """
    Bounded in-memory registry of analysis sessions.

    The least recently used session is evicted once max_sessions is reached.
    """

    def __init__(self, max_sessions: Optional[int] = None):
        self.max_sessions = max_sessions or settings.MAX_SESSIONS
        self._sessions: "OrderedDict[str, AnalysisSession]" = OrderedDict()
        self._lock = threading.Lock()

    def create(
        self,
        records: Sequence[Record] = (),
        config: Optional[AnalysisConfig] = None
    ) -> AnalysisSession:
        """Create a session, compute its first result and register it."""
        session = AnalysisSession(records, config)
        with self._lock:
            self._sessions[session.session_id] = session
            while len(self._sessions) > self.max_sessions:
                evicted_id, _ = self._sessions.popitem(last=False)
                logger.info(f"Evicted session {evicted_id} (limit {self.max_sessions})")
        logger.info(f"Created session {session.session_id} with {session.record_count} records")
        return session

    def get(self, session_id: str) -> AnalysisSession:
        """
        Get a session by id.

        Raises:
            SessionNotFoundError: If the id is unknown
        """
        with self._lock:
            try:
                session = self._sessions[session_id]
            except KeyError:
                raise SessionNotFoundError(session_id) from None
            self._sessions.move_to_end(session_id)
            return session

    def delete(self, session_id: str) -> None:
        with self._lock:
            if self._sessions.pop(session_id, None) is None:
                raise SessionNotFoundError(session_id)
        logger.info(f"Deleted session {session_id}")

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions


# Global session store instance
session_store = SessionStore()

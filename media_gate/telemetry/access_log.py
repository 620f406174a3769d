"""Fire-and-forget audit trail for media grant and deny decisions."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Literal, Mapping, Optional, Set, Tuple

from media_gate.metrics import ACCESS_DECISIONS, ACCESS_LOG_FAILURES

__all__ = [
    "AccessLogEntry",
    "AccessLogSink",
    "AccessLogger",
    "logging_sink",
]

Decision = Literal["granted", "denied"]
AccessAction = Literal[
    "url_generated",
    "token_generated",
    "access_validated",
    "access_denied",
]

_logger = logging.getLogger("media_gate.access")


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AccessLogEntry:
    user_id: str
    content_id: str
    storage_key: str
    decision: Decision
    reason: str
    action: AccessAction
    timestamp: datetime = field(default_factory=_now)
    creator_id: Optional[str] = None
    media_type: Optional[str] = None
    expires_at: Optional[int] = None

    def as_payload(self) -> Dict[str, Any]:
        payload = {key: value for key, value in asdict(self).items() if value is not None}
        payload["timestamp"] = self.timestamp.isoformat().replace("+00:00", "Z")
        payload["service"] = "media-access"
        return payload


AccessLogSink = Callable[[Mapping[str, Any]], None]


def logging_sink(payload: Mapping[str, Any]) -> None:
    """Default sink: one structured record per decision."""

    _logger.info("media_access", extra={"media_access": dict(payload)})


class AccessLogger:
    """Records entries off the request path; sink failures are swallowed.

    Entries are independent facts, so no ordering is promised between them.
    At most ``max_pending`` entries wait for the sink; further entries are
    dropped and counted in ``media_access_log_failures_total``.
    """

    def __init__(
        self,
        sink: Optional[AccessLogSink] = None,
        *,
        max_workers: int = 2,
        max_pending: int = 1000,
    ) -> None:
        self._sink: AccessLogSink = sink or logging_sink
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, max_workers), thread_name_prefix="media-access-log"
        )
        self._pending: Set[Future] = set()
        self._max_pending = max(1, max_pending)
        self._lock = threading.Lock()

    def set_sink(self, candidate: AccessLogSink | None) -> None:
        self._sink = candidate if callable(candidate) else logging_sink

    def log(self, entry: AccessLogEntry) -> None:
        ACCESS_DECISIONS.labels(
            action=entry.action, decision=entry.decision, reason=entry.reason
        ).inc()
        future, problem = self._submit(entry.as_payload())
        if future is None:
            # The request path must not notice a dropped entry.
            ACCESS_LOG_FAILURES.inc()
            _logger.warning("access log entry dropped: %s", problem)
            return
        future.add_done_callback(self._discard)

    def _submit(self, payload: Dict[str, Any]) -> Tuple[Optional[Future], str]:
        with self._lock:
            if len(self._pending) >= self._max_pending:
                # done callbacks run after waiters wake, so prune eagerly
                self._pending = {f for f in self._pending if not f.done()}
            if len(self._pending) >= self._max_pending:
                return None, "queue full"
            try:
                future = self._executor.submit(self._emit, payload)
            except RuntimeError:
                return None, "executor shut down"
            self._pending.add(future)
            return future, ""

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _emit(self, payload: Dict[str, Any]) -> None:
        try:
            self._sink(payload)
        except Exception:
            ACCESS_LOG_FAILURES.inc()
            _logger.exception(
                "failed to record media access for content %s",
                payload.get("content_id"),
            )

    def flush(self, timeout: Optional[float] = None) -> None:
        """Block until every queued entry has been handed to the sink."""

        with self._lock:
            pending = list(self._pending)
        wait(pending, timeout=timeout)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)

# backend/pos_dashboard/services/sync_state.py
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from pos_dashboard.services.metrics import error_rate, sync_status
from pos_dashboard.services.orchestrator import AggregateSnapshot


@dataclass
class SyncRecord:
    last_sync: Optional[datetime] = None
    status: str = "success"
    error_count: int = 0
    last_error_rate: float = 0.0
    last_response_time_ms: int = 0


class SyncState:
    """
    Outcome of the latest aggregation cycles, owned by the running app
    (one instance on app.state). Cycles never share a snapshot; they only
    report here once they have settled.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._record = SyncRecord()

    def record(self, snapshot: AggregateSnapshot) -> SyncRecord:
        rate = error_rate(snapshot)
        with self._lock:
            r = self._record
            r.last_sync = snapshot.captured_at
            r.status = sync_status(rate)
            r.error_count = r.error_count + 1 if snapshot.failed_count else 0
            r.last_error_rate = rate
            r.last_response_time_ms = snapshot.response_time_ms
            return SyncRecord(**vars(r))

    def current(self) -> SyncRecord:
        with self._lock:
            return SyncRecord(**vars(self._record))

    def as_dict(self) -> Dict[str, Any]:
        r = self.current()
        return {
            "lastSync": r.last_sync.isoformat() if r.last_sync else None,
            "status": r.status,
            "errorCount": r.error_count,
            "errorRate": round(r.last_error_rate, 4),
            "responseTime": r.last_response_time_ms,
        }

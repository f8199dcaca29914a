# scholarcast/services/auto_training.py
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Callable, List, Optional

from ..ai.model_store import GLOBAL_SCOPE

AUTO_ACTOR = "auto"

TRIGGER_STATUS_CHANGE = "auto_status_change"
TRIGGER_GLOBAL_REFRESH = "auto_global_refresh"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AutoTrainingState:
    """
    Process-wide bookkeeping for retraining triggered by application decisions:
    the decision counter that paces global refreshes, the scopes currently training,
    and a bounded log of what each trigger did.

    Owned by the application (app.state.auto_training) and handed to TrainingService.
    """

    def __init__(
        self,
        global_retrain_interval: int = 10,
        max_log: int = 100,
        enabled: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ):
        if global_retrain_interval < 1:
            raise ValueError("global_retrain_interval must be at least 1")
        self.global_retrain_interval = global_retrain_interval
        self.enabled = enabled
        self._clock = clock
        self._lock = threading.Lock()
        self._busy: set[str] = set()
        self._log: deque = deque(maxlen=max_log)
        self.decision_counter = 0

    @classmethod
    def from_settings(cls, settings) -> "AutoTrainingState":
        return cls(
            global_retrain_interval=settings.GLOBAL_RETRAIN_INTERVAL,
            max_log=settings.AUTO_TRAINING_LOG_SIZE,
            enabled=settings.AUTO_TRAINING_ENABLED,
        )

    def count_decision(self) -> bool:
        """Count one decision; True when it is due a global refresh."""
        with self._lock:
            self.decision_counter += 1
            return self.decision_counter % self.global_retrain_interval == 0

    def acquire(self, scope: str) -> bool:
        with self._lock:
            if scope in self._busy:
                return False
            self._busy.add(scope)
            return True

    def release(self, scope: str) -> None:
        with self._lock:
            self._busy.discard(scope)

    def record(self, entry: dict) -> dict:
        record = {"timestamp": self._clock(), **entry}
        with self._lock:
            self._log.append(record)
        return record

    def recent(self, limit: int = 50) -> List[dict]:
        with self._lock:
            entries = list(self._log)
        return list(reversed(entries[-limit:])) if limit > 0 else []

    def status(self, min_samples_global: int, min_samples_scholarship: int) -> dict:
        with self._lock:
            entries = list(self._log)
            counter = self.decision_counter
            busy = sorted(self._busy)

        day_start = self._clock().replace(hour=0, minute=0, second=0, microsecond=0)
        today = [e for e in entries if e["type"] == "success" and e["timestamp"] >= day_start]
        last: Optional[dict] = entries[-1] if entries else None
        return {
            "enabled": self.enabled,
            "config": {
                "min_samples_scholarship": min_samples_scholarship,
                "min_samples_global": min_samples_global,
                "global_retrain_interval": self.global_retrain_interval,
            },
            "decision_counter": counter,
            "decisions_until_global_retrain": self.global_retrain_interval - counter % self.global_retrain_interval,
            "active_locks": busy,
            "today": {
                "total": len(today),
                "scholarship": sum(1 for e in today if e.get("scope") != GLOBAL_SCOPE),
                "global": sum(1 for e in today if e.get("scope") == GLOBAL_SCOPE),
            },
            "last_event": last,
        }

    def reset(self) -> None:
        with self._lock:
            self._busy.clear()
            self._log.clear()
            self.decision_counter = 0

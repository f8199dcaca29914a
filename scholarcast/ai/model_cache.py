# scholarcast/ai/model_cache.py
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional


@dataclass(frozen=True)
class WeightsSnapshot:
    model_id: str
    scope: str
    version: str
    weights: Dict[str, float]
    bias: float


class ModelWeightsCache:
    """
    Active-weights snapshots keyed by scope, each kept for `ttl_seconds`.

    Owned by the application (app.state.model_cache) and handed to ModelStore, which
    invalidates a scope whenever its active model changes. Every invalidation bumps the
    scope's generation; a `put` carrying an older generation is dropped, so a read that
    raced an activation cannot repopulate the scope with the replaced model.
    """

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, tuple[float, Optional[WeightsSnapshot]]] = {}
        self._generations: Dict[str, int] = {}
        self._epoch = 0

    def get(self, scope: str) -> tuple[bool, Optional[WeightsSnapshot]]:
        """(hit, snapshot). A cached miss is stored as (True, None)."""
        with self._lock:
            entry = self._entries.get(scope)
            if entry is None:
                return False, None
            stored_at, snapshot = entry
            if self._clock() - stored_at > self.ttl_seconds:
                del self._entries[scope]
                return False, None
            return True, snapshot

    def generation(self, scope: str) -> tuple[int, int]:
        with self._lock:
            return self._epoch, self._generations.get(scope, 0)

    def put(
        self,
        scope: str,
        snapshot: Optional[WeightsSnapshot],
        generation: tuple[int, int] | None = None,
    ) -> bool:
        with self._lock:
            if generation is not None and generation != (self._epoch, self._generations.get(scope, 0)):
                return False
            self._entries[scope] = (self._clock(), snapshot)
            return True

    def invalidate(self, scope: str | None = None) -> None:
        with self._lock:
            if scope is None:
                self._entries.clear()
                self._epoch += 1
            else:
                self._entries.pop(scope, None)
                self._generations[scope] = self._generations.get(scope, 0) + 1

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

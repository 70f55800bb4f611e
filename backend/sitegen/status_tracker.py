import threading
import time
from datetime import datetime, timezone
from typing import Callable, Dict, Sequence, Tuple

from sitegen.models import ComponentStatus, GenerationCounts, ProjectState


DEFAULT_TTL_SECONDS = 30 * 60


class StatusTracker:
    """
    In-memory registry of generation progress, keyed by project directory.

    One pipeline writes a given key; any number of status requests read it.
    Readers always get a copy. Entries expire ttl_seconds after their last
    write; every publish sweeps expired entries, and reads drop them on access.
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: Dict[str, Tuple[float, ProjectState]] = {}
        self._lock = threading.Lock()
        self._ttl = ttl_seconds
        self._clock = clock

    def publish(
        self,
        project_dir: str,
        counts: GenerationCounts,
        components: Sequence[ComponentStatus],
    ) -> ProjectState:
        state = ProjectState(
            project_dir=project_dir,
            status=counts.model_copy(),
            components=[c.model_copy() for c in components],
            updated_at=datetime.now(timezone.utc),
        )
        with self._lock:
            self._sweep()
            self._entries[project_dir] = (self._clock(), state)
        return state.model_copy(deep=True)

    def get(self, project_dir: str) -> ProjectState | None:
        with self._lock:
            entry = self._entries.get(project_dir)
            if entry is None:
                return None
            written_at, state = entry
            if self._expired(written_at):
                del self._entries[project_dir]
                return None
            return state.model_copy(deep=True)

    def discard(self, project_dir: str) -> None:
        with self._lock:
            self._entries.pop(project_dir, None)

    def purge_expired(self) -> int:
        with self._lock:
            return self._sweep()

    def _sweep(self) -> int:
        # Caller holds the lock
        stale = [key for key, (written_at, _) in self._entries.items() if self._expired(written_at)]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def _expired(self, written_at: float) -> bool:
        return self._clock() - written_at >= self._ttl

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["StatusTracker", "DEFAULT_TTL_SECONDS"]

from __future__ import annotations

import threading
import uuid
from typing import Dict, Optional

from ...match.engine import MatchEngine


class InMemorySessionStore:
    """Thread-safe in-memory store of match engines.

    Responsibilities:
    - Create new sessions with unique `engine_id`s
    - Retrieve existing engines by `engine_id`
    - Delete sessions
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._engines: Dict[str, MatchEngine] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._engines)

    def create(self, engine: Optional[MatchEngine] = None) -> str:
        """Create a new engine session and return its `engine_id`."""
        eid = str(uuid.uuid4())
        if engine is None:
            engine = MatchEngine()
        with self._lock:
            self._engines[eid] = engine
        return eid

    def get(self, engine_id: str) -> Optional[MatchEngine]:
        with self._lock:
            return self._engines.get(engine_id)

    def delete(self, engine_id: str) -> bool:
        with self._lock:
            return self._engines.pop(engine_id, None) is not None

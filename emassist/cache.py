"""Process-wide map from file path to the last completed candidate list."""

from __future__ import annotations

import logging
import os
import threading
from typing import Dict, List, Sequence, Tuple

from .models import Candidate

logger = logging.getLogger(__name__)


def normalize_path(path: str) -> str:
    return os.path.normpath(os.path.abspath(path))


class CandidateCache:
    """Last-write-wins candidate store; one lock, no cross-path ordering."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: Dict[str, Tuple[Candidate, ...]] = {}

    def put(self, path: str, candidates: Sequence[Candidate]) -> None:
        key = normalize_path(path)
        entry = tuple(candidates)
        with self._lock:
            self._entries[key] = entry
        logger.debug("cached %d candidate(s) for %s", len(entry), key)

    def get(self, path: str) -> List[Candidate]:
        with self._lock:
            return list(self._entries.get(normalize_path(path), ()))

    def __contains__(self, path: str) -> bool:
        with self._lock:
            return normalize_path(path) in self._entries

    def paths(self) -> List[str]:
        with self._lock:
            return sorted(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

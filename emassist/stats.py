"""Cumulative statistics for a single server lifetime."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Iterable, List

from .models import Candidate, CandidateKind


@dataclass
class ServerStats:
    """Holds cumulative request and candidate counts."""

    # Terminal request outcomes
    completed: int = 0
    degraded: int = 0  # completed, but the service had nothing usable
    failed: int = 0
    timeouts: int = 0
    cancelled: int = 0

    # Candidate counts by kind
    as_is: int = 0
    adjusted: int = 0
    invalid: int = 0

    # Suggestion service call count
    service_calls: int = 0

    _lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    def record_candidates(self, candidates: Iterable[Candidate]) -> None:
        with self._lock:
            for c in candidates:
                if c.kind == CandidateKind.AS_IS:
                    self.as_is += 1
                elif c.kind == CandidateKind.ADJUSTED:
                    self.adjusted += 1
                else:
                    self.invalid += 1

    def increment(self, name: str, amount: int = 1) -> None:
        with self._lock:
            setattr(self, name, getattr(self, name) + amount)

    def merge(self, other: "ServerStats") -> None:
        """Add all counters from *other* into self."""
        with self._lock:
            self.completed += other.completed
            self.degraded += other.degraded
            self.failed += other.failed
            self.timeouts += other.timeouts
            self.cancelled += other.cancelled
            self.as_is += other.as_is
            self.adjusted += other.adjusted
            self.invalid += other.invalid
            self.service_calls += other.service_calls

    @property
    def total_requests(self) -> int:
        return self.completed + self.failed + self.timeouts + self.cancelled

    @property
    def total_candidates(self) -> int:
        return self.as_is + self.adjusted + self.invalid

    def format_summary(self) -> List[str]:
        """Return a list of lines forming the human-readable summary."""
        lines = ["--- em-assist summary ---"]
        lines.append("requests:")
        lines.append(f"  completed:  {self.completed}")
        lines.append(f"  degraded:   {self.degraded}")
        lines.append(f"  failed:     {self.failed}")
        lines.append(f"  timed out:  {self.timeouts}")
        lines.append(f"  cancelled:  {self.cancelled}")
        lines.append(f"  total:      {self.total_requests}")
        lines.append("candidates:")
        lines.append(f"  as is:      {self.as_is}")
        lines.append(f"  adjusted:   {self.adjusted}")
        lines.append(f"  invalid:    {self.invalid}")
        lines.append(f"  total:      {self.total_candidates}")
        lines.append(f"service calls: {self.service_calls}")
        return lines

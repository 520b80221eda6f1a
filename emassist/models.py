"""Data types shared by the resolver, orchestrator and transports."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class CandidateKind(Enum):
    """How a raw suggestion mapped onto its enclosing function."""

    AS_IS = "AS_IS"
    ADJUSTED = "ADJUSTED"
    INVALID = "INVALID"


@dataclass(frozen=True)
class RawSuggestion:
    """Unvalidated function name + line range from the suggestion service."""

    function_name: str
    line_start: int  # 1-indexed
    line_end: int  # 1-indexed, inclusive


@dataclass(frozen=True)
class EnclosingFunction:
    """Smallest named function containing a location, as reported by the host."""

    name: str
    text: str
    start_offset: int
    end_offset: int  # exclusive
    start_line: int  # 1-indexed, includes decorators
    end_line: int  # 1-indexed, inclusive


@dataclass(frozen=True)
class Candidate:
    """An offset-precise extraction unit derived from a raw suggestion.

    Offsets are only meaningful when :meth:`is_valid` is True; INVALID
    candidates carry the enclosing function's start offset in both fields.
    """

    function_name: str
    offset_start: int
    offset_end: int  # exclusive
    line_start: int
    line_end: int
    kind: CandidateKind
    suggestion: Optional[RawSuggestion] = None

    def is_valid(self) -> bool:
        return self.kind != CandidateKind.INVALID

    def to_dict(self) -> Dict[str, Any]:
        return {
            "functionName": self.function_name,
            "lineStart": self.line_start,
            "lineEnd": self.line_end,
            "offsetStart": self.offset_start,
            "offsetEnd": self.offset_end,
            "type": self.kind.value,
        }

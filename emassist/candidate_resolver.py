"""Resolve raw line-range suggestions into offset-precise candidates."""

from __future__ import annotations

from typing import Iterable, List, Optional

from .errors import OutOfRange
from .line_offsets import LineOffsetMapper
from .models import Candidate, CandidateKind, EnclosingFunction, RawSuggestion


def _invalid(raw: RawSuggestion, enclosing: EnclosingFunction) -> Candidate:
    return Candidate(
        function_name=raw.function_name,
        offset_start=enclosing.start_offset,
        offset_end=enclosing.start_offset,
        line_start=raw.line_start,
        line_end=raw.line_end,
        kind=CandidateKind.INVALID,
        suggestion=raw,
    )


def resolve(
    raw: RawSuggestion,
    enclosing: EnclosingFunction,
    buffer: str,
    mapper: Optional[LineOffsetMapper] = None,
) -> Candidate:
    """Map *raw* onto *buffer* and validate it against *enclosing*.

    The suggested lines cover ``[start of line_start, end of line_end)``,
    terminator included.  Lines past either end of the buffer are pulled
    back onto it first.  A range sticking out of the enclosing function is
    clamped to it (ADJUSTED); a reversed range, or one that clamps to
    nothing, is INVALID.  Pure: no I/O, no shared state.
    """
    if mapper is None:
        mapper = LineOffsetMapper(buffer)
    if raw.line_end < raw.line_start:
        return _invalid(raw, enclosing)
    if raw.line_end < 1 or raw.line_start > mapper.line_count:
        return _invalid(raw, enclosing)
    line_start = max(raw.line_start, 1)
    line_end = min(raw.line_end, mapper.line_count)
    try:
        start = mapper.offset_of_line_start(line_start)
        end = mapper.offset_of_line_end(line_end)
    except OutOfRange:
        return _invalid(raw, enclosing)

    clamped_start = max(start, enclosing.start_offset)
    clamped_end = min(end, enclosing.end_offset)
    if clamped_end <= clamped_start:
        return _invalid(raw, enclosing)

    unchanged = (line_start, line_end) == (raw.line_start, raw.line_end)
    if unchanged and (clamped_start, clamped_end) == (start, end):
        return Candidate(
            function_name=raw.function_name,
            offset_start=start,
            offset_end=end,
            line_start=raw.line_start,
            line_end=raw.line_end,
            kind=CandidateKind.AS_IS,
            suggestion=raw,
        )

    return Candidate(
        function_name=raw.function_name,
        offset_start=clamped_start,
        offset_end=clamped_end,
        line_start=mapper.line_of_offset(clamped_start),
        # clamped_end is exclusive; the last covered character decides the line
        line_end=mapper.line_of_offset(clamped_end - 1),
        kind=CandidateKind.ADJUSTED,
        suggestion=raw,
    )


def resolve_all(
    raws: Iterable[RawSuggestion],
    enclosing: EnclosingFunction,
    buffer: str,
) -> List[Candidate]:
    """Resolve every suggestion in order, sharing one line table."""
    mapper = LineOffsetMapper(buffer)
    return [resolve(raw, enclosing, buffer, mapper) for raw in raws]

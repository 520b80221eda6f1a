"""Convert between 1-based line numbers and character offsets of a buffer."""

from __future__ import annotations

import bisect
import re
from typing import List

from .errors import OutOfRange

# "\r\n" must come first so it is consumed as a single terminator.
_TERMINATOR = re.compile(r"\r\n|\r|\n")


def line_starts(buffer: str) -> List[int]:
    """Return the offset of the first character of every line in *buffer*.

    The first line starts at 0.  Every terminator opens a new line, so a
    buffer ending in a terminator has an empty final line.
    """
    starts = [0]
    starts.extend(m.end() for m in _TERMINATOR.finditer(buffer))
    return starts


class LineOffsetMapper:
    """Line/offset lookups over one buffer, with the line table built once."""

    def __init__(self, buffer: str) -> None:
        self.buffer = buffer
        self._starts = line_starts(buffer)

    @property
    def line_count(self) -> int:
        return len(self._starts)

    def offset_of_line_start(self, line: int) -> int:
        if line < 1 or line > len(self._starts):
            raise OutOfRange(
                f"line {line} outside buffer of {len(self._starts)} lines"
            )
        return self._starts[line - 1]

    def offset_of_line_end(self, line: int) -> int:
        """Return the exclusive end offset of *line*, terminator included."""
        self.offset_of_line_start(line)
        if line == len(self._starts):
            return len(self.buffer)
        return self._starts[line]

    def line_of_offset(self, offset: int) -> int:
        """Return the line containing *offset*, rounding down.

        ``len(buffer)`` is accepted and maps to the last line.
        """
        if offset < 0 or offset > len(self.buffer):
            raise OutOfRange(
                f"offset {offset} outside buffer of length {len(self.buffer)}"
            )
        return bisect.bisect_right(self._starts, offset)


def offset_of_line_start(buffer: str, line: int) -> int:
    return LineOffsetMapper(buffer).offset_of_line_start(line)


def line_of_offset(buffer: str, offset: int) -> int:
    return LineOffsetMapper(buffer).line_of_offset(offset)

"""Decode the JSON suggestion payload embedded in a service response."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterator, List, Optional

from .errors import MalformedSuggestion
from .models import RawSuggestion

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```[ \t]*[A-Za-z0-9_+-]*[ \t]*\r?\n(.*?)```", re.DOTALL)
_INT = re.compile(r"[+-]?\d+")
_DECODER = json.JSONDecoder()

# Some answers wrap the list in an object under this key.
_LIST_KEY = "suggestion_list"


def _regions(text: str) -> Iterator[str]:
    """Yield fenced code block bodies first, then the whole text."""
    for match in _FENCE.finditer(text):
        yield match.group(1)
    yield text


def _as_item_list(value: Any) -> Optional[list]:
    """Return the suggestion item list if *value* has a payload shape."""
    if isinstance(value, dict):
        value = value.get(_LIST_KEY)
    if isinstance(value, list) and all(isinstance(item, dict) for item in value):
        return value
    return None


def _item_lists(region: str) -> Iterator[list]:
    """Yield every JSON value in *region* with a payload shape, in order."""
    idx = 0
    while True:
        starts = [p for p in (region.find("[", idx), region.find("{", idx)) if p >= 0]
        if not starts:
            return
        pos = min(starts)
        try:
            value, end = _DECODER.raw_decode(region, pos)
        except json.JSONDecodeError:
            idx = pos + 1
            continue
        items = _as_item_list(value)
        if items is not None:
            yield items
        idx = end


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        raise TypeError("bool is not a line number")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _INT.fullmatch(value.strip()):
        return int(value.strip())
    raise TypeError(f"not a line number: {value!r}")


def _to_suggestion(item: dict) -> RawSuggestion:
    name = item["function_name"]
    if not isinstance(name, str):
        raise TypeError(f"function_name must be a string, got {name!r}")
    return RawSuggestion(
        function_name=name,
        line_start=_as_int(item["line_start"]),
        line_end=_as_int(item["line_end"]),
    )


def _convert(items: list) -> List[RawSuggestion]:
    suggestions: List[RawSuggestion] = []
    for item in items:
        try:
            suggestions.append(_to_suggestion(item))
        except (KeyError, TypeError) as exc:
            logger.debug("skipping suggestion item %r: %s", item, exc)
    return suggestions


def decode_payload(text: str) -> List[RawSuggestion]:
    """Decode *text* into suggestions; raise MalformedSuggestion if impossible.

    The payload is the first empty list, or the first list of objects with
    at least one usable suggestion; lists of unrelated objects are skipped.
    """
    if not text or not text.strip():
        raise MalformedSuggestion("empty response")
    for region in _regions(text):
        for items in _item_lists(region):
            if not items:
                return []
            suggestions = _convert(items)
            if suggestions:
                return suggestions
    raise MalformedSuggestion("no JSON suggestion payload found")


def parse_suggestions(text: str) -> List[RawSuggestion]:
    """Return the suggestions in *text*, in payload order.

    Never raises: a response without a decodable payload yields an empty list.
    Duplicate or overlapping ranges are returned unfiltered.
    """
    try:
        return decode_payload(text)
    except MalformedSuggestion as exc:
        logger.warning("malformed suggestion response: %s", exc)
        return []

"""The suggestion-generating service: code text in, raw suggestion texts out."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from . import llm_client as _llm_client
from .config import EmAssistConfig

logger = logging.getLogger(__name__)


class SuggestionService(ABC):
    """Anything that can propose extract-function ranges for a code snippet."""

    @abstractmethod
    def suggest(self, code: str, first_line: int = 1) -> List[str]:
        """Return the raw response texts for *code*.

        *first_line* is the file line number of the first line of *code*.
        May raise SuggestionServiceError or block indefinitely; the caller
        enforces the deadline.
        """


# ---------------------------------------------------------------------------
# Prompt construction
# ---------------------------------------------------------------------------


_SYSTEM_PROMPT = (
    "You are a skilled software developer. You have immense knowledge of "
    "software refactoring. You communicate with a remote server that sends "
    "you code of functions (one function in a message) that it wants to "
    "simplify by applying extract method refactoring. To improve "
    "readability and reduce complexity, you identify code fragments that "
    "can be extracted into new functions. Each line of the code starts with "
    "its line number. You answer only with a JSON list of objects with the "
    'keys "function_name", "line_start" and "line_end". The line range is '
    "inclusive and uses the line numbers shown in the code."
)

_EXAMPLE_CODE = """\
def report(orders, out):
    total = 0
    for order in orders:
        if order.cancelled:
            continue
        total += order.price * order.quantity
    out.write("Orders: %d\\n" % len(orders))
    out.write("Total: %.2f\\n" % total)
    return total
"""

_EXAMPLE_ANSWER = """\
[
  {"function_name": "compute_total", "line_start": 13, "line_end": 17},
  {"function_name": "write_summary", "line_start": 18, "line_end": 19}
]"""


def number_lines(code: str, first_line: int = 1) -> str:
    """Prefix every line of *code* with its file line number."""
    lines = code.splitlines()
    width = len(str(first_line + max(len(lines) - 1, 0)))
    return "\n".join(
        f"{first_line + i:>{width}}. {line}" for i, line in enumerate(lines)
    )


def build_messages(code: str, first_line: int = 1) -> list:
    """Few-shot conversation asking for extract-function suggestions."""
    return [
        {"role": "user", "content": number_lines(_EXAMPLE_CODE, 12)},
        {"role": "assistant", "content": _EXAMPLE_ANSWER},
        {"role": "user", "content": number_lines(code, first_line)},
    ]


# ---------------------------------------------------------------------------
# LLM-backed service
# ---------------------------------------------------------------------------


class LLMSuggestionService(SuggestionService):
    """Ask an LLM provider for suggestions, one chat request per call."""

    def __init__(self, config: EmAssistConfig, client: Optional[Any] = None) -> None:
        self._config = config
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            api_key = _llm_client.get_api_key(self._config.provider, "em-assist")
            self._client = _llm_client.make_client(
                self._config.provider,
                api_key,
                timeout=self._config.api_timeout,
                base_url=self._config.base_url,
            )
        return self._client

    def suggest(self, code: str, first_line: int = 1) -> List[str]:
        cfg = self._config
        logger.debug(
            "requesting suggestions from %s/%s for %d line(s) at line %d",
            cfg.provider,
            cfg.model,
            len(code.splitlines()),
            first_line,
        )
        return _llm_client.call_chat(
            self._get_client(),
            cfg.provider,
            cfg.model,
            cfg.max_tokens,
            build_messages(code, first_line),
            system=_SYSTEM_PROMPT,
            temperature=cfg.temperature,
            caller="em-assist",
        )

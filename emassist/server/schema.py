"""Wire schema shared by every transport: request parsing and reply payloads."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple

from ..errors import (
    Cancelled,
    ContextError,
    FileNotFound,
    InputError,
    InvalidLine,
    InvalidRequest,
    NoEnclosingFunction,
    OrchestratorError,
    SuggestionTimeout,
)
from ..models import Candidate
from ..orchestrator import OrchestrationResult

SERVER_NAME = "em-assist"
SERVER_VERSION = "0.1.0"

LIST_TOOL = "list_extract_function_candidates"
CACHED_TOOL = "get_cached_candidates"

TOOLS = [
    {
        "name": LIST_TOOL,
        "description": (
            "Lists code fragments that can be extracted into a new function "
            "in a given file."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "filePath": {
                    "type": "string",
                    "description": "Absolute path to the source file",
                },
                "line": {
                    "type": "integer",
                    "description": "line number on which the host method lies.",
                },
            },
            "required": ["filePath"],
        },
    },
    {
        "name": CACHED_TOOL,
        "description": (
            "Returns the candidates from the last completed request for a file, "
            "without asking for new suggestions."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "filePath": {
                    "type": "string",
                    "description": "Absolute path to the source file",
                },
            },
            "required": ["filePath"],
        },
    },
]


@dataclass(frozen=True)
class Reply:
    """A rendered response plus the error it carries, if any."""

    payload: Dict[str, Any]
    error: Optional[OrchestratorError] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def status(self) -> int:
        return http_status(self.error)


def parse_arguments(arguments: Any, require_line: bool = True) -> Tuple[str, int]:
    """Validate ``{filePath, line}``; line defaults to 1 when absent or null."""
    if not isinstance(arguments, dict):
        raise InvalidRequest("Request body must be a JSON object")
    file_path = arguments.get("filePath")
    if not isinstance(file_path, str) or not file_path.strip():
        raise InvalidRequest("filePath is required")
    if not require_line:
        return file_path, 1
    line = arguments.get("line")
    if line is None:
        return file_path, 1
    if isinstance(line, bool) or not isinstance(line, int):
        raise InvalidRequest(f"line must be an integer, got {line!r}")
    return file_path, line


def render_candidates(candidates: Iterable[Candidate]) -> Dict[str, Any]:
    return {"candidates": [c.to_dict() for c in candidates], "error": None}


def render_error(error: OrchestratorError) -> Reply:
    return Reply({"candidates": [], "error": error.message}, error)


def render_result(result: OrchestrationResult) -> Reply:
    if result.error is not None:
        return render_error(result.error)
    return Reply(render_candidates(result.candidates))


def http_status(error: Optional[OrchestratorError]) -> int:
    if error is None:
        return 200
    if isinstance(error, FileNotFound):
        return 404
    if isinstance(error, (NoEnclosingFunction, InvalidLine)):
        return 422
    if isinstance(error, InputError):
        return 400
    if isinstance(error, (ContextError, Cancelled)):
        return 503
    if isinstance(error, SuggestionTimeout):
        return 504
    return 500

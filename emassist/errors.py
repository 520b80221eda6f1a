"""em-assist exceptions.

Everything the orchestrator reports to a caller is an :class:`OrchestratorError`;
the subclass decides how the transports flag it.
"""

from __future__ import annotations


class EmAssistError(Exception):
    """Base class for all em-assist errors."""


class OutOfRange(EmAssistError):
    """Raised by the line/offset mapper for a line or offset outside the buffer."""


class MalformedSuggestion(EmAssistError):
    """Raised internally when a service response holds no decodable payload.

    Never escapes :func:`emassist.suggestion_parser.parse_suggestions`.
    """


class SuggestionServiceError(EmAssistError):
    """Raised when the suggestion service cannot be reached or errors out.

    The orchestrator turns this into a degraded success, not a failure.
    """


# ---------------------------------------------------------------------------
# Errors delivered to callers
# ---------------------------------------------------------------------------


class OrchestratorError(EmAssistError):
    """An error delivered as the result of a request."""

    code = "ERROR"

    @property
    def message(self) -> str:
        return str(self)


class InputError(OrchestratorError):
    """Bad or missing file, bad line.  Reported verbatim, never retried."""

    code = "INPUT_ERROR"


class InvalidRequest(InputError):
    code = "INVALID_REQUEST"


class FileNotFound(InputError):
    code = "FILE_NOT_FOUND"

    def __init__(self, file_path: str) -> None:
        super().__init__(f"File not found: {file_path}")
        self.file_path = file_path


class UnreadableFile(InputError):
    code = "UNREADABLE_FILE"


class InvalidLine(InputError):
    code = "INVALID_LINE"


class NoEnclosingFunction(InputError):
    code = "NO_ENCLOSING_FUNCTION"


class ContextError(OrchestratorError):
    """The host environment is not ready (no active workspace)."""

    code = "CONTEXT_ERROR"


class NoActiveContext(ContextError):
    code = "NO_ACTIVE_CONTEXT"

    def __init__(self, message: str = "No open workspace found") -> None:
        super().__init__(message)


class SuggestionTimeout(OrchestratorError):
    code = "TIMEOUT"

    def __init__(self, timeout: float) -> None:
        super().__init__(
            f"Timeout: suggestions took longer than {timeout:g}s or failed."
        )
        self.timeout = timeout


class InternalError(OrchestratorError):
    code = "INTERNAL_ERROR"


class Cancelled(OrchestratorError):
    code = "CANCELLED"

    def __init__(self, message: str = "Request cancelled: server stopping") -> None:
        super().__init__(message)

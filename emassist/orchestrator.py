"""Drive one (file, line) request from workspace lookup to cached candidates.

Each request walks a fixed sequence of states:

    STARTED -> LOCATING_CONTEXT -> LOCATING_FILE -> LOCATING_FUNCTION
            -> AWAITING_SUGGESTIONS -> PARSING -> RESOLVING -> COMPLETED

and may drop to FAILED from any of them (or CANCELLED when the server
stops).  The locating steps run on a worker-pool thread, which is handed
back as soon as the suggestion service is called.  The service runs on its
own daemon thread and carries the request through PARSING and RESOLVING
when it answers; a timer fails the request once the deadline passes.
Whichever of answer, deadline or cancellation comes first settles the
request; a late answer is thrown away.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from concurrent.futures import Future, InvalidStateError, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Deque, Dict, List, Optional, Set, Tuple

from .cache import CandidateCache, normalize_path
from .candidate_resolver import resolve_all
from .errors import (
    Cancelled,
    InternalError,
    InvalidLine,
    NoActiveContext,
    NoEnclosingFunction,
    OrchestratorError,
    OutOfRange,
    SuggestionTimeout,
)
from .line_offsets import LineOffsetMapper
from .models import Candidate, EnclosingFunction
from .stats import ServerStats
from .suggestion_parser import parse_suggestions
from .suggestion_service import SuggestionService
from .workspace.base import SourceDocument, WorkspaceRegistry

logger = logging.getLogger(__name__)

DEFAULT_SUGGESTION_TIMEOUT = 120.0

# Advisory attached to a completed request the service had nothing for.
NO_SUGGESTIONS = "NoSuggestions"


class OrchestrationState(Enum):
    STARTED = "started"
    LOCATING_CONTEXT = "locating_context"
    LOCATING_FILE = "locating_file"
    LOCATING_FUNCTION = "locating_function"
    AWAITING_SUGGESTIONS = "awaiting_suggestions"
    PARSING = "parsing"
    RESOLVING = "resolving"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class OrchestrationResult:
    """Terminal outcome of one request: candidates or an error, never both."""

    candidates: Tuple[Candidate, ...] = ()
    error: Optional[OrchestratorError] = None
    advisory: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class _Request:
    """Per-request state.  ``lock`` orders settlement against cancellation."""

    def __init__(self, file_path: str, line: int) -> None:
        self.file_path = file_path
        self.line = line
        self.future: "Future[OrchestrationResult]" = Future()
        self.state = OrchestrationState.STARTED
        self.history: List[OrchestrationState] = [OrchestrationState.STARTED]
        self.cancelled = threading.Event()
        self.lock = threading.Lock()
        # Set once the request holds no more resources (timer, path slot).
        self.settled = False
        self.timer: Optional[threading.Timer] = None
        self.path_key: Optional[str] = None

    def advance(self, state: OrchestrationState) -> None:
        if self.cancelled.is_set():
            raise Cancelled()
        logger.debug("%s:%d: %s", self.file_path, self.line, state.value)
        self.state = state
        self.history.append(state)

    def deliver(self, state: OrchestrationState, result: OrchestrationResult) -> bool:
        """Complete the future once; caller holds ``lock``."""
        if self.future.done():
            return False
        self.state = state
        self.history.append(state)
        try:
            self.future.set_result(result)
        except InvalidStateError:  # cancelled by the caller meanwhile
            return False
        return True


@dataclass
class _Located:
    enclosing: EnclosingFunction
    buffer: str
    code: str


class RequestOrchestrator:
    """Accept (file, line) requests and resolve them without blocking workers."""

    def __init__(
        self,
        workspaces: WorkspaceRegistry,
        service: SuggestionService,
        cache: Optional[CandidateCache] = None,
        suggestion_timeout: float = DEFAULT_SUGGESTION_TIMEOUT,
        max_workers: int = 8,
        serialize_per_path: bool = False,
        stats: Optional[ServerStats] = None,
    ) -> None:
        self._workspaces = workspaces
        self._service = service
        self.cache = cache if cache is not None else CandidateCache()
        self._timeout = suggestion_timeout
        self._serialize = serialize_per_path
        self.stats = stats if stats is not None else ServerStats()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="emassist-worker"
        )
        self._inflight: Set[_Request] = set()
        self._inflight_lock = threading.Lock()
        # path -> requests waiting for the one currently holding the path
        self._path_queues: Dict[str, Deque[_Request]] = {}
        self._closed = False

    # ------------------------------------------------------------------ #
    # Public API                                                          #
    # ------------------------------------------------------------------ #

    @property
    def closed(self) -> bool:
        return self._closed

    def handle(
        self, file_path: str, line: Optional[int] = 1
    ) -> "Future[OrchestrationResult]":
        """Start resolving *file_path* at *line*; return immediately.

        The returned future always resolves to an OrchestrationResult exactly
        once; errors are values, not exceptions.
        """
        request = _Request(file_path, 1 if line is None else line)
        request.future.add_done_callback(
            lambda f, r=request: self._on_caller_cancel(f, r)
        )
        with self._inflight_lock:
            closed = self._closed
            if not closed:
                self._inflight.add(request)
        if closed:
            self._cancel(request)
        elif self._claim_path(request):
            self._submit(request)
        return request.future

    def cancel_all(self) -> int:
        """Cancel every in-flight request; return how many were cancelled."""
        with self._inflight_lock:
            pending = list(self._inflight)
        return sum(1 for request in pending if self._cancel(request))

    def shutdown(self, wait: bool = False) -> None:
        """Refuse new requests, cancel in-flight ones, stop the worker pool."""
        with self._inflight_lock:
            self._closed = True
        cancelled = self.cancel_all()
        if cancelled:
            logger.info("cancelled %d in-flight request(s)", cancelled)
        self._executor.shutdown(wait=wait, cancel_futures=True)

    def inflight_count(self) -> int:
        with self._inflight_lock:
            return len(self._inflight)

    # ------------------------------------------------------------------ #
    # Worker: locate the function, then hand off to the service           #
    # ------------------------------------------------------------------ #

    def _submit(self, request: _Request) -> None:
        try:
            self._executor.submit(self._run, request)
        except RuntimeError:  # pool already shut down
            self._cancel(request)

    def _run(self, request: _Request) -> None:
        try:
            located = self._locate(request)
            request.advance(OrchestrationState.AWAITING_SUGGESTIONS)
        except OrchestratorError as exc:
            self._settle(request, OrchestrationResult(error=exc))
            return
        except Exception as exc:
            logger.exception(
                "internal error on %s:%d", request.file_path, request.line
            )
            self._settle(
                request,
                OrchestrationResult(
                    error=InternalError(f"Error processing suggestions: {exc}")
                ),
            )
            return
        self._call_service(request, located)

    def _locate(self, request: _Request) -> _Located:
        request.advance(OrchestrationState.LOCATING_CONTEXT)
        workspace = self._workspaces.active()
        if workspace is None:
            raise NoActiveContext()

        request.advance(OrchestrationState.LOCATING_FILE)
        document = workspace.find_document(request.file_path)

        request.advance(OrchestrationState.LOCATING_FUNCTION)
        with workspace.lock_for_read():
            buffer = document.text
            enclosing = self._locate_function(request, document, buffer)
            code = document.text_range(enclosing.start_offset, enclosing.end_offset)
        return _Located(enclosing, buffer, code)

    @staticmethod
    def _locate_function(
        request: _Request, document: SourceDocument, buffer: str
    ) -> EnclosingFunction:
        mapper = LineOffsetMapper(buffer)
        try:
            offset = mapper.offset_of_line_start(request.line)
        except OutOfRange as exc:
            raise InvalidLine(
                f"Line {request.line} is outside {request.file_path}"
                f" ({mapper.line_count} lines)"
            ) from exc
        enclosing = document.enclosing_function_at(offset)
        if enclosing is None:
            raise NoEnclosingFunction(
                f"No function found at {request.file_path}:{request.line}"
            )
        return enclosing

    # ------------------------------------------------------------------ #
    # Service call, deadline and resolution                               #
    # ------------------------------------------------------------------ #

    def _call_service(self, request: _Request, located: _Located) -> None:
        timer = threading.Timer(self._timeout, self._on_deadline, args=(request,))
        timer.daemon = True
        with request.lock:
            if request.settled:
                return
            request.timer = timer
        timer.start()
        self.stats.increment("service_calls")
        threading.Thread(
            target=self._await_answer,
            args=(request, located),
            daemon=True,
            name="emassist-suggest",
        ).start()

    def _await_answer(self, request: _Request, located: _Located) -> None:
        """Service thread: call the service, then parse and resolve its answer.

        Any service failure is logged and reported as no suggestions.
        """
        try:
            responses = self._service.suggest(
                located.code, located.enclosing.start_line
            )
        except Exception as exc:
            logger.warning(
                "%s:%d: suggestion service failed: %s",
                request.file_path,
                request.line,
                exc,
            )
            responses = []
        if request.settled:
            return  # deadline or cancellation got there first
        try:
            result = self._resolve(request, responses or [], located)
        except OrchestratorError as exc:
            result = OrchestrationResult(error=exc)
        except Exception as exc:
            logger.exception("failed to resolve suggestions for %s", request.file_path)
            result = OrchestrationResult(
                error=InternalError(f"Error processing suggestions: {exc}")
            )
        self._settle(request, result)

    def _resolve(
        self, request: _Request, responses: List[str], located: _Located
    ) -> OrchestrationResult:
        texts = [text for text in responses if text]
        if not texts:
            return OrchestrationResult(advisory=NO_SUGGESTIONS)
        request.advance(OrchestrationState.PARSING)
        raws = parse_suggestions(texts[0])
        if not raws:
            return OrchestrationResult(advisory=NO_SUGGESTIONS)
        request.advance(OrchestrationState.RESOLVING)
        candidates = resolve_all(raws, located.enclosing, located.buffer)
        return OrchestrationResult(candidates=tuple(candidates))

    def _on_deadline(self, request: _Request) -> None:
        logger.warning(
            "%s:%d: suggestion service exceeded %gs deadline",
            request.file_path,
            request.line,
            self._timeout,
        )
        self._settle(request, OrchestrationResult(error=SuggestionTimeout(self._timeout)))

    # ------------------------------------------------------------------ #
    # Per-path serialization                                              #
    # ------------------------------------------------------------------ #

    def _claim_path(self, request: _Request) -> bool:
        """Return True if *request* may start now; otherwise queue it."""
        if not self._serialize:
            return True
        key = normalize_path(request.file_path)
        with self._inflight_lock:
            waiting = self._path_queues.get(key)
            if waiting is not None:
                waiting.append(request)
                return False
            self._path_queues[key] = deque()
        with request.lock:
            request.path_key = key
        return True

    def _release_path(self, request: _Request) -> None:
        with request.lock:
            key, request.path_key = request.path_key, None
        if key is None:
            return
        with self._inflight_lock:
            waiting = self._path_queues[key]
            following = waiting.popleft() if waiting else None
            if following is None:
                del self._path_queues[key]
        if following is not None:
            with following.lock:
                following.path_key = key
            self._submit(following)

    # ------------------------------------------------------------------ #
    # Settlement                                                          #
    # ------------------------------------------------------------------ #

    def _settle(self, request: _Request, result: OrchestrationResult) -> None:
        """Deliver *result* unless the request is already settled."""
        delivered = False
        with request.lock:
            if request.settled:
                timer = None
            else:
                request.settled = True
                timer = request.timer
                if not request.cancelled.is_set() and not request.future.done():
                    if not result.ok:
                        delivered = request.deliver(OrchestrationState.FAILED, result)
                    elif request.future.set_running_or_notify_cancel():
                        # a running future can no longer be cancelled
                        self.cache.put(request.file_path, result.candidates)
                        delivered = request.deliver(OrchestrationState.COMPLETED, result)
        if timer is not None:
            timer.cancel()
        self._release(request)
        if not delivered:
            return
        if result.ok:
            self.stats.increment("completed")
            if result.advisory:
                self.stats.increment("degraded")
            self.stats.record_candidates(result.candidates)
        elif isinstance(result.error, SuggestionTimeout):
            self.stats.increment("timeouts")
        elif isinstance(result.error, Cancelled):
            self.stats.increment("cancelled")
        else:
            self.stats.increment("failed")
            logger.info(
                "%s:%d: %s", request.file_path, request.line, result.error
            )

    def _release(self, request: _Request) -> None:
        with self._inflight_lock:
            self._inflight.discard(request)
        self._release_path(request)

    def _cancel(self, request: _Request) -> bool:
        with request.lock:
            request.cancelled.set()
            delivered = request.deliver(
                OrchestrationState.CANCELLED, OrchestrationResult(error=Cancelled())
            )
            request.settled = True
            timer, request.timer = request.timer, None
        if timer is not None:
            timer.cancel()
        self._release(request)
        if delivered:
            self.stats.increment("cancelled")
        return delivered

    def _on_caller_cancel(self, future: Future, request: _Request) -> None:
        if future.cancelled():
            self._cancel(request)

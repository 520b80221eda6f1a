"""The refactoring server: one lifecycle object shared by all transports."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future
from enum import Enum
from typing import Any, List, Optional

from ..errors import Cancelled, InvalidRequest
from ..orchestrator import OrchestrationResult, RequestOrchestrator
from .schema import Reply, parse_arguments, render_candidates, render_error, render_result

logger = logging.getLogger(__name__)


class ServerState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class Transport(ABC):
    """A way for callers to reach the server (stdio stream, HTTP port, ...)."""

    name = "transport"

    @abstractmethod
    def start(self) -> None: ...

    @abstractmethod
    def stop(self) -> None: ...


def _done_future(reply: Reply) -> "Future[Reply]":
    future: "Future[Reply]" = Future()
    future.set_result(reply)
    return future


class RefactoringServer:
    """Owns the orchestrator and its transports.

    ``start()`` and ``stop()`` are idempotent; the state field is only
    changed under ``_lock``.  Stopping cancels every in-flight request
    before the transports go down, so waiting callers get a reply.
    """

    def __init__(
        self,
        orchestrator: RequestOrchestrator,
        transports: Optional[List[Transport]] = None,
    ) -> None:
        self.orchestrator = orchestrator
        self._transports: List[Transport] = list(transports or [])
        self._lock = threading.Lock()
        self._state = ServerState.STOPPED
        self._shutdown_requested = threading.Event()

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == ServerState.RUNNING

    def attach(self, transport: Transport) -> None:
        with self._lock:
            self._transports.append(transport)

    def start(self) -> bool:
        """Start every transport; return False if already running.

        Raises RuntimeError once the server has been stopped.
        """
        with self._lock:
            if self._state == ServerState.RUNNING:
                logger.info("Refactoring server is already running.")
                return False
            if self.orchestrator.closed:
                # stop() shut the orchestrator down; build a new server instead
                raise RuntimeError("Refactoring server cannot be restarted after stop")
            logger.info("Starting refactoring server...")
            # a transport may request shutdown as soon as it starts
            self._shutdown_requested.clear()
            started: List[Transport] = []
            try:
                for transport in self._transports:
                    transport.start()
                    started.append(transport)
            except Exception:
                logger.exception("Failed to start %s transport", transport.name)
                for t in reversed(started):
                    t.stop()
                raise
            self._state = ServerState.RUNNING
            return True

    def stop(self) -> bool:
        """Cancel in-flight work and stop the transports; False if not running."""
        with self._lock:
            if self._state == ServerState.STOPPED:
                return False
            logger.info("Stopping refactoring server...")
            self.orchestrator.shutdown(wait=False)
            for transport in reversed(self._transports):
                try:
                    transport.stop()
                except Exception:
                    logger.exception("Failed to stop %s transport", transport.name)
            self._state = ServerState.STOPPED
            self._shutdown_requested.set()
            return True

    def request_shutdown(self) -> None:
        """Ask :meth:`serve_forever` to return (callable from any thread)."""
        self._shutdown_requested.set()

    def serve_forever(self) -> None:
        """Start, block until shutdown is requested or interrupted, then stop."""
        self.start()
        try:
            self._shutdown_requested.wait()
        except KeyboardInterrupt:
            logger.info("Interrupted")
        finally:
            self.stop()

    # ------------------------------------------------------------------ #
    # Operations                                                          #
    # ------------------------------------------------------------------ #

    def list_candidates(self, arguments: Any) -> "Future[Reply]":
        """Resolve ``{filePath, line}``; the future yields the rendered reply."""
        try:
            file_path, line = parse_arguments(arguments)
        except InvalidRequest as exc:
            return _done_future(render_error(exc))

        reply_future: "Future[Reply]" = Future()

        def _done(f: "Future[OrchestrationResult]") -> None:
            if f.cancelled():
                reply_future.set_result(render_error(Cancelled()))
            else:
                reply_future.set_result(render_result(f.result()))

        self.orchestrator.handle(file_path, line).add_done_callback(_done)
        return reply_future

    def cached_candidates(self, arguments: Any) -> Reply:
        try:
            file_path, _ = parse_arguments(arguments, require_line=False)
        except InvalidRequest as exc:
            return render_error(exc)
        return Reply(render_candidates(self.orchestrator.cache.get(file_path)))

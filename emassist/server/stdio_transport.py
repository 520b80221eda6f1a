"""Duplex stdio transport: newline-delimited JSON-RPC 2.0, tool-call style.

Tool calls are answered when their orchestration completes, so responses
may arrive out of request order; callers match them by ``id``.  The reader
never waits on a pending request.
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from typing import Any, Dict, Optional, TextIO

from .lifecycle import RefactoringServer, Transport
from .schema import (
    CACHED_TOOL,
    LIST_TOOL,
    SERVER_NAME,
    SERVER_VERSION,
    TOOLS,
    Reply,
)

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602


def _error(req_id: Any, code: int, message: str) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": req_id, "error": {"code": code, "message": message}}


def _result(req_id: Any, result: Dict[str, Any]) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": req_id, "result": result}


def tool_result(reply: Reply) -> Dict[str, Any]:
    return {
        "content": [{"type": "text", "text": json.dumps(reply.payload)}],
        "structuredContent": reply.payload,
        "isError": reply.is_error,
    }


class StdioTransport(Transport):
    """Read requests from *in_stream*, write responses to *out_stream*."""

    name = "stdio"

    def __init__(
        self,
        server: RefactoringServer,
        in_stream: Optional[TextIO] = None,
        out_stream: Optional[TextIO] = None,
    ) -> None:
        self._server = server
        self._in = in_stream if in_stream is not None else sys.stdin
        self._out = out_stream if out_stream is not None else sys.stdout
        self._write_lock = threading.Lock()
        self._stopping = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._stopping.clear()
        self._thread = threading.Thread(
            target=self.serve, name="emassist-stdio", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        # A blocked readline cannot be interrupted; the daemon reader dies
        # with the process.
        self._stopping.set()

    def serve(self) -> None:
        """Process lines until EOF, a ``shutdown`` request or :meth:`stop`."""
        for raw_line in self._in:
            if self._stopping.is_set():
                break
            line = raw_line.strip()
            if not line:
                continue
            response = self.handle_line(line)
            if response is not None:
                self._write(response)
            if self._stopping.is_set():
                break
        logger.info("stdio transport closed")
        self._server.request_shutdown()

    def _write(self, message: Dict[str, Any]) -> None:
        data = json.dumps(message, separators=(",", ":"))
        with self._write_lock:
            self._out.write(data + "\n")
            self._out.flush()

    def handle_line(self, line: str) -> Optional[Dict[str, Any]]:
        """Handle one request line; None when the reply comes later (or never)."""
        try:
            message = json.loads(line)
        except json.JSONDecodeError as e:
            logger.warning("malformed JSON: %s", e)
            return _error(None, PARSE_ERROR, f"parse error: {e}")
        if not isinstance(message, dict):
            return _error(None, INVALID_REQUEST, "request must be an object")

        req_id = message.get("id")
        method = message.get("method")
        params = message.get("params") or {}
        if not isinstance(method, str) or not method:
            return _error(req_id, INVALID_REQUEST, "missing method")
        logger.debug("request: method=%s id=%s", method, req_id)

        if req_id is None:
            # Notifications get no response.
            if method == "exit":
                self._stopping.set()
            return None
        if method == "initialize":
            return _result(
                req_id,
                {
                    "protocolVersion": PROTOCOL_VERSION,
                    "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
                    "capabilities": {"tools": {"listChanged": True}},
                },
            )
        if method == "ping":
            return _result(req_id, {})
        if method == "tools/list":
            return _result(req_id, {"tools": TOOLS})
        if method == "shutdown":
            self._stopping.set()
            return _result(req_id, {})
        if method == "tools/call":
            return self._call_tool(req_id, params)
        return _error(req_id, METHOD_NOT_FOUND, f"unknown method: {method}")

    def _call_tool(self, req_id: Any, params: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(params, dict):
            return _error(req_id, INVALID_PARAMS, "params must be an object")
        name = params.get("name")
        arguments = params.get("arguments") or {}
        if name == CACHED_TOOL:
            return _result(req_id, tool_result(self._server.cached_candidates(arguments)))
        if name != LIST_TOOL:
            return _error(req_id, INVALID_PARAMS, f"unknown tool: {name!r}")

        def _done(future) -> None:
            self._write(_result(req_id, tool_result(future.result())))

        self._server.list_candidates(arguments).add_done_callback(_done)
        return None

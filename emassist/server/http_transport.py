"""One-shot HTTP transport: Flask app on a threaded werkzeug server."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from flask import Flask, jsonify, request
from werkzeug.serving import BaseWSGIServer, make_server

from .lifecycle import RefactoringServer, Transport
from .schema import CACHED_TOOL, LIST_TOOL, SERVER_NAME, SERVER_VERSION

logger = logging.getLogger(__name__)


def create_app(server: RefactoringServer) -> Flask:
    app = Flask("emassist")

    # ---------- API ----------
    @app.post(f"/{LIST_TOOL}")
    def list_extract_function_candidates():
        arguments = request.get_json(silent=True)
        reply = server.list_candidates(arguments).result()
        return jsonify(reply.payload), reply.status

    @app.post(f"/{CACHED_TOOL}")
    def get_cached_candidates():
        reply = server.cached_candidates(request.get_json(silent=True))
        return jsonify(reply.payload), reply.status

    @app.get("/health")
    def health():
        return jsonify(
            {
                "name": SERVER_NAME,
                "version": SERVER_VERSION,
                "running": server.is_running,
                "inflight": server.orchestrator.inflight_count(),
            }
        )

    return app


class HttpTransport(Transport):
    """Serve the Flask app on *host*:*port*, one thread per request."""

    name = "http"

    def __init__(self, server: RefactoringServer, host: str = "127.0.0.1", port: int = 8001):
        self.host = host
        self.port = port
        self.app = create_app(server)
        self._httpd: Optional[BaseWSGIServer] = None
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._httpd = make_server(self.host, self.port, self.app, threaded=True)
        # port 0 picks a free one
        self.port = self._httpd.server_port
        self._thread = threading.Thread(
            target=self._httpd.serve_forever, name="emassist-http", daemon=True
        )
        self._thread.start()
        logger.info("HTTP transport listening on http://%s:%d", self.host, self.port)

    def stop(self) -> None:
        if self._httpd is None:
            return
        self._httpd.shutdown()
        self._httpd.server_close()
        if self._thread is not None:
            self._thread.join(timeout=5)
        self._httpd = None
        self._thread = None

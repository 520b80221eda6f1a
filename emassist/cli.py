"""CLI entry point: builds the server from config and serves until shut down."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import EmAssistConfig, load_config
from .orchestrator import RequestOrchestrator
from .server.http_transport import HttpTransport
from .server.lifecycle import RefactoringServer
from .server.stdio_transport import StdioTransport
from .suggestion_service import LLMSuggestionService, SuggestionService
from .workspace.base import WorkspaceRegistry
from .workspace.python_source import LocalWorkspace


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="em-assist",
        description="Serve extract-function candidates for Python source files.",
    )
    parser.add_argument("--transport", choices=("stdio", "http"), default=None)
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--workspace-root", default=None)
    parser.add_argument("--suggestion-timeout", type=float, default=None)
    parser.add_argument("--provider", default=None)
    parser.add_argument("--model", default=None)
    parser.add_argument("--log-level", default=None)
    return parser


def _apply_overrides(config: EmAssistConfig, args: argparse.Namespace) -> None:
    for key in (
        "transport",
        "host",
        "port",
        "workspace_root",
        "suggestion_timeout",
        "provider",
        "model",
        "log_level",
    ):
        value = getattr(args, key)
        if value is not None:
            setattr(config, key, value)


def build_server(
    config: EmAssistConfig,
    service: Optional[SuggestionService] = None,
    registry: Optional[WorkspaceRegistry] = None,
) -> RefactoringServer:
    """Wire workspace, service, orchestrator and the configured transport."""
    if registry is None:
        registry = WorkspaceRegistry()
        root = config.workspace_root or str(Path.cwd())
        registry.open(LocalWorkspace(root))
    if service is None:
        service = LLMSuggestionService(config)
    orchestrator = RequestOrchestrator(
        registry,
        service,
        suggestion_timeout=config.suggestion_timeout,
        max_workers=config.max_workers,
        serialize_per_path=config.serialize_per_path,
    )
    server = RefactoringServer(orchestrator)
    if config.transport == "http":
        server.attach(HttpTransport(server, host=config.host, port=config.port))
    else:
        server.attach(StdioTransport(server))
    return server


def main(argv: Optional[List[str]] = None) -> None:
    args = build_arg_parser().parse_args(argv)
    config = load_config()
    _apply_overrides(config, args)
    # stdout belongs to the stdio transport
    logging.basicConfig(
        level=config.log_level.upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if config.transport not in ("stdio", "http"):
        print(f"em-assist: unknown transport {config.transport!r}", file=sys.stderr)
        sys.exit(2)

    server = build_server(config)
    try:
        server.serve_forever()
    except OSError as exc:
        print(f"em-assist: {exc}", file=sys.stderr)
        sys.exit(1)
    for line in server.orchestrator.stats.format_summary():
        print(line, file=sys.stderr)

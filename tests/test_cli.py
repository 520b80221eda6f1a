"""Tests for the CLI entry point."""

from unittest.mock import MagicMock, patch

import pytest

from fakes import FakeService

from emassist.cli import _apply_overrides, build_arg_parser, build_server, main
from emassist.config import EmAssistConfig
from emassist.server.http_transport import HttpTransport
from emassist.server.stdio_transport import StdioTransport
from emassist.suggestion_service import LLMSuggestionService


def test_overrides_only_given_flags():
    cfg = EmAssistConfig(model="from-config")
    args = build_arg_parser().parse_args(["--transport", "http", "--port", "9001"])
    _apply_overrides(cfg, args)
    assert cfg.transport == "http"
    assert cfg.port == 9001
    assert cfg.model == "from-config"


def test_unknown_transport_flag_rejected():
    with pytest.raises(SystemExit) as exc_info:
        build_arg_parser().parse_args(["--transport", "carrier-pigeon"])
    assert exc_info.value.code == 2


def test_build_server_stdio(tmp_path):
    cfg = EmAssistConfig(workspace_root=str(tmp_path))
    server = build_server(cfg, service=FakeService())
    try:
        assert [type(t) for t in server._transports] == [StdioTransport]
        assert server.orchestrator._workspaces.active().root == tmp_path.resolve()
    finally:
        server.orchestrator.shutdown()


def test_build_server_http_uses_llm_service(tmp_path):
    cfg = EmAssistConfig(transport="http", port=0, workspace_root=str(tmp_path))
    server = build_server(cfg)
    try:
        (transport,) = server._transports
        assert isinstance(transport, HttpTransport)
        assert isinstance(server.orchestrator._service, LLMSuggestionService)
    finally:
        server.orchestrator.shutdown()


def test_main_prints_summary(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    fake_server = MagicMock()
    fake_server.orchestrator.stats.format_summary.return_value = ["--- em-assist summary ---"]
    with patch("emassist.cli.build_server", return_value=fake_server) as build:
        main(["--transport", "http", "--port", "0", "--log-level", "warning"])
    cfg = build.call_args[0][0]
    assert cfg.transport == "http"
    assert cfg.port == 0
    fake_server.serve_forever.assert_called_once()
    assert "--- em-assist summary ---" in capsys.readouterr().err


def test_main_reports_bind_failure(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    fake_server = MagicMock()
    fake_server.serve_forever.side_effect = OSError("Address already in use")
    with patch("emassist.cli.build_server", return_value=fake_server):
        with pytest.raises(SystemExit) as exc_info:
            main(["--transport", "http"])
    assert exc_info.value.code == 1
    assert "Address already in use" in capsys.readouterr().err


def test_main_rejects_unknown_configured_transport(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".emassist.toml").write_text("transport = 'smoke'\n", encoding="utf-8")
    with pytest.raises(SystemExit) as exc_info:
        main([])
    assert exc_info.value.code == 2
    assert "unknown transport" in capsys.readouterr().err

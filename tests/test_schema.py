"""Tests for emassist.server.schema."""

import pytest

from emassist.errors import (
    Cancelled,
    FileNotFound,
    InternalError,
    InvalidLine,
    InvalidRequest,
    NoActiveContext,
    NoEnclosingFunction,
    SuggestionTimeout,
    UnreadableFile,
)
from emassist.models import Candidate, CandidateKind
from emassist.orchestrator import NO_SUGGESTIONS, OrchestrationResult
from emassist.server.schema import (
    LIST_TOOL,
    TOOLS,
    http_status,
    parse_arguments,
    render_result,
)


# ---------------------------------------------------------------------------
# parse_arguments
# ---------------------------------------------------------------------------


def test_parse_arguments_full():
    assert parse_arguments({"filePath": "/a.py", "line": 7}) == ("/a.py", 7)


def test_parse_arguments_line_defaults_to_one():
    assert parse_arguments({"filePath": "/a.py"}) == ("/a.py", 1)
    assert parse_arguments({"filePath": "/a.py", "line": None}) == ("/a.py", 1)


@pytest.mark.parametrize("line", ["12", " 12 ", "-1"])
def test_parse_arguments_rejects_string_line(line):
    with pytest.raises(InvalidRequest, match="line must be an integer"):
        parse_arguments({"filePath": "/a.py", "line": line})


def test_parse_arguments_negative_line_passes_through():
    # range checking belongs to the orchestrator
    assert parse_arguments({"filePath": "/a.py", "line": -2}) == ("/a.py", -2)


@pytest.mark.parametrize(
    "arguments",
    [
        None,
        [],
        "path",
        {},
        {"filePath": ""},
        {"filePath": "   "},
        {"filePath": 3},
        {"filePath": "/a.py", "line": "twelve"},
        {"filePath": "/a.py", "line": 1.5},
        {"filePath": "/a.py", "line": True},
    ],
)
def test_parse_arguments_rejects(arguments):
    with pytest.raises(InvalidRequest):
        parse_arguments(arguments)


def test_parse_arguments_without_line_ignores_it():
    assert parse_arguments({"filePath": "/a.py", "line": "x"}, require_line=False) == (
        "/a.py",
        1,
    )


# ---------------------------------------------------------------------------
# render_result
# ---------------------------------------------------------------------------


def test_render_success():
    c = Candidate("bar", 5, 9, 2, 3, CandidateKind.AS_IS)
    reply = render_result(OrchestrationResult(candidates=(c,)))
    assert not reply.is_error
    assert reply.status == 200
    assert reply.payload == {"candidates": [c.to_dict()], "error": None}


def test_render_degraded_success():
    reply = render_result(OrchestrationResult(advisory=NO_SUGGESTIONS))
    assert reply.payload == {"candidates": [], "error": None}
    assert reply.status == 200


def test_render_error():
    reply = render_result(OrchestrationResult(error=FileNotFound("/x.py")))
    assert reply.is_error
    assert reply.payload == {"candidates": [], "error": "File not found: /x.py"}
    assert reply.status == 404


# ---------------------------------------------------------------------------
# http_status
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "error,status",
    [
        (None, 200),
        (FileNotFound("/x.py"), 404),
        (NoEnclosingFunction("no function"), 422),
        (InvalidLine("bad line"), 422),
        (InvalidRequest("bad"), 400),
        (UnreadableFile("unreadable"), 400),
        (NoActiveContext(), 503),
        (Cancelled(), 503),
        (SuggestionTimeout(120), 504),
        (InternalError("boom"), 500),
    ],
)
def test_http_status(error, status):
    assert http_status(error) == status


def test_tools_advertise_list_tool():
    (tool,) = [t for t in TOOLS if t["name"] == LIST_TOOL]
    assert tool["inputSchema"]["required"] == ["filePath"]
    assert set(tool["inputSchema"]["properties"]) == {"filePath", "line"}

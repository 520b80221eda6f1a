"""Tests for emassist.llm_client."""

from unittest.mock import MagicMock, patch

import pytest

from emassist.errors import SuggestionServiceError
from emassist.llm_client import _token_param, call_chat, get_api_key, make_client


# ---------------------------------------------------------------------------
# get_api_key
# ---------------------------------------------------------------------------


def test_get_api_key_anthropic_present(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "ant-key")
    assert get_api_key("anthropic") == "ant-key"


def test_get_api_key_anthropic_missing(monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    with pytest.raises(SuggestionServiceError, match="ANTHROPIC_API_KEY"):
        get_api_key("anthropic", caller="Test")


def test_get_api_key_deepseek_missing(monkeypatch):
    monkeypatch.delenv("DEEPSEEK_API_KEY", raising=False)
    with pytest.raises(SuggestionServiceError, match="DEEPSEEK_API_KEY"):
        get_api_key("deepseek")


def test_get_api_key_openai_present(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "oai-key")
    assert get_api_key("openai") == "oai-key"


def test_get_api_key_unknown_provider_falls_back_to_anthropic(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "ant-key")
    assert get_api_key("mystery") == "ant-key"


def test_get_api_key_lmstudio_no_key_needed():
    assert get_api_key("lmstudio") == "lm-studio"


# ---------------------------------------------------------------------------
# _token_param
# ---------------------------------------------------------------------------


def test_token_param_modern_models():
    for model in ("gpt-5", "o1-mini", "o3", "o4-mini", "gpt-4.1", "gpt-4o-mini"):
        assert _token_param(model) == "max_completion_tokens", model


def test_token_param_legacy_models():
    for model in ("gpt-3.5-turbo", "gpt-4", "moonshot-v1-32k", "deepseek-chat"):
        assert _token_param(model) == "max_tokens", model


# ---------------------------------------------------------------------------
# make_client
# ---------------------------------------------------------------------------


def test_make_client_anthropic():
    with patch("emassist.llm_client.anthropic") as mock_ant:
        client = make_client("anthropic", "key", timeout=30.0)
        mock_ant.Anthropic.assert_called_once_with(api_key="key", timeout=30.0)
        assert client is mock_ant.Anthropic.return_value


def test_make_client_moonshot_default_url():
    with patch("emassist.llm_client.openai") as mock_oai:
        make_client("moonshot", "key", timeout=30.0)
        call_kwargs = mock_oai.OpenAI.call_args[1]
        assert call_kwargs["api_key"] == "key"
        assert "moonshot" in call_kwargs["base_url"]


def test_make_client_base_url_override():
    with patch("emassist.llm_client.openai") as mock_oai:
        make_client("openai", "key", base_url="http://proxy/v1")
        assert mock_oai.OpenAI.call_args[1]["base_url"] == "http://proxy/v1"


# ---------------------------------------------------------------------------
# call_chat: Anthropic
# ---------------------------------------------------------------------------

_MESSAGES = [{"role": "user", "content": "1. def f():"}]


def _text_block(text, kind="text"):
    block = MagicMock()
    block.type = kind
    block.text = text
    return block


def test_call_chat_anthropic_joins_text_blocks():
    client = MagicMock()
    resp = MagicMock()
    resp.content = [_text_block("[{"), _text_block("", kind="thinking"), _text_block("}]")]
    client.messages.create.return_value = resp

    result = call_chat(client, "anthropic", "claude-sonnet-4-6", 512, _MESSAGES, system="be brief")

    assert result == ["[{}]"]
    kwargs = client.messages.create.call_args[1]
    assert kwargs["system"] == "be brief"
    assert kwargs["max_tokens"] == 512
    assert kwargs["messages"] == _MESSAGES


def test_call_chat_anthropic_blank_answer():
    client = MagicMock()
    resp = MagicMock()
    resp.content = [_text_block("  \n")]
    client.messages.create.return_value = resp
    assert call_chat(client, "anthropic", "m", 10, _MESSAGES) == []
    assert "system" not in client.messages.create.call_args[1]


def test_call_chat_anthropic_api_error():
    with patch("emassist.llm_client.anthropic") as mock_ant:
        mock_ant.APIError = Exception
        client = MagicMock()
        client.messages.create.side_effect = Exception("overloaded")
        with pytest.raises(SuggestionServiceError, match="Anthropic API error"):
            call_chat(client, "anthropic", "m", 10, _MESSAGES)


# ---------------------------------------------------------------------------
# call_chat: OpenAI-compatible
# ---------------------------------------------------------------------------


def _openai_response(*contents):
    choices = []
    for content in contents:
        choice = MagicMock()
        choice.message.content = content
        choices.append(choice)
    resp = MagicMock()
    resp.choices = choices
    return resp


def test_call_chat_openai_prepends_system_message():
    client = MagicMock()
    client.chat.completions.create.return_value = _openai_response("[]", None, "  ")

    result = call_chat(client, "openai", "gpt-4o", 256, _MESSAGES, system="sys")

    assert result == ["[]"]
    kwargs = client.chat.completions.create.call_args[1]
    assert kwargs["messages"][0] == {"role": "system", "content": "sys"}
    assert kwargs["messages"][1:] == _MESSAGES
    assert kwargs["max_completion_tokens"] == 256
    assert "extra_body" not in kwargs


def test_call_chat_moonshot_disables_thinking():
    client = MagicMock()
    client.chat.completions.create.return_value = _openai_response("[]")

    call_chat(client, "moonshot", "kimi-k2", 256, _MESSAGES)

    kwargs = client.chat.completions.create.call_args[1]
    assert kwargs["max_tokens"] == 256
    assert kwargs["extra_body"] == {"thinking": {"type": "disabled"}}


def test_call_chat_openai_api_error():
    with patch("emassist.llm_client.openai") as mock_oai:
        mock_oai.APIError = Exception
        client = MagicMock()
        client.chat.completions.create.side_effect = Exception("rate limited")
        with pytest.raises(SuggestionServiceError, match="deepseek API error"):
            call_chat(client, "deepseek", "deepseek-chat", 10, _MESSAGES)

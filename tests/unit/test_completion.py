"""
tests/unit/test_completion.py

Tests for the completion layer — all LLM calls are mocked.
No network, no API keys required.
"""
import pytest
from unittest.mock import MagicMock, patch

import resumefit.llm.completion as comp
from resumefit.errors import CompletionError
from resumefit.llm.completion import (
    CompletionOptions,
    FailoverCompletionService,
    LLMCompletionService,
    parse_json_response,
)


# ------------------------------------------------------------------
# JSON replies
# ------------------------------------------------------------------

def test_parse_json_strips_code_fences():
    assert parse_json_response('```json\n{"elements": []}\n```') == {"elements": []}


def test_parse_json_falls_back_to_outermost_object():
    text = 'Here is the result:\n{"matches": [{"jobIndex": 0}]}\nLet me know!'
    assert parse_json_response(text) == {"matches": [{"jobIndex": 0}]}


@pytest.mark.parametrize("text", ["", "   ", "no json here", "{broken"])
def test_parse_json_raises_on_unusable_reply(text):
    with pytest.raises(CompletionError):
        parse_json_response(text)


# ------------------------------------------------------------------
# Provider calls
# ------------------------------------------------------------------

def test_empty_api_key_rejected():
    with pytest.raises(CompletionError):
        LLMCompletionService(api_key="")


def test_unsupported_provider_rejected():
    with pytest.raises(CompletionError, match="Unsupported provider"):
        LLMCompletionService(api_key="sk-fake", provider="cohere")


def test_anthropic_completion_returns_text():
    mock_block = MagicMock()
    mock_block.type = "text"
    mock_block.text = '  {"elements": []}  '

    mock_message = MagicMock()
    mock_message.content = [mock_block]

    mock_client = MagicMock()
    mock_client.messages.create.return_value = mock_message

    with patch("resumefit.llm.completion.anthropic") as mock_anthropic:
        mock_anthropic.Anthropic.return_value = mock_client
        mock_anthropic.APITimeoutError = Exception
        mock_anthropic.APIError = Exception

        service = LLMCompletionService(api_key="sk-fake", provider="anthropic")
        result = service.complete("prompt", CompletionOptions(system="be terse", max_tokens=100))

    assert result == '{"elements": []}'
    kwargs = mock_client.messages.create.call_args.kwargs
    assert kwargs["system"] == "be terse"
    assert kwargs["max_tokens"] == 100
    assert kwargs["model"] == "claude-sonnet-4-6"


def test_anthropic_timeout_raises_completion_error():
    class FakeTimeoutError(Exception):
        pass

    mock_client = MagicMock()
    mock_client.messages.create.side_effect = FakeTimeoutError("timeout")

    with patch("resumefit.llm.completion.anthropic") as mock_anthropic:
        mock_anthropic.Anthropic.return_value = mock_client
        mock_anthropic.APITimeoutError = FakeTimeoutError
        mock_anthropic.APIError = Exception

        service = LLMCompletionService(api_key="sk-fake", provider="anthropic")
        with pytest.raises(CompletionError, match="timed out"):
            service.complete("prompt")


def test_unexpected_errors_never_leak_the_key():
    class FakeAPIError(Exception):
        pass

    mock_client = MagicMock()
    mock_client.messages.create.side_effect = RuntimeError("bad auth for sk-secret-123")

    with patch("resumefit.llm.completion.anthropic") as mock_anthropic:
        mock_anthropic.Anthropic.return_value = mock_client
        mock_anthropic.APITimeoutError = FakeAPIError
        mock_anthropic.APIError = FakeAPIError

        service = LLMCompletionService(api_key="sk-secret-123", provider="anthropic")
        with pytest.raises(CompletionError) as e:
            service.complete("prompt")

    assert "sk-secret-123" not in str(e.value)
    assert "RuntimeError" in str(e.value)


def test_openai_completion_sends_system_message():
    mock_choice = MagicMock()
    mock_choice.message.content = '{"themes": []}'

    mock_response = MagicMock()
    mock_response.choices = [mock_choice]

    mock_client = MagicMock()
    mock_client.chat.completions.create.return_value = mock_response

    with patch("resumefit.llm.completion.openai") as mock_openai:
        mock_openai.OpenAI.return_value = mock_client
        mock_openai.APITimeoutError = Exception
        mock_openai.APIError = Exception

        service = LLMCompletionService(api_key="sk-openai-fake", provider="openai")
        result = service.complete("prompt", CompletionOptions(system="json only"))

    assert result == '{"themes": []}'
    messages = mock_client.chat.completions.create.call_args.kwargs["messages"]
    assert messages[0] == {"role": "system", "content": "json only"}
    assert messages[1] == {"role": "user", "content": "prompt"}


def test_openai_empty_content_raises():
    mock_choice = MagicMock()
    mock_choice.message.content = ""
    mock_client = MagicMock()
    mock_client.chat.completions.create.return_value.choices = [mock_choice]

    with patch("resumefit.llm.completion.openai") as mock_openai:
        mock_openai.OpenAI.return_value = mock_client
        mock_openai.APITimeoutError = Exception
        mock_openai.APIError = Exception

        service = LLMCompletionService(api_key="sk-openai-fake", provider="openai")
        with pytest.raises(CompletionError, match="empty"):
            service.complete("prompt")


# ------------------------------------------------------------------
# Failover
# ------------------------------------------------------------------

def _scripted_service(script, calls):
    """
    Stand-in for LLMCompletionService. FailoverCompletionService instantiates
    LLMCompletionService from the module, so tests monkeypatch it to this.
    script maps (provider, model) to a list of outcomes.
    """

    class _Scripted:
        def __init__(self, *, api_key, provider, model):
            self._key = (provider, model)

        def complete(self, prompt, options=None):
            calls.append(self._key)
            outcome = script[self._key].pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

    return _Scripted


def test_failover_circuit_breaker_trips_after_n_consecutive_failures(monkeypatch):
    calls = []
    script = {
        ("openai", "gpt-4o-mini"): [CompletionError("boom")] * 5,
        ("anthropic", "claude-sonnet-4-6"): [CompletionError("boom")] * 5,
    }
    monkeypatch.setattr(comp, "LLMCompletionService", _scripted_service(script, calls))
    monkeypatch.setattr(comp, "_sleep_backoff", lambda attempt: None)

    f = FailoverCompletionService(
        api_key_resolver=lambda provider: "dummy",
        candidates=[("openai", "gpt-4o-mini"), ("anthropic", "claude-sonnet-4-6")],
        max_retries=0,
        breaker_consecutive_fails=2,
    )

    with pytest.raises(CompletionError):
        f.complete("prompt")

    with pytest.raises(CompletionError) as e:
        f.complete("prompt")

    assert "disabled" in str(e.value).lower()
    assert f.is_disabled() is True
    assert len(calls) == 2

    f.reset()
    script[("openai", "gpt-4o-mini")] = ["recovered"]
    assert f.is_disabled() is False
    assert f.complete("prompt") == "recovered"


def test_failover_retries_transient_errors(monkeypatch):
    calls, sleeps = [], []
    script = {("anthropic", "claude-sonnet-4-6"): [CompletionError("rate limit exceeded"), "ok"]}
    monkeypatch.setattr(comp, "LLMCompletionService", _scripted_service(script, calls))
    monkeypatch.setattr(comp, "_sleep_backoff", sleeps.append)

    f = FailoverCompletionService(
        api_key_resolver=lambda provider: "dummy",
        candidates=[("anthropic", "claude-sonnet-4-6")],
        max_retries=2,
    )

    assert f.complete("prompt") == "ok"
    assert sleeps == [0]
    assert len(calls) == 2


def test_failover_sticks_to_first_working_candidate(monkeypatch):
    calls = []
    script = {
        ("openai", "gpt-4o-mini"): [CompletionError("invalid request")],
        ("anthropic", "claude-sonnet-4-6"): ["first", "second"],
    }
    monkeypatch.setattr(comp, "LLMCompletionService", _scripted_service(script, calls))
    monkeypatch.setattr(comp, "_sleep_backoff", lambda attempt: None)

    f = FailoverCompletionService(
        api_key_resolver=lambda provider: "dummy",
        candidates=[("openai", "gpt-4o-mini"), ("anthropic", "claude-sonnet-4-6")],
        max_retries=0,
        breaker_consecutive_fails=3,
    )

    assert f.complete("prompt") == "first"
    assert f.complete("prompt") == "second"
    assert calls == [
        ("openai", "gpt-4o-mini"),
        ("anthropic", "claude-sonnet-4-6"),
        ("anthropic", "claude-sonnet-4-6"),
    ]


def test_failover_skips_candidates_without_keys(monkeypatch):
    calls = []
    script = {("anthropic", "claude-sonnet-4-6"): ["ok"]}
    monkeypatch.setattr(comp, "LLMCompletionService", _scripted_service(script, calls))

    f = FailoverCompletionService(
        api_key_resolver=lambda provider: "dummy" if provider == "anthropic" else None,
        candidates=[("openai", "gpt-4o-mini"), ("anthropic", "claude-sonnet-4-6")],
    )

    assert f.complete("prompt") == "ok"
    assert calls == [("anthropic", "claude-sonnet-4-6")]


def test_failover_without_any_key_raises():
    f = FailoverCompletionService(api_key_resolver=lambda provider: None, candidates=[("openai", "gpt-4o-mini")])
    with pytest.raises(CompletionError, match="Missing API key"):
        f.complete("prompt")

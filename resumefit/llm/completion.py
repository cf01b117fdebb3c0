"""
resumefit/llm/completion.py

TextCompletionService protocol + provider-backed implementations.

Design principles:
- User-provided API keys only (never logged, never in exception messages)
- One provider call per completion, hard timeout
- CompletionError on any failure; callers decide how to degrade
- Output is raw text; JSON consumers go through parse_json_response()
"""
from __future__ import annotations

import json
import random
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Protocol, Tuple

from resumefit import config as _config
from resumefit.errors import CompletionError
from resumefit.log import log_warning

TRANSIENT_HINTS = (
    "rate limit",
    "ratelimit",
    "too many requests",
    "overloaded",
    "temporarily overloaded",
    "timeout",
    "timed out",
    "try again",
    "server error",
    "503",
    "529",
)

# Top-level optional imports so tests can patch them via module attribute.
# The actual ImportError (if library not installed) is raised at call time.
try:
    import anthropic
except ImportError:
    anthropic = None  # type: ignore[assignment]

try:
    import openai
except ImportError:
    openai = None  # type: ignore[assignment]

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


@dataclass(frozen=True)
class CompletionOptions:
    system: str = ""
    max_tokens: int = 2048
    temperature: float = 0.0


class TextCompletionService(Protocol):
    def complete(self, prompt: str, options: Optional[CompletionOptions] = None) -> str:
        ...


def parse_json_response(text: str) -> Any:
    """
    Parse a JSON object out of a model reply.
    Strips Markdown code fences; falls back to the outermost {...} span.
    """
    if not text or not text.strip():
        raise CompletionError("Completion returned an empty response.")
    cleaned = _FENCE_RE.sub("", text.strip()).strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start != -1 and end > start:
        try:
            return json.loads(cleaned[start:end + 1])
        except json.JSONDecodeError:
            pass
    raise CompletionError("Completion did not contain a parseable JSON object.")


class LLMCompletionService:
    """
    Calls an LLM (Anthropic or OpenAI) and returns the reply text.
    """

    _TIMEOUT_SECONDS = 30

    def __init__(
            self,
            *,
            api_key: str,
            provider: str = "anthropic",
            model: Optional[str] = None,
            timeout_seconds: Optional[float] = None,
    ) -> None:
        if not api_key:
            raise CompletionError("LLM API key must not be empty.")
        self._api_key = api_key
        self._provider = provider.strip().lower()
        self._model = (model or _config.default_model(self._provider)).strip()
        self._timeout = timeout_seconds or self._TIMEOUT_SECONDS

        if self._provider not in ("anthropic", "openai"):
            raise CompletionError(
                f"Unsupported provider '{self._provider}'. Use 'anthropic' or 'openai'."
            )

    @property
    def provider(self) -> str:
        return self._provider

    @property
    def model(self) -> str:
        return self._model

    def complete(self, prompt: str, options: Optional[CompletionOptions] = None) -> str:
        """
        Return the model's text reply.
        Raises CompletionError on any failure; the API key never appears in it.
        """
        options = options or CompletionOptions()
        try:
            if self._provider == "anthropic":
                raw = self._call_anthropic(prompt, options)
            else:
                raw = self._call_openai(prompt, options)
        except CompletionError:
            raise
        except Exception as exc:
            # Sanitize: never let the key propagate through exception messages
            raise CompletionError(f"LLM call failed: {type(exc).__name__}") from None

        text = (raw or "").strip()
        if not text:
            raise CompletionError("LLM returned an empty response.")
        return text

    def _call_anthropic(self, prompt: str, options: CompletionOptions) -> str:
        if anthropic is None:
            raise CompletionError(
                "Package 'anthropic' is not installed. Run: pip install anthropic"
            )

        client = anthropic.Anthropic(api_key=self._api_key)
        kwargs = {}
        if options.system:
            kwargs["system"] = options.system
        try:
            message = client.messages.create(
                model=self._model,
                max_tokens=options.max_tokens,
                temperature=options.temperature,
                timeout=self._timeout,
                messages=[{"role": "user", "content": prompt}],
                **kwargs,
            )
        except anthropic.APITimeoutError:
            raise CompletionError(f"Anthropic API timed out after {self._timeout} seconds.")
        except anthropic.APIError as exc:
            raise CompletionError(f"Anthropic API error: {type(exc).__name__}") from None

        for block in message.content:
            if block.type == "text":
                return block.text
        raise CompletionError("Anthropic returned no text content.")

    def _call_openai(self, prompt: str, options: CompletionOptions) -> str:
        if openai is None:
            raise CompletionError(
                "Package 'openai' is not installed. Run: pip install openai"
            )

        client = openai.OpenAI(api_key=self._api_key, timeout=self._timeout)
        messages = []
        if options.system:
            messages.append({"role": "system", "content": options.system})
        messages.append({"role": "user", "content": prompt})
        try:
            response = client.chat.completions.create(
                model=self._model,
                max_tokens=options.max_tokens,
                temperature=options.temperature,
                messages=messages,
            )
        except openai.APITimeoutError:
            raise CompletionError(f"OpenAI API timed out after {self._timeout} seconds.")
        except openai.APIError as exc:
            raise CompletionError(f"OpenAI API error: {type(exc).__name__}") from None

        content = response.choices[0].message.content
        if not content:
            raise CompletionError("OpenAI returned empty content.")
        return content


def _is_transient_error(err: Exception) -> bool:
    msg = (str(err) or "").lower()
    return any(h in msg for h in TRANSIENT_HINTS)


def _sleep_backoff(attempt: int) -> None:
    # attempt=0 -> ~0.8s, attempt=1 -> ~1.6s, with jitter
    base = 0.8 * (2 ** attempt)
    jitter = random.uniform(0.0, 0.25)
    time.sleep(base + jitter)


@dataclass
class FailoverState:
    consecutive_failures: int = 0
    disabled: bool = False
    disabled_reason: Optional[str] = None
    # Stick to the first successful candidate once one works
    sticky_provider: Optional[str] = None
    sticky_model: Optional[str] = None


class FailoverCompletionService:
    """
    LLMCompletionService over a provider/model chain.

    Transient errors (rate limit, overloaded, timeout) are retried with
    backoff. After N consecutive candidate failures the breaker opens and
    every call fails fast until reset(); optimize_resume resets it per run.
    Once a candidate succeeds it is tried first from then on.
    """

    def __init__(
            self,
            *,
            api_key_resolver: Callable[[str], Optional[str]],
            candidates: List[Tuple[str, str]],
            max_retries: int = 2,
            breaker_consecutive_fails: int = 2,
    ) -> None:
        self._api_key_resolver = api_key_resolver
        self._candidates = candidates
        self._max_retries = max(0, max_retries)
        self._breaker_fails = max(1, breaker_consecutive_fails)
        self._state = FailoverState()

    def is_disabled(self) -> bool:
        return self._state.disabled

    def reset(self) -> None:
        """Close the breaker. The sticky candidate is kept."""
        self._state.consecutive_failures = 0
        self._state.disabled = False
        self._state.disabled_reason = None

    def _disable(self, reason: str) -> None:
        self._state.disabled = True
        self._state.disabled_reason = reason

    def complete(self, prompt: str, options: Optional[CompletionOptions] = None) -> str:
        if self._state.disabled:
            raise CompletionError(f"LLM completion disabled: {self._state.disabled_reason}")

        last_err: Optional[Exception] = None

        for provider, model in self._ordered_candidates():
            api_key = self._api_key_resolver(provider)
            if not api_key:
                last_err = CompletionError(f"Missing API key for provider: {provider}")
                continue

            service = LLMCompletionService(api_key=api_key, provider=provider, model=model)

            for attempt in range(self._max_retries + 1):
                try:
                    out = service.complete(prompt, options)

                    self._state.consecutive_failures = 0
                    self._state.sticky_provider = provider
                    self._state.sticky_model = model
                    return out

                except Exception as e:
                    last_err = e

                    if _is_transient_error(e) and attempt < self._max_retries:
                        _sleep_backoff(attempt)
                        continue

                    # non-transient, or retries exhausted
                    break

            log_warning(f"Completion candidate {provider}/{model} failed: {last_err}")
            self._state.consecutive_failures += 1
            if self._state.consecutive_failures >= self._breaker_fails:
                reason = f"circuit-breaker tripped after {self._state.consecutive_failures} failures"
                self._disable(reason)
                break

        if last_err is None:
            last_err = CompletionError("LLM completion failed: no candidates available")
        if not isinstance(last_err, CompletionError):
            last_err = CompletionError(f"LLM completion failed: {type(last_err).__name__}")
        raise last_err

    def _ordered_candidates(self) -> List[Tuple[str, str]]:
        if self._state.sticky_provider and self._state.sticky_model:
            sticky = (self._state.sticky_provider, self._state.sticky_model)
            rest = [c for c in self._candidates if c != sticky]
            return [sticky] + rest
        return list(self._candidates)


def build_completion_service() -> FailoverCompletionService:
    """Failover service from RESUMEFIT_LLM_* environment settings."""
    cfg = _config.load_llm_failover_config()
    return FailoverCompletionService(
        api_key_resolver=_config.resolve_api_key,
        candidates=cfg.chain,
        max_retries=cfg.max_retries,
        breaker_consecutive_fails=cfg.breaker_consecutive_fails,
    )

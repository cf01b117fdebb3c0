# resumefit/config.py
from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from resumefit.errors import ConfigurationError

# --- Scoring dimensions ---

DIMENSIONS: Tuple[str, ...] = ("keywords", "skills", "attributes", "experience", "level")

# Weights must sum to 1.0 within this tolerance.
WEIGHT_SUM_TOLERANCE = 0.01

# --- Agent defaults ---

DEFAULT_AGENT_TIMEOUT_MS = 30_000
DEFAULT_AGENT_MAX_RETRIES = 2
DEFAULT_AGENT_RETRY_DELAY_MS = 1_000


def _is_number(x: float) -> bool:
    return isinstance(x, (int, float)) and not isinstance(x, bool) and math.isfinite(x)


@dataclass(frozen=True)
class DimensionWeights:
    keywords: float = 0.20
    skills: float = 0.35
    attributes: float = 0.20
    experience: float = 0.15
    level: float = 0.10

    def __post_init__(self) -> None:
        for name in DIMENSIONS:
            value = getattr(self, name)
            if not _is_number(value) or value < 0:
                raise ConfigurationError(f"weights.{name}", f"must be a non-negative number, got {value!r}")
        total = self.total()
        if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
            raise ConfigurationError("weights", f"must sum to 1.0 (±{WEIGHT_SUM_TOLERANCE}), got {total:.4f}")

    def total(self) -> float:
        return sum(getattr(self, name) for name in DIMENSIONS)

    def weight_for(self, dimension: str) -> float:
        return float(getattr(self, dimension))

    def as_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in DIMENSIONS}


@dataclass(frozen=True)
class OptimizerConfig:
    """
    Read-only run configuration. Built once, passed explicitly into the
    Scorer, RecommendationGenerator, AgentClient and IterationController.
    """
    target_score: float = 0.8
    max_iterations: int = 10
    early_stopping_rounds: int = 2
    min_improvement: float = 0.01
    weights: DimensionWeights = field(default_factory=DimensionWeights)
    # Match quality below this still leaves the job element as a gap.
    acceptance_threshold: float = 0.7
    timeout_ms: int = DEFAULT_AGENT_TIMEOUT_MS
    max_retries: int = DEFAULT_AGENT_MAX_RETRIES
    retry_delay_ms: int = DEFAULT_AGENT_RETRY_DELAY_MS

    def __post_init__(self) -> None:
        _require_unit("target_score", self.target_score)
        _require_unit("acceptance_threshold", self.acceptance_threshold)
        _require_int("max_iterations", self.max_iterations, minimum=1)
        _require_int("early_stopping_rounds", self.early_stopping_rounds, minimum=1)
        if not _is_number(self.min_improvement) or self.min_improvement < 0:
            raise ConfigurationError("min_improvement", f"must be >= 0, got {self.min_improvement!r}")
        if not isinstance(self.weights, DimensionWeights):
            raise ConfigurationError("weights", "must be a DimensionWeights instance")
        _require_int("timeout_ms", self.timeout_ms, minimum=1)
        _require_int("max_retries", self.max_retries, minimum=0)
        _require_int("retry_delay_ms", self.retry_delay_ms, minimum=0)


def _require_unit(name: str, value: float) -> None:
    if not _is_number(value) or not 0.0 <= value <= 1.0:
        raise ConfigurationError(name, f"must be within [0, 1], got {value!r}")


def _require_int(name: str, value: int, *, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ConfigurationError(name, f"must be an integer >= {minimum}, got {value!r}")


# --- Environment loading ---

def _env_raw(env: Mapping[str, str], name: str) -> Optional[str]:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return None
    return raw.strip()


def _env_int(name: str, default: int, env: Optional[Mapping[str, str]] = None) -> int:
    raw = _env_raw(os.environ if env is None else env, name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(name, f"expected an integer, got {raw!r}") from None


def _env_float(name: str, default: float, env: Optional[Mapping[str, str]] = None) -> float:
    raw = _env_raw(os.environ if env is None else env, name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(name, f"expected a number, got {raw!r}") from None


def load_optimizer_config(env: Optional[Mapping[str, str]] = None) -> OptimizerConfig:
    """
    Build an OptimizerConfig from RESUMEFIT_* environment keys.
    Blank or missing keys keep their defaults; anything unparsable or out of
    range raises ConfigurationError here, before any run starts.
    """
    env = os.environ if env is None else env
    base = OptimizerConfig()
    default_w = base.weights

    weights = DimensionWeights(
        **{
            name: _env_float(f"RESUMEFIT_WEIGHT_{name.upper()}", getattr(default_w, name), env)
            for name in DIMENSIONS
        }
    )
    return OptimizerConfig(
        target_score=_env_float("RESUMEFIT_TARGET_SCORE", base.target_score, env),
        max_iterations=_env_int("RESUMEFIT_MAX_ITERATIONS", base.max_iterations, env),
        early_stopping_rounds=_env_int("RESUMEFIT_EARLY_STOPPING_ROUNDS", base.early_stopping_rounds, env),
        min_improvement=_env_float("RESUMEFIT_MIN_IMPROVEMENT", base.min_improvement, env),
        weights=weights,
        acceptance_threshold=_env_float("RESUMEFIT_ACCEPTANCE_THRESHOLD", base.acceptance_threshold, env),
        timeout_ms=_env_int("RESUMEFIT_AGENT_TIMEOUT_MS", base.timeout_ms, env),
        max_retries=_env_int("RESUMEFIT_AGENT_MAX_RETRIES", base.max_retries, env),
        retry_delay_ms=_env_int("RESUMEFIT_AGENT_RETRY_DELAY_MS", base.retry_delay_ms, env),
    )


# --- LLM completion (extraction, matching, themes, local rewriting) ---

_DEFAULT_MODELS: Dict[str, str] = {
    "anthropic": "claude-sonnet-4-6",
    "openai": "gpt-4o-mini",
}


def _parse_llm_chain(raw: str | None) -> List[Tuple[str, str]]:
    """
    Parses: "openai/gpt-4o-mini,anthropic/claude-sonnet-4-6"
    -> [("openai","gpt-4o-mini"), ...]
    """
    if not raw:
        return []
    items: List[Tuple[str, str]] = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        if "/" not in part:
            # Allow "gpt-4o-mini" shorthand -> assume openai
            items.append(("openai", part))
            continue
        provider, model = part.split("/", 1)
        provider = provider.strip().lower()
        model = model.strip()
        if provider and model:
            items.append((provider, model))
    return items


@dataclass(frozen=True)
class LLMFailoverConfig:
    chain: List[Tuple[str, str]]
    max_retries: int
    breaker_consecutive_fails: int


def load_llm_failover_config() -> LLMFailoverConfig:
    chain_raw = os.getenv(
        "RESUMEFIT_LLM_CHAIN",
        "anthropic/claude-sonnet-4-6,openai/gpt-4o-mini",
    )
    return LLMFailoverConfig(
        chain=_parse_llm_chain(chain_raw),
        max_retries=_env_int("RESUMEFIT_LLM_MAX_RETRIES", 2),
        breaker_consecutive_fails=_env_int("RESUMEFIT_LLM_CIRCUIT_BREAKER_FAILS", 2),
    )


def default_model(provider: str) -> str:
    return _DEFAULT_MODELS.get(provider.strip().lower(), _DEFAULT_MODELS["anthropic"])


def resolve_api_key(provider: str) -> Optional[str]:
    # Never logged, never written to disk, never included in structured output.
    provider = provider.strip().lower()
    return (
        os.getenv(f"RESUMEFIT_{provider.upper()}_KEY")
        or os.getenv("RESUMEFIT_LLM_KEY")
        or os.getenv(f"{provider.upper()}_API_KEY")
        or None
    )


def llm_configured() -> bool:
    return bool(
        os.getenv("RESUMEFIT_OPENAI_KEY")
        or os.getenv("RESUMEFIT_ANTHROPIC_KEY")
        or os.getenv("RESUMEFIT_LLM_KEY")
        or os.getenv("OPENAI_API_KEY")
        or os.getenv("ANTHROPIC_API_KEY")
    )

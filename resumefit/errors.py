"""
resumefit/errors.py

Error taxonomy shared by the engine and its collaborator boundaries.

- ValidationIssue is data, never raised: agent boundaries return it inside
  a structured rejection.
- ConfigurationError is fatal and raised at construction time.
- AgentError subclasses describe collaborator failures; the iteration
  controller turns them into an `agent_failure` termination.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


class ResumeFitError(Exception):
    """Base class for all resumefit errors."""


@dataclass(frozen=True)
class ValidationIssue:
    field: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "message": self.message}


class ConfigurationError(ResumeFitError):
    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"Invalid configuration for '{field}': {reason}")
        self.field = field
        self.reason = reason


class AgentError(ResumeFitError):
    def __init__(self, agent_name: str, message: str) -> None:
        super().__init__(message)
        self.agent_name = agent_name


class AgentTimeoutError(AgentError):
    def __init__(self, agent_name: str, timeout_ms: int) -> None:
        super().__init__(agent_name, f"Agent '{agent_name}' timed out after {timeout_ms}ms")
        self.timeout_ms = timeout_ms


class AgentCallError(AgentError):
    """The collaborator's handler raised instead of answering."""

    def __init__(self, agent_name: str, cause: BaseException) -> None:
        super().__init__(agent_name, f"Agent '{agent_name}' call failed: {type(cause).__name__}: {cause}")
        self.cause = cause


class AgentFailureError(AgentError):
    def __init__(self, agent_name: str, reason: str, *, attempts: int, last_error: Optional[BaseException] = None) -> None:
        super().__init__(agent_name, f"Agent '{agent_name}' failed after {attempts} attempt(s): {reason}")
        self.reason = reason
        self.attempts = attempts
        self.last_error = last_error


class CompletionError(ResumeFitError):
    """Raised when a completion call fails (transport, empty or unusable output)."""


class ExtractionError(ResumeFitError):
    """Raised when element extraction cannot produce a usable element list."""

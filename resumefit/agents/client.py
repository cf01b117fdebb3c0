"""
resumefit/agents/client.py

AgentClient: validated, time-boxed calls to the rewriting agent and the
sourcing agent.

Design principles:
- Every payload is validated in both directions; invalid payloads come back
  as a structured AgentRejection, never as an exception.
- Sending to a collaborator without a configured handler is a
  ConfigurationError.
- Every handler call races a timer (timeout_ms); losing raises
  AgentTimeoutError. A handler that raises becomes AgentCallError.
- Exactly one attempt per call. Retrying is the caller's decision.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Optional, Union

from resumefit.config import OptimizerConfig
from resumefit.errors import (
    AgentCallError,
    AgentTimeoutError,
    ConfigurationError,
    ValidationIssue,
)
from resumefit.log import log_debug, log_info, log_warning

from .protocols import (
    JobSearchPayload,
    JobSearchResponse,
    JobSearchResultPayload,
    ResumeWriterRequest,
    ResumeWriterResponse,
)
from .validation import validate

REWRITE_AGENT = "resume-writer"
SOURCING_AGENT = "job-search"

RewriteHandler = Callable[[ResumeWriterRequest], Any]
ResultHandler = Callable[[JobSearchResultPayload], Any]


@dataclass(frozen=True)
class AgentRejection:
    message: str
    errors: List[ValidationIssue] = field(default_factory=list)
    status: Literal["rejected"] = "rejected"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "message": self.message,
            "errors": [e.to_dict() for e in self.errors],
        }


class AgentClient:
    def __init__(
            self,
            config: OptimizerConfig,
            *,
            rewrite_handler: Optional[RewriteHandler] = None,
            result_handler: Optional[ResultHandler] = None,
    ) -> None:
        self._timeout_ms = config.timeout_ms
        self._rewrite_handler = rewrite_handler
        self._result_handler = result_handler

    @property
    def timeout_ms(self) -> int:
        return self._timeout_ms

    @property
    def has_rewrite_handler(self) -> bool:
        return self._rewrite_handler is not None

    # ------------------------------------------------------------------
    # Rewriting agent
    # ------------------------------------------------------------------

    def send_recommendations(self, payload: Any) -> Union[ResumeWriterResponse, AgentRejection]:
        """
        Validate the request, call the rewriting agent once, validate its reply.
        Raises ConfigurationError (no handler), AgentTimeoutError or AgentCallError.
        """
        outbound = validate(ResumeWriterRequest, payload)
        if not outbound.ok:
            log_warning(f"Outbound {REWRITE_AGENT} request failed validation ({len(outbound.errors)} errors)")
            return AgentRejection(message="Resume writer request validation failed", errors=outbound.errors)

        if self._rewrite_handler is None:
            raise ConfigurationError("rewrite_handler", f"no handler configured for agent '{REWRITE_AGENT}'")

        request = outbound.value
        log_debug(f"Dispatching {request.request_id} to {REWRITE_AGENT} (round {request.iteration_round})")
        reply = self._call(REWRITE_AGENT, self._rewrite_handler, request)

        inbound = validate(ResumeWriterResponse, reply)
        if not inbound.ok:
            log_warning(f"Reply from {REWRITE_AGENT} failed validation ({len(inbound.errors)} errors)")
            return AgentRejection(message="Resume writer response validation failed", errors=inbound.errors)
        if inbound.value.request_id != request.request_id:
            return AgentRejection(
                message="Resume writer response does not answer this request",
                errors=[ValidationIssue(field="request_id", message=f"expected {request.request_id}")],
            )
        return inbound.value

    # ------------------------------------------------------------------
    # Sourcing agent
    # ------------------------------------------------------------------

    def receive_job_posting(self, payload: Any) -> JobSearchResponse:
        checked = validate(JobSearchPayload, payload)
        if not checked.ok:
            job_id = ""
            if isinstance(payload, dict) and isinstance(payload.get("job"), dict):
                job_id = str(payload["job"].get("id") or "")
            log_warning(f"Rejected job posting {job_id or '(no id)'}: {len(checked.errors)} validation errors")
            return JobSearchResponse(
                status="rejected",
                job_id=job_id,
                message="Job posting validation failed",
                errors=[e.to_dict() for e in checked.errors],
            )
        job = checked.value.job
        log_info(f"Accepted job posting {job.id} ({job.title} @ {job.company})")
        return JobSearchResponse(status="accepted", job_id=job.id, message="Job posting accepted for processing")

    def send_result(self, payload: Any) -> Optional[AgentRejection]:
        """Deliver a final run result to the sourcing agent. None on success."""
        checked = validate(JobSearchResultPayload, payload)
        if not checked.ok:
            return AgentRejection(message="Job search result validation failed", errors=checked.errors)
        if self._result_handler is None:
            raise ConfigurationError("result_handler", f"no handler configured for agent '{SOURCING_AGENT}'")
        self._call(SOURCING_AGENT, self._result_handler, checked.value)
        log_info(f"Delivered result for job {checked.value.job_id} to {SOURCING_AGENT}")
        return None

    # ------------------------------------------------------------------
    # Timeout race
    # ------------------------------------------------------------------

    def _call(self, agent_name: str, handler: Callable[[Any], Any], payload: Any) -> Any:
        return call_with_timeout(agent_name, self._timeout_ms, handler, payload)


def call_with_timeout(agent_name: str, timeout_ms: int, fn: Callable[..., Any], *args: Any) -> Any:
    """
    Run fn(*args) on a worker thread and wait at most timeout_ms for it.
    Raises AgentTimeoutError when the timer wins and AgentCallError when fn raises.
    """
    # The worker thread cannot be interrupted; on timeout it is abandoned.
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"resumefit-{agent_name}")
    try:
        future = executor.submit(fn, *args)
        try:
            return future.result(timeout=timeout_ms / 1000.0)
        except FutureTimeoutError:
            future.cancel()
            raise AgentTimeoutError(agent_name, timeout_ms) from None
        except Exception as exc:
            raise AgentCallError(agent_name, exc) from exc
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

from __future__ import annotations

import argparse
import json
import sys
import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol, Sequence

from dotenv import load_dotenv

from resumefit import config as _config
from resumefit.agents.client import REWRITE_AGENT, AgentClient, AgentRejection, call_with_timeout
from resumefit.agents.protocols import (
    ResumeWriterResponse,
    convert_resume_writer_response,
    to_resume_writer_request,
)
from resumefit.config import OptimizerConfig
from resumefit.errors import (
    AgentCallError,
    AgentError,
    AgentFailureError,
    AgentTimeoutError,
    ConfigurationError,
    ExtractionError,
)
from resumefit.extraction import ElementExtractor, ThemeExtractor
from resumefit.llm.completion import FailoverCompletionService, TextCompletionService, build_completion_service
from resumefit.llm.rewriter import CompletionRewriteAgent
from resumefit.log import log_round, log_run_start, log_termination, log_warning, setup_logger
from resumefit.matching import Scorer, SemanticMatcher
from resumefit.models import (
    Element,
    IterationSnapshot,
    JobPosting,
    JobTarget,
    MatchResult,
    OptimizationMetrics,
    OptimizationResult,
    ResumeDocument,
    SemanticMatch,
    TaggedElement,
    TerminationReason,
)
from resumefit.recommendations import RecommendationGenerator


ANALYZER = "document-analyzer"


class RunState(str, Enum):
    INIT = "init"
    SCORE = "score"
    CHECK_TARGET = "check_target"
    CHECK_TERMINATION = "check_termination"
    DISPATCH = "dispatch"
    AWAIT_REWRITE = "await_rewrite"
    RESCORE = "rescore"
    DONE = "done"


@dataclass(frozen=True)
class ResumeAnalysis:
    elements: List[Element]
    matches: List[SemanticMatch]


class DocumentAnalyzer(Protocol):
    def analyze(self, resume: ResumeDocument, job_elements: Sequence[TaggedElement]) -> ResumeAnalysis:
        ...


class CompletionDocumentAnalyzer:
    """Extract résumé elements, then match them against the job elements."""

    def __init__(self, extractor: ElementExtractor, matcher: SemanticMatcher) -> None:
        self._extractor = extractor
        self._matcher = matcher

    def analyze(self, resume: ResumeDocument, job_elements: Sequence[TaggedElement]) -> ResumeAnalysis:
        elements = self._extractor.extract_resume(resume)
        return ResumeAnalysis(elements=list(elements), matches=self._matcher.find_matches(elements, job_elements))


def _sleep_retry(delay_ms: int) -> None:
    time.sleep(delay_ms / 1000.0)


@dataclass
class _Run:
    """Mutable state of one optimization run; never shared between runs."""
    job: JobTarget
    document: ResumeDocument
    snapshots: List[IterationSnapshot] = field(default_factory=list)
    analysis: Optional[ResumeAnalysis] = None
    match_result: Optional[MatchResult] = None
    initial_score: float = 0.0
    reply: Optional[ResumeWriterResponse] = None
    reason: Optional[TerminationReason] = None
    error: Optional[str] = None

    @property
    def scores(self) -> List[float]:
        return [s.score_after for s in self.snapshots]

    def finish(self, reason: TerminationReason, error: Optional[str] = None) -> RunState:
        self.reason = reason
        self.error = error
        return RunState.DONE


class IterationController:
    """
    Drives one optimization run:

      INIT -> SCORE -> CHECK_TARGET -> CHECK_TERMINATION -> DISPATCH
           -> AWAIT_REWRITE -> RESCORE -> CHECK_TARGET -> ...

    Rounds are strictly sequential. Each analysis and each rewrite races
    `timeout_ms`. Collaborator failures end the run with `agent_failure`;
    the snapshots collected so far are kept.
    """

    def __init__(
            self,
            config: OptimizerConfig,
            *,
            analyzer: DocumentAnalyzer,
            agent_client: AgentClient,
            scorer: Optional[Scorer] = None,
            generator: Optional[RecommendationGenerator] = None,
    ) -> None:
        if not agent_client.has_rewrite_handler:
            raise ConfigurationError("agent_client", f"no handler configured for agent '{REWRITE_AGENT}'")
        self._config = config
        self._analyzer = analyzer
        self._client = agent_client
        self._scorer = scorer or Scorer(config)
        self._generator = generator or RecommendationGenerator(config)
        self._handlers: Dict[RunState, Callable[[_Run], RunState]] = {
            RunState.INIT: self._on_init,
            RunState.SCORE: self._on_score,
            RunState.CHECK_TARGET: self._on_check_target,
            RunState.CHECK_TERMINATION: self._on_check_termination,
            RunState.DISPATCH: self._on_dispatch,
            RunState.AWAIT_REWRITE: self._on_await_rewrite,
            RunState.RESCORE: self._on_rescore,
        }

    def run(self, *, job: JobTarget, resume: ResumeDocument) -> OptimizationResult:
        run = _Run(job=job, document=resume)
        log_run_start(job.job_id, resume.id, self._config.target_score, self._config.max_iterations)

        state = RunState.INIT
        while state is not RunState.DONE:
            state = self._handlers[state](run)

        result = self._result(run)
        log_termination(
            result.termination_reason.value,
            result.metrics.iteration_count,
            result.metrics.final_score,
            result.error,
        )
        return result

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    def _on_init(self, run: _Run) -> RunState:
        if not self._analyze(run):
            return run.finish(TerminationReason.AGENT_FAILURE, run.error)
        run.initial_score = run.match_result.overall_score
        return RunState.SCORE

    def _on_score(self, run: _Run) -> RunState:
        self._record_round(run, score_before=run.initial_score)
        return RunState.CHECK_TARGET

    def _on_check_target(self, run: _Run) -> RunState:
        if run.match_result.overall_score >= self._config.target_score:
            return run.finish(TerminationReason.TARGET_REACHED)
        return RunState.CHECK_TERMINATION

    def _on_check_termination(self, run: _Run) -> RunState:
        if len(run.snapshots) >= self._config.max_iterations:
            return run.finish(TerminationReason.MAX_ROUNDS)
        if self._stalled(run.scores):
            return run.finish(TerminationReason.NO_IMPROVEMENT)
        return RunState.DISPATCH

    def _on_dispatch(self, run: _Run) -> RunState:
        try:
            run.reply = self._dispatch(run)
        except AgentFailureError as exc:
            return run.finish(TerminationReason.AGENT_FAILURE, str(exc))
        return RunState.AWAIT_REWRITE

    def _on_await_rewrite(self, run: _Run) -> RunState:
        run.document = convert_resume_writer_response(run.reply)
        run.reply = None
        return RunState.RESCORE

    def _on_rescore(self, run: _Run) -> RunState:
        previous = run.snapshots[-1].score_after
        if not self._analyze(run):
            return run.finish(TerminationReason.AGENT_FAILURE, run.error)
        self._record_round(run, score_before=previous)
        return RunState.CHECK_TARGET

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _analyze(self, run: _Run) -> bool:
        try:
            analysis = call_with_timeout(
                ANALYZER,
                self._config.timeout_ms,
                self._analyzer.analyze,
                run.document,
                run.job.elements,
            )
        except AgentError as exc:
            run.error = f"analysis of resume {run.document.id} v{run.document.version} failed: {exc}"
            return False
        run.analysis = analysis
        run.match_result = self._scorer.score(analysis.elements, run.job.elements, analysis.matches)
        return True

    def _record_round(self, run: _Run, *, score_before: float) -> None:
        round_no = len(run.snapshots) + 1
        result = run.match_result
        recommendations = self._generator.generate(
            result,
            run.analysis.matches,
            round_no,
            self._config.target_score,
            themes=run.job.themes,
            resume_elements=run.analysis.elements,
        )
        run.snapshots.append(
            IterationSnapshot(
                round=round_no,
                score_before=score_before,
                score_after=result.overall_score,
                recommendations=recommendations,
                resume_version=run.document.version,
            )
        )
        log_round(round_no, result.overall_score, len(result.gaps), len(result.strengths))

    def _stalled(self, scores: Sequence[float]) -> bool:
        """Best score of the last k rounds is not min_improvement above the best before them."""
        k = self._config.early_stopping_rounds
        if len(scores) <= k:
            return False
        return max(scores[-k:]) - max(scores[:-k]) < self._config.min_improvement

    def _dispatch(self, run: _Run) -> ResumeWriterResponse:
        latest = run.snapshots[-1]
        payload = to_resume_writer_request(
            request_id=uuid.uuid4().hex,
            job_id=run.job.job_id,
            resume_id=run.document.id,
            iteration_round=latest.round,
            match_result=run.match_result,
            recommendations=latest.recommendations,
            target_score=self._config.target_score,
            previous_scores=[s.score_after for s in run.snapshots[:-1]],
        )

        attempts = self._config.max_retries + 1
        last_error: Optional[Exception] = None
        for attempt in range(1, attempts + 1):
            try:
                reply = self._client.send_recommendations(payload)
            except (AgentTimeoutError, AgentCallError) as exc:
                last_error = exc
                log_warning(f"Dispatch attempt {attempt}/{attempts} failed: {exc}")
                if attempt < attempts:
                    _sleep_retry(self._config.retry_delay_ms)
                continue

            if isinstance(reply, AgentRejection):
                details = "; ".join(f"{e.field}: {e.message}" for e in reply.errors)
                raise AgentFailureError(
                    REWRITE_AGENT,
                    f"{reply.message} ({details})" if details else reply.message,
                    attempts=attempt,
                )
            return reply

        raise AgentFailureError(REWRITE_AGENT, str(last_error), attempts=attempts, last_error=last_error)

    def _result(self, run: _Run) -> OptimizationResult:
        final = run.snapshots[-1].score_after if run.snapshots else run.initial_score
        return OptimizationResult(
            metrics=OptimizationMetrics(
                initial_score=run.initial_score,
                final_score=final,
                improvement=final - run.initial_score,
                iteration_count=len(run.snapshots),
            ),
            iterations=list(run.snapshots),
            termination_reason=run.reason or TerminationReason.AGENT_FAILURE,
            final_resume=run.document,
            error=run.error,
        )


# ----------------------------------------------------------------------
# Wiring
# ----------------------------------------------------------------------

def prepare_job_target(job: JobPosting, completion: TextCompletionService) -> JobTarget:
    """Extract job elements and themes. Raises ExtractionError when no elements come back."""
    elements = ElementExtractor(completion).extract_job(job)
    if not elements:
        raise ExtractionError(f"No requirements could be extracted from job {job.id}.")
    themes = ThemeExtractor(completion).extract(job, elements)
    return JobTarget(job_id=job.id, elements=tuple(elements), themes=tuple(themes))


def optimize_resume(
        *,
        job: JobPosting,
        resume: ResumeDocument,
        config: OptimizerConfig,
        completion: TextCompletionService,
        rewrite_handler: Optional[Callable] = None,
) -> OptimizationResult:
    """
    Full local pipeline: completion-backed extraction and matching, the
    deterministic scorer/generator, and either the given rewrite handler or
    a CompletionRewriteAgent.

    A failover service's circuit breaker is closed again at the start of the
    call, so it only carries failures within one run.
    """
    if isinstance(completion, FailoverCompletionService):
        completion.reset()
    target = prepare_job_target(job, completion)
    if rewrite_handler is None:
        agent = CompletionRewriteAgent(completion)
        agent.register(resume)
        rewrite_handler = agent

    analyzer = CompletionDocumentAnalyzer(ElementExtractor(completion), SemanticMatcher(completion))
    controller = IterationController(
        config,
        analyzer=analyzer,
        agent_client=AgentClient(config, rewrite_handler=rewrite_handler),
    )
    return controller.run(job=target, resume=resume)


def print_human_summary(result: OptimizationResult) -> None:
    m = result.metrics
    print("\n=== resumefit optimization ===")
    print(f"Resume: {result.final_resume.id} (v{result.final_resume.version})")
    print(f"Score: {m.initial_score * 100:.1f}% -> {m.final_score * 100:.1f}% ({m.improvement * 100:+.1f} pts)")
    print(f"Rounds: {m.iteration_count} | Stopped: {result.termination_reason.value}")
    if result.error:
        print(f"Error: {result.error}")

    if result.iterations:
        last = result.iterations[-1].recommendations
        print(f"\n{last.summary}")
        for title, recs in (("Priority", last.priority), ("Optional", last.optional), ("Rewording", last.rewording)):
            if not recs:
                continue
            print(f"\n{title}:")
            for rec in recs[:5]:
                print(f"  - [{rec.type.value}] {rec.suggestion}")


def main() -> None:
    load_dotenv()

    parser = argparse.ArgumentParser(description="Iteratively optimize a resume against a job posting")
    parser.add_argument("--job", required=True, help="Path to the job posting text")
    parser.add_argument("--resume", required=True, help="Path to the resume (.txt or .md)")
    parser.add_argument("--job-title", default="", help="Job title (defaults to the job file's first line)")
    parser.add_argument("--target-score", type=float, default=None, help="Override RESUMEFIT_TARGET_SCORE")
    parser.add_argument("--max-iterations", type=int, default=None, help="Override RESUMEFIT_MAX_ITERATIONS")
    parser.add_argument("--json", action="store_true", help="Print JSON only (machine-readable)")
    parser.add_argument("--log-file", type=str, default="", help="Also write DEBUG logs to this file")
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level on the console")
    args = parser.parse_args()

    setup_logger("DEBUG" if args.verbose else "INFO", Path(args.log_file) if args.log_file else None)

    try:
        config = _config.load_optimizer_config()
        overrides = {}
        if args.target_score is not None:
            overrides["target_score"] = args.target_score
        if args.max_iterations is not None:
            overrides["max_iterations"] = args.max_iterations
        if overrides:
            config = replace(config, **overrides)
        if not _config.llm_configured():
            raise ConfigurationError("llm", "set RESUMEFIT_LLM_KEY or a provider API key")
    except ConfigurationError as exc:
        print(f"\n[resumefit] {exc}\n", file=sys.stderr)
        raise SystemExit(2)

    job_path, resume_path = Path(args.job), Path(args.resume)
    for p in (job_path, resume_path):
        if not p.exists():
            print(f"\n[resumefit] File not found: {p}\n", file=sys.stderr)
            raise SystemExit(2)

    job_text = job_path.read_text(encoding="utf-8")
    title = args.job_title or (job_text.strip().splitlines() or [job_path.stem])[0].strip()
    job = JobPosting(id=job_path.stem, title=title, description=job_text)
    resume = ResumeDocument(
        id=resume_path.stem,
        content=resume_path.read_text(encoding="utf-8"),
        format="markdown" if resume_path.suffix.lower() in (".md", ".markdown") else "text",
    )

    try:
        result = optimize_resume(job=job, resume=resume, config=config, completion=build_completion_service())
    except ExtractionError as exc:
        print(f"\n[resumefit] {exc}\n", file=sys.stderr)
        raise SystemExit(1)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print_human_summary(result)

    raise SystemExit(0 if result.termination_reason is TerminationReason.TARGET_REACHED else 1)


if __name__ == "__main__":
    main()

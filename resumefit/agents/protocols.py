"""
resumefit/agents/protocols.py

Payload schemas exchanged with the rewriting agent and the sourcing agent,
plus converters between engine models and wire payloads.

Converters build plain dicts; AgentClient validates them with
resumefit.agents.validation.validate() before anything is sent.
"""
from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from resumefit.models import (
    JobPosting,
    MatchResult,
    OptimizationResult,
    Recommendation,
    Recommendations,
    ResumeDocument,
    utc_now,
)

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
UnitFloat = Annotated[float, Field(ge=0.0, le=1.0, allow_inf_nan=False)]

RecommendationKind = Literal[
    "add_skill", "add_experience", "reword", "reframe", "emphasize", "deemphasize", "quantify"
]
CategoryName = Literal["keyword", "skill", "attribute", "experience", "concept"]
MatchTypeName = Literal["exact", "synonym", "related", "semantic"]
TerminationName = Literal["target_reached", "max_rounds", "no_improvement", "agent_failure"]


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ErrorItem(_Payload):
    field: str
    message: str


# --- Sourcing agent ---

class JobListing(_Payload):
    id: NonEmptyStr
    title: NonEmptyStr
    company: NonEmptyStr
    description: NonEmptyStr
    requirements: str = ""
    qualifications: str = ""
    posted_date: NonEmptyStr
    location: Optional[str] = None
    salary_range: Optional[str] = None


class JobSourceMetadata(_Payload):
    source: NonEmptyStr
    url: Optional[str] = None
    retrieved_at: NonEmptyStr


class JobSearchPayload(_Payload):
    job: JobListing
    metadata: JobSourceMetadata


class JobSearchResponse(_Payload):
    status: Literal["accepted", "rejected"]
    job_id: str
    message: str
    errors: Optional[List[ErrorItem]] = None


class JobSearchResultPayload(_Payload):
    job_id: NonEmptyStr
    resume_id: NonEmptyStr
    final_score: UnitFloat
    initial_score: UnitFloat
    improvement: Annotated[float, Field(ge=-1.0, le=1.0, allow_inf_nan=False)]
    iterations: Annotated[int, Field(ge=0)]
    termination_reason: TerminationName
    timestamp: NonEmptyStr


# --- Rewriting agent ---

class RecommendationItem(_Payload):
    type: RecommendationKind
    element: NonEmptyStr
    importance: UnitFloat
    suggestion: NonEmptyStr
    example: Optional[str] = None
    job_requirement_reference: NonEmptyStr
    explanation: NonEmptyStr


class RecommendationsPayload(_Payload):
    summary: NonEmptyStr
    priority: List[RecommendationItem]
    optional: List[RecommendationItem]
    rewording: List[RecommendationItem]


class GapItem(_Payload):
    element: NonEmptyStr
    importance: UnitFloat
    category: CategoryName
    impact: UnitFloat


class StrengthItem(_Payload):
    element: NonEmptyStr
    match_type: MatchTypeName
    contribution: UnitFloat


class RequestMetadata(_Payload):
    timestamp: NonEmptyStr
    previous_scores: List[UnitFloat] = Field(default_factory=list)


class ResumeWriterRequest(_Payload):
    request_id: NonEmptyStr
    job_id: NonEmptyStr
    resume_id: NonEmptyStr
    iteration_round: Annotated[int, Field(ge=1)]
    current_score: UnitFloat
    target_score: UnitFloat
    recommendations: RecommendationsPayload
    gaps: List[GapItem]
    strengths: List[StrengthItem]
    metadata: RequestMetadata


class ResumePayload(_Payload):
    id: NonEmptyStr
    content: NonEmptyStr
    format: Literal["text", "markdown"]
    version: Annotated[int, Field(gt=0)]


class ResponseMetadata(_Payload):
    timestamp: NonEmptyStr
    processing_time_ms: Annotated[float, Field(ge=0.0, allow_inf_nan=False)]


class ResumeWriterResponse(_Payload):
    response_id: NonEmptyStr
    request_id: NonEmptyStr
    resume_id: NonEmptyStr
    resume: ResumePayload
    changes_made: List[str]
    metadata: ResponseMetadata


# --- Converters ---

def recommendation_item(rec: Recommendation) -> Dict[str, Any]:
    return rec.to_dict()


def to_resume_writer_request(
        *,
        request_id: str,
        job_id: str,
        resume_id: str,
        iteration_round: int,
        match_result: MatchResult,
        recommendations: Recommendations,
        target_score: float,
        previous_scores: Sequence[float] = (),
) -> Dict[str, Any]:
    return {
        "request_id": request_id,
        "job_id": job_id,
        "resume_id": resume_id,
        "iteration_round": iteration_round,
        "current_score": match_result.overall_score,
        "target_score": target_score,
        "recommendations": {
            "summary": recommendations.summary,
            "priority": [recommendation_item(r) for r in recommendations.priority],
            "optional": [recommendation_item(r) for r in recommendations.optional],
            "rewording": [recommendation_item(r) for r in recommendations.rewording],
        },
        "gaps": [g.to_dict() for g in match_result.gaps],
        "strengths": [s.to_dict() for s in match_result.strengths],
        "metadata": {
            "timestamp": utc_now().isoformat(),
            "previous_scores": list(previous_scores),
        },
    }


def convert_resume_writer_response(response: ResumeWriterResponse) -> ResumeDocument:
    return ResumeDocument(
        id=response.resume.id,
        content=response.resume.content,
        format=response.resume.format,
        version=response.resume.version,
    )


def to_job_search_result(*, job_id: str, resume_id: str, result: OptimizationResult) -> Dict[str, Any]:
    m = result.metrics
    return {
        "job_id": job_id,
        "resume_id": resume_id,
        "final_score": m.final_score,
        "initial_score": m.initial_score,
        "improvement": m.improvement,
        "iterations": m.iteration_count,
        "termination_reason": result.termination_reason.value,
        "timestamp": utc_now().isoformat(),
    }


def job_posting_from_payload(payload: JobSearchPayload) -> JobPosting:
    job = payload.job
    return JobPosting(
        id=job.id,
        title=job.title,
        company=job.company,
        description=job.description,
        requirements=job.requirements,
        qualifications=job.qualifications,
    )

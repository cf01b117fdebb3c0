from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Tuple, Union


class ElementCategory(str, Enum):
    KEYWORD = "keyword"
    SKILL = "skill"
    ATTRIBUTE = "attribute"
    EXPERIENCE = "experience"
    CONCEPT = "concept"


class MatchType(str, Enum):
    EXACT = "exact"
    SYNONYM = "synonym"
    RELATED = "related"
    SEMANTIC = "semantic"


class RecommendationType(str, Enum):
    ADD_SKILL = "add_skill"
    ADD_EXPERIENCE = "add_experience"
    REWORD = "reword"
    REFRAME = "reframe"
    EMPHASIZE = "emphasize"
    DEEMPHASIZE = "deemphasize"
    QUANTIFY = "quantify"


class TerminationReason(str, Enum):
    TARGET_REACHED = "target_reached"
    MAX_ROUNDS = "max_rounds"
    NO_IMPROVEMENT = "no_improvement"
    AGENT_FAILURE = "agent_failure"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_whitespace(text: str) -> str:
    return " ".join((text or "").split()).strip()


def normalize_element_text(text: str) -> str:
    """Case-folded, whitespace-collapsed form used as the element identity."""
    return normalize_whitespace(text).casefold()


def _unique_tags(tags: Iterable[str]) -> Tuple[str, ...]:
    # Sets have no stable order; sort them so equal inputs give equal elements.
    if isinstance(tags, (set, frozenset)):
        tags = sorted(tags)
    return tuple(dict.fromkeys(t for t in (tags or ()) if t))


# ----------------------------------------------------------------------
# Elements
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class Span:
    start: int = 0
    end: int = 0


@dataclass(frozen=True)
class Element:
    """
    A tagged span of job-posting or résumé text.
    Identity for deduplication is `normalized_text`.
    """
    text: str
    normalized_text: str = ""
    tags: Tuple[str, ...] = ()
    context: str = ""
    position: Span = field(default_factory=Span)

    def __post_init__(self) -> None:
        if not self.normalized_text:
            object.__setattr__(self, "normalized_text", normalize_element_text(self.text))
        object.__setattr__(self, "tags", _unique_tags(self.tags))

    @property
    def key(self) -> str:
        return self.normalized_text.lower().strip()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "normalized_text": self.normalized_text,
            "tags": list(self.tags),
            "context": self.context,
            "position": {"start": self.position.start, "end": self.position.end},
        }


@dataclass(frozen=True)
class TaggedElement(Element):
    importance: float = 0.5
    semantic_tags: Tuple[str, ...] = ()
    category: ElementCategory = ElementCategory.KEYWORD

    def __post_init__(self) -> None:
        super().__post_init__()
        object.__setattr__(self, "semantic_tags", _unique_tags(self.semantic_tags))
        object.__setattr__(self, "category", ElementCategory(self.category))

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d.update(
            {
                "importance": self.importance,
                "semantic_tags": list(self.semantic_tags),
                "category": self.category.value,
            }
        )
        return d


def as_tagged(element: Element) -> TaggedElement:
    """Lift a plain Element to a TaggedElement with neutral defaults."""
    if isinstance(element, TaggedElement):
        return element
    return TaggedElement(
        text=element.text,
        normalized_text=element.normalized_text,
        tags=element.tags,
        context=element.context,
        position=element.position,
    )


@dataclass(frozen=True)
class SemanticMatch:
    resume_element: Element
    job_element: Element
    match_type: MatchType
    confidence: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "match_type", MatchType(self.match_type))


@dataclass(frozen=True)
class JobTheme:
    name: str
    importance: float
    keywords: Tuple[str, ...] = ()
    rationale: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "importance": self.importance,
            "keywords": list(self.keywords),
            "rationale": self.rationale,
        }


# ----------------------------------------------------------------------
# Scoring output
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class Gap:
    element: TaggedElement
    importance: float
    category: ElementCategory
    impact: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "category", ElementCategory(self.category))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "element": self.element.text,
            "importance": self.importance,
            "category": self.category.value,
            "impact": self.impact,
        }


@dataclass(frozen=True)
class Strength:
    element: Element
    match_type: MatchType
    contribution: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "match_type", MatchType(self.match_type))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "element": self.element.text,
            "match_type": self.match_type.value,
            "contribution": self.contribution,
        }


@dataclass(frozen=True)
class ScoreBreakdown:
    keyword_score: float
    skills_score: float
    attributes_score: float
    experience_score: float
    level_score: float
    weights: Any  # resumefit.config.DimensionWeights
    # Per-dimension explanation payload (stable, deterministic)
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "keyword_score": self.keyword_score,
            "skills_score": self.skills_score,
            "attributes_score": self.attributes_score,
            "experience_score": self.experience_score,
            "level_score": self.level_score,
            "weights": self.weights.as_dict(),
            "details": self.details,
        }


@dataclass(frozen=True)
class MatchResult:
    overall_score: float
    breakdown: ScoreBreakdown
    gaps: List[Gap]
    strengths: List[Strength]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_score": self.overall_score,
            "breakdown": self.breakdown.to_dict(),
            "gaps": [g.to_dict() for g in self.gaps],
            "strengths": [s.to_dict() for s in self.strengths],
        }


# ----------------------------------------------------------------------
# Recommendations (one dataclass per variant)
# ----------------------------------------------------------------------

@dataclass(frozen=True, kw_only=True)
class _RecommendationBase:
    type: ClassVar[RecommendationType]

    element: str
    importance: float
    suggestion: str
    job_requirement_reference: str
    explanation: str
    example: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "type": self.type.value,
            "element": self.element,
            "importance": self.importance,
            "suggestion": self.suggestion,
            "job_requirement_reference": self.job_requirement_reference,
            "explanation": self.explanation,
        }
        if self.example is not None:
            d["example"] = self.example
        return d


@dataclass(frozen=True, kw_only=True)
class AddSkill(_RecommendationBase):
    type: ClassVar[RecommendationType] = RecommendationType.ADD_SKILL


@dataclass(frozen=True, kw_only=True)
class AddExperience(_RecommendationBase):
    type: ClassVar[RecommendationType] = RecommendationType.ADD_EXPERIENCE
    category: ElementCategory


@dataclass(frozen=True, kw_only=True)
class Reword(_RecommendationBase):
    """
    Part of the recommendation vocabulary agents exchange. The generator
    never builds it; partial matches become Reframe.
    """
    type: ClassVar[RecommendationType] = RecommendationType.REWORD
    resume_text: str


@dataclass(frozen=True, kw_only=True)
class Reframe(_RecommendationBase):
    type: ClassVar[RecommendationType] = RecommendationType.REFRAME
    resume_text: str
    confidence: float


@dataclass(frozen=True, kw_only=True)
class Emphasize(_RecommendationBase):
    type: ClassVar[RecommendationType] = RecommendationType.EMPHASIZE
    resume_text: str


@dataclass(frozen=True, kw_only=True)
class Quantify(_RecommendationBase):
    type: ClassVar[RecommendationType] = RecommendationType.QUANTIFY
    resume_text: str


@dataclass(frozen=True, kw_only=True)
class Deemphasize(_RecommendationBase):
    type: ClassVar[RecommendationType] = RecommendationType.DEEMPHASIZE


Recommendation = Union[AddSkill, AddExperience, Reword, Reframe, Emphasize, Quantify, Deemphasize]


@dataclass(frozen=True)
class RecommendationMetadata:
    iteration_round: int
    current_score: float
    target_score: float
    themes: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Recommendations:
    summary: str
    priority: List[Recommendation]
    optional: List[Recommendation]
    rewording: List[Recommendation]
    metadata: RecommendationMetadata

    def all(self) -> List[Recommendation]:
        return [*self.priority, *self.optional, *self.rewording]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary,
            "priority": [r.to_dict() for r in self.priority],
            "optional": [r.to_dict() for r in self.optional],
            "rewording": [r.to_dict() for r in self.rewording],
            "metadata": {
                "iteration_round": self.metadata.iteration_round,
                "current_score": self.metadata.current_score,
                "target_score": self.metadata.target_score,
                "themes": list(self.metadata.themes),
            },
        }


# ----------------------------------------------------------------------
# Documents and runs
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class JobPosting:
    id: str
    title: str
    description: str
    company: str = ""
    requirements: str = ""
    qualifications: str = ""

    def full_text(self) -> str:
        parts = [self.title, self.description, self.requirements, self.qualifications]
        return "\n\n".join(p.strip() for p in parts if p and p.strip())


@dataclass(frozen=True)
class ResumeDocument:
    id: str
    content: str
    format: str = "text"
    version: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "content": self.content, "format": self.format, "version": self.version}


@dataclass(frozen=True)
class JobTarget:
    """Everything the controller needs about the job side of a run."""
    job_id: str
    elements: Tuple[TaggedElement, ...]
    themes: Tuple[JobTheme, ...] = ()


@dataclass(frozen=True)
class IterationSnapshot:
    round: int
    score_before: float
    score_after: float
    recommendations: Recommendations
    resume_version: int
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "round": self.round,
            "score_before": self.score_before,
            "score_after": self.score_after,
            "recommendations": self.recommendations.to_dict(),
            "resume_version": self.resume_version,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class OptimizationMetrics:
    initial_score: float
    final_score: float
    improvement: float
    iteration_count: int


@dataclass(frozen=True)
class OptimizationResult:
    metrics: OptimizationMetrics
    iterations: List[IterationSnapshot]
    termination_reason: TerminationReason
    final_resume: ResumeDocument
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metrics": {
                "initial_score": self.metrics.initial_score,
                "final_score": self.metrics.final_score,
                "improvement": self.metrics.improvement,
                "iteration_count": self.metrics.iteration_count,
            },
            "iterations": [s.to_dict() for s in self.iterations],
            "termination_reason": self.termination_reason.value,
            "final_resume": self.final_resume.to_dict(),
            "error": self.error,
        }

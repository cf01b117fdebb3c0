from __future__ import annotations

from typing import Any, Dict, List, Sequence

from resumefit.config import DIMENSIONS, OptimizerConfig
from resumefit.models import (
    Element,
    Gap,
    MatchResult,
    ScoreBreakdown,
    SemanticMatch,
    Strength,
    TaggedElement,
    as_tagged,
)

from .scoring import clamp01, dimension_for, is_unit_interval, match_quality, safe_importance


def best_matches(matches: Sequence[SemanticMatch]) -> Dict[str, SemanticMatch]:
    """Highest-confidence match per job element (first one wins ties)."""
    best: Dict[str, SemanticMatch] = {}
    for m in matches:
        if not is_unit_interval(m.confidence):
            continue
        key = m.job_element.key
        current = best.get(key)
        if current is None or m.confidence > current.confidence:
            best[key] = m
    return best


class Scorer:
    """
    Weighted multi-dimension scoring of a résumé against job elements.

    Each dimension score is the importance-weighted mean match quality of
    the job elements that land in it; a dimension with no job elements
    scores 0. overall = Σ weight[d] * score[d].
    """

    def __init__(self, config: OptimizerConfig) -> None:
        self._config = config

    @property
    def config(self) -> OptimizerConfig:
        return self._config

    def score(
            self,
            resume_elements: Sequence[Element],
            job_elements: Sequence[Element],
            matches: Sequence[SemanticMatch],
    ) -> MatchResult:
        weights = self._config.weights
        threshold = self._config.acceptance_threshold

        resume_keys = {el.key for el in resume_elements}
        usable = [m for m in matches if m.resume_element.key in resume_keys]
        best = best_matches(usable)

        credit = {d: 0.0 for d in DIMENSIONS}
        possible = {d: 0.0 for d in DIMENSIONS}
        counts = {d: 0 for d in DIMENSIONS}
        gaps: List[Gap] = []
        strengths: List[Strength] = []

        for raw in job_elements:
            job_el: TaggedElement = as_tagged(raw)
            importance = safe_importance(job_el)
            dim = dimension_for(job_el)
            weight = weights.weight_for(dim)

            match = best.get(job_el.key)
            quality = match_quality(match) if match is not None else 0.0

            credit[dim] += importance * quality
            possible[dim] += importance
            counts[dim] += 1

            if match is None or quality < threshold:
                gaps.append(
                    Gap(
                        element=job_el,
                        importance=importance,
                        category=job_el.category,
                        impact=clamp01(importance * weight * (1.0 - quality)),
                    )
                )
            else:
                strengths.append(
                    Strength(
                        element=match.resume_element,
                        match_type=match.match_type,
                        contribution=clamp01(match.confidence * weight),
                    )
                )

        scores = {d: (clamp01(credit[d] / possible[d]) if possible[d] > 0 else 0.0) for d in DIMENSIONS}
        overall = clamp01(sum(weights.weight_for(d) * scores[d] for d in DIMENSIONS))

        # Stable sort: importance desc, then impact desc
        gaps.sort(key=lambda g: (-g.importance, -g.impact))
        strengths.sort(key=lambda s: -s.contribution)

        details: Dict[str, Any] = {
            "dimensions": {
                d: {"elements": counts[d], "credit": round(credit[d], 4), "possible": round(possible[d], 4)}
                for d in DIMENSIONS
            },
            "acceptance_threshold": threshold,
            "matched_job_elements": len(strengths),
        }

        breakdown = ScoreBreakdown(
            keyword_score=scores["keywords"],
            skills_score=scores["skills"],
            attributes_score=scores["attributes"],
            experience_score=scores["experience"],
            level_score=scores["level"],
            weights=weights,
            details=details,
        )
        return MatchResult(overall_score=overall, breakdown=breakdown, gaps=gaps, strengths=strengths)

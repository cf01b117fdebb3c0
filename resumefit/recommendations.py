"""
resumefit/recommendations.py

Turns a MatchResult (gaps, strengths) plus the raw SemanticMatches into
prioritized, explained recommendations.

Lists:
- priority:  add_skill / add_experience for high-importance gaps
- optional:  the same for medium-importance gaps, then up to 3 deemphasize
             hints for résumé content unrelated to any job theme
- rewording: reframe for partial matches, quantify/emphasize for strong
             matches on important requirements

Every recommendation's job_requirement_reference and explanation contain
its element text.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Set, Tuple, assert_never

from resumefit.config import OptimizerConfig
from resumefit.core.text_processing import contains_digit, shares_token, tokenize, tokens_from_list
from resumefit.gap import prioritize_gaps
from resumefit.matching.engine import best_matches
from resumefit.matching.scoring import DEFAULT_IMPORTANCE, is_unit_interval
from resumefit.models import (
    AddExperience,
    AddSkill,
    Deemphasize,
    Element,
    ElementCategory,
    Emphasize,
    Gap,
    JobTheme,
    MatchResult,
    Quantify,
    Recommendation,
    RecommendationMetadata,
    Recommendations,
    Reframe,
    Reword,
    SemanticMatch,
    TaggedElement,
)

PARTIAL_MATCH_RANGE = (0.3, 0.7)
STRONG_MATCH_CONFIDENCE = 0.7
EMPHASIS_MIN_IMPORTANCE = 0.6
CRITICAL_IMPORTANCE = 0.8
MAX_DEEMPHASIZE = 3
DEEMPHASIZE_IMPORTANCE = 0.3
SUMMARY_TOP_N = 3

_SUGGESTIONS: Dict[ElementCategory, str] = {
    ElementCategory.SKILL: 'Highlight or reframe existing experience to make "{x}" explicit; '
                           "if missing, add it to skills or demonstrate it in projects",
    ElementCategory.EXPERIENCE: 'Surface experience that aligns with "{x}" in your work history or projects; '
                                "if missing, add a relevant example",
    ElementCategory.ATTRIBUTE: 'Emphasize "{x}" in your summary or through specific accomplishments '
                               "if you already demonstrate it",
    ElementCategory.KEYWORD: 'Use "{x}" or closely aligned wording where it already fits your experience',
    ElementCategory.CONCEPT: 'Demonstrate familiarity with "{x}" using existing projects, publications, or certifications',
}

_EXAMPLES: Dict[ElementCategory, str] = {
    ElementCategory.SKILL: 'Example: "Proficient in {x}" or "Developed solutions using {x}"',
    ElementCategory.EXPERIENCE: 'Example: "Led {x} initiatives that resulted in [specific outcome]"',
    ElementCategory.ATTRIBUTE: 'Example: "Demonstrated {x} by [specific achievement]"',
    ElementCategory.KEYWORD: 'Example: Naturally mention "{x}" in context of relevant projects',
    ElementCategory.CONCEPT: 'Example: "Applied {x} principles to [specific project or outcome]"',
}


def _reference(text: str, category: ElementCategory, importance: float) -> str:
    return f'Job requirement: "{text}" ({category.value}, importance: {importance:.2f})'


def _tier(importance: float) -> str:
    if importance >= 0.9:
        return "critical"
    if importance >= 0.8:
        return "high-priority"
    return "important"


def _missing_explanation(text: str, category: ElementCategory, importance: float) -> str:
    explanation = f'The job posting lists "{text}" as a {_tier(importance)} {category.value} requirement'
    if importance >= 0.9:
        explanation += ". This is likely a must-have qualification for the role"
    elif importance >= 0.8:
        explanation += ". This is a key qualification that will significantly impact your candidacy"
    elif importance >= 0.6:
        explanation += ". Including this will strengthen your application"
    else:
        explanation += ". Adding this would improve your match score"
    return explanation + ". If you already have related experience, make it explicit using the job's terminology."


def missing_element_recommendations(gaps: Sequence[Gap]) -> List[Recommendation]:
    out: List[Recommendation] = []
    for gap in gaps:
        text = gap.element.text
        category = gap.category
        common = dict(
            element=text,
            importance=gap.importance,
            suggestion=_SUGGESTIONS[category].format(x=text),
            example=_EXAMPLES[category].format(x=text),
            job_requirement_reference=_reference(text, category, gap.importance),
            explanation=_missing_explanation(text, category, gap.importance),
        )
        if category is ElementCategory.SKILL:
            out.append(AddSkill(**common))
        else:
            out.append(AddExperience(category=category, **common))
    return out


def _requirement_weight(job_element: Element, gaps_by_key: Dict[str, Gap]) -> Tuple[float, ElementCategory]:
    """Importance and category of a job element: from its gap if any, else from the element."""
    gap = gaps_by_key.get(job_element.key)
    if gap is not None:
        return gap.importance, gap.category
    if isinstance(job_element, TaggedElement):
        imp = job_element.importance if is_unit_interval(job_element.importance) else DEFAULT_IMPORTANCE
        return imp, job_element.category
    return DEFAULT_IMPORTANCE, ElementCategory.SKILL


def rewording_recommendations(matches: Sequence[SemanticMatch], gaps: Sequence[Gap]) -> List[Recommendation]:
    low, high = PARTIAL_MATCH_RANGE
    gaps_by_key = {g.element.key: g for g in gaps}
    seen: Set[Tuple[str, str]] = set()
    out: List[Recommendation] = []
    for m in matches:
        if not is_unit_interval(m.confidence) or not low <= m.confidence <= high:
            continue
        pair = (m.job_element.key, m.resume_element.key)
        if pair in seen:
            continue
        seen.add(pair)

        job_text = m.job_element.text
        resume_text = m.resume_element.text
        importance, category = _requirement_weight(m.job_element, gaps_by_key)
        out.append(
            Reframe(
                element=job_text,
                importance=importance,
                suggestion=f'Strengthen match for "{job_text}" by using more specific or direct language',
                example=f'Before: "{resume_text}"\nAfter: "{job_text}" or similar phrasing that directly addresses the requirement',
                job_requirement_reference=_reference(job_text, category, importance),
                explanation=(
                    f'Your resume mentions "{resume_text}" which partially matches the job requirement '
                    f'"{job_text}" ({m.confidence * 100:.0f}% match). Using more direct language that closely '
                    "aligns with the job posting will improve your match score and make it clearer that you "
                    "meet this requirement."
                ),
                resume_text=resume_text,
                confidence=m.confidence,
            )
        )
    return out


def emphasis_recommendations(matches: Sequence[SemanticMatch], gaps: Sequence[Gap]) -> List[Recommendation]:
    gaps_by_key = {g.element.key: g for g in gaps}
    out: List[Recommendation] = []
    for m in best_matches(matches).values():
        if m.confidence <= STRONG_MATCH_CONFIDENCE:
            continue
        importance, category = _requirement_weight(m.job_element, gaps_by_key)
        if importance < EMPHASIS_MIN_IMPORTANCE:
            continue

        job_text = m.job_element.text
        resume_text = m.resume_element.text
        reference = _reference(job_text, category, importance)
        if not contains_digit(resume_text):
            out.append(
                Quantify(
                    element=job_text,
                    importance=importance,
                    suggestion=f'Add specific metrics or quantifiable results to strengthen "{job_text}"',
                    example=(
                        f'Before: "{resume_text}"\nAfter: Add metrics like "Led team of 5", '
                        '"Increased efficiency by 30%", or "Managed $2M budget"'
                    ),
                    job_requirement_reference=reference,
                    explanation=(
                        f'Your resume mentions "{resume_text}" which matches the job requirement "{job_text}". '
                        "Adding quantifiable metrics will make this experience more concrete. The job posting "
                        f"treats it as an important qualification (importance: {importance:.2f})."
                    ),
                    resume_text=resume_text,
                )
            )
        else:
            out.append(
                Emphasize(
                    element=job_text,
                    importance=importance,
                    suggestion=f'Emphasize "{job_text}" more prominently in your resume',
                    example="Consider moving this to a more prominent position or expanding on the impact",
                    job_requirement_reference=reference,
                    explanation=(
                        f'Your resume demonstrates "{job_text}", an important job requirement '
                        f"(importance: {importance:.2f}). Since the experience is already quantified, "
                        "give it a more prominent position so reviewers see it early."
                    ),
                    resume_text=resume_text,
                )
            )
    return out


def theme_tokens(themes: Sequence[JobTheme]) -> Set[str]:
    out: Set[str] = set()
    for theme in themes:
        out |= tokenize(theme.name)
        out |= tokens_from_list(theme.keywords)
    return out


def deemphasize_recommendations(
        resume_elements: Sequence[Element],
        matches: Sequence[SemanticMatch],
        themes: Sequence[JobTheme],
) -> List[Recommendation]:
    if not themes:
        return []
    targets = theme_tokens(themes)
    theme_names = ", ".join(t.name for t in themes[:3])
    matched = {m.resume_element.key for m in matches}

    out: List[Recommendation] = []
    for el in resume_elements:
        if len(out) >= MAX_DEEMPHASIZE:
            break
        if el.key in matched:
            continue
        if not tokenize(el.text) or shares_token(el.text, targets):
            continue
        out.append(
            Deemphasize(
                element=el.text,
                importance=DEEMPHASIZE_IMPORTANCE,
                suggestion=f'De-emphasize "{el.text}" to keep the resume focused on the job\'s core themes',
                job_requirement_reference=f'Resume content "{el.text}" matches no job requirement or theme ({theme_names})',
                explanation=(
                    f'"{el.text}" does not align with the job\'s primary themes. '
                    "Consider shortening it or moving it lower to keep the resume concise."
                ),
            )
        )
    return out


def _summary_verb(rec: Recommendation) -> str:
    match rec:
        case AddSkill() | AddExperience():
            return "Add"
        case Reword() | Reframe() | Emphasize() | Quantify() | Deemphasize():
            return "Improve"
        case _:
            assert_never(rec)


def build_summary(
        match_result: MatchResult,
        iteration_round: int,
        target_score: float,
        top: Sequence[Recommendation],
        themes: Sequence[JobTheme] = (),
) -> str:
    score = match_result.overall_score
    summary = (
        f"Iteration {iteration_round}: Current match score is {score * 100:.1f}% "
        f"(target: {target_score * 100:.1f}%). "
    )
    if score >= target_score:
        summary += "Target achieved! "
    else:
        summary += f"Gap to target: {(target_score - score) * 100:.1f}%. "

    critical = sum(1 for g in match_result.gaps if g.importance > CRITICAL_IMPORTANCE)
    if critical:
        summary += f"{critical} critical requirement{'s' if critical > 1 else ''} missing. "

    top = list(top)[:SUMMARY_TOP_N]
    if top:
        items = "; ".join(f'{i}) {_summary_verb(rec)} "{rec.element}"' for i, rec in enumerate(top, start=1))
        summary += f"Top {len(top)} recommendation{'s' if len(top) > 1 else ''}: {items}"

    if themes:
        names = ", ".join(t.name for t in sorted(themes, key=lambda t: -t.importance)[:3])
        summary += f" Key themes: {names}."
    return summary.strip()


class RecommendationGenerator:
    def __init__(self, config: OptimizerConfig) -> None:
        self._config = config

    def generate(
            self,
            match_result: MatchResult,
            matches: Sequence[SemanticMatch],
            iteration_round: int,
            target_score: Optional[float] = None,
            themes: Sequence[JobTheme] = (),
            resume_elements: Optional[Sequence[Element]] = None,
    ) -> Recommendations:
        target = self._config.target_score if target_score is None else target_score
        bands = prioritize_gaps(match_result.gaps)
        targets = theme_tokens(themes)

        def theme_first(rec: Recommendation) -> Tuple[int, float]:
            return (0 if shares_token(rec.element, targets) else 1, -rec.importance)

        priority = sorted(missing_element_recommendations(bands.high), key=theme_first)
        medium = sorted(missing_element_recommendations(bands.medium), key=theme_first)
        rewording = sorted(
            rewording_recommendations(matches, match_result.gaps)
            + emphasis_recommendations(matches, match_result.gaps),
            key=theme_first,
        )
        deemphasize = sorted(
            deemphasize_recommendations(resume_elements or (), matches, themes),
            key=lambda r: -r.importance,
        )

        summary = build_summary(
            match_result,
            iteration_round,
            target,
            [*priority, *medium, *rewording],
            themes,
        )
        return Recommendations(
            summary=summary,
            priority=priority,
            optional=[*medium, *deemphasize],
            rewording=rewording,
            metadata=RecommendationMetadata(
                iteration_round=iteration_round,
                current_score=match_result.overall_score,
                target_score=target,
                themes=tuple(t.name for t in themes),
            ),
        )

from __future__ import annotations

import math
import re
from typing import Dict, List, Optional, Sequence, Tuple

from resumefit.models import ElementCategory, MatchType, SemanticMatch, TaggedElement

DEFAULT_IMPORTANCE = 0.5

# Base quality per match type; multiplied by the match confidence.
MATCH_TYPE_QUALITY: Dict[MatchType, float] = {
    MatchType.EXACT: 1.0,
    MatchType.SYNONYM: 0.95,
    MatchType.RELATED: 0.7,
    MatchType.SEMANTIC: 0.6,
}

# (indicator phrases, importance) from most to least important.
# Midpoints of each level's range; the highest level found wins.
IMPORTANCE_INDICATORS: Tuple[Tuple[Tuple[str, ...], float], ...] = (
    (("required", "must have", "essential", "mandatory", "critical", "necessary"), 0.95),
    (("strongly preferred", "highly desired", "important", "strongly recommended"), 0.75),
    (("desired", "recommended", "should have"), 0.55),
    (("preferred",), 0.45),
    (("nice to have", "bonus", "plus", "optional"), 0.4),
)


def clamp01(x: float) -> float:
    return 0.0 if x < 0.0 else (1.0 if x > 1.0 else x)


def is_unit_interval(x: float) -> bool:
    return isinstance(x, (int, float)) and not math.isnan(x) and 0.0 <= x <= 1.0


def safe_importance(element: TaggedElement) -> float:
    imp = getattr(element, "importance", DEFAULT_IMPORTANCE)
    return float(imp) if is_unit_interval(imp) else DEFAULT_IMPORTANCE


def match_quality(match: SemanticMatch) -> float:
    conf = match.confidence if is_unit_interval(match.confidence) else 0.0
    return clamp01(MATCH_TYPE_QUALITY.get(match.match_type, 0.0) * conf)


def dimension_for(element: TaggedElement) -> str:
    """
    Which weighted dimension an element's credit lands in.
    Seniority signals count toward `level`; concepts are scored as keywords.
    """
    tags = set(element.tags) | set(element.semantic_tags)
    if "experience_level" in tags or "seniority" in tags:
        return "level"
    return {
        ElementCategory.KEYWORD: "keywords",
        ElementCategory.CONCEPT: "keywords",
        ElementCategory.SKILL: "skills",
        ElementCategory.ATTRIBUTE: "attributes",
        ElementCategory.EXPERIENCE: "experience",
    }[element.category]


# --- Importance heuristic (used when extraction gives no usable importance) ---

def _indicator_found(keyword: str, context: str, element_text: str) -> bool:
    kw = re.escape(keyword)
    el = re.escape(element_text)
    pattern = rf"{kw}[^.]*{el}|{el}[^.]*{kw}"
    return re.search(pattern, context, re.IGNORECASE) is not None


def assign_importance(text: str, context: str, position: Optional[float] = None) -> float:
    """
    Deterministic importance for one job element.

    1. Explicit indicator phrases in the same sentence as the element win
       (highest level found).
    2. Otherwise infer from a 0.5 baseline:
       - earlier elements get up to +0.2 (position 0.0 = start, 1.0 = end)
       - requirement/qualification sections +0.1
       - nice to have/bonus sections -0.2
       - repeated mentions up to +0.2
    """
    ctx = (context or "").lower()
    el = (text or "").lower().strip()
    if not el:
        return DEFAULT_IMPORTANCE

    found = [
        score
        for keywords, score in IMPORTANCE_INDICATORS
        for kw in keywords
        if _indicator_found(kw, ctx, el)
    ]
    if found:
        return clamp01(max(found))

    score = DEFAULT_IMPORTANCE
    if position is not None:
        score += (1.0 - clamp01(position)) * 0.2
    if "requirement" in ctx or "qualification" in ctx:
        score += 0.1
    if "nice to have" in ctx or "bonus" in ctx:
        score -= 0.2
    frequency = ctx.count(el)
    if frequency > 1:
        score += min(0.1 * (frequency - 1), 0.2)
    return clamp01(score)


def relative_position(index: int, total: int) -> float:
    return index / (total - 1) if total > 1 else 0.5


def assign_importance_scores(elements: Sequence[TaggedElement], provided: Sequence[Optional[float]]) -> List[float]:
    """
    Importance per element: the provided value when it is a valid unit-interval
    number, otherwise the heuristic.
    """
    total = len(elements)
    out: List[float] = []
    for idx, (el, given) in enumerate(zip(elements, provided)):
        if given is not None and is_unit_interval(given):
            out.append(float(given))
        else:
            out.append(assign_importance(el.text, el.context, relative_position(idx, total)))
    return out

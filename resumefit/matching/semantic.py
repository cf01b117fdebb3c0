from __future__ import annotations

from typing import Annotated, Dict, FrozenSet, List, Literal, Optional, Sequence

from pydantic import BaseModel, Field

from resumefit.agents.validation import validate
from resumefit.llm.completion import CompletionOptions, TextCompletionService, parse_json_response
from resumefit.llm.prompt import MATCH_SYSTEM_PROMPT, build_match_prompt
from resumefit.log import log_debug, log_warning
from resumefit.models import Element, MatchType, SemanticMatch

EXACT_CONFIDENCE = 1.0
SYNONYM_CONFIDENCE = 0.95

# Completion-backed matches below this are noise.
MIN_COMPLETION_CONFIDENCE = 0.3

# Each group is a set of interchangeable normalized terms.
SYNONYM_GROUPS: Sequence[FrozenSet[str]] = (
    frozenset({"javascript", "js", "ecmascript"}),
    frozenset({"typescript", "ts"}),
    frozenset({"python", "py"}),
    frozenset({"react", "reactjs", "react.js"}),
    frozenset({"vue", "vuejs", "vue.js"}),
    frozenset({"angular", "angularjs"}),
    frozenset({"postgresql", "postgres", "psql"}),
    frozenset({"mongodb", "mongo"}),
    frozenset({"kubernetes", "k8s"}),
    frozenset({"leadership", "led team", "managed team", "team lead"}),
    frozenset({"communication", "communicate", "communicating"}),
    frozenset({"problem solving", "problem-solving", "troubleshooting"}),
    frozenset({"senior", "sr", "lead", "principal"}),
    frozenset({"junior", "jr", "entry level", "entry-level"}),
)


def _build_index(groups: Sequence[FrozenSet[str]]) -> Dict[str, FrozenSet[str]]:
    index: Dict[str, FrozenSet[str]] = {}
    for group in groups:
        for term in group:
            index[term] = group
    return index


_SYNONYM_INDEX = _build_index(SYNONYM_GROUPS)


def are_synonyms(a: str, b: str) -> bool:
    a, b = a.lower().strip(), b.lower().strip()
    if a == b:
        return False
    group = _SYNONYM_INDEX.get(a)
    return group is not None and b in group


class _CompletionMatch(BaseModel):
    jobIndex: Annotated[int, Field(ge=0)]
    resumeIndex: Annotated[int, Field(ge=0)]
    matchType: Literal["exact", "synonym", "related", "semantic"] = "semantic"
    confidence: Annotated[float, Field(ge=0.0, le=1.0, allow_inf_nan=False)]


class SemanticMatcher:
    """
    Produces SemanticMatches between résumé and job elements:
    exact normalized text, then the synonym table, then one batched
    completion call for whatever is still unmatched.

    Without a completion service (or when it fails) only the deterministic
    matches are returned.
    """

    def __init__(self, completion: Optional[TextCompletionService] = None) -> None:
        self._completion = completion

    def find_matches(
            self,
            resume_elements: Sequence[Element],
            job_elements: Sequence[Element],
    ) -> List[SemanticMatch]:
        if not resume_elements or not job_elements:
            return []

        by_key: Dict[str, Element] = {}
        for el in resume_elements:
            by_key.setdefault(el.key, el)

        matches: List[SemanticMatch] = []
        remaining: List[Element] = []
        for job_el in job_elements:
            exact = by_key.get(job_el.key)
            if exact is not None:
                matches.append(SemanticMatch(exact, job_el, MatchType.EXACT, EXACT_CONFIDENCE))
                continue
            synonym = next((r for r in resume_elements if are_synonyms(job_el.key, r.key)), None)
            if synonym is not None:
                matches.append(SemanticMatch(synonym, job_el, MatchType.SYNONYM, SYNONYM_CONFIDENCE))
                continue
            remaining.append(job_el)

        if remaining and self._completion is not None:
            matches.extend(self._completion_matches(resume_elements, remaining))
        return matches

    def _completion_matches(
            self,
            resume_elements: Sequence[Element],
            job_elements: Sequence[Element],
    ) -> List[SemanticMatch]:
        prompt = build_match_prompt(job_elements, resume_elements)
        try:
            raw = self._completion.complete(prompt, CompletionOptions(system=MATCH_SYSTEM_PROMPT))
            data = parse_json_response(raw)
        except Exception as exc:
            log_warning(f"Semantic matching unavailable, using deterministic matches only: {exc}")
            return []

        items = data.get("matches") if isinstance(data, dict) else None
        if not isinstance(items, list):
            log_warning("Semantic matching reply had no 'matches' list")
            return []

        out: List[SemanticMatch] = []
        for item in items:
            checked = validate(_CompletionMatch, item)
            if not checked.ok:
                log_debug(f"Dropped malformed match item: {item!r}")
                continue
            m = checked.value
            if m.jobIndex >= len(job_elements) or m.resumeIndex >= len(resume_elements):
                log_debug(f"Dropped match with out-of-range index: {item!r}")
                continue
            if m.confidence < MIN_COMPLETION_CONFIDENCE:
                continue
            out.append(
                SemanticMatch(
                    resume_element=resume_elements[m.resumeIndex],
                    job_element=job_elements[m.jobIndex],
                    match_type=MatchType(m.matchType),
                    confidence=m.confidence,
                )
            )
        return out

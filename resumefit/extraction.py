"""
resumefit/extraction.py

Completion-backed extraction of job/résumé elements and job themes.

Key design points:
- The completion reply is untrusted: every element item is validated
  individually and malformed items are dropped, not repaired.
- Job importance comes from the reply when it is a valid [0,1] number and
  from the deterministic assign_importance() heuristic otherwise.
- Output is always deduplicated (max importance wins).
- Theme extraction is advisory: any failure yields no themes.
"""
from __future__ import annotations

import math
from dataclasses import replace
from typing import Annotated, Any, List, Optional, Sequence

from pydantic import BaseModel, Field, StringConstraints

from resumefit.agents.validation import validate
from resumefit.errors import ExtractionError
from resumefit.llm.completion import CompletionOptions, TextCompletionService, parse_json_response
from resumefit.llm.prompt import (
    JOB_ELEMENTS_SYSTEM_PROMPT,
    RESUME_ELEMENTS_SYSTEM_PROMPT,
    THEME_SYSTEM_PROMPT,
    build_job_elements_prompt,
    build_resume_elements_prompt,
    build_theme_prompt,
)
from resumefit.log import log_debug, log_info, log_warning
from resumefit.matching.dedup import deduplicate_elements
from resumefit.matching.scoring import assign_importance_scores, clamp01
from resumefit.models import (
    ElementCategory,
    JobPosting,
    JobTheme,
    ResumeDocument,
    Span,
    TaggedElement,
    normalize_element_text,
)

_Text = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class _Position(BaseModel):
    start: Annotated[int, Field(ge=0)] = 0
    end: Annotated[int, Field(ge=0)] = 0


class _ExtractedElement(BaseModel):
    text: _Text
    normalized_text: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    category: ElementCategory = ElementCategory.KEYWORD
    context: str = ""
    importance: Optional[float] = None
    semantic_tags: List[str] = Field(default_factory=list)
    position: _Position = Field(default_factory=_Position)


class _ExtractedTheme(BaseModel):
    name: _Text
    importance: Optional[float] = None
    keywords: List[str] = Field(default_factory=list)
    rationale: str = ""


def _items(data: Any, key: str) -> List[Any]:
    items = data.get(key) if isinstance(data, dict) else None
    if not isinstance(items, list):
        raise ExtractionError(f"Completion reply has no '{key}' list.")
    return items


class ElementExtractor:
    """Turns job postings and résumé documents into TaggedElements."""

    def __init__(self, completion: TextCompletionService) -> None:
        self._completion = completion

    def extract_job(self, job: JobPosting) -> List[TaggedElement]:
        elements = self._extract(
            build_job_elements_prompt(job),
            JOB_ELEMENTS_SYSTEM_PROMPT,
            score_importance=True,
        )
        log_info(f"Extracted {len(elements)} job elements from {job.id}")
        return elements

    def extract_resume(self, resume: ResumeDocument) -> List[TaggedElement]:
        elements = self._extract(
            build_resume_elements_prompt(resume.content),
            RESUME_ELEMENTS_SYSTEM_PROMPT,
            score_importance=False,
        )
        log_debug(f"Extracted {len(elements)} resume elements from {resume.id} v{resume.version}")
        return elements

    def _extract(self, prompt: str, system: str, *, score_importance: bool) -> List[TaggedElement]:
        try:
            raw = self._completion.complete(prompt, CompletionOptions(system=system, max_tokens=4096))
            data = parse_json_response(raw)
        except Exception as exc:
            # Services may raise transport errors of their own, not only CompletionError.
            raise ExtractionError(f"Element extraction failed: {exc}") from exc

        parsed: List[_ExtractedElement] = []
        for item in _items(data, "elements"):
            checked = validate(_ExtractedElement, item)
            if checked.ok:
                parsed.append(checked.value)
            else:
                log_debug(f"Dropped malformed element: {item!r}")

        elements = [
            TaggedElement(
                text=p.text,
                normalized_text=normalize_element_text(p.normalized_text or p.text),
                tags=p.tags,
                context=p.context.strip(),
                position=Span(p.position.start, p.position.end),
                semantic_tags=p.semantic_tags,
                category=p.category,
            )
            for p in parsed
        ]
        if score_importance:
            importances = assign_importance_scores(elements, [p.importance for p in parsed])
            elements = [replace(el, importance=imp) for el, imp in zip(elements, importances)]
        return deduplicate_elements(elements)


class ThemeExtractor:
    def __init__(self, completion: TextCompletionService) -> None:
        self._completion = completion

    def extract(self, job: JobPosting, elements: Sequence[TaggedElement]) -> List[JobTheme]:
        try:
            raw = self._completion.complete(
                build_theme_prompt(job, elements),
                CompletionOptions(system=THEME_SYSTEM_PROMPT),
            )
            items = _items(parse_json_response(raw), "themes")
        except Exception as exc:
            log_warning(f"Theme extraction skipped: {exc}")
            return []

        themes: List[JobTheme] = []
        for item in items:
            checked = validate(_ExtractedTheme, item)
            if not checked.ok:
                log_debug(f"Dropped malformed theme: {item!r}")
                continue
            t = checked.value
            importance = 0.5 if t.importance is None or math.isnan(t.importance) else clamp01(t.importance)
            themes.append(
                JobTheme(
                    name=t.name,
                    importance=importance,
                    keywords=tuple(k.strip().lower() for k in t.keywords if k and k.strip()),
                    rationale=t.rationale.strip(),
                )
            )
        themes.sort(key=lambda th: -th.importance)
        return themes

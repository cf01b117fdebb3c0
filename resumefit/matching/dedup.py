from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, List, Sequence, TypeVar

from resumefit.models import Element, TaggedElement

E = TypeVar("E", bound=Element)

CONTEXT_SEPARATOR = " | "


def _group(elements: Sequence[E]) -> Dict[str, List[E]]:
    # dict preserves first-seen order of keys
    groups: Dict[str, List[E]] = {}
    for el in elements:
        groups.setdefault(el.key, []).append(el)
    return groups


def _merge_contexts(group: Sequence[Element]) -> str:
    seen: List[str] = []
    for el in group:
        ctx = (el.context or "").strip()
        if ctx and ctx not in seen:
            seen.append(ctx)
    return CONTEXT_SEPARATOR.join(seen)


def _consolidate(group: Sequence[E]) -> E:
    first = group[0]
    if len(group) == 1:
        return first

    tags: List[str] = []
    for el in group:
        tags.extend(el.tags)

    changes = {
        "tags": tuple(dict.fromkeys(tags)),
        "context": _merge_contexts(group),
    }
    if isinstance(first, TaggedElement):
        semantic: List[str] = []
        for el in group:
            semantic.extend(getattr(el, "semantic_tags", ()))
        changes["semantic_tags"] = tuple(dict.fromkeys(semantic))
        changes["importance"] = max(getattr(el, "importance", 0.0) for el in group)

    return replace(first, **changes)


def deduplicate_elements(elements: Sequence[E]) -> List[E]:
    """
    One element per distinct normalized text, in first-seen order.

    - tags: union across duplicates
    - context: distinct non-empty contexts joined with " | "
    - position: first occurrence
    - importance (TaggedElement): maximum across duplicates

    The input is never mutated; running this on its own output is a no-op.
    """
    return [_consolidate(group) for group in _group(elements).values()]


def count_duplicates(elements: Sequence[Element]) -> int:
    return len(elements) - len(_group(elements))


def find_duplicate_groups(elements: Sequence[E]) -> Dict[str, List[E]]:
    return {key: group for key, group in _group(elements).items() if len(group) > 1}


def has_duplicates(elements: Sequence[Element]) -> bool:
    return count_duplicates(elements) > 0


@dataclass(frozen=True)
class DeduplicationStats:
    total: int
    unique: int
    duplicates: int
    groups: int

    @property
    def reduction(self) -> float:
        return (self.duplicates / self.total) if self.total else 0.0


def deduplication_stats(elements: Sequence[Element]) -> DeduplicationStats:
    groups = _group(elements)
    return DeduplicationStats(
        total=len(elements),
        unique=len(groups),
        duplicates=len(elements) - len(groups),
        groups=sum(1 for g in groups.values() if len(g) > 1),
    )

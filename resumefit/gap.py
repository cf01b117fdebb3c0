from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

from resumefit.matching.scoring import is_unit_interval
from resumefit.models import Gap

HIGH_IMPORTANCE = 0.8
MEDIUM_IMPORTANCE = 0.5


@dataclass(frozen=True)
class GapBands:
    high: List[Gap]
    medium: List[Gap]
    low: List[Gap]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "high": [g.to_dict() for g in self.high],
            "medium": [g.to_dict() for g in self.medium],
            "low": [g.to_dict() for g in self.low],
        }


def _impact_key(gap: Gap) -> float:
    return -gap.impact if is_unit_interval(gap.impact) else 0.0


def prioritize_gaps(gaps: Sequence[Gap]) -> GapBands:
    """
    Band gaps by importance:
      high   >= 0.8
      medium >= 0.5
      low    <  0.5
    Each band is sorted by impact descending. Gaps whose importance is NaN
    or outside [0, 1] are dropped.
    """
    high: List[Gap] = []
    medium: List[Gap] = []
    low: List[Gap] = []
    for gap in gaps:
        imp = gap.importance
        if not is_unit_interval(imp):
            continue
        if imp >= HIGH_IMPORTANCE:
            high.append(gap)
        elif imp >= MEDIUM_IMPORTANCE:
            medium.append(gap)
        else:
            low.append(gap)

    for band in (high, medium, low):
        band.sort(key=_impact_key)
    return GapBands(high=high, medium=medium, low=low)

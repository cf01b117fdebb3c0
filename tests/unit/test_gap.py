from resumefit.gap import prioritize_gaps
from resumefit.models import Gap, TaggedElement


def _gap(text, importance, impact, category="skill"):
    return Gap(element=TaggedElement(text=text), importance=importance, category=category, impact=impact)


def test_gaps_are_banded_by_importance():
    bands = prioritize_gaps(
        [
            _gap("Python", 0.95, 0.3),
            _gap("AWS", 0.8, 0.2),
            _gap("Docker", 0.79, 0.1),
            _gap("SQL", 0.5, 0.1),
            _gap("Figma", 0.2, 0.05),
        ]
    )
    assert [g.element.text for g in bands.high] == ["Python", "AWS"]
    assert [g.element.text for g in bands.medium] == ["Docker", "SQL"]
    assert [g.element.text for g in bands.low] == ["Figma"]


def test_each_band_sorted_by_impact():
    bands = prioritize_gaps(
        [
            _gap("Low impact", 0.9, 0.05),
            _gap("High impact", 0.85, 0.3),
            _gap("Mid impact", 0.95, 0.1),
        ]
    )
    assert [g.element.text for g in bands.high] == ["High impact", "Mid impact", "Low impact"]


def test_invalid_importance_is_dropped():
    bands = prioritize_gaps([_gap("NaN", float("nan"), 0.1), _gap("Too big", 1.2, 0.1), _gap("Ok", 0.6, 0.1)])
    assert bands.high == [] and bands.low == []
    assert [g.element.text for g in bands.medium] == ["Ok"]


def test_empty_and_to_dict():
    bands = prioritize_gaps([])
    assert bands.to_dict() == {"high": [], "medium": [], "low": []}

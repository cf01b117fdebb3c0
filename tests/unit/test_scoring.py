import pytest

from resumefit.matching.scoring import (
    DEFAULT_IMPORTANCE,
    assign_importance,
    assign_importance_scores,
    clamp01,
    dimension_for,
    is_unit_interval,
    match_quality,
    safe_importance,
)
from resumefit.models import Element, MatchType, SemanticMatch, TaggedElement


# ------------------------------------------------------------------
# Importance heuristic
# ------------------------------------------------------------------

def test_required_indicator_in_same_sentence_wins():
    assert assign_importance("Python", "Python is required for this team.") == 0.95


def test_nice_to_have_indicator():
    assert assign_importance("Kubernetes", "Kubernetes is a plus.") == 0.4


def test_indicator_in_other_sentence_is_ignored():
    score = assign_importance("Go", "Experience with Go. Docker is required.", position=1.0)
    assert score == pytest.approx(DEFAULT_IMPORTANCE)


def test_position_boosts_early_elements():
    assert assign_importance("Go", "We build services in Go", position=0.0) == pytest.approx(0.7)
    assert assign_importance("Go", "We build services in Go", position=1.0) == pytest.approx(0.5)


def test_requirement_section_and_repetition():
    ctx = "Qualifications: Docker for local dev, Docker for CI"
    assert assign_importance("Docker", ctx, position=1.0) == pytest.approx(0.5 + 0.1 + 0.1)


def test_empty_text_gets_default():
    assert assign_importance("", "anything") == DEFAULT_IMPORTANCE


def test_assign_importance_scores_prefers_valid_provided_values():
    els = [
        TaggedElement(text="Python", context="Python is required."),
        TaggedElement(text="Rust", context="Rust is a bonus."),
        TaggedElement(text="Go", context="Go is mandatory."),
    ]
    scores = assign_importance_scores(els, [0.8, None, float("nan")])
    assert scores == [0.8, 0.4, 0.95]


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def test_clamp_and_unit_interval():
    assert clamp01(-0.2) == 0.0
    assert clamp01(1.3) == 1.0
    assert is_unit_interval(0.0) and is_unit_interval(1.0)
    assert not is_unit_interval(float("nan"))
    assert not is_unit_interval(1.01)


def test_safe_importance_falls_back_on_invalid_values():
    assert safe_importance(TaggedElement(text="x", importance=0.7)) == 0.7
    assert safe_importance(TaggedElement(text="x", importance=float("nan"))) == DEFAULT_IMPORTANCE
    assert safe_importance(TaggedElement(text="x", importance=3.0)) == DEFAULT_IMPORTANCE


def test_match_quality_scales_by_type():
    r, j = Element(text="JS"), Element(text="JavaScript")
    assert match_quality(SemanticMatch(r, j, MatchType.EXACT, 0.9)) == pytest.approx(0.9)
    assert match_quality(SemanticMatch(r, j, MatchType.SYNONYM, 0.95)) == pytest.approx(0.9025)
    assert match_quality(SemanticMatch(r, j, "related", 1.0)) == pytest.approx(0.7)
    assert match_quality(SemanticMatch(r, j, "semantic", float("nan"))) == 0.0


def test_dimension_for_categories_and_seniority():
    assert dimension_for(TaggedElement(text="Python", category="skill")) == "skills"
    assert dimension_for(TaggedElement(text="Agile", category="concept")) == "keywords"
    assert dimension_for(TaggedElement(text="Curious", category="attribute")) == "attributes"
    assert dimension_for(TaggedElement(text="5+ years", category="experience")) == "experience"
    assert dimension_for(TaggedElement(text="Senior", category="attribute", tags=("seniority",))) == "level"
    assert dimension_for(TaggedElement(text="Staff", semantic_tags=("experience_level",))) == "level"

"""
tests/unit/test_extraction.py

ElementExtractor / ThemeExtractor against scripted completion replies.
"""
import pytest

from resumefit.errors import CompletionError, ExtractionError
from resumefit.extraction import ElementExtractor, ThemeExtractor
from resumefit.models import ElementCategory, JobPosting, ResumeDocument, TaggedElement

JOB = JobPosting(
    id="job-42",
    title="Senior Backend Engineer",
    company="Acme Robotics",
    description="Own the Python services behind our routing platform.",
    requirements="Python is required. Kubernetes is a plus.",
)


def test_extract_job_validates_scores_and_deduplicates(fake_completion):
    completion = fake_completion(
        {
            "elements": [
                {"text": "Python", "category": "skill", "importance": 0.9, "context": "Python is required."},
                {"text": "python", "category": "skill", "importance": 0.4, "tags": ["language"]},
                {"text": "Teamwork", "category": "attribute"},
                {"text": "   ", "category": "skill"},
                {"text": "Juggling", "category": "hobby"},
            ]
        }
    )

    elements = ElementExtractor(completion).extract_job(JOB)

    assert [e.text for e in elements] == ["Python", "Teamwork"]
    python, teamwork = elements
    assert python.importance == 0.9
    assert python.category is ElementCategory.SKILL
    assert python.tags == ("language",)
    # no importance in the reply: heuristic (last of three, no indicators)
    assert teamwork.importance == pytest.approx(0.5)

    prompt, options = completion.calls[0]
    assert "Senior Backend Engineer" in prompt
    assert "Kubernetes is a plus." in prompt
    assert "requirements of a job posting" in options.system


def test_invalid_reply_importance_falls_back_to_heuristic(fake_completion):
    completion = fake_completion(
        {"elements": [{"text": "Kubernetes", "category": "skill", "importance": 7, "context": "Kubernetes is a plus."}]}
    )
    elements = ElementExtractor(completion).extract_job(JOB)
    assert elements[0].importance == 0.4


def test_extract_resume_keeps_neutral_importance(fake_completion):
    completion = fake_completion(
        {"elements": [{"text": "Python", "category": "skill", "importance": 0.99, "position": {"start": 10, "end": 16}}]}
    )
    resume = ResumeDocument(id="resume-7", content="Engineer. Python for 6 years.")

    elements = ElementExtractor(completion).extract_resume(resume)

    assert len(elements) == 1
    assert isinstance(elements[0], TaggedElement)
    assert elements[0].importance == 0.5
    assert (elements[0].position.start, elements[0].position.end) == (10, 16)
    assert "Python for 6 years." in completion.calls[0][0]


def test_extraction_errors(fake_completion):
    with pytest.raises(ExtractionError, match="no 'elements' list"):
        ElementExtractor(fake_completion({"items": []})).extract_job(JOB)

    with pytest.raises(ExtractionError, match="provider down"):
        ElementExtractor(fake_completion(CompletionError("provider down"))).extract_job(JOB)

    with pytest.raises(ExtractionError, match="socket reset"):
        ElementExtractor(fake_completion(ConnectionError("socket reset"))).extract_resume(
            ResumeDocument(id="resume-7", content="Python for 6 years.")
        )


def test_themes_are_clamped_defaulted_and_sorted(fake_completion):
    completion = fake_completion(
        {
            "themes": [
                {"name": "Backend services", "importance": 0.6, "keywords": ["API ", " Python", ""]},
                {"name": "Leadership", "importance": 1.7},
                {"name": "Culture"},
                {"name": ""},
            ]
        }
    )

    themes = ThemeExtractor(completion).extract(JOB, [TaggedElement(text="Python", importance=0.9)])

    assert [(t.name, t.importance) for t in themes] == [
        ("Leadership", 1.0),
        ("Backend services", 0.6),
        ("Culture", 0.5),
    ]
    assert themes[1].keywords == ("api", "python")
    assert "Python (0.90)" in completion.calls[0][0]


@pytest.mark.parametrize(
    "reply", [CompletionError("provider down"), ConnectionError("socket reset"), "not json", {"topics": []}]
)
def test_theme_failures_yield_no_themes(fake_completion, reply):
    assert ThemeExtractor(fake_completion(reply)).extract(JOB, []) == []

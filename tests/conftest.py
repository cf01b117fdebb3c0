import json
from pathlib import Path
import pytest

from resumefit.agents.protocols import to_resume_writer_request
from resumefit.config import OptimizerConfig
from resumefit.matching.engine import Scorer
from resumefit.models import SemanticMatch, TaggedElement
from resumefit.recommendations import RecommendationGenerator

# Path to tests/fixtures directory
FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixtures_dir() -> Path:
    """
    Exposes the fixtures directory in case a test needs direct file access.
    """
    return FIXTURES_DIR


@pytest.fixture
def load_text(fixtures_dir):
    """
    Fixture that returns a function: load_text("file.ext") -> str
    This avoids repeating file reading logic in every test file.
    """
    def _load(name: str) -> str:
        return (fixtures_dir / name).read_text(encoding="utf-8")
    return _load


@pytest.fixture
def load_json(load_text):
    """
    Fixture that returns a function: load_json("file.json") -> dict
    Built on load_text so there's one source of truth for file IO.
    """
    def _load(name: str) -> dict:
        return json.loads(load_text(name))
    return _load


@pytest.fixture
def make_writer_request():
    """
    Fixture that returns a function: make_writer_request(**overrides) -> dict
    A valid resume-writer request built from real scorer/generator output
    (job: Python 1.0 matched, Kubernetes 0.9 missing), with top-level
    fields overridden.
    """
    def _make(**overrides) -> dict:
        config = OptimizerConfig()
        python = TaggedElement(text="Python", category="skill", importance=1.0)
        k8s = TaggedElement(text="Kubernetes", category="skill", importance=0.9)
        resume_el = TaggedElement(text="Python")
        matches = [SemanticMatch(resume_el, python, "exact", 1.0)]
        result = Scorer(config).score([resume_el], [python, k8s], matches)
        recs = RecommendationGenerator(config).generate(result, matches, iteration_round=1)
        payload = to_resume_writer_request(
            request_id="req-1",
            job_id="job-42",
            resume_id="resume-7",
            iteration_round=1,
            match_result=result,
            recommendations=recs,
            target_score=config.target_score,
        )
        payload.update(overrides)
        return payload
    return _make


class FakeCompletion:
    """
    Scripted TextCompletionService. Each complete() call consumes the next
    reply: dicts are JSON-encoded, strings returned as-is, exceptions raised.
    """

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def complete(self, prompt, options=None):
        self.calls.append((prompt, options))
        if not self.replies:
            raise AssertionError(f"unexpected completion call: {prompt[:80]!r}")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply if isinstance(reply, str) else json.dumps(reply)


@pytest.fixture
def fake_completion():
    """Fixture that returns the FakeCompletion class: fake_completion(reply, ...)"""
    return FakeCompletion

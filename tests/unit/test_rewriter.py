import json
import threading

import pytest

from resumefit.agents.protocols import ResumeWriterRequest, ResumeWriterResponse
from resumefit.agents.validation import validate
from resumefit.errors import CompletionError
from resumefit.llm.rewriter import CompletionRewriteAgent
from resumefit.models import ResumeDocument

RESUME = ResumeDocument(id="resume-7", content="Engineer. Python services.", format="markdown")


def _request(make_writer_request):
    return validate(ResumeWriterRequest, make_writer_request()).value


def test_rewrite_returns_valid_response_and_bumps_version(fake_completion, make_writer_request):
    completion = fake_completion(
        {"content": "  Engineer. Python services on Kubernetes.  ", "changes_made": ["Added Kubernetes", ""]}
    )
    agent = CompletionRewriteAgent(completion)
    agent.register(RESUME)

    reply = agent(_request(make_writer_request))

    checked = validate(ResumeWriterResponse, reply)
    assert checked.ok
    assert reply["request_id"] == "req-1"
    assert reply["resume"]["version"] == 2
    assert reply["resume"]["format"] == "markdown"
    assert reply["resume"]["content"] == "Engineer. Python services on Kubernetes."
    assert reply["changes_made"] == ["Added Kubernetes"]
    assert agent.current("resume-7").version == 2

    prompt, options = completion.calls[0]
    assert "Engineer. Python services." in prompt
    assert "Kubernetes" in prompt
    assert "Do NOT invent" in options.system


def test_unregistered_resume_raises(fake_completion, make_writer_request):
    agent = CompletionRewriteAgent(fake_completion())
    with pytest.raises(CompletionError, match="not registered"):
        agent(_request(make_writer_request))


def test_reply_without_content_raises(fake_completion, make_writer_request):
    agent = CompletionRewriteAgent(fake_completion({"content": "   ", "changes_made": []}))
    agent.register(RESUME)
    with pytest.raises(CompletionError):
        agent(_request(make_writer_request))
    assert agent.current("resume-7") is RESUME


def test_late_rewrite_does_not_replace_an_adopted_revision(make_writer_request):
    release = threading.Event()
    started = threading.Event()

    class _SlowFirstCall:
        def __init__(self):
            self.count = 0

        def complete(self, prompt, options=None):
            self.count += 1
            if self.count == 1:
                started.set()
                release.wait(5)
                return json.dumps({"content": "LATE A", "changes_made": []})
            return json.dumps({"content": "FAST B", "changes_made": []})

    agent = CompletionRewriteAgent(_SlowFirstCall())
    agent.register(RESUME)
    request = _request(make_writer_request)

    late = threading.Thread(target=agent, args=(request,))
    late.start()
    assert started.wait(5)

    fast = agent(request)
    release.set()
    late.join(5)

    assert fast["resume"]["content"] == "FAST B"
    assert agent.current("resume-7").content == "FAST B"
    assert agent.current("resume-7").version == 2

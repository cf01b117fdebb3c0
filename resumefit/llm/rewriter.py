"""
resumefit/llm/rewriter.py

A rewriting-agent handler backed by the completion service, for running the
optimizer locally (CLI) without an external resume-writer agent.

The agent only sees ResumeWriterRequest payloads, which carry the resume id
but not its content, so documents are registered up front and replaced by
each successful rewrite.
"""
from __future__ import annotations

import threading
import time
import uuid
from typing import Any, Dict

from resumefit.agents.protocols import ResumeWriterRequest
from resumefit.errors import CompletionError
from resumefit.llm.completion import CompletionOptions, TextCompletionService, parse_json_response
from resumefit.llm.prompt import REWRITE_SYSTEM_PROMPT, build_rewrite_prompt
from resumefit.log import log_info, log_warning
from resumefit.models import ResumeDocument, utc_now


class CompletionRewriteAgent:
    def __init__(self, completion: TextCompletionService) -> None:
        self._completion = completion
        self._documents: Dict[str, ResumeDocument] = {}
        self._lock = threading.Lock()

    def register(self, resume: ResumeDocument) -> None:
        with self._lock:
            self._documents[resume.id] = resume

    def current(self, resume_id: str) -> ResumeDocument:
        try:
            with self._lock:
                return self._documents[resume_id]
        except KeyError:
            raise CompletionError(f"Resume '{resume_id}' is not registered with the rewrite agent.") from None

    def __call__(self, request: ResumeWriterRequest) -> Dict[str, Any]:
        started = time.monotonic()
        doc = self.current(request.resume_id)

        prompt = build_rewrite_prompt(
            content=doc.content,
            doc_format=doc.format,
            recommendations=request.recommendations.model_dump(),
        )
        data = parse_json_response(
            self._completion.complete(prompt, CompletionOptions(system=REWRITE_SYSTEM_PROMPT, max_tokens=8192))
        )
        content = data.get("content") if isinstance(data, dict) else None
        if not isinstance(content, str) or not content.strip():
            raise CompletionError("Rewrite reply has no resume content.")
        changes = data.get("changes_made") or []
        if not isinstance(changes, list):
            changes = []

        revised = ResumeDocument(id=doc.id, content=content.strip(), format=doc.format, version=doc.version + 1)
        with self._lock:
            # A call abandoned after a timeout may finish late; it must not
            # overwrite a revision adopted since it started.
            adopted = self._documents.get(doc.id) is doc
            if adopted:
                self._documents[doc.id] = revised
        if adopted:
            log_info(f"Rewrote resume {doc.id} -> v{revised.version} ({len(changes)} changes)")
        else:
            log_warning(f"Discarded stale rewrite of resume {doc.id} v{doc.version}")

        return {
            "response_id": uuid.uuid4().hex,
            "request_id": request.request_id,
            "resume_id": doc.id,
            "resume": revised.to_dict(),
            "changes_made": [str(c) for c in changes if str(c).strip()],
            "metadata": {
                "timestamp": utc_now().isoformat(),
                "processing_time_ms": (time.monotonic() - started) * 1000.0,
            },
        }

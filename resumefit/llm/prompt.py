"""
resumefit/llm/prompt.py

System and user prompts for every completion-backed step:
element extraction, batched semantic matching, theme extraction and the
local rewriting agent.

All structured prompts ask for a single JSON object and nothing else;
replies are parsed with parse_json_response() and validated before use.
"""
from __future__ import annotations

import json
from typing import Sequence

from resumefit.models import Element, JobPosting, TaggedElement

ELEMENT_CATEGORIES = "keyword, skill, attribute, experience, concept"

_ELEMENT_SCHEMA = """\
{"elements": [{"text": str, "normalized_text": str, "tags": [str], "category": str,
  "context": str, "importance": float | null, "position": {"start": int, "end": int}}]}"""

JOB_ELEMENTS_SYSTEM_PROMPT = f"""\
You extract the requirements of a job posting as structured elements.
Each element is one skill, tool, attribute, experience requirement, keyword or concept.
category must be one of: {ELEMENT_CATEGORIES}.
importance is how strongly the posting requires the element (1.0 = hard requirement, \
0.3 = nice to have); use null when the posting gives no signal.
context is the sentence the element came from; position is its character span.
Tag seniority requirements (years, senior, lead) with "experience_level".
Respond with JSON only, matching: {_ELEMENT_SCHEMA}\
"""

RESUME_ELEMENTS_SYSTEM_PROMPT = f"""\
You extract the skills, tools, attributes, experience and concepts a resume demonstrates \
as structured elements.
category must be one of: {ELEMENT_CATEGORIES}. Set importance to null.
context is the sentence the element came from; position is its character span.
Only extract what the resume states. Do not infer skills it does not mention.
Respond with JSON only, matching: {_ELEMENT_SCHEMA}\
"""

MATCH_SYSTEM_PROMPT = """\
You decide which resume elements satisfy which job requirements.
matchType is one of: exact, synonym, related, semantic.
confidence is 0.0-1.0; omit pairs below 0.3.
Use the indices exactly as given.
Respond with JSON only, matching:
{"matches": [{"jobIndex": int, "resumeIndex": int, "matchType": str, "confidence": float}]}\
"""

THEME_SYSTEM_PROMPT = """\
You identify the 3-6 themes a hiring manager cares most about in a job posting \
(for example "distributed systems", "people leadership").
importance is 0.0-1.0. keywords are short lowercase terms that signal the theme.
Respond with JSON only, matching:
{"themes": [{"name": str, "importance": float, "keywords": [str], "rationale": str}]}\
"""

REWRITE_SYSTEM_PROMPT = """\
You revise a resume so it better matches a job posting, following the recommendations given.
CRITICAL: Only reframe, reorder, or clarify what the resume already says. \
Do NOT invent employers, titles, dates, metrics, or skills the candidate does not have.
Keep the original format (plain text or markdown).
Respond with JSON only, matching:
{"content": str, "changes_made": [str]}\
"""


def build_job_elements_prompt(job: JobPosting) -> str:
    parts = [f"Job title: {job.title}"]
    if job.company:
        parts.append(f"Company: {job.company}")
    parts.append(f"Description:\n{job.description.strip()}")
    if job.requirements.strip():
        parts.append(f"Requirements:\n{job.requirements.strip()}")
    if job.qualifications.strip():
        parts.append(f"Qualifications:\n{job.qualifications.strip()}")
    return "\n\n".join(parts)


def build_resume_elements_prompt(content: str) -> str:
    return f"Resume:\n{content.strip()}"


def build_match_prompt(job_elements: Sequence[Element], resume_elements: Sequence[Element]) -> str:
    job_lines = [f"{i}: {el.text}" + (f" ({el.context})" if el.context else "") for i, el in enumerate(job_elements)]
    resume_lines = [f"{i}: {el.text}" for i, el in enumerate(resume_elements)]
    return (
        "Job requirements:\n" + "\n".join(job_lines)
        + "\n\nResume elements:\n" + "\n".join(resume_lines)
    )


def build_theme_prompt(job: JobPosting, elements: Sequence[TaggedElement]) -> str:
    top = sorted(elements, key=lambda e: -e.importance)[:25]
    listed = ", ".join(f"{e.text} ({e.importance:.2f})" for e in top) or "(none extracted)"
    return (
        f"Job title: {job.title}\n\n"
        f"Description:\n{job.description.strip()}\n\n"
        f"Extracted requirements (importance): {listed}"
    )


def build_rewrite_prompt(*, content: str, doc_format: str, recommendations: dict) -> str:
    return (
        f"Resume format: {doc_format}\n\n"
        f"Current resume:\n{content.strip()}\n\n"
        f"Recommendations (JSON):\n{json.dumps(recommendations, indent=2)}"
    )

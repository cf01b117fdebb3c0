from __future__ import annotations

import re
import unicodedata
from typing import Iterable, List, Set

# NOTE: shared tokenizer.
# Theme alignment and deemphasis detection go through here so that
# "is this résumé line about the job's themes?" has exactly one answer.

# Token pattern:
# - alphanumerics
# - internal separators + # . - survive when followed by more alphanumerics
#   (node.js, full-stack, ci-cd)
# - trailing + and # survive (c++, c#, f#)
_WORD_RE = re.compile(r"[a-z0-9]+(?:[#+.-][a-z0-9]+)*[#+]*", re.IGNORECASE)

# Single-letter language names kept despite the 1-char cutoff.
_SHORT_TOKENS = {"c", "r"}

_DIGIT_RE = re.compile(r"\d")

# Function words plus listing boilerplate. Changing this set moves theme
# alignment for every run, so keep it small.
_STOPWORDS = {
    "a", "an", "the", "and", "or", "to", "of", "in", "for", "on", "with", "as", "at", "by", "from",
    "is", "are", "be", "been", "being", "was", "were", "am",
    "this", "that", "these", "those", "it", "its", "they", "them", "their", "you", "your", "we", "our", "i", "me", "my",
    "will", "can", "may", "must", "should", "could", "would",
    "not", "no", "yes",
    "into", "over", "under", "between", "within", "without", "across", "per",
    "about", "also", "such", "than", "then", "there", "here",
    # listing/résumé boilerplate
    "role", "roles", "job", "jobs", "position", "positions", "responsibilities", "responsibility",
    "requirements", "required", "preferred",
}


def normalize_text(text: str) -> str:
    """NFKC, non-breaking spaces and unicode dashes flattened, whitespace collapsed."""
    if not text:
        return ""
    t = unicodedata.normalize("NFKC", text)
    t = t.replace("\u00a0", " ")
    t = re.sub(r"[\u2010-\u2015]", "-", t)
    return " ".join(t.split())


def tokenize_stream(text: str) -> List[str]:
    """Lowercased tokens in reading order; stopwords and 1-char tokens dropped."""
    out: List[str] = []
    for m in _WORD_RE.finditer(normalize_text(text).lower()):
        tok = m.group(0).strip(".-")
        if (len(tok) > 1 or tok in _SHORT_TOKENS) and tok not in _STOPWORDS:
            out.append(tok)
    return out


def tokenize(text: str) -> Set[str]:
    return set(tokenize_stream(text))


def tokens_from_list(items: Iterable[str]) -> Set[str]:
    out: Set[str] = set()
    for it in items or []:
        out |= tokenize(it)
    return out


def shares_token(text: str, tokens: Set[str]) -> bool:
    """True when `text` has at least one token in `tokens` (never for an empty set)."""
    return bool(tokens) and not tokenize(text).isdisjoint(tokens)


def contains_digit(text: str) -> bool:
    return bool(_DIGIT_RE.search(text or ""))

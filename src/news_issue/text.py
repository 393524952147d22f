"""Text normalization, hashing and similarity helpers."""

from __future__ import annotations

import hashlib
import html
import re

_SCRIPT_STYLE_RE = re.compile(r"<(script|style)\b[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")
_PUNCTUATION_RE = re.compile(r"[^\w\s]", re.UNICODE)


def html_to_text(raw_html: str) -> str:
    """Convert HTML markup into normalized plain text."""

    if not raw_html:
        return ""
    no_scripts = _SCRIPT_STYLE_RE.sub(" ", raw_html)
    stripped = _TAG_RE.sub(" ", no_scripts)
    unescaped = html.unescape(stripped)
    return _WHITESPACE_RE.sub(" ", unescaped).strip()


def normalize_content(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text.lower()).strip()


def content_hash(*, full_text: str, description: str, title: str) -> str:
    """MD5 of the richest available text, normalized.

    Falls back from full text to description to title so items without a body
    still receive a stable hash.
    """

    source = full_text.strip() or description.strip() or title.strip()
    normalized = normalize_content(source)
    return hashlib.md5(normalized.encode("utf-8"), usedforsecurity=False).hexdigest()  # noqa: S324


def title_words(title: str) -> frozenset[str]:
    cleaned = _PUNCTUATION_RE.sub(" ", title.lower())
    return frozenset(word for word in cleaned.split() if word)


def jaccard_similarity(left: frozenset[str], right: frozenset[str]) -> float:
    if not left and not right:
        return 0.0
    union = left | right
    return len(left & right) / len(union)


def word_count(text: str) -> int:
    return len(text.split())

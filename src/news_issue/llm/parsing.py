"""Helpers to interpret raw LLM text: JSON extraction and refusal detection."""

from __future__ import annotations

import json
import re
from typing import Any

_CODE_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.IGNORECASE | re.DOTALL)
_REFUSAL_PATTERNS: tuple[str, ...] = (
    "i'm sorry",
    "i am sorry",
    "i apologize",
    "i cannot",
    "i can't",
    "i am unable",
    "i'm unable",
    "as an ai",
    "i do not have access",
    "i don't have access",
)
_REFUSAL_SCAN_CHARS = 200


def extract_json_object(raw: str) -> dict[str, Any]:
    """Parse the first JSON object in ``raw``.

    Accepts a bare object, an object wrapped in a markdown code fence, or an
    object embedded in surrounding prose. Raises ``ValueError`` otherwise.
    """

    text = raw.strip()
    candidates = [text]
    candidates.extend(match.strip() for match in _CODE_FENCE_RE.findall(text))
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start : end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    raise ValueError(f"No JSON object found in LLM output: {text[:120]!r}")


def detect_refusal(text: str) -> str | None:
    """Return the matched refusal phrase when the output opens like a refusal."""

    head = text.strip().lower()[:_REFUSAL_SCAN_CHARS]
    for pattern in _REFUSAL_PATTERNS:
        if pattern in head:
            return pattern
    return None


def clean_headline(raw: str) -> str:
    line = raw.strip().splitlines()[0] if raw.strip() else ""
    line = re.sub(r"^(title|headline)\s*:\s*", "", line, flags=re.IGNORECASE)
    return line.strip().strip("\"'*").strip()

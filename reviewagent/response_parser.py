"""
Normalizes free-form model output into a ReviewResult.

Model output is untrusted: every field is defaulted explicitly and the
parser never raises. Anything unusable yields ``FALLBACK_SUMMARY``.
"""

import json
import logging
import math
import re
from typing import Any, Optional

from reviewagent.models.review_schemas import (
    ISSUE_TYPES,
    SEVERITIES,
    SUGGESTION_TYPES,
    Issue,
    ReviewResult,
    Suggestion,
)

logger = logging.getLogger(__name__)

FALLBACK_SUMMARY = "Unable to parse AI review response"

_REASONING_RE = re.compile(r"<(think|thinking)>.*?</\1>", re.DOTALL | re.IGNORECASE)
_FENCE_OPEN_RE = re.compile(r"^```[\w-]*[ \t]*\n?")
_FENCE_CLOSE_RE = re.compile(r"\n?```\s*$")


def _strip_noise(text: str) -> str:
    cleaned = _REASONING_RE.sub("", text.strip()).strip()
    cleaned = _FENCE_OPEN_RE.sub("", cleaned)
    cleaned = _FENCE_CLOSE_RE.sub("", cleaned)
    return cleaned.strip()


def _first_balanced_object(text: str) -> Optional[str]:
    """Return the first ``{...}`` substring with balanced braces, ignoring braces in strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
        start = text.find("{", start + 1)
    return None


def _load_object(text: str) -> Optional[dict]:
    try:
        parsed = json.loads(text)
        if isinstance(parsed, dict):
            return parsed
    except ValueError:
        pass

    candidate = _first_balanced_object(text)
    if candidate is None:
        return None
    try:
        parsed = json.loads(candidate)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _clamp_score(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(score):
        return 0
    return int(round(max(0.0, min(100.0, score))))


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _line(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _normalize_findings(
    raw: Any,
    kind: str,
    allowed_types: tuple[str, ...],
    default_type: str,
    default_severity: str,
    default_title: str,
    default_description: str,
) -> list[dict]:
    if not isinstance(raw, list):
        return []

    findings: list[dict] = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            continue
        message = _text(item.get("message"))
        finding_type = item.get("type")
        severity = item.get("severity")
        findings.append(
            {
                "id": _text(item.get("id")) or f"{kind}_{index + 1}",
                "type": finding_type if finding_type in allowed_types else default_type,
                "title": _text(item.get("title")) or message or default_title,
                "description": _text(item.get("description")) or message or default_description,
                "severity": severity if severity in SEVERITIES else default_severity,
                "file": _text(item.get("file")),
                "line": _line(item.get("line")),
                "code": _text(item.get("code")),
                "suggested_fix": _text(item.get("suggestedFix")) or _text(item.get("suggested_fix")),
            }
        )
    return findings


def _build_result(parsed: dict) -> ReviewResult:
    positive = parsed.get("positiveAspects", parsed.get("positive_aspects"))
    return ReviewResult(
        summary=_text(parsed.get("summary")) or "No summary provided",
        score=_clamp_score(parsed.get("score")),
        suggestions=[
            Suggestion(**s)
            for s in _normalize_findings(
                parsed.get("suggestions"),
                "suggestion",
                SUGGESTION_TYPES,
                "improvement",
                "low",
                "Suggestion",
                "Code improvement suggestion",
            )
        ],
        issues=[
            Issue(**i)
            for i in _normalize_findings(
                parsed.get("issues"),
                "issue",
                ISSUE_TYPES,
                "bug",
                "medium",
                "Issue",
                "Code issue found",
            )
        ],
        positive_aspects=[p for p in positive if isinstance(p, str)] if isinstance(positive, list) else [],
    )


def fallback_result() -> ReviewResult:
    return ReviewResult.placeholder(FALLBACK_SUMMARY)


def parse_review_response(text: str) -> ReviewResult:
    """Parse raw model output into a ReviewResult, or the fallback result."""
    try:
        parsed = _load_object(_strip_noise(text or ""))
        if parsed is None:
            logger.warning("AI response did not contain a JSON object")
            return fallback_result()
        return _build_result(parsed)
    except Exception as exc:
        logger.error(f"Failed to parse AI response as JSON: {exc}")
        return fallback_result()

"""Prompts for the pull request reviewer."""

from dataclasses import dataclass
from typing import Optional

SYSTEM_PROMPT = """\
You are an expert code reviewer. Analyze the provided code changes and provide \
constructive feedback. Focus on code quality, best practices, security, and \
maintainability. Always answer with a single JSON object and nothing else.\
"""

_RESPONSE_FORMAT = """\
Respond with ONLY this JSON:
{
  "summary": "Brief summary of the changes",
  "score": 85,
  "positiveAspects": ["Good variable naming"],
  "suggestions": [
    {
      "id": "suggestion_1",
      "type": "improvement",
      "title": "Use const instead of let",
      "description": "Consider using const for variables that won't be reassigned",
      "severity": "low",
      "file": "filename.js",
      "line": 10
    }
  ],
  "issues": [
    {
      "id": "issue_1",
      "type": "security",
      "title": "Potential security vulnerability",
      "description": "User input not sanitized",
      "severity": "high",
      "file": "filename.js",
      "line": 42
    }
  ]
}

Allowed suggestion types: improvement, bug_fix, security, performance, style.
Allowed issue types: bug, security, performance, style, maintainability.
Allowed severities: low, medium, high, critical.
Score: 0-100. ONLY return the JSON object.\
"""


@dataclass
class ReviewFile:
    filename: str
    content: str
    patch: Optional[str] = None
    additions: int = 0
    deletions: int = 0


def _truncate(content: str, max_chars: int) -> str:
    if len(content) > max_chars:
        return content[:max_chars] + "..."
    return content


def build_review_prompt(
    repository: str,
    pr_number: int,
    title: str,
    description: Optional[str],
    files: list[ReviewFile],
    max_file_chars: int = 1000,
) -> str:
    """Assemble the user prompt sent to the text-generation backend."""
    parts = [
        "Review this code and respond with ONLY valid JSON.",
        "",
        f"Repository: {repository}",
        f"PR #{pr_number}: {title}",
    ]
    if description:
        parts.append("")
        parts.append("Description:")
        parts.append(description.strip())

    parts.append("")
    parts.append("Files:")
    for file in files:
        parts.append(f"{file.filename} (+{file.additions} -{file.deletions})")
        parts.append(_truncate(file.content, max_file_chars))

    parts.append("")
    parts.append(_RESPONSE_FORMAT)
    return "\n".join(parts)

from typing import Optional, Union

from reviewagent.models.review_schemas import Issue, ReviewResult, Suggestion

# ── Helpers ───────────────────────────────────────────────────────────────────

_SEV_LABEL = {
    "critical": "🔴 Critical",
    "high":     "🟠 High",
    "medium":   "🟡 Medium",
    "low":      "🟢 Low",
}


def _score_emoji(score: int) -> str:
    if score >= 80:
        return "🟢"
    if score >= 60:
        return "🟡"
    return "🔴"


def _location(finding: Union[Suggestion, Issue]) -> str:
    if not finding.file:
        return "**General**"
    if finding.line:
        return f"**`{finding.file}` (line {finding.line})**"
    return f"**`{finding.file}`**"


def _render_findings(findings: list[Union[Suggestion, Issue]]) -> list[str]:
    lines: list[str] = []
    for index, finding in enumerate(findings, start=1):
        sev = _SEV_LABEL.get(finding.severity, finding.severity.capitalize())
        lines.append(f"{index}. {_location(finding)}: {finding.title} _({sev})_")
        if finding.description and finding.description != finding.title:
            lines.append(f"   {finding.description}")
        if finding.suggested_fix:
            lines.append("   <details>")
            lines.append("   <summary>Suggested fix</summary>")
            lines.append("")
            lines.append("   ```")
            for fix_line in finding.suggested_fix.strip("\n").splitlines():
                lines.append(f"   {fix_line}")
            lines.append("   ```")
            lines.append("   </details>")
    lines.append("")
    return lines


# ── Public API ────────────────────────────────────────────────────────────────

def format_review_comment(
    review: ReviewResult,
    pr_number: Optional[int] = None,
    model: Optional[str] = None,
) -> str:
    """Format a ReviewResult into the summary comment posted on the pull request."""
    parts: list[str] = []

    # ── Header ────────────────────────────────────────────────────────────────
    parts.append("## 🤖 AI Code Review Bot")
    parts.append("")
    header_bits = []
    if pr_number is not None:
        header_bits.append(f"**PR**: #{pr_number}")
    if model:
        header_bits.append(f"**Model**: {model}")
    if header_bits:
        parts.append(" | ".join(header_bits))
        parts.append("")

    parts.append(f"{_score_emoji(review.score)} **Overall Score: {review.score}/100**")
    parts.append("")
    parts.append("### Summary")
    parts.append(review.summary)
    parts.append("")

    if review.suggestions:
        parts.append(f"### 💡 Suggestions ({len(review.suggestions)})")
        parts.extend(_render_findings(review.suggestions))

    if review.issues:
        parts.append(f"### ⚠️ Issues ({len(review.issues)})")
        parts.extend(_render_findings(review.issues))

    if review.positive_aspects:
        parts.append("### ✅ Positive Aspects")
        for index, aspect in enumerate(review.positive_aspects, start=1):
            parts.append(f"{index}. {aspect}")
        parts.append("")

    # ── Footer ────────────────────────────────────────────────────────────────
    parts.append("---")
    parts.append("*🤖 This review was automatically generated by AI Code Review Bot*")
    parts.append("*💡 This is an AI-powered review. Please verify suggestions before implementing.*")

    return "\n".join(parts)

"""Markdown rendering for posted reviews and tech debt issues."""

import json
import re
from typing import Any

from pr_reviewer.models.findings import Finding, Severity
from pr_reviewer.models.review import ReviewResult, ReviewStatus

REVIEW_MARKER = "<!-- PR_REVIEWER_BOT -->"

_DATA_RE = re.compile(r"<!-- PR_REVIEW_DATA: (?P<data>.*?) -->", re.DOTALL)

_SECTIONS = (
    (Severity.BLOCKING, "Blocking Issues"),
    (Severity.SUGGESTION, "Suggestions"),
    (Severity.TECH_DEBT, "Tech Debt"),
)


def encode_review_data(result: ReviewResult) -> str:
    """Serialize the machine-readable payload for embedding in an HTML comment.

    Angle brackets are escaped so a finding containing ``-->`` cannot close
    the hidden comment early.
    """
    data = json.dumps(result.to_payload(), ensure_ascii=False)
    return data.replace("<", "\\u003c").replace(">", "\\u003e")


def parse_review_data(body: str) -> dict[str, Any] | None:
    """Read the embedded `{status, findings}` payload back out of a review body.

    Returns:
        The decoded payload, or None if the body carries no valid payload
    """
    match = _DATA_RE.search(body or "")
    if not match:
        return None
    try:
        data = json.loads(match.group("data"))
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def is_bot_review(body: str | None) -> bool:
    return REVIEW_MARKER in (body or "")


def format_finding(finding: Finding) -> str:
    """Render one finding as a markdown bullet."""
    text = (
        f"- **[{finding.id}] {finding.title}** | `{finding.location}` | "
        f"severity: {finding.severity.value}\n  {finding.description}"
    )
    if finding.suggested_fix:
        text += f"\n  ```\n  {finding.suggested_fix}\n  ```"
    return text


def format_review_comment(repo: str, pr_number: int, result: ReviewResult) -> str:
    """Format the consolidated review body.

    Args:
        repo: Repository name shown in the heading
        pr_number: Pull request number
        result: Review to render

    Returns:
        Markdown body starting with the bot marker and the hidden data payload
    """
    status_label = "APPROVED" if result.status == ReviewStatus.APPROVED else "CHANGES_REQUESTED"
    lines = [
        REVIEW_MARKER,
        f"<!-- PR_REVIEW_DATA: {encode_review_data(result)} -->",
        "",
        f"## PR Review: {repo} #{pr_number}",
        "",
        f"### Status: {status_label}",
        "",
        result.summary,
        "",
    ]

    for severity, heading in _SECTIONS:
        findings = [f for f in result.findings if f.severity == severity]
        if not findings:
            continue
        lines.extend([f"### {heading} ({len(findings)})", ""])
        lines.extend(format_finding(f) for f in findings)
        lines.append("")

    if not result.findings:
        lines.extend(["No issues found. Code looks good!", ""])

    return "\n".join(lines)


def auto_approval_result(excluded: list[str], reasons: dict[str, str] | None = None) -> ReviewResult:
    """Approval issued without a model call because every changed file is excluded.

    Args:
        excluded: Excluded filenames
        reasons: Optional exclusion reason per filename

    Returns:
        An approved ReviewResult with no findings
    """
    reasons = reasons or {}
    listed = ", ".join(
        f"`{name}` ({reasons[name]})" if reasons.get(name) else f"`{name}`" for name in excluded
    )
    summary = (
        f"All {len(excluded)} changed file(s) match the configured exclusion paths, "
        f"so no review was needed. Excluded: {listed}"
    )
    return ReviewResult(status=ReviewStatus.APPROVED, summary=summary, findings=())


def format_issue(finding: Finding, pr_number: int) -> tuple[str, str]:
    """Build the title and body of a tech debt issue.

    Returns:
        (title, body) tuple
    """
    title = f"[Tech Debt] {finding.title}"
    body = f"**Source:** PR #{pr_number}\n**File:** `{finding.location}`\n\n{finding.description}\n\n"
    if finding.suggested_fix:
        body += f"**Suggested approach:**\n```\n{finding.suggested_fix}\n```"
    return title, body

"""Review requester: asks the model for a structured review of a pull request."""

import json
import logging
import time
from typing import Any

from pr_reviewer.agents.model_client import ModelClient
from pr_reviewer.config import ReviewPolicy
from pr_reviewer.errors import ReviewContractError
from pr_reviewer.models.findings import Finding, Severity
from pr_reviewer.models.pull_request import PullRequestSnapshot
from pr_reviewer.models.review import ReviewResult, ReviewStatus
from pr_reviewer.prompts import REVIEW_TOOL_NAME, build_system_prompt, build_user_message

logger = logging.getLogger(__name__)


REVIEW_TOOL: dict[str, Any] = {
    "type": "function",
    "name": REVIEW_TOOL_NAME,
    "description": "Submit the structured PR review with categorized findings",
    "strict": False,
    "parameters": {
        "type": "object",
        "properties": {
            "status": {
                "type": "string",
                "enum": [s.value for s in ReviewStatus],
                "description": 'Overall review status. "approved" only if zero blocking findings.',
            },
            "summary": {
                "type": "string",
                "description": "Brief 2-3 sentence summary of the review.",
            },
            "findings": {
                "type": "array",
                "description": "All findings from the review, categorized by severity.",
                "items": {
                    "type": "object",
                    "properties": {
                        "id": {
                            "type": "string",
                            "description": (
                                "Unique ID: B1, B2... for blocking, S1, S2... for suggestion, "
                                "T1, T2... for tech_debt"
                            ),
                        },
                        "title": {"type": "string", "description": "Short title of the finding"},
                        "file": {"type": "string", "description": "File path relative to repo root"},
                        "line": {
                            "type": ["number", "null"],
                            "description": "Approximate line number, or null if not applicable",
                        },
                        "severity": {
                            "type": "string",
                            "enum": [s.value for s in Severity],
                            "description": (
                                "blocking = must fix before merge, suggestion = auto-fixable trivial issue, "
                                "tech_debt = tracked as issue"
                            ),
                        },
                        "description": {
                            "type": "string",
                            "description": "Detailed description of the issue and why it matters",
                        },
                        "suggested_fix": {
                            "type": ["string", "null"],
                            "description": (
                                "For suggestions: the corrected code snippet. "
                                "For blocking: guidance on how to fix."
                            ),
                        },
                    },
                    "required": ["id", "title", "file", "severity", "description"],
                },
            },
        },
        "required": ["status", "summary", "findings"],
    },
}


class ReviewAgent:
    """Builds the review request and turns the model's tool call into a ReviewResult."""

    def __init__(self, client: ModelClient, policy: ReviewPolicy) -> None:
        """Initialize the agent.

        Args:
            client: Model API client
            policy: Review policy used to build the instructions
        """
        self.client = client
        self.policy = policy

    async def review(
        self,
        snapshot: PullRequestSnapshot,
        excluded: list[str] | None = None,
    ) -> ReviewResult:
        """Review a pull request.

        Args:
            snapshot: The filtered pull request snapshot
            excluded: Filenames excluded by the policy, disclosed to the model

        Returns:
            ReviewResult with the corrected status

        Raises:
            ReviewContractError: If the model did not call submit_review with usable arguments
        """
        start_time = time.monotonic()

        instructions = build_system_prompt(self.policy)
        user_input = build_user_message(snapshot, excluded)

        calls = await self.client.call_tool(instructions, user_input, REVIEW_TOOL)
        call = next((c for c in calls if c.name == REVIEW_TOOL_NAME), None)
        if call is None:
            raise ReviewContractError(
                f"Model did not return a structured review via {REVIEW_TOOL_NAME} function"
            )

        try:
            payload = call.parsed_arguments()
        except json.JSONDecodeError as e:
            raise ReviewContractError(f"{REVIEW_TOOL_NAME} arguments are not valid JSON: {e}") from e

        result = parse_review_payload(payload).with_corrected_status()

        elapsed_ms = int((time.monotonic() - start_time) * 1000)
        logger.info(
            f"Review of PR #{snapshot.number} complete in {elapsed_ms}ms: "
            f"{result.status.value}, {len(result.findings)} finding(s)"
        )
        return result


def parse_review_payload(payload: dict[str, Any]) -> ReviewResult:
    """Convert submit_review arguments into a ReviewResult.

    Findings with an unknown severity are skipped with a warning. Findings
    without an id get one from their severity prefix and ordinal.

    Raises:
        ReviewContractError: If the payload is not an object or has an unknown status
    """
    if not isinstance(payload, dict):
        raise ReviewContractError(f"{REVIEW_TOOL_NAME} arguments must be an object")

    try:
        status = ReviewStatus(str(payload.get("status", "")).lower())
    except ValueError as e:
        raise ReviewContractError(f"Unknown review status: {payload.get('status')!r}") from e

    findings: list[Finding] = []
    ordinals: dict[Severity, int] = dict.fromkeys(Severity, 0)
    for raw in payload.get("findings") or []:
        if not isinstance(raw, dict):
            logger.warning(f"Skipping malformed finding: {raw!r}")
            continue
        try:
            severity = Severity(str(raw.get("severity", "")).lower())
        except ValueError:
            logger.warning(f"Skipping finding with unknown severity: {raw}")
            continue
        ordinals[severity] += 1
        # Missing cosmetic fields get placeholders; the finding itself is kept.
        raw = {
            "title": "Untitled finding",
            "file": "unknown",
            "description": "",
            **{k: v for k, v in raw.items() if v is not None},
        }
        if not raw.get("id"):
            raw["id"] = f"{severity.id_prefix}{ordinals[severity]}"
        try:
            findings.append(Finding.from_dict(raw))
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"Dropping line number of finding {raw['id']}: {e}")
            findings.append(Finding.from_dict({**raw, "line": None}))

    return ReviewResult(
        status=status,
        summary=str(payload.get("summary") or ""),
        findings=tuple(findings),
    )

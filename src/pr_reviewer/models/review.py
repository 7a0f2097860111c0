"""Review result models."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from pr_reviewer.models.findings import Finding, Severity


class ReviewStatus(Enum):
    """Overall verdict of a review."""

    APPROVED = "approved"
    CHANGES_REQUESTED = "changes_requested"


@dataclass(frozen=True)
class ReviewResult:
    """Structured review returned by the model."""

    status: ReviewStatus
    summary: str
    findings: tuple[Finding, ...] = field(default_factory=tuple)

    @property
    def has_blocking_issues(self) -> bool:
        """Check if review has findings that must block the merge."""
        return any(f.severity == Severity.BLOCKING for f in self.findings)

    def with_corrected_status(self) -> "ReviewResult":
        """Force changes_requested when any blocking finding is present.

        The model's own verdict is not trusted: a result with blocking findings
        can never be approved.
        """
        if self.has_blocking_issues and self.status != ReviewStatus.CHANGES_REQUESTED:
            return replace(self, status=ReviewStatus.CHANGES_REQUESTED)
        return self

    def to_payload(self) -> dict[str, Any]:
        """Machine-readable `{status, findings}` object embedded in posted reviews."""
        return {
            "status": self.status.value,
            "findings": [f.to_dict() for f in self.findings],
        }


class RunOutcome(Enum):
    """How a pipeline run ended."""

    AUTO_APPROVED_ALL_EXCLUDED = "auto-approved-all-excluded"
    FIXES_PUSHED_AWAITING_RERUN = "fixes-pushed-awaiting-rerun"
    REVIEWED_AND_PASSED = "reviewed-and-passed"
    REVIEWED_AND_BLOCKED = "reviewed-and-blocked"
    ERRORED = "errored"

"""Data models for PR Reviewer."""

from pr_reviewer.models.findings import Finding, Severity
from pr_reviewer.models.pull_request import (
    AutoMerge,
    ChangedFile,
    Commit,
    MergeMethod,
    PullRequestSnapshot,
)
from pr_reviewer.models.review import ReviewResult, ReviewStatus, RunOutcome

__all__ = [
    "AutoMerge",
    "ChangedFile",
    "Commit",
    "Finding",
    "MergeMethod",
    "PullRequestSnapshot",
    "ReviewResult",
    "ReviewStatus",
    "RunOutcome",
    "Severity",
]

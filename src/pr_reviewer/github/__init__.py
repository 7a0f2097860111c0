"""GitHub integration for PR Reviewer."""

from pr_reviewer.github.client import GitHubClient
from pr_reviewer.github.formatter import (
    REVIEW_MARKER,
    format_issue,
    format_review_comment,
    parse_review_data,
)

__all__ = [
    "GitHubClient",
    "REVIEW_MARKER",
    "format_issue",
    "format_review_comment",
    "parse_review_data",
]

"""GitHub API client for PR operations."""

import asyncio
import logging

import requests
from github import Github
from github.GithubException import GithubException, UnknownObjectException
from github.PullRequest import PullRequest
from github.Repository import Repository

from pr_reviewer.config import DEFAULT_STATUS_CONTEXT
from pr_reviewer.errors import MergeError
from pr_reviewer.github.formatter import format_issue, format_review_comment, is_bot_review
from pr_reviewer.models.findings import Finding
from pr_reviewer.models.pull_request import (
    AutoMerge,
    ChangedFile,
    Commit,
    MergeMethod,
    PullRequestSnapshot,
)
from pr_reviewer.models.review import ReviewResult, ReviewStatus

logger = logging.getLogger(__name__)

DIFF_MEDIA_TYPE = "application/vnd.github.v3.diff"
COMMIT_STATES = ("pending", "success", "failure", "error")
TECH_DEBT_LABELS = (
    ("tech-debt", "fbca04", "Technical debt tracked by PR reviewer"),
    ("automated", "e6e6e6", "Created by automated tooling"),
)


class GitHubClient:
    """Client for the GitHub operations a review run needs, scoped to one repository."""

    def __init__(
        self,
        token: str,
        repo_name: str,
        base_url: str | None = None,
        status_context: str = DEFAULT_STATUS_CONTEXT,
    ) -> None:
        """Initialize the GitHub client.

        Args:
            token: GitHub personal access token or app token
            repo_name: Repository in "owner/name" format
            base_url: Optional base URL for GitHub Enterprise
            status_context: Context name of the commit status this tool owns
        """
        self._token = token
        self._base_url = base_url
        self.repo_name = repo_name
        self.status_context = status_context
        if base_url:
            self._gh = Github(token, base_url=base_url)
        else:
            self._gh = Github(token)
        self._repo: Repository | None = None

    @property
    def repo(self) -> Repository:
        if self._repo is None:
            self._repo = self._gh.get_repo(self.repo_name)
        return self._repo

    def get_pull_request(self, pr_number: int) -> PullRequest:
        return self.repo.get_pull(pr_number)

    # --- Snapshot ---

    async def fetch_snapshot(self, pr_number: int) -> PullRequestSnapshot:
        """Capture the PR metadata, changed files, commits and unified diff.

        The pull request is fetched first; files, commits and diff are then
        fetched concurrently.

        Args:
            pr_number: Pull request number

        Returns:
            Immutable snapshot of the pull request
        """
        pr = await asyncio.to_thread(self.get_pull_request, pr_number)
        files, commits, diff = await asyncio.gather(
            asyncio.to_thread(self._list_files, pr),
            asyncio.to_thread(self._list_commits, pr),
            asyncio.to_thread(self.get_pr_diff, pr),
        )

        snapshot = PullRequestSnapshot(
            number=pr.number,
            title=pr.title or "",
            body=pr.body or "",
            base_branch=pr.base.ref,
            head_branch=pr.head.ref,
            head_sha=pr.head.sha,
            diff=diff,
            files=tuple(files),
            commits=tuple(commits),
            auto_merge=parse_auto_merge(pr.raw_data.get("auto_merge")),
        )
        logger.info(
            f"Fetched PR #{pr_number}: {len(snapshot.files)} file(s), {len(snapshot.commits)} commit(s)"
        )
        return snapshot

    def _list_files(self, pr: PullRequest) -> list[ChangedFile]:
        return [
            ChangedFile(
                filename=f.filename,
                status=f.status,
                additions=f.additions,
                deletions=f.deletions,
                patch=f.patch,
            )
            for f in pr.get_files()
        ]

    def _list_commits(self, pr: PullRequest) -> list[Commit]:
        return [Commit(sha=c.sha, message=c.commit.message) for c in pr.get_commits()]

    def get_pr_diff(self, pr: PullRequest) -> str:
        """Get the unified diff for a PR as GitHub renders it.

        Args:
            pr: Pull request object

        Returns:
            Unified diff string
        """
        headers = {
            "Authorization": f"Bearer {self._token}",
            "Accept": DIFF_MEDIA_TYPE,
        }
        response = requests.get(pr.url, headers=headers, timeout=60)
        response.raise_for_status()
        return response.text

    # --- Reviews ---

    def _dismiss_previous_reviews(self, pr: PullRequest) -> int:
        """Dismiss earlier reviews posted by this tool.

        Approved reviews cannot be dismissed by every token; such failures are
        logged and skipped.

        Returns:
            Number of reviews dismissed
        """
        dismissed = 0
        for review in pr.get_reviews():
            if not is_bot_review(review.body):
                continue
            try:
                review.dismiss("Superseded by new review")
                dismissed += 1
            except GithubException as e:
                logger.warning(f"Could not dismiss review {review.id}: {e}")
        if dismissed:
            logger.info(f"Dismissed {dismissed} previous review(s) on PR #{pr.number}")
        return dismissed

    def post_review(self, pr_number: int, result: ReviewResult) -> str:
        """Post the consolidated review, replacing earlier ones.

        Approvals fall back to a plain comment when the token may not approve.

        Args:
            pr_number: Pull request number
            result: Review to post

        Returns:
            The review event that was used
        """
        pr = self.get_pull_request(pr_number)
        body = format_review_comment(self.repo_name, pr_number, result)

        self._dismiss_previous_reviews(pr)

        if result.status == ReviewStatus.APPROVED:
            try:
                pr.create_review(body=body, event="APPROVE")
                logger.info(f"Posted review to PR #{pr_number}: APPROVE")
                return "APPROVE"
            except GithubException as e:
                logger.info(f"APPROVE not permitted by token, posting as COMMENT instead: {e}")
            event = "COMMENT"
        else:
            event = "REQUEST_CHANGES"

        pr.create_review(body=body, event=event)
        logger.info(f"Posted review to PR #{pr_number}: {event}")
        return event

    # --- Issues and labels ---

    def create_tech_debt_issue(self, finding: Finding, pr_number: int) -> int:
        """Open a tracking issue for a tech debt finding.

        Returns:
            The new issue number
        """
        title, body = format_issue(finding, pr_number)
        issue = self.repo.create_issue(
            title=title,
            body=body,
            labels=[name for name, _, _ in TECH_DEBT_LABELS],
        )
        return issue.number

    def ensure_labels_exist(self) -> None:
        """Create the tech debt labels if the repository lacks them."""
        for name, color, description in TECH_DEBT_LABELS:
            try:
                self.repo.get_label(name)
            except UnknownObjectException:
                logger.info(f"Creating label {name}")
                self.repo.create_label(name=name, color=color, description=description)

    # --- Status and merge ---

    def set_commit_status(self, sha: str, state: str, description: str) -> None:
        """Set this tool's commit status on a commit.

        Args:
            sha: Commit SHA
            state: One of pending, success, failure, error
            description: Short human-readable description
        """
        if state not in COMMIT_STATES:
            raise ValueError(f"Invalid commit status state: {state}")
        self.repo.get_commit(sha).create_status(
            state=state,
            description=description,
            context=self.status_context,
        )
        logger.debug(f"Commit status {self.status_context} on {sha[:7]}: {state} ({description})")

    def merge_pull_request(self, pr_number: int, method: MergeMethod = MergeMethod.MERGE) -> None:
        """Merge a pull request.

        Raises:
            MergeError: If GitHub refuses the merge
        """
        pr = self.get_pull_request(pr_number)
        try:
            status = pr.merge(merge_method=method.value)
        except GithubException as e:
            raise MergeError(f"Failed to merge PR #{pr_number}: {e}") from e
        if not status.merged:
            raise MergeError(f"Failed to merge PR #{pr_number}: {status.message}")
        logger.info(f"Merged PR #{pr_number} ({method.value})")


def parse_auto_merge(raw: dict | None) -> AutoMerge | None:
    """Read the PR's auto-merge directive from the REST payload."""
    if not raw:
        return None
    try:
        method = MergeMethod(str(raw.get("merge_method") or "merge").lower())
    except ValueError:
        logger.warning(f"Unknown merge method {raw.get('merge_method')!r}, using merge")
        method = MergeMethod.MERGE
    return AutoMerge(merge_method=method)

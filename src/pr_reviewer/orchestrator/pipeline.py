"""Review pipeline: drives one pull request from pending status to a terminal state.

Flow for a single run:

    pending -> reviewing -> fixing -> done-autofix-pending
                         \\-> posting -> done-pass | done-block

A PR whose changed files are all excluded skips the model and is approved
directly. Any exception raised while reviewing, fixing or posting sets an
``error`` commit status and is re-raised.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

from pr_reviewer.agents.fixer import AutoFixer, is_auto_fix_commit
from pr_reviewer.agents.reviewer import ReviewAgent
from pr_reviewer.config import ReviewPolicy, ReviewSettings
from pr_reviewer.diff_filter import DiffPartition, is_excluded, partition_snapshot
from pr_reviewer.errors import MergeError
from pr_reviewer.github.client import GitHubClient
from pr_reviewer.github.formatter import auto_approval_result
from pr_reviewer.models.pull_request import PullRequestSnapshot
from pr_reviewer.models.review import ReviewResult, RunOutcome
from pr_reviewer.orchestrator.classifier import ClassifiedFindings, classify_findings

logger = logging.getLogger(__name__)

PENDING_DESCRIPTION = "Review in progress..."
AWAITING_RERUN_DESCRIPTION = "Auto-fix applied, awaiting re-review"
ALL_EXCLUDED_DESCRIPTION = "All changed files excluded from review"
PASSED_DESCRIPTION = "Review passed"

# GitHub rejects longer commit status descriptions.
_MAX_STATUS_DESCRIPTION = 140


class PipelineState(Enum):
    """States of a single pipeline run."""

    PENDING = "pending"
    REVIEWING = "reviewing"
    FIXING = "fixing"
    POSTING = "posting"
    DONE_PASS = "done-pass"
    DONE_BLOCK = "done-block"
    DONE_AUTOFIX_PENDING = "done-autofix-pending"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self in (
            PipelineState.DONE_PASS,
            PipelineState.DONE_BLOCK,
            PipelineState.DONE_AUTOFIX_PENDING,
            PipelineState.ERRORED,
        )


@dataclass
class RunReport:
    """What happened during one pipeline run."""

    pr_number: int
    state: PipelineState = PipelineState.PENDING
    outcome: RunOutcome | None = None
    result: ReviewResult | None = None
    classified: ClassifiedFindings = field(default_factory=ClassifiedFindings)
    excluded: list[str] = field(default_factory=list)
    issues_created: list[int] = field(default_factory=list)
    merge_attempted: bool = False
    merged: bool = False
    merge_error: str | None = None

    @property
    def exit_code(self) -> int:
        """Process exit status for this run."""
        if self.outcome in (RunOutcome.REVIEWED_AND_BLOCKED, RunOutcome.ERRORED):
            return 1
        if self.merge_error:
            return 1
        return 0


def blocking_description(count: int) -> str:
    return f"{count} blocking issue(s) found"


class ReviewPipeline:
    """Runs the review state machine for pull requests of one repository."""

    def __init__(
        self,
        gateway: GitHubClient,
        reviewer: ReviewAgent,
        policy: ReviewPolicy,
        settings: ReviewSettings,
        fixer: AutoFixer | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            gateway: GitHub client for the target repository
            reviewer: Agent that requests the structured review
            policy: Review policy for the repository
            settings: Run switches (auto-fix, auto-merge)
            fixer: Auto-fix engine; auto-fix is skipped when None
        """
        self.gateway = gateway
        self.reviewer = reviewer
        self.policy = policy
        self.settings = settings
        self.fixer = fixer

    async def run(self, pr_number: int) -> RunReport:
        """Review one pull request.

        Args:
            pr_number: Pull request number

        Returns:
            RunReport describing the terminal state

        Raises:
            Exception: Whatever failed while reviewing, fixing or posting,
                after the commit status was set to error
        """
        report = RunReport(pr_number=pr_number)

        await asyncio.to_thread(self.gateway.ensure_labels_exist)
        snapshot = await self.gateway.fetch_snapshot(pr_number)
        partition = partition_snapshot(snapshot, self.policy)
        report.excluded = list(partition.excluded)

        try:
            if partition.all_excluded:
                await self._auto_approve(snapshot, partition, report)
                return report

            await self._set_status(snapshot.head_sha, "pending", PENDING_DESCRIPTION)
            await self._review_and_post(snapshot, partition, report)
        except Exception as e:
            logger.error(f"Review of PR #{pr_number} failed in state {report.state.value}: {e}")
            report.state = PipelineState.ERRORED
            report.outcome = RunOutcome.ERRORED
            await self._report_error(snapshot.head_sha, e)
            raise

        return report

    async def _auto_approve(
        self,
        snapshot: PullRequestSnapshot,
        partition: DiffPartition,
        report: RunReport,
    ) -> None:
        """Approve without invoking the model because nothing is in review scope."""
        logger.info(f"All {partition.total_files} file(s) of PR #{snapshot.number} are excluded, auto-approving")
        report.state = PipelineState.POSTING
        result = auto_approval_result(partition.excluded, self._exclusion_reasons(partition.excluded))
        report.result = result

        await asyncio.to_thread(self.gateway.post_review, snapshot.number, result)
        await self._set_status(snapshot.head_sha, "success", ALL_EXCLUDED_DESCRIPTION)
        await self._maybe_merge(snapshot, report)

        report.state = PipelineState.DONE_PASS
        report.outcome = RunOutcome.AUTO_APPROVED_ALL_EXCLUDED

    async def _review_and_post(
        self,
        snapshot: PullRequestSnapshot,
        partition: DiffPartition,
        report: RunReport,
    ) -> None:
        report.state = PipelineState.REVIEWING
        logger.info(
            f'Reviewing PR #{snapshot.number} "{snapshot.title}": '
            f"{len(partition.snapshot.files)} file(s), {len(snapshot.commits)} commit(s)"
        )
        result = await self.reviewer.review(partition.snapshot, partition.excluded)
        report.result = result
        classified = classify_findings(result.findings)
        report.classified = classified

        if self._should_fix(snapshot, classified):
            report.state = PipelineState.FIXING
            logger.info(f"Attempting auto-fix for {len(classified.suggestions)} suggestion(s)")
            pushed = await self.fixer.apply(
                list(classified.suggestions), snapshot.number, snapshot.head_branch
            )
            if pushed:
                logger.info("Auto-fix commit pushed, the re-run will review it")
                await self._set_status(snapshot.head_sha, "pending", AWAITING_RERUN_DESCRIPTION)
                report.state = PipelineState.DONE_AUTOFIX_PENDING
                report.outcome = RunOutcome.FIXES_PUSHED_AWAITING_RERUN
                return

        report.state = PipelineState.POSTING
        await self._file_tech_debt(snapshot.number, classified, report)
        await asyncio.to_thread(self.gateway.post_review, snapshot.number, result)

        if classified.has_blocking:
            await self._set_status(
                snapshot.head_sha, "failure", blocking_description(len(classified.blocking))
            )
            report.state = PipelineState.DONE_BLOCK
            report.outcome = RunOutcome.REVIEWED_AND_BLOCKED
        else:
            await self._set_status(snapshot.head_sha, "success", PASSED_DESCRIPTION)
            await self._maybe_merge(snapshot, report)
            report.state = PipelineState.DONE_PASS
            report.outcome = RunOutcome.REVIEWED_AND_PASSED

        logger.info(
            f"Posted review: {result.status.value} "
            f"(blocking: {len(classified.blocking)}, suggestions: {len(classified.suggestions)}, "
            f"tech debt: {len(classified.tech_debt)})"
        )

    def _should_fix(self, snapshot: PullRequestSnapshot, classified: ClassifiedFindings) -> bool:
        if not self.settings.auto_fix or self.fixer is None:
            return False
        if is_auto_fix_commit(snapshot.latest_commit_message):
            logger.info("Latest commit is an auto-fix, skipping auto-fix to prevent loops")
            return False
        return bool(classified.suggestions)

    async def _file_tech_debt(
        self,
        pr_number: int,
        classified: ClassifiedFindings,
        report: RunReport,
    ) -> None:
        for finding in classified.tech_debt:
            try:
                number = await asyncio.to_thread(self.gateway.create_tech_debt_issue, finding, pr_number)
            except Exception as e:
                logger.warning(f"Failed to create issue for {finding.id}: {e}")
                continue
            report.issues_created.append(number)
            logger.info(f"Created tech debt issue #{number}: {finding.title}")

    async def _maybe_merge(self, snapshot: PullRequestSnapshot, report: RunReport) -> None:
        """Merge when the PR requests auto-merge and auto-merge is enabled.

        A refused merge is recorded on the report; the run still passes.
        """
        if not self.settings.auto_merge:
            logger.debug("Auto-merge disabled")
            return
        if snapshot.auto_merge is None:
            logger.debug(f"PR #{snapshot.number} has no auto-merge request")
            return

        report.merge_attempted = True
        try:
            await asyncio.to_thread(
                self.gateway.merge_pull_request, snapshot.number, snapshot.auto_merge.merge_method
            )
        except MergeError as e:
            logger.error(str(e))
            report.merge_error = str(e)
            return
        report.merged = True

    async def _set_status(self, sha: str, state: str, description: str) -> None:
        await asyncio.to_thread(
            self.gateway.set_commit_status, sha, state, description[:_MAX_STATUS_DESCRIPTION]
        )

    async def _report_error(self, sha: str, error: Exception) -> None:
        try:
            await self._set_status(sha, "error", f"Review failed: {error}")
        except Exception as status_error:
            logger.warning(f"Could not set error status: {status_error}")

    def _exclusion_reasons(self, filenames: list[str]) -> dict[str, str]:
        reasons: dict[str, str] = {}
        for name in filenames:
            for rule in self.policy.exclude_paths:
                if is_excluded(name, [rule.path]):
                    if rule.reason:
                        reasons[name] = rule.reason
                    break
        return reasons

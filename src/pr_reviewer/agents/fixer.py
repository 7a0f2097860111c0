"""Auto-fix engine: rewrites files to apply suggestion findings, then commits and pushes.

Pushing to the PR branch retriggers the review pipeline. Every commit made
here starts with AUTO_FIX_COMMIT_PREFIX, and the pipeline never runs the fixer
when the latest commit carries it.
"""

import logging
from collections import defaultdict
from pathlib import Path

from pr_reviewer.agents.model_client import ModelClient
from pr_reviewer.errors import GitError
from pr_reviewer.git_ops import GitOps, authenticated_remote
from pr_reviewer.models.findings import Finding
from pr_reviewer.prompts import FIX_SYSTEM_PROMPT, build_fix_message

logger = logging.getLogger(__name__)

AUTO_FIX_COMMIT_PREFIX = "fix: auto-fix review suggestions"


def is_auto_fix_commit(commit_message: str) -> bool:
    """Check whether a commit was produced by the auto-fixer."""
    return commit_message.startswith(AUTO_FIX_COMMIT_PREFIX)


def group_fixable_by_file(findings: list[Finding]) -> dict[str, list[Finding]]:
    """Group findings that carry a concrete fix by target file, preserving order."""
    groups: dict[str, list[Finding]] = defaultdict(list)
    for finding in findings:
        if not finding.is_auto_fixable:
            continue
        groups[finding.file].append(finding)
    return dict(groups)


def strip_code_fence(content: str) -> str:
    """Remove a surrounding markdown fence if the model added one anyway.

    Everything between the opening fence line and the last closing fence is
    kept; content that does not start with a fence is returned unchanged.
    """
    stripped = content.strip()
    if not stripped.startswith("```"):
        return content
    first_newline = stripped.find("\n")
    last_fence = stripped.rfind("```")
    if first_newline == -1 or last_fence <= first_newline:
        return content
    return stripped[first_newline + 1 : last_fence]


def describe_fixes(findings: list[Finding]) -> str:
    """Bullet list of fixes for one file."""
    return "\n".join(
        f"- [{f.id}] {f.title} (line ~{f.line if f.line else 'unknown'}): {f.suggested_fix}"
        for f in findings
    )


class AutoFixer:
    """Applies suggestion fixes to a checked-out working tree."""

    def __init__(
        self,
        client: ModelClient,
        workspace: Path,
        repo_name: str,
        token: str,
        git_host: str = "github.com",
        max_tokens: int = 4096,
    ) -> None:
        """Initialize the fixer.

        Args:
            client: Model API client used for whole-file rewrites
            workspace: Root of the PR checkout
            repo_name: Repository in "owner/name" format
            token: Token with push access to the PR branch
            git_host: Host part of the push URL
            max_tokens: Completion budget for one rewritten file
        """
        self.client = client
        self.workspace = Path(workspace).resolve()
        self.repo_name = repo_name
        self._token = token
        self.git_host = git_host
        self.max_tokens = max_tokens
        self.git = GitOps(self.workspace, redact=(token,))

    def _resolve(self, file_path: str) -> Path:
        """Resolve a repo-relative path inside the workspace.

        Raises:
            ValueError: If the path points outside the workspace
        """
        path = (self.workspace / file_path).resolve()
        if not path.is_relative_to(self.workspace):
            raise ValueError(f"{file_path} is outside the workspace")
        return path

    async def fix_file(self, file_path: str, findings: list[Finding]) -> bool:
        """Ask the model for a rewritten file and write it if it changed.

        Returns:
            True if the file on disk was modified
        """
        path = self._resolve(file_path)
        original = path.read_text(encoding="utf-8")

        fixed = await self.client.complete(
            system_prompt=FIX_SYSTEM_PROMPT,
            user_prompt=build_fix_message(describe_fixes(findings), original),
            max_tokens=self.max_tokens,
        )
        fixed = strip_code_fence(fixed)
        if not fixed.strip():
            raise ValueError("model returned empty content")
        if fixed.strip() == original.strip():
            logger.info(f"No changes produced for {file_path}")
            return False

        path.write_text(fixed, encoding="utf-8")
        logger.info(f"Auto-fixed: {file_path} ({len(findings)} suggestion(s) applied)")
        return True

    async def apply(self, suggestions: list[Finding], pr_number: int, head_branch: str | None) -> bool:
        """Apply every fixable suggestion and push a single commit.

        Args:
            suggestions: Suggestion-severity findings
            pr_number: Pull request the findings came from
            head_branch: Branch to push the fix commit to

        Returns:
            True if a fix commit was pushed
        """
        groups = group_fixable_by_file(suggestions)
        if not groups:
            logger.info("No suggestions with concrete fixes to auto-apply")
            return False

        files_changed = 0
        for file_path, findings in groups.items():
            try:
                if await self.fix_file(file_path, findings):
                    files_changed += 1
            except Exception as e:
                logger.warning(f"Failed to auto-fix {file_path}: {e}")

        if files_changed == 0:
            return False

        if not head_branch:
            logger.warning("Could not determine PR head branch for auto-fix push")
            return False

        message = (
            f"{AUTO_FIX_COMMIT_PREFIX}\n\n"
            f"Auto-fixed {files_changed} file(s) from PR #{pr_number} review"
        )
        try:
            self.git.configure_identity()
            self.git.stage_all()
            sha = self.git.commit(message)
            self.git.push(authenticated_remote(self.repo_name, self._token, self.git_host), head_branch)
        except GitError as e:
            logger.warning(f"Failed to push auto-fix commit: {e}")
            return False

        logger.info(f"Pushed auto-fix commit {sha[:7]} for {files_changed} file(s)")
        return True

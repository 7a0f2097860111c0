"""Pull request snapshot models."""

from dataclasses import dataclass, field, replace
from enum import Enum


class MergeMethod(Enum):
    """Merge strategies accepted by the GitHub merge API."""

    MERGE = "merge"
    SQUASH = "squash"
    REBASE = "rebase"


@dataclass(frozen=True)
class AutoMerge:
    """Auto-merge directive requested on the pull request."""

    merge_method: MergeMethod = MergeMethod.MERGE


@dataclass(frozen=True)
class Commit:
    """A commit on the pull request branch."""

    sha: str
    message: str

    @property
    def short_sha(self) -> str:
        return self.sha[:7]


@dataclass(frozen=True)
class ChangedFile:
    """A file touched by the pull request."""

    filename: str
    status: str  # added | modified | removed | renamed
    additions: int = 0
    deletions: int = 0
    patch: str | None = None


@dataclass(frozen=True)
class PullRequestSnapshot:
    """Everything the pipeline needs to know about a PR, captured once per run."""

    number: int
    title: str
    body: str
    base_branch: str
    head_branch: str
    head_sha: str
    diff: str
    files: tuple[ChangedFile, ...] = field(default_factory=tuple)
    commits: tuple[Commit, ...] = field(default_factory=tuple)
    auto_merge: AutoMerge | None = None

    @property
    def latest_commit_message(self) -> str:
        """Message of the most recent commit, or an empty string."""
        return self.commits[-1].message if self.commits else ""

    @property
    def filenames(self) -> list[str]:
        return [f.filename for f in self.files]

    def narrowed(self, files: tuple[ChangedFile, ...], diff: str) -> "PullRequestSnapshot":
        """Return a copy restricted to the given files and diff."""
        return replace(self, files=tuple(files), diff=diff)

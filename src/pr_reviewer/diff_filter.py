"""Partition a pull request into in-scope and excluded files.

Exclusions are plain path prefixes taken from the review policy
(``exclude_paths[].path``), e.g. ``migrations/`` or ``vendor/``. Glob syntax
is not interpreted.

A unified diff is split at every ``diff --git a/<path> b/<path>`` header.
The path comes from the header, or from the section's extended header lines
when the header alone is ambiguous. Sections with no readable path are kept:
content that was not examined is never dropped.
"""

import logging
import re
from dataclasses import dataclass, field

from pr_reviewer.config import ReviewPolicy
from pr_reviewer.models.pull_request import ChangedFile, PullRequestSnapshot

logger = logging.getLogger(__name__)

_DIFF_HEADER = "diff --git "
_QUOTED_HEADER_RE = re.compile(r'^diff --git "a/(?P<a>.+)" "b/(?P<b>.+)"$')


@dataclass(frozen=True)
class DiffPartition:
    """Result of filtering a snapshot against exclusion prefixes."""

    snapshot: PullRequestSnapshot
    excluded: list[str] = field(default_factory=list)
    total_files: int = 0

    @property
    def all_excluded(self) -> bool:
        """True when the PR changed files but every one of them is excluded."""
        return self.total_files > 0 and not self.snapshot.files


def is_excluded(path: str, prefixes: list[str]) -> bool:
    """Return True if path starts with any exclusion prefix."""
    return any(path.startswith(prefix) for prefix in prefixes)


def split_diff_sections(diff: str) -> list[str]:
    """Split a multi-file unified diff into per-file sections.

    Text before the first header (if any) is returned as its own leading
    section. Concatenating the result reproduces the input exactly.
    """
    if not diff:
        return []

    sections: list[str] = []
    current: list[str] = []
    for line in diff.splitlines(keepends=True):
        if line.startswith(_DIFF_HEADER) and current:
            sections.append("".join(current))
            current = []
        current.append(line)
    if current:
        sections.append("".join(current))
    return sections


def _symmetric_path(rest: str) -> str | None:
    """Path from ``a/P b/P`` when both halves agree, whatever spaces P holds."""
    if not rest.startswith("a/") or (len(rest) - 1) % 2:
        return None
    half = (len(rest) - 1) // 2
    if rest[half:half + 3] != " b/":
        return None
    path = rest[2:half]
    return path if path and path == rest[half + 3:] else None


def _path_from_extended_header(section: str) -> str | None:
    """Path from ``rename to``, ``+++ b/`` or ``--- a/`` lines before the first hunk."""
    old_path = None
    for line in section.splitlines()[1:]:
        if line.startswith("@@"):
            break
        if line.startswith("rename to "):
            return line[len("rename to "):]
        if line.startswith("+++ b/"):
            return line[len("+++ b/"):].split("\t", 1)[0]
        if line.startswith("--- a/"):
            old_path = line[len("--- a/"):].split("\t", 1)[0]
    return old_path


def section_path(section: str) -> str | None:
    """Extract the post-image path of a diff section.

    An unquoted ``diff --git a/P b/P`` header is ambiguous when P contains
    `` b/``, so it is split into two equal halves. Headers that differ on each
    side (renames) fall back to the ``rename to`` or ``+++ b/`` line, and
    deletions to the ``--- a/`` line.

    Returns:
        The post-image path, or None if no path can be read
    """
    header = section.split("\n", 1)[0].rstrip("\r")
    if not header.startswith(_DIFF_HEADER):
        return None
    match = _QUOTED_HEADER_RE.match(header)
    if match:
        return match.group("b")
    return _symmetric_path(header[len(_DIFF_HEADER):]) or _path_from_extended_header(section)


def filter_diff(diff: str, prefixes: list[str]) -> str:
    """Remove the sections of excluded files from a unified diff."""
    if not prefixes:
        return diff

    kept = []
    for section in split_diff_sections(diff):
        path = section_path(section)
        if path is None:
            if section.startswith(_DIFF_HEADER):
                logger.debug(f"Keeping diff section with unparseable header: {section[:80]!r}")
            kept.append(section)
            continue
        if is_excluded(path, prefixes):
            continue
        kept.append(section)
    return "".join(kept)


def filter_files(
    files: tuple[ChangedFile, ...] | list[ChangedFile],
    prefixes: list[str],
) -> tuple[list[ChangedFile], list[str]]:
    """Split changed files into (kept files, excluded filenames), preserving order."""
    kept: list[ChangedFile] = []
    excluded: list[str] = []
    for changed in files:
        if is_excluded(changed.filename, prefixes):
            excluded.append(changed.filename)
        else:
            kept.append(changed)
    return kept, excluded


def partition_snapshot(snapshot: PullRequestSnapshot, policy: ReviewPolicy) -> DiffPartition:
    """Narrow a snapshot to the files in review scope.

    Args:
        snapshot: Snapshot fetched from GitHub
        policy: Review policy holding the exclusion prefixes

    Returns:
        DiffPartition with the narrowed snapshot and excluded filenames
    """
    prefixes = policy.exclude_prefixes
    kept, excluded = filter_files(snapshot.files, prefixes)
    diff = filter_diff(snapshot.diff, prefixes)

    if excluded:
        logger.info(f"Excluded {len(excluded)} of {len(snapshot.files)} file(s) from review")

    return DiffPartition(
        snapshot=snapshot.narrowed(tuple(kept), diff),
        excluded=excluded,
        total_files=len(snapshot.files),
    )

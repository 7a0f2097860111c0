"""Pytest configuration and shared fixtures."""

import pytest

from pr_reviewer.config import ExcludePath, ReviewPolicy, ReviewSettings
from pr_reviewer.models.findings import Finding, Severity
from pr_reviewer.models.pull_request import ChangedFile, Commit, PullRequestSnapshot

# Three-file diff: one source file, one migration, one vendored file
SAMPLE_MULTI_FILE_DIFF = """\
diff --git a/src/app.py b/src/app.py
index 1234567..abcdefg 100644
--- a/src/app.py
+++ b/src/app.py
@@ -1,3 +1,4 @@
 import os
+import sys

 def main():
diff --git a/migrations/0002_add_index.sql b/migrations/0002_add_index.sql
new file mode 100644
index 0000000..1111111
--- /dev/null
+++ b/migrations/0002_add_index.sql
@@ -0,0 +1 @@
+CREATE INDEX idx_users_org ON users (org_id);
diff --git a/vendor/lib.js b/vendor/lib.js
index 2222222..3333333 100644
--- a/vendor/lib.js
+++ b/vendor/lib.js
@@ -1 +1 @@
-var a = 1;
+var a = 2;
"""

SAMPLE_POLICY_YAML = """\
project_type: saas-api
language: python
schema:
  orm: sqlalchemy
  path: src/models
multi_tenancy:
  enabled: true
  scope_column: org_id
  check_description: Every query must be scoped to the current organization
  applies_to:
    - src/
auth:
  provider: oauth2
  middleware_import: app.auth.require_user
  protected_routes: /api/*
  except:
    - /api/health
testing:
  framework: pytest
  test_dir: tests
  source_dirs:
    - src
exclude_paths:
  - path: migrations/
    reason: generated by alembic
  - path: vendor/
    reason: third-party code
conventions:
  - Use structured logging
"""


def make_finding(
    id: str = "S1",
    severity: Severity = Severity.SUGGESTION,
    file: str = "src/app.py",
    line: int | None = 2,
    title: str = "Unused import",
    description: str = "sys is imported but never used",
    suggested_fix: str | None = "remove `import sys`",
) -> Finding:
    """Build a Finding with sensible defaults."""
    return Finding(
        id=id,
        title=title,
        file=file,
        line=line,
        severity=severity,
        description=description,
        suggested_fix=suggested_fix,
    )


def make_snapshot(
    filenames: list[str] | None = None,
    diff: str = SAMPLE_MULTI_FILE_DIFF,
    commit_messages: list[str] | None = None,
    auto_merge=None,
) -> PullRequestSnapshot:
    """Build a PullRequestSnapshot with sensible defaults."""
    if filenames is None:
        filenames = ["src/app.py", "migrations/0002_add_index.sql", "vendor/lib.js"]
    if commit_messages is None:
        commit_messages = ["feat: add index"]
    return PullRequestSnapshot(
        number=42,
        title="Add org index",
        body="Adds an index on users.org_id",
        base_branch="main",
        head_branch="feature/index",
        head_sha="abc1234def5678",
        diff=diff,
        files=tuple(ChangedFile(filename=name, status="modified", additions=1, deletions=0) for name in filenames),
        commits=tuple(Commit(sha=f"{i:040x}", message=msg) for i, msg in enumerate(commit_messages, 1)),
        auto_merge=auto_merge,
    )


@pytest.fixture
def sample_diff() -> str:
    """A diff touching source, migration and vendored files."""
    return SAMPLE_MULTI_FILE_DIFF


@pytest.fixture
def policy_file(tmp_path):
    """A complete review policy written to disk."""
    path = tmp_path / "review-config.yml"
    path.write_text(SAMPLE_POLICY_YAML)
    return path


@pytest.fixture
def minimal_policy() -> ReviewPolicy:
    """Policy with only the required fields."""
    return ReviewPolicy(project_type="library", language="python")


@pytest.fixture
def excluding_policy() -> ReviewPolicy:
    """Policy excluding migrations and vendored code."""
    return ReviewPolicy(
        project_type="saas-api",
        language="python",
        exclude_paths=(
            ExcludePath(path="migrations/", reason="generated"),
            ExcludePath(path="vendor/", reason="third-party"),
        ),
    )


@pytest.fixture
def review_settings() -> ReviewSettings:
    """Default run switches: auto-fix and auto-merge on."""
    return ReviewSettings()


@pytest.fixture
def snapshot() -> PullRequestSnapshot:
    """A three-file pull request snapshot."""
    return make_snapshot()

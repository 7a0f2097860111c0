"""Tests for GitHub integration."""

from unittest.mock import MagicMock, patch

import pytest
from github.GithubException import GithubException, UnknownObjectException

from conftest import make_finding


def _client():
    from pr_reviewer.github.client import GitHubClient

    with patch("pr_reviewer.github.client.Github") as mock_github:
        client = GitHubClient("ghp_test", "test-org/test-repo")
    repo = mock_github.return_value.get_repo.return_value
    return client, repo


def _result(status: str = "approved", findings=()):
    from pr_reviewer.models.review import ReviewResult, ReviewStatus

    return ReviewResult(status=ReviewStatus(status), summary="Summary text.", findings=tuple(findings))


class TestFormatter:
    """Tests for review body formatting."""

    def test_review_comment_sections(self):
        """Test marker, payload and one section per severity."""
        from pr_reviewer.github.formatter import REVIEW_MARKER, format_review_comment
        from pr_reviewer.models.findings import Severity

        body = format_review_comment(
            "test-repo",
            42,
            _result(
                "changes_requested",
                [
                    make_finding(id="B1", severity=Severity.BLOCKING, suggested_fix=None),
                    make_finding(id="S1"),
                    make_finding(id="T1", severity=Severity.TECH_DEBT, line=None),
                ],
            ),
        )

        assert body.startswith(REVIEW_MARKER + "\n<!-- PR_REVIEW_DATA: ")
        assert "## PR Review: test-repo #42" in body
        assert "### Status: CHANGES_REQUESTED" in body
        assert "### Blocking Issues (1)" in body
        assert "### Suggestions (1)" in body
        assert "### Tech Debt (1)" in body
        assert "- **[B1] Unused import** | `src/app.py:2` | severity: blocking" in body
        assert "`src/app.py` | severity: tech_debt" in body
        assert "No issues found" not in body

    def test_clean_review(self):
        """Test an empty review says so."""
        from pr_reviewer.github.formatter import format_review_comment

        body = format_review_comment("test-repo", 1, _result())

        assert "### Status: APPROVED" in body
        assert "No issues found. Code looks good!" in body
        assert "### Blocking" not in body

    def test_payload_round_trip(self):
        """Test the embedded payload can be read back."""
        from pr_reviewer.github.formatter import format_review_comment, parse_review_data

        result = _result("approved", [make_finding()])

        data = parse_review_data(format_review_comment("r", 1, result))

        assert data == result.to_payload()

    def test_payload_cannot_close_comment(self):
        """Test angle brackets in findings are escaped inside the hidden comment."""
        from pr_reviewer.github.formatter import format_review_comment, parse_review_data

        finding = make_finding(description="breaks on --> and <script>")
        body = format_review_comment("r", 1, _result("approved", [finding]))

        hidden = body.split("\n")[1]
        assert hidden.count("-->") == 1
        assert parse_review_data(body)["findings"][0]["description"] == "breaks on --> and <script>"

    def test_parse_review_data_missing(self):
        """Test bodies without a payload yield None."""
        from pr_reviewer.github.formatter import parse_review_data

        assert parse_review_data("just a comment") is None
        assert parse_review_data("<!-- PR_REVIEW_DATA: {broken -->") is None

    def test_format_issue(self):
        """Test tech debt issue title and body."""
        from pr_reviewer.github.formatter import format_issue
        from pr_reviewer.models.findings import Severity

        title, body = format_issue(make_finding(severity=Severity.TECH_DEBT, title="No tests"), 42)

        assert title == "[Tech Debt] No tests"
        assert body.startswith("**Source:** PR #42\n**File:** `src/app.py:2`")
        assert "**Suggested approach:**" in body

    def test_auto_approval_result(self):
        """Test the auto-approval lists excluded files and reasons."""
        from pr_reviewer.github.formatter import auto_approval_result
        from pr_reviewer.models.review import ReviewStatus

        result = auto_approval_result(["vendor/a.js", "docs/x.md"], {"vendor/a.js": "third-party"})

        assert result.status == ReviewStatus.APPROVED
        assert result.findings == ()
        assert "`vendor/a.js` (third-party)" in result.summary
        assert "`docs/x.md`" in result.summary


class TestGitHubClient:
    """Tests for the GitHub client."""

    @pytest.mark.asyncio
    async def test_fetch_snapshot(self):
        """Test PR metadata, files, commits and diff are captured."""
        client, repo = _client()
        pr = repo.get_pull.return_value
        pr.number = 42
        pr.title = "Add index"
        pr.body = None
        pr.base.ref = "main"
        pr.head.ref = "feature/index"
        pr.head.sha = "abc123"
        pr.url = "https://api.github.com/repos/test-org/test-repo/pulls/42"
        pr.raw_data = {"auto_merge": {"merge_method": "squash"}}
        changed = MagicMock(filename="src/app.py", status="modified", additions=3, deletions=1, patch="@@")
        pr.get_files.return_value = [changed]
        commit = MagicMock(sha="abc123")
        commit.commit.message = "feat: add index"
        pr.get_commits.return_value = [commit]

        with patch("pr_reviewer.github.client.requests.get") as mock_get:
            mock_get.return_value.text = "diff --git a/src/app.py b/src/app.py\n"

            snapshot = await client.fetch_snapshot(42)

        from pr_reviewer.models.pull_request import MergeMethod

        assert snapshot.body == ""
        assert snapshot.head_branch == "feature/index"
        assert snapshot.filenames == ["src/app.py"]
        assert snapshot.latest_commit_message == "feat: add index"
        assert snapshot.diff.startswith("diff --git")
        assert snapshot.auto_merge.merge_method == MergeMethod.SQUASH
        assert mock_get.call_args.kwargs["headers"]["Accept"] == "application/vnd.github.v3.diff"

    def test_parse_auto_merge(self):
        """Test missing or unknown auto-merge directives."""
        from pr_reviewer.github.client import parse_auto_merge
        from pr_reviewer.models.pull_request import MergeMethod

        assert parse_auto_merge(None) is None
        assert parse_auto_merge({"merge_method": "octopus"}).merge_method == MergeMethod.MERGE

    def test_post_review_dismisses_previous_bot_reviews(self):
        """Test only reviews carrying the marker are dismissed."""
        from pr_reviewer.github.formatter import REVIEW_MARKER

        client, repo = _client()
        pr = repo.get_pull.return_value
        ours = MagicMock(body=f"{REVIEW_MARKER}\nold")
        ours.dismiss.side_effect = GithubException(422, {"message": "Can not dismiss"}, None)
        newer = MagicMock(body=f"{REVIEW_MARKER}\nolder")
        human = MagicMock(body="LGTM")
        pr.get_reviews.return_value = [ours, newer, human]

        event = client.post_review(42, _result("changes_requested"))

        assert event == "REQUEST_CHANGES"
        newer.dismiss.assert_called_once_with("Superseded by new review")
        human.dismiss.assert_not_called()
        assert pr.create_review.call_args.kwargs["event"] == "REQUEST_CHANGES"

    def test_post_review_approve_falls_back_to_comment(self):
        """Test an approval the token may not give becomes a comment."""
        client, repo = _client()
        pr = repo.get_pull.return_value
        pr.get_reviews.return_value = []
        pr.create_review.side_effect = [GithubException(422, {"message": "not permitted"}, None), None]

        event = client.post_review(42, _result("approved"))

        assert event == "COMMENT"
        events = [c.kwargs["event"] for c in pr.create_review.call_args_list]
        assert events == ["APPROVE", "COMMENT"]

    def test_create_tech_debt_issue(self):
        """Test issues carry the fixed label pair."""
        from pr_reviewer.models.findings import Severity

        client, repo = _client()
        repo.create_issue.return_value.number = 7

        number = client.create_tech_debt_issue(make_finding(severity=Severity.TECH_DEBT), 42)

        assert number == 7
        assert repo.create_issue.call_args.kwargs["labels"] == ["tech-debt", "automated"]

    def test_set_commit_status(self):
        """Test statuses use the configured context."""
        client, repo = _client()

        client.set_commit_status("abc123", "failure", "2 blocking issue(s) found")

        repo.get_commit.assert_called_once_with("abc123")
        repo.get_commit.return_value.create_status.assert_called_once_with(
            state="failure", description="2 blocking issue(s) found", context="pr-review"
        )

    def test_set_commit_status_rejects_unknown_state(self):
        """Test unknown states are refused."""
        client, _ = _client()

        with pytest.raises(ValueError):
            client.set_commit_status("abc123", "skipped", "")

    def test_merge(self):
        """Test merging uses the requested method."""
        from pr_reviewer.models.pull_request import MergeMethod

        client, repo = _client()
        repo.get_pull.return_value.merge.return_value.merged = True

        client.merge_pull_request(42, MergeMethod.SQUASH)

        repo.get_pull.return_value.merge.assert_called_once_with(merge_method="squash")

    def test_merge_failure(self):
        """Test a refused merge raises MergeError."""
        from pr_reviewer.errors import MergeError

        client, repo = _client()
        repo.get_pull.return_value.merge.side_effect = GithubException(405, {"message": "not mergeable"}, None)

        with pytest.raises(MergeError, match="PR #42"):
            client.merge_pull_request(42)

    def test_ensure_labels_exist(self):
        """Test only missing labels are created."""
        client, repo = _client()
        repo.get_label.side_effect = [MagicMock(), UnknownObjectException(404, {"message": "Not Found"}, None)]

        client.ensure_labels_exist()

        repo.create_label.assert_called_once_with(
            name="automated", color="e6e6e6", description="Created by automated tooling"
        )

"""Tests for data models."""

import dataclasses

import pytest

from conftest import make_finding, make_snapshot


class TestFinding:
    """Tests for Finding model."""

    def test_finding_creation(self):
        """Test creating a basic finding."""
        from pr_reviewer.models.findings import Severity

        finding = make_finding(id="B1", severity=Severity.BLOCKING, suggested_fix=None)

        assert finding.id == "B1"
        assert finding.severity == Severity.BLOCKING
        assert finding.suggested_fix is None

    def test_finding_is_immutable(self):
        """Test findings cannot be modified after construction."""
        finding = make_finding()

        with pytest.raises(dataclasses.FrozenInstanceError):
            finding.title = "changed"

    def test_suggestion_without_fix_is_inert(self):
        """Test a suggestion lacking a fix is not auto-fixable."""
        assert make_finding(suggested_fix="x = 1").is_auto_fixable
        assert not make_finding(suggested_fix=None).is_auto_fixable
        assert not make_finding(suggested_fix="").is_auto_fixable

    def test_non_suggestions_are_never_auto_fixable(self):
        """Test blocking and tech debt findings are not handed to the fixer."""
        from pr_reviewer.models.findings import Severity

        assert not make_finding(severity=Severity.BLOCKING, suggested_fix="fix it").is_auto_fixable
        assert not make_finding(severity=Severity.TECH_DEBT, suggested_fix="fix it").is_auto_fixable

    def test_location(self):
        """Test location includes the line only when known."""
        assert make_finding(file="a.py", line=7).location == "a.py:7"
        assert make_finding(file="a.py", line=None).location == "a.py"

    def test_from_dict(self):
        """Test building a finding from a submit_review entry."""
        from pr_reviewer.models.findings import Finding, Severity

        finding = Finding.from_dict(
            {
                "id": "T1",
                "title": "Duplicated logic",
                "file": "src/a.py",
                "line": 12.0,
                "severity": "TECH_DEBT",
                "description": "Same loop in two places",
                "suggested_fix": None,
            }
        )

        assert finding.severity == Severity.TECH_DEBT
        assert finding.line == 12
        assert finding.suggested_fix is None

    def test_to_dict_uses_severity_value(self):
        """Test serialization matches the model's payload shape."""
        data = make_finding().to_dict()

        assert data["severity"] == "suggestion"
        assert set(data) == {"id", "title", "file", "line", "severity", "description", "suggested_fix"}

    def test_id_prefix(self):
        """Test severity id prefixes."""
        from pr_reviewer.models.findings import Severity

        assert [s.id_prefix for s in Severity] == ["B", "S", "T"]


class TestReviewResult:
    """Tests for ReviewResult model."""

    def test_blocking_finding_forces_changes_requested(self):
        """Test the model's approval is overridden when blocking findings exist."""
        from pr_reviewer.models.findings import Severity
        from pr_reviewer.models.review import ReviewResult, ReviewStatus

        result = ReviewResult(
            status=ReviewStatus.APPROVED,
            summary="Looks fine",
            findings=(make_finding(id="B1", severity=Severity.BLOCKING),),
        )

        corrected = result.with_corrected_status()

        assert corrected.status == ReviewStatus.CHANGES_REQUESTED
        assert result.status == ReviewStatus.APPROVED

    def test_status_kept_without_blocking(self):
        """Test non-blocking results keep the reported status."""
        from pr_reviewer.models.review import ReviewResult, ReviewStatus

        approved = ReviewResult(status=ReviewStatus.APPROVED, summary="", findings=(make_finding(),))
        requested = ReviewResult(status=ReviewStatus.CHANGES_REQUESTED, summary="", findings=())

        assert approved.with_corrected_status() is approved
        assert requested.with_corrected_status().status == ReviewStatus.CHANGES_REQUESTED

    def test_to_payload(self):
        """Test the embedded payload carries status and findings only."""
        from pr_reviewer.models.review import ReviewResult, ReviewStatus

        result = ReviewResult(status=ReviewStatus.APPROVED, summary="ok", findings=(make_finding(),))

        payload = result.to_payload()

        assert payload["status"] == "approved"
        assert payload["findings"][0]["id"] == "S1"
        assert "summary" not in payload


class TestPullRequestSnapshot:
    """Tests for PullRequestSnapshot model."""

    def test_latest_commit_message(self):
        """Test latest commit is the last one in the list."""
        snapshot = make_snapshot(commit_messages=["first", "second"])

        assert snapshot.latest_commit_message == "second"

    def test_latest_commit_message_without_commits(self):
        """Test an empty commit list yields an empty message."""
        assert make_snapshot(commit_messages=[]).latest_commit_message == ""

    def test_narrowed_returns_new_snapshot(self):
        """Test narrowing leaves the original untouched."""
        snapshot = make_snapshot()

        narrowed = snapshot.narrowed(snapshot.files[:1], "")

        assert narrowed.filenames == ["src/app.py"]
        assert narrowed.diff == ""
        assert len(snapshot.files) == 3
        assert narrowed.head_sha == snapshot.head_sha

    def test_short_sha(self):
        """Test commits abbreviate their SHA to seven characters."""
        from pr_reviewer.models.pull_request import Commit

        assert Commit(sha="0123456789abcdef", message="m").short_sha == "0123456"

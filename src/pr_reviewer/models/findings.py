"""Finding models for code review results."""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


class Severity(Enum):
    """Severity levels for findings. Canonical semantics for prompts and control flow.

    - BLOCKING: Must be fixed before merge; forces a failing commit status.
    - SUGGESTION: Trivial, auto-fixable issue; handed to the auto-fixer when it carries a fix.
    - TECH_DEBT: Non-blocking; tracked as a GitHub issue.
    """

    BLOCKING = "blocking"
    SUGGESTION = "suggestion"
    TECH_DEBT = "tech_debt"

    @property
    def id_prefix(self) -> str:
        """Letter used for finding ids of this severity (B1, S1, T1...)."""
        return {
            Severity.BLOCKING: "B",
            Severity.SUGGESTION: "S",
            Severity.TECH_DEBT: "T",
        }[self]


@dataclass(frozen=True)
class Finding:
    """A single issue reported by the review model."""

    id: str
    title: str
    file: str
    line: int | None
    severity: Severity
    description: str
    suggested_fix: str | None = None

    @property
    def is_auto_fixable(self) -> bool:
        """Suggestions without a concrete fix are inert."""
        return self.severity == Severity.SUGGESTION and bool(self.suggested_fix)

    @property
    def location(self) -> str:
        """File path with the line number appended when known."""
        return f"{self.file}:{self.line}" if self.line else self.file

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the same shape the model submitted."""
        data = asdict(self)
        data["severity"] = self.severity.value
        return data

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Finding":
        """Build a finding from a submit_review payload entry.

        Raises:
            KeyError: If a required field is missing
            ValueError: If severity or line cannot be interpreted
        """
        line = raw.get("line")
        suggested_fix = raw.get("suggested_fix")
        return cls(
            id=str(raw["id"]),
            title=str(raw["title"]),
            file=str(raw["file"]),
            line=int(line) if line not in (None, "") else None,
            severity=Severity(str(raw["severity"]).lower()),
            description=str(raw["description"]),
            suggested_fix=str(suggested_fix) if suggested_fix else None,
        )

"""Splits review findings by severity."""

import logging
from dataclasses import dataclass, field

from pr_reviewer.models.findings import Finding, Severity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassifiedFindings:
    """Findings grouped by severity, each group in the order the model reported them."""

    blocking: tuple[Finding, ...] = field(default_factory=tuple)
    suggestions: tuple[Finding, ...] = field(default_factory=tuple)
    tech_debt: tuple[Finding, ...] = field(default_factory=tuple)

    @property
    def has_blocking(self) -> bool:
        return bool(self.blocking)

    @property
    def total(self) -> int:
        return len(self.blocking) + len(self.suggestions) + len(self.tech_debt)


def classify_findings(findings: tuple[Finding, ...] | list[Finding]) -> ClassifiedFindings:
    """Partition findings into blocking, suggestion and tech debt groups.

    Nothing is dropped, merged or de-duplicated; findings sharing an id are
    passed through as-is.

    Args:
        findings: Findings from a review result

    Returns:
        ClassifiedFindings whose groups are disjoint and together hold every input finding
    """
    groups: dict[Severity, list[Finding]] = {severity: [] for severity in Severity}
    for finding in findings:
        groups[finding.severity].append(finding)

    classified = ClassifiedFindings(
        blocking=tuple(groups[Severity.BLOCKING]),
        suggestions=tuple(groups[Severity.SUGGESTION]),
        tech_debt=tuple(groups[Severity.TECH_DEBT]),
    )
    logger.debug(
        f"Classified {classified.total} finding(s): {len(classified.blocking)} blocking, "
        f"{len(classified.suggestions)} suggestion(s), {len(classified.tech_debt)} tech debt"
    )
    return classified

"""
Severity classifier -- pure functions over conflict findings.

    ok < info < advertencia < alto < critico

Only ``critico`` requires approval. Error-flagged findings (failed
sub-checks) never count toward shortfall or advisory counts.
"""

from __future__ import annotations

from dataclasses import dataclass

from rentalman.exceptions import InvalidValue
from rentalman.results import ConflictFinding, ConflictReport, FindingKind, Severity


@dataclass(frozen=True)
class Thresholds:
    """Business policy knobs, see RENTALMAN settings."""

    critical_shortfall: int = 5
    high_shortfall: int = 2
    advisory_high_count: int = 3

    @classmethod
    def from_settings(cls) -> Thresholds:
        from rentalman.conf import get_setting

        return cls(
            critical_shortfall=int(get_setting("CRITICAL_SHORTFALL")),
            high_shortfall=int(get_setting("HIGH_SHORTFALL")),
            advisory_high_count=int(get_setting("ADVISORY_HIGH_COUNT")),
        )


def severity_rank(value: str) -> int:
    try:
        return Severity.ORDER.index(value)
    except ValueError:
        raise InvalidValue("INVALID_SEVERITY", severity=value) from None


def classify(
    findings: list[ConflictFinding], thresholds: Thresholds | None = None
) -> tuple[str, bool]:
    """
    Return ``(severity, requires_approval)`` for a list of findings.

    Rules, first match wins:
        no findings                          → ok
        equipment shortfall > critical       → critico
        equipment shortfall > high           → alto
        advisories >= advisory_high_count    → alto
        any advisory                         → advertencia
        minor equipment shortage             → advertencia
        only failed checks                   → info
    """
    if not findings:
        return Severity.OK, False

    if thresholds is None:
        thresholds = Thresholds.from_settings()

    valid = [f for f in findings if not f.error]
    shortfall = sum(f.shortfall for f in valid if f.kind == FindingKind.EQUIPMENT)
    advisories = [f for f in valid if f.kind != FindingKind.EQUIPMENT]

    if shortfall > thresholds.critical_shortfall:
        severity = Severity.CRITICO
    elif shortfall > thresholds.high_shortfall:
        severity = Severity.ALTO
    elif len(advisories) >= thresholds.advisory_high_count:
        severity = Severity.ALTO
    elif advisories:
        severity = Severity.ADVERTENCIA
    elif shortfall > 0:
        severity = Severity.ADVERTENCIA
    else:
        severity = Severity.INFO

    return severity, severity == Severity.CRITICO


def apply(report: ConflictReport, thresholds: Thresholds | None = None) -> ConflictReport:
    """Fill in severity/requires_approval of a report in place."""
    report.severity, report.requires_approval = classify(report.findings, thresholds)
    return report

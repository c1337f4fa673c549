"""Triage of anti-cheat and proctoring counters into a risk label.

Classification is display-only: it never blocks or alters grading.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from quiz_grading.constants.grading_constants import (
    FLAGGED_TAB_SWITCHES,
    FLAGGED_VIOLATIONS,
    HIGH_RISK_TAB_SWITCHES,
    HIGH_RISK_VIOLATIONS,
)
from quiz_grading.core.models import IntegrityCounters, Submission


class IntegrityLevel(str, Enum):
    CLEAN = "low"
    FLAGGED = "medium"
    HIGH_RISK = "high"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    IntegrityLevel.CLEAN: "Clean",
    IntegrityLevel.FLAGGED: "Flagged",
    IntegrityLevel.HIGH_RISK: "High Risk",
}


@dataclass(slots=True, frozen=True)
class IntegrityReport:
    level: IntegrityLevel
    combined_tab_switches: int
    total_violations: int

    @property
    def label(self) -> str:
        return self.level.label


def classify_integrity(counters: IntegrityCounters) -> IntegrityReport:
    """Classify the counters of one attempt as Clean, Flagged or High Risk."""
    proctoring = counters.proctoring
    proctor_tab_switches = proctoring.tab_switching if proctoring else 0
    total_violations = proctoring.violation_total() if proctoring else 0
    tab_switches = counters.tab_switch_count + proctor_tab_switches

    if tab_switches > HIGH_RISK_TAB_SWITCHES or total_violations > HIGH_RISK_VIOLATIONS:
        level = IntegrityLevel.HIGH_RISK
    elif tab_switches > FLAGGED_TAB_SWITCHES or total_violations > FLAGGED_VIOLATIONS:
        level = IntegrityLevel.FLAGGED
    else:
        level = IntegrityLevel.CLEAN

    return IntegrityReport(
        level=level,
        combined_tab_switches=tab_switches,
        total_violations=total_violations,
    )


@dataclass(slots=True, frozen=True)
class SubmissionIntegrity:
    candidate_id: str
    report: IntegrityReport
    esc_count: int
    was_fullscreen: bool


@dataclass(slots=True, frozen=True)
class IntegritySummary:
    """Monitoring view over every submission of one assignment."""

    assignment_id: str
    total_submissions: int
    clean_count: int
    flagged_count: int
    high_risk_count: int
    average_tab_switches: float
    entries: list[SubmissionIntegrity]

    @property
    def suspicious_count(self) -> int:
        return self.flagged_count + self.high_risk_count


def summarize_integrity(assignment_id: str, submissions: list[Submission]) -> IntegritySummary:
    entries = [
        SubmissionIntegrity(
            candidate_id=submission.candidate_id,
            report=classify_integrity(submission.counters),
            esc_count=submission.counters.esc_count,
            was_fullscreen=submission.counters.was_fullscreen,
        )
        for submission in submissions
    ]
    levels = [entry.report.level for entry in entries]
    total = len(entries)
    tab_switches = sum(entry.report.combined_tab_switches for entry in entries)

    return IntegritySummary(
        assignment_id=assignment_id,
        total_submissions=total,
        clean_count=levels.count(IntegrityLevel.CLEAN),
        flagged_count=levels.count(IntegrityLevel.FLAGGED),
        high_risk_count=levels.count(IntegrityLevel.HIGH_RISK),
        average_tab_switches=(tab_switches / total) if total else 0.0,
        entries=entries,
    )

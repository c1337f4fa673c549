"""Grading-related constants shared across the core and API layers."""

PASS_MARK_PERCENT: float = 50.0
DISPLAY_DECIMALS: int = 2
MAX_PERCENTAGE_WEIGHTAGE: float = 100.0

# Integrity triage thresholds (strictly greater than)
HIGH_RISK_TAB_SWITCHES: int = 5
HIGH_RISK_VIOLATIONS: int = 8
FLAGGED_TAB_SWITCHES: int = 1
FLAGGED_VIOLATIONS: int = 4

# Lower bound (inclusive) of each letter grade, highest first
GRADE_BANDS: tuple[tuple[float, str], ...] = (
    (90.0, "A+"),
    (85.0, "A"),
    (75.0, "B+"),
    (70.0, "B"),
    (60.0, "C"),
    (50.0, "D"),
)
FAILING_GRADE: str = "F"

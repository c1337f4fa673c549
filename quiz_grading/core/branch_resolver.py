"""Extraction of a program/branch code from free-form registration numbers.

Registration numbers come in a handful of shapes depending on the intake year
and the institution's numbering scheme:

    22BCE10100   two digit year + branch + serial   -> BCE
    2024MIM007   four digit year + branch + serial  -> MIM
    BCY001       branch + serial                    -> BCY

Patterns are tried in order and the first match wins. The last entry is a
catch-all that picks the first run of capital letters anywhere in the string.
"""

from __future__ import annotations

import re

# (compiled pattern, capture group holding the branch code)
BRANCH_PATTERNS: tuple[tuple[re.Pattern[str], int], ...] = (
    (re.compile(r"^\d{2}([A-Z]{2,4})\d+$"), 1),
    (re.compile(r"^\d{4}([A-Z]{2,4})\d+$"), 1),
    (re.compile(r"^([A-Z]{2,4})\d+$"), 1),
    (re.compile(r"([A-Z]{2,4})"), 1),
)


def extract_branch(registration_number: str | None) -> str | None:
    """Return the uppercase branch code in ``registration_number`` or ``None``."""
    if registration_number is None:
        return None
    normalized = str(registration_number).strip().upper()
    if not normalized:
        return None

    for pattern, group in BRANCH_PATTERNS:
        match = pattern.search(normalized)
        if match:
            return match.group(group)
    return None

"""Subgroup restrictions on assignments and who may attempt them."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class Unrestricted:
    """Every enrolled student may attempt the assignment."""

    def __str__(self) -> str:
        return ""


@dataclass(slots=True, frozen=True)
class SingleBranch:
    code: str

    def __str__(self) -> str:
        return self.code


@dataclass(slots=True, frozen=True)
class MultiBranch:
    codes: frozenset[str]

    def __str__(self) -> str:
        return ",".join(sorted(self.codes))


Subgroup = Unrestricted | SingleBranch | MultiBranch


def parse_subgroup(raw: str | None) -> Subgroup:
    """Turn the stored subgroup text ("", "BCE" or "BCE, MIM") into a variant.

    A comma always produces a multi-branch restriction, even when it lists a
    single code. Blank tokens are dropped, so ``","`` restricts to nobody.
    """
    text = (raw or "").strip()
    if not text:
        return Unrestricted()
    if "," in text:
        codes = {token.strip().upper() for token in text.split(",")}
        codes.discard("")
        return MultiBranch(frozenset(codes))
    return SingleBranch(text.upper())


def is_eligible(student_branch: str | None, subgroup: Subgroup) -> bool:
    if isinstance(subgroup, Unrestricted):
        return True
    if student_branch is None:
        return False

    branch = student_branch.strip().upper()
    if isinstance(subgroup, SingleBranch):
        return branch == subgroup.code
    if isinstance(subgroup, MultiBranch):
        return branch in subgroup.codes
    raise TypeError(f"Unsupported subgroup: {subgroup!r}")


def resolve_eligibility(student_branch: str | None, subgroup: str | Subgroup | None) -> bool:
    """Decide whether a student of ``student_branch`` may attempt an assignment."""
    if subgroup is None or isinstance(subgroup, str):
        subgroup = parse_subgroup(subgroup)
    return is_eligible(student_branch, subgroup)

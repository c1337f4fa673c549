"""Assignment weightage: how much a quiz contributes to a class grade."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import math

from quiz_grading.constants.grading_constants import MAX_PERCENTAGE_WEIGHTAGE
from quiz_grading.core.errors import ValidationError


class WeightageKind(str, Enum):
    PERCENTAGE = "percentage"
    MARKS = "marks"


@dataclass(slots=True, frozen=True)
class WeightageSpec:
    """A weight expressed either as a share of 100 or as absolute marks."""

    kind: WeightageKind
    value: float

    def __post_init__(self) -> None:
        if not isinstance(self.kind, WeightageKind):
            raise ValidationError(f"Unknown weightage type: {self.kind!r}")
        if not math.isfinite(self.value):
            raise ValidationError("Weightage must be a finite number.")
        if self.value < 0:
            raise ValidationError("Weightage must be zero or a positive number.")
        if self.kind is WeightageKind.PERCENTAGE and self.value > MAX_PERCENTAGE_WEIGHTAGE:
            raise ValidationError("Percentage weightage cannot exceed 100%.")

    @classmethod
    def parse(cls, value: float | int | str, kind: str | WeightageKind = WeightageKind.PERCENTAGE) -> "WeightageSpec":
        """Build a spec from loosely typed input, rejecting anything malformed."""
        try:
            parsed_kind = WeightageKind(kind)
        except ValueError as exc:
            raise ValidationError('Weightage type must be either "percentage" or "marks".') from exc
        try:
            parsed_value = float(value)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Weightage must be a number.") from exc
        if not math.isfinite(parsed_value):
            raise ValidationError("Weightage must be a finite number.")
        return cls(kind=parsed_kind, value=parsed_value)

    def compute_achieved(self, raw_percentage: float) -> float:
        """Marks earned for a quiz performance given as a 0-100 percentage."""
        if self.kind is WeightageKind.PERCENTAGE:
            # 80% on a quiz weighted 20% of the grade -> 16 points
            return (raw_percentage * self.value) / 100
        if self.kind is WeightageKind.MARKS:
            # 80% on a 6 mark quiz -> 4.8 marks
            return (raw_percentage / 100) * self.value
        raise ValidationError(f"Unknown weightage type: {self.kind!r}")

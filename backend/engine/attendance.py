import math
from fractions import Fraction


class ProjectionError(ValueError):
    """Base class for attendance projection failures."""

    pass


class UnreachableTargetError(ProjectionError):
    """Raised when no finite number of classes satisfies the target."""

    pass


class AttendanceCalculator:
    @staticmethod
    def current_percentage(attended: int, total: int) -> float:
        if total == 0:
            return 0.0
        return (attended / total) * 100

    @staticmethod
    def _exact_percentage(attended: int, total: int) -> Fraction:
        if total == 0:
            return Fraction(0)
        return Fraction(attended * 100, total)

    @staticmethod
    def classes_needed(attended: int, total: int, target: float) -> int:
        """
        Calculate the minimum number of consecutive classes to attend so the
        percentage reaches the target.

        Smallest integer k with ``100 * (attended + k) >= target * (total + k)``,
        solved in exact rational arithmetic.
        """
        goal = Fraction(target)
        if (
            AttendanceCalculator.current_percentage(attended, total) >= target
            or AttendanceCalculator._exact_percentage(attended, total) >= goal
        ):
            return 0
        if goal >= 100:
            raise UnreachableTargetError(
                f"Target {target}% cannot be reached from {attended}/{total}"
            )

        return max(1, math.ceil((goal * total - 100 * attended) / (100 - goal)))

    @staticmethod
    def classes_bunkable(attended: int, total: int, target: float) -> int:
        """
        Calculate the largest b such that missing the next b + 1 classes still
        leaves the percentage at or above the target.
        """
        goal = Fraction(target)
        # Reported percentage and exact value must both clear the target
        if (
            AttendanceCalculator.current_percentage(attended, total) < target
            or AttendanceCalculator._exact_percentage(attended, total) < goal
        ):
            return 0
        if goal <= 0:
            raise UnreachableTargetError(
                f"Target {target}% places no limit on missed classes"
            )

        return max(0, math.floor(100 * attended / goal) - total - 1)

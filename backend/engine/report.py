import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

from backend.core import settings
from backend.engine.attendance import AttendanceCalculator, ProjectionError
from backend.engine.stream import app_logger


class MalformedRecordError(ProjectionError):
    """Raised when a scraped attendance record is not a valid count pair."""

    pass


class EmptyDatasetError(ProjectionError):
    """Raised when the scrape produced no subjects at all."""

    pass


@dataclass(frozen=True)
class AttendanceRecord:
    attended: int
    total: int

    def __post_init__(self) -> None:
        for name in ("attended", "total"):
            value = getattr(self, name)
            # bool is an int subclass but never a class count
            if isinstance(value, bool) or not isinstance(value, int):
                raise MalformedRecordError(f"{name} must be an integer, got {value!r}")
            if value < 0:
                raise MalformedRecordError(f"{name} must not be negative, got {value}")
        if self.attended > self.total:
            raise MalformedRecordError(
                f"attended ({self.attended}) exceeds total ({self.total})"
            )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AttendanceRecord":
        try:
            return cls(attended=data["attended"], total=data["total"])
        except (KeyError, TypeError) as e:
            raise MalformedRecordError(f"Invalid attendance record {data!r}: {e}")


@dataclass(frozen=True)
class ProjectionResult:
    attended: int
    total: int
    percentage: float
    needed: int
    bunks_available: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attended": self.attended,
            "total": self.total,
            "percentage": self.percentage,
            "needed": self.needed,
            "bunks_available": self.bunks_available,
        }


@dataclass(frozen=True)
class AttendanceReport:
    results: Dict[str, ProjectionResult]
    target: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": {
                subject: result.to_dict() for subject, result in self.results.items()
            },
            "target": self.target,
        }


RawAttendance = Mapping[str, Union[AttendanceRecord, Mapping[str, Any]]]


def parse_target(value: Any, default: Optional[float] = None) -> float:
    """Turn caller input into the effective target percentage.

    Missing or unusable input falls back to the default; anything above
    100 is clamped to 100.
    """
    if default is None:
        default = settings.DEFAULT_TARGET

    if value is None or isinstance(value, bool):
        return default

    try:
        target = float(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError, OverflowError):
        app_logger.debug(f"Unparsable target {value!r}, using {default}")
        return default

    if not math.isfinite(target) or target <= 0:
        app_logger.debug(f"Unusable target {value!r}, using {default}")
        return default

    return min(target, 100.0)


def project(record: AttendanceRecord, target: float) -> ProjectionResult:
    return ProjectionResult(
        attended=record.attended,
        total=record.total,
        percentage=AttendanceCalculator.current_percentage(record.attended, record.total),
        needed=AttendanceCalculator.classes_needed(record.attended, record.total, target),
        bunks_available=AttendanceCalculator.classes_bunkable(
            record.attended, record.total, target
        ),
    )


def build_report(raw: RawAttendance, target: float) -> AttendanceReport:
    if not raw:
        raise EmptyDatasetError("No attendance data extracted")

    results: Dict[str, ProjectionResult] = {}
    for subject, data in raw.items():
        record = (
            data if isinstance(data, AttendanceRecord) else AttendanceRecord.from_mapping(data)
        )
        results[subject] = project(record, target)

    app_logger.debug(f"Projected {len(results)} subjects at {target}% target")
    return AttendanceReport(results=results, target=target)

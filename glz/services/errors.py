"""Caller-visible outcomes of certificate validation."""

from __future__ import annotations

from typing import Any, Optional


class CertificateValidationError(ValueError):
    """Raised when a candidate certificate is rejected."""

    kind = "ValidationError"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.message,
            "kind": self.kind,
            "field": self.field,
            "details": self.details,
        }


class MissingField(CertificateValidationError):
    kind = "MissingField"

    def __init__(self, field: str) -> None:
        super().__init__(f"Missing required field: {field}", field=field)


class InvalidDate(CertificateValidationError):
    kind = "InvalidDate"

    def __init__(self, field: str, value: Any) -> None:
        super().__init__(
            f"Invalid date for {field}: {value!r}",
            field=field,
            details={"value": str(value)},
        )


class InvalidDateRange(CertificateValidationError):
    kind = "InvalidDateRange"

    def __init__(self, start: str, end: str) -> None:
        super().__init__(
            f"Course end date ({end}) cannot be before the course start date ({start})",
            field="courseEndDate",
            details={"courseStartDate": start, "courseEndDate": end},
        )


class InvalidNumber(CertificateValidationError):
    kind = "InvalidNumber"

    def __init__(self, field: str, value: Any) -> None:
        super().__init__(
            f"{field} must be a non-negative whole number, got {value!r}",
            field=field,
            details={"value": str(value)},
        )


class LessonCountExceeded(CertificateValidationError):
    kind = "LessonCountExceeded"

    def __init__(self, lessons_attended: int, lesson_units: int) -> None:
        super().__init__(
            f"Lessons attended ({lessons_attended}) cannot exceed the total "
            f"number of lessons ({lesson_units})",
            field="lessonsAttended",
            details={"lessonsAttended": lessons_attended, "lessonUnits": lesson_units},
        )


class InvalidEnumValue(CertificateValidationError):
    kind = "InvalidEnumValue"

    def __init__(self, field: str, value: Any, accepted) -> None:
        accepted = list(accepted)
        super().__init__(
            f"Invalid value for {field}: {value}. Accepted values are: "
            + ", ".join(accepted),
            field=field,
            details={"value": str(value), "accepted": accepted},
        )


class GroupNotFound(CertificateValidationError):
    kind = "GroupNotFound"

    def __init__(self, group_code: str) -> None:
        super().__init__(
            f"Group not found: {group_code}",
            field="groupCode",
            details={"groupCode": group_code},
        )


class LevelMismatch(CertificateValidationError):
    kind = "LevelMismatch"

    def __init__(self, certificate_level: str, group_level: str) -> None:
        super().__init__(
            f"Certificate level ({certificate_level}) must match the group "
            f"level ({group_level})",
            field="referenceLevel",
            details={"certificateLevel": certificate_level, "groupLevel": group_level},
        )


class StartDateMismatch(CertificateValidationError):
    kind = "StartDateMismatch"

    def __init__(self, certificate_start: str, group_start: str) -> None:
        super().__init__(
            f"Course start date ({certificate_start}) must match the group "
            f"start date ({group_start})",
            field="courseStartDate",
            details={"certificateStartDate": certificate_start, "groupStartDate": group_start},
        )


class DuplicateCertificate(CertificateValidationError):
    kind = "DuplicateCertificate"

    def __init__(self, conflict, candidate) -> None:
        super().__init__(
            "A certificate already exists for this learner with the same name "
            f"({conflict.full_name}), date of birth ({conflict.date_of_birth.isoformat()}), "
            f"level ({conflict.reference_level}) and an overlapping course period: "
            f"existing {conflict.course_start_date.isoformat()} to "
            f"{conflict.course_end_date.isoformat()}, requested "
            f"{candidate.course_start_date.isoformat()} to "
            f"{candidate.course_end_date.isoformat()}",
            field="fullName",
            details={
                "conflictId": conflict.id,
                "referenceNumber": conflict.reference_number,
                "fullName": conflict.full_name,
                "dateOfBirth": conflict.date_of_birth.isoformat(),
                "referenceLevel": conflict.reference_level,
                "courseStartDate": conflict.course_start_date.isoformat(),
                "courseEndDate": conflict.course_end_date.isoformat(),
            },
        )
        self.conflict = conflict


class AllocationFailure(RuntimeError):
    """Raised when the reference counter could not be incremented.

    Nothing is persisted when this is raised, so the operation can be retried.
    """

    kind = "AllocationFailure"

    def to_dict(self) -> dict[str, Any]:
        return {"error": str(self), "kind": self.kind, "field": None, "details": {}}

"""Accept/reject decision for a single candidate certificate.

The same pipeline serves single-record creation, updates and every row of
a bulk import. Checks run in a fixed order and the first failure wins:

1. required fields
2. date normalization
3. lesson counts
4. level / evaluation / course info normalization
5. group consistency
6. duplicate detection
7. reference number (allocated on create, kept on update)
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from ..constants import COURSE_INFOS, DEFAULT_COURSE_INFO, EVALUATIONS, REFERENCE_LEVELS
from ..models import Certificate
from ..shared.dates import normalize_date
from ..shared.keywords import normalize_course_info, normalize_evaluation
from ..shared.names import collapse_whitespace
from .duplicates import find_conflict
from .errors import (
    DuplicateCertificate,
    InvalidDate,
    InvalidDateRange,
    InvalidEnumValue,
    InvalidNumber,
    LessonCountExceeded,
    MissingField,
)
from .groups import check_group_consistency
from .references import allocate_reference_number


REQUIRED_FIELDS = (
    "fullName",
    "placeOfBirth",
    "referenceLevel",
    "dateOfBirth",
    "courseStartDate",
    "courseEndDate",
    "groupCode",
)
DATE_FIELDS = ("dateOfBirth", "courseStartDate", "courseEndDate")


@dataclass
class CertificateCandidate:
    full_name: str
    date_of_birth: date
    place_of_birth: str
    reference_level: str
    course_start_date: date
    course_end_date: date
    lesson_units: int
    lessons_attended: int
    evaluation: str
    course_info: str
    comments: str
    group_code: str
    reference_number: Optional[str] = None

    def apply_to(self, cert: Certificate) -> Certificate:
        for attr, value in asdict(self).items():
            if attr == "reference_number" and value is None:
                continue
            setattr(cert, attr, value)
        return cert


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _text(value: Any) -> str:
    return collapse_whitespace(str(value)) if value is not None else ""


def _parse_count(field: str, value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidNumber(field, value)
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidNumber(field, value) from None
    if not number.is_finite() or number != number.to_integral_value() or number < 0:
        raise InvalidNumber(field, value)
    return int(number)


def _check_required(raw: Mapping[str, Any]) -> None:
    for field in REQUIRED_FIELDS:
        if _is_blank(raw.get(field)):
            raise MissingField(field)


def _normalize_dates(raw: Mapping[str, Any]) -> dict[str, date]:
    dates = {}
    for field in DATE_FIELDS:
        value = normalize_date(raw.get(field))
        if value is None:
            raise InvalidDate(field, raw.get(field))
        dates[field] = value
    if dates["courseEndDate"] < dates["courseStartDate"]:
        raise InvalidDateRange(
            dates["courseStartDate"].isoformat(), dates["courseEndDate"].isoformat()
        )
    return dates


def _lesson_counts(raw: Mapping[str, Any]) -> tuple[int, int]:
    raw_units = raw.get("lessonUnits")
    units = 0 if _is_blank(raw_units) else _parse_count("lessonUnits", raw_units)
    raw_attended = raw.get("lessonsAttended")
    attended = units if _is_blank(raw_attended) else _parse_count("lessonsAttended", raw_attended)
    if attended > units:
        raise LessonCountExceeded(attended, units)
    return units, attended


def _normalize_choices(raw: Mapping[str, Any]) -> tuple[str, str, str]:
    level = _text(raw.get("referenceLevel")).upper()
    if level not in REFERENCE_LEVELS:
        raise InvalidEnumValue("referenceLevel", raw.get("referenceLevel"), REFERENCE_LEVELS)

    raw_evaluation = raw.get("evaluation")
    if _is_blank(raw_evaluation):
        raise MissingField("evaluation")
    evaluation = normalize_evaluation(str(raw_evaluation))
    if evaluation is None:
        raise InvalidEnumValue("evaluation", raw_evaluation, EVALUATIONS)

    raw_course_info = raw.get("courseInfo")
    if _is_blank(raw_course_info):
        course_info = DEFAULT_COURSE_INFO
    else:
        course_info = normalize_course_info(str(raw_course_info))
        if course_info is None:
            raise InvalidEnumValue("courseInfo", raw_course_info, COURSE_INFOS)
    return level, evaluation, course_info


def check_certificate(
    raw: Mapping[str, Any],
    *,
    group_code: Optional[str] = None,
    exclude_id: Optional[int] = None,
) -> CertificateCandidate:
    """Run every check short of reference allocation.

    ``group_code`` overrides the code in ``raw`` (bulk imports target one
    group). Raises a :class:`~glz.services.errors.CertificateValidationError`
    subclass on the first failing check.
    """

    raw = dict(raw)
    if group_code:
        raw["groupCode"] = group_code
    _check_required(raw)
    dates = _normalize_dates(raw)
    units, attended = _lesson_counts(raw)
    level, evaluation, course_info = _normalize_choices(raw)

    candidate = CertificateCandidate(
        full_name=_text(raw["fullName"]),
        date_of_birth=dates["dateOfBirth"],
        place_of_birth=_text(raw["placeOfBirth"]),
        reference_level=level,
        course_start_date=dates["courseStartDate"],
        course_end_date=dates["courseEndDate"],
        lesson_units=units,
        lessons_attended=attended,
        evaluation=evaluation,
        course_info=course_info,
        comments=str(raw.get("comments") or "").strip(),
        group_code=_text(raw["groupCode"]),
    )

    check_group_consistency(
        candidate.group_code, candidate.reference_level, candidate.course_start_date
    )
    conflict = find_conflict(candidate, exclude_id=exclude_id)
    if conflict is not None:
        raise DuplicateCertificate(conflict, candidate)
    return candidate


def validate_certificate(
    raw: Mapping[str, Any],
    *,
    group_code: Optional[str] = None,
    existing: Optional[Certificate] = None,
) -> CertificateCandidate:
    """Validate ``raw`` and attach its reference number.

    New records get a freshly allocated number; updates (``existing`` given)
    keep theirs and are excluded from the duplicate search. Allocation only
    happens after every other check has passed.
    """

    candidate = check_certificate(
        raw,
        group_code=group_code,
        exclude_id=existing.id if existing is not None else None,
    )
    if existing is not None:
        candidate.reference_number = existing.reference_number
    else:
        candidate.reference_number = allocate_reference_number(candidate.reference_level)
    return candidate

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Mapping, Optional

from ..app import db
from ..constants import REFERENCE_LEVELS, TIME_SLOTS
from ..models import Certificate, Group, User, build_group_code
from ..shared.dates import normalize_date
from ..shared.names import collapse_whitespace
from ..shared.time import fmt_date
from .errors import GroupNotFound, LevelMismatch, StartDateMismatch

logger = logging.getLogger("glz.groups")


class GroupValidationError(ValueError):
    """Raised when group input is incomplete or malformed."""


class GroupLockedError(ValueError):
    """Raised when an edit would break certificates issued against the group."""


def find_group(group_code: Optional[str]) -> Optional[Group]:
    if not group_code:
        return None
    return Group.query.filter_by(group_code=group_code).one_or_none()


def check_group_consistency(
    group_code: str, reference_level: str, course_start_date: date
) -> Group:
    """Return the group a certificate points at, or raise if they disagree."""

    group = find_group(group_code)
    if group is None:
        raise GroupNotFound(group_code)
    if group.level != reference_level:
        raise LevelMismatch(reference_level, group.level)
    if group.start_date != course_start_date:
        raise StartDateMismatch(fmt_date(course_start_date), fmt_date(group.start_date))
    return group


def count_certificates(group_code: str) -> int:
    return (
        db.session.query(db.func.count(Certificate.id))
        .filter(Certificate.group_code == group_code)
        .scalar()
        or 0
    )


def _clean_group_fields(data: Mapping[str, Any], current: Optional[Group] = None) -> dict:
    def pick(key: str, attr: str):
        value = data.get(key)
        if value in (None, "") and current is not None:
            return getattr(current, attr)
        return value

    level = pick("level", "level")
    raw_start = pick("startDate", "start_date")
    time_slot = pick("timeSlot", "time_slot")
    name = pick("name", "name")
    if not (level and raw_start and time_slot and name):
        raise GroupValidationError("All fields are required: level, startDate, timeSlot, name")

    level = str(level).strip().upper()
    if level not in REFERENCE_LEVELS:
        raise GroupValidationError(
            f"Invalid level: {level}. Accepted values are: {', '.join(REFERENCE_LEVELS)}"
        )
    time_slot = str(time_slot).strip().upper()
    if time_slot not in TIME_SLOTS:
        raise GroupValidationError(
            f"Invalid time slot: {time_slot}. Accepted values are: {', '.join(TIME_SLOTS)}"
        )
    start_date = normalize_date(raw_start)
    if start_date is None:
        raise GroupValidationError(f"Invalid date format: {raw_start}")
    name = collapse_whitespace(str(name))
    if not name:
        raise GroupValidationError("All fields are required: level, startDate, timeSlot, name")
    return {"level": level, "start_date": start_date, "time_slot": time_slot, "name": name}


def _ensure_code_available(code: str, group_id: Optional[int] = None) -> None:
    query = Group.query.filter(Group.group_code == code)
    if group_id is not None:
        query = query.filter(Group.id != group_id)
    if query.first() is not None:
        raise GroupValidationError(f"A group with code {code} already exists")


def create_group(data: Mapping[str, Any], created_by: Optional[User]) -> Group:
    fields = _clean_group_fields(data)
    group = Group(**fields, created_by=created_by)
    _ensure_code_available(group.refresh_group_code())
    db.session.add(group)
    db.session.flush()
    logger.info("[GROUP] created id=%s code=%s", group.id, group.group_code)
    return group


def update_group(group: Group, data: Mapping[str, Any]) -> Group:
    """Apply an edit; the new code is carried over to referencing certificates.

    Start date and level are frozen once any certificate references the group.
    """

    fields = _clean_group_fields(data, current=group)
    old_code = group.group_code
    changes_identity = (
        fields["start_date"] != group.start_date or fields["level"] != group.level
    )
    if changes_identity:
        referenced = count_certificates(old_code)
        if referenced:
            changed = "start date" if fields["start_date"] != group.start_date else "level"
            raise GroupLockedError(
                f"Cannot change the {changed} because {referenced} certificate(s) "
                "reference this group. Create a new group instead."
            )

    new_code = build_group_code(**fields)
    if new_code != old_code:
        _ensure_code_available(new_code, group.id)
    for attr, value in fields.items():
        setattr(group, attr, value)
    group.refresh_group_code()
    db.session.flush()

    if new_code != old_code:
        moved = (
            Certificate.query.filter(Certificate.group_code == old_code).update(
                {Certificate.group_code: new_code}, synchronize_session="fetch"
            )
        )
        logger.info(
            "[GROUP] renamed id=%s old=%s new=%s certificates=%s",
            group.id,
            old_code,
            new_code,
            moved,
        )
    return group


def delete_group(group: Group) -> None:
    referenced = count_certificates(group.group_code)
    if referenced:
        raise GroupLockedError(
            f"Cannot delete this group because {referenced} certificate(s) reference it."
        )
    db.session.delete(group)
    logger.info("[GROUP] deleted id=%s code=%s", group.id, group.group_code)

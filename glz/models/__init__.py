from __future__ import annotations

from datetime import date

from sqlalchemy import event
from sqlalchemy.orm import object_session, validates

from ..app import db
from ..constants import ROLES, USER
from ..shared.names import normalize_full_name
from ..shared.passwords import hash_password, check_password
from ..shared.time import fmt_date, iso_date, iso_datetime


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(120), nullable=False)
    password_hash = db.Column(db.String(255))
    role = db.Column(db.String(16), nullable=False, default=USER, server_default=USER)
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    __table_args__ = (
        db.Index("ix_users_username_lower", db.func.lower(username), unique=True),
    )

    @validates("username")
    def strip_username(self, key, value):  # pragma: no cover - simple normalizer
        return (value or "").strip()

    @validates("role")
    def check_role(self, key, value):
        if value not in ROLES:
            raise ValueError(f"Unknown role: {value}")
        return value

    def set_password(self, plain: str) -> None:
        self.password_hash = hash_password(plain)

    def check_password(self, plain: str) -> bool:
        if not self.password_hash:
            return False
        return check_password(plain, self.password_hash)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role,
            "createdAt": iso_datetime(self.created_at),
        }


def build_group_code(level: str, start_date: date, time_slot: str, name: str) -> str:
    """Return the stable code certificates use to reference a group."""

    return f"{level}-{fmt_date(start_date)}-{time_slot}-{name}"


class Group(db.Model):
    __tablename__ = "groups"

    id = db.Column(db.Integer, primary_key=True)
    level = db.Column(db.String(2), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    time_slot = db.Column(db.String(2), nullable=False)
    name = db.Column(db.String(120), nullable=False)
    group_code = db.Column(db.String(160), unique=True, nullable=False)
    created_by_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL")
    )
    created_by = db.relationship("User")
    created_at = db.Column(db.DateTime, server_default=db.func.now())

    def refresh_group_code(self) -> str:
        self.group_code = build_group_code(
            self.level, self.start_date, self.time_slot, self.name
        )
        return self.group_code

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "level": self.level,
            "startDate": iso_date(self.start_date),
            "timeSlot": self.time_slot,
            "name": self.name,
            "groupCode": self.group_code,
            "createdBy": self.created_by.username if self.created_by else None,
            "createdAt": iso_datetime(self.created_at),
        }


@event.listens_for(Group, "before_insert")
@event.listens_for(Group, "before_update")
def _group_code_before_flush(mapper, connection, target):
    target.refresh_group_code()


class ReferenceCounter(db.Model):
    __tablename__ = "reference_counters"

    id = db.Column(db.Integer, primary_key=True)
    year = db.Column(db.Integer, nullable=False)
    level = db.Column(db.String(2), nullable=False)
    count = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    __table_args__ = (
        db.UniqueConstraint("year", "level", name="uix_reference_counter_year_level"),
    )


class Certificate(db.Model):
    __tablename__ = "certificates"

    id = db.Column(db.Integer, primary_key=True)
    reference_number = db.Column(db.String(32), unique=True, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    created_by_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL")
    )
    group_code = db.Column(
        db.String(160),
        db.ForeignKey("groups.group_code", onupdate="CASCADE"),
        nullable=False,
    )
    full_name = db.Column(db.String(255), nullable=False)
    full_name_normalized = db.Column(db.String(255), nullable=False)
    date_of_birth = db.Column(db.Date, nullable=False)
    place_of_birth = db.Column(db.String(255), nullable=False)
    course_start_date = db.Column(db.Date, nullable=False)
    course_end_date = db.Column(db.Date, nullable=False)
    lesson_units = db.Column(db.Integer, nullable=False, default=0)
    lessons_attended = db.Column(db.Integer, nullable=False, default=0)
    reference_level = db.Column(db.String(2), nullable=False)
    course_info = db.Column(db.String(64), nullable=False)
    evaluation = db.Column(db.String(32), nullable=False)
    comments = db.Column(db.Text, default="")
    created_at = db.Column(db.DateTime, server_default=db.func.now())

    owner = db.relationship("User", foreign_keys=[user_id])
    created_by = db.relationship("User", foreign_keys=[created_by_id])
    generation_history = db.relationship(
        "CertificateGeneration",
        back_populates="certificate",
        order_by="CertificateGeneration.id",
        cascade="all, delete-orphan",
    )
    __table_args__ = (
        db.Index(
            "ix_certificates_identity",
            "full_name_normalized",
            "date_of_birth",
            "reference_level",
        ),
    )

    @validates("full_name")
    def sync_normalized_name(self, key, value):
        self.full_name_normalized = normalize_full_name(value)
        return value

    def to_dict(self, include_history: bool = False) -> dict:
        data = {
            "id": self.id,
            "referenceNumber": self.reference_number,
            "groupCode": self.group_code,
            "fullName": self.full_name,
            "dateOfBirth": iso_date(self.date_of_birth),
            "placeOfBirth": self.place_of_birth,
            "courseStartDate": iso_date(self.course_start_date),
            "courseEndDate": iso_date(self.course_end_date),
            "lessonUnits": self.lesson_units,
            "lessonsAttended": self.lessons_attended,
            "referenceLevel": self.reference_level,
            "courseInfo": self.course_info,
            "evaluation": self.evaluation,
            "comments": self.comments or "",
            "userId": self.user_id,
            "createdBy": self.created_by.username if self.created_by else None,
            "createdAt": iso_datetime(self.created_at),
        }
        if include_history:
            data["generationHistory"] = [
                entry.to_dict() for entry in self.generation_history
            ]
        return data


class CertificateGeneration(db.Model):
    """One PDF export of a certificate. Rows are only ever inserted."""

    __tablename__ = "certificate_generations"

    id = db.Column(db.Integer, primary_key=True)
    certificate_id = db.Column(
        db.Integer,
        db.ForeignKey("certificates.id", ondelete="CASCADE"),
        nullable=False,
    )
    generated_by_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL")
    )
    generated_at = db.Column(db.DateTime, nullable=False)

    certificate = db.relationship("Certificate", back_populates="generation_history")
    generated_by = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "generatedBy": self.generated_by.username if self.generated_by else None,
            "generatedAt": iso_datetime(self.generated_at),
        }


@event.listens_for(CertificateGeneration, "before_update")
def _generation_history_is_append_only(mapper, connection, target):
    raise ValueError("Certificate generation history entries cannot be modified")


@event.listens_for(CertificateGeneration, "before_delete")
def _generation_history_outlives_edits(mapper, connection, target):
    # Entries only go away together with their certificate.
    parent = target.certificate
    session = object_session(target)
    if parent is not None and session is not None and parent in session.deleted:
        return
    raise ValueError("Certificate generation history entries cannot be removed")

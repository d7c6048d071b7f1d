from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..app import db
from ..models import Certificate, CertificateGeneration, User
from ..shared.time import now_utc, utc_naive
from .errors import AllocationFailure, CertificateValidationError
from .validation import validate_certificate

logger = logging.getLogger("glz.certificates")


def _actor_id(actor: Optional[User]) -> Optional[int]:
    return actor.id if actor is not None else None


def create_certificate(
    raw: Mapping[str, Any],
    actor: Optional[User],
    *,
    group_code: Optional[str] = None,
) -> Certificate:
    """Validate, number and persist a new certificate in one transaction."""

    try:
        candidate = validate_certificate(raw, group_code=group_code)
        cert = Certificate(user_id=_actor_id(actor), created_by_id=_actor_id(actor))
        candidate.apply_to(cert)
        db.session.add(cert)
        db.session.commit()
    except (CertificateValidationError, AllocationFailure):
        db.session.rollback()
        raise
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("[CERT-CREATE] persist failed name=%r", raw.get("fullName"))
        raise
    logger.info(
        "[CERT-CREATE] id=%s ref=%s group=%s by=%s",
        cert.id,
        cert.reference_number,
        cert.group_code,
        _actor_id(actor),
    )
    return cert


def update_certificate(cert: Certificate, raw: Mapping[str, Any]) -> Certificate:
    """Replace the validated fields of ``cert``; its reference number stays."""

    try:
        candidate = validate_certificate(raw, existing=cert)
        candidate.apply_to(cert)
        db.session.commit()
    except CertificateValidationError:
        db.session.rollback()
        raise
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("[CERT-UPDATE] persist failed id=%s", cert.id)
        raise
    logger.info("[CERT-UPDATE] id=%s ref=%s", cert.id, cert.reference_number)
    return cert


def delete_certificate(cert: Certificate) -> None:
    cert_id, reference = cert.id, cert.reference_number
    db.session.delete(cert)
    db.session.commit()
    logger.info("[CERT-DELETE] id=%s ref=%s", cert_id, reference)


def record_generation(cert: Certificate, actor: Optional[User]) -> CertificateGeneration:
    """Append one export entry to the certificate's generation history."""

    entry = CertificateGeneration(
        generated_by_id=_actor_id(actor),
        generated_at=utc_naive(now_utc()),
    )
    cert.generation_history.append(entry)
    db.session.commit()
    logger.info(
        "[CERT-PDF] id=%s ref=%s by=%s exports=%s",
        cert.id,
        cert.reference_number,
        _actor_id(actor),
        len(cert.generation_history),
    )
    return entry

from __future__ import annotations

from io import BytesIO
from types import SimpleNamespace

from flask import Blueprint, abort, current_app, jsonify, request, send_file
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..app import db
from ..models import Certificate
from ..services.bulk_import import ImportFileError, import_file
from ..services.certificates import (
    create_certificate,
    delete_certificate,
    record_generation,
    update_certificate,
)
from ..services.duplicates import find_conflict
from ..services.errors import (
    AllocationFailure,
    CertificateValidationError,
    InvalidDate,
    MissingField,
)
from ..shared.acl import can_view_certificate
from ..shared.certificates import render_certificate_pdf
from ..shared.dates import normalize_date
from ..shared.names import collapse_whitespace
from ..shared.rbac import (
    admin_required,
    certificate_creator_required,
    certificate_editor_required,
    history_viewer_required,
    login_required,
)

bp = Blueprint("certificates", __name__, url_prefix="/api/certificates")


def _get_certificate_or_404(cert_id: int) -> Certificate:
    cert = db.session.get(Certificate, cert_id)
    if not cert:
        abort(404, description="Certificate not found")
    return cert


def _rejected(exc: CertificateValidationError):
    return jsonify(exc.to_dict()), 400


def _store_failed():
    return jsonify(error="The certificate could not be saved. Please retry."), 500


@bp.get("")
@login_required
def list_certificates(current_user):
    query = Certificate.query
    reference = (request.args.get("referenceNumber") or "").strip()
    if reference:
        query = query.filter(
            func.lower(Certificate.reference_number).contains(
                reference.lower(), autoescape=True
            )
        )
    certs = query.order_by(Certificate.created_at.desc(), Certificate.id.desc()).all()
    return jsonify(items=[c.to_dict() for c in certs])


@bp.get("/history/<int:cert_id>")
@history_viewer_required
def history(cert_id: int, current_user):
    cert = _get_certificate_or_404(cert_id)
    return jsonify(items=[entry.to_dict() for entry in cert.generation_history])


@bp.get("/<int:cert_id>")
@login_required
def get_certificate(cert_id: int, current_user):
    cert = _get_certificate_or_404(cert_id)
    if not can_view_certificate(current_user, cert):
        current_app.logger.info(
            f"[AUTH-FAIL] certificate view user={current_user.id} cert={cert_id}"
        )
        abort(403, description="Access denied")
    return jsonify(certificate=cert.to_dict(include_history=True))


@bp.get("/<int:cert_id>/pdf")
@login_required
def certificate_pdf(cert_id: int, current_user):
    cert = _get_certificate_or_404(cert_id)
    pdf = render_certificate_pdf(cert)
    record_generation(cert, current_user)
    return send_file(
        BytesIO(pdf),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=f"certificate_{cert.reference_number}.pdf",
    )


@bp.post("")
@certificate_creator_required
def create(current_user):
    data = request.get_json(silent=True) or {}
    try:
        cert = create_certificate(data, current_user)
    except CertificateValidationError as exc:
        current_app.logger.info(
            f"[CERT-CREATE] rejected kind={exc.kind} field={exc.field}"
        )
        return _rejected(exc)
    except AllocationFailure as exc:
        return jsonify(exc.to_dict()), 503
    except SQLAlchemyError:
        return _store_failed()
    return jsonify(certificate=cert.to_dict()), 201


@bp.put("/<int:cert_id>")
@certificate_editor_required
def update(cert_id: int, current_user):
    cert = _get_certificate_or_404(cert_id)
    data = request.get_json(silent=True) or {}
    try:
        update_certificate(cert, data)
    except CertificateValidationError as exc:
        current_app.logger.info(
            f"[CERT-UPDATE] rejected id={cert_id} kind={exc.kind} field={exc.field}"
        )
        return _rejected(exc)
    except SQLAlchemyError:
        return _store_failed()
    return jsonify(certificate=cert.to_dict())


@bp.delete("/<int:cert_id>")
@admin_required
def delete(cert_id: int, current_user):
    delete_certificate(_get_certificate_or_404(cert_id))
    return jsonify(status="ok")


@bp.post("/check-duplicate")
@login_required
def check_duplicate(current_user):
    data = request.get_json(silent=True) or {}
    fields = ("fullName", "dateOfBirth", "referenceLevel", "courseStartDate", "courseEndDate")
    for field in fields:
        if not str(data.get(field) or "").strip():
            return _rejected(MissingField(field))
    dates = {}
    for field in ("dateOfBirth", "courseStartDate", "courseEndDate"):
        dates[field] = normalize_date(data.get(field))
        if dates[field] is None:
            return _rejected(InvalidDate(field, data.get(field)))

    candidate = SimpleNamespace(
        full_name=collapse_whitespace(str(data["fullName"])),
        date_of_birth=dates["dateOfBirth"],
        reference_level=str(data["referenceLevel"]).strip().upper(),
        course_start_date=dates["courseStartDate"],
        course_end_date=dates["courseEndDate"],
    )
    exclude_id = data.get("excludeId")
    conflict = find_conflict(
        candidate, exclude_id=int(exclude_id) if str(exclude_id or "").isdigit() else None
    )
    return jsonify(
        exists=conflict is not None,
        certificate=(
            {"id": conflict.id, "referenceNumber": conflict.reference_number}
            if conflict is not None
            else None
        ),
    )


@bp.post("/import")
@certificate_creator_required
def import_certificates(current_user):
    upload = request.files.get("file")
    group_code = (request.form.get("groupCode") or "").strip()
    if upload is None or not upload.filename:
        return jsonify(error="No file was uploaded"), 400
    if not group_code:
        return _rejected(MissingField("groupCode"))
    try:
        result = import_file(upload.stream, upload.filename, group_code, current_user)
    except ImportFileError as exc:
        return jsonify(error=str(exc)), 400
    except CertificateValidationError as exc:
        return _rejected(exc)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(f"[CERT-IMPORT] aborted group={group_code}")
        return jsonify(error="The import was aborted by a database error."), 500
    return jsonify(result.to_dict())

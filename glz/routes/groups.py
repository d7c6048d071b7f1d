from __future__ import annotations

from flask import Blueprint, abort, current_app, jsonify, request

from ..app import db
from ..models import Group
from ..services.groups import (
    GroupLockedError,
    GroupValidationError,
    count_certificates,
    create_group,
    delete_group,
    update_group,
)
from ..shared.rbac import admin_required, login_required

bp = Blueprint("groups", __name__, url_prefix="/api/groups")


def _get_group_or_404(group_id: int) -> Group:
    group = db.session.get(Group, group_id)
    if not group:
        abort(404, description="Group not found")
    return group


@bp.get("")
@login_required
def list_groups(current_user):
    groups = Group.query.order_by(Group.start_date.desc(), Group.level.asc()).all()
    return jsonify(items=[g.to_dict() for g in groups])


@bp.get("/<int:group_id>")
@login_required
def get_group(group_id: int, current_user):
    group = _get_group_or_404(group_id)
    data = group.to_dict()
    data["certificateCount"] = count_certificates(group.group_code)
    return jsonify(group=data)


@bp.post("")
@admin_required
def create(current_user):
    data = request.get_json(silent=True) or {}
    try:
        group = create_group(data, created_by=current_user)
    except GroupValidationError as exc:
        db.session.rollback()
        return jsonify(error=str(exc)), 400
    db.session.commit()
    return jsonify(group=group.to_dict()), 201


@bp.put("/<int:group_id>")
@admin_required
def update(group_id: int, current_user):
    group = _get_group_or_404(group_id)
    data = request.get_json(silent=True) or {}
    try:
        update_group(group, data)
    except (GroupValidationError, GroupLockedError) as exc:
        db.session.rollback()
        current_app.logger.info(f"[GROUP] update rejected id={group_id} reason={exc}")
        return jsonify(error=str(exc)), 400
    db.session.commit()
    return jsonify(group=group.to_dict())


@bp.delete("/<int:group_id>")
@admin_required
def delete(group_id: int, current_user):
    group = _get_group_or_404(group_id)
    try:
        delete_group(group)
    except GroupLockedError as exc:
        db.session.rollback()
        return jsonify(error=str(exc)), 400
    db.session.commit()
    return jsonify(status="ok")

from __future__ import annotations

from flask import Blueprint, abort, current_app, jsonify, request
from sqlalchemy import func

from ..app import db
from ..constants import ROLES, USER
from ..models import User
from ..shared.passwords import password_problem
from ..shared.rbac import admin_required, login_required

bp = Blueprint("users", __name__, url_prefix="/api/users")


def _username_taken(username: str, exclude_id: int | None = None) -> bool:
    query = User.query.filter(func.lower(User.username) == username.lower())
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    return query.first() is not None


def _get_user_or_404(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        abort(404, description="User not found")
    return user


@bp.post("")
@admin_required
def create_user(current_user):
    data = request.get_json(silent=True) or {}
    username = (data.get("username") or "").strip()
    password = data.get("password") or ""
    role = (data.get("role") or USER).strip().lower()
    if not username or not password:
        return jsonify(error="Username and password are required"), 400
    if role not in ROLES:
        return jsonify(error=f"Invalid role: {role}"), 400
    problem = password_problem(password)
    if problem:
        return jsonify(error=problem), 400
    if _username_taken(username):
        return jsonify(error="Username is already taken"), 400

    user = User(username=username, role=role)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    current_app.logger.info(
        f"[AUTH] user created id={user.id} role={role} by={current_user.id}"
    )
    return jsonify(user=user.to_dict()), 201


@bp.get("")
@admin_required
def list_users(current_user):
    users = User.query.order_by(func.lower(User.username)).all()
    return jsonify(items=[u.to_dict() for u in users])


@bp.get("/profile")
@login_required
def get_profile(current_user):
    return jsonify(user=current_user.to_dict())


@bp.put("/profile")
@login_required
def update_profile(current_user):
    data = request.get_json(silent=True) or {}
    username = (data.get("username") or "").strip()
    password = data.get("password") or ""
    if username and username != current_user.username:
        if _username_taken(username, exclude_id=current_user.id):
            return jsonify(error="Username is already taken"), 400
        current_user.username = username
    if password:
        problem = password_problem(password)
        if problem:
            return jsonify(error=problem), 400
        current_user.set_password(password)
    db.session.commit()
    current_app.logger.info(f"[AUTH] profile updated user={current_user.id}")
    return jsonify(user=current_user.to_dict())


@bp.get("/<int:user_id>")
@admin_required
def get_user(user_id: int, current_user):
    return jsonify(user=_get_user_or_404(user_id).to_dict())


@bp.put("/<int:user_id>")
@admin_required
def update_user(user_id: int, current_user):
    user = _get_user_or_404(user_id)
    data = request.get_json(silent=True) or {}

    role = (data.get("role") or "").strip().lower()
    if role and role != user.role:
        if user.id == current_user.id:
            return jsonify(error="You cannot change your own role"), 400
        if role not in ROLES:
            return jsonify(error=f"Invalid role: {role}"), 400
        user.role = role
    username = (data.get("username") or "").strip()
    if username and username != user.username:
        if _username_taken(username, exclude_id=user.id):
            return jsonify(error="Username is already taken"), 400
        user.username = username
    password = data.get("password") or ""
    if password:
        problem = password_problem(password)
        if problem:
            return jsonify(error=problem), 400
        user.set_password(password)
    db.session.commit()
    current_app.logger.info(
        f"[AUTH] user updated id={user.id} role={user.role} by={current_user.id}"
    )
    return jsonify(user=user.to_dict())


@bp.delete("/<int:user_id>")
@admin_required
def delete_user(user_id: int, current_user):
    user = _get_user_or_404(user_id)
    if user.id == current_user.id:
        return jsonify(error="You cannot delete your own account"), 400
    db.session.delete(user)
    db.session.commit()
    current_app.logger.info(f"[AUTH] user deleted id={user_id} by={current_user.id}")
    return jsonify(status="ok")

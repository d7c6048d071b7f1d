from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request, session as flask_session
from sqlalchemy import func

from ..app import db
from ..models import User
from ..shared.rbac import login_required

bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    username = (data.get("username") or "").strip()
    password = data.get("password") or ""
    if not username or not password:
        return jsonify(error="Username and password are required"), 400

    user = (
        db.session.query(User)
        .filter(func.lower(User.username) == username.lower())
        .one_or_none()
    )
    if not user or not user.check_password(password):
        current_app.logger.info(f"[AUTH-FAIL] login username={username}")
        return jsonify(error="Invalid credentials"), 401

    flask_session.clear()
    flask_session["user_id"] = user.id
    current_app.logger.info(f"[AUTH] login user={user.id} role={user.role}")
    return jsonify(user=user.to_dict())


@bp.post("/logout")
def logout():
    user_id = flask_session.pop("user_id", None)
    flask_session.clear()
    if user_id:
        current_app.logger.info(f"[AUTH] logout user={user_id}")
    return jsonify(status="ok")


@bp.get("/me")
@login_required
def me(current_user):
    return jsonify(user=current_user.to_dict())

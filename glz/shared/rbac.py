from functools import wraps

from flask import abort, current_app, request, session

from ..app import db
from ..models import User
from .acl import (
    can_create_certificates,
    can_modify_certificates,
    can_view_history,
    is_admin,
)


def _session_user():
    user_id = session.get("user_id")
    if not user_id:
        return None
    return db.session.get(User, user_id)


def _require(check, denied_message: str):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = _session_user()
            if not user:
                abort(401)
            if check is not None and not check(user):
                current_app.logger.info(
                    "[AUTH-FAIL] forbidden user=%s role=%s endpoint=%s",
                    user.id,
                    user.role,
                    request.endpoint,
                )
                abort(403, description=denied_message)
            return fn(*args, **kwargs, current_user=user)

        return wrapper

    return decorator


login_required = _require(None, "")
admin_required = _require(is_admin, "Access denied. Administrators only.")
certificate_creator_required = _require(
    can_create_certificates,
    "Access denied. Only administrators can create certificates.",
)
certificate_editor_required = _require(
    can_modify_certificates,
    "Access denied. You are not allowed to modify certificates.",
)
history_viewer_required = _require(
    can_view_history,
    "Access denied. Generation history is restricted to administrators.",
)

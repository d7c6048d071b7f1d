from __future__ import annotations

from typing import Any

from ..constants import ADMIN, CERTIFICATE_EDITOR_ROLES


def is_admin(user: Any) -> bool:
    return bool(user and user.role == ADMIN)


def is_manager_or_admin(user: Any) -> bool:
    return bool(user and user.role in CERTIFICATE_EDITOR_ROLES)


def can_create_certificates(user: Any) -> bool:
    return is_admin(user)


def can_modify_certificates(user: Any) -> bool:
    return is_manager_or_admin(user)


def can_view_history(user: Any) -> bool:
    return is_admin(user)


def can_view_certificate(user: Any, cert: Any) -> bool:
    """Admins see every certificate; others only the ones they own."""

    if is_admin(user):
        return True
    return bool(user and cert is not None and cert.user_id == user.id)

"""Role based access checks."""

from typing import Any

import structlog

from idea_manager.errors import CapabilityDenied, NotAuthenticated
from idea_manager.models import ADMIN_CAPABLE_ROLES, Role, User

logger = structlog.get_logger()


def is_admin_capable(role: Role | str | None) -> bool:
    """Return True if ``role`` may perform administrative actions."""
    if role is None:
        return False
    try:
        return Role(role) in ADMIN_CAPABLE_ROLES
    except ValueError:
        return False


def require_user(user: User | None) -> User:
    """Return ``user`` or raise NotAuthenticated when there is no session."""
    if user is None:
        raise NotAuthenticated("You must be logged in")
    return user


def require_admin_capable(user: User | None, action: str = "perform this action") -> User:
    """Return ``user`` if they hold an admin-capable role.

    Raises:
        NotAuthenticated: there is no session
        CapabilityDenied: the user's role is not admin-capable
    """
    user = require_user(user)
    if not is_admin_capable(user.role):
        logger.warning("Capability denied", user_id=user.id, role=str(user.role), action=action)
        raise CapabilityDenied(f"Role '{user.role}' is not allowed to {action}")
    return user


def check_admin_login(user: Any) -> bool:
    """Whether a login response may open an admin session."""
    return isinstance(user, User) and is_admin_capable(user.role)

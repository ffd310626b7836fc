"""
Social service — auth-specific FastAPI dependencies.

These wrap the shared auth dependencies and add service context (role guards).
"""
from __future__ import annotations

from fastapi import Depends

from app.exceptions import AdminRequired
from shared.auth.dependencies import (
    get_current_user_required,
)
from shared.models.user import CurrentUser

# Alias the shared dependencies so routes import from here, not from shared
# directly.
get_current_user = get_current_user_required


def require_admin(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Raise 403 unless the authenticated user holds the ADMIN or SUPER_ADMIN role."""
    if not current_user.is_admin:
        raise AdminRequired()
    return current_user

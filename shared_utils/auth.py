"""
Request identity helpers
Reads the user populated on request.state by the JWT middleware in main.py
"""
from fastapi import HTTPException, Request
from typing import Optional

ADMIN_ROLES = {"admin", "superadmin"}


def get_current_user_id(request: Request) -> Optional[int]:
    user_id = getattr(request.state, "user_id", None)
    if user_id is None:
        return None
    try:
        return int(user_id)
    except (TypeError, ValueError):
        return None


def get_current_role(request: Request) -> str:
    return getattr(request.state, "role", None) or "counselor"


def is_admin(request: Request) -> bool:
    return get_current_role(request) in ADMIN_ROLES


def require_admin(request: Request) -> None:
    """Dependency for admin-only endpoints"""
    if not is_admin(request):
        raise HTTPException(status_code=403, detail="Admin access required")


def can_modify(request: Request, owner_id: Optional[int]) -> bool:
    """Owners and admins may edit a record"""
    return is_admin(request) or (owner_id is not None and owner_id == get_current_user_id(request))

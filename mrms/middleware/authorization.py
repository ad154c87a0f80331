from fastapi import Depends

from mrms.middleware.auth import get_current_user
from mrms.models.user import User
from mrms.services.status_machine import require_role


def require_roles(*allowed_roles: str):
    """
    FastAPI dependency factory for role-based access control.

    Usage:
        @router.post("/sites")
        async def create_site(
            current_user: User = Depends(get_current_user),
            _auth: None = Depends(require_roles("manager")),
        ):

    Service functions repeat their own role checks; this only rejects
    obviously wrong callers before a request body is processed.
    """
    async def check_role(current_user: User = Depends(get_current_user)):
        require_role(current_user, allowed_roles)
        return None

    return check_role

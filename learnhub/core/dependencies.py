from fastapi import Depends, Header
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.core.database import get_db
from learnhub.core.errors import AuthenticationError, ForbiddenError
from learnhub.core.security import decode_access_token, extract_bearer_token


class UserRole:
    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


class CurrentUser:
    """
    Authenticated caller, loaded fresh from the users collection
    so role changes apply without re-issuing tokens
    """
    def __init__(self, profile: dict):
        self.user_id = profile["user_id"]
        self.user_name = profile.get("user_name")
        self.user_email = profile.get("user_email")
        self.role = profile.get("role", UserRole.STUDENT)
        self.profile = profile

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


# ==================== DEPENDENCY FUNCTIONS ====================

async def get_current_user(
    authorization: str = Header(None),
    db: AsyncIOMotorDatabase = Depends(get_db)
) -> CurrentUser:
    """
    Verify bearer token and load the caller

    Raises:
        401: Missing/invalid/expired token or user no longer exists
    """
    token = extract_bearer_token(authorization)
    payload = decode_access_token(token)

    profile = await db.users.find_one(
        {"user_id": payload["sub"]},
        {"_id": 0, "password_hash": 0}
    )
    if not profile:
        raise AuthenticationError("User not found")

    return CurrentUser(profile)


def require_roles(*roles: str):
    """Dependency factory gating a route to the given roles"""

    async def role_guard(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in roles:
            raise ForbiddenError(f"User role '{user.role}' is not authorized to access this route")
        return user

    return role_guard

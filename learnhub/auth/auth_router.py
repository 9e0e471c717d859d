import logging

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.core.database import get_db
from learnhub.core.dependencies import CurrentUser, get_current_user
from learnhub.core.errors import AuthenticationError
from learnhub.core.responses import success_response
from learnhub.core.security import create_access_token, verify_password
from learnhub.users import user_service
from learnhub.users.user_models import (
    RegisterRequest, LoginRequest, OAuthRequest, ChangePasswordRequest
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def token_response(user: dict, message: str) -> dict:
    token = create_access_token(user["user_id"], user["role"])
    return success_response(user, message, token=token)


# ==================== REGISTER / LOGIN ====================

@router.post("/register", status_code=201)
async def register(data: RegisterRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    """
    Register a student or instructor account

    Admins are never created through this endpoint.
    """
    user = await user_service.create_user(
        db, data.user_name, data.user_email, data.password, data.role.value
    )
    return token_response(user, "User registered successfully")


@router.post("/login")
async def login(data: LoginRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    user = await user_service.get_user_by_email(db, data.user_email, include_secret=True)

    # Same message for unknown e-mail and wrong password
    if not user or not await verify_password(data.password, user.get("password_hash")):
        logger.info(f"Failed login for {data.user_email}")
        raise AuthenticationError("Invalid credentials")

    user.pop("password_hash", None)
    return token_response(user, "Login successful")


@router.post("/oauth")
async def oauth_login(data: OAuthRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    """
    Sign in with an identity already verified by an OAuth provider

    Creates a student account on first sign-in. An e-mail registered with
    a password, or through another provider, is refused.
    """
    user = await user_service.get_or_create_oauth_user(db, data.user_name, data.user_email, data.provider)
    return token_response(user, "Login successful")


# ==================== CURRENT USER ====================

@router.get("/me")
async def get_me(user: CurrentUser = Depends(get_current_user)):
    return success_response(user.profile)


@router.put("/change-password")
async def change_password(
    data: ChangePasswordRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    record = await user_service.get_user_by_email(db, user.user_email, include_secret=True)
    if not record or not await verify_password(data.current_password, record.get("password_hash")):
        raise AuthenticationError("Current password is incorrect")

    await user_service.set_password(db, user.user_id, data.new_password)
    return success_response(message="Password updated successfully")

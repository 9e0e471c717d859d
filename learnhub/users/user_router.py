from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.core.database import get_db
from learnhub.core.dependencies import CurrentUser, UserRole, get_current_user, require_roles
from learnhub.core.errors import BadRequestError, NotFoundError
from learnhub.core.responses import success_response, pagination_meta
from learnhub.uploads.storage import DOCUMENT_TYPES, get_storage, store_upload
from learnhub.users import user_service
from learnhub.users.user_models import ProfileUpdate, Role, RoleUpdate

router = APIRouter(prefix="/users", tags=["Users"])

admin_only = require_roles(UserRole.ADMIN)

# ==================== SELF SERVICE ====================
# Static paths are registered before /{email} so they are not captured by it

@router.patch("")
async def update_my_profile(
    data: ProfileUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    updates = data.model_dump(exclude_none=True, mode="json")
    if not updates:
        raise BadRequestError("No profile fields provided")

    profile = await user_service.update_profile(db, user.user_id, updates)
    return success_response(profile, "Profile updated successfully")


@router.patch("/resume")
async def upload_resume(
    resume: UploadFile = File(None),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
    storage=Depends(get_storage)
):
    """Upload a PDF resume and store its URL on the profile"""
    stored = await store_upload(storage, resume, "resumes", "resume", allowed=DOCUMENT_TYPES)
    profile = await user_service.update_profile(db, user.user_id, {"resume_url": stored.url})
    return success_response(profile, "Resume uploaded successfully")


@router.get("/instructors/{user_id}")
async def get_instructor(user_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    """Public instructor profile"""
    instructor = await user_service.get_instructor_profile(db, user_id)
    if not instructor:
        raise NotFoundError("Instructor not found")
    return success_response(instructor)


# ==================== ADMIN ====================

@router.get("")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    role: Optional[Role] = None,
    search: Optional[str] = None,
    admin: CurrentUser = Depends(admin_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    users, total = await user_service.list_users(
        db,
        role=role.value if role else None,
        search=search,
        skip=(page - 1) * limit,
        limit=limit
    )
    return success_response(users, count=len(users), pagination=pagination_meta(total, page, limit))


@router.get("/{email}")
async def get_user_by_email(
    email: str,
    admin: CurrentUser = Depends(admin_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    user = await user_service.get_user_by_email(db, email)
    if not user:
        raise NotFoundError("User not found")
    return success_response(user)


@router.put("/{user_id}/role")
async def update_user_role(
    user_id: str,
    data: RoleUpdate,
    admin: CurrentUser = Depends(admin_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    user = await user_service.update_role(db, user_id, data.role.value)
    return success_response(user, "User role updated successfully")


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    admin: CurrentUser = Depends(admin_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if user_id == admin.user_id:
        raise BadRequestError("You cannot delete your own account")

    await user_service.delete_user(db, user_id)
    return success_response(message="User deleted successfully")

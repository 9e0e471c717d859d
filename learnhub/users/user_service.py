import logging
import re
import secrets
from datetime import datetime
from typing import List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.core.database import generate_id, serialize_doc, serialize_many
from learnhub.core.errors import AuthenticationError, ConflictError, NotFoundError
from learnhub.core.security import hash_password

logger = logging.getLogger(__name__)

PUBLIC_PROJECTION = {"_id": 0, "password_hash": 0}

PASSWORD_PROVIDER = "password"

INSTRUCTOR_PUBLIC_FIELDS = {
    "_id": 0, "user_id": 1, "user_name": 1, "user_email": 1, "role": 1,
    "qualification": 1, "skills": 1, "social_links": 1
}


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user_by_id(db: AsyncIOMotorDatabase, user_id: str) -> Optional[dict]:
    return await db.users.find_one({"user_id": user_id}, PUBLIC_PROJECTION)


async def get_user_by_email(db: AsyncIOMotorDatabase, email: str, include_secret: bool = False) -> Optional[dict]:
    projection = {"_id": 0} if include_secret else PUBLIC_PROJECTION
    return await db.users.find_one({"user_email": normalize_email(email)}, projection)


async def create_user(
    db: AsyncIOMotorDatabase,
    user_name: str,
    user_email: str,
    password: str,
    role: str,
    auth_provider: str = PASSWORD_PROVIDER
) -> dict:
    """
    Create a user with an empty profile

    Raises:
        400: E-mail already registered
    """
    email = normalize_email(user_email)
    if await db.users.find_one({"user_email": email}, {"_id": 1}):
        raise ConflictError("User with this email already exists")

    now = datetime.utcnow()
    user = {
        "user_id": generate_id("USR"),
        "user_name": user_name.strip(),
        "user_email": email,
        "password_hash": await hash_password(password),
        "role": role,
        "auth_provider": auth_provider,
        "phone_number": "",
        "place": "",
        "gender": "",
        "qualification": "",
        "completion_graduation": "",
        "working_status": "",
        "skills": [],
        "resume_url": "",
        "badges": [],
        "social_links": {"linkedin": "", "github": "", "portfolio": "", "other": ""},
        "subscriptions": [],
        "desired_contents": [],
        "created_at": now,
        "updated_at": now
    }

    await db.users.insert_one(user)
    logger.info(f"User {user['user_id']} registered as {role}")
    return serialize_doc(user)


async def get_or_create_oauth_user(db: AsyncIOMotorDatabase, user_name: str, user_email: str, provider: str) -> dict:
    """
    OAuth sign-in: reuse the account this provider created, or create a student

    Raises:
        401: The e-mail belongs to an account created another way
    """
    if provider == PASSWORD_PROVIDER:
        raise AuthenticationError("Use password login for this account")

    existing = await get_user_by_email(db, user_email)
    if existing:
        if existing.get("auth_provider", PASSWORD_PROVIDER) != provider:
            logger.warning(f"OAuth ({provider}) sign-in refused for {existing['user_id']}")
            raise AuthenticationError("This account does not use this sign-in method")
        return existing
    # Random password nobody knows; the account is reached through OAuth only
    return await create_user(db, user_name, user_email, secrets.token_urlsafe(24), "student", auth_provider=provider)


async def set_password(db: AsyncIOMotorDatabase, user_id: str, new_password: str):
    await db.users.update_one(
        {"user_id": user_id},
        {"$set": {"password_hash": await hash_password(new_password), "updated_at": datetime.utcnow()}}
    )


async def list_users(
    db: AsyncIOMotorDatabase,
    role: Optional[str] = None,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 10
) -> Tuple[List[dict], int]:
    query = {}
    if role:
        query["role"] = role
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [{"user_name": pattern}, {"user_email": pattern}]

    cursor = db.users.find(query, PUBLIC_PROJECTION).sort("created_at", -1).skip(skip).limit(limit)
    users = await cursor.to_list(length=limit)
    total = await db.users.count_documents(query)
    return serialize_many(users), total


async def update_profile(db: AsyncIOMotorDatabase, user_id: str, updates: dict) -> dict:
    updates["updated_at"] = datetime.utcnow()
    result = await db.users.update_one({"user_id": user_id}, {"$set": updates})
    if result.matched_count == 0:
        raise NotFoundError("User not found")
    return await get_user_by_id(db, user_id)


async def update_role(db: AsyncIOMotorDatabase, user_id: str, role: str) -> dict:
    return await update_profile(db, user_id, {"role": role})


async def delete_user(db: AsyncIOMotorDatabase, user_id: str):
    result = await db.users.delete_one({"user_id": user_id})
    if result.deleted_count == 0:
        raise NotFoundError("User not found")
    await db.student_courses.delete_one({"user_id": user_id})
    logger.info(f"User {user_id} deleted")


async def get_instructor_profile(db: AsyncIOMotorDatabase, user_id: str) -> Optional[dict]:
    return await db.users.find_one({"user_id": user_id, "role": "instructor"}, INSTRUCTOR_PUBLIC_FIELDS)

import logging
import uuid
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from learnhub.core.config import MONGO_URL, MONGO_DB_NAME

logger = logging.getLogger(__name__)

client = AsyncIOMotorClient(MONGO_URL)
db = client[MONGO_DB_NAME]


async def get_db() -> AsyncIOMotorDatabase:
    """Database dependency"""
    return db


def generate_id(prefix: str) -> str:
    """Generate unique ID with prefix, e.g. CRS_1A2B3C4D5E6F"""
    return f"{prefix}_{uuid.uuid4().hex[:12].upper()}"


def serialize_doc(doc: Optional[dict]) -> Optional[dict]:
    """Strip Mongo-internal and secret fields before a document leaves the API"""
    if doc is None:
        return None
    doc = dict(doc)
    doc.pop("_id", None)
    doc.pop("password_hash", None)
    return doc


def serialize_many(docs: list[dict]) -> list[dict]:
    return [serialize_doc(doc) for doc in docs]


# ==================== STARTUP: CREATE INDEXES ====================

async def create_indexes(database: AsyncIOMotorDatabase = None):
    """Create MongoDB indexes for data integrity"""
    database = database if database is not None else db
    try:
        await database.users.create_index("user_id", unique=True)
        await database.users.create_index("user_email", unique=True)
        await database.users.create_index("role")

        await database.courses.create_index("course_id", unique=True)
        await database.courses.create_index("slug", unique=True)
        await database.courses.create_index("instructor_id")
        await database.courses.create_index([("is_published", 1), ("created_at", -1)])
        await database.courses.create_index("category")
        await database.courses.create_index("level")

        # One enrollment record per user
        await database.student_courses.create_index("user_id", unique=True)

        await database.orders.create_index("order_id", unique=True)
        await database.orders.create_index("razorpay_order_id", unique=True)
        await database.orders.create_index("user_id")
        await database.orders.create_index("instructor_id")
        await database.orders.create_index("course_id")

        logger.info("✅ MongoDB indexes created")
    except Exception as e:
        logger.warning(f"⚠️  Index creation warning: {e}")

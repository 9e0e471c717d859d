import copy
import logging
import re
import time
from datetime import datetime
from typing import List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from learnhub.core.database import generate_id, serialize_doc, serialize_many
from learnhub.core.dependencies import CurrentUser
from learnhub.core.errors import ConcurrentModificationError, ForbiddenError, NotFoundError

logger = logging.getLogger(__name__)

SUMMARY_FIELDS = {
    "_id": 0, "course_id": 1, "slug": 1, "title": 1, "subtitle": 1, "category": 1,
    "level": 1, "pricing": 1, "sale_price": 1, "sale_end_date": 1, "image": 1,
    "ratings": 1, "enrollment_count": 1, "instructor_id": 1, "instructor_name": 1,
    "total_lectures": 1, "total_duration": 1, "created_at": 1
}

SORTABLE_FIELDS = {
    "created_at", "updated_at", "published_date", "last_updated", "title",
    "pricing", "enrollment_count", "ratings.average", "total_duration"
}

DEFAULT_SORT = "-created_at"

# ==================== HELPERS ====================

def generate_slug(title: str, now_ms: Optional[int] = None) -> str:
    """
    URL slug from a title, e.g. "Intro to Python!" -> "intro-to-python-123456"

    The suffix is the last 6 digits of the current millisecond timestamp.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    base = re.sub(r"[^\w ]+", "", title.lower())
    base = re.sub(r" +", "-", base)
    return f"{base}-{str(now_ms)[-6:]}"


def parse_sort(sort: Optional[str]) -> Tuple[str, int]:
    """"-pricing" -> ("pricing", -1); unknown fields fall back to newest first"""
    sort = (sort or DEFAULT_SORT).strip()
    direction = -1 if sort.startswith("-") else 1
    field = sort.lstrip("-+")
    if field not in SORTABLE_FIELDS:
        return "created_at", -1
    return field, direction


def current_price(course: dict, now: Optional[datetime] = None) -> float:
    """Sale price applies until sale_end_date, list price otherwise"""
    now = now or datetime.utcnow()
    sale_price = course.get("sale_price")
    sale_end = course.get("sale_end_date")
    if sale_price is not None and sale_end is not None and now < sale_end:
        return sale_price
    return course["pricing"]


def curriculum_totals(curriculum: List[dict]) -> dict:
    return {
        "total_lectures": len(curriculum),
        "total_duration": sum(lecture.get("duration") or 0 for lecture in curriculum)
    }


def lecture_ids(course: dict) -> List[str]:
    return [lecture["lecture_id"] for lecture in course.get("curriculum", [])]


def find_lecture(course: dict, lecture_id: str) -> Optional[dict]:
    return next(
        (lecture for lecture in course.get("curriculum", []) if lecture["lecture_id"] == lecture_id),
        None
    )


def build_questions(questions: List[dict], existing: Optional[List[dict]] = None) -> List[dict]:
    """Keep a supplied question_id when it already belongs to the lecture, mint one otherwise"""
    known_ids = {q["question_id"] for q in (existing or [])}
    built = []
    for q in questions:
        question_id = q.get("question_id")
        if question_id not in known_ids:
            question_id = generate_id("Q")
        known_ids.discard(question_id)
        built.append({
            "question_id": question_id,
            "question": q["question"],
            "options": list(q["options"]),
            "correct_answer": q["correct_answer"],
            "explanation": q.get("explanation") or ""
        })
    return built


def build_lecture(data: dict) -> dict:
    return {
        "lecture_id": generate_id("LEC"),
        "title": data["title"],
        "description": data.get("description") or "",
        "video_url": data.get("video_url") or "",
        "video_public_id": None,
        "duration": data.get("duration") or 0,
        "free_preview": bool(data.get("free_preview")),
        "resources": data.get("resources") or [],
        "questions": build_questions(data.get("questions") or [])
    }


def public_course_view(course: dict) -> dict:
    """Course as shown to learners and visitors: no correct answers"""
    view = copy.deepcopy(serialize_doc(course))
    for lecture in view.get("curriculum", []):
        for question in lecture.get("questions", []):
            question.pop("correct_answer", None)
    return view


def ensure_owner(course: dict, user: CurrentUser, action: str = "update"):
    if course["instructor_id"] != user.user_id and not user.is_admin:
        raise ForbiddenError(f"You are not authorized to {action} this course")

# ==================== QUERIES ====================

async def get_course(db: AsyncIOMotorDatabase, id_or_slug: str) -> Optional[dict]:
    """Look up by course_id when the value looks like one, by slug otherwise"""
    if id_or_slug.startswith("CRS_"):
        query = {"course_id": id_or_slug}
    else:
        query = {"slug": id_or_slug}
    return await db.courses.find_one(query, {"_id": 0})


async def get_course_or_404(db: AsyncIOMotorDatabase, course_id: str) -> dict:
    course = await db.courses.find_one({"course_id": course_id}, {"_id": 0})
    if not course:
        raise NotFoundError("Course not found")
    return course


async def list_published_courses(
    db: AsyncIOMotorDatabase,
    search: Optional[str] = None,
    category: Optional[str] = None,
    level: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    instructor: Optional[str] = None,
    sort: Optional[str] = None,
    skip: int = 0,
    limit: int = 10
) -> Tuple[List[dict], int]:
    query = {"is_published": True}

    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [{"title": pattern}, {"description": pattern}, {"tags": pattern}]
    if category:
        query["category"] = category
    if level:
        query["level"] = level
    if min_price is not None or max_price is not None:
        query["pricing"] = {}
        if min_price is not None:
            query["pricing"]["$gte"] = min_price
        if max_price is not None:
            query["pricing"]["$lte"] = max_price
    if instructor:
        query["instructor_id"] = instructor

    field, direction = parse_sort(sort)
    cursor = db.courses.find(query, SUMMARY_FIELDS).sort(field, direction).skip(skip).limit(limit)
    courses = await cursor.to_list(length=limit)
    total = await db.courses.count_documents(query)
    return serialize_many(courses), total


async def list_instructor_courses(db: AsyncIOMotorDatabase, instructor_id: str) -> List[dict]:
    cursor = db.courses.find({"instructor_id": instructor_id}, {"_id": 0}).sort("created_at", -1)
    return serialize_many(await cursor.to_list(length=None))

# ==================== COURSE CRUD ====================

async def create_course(db: AsyncIOMotorDatabase, user: CurrentUser, data: dict) -> dict:
    now = datetime.utcnow()
    course = {
        **data,
        "course_id": generate_id("CRS"),
        "instructor_id": user.user_id,
        "instructor_name": user.user_name,
        "slug": generate_slug(data["title"]),
        "image": "",
        "image_public_id": None,
        "curriculum": [],
        "total_lectures": 0,
        "total_duration": 0,
        "ratings": {"average": 0, "count": 0},
        "enrollment_count": 0,
        "is_published": False,
        "published_date": None,
        "version": 0,
        "last_updated": now,
        "created_at": now,
        "updated_at": now
    }

    await db.courses.insert_one(course)
    logger.info(f"Course {course['course_id']} created by {user.user_id}")
    return serialize_doc(course)


async def update_course(db: AsyncIOMotorDatabase, course: dict, updates: dict) -> dict:
    now = datetime.utcnow()
    if "title" in updates and updates["title"] != course["title"]:
        updates["slug"] = generate_slug(updates["title"])
    updates.update({"last_updated": now, "updated_at": now})

    updated = await db.courses.find_one_and_update(
        {"course_id": course["course_id"]},
        {"$set": updates},
        projection={"_id": 0},
        return_document=ReturnDocument.AFTER
    )
    if not updated:
        raise NotFoundError("Course not found")
    return updated


async def delete_course(db: AsyncIOMotorDatabase, course: dict, storage):
    """Delete the course and the media it stored"""
    public_ids = [course.get("image_public_id")]
    public_ids += [lecture.get("video_public_id") for lecture in course.get("curriculum", [])]
    for public_id in public_ids:
        if public_id:
            await storage.delete(public_id)

    await db.courses.delete_one({"course_id": course["course_id"]})
    logger.info(f"Course {course['course_id']} deleted")


async def toggle_publish(db: AsyncIOMotorDatabase, course: dict) -> dict:
    is_published = not course.get("is_published", False)
    updates = {"is_published": is_published}
    if is_published:
        updates["published_date"] = datetime.utcnow()
    return await update_course(db, course, updates)


async def set_course_image(db: AsyncIOMotorDatabase, course: dict, stored, storage) -> dict:
    """Point the course at the new image, then drop the old one"""
    try:
        updated = await update_course(db, course, {"image": stored.url, "image_public_id": stored.public_id})
    except Exception:
        if stored.public_id:
            await storage.delete(stored.public_id)
        raise

    if course.get("image_public_id"):
        await storage.delete(course["image_public_id"])
    return updated

# ==================== CURRICULUM ====================

async def write_curriculum(db: AsyncIOMotorDatabase, course: dict, curriculum: List[dict]) -> dict:
    """
    Replace the curriculum if nobody else changed it since `course` was read

    Raises:
        409: Course version moved on in the meantime
    """
    now = datetime.utcnow()
    result = await db.courses.update_one(
        {"course_id": course["course_id"], "version": course.get("version", 0)},
        {
            "$set": {
                "curriculum": curriculum,
                **curriculum_totals(curriculum),
                "last_updated": now,
                "updated_at": now
            },
            "$inc": {"version": 1}
        }
    )
    if result.matched_count == 0:
        logger.warning(f"Concurrent curriculum edit on {course['course_id']}")
        raise ConcurrentModificationError()
    return await get_course_or_404(db, course["course_id"])


async def add_lecture(db: AsyncIOMotorDatabase, course: dict, data: dict) -> Tuple[dict, dict]:
    lecture = build_lecture(data)
    curriculum = course.get("curriculum", []) + [lecture]
    return await write_curriculum(db, course, curriculum), lecture


async def update_lecture(db: AsyncIOMotorDatabase, course: dict, lecture_id: str, updates: dict) -> dict:
    existing = find_lecture(course, lecture_id)
    if not existing:
        raise NotFoundError("Lecture not found")

    lecture = dict(existing)
    if "questions" in updates:
        lecture["questions"] = build_questions(updates.pop("questions"), existing.get("questions"))
    lecture.update(updates)

    curriculum = [lecture if item["lecture_id"] == lecture_id else item for item in course["curriculum"]]
    return await write_curriculum(db, course, curriculum)


async def delete_lecture(db: AsyncIOMotorDatabase, course: dict, lecture_id: str, storage) -> dict:
    existing = find_lecture(course, lecture_id)
    if not existing:
        raise NotFoundError("Lecture not found")

    curriculum = [item for item in course["curriculum"] if item["lecture_id"] != lecture_id]
    updated = await write_curriculum(db, course, curriculum)

    if existing.get("video_public_id"):
        await storage.delete(existing["video_public_id"])
    return updated


async def set_lecture_video(db: AsyncIOMotorDatabase, course: dict, lecture_id: str, stored, storage) -> dict:
    """Point the lecture at the new video, then drop the old one"""
    existing = find_lecture(course, lecture_id)
    if not existing:
        raise NotFoundError("Lecture not found")

    try:
        updated = await update_lecture(
            db, course, lecture_id, {"video_url": stored.url, "video_public_id": stored.public_id}
        )
    except Exception:
        if stored.public_id:
            await storage.delete(stored.public_id)
        raise

    if existing.get("video_public_id"):
        await storage.delete(existing["video_public_id"])
    return updated

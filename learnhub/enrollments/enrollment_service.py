"""
Enrollment Service

One `student_courses` document per user:
{
    "user_id": "USR_...",
    "courses": {
        "<course_id>": {
            course_id, title, instructor_id, instructor_name, course_image,
            date_of_purchase, completed_lectures: [...], last_accessed,
            quiz_scores: {"<lecture_id>": {lecture_id, score, total_questions, date_taken}}
        }
    }
}

Every mutation below is a single atomic update on that document, so two
concurrent requests for the same user never overwrite each other.
"""

import logging
from datetime import datetime
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from learnhub.core.errors import BadRequestError, NotFoundError
from learnhub.courses import course_service
from learnhub.enrollments.progress import calculate_progress, score_quiz, quiz_percentage

logger = logging.getLogger(__name__)


def is_valid_key(course_id: str) -> bool:
    """Course ids are used as field names, so no dots and no leading $"""
    return bool(course_id) and "." not in course_id and not course_id.startswith("$")


def entry_path(course_id: str) -> str:
    return f"courses.{course_id}"


def with_progress(entry: dict, course: Optional[dict]) -> dict:
    """Attach the derived progress to an enrollment entry"""
    lectures = course_service.lecture_ids(course) if course else []
    return {**entry, "progress": calculate_progress(entry.get("completed_lectures", []), lectures)}

# ==================== READS ====================

async def get_entry(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> Optional[dict]:
    if not is_valid_key(course_id):
        return None
    record = await db.student_courses.find_one(
        {"user_id": user_id, entry_path(course_id): {"$exists": True}},
        {"_id": 0, entry_path(course_id): 1}
    )
    if not record:
        return None
    return record.get("courses", {}).get(course_id)


async def get_entry_or_404(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> dict:
    entry = await get_entry(db, user_id, course_id)
    if entry is None:
        raise NotFoundError("You are not enrolled in this course")
    return entry


async def is_enrolled(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> bool:
    return await get_entry(db, user_id, course_id) is not None


async def list_enrollments(db: AsyncIOMotorDatabase, user_id: str) -> List[dict]:
    record = await db.student_courses.find_one({"user_id": user_id}, {"_id": 0})
    entries = list((record or {}).get("courses", {}).values())
    if not entries:
        return []

    cursor = db.courses.find(
        {"course_id": {"$in": [e["course_id"] for e in entries]}},
        {"_id": 0, "course_id": 1, "curriculum": 1}
    )
    courses = {c["course_id"]: c for c in await cursor.to_list(length=None)}

    entries.sort(key=lambda e: e.get("date_of_purchase") or datetime.min, reverse=True)
    return [with_progress(e, courses.get(e["course_id"])) for e in entries]


async def get_enrollment_details(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> dict:
    entry = await get_entry_or_404(db, user_id, course_id)
    course = await course_service.get_course_or_404(db, course_id)

    return {
        "course": course_service.public_course_view(course),
        "progress": calculate_progress(entry.get("completed_lectures", []), course_service.lecture_ids(course)),
        "completed_lectures": entry.get("completed_lectures", []),
        "last_accessed": entry.get("last_accessed"),
        "quiz_scores": list(entry.get("quiz_scores", {}).values())
    }


async def list_instructor_students(db: AsyncIOMotorDatabase, instructor_id: str) -> List[dict]:
    """Learners enrolled in any of the instructor's courses, with their entries for those courses"""
    cursor = db.courses.find(
        {"instructor_id": instructor_id},
        {"_id": 0, "course_id": 1, "curriculum": 1}
    )
    courses = {c["course_id"]: c for c in await cursor.to_list(length=None)}
    if not courses:
        return []

    query = {"$or": [{entry_path(cid): {"$exists": True}} for cid in courses]}
    records = await db.student_courses.find(query, {"_id": 0}).to_list(length=None)

    user_ids = [r["user_id"] for r in records]
    users = await db.users.find(
        {"user_id": {"$in": user_ids}},
        {"_id": 0, "user_id": 1, "user_name": 1, "user_email": 1}
    ).to_list(length=None)
    users_by_id = {u["user_id"]: u for u in users}

    students = []
    for record in records:
        entries = [
            with_progress(entry, courses[cid])
            for cid, entry in record.get("courses", {}).items()
            if cid in courses
        ]
        user = users_by_id.get(record["user_id"], {"user_id": record["user_id"]})
        students.append({**user, "courses": entries})
    return students

# ==================== GRANT ====================

async def grant_enrollment(db: AsyncIOMotorDatabase, user_id: str, course: dict) -> bool:
    """
    Give `user_id` access to `course`; safe to call repeatedly

    Returns:
        True when a new entry was created
    """
    now = datetime.utcnow()
    try:
        await db.student_courses.update_one(
            {"user_id": user_id},
            {"$setOnInsert": {"user_id": user_id, "courses": {}, "created_at": now}},
            upsert=True
        )
    except DuplicateKeyError:
        # Lost the upsert race to a concurrent grant; the record exists now
        pass

    path = entry_path(course["course_id"])
    result = await db.student_courses.update_one(
        {"user_id": user_id, path: {"$exists": False}},
        {"$set": {
            path: {
                "course_id": course["course_id"],
                "title": course["title"],
                "instructor_id": course["instructor_id"],
                "instructor_name": course.get("instructor_name"),
                "course_image": course.get("image", ""),
                "date_of_purchase": now,
                "completed_lectures": [],
                "last_accessed": now,
                "quiz_scores": {}
            },
            "updated_at": now
        }}
    )

    if result.modified_count == 0:
        return False

    await db.courses.update_one({"course_id": course["course_id"]}, {"$inc": {"enrollment_count": 1}})
    logger.info(f"User {user_id} enrolled in {course['course_id']}")
    return True

# ==================== PROGRESS ====================

async def mark_lecture_completed(db: AsyncIOMotorDatabase, user_id: str, course_id: str, lecture_id: str) -> dict:
    """
    Raises:
        404: Not enrolled, course missing or lecture not in the current curriculum
    """
    await get_entry_or_404(db, user_id, course_id)
    course = await course_service.get_course_or_404(db, course_id)
    if not course_service.find_lecture(course, lecture_id):
        raise NotFoundError("Lecture not found")

    path = entry_path(course_id)
    now = datetime.utcnow()
    await db.student_courses.update_one(
        {"user_id": user_id, path: {"$exists": True}},
        {
            "$addToSet": {f"{path}.completed_lectures": lecture_id},
            "$set": {f"{path}.last_accessed": now, "updated_at": now}
        }
    )

    entry = await get_entry_or_404(db, user_id, course_id)
    completed = entry.get("completed_lectures", [])
    return {
        "progress": calculate_progress(completed, course_service.lecture_ids(course)),
        "completed_lectures": completed
    }


async def submit_quiz_answers(db: AsyncIOMotorDatabase, user_id: str, course_id: str, lecture_id: str, answers) -> dict:
    """
    Score a quiz attempt and keep the best score per lecture

    Raises:
        400: answers is not a list
        404: Not enrolled, course/lecture missing or lecture has no questions
    """
    if not isinstance(answers, list):
        raise BadRequestError("Answers must be provided as an array")

    await get_entry_or_404(db, user_id, course_id)
    course = await course_service.get_course_or_404(db, course_id)
    lecture = course_service.find_lecture(course, lecture_id)
    if not lecture:
        raise NotFoundError("Lecture not found")
    if not lecture.get("questions"):
        raise NotFoundError("No questions found for this lecture")

    score, total = score_quiz(lecture["questions"], answers)
    now = datetime.utcnow()
    path = entry_path(course_id)
    score_path = f"{path}.quiz_scores.{lecture_id}"
    record = {"lecture_id": lecture_id, "score": score, "total_questions": total, "date_taken": now}

    # First attempt
    result = await db.student_courses.update_one(
        {"user_id": user_id, path: {"$exists": True}, score_path: {"$exists": False}},
        {"$set": {score_path: record}}
    )
    improved = result.modified_count > 0

    # Later attempts only overwrite a strictly lower score
    if not improved:
        result = await db.student_courses.update_one(
            {"user_id": user_id, f"{score_path}.score": {"$lt": score}},
            {"$set": {score_path: record}}
        )
        improved = result.modified_count > 0

    await db.student_courses.update_one(
        {"user_id": user_id, path: {"$exists": True}},
        {"$set": {f"{path}.last_accessed": now, "updated_at": now}}
    )

    entry = await get_entry_or_404(db, user_id, course_id)
    best = entry.get("quiz_scores", {}).get(lecture_id, record)
    return {
        "score": score,
        "total_questions": total,
        "percentage": quiz_percentage(score, total),
        "best_score": best["score"],
        "improved": improved
    }

# ==================== CLEANUP ====================

async def remove_lecture_from_enrollments(db: AsyncIOMotorDatabase, course_id: str, lecture_id: str) -> int:
    """Drop a deleted lecture from every learner's completed set and quiz scores"""
    path = entry_path(course_id)
    result = await db.student_courses.update_many(
        {path: {"$exists": True}},
        {
            "$pull": {f"{path}.completed_lectures": lecture_id},
            "$unset": {f"{path}.quiz_scores.{lecture_id}": ""}
        }
    )
    return result.modified_count

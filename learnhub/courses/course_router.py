from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.core.database import get_db, serialize_doc
from learnhub.core.dependencies import CurrentUser, UserRole, get_current_user, require_roles
from learnhub.core.errors import BadRequestError, NotFoundError
from learnhub.core.responses import success_response, pagination_meta
from learnhub.courses import course_service as service
from learnhub.courses.course_models import CourseCreate, CourseLevel, CourseUpdate, LectureCreate, LectureUpdate
from learnhub.enrollments import enrollment_service
from learnhub.uploads.storage import IMAGE_TYPES, VIDEO_TYPES, get_storage, store_upload

router = APIRouter(prefix="/courses", tags=["Courses"])

instructor_or_admin = require_roles(UserRole.INSTRUCTOR, UserRole.ADMIN)


async def get_owned_course(
    course_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
) -> dict:
    """Load the course and make sure the caller owns it (admins pass)"""
    course = await service.get_course_or_404(db, course_id)
    service.ensure_owner(course, user)
    return course

# ==================== CATALOG ====================

@router.get("")
async def list_courses(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    category: Optional[str] = None,
    level: Optional[CourseLevel] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    instructor: Optional[str] = None,
    sort: Optional[str] = None,
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Published courses, newest first unless `sort` says otherwise"""
    courses, total = await service.list_published_courses(
        db,
        search=search,
        category=category,
        level=level.value if level else None,
        min_price=min_price,
        max_price=max_price,
        instructor=instructor,
        sort=sort,
        skip=(page - 1) * limit,
        limit=limit
    )
    return success_response(courses, count=len(courses), pagination=pagination_meta(total, page, limit))


@router.get("/instructor/courses")
async def get_instructor_courses(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    courses = await service.list_instructor_courses(db, user.user_id)
    return success_response(courses, count=len(courses))


@router.get("/{course_id}")
async def get_course(course_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    """Course by id or slug, without quiz answers"""
    course = await service.get_course(db, course_id)
    if not course:
        raise NotFoundError("Course not found")
    return success_response(service.public_course_view(course))

# ==================== COURSE MANAGEMENT ====================

@router.post("", status_code=201)
async def create_course(
    data: CourseCreate,
    user: CurrentUser = Depends(instructor_or_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    course = await service.create_course(db, user, data.model_dump(mode="python"))
    return success_response(course, "Course created successfully")


@router.put("/{course_id}")
async def update_course(
    data: CourseUpdate,
    course: dict = Depends(get_owned_course),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    updates = data.model_dump(exclude_unset=True)
    for field in ("title", "pricing"):
        if field in updates and updates[field] is None:
            raise BadRequestError(f"{field} cannot be empty")

    updated = await service.update_course(db, course, updates)
    return success_response(serialize_doc(updated), "Course updated successfully")


@router.delete("/{course_id}")
async def delete_course(
    course: dict = Depends(get_owned_course),
    db: AsyncIOMotorDatabase = Depends(get_db),
    storage=Depends(get_storage)
):
    await service.delete_course(db, course, storage)
    return success_response(message="Course deleted successfully")


@router.put("/{course_id}/publish")
async def toggle_publish(
    course: dict = Depends(get_owned_course),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    updated = await service.toggle_publish(db, course)
    state = "published" if updated["is_published"] else "unpublished"
    return success_response(serialize_doc(updated), f"Course {state} successfully")


@router.patch("/{course_id}/image")
async def upload_course_image(
    image: UploadFile = File(None),
    course: dict = Depends(get_owned_course),
    db: AsyncIOMotorDatabase = Depends(get_db),
    storage=Depends(get_storage)
):
    stored = await store_upload(storage, image, "courses", "image", allowed=IMAGE_TYPES)
    updated = await service.set_course_image(db, course, stored, storage)
    return success_response(serialize_doc(updated), "Course image uploaded successfully")

# ==================== LECTURES ====================

@router.post("/{course_id}/lectures", status_code=201)
async def add_lecture(
    data: LectureCreate,
    course: dict = Depends(get_owned_course),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    updated, lecture = await service.add_lecture(db, course, data.model_dump())
    return success_response(serialize_doc(updated), "Lecture added successfully", lecture_id=lecture["lecture_id"])


@router.put("/{course_id}/lectures/{lecture_id}")
async def update_lecture(
    lecture_id: str,
    data: LectureUpdate,
    course: dict = Depends(get_owned_course),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    updates = data.model_dump(exclude_unset=True)
    if updates.get("title", "") is None:
        raise BadRequestError("title cannot be empty")
    updates = {k: v for k, v in updates.items() if v is not None}

    updated = await service.update_lecture(db, course, lecture_id, updates)
    return success_response(serialize_doc(updated), "Lecture updated successfully")


@router.delete("/{course_id}/lectures/{lecture_id}")
async def delete_lecture(
    lecture_id: str,
    course: dict = Depends(get_owned_course),
    db: AsyncIOMotorDatabase = Depends(get_db),
    storage=Depends(get_storage)
):
    updated = await service.delete_lecture(db, course, lecture_id, storage)
    await enrollment_service.remove_lecture_from_enrollments(db, course["course_id"], lecture_id)
    return success_response(serialize_doc(updated), "Lecture deleted successfully")


@router.post("/{course_id}/lectures/{lecture_id}/video")
async def upload_lecture_video(
    lecture_id: str,
    video: UploadFile = File(None),
    course: dict = Depends(get_owned_course),
    db: AsyncIOMotorDatabase = Depends(get_db),
    storage=Depends(get_storage)
):
    if not service.find_lecture(course, lecture_id):
        raise NotFoundError("Lecture not found")

    stored = await store_upload(storage, video, "lectures", "video", allowed=VIDEO_TYPES)
    updated = await service.set_lecture_video(db, course, lecture_id, stored, storage)
    return success_response(serialize_doc(updated), "Lecture video uploaded successfully")

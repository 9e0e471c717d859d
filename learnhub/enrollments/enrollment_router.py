from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.core.database import get_db
from learnhub.core.dependencies import CurrentUser, UserRole, get_current_user, require_roles
from learnhub.core.responses import success_response
from learnhub.enrollments import enrollment_service as service
from learnhub.enrollments.enrollment_models import QuizSubmission

router = APIRouter(prefix="/enrollments", tags=["Enrollments"])

# ==================== LEARNER ====================

@router.get("")
async def get_enrolled_courses(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    entries = await service.list_enrollments(db, user.user_id)
    return success_response(entries, count=len(entries))


@router.get("/instructor/students")
async def get_instructor_students(
    user: CurrentUser = Depends(require_roles(UserRole.INSTRUCTOR, UserRole.ADMIN)),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    students = await service.list_instructor_students(db, user.user_id)
    return success_response(students, count=len(students))


@router.get("/{course_id}")
async def get_enrolled_course_details(
    course_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    details = await service.get_enrollment_details(db, user.user_id, course_id)
    return success_response(details)

# ==================== PROGRESS ====================

@router.post("/{course_id}/lectures/{lecture_id}/complete")
async def mark_lecture_completed(
    course_id: str,
    lecture_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    result = await service.mark_lecture_completed(db, user.user_id, course_id, lecture_id)
    return success_response(result, "Lecture marked as completed")


@router.post("/{course_id}/quizzes/{lecture_id}")
async def submit_quiz(
    course_id: str,
    lecture_id: str,
    data: QuizSubmission,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    result = await service.submit_quiz_answers(db, user.user_id, course_id, lecture_id, data.answers)
    return success_response(result, "Quiz submitted successfully")

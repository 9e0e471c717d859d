import logging
from datetime import datetime

from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.core.config import PAYMENT_CURRENCY
from learnhub.core.dependencies import CurrentUser
from learnhub.core.errors import BadRequestError
from learnhub.courses import course_service
from learnhub.enrollments import enrollment_service
from learnhub.orders import order_service
from learnhub.payments.gateway import verify_payment_signature

logger = logging.getLogger(__name__)


def amount_in_paise(price: float) -> int:
    return int(round(price * 100))


# ==================== CREATE ORDER ====================

async def create_payment_order(db: AsyncIOMotorDatabase, gateway, user: CurrentUser, course_id: str) -> dict:
    """
    Open a gateway order for a course purchase; nothing is stored until verification

    Raises:
        404: Course not found
        400: Course not published or already enrolled
    """
    course = await course_service.get_course_or_404(db, course_id)
    if not course.get("is_published"):
        raise BadRequestError("Course is not published")
    if await enrollment_service.is_enrolled(db, user.user_id, course_id):
        raise BadRequestError("You are already enrolled in this course")

    amount = amount_in_paise(course_service.current_price(course))
    order = await gateway.create_order(
        amount=amount,
        currency=PAYMENT_CURRENCY,
        receipt=f"receipt_{course_id}_{int(datetime.utcnow().timestamp())}",
        notes={"course_id": course_id, "user_id": user.user_id}
    )

    logger.info(f"Payment order {order['id']} opened for {user.user_id} / {course_id}")
    return {
        "order_id": order["id"],
        "currency": order.get("currency", PAYMENT_CURRENCY),
        "amount": order.get("amount", amount),
        "course": {
            "course_id": course["course_id"],
            "title": course["title"],
            "image": course.get("image", "")
        }
    }


# ==================== VERIFY PAYMENT ====================

async def verify_and_enroll(db: AsyncIOMotorDatabase, gateway, user: CurrentUser, data) -> dict:
    """
    Verify a completed checkout, record the order and grant enrollment

    Safe to call again for the same gateway order: the stored order is
    returned and enrollment is (re)granted idempotently.

    Raises:
        404: Course not found
        400: Bad signature, payment not captured, or order not opened for this buyer, course and amount
    """
    course = await course_service.get_course_or_404(db, data.course_id)

    if not verify_payment_signature(data.razorpay_order_id, data.razorpay_payment_id, data.razorpay_signature):
        logger.warning(f"Invalid payment signature for order {data.razorpay_order_id}")
        raise BadRequestError("Invalid payment signature")

    existing = await order_service.get_order_by_gateway_id(db, data.razorpay_order_id)
    if existing:
        if existing["user_id"] != user.user_id or existing["course_id"] != course["course_id"]:
            raise BadRequestError("Payment order already used")
        logger.info(f"Payment {data.razorpay_payment_id} already verified")
        await enrollment_service.grant_enrollment(db, user.user_id, course)
        return {
            "order": existing,
            "enrollment": await enrollment_service.get_entry(db, user.user_id, course["course_id"]),
        }

    payment = await gateway.fetch_payment(data.razorpay_payment_id)
    if payment.get("status") != "captured":
        raise BadRequestError(f"Payment not captured. Status: {payment.get('status')}")
    if payment.get("order_id") != data.razorpay_order_id:
        raise BadRequestError("Payment does not belong to this order")

    # The gateway order was opened by create-order for one buyer and one course at one price
    gateway_order = await gateway.fetch_order(data.razorpay_order_id)
    notes = gateway_order.get("notes") or {}
    if notes.get("course_id") != course["course_id"] or notes.get("user_id") != user.user_id:
        logger.warning(f"Order {data.razorpay_order_id} presented for a different course or buyer")
        raise BadRequestError("Payment order does not match this course")
    if payment.get("amount", 0) < gateway_order.get("amount", 0):
        raise BadRequestError("Captured amount is less than the order amount")

    order = await order_service.record_order(db, user, course, payment, data.razorpay_signature)
    await enrollment_service.grant_enrollment(db, user.user_id, course)

    return {
        "order": order,
        "enrollment": await enrollment_service.get_entry(db, user.user_id, course["course_id"]),
    }

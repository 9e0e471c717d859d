import logging
from datetime import datetime
from typing import List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from learnhub.core.database import generate_id, serialize_many
from learnhub.core.dependencies import CurrentUser
from learnhub.core.errors import ForbiddenError, NotFoundError
from learnhub.payments.payment_models import OrderStatus, PaymentMethod

logger = logging.getLogger(__name__)


async def record_order(db: AsyncIOMotorDatabase, user: CurrentUser, course: dict, payment: dict, signature: str) -> dict:
    """
    Insert the order for a captured payment

    A second insert for the same gateway order id returns the stored order.
    """
    now = datetime.utcnow()
    amount = payment.get("amount", 0) / 100  # paise -> rupees
    order = {
        "order_id": generate_id("ORD"),
        "user_id": user.user_id,
        "user_name": user.user_name,
        "user_email": user.user_email,
        "order_status": OrderStatus.COMPLETED.value,
        "payment_method": PaymentMethod.RAZORPAY.value,
        "payment_status": (
            OrderStatus.COMPLETED.value if payment.get("status") == "captured" else OrderStatus.PENDING.value
        ),
        "order_date": now,
        "razorpay_order_id": payment["order_id"],
        "razorpay_payment_id": payment["id"],
        "razorpay_signature": signature,
        "instructor_id": course["instructor_id"],
        "instructor_name": course.get("instructor_name"),
        "course_id": course["course_id"],
        "course_title": course["title"],
        "course_image": course.get("image", ""),
        "course_pricing": amount,
        "final_amount": amount,
        "created_at": now,
        "updated_at": now
    }

    try:
        await db.orders.insert_one(order)
    except DuplicateKeyError:
        logger.warning(f"Order for {payment['order_id']} already recorded")
        return await get_order_by_gateway_id(db, payment["order_id"])

    order.pop("_id", None)
    logger.info(f"Order {order['order_id']} recorded for {user.user_id} / {course['course_id']}")
    return order


async def get_order_by_gateway_id(db: AsyncIOMotorDatabase, razorpay_order_id: str) -> Optional[dict]:
    return await db.orders.find_one({"razorpay_order_id": razorpay_order_id}, {"_id": 0})


async def get_order_or_404(db: AsyncIOMotorDatabase, order_id: str) -> dict:
    order = await db.orders.find_one({"order_id": order_id}, {"_id": 0})
    if not order:
        raise NotFoundError("Order not found")
    return order


def ensure_can_view(order: dict, user: CurrentUser):
    """Buyer, the course's instructor and admins may see an order"""
    if user.is_admin or user.user_id in (order["user_id"], order["instructor_id"]):
        return
    raise ForbiddenError("You are not authorized to view this order")


async def list_orders(
    db: AsyncIOMotorDatabase,
    query: dict,
    skip: int = 0,
    limit: int = 10
) -> Tuple[List[dict], int]:
    cursor = db.orders.find(query, {"_id": 0}).sort("order_date", -1).skip(skip).limit(limit)
    orders = await cursor.to_list(length=limit)
    total = await db.orders.count_documents(query)
    return serialize_many(orders), total


async def instructor_earnings(db: AsyncIOMotorDatabase, instructor_id: str, skip: int = 0, limit: int = 10) -> dict:
    """Paid orders of the instructor's courses (one page) and the total over all of them"""
    query = {"instructor_id": instructor_id, "payment_status": OrderStatus.COMPLETED.value}
    orders, total = await list_orders(db, query, skip, limit)
    amounts = await db.orders.find(query, {"_id": 0, "final_amount": 1}).to_list(length=None)
    return {
        "total_earnings": sum(o.get("final_amount") or 0 for o in amounts),
        "count": total,
        "orders": orders
    }


async def update_order_status(db: AsyncIOMotorDatabase, order_id: str, updates: dict) -> dict:
    updates["updated_at"] = datetime.utcnow()
    order = await db.orders.find_one_and_update(
        {"order_id": order_id},
        {"$set": updates},
        projection={"_id": 0},
        return_document=ReturnDocument.AFTER
    )
    if not order:
        raise NotFoundError("Order not found")
    logger.info(f"Order {order_id} status updated: {updates}")
    return order

from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.core.config import RAZORPAY_KEY_ID
from learnhub.core.database import get_db
from learnhub.core.dependencies import CurrentUser, UserRole, get_current_user, require_roles
from learnhub.core.responses import success_response, pagination_meta
from learnhub.orders import order_service
from learnhub.payments import payment_service
from learnhub.payments.gateway import get_payment_gateway
from learnhub.payments.payment_models import CreateOrderRequest, VerifyPaymentRequest

router = APIRouter(prefix="/payments", tags=["Payments"])

# ==================== RAZORPAY ====================

@router.get("/razorpay/key")
async def get_razorpay_key():
    """Public key id for the checkout widget"""
    return success_response({"key_id": RAZORPAY_KEY_ID})


@router.post("/razorpay/create-order")
async def create_razorpay_order(
    data: CreateOrderRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
    gateway=Depends(get_payment_gateway)
):
    order = await payment_service.create_payment_order(db, gateway, user, data.course_id)
    return success_response(order)


@router.post("/razorpay/verify")
async def verify_razorpay_payment(
    data: VerifyPaymentRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
    gateway=Depends(get_payment_gateway)
):
    result = await payment_service.verify_and_enroll(db, gateway, user, data)
    return success_response(result, "Payment verified and enrollment successful")

# ==================== HISTORY ====================

@router.get("/orders")
async def get_my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    orders, total = await order_service.list_orders(
        db, {"user_id": user.user_id}, skip=(page - 1) * limit, limit=limit
    )
    return success_response(orders, count=len(orders), pagination=pagination_meta(total, page, limit))


@router.get("/earnings")
async def get_instructor_earnings(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: CurrentUser = Depends(require_roles(UserRole.INSTRUCTOR, UserRole.ADMIN)),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    earnings = await order_service.instructor_earnings(db, user.user_id, skip=(page - 1) * limit, limit=limit)
    return success_response(earnings, pagination=pagination_meta(earnings["count"], page, limit))

from typing import Optional

from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.core.database import get_db
from learnhub.core.dependencies import CurrentUser, UserRole, get_current_user, require_roles
from learnhub.core.errors import BadRequestError
from learnhub.core.responses import success_response, pagination_meta
from learnhub.orders import order_service as service
from learnhub.payments.payment_models import OrderStatus, OrderStatusUpdate

router = APIRouter(prefix="/orders", tags=["Orders"])

admin_only = require_roles(UserRole.ADMIN)


@router.get("")
async def list_all_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[OrderStatus] = None,
    payment: Optional[OrderStatus] = None,
    admin: CurrentUser = Depends(admin_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    query = {}
    if status:
        query["order_status"] = status.value
    if payment:
        query["payment_status"] = payment.value

    orders, total = await service.list_orders(db, query, skip=(page - 1) * limit, limit=limit)
    return success_response(orders, count=len(orders), pagination=pagination_meta(total, page, limit))


@router.get("/instructor")
async def list_instructor_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: CurrentUser = Depends(require_roles(UserRole.INSTRUCTOR, UserRole.ADMIN)),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    orders, total = await service.list_orders(
        db, {"instructor_id": user.user_id}, skip=(page - 1) * limit, limit=limit
    )
    return success_response(orders, count=len(orders), pagination=pagination_meta(total, page, limit))


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    order = await service.get_order_or_404(db, order_id)
    service.ensure_can_view(order, user)
    return success_response(order)


@router.put("/{order_id}")
async def update_order(
    order_id: str,
    data: OrderStatusUpdate,
    admin: CurrentUser = Depends(admin_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    updates = data.model_dump(exclude_none=True, mode="json")
    if not updates:
        raise BadRequestError("Provide order_status and/or payment_status")

    order = await service.update_order_status(db, order_id, updates)
    return success_response(order, "Order updated successfully")

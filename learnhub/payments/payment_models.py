from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

# ==================== ENUMS ====================

class OrderStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"

class PaymentMethod(str, Enum):
    RAZORPAY = "razorpay"

# ==================== REQUEST MODELS ====================

class CreateOrderRequest(BaseModel):
    course_id: str = Field(..., min_length=1)

class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: str = Field(..., min_length=1)
    razorpay_payment_id: str = Field(..., min_length=1)
    razorpay_signature: str = Field(..., min_length=1)
    course_id: str = Field(..., min_length=1)

class OrderStatusUpdate(BaseModel):
    """Only the status fields of an order can change after creation"""
    order_status: Optional[OrderStatus] = None
    payment_status: Optional[OrderStatus] = None

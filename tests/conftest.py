"""
Shared fixtures: in-memory Mongo, stub Razorpay gateway, tmp-dir storage
"""
import hashlib
import hmac
import os
import tempfile
import uuid

# Settings are read at import time, so set them before importing the app
os.environ["APP_ENV"] = "test"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "rzp_test_secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="learnhub-uploads-")

import httpx
import pytest
from mongomock_motor import AsyncMongoMockClient

from learnhub.core.database import create_indexes, get_db
from learnhub.core.errors import PaymentGatewayError
from learnhub.main import app
from learnhub.payments.gateway import get_payment_gateway
from learnhub.uploads.storage import LocalStorage, get_storage

RAZORPAY_TEST_SECRET = "rzp_test_secret"
PASSWORD = "secret123"


def sign(order_id: str, payment_id: str) -> str:
    return hmac.new(
        RAZORPAY_TEST_SECRET.encode(),
        f"{order_id}|{payment_id}".encode(),
        hashlib.sha256
    ).hexdigest()


class StubGateway:
    """Stands in for RazorpayGateway; payments are "captured" by the test"""

    def __init__(self):
        self.orders = []
        self.payments = {}

    async def create_order(self, amount: int, currency: str, receipt: str, notes: dict) -> dict:
        order = {
            "id": f"order_{uuid.uuid4().hex[:10]}",
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": notes
        }
        self.orders.append(order)
        return order

    def capture(self, order_id: str, amount: int = 49900, status: str = "captured") -> str:
        payment_id = f"pay_{uuid.uuid4().hex[:10]}"
        self.payments[payment_id] = {
            "id": payment_id,
            "order_id": order_id,
            "amount": amount,
            "currency": "INR",
            "status": status
        }
        return payment_id

    async def fetch_payment(self, payment_id: str) -> dict:
        if payment_id not in self.payments:
            raise PaymentGatewayError("Invalid payment ID: not found")
        return self.payments[payment_id]

    async def fetch_order(self, order_id: str) -> dict:
        for order in self.orders:
            if order["id"] == order_id:
                return order
        raise PaymentGatewayError("Invalid order ID: not found")


@pytest.fixture
async def db():
    database = AsyncMongoMockClient()[f"learnhub_test_{uuid.uuid4().hex[:8]}"]
    await create_indexes(database)
    return database


@pytest.fixture
def gateway():
    return StubGateway()


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(base_dir=str(tmp_path / "uploads"))


@pytest.fixture
async def client(db, gateway, storage):
    async def override_get_db():
        return db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_storage] = lambda: storage

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ==================== HELPERS ====================

@pytest.fixture
def make_user(client, db):
    """Register a user through the API; admins are promoted directly in the db"""

    async def _make(role: str = "student", email: str = None, name: str = None) -> dict:
        email = email or f"{role}_{uuid.uuid4().hex[:8]}@example.com"
        response = await client.post("/api/auth/register", json={
            "user_name": name or f"{role.title()} User",
            "user_email": email,
            "password": PASSWORD,
            "role": "instructor" if role == "instructor" else "student"
        })
        assert response.status_code == 201, response.text
        body = response.json()

        if role == "admin":
            await db.users.update_one({"user_id": body["data"]["user_id"]}, {"$set": {"role": "admin"}})

        return {
            "user": body["data"],
            "user_id": body["data"]["user_id"],
            "email": email,
            "token": body["token"],
            "headers": {"Authorization": f"Bearer {body['token']}"}
        }

    return _make


@pytest.fixture
def make_course(client):
    """Create a course with `lectures` lectures (each with one question) and optionally publish it"""

    async def _make(instructor: dict, lectures: int = 0, publish: bool = True, **fields) -> dict:
        payload = {"title": f"Course {uuid.uuid4().hex[:8]}", "pricing": 499, "category": "programming", "level": "beginner"}
        payload.update(fields)
        response = await client.post("/api/courses", json=payload, headers=instructor["headers"])
        assert response.status_code == 201, response.text
        course = response.json()["data"]

        for i in range(lectures):
            response = await client.post(
                f"/api/courses/{course['course_id']}/lectures",
                json={
                    "title": f"Lecture {i + 1}",
                    "duration": 10,
                    "questions": [{
                        "question": f"Question {i + 1}?",
                        "options": ["yes", "no"],
                        "correct_answer": "yes"
                    }]
                },
                headers=instructor["headers"]
            )
            assert response.status_code == 201, response.text
            course = response.json()["data"]

        if publish:
            response = await client.put(f"/api/courses/{course['course_id']}/publish", headers=instructor["headers"])
            assert response.status_code == 200, response.text
            course = response.json()["data"]

        return course

    return _make


@pytest.fixture
def enroll(client, gateway):
    """Buy a course through create-order + verify with a captured stub payment"""

    async def _enroll(student: dict, course_id: str) -> dict:
        response = await client.post(
            "/api/payments/razorpay/create-order",
            json={"course_id": course_id},
            headers=student["headers"]
        )
        assert response.status_code == 200, response.text
        order_id = response.json()["data"]["order_id"]
        payment_id = gateway.capture(order_id, amount=response.json()["data"]["amount"])

        response = await client.post(
            "/api/payments/razorpay/verify",
            json={
                "razorpay_order_id": order_id,
                "razorpay_payment_id": payment_id,
                "razorpay_signature": sign(order_id, payment_id),
                "course_id": course_id
            },
            headers=student["headers"]
        )
        assert response.status_code == 200, response.text
        return response.json()["data"]

    return _enroll

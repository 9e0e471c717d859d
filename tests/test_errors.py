import json

from pymongo.errors import DuplicateKeyError
from starlette.requests import Request

from learnhub.core.errors import (
    BadRequestError, ConcurrentModificationError, LMSError, duplicate_key_handler,
    lms_error_handler, unhandled_exception_handler
)


def fake_request():
    return Request({"type": "http", "method": "GET", "path": "/boom", "headers": [], "query_string": b""})


class TestHandlers:

    async def test_unhandled_error_outside_production(self):
        response = await unhandled_exception_handler(fake_request(), RuntimeError("kaboom"))
        body = json.loads(response.body)

        assert response.status_code == 500
        assert body["success"] is False
        assert body["message"] == "kaboom"
        assert "RuntimeError" in body["stack"]

    async def test_unhandled_error_in_production(self, monkeypatch):
        monkeypatch.setattr("learnhub.core.errors.IS_PRODUCTION", True)
        response = await unhandled_exception_handler(fake_request(), RuntimeError("secret detail"))
        body = json.loads(response.body)

        assert body == {"success": False, "message": "Server Error"}

    async def test_duplicate_key(self):
        exc = DuplicateKeyError("E11000", 11000, {"keyValue": {"user_email": "a@b.c"}})
        response = await duplicate_key_handler(fake_request(), exc)

        assert response.status_code == 400
        assert "user_email" in json.loads(response.body)["message"]

    async def test_domain_errors(self):
        response = await lms_error_handler(fake_request(), ConcurrentModificationError())
        assert response.status_code == 409

        response = await lms_error_handler(fake_request(), BadRequestError("nope", errors=[{"field": "x", "message": "y"}]))
        assert json.loads(response.body) == {
            "success": False, "message": "nope", "errors": [{"field": "x", "message": "y"}]
        }

    async def test_unknown_route_uses_envelope(self, client):
        response = await client.get("/api/does-not-exist")

        assert response.status_code == 404
        assert response.json()["success"] is False

    async def test_health(self, client):
        response = await client.get("/health")
        assert response.json()["status"] == "ok"


def test_errors_are_lms_errors():
    assert issubclass(ConcurrentModificationError, LMSError)
    assert BadRequestError().status_code == 400

"""
Full learner journey over HTTP: register, log in, buy a course, study
"""
from conftest import PASSWORD, sign


async def test_register_buy_and_progress(client, gateway, make_user, make_course):
    instructor = await make_user(role="instructor")
    course = await make_course(instructor, lectures=4)

    response = await client.post("/api/auth/register", json={
        "user_name": "Learner", "user_email": "learner@example.com", "password": PASSWORD
    })
    assert response.status_code == 201

    response = await client.post("/api/auth/login", json={
        "user_email": "learner@example.com", "password": PASSWORD
    })
    assert response.status_code == 200
    headers = {"Authorization": f"Bearer {response.json()['token']}"}

    response = await client.post(
        "/api/payments/razorpay/create-order", json={"course_id": course["course_id"]}, headers=headers
    )
    order_id = response.json()["data"]["order_id"]
    payment_id = gateway.capture(order_id, amount=response.json()["data"]["amount"])

    response = await client.post("/api/payments/razorpay/verify", json={
        "razorpay_order_id": order_id,
        "razorpay_payment_id": payment_id,
        "razorpay_signature": sign(order_id, payment_id),
        "course_id": course["course_id"]
    }, headers=headers)
    assert response.status_code == 200

    completed = [course["curriculum"][0]["lecture_id"], course["curriculum"][2]["lecture_id"]]
    for lecture_id in completed:
        response = await client.post(
            f"/api/enrollments/{course['course_id']}/lectures/{lecture_id}/complete", headers=headers
        )
        assert response.status_code == 200

    response = await client.get(f"/api/enrollments/{course['course_id']}", headers=headers)
    details = response.json()["data"]

    assert details["progress"] == 50
    assert sorted(details["completed_lectures"]) == sorted(completed)
    assert details["course"]["course_id"] == course["course_id"]

    response = await client.get("/api/payments/orders", headers=headers)
    assert response.json()["pagination"]["total"] == 1

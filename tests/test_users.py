class TestProfile:

    async def test_update_profile(self, client, make_user):
        user = await make_user()
        response = await client.patch("/api/users", json={
            "user_name": "New Name",
            "skills": ["python", "sql"],
            "working_status": "student",
            "social_links": {"github": "https://github.com/me"}
        }, headers=user["headers"])

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["user_name"] == "New Name"
        assert data["skills"] == ["python", "sql"]
        assert data["working_status"] == "student"
        assert data["social_links"]["github"] == "https://github.com/me"
        assert "password_hash" not in data

    async def test_empty_update_rejected(self, client, make_user):
        user = await make_user()
        response = await client.patch("/api/users", json={}, headers=user["headers"])
        assert response.status_code == 400

    async def test_role_not_writable_through_profile(self, client, db, make_user):
        user = await make_user()
        await client.patch("/api/users", json={"role": "admin", "place": "Pune"}, headers=user["headers"])

        stored = await db.users.find_one({"user_id": user["user_id"]})
        assert stored["role"] == "student"
        assert stored["place"] == "Pune"

    async def test_resume_upload(self, client, make_user, storage):
        user = await make_user()
        response = await client.patch(
            "/api/users/resume",
            files={"resume": ("cv.pdf", b"%PDF-1.4 fake", "application/pdf")},
            headers=user["headers"]
        )

        assert response.status_code == 200
        url = response.json()["data"]["resume_url"]
        assert url.startswith("/uploads/resumes/resume-")
        assert url.endswith(".pdf")

    async def test_resume_must_be_pdf(self, client, make_user):
        user = await make_user()
        response = await client.patch(
            "/api/users/resume",
            files={"resume": ("cv.exe", b"MZ", "application/octet-stream")},
            headers=user["headers"]
        )
        assert response.status_code == 400

    async def test_resume_missing_file(self, client, make_user):
        user = await make_user()
        response = await client.patch("/api/users/resume", headers=user["headers"])
        assert response.status_code == 400


class TestAdmin:

    async def test_non_admin_forbidden(self, client, make_user):
        student = await make_user()
        response = await client.get("/api/users", headers=student["headers"])

        assert response.status_code == 403
        assert "not authorized" in response.json()["message"]

    async def test_list_users_paginated(self, client, make_user):
        admin = await make_user(role="admin")
        for _ in range(3):
            await make_user()

        response = await client.get("/api/users?page=1&limit=2", headers=admin["headers"])

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 2
        assert body["pagination"] == {"total": 4, "current_page": 1, "total_pages": 2, "limit": 2}

    async def test_list_users_filters(self, client, make_user):
        admin = await make_user(role="admin")
        await make_user(role="instructor", name="Grace Hopper")
        await make_user(name="Alan Turing")

        by_role = await client.get("/api/users?role=instructor", headers=admin["headers"])
        by_search = await client.get("/api/users?search=turing", headers=admin["headers"])

        assert [u["user_name"] for u in by_role.json()["data"]] == ["Grace Hopper"]
        assert [u["user_name"] for u in by_search.json()["data"]] == ["Alan Turing"]

    async def test_get_user_by_email(self, client, make_user):
        admin = await make_user(role="admin")
        target = await make_user(email="find.me@example.com")

        response = await client.get("/api/users/find.me@example.com", headers=admin["headers"])
        missing = await client.get("/api/users/ghost@example.com", headers=admin["headers"])

        assert response.json()["data"]["user_id"] == target["user_id"]
        assert missing.status_code == 404

    async def test_update_role(self, client, make_user):
        admin = await make_user(role="admin")
        target = await make_user()

        response = await client.put(
            f"/api/users/{target['user_id']}/role", json={"role": "instructor"}, headers=admin["headers"]
        )
        me = await client.get("/api/auth/me", headers=target["headers"])

        assert response.status_code == 200
        # Role is read from the db on every request, the old token picks it up
        assert me.json()["data"]["role"] == "instructor"

    async def test_delete_user_removes_enrollments(self, client, db, make_user):
        admin = await make_user(role="admin")
        target = await make_user()
        await db.student_courses.insert_one({"user_id": target["user_id"], "courses": {}})

        response = await client.delete(f"/api/users/{target['user_id']}", headers=admin["headers"])

        assert response.status_code == 200
        assert await db.users.find_one({"user_id": target["user_id"]}) is None
        assert await db.student_courses.find_one({"user_id": target["user_id"]}) is None

    async def test_cannot_delete_self(self, client, make_user):
        admin = await make_user(role="admin")
        response = await client.delete(f"/api/users/{admin['user_id']}", headers=admin["headers"])
        assert response.status_code == 400

    async def test_delete_unknown_user(self, client, make_user):
        admin = await make_user(role="admin")
        response = await client.delete("/api/users/USR_000000000000", headers=admin["headers"])
        assert response.status_code == 404


class TestInstructorProfile:

    async def test_public_instructor_profile(self, client, make_user):
        instructor = await make_user(role="instructor", name="Ada")
        response = await client.get(f"/api/users/instructors/{instructor['user_id']}")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["user_name"] == "Ada"
        assert "password_hash" not in data
        assert "phone_number" not in data

    async def test_students_are_not_instructors(self, client, make_user):
        student = await make_user()
        response = await client.get(f"/api/users/instructors/{student['user_id']}")
        assert response.status_code == 404

import io

import pytest
from fastapi import UploadFile

from learnhub.core.errors import BadRequestError
from learnhub.uploads import storage as storage_module
from learnhub.uploads.storage import IMAGE_TYPES, S3Storage, build_filename, store_upload


class FakeS3Client:
    def __init__(self):
        self.objects = {}

    def put_object(self, Bucket, Key, Body, **kwargs):
        self.objects[(Bucket, Key)] = Body

    def delete_object(self, Bucket, Key):
        self.objects.pop((Bucket, Key), None)


class TestStoreUpload:

    async def test_store_and_read_back(self, storage, tmp_path):
        upload = UploadFile(file=io.BytesIO(b"png-bytes"), filename="Cover.PNG")
        stored = await store_upload(storage, upload, "courses", "image", allowed=IMAGE_TYPES)

        assert stored.public_id == "courses/" + stored.url.rsplit("/", 1)[1]
        assert stored.url.startswith("/uploads/courses/image-")
        assert stored.url.endswith(".png")
        written = tmp_path / "uploads" / "courses" / stored.url.rsplit("/", 1)[1]
        assert written.read_bytes() == b"png-bytes"

    async def test_missing_file(self, storage):
        with pytest.raises(BadRequestError):
            await store_upload(storage, None, "courses", "image")

    async def test_disallowed_extension(self, storage):
        upload = UploadFile(file=io.BytesIO(b"#!/bin/sh"), filename="run.sh")
        with pytest.raises(BadRequestError) as info:
            await store_upload(storage, upload, "courses", "image")
        assert ".sh" in info.value.message

    async def test_too_large(self, storage, monkeypatch):
        monkeypatch.setattr(storage_module, "MAX_UPLOAD_MB", 0)
        upload = UploadFile(file=io.BytesIO(b"x"), filename="big.mp4")
        with pytest.raises(BadRequestError):
            await store_upload(storage, upload, "lectures", "video")

    async def test_size_limit_stops_reading(self, storage, monkeypatch):
        monkeypatch.setattr(storage_module, "MAX_UPLOAD_MB", 1)
        monkeypatch.setattr(storage_module, "UPLOAD_CHUNK_SIZE", 512 * 1024)
        body = io.BytesIO(b"x" * (3 * 1024 * 1024))
        upload = UploadFile(file=body, filename="big.mp4")

        with pytest.raises(BadRequestError):
            await store_upload(storage, upload, "lectures", "video")
        assert body.tell() < 2 * 1024 * 1024

    def test_filename_keeps_extension(self):
        name = build_filename("video", "My Lecture.MOV")
        assert name.startswith("video-")
        assert name.endswith(".mov")


class TestS3Storage:

    @pytest.fixture
    def s3(self, monkeypatch):
        fake = FakeS3Client()
        monkeypatch.setattr(storage_module, "S3_BUCKET", "learnhub-media")
        monkeypatch.setattr(storage_module, "S3_PUBLIC_BASE_URL", "https://cdn.example.com/")
        monkeypatch.setattr(storage_module.boto3, "client", lambda *args, **kwargs: fake)
        return S3Storage(), fake

    async def test_save_and_delete(self, s3):
        backend, fake = s3
        stored = await backend.save(b"video", "intro.mp4", "lectures", "video/mp4")

        assert stored.public_id == "lectures/intro.mp4"
        assert stored.url == "https://cdn.example.com/lectures/intro.mp4"
        assert fake.objects[("learnhub-media", "lectures/intro.mp4")] == b"video"

        assert await backend.delete(stored.public_id) is True
        assert fake.objects == {}

    def test_bucket_required(self, monkeypatch):
        monkeypatch.setattr(storage_module, "S3_BUCKET", None)
        with pytest.raises(RuntimeError):
            S3Storage()


class TestLocalStorage:

    async def test_delete_removes_file(self, storage, tmp_path):
        stored = await storage.save(b"bytes", "clip.mp4", "lectures")
        path = tmp_path / "uploads" / "lectures" / "clip.mp4"
        assert path.exists()

        assert await storage.delete(stored.public_id) is True
        assert not path.exists()
        assert await storage.delete(stored.public_id) is True

    async def test_delete_refuses_paths_outside_upload_dir(self, storage, tmp_path):
        outside = tmp_path / "keep.txt"
        outside.write_text("keep")

        assert await storage.delete("../keep.txt") is False
        assert outside.exists()

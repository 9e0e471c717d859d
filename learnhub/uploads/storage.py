"""
Upload Storage
Course images, lecture videos and resumes are written either to local disk
(served back under /uploads) or to an S3-compatible bucket.

Select with STORAGE_BACKEND=local|s3
"""

import logging
import os
import time
import secrets
from dataclasses import dataclass
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from learnhub.core.config import (
    STORAGE_BACKEND, UPLOAD_DIR, MAX_UPLOAD_MB,
    S3_BUCKET, S3_REGION, S3_ENDPOINT_URL, S3_ACCESS_KEY_ID, S3_SECRET_ACCESS_KEY, S3_PUBLIC_BASE_URL
)
from learnhub.core.errors import BadRequestError

logger = logging.getLogger(__name__)

IMAGE_TYPES = {".jpeg", ".jpg", ".png", ".gif"}
VIDEO_TYPES = {".mp4", ".webm", ".mov"}
DOCUMENT_TYPES = {".pdf"}

MEDIA_TYPES = IMAGE_TYPES | VIDEO_TYPES | DOCUMENT_TYPES

UPLOAD_CHUNK_SIZE = 1024 * 1024


@dataclass
class StoredFile:
    url: str
    public_id: Optional[str]  # "<folder>/<filename>", the key used by delete()


class LocalStorage:
    """Writes under UPLOAD_DIR; files are served by the /uploads static mount"""

    def __init__(self, base_dir: str = UPLOAD_DIR, url_prefix: str = "/uploads"):
        self.base_dir = base_dir
        self.url_prefix = url_prefix
        os.makedirs(self.base_dir, exist_ok=True)

    def _path(self, public_id: str) -> str:
        base = os.path.realpath(self.base_dir)
        path = os.path.realpath(os.path.join(base, public_id))
        if os.path.commonpath([base, path]) != base:
            raise ValueError(f"Path outside upload directory: {public_id}")
        return path

    def _write(self, path: str, content: bytes):
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(content)

    async def save(self, content: bytes, filename: str, folder: str, content_type: Optional[str] = None) -> StoredFile:
        public_id = f"{folder}/{filename}"
        await run_in_threadpool(self._write, self._path(public_id), content)
        return StoredFile(url=f"{self.url_prefix}/{public_id}", public_id=public_id)

    async def delete(self, public_id: Optional[str]) -> bool:
        if not public_id:
            return True
        try:
            path = self._path(public_id)
            if os.path.exists(path):
                await run_in_threadpool(os.remove, path)
            return True
        except (OSError, ValueError) as e:
            logger.error(f"Local delete error for {public_id}: {e}")
            return False


class S3Storage:
    """S3-compatible object storage (AWS, Wasabi, MinIO, ...)"""

    def __init__(self):
        if not S3_BUCKET:
            raise RuntimeError("S3_BUCKET must be set when STORAGE_BACKEND=s3")
        self.bucket = S3_BUCKET
        self.public_base_url = (S3_PUBLIC_BASE_URL or "").rstrip("/")
        self.client = boto3.client(
            "s3",
            endpoint_url=S3_ENDPOINT_URL,
            region_name=S3_REGION,
            aws_access_key_id=S3_ACCESS_KEY_ID,
            aws_secret_access_key=S3_SECRET_ACCESS_KEY,
        )
        logger.info(f"S3 storage initialised for bucket {self.bucket}")

    def _public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        if S3_ENDPOINT_URL:
            return f"{S3_ENDPOINT_URL.rstrip('/')}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.amazonaws.com/{key}"

    async def save(self, content: bytes, filename: str, folder: str, content_type: Optional[str] = None) -> StoredFile:
        key = f"{folder}/{filename}"
        extra = {"ContentType": content_type} if content_type else {}
        try:
            await run_in_threadpool(
                self.client.put_object, Bucket=self.bucket, Key=key, Body=content, **extra
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 upload error for {key}: {e}")
            raise RuntimeError("Failed to upload file to object storage") from e
        return StoredFile(url=self._public_url(key), public_id=key)

    async def delete(self, public_id: Optional[str]) -> bool:
        if not public_id:
            return True
        try:
            await run_in_threadpool(self.client.delete_object, Bucket=self.bucket, Key=public_id)
            return True
        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 delete error for {public_id}: {e}")
            return False


_storage = None


def get_storage():
    """Storage dependency (one backend instance per process)"""
    global _storage
    if _storage is None:
        _storage = S3Storage() if STORAGE_BACKEND == "s3" else LocalStorage()
    return _storage


def build_filename(fieldname: str, original: str) -> str:
    ext = os.path.splitext(original or "")[1].lower()
    return f"{fieldname}-{int(time.time() * 1000)}-{secrets.token_hex(4)}{ext}"


async def store_upload(storage, upload: UploadFile, folder: str, fieldname: str, allowed: set = MEDIA_TYPES) -> StoredFile:
    """
    Validate and persist an uploaded file

    Raises:
        400: Missing file, disallowed type or over MAX_UPLOAD_MB
    """
    if upload is None or not upload.filename:
        raise BadRequestError(f"Please upload a {fieldname}")

    ext = os.path.splitext(upload.filename)[1].lower()
    if ext not in allowed:
        raise BadRequestError(f"File type {ext or 'unknown'} not allowed. Allowed: {', '.join(sorted(allowed))}")

    limit = MAX_UPLOAD_MB * 1024 * 1024
    chunks = []
    size = 0
    while True:
        chunk = await upload.read(UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        size += len(chunk)
        if size > limit:
            raise BadRequestError(f"File too large. Max {MAX_UPLOAD_MB}MB allowed.")
        chunks.append(chunk)

    return await storage.save(b"".join(chunks), build_filename(fieldname, upload.filename), folder, upload.content_type)

import logging
import os
import time
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from learnhub.core.config import APP_ENV, CORS_ORIGINS, LOG_LEVEL, UPLOAD_DIR
from learnhub.core.database import create_indexes
from learnhub.core.errors import register_exception_handlers
from learnhub.auth.auth_router import router as auth_router
from learnhub.users.user_router import router as user_router
from learnhub.courses.course_router import router as course_router
from learnhub.enrollments.enrollment_router import router as enrollment_router
from learnhub.payments.payment_router import router as payment_router
from learnhub.orders.order_router import router as order_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger(__name__)

app = FastAPI(title="LearnHub LMS API")


@app.on_event("startup")
async def startup_event():
    logger.info(f"Starting LearnHub API ({APP_ENV})")
    await create_indexes()


app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({duration_ms:.1f}ms)")
    return response


register_exception_handlers(app)

# ==================== ROUTER REGISTRATION ====================
app.include_router(auth_router, prefix="/api")
app.include_router(user_router, prefix="/api")
app.include_router(course_router, prefix="/api")
app.include_router(enrollment_router, prefix="/api")
app.include_router(payment_router, prefix="/api")
app.include_router(order_router, prefix="/api")
# ============================================================

# Locally stored uploads (STORAGE_BACKEND=local)
os.makedirs(UPLOAD_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=UPLOAD_DIR), name="uploads")


@app.get("/health")
async def health_check():
    return {
        "status": "ok",
        "service": "learnhub",
        "environment": APP_ENV,
        "timestamp": datetime.utcnow().isoformat()
    }

# learnhub/core/security.py
from datetime import datetime, timedelta
from typing import Optional

from fastapi.concurrency import run_in_threadpool
from jose import jwt, JWTError, ExpiredSignatureError
from passlib.context import CryptContext

from learnhub.core.config import JWT_SECRET_KEY, JWT_ALGORITHM, JWT_EXPIRE_MINUTES, BCRYPT_ROUNDS
from learnhub.core.errors import AuthenticationError

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=BCRYPT_ROUNDS,
)


def normalize_password(password: str) -> str:
    """bcrypt only looks at the first 72 bytes"""
    encoded = password.encode("utf-8")
    if len(encoded) > 72:
        encoded = encoded[:72]
    return encoded.decode("utf-8", errors="ignore")


async def hash_password(password: str) -> str:
    # bcrypt is CPU bound; keep it off the event loop
    return await run_in_threadpool(pwd_context.hash, normalize_password(password))


async def verify_password(plain: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    return await run_in_threadpool(pwd_context.verify, normalize_password(plain), hashed)


def create_access_token(user_id: str, role: str, expires_minutes: int = JWT_EXPIRE_MINUTES) -> str:
    payload = {
        "sub": user_id,
        "role": role,
        "iat": datetime.utcnow(),
        "exp": datetime.utcnow() + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except JWTError:
        raise AuthenticationError("Invalid token")

    if not payload.get("sub"):
        raise AuthenticationError("Invalid token: missing user id")
    return payload


def extract_bearer_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError()
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise AuthenticationError()
    return token

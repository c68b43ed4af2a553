"""
Authentication: password hashing, bearer tokens and the register/login routes.

Every other router resolves the caller through ``get_current_user_id``.
"""

import hashlib
import hmac
import logging
import os
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, EmailStr
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, get_db
from errors import workflow_boundary
from schemas import User as UserSchema

logger = logging.getLogger(__name__)

JWT_SECRET = os.getenv("JWT_SECRET", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 7))

PBKDF2_ITERATIONS = 260000

bearer_scheme = HTTPBearer(auto_error=False)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def hash_password(password: str, salt: Optional[str] = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    try:
        algorithm, iterations, salt, expected = (password_hash or "").split("$")
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    payload = {"sub": user_id, "iat": int(now.timestamp()), "exp": int(expire.timestamp())}
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """Resolve the bearer token to the caller's user id."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = decode_token(credentials.credentials)
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return user_id


# Auth Endpoints
class RegisterBody(BaseModel):
    name: str
    email: EmailStr
    password: str
    location: Optional[str] = None


class LoginBody(BaseModel):
    email: EmailStr
    password: str


@router.post("/register")
def register(body: RegisterBody, db: Database = Depends(get_db)):
    with workflow_boundary("registering"):
        email = body.email.lower().strip()
        if db.user.find_one({"email": email}):
            raise HTTPException(status_code=400, detail="Email already registered")
        if len(body.password) < 6:
            raise HTTPException(status_code=400, detail="Password must be at least 6 characters long")

        user = UserSchema(
            name=body.name.strip(),
            email=email,
            password_hash=hash_password(body.password),
            location=(body.location or "").strip(),
        )
        try:
            user_id = create_document(db, "user", user)
        except DuplicateKeyError:
            raise HTTPException(status_code=400, detail="Email already registered")
        logger.info("Registered user %s", user_id)
        return {"id": user_id, "name": user.name, "email": user.email, "token": create_access_token(user_id)}


@router.post("/login")
def login(body: LoginBody, db: Database = Depends(get_db)):
    with workflow_boundary("logging in"):
        user = db.user.find_one({"email": body.email.lower().strip()})
        if not user or not verify_password(body.password, user.get("password_hash")):
            raise HTTPException(status_code=401, detail="Invalid credentials")
        if not user.get("is_active", True):
            raise HTTPException(status_code=403, detail="Account is deactivated")
        user_id = str(user["_id"])
        return {"id": user_id, "name": user["name"], "email": user["email"], "token": create_access_token(user_id)}

# app/api/auth.py

from fastapi import APIRouter, HTTPException, Depends, Request, status
from pydantic import BaseModel, EmailStr, Field, model_validator
from datetime import datetime, timedelta, timezone
from jose import jwt, JWTError
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError
import logging

from passlib.context import CryptContext

from app.core.config import settings
from app.core.database import get_db
from app.repositories.base import to_object_id

logger = logging.getLogger(__name__)
router = APIRouter()

# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------

def now_utc():
    return datetime.now(timezone.utc)

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

def hash_password(password: str) -> str:
    return _pwd_context.hash(password)

def verify_password(plain: str, hashed: str) -> bool:
    if not hashed:
        return False
    return _pwd_context.verify(plain, hashed)

def create_access_token(user_id: str, username: str, role: str = "user") -> str:
    exp = now_utc() + timedelta(minutes=settings.access_token_expire_minutes)
    payload = {"sub": user_id, "username": username, "role": role, "exp": exp}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

def _extract_bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing Authorization header")
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid Authorization header")
    return parts[1].strip()

def _public_user(user: dict) -> dict:
    return {
        "id": str(user["_id"]),
        "username": user.get("username"),
        "email": user.get("email"),
        "full_name": user.get("full_name"),
        "role": user.get("role", "user"),
    }

# -------------------------------------------------------------------
# Schemas
# -------------------------------------------------------------------

class SignupIn(BaseModel):
    username: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)
    full_name: str | None = None

class LoginIn(BaseModel):
    # accept username or email
    username: str | None = None
    email: EmailStr | None = None
    password: str

    @model_validator(mode="after")
    def validate_identifier(self):
        if not (self.username or self.email):
            raise ValueError("Provide username or email")
        return self

class TokenOut(BaseModel):
    success: bool = True
    access_token: str
    token_type: str = "bearer"
    user: dict

# -------------------------------------------------------------------
# Auth dependencies
# -------------------------------------------------------------------

async def get_current_user(request: Request, db: AsyncIOMotorDatabase = Depends(get_db)) -> dict:
    """
    Usage:
      @router.get("/me")
      async def me(user=Depends(get_current_user)): ...
    """
    token = _extract_bearer_token(request.headers.get("Authorization"))
    payload = decode_access_token(token)

    user_oid = to_object_id(payload.get("sub"))
    if user_oid is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")

    user = await db.users.find_one({"_id": user_oid})
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    if user.get("is_active") is False:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account inactive")

    return _public_user(user)

async def admin_required(user=Depends(get_current_user)):
    if user.get("role") != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin privileges required")
    return user

# -------------------------------------------------------------------
# Routes
# -------------------------------------------------------------------

@router.post("/signup", status_code=201)
async def signup(payload: SignupIn, db: AsyncIOMotorDatabase = Depends(get_db)):
    username = payload.username.strip()
    email = payload.email.strip().lower()

    existing = await db.users.find_one({"$or": [{"email": email}, {"username": username}]})
    if existing:
        raise HTTPException(status_code=400, detail="User already exists")

    user_doc = {
        "username": username,
        "email": email,
        "full_name": (payload.full_name or "").strip(),
        "hashed_password": hash_password(payload.password),
        "role": "user",
        "is_active": True,
        "created_at": now_utc(),
    }

    try:
        ins = await db.users.insert_one(user_doc)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="User already exists")

    user_doc["_id"] = ins.inserted_id
    logger.info(f"Created user {username}")

    return {"success": True, "user": _public_user(user_doc)}

@router.post("/login", response_model=TokenOut)
async def login(payload: LoginIn, db: AsyncIOMotorDatabase = Depends(get_db)):
    identifier = (payload.username or "").strip() or (payload.email or "").lower().strip()

    user = await db.users.find_one({"$or": [{"username": identifier}, {"email": identifier.lower()}]})
    if not user or not verify_password(payload.password, user.get("hashed_password", "")):
        raise HTTPException(status_code=401, detail="Invalid username/email or password")

    if user.get("is_active") is False:
        raise HTTPException(status_code=403, detail="Account inactive")

    token = create_access_token(
        user_id=str(user["_id"]),
        username=user.get("username", identifier),
        role=user.get("role", "user"),
    )

    return {
        "success": True,
        "access_token": token,
        "token_type": "bearer",
        "user": _public_user(user),
    }

@router.get("/me")
async def me(user=Depends(get_current_user)):
    return {"success": True, "user": user}

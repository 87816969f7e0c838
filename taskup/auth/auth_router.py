# taskup/auth/auth_router.py

from dataclasses import dataclass
from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from passlib.context import CryptContext
from datetime import datetime, timedelta, timezone
from pydantic import BaseModel, EmailStr, field_validator, model_validator
from sqlalchemy.orm import Session
from dotenv import load_dotenv
import logging
import os
import re

from taskup.database import get_db
from taskup.errors import InvalidRequestError, UnauthorizedError
from taskup.models.organization import MANAGER_ROLES, Member
from taskup.models.user import User

# ================= ENV =================
load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), "..", ".env"))

SECRET_KEY = os.getenv("SECRET_KEY")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

if not SECRET_KEY:
    raise RuntimeError("SECRET_KEY is not set (environment or taskup/.env)")

# ================= SECURITY =================
router = APIRouter(tags=["auth"])
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

logger = logging.getLogger("taskup.auth")

PASSWORD_RULES = (
    (r".{8,}", "Password must be at least 8 characters"),
    (r"[A-Z]", "Password must contain an uppercase letter"),
    (r"\d", "Password must contain a number"),
    (r"[^A-Za-z0-9]", "Password must contain a symbol"),
)


@dataclass(frozen=True)
class RequestContext:
    """Who is calling and on behalf of which organization."""

    user_id: int
    organization_id: int
    role: str

    @property
    def is_manager(self) -> bool:
        return self.role in MANAGER_ROLES


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def create_access_token(sub: str, minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    now = datetime.now(timezone.utc)
    claims = {"sub": sub, "iat": now, "exp": now + timedelta(minutes=minutes)}
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


# ================= DEPENDENCIES =================
def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    try:
        claims = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id = int(claims["sub"])
    except (JWTError, KeyError, ValueError):
        raise UnauthorizedError("Invalid or expired token")

    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise UnauthorizedError("Unauthorized")
    return user


def get_request_context(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> RequestContext:
    """Resolve the caller's active organization and role in it."""
    if user.active_organization_id is None:
        raise UnauthorizedError("No active organization")

    member = (
        db.query(Member)
        .filter(
            Member.organization_id == user.active_organization_id,
            Member.user_id == user.id,
        )
        .first()
    )
    if not member:
        raise UnauthorizedError("Not a member of the active organization")

    return RequestContext(
        user_id=user.id,
        organization_id=user.active_organization_id,
        role=member.role,
    )


# ================= SCHEMAS =================
class RegisterRequest(BaseModel):
    email: EmailStr
    name: str | None = None
    password: str
    confirm_password: str

    @field_validator("password")
    @classmethod
    def check_strength(cls, value: str) -> str:
        for pattern, message in PASSWORD_RULES:
            if not re.search(pattern, value):
                raise ValueError(message)
        return value

    @model_validator(mode="after")
    def check_confirmation(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RegisterResponse(BaseModel):
    message: str
    email: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class CurrentUser(BaseModel):
    id: int
    email: str
    name: str | None = None
    active_organization_id: int | None = None


# ================= ROUTES =================
@router.post("/register", response_model=RegisterResponse, status_code=201)
def register_user(request: RegisterRequest, db: Session = Depends(get_db)):
    if db.query(User).filter(User.email == request.email).first():
        raise InvalidRequestError("Email already registered")

    user = User(
        email=request.email,
        name=request.name,
        password_hash=hash_password(request.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info("user_registered", extra={"user_id": user.id})
    return RegisterResponse(message="User registered", email=user.email)


@router.post("/login", response_model=TokenResponse)
def login(request: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == request.email).first()
    if not user or not verify_password(request.password, user.password_hash):
        logger.info("login_failed", extra={"email": request.email})
        raise UnauthorizedError("Invalid credentials")

    return TokenResponse(access_token=create_access_token(str(user.id)))


@router.get("/me", response_model=CurrentUser)
def read_current_user(user: User = Depends(get_current_user)):
    return CurrentUser(
        id=user.id,
        email=user.email,
        name=user.name,
        active_organization_id=user.active_organization_id,
    )

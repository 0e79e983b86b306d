"""
Staff authentication for DentalDesk.

Password login issues a bearer JWT; every other route resolves the token
back to a live staff account and checks its roles against the access
policy table in ``app.core.security``.
"""

from datetime import datetime, timedelta
from typing import Annotated
import uuid

from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logging import audit_logger
from app.core.security import ROLES, SecurityManager, TokenData, is_authorized
from app.models.base import get_db, utcnow
from app.models.user import User

router = APIRouter()

MAX_FAILED_LOGINS = 5
LOCKOUT_MINUTES = 30

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")

security = SecurityManager(
    secret_key=settings.secret_key,
    algorithm=settings.algorithm,
    access_token_expire_minutes=settings.access_token_expire_minutes,
)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class UserCreate(BaseModel):
    """Payload of ``POST /auth/register``."""

    username: str = Field(..., min_length=3, max_length=64)
    email: EmailStr
    # bcrypt only looks at the first 72 bytes
    password: str = Field(..., min_length=8, max_length=72)
    full_name: str | None = None
    roles: list[str] = Field(default=["receptionist"], min_length=1)


class UserResponse(BaseModel):
    """Staff profile; never includes the password hash."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    username: str
    email: str
    full_name: str | None
    roles: list[str]
    is_active: bool
    last_login: datetime | None


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8, max_length=72)


def _user_response(user: User) -> UserResponse:
    # ``User.roles`` is stored comma-joined
    fields = {name: getattr(user, name) for name in UserResponse.model_fields if name != "roles"}
    return UserResponse(roles=user.roles_list, **fields)


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> TokenData:
    """Resolve the bearer token to an active staff account, or answer 401."""
    token_data = security.decode_token(token)
    user = None
    if token_data is not None:
        user = (
            await db.execute(select(User).where(User.user_id == token_data.user_id))
        ).scalar_one_or_none()
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Roles come from the database so revocations apply immediately
    token_data.roles = user.roles_list
    return token_data


async def get_current_active_user(
    current_user: Annotated[TokenData, Depends(get_current_user)],
) -> TokenData:
    """Identity every route depends on; override it to act as a role without a token."""
    return current_user


def require_access(action: str):
    """
    Dependency factory checking ``action`` against ``ACCESS_POLICY``.

        current_user: Annotated[TokenData, Depends(require_access("patients:delete"))]
    """
    # Unknown actions fail at import time
    is_authorized([], action)

    async def access_checker(
        current_user: Annotated[TokenData, Depends(get_current_active_user)],
    ) -> TokenData:
        if is_authorized(current_user.roles, action):
            return current_user
        audit_logger.log_access_denied(current_user.user_id, action, current_user.roles)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions"
        )

    return access_checker


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _login_failed(
    request: Request,
    username: str,
    reason: str,
    user: User | None = None,
    detail: str = "Incorrect username or password",
) -> HTTPException:
    audit_logger.log_authentication(
        user_id=user.user_id if user else None,
        username=username,
        success=False,
        ip_address=_client_ip(request),
        failure_reason=reason,
    )
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


@router.post("/token", response_model=Token)
async def login(
    request: Request,
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Token:
    """
    OAuth2 password grant.

    ``MAX_FAILED_LOGINS`` wrong passwords in a row lock the account for
    ``LOCKOUT_MINUTES``; a locked account is refused even with the right
    password.
    """
    username = form_data.username
    user = (
        await db.execute(select(User).where(User.username == username))
    ).scalar_one_or_none()
    if user is None:
        raise _login_failed(request, username, "user_not_found")
    if user.lock_active():
        raise _login_failed(
            request, username, "account_locked", user, detail="Account is temporarily locked"
        )
    if not security.verify_password(form_data.password, user.hashed_password):
        user.record_failed_login(MAX_FAILED_LOGINS, timedelta(minutes=LOCKOUT_MINUTES))
        await db.commit()
        raise _login_failed(request, username, "invalid_password", user)
    if not user.is_active:
        raise _login_failed(
            request, username, "account_inactive", user, detail="Account is inactive"
        )

    user.record_login()
    await db.commit()

    audit_logger.log_authentication(
        user_id=user.user_id,
        username=user.username,
        success=True,
        ip_address=_client_ip(request),
    )
    claims = {"sub": user.user_id, "username": user.username, "roles": user.roles_list}
    return Token(
        access_token=security.create_access_token(data=claims),
        expires_in=settings.access_token_expire_minutes * 60,
    )


class StaffUserConflict(ValueError):
    """Username or email already taken, or an unknown role requested."""


async def create_staff_user(
    db: AsyncSession,
    username: str,
    email: str,
    password: str,
    roles: list[str],
    full_name: str | None = None,
    user_id: str | None = None,
) -> User:
    """
    Add a staff account and commit.

    Shared by ``/register``, the default accounts and ``dentaldesk create-admin``.

    Raises:
        StaffUserConflict: duplicate username or email, or a role outside ``ROLES``
    """
    unknown = set(roles) - ROLES
    if unknown:
        raise StaffUserConflict(f"Invalid roles: {', '.join(sorted(unknown))}")

    email = email.lower()
    taken = await db.execute(
        select(User.username, User.email).where(
            (User.username == username) | (User.email == email)
        )
    )
    for taken_username, taken_email in taken:
        if taken_username == username:
            raise StaffUserConflict("Username already registered")
        if taken_email == email:
            raise StaffUserConflict("Email already registered")

    user = User(
        user_id=user_id or f"user_{uuid.uuid4().hex[:12]}",
        username=username,
        email=email,
        hashed_password=security.hash_password(password),
        full_name=full_name,
        is_active=True,
    )
    user.roles_list = roles
    db.add(user)
    await db.commit()
    return user


async def _load_user(db: AsyncSession, user_id: str) -> User:
    user = (await db.execute(select(User).where(User.user_id == user_id))).scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: Annotated[TokenData, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> UserResponse:
    """Profile of the logged-in staff member."""
    return _user_response(await _load_user(db, current_user.user_id))


@router.post("/logout")
async def logout(
    request: Request,
    current_user: Annotated[TokenData, Depends(get_current_active_user)],
) -> dict:
    """
    Record the logout.

    Tokens are not revoked server-side; the client drops its token and it
    expires after ``access_token_expire_minutes``.
    """
    audit_logger.log_authentication(
        user_id=current_user.user_id,
        username=current_user.username,
        success=True,
        ip_address=_client_ip(request),
        method="logout",
    )
    return {"message": "Successfully logged out"}


@router.post("/change-password")
async def change_password(
    request: Request,
    password_data: PasswordChange,
    current_user: Annotated[TokenData, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    user = await _load_user(db, current_user.user_id)
    if not security.verify_password(password_data.current_password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )

    user.hashed_password = security.hash_password(password_data.new_password)
    user.password_changed_at = utcnow()
    await db.commit()

    audit_logger.log_authentication(
        user_id=user.user_id,
        username=user.username,
        success=True,
        ip_address=_client_ip(request),
        method="password_change",
    )
    return {"message": "Password changed successfully"}


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register_user(
    user_data: UserCreate,
    current_user: Annotated[TokenData, Depends(require_access("users:register"))],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> UserResponse:
    """Register a new staff user (admin only)."""
    try:
        user = await create_staff_user(
            db,
            username=user_data.username,
            email=user_data.email,
            password=user_data.password,
            roles=user_data.roles,
            full_name=user_data.full_name,
        )
    except StaffUserConflict as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    audit_logger.log_access(
        user_id=current_user.user_id,
        resource_type="user",
        resource_id=user.user_id,
        action="CREATE",
        details={"username": user.username, "roles": user.roles_list},
    )
    return _user_response(user)


# Development accounts; production skips them unless INIT_DEFAULT_USERS is set
DEFAULT_USERS = (
    ("user_admin001", "admin", "admin123", "admin", "Clinic Administrator"),
    ("user_dentist001", "dentist", "dentist123", "dentist", "Dr. Dentist"),
    ("user_reception001", "reception", "reception123", "receptionist", "Front Desk"),
)


async def init_default_users(db: AsyncSession) -> bool:
    """Create the default accounts on an empty users table.

    Returns False when any user already exists.
    """
    if (await db.execute(select(User.id).limit(1))).first() is not None:
        return False

    for user_id, username, password, role, full_name in DEFAULT_USERS:
        await create_staff_user(
            db,
            username=username,
            email=f"{username}@dentaldesk.dev",
            password=password,
            roles=[role],
            full_name=full_name,
            user_id=user_id,
        )
    return True

"""Security utilities for DentalDesk.

Provides password hashing, JWT handling and the role-based access policy
that every API route is checked against.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

ROLES: frozenset[str] = frozenset({"admin", "dentist", "receptionist"})

STAFF = ROLES
FRONT_DESK = frozenset({"admin", "receptionist"})
CLINICAL = frozenset({"admin", "dentist"})
ADMIN_ONLY = frozenset({"admin"})

# Action name -> roles allowed to perform it. ``None`` admits any
# authenticated user regardless of role.
ACCESS_POLICY: dict[str, frozenset[str] | None] = {
    "patients:list": None,
    "patients:read": None,
    "patients:create": FRONT_DESK,
    "patients:update": FRONT_DESK,
    "patients:delete": ADMIN_ONLY,
    "attachments:upload": STAFF,
    "attachments:list": STAFF,
    "attachments:download": STAFF,
    "attachments:delete": CLINICAL,
    "appointments:list": None,
    "appointments:read": None,
    "appointments:create": STAFF,
    "appointments:update": STAFF,
    "appointments:delete": CLINICAL,
    "users:register": ADMIN_ONLY,
}


class TokenData(BaseModel):
    """JWT token payload data."""

    user_id: str
    username: str
    roles: list[str] = []
    exp: datetime | None = None


def allowed_roles(action: str) -> frozenset[str] | None:
    """Return the roles allowed to perform ``action``.

    Raises:
        KeyError: if the action is not registered in the policy table.
    """
    return ACCESS_POLICY[action]


def is_authorized(roles: list[str], action: str) -> bool:
    """Check whether any of ``roles`` may perform ``action``."""
    allowed = allowed_roles(action)
    if allowed is None:
        return True
    return any(role in allowed for role in roles)


class SecurityManager:
    """Password hashing and JWT token management."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        access_token_expire_minutes: int = 60,
    ):
        """Initialize security manager.

        Args:
            secret_key: Secret key for JWT signing
            algorithm: JWT algorithm (default: HS256)
            access_token_expire_minutes: Token expiration in minutes

        """
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.access_token_expire_minutes = access_token_expire_minutes
        self.pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt."""
        return self.pwd_context.hash(password)

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """Verify a password against a bcrypt hash."""
        return self.pwd_context.verify(plain_password, hashed_password)

    def create_access_token(
        self,
        data: dict[str, Any],
        expires_delta: timedelta | None = None,
    ) -> str:
        """Create a JWT access token.

        Args:
            data: Token payload data
            expires_delta: Optional custom expiration time

        Returns:
            Encoded JWT token string

        """
        to_encode = data.copy()
        expire = datetime.now(timezone.utc) + (
            expires_delta or timedelta(minutes=self.access_token_expire_minutes)
        )
        to_encode.update({"exp": expire, "iat": datetime.now(timezone.utc)})
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def decode_token(self, token: str) -> TokenData | None:
        """Decode and validate a JWT token.

        Returns:
            TokenData if valid, None otherwise

        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
            return TokenData(
                user_id=payload.get("sub", ""),
                username=payload.get("username", ""),
                roles=payload.get("roles", []),
                exp=datetime.fromtimestamp(payload.get("exp", 0), tz=timezone.utc),
            )
        except JWTError:
            return None

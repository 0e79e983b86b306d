"""
Staff user database model.

A user is a clinic staff member who logs in to the dashboard with one or
more roles (admin, dentist, receptionist). Repeated failed logins lock the
account for a while.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, utcnow


class User(Base):
    """Staff account; passwords are stored as bcrypt hashes."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # Stable identifier carried in the JWT ``sub`` claim
    user_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)

    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(256), unique=True, nullable=False, index=True)
    hashed_password: Mapped[str] = mapped_column(String(256), nullable=False)
    full_name: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)

    # Comma-separated: admin, dentist, receptionist
    roles: Mapped[str] = mapped_column(String(256), nullable=False, default="receptionist")

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_locked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    failed_login_attempts: Mapped[int] = mapped_column(default=0)
    locked_until: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    password_changed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (Index("ix_users_is_active", "is_active"),)

    @property
    def roles_list(self) -> list[str]:
        """Get roles as a list."""
        if self.roles:
            return [r.strip() for r in self.roles.split(",") if r.strip()]
        return []

    @roles_list.setter
    def roles_list(self, value: list[str]) -> None:
        self.roles = ",".join(value) if value else ""

    def lock_active(self, now: datetime | None = None) -> bool:
        """Whether the account is locked right now.

        An expired lock is lifted as a side effect.
        """
        if not self.is_locked:
            return False
        now = now or utcnow()
        locked_until = self.locked_until
        # SQLite hands back naive datetimes
        if locked_until is not None and locked_until.tzinfo is None:
            locked_until = locked_until.replace(tzinfo=timezone.utc)
        if locked_until is not None and locked_until > now:
            return True
        self.is_locked = False
        self.locked_until = None
        self.failed_login_attempts = 0
        return False

    def record_failed_login(self, max_attempts: int, lockout: timedelta) -> None:
        """Count a failed password; lock the account once ``max_attempts`` is reached."""
        self.failed_login_attempts = (self.failed_login_attempts or 0) + 1
        if self.failed_login_attempts >= max_attempts:
            self.is_locked = True
            self.locked_until = utcnow() + lockout

    def record_login(self) -> None:
        self.failed_login_attempts = 0
        self.last_login = utcnow()

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}', roles='{self.roles}')>"

"""Core configuration and utilities for DentalDesk backend."""

from app.core.config import settings
from app.core.logging import get_logger, setup_logging
from app.core.security import SecurityManager

__all__ = ["settings", "SecurityManager", "setup_logging", "get_logger"]

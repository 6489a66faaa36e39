"""Core application components."""

from jobscout.core.config import settings
from jobscout.core.exceptions import ApplicationError
from jobscout.core.storage import Base, async_session

__all__ = [
    "ApplicationError",
    "Base",
    "async_session",
    "settings",
]

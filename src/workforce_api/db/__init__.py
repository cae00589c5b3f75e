"""DB package exports."""

from .base import NAMING_CONVENTION, Base, TimestampMixin, UUIDPrimaryKeyMixin, metadata, utc_now
from .database import (
    Database,
    DatabaseConfig,
    build_async_url,
    build_sync_url,
    db,
    session_scope,
)
from .types import UTCDateTime, UUIDType

__all__ = [
    "Base",
    "metadata",
    "NAMING_CONVENTION",
    "utc_now",
    "UUIDPrimaryKeyMixin",
    "TimestampMixin",
    "UUIDType",
    "UTCDateTime",
    "Database",
    "DatabaseConfig",
    "db",
    "session_scope",
    "build_sync_url",
    "build_async_url",
]

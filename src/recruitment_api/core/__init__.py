"""
Core module - Configuration, database, storage, and utilities.
"""

from recruitment_api.core.config import get_settings, settings
from recruitment_api.core.database import Base, close_db, get_db, init_db
from recruitment_api.core.redis import close_redis, get_redis, init_redis
from recruitment_api.core.storage import StorageError, SupabaseStorage, get_storage

__all__ = [
    # Config
    "settings",
    "get_settings",
    # Database
    "Base",
    "get_db",
    "init_db",
    "close_db",
    # Redis
    "get_redis",
    "init_redis",
    "close_redis",
    # Blob storage
    "StorageError",
    "SupabaseStorage",
    "get_storage",
]

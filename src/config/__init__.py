"""Configuration module for application settings."""

from .settings import settings, Settings
from .database import Base, get_db, init_db, close_db
from .storage import get_storage_client, get_queue_client
from .redis import create_redis, close_redis

__all__ = [
    "settings",
    "Settings",
    "Base",
    "get_db",
    "init_db",
    "close_db",
    "get_storage_client",
    "get_queue_client",
    "create_redis",
    "close_redis",
]

"""
Database layer — JSON key-value persistence.

Backends:
  - File (JSON files on disk, the default)
  - In-memory (dict-based, for development/testing)

Quick start:
  from database import create_store, ProfileRepository
  users = create_store("users", settings.store)
  globals_store = create_store("globals", settings.store)
  profiles = ProfileRepository(users, globals_store)
"""
from database.store_base import BaseJsonStore, StoreError
from database.store_memory import InMemoryJsonStore
from database.store_file import JsonFileStore
from database.store_factory import create_store
from database.repository import ProfileRepository

__all__ = [
    "BaseJsonStore", "StoreError",
    "InMemoryJsonStore", "JsonFileStore",
    "create_store",
    "ProfileRepository",
]

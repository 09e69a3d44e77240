"""
Store Factory — Create the right JSON store backend from configuration.

Configuration in settings.yaml:
    store:
      # "file"   : JSON files on disk (default)
      # "memory" : in-memory dicts (development, testing)
      backend: "file"
      data_dir: "./data"
      users_file: "users.json"
      globals_file: "globals.json"

Usage:
    from database.store_factory import create_store
    users = create_store("users", settings.store)
"""
from __future__ import annotations

import structlog
from pathlib import Path
from typing import Optional

from config.settings import StoreConfig
from database.store_base import BaseJsonStore, StoreError

logger = structlog.get_logger()

_FILE_FIELDS = {"users": "users_file", "globals": "globals_file"}


def create_store(name: str, config: Optional[StoreConfig] = None) -> BaseJsonStore:
    """
    Factory: create the store backing one named record set.

    Args:
        name: "users" or "globals"
        config: store section of the settings
    """
    config = config or StoreConfig()
    if name not in _FILE_FIELDS:
        raise StoreError(f"Unknown store '{name}'")

    if config.backend == "memory":
        from database.store_memory import InMemoryJsonStore
        store = InMemoryJsonStore(name)
        logger.info("store_created", store=name, backend="memory")
        return store

    if config.backend == "file":
        from database.store_file import JsonFileStore
        path = Path(config.data_dir) / getattr(config, _FILE_FIELDS[name])
        store = JsonFileStore(path, name=name)
        logger.info("store_created", store=name, backend="file", path=str(path))
        return store

    raise StoreError(f"Unknown store backend '{config.backend}'")

"""
InMemoryJsonStore — Dict-backed store for development and testing.

Features:
  - Zero dependencies (no file system)
  - Full interface compatibility with JsonFileStore
  - Keeps the last flushed payload so tests can inspect what was persisted
  - All data lost on process restart
"""
from __future__ import annotations

import json
import structlog
from typing import Any, Optional

from database.store_base import BaseJsonStore

logger = structlog.get_logger()


class InMemoryJsonStore(BaseJsonStore):

    def __init__(self, name: str = "memory", initial: Optional[dict[str, Any]] = None):
        super().__init__(name)
        self._initial = initial or {}
        self.flush_count = 0
        self.last_payload: Optional[str] = None
        self.load()
        logger.info("inmemory_store_initialized", store=name)

    def load(self) -> dict[str, Any]:
        # Deep copy through JSON so the seed is never mutated
        self._data = json.loads(json.dumps(self._initial))
        return self._data

    def _write(self, payload: str) -> bool:
        self.last_payload = payload
        self.flush_count += 1
        return True

    @property
    def persisted(self) -> dict[str, Any]:
        """The value as of the last flush."""
        return json.loads(self.last_payload) if self.last_payload else {}

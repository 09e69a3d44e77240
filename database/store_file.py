"""
JsonFileStore — JSON file-backed store with persistence across restarts.

Data layout:
  {data_dir}/
    users.json      — user_id → profile
    globals.json    — process-wide records (college registry)

Features:
  - Survives process restarts (unlike InMemoryJsonStore)
  - No external dependencies (no database server)
  - Missing file is created as an empty object on load
  - Writes go to a temp file that replaces the target (atomic on POSIX)
  - Single-process only (no cross-process write safety)
"""
from __future__ import annotations

import json
import os
import structlog
from pathlib import Path
from typing import Any, Union

from database.store_base import BaseJsonStore

logger = structlog.get_logger()


class JsonFileStore(BaseJsonStore):
    """
    Loads one JSON object from disk on init; flush() writes it back whole.
    I/O errors are logged and never raised.
    """

    def __init__(self, path: Union[str, Path], name: str = ""):
        self._path = Path(path)
        super().__init__(name or self._path.stem)
        self.load()
        logger.info("file_store_initialized", store=self.name, path=str(self._path))

    @property
    def path(self) -> Path:
        return self._path

    # ── Load / Save ───────────────────────────────────────

    def load(self) -> dict[str, Any]:
        self._data = {}
        if not self._path.exists():
            self._create_empty()
            return self._data

        try:
            raw = self._path.read_text(encoding="utf-8")
            data = json.loads(raw) if raw.strip() else {}
            if isinstance(data, dict):
                self._data = data
            else:
                logger.warning("file_store_not_an_object",
                               store=self.name, path=str(self._path))
        except (OSError, json.JSONDecodeError) as e:
            logger.error("file_store_load_error",
                         store=self.name, path=str(self._path), error=str(e))
        return self._data

    def _create_empty(self):
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text("{}", encoding="utf-8")
        except OSError as e:
            logger.error("file_store_create_error",
                         store=self.name, path=str(self._path), error=str(e))

    def _write(self, payload: str) -> bool:
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_path, self._path)
            return True
        except OSError as e:
            logger.error("file_store_write_error",
                         store=self.name, path=str(self._path), error=str(e))
            return False

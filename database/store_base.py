"""
Abstract JSON Store — Interface for all key-value persistence backends.

Implementations:
  - InMemoryJsonStore (dict-based, single-process, no persistence)
  - JsonFileStore     (JSON file on disk, single-process, durable)

A store holds one JSON object in memory. Reads are synchronous and served
from memory; writes mutate memory and become durable on flush(). A failed
load or flush is logged and the in-memory value stays authoritative.
"""
from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, Iterator


class StoreError(Exception):
    """Raised for invalid store usage (never for I/O failures)."""


class BaseJsonStore(ABC):
    """Interface that all JSON store backends must implement."""

    def __init__(self, name: str):
        self.name = name
        self._data: dict[str, Any] = {}
        self._flush_lock = asyncio.Lock()

    # ── Reads ─────────────────────────────────────────────────

    @property
    def data(self) -> dict[str, Any]:
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    # ── Writes ────────────────────────────────────────────────

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def replace(self, data: dict[str, Any]) -> None:
        if not isinstance(data, dict):
            raise StoreError(f"Store '{self.name}' expects a JSON object")
        self._data = data

    def serialize(self) -> str:
        return json.dumps(self._data, indent=4, ensure_ascii=False, default=str)

    def flush(self) -> bool:
        """Write the full current value. Returns False if the write failed."""
        return self._write(self.serialize())

    async def flush_async(self) -> bool:
        """
        Flush without blocking the event loop.

        The snapshot is taken on the loop thread, so the payload written is
        consistent even if the data changes while the write is in progress.
        Concurrent flushes are serialized.
        """
        async with self._flush_lock:
            payload = self.serialize()
            return await asyncio.to_thread(self._write, payload)

    # ── Backend hooks ─────────────────────────────────────────

    @abstractmethod
    def load(self) -> dict[str, Any]:
        ...

    @abstractmethod
    def _write(self, payload: str) -> bool:
        ...

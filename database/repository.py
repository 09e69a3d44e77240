"""
Profile Repository — typed access to user profiles and the college registry.

Two stores back it:
  users    — { user_id: {"language": ..., "name": ..., "college": ...} }
  globals  — { "colleges": [..., "Other"] }

Every mutation is flushed before the call returns, so a returning user
always sees what was recorded in an earlier session.
"""
from __future__ import annotations

import structlog
from typing import Any, Iterable, Optional

from database.store_base import BaseJsonStore
from models.schemas import GlobalRegistry, OTHER_COLLEGE, UserProfile

logger = structlog.get_logger()

_PROFILE_FIELDS = set(UserProfile.model_fields)


class ProfileRepository:

    def __init__(
        self,
        users: BaseJsonStore,
        globals_store: BaseJsonStore,
        default_language: str = "en",
        default_colleges: Iterable[str] = (),
    ):
        self._users = users
        self._globals = globals_store
        self.default_language = default_language
        self._seed_registry(list(default_colleges))

    def _seed_registry(self, default_colleges: list[str]):
        raw = self._globals.get("colleges")
        if raw is None:
            raw = default_colleges
        registry = GlobalRegistry(colleges=list(raw)).normalized()
        if self._globals.get("colleges") != registry.colleges:
            self._globals.set("colleges", registry.colleges)
            self._globals.flush()
            logger.info("college_registry_seeded", colleges=len(registry.colleges))

    # ── Profiles ──────────────────────────────────────────

    def has_profile(self, user_id: str) -> bool:
        return user_id in self._users

    def get_profile(self, user_id: str) -> UserProfile:
        """Stored profile merged over defaults; never None."""
        stored = self._users.get(user_id) or {}
        fields: dict[str, Any] = {"language": self.default_language}
        fields.update({k: v for k, v in stored.items() if k in _PROFILE_FIELDS and v is not None})
        return UserProfile(**fields)

    async def update_profile(self, user_id: str, **changes: Any) -> UserProfile:
        unknown = set(changes) - _PROFILE_FIELDS
        if unknown:
            raise ValueError(f"Unknown profile fields: {', '.join(sorted(unknown))}")

        record = self._users.get(user_id)
        if not isinstance(record, dict):
            record = {}
            self._users.set(user_id, record)
        record.update(changes)
        await self._users.flush_async()

        logger.info("profile_updated", user_id=user_id, fields=sorted(changes))
        return self.get_profile(user_id)

    # ── College registry ──────────────────────────────────

    def colleges(self) -> list[str]:
        return list(self._globals.get("colleges") or [OTHER_COLLEGE])

    def has_college(self, name: str) -> bool:
        return name in self.colleges()

    async def add_college(self, name: str) -> bool:
        """
        Insert a college right before the "Other" sentinel.
        Returns False when the name is already known.
        """
        name = name.strip()
        colleges = self.colleges()
        if not name or name in colleges:
            return False

        colleges.insert(len(colleges) - 1, name)
        self._globals.set("colleges", colleges)
        await self._globals.flush_async()

        logger.info("college_registered", college=name, total=len(colleges))
        return True

    def get_record(self, user_id: str) -> Optional[dict[str, Any]]:
        """Raw stored record, as persisted."""
        return self._users.get(user_id)

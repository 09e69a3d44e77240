"""
Tests for all JSON store backends and the profile repository.

Covers:
  - InMemoryJsonStore
  - JsonFileStore (JSON file persistence)
  - Store factory
  - ProfileRepository (profiles + college registry)
"""
import json
import os
import pytest

from config.settings import StoreConfig
from database.repository import ProfileRepository
from database.store_base import StoreError
from database.store_factory import create_store
from database.store_file import JsonFileStore
from database.store_memory import InMemoryJsonStore
from models.schemas import OTHER_COLLEGE
from tests.conftest import USER


# ──────────────────────────────────────────────────────────────
#  InMemoryJsonStore
# ──────────────────────────────────────────────────────────────

class TestInMemoryJsonStore:
    def test_seed_is_copied(self):
        seed = {"a": {"b": 1}}
        store = InMemoryJsonStore("t", initial=seed)
        store.get("a")["b"] = 2
        assert seed["a"]["b"] == 1

    def test_set_get_contains(self):
        store = InMemoryJsonStore()
        store.set("k", [1, 2])
        assert "k" in store
        assert store.get("k") == [1, 2]
        assert store.get("missing", "d") == "d"
        assert len(store) == 1
        assert list(store) == ["k"]

    def test_flush_records_payload(self):
        store = InMemoryJsonStore()
        store.set("k", "v")
        assert store.flush() is True
        assert store.flush_count == 1
        assert store.persisted == {"k": "v"}

    def test_unflushed_changes_not_persisted(self):
        store = InMemoryJsonStore()
        store.flush()
        store.set("k", "v")
        assert store.persisted == {}

    @pytest.mark.asyncio
    async def test_flush_async(self):
        store = InMemoryJsonStore()
        store.set("k", "v")
        assert await store.flush_async() is True
        assert store.persisted == {"k": "v"}

    def test_replace_requires_object(self):
        store = InMemoryJsonStore()
        with pytest.raises(StoreError):
            store.replace(["not", "a", "dict"])


# ──────────────────────────────────────────────────────────────
#  JsonFileStore
# ──────────────────────────────────────────────────────────────

class TestJsonFileStore:
    def test_missing_file_created_empty(self, tmp_path):
        path = tmp_path / "nested" / "users.json"
        store = JsonFileStore(path)
        assert store.data == {}
        assert path.read_text() == "{}"
        assert store.name == "users"

    def test_round_trip_through_disk(self, tmp_path):
        path = tmp_path / "users.json"
        store = JsonFileStore(path)
        store.set(USER, {"name": "Asha Rao"})
        assert store.flush() is True

        reloaded = JsonFileStore(path)
        assert reloaded.get(USER) == {"name": "Asha Rao"}

    def test_pretty_printed_with_four_spaces(self, tmp_path):
        path = tmp_path / "g.json"
        store = JsonFileStore(path)
        store.set("colleges", ["Other"])
        store.flush()
        assert path.read_text() == '{\n    "colleges": [\n        "Other"\n    ]\n}'

    def test_no_tmp_file_left_behind(self, tmp_path):
        path = tmp_path / "g.json"
        store = JsonFileStore(path)
        store.set("x", 1)
        store.flush()
        assert sorted(os.listdir(tmp_path)) == ["g.json"]

    def test_corrupt_file_loads_empty(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        store = JsonFileStore(path)
        assert store.data == {}
        # the corrupt file is left untouched until the next flush
        assert path.read_text() == "{not json"

    def test_non_object_loads_empty(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]")
        assert JsonFileStore(path).data == {}

    def test_write_failure_returns_false(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        store = JsonFileStore(tmp_path / "ok.json")
        store._path = blocker / "inner.json"
        store.set("k", "v")
        assert store.flush() is False
        assert store.get("k") == "v"

    @pytest.mark.asyncio
    async def test_flush_async_writes(self, tmp_path):
        path = tmp_path / "users.json"
        store = JsonFileStore(path)
        store.set("k", {"v": 1})
        assert await store.flush_async() is True
        assert json.loads(path.read_text()) == {"k": {"v": 1}}


# ──────────────────────────────────────────────────────────────
#  Factory
# ──────────────────────────────────────────────────────────────

class TestStoreFactory:
    def test_memory_backend(self):
        store = create_store("users", StoreConfig(backend="memory"))
        assert isinstance(store, InMemoryJsonStore)
        assert store.name == "users"

    def test_file_backend_paths(self, tmp_path):
        config = StoreConfig(backend="file", data_dir=str(tmp_path),
                             users_file="u.json", globals_file="g.json")
        users = create_store("users", config)
        globals_store = create_store("globals", config)
        assert isinstance(users, JsonFileStore)
        assert users.path == tmp_path / "u.json"
        assert globals_store.path == tmp_path / "g.json"

    def test_unknown_store_name(self):
        with pytest.raises(StoreError):
            create_store("sessions", StoreConfig(backend="memory"))

    def test_unknown_backend(self):
        with pytest.raises(StoreError):
            create_store("users", StoreConfig(backend="redis"))


# ──────────────────────────────────────────────────────────────
#  ProfileRepository
# ──────────────────────────────────────────────────────────────

class TestProfileRepository:
    def test_registry_seeded_with_sentinel_last(self, globals_store):
        ProfileRepository(InMemoryJsonStore(), globals_store, default_colleges=["A", "B"])
        assert globals_store.persisted["colleges"] == ["A", "B", OTHER_COLLEGE]

    def test_stored_registry_normalized(self):
        globals_store = InMemoryJsonStore(initial={"colleges": ["Other", "A", "A", "B"]})
        repo = ProfileRepository(InMemoryJsonStore(), globals_store, default_colleges=["Z"])
        assert repo.colleges() == ["A", "B", OTHER_COLLEGE]

    def test_normalized_registry_not_rewritten(self):
        globals_store = InMemoryJsonStore(initial={"colleges": ["A", OTHER_COLLEGE]})
        ProfileRepository(InMemoryJsonStore(), globals_store)
        assert globals_store.flush_count == 0

    def test_unknown_user_gets_defaults(self, users_store, globals_store):
        repo = ProfileRepository(users_store, globals_store, default_language="en")
        profile = repo.get_profile("nobody@c.us")
        assert profile.language == "en"
        assert profile.name is None
        assert not profile.is_registered
        assert not repo.has_profile("nobody@c.us")

    def test_stored_fields_merged_over_defaults(self, users_store, globals_store):
        users_store.set(USER, {"name": "Asha", "college": "A", "legacy": True})
        profile = ProfileRepository(users_store, globals_store).get_profile(USER)
        assert profile.language == "en"
        assert profile.is_registered

    @pytest.mark.asyncio
    async def test_update_profile_persists(self, profiles, users_store):
        updated = await profiles.update_profile(USER, name="Asha")
        assert updated.name == "Asha"
        assert users_store.persisted[USER] == {"name": "Asha"}

        await profiles.update_profile(USER, language="en")
        assert users_store.persisted[USER] == {"name": "Asha", "language": "en"}

    @pytest.mark.asyncio
    async def test_update_profile_rejects_unknown_fields(self, profiles):
        with pytest.raises(ValueError):
            await profiles.update_profile(USER, age=20)

    @pytest.mark.asyncio
    async def test_add_college_before_sentinel(self, profiles, globals_store):
        assert await profiles.add_college("  Ramjas College ") is True
        assert profiles.colleges()[-2:] == ["Ramjas College", OTHER_COLLEGE]
        assert globals_store.persisted["colleges"] == profiles.colleges()

    @pytest.mark.asyncio
    async def test_add_known_or_empty_college(self, profiles):
        assert await profiles.add_college("Miranda House") is False
        assert await profiles.add_college(OTHER_COLLEGE) is False
        assert await profiles.add_college("   ") is False

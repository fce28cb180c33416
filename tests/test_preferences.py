"""Tests for keycloak_session/storage/preferences.py."""

import json
import os
import stat
from unittest.mock import patch

import pytest

from keycloak_session.errors.internal import StorageError
from keycloak_session.storage.preferences import JsonPreferenceStore, MemoryPreferenceStore


class TestJsonPreferenceStore:
    @pytest.mark.asyncio
    async def test_missing_file_reads_none(self, tmp_path):
        store = JsonPreferenceStore(tmp_path / "prefs.json")
        assert await store.get_bool("keycloak:hasRunBefore") is None

    @pytest.mark.asyncio
    async def test_set_persists_atomically(self, tmp_path):
        path = tmp_path / "nested" / "prefs.json"
        store = JsonPreferenceStore(path)

        await store.set_bool("keycloak:hasRunBefore", True)

        assert json.loads(path.read_text()) == {"keycloak:hasRunBefore": True}
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
        # No temp or lock files left behind
        assert sorted(p.name for p in path.parent.iterdir()) == ["prefs.json"]

    @pytest.mark.asyncio
    async def test_value_survives_new_instance(self, tmp_path):
        path = tmp_path / "prefs.json"
        await JsonPreferenceStore(path).set_bool("flag", True)

        assert await JsonPreferenceStore(path).get_bool("flag") is True

    @pytest.mark.asyncio
    async def test_other_keys_are_preserved(self, tmp_path):
        path = tmp_path / "prefs.json"
        path.write_text(json.dumps({"theme": "dark"}))
        store = JsonPreferenceStore(path)

        await store.set_bool("flag", False)

        assert json.loads(path.read_text()) == {"flag": False, "theme": "dark"}

    @pytest.mark.asyncio
    async def test_non_boolean_value_reads_none(self, tmp_path):
        path = tmp_path / "prefs.json"
        path.write_text(json.dumps({"flag": "yes"}))
        assert await JsonPreferenceStore(path).get_bool("flag") is None

    @pytest.mark.asyncio
    async def test_corrupt_file_reads_empty(self, tmp_path):
        path = tmp_path / "prefs.json"
        path.write_text("{broken")
        assert await JsonPreferenceStore(path).get_bool("flag") is None

    @pytest.mark.asyncio
    async def test_write_failure_raises_storage_error(self, tmp_path):
        store = JsonPreferenceStore(tmp_path / "prefs.json")
        with patch("os.replace", side_effect=OSError("disk full")):
            with pytest.raises(StorageError):
                await store.set_bool("flag", True)
        assert await store.get_bool("flag") is None

    def test_rejects_bad_path_type(self):
        with pytest.raises(TypeError):
            JsonPreferenceStore(123)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_memory_preference_store():
    store = MemoryPreferenceStore()
    assert await store.get_bool("flag") is None
    await store.set_bool("flag", True)
    assert await store.get_bool("flag") is True

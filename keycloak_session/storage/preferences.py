from __future__ import annotations

import asyncio
import fcntl
import json
import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Any

from ..errors.internal import StorageError


class JsonPreferenceStore:
    """Preference store persisting flags in a small JSON file.

    Handles loading and caching of the flag map with atomic writes
    (lock file, temp file, fsync, rename) so a crash never leaves a
    truncated file behind.
    """

    def __init__(self, path: str | os.PathLike[str]):
        """Initialize the JsonPreferenceStore.

        Args:
            path: Path to the preferences file.
        """
        if not isinstance(path, str | os.PathLike):
            raise TypeError("path must be str or os.PathLike")
        self.path = str(path)
        self._lock = asyncio.Lock()
        self._cache: dict[str, Any] | None = None

    def load_raw(self) -> dict[str, Any]:
        """Load the raw preference map from the file.

        Returns:
            Mapping of preference keys to values; empty when the file is
            missing or unreadable.
        """
        if self._cache is not None:
            return self._cache
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            data = {}
        except (OSError, ValueError) as e:
            logging.error(f"Preferences load error: {e}")
            data = {}
        if not isinstance(data, dict):
            data = {}
        self._cache = data
        return data

    async def get_bool(self, key: str) -> bool | None:
        async with self._lock:
            data = await asyncio.to_thread(self.load_raw)
        value = data.get(key)
        return value if isinstance(value, bool) else None

    async def set_bool(self, key: str, value: bool) -> None:
        async with self._lock:
            data = dict(await asyncio.to_thread(self.load_raw))
            if data.get(key) is value:
                return
            data[key] = value
            try:
                await asyncio.to_thread(self._save, data)
            except (OSError, ValueError) as e:
                raise StorageError(
                    f"Failed to persist preference key={key}", data={"path": self.path}
                ) from e
            self._cache = data

    def _save(self, data: dict[str, Any]) -> None:
        self._prepare_dir()
        self._atomic_write(data)

    def _prepare_dir(self) -> None:
        """Create the preferences directory (owner-only) if it doesn't exist."""
        pref_dir = os.path.dirname(self.path)
        if pref_dir and not os.path.exists(pref_dir):
            os.makedirs(pref_dir, exist_ok=True)
            try:
                current_mode = stat.S_IMODE(os.lstat(pref_dir).st_mode)
                if current_mode != 0o700:
                    os.chmod(pref_dir, 0o700)
            except (PermissionError, FileNotFoundError):
                pass

    def _atomic_write(self, data: dict[str, Any]) -> None:
        """Perform atomic write of preference data.

        Args:
            data: Preference data to write.
        """
        pref_path = Path(self.path)
        lock_path = pref_path.with_suffix(".lock")
        temp_path: str | None = None
        try:
            with open(lock_path, "w", encoding="utf-8") as lock_file:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
                with tempfile.NamedTemporaryFile(
                    mode="w",
                    dir=pref_path.parent,
                    prefix=f".{pref_path.name}.",
                    suffix=".tmp",
                    delete=False,
                    encoding="utf-8",
                ) as tmp:
                    json.dump(data, tmp, indent=2, sort_keys=True)
                    tmp.flush()
                    os.fsync(tmp.fileno())
                    temp_path = tmp.name
                os.chmod(temp_path, 0o600)
                os.replace(temp_path, self.path)
                logging.debug("💾 Preferences saved atomically")
        except (OSError, ValueError) as e:
            if temp_path and os.path.exists(temp_path):
                try:
                    os.unlink(temp_path)
                except OSError:
                    pass
            logging.error(f"💥 Atomic preferences save failed: {type(e).__name__}")
            raise
        finally:
            try:
                os.unlink(lock_path)
            except OSError:
                pass


class MemoryPreferenceStore:
    """In-process preference store (tests and ephemeral sessions)."""

    def __init__(self, initial: dict[str, bool] | None = None) -> None:
        self._data: dict[str, bool] = dict(initial or {})

    async def get_bool(self, key: str) -> bool | None:
        return self._data.get(key)

    async def set_bool(self, key: str, value: bool) -> None:
        self._data[key] = value

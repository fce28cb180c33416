"""Secure credential stores.

``KeyringSecureStore`` persists values in the operating system keychain via
the keyring library. Keyring offers no enumeration, so the store keeps an
index entry listing the keys it wrote; ``delete_all`` walks that index plus
the well-known session keys.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from typing import Any, TypeVar

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from ..constants import KEYRING_SERVICE_NAME, REFRESH_TOKEN_KEY
from ..errors.internal import StorageError

T = TypeVar("T")

_INDEX_KEY = "__keys__"
# Purged even when missing from the index (lost or corrupt index entry).
_WELL_KNOWN_KEYS = (REFRESH_TOKEN_KEY,)


class KeyringSecureStore:
    """Secure store backed by the system keyring.

    Blocking keyring calls run in the default executor so the event loop
    is never stalled by a slow keychain (or an unlock prompt).
    """

    def __init__(self, service_name: str = KEYRING_SERVICE_NAME) -> None:
        self.service_name = service_name
        self._lock = asyncio.Lock()

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.to_thread(func, *args)
        except KeyringError as e:
            raise StorageError(
                f"Keyring operation failed: {type(e).__name__}",
                data={"service": self.service_name},
            ) from e

    def _read_index(self) -> list[str]:
        raw = keyring.get_password(self.service_name, _INDEX_KEY)
        if not raw:
            return []
        try:
            keys = json.loads(raw)
        except ValueError:
            logging.warning(f"⚠️ Corrupt keyring index reset service={self.service_name}")
            return []
        return [k for k in keys if isinstance(k, str)] if isinstance(keys, list) else []

    def _write_index(self, keys: list[str]) -> None:
        if keys:
            keyring.set_password(self.service_name, _INDEX_KEY, json.dumps(sorted(keys)))
        else:
            self._delete_quiet(_INDEX_KEY)

    def _delete_quiet(self, key: str) -> None:
        try:
            keyring.delete_password(self.service_name, key)
        except PasswordDeleteError:
            # Already absent.
            return

    def _write_sync(self, key: str, value: str) -> None:
        keyring.set_password(self.service_name, key, value)
        keys = self._read_index()
        if key not in keys:
            keys.append(key)
            self._write_index(keys)

    def _delete_sync(self, key: str) -> None:
        self._delete_quiet(key)
        keys = self._read_index()
        if key in keys:
            keys.remove(key)
            self._write_index(keys)

    def _delete_all_sync(self) -> int:
        keys = list(dict.fromkeys([*self._read_index(), *_WELL_KNOWN_KEYS]))
        for key in keys:
            self._delete_quiet(key)
        self._delete_quiet(_INDEX_KEY)
        return len(keys)

    async def read(self, key: str) -> str | None:
        return await self._run(keyring.get_password, self.service_name, key)

    async def write(self, key: str, value: str) -> None:
        async with self._lock:
            await self._run(self._write_sync, key, value)

    async def delete(self, key: str) -> None:
        async with self._lock:
            await self._run(self._delete_sync, key)

    async def delete_all(self) -> None:
        async with self._lock:
            removed = await self._run(self._delete_all_sync)
        logging.debug(f"🧹 Secure store purged service={self.service_name} keys={removed}")


class MemorySecureStore:
    """In-process secure store (ephemeral sessions and tests)."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def read(self, key: str) -> str | None:
        return self._data.get(key)

    async def write(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def delete_all(self) -> None:
        self._data.clear()

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)

    def __len__(self) -> int:
        return len(self._data)

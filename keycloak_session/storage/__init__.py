"""Secure credential and preference stores."""

from .preferences import JsonPreferenceStore, MemoryPreferenceStore
from .secure_store import KeyringSecureStore, MemorySecureStore

__all__ = [
    "JsonPreferenceStore",
    "KeyringSecureStore",
    "MemoryPreferenceStore",
    "MemorySecureStore",
]

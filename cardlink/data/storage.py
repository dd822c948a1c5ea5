"""
Device-local key/value storage.

Plain string keys to string values, last write wins. The JSON file store
plays the part of the phone's persistent storage for the CLI.
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import structlog

from cardlink.core.exceptions import StorageError

logger = structlog.get_logger(__name__)


class StorageKeys:
    """Keys the client reads and writes."""

    TOKEN = "token"
    USER = "user"
    USER_NAME = "user_name"
    USER_PHONE = "user_phone"
    CURRENT_USER_ID = "currentUserId"
    CONTACTS_SYNCED = "contactsSynced"
    CONTACTS_SYNC_TIMESTAMP = "contactsSyncTimestamp"
    LOGIN_PREFILL_PHONE = "login_prefill_phone"
    RESET_PHONE = "reset_phone"
    PASSWORD_JUST_RESET = "password_just_reset"
    PENDING_PUSH_TOKEN = "pendingPushToken"
    ADMIN_AUTH_TOKEN = "adminAuthToken"
    APP_VERSION = "app_version_stored"
    LAST_APP_VERSION = "last_app_version"
    CREDITS_REFRESHED = "credits_refreshed"
    LAST_AD_INDEX = "footerAdIndex"
    QUIZ_PROGRESS = "quiz_progress"

    # Cleared on logout and after an app upgrade
    AUTH_KEYS = (
        TOKEN,
        USER,
        USER_NAME,
        USER_PHONE,
        CURRENT_USER_ID,
        CONTACTS_SYNCED,
        CONTACTS_SYNC_TIMESTAMP,
        LOGIN_PREFILL_PHONE,
        RESET_PHONE,
        PASSWORD_JUST_RESET,
        PENDING_PUSH_TOKEN,
        ADMIN_AUTH_TOKEN,
    )


class KeyValueStore:
    """Interface shared by the store implementations."""

    def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove_item(self, key: str) -> None:
        raise NotImplementedError

    def keys(self) -> List[str]:
        raise NotImplementedError

    def multi_remove(self, keys: Iterable[str]) -> None:
        for key in keys:
            self.remove_item(key)

    def get_json(self, key: str, default: Any = None) -> Any:
        """Decode a JSON value; undecodable values yield ``default``."""
        raw = self.get_item(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Stored value is not JSON", key=key)
            return default

    def set_json(self, key: str, value: Any) -> None:
        self.set_item(key, json.dumps(value))


class MemoryStore(KeyValueStore):
    """In-process store."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = str(value)

    def remove_item(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._data)


class JsonFileStore(KeyValueStore):
    """Store persisted as a single JSON object on disk."""

    def __init__(self, path: Path):
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()
        self._data = self._load()

    def _load(self) -> Dict[str, str]:
        """Load existing entries from disk."""
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Failed to load storage file", path=str(self.path), error=str(exc))
            return {}
        if not isinstance(raw, dict):
            logger.warning("Storage file is not a JSON object", path=str(self.path))
            return {}
        return {str(k): str(v) for k, v in raw.items() if v is not None}

    def _save(self) -> None:
        """Persist current entries to disk."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(self._data, indent=2, sort_keys=True), encoding="utf-8")
            tmp.replace(self.path)
        except OSError as e:
            raise StorageError(
                f"Failed to write storage file: {e}", details={"path": str(self.path)}
            ) from e

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = str(value)
            self._save()

    def remove_item(self, key: str) -> None:
        with self._lock:
            if self._data.pop(key, None) is not None:
                self._save()

    def multi_remove(self, keys: Iterable[str]) -> None:
        with self._lock:
            removed = [k for k in keys if self._data.pop(k, None) is not None]
            if removed:
                self._save()

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._data)

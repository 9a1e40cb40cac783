"""Keyed secret storage.

Values are JSON-serialisable blobs. Typed helpers read and write pydantic
models so callers never handle raw dictionaries for credentials or tokens.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

_logger = logging.getLogger("secret_store")

M = TypeVar("M", bound=BaseModel)


def credential_key(platform: str) -> str:
    return f"api_creds_{platform}"


def token_key(platform: str) -> str:
    return f"oauth_{platform}"


TWITTER_OAUTH1_KEY = "twitter_oauth1"
PINTEREST_BOARD_KEY = "pinterest_board"
FACEBOOK_PAGE_KEY = "facebook_page"
INSTAGRAM_ACCOUNT_KEY = "instagram_business"
LINKEDIN_PROFILE_KEY = "linkedin_profile"
TIKTOK_USER_KEY = "tiktok_user"

# Auxiliary keys removed together with a platform's token on disconnect
AUXILIARY_KEYS: dict[str, tuple[str, ...]] = {
    "twitter": (TWITTER_OAUTH1_KEY,),
    "pinterest": (PINTEREST_BOARD_KEY,),
    "facebook": (FACEBOOK_PAGE_KEY,),
    "instagram": (INSTAGRAM_ACCOUNT_KEY,),
    "linkedin": (LINKEDIN_PROFILE_KEY,),
    "tiktok": (TIKTOK_USER_KEY,),
}


class SecretStore(ABC):
    """Keyed opaque blob storage with exists/get/set/delete."""

    @abstractmethod
    def exists(self, key: str) -> bool:
        ...

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the stored value or None."""
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key. Missing keys are ignored."""
        ...

    def get_model(self, key: str, model: Type[M]) -> Optional[M]:
        """Read a value as a pydantic model.

        Returns None if the key is missing or the stored blob no longer
        matches the model.
        """
        data = self.get(key)
        if data is None:
            return None
        try:
            return model.model_validate(data)
        except ValidationError as e:
            _logger.warning(f"Stored value for {key} is invalid: {e.error_count()} errors")
            return None

    def set_model(self, key: str, value: BaseModel) -> None:
        self.set(key, value.model_dump(mode="json"))


class MemorySecretStore(SecretStore):
    """In-process store, used by tests and dry runs."""

    def __init__(self, initial: Optional[dict[str, Any]] = None):
        self._data: dict[str, Any] = dict(initial or {})

    def exists(self, key: str) -> bool:
        return key in self._data

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileSecretStore(SecretStore):
    """Secrets kept in a single JSON file readable only by the owner.

    Writes go to a temporary file that replaces the original, so a crash
    never leaves a half-written store.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            _logger.error(f"Secret store {self.path} is corrupt: {e}")
            raise

    def _save(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self.path)

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._load()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._load().get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._save(data)
        _logger.info(f"Saved secret: {key}")

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if key not in data:
                return
            del data[key]
            self._save(data)
        _logger.info(f"Deleted secret: {key}")

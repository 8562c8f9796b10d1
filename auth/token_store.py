from __future__ import annotations

import json
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from pathlib import Path

from weekbar.constants import LOGGER

# On-disk key for each record field.
_FIELD_KEYS = {
    "code_verifier": "codeVerifier",
    "state": "state",
    "access_token": "accessToken",
    "refresh_token": "refreshToken",
}


@dataclass(frozen=True)
class CredentialRecord:
    code_verifier: str | None = None
    state: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None

    @property
    def is_authorized(self) -> bool:
        return bool(self.refresh_token)

    def with_tokens(self, access_token: str, refresh_token: str) -> "CredentialRecord":
        return replace(self, access_token=access_token, refresh_token=refresh_token)

    def to_payload(self) -> dict[str, str]:
        payload = {}
        for attr, key in _FIELD_KEYS.items():
            value = getattr(self, attr)
            if value is not None:
                payload[key] = value
        return payload

    @classmethod
    def from_payload(cls, payload: dict) -> "CredentialRecord":
        values = {}
        for attr, key in _FIELD_KEYS.items():
            value = payload.get(key)
            values[attr] = value if isinstance(value, str) and value else None
        return cls(**values)


class CredentialStore(ABC):
    """Holds the single credential record; ``save`` replaces it wholesale."""

    @abstractmethod
    async def load(self) -> CredentialRecord | None:
        raise NotImplementedError

    @abstractmethod
    async def save(self, record: CredentialRecord) -> None:
        raise NotImplementedError


class MemoryCredentialStore(CredentialStore):
    def __init__(self, record: CredentialRecord | None = None) -> None:
        self._record = record

    async def load(self) -> CredentialRecord | None:
        return self._record

    async def save(self, record: CredentialRecord) -> None:
        self._record = record


class FileCredentialStore(CredentialStore):
    def __init__(self, path: str | Path = "data.json") -> None:
        self._path = Path(path)

    async def load(self) -> CredentialRecord | None:
        if not self._path.exists():
            return None

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as error:
            LOGGER.warning("Credential file %s is unreadable: %s", self._path, error)
            return None
        if not isinstance(raw, dict):
            LOGGER.warning("Credential file %s is invalid; expected a JSON object.", self._path)
            return None
        return CredentialRecord.from_payload(raw)

    async def save(self, record: CredentialRecord) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f"{self._path.name}.",
            suffix=".tmp",
            dir=self._path.parent,
        )
        tmp_path = Path(tmp_name)

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(record.to_payload(), handle, indent=2, sort_keys=True)
            os.replace(tmp_path, self._path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

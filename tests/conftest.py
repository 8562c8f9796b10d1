from datetime import datetime, timezone

import pytest

from auth.token_store import CredentialRecord, MemoryCredentialStore


@pytest.fixture
def authorized_record() -> CredentialRecord:
    return CredentialRecord(
        code_verifier="stored-verifier",
        state="stored-state",
        access_token="x-access-token-0",
        refresh_token="x-refresh-token-0",
    )


@pytest.fixture
def authorized_store(authorized_record) -> MemoryCredentialStore:
    return MemoryCredentialStore(authorized_record)


@pytest.fixture
def wednesday_noon() -> datetime:
    return datetime(2024, 1, 10, 12, 0, 0, tzinfo=timezone.utc)

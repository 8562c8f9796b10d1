import asyncio
import urllib.parse

import pytest

from auth.token_store import CredentialRecord, MemoryCredentialStore
from auth.x_oauth2 import X_AUTHORIZE_URL, generate_code_challenge
from tests.oauth_helpers import CALLBACK_URL, _build_flow
from weekbar.errors import BadRequestError, RemoteError, UnauthorizedError


@pytest.mark.asyncio
async def test_begin_authorization_builds_pkce_link() -> None:
    flow, _, _ = _build_flow()

    link = await flow.begin_authorization()

    assert link.url.startswith(X_AUTHORIZE_URL)
    query = urllib.parse.parse_qs(urllib.parse.urlparse(link.url).query)
    assert query["state"] == [link.state]
    assert query["code_challenge"] == [generate_code_challenge(link.code_verifier)]
    assert query["code_challenge_method"] == ["S256"]
    assert query["redirect_uri"] == [CALLBACK_URL]
    assert query["scope"] == ["tweet.read tweet.write users.read offline.access"]


@pytest.mark.asyncio
async def test_begin_authorization_persists_verifier_and_state() -> None:
    flow, store, _ = _build_flow()

    link = await flow.begin_authorization()

    assert await store.load() == CredentialRecord(
        code_verifier=link.code_verifier, state=link.state
    )


@pytest.mark.asyncio
async def test_begin_authorization_discards_prior_flow(authorized_store) -> None:
    flow, store, _ = _build_flow(store=authorized_store)

    first = await flow.begin_authorization()
    second = await flow.begin_authorization()

    stored = await store.load()
    assert first.state != second.state
    assert stored.state == second.state
    assert stored.refresh_token is None


@pytest.mark.asyncio
async def test_begin_authorization_accepts_overrides() -> None:
    flow, _, provider = _build_flow()

    link = await flow.begin_authorization(
        "https://bot.example.com/callback", ["tweet.write", "offline.access"]
    )

    query = urllib.parse.parse_qs(urllib.parse.urlparse(link.url).query)
    assert query["redirect_uri"] == ["https://bot.example.com/callback"]
    assert query["scope"] == ["tweet.write offline.access"]

    await flow.complete_authorization(link.state, "x-code-123")

    assert provider.exchange_calls[0]["redirect_uri"] == "https://bot.example.com/callback"


@pytest.mark.asyncio
async def test_complete_authorization_stores_tokens() -> None:
    flow, store, provider = _build_flow()
    link = await flow.begin_authorization()

    tokens = await flow.complete_authorization(link.state, "x-code-123")

    assert tokens.access_token == "x-access-token-1"
    assert await store.load() == CredentialRecord(
        code_verifier=link.code_verifier,
        state=link.state,
        access_token="x-access-token-1",
        refresh_token="x-refresh-token-1",
    )
    assert provider.exchange_calls == [
        {
            "client_id": "x-client",
            "client_secret": "x-secret",
            "code": "x-code-123",
            "redirect_uri": CALLBACK_URL,
            "code_verifier": link.code_verifier,
        }
    ]


@pytest.mark.asyncio
async def test_complete_authorization_state_mismatch_leaves_store_unchanged() -> None:
    flow, store, provider = _build_flow()
    await flow.begin_authorization()
    before = await store.load()

    with pytest.raises(BadRequestError, match="State mismatch"):
        await flow.complete_authorization("forged-state", "x-code-123")

    assert await store.load() == before
    assert provider.exchange_calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(("state", "code"), [(None, "x-code"), ("state", None), ("", "")])
async def test_complete_authorization_requires_state_and_code(state, code) -> None:
    flow, _, provider = _build_flow()
    await flow.begin_authorization()

    with pytest.raises(BadRequestError):
        await flow.complete_authorization(state, code)

    assert provider.exchange_calls == []


@pytest.mark.asyncio
async def test_complete_authorization_without_pending_flow() -> None:
    flow, _, _ = _build_flow()

    with pytest.raises(BadRequestError, match="No authorization is pending"):
        await flow.complete_authorization("state", "x-code-123")


@pytest.mark.asyncio
async def test_complete_authorization_record_without_verifier() -> None:
    store = MemoryCredentialStore(CredentialRecord(state="stored-state"))
    flow, _, _ = _build_flow(store=store)

    with pytest.raises(BadRequestError):
        await flow.complete_authorization("stored-state", "x-code-123")


@pytest.mark.asyncio
async def test_complete_authorization_replay_is_rejected_by_provider() -> None:
    flow, store, _ = _build_flow()
    link = await flow.begin_authorization()
    await flow.complete_authorization(link.state, "x-code-123")
    authorized = await store.load()

    with pytest.raises(RemoteError):
        await flow.complete_authorization(link.state, "x-code-123")

    assert await store.load() == authorized


@pytest.mark.asyncio
async def test_refresh_rotates_tokens(authorized_store, authorized_record) -> None:
    flow, store, _ = _build_flow(store=authorized_store)

    tokens = await flow.refresh()

    assert tokens.refresh_token == "x-refresh-token-1"
    assert await store.load() == CredentialRecord(
        code_verifier=authorized_record.code_verifier,
        state=authorized_record.state,
        access_token="x-access-token-1",
        refresh_token="x-refresh-token-1",
    )


@pytest.mark.asyncio
async def test_refresh_discards_previous_refresh_token(authorized_store, authorized_record) -> None:
    flow, _, provider = _build_flow(store=authorized_store)

    await flow.refresh()

    with pytest.raises(RemoteError):
        await flow.refresh(authorized_record)
    assert provider.refresh_calls == ["x-refresh-token-0", "x-refresh-token-0"]


@pytest.mark.asyncio
async def test_successive_refreshes_use_latest_token(authorized_store) -> None:
    flow, _, provider = _build_flow(store=authorized_store)

    await flow.refresh()
    await flow.refresh()

    assert provider.refresh_calls == ["x-refresh-token-0", "x-refresh-token-1"]


@pytest.mark.asyncio
async def test_overlapping_refreshes_are_serialized(authorized_store) -> None:
    flow, store, provider = _build_flow(store=authorized_store)

    first, second = await asyncio.gather(flow.refresh(), flow.refresh())

    assert provider.refresh_calls == ["x-refresh-token-0", "x-refresh-token-1"]
    assert first.refresh_token != second.refresh_token
    assert (await store.load()).refresh_token == "x-refresh-token-2"


@pytest.mark.asyncio
async def test_refresh_without_refresh_token() -> None:
    store = MemoryCredentialStore(CredentialRecord(code_verifier="v", state="s"))
    flow, _, provider = _build_flow(store=store)

    with pytest.raises(UnauthorizedError):
        await flow.refresh()

    assert provider.refresh_calls == []


@pytest.mark.asyncio
async def test_refresh_without_record() -> None:
    flow, _, _ = _build_flow()

    with pytest.raises(UnauthorizedError, match="refresh token doesn't exist"):
        await flow.refresh()


@pytest.mark.asyncio
async def test_refresh_failure_keeps_stored_tokens(authorized_record) -> None:
    store = MemoryCredentialStore(authorized_record)
    flow, _, provider = _build_flow(store=store)
    provider.live_refresh_tokens.clear()

    with pytest.raises(RemoteError):
        await flow.refresh()

    assert await store.load() == authorized_record

from __future__ import annotations

import asyncio
import secrets
from dataclasses import dataclass

from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response
from starlette.routing import Route

from auth import x_oauth2
from auth.token_store import CredentialRecord, CredentialStore
from weekbar.constants import DEFAULT_SCOPES, LOGGER
from weekbar.errors import BadRequestError, UnauthorizedError


@dataclass(frozen=True)
class AuthorizationLink:
    url: str
    code_verifier: str
    state: str


class OAuthFlow:
    """Authorization Code + PKCE flow for the single linked X account.

    Every read-modify-write of the credential store happens under one lock,
    so overlapping callbacks or refreshes are applied one after another and
    the last write wins.
    """

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        callback_url: str,
        store: CredentialStore,
        scopes: list[str] | None = None,
        exchange_code_fn=x_oauth2.exchange_code,
        refresh_token_fn=x_oauth2.refresh_token,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.callback_url = callback_url
        self.store = store
        self.scopes = scopes or list(DEFAULT_SCOPES)

        self._exchange_code_fn = exchange_code_fn
        self._refresh_token_fn = refresh_token_fn
        self._lock = asyncio.Lock()
        # Redirect URI each pending state was issued with; the exchange must repeat it.
        self._redirect_uris: dict[str, str] = {}

    # -- operations ------------------------------------------------------------

    async def begin_authorization(
        self,
        callback_url: str | None = None,
        scopes: list[str] | None = None,
    ) -> AuthorizationLink:
        code_verifier = x_oauth2.generate_code_verifier()
        state = x_oauth2.generate_state()
        redirect_uri = callback_url or self.callback_url
        url = x_oauth2.build_authorization_url(
            client_id=self.client_id,
            redirect_uri=redirect_uri,
            scopes=scopes or self.scopes,
            state=state,
            code_challenge=x_oauth2.generate_code_challenge(code_verifier),
        )

        async with self._lock:
            await self.store.save(CredentialRecord(code_verifier=code_verifier, state=state))
            self._redirect_uris = {state: redirect_uri}

        LOGGER.info("Generated X authorization link")
        return AuthorizationLink(url=url, code_verifier=code_verifier, state=state)

    async def complete_authorization(
        self,
        state: str | None,
        code: str | None,
    ) -> x_oauth2.TokenResponse:
        if not state or not code:
            raise BadRequestError("Bad request. Missing state or code.")

        async with self._lock:
            stored = await self.store.load()
            if stored is None or not stored.code_verifier or not stored.state:
                raise BadRequestError("Bad request. No authorization is pending.")

            if not secrets.compare_digest(state.encode(), stored.state.encode()):
                LOGGER.warning("Rejected X callback with mismatched state")
                raise BadRequestError("Bad request. State mismatch.")

            exchanged = await self._exchange_code_fn(
                client_id=self.client_id,
                client_secret=self.client_secret,
                code=code,
                redirect_uri=self._redirect_uris.get(stored.state, self.callback_url),
                code_verifier=stored.code_verifier,
            )
            await self.store.save(
                stored.with_tokens(exchanged.access_token, exchanged.refresh_token)
            )

        LOGGER.info("Stored X credentials from authorization callback")
        return exchanged

    async def refresh(self, record: CredentialRecord | None = None) -> x_oauth2.TokenResponse:
        async with self._lock:
            stored = record if record is not None else await self.store.load()
            if stored is None or not stored.is_authorized:
                raise UnauthorizedError()

            refreshed = await self._refresh_token_fn(
                client_id=self.client_id,
                client_secret=self.client_secret,
                refresh_token=stored.refresh_token,
            )
            await self.store.save(
                stored.with_tokens(refreshed.access_token, refreshed.refresh_token)
            )

        LOGGER.info("Rotated X access and refresh tokens")
        return refreshed

    # -- routes ----------------------------------------------------------------

    def routes(self) -> list[Route]:
        return [
            Route("/oauth", self._handle_oauth, methods=["GET"]),
            Route("/callback", self._handle_callback, methods=["GET"]),
        ]

    async def _handle_oauth(self, request: Request) -> Response:
        del request
        link = await self.begin_authorization()
        return RedirectResponse(url=link.url, status_code=302)

    async def _handle_callback(self, request: Request) -> Response:
        if request.query_params.get("error"):
            raise BadRequestError("Bad request. X authorization returned an error.")

        await self.complete_authorization(
            request.query_params.get("state"),
            request.query_params.get("code"),
        )
        return JSONResponse({"message": "The params have been saved."})

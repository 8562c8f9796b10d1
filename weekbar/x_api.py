from __future__ import annotations

from dataclasses import dataclass, field

import httpx

from .errors import RemoteError, RemoteTimeoutError
from .http import friendly_error_message

X_CREATE_POST_URL = "https://api.x.com/2/tweets"


@dataclass
class PublishResult:
    id: str | None
    text: str
    errors: list[dict] = field(default_factory=list)


async def publish_post(
    access_token: str,
    text: str,
    *,
    client: httpx.AsyncClient | None = None,
) -> PublishResult:
    """Create a post on behalf of the account owning ``access_token``.

    HTTP failures raise ``RemoteError``. A 2xx body that still carries an
    ``errors`` list is returned as is; the caller decides how loud to be.
    """
    own_client = client is None
    http_client = client or httpx.AsyncClient(timeout=30.0)

    try:
        response = await http_client.post(
            X_CREATE_POST_URL,
            json={"text": text},
            headers={"Authorization": f"Bearer {access_token}"},
        )
    except httpx.TimeoutException as error:
        raise RemoteTimeoutError("Publishing to X timed out.") from error
    except httpx.HTTPError as error:
        raise RemoteError(f"Publishing to X failed: {error}") from error
    finally:
        if own_client:
            await http_client.aclose()

    if response.status_code >= 400:
        raise RemoteError(
            friendly_error_message(
                response.status_code, response.extensions.get("weekbar_wait_seconds")
            )
        )

    try:
        payload = response.json()
    except ValueError as error:
        raise RemoteError("X returned an unreadable publish response.") from error

    if not isinstance(payload, dict):
        raise RemoteError("X returned an unexpected publish response.")

    data = payload.get("data") or {}
    errors = payload.get("errors") or []
    return PublishResult(id=data.get("id"), text=data.get("text", text), errors=errors)

from __future__ import annotations

from datetime import datetime, timezone

from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from auth.oauth_flow import OAuthFlow
from auth.token_store import CredentialStore

from .constants import LOGGER, MAX_POST_LENGTH
from .content import generate_scheduled_text
from .errors import BadRequestError, RemoteError
from .x_api import PublishResult, publish_post


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Poster:
    def __init__(
        self,
        *,
        flow: OAuthFlow,
        store: CredentialStore,
        publish_fn=publish_post,
        clock=_utcnow,
    ) -> None:
        self.flow = flow
        self.store = store
        self._publish_fn = publish_fn
        self._clock = clock

    async def post_now(self, text: str | None) -> PublishResult:
        if not text:
            raise BadRequestError(
                "Bad request. You need to have a query parameter called 'message' "
                f"that's less than {MAX_POST_LENGTH} characters long in the link."
            )
        if len(text) > MAX_POST_LENGTH:
            raise BadRequestError("Bad request. Your message is too long.")

        return await self._publish(text)

    async def run_scheduled_post(self, now: datetime | None = None) -> PublishResult | None:
        try:
            stored = await self.store.load()
            if (
                stored is None
                or not stored.is_authorized
                or not stored.code_verifier
                or not stored.state
            ):
                LOGGER.info(
                    "No stored credentials available for posting. Grant access to the "
                    "app first for the recurring posts to activate."
                )
                return None

            text = generate_scheduled_text(now or self._clock())
            return await self._publish(text)
        except RemoteError as error:
            if not error.retryable:
                LOGGER.exception("Scheduled post failed")
                return None
            LOGGER.warning("Scheduled post timed out, retrying on the next run: %s", error.message)
            return None
        except Exception:
            LOGGER.exception("Scheduled post failed")
            return None

    async def _publish(self, text: str) -> PublishResult:
        tokens = await self.flow.refresh()
        result = await self._publish_fn(tokens.access_token, text)
        if result.errors:
            LOGGER.warning("X reported errors while publishing post: %s", result.errors)
        else:
            LOGGER.info("Published post %s", result.id)
        return result

    # -- routes ----------------------------------------------------------------

    def routes(self) -> list[Route]:
        return [Route("/tweet", self._handle_tweet, methods=["GET"])]

    async def _handle_tweet(self, request: Request) -> Response:
        text = request.query_params.get("message")
        await self.post_now(text)
        return JSONResponse({"message": f'The text "{text}" has been tweeted.'})

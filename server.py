from __future__ import annotations

import asyncio
import contextlib
import functools

import httpx
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from auth import x_oauth2
from auth.oauth_flow import OAuthFlow
from auth.token_store import CredentialStore, FileCredentialStore
from weekbar.constants import APP_VERSION, LOGGER
from weekbar.env import Settings, load_env, load_settings, setup_logging, validate_env
from weekbar.errors import WeekbarError
from weekbar.http import build_http_client
from weekbar.poster import Poster
from weekbar.scheduler import RecurringTask
from weekbar.x_api import publish_post


def build_components(
    settings: Settings,
    *,
    store: CredentialStore | None = None,
    client: httpx.AsyncClient | None = None,
) -> tuple[OAuthFlow, Poster]:
    store = store or FileCredentialStore(settings.token_store_path)
    flow = OAuthFlow(
        client_id=settings.client_id,
        client_secret=settings.client_secret,
        callback_url=settings.callback_url,
        store=store,
        scopes=settings.scopes,
        exchange_code_fn=functools.partial(x_oauth2.exchange_code, client=client),
        refresh_token_fn=functools.partial(x_oauth2.refresh_token, client=client),
    )
    poster = Poster(
        flow=flow,
        store=store,
        publish_fn=functools.partial(publish_post, client=client),
    )
    return flow, poster


async def weekbar_error_handler(request: Request, error: WeekbarError) -> Response:
    del request
    if error.status_code >= 500:
        LOGGER.warning("Request failed: %s", error.message)
    return JSONResponse({"message": error.message}, status_code=error.status_code)


def create_app(
    settings: Settings | None = None,
    *,
    store: CredentialStore | None = None,
    flow: OAuthFlow | None = None,
    poster: Poster | None = None,
    schedule: bool = True,
) -> Starlette:
    settings = settings or load_settings()
    client = None
    if flow is None or poster is None:
        client = build_http_client(settings)
        flow, poster = build_components(settings, store=store, client=client)

    async def index_route(request: Request) -> Response:
        return JSONResponse(
            {
                "message": (
                    "Welcome to the app, to be redirected to the OAuth request link "
                    f"go to {request.base_url}oauth"
                ),
            }
        )

    async def health_route(request: Request) -> Response:
        del request
        return JSONResponse(
            {
                "status": "ok",
                "version": APP_VERSION,
                "mode": settings.mode,
            }
        )

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        del app
        recurring = None
        if schedule:
            recurring = RecurringTask(poster.run_scheduled_post, settings.post_interval_seconds)
            recurring.start()
        try:
            yield
        finally:
            if recurring is not None:
                await recurring.stop()
            if client is not None:
                await client.aclose()

    routes = [
        Route("/", index_route, methods=["GET"]),
        Route("/health", health_route, methods=["GET"]),
        *flow.routes(),
        *poster.routes(),
    ]
    return Starlette(
        routes=routes,
        exception_handlers={WeekbarError: weekbar_error_handler},
        lifespan=lifespan,
    )


async def run_schedule(settings: Settings) -> None:
    async with build_http_client(settings) as client:
        _, poster = build_components(settings, client=client)
        await RecurringTask(poster.run_scheduled_post, settings.post_interval_seconds).run_forever()


def main() -> None:
    load_env()
    setup_logging()
    validate_env()
    settings = load_settings()

    if settings.listener_enabled:
        import uvicorn

        LOGGER.info("Listening on %s:%s", settings.host, settings.port)
        uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
        return

    try:
        asyncio.run(run_schedule(settings))
    except KeyboardInterrupt:
        LOGGER.info("Recurring post schedule stopped")


if __name__ == "__main__":
    main()

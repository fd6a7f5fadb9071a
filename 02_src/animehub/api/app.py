"""FastAPI application setup."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.middleware.sessions import SessionMiddleware

from ..app import Application
from ..config import UPLOADS_URL_PREFIX
from .errors import register_exception_handlers
from .routes import accounts, conversations, groups, messages, realtime, reviews, uploads

SESSION_COOKIE = "animehub.sid"


def create_fastapi_app(application: Application | None = None) -> FastAPI:
    """Create and configure the FastAPI application around an Application."""
    application = application or Application()
    settings = application.settings

    @asynccontextmanager
    async def lifespan(fastapi_app: FastAPI):
        await application.start()
        yield
        await application.stop()

    fastapi_app = FastAPI(
        title="AnimeHub API",
        description="Reviews, profiles and realtime chat for AnimeHub",
        version="1.0.0",
        lifespan=lifespan,
    )
    fastapi_app.state.application = application

    fastapi_app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        session_cookie=SESSION_COOKIE,
        max_age=settings.session_max_age,
        same_site="lax",
        https_only=False,
    )
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(fastapi_app, debug=settings.debug)

    @fastapi_app.get("/")
    async def root() -> dict:
        return {"message": "Your AnimeHub backend is working!"}

    fastapi_app.include_router(accounts.create_accounts_router(application))
    fastapi_app.include_router(conversations.create_conversations_router(application))
    fastapi_app.include_router(messages.create_messages_router(application))
    fastapi_app.include_router(groups.create_groups_router(application))
    fastapi_app.include_router(reviews.create_reviews_router(application))
    fastapi_app.include_router(uploads.create_uploads_router(application))
    fastapi_app.include_router(realtime.create_realtime_router(application))

    application.uploads_dir.mkdir(parents=True, exist_ok=True)
    fastapi_app.mount(
        UPLOADS_URL_PREFIX,
        StaticFiles(directory=application.uploads_dir),
        name="uploads",
    )

    return fastapi_app

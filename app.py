"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from errors import register_error_handlers
from infrastructure.email.protocol import EmailProvider
from infrastructure.email.zeptomail import ZeptoMailProvider
from infrastructure.http_client import HttpClient
from infrastructure.storage.cloudinary import CloudinaryStorage
from infrastructure.storage.protocol import ImageStorage
from infrastructure.token_signer import TokenSigner
from repositories.protocol import CredentialStore
from repositories.user_repository import UserRepository
from routes.auth_routes import router as auth_router
from routes.health_routes import router as health_router
from services.auth_service import AuthService
from services.profile_service import ProfileService
from services.session_manager import SessionManager
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


def build_services(
    app: FastAPI,
    settings: AppSettings,
    users: CredentialStore,
    email: EmailProvider,
    storage: ImageStorage,
) -> None:
    """Wire the service graph onto app.state.

    Split out of the lifespan so tests can hand in an in-memory store and
    fake providers while keeping the production wiring.
    """
    signer = TokenSigner(settings.jwt)
    sessions = SessionManager(
        store=users,
        signer=signer,
        email=email,
        jwt_settings=settings.jwt,
        token_settings=settings.tokens,
        app_url=settings.app_url,
    )
    app.state.settings = settings
    app.state.session_manager = sessions
    app.state.auth_service = AuthService(users, sessions)
    app.state.profile_service = ProfileService(users, storage)


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
        )
    setup_logging(settings.logging, sentry_enabled=bool(settings.sentry.sentry_dsn))

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        mongo_client: AsyncMongoClient = AsyncMongoClient(
            settings.db.mongodb_uri, tz_aware=True
        )
        app.state.mongo_client = mongo_client
        app.state.db = mongo_client[settings.db.db_name]

        users = UserRepository(app.state.db["users"])
        await users.ensure_indexes()

        # One HTTP client per external service keeps timeouts independent
        email_http = HttpClient(timeout=5.0)
        storage_http = HttpClient(timeout=20.0)
        build_services(
            app,
            settings,
            users=users,
            email=ZeptoMailProvider(settings.email, email_http, app_url=settings.app_url),
            storage=CloudinaryStorage(settings.storage, storage_http),
        )
        log.info("app_started", env=settings.env, db_name=settings.db.db_name)

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await email_http.aclose()
        await storage_http.aclose()
        await mongo_client.close()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    # Credentials are required so the session cookies reach the API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(auth_router)

    return app

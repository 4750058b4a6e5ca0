"""FastAPI application wiring for the credential service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import ConnectionPool

from .api.routes import router as v1_router
from .config import Settings, get_settings
from .domain.contracts import AccountStore
from .domain.service import CredentialService
from .notifications import LoggingNotifier
from .repository import AccountRepository
from .security.codes import CodeGenerator
from .security.passwords import PasswordHasher
from .security.session import SessionGuard
from .security.tokens import TokenIssuer

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def configure_services(app: FastAPI, store: AccountStore, settings: Settings) -> CredentialService:
    """Build the credential components from settings and attach them to ``app.state``."""
    tokens = TokenIssuer(
        secret=settings.jwt_secret,
        issuer=settings.jwt_issuer,
        ttl_seconds=settings.jwt_ttl_seconds,
    )
    service = CredentialService(
        store,
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        tokens=tokens,
        codes=CodeGenerator(),
        notifier=LoggingNotifier(),
        settings=settings,
    )
    app.state.token_issuer = tokens
    app.state.session_guard = SessionGuard(tokens, store)
    app.state.credential_service = service
    return service


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise shared resources (Postgres pool, services) for the app lifecycle."""
    pool = ConnectionPool(settings.database_url, open=False)
    pool.open()
    app.state.pool = pool
    repository = AccountRepository(pool)
    repository.ensure_schema()
    configure_services(app, repository, settings)
    logger.info("%s %s ready", settings.app_name, settings.version)
    try:
        yield
    finally:
        pool.close()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=600,
)


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


@app.get("/metrics")
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(v1_router)


def run() -> None:
    """Console entry point serving the app with uvicorn."""
    import uvicorn

    uvicorn.run(app, host=settings.http_host, port=settings.http_port)

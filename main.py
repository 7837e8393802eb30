"""
Dayline — email + calendar dashboard backend, application entry point.
"""

from __future__ import annotations

import logging
import sys

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

from api.middleware import register_exception_handlers, register_middleware
from api.routes import router as api_router
from auth.routes import router as auth_router
from config.settings import config
from connectors.registry import ConnectorRegistry
from connectors.routes import router as connectors_router
from database.seed import seed_demo_data
from database.session import async_session_factory, init_database

logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
    stream=sys.stdout,
)
for _noisy in ("httpcore", "httpx", "openai", "anthropic", "googleapiclient", "urllib3"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Dayline",
        version="1.0.0",
        description="Email and calendar dashboard with Google and Microsoft connections.",
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        SessionMiddleware,
        secret_key=config.session_secret,
        same_site="lax",
        https_only=not config.debug and config.oauth_redirect_base.startswith("https"),
    )

    register_middleware(app)
    register_exception_handlers(app)

    # Routes: /api/auth/me etc. must be matched before /api/auth/{provider}
    app.include_router(auth_router, prefix="/api/auth")
    app.include_router(connectors_router, prefix="/api")
    app.include_router(api_router, prefix="/api")

    @app.on_event("startup")
    async def on_startup():
        logger.info("Creating database tables…")
        await init_database()

        if config.seed_demo_data:
            async with async_session_factory() as session:
                if await seed_demo_data(session):
                    await session.commit()

        ConnectorRegistry().log_status()
        logger.info("Application ready to accept requests.")

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )

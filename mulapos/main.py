"""
Arranque:  uvicorn mulapos.main:create_app --factory --port 8010
"""
from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI

from mulapos.core.config import Settings
from mulapos.core.errors import install_error_handlers
from mulapos.middleware.idempotency import install_idempotency
from mulapos.routers import admin, cart, checkout, display, health, session, ui
from mulapos.services.terminal import PosTerminal


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(settings: Optional[Settings] = None, terminal: Optional[PosTerminal] = None) -> FastAPI:
    settings = settings or Settings()
    configure_logging(settings.log_level)
    terminal = terminal or PosTerminal(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        terminal.dispose()

    app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
    app.state.settings = settings
    app.state.terminal = terminal

    install_error_handlers(app)
    install_idempotency(app, ttl=settings.idempotency_ttl_seconds)

    app.include_router(health.router)
    app.include_router(admin.router)
    app.include_router(session.router)
    app.include_router(cart.router)
    app.include_router(checkout.router)
    app.include_router(display.router)
    app.include_router(ui.router)
    return app

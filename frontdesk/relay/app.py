"""FastAPI app for the booking relay."""

import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from frontdesk.config import RelayConfigError, RelaySettings, get_settings
from frontdesk.utils.logger import get_logger, setup_logging
from .routes import router, set_relay
from .service import UpstreamRelay

logger = get_logger(__name__)


def create_app(
    settings: RelaySettings | None = None,
    relay: UpstreamRelay | None = None,
) -> FastAPI:
    """
    Build the relay app.

    Args:
        settings: Relay settings (environment when None)
        relay: Pre-built relay (tests)

    Raises:
        RelayConfigError: If no upstream URL is configured
    """
    settings = settings or get_settings().relay
    upstream_url = settings.require_upstream()

    if relay is None:
        relay = UpstreamRelay(
            upstream_url,
            timeout=settings.upstream_timeout_seconds,
            read_retries=settings.read_retries,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifecycle."""
        await relay.start()
        set_relay(relay)
        logger.info("relay_started", upstream=upstream_url, port=settings.port)
        yield
        set_relay(None)
        await relay.close()
        logger.info("relay_stopped")

    app = FastAPI(
        title="Front Desk Relay",
        description="Single forwarding endpoint between the dashboard and the booking sheet.",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.allowed_origin],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    app.include_router(router)
    return app


def main() -> None:
    """Console entry point: refuse to start without an upstream."""
    settings = get_settings()
    setup_logging(settings.app.log_level, settings.app.log_format, service="relay")

    try:
        app = create_app(settings.relay)
    except RelayConfigError as e:
        logger.error("relay_config_error", error=str(e))
        sys.exit(1)

    import uvicorn
    uvicorn.run(app, host=settings.relay.host, port=settings.relay.port)


if __name__ == "__main__":
    main()

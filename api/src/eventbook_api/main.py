"""FastAPI application for the event booking REST API.

This package provides REST endpoints for:
- Health checks
- Date availability
- Checkout initiation and booking lookup
- The Stripe payment webhook
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from mangum import Mangum

from eventbook import __version__
from eventbook.config import load_config
from eventbook.utils.logging import configure_logging
from eventbook_api.exceptions import register_exception_handlers
from eventbook_api.middleware.correlation import CORRELATION_ID_HEADER, CorrelationIdMiddleware
from eventbook_api.routes.availability import router as availability_router
from eventbook_api.routes.bookings import router as bookings_router
from eventbook_api.routes.health import router as health_router
from eventbook_api.routes.webhooks import router as webhooks_router


def create_app() -> FastAPI:
    """Build the application from the loaded config."""
    config = load_config()
    configure_logging(config.log_level)

    app = FastAPI(
        title="Event Booking API",
        description="Single-date event package reservations with Stripe checkout",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[CORRELATION_ID_HEADER],
    )
    app.add_middleware(CorrelationIdMiddleware)

    # Register exception handlers for consistent error responses
    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(availability_router)
    app.include_router(bookings_router)
    app.include_router(webhooks_router)

    return app


app = create_app()

# Lambda handler - Mangum wraps FastAPI for AWS Lambda + API Gateway
handler = Mangum(app, lifespan="off")


def run_server(host: str = "0.0.0.0", port: int = 8080, reload: bool = False) -> None:
    """Run the FastAPI server.

    Args:
        host: Host to bind to (default: 0.0.0.0)
        port: Port to listen on (default: 8080)
        reload: Enable hot reload for development (default: False)
    """
    import uvicorn

    if reload:
        # Use string reference for reload mode (uvicorn requirement)
        uvicorn.run(
            "eventbook_api.main:app",
            host=host,
            port=port,
            reload=True,
            reload_dirs=["api/src", "shared/src"],
        )
    else:
        uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()

"""
Signaling Gateway main application.

Pairs anonymous clients and relays WebRTC negotiation messages over a
WebSocket endpoint or a server-sent event stream with POST commands.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from shared.config.logging import setup_logging, signal_gateway_logger as logger
from shared.config.settings import settings
from shared.infrastructure.correlation import CorrelationIdMiddleware
from shared.utils.schemas import HealthResponse
from signal_gateway.components.endpoints import SignalingEndpoint, stream_router
from signal_gateway.components.metrics.prometheus import generate_prometheus_metrics
from signal_gateway.core.session.liveness import LivenessMonitor
from signal_gateway.session_manager import SessionManager

SERVICE_NAME = "signal-gateway"
SERVICE_VERSION = "1.0.0"


def create_app(manager: SessionManager | None = None) -> FastAPI:
    """
    Build the application around ``manager`` (a new one by default).
    """
    manager = manager or SessionManager(settings)
    config = manager.config

    # =========================================================================
    # Lifespan
    # =========================================================================

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan handler.

        Starts the liveness monitor; on shutdown stops it and closes every
        registered connection.
        """
        setup_logging()

        errors = config.validate_runtime()
        if errors:
            for error in errors:
                logger.critical("Configuration error", error=error)
            raise RuntimeError("Invalid configuration: " + "; ".join(errors))

        logger.info(
            "Starting Signaling Gateway",
            port=config.signal_gateway_port,
            env=config.environment,
            liveness_interval=config.liveness_interval,
            liveness_timeout=config.liveness_timeout,
        )

        monitor = LivenessMonitor(manager.sweep, interval=config.liveness_interval)
        monitor.start()
        app.state.liveness_monitor = monitor

        yield

        logger.info("Shutting down Signaling Gateway")
        await monitor.stop()
        manager.shutdown()

    app = FastAPI(
        title="Signaling Gateway",
        description="Matchmaking and WebRTC signaling relay",
        version=SERVICE_VERSION,
        lifespan=lifespan,
    )
    app.state.manager = manager

    app.add_middleware(CorrelationIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origin_list or ["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )

    # =========================================================================
    # Health and status
    # =========================================================================

    def health_payload() -> HealthResponse:
        users, waiting = manager.counts()
        return HealthResponse(
            service=SERVICE_NAME,
            version=app.version,
            environment=config.environment,
            users=users,
            waiting=waiting,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    @app.get("/health", response_model=HealthResponse)
    def health_check() -> HealthResponse:
        """Basic health check endpoint."""
        return health_payload()

    @app.get("/api/signaling/status", response_model=HealthResponse)
    def signaling_status() -> HealthResponse:
        """Status of the signaling service."""
        return health_payload()

    # =========================================================================
    # Prometheus Metrics Endpoint
    # =========================================================================

    @app.get("/metrics")
    def prometheus_metrics() -> PlainTextResponse:
        """
        Prometheus-compatible metrics endpoint.

        Configure Prometheus scrape:
            scrape_configs:
              - job_name: 'signal-gateway'
                static_configs:
                  - targets: ['localhost:3001']
        """
        return PlainTextResponse(
            content=generate_prometheus_metrics(manager),
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    # =========================================================================
    # Transports
    # =========================================================================

    @app.websocket("/ws")
    async def signaling_websocket(websocket: WebSocket):
        """Duplex signaling connection."""
        endpoint = SignalingEndpoint(websocket, manager)
        await endpoint.run()

    app.include_router(stream_router)

    return app


app = create_app()


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "signal_gateway.main:app",
        host=settings.signal_gateway_host,
        port=settings.signal_gateway_port,
    )

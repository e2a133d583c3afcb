# src/services/buyer_app_service/app/main.py
import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Dict, Optional
from uuid import uuid4

import uvicorn
from buyer_common.config import BUYER_APP_TOPIC, BUYER_APP_VERIFY_TOPICS
from buyer_common.health import DependencyCheck, create_health_router
from buyer_common.kafka_admin import ensure_topics_exist
from buyer_common.kafka_utils import KafkaPublisher, MessagePublisher
from buyer_common.logging_utils import (
    correlation_id_var,
    generate_correlation_id,
    request_id_var,
    setup_logging,
    trace_id_var,
)
from buyer_common.monitoring import HTTP_REQUEST_LATENCY_SECONDS, HTTP_REQUESTS_TOTAL
from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from app.routers import actions
from app.services.dispatch_service import ActionDispatcher
from app.validation.schema_validator import SchemaValidator

SERVICE_PREFIX = "BAP"
SERVICE_NAME = "buyer_app_service"
logger = logging.getLogger(__name__)


def _bind_publisher(app: FastAPI, publisher: Optional[MessagePublisher]) -> None:
    app.state.publisher = publisher
    app.state.dispatcher = (
        ActionDispatcher(app.state.validator, publisher, app.state.topic) if publisher else None
    )


def create_app(
    publisher: Optional[MessagePublisher] = None,
    validator: Optional[SchemaValidator] = None,
    topic: str = BUYER_APP_TOPIC,
    readiness_checks: Optional[Dict[str, DependencyCheck]] = None,
) -> FastAPI:
    """
    Builds the gateway application.

    Schemas are loaded here, so a missing or broken schema fails construction.
    When no publisher is given, a KafkaPublisher is created on startup and
    closed on shutdown; an injected publisher is owned by the caller.
    """
    setup_logging()
    validator = validator or SchemaValidator()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Buyer App Service starting up...")
        owns_publisher = app.state.publisher is None
        if owns_publisher:
            try:
                if BUYER_APP_VERIFY_TOPICS:
                    await asyncio.to_thread(ensure_topics_exist, [topic])
                _bind_publisher(app, KafkaPublisher())
                logger.info("Kafka publisher initialized successfully.")
            except Exception:
                logger.critical("FATAL: Could not initialize Kafka publisher on startup.", exc_info=True)

        yield

        logger.info("Buyer App Service shutting down...")
        if owns_publisher and app.state.publisher is not None:
            logger.info("Flushing Kafka publisher...")
            app.state.publisher.close()
        logger.info("Buyer App Service has shut down gracefully.")

    app = FastAPI(
        title="Buyer App Gateway API",
        description=(
            "Ingestion gateway for buyer-side protocol actions. Each action payload is "
            "validated against its JSON Schema and, when valid, published to the broker "
            "for asynchronous processing."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.validator = validator
    app.state.topic = topic
    _bind_publisher(app, publisher)

    @app.middleware("http")
    async def emit_http_observability(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start

        labels = {
            "service": SERVICE_NAME,
            "method": request.method,
            "path": request.url.path,
        }
        HTTP_REQUEST_LATENCY_SECONDS.labels(**labels).observe(elapsed)
        HTTP_REQUESTS_TOTAL.labels(status=str(response.status_code), **labels).inc()

        logger.info(
            "http_request_completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(elapsed * 1000, 2),
            },
        )
        return response

    # Registered last so it runs outermost and the lineage is set for everything below.
    @app.middleware("http")
    async def add_correlation_id_middleware(request: Request, call_next):
        correlation_id = request.headers.get("X-Correlation-Id") or generate_correlation_id(SERVICE_PREFIX)
        request_id = request.headers.get("X-Request-Id") or generate_correlation_id("REQ")
        trace_id = request.headers.get("X-Trace-Id") or uuid4().hex

        correlation_token = correlation_id_var.set(correlation_id)
        request_token = request_id_var.set(request_id)
        trace_token = trace_id_var.set(trace_id)
        try:
            response = await call_next(request)
        finally:
            correlation_id_var.reset(correlation_token)
            request_id_var.reset(request_token)
            trace_id_var.reset(trace_token)

        response.headers["X-Correlation-Id"] = correlation_id
        response.headers["X-Request-Id"] = request_id
        response.headers["X-Trace-Id"] = trace_id
        return response

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        """
        Catches any unhandled exceptions and returns a standardized 500 error response.
        """
        correlation_id = request.headers.get("X-Correlation-Id") or correlation_id_var.get()
        if correlation_id == "<not-set>":
            correlation_id = generate_correlation_id(SERVICE_PREFIX)
        # Runs outside the correlation middleware, so the lineage has already been reset.
        token = correlation_id_var.set(correlation_id)
        try:
            logger.critical(f"Unhandled exception for request {request.method} {request.url}", exc_info=exc)
        finally:
            correlation_id_var.reset(token)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal Server Error",
                "message": "An unexpected error occurred. Please contact support.",
                "correlation_id": correlation_id,
            },
        )

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(create_health_router(readiness_checks))
    app.include_router(actions.router)
    return app


app = create_app()


def run() -> None:
    """Serves the module-level app with uvicorn."""
    uvicorn.run(
        "app.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8080")),
        log_config=None,
    )

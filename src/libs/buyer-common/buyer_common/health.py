# src/libs/buyer-common/buyer_common/health.py
import asyncio
import logging
from typing import Awaitable, Callable, Dict

from confluent_kafka.admin import AdminClient
from fastapi import APIRouter, HTTPException, status

from .config import KAFKA_BOOTSTRAP_SERVERS

logger = logging.getLogger(__name__)

DependencyCheck = Callable[[], Awaitable[bool]]


async def check_kafka_health() -> bool:
    """Checks if a connection can be established with Kafka."""
    try:
        admin_client = AdminClient({'bootstrap.servers': KAFKA_BOOTSTRAP_SERVERS})
        await asyncio.to_thread(admin_client.list_topics, timeout=5)
        return True
    except Exception as e:
        logger.error(f"Health Check: Kafka connection failed: {e}", exc_info=False)
        return False


def create_health_router(checks: Dict[str, DependencyCheck] | None = None) -> APIRouter:
    """
    Creates a standardized health check router.

    Args:
        checks: Dependency name -> async probe used by the readiness endpoint.
                Defaults to a Kafka connectivity probe.

    Returns:
        A FastAPI APIRouter with /health/live and /health/ready endpoints.
    """
    router = APIRouter(tags=["Health"])
    dependency_checks = checks if checks is not None else {"kafka": check_kafka_health}

    @router.get("/health/live", status_code=status.HTTP_200_OK)
    async def liveness_probe():
        return {"status": "alive"}

    @router.get("/health/ready", status_code=status.HTTP_200_OK)
    async def readiness_probe():
        names = list(dependency_checks)
        results = await asyncio.gather(*[dependency_checks[name]() for name in names])

        dep_status = {name: "ok" if ok else "unavailable" for name, ok in zip(names, results)}

        if all(results):
            return {"status": "ready", "dependencies": dep_status}

        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"status": "not_ready", "dependencies": dep_status},
        )

    return router

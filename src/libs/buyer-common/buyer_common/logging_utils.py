# src/libs/buyer-common/buyer_common/logging_utils.py
import logging
import os
import sys
import uuid
from contextvars import ContextVar
from pythonjsonlogger import jsonlogger

# Per-request lineage. Defaults cover log lines emitted outside a request.
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="<not-set>")
request_id_var: ContextVar[str] = ContextVar("request_id", default="<not-set>")
trace_id_var: ContextVar[str] = ContextVar("trace_id", default="<not-set>")
# Buyer protocol action being served; set by the action routes.
action_var: ContextVar[str] = ContextVar("action", default="-")


class CorrelationIdFilter(logging.Filter):
    """
    A logging filter that copies the current request lineage and the
    action being served from the ContextVars onto every log record. An
    explicit `action` passed through `extra` wins.
    """
    def filter(self, record):
        record.correlation_id = correlation_id_var.get()
        record.request_id = request_id_var.get()
        record.trace_id = trace_id_var.get()
        if not hasattr(record, "action"):
            record.action = action_var.get()
        record.service = os.getenv("SERVICE_NAME", "buyer-app-service")
        record.environment = os.getenv("ENVIRONMENT", "local")
        return True


def setup_logging(level: int = logging.INFO):
    """
    Configures the root logger for structured JSON logging with request
    lineage attached. Calling it again replaces the previous handler, so
    repeated app construction (e.g. in tests) never duplicates output.
    """
    root_logger = logging.getLogger()

    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    root_logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    formatter = jsonlogger.JsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(message)s %(service)s %(environment)s %(correlation_id)s %(request_id)s %(trace_id)s %(action)s",
        rename_fields={
            "asctime": "timestamp",
            "levelname": "level",
            "name": "logger"
        }
    )
    handler.setFormatter(formatter)
    handler.addFilter(CorrelationIdFilter())

    root_logger.addHandler(handler)


def generate_correlation_id(prefix: str) -> str:
    """
    Generates a new correlation ID with a service-specific prefix.
    Args:
        prefix: A short code for the service (e.g., 'BAP').
    Returns:
        A formatted correlation ID string.
    """
    return f"{prefix}:{uuid.uuid4()}"

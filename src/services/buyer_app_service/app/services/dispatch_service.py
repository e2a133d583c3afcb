# src/services/buyer_app_service/app/services/dispatch_service.py
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from buyer_common.kafka_utils import MessagePublisher
from buyer_common.logging_utils import correlation_id_var
from buyer_common.monitoring import observe_action_outcome, observe_validation_failure
from fastapi import HTTPException, Request, status

from app.ack_response import build_ack, build_nack
from app.actions import Action
from app.DTOs.ack_dto import AckResponse
from app.validation.schema_validator import SchemaValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchResult:
    status_code: int
    body: AckResponse
    message_id: Optional[str] = None


class ActionDispatcher:
    """
    Validates an action payload and, only when it is valid, publishes the
    exact received bytes to the topic. One instance serves every action.
    """

    def __init__(self, validator: SchemaValidator, publisher: MessagePublisher, topic: str):
        self._validator = validator
        self._publisher = publisher
        self._topic = topic

    def _get_headers(self, action: Action):
        """Kafka headers naming the action and the current correlation ID."""
        headers = [("action", action.value.encode("utf-8"))]
        corr_id = correlation_id_var.get()
        if corr_id and corr_id != "<not-set>":
            headers.append(("correlation_id", corr_id.encode("utf-8")))
        return headers

    async def dispatch(self, action: Action, payload: bytes) -> DispatchResult:
        outcome = self._validator.validate(action, payload)
        if not outcome.valid:
            logger.info(
                "Rejected payload failing schema validation.",
                extra={"action": action.value, "errors": list(outcome.errors)},
            )
            observe_validation_failure(action.value, outcome.error_code)
            observe_action_outcome(action.value, "NACK")
            return DispatchResult(
                status_code=status.HTTP_400_BAD_REQUEST,
                body=build_nack(outcome.error_type, outcome.error_code),
            )

        # PublishError propagates: a failed publish is a server fault, not a NACK.
        message_id = await asyncio.to_thread(
            self._publisher.publish, self._topic, payload, self._get_headers(action)
        )
        logger.info(
            "Payload published.",
            extra={"action": action.value, "topic": self._topic, "message_id": message_id},
        )
        observe_action_outcome(action.value, "ACK")
        return DispatchResult(status_code=status.HTTP_200_OK, body=build_ack(), message_id=message_id)


def get_action_dispatcher(request: Request) -> ActionDispatcher:
    """Dependency injector for the ActionDispatcher built at startup."""
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": "PUBLISHER_UNAVAILABLE", "message": "Message publisher is not initialized."},
        )
    return dispatcher

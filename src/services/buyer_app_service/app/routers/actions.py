import logging

from buyer_common.exceptions import PublishError
from buyer_common.logging_utils import action_var
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from app.ack_response import render
from app.actions import Action
from app.DTOs.ack_dto import AckResponse
from app.services.dispatch_service import ActionDispatcher, get_action_dispatcher

logger = logging.getLogger(__name__)
router = APIRouter()

# Carries the broker message id of the published payload; set only on ACK.
MESSAGE_ID_HEADER = "X-Message-Id"


def _make_action_handler(action: Action):
    async def handle_action(
        request: Request,
        dispatcher: ActionDispatcher = Depends(get_action_dispatcher),
    ):
        token = action_var.set(action.value)
        try:
            return await _handle(action, request, dispatcher)
        finally:
            action_var.reset(token)

    handle_action.__name__ = f"{action.value}_handler"
    return handle_action


async def _handle(action: Action, request: Request, dispatcher: ActionDispatcher) -> JSONResponse:
    payload = await request.body()
    logger.info("Received action request.", extra={"size_bytes": len(payload)})

    try:
        result = await dispatcher.dispatch(action, payload)
    except PublishError as exc:
        logger.error("Failed to publish action payload.", extra={"topic": exc.topic}, exc_info=exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"code": "PUBLISH_FAILED", "message": str(exc)},
        ) from exc

    response = JSONResponse(status_code=result.status_code, content=render(result.body))
    if result.message_id:
        response.headers[MESSAGE_ID_HEADER] = result.message_id
    return response


for _action in Action:
    router.add_api_route(
        f"/{_action.value}",
        _make_action_handler(_action),
        methods=["POST"],
        response_model=AckResponse,
        responses={
            status.HTTP_400_BAD_REQUEST: {"model": AckResponse, "description": "Payload failed schema validation."},
            status.HTTP_500_INTERNAL_SERVER_ERROR: {"description": "Payload could not be published."},
        },
        tags=["Buyer Actions"],
        summary=f"Accept a '{_action.value}' request",
        description=(
            f"What: Accept a buyer '{_action.value}' document.\n"
            "How: Validate against the action schema, then publish the raw body to the broker.\n"
            f"When: Returns ACK with the {MESSAGE_ID_HEADER} header once the broker confirms receipt."
        ),
    )

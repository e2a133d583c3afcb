# src/services/buyer_app_service/app/ack_response.py
from typing import Any, Dict

from app.DTOs.ack_dto import Ack, AckResponse, AckStatus, Error, MessageAck

JSON_SCHEMA_ERROR_TYPE = "JSON-SCHEMA-ERROR"
JSON_SCHEMA_ERROR_CODE = "30000"


def build_ack() -> AckResponse:
    return AckResponse(message=MessageAck(ack=Ack(status=AckStatus.ACK)))


def build_nack(error_type: str, error_code: str) -> AckResponse:
    return AckResponse(
        message=MessageAck(ack=Ack(status=AckStatus.NACK)),
        error=Error(type=error_type, code=error_code),
    )


def render(response: AckResponse) -> Dict[str, Any]:
    """Wire form of an AckResponse; absent fields are omitted, never null."""
    return response.model_dump(mode="json", exclude_none=True)

# src/services/buyer_app_service/app/DTOs/ack_dto.py
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AckStatus(str, Enum):
    ACK = "ACK"
    NACK = "NACK"


class Ack(BaseModel):
    status: AckStatus = Field(..., description="Acknowledgement status of the request.")


class MessageAck(BaseModel):
    ack: Ack


class Error(BaseModel):
    type: str = Field(..., description="Error family, e.g. JSON-SCHEMA-ERROR.", examples=["JSON-SCHEMA-ERROR"])
    code: str = Field(..., description="Stable numeric error code.", examples=["30000"])


class AckResponse(BaseModel):
    """
    Synchronous protocol response. ACK responses carry no error; NACK
    responses always carry one.
    """
    message: MessageAck
    error: Optional[Error] = None

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"message": {"ack": {"status": "ACK"}}},
                {
                    "message": {"ack": {"status": "NACK"}},
                    "error": {"type": "JSON-SCHEMA-ERROR", "code": "30000"},
                },
            ]
        }
    )

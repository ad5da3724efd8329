"""
HTTP response models for the Gateway API that are not chat payloads.

Chat requests and responses are the model_router wire models; this module
holds the error body and the model catalog shapes.
"""

import time
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorDetail(BaseModel):
    message: str = Field(..., description="Human-readable error message")
    type: str = Field(
        ..., description="invalid_request_error, rate_limit_error or api_error"
    )
    code: Optional[str] = Field(None, description="Machine-readable error code")


class ErrorResponse(BaseModel):
    """Error response body: {"error": {"message", "type", "code"}}."""

    error: ErrorDetail

    model_config = ConfigDict(use_enum_values=True)

    @classmethod
    def of(cls, message: str, error_type: str, code: Optional[str] = None) -> "ErrorResponse":
        return cls(error=ErrorDetail(message=message, type=error_type, code=code))

    @classmethod
    def invalid_request(cls, message: str, code: Optional[str] = None) -> "ErrorResponse":
        return cls.of(message, "invalid_request_error", code)

    @classmethod
    def api_error(cls, message: str, code: str = "provider_error") -> "ErrorResponse":
        return cls.of(message, "api_error", code)


class ModelCard(BaseModel):
    """One entry of the model listing."""

    id: str
    object: str = Field("model")
    created: int = Field(default_factory=lambda: int(time.time()))
    owned_by: str


class ModelList(BaseModel):
    object: str = Field("list")
    data: List[ModelCard] = Field(default_factory=list)

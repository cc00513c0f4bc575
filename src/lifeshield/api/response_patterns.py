# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Result[T, DomainError] to HTTP response mapping."""

from typing import Any, TypeVar

from attrs import asdict
from beartype import beartype
from fastapi import Response, status
from pydantic import BaseModel, ConfigDict, Field

from ..core.errors import (
    DomainError,
    InvalidInput,
    InvalidStateTransition,
    NotFound,
    PoisonMessage,
    TransientInfrastructureFailure,
)
from ..core.result_types import Result

T = TypeVar("T")

INTERNAL_ERROR_CODE = "INTERNAL_ERROR"

STATUS_BY_ERROR_CODE: dict[str, int] = {
    InvalidInput.code: status.HTTP_400_BAD_REQUEST,
    NotFound.code: status.HTTP_404_NOT_FOUND,
    InvalidStateTransition.code: status.HTTP_409_CONFLICT,
    TransientInfrastructureFailure.code: status.HTTP_503_SERVICE_UNAVAILABLE,
    PoisonMessage.code: 422,
}


class ErrorResponse(BaseModel):
    """Standardized error response for business logic failures."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    success: bool = Field(default=False, description="Always false for error responses")
    error: str = Field(..., description="Human-readable error message")
    error_code: str | None = Field(default=None, description="Machine-readable error code")
    details: dict[str, Any] | None = Field(default=None, description="Additional error context")


@beartype
def map_error_to_status(error: DomainError) -> int:
    """HTTP status for a business outcome; unknown codes are server errors."""
    return STATUS_BY_ERROR_CODE.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)


@beartype
def error_response(error: DomainError) -> ErrorResponse:
    details = {k: v for k, v in asdict(error).items() if k != "message" and v is not None}
    return ErrorResponse(
        error=error.message, error_code=error.code, details=details or None
    )


@beartype
def handle_result(
    result: Result[T, DomainError],
    response: Response,
    success_status: int = status.HTTP_200_OK,
) -> T | ErrorResponse:
    """Unwrap ``Ok`` with ``success_status`` or render ``Err`` as ``ErrorResponse``."""
    if result.is_err():
        error = result.unwrap_err()
        response.status_code = map_error_to_status(error)
        return error_response(error)

    response.status_code = success_status
    return result.unwrap()

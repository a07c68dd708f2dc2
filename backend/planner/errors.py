"""
Error codes and the error envelope shared by every API view.
"""

from enum import Enum
from typing import Any

from rest_framework import status
from rest_framework.response import Response


class ErrorCode(Enum):
    """Professional error codes for API responses."""
    SUCCESS = "SUCCESS"
    ERR_VALIDATION = "ERR_VALIDATION"
    ERR_NOT_FOUND = "ERR_NOT_FOUND"
    ERR_INVALID_LIST = "ERR_INVALID_LIST"
    ERR_INVALID_LABEL = "ERR_INVALID_LABEL"
    ERR_DEFAULT_LIST = "ERR_DEFAULT_LIST"
    ERR_INVALID_QUERY = "ERR_INVALID_QUERY"


class PlannerError(Exception):
    """
    A recoverable domain error raised by the service layer.

    Views turn it into the standard error envelope.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        http_status: int = status.HTTP_400_BAD_REQUEST
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status


class NotFoundError(PlannerError):

    def __init__(self, what: str):
        super().__init__(
            ErrorCode.ERR_NOT_FOUND,
            f"{what} not found",
            status.HTTP_404_NOT_FOUND
        )


def error_response(
    code: ErrorCode,
    message: str,
    http_status: int = status.HTTP_400_BAD_REQUEST,
    **extra: Any
) -> Response:
    """Build the {success, error_code, message} envelope."""
    payload = {
        'success': False,
        'error_code': code.value,
        'message': message,
    }
    payload.update(extra)
    return Response(payload, status=http_status)


def planner_error_response(error: PlannerError) -> Response:
    return error_response(error.code, error.message, error.http_status)

"""Error types and the REST framework exception handler for the API.

Every error response has the shape ``{"statusCode": n, "statusMessage": s}``.
"""

import logging

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class MissingParameterError(APIException):
    """A required identifier was not supplied."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Missing required parameter"


class InvalidPayloadError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request payload"


class OrderNotFoundError(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Order not found"


class NoteNotFoundError(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Note not found"


class ProjectNotFoundError(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Project not found"


class StoreQueryError(APIException):
    """The remote store rejected or failed a query."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Database error"


class StoreUnavailableError(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Supabase is not configured"


def _message(detail) -> str:
    if isinstance(detail, dict):
        if "detail" in detail:
            return _message(detail["detail"])
        return "; ".join(f"{k}: {_message(v)}" for k, v in detail.items())
    if isinstance(detail, (list, tuple)):
        return "; ".join(_message(d) for d in detail)
    return str(detail)


def custom_exception_handler(exc, context):
    """Render every error as ``statusCode``/``statusMessage``.

    Exceptions REST framework does not know about become a 500 carrying
    ``"Internal server error: <message>"``.
    """
    response = exception_handler(exc, context)

    if response is None:
        logger.exception("Unhandled API error: %s", exc)
        return Response(
            {
                "statusCode": status.HTTP_500_INTERNAL_SERVER_ERROR,
                "statusMessage": f"Internal server error: {exc}",
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        message = "Method not allowed"
    else:
        message = _message(response.data)
    response.data = {"statusCode": response.status_code, "statusMessage": message}
    return response

import logging

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

from inventory.exceptions import InventoryError

logger = logging.getLogger(__name__)


def _error_body(message, code, errors=None):
    body = {"message": message, "code": code}
    if errors is not None:
        body["errors"] = errors
    return body


def _message_and_code(exc):
    detail = exc.detail
    codes = exc.get_codes()
    # simplejwt packs {"detail", "code", "messages"} into a single exception
    if isinstance(detail, dict):
        message = detail.get("detail") or next(iter(detail.values()), "")
        code = codes.get("code") or codes.get("detail")
    elif isinstance(detail, list):
        message = detail[0] if detail else ""
        code = codes[0] if codes else None
    else:
        message, code = detail, codes
    if isinstance(message, list):
        message = message[0] if message else ""
    return str(message), str(code).upper() if isinstance(code, str) else "ERROR"


def api_exception_handler(exc, context):
    """
    Render every error as {"message", "code"} so clients can branch on the code.

    Domain errors carry their own status and code, DRF errors keep their status,
    anything else is logged and reported as a generic 500.
    """
    if isinstance(exc, InventoryError):
        return Response(_error_body(str(exc), exc.code), status=exc.status_code)

    if isinstance(exc, Http404):
        exc = exceptions.NotFound(*exc.args)
    elif isinstance(exc, DjangoPermissionDenied):
        exc = exceptions.PermissionDenied(*exc.args)

    response = exception_handler(exc, context)
    if response is not None:
        if isinstance(exc, ValidationError):
            response.data = _error_body("Invalid request payload", "INVALID_ARGUMENT", errors=exc.detail)
            return response
        response.data = _error_body(*_message_and_code(exc))
        return response

    view = context.get("view")
    logger.exception("Unhandled error in %s", view.__class__.__name__ if view else "request")
    return Response(
        _error_body("Internal server error", "INTERNAL"),
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )

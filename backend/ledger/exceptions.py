"""Error kinds raised by the ledger services and their HTTP rendering.

Services raise ``LedgerError`` subclasses and never build responses. The API
layer installs ``api_exception_handler`` so every failure reaches the client as

    {"error": {"kind": "<stable kind>", "message": "<text>", "field": "<optional>"}}
"""

import logging

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.db import IntegrityError
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger("sippy.api")


class LedgerError(Exception):
    kind = "internal"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None, field: str | None = None):
        self.message = message or self.default_message
        self.field = field
        super().__init__(self.message)

    def as_dict(self) -> dict:
        data = {"kind": self.kind, "message": self.message}
        if self.field:
            data["field"] = self.field
        return data


class NotFound(LedgerError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class InvalidInput(LedgerError):
    kind = "invalid_input"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid input"


class InvalidTransition(InvalidInput):
    default_message = "Invalid status transition"


class InsufficientPoints(LedgerError):
    kind = "insufficient_points"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Insufficient points"


class AlreadyUsed(LedgerError):
    kind = "already_used"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Voucher already used"


class Expired(LedgerError):
    kind = "expired"
    status_code = status.HTTP_410_GONE
    default_message = "Voucher expired"


class Conflict(LedgerError):
    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflicting update, retry with new input"


class Internal(LedgerError):
    pass


_DRF_KINDS = {
    exceptions.NotAuthenticated: "unauthenticated",
    exceptions.AuthenticationFailed: "unauthenticated",
    exceptions.PermissionDenied: "forbidden",
    exceptions.Throttled: "throttled",
    exceptions.NotFound: "not_found",
    Http404: "not_found",
    DjangoPermissionDenied: "forbidden",
    exceptions.MethodNotAllowed: "method_not_allowed",
    exceptions.ParseError: "invalid_input",
    exceptions.UnsupportedMediaType: "invalid_input",
}

_FORWARDED_HEADERS = ("WWW-Authenticate", "Retry-After", "Allow")


def _error_response(payload: dict, status_code: int, headers=None) -> Response:
    return Response({"error": payload}, status=status_code, headers=headers)


def _first_validation_error(detail, prefix=""):
    """Walk DRF's nested error detail and return (field, message) of the first entry."""
    if isinstance(detail, dict):
        for key, value in detail.items():
            if value:
                if key == "non_field_errors":
                    # errors about the container itself belong to the parent field
                    return _first_validation_error(value, prefix=prefix)
                return _first_validation_error(value, prefix=f"{prefix}{key}.")
    elif isinstance(detail, list):
        for index, value in enumerate(detail):
            if isinstance(value, (dict, list)):
                if value:
                    return _first_validation_error(value, prefix=f"{prefix}{index}.")
            else:
                return prefix.rstrip(".") or None, str(value)
    else:
        return prefix.rstrip(".") or None, str(detail)
    return prefix.rstrip(".") or None, "Invalid input"


def _view_name(context) -> str:
    view = context.get("view") if context else None
    return type(view).__name__ if view is not None else "view"


def api_exception_handler(exc, context):
    if isinstance(exc, LedgerError):
        if isinstance(exc, Internal):
            logger.error("Internal ledger error: %s", exc.message)
        return _error_response(exc.as_dict(), exc.status_code)

    if isinstance(exc, exceptions.ValidationError):
        field, message = _first_validation_error(exc.detail)
        payload = {"kind": "invalid_input", "message": message}
        if field:
            payload["field"] = field
        return _error_response(payload, status.HTTP_400_BAD_REQUEST)

    if isinstance(exc, IntegrityError):
        # a uniqueness race the serializer validators could not see
        logger.warning("Integrity error in %s: %s", _view_name(context), exc)
        return _error_response(Conflict().as_dict(), Conflict.status_code)

    response = exception_handler(exc, context)
    if response is not None:
        kind = "error"
        for exc_class, mapped in _DRF_KINDS.items():
            if isinstance(exc, exc_class):
                kind = mapped
                break
        detail = response.data.get("detail") if isinstance(response.data, dict) else None
        message = str(detail) if detail is not None else str(exc)
        headers = {
            name: response[name]
            for name in _FORWARDED_HEADERS
            if response.has_header(name)
        }
        return _error_response({"kind": kind, "message": message}, response.status_code, headers)

    logger.exception("Unhandled error in %s", _view_name(context))
    return _error_response(
        {"kind": Internal.kind, "message": Internal.default_message},
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )

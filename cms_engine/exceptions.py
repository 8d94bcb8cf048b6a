"""
Error taxonomy for django-cms-engine.

Every error is an ``APIException`` so that a rejected operation becomes an
HTTP response at the request boundary instead of a server fault.
"""
import logging

from django.db import IntegrityError as DatabaseIntegrityError
from django.db.models import ProtectedError
from rest_framework import exceptions, status
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class CMSError(exceptions.APIException):
    """Base class for all engine errors."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "The request could not be completed."
    default_code = "error"


class ValidationError(CMSError):
    """Malformed input."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid input."
    default_code = "invalid"


class PermissionDenied(CMSError):
    """The actor lacks the rights for the operation."""

    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You do not have permission to perform this action."
    default_code = "permission_denied"


class NotFound(CMSError):
    """A referenced entity does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found."
    default_code = "not_found"


class ConflictError(CMSError):
    """Uniqueness violation or an invalid state for the requested change."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = "The request conflicts with the current state."
    default_code = "conflict"


class IntegrityError(CMSError):
    """A change would break a structural invariant, e.g. a category cycle."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "The change would break data integrity."
    default_code = "integrity"


def exception_handler(exc, context):
    """
    DRF exception handler for the CMS API.

    Database uniqueness violations and protected deletes become 409 responses.
    Engine errors are logged before being rendered by DRF.
    """
    if isinstance(exc, DatabaseIntegrityError):
        logger.warning("Database integrity violation: %s", exc)
        exc = ConflictError("A record with these values already exists.")
    elif isinstance(exc, ProtectedError):
        logger.warning("Protected delete rejected: %s", exc)
        exc = ConflictError("The record is still referenced by other records.")

    if isinstance(exc, CMSError):
        view = context.get("view")
        logger.info(
            "%s rejected in %s: %s",
            exc.__class__.__name__,
            view.__class__.__name__ if view else "unknown view",
            exc.detail,
        )

    return drf_exception_handler(exc, context)

"""
Error taxonomy for the marketplace and the DRF exception handler that renders it.

Every failure the transaction engine can report is one of the classes below.
They subclass DRF's APIException so views can let them propagate and the
framework turns them into JSON responses with the matching status code.
"""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class MarketplaceError(APIException):
    """
    Base class for all domain errors.

    Attributes:
        status_code: HTTP status the error maps to
        default_code: Machine-readable code used when none is given
        code: The specific code of this instance (e.g. 'listing_sold')
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'The request could not be completed.'
    default_code = 'marketplace_error'

    def __init__(self, detail=None, code=None):
        super().__init__(detail=detail, code=code)
        self.code = code or self.default_code

    @property
    def message(self):
        return str(self.detail)


class NotFoundError(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'The requested resource was not found.'
    default_code = 'not_found'


class ForbiddenError(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You do not have permission to perform this action.'
    default_code = 'forbidden'


class InvalidOperationError(MarketplaceError):
    """Raised when a state-machine precondition does not hold."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'This operation is not allowed in the current state.'
    default_code = 'invalid_operation'


class ValidationError(MarketplaceError):
    """Raised for malformed input (bad rating, non-positive price, blank text)."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid input.'
    default_code = 'invalid'

    @classmethod
    def from_django(cls, exc):
        """
        Convert a django.core.exceptions.ValidationError raised by full_clean().

        Args:
            exc: Django ValidationError instance

        Returns:
            ValidationError: Domain error carrying the field messages
        """
        if hasattr(exc, 'error_dict'):
            detail = exc.message_dict
        else:
            detail = exc.messages
        code = getattr(exc, 'code', None) or cls.default_code
        return cls(detail=detail, code=code)


class ConflictError(MarketplaceError):
    """Raised when a row changed between read and write (optimistic version check)."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The record was modified by another request. Reload and try again.'
    default_code = 'concurrency_conflict'


class UnexpectedError(MarketplaceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'An unexpected error occurred. Please try again later.'
    default_code = 'unexpected_error'


def marketplace_exception_handler(exc, context):
    """
    DRF exception handler used for every API view.

    Domain errors and DRF's own exceptions are rendered by the stock handler.
    Stray Django ValidationErrors become 400 responses. Anything else is
    logged with its traceback and reported as a generic 500 so internals
    never leak to the client.

    Args:
        exc: Exception raised by the view
        context: Dict with 'view' and 'request'

    Returns:
        Response: Rendered error response
    """
    if isinstance(exc, DjangoValidationError):
        exc = ValidationError.from_django(exc)

    response = exception_handler(exc, context)

    if response is not None:
        if isinstance(exc, MarketplaceError):
            detail = exc.detail if isinstance(exc.detail, (dict, list)) else str(exc.detail)
            response.data = {'detail': detail, 'code': exc.code}
        return response

    view = context.get('view')
    request = context.get('request')
    user = getattr(request, 'user', None)
    logger.error(
        f"Unhandled error in {view.__class__.__name__ if view else 'unknown view'}. "
        f"Path: {getattr(request, 'path', '?')}, "
        f"User ID: {getattr(user, 'id', None)}, Error: {exc}",
        exc_info=exc
    )

    return Response(
        {'detail': UnexpectedError.default_detail, 'code': UnexpectedError.default_code},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )

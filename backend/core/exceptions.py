"""
Error taxonomy for stock reconciliation and the DRF exception handler that
renders every error in the standard response envelope.
"""
import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler

from .responses import envelope

logger = logging.getLogger(__name__)


class ServiceError(APIException):
    """Base class for user-facing service errors carrying an optional payload"""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Request could not be processed.'
    default_code = 'error'

    def __init__(self, message=None, data=None):
        self.message = message or self.default_detail
        self.data = data
        super().__init__(detail=self.message, code=self.default_code)


class ValidationError(ServiceError):
    """Malformed input, rejected before any transaction opens"""
    default_detail = 'Invalid input.'
    default_code = 'invalid'


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found.'
    default_code = 'not_found'


class ProductNotResolvedError(NotFoundError):
    """No product matched a line item at any step of the resolution chain"""
    default_detail = 'Product could not be resolved.'
    default_code = 'product_not_resolved'

    def __init__(self, label, message=None):
        self.label = label
        super().__init__(
            message or f'No product found for line item "{label}"',
            data={'line_item': label},
        )


class AmbiguousReferenceError(ServiceError):
    """A loose reference matched more than one product"""
    default_detail = 'Line item matches more than one product.'
    default_code = 'ambiguous_reference'

    def __init__(self, label, candidates):
        self.label = label
        self.candidates = candidates
        super().__init__(
            f'Line item "{label}" matches {len(candidates)} products; use a product code',
            data={'line_item': label, 'candidates': candidates},
        )


class InsufficientStockError(ServiceError):
    """One or more lines need more usable stock than is available"""
    default_detail = 'Insufficient stock.'
    default_code = 'insufficient_stock'

    def __init__(self, shortfalls, message=None):
        self.shortfalls = shortfalls
        if not message:
            names = ', '.join(s['product_id'] or s['line'] for s in shortfalls)
            message = f'Insufficient stock for: {names}'
        super().__init__(message, data=shortfalls)


class IdentifierCollisionError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Could not allocate a unique identifier, please retry.'
    default_code = 'identifier_collision'


def _flatten_detail(detail):
    """Pick a human readable message out of DRF error details"""
    if isinstance(detail, dict):
        for key, value in detail.items():
            message = _flatten_detail(value)
            if key in ('detail', 'non_field_errors'):
                return message
            return f'{key}: {message}'
        return ''
    if isinstance(detail, list):
        return _flatten_detail(detail[0]) if detail else ''
    return str(detail)


def api_exception_handler(exc, context):
    """
    REST_FRAMEWORK['EXCEPTION_HANDLER'].

    Wraps DRF's default handler so every error response uses the
    {status, success, message, data} envelope.
    """
    if isinstance(exc, DjangoValidationError):
        payload = exc.message_dict if hasattr(exc, 'error_dict') else exc.messages
        exc = ValidationError(_flatten_detail(payload), data=payload)

    response = exception_handler(exc, context)
    if response is None:
        view = context.get('view')
        logger.exception(f"Unhandled error in {view.__class__.__name__ if view else 'view'}: {exc}")
        return None

    if isinstance(exc, ServiceError):
        message = exc.message
        data = exc.data
    else:
        message = _flatten_detail(response.data)
        data = response.data

    if response.status_code >= 500:
        logger.error(f"Server error {response.status_code}: {message}")
    else:
        logger.info(f"Request failed with {response.status_code}: {message}")

    response.data = envelope(response.status_code, message, data, success=False)
    return response

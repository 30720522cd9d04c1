import logging

from django.db import DatabaseError
from django.http import Http404
from django.core.exceptions import PermissionDenied
from rest_framework import status
from rest_framework import exceptions as drf_exceptions
from rest_framework.response import Response

logger = logging.getLogger(__name__)


class HRMSError(Exception):
    """Base error raised by services; rendered as the JSON error envelope."""
    status_code = status.HTTP_400_BAD_REQUEST
    error = 'Bad request'

    def __init__(self, message, details=None, error=None, extra=None):
        super().__init__(message)
        self.message = message
        self.details = details
        self.extra = extra or {}
        if error:
            self.error = error


class ValidationFailed(HRMSError):
    error = 'Validation failed'


class Forbidden(HRMSError):
    status_code = status.HTTP_403_FORBIDDEN
    error = 'Forbidden'


class NotFound(HRMSError):
    status_code = status.HTTP_404_NOT_FOUND
    error = 'Not found'


class PreconditionFailed(HRMSError):
    error = 'Precondition failed'


class LifecycleError(HRMSError):
    error = 'Invalid state'


class UpstreamError(HRMSError):
    status_code = status.HTTP_502_BAD_GATEWAY
    error = 'Upstream error'


def _envelope(error, message=None, details=None, code=None, extra=None):
    body = {'error': error}
    if message is not None:
        body['message'] = message
    if details is not None:
        body['details'] = details
    if code is not None:
        body['code'] = code
    if extra:
        body.update(extra)
    return body


def hrms_exception_handler(exc, context):
    """
    REST_FRAMEWORK['EXCEPTION_HANDLER'].

    Every failure leaves the API as {error, message?, details?, code?}.
    """
    view = context.get('view')
    view_name = view.__class__.__name__ if view else 'unknown'

    if isinstance(exc, HRMSError):
        return Response(
            _envelope(exc.error, exc.message, exc.details, extra=exc.extra),
            status=exc.status_code,
        )

    if isinstance(exc, drf_exceptions.ValidationError):
        return Response(
            _envelope('Validation failed', 'Invalid request data', details=exc.detail),
            status=status.HTTP_400_BAD_REQUEST,
        )

    if isinstance(exc, (drf_exceptions.NotAuthenticated, drf_exceptions.AuthenticationFailed)):
        return Response(
            _envelope('Unauthorized', str(exc.detail)),
            status=exc.status_code,
            headers={'WWW-Authenticate': 'Bearer'},
        )

    if isinstance(exc, (drf_exceptions.PermissionDenied, PermissionDenied)):
        detail = getattr(exc, 'detail', None) or str(exc) or 'Permission denied'
        return Response(_envelope('Forbidden', str(detail)), status=status.HTTP_403_FORBIDDEN)

    if isinstance(exc, (Http404, drf_exceptions.NotFound)):
        return Response(_envelope('Not found', str(exc) or None), status=status.HTTP_404_NOT_FOUND)

    if isinstance(exc, drf_exceptions.APIException):
        return Response(_envelope(exc.default_code.replace('_', ' ').capitalize(), str(exc.detail)),
                        status=exc.status_code)

    if isinstance(exc, DatabaseError):
        code = getattr(getattr(exc, '__cause__', None), 'pgcode', None)
        logger.exception(f"Database error in {view_name}: {exc}")
        return Response(
            _envelope('Database error', 'The operation could not be completed', str(exc), code),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    logger.exception(f"Unhandled error in {view_name}: {exc}")
    return Response(
        _envelope('Internal server error', str(exc)),
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )

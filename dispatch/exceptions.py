"""
Typed errors raised by the dispatch engine and the API exception handler.

The engine raises these from its service functions; the handler below
renders them (and every other DRF exception) in the ``{'ok': False,
'error': {...}}`` envelope the clients expect.
"""
import functools
import logging

from django.db import DatabaseError
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class DispatchError(exceptions.APIException):
    """Base class for errors raised by the dispatch engine."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'dispatch error'
    default_code = 'dispatch_error'


class NotFound(DispatchError):
    """Entity absent, or not owned by the acting party."""
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'not found'
    default_code = 'not_found'


class Conflict(DispatchError):
    """A state-transition precondition does not hold."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'conflict'
    default_code = 'conflict'


class ValidationError(DispatchError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'invalid input'
    default_code = 'validation_error'


class InternalError(DispatchError):
    """Storage failure surfaced to the caller; never retried here."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'internal error'
    default_code = 'internal_error'


def translate_storage_errors(operation: str):
    """Re-raise storage failures from a service call as :class:`InternalError`.

    Apply outside ``transaction.atomic`` so the rollback has already
    happened when the error is translated.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except DatabaseError as exc:
                logger.exception("storage failure while trying to %s", operation)
                raise InternalError(f"failed to {operation}") from exc
        return wrapper
    return decorator


def api_exception_handler(exc, context):
    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception('unhandled error in %s', context.get('view').__class__.__name__, exc_info=exc)
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': str(exc)}}, status=500)
    if isinstance(exc, DispatchError):
        return Response({'ok': False, 'error': {'code': exc.default_code, 'message': str(exc.detail)}},
                        status=resp.status_code)
    # normalize response
    detail = None
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = str(resp.data)
    return Response({'ok': False, 'error': {'code': 'api_error', 'message': detail}}, status=resp.status_code)

"""
Project-wide DRF exception handler.

Database and token errors are translated into the ``{success, data,
message}`` envelope with a generic message so that raw driver output
never reaches the client.  Anything unrecognised becomes a 500 and is
logged with its traceback.
"""
from __future__ import annotations

import logging
import re

from django.core.exceptions import ObjectDoesNotExist, ValidationError as DjangoValidationError
from django.db import DataError, IntegrityError
from rest_framework import exceptions as drf_exc
from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError

from . import responses

logger = logging.getLogger(__name__)

UNIQUE_CODES = {'23505'}
FOREIGN_KEY_CODES = {'23503'}
# raised by the ORM when a lookup value cannot be converted, e.g. id="abc"
FIELD_LOOKUP_RE = re.compile(r"^Field '[^']+' expected ")


class InvalidInput(ValueError):
    """Raised by request parsing helpers for malformed ids, dates or times."""


def _sqlstate(exc: Exception) -> str | None:
    cause = exc.__cause__ or exc
    return getattr(cause, 'pgcode', None) or getattr(cause, 'sqlstate', None)


def _duplicate_fields(message: str) -> str | None:
    # postgres: Key (email)=(a@b.c) already exists.
    m = re.search(r'Key \(([^)]+)\)=', message)
    if m:
        return m.group(1)
    # sqlite: UNIQUE constraint failed: clinic_user.email, clinic_user.x
    m = re.search(r'UNIQUE constraint failed: (.+)$', message)
    if m:
        return ', '.join(part.strip().split('.')[-1] for part in m.group(1).split(','))
    return None


def _integrity_response(exc: IntegrityError):
    code = _sqlstate(exc)
    message = str(exc)
    lowered = message.lower()
    if code in UNIQUE_CODES or 'unique constraint' in lowered or 'duplicate key' in lowered:
        fields = _duplicate_fields(message)
        if fields:
            return responses.bad_request(f'Duplicate value: {fields} already exists')
        return responses.bad_request('Duplicate entry detected')
    if code in FOREIGN_KEY_CODES or 'foreign key' in lowered:
        return responses.bad_request('Related record not found (foreign key constraint)')
    return responses.bad_request('Database constraint violation')


def _token_message(exc: Exception) -> str:
    text = str(getattr(exc, 'detail', exc)).lower()
    return 'Token expired' if 'expired' in text else 'Invalid token'


def api_exception_handler(exc, context):
    if isinstance(exc, IntegrityError):
        return _integrity_response(exc)
    if isinstance(exc, (InvalidInput, DataError)):
        return responses.bad_request('Invalid input syntax')
    if isinstance(exc, (ValueError, TypeError)) and FIELD_LOOKUP_RE.match(str(exc)):
        return responses.bad_request('Invalid input syntax')
    if isinstance(exc, DjangoValidationError):
        errors = exc.message_dict if hasattr(exc, 'error_dict') else exc.messages
        return responses.bad_request('Validation failed', errors=errors)
    if isinstance(exc, ObjectDoesNotExist):
        return responses.not_found('Record not found')
    if isinstance(exc, (InvalidToken, TokenError)):
        return responses.unauthorized(_token_message(exc))

    resp = drf_exception_handler(exc, context)
    if resp is None:
        view = context.get('view') if context else None
        logger.exception('Unhandled error in %s', getattr(view, '__name__', None) or view.__class__.__name__)
        return responses.error(str(exc) or 'Internal server error')

    if isinstance(exc, drf_exc.ValidationError):
        result = responses.error('Validation failed', resp.status_code, errors=resp.data)
    elif isinstance(exc, drf_exc.NotFound):
        result = responses.error('Record not found', resp.status_code)
    elif isinstance(exc, drf_exc.NotAuthenticated):
        result = responses.error('Not authorized, no token', resp.status_code)
    elif isinstance(exc, drf_exc.AuthenticationFailed):
        result = responses.error('Not authorized', resp.status_code)
    else:
        detail = resp.data.get('detail') if isinstance(resp.data, dict) else resp.data
        result = responses.error(str(detail), resp.status_code)
    # keep Retry-After / WWW-Authenticate set by DRF
    for header in ('Retry-After', 'WWW-Authenticate', 'Allow'):
        if header in resp:
            result[header] = resp[header]
    return result

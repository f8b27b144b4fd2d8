"""
Uniform ``{success, data, message}`` response helpers.

Every API view returns through one of these so the frontend can rely
on a single envelope shape for both success and failure.
"""
from __future__ import annotations

from typing import Any, Optional

from rest_framework import status as http
from rest_framework.response import Response


def _envelope(success: bool, data: Any, message: str, status: int, errors: Any = None) -> Response:
    body: dict[str, Any] = {'success': success, 'data': data, 'message': message}
    if errors is not None:
        body['errors'] = errors
    return Response(body, status=status)


def success(data: Any = None, message: str = 'Success', status: int = http.HTTP_200_OK) -> Response:
    return _envelope(True, data, message, status)


def created(data: Any = None, message: str = 'Resource created successfully') -> Response:
    return _envelope(True, data, message, http.HTTP_201_CREATED)


def updated(data: Any = None, message: str = 'Resource updated successfully') -> Response:
    return _envelope(True, data, message, http.HTTP_200_OK)


def deleted(message: str = 'Resource deleted successfully') -> Response:
    return _envelope(True, None, message, http.HTTP_200_OK)


def error(message: str = 'Internal server error', status: int = http.HTTP_500_INTERNAL_SERVER_ERROR,
          errors: Optional[Any] = None) -> Response:
    return _envelope(False, None, message, status, errors)


def bad_request(message: str = 'Bad request', errors: Optional[Any] = None) -> Response:
    return error(message, http.HTTP_400_BAD_REQUEST, errors)


def unauthorized(message: str = 'Not authorized') -> Response:
    return error(message, http.HTTP_401_UNAUTHORIZED)


def forbidden(message: str = 'Forbidden') -> Response:
    return error(message, http.HTTP_403_FORBIDDEN)


def not_found(message: str = 'Resource not found') -> Response:
    return error(message, http.HTTP_404_NOT_FOUND)


def role_forbidden(user) -> Response:
    return forbidden(f"Role {getattr(user, 'role', None)} is not authorized to access this resource")

"""Error taxonomy rendered by the unified JSON error handler.

Every class is a werkzeug HTTPException so routes can simply ``raise`` and Flask
dispatches to the handler registered in ``create_app``. ``error`` is the stable
machine-readable code returned to clients, ``description`` the human message.
"""
from __future__ import annotations
from typing import Any, Dict, Optional
from werkzeug.exceptions import HTTPException


class ApiError(HTTPException):
    code = 400
    error = 'Bad Request'

    def __init__(self, message: Optional[str] = None, error: Optional[str] = None, extra: Optional[Dict[str, Any]] = None):
        super().__init__(description=message or error or self.error)
        if error:
            self.error = error
        self.extra = extra or {}

    def to_dict(self) -> Dict[str, Any]:
        payload = {'error': self.error, 'message': self.description}
        payload.update(self.extra)
        return payload


class ValidationError(ApiError):
    code = 400
    error = 'VALIDATION_ERROR'


class Unauthorized(ApiError):
    code = 401
    error = 'Unauthorized'


class InvalidCredentials(Unauthorized):
    error = 'Invalid credentials'


class Forbidden(ApiError):
    code = 403
    error = 'Forbidden'


class NotFound(ApiError):
    code = 404
    error = 'NOT_FOUND'


class Conflict(ApiError):
    code = 409
    error = 'CONFLICT'


class DuplicateEmail(Conflict):
    error = 'Email already in use'


class DuplicateImei(Conflict):
    error = 'DUP_IMEI'


class BusinessRuleError(ApiError):
    code = 400
    error = 'BUSINESS_RULE'


class PaidExceedsAmount(BusinessRuleError):
    error = 'PAID_TOO_HIGH'


class NotAvailable(BusinessRuleError):
    error = 'NOT_AVAILABLE_OR_NOT_FOUND'


class NotSold(BusinessRuleError):
    error = 'NOT_SOLD'


class InternalError(ApiError):
    code = 500
    error = 'Internal server error'


__all__ = [
    'ApiError', 'ValidationError', 'Unauthorized', 'InvalidCredentials', 'Forbidden', 'NotFound',
    'Conflict', 'DuplicateEmail', 'DuplicateImei', 'BusinessRuleError', 'PaidExceedsAmount',
    'NotAvailable', 'NotSold', 'InternalError',
]

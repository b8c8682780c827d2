"""
Error taxonomy for the referral protocol and the unified API error handler.

Service functions raise these; views either catch them explicitly or let
``api_exception_handler`` render them as ``{'ok': False, 'error': {...}}``.
Each domain error also derives from the matching builtin so callers that
only know ``PermissionError`` / ``ValueError`` / ``LookupError`` keep working.
"""
from __future__ import annotations

from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler


class ReferralError(Exception):
    code = 'referral_error'
    http_status = 500

    def __init__(self, message: str = '', *, code: str | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code
        if code:
            self.code = code

    def as_payload(self) -> dict:
        return {'code': self.code, 'message': self.message}


class ValidationError(ReferralError, ValueError):
    """Malformed or insufficient request.  Carries the shortage breakdown."""
    code = 'validation'
    http_status = 400

    def __init__(self, message: str = '', *, shortages=None, code: str | None = None):
        super().__init__(message, code=code)
        self.shortages = list(shortages or [])

    def as_payload(self) -> dict:
        payload = super().as_payload()
        if self.shortages:
            payload['shortages'] = [s.as_dict() for s in self.shortages]
        return payload


class InvalidTransition(ValidationError):
    """The referral already left ``pending``."""
    code = 'invalid_transition'
    http_status = 409


class AccessDenied(ReferralError, PermissionError):
    code = 'forbidden'
    http_status = 403


class NotFound(ReferralError, LookupError):
    code = 'not_found'
    http_status = 404


class AllocationError(ReferralError):
    code = 'allocation_failed'
    http_status = 409


class ConcurrencyConflict(ReferralError):
    code = 'conflict'
    http_status = 503


class TransportError(ReferralError):
    code = 'transport_error'
    http_status = 503


def api_exception_handler(exc, context):
    if isinstance(exc, ReferralError):
        return Response({'ok': False, 'error': exc.as_payload()}, status=exc.http_status)
    resp = drf_exception_handler(exc, context)
    if resp is None:
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': str(exc)}}, status=500)
    # normalize response
    detail = None
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = str(resp.data)
    return Response({'ok': False, 'error': {'code': 'api_error', 'message': detail}}, status=resp.status_code)

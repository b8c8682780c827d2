"""
Custom authentication backend for token-based auth.

Kept separate from any view definitions so that importing it while the
REST framework initialises its authentication classes never pulls in
the views.
"""
from __future__ import annotations

from rest_framework import authentication


class TokenAuthentication(authentication.TokenAuthentication):
    """Token authentication using the ``Token`` keyword.

    This subclass exists to provide a stable import path for the project's
    configuration and to allow later customisation.
    """

    keyword = 'Token'

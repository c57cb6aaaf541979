"""
Error taxonomy for the identity_access bounded context.

Every error carries a stable `code` so the web adapter can map it onto a
response without string matching, and a short user-facing `detail`.
"""
from __future__ import annotations


class IdentityError(Exception):
    """Base class for authentication/authorization failures."""

    code = "identity_error"
    detail = "Authentication failed."

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.detail)
        if detail:
            self.detail = detail


class InvalidCredentials(IdentityError):
    code = "invalid_credentials"
    detail = "Invalid email or password. Please check your credentials and try again."


class EmailNotConfirmed(IdentityError):
    code = "email_not_confirmed"
    detail = "Please confirm your email address before signing in."


class RateLimited(IdentityError):
    code = "rate_limited"
    detail = "Too many attempts. Please wait a few minutes before trying again."


class EmailInUse(IdentityError):
    code = "email_in_use"
    detail = "This email is already registered. Please try signing in instead."


class WeakPassword(IdentityError):
    code = "weak_password"
    detail = "Password must be at least 6 characters long."


class InvalidEmail(IdentityError):
    code = "invalid_email"
    detail = "Please enter a valid email address."


class ProviderNotEnabled(IdentityError):
    code = "provider_not_enabled"
    detail = "Federated sign-in is not configured. Please use email/password login."


class NetworkError(IdentityError):
    code = "network_error"
    detail = "The identity service is unreachable. Please try again."


class PermissionDenied(IdentityError):
    """Role mismatch; surfaced as a redirect, never as a message."""

    code = "permission_denied"
    detail = "Not allowed."


__all__ = [
    "IdentityError",
    "InvalidCredentials",
    "EmailNotConfirmed",
    "RateLimited",
    "EmailInUse",
    "WeakPassword",
    "InvalidEmail",
    "ProviderNotEnabled",
    "NetworkError",
    "PermissionDenied",
]

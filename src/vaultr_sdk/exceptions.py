"""
Exception classes for the vaultr SDK.
"""

from typing import List, Optional


class VaultError(Exception):
    """Base exception for the vaultr SDK."""

    def __init__(self, message: str, error_code: str = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class ValidationError(VaultError):
    """An argument failed client-side validation; no request was sent."""
    pass


class CredentialMissing(VaultError):
    """No credential was supplied and none is configured."""
    pass


class AuthenticationError(VaultError):
    """The server rejected a credential during login."""
    pass


class UnsupportedOperation(VaultError):
    """The requested feature is not implemented by this client."""
    pass


class VaultConnectionError(VaultError):
    """Connection to the vault server failed."""
    pass


class ServerError(VaultError):
    """The server answered with a non-2xx status."""

    def __init__(
        self,
        message: str,
        status_code: int,
        errors: Optional[List[str]] = None,
        error_code: str = None,
    ):
        super().__init__(message, error_code)
        self.status_code = status_code
        self.errors = errors or []


class InvalidPath(ServerError):
    """Nothing exists at the requested path (HTTP 404)."""
    pass


class PermissionDenied(ServerError):
    """The token lacks permission, or is invalid or expired (HTTP 403)."""
    pass


class RateLimitError(ServerError):
    """Rate limit exceeded (HTTP 429)."""
    pass


class VaultSealed(ServerError):
    """The server is sealed or unavailable (HTTP 503)."""
    pass

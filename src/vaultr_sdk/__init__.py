"""
vaultr SDK

Python client for the HashiCorp Vault HTTP API.
Provides token management, authentication methods and a cached login flow.
"""

from .client import VaultClient
from .auth import AuthMethod, UserpassAuth, GithubAuth, AppRoleAuth, JWTAuth, CertAuth
from .cache import CacheKey, TokenCache, session_cache
from .exceptions import (
    VaultError,
    ValidationError,
    CredentialMissing,
    AuthenticationError,
    UnsupportedOperation,
    VaultConnectionError,
    ServerError,
    InvalidPath,
    PermissionDenied,
    RateLimitError,
    VaultSealed,
)
from .models import Token, AuthInfo, TokenInfo, WrapInfo, TokenRole, AuthMount
from .config import ClientConfig
from .registry import AUTH_METHODS, VaultAuth
from .token import TokenManager

__version__ = "1.0.0"

__all__ = [
    "VaultClient",
    "AuthMethod",
    "UserpassAuth",
    "GithubAuth",
    "AppRoleAuth",
    "JWTAuth",
    "CertAuth",
    "TokenManager",
    "VaultAuth",
    "AUTH_METHODS",
    "CacheKey",
    "TokenCache",
    "session_cache",
    "VaultError",
    "ValidationError",
    "CredentialMissing",
    "AuthenticationError",
    "UnsupportedOperation",
    "VaultConnectionError",
    "ServerError",
    "InvalidPath",
    "PermissionDenied",
    "RateLimitError",
    "VaultSealed",
    "Token",
    "AuthInfo",
    "TokenInfo",
    "WrapInfo",
    "TokenRole",
    "AuthMount",
    "ClientConfig",
]

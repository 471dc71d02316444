"""
Administration of the server's authentication methods, and the registry of
auth methods this client knows how to log in with.
"""

import logging
from typing import Dict, List, Optional, Type

from .auth import AppRoleAuth, AuthMethod, CertAuth, GithubAuth, JWTAuth, UserpassAuth
from .exceptions import UnsupportedOperation, ValidationError
from .models import AuthEnableRequest, AuthMount, validate_name, validate_request
from .token import TokenManager
from .transport import VaultTransport

logger = logging.getLogger(__name__)

AUTH_METHODS: Dict[str, Type[AuthMethod]] = {
    cls.method: cls
    for cls in (TokenManager, UserpassAuth, GithubAuth, AppRoleAuth, JWTAuth, CertAuth)
}


class VaultAuth:
    """List, enable and disable auth backends; reach each built-in method."""

    def __init__(self, transport: VaultTransport):
        self._transport = transport

    def methods(self) -> List[str]:
        """Names of the auth methods this client supports."""
        return sorted(AUTH_METHODS)

    def get(self, method: str, mount: Optional[str] = None) -> AuthMethod:
        """Build the auth method ``method``, bound to ``mount`` (default: its name)."""
        try:
            cls = AUTH_METHODS[method]
        except (KeyError, TypeError):
            raise ValidationError(
                f"Unknown auth method '{method}'; must be one of {', '.join(self.methods())}"
            ) from None
        if mount is not None:
            mount = validate_name(mount, "mount")
        return cls(self._transport, mount)

    # Built together with their transport on each access

    @property
    def token(self) -> TokenManager:
        return TokenManager(self._transport)

    @property
    def userpass(self) -> UserpassAuth:
        return UserpassAuth(self._transport)

    @property
    def github(self) -> GithubAuth:
        return GithubAuth(self._transport)

    @property
    def approle(self) -> AppRoleAuth:
        return AppRoleAuth(self._transport)

    @property
    def jwt(self) -> JWTAuth:
        return JWTAuth(self._transport)

    @property
    def cert(self) -> CertAuth:
        return CertAuth(self._transport)

    # Backend administration

    def list(self, detailed: bool = False) -> List[AuthMount]:
        """List enabled auth backends, one row per mount."""
        if detailed:
            raise UnsupportedOperation("Detailed auth information not supported")
        res = self._transport.get("/sys/auth")
        mounts = res.get("data", res)
        return [
            AuthMount(
                path=path,
                type=info.get("type", ""),
                accessor=info.get("accessor") or "",
                description=info.get("description") or "",
            )
            for path, info in mounts.items()
            if isinstance(info, dict)
        ]

    def enable(
        self,
        type: str,
        description: Optional[str] = None,
        local: bool = False,
        path: Optional[str] = None,
        plugin_name: Optional[str] = None,
    ) -> None:
        """
        Enable an auth backend.

        Args:
            type: Backend type, e.g. ``userpass`` or ``github``
            description: Human-friendly description, shown by ``list``
            local: Only mount on the local cluster (not replicated)
            path: Mount path; defaults to ``type``
            plugin_name: Plugin to use for a plugin backend
        """
        body = validate_request(
            AuthEnableRequest,
            type=type,
            description=description if description is not None else "",
            local=local,
            plugin_name=plugin_name,
        ).body()
        path = validate_name(path, "path") if path is not None else body["type"]
        logger.info(f"Enabling {body['type']} auth at '{path}'")
        self._transport.post(f"/sys/auth/{path.strip('/')}", body=body)

    def disable(self, path: str) -> None:
        """Disable the auth backend mounted at ``path``; irreversible."""
        path = validate_name(path, "path")
        logger.info(f"Disabling auth at '{path}'")
        self._transport.delete(f"/sys/auth/{path.strip('/')}")

"""
Token management.

Tokens are the core credential of the server: every other auth method ends
by issuing one. Whenever a token is created an *accessor* is created with
it, which can be used to look up the token's properties, query its
capabilities and revoke it, but never to recover the token itself or to
log in with it.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from .auth import AuthMethod
from .exceptions import AuthenticationError, CredentialMissing, InvalidPath
from .models import (
    AuthInfo,
    CapabilitiesRequest,
    Token,
    TokenCreateRequest,
    TokenInfo,
    TokenRenewRequest,
    TokenRole,
    TokenRoleRequest,
    WrapInfo,
    validate_name,
    validate_request,
)
from .transport import list_keys

logger = logging.getLogger(__name__)

Paths = Union[str, List[str]]


class TokenManager(AuthMethod):
    """Create, inspect, renew and revoke tokens, and manage token roles."""

    method = "token"

    def list(self) -> List[str]:
        """List the accessors of all tokens."""
        return list_keys(self._transport.list("/auth/token/accessors"))

    # Creation

    def create(
        self,
        role_name: Optional[str] = None,
        id: Optional[str] = None,
        policies: Optional[Paths] = None,
        meta: Optional[Dict[str, str]] = None,
        orphan: bool = False,
        no_default_policy: bool = False,
        max_ttl: Union[int, str, None] = None,
        display_name: Optional[str] = None,
        num_uses: int = 0,
        period: Optional[str] = None,
        ttl: Optional[str] = None,
        wrap_ttl: Optional[str] = None,
    ) -> Token:
        """
        Create a new token.

        Args:
            role_name: Create the token against this token role
            id: Token value to use instead of a generated one (root only)
            policies: Policies to attach; a subset of the caller's unless root
            meta: String metadata, recorded in the audit log
            orphan: Create the token without a parent
            no_default_policy: Do not attach the ``default`` policy
            max_ttl: Hard upper bound on the token's lifetime
            display_name: Name for the token
            num_uses: Number of uses, 0 for unlimited
            period: Make a periodic token, renewable indefinitely by this period
            ttl: Initial TTL
            wrap_ttl: Wrap the response in a wrapping token with this TTL

        Returns:
            The token, with ``info`` holding its accessor and policies. With
            ``wrap_ttl`` the wrapping token is returned instead, with ``info``
            a ``WrapInfo``; unwrap it with ``VaultClient.unwrap``.
        """
        request = validate_request(
            TokenCreateRequest,
            role_name=role_name,
            wrap_ttl=wrap_ttl,
            id=id,
            policies=policies,
            meta=meta,
            no_parent=orphan,
            no_default_policy=no_default_policy,
            explicit_max_ttl=max_ttl,
            display_name=display_name,
            num_uses=num_uses,
            period=period,
            ttl=ttl,
        )
        path = "/auth/token/create"
        if request.role_name is not None:
            path = f"{path}/{request.role_name}"

        res = self._transport.post(path, body=request.body(), wrap_ttl=request.wrap_ttl)
        if request.wrap_ttl is None:
            return Token.from_auth(res["auth"])
        wrap_info = WrapInfo.model_validate(res["wrap_info"])
        return Token(wrap_info.token, wrap_info)

    # Lookup

    def lookup(self, token: str) -> TokenInfo:
        body = {"token": validate_name(token, "token")}
        res = self._transport.post("/auth/token/lookup", body=body)
        return TokenInfo.model_validate(res["data"])

    def lookup_self(self) -> TokenInfo:
        res = self._transport.get("/auth/token/lookup-self")
        return TokenInfo.model_validate(res["data"])

    def lookup_accessor(self, accessor: str) -> TokenInfo:
        body = {"accessor": validate_name(accessor, "accessor")}
        res = self._transport.post("/auth/token/lookup-accessor", body=body)
        return TokenInfo.model_validate(res["data"])

    # Renewal

    def renew(self, token: str, increment: Optional[str] = None) -> AuthInfo:
        """Renew a token; without ``increment`` the server picks the step."""
        body = validate_request(
            TokenRenewRequest, token=validate_name(token, "token"), increment=increment
        ).body()
        res = self._transport.post("/auth/token/renew", body=body)
        return AuthInfo.model_validate(res["auth"])

    def renew_self(self, increment: Optional[str] = None) -> AuthInfo:
        body = validate_request(TokenRenewRequest, increment=increment).body()
        res = self._transport.post("/auth/token/renew-self", body=body)
        return AuthInfo.model_validate(res["auth"])

    # Revocation

    def revoke(self, token: str) -> None:
        """Revoke a token and all of its children."""
        body = {"token": validate_name(token, "token")}
        self._transport.post("/auth/token/revoke", body=body)

    def revoke_self(self) -> None:
        self._transport.post("/auth/token/revoke-self")

    def revoke_accessor(self, accessor: str) -> None:
        body = {"accessor": validate_name(accessor, "accessor")}
        self._transport.post("/auth/token/revoke-accessor", body=body)

    def revoke_and_orphan(self, token: str) -> None:
        """Revoke a token but leave its children alive, re-parented to the root."""
        body = {"token": validate_name(token, "token")}
        self._transport.post("/auth/token/revoke-orphan", body=body)

    # Capabilities

    def capabilities(self, paths: Paths, token: str) -> Dict[str, List[str]]:
        """Capabilities of ``token`` on each of ``paths``."""
        request = validate_request(CapabilitiesRequest, paths=paths, token=validate_name(token, "token"))
        res = self._transport.post("/sys/capabilities", body=request.body())
        return self._capabilities(request.paths, res)

    def capabilities_self(self, paths: Paths) -> Dict[str, List[str]]:
        request = validate_request(CapabilitiesRequest, paths=paths)
        res = self._transport.post("/sys/capabilities-self", body=request.body())
        return self._capabilities(request.paths, res)

    def capabilities_accessor(self, paths: Paths, accessor: str) -> Dict[str, List[str]]:
        request = validate_request(
            CapabilitiesRequest, paths=paths, accessor=validate_name(accessor, "accessor")
        )
        res = self._transport.post("/sys/capabilities-accessor", body=request.body())
        return self._capabilities(request.paths, res)

    @staticmethod
    def _capabilities(paths: List[str], res: Optional[Dict[str, Any]]) -> Dict[str, List[str]]:
        data = (res or {}).get("data") or res or {}
        return {path: [str(c) for c in data.get(path) or ["deny"]] for path in paths}

    # Roles

    def role_read(self, role_name: str) -> TokenRole:
        res = self._transport.get(f"/auth/token/roles/{validate_name(role_name, 'role_name')}")
        return TokenRole.model_validate(res["data"])

    def role_list(self) -> List[str]:
        """List token roles; an empty list when none are defined."""
        # The server answers LIST on an empty prefix with 404
        try:
            res = self._transport.list("/auth/token/roles")
        except InvalidPath:
            return []
        return list_keys(res)

    def role_write(
        self,
        role_name: str,
        allowed_policies: Optional[Paths] = None,
        disallowed_policies: Optional[Paths] = None,
        orphan: Optional[bool] = None,
        period: Optional[str] = None,
        renewable: Optional[bool] = None,
        explicit_max_ttl: Union[int, str, None] = None,
        path_suffix: Optional[str] = None,
        bound_cidrs: Optional[Paths] = None,
        token_type: Optional[str] = None,
    ) -> None:
        """Create or update a token role."""
        path = f"/auth/token/roles/{validate_name(role_name, 'role_name')}"
        body = validate_request(
            TokenRoleRequest,
            allowed_policies=allowed_policies,
            disallowed_policies=disallowed_policies,
            orphan=orphan,
            period=period,
            renewable=renewable,
            explicit_max_ttl=explicit_max_ttl,
            path_suffix=path_suffix,
            bound_cidrs=bound_cidrs,
            token_type=token_type,
        ).body()
        self._transport.post(path, body=body)

    def role_delete(self, role_name: str) -> None:
        self._transport.delete(f"/auth/token/roles/{validate_name(role_name, 'role_name')}")

    def tidy(self) -> None:
        """Ask the server to clean up stale token entries."""
        self._transport.post("/auth/token/tidy")

    # Login

    def login(self, token: Optional[str] = None, quiet: bool = False, verify: bool = True) -> Token:
        """
        Verify a token against the server.

        Not a login in the sense of the other methods: the token already
        exists, and this only checks that the server accepts it. Without an
        explicit ``token`` the client's configured default (``VAULT_TOKEN``)
        is used.

        Verification is a ``lookup-self`` made with the token, so it counts
        as one use of a token created with ``num_uses``. Pass
        ``verify=False`` to accept the token without any request; its
        ``info`` is then ``None``.
        """
        if token is None:
            token = self._transport.config.token
        if token is None:
            raise CredentialMissing("Vault token was not found: perhaps set 'VAULT_TOKEN'")
        token = validate_name(token, "token")
        if not verify:
            return Token(token)

        res = self._transport.verify_token(token, quiet=quiet)
        if not res.success:
            raise AuthenticationError(f"Token login failed with error: {res.error.message}")
        return Token(token, res.info)

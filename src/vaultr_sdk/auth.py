"""
Authentication methods for the vaultr SDK.

Each method is bound to a transport and a mount path, and exchanges its
own kind of credential for a vault token through ``login``. None of them
install the token they return; ``VaultClient.login`` does that.
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import jwt as pyjwt
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization

from .exceptions import CredentialMissing, ValidationError
from .models import (
    AppRoleRequest,
    GithubConfigRequest,
    JwtConfigRequest,
    JwtLoginRequest,
    JwtRoleRequest,
    SecretIdRequest,
    Token,
    UserpassUserRequest,
    validate_name,
    validate_request,
)
from .transport import VaultTransport, list_keys

logger = logging.getLogger(__name__)


def _policy_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [p.strip() for p in value.split(",") if p.strip()]
    return [str(p) for p in value]


class AuthMethod(ABC):
    """Base class for authentication methods."""

    #: Backend type, also the default mount path
    method: str = ""

    def __init__(self, transport: VaultTransport, mount: Optional[str] = None):
        self._transport = transport
        self.mount = (mount or self.method).strip("/")

    def custom_mount(self, mount: str) -> "AuthMethod":
        """Return the same method bound to a backend mounted at ``mount``."""
        return type(self)(self._transport, validate_name(mount, "mount"))

    def _path(self, *parts: str) -> str:
        return "/".join(["/auth", self.mount, *parts])

    @abstractmethod
    def login(self, *args, **kwargs) -> Token:
        """Exchange credentials for a token, without installing it."""
        pass

    def __repr__(self) -> str:
        return f"<{type(self).__name__} mount='{self.mount}'>"


class UserpassAuth(AuthMethod):
    """Username and password authentication."""

    method = "userpass"

    def write(self, username: str, password: Optional[str] = None, policies: Union[str, List[str], None] = None) -> None:
        """Create or update a user."""
        body = validate_request(UserpassUserRequest, password=password, policies=policies).body()
        self._transport.post(self._path("users", validate_name(username, "username")), body=body)

    def read(self, username: str) -> Dict[str, Any]:
        data = self._transport.get(self._path("users", validate_name(username, "username")))["data"]
        for key in ("policies", "token_policies"):
            if key in data:
                data[key] = _policy_list(data[key])
        return data

    def list(self) -> List[str]:
        return list_keys(self._transport.list(self._path("users")))

    def delete(self, username: str) -> None:
        self._transport.delete(self._path("users", validate_name(username, "username")))

    def update_password(self, username: str, password: str) -> None:
        body = {"password": validate_name(password, "password")}
        self._transport.post(self._path("users", validate_name(username, "username"), "password"), body=body)

    def update_policies(self, username: str, policies: Union[str, List[str]]) -> None:
        body = validate_request(UserpassUserRequest, policies=policies).body()
        self._transport.post(self._path("users", validate_name(username, "username"), "policies"), body=body)

    def login(self, username: str, password: str, quiet: bool = False) -> Token:
        username = validate_name(username, "username")
        body = {"password": validate_name(password, "password")}
        if not quiet:
            logger.info(f"Logging in as '{username}' with userpass")
        res = self._transport.post(self._path("login", username), body=body)
        return Token.from_auth(res["auth"])


class GithubAuth(AuthMethod):
    """GitHub personal access token authentication."""

    method = "github"

    def configure(
        self,
        organization: str,
        base_url: Optional[str] = None,
        ttl: Optional[str] = None,
        max_ttl: Optional[str] = None,
    ) -> None:
        body = validate_request(
            GithubConfigRequest,
            organization=organization,
            base_url=base_url,
            ttl=ttl,
            max_ttl=max_ttl,
        ).body()
        self._transport.post(self._path("config"), body=body)

    def configuration(self) -> Dict[str, Any]:
        return self._transport.get(self._path("config"))["data"]

    def write(self, team_name: str, policies: Union[str, List[str]], user: bool = False) -> None:
        """Map a GitHub team (or, with ``user=True``, a user) to policies."""
        kind = "users" if user else "teams"
        policies = _policy_list(policies)
        if not policies:
            raise ValidationError("'policies' must contain at least one policy")
        body = {"value": ",".join(policies)}
        self._transport.post(self._path("map", kind, validate_name(team_name, "team_name")), body=body)

    def read(self, team_name: str, user: bool = False) -> List[str]:
        kind = "users" if user else "teams"
        res = self._transport.get(self._path("map", kind, validate_name(team_name, "team_name")))
        return _policy_list(res["data"].get("value"))

    def login(self, token: Optional[str] = None, quiet: bool = False) -> Token:
        token = token if token is not None else self._transport.config.github_token
        if token is None:
            raise CredentialMissing(
                "GitHub token was not found: perhaps set 'VAULT_AUTH_GITHUB_TOKEN'"
            )
        body = {"token": validate_name(token, "token")}
        if not quiet:
            logger.info("Logging in with github")
        res = self._transport.post(self._path("login"), body=body)
        return Token.from_auth(res["auth"])


class AppRoleAuth(AuthMethod):
    """Machine-oriented role id / secret id authentication."""

    method = "approle"

    def role_write(self, role_name: str, **params) -> None:
        """Create or update a role; see ``AppRoleRequest`` for accepted fields."""
        body = validate_request(AppRoleRequest, **params).body()
        self._transport.post(self._path("role", validate_name(role_name, "role_name")), body=body)

    def role_read(self, role_name: str) -> Dict[str, Any]:
        data = self._transport.get(self._path("role", validate_name(role_name, "role_name")))["data"]
        if "token_policies" in data:
            data["token_policies"] = _policy_list(data["token_policies"])
        return data

    def role_list(self) -> List[str]:
        return list_keys(self._transport.list(self._path("role")))

    def role_delete(self, role_name: str) -> None:
        self._transport.delete(self._path("role", validate_name(role_name, "role_name")))

    def role_id_read(self, role_name: str) -> str:
        res = self._transport.get(self._path("role", validate_name(role_name, "role_name"), "role-id"))
        return res["data"]["role_id"]

    def secret_id_generate(
        self,
        role_name: str,
        metadata: Optional[Dict[str, str]] = None,
        cidr_list: Union[str, List[str], None] = None,
    ) -> Dict[str, Any]:
        """Generate a secret id; returns ``secret_id`` and ``secret_id_accessor``."""
        body = validate_request(SecretIdRequest, metadata=metadata, cidr_list=cidr_list).body()
        # The server expects metadata as a JSON string
        if "metadata" in body:
            body["metadata"] = json.dumps(body["metadata"])
        res = self._transport.post(
            self._path("role", validate_name(role_name, "role_name"), "secret-id"), body=body
        )
        return res["data"]

    def login(self, role_id: str, secret_id: Optional[str] = None, quiet: bool = False) -> Token:
        body = {"role_id": validate_name(role_id, "role_id")}
        if secret_id is not None:
            body["secret_id"] = validate_name(secret_id, "secret_id")
        if not quiet:
            logger.info("Logging in with approle")
        res = self._transport.post(self._path("login"), body=body)
        return Token.from_auth(res["auth"])


class JWTAuth(AuthMethod):
    """JWT/OIDC authentication with a signed assertion."""

    method = "jwt"

    def configure(
        self,
        jwt_validation_pubkeys: Union[str, List[str], None] = None,
        bound_issuer: Optional[str] = None,
        oidc_discovery_url: Optional[str] = None,
        default_role: Optional[str] = None,
    ) -> None:
        body = validate_request(
            JwtConfigRequest,
            jwt_validation_pubkeys=jwt_validation_pubkeys,
            bound_issuer=bound_issuer,
            oidc_discovery_url=oidc_discovery_url,
            default_role=default_role,
        ).body()
        self._transport.post(self._path("config"), body=body)

    def role_write(
        self,
        role_name: str,
        user_claim: str,
        bound_audiences: Union[str, List[str], None] = None,
        token_policies: Union[str, List[str], None] = None,
        role_type: str = "jwt",
    ) -> None:
        body = validate_request(
            JwtRoleRequest,
            role_type=role_type,
            user_claim=user_claim,
            bound_audiences=bound_audiences,
            token_policies=token_policies,
        ).body()
        self._transport.post(self._path("role", validate_name(role_name, "role_name")), body=body)

    @staticmethod
    def sign(
        signing_key: Union[str, bytes],
        claims: Optional[Dict[str, Any]] = None,
        algorithm: str = "HS256",
        expires_in: int = 300,
    ) -> str:
        """
        Create a signed assertion to present to the jwt backend.

        Args:
            signing_key: HMAC secret or PEM private key
            claims: Claims such as ``sub``, ``aud`` and ``iss``
            algorithm: JWT algorithm (default: HS256)
            expires_in: Assertion lifetime in seconds
        """
        now = int(time.time())
        payload = {"iat": now, "nbf": now, "exp": now + expires_in}
        payload.update(claims or {})
        return pyjwt.encode(payload, signing_key, algorithm=algorithm)

    def login(
        self,
        role: str,
        jwt: Optional[str] = None,
        signing_key: Union[str, bytes, None] = None,
        claims: Optional[Dict[str, Any]] = None,
        algorithm: str = "HS256",
        expires_in: int = 300,
        quiet: bool = False,
    ) -> Token:
        if jwt is None:
            if signing_key is None:
                raise CredentialMissing("jwt login needs either 'jwt' or 'signing_key'")
            jwt = self.sign(signing_key, claims, algorithm=algorithm, expires_in=expires_in)
        body = validate_request(JwtLoginRequest, role=role, jwt=jwt).body()
        if not quiet:
            logger.info(f"Logging in with jwt as role '{role}'")
        res = self._transport.post(self._path("login"), body=body)
        return Token.from_auth(res["auth"])


class CertAuth(AuthMethod):
    """TLS client certificate authentication."""

    method = "cert"

    @staticmethod
    def load_certificate(cert_path: str, key_path: str, key_password: Optional[str] = None) -> x509.Certificate:
        """Load and validate a client certificate and its private key."""
        try:
            certificate = x509.load_pem_x509_certificate(Path(cert_path).read_bytes())
            password = key_password.encode() if key_password else None
            serialization.load_pem_private_key(Path(key_path).read_bytes(), password=password)
        except (OSError, ValueError, TypeError) as e:
            raise ValidationError(f"Failed to load certificate: {e}") from e
        return certificate

    def login(
        self,
        cert_path: str,
        key_path: str,
        name: Optional[str] = None,
        key_password: Optional[str] = None,
        quiet: bool = False,
    ) -> Token:
        certificate = self.load_certificate(cert_path, key_path, key_password)
        if not quiet:
            fingerprint = certificate.fingerprint(hashes.SHA256())
            logger.info(f"Logging in with client certificate {fingerprint.hex()}")

        body = {"name": validate_name(name, "name")} if name is not None else {}
        transport = self._transport.with_client_cert(str(cert_path), str(key_path), key_password)
        try:
            res = transport.post(self._path("login"), body=body)
        finally:
            transport.close()
        return Token.from_auth(res["auth"])

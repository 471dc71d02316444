"""
HTTP transport for the vaultr SDK.

Issues GET/POST/DELETE/LIST requests against ``{addr}/v1``, attaches the
active token, and turns non-2xx replies into typed exceptions.
"""

import logging
import ssl
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import httpx
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .config import ClientConfig
from .exceptions import (
    InvalidPath,
    PermissionDenied,
    RateLimitError,
    ServerError,
    VaultConnectionError,
    VaultSealed,
)
from .models import TokenInfo

logger = logging.getLogger(__name__)

_STATUS_ERRORS = {
    403: PermissionDenied,
    404: InvalidPath,
    429: RateLimitError,
    503: VaultSealed,
}


def list_keys(res: Optional[Dict[str, Any]]) -> List[str]:
    """The `keys` of a LIST reply, as strings."""
    if not res:
        return []
    return [str(k) for k in res.get("data", {}).get("keys") or []]


@dataclass
class TokenVerification:
    """Outcome of checking a token against the server."""
    success: bool
    token: str
    info: Optional[TokenInfo] = None
    error: Optional[ServerError] = None


class VaultTransport:
    """
    Low-level client for the vault HTTP API.

    Holds the active token; every request sends it as ``X-Vault-Token``
    unless a token is passed explicitly.
    """

    def __init__(
        self,
        config: ClientConfig,
        http_transport: Optional[httpx.BaseTransport] = None,
        client_cert: Optional[Tuple[str, str, Optional[str]]] = None,
    ):
        """
        Initialize the transport.

        Args:
            config: Client configuration
            http_transport: Optional httpx transport, e.g. ``httpx.MockTransport``
            client_cert: Optional (cert_path, key_path, key_password) for TLS client auth
        """
        self.config = config
        self.addr = config.addr
        self.token: Optional[str] = None
        self._http_transport = http_transport

        self._client = httpx.Client(
            base_url=f"{config.addr}/v1",
            timeout=config.timeout,
            limits=httpx.Limits(
                max_keepalive_connections=config.max_connections,
                max_connections=config.max_connections,
            ),
            verify=self._ssl_context(client_cert),
            transport=http_transport,
        )

    def _ssl_context(self, client_cert: Optional[Tuple[str, str, Optional[str]]]) -> ssl.SSLContext:
        context = ssl.create_default_context(cafile=self.config.ca_bundle)
        if not self.config.verify_ssl:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        if client_cert is not None:
            cert_path, key_path, password = client_cert
            context.load_cert_chain(cert_path, key_path, password=password)
        return context

    def with_client_cert(self, cert_path: str, key_path: str, key_password: Optional[str] = None) -> "VaultTransport":
        """Return a new transport to the same server that presents a client certificate."""
        return VaultTransport(
            self.config,
            http_transport=self._http_transport,
            client_cert=(cert_path, key_path, key_password),
        )

    def close(self):
        """Close the HTTP client."""
        self._client.close()

    def set_token(self, token: Optional[str]) -> None:
        self.token = token

    # Verbs

    def get(self, path: str, token: Optional[str] = None) -> Optional[Dict[str, Any]]:
        return self._make_request("GET", path, token=token)

    def post(
        self,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        wrap_ttl: Optional[str] = None,
        token: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        return self._make_request("POST", path, body=body, wrap_ttl=wrap_ttl, token=token)

    def delete(self, path: str) -> Optional[Dict[str, Any]]:
        return self._make_request("DELETE", path)

    def list(self, path: str) -> Optional[Dict[str, Any]]:
        return self._make_request("LIST", path)

    def verify_token(self, token: str, quiet: bool = False) -> TokenVerification:
        """Check that ``token`` is accepted by the server, without installing it."""
        if not quiet:
            logger.info("Verifying token")
        try:
            res = self.get("/auth/token/lookup-self", token=token)
        except ServerError as e:
            return TokenVerification(success=False, token=token, error=e)
        return TokenVerification(success=True, token=token, info=TokenInfo.model_validate(res["data"]))

    # Internals

    def _headers(self, token: Optional[str], wrap_ttl: Optional[str]) -> Dict[str, str]:
        headers = {}
        token = token if token is not None else self.token
        if token is not None:
            headers["X-Vault-Token"] = token
        if wrap_ttl is not None:
            headers["X-Vault-Wrap-TTL"] = wrap_ttl
        if self.config.namespace:
            headers["X-Vault-Namespace"] = self.config.namespace
        return headers

    def _make_request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        wrap_ttl: Optional[str] = None,
        token: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Make a request, retrying connection failures up to ``max_attempts`` times."""
        url = "/" + path.lstrip("/")
        headers = self._headers(token, wrap_ttl)

        retrying = Retrying(
            stop=stop_after_attempt(self.config.max_attempts),
            wait=wait_exponential(multiplier=self.config.retry_backoff_factor, max=10),
            retry=retry_if_exception_type(VaultConnectionError),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                response = self._send(method, url, headers, body)

        self._handle_response(response)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def _send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: Optional[Dict[str, Any]],
    ) -> httpx.Response:
        if self.config.log_requests:
            logger.debug(f"{method} {url}")
        try:
            response = self._client.request(method, url, headers=headers, json=body)
        except httpx.RequestError as e:
            logger.error(f"Request failed: {e}")
            raise VaultConnectionError(f"Failed to connect to vault at {self.addr}: {e}")
        if self.config.log_responses:
            logger.debug(f"{method} {url} -> {response.status_code}")
        return response

    def _handle_response(self, response: httpx.Response) -> None:
        """Raise an appropriate exception for a non-2xx response."""
        if response.is_success:
            return

        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            errors = payload.get("errors") or []
            if isinstance(errors, str):
                errors = [errors]
        else:
            errors = [response.text] if response.text else []

        errors = [str(e) for e in errors]
        detail = "; ".join(errors) if errors else response.reason_phrase
        message = f"{detail} (HTTP {response.status_code})"

        error_class = _STATUS_ERRORS.get(response.status_code, ServerError)
        raise error_class(message, status_code=response.status_code, errors=errors)

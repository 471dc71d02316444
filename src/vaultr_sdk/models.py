"""
Data models for the vaultr SDK.

Request models validate arguments before anything is sent; their
``body()`` omits unset fields so that server-side defaults apply.
Response models accept extra keys, since the server adds fields between
releases, and normalize every policy list to a flat list of strings.
"""

from typing import Annotated, Any, Dict, List, Optional, Type, TypeVar, Union

import pydantic
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, StringConstraints, TypeAdapter

from .exceptions import ValidationError

# Go-style durations as accepted by the server: "30s", "1h30m", "1.5h"
DURATION_PATTERN = r"^([0-9]+(\.[0-9]+)?(ns|us|µs|ms|s|m|h))+$"


def _as_list(value: Any) -> Any:
    if isinstance(value, str):
        return [value]
    return value


def _normalize_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    return [str(v) for v in value]


Name = Annotated[str, StringConstraints(strict=True, min_length=1)]
Duration = Annotated[str, StringConstraints(strict=True, pattern=DURATION_PATTERN)]
Seconds = Annotated[int, Field(strict=True, ge=0)]
TTL = Union[Seconds, Duration]
StrList = Annotated[List[Annotated[str, Field(strict=True)]], BeforeValidator(_as_list)]
Policies = Annotated[List[str], BeforeValidator(_normalize_list)]

RequestT = TypeVar("RequestT", bound="VaultRequest")

_name_adapter = TypeAdapter(Name)
_duration_adapter = TypeAdapter(Duration)


def _describe(error: pydantic.ValidationError) -> str:
    parts = []
    for item in error.errors():
        loc = ".".join(str(p) for p in item["loc"]) or "value"
        parts.append(f"'{loc}': {item['msg']}")
    return "; ".join(parts)


def validate_request(model: Type[RequestT], **kwargs: Any) -> RequestT:
    """Build a request model, converting pydantic errors to ``ValidationError``."""
    try:
        return model(**kwargs)
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid arguments: {_describe(e)}") from e


def validate_name(value: Any, name: str) -> str:
    """Check that ``value`` is a non-empty string, for use in a path or body."""
    try:
        return _name_adapter.validate_python(value)
    except pydantic.ValidationError as e:
        raise ValidationError(f"'{name}' must be a non-empty string") from e


def validate_duration(value: Any, name: str) -> str:
    try:
        return _duration_adapter.validate_python(value)
    except pydantic.ValidationError as e:
        raise ValidationError(f"'{name}' must be a duration such as '30s' or '1h'") from e


# Request models


class VaultRequest(BaseModel):
    """Base class for request bodies."""
    model_config = ConfigDict(extra="forbid")

    def body(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class TokenCreateRequest(VaultRequest):
    role_name: Optional[Name] = Field(None, exclude=True)
    wrap_ttl: Optional[Duration] = Field(None, exclude=True)
    id: Optional[Name] = None
    policies: Optional[StrList] = None
    meta: Optional[Dict[str, Annotated[str, Field(strict=True)]]] = None
    no_parent: Annotated[bool, Field(strict=True)] = False
    no_default_policy: Annotated[bool, Field(strict=True)] = False
    explicit_max_ttl: Optional[TTL] = None
    display_name: Optional[Name] = None
    num_uses: Seconds = 0
    period: Optional[Duration] = None
    ttl: Optional[Duration] = None


class TokenRenewRequest(VaultRequest):
    token: Optional[Name] = None
    increment: Optional[Duration] = None


class CapabilitiesRequest(VaultRequest):
    paths: StrList
    token: Optional[Name] = None
    accessor: Optional[Name] = None


class TokenRoleRequest(VaultRequest):
    allowed_policies: Optional[StrList] = None
    disallowed_policies: Optional[StrList] = None
    orphan: Optional[Annotated[bool, Field(strict=True)]] = None
    period: Optional[Duration] = None
    renewable: Optional[Annotated[bool, Field(strict=True)]] = None
    explicit_max_ttl: Optional[TTL] = None
    path_suffix: Optional[Name] = None
    bound_cidrs: Optional[StrList] = None
    token_type: Optional[Name] = None


class AuthEnableRequest(VaultRequest):
    type: Name
    description: Annotated[str, Field(strict=True)] = ""
    local: Annotated[bool, Field(strict=True)] = False
    plugin_name: Optional[Name] = None


class PolicyWriteRequest(VaultRequest):
    policy: Name


class UserpassUserRequest(VaultRequest):
    password: Optional[Name] = None
    policies: Optional[StrList] = None


class GithubConfigRequest(VaultRequest):
    organization: Name
    base_url: Optional[Name] = None
    ttl: Optional[Duration] = None
    max_ttl: Optional[Duration] = None


class AppRoleRequest(VaultRequest):
    bind_secret_id: Optional[Annotated[bool, Field(strict=True)]] = None
    secret_id_bound_cidrs: Optional[StrList] = None
    secret_id_num_uses: Optional[Seconds] = None
    secret_id_ttl: Optional[TTL] = None
    token_policies: Optional[StrList] = None
    token_ttl: Optional[TTL] = None
    token_max_ttl: Optional[TTL] = None
    token_num_uses: Optional[Seconds] = None
    token_period: Optional[TTL] = None


class SecretIdRequest(VaultRequest):
    metadata: Optional[Dict[str, Annotated[str, Field(strict=True)]]] = None
    cidr_list: Optional[StrList] = None


class JwtConfigRequest(VaultRequest):
    jwt_validation_pubkeys: Optional[StrList] = None
    bound_issuer: Optional[Name] = None
    oidc_discovery_url: Optional[Name] = None
    default_role: Optional[Name] = None


class JwtRoleRequest(VaultRequest):
    role_type: Name = "jwt"
    user_claim: Name
    bound_audiences: Optional[StrList] = None
    token_policies: Optional[StrList] = None


class JwtLoginRequest(VaultRequest):
    role: Name
    jwt: Name


# Response models


class VaultModel(BaseModel):
    """Base class for server responses."""
    model_config = ConfigDict(extra="allow")


class AuthInfo(VaultModel):
    """The ``auth`` block returned by token creation, renewal and logins."""

    client_token: str = Field(..., description="Token value")
    accessor: Optional[str] = Field(None, description="Token accessor")
    policies: Policies = Field(default_factory=list, description="All attached policies")
    token_policies: Policies = Field(default_factory=list, description="Policies on the token itself")
    metadata: Optional[Dict[str, Any]] = Field(None, description="Token metadata")
    lease_duration: int = Field(0, description="TTL in seconds")
    renewable: bool = Field(False, description="Whether the token can be renewed")
    entity_id: Optional[str] = Field(None, description="Identity entity id")
    token_type: Optional[str] = Field(None, description="service or batch")
    orphan: bool = Field(False, description="Whether the token has no parent")
    num_uses: int = Field(0, description="Remaining uses, 0 for unlimited")


class TokenInfo(VaultModel):
    """Token properties, as returned by the lookup endpoints."""

    accessor: Optional[str] = None
    creation_time: Optional[int] = None
    creation_ttl: int = 0
    display_name: Optional[str] = None
    entity_id: Optional[str] = None
    expire_time: Optional[str] = None
    explicit_max_ttl: int = 0
    # Empty when looked up through an accessor
    id: str = ""
    meta: Optional[Dict[str, Any]] = None
    num_uses: int = 0
    orphan: bool = False
    path: str = ""
    period: Optional[int] = None
    policies: Policies = Field(default_factory=list)
    renewable: bool = False
    role: Optional[str] = None
    ttl: int = 0
    type: Optional[str] = None


class WrapInfo(VaultModel):
    """The ``wrap_info`` block of a response-wrapped reply."""

    token: str
    accessor: Optional[str] = None
    ttl: int = 0
    creation_time: Optional[str] = None
    creation_path: Optional[str] = None
    wrapped_accessor: Optional[str] = None


class TokenRole(VaultModel):
    """A token role definition."""

    name: Optional[str] = None
    allowed_policies: Policies = Field(default_factory=list)
    disallowed_policies: Policies = Field(default_factory=list)
    orphan: bool = False
    period: Optional[int] = None
    renewable: bool = True
    explicit_max_ttl: int = 0
    path_suffix: str = ""
    bound_cidrs: Policies = Field(default_factory=list)
    token_type: Optional[str] = None


class AuthMount(VaultModel):
    """One row of the enabled auth methods listing."""

    path: str
    type: str
    accessor: str = ""
    description: str = ""


class Token(str):
    """A token string carrying the server's metadata about it in ``info``.

    ``info`` is an ``AuthInfo`` for a freshly issued token, a ``TokenInfo``
    for a token verified by lookup, and a ``WrapInfo`` when the token is a
    response-wrapping token.
    """

    info: Optional[Union[AuthInfo, TokenInfo, WrapInfo]]

    def __new__(cls, value: str, info: Optional[Union[AuthInfo, TokenInfo, WrapInfo]] = None):
        token = super().__new__(cls, value)
        token.info = info
        return token

    @classmethod
    def from_auth(cls, auth: Dict[str, Any]) -> "Token":
        """Build a token from the `auth` block of a reply."""
        info = AuthInfo.model_validate(auth)
        return cls(info.client_token, info)

    @property
    def accessor(self) -> Optional[str]:
        return getattr(self.info, "accessor", None)

    @property
    def policies(self) -> List[str]:
        return list(getattr(self.info, "policies", []))

    def __repr__(self) -> str:
        kind = type(self.info).__name__ if self.info is not None else "None"
        return f"Token(<redacted>, info={kind})"

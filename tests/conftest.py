"""
Shared fixtures: an in-memory vault server reachable through httpx.MockTransport.
"""

import itertools
import json
import re
from typing import Any, Dict, List, Optional

import httpx
import jwt
import pytest

from vaultr_sdk import ClientConfig, TokenCache, VaultClient

ROOT_TOKEN = "root"
ADDR = "http://vault.test:8200"
JWT_SECRET = "jwt-signing-secret-for-the-test-suite"

_RULE = re.compile(r'path\s+"([^"]+)"\s*\{([^}]*)\}')
_POLICY = re.compile(r'policy\s*=\s*"(\w+)"')
_CAPS = re.compile(r"capabilities\s*=\s*\[([^\]]*)\]")
_DURATION = re.compile(r"(\d+)([hms])")


def _seconds(value: Any, default: int = 2764800) -> int:
    if value is None:
        return default
    if isinstance(value, int):
        return value
    units = {"h": 3600, "m": 60, "s": 1}
    return sum(int(n) * units[u] for n, u in _DURATION.findall(value))


def _reply(status: int, body: Optional[Dict[str, Any]] = None) -> httpx.Response:
    if body is None:
        return httpx.Response(status)
    return httpx.Response(status, json=body)


def _error(status: int, *errors: str) -> httpx.Response:
    return _reply(status, {"errors": list(errors)})


class FakeVault:
    """
    A small stand-in for a vault server.

    Covers the token, userpass, github, approle, jwt and cert auth
    endpoints, policies, a flat secret store and response wrapping.
    Every request is recorded in ``requests``.
    """

    def __init__(self):
        self._ids = itertools.count(1)
        self.requests: List[Dict[str, Any]] = []
        self.tokens: Dict[str, Dict[str, Any]] = {}
        self.accessors: Dict[str, str] = {}
        self.roles: Dict[str, Dict[str, Any]] = {}
        self.policies: Dict[str, str] = {}
        self.secrets: Dict[str, Dict[str, Any]] = {}
        self.wrapped: Dict[str, Dict[str, Any]] = {}
        self.users: Dict[str, Dict[str, Any]] = {}
        self.github_tokens: Dict[str, List[str]] = {}
        self.approles: Dict[str, Dict[str, Any]] = {}
        self.mounts: Dict[str, Dict[str, Any]] = {
            "token/": {"type": "token", "accessor": "auth_token_0001", "description": "token based credentials"},
        }
        self._issue(ROOT_TOKEN, policies=["root"], orphan=True, ttl=0)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def requests_to(self, path: str) -> List[Dict[str, Any]]:
        return [r for r in self.requests if r["path"] == path]

    # Token bookkeeping

    def _issue(
        self,
        token: Optional[str] = None,
        policies: Optional[List[str]] = None,
        parent: Optional[str] = None,
        orphan: bool = False,
        num_uses: int = 0,
        ttl: int = 2764800,
        display_name: str = "token",
        meta: Optional[Dict[str, str]] = None,
        path: str = "auth/token/create",
    ) -> Dict[str, Any]:
        n = next(self._ids)
        token = token or f"s.token{n:04d}"
        accessor = f"accessor{n:04d}"
        record = {
            "id": token,
            "accessor": accessor,
            "policies": sorted(set(policies or [])),
            "parent": None if orphan else parent,
            "orphan": orphan or parent is None,
            "num_uses": num_uses,
            "ttl": ttl,
            "creation_ttl": ttl,
            "display_name": display_name,
            "meta": meta,
            "path": path,
        }
        self.tokens[token] = record
        self.accessors[accessor] = token
        return record

    def _auth_block(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "client_token": record["id"],
            "accessor": record["accessor"],
            "policies": record["policies"],
            "token_policies": record["policies"],
            "metadata": record["meta"],
            "lease_duration": record["ttl"],
            "renewable": record["ttl"] > 0,
            "entity_id": "",
            "token_type": "service",
            "orphan": record["orphan"],
            "num_uses": record["num_uses"],
        }

    def _lookup_data(self, record: Dict[str, Any], by_accessor: bool = False) -> Dict[str, Any]:
        return {
            "accessor": record["accessor"],
            "creation_time": 1700000000,
            "creation_ttl": record["creation_ttl"],
            "display_name": record["display_name"],
            "entity_id": "",
            "expire_time": None,
            "explicit_max_ttl": 0,
            "id": "" if by_accessor else record["id"],
            "meta": record["meta"],
            "num_uses": record["num_uses"],
            "orphan": record["orphan"],
            "path": record["path"],
            "policies": record["policies"],
            "renewable": record["ttl"] > 0,
            "ttl": record["ttl"],
            "type": "service",
        }

    def _revoke(self, token: str, orphan_children: bool = False) -> None:
        record = self.tokens.pop(token, None)
        if record is None:
            return
        self.accessors.pop(record["accessor"], None)
        for child in [t for t, r in self.tokens.items() if r["parent"] == token]:
            if orphan_children:
                self.tokens[child]["parent"] = None
                self.tokens[child]["orphan"] = True
            else:
                self._revoke(child)

    def _capabilities(self, record: Dict[str, Any], path: str) -> List[str]:
        if "root" in record["policies"]:
            return ["root"]
        caps: List[str] = []
        for name in record["policies"]:
            for pattern, block in _RULE.findall(self.policies.get(name, "")):
                matched = path.startswith(pattern[:-1]) if pattern.endswith("*") else path == pattern
                if not matched:
                    continue
                found = _POLICY.search(block)
                if found:
                    caps.append(found.group(1))
                found = _CAPS.search(block)
                if found:
                    caps.extend(c.strip().strip('"') for c in found.group(1).split(",") if c.strip())
        return sorted(set(caps)) or ["deny"]

    # Request dispatch

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path[len("/v1/"):]
        body = json.loads(request.content) if request.content else {}
        self.requests.append(
            {"method": request.method, "path": path, "body": body, "headers": dict(request.headers)}
        )
        token = request.headers.get("x-vault-token")

        if path == "sys/seal-status":
            return _reply(200, {"sealed": False, "version": "1.15.0", "type": "shamir"})
        if path == "sys/wrapping/unwrap":
            wrapped = self.wrapped.pop(token, None)
            if wrapped is None:
                return _error(400, "wrapping token is not valid or does not exist")
            return _reply(200, wrapped["response"])
        if re.fullmatch(r"auth/[^/]+/login(/.*)?", path):
            return self._login(path, body, request)

        record = self.tokens.get(token)
        if record is None:
            return _error(403, "permission denied")
        if record["num_uses"] > 0:
            record["num_uses"] -= 1
            if record["num_uses"] == 0:
                self._revoke(token)

        if path.startswith("auth/token/"):
            return self._token_endpoint(request, path[len("auth/token/"):], body, record)
        if path.startswith("sys/capabilities"):
            return self._capabilities_endpoint(path, body, record)
        if path.startswith("sys/auth"):
            return self._mounts_endpoint(request.method, path[len("sys/auth"):].strip("/"), body)
        if path.startswith("sys/policy"):
            return self._policy_endpoint(request.method, path[len("sys/policy"):].strip("/"), body)
        if path == "sys/wrapping/lookup":
            if body["token"] not in self.wrapped:
                return _error(400, "wrapping token is not valid or does not exist")
            return _reply(200, {"data": self.wrapped[body["token"]]["info"]})
        kind = self._kind(path)
        if kind == "userpass" and path.split("/")[2:3] == ["users"]:
            return self._userpass_endpoint(request.method, path, body)
        if kind == "approle" and path.split("/")[2:3] == ["role"]:
            return self._approle_endpoint(request.method, path, body)
        return self._secret_endpoint(request.method, path, body, record)

    def _kind(self, path: str) -> str:
        mount = path.split("/")[1] if path.startswith("auth/") else ""
        return self.mounts.get(mount + "/", {}).get("type", mount)

    def _wrap(self, request: httpx.Request, response: Dict[str, Any], creation_path: str) -> httpx.Response:
        ttl = request.headers.get("x-vault-wrap-ttl")
        if ttl is None:
            return _reply(200, response)
        n = next(self._ids)
        info = {
            "token": f"s.wrap{n:04d}",
            "accessor": f"wrapaccessor{n:04d}",
            "ttl": _seconds(ttl),
            "creation_time": "2024-01-01T00:00:00Z",
            "creation_path": creation_path,
        }
        self.wrapped[info["token"]] = {"response": response, "info": info}
        return _reply(200, {"wrap_info": info})

    def _token_endpoint(self, request: httpx.Request, op: str, body: Dict[str, Any], caller: Dict[str, Any]) -> httpx.Response:
        method = request.method
        if op == "create" or op.startswith("create/"):
            role_name = op[len("create/"):] if "/" in op else None
            policies = list(body.get("policies") or caller["policies"])
            if role_name is not None:
                if role_name not in self.roles:
                    return _error(400, f"unknown role {role_name}")
                policies = list(body.get("policies") or self.roles[role_name].get("allowed_policies") or [])
            if not body.get("no_default_policy") and "root" not in policies:
                policies.append("default")
            record = self._issue(
                token=body.get("id"),
                policies=policies,
                parent=caller["id"],
                orphan=body.get("no_parent", False),
                num_uses=body.get("num_uses", 0),
                ttl=_seconds(body.get("ttl")),
                display_name="token-" + body["display_name"] if "display_name" in body else "token",
                meta=body.get("meta"),
            )
            return self._wrap(request, {"auth": self._auth_block(record)}, "auth/token/" + op)
        if op == "lookup-self":
            return _reply(200, {"data": self._lookup_data(caller)})
        if op == "lookup":
            target = self.tokens.get(body.get("token"))
            if target is None:
                return _error(403, "bad token")
            return _reply(200, {"data": self._lookup_data(target)})
        if op == "lookup-accessor":
            target = self.tokens.get(self.accessors.get(body.get("accessor"), ""))
            if target is None:
                return _error(400, "invalid accessor")
            return _reply(200, {"data": self._lookup_data(target, by_accessor=True)})
        if op in ("renew", "renew-self"):
            target = caller if op == "renew-self" else self.tokens.get(body.get("token"))
            if target is None:
                return _error(400, "invalid token")
            target["ttl"] = _seconds(body.get("increment"), default=target["creation_ttl"])
            return _reply(200, {"auth": self._auth_block(target)})
        if op == "revoke":
            self._revoke(body["token"])
            return _reply(204)
        if op == "revoke-self":
            self._revoke(caller["id"])
            return _reply(204)
        if op == "revoke-accessor":
            if body["accessor"] not in self.accessors:
                return _error(400, "invalid accessor")
            self._revoke(self.accessors[body["accessor"]])
            return _reply(204)
        if op == "revoke-orphan":
            self._revoke(body["token"], orphan_children=True)
            return _reply(204)
        if op == "accessors" and method == "LIST":
            return _reply(200, {"data": {"keys": sorted(self.accessors)}})
        if op == "tidy":
            return _reply(202, {"warnings": ["Tidy operation successfully started."]})
        if op == "roles" and method == "LIST":
            if not self.roles:
                return _error(404)
            return _reply(200, {"data": {"keys": sorted(self.roles)}})
        if op.startswith("roles/"):
            name = op[len("roles/"):]
            if method == "POST":
                role = dict(body)
                for key in ("period", "explicit_max_ttl"):
                    if key in role:
                        role[key] = _seconds(role[key])
                self.roles[name] = role
                return _reply(204)
            if method == "DELETE":
                self.roles.pop(name, None)
                return _reply(204)
            if name not in self.roles:
                return _error(404)
            return _reply(200, {"data": dict(self.roles[name], name=name)})
        return _error(404, f"unsupported path auth/token/{op}")

    def _capabilities_endpoint(self, path: str, body: Dict[str, Any], caller: Dict[str, Any]) -> httpx.Response:
        if path == "sys/capabilities-self":
            target = caller
        elif path == "sys/capabilities-accessor":
            target = self.tokens.get(self.accessors.get(body.get("accessor"), ""))
        else:
            target = self.tokens.get(body.get("token"))
        if target is None:
            return _error(400, "invalid token")
        data = {p: self._capabilities(target, p) for p in body["paths"]}
        res = dict(data, data=dict(data))
        if len(body["paths"]) == 1:
            res["capabilities"] = data[body["paths"][0]]
        return _reply(200, res)

    def _mounts_endpoint(self, method: str, mount: str, body: Dict[str, Any]) -> httpx.Response:
        if not mount:
            return _reply(200, {"data": dict(self.mounts), **self.mounts})
        key = mount + "/"
        if method == "POST":
            if key in self.mounts:
                return _error(400, f"path is already in use at {key}")
            n = next(self._ids)
            self.mounts[key] = {
                "type": body["type"],
                "accessor": f"auth_{body['type']}_{n:04d}",
                "description": body.get("description", ""),
                "local": body.get("local", False),
            }
            return _reply(204)
        self.mounts.pop(key, None)
        return _reply(204)

    def _policy_endpoint(self, method: str, name: str, body: Dict[str, Any]) -> httpx.Response:
        if not name:
            keys = sorted(set(self.policies) | {"default", "root"})
            return _reply(200, {"policies": keys, "data": {"keys": keys}})
        if method == "POST":
            self.policies[name] = body["policy"]
            return _reply(204)
        if method == "DELETE":
            self.policies.pop(name, None)
            return _reply(204)
        if name not in self.policies:
            return _error(404)
        return _reply(200, {"name": name, "rules": self.policies[name], "data": {"rules": self.policies[name]}})

    def _userpass_endpoint(self, method: str, path: str, body: Dict[str, Any]) -> httpx.Response:
        parts = path.split("/")[3:]
        if not parts:
            if not self.users:
                return _error(404)
            return _reply(200, {"data": {"keys": sorted(self.users)}})
        username = parts[0]
        if method == "POST":
            user = self.users.setdefault(username, {"policies": []})
            if "password" in body:
                user["password"] = body["password"]
            if "policies" in body:
                user["policies"] = list(body["policies"])
            return _reply(204)
        if method == "DELETE":
            self.users.pop(username, None)
            return _reply(204)
        if username not in self.users:
            return _error(404)
        # Older servers return the policies as a comma separated string
        return _reply(200, {"data": {"policies": ",".join(self.users[username]["policies"]), "ttl": 0}})

    def _approle_endpoint(self, method: str, path: str, body: Dict[str, Any]) -> httpx.Response:
        parts = path.split("/")[3:]
        if not parts:
            if not self.approles:
                return _error(404)
            return _reply(200, {"data": {"keys": sorted(self.approles)}})
        name = parts[0]
        if len(parts) == 1 and method == "POST":
            role = self.approles.setdefault(
                name, {"role_id": f"role-id-{name}", "secret_ids": {}, "bind_secret_id": True, "token_policies": []}
            )
            role.update(body)
            return _reply(204)
        if name not in self.approles:
            return _error(404, f"role {name} does not exist")
        role = self.approles[name]
        if len(parts) == 1 and method == "DELETE":
            del self.approles[name]
            return _reply(204)
        if len(parts) == 1:
            data = {k: v for k, v in role.items() if k not in ("role_id", "secret_ids")}
            return _reply(200, {"data": data})
        if parts[1] == "role-id":
            return _reply(200, {"data": {"role_id": role["role_id"]}})
        if parts[1] == "secret-id" and method == "POST":
            n = next(self._ids)
            secret_id = f"secret-{n:04d}"
            role["secret_ids"][secret_id] = json.loads(body.get("metadata", "{}"))
            return _reply(200, {"data": {"secret_id": secret_id, "secret_id_accessor": f"secretaccessor{n:04d}"}})
        return _error(404)

    def _login(self, path: str, body: Dict[str, Any], request: httpx.Request) -> httpx.Response:
        mount, _, rest = path[len("auth/"):].partition("/login")
        kind = self.mounts.get(mount + "/", {}).get("type", mount)
        policies: Optional[List[str]] = None
        if kind == "userpass":
            user = self.users.get(rest.strip("/"))
            if user is not None and user.get("password") == body.get("password"):
                policies = user["policies"]
        elif kind == "github":
            policies = self.github_tokens.get(body.get("token"))
        elif kind == "approle":
            for role in self.approles.values():
                bound = role.get("bind_secret_id", True)
                if role["role_id"] == body.get("role_id") and (not bound or body.get("secret_id") in role["secret_ids"]):
                    policies = role["token_policies"]
        elif kind == "jwt":
            try:
                claims = jwt.decode(body.get("jwt", ""), JWT_SECRET, algorithms=["HS256"])
            except jwt.PyJWTError:
                return _error(400, "error validating token")
            policies = [f"jwt-{claims.get('sub', 'anonymous')}"]
        elif kind == "cert":
            policies = ["cert-" + body.get("name", "default")]
        if policies is None:
            return _error(400, "invalid credentials")
        record = self._issue(policies=list(policies) + ["default"], path=path)
        return _reply(200, {"auth": self._auth_block(record)})

    def _secret_endpoint(self, method: str, path: str, body: Dict[str, Any], caller: Dict[str, Any]) -> httpx.Response:
        needed = {"GET": "read", "POST": "create", "DELETE": "delete", "LIST": "list"}[method]
        caps = self._capabilities(caller, path)
        if "root" not in caps and needed not in caps and not (needed == "create" and "write" in caps):
            return _error(403, "permission denied")
        if method == "POST":
            self.secrets[path] = dict(body)
            return _reply(204)
        if method == "DELETE":
            self.secrets.pop(path, None)
            return _reply(204)
        if method == "LIST":
            prefix = path.rstrip("/") + "/"
            keys = sorted({k[len(prefix):].split("/")[0] + ("/" if "/" in k[len(prefix):] else "")
                           for k in self.secrets if k.startswith(prefix)})
            if not keys:
                return _error(404)
            return _reply(200, {"data": {"keys": keys}})
        if path not in self.secrets:
            return _error(404)
        return _reply(200, {"data": self.secrets[path], "lease_duration": 2764800, "renewable": False})


@pytest.fixture
def vault():
    return FakeVault()


@pytest.fixture
def config():
    return ClientConfig(addr=ADDR, token=None, github_token=None)


@pytest.fixture
def cache():
    return TokenCache()


@pytest.fixture
def client(vault, config, cache):
    with VaultClient(config=config, cache=cache, http_transport=vault.transport()) as client:
        yield client


@pytest.fixture
def root_client(client):
    client.login(token=ROOT_TOKEN, quiet=True)
    return client


@pytest.fixture
def make_client(vault, config, cache):
    """Build further clients against the same server and cache."""
    clients = []

    def make(**overrides):
        cfg = config.model_copy(update=overrides)
        c = VaultClient(config=cfg, cache=cache, http_transport=vault.transport())
        clients.append(c)
        return c

    yield make
    for c in clients:
        c.close()

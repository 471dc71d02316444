"""
ACL policy management.
"""

from typing import List

from .models import PolicyWriteRequest, validate_name, validate_request
from .transport import VaultTransport, list_keys


class VaultPolicy:
    """Read, write, list and delete policies at ``/sys/policy``."""

    def __init__(self, transport: VaultTransport):
        self._transport = transport

    def list(self) -> List[str]:
        res = self._transport.get("/sys/policy")
        return [str(p) for p in res.get("policies") or list_keys(res)]

    def read(self, name: str) -> str:
        """Return the policy's rules as HCL text."""
        res = self._transport.get(f"/sys/policy/{validate_name(name, 'name')}")
        return res.get("rules") or res.get("data", {}).get("rules", "")

    def write(self, name: str, rules: str) -> None:
        body = validate_request(PolicyWriteRequest, policy=rules).body()
        self._transport.post(f"/sys/policy/{validate_name(name, 'name')}", body=body)

    def delete(self, name: str) -> None:
        self._transport.delete(f"/sys/policy/{validate_name(name, 'name')}")

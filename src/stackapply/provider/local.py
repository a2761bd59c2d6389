"""Local provider - a simulated cloud persisted to a JSON file."""

import json
import os
import secrets
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from ..model.resources import ResourceKind
from ..secrets.keygen import public_key_fingerprint
from ..utils.errors import ProviderError, ResourceNotFoundError
from ..utils.logging import get_logger
from .base import ProviderClient, bucket_access_policy

logger = get_logger("provider.local")

ACCOUNT_ID = "000000000000"

# Kinds whose identity is a user-chosen name: replacement must delete first.
_NAMED_KINDS = (ResourceKind.KEY_PAIR, ResourceKind.BUCKET)
# Kinds whose outputs are derived from their attributes: in-place updates rebuild them.
_REBUILT_KINDS = (
    ResourceKind.ROLE,
    ResourceKind.POLICY,
    ResourceKind.INSTANCE_PROFILE,
    ResourceKind.BUCKET,
    ResourceKind.BUCKET_VERSIONING,
    ResourceKind.BUCKET_ENCRYPTION,
)


class LocalProvider(ProviderClient):
    """
    Simulated provider for offline runs and tests.

    Behaves like the real cloud where it matters to the engine: names are
    unique, references to missing resources are rejected, a role cannot be
    deleted while policies or profiles still use it, and deleting an
    unknown id raises ResourceNotFoundError.
    """

    name = "local"

    def __init__(self, path: Optional[str] = None, latency: float = 0.0):
        """
        Initialize local provider.

        Args:
            path: JSON file the simulated cloud is persisted to (in-memory when None)
            latency: Seconds each mutating call sleeps, to simulate network I/O
        """
        self.path = Path(path) if path else None
        self.latency = latency
        self.calls: List[Tuple[str, str]] = []
        self._lock = threading.Lock()
        self._resources: Dict[str, Dict[str, Any]] = {}
        self._ip_counter = 0
        if self.path and self.path.exists():
            self._load()

    @classmethod
    def from_settings(cls, settings) -> "LocalProvider":
        return cls(path=settings.engine.local_cloud_path)

    def _load(self) -> None:
        try:
            data = json.loads(self.path.read_text(encoding='utf-8'))
        except (OSError, json.JSONDecodeError) as e:
            raise ProviderError(f"Cannot read local cloud file {self.path}: {e}")
        self._resources = data.get("resources", {})
        self._ip_counter = data.get("ip_counter", 0)
        logger.debug(f"Loaded {len(self._resources)} simulated resources from {self.path}")

    def _save(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(
            json.dumps({"resources": self._resources, "ip_counter": self._ip_counter}, indent=2, sort_keys=True),
            encoding='utf-8',
        )
        os.replace(tmp_path, self.path)

    def _simulate_latency(self) -> None:
        if self.latency > 0:
            time.sleep(self.latency)

    def _find(self, kind: ResourceKind, **match: Any) -> Optional[str]:
        for provider_id, record in self._resources.items():
            if record["kind"] != kind.value:
                continue
            if all(record["attributes"].get(k) == v for k, v in match.items()):
                return provider_id
        return None

    def _require(self, kind: ResourceKind, **match: Any) -> None:
        if self._find(kind, **match) is None:
            detail = ", ".join(f"{k}={v}" for k, v in match.items())
            raise ProviderError(f"{kind.value} with {detail} does not exist")

    def create_resource(self, kind: ResourceKind, attributes: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        self._simulate_latency()
        with self._lock:
            self.calls.append(("create", kind.value))
            provider_id, outputs = self._build(kind, attributes)
            self._resources[provider_id] = {"kind": kind.value, "attributes": outputs, "tags": attributes.get("tags", {})}
            self._save()
        logger.info(f"Created {kind.value} {provider_id}")
        return provider_id, dict(outputs)

    def _build(self, kind: ResourceKind, attributes: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        if kind == ResourceKind.KEY_PAIR:
            key_name = attributes["key_name"]
            if self._find(kind, key_name=key_name):
                raise ProviderError(f"Key pair '{key_name}' already exists")
            public_key = attributes.get("public_key")
            if not public_key:
                raise ProviderError("Key pair import requires public key material")
            return f"key-{secrets.token_hex(8)}", {
                "key_name": key_name,
                "fingerprint": public_key_fingerprint(public_key),
            }

        if kind == ResourceKind.ROLE:
            role_name = attributes["role_name"]
            if self._find(kind, role_name=role_name):
                raise ProviderError(f"Role '{role_name}' already exists")
            return f"AROA{secrets.token_hex(8).upper()}", {
                "role_name": role_name,
                "arn": f"arn:aws:iam::{ACCOUNT_ID}:role/{role_name}",
            }

        if kind == ResourceKind.POLICY:
            self._require(ResourceKind.ROLE, role_name=attributes["role_name"])
            self._require(ResourceKind.BUCKET, arn=attributes["bucket_arn"])
            return f"{attributes['role_name']}:{attributes['policy_name']}", {
                "policy_name": attributes["policy_name"],
                "role_name": attributes["role_name"],
                "policy_document": bucket_access_policy(attributes.get("actions", []), attributes["bucket_arn"]),
            }

        if kind == ResourceKind.INSTANCE_PROFILE:
            self._require(ResourceKind.ROLE, role_name=attributes["role_name"])
            profile_name = attributes["profile_name"]
            if self._find(kind, profile_name=profile_name):
                raise ProviderError(f"Instance profile '{profile_name}' already exists")
            return f"AIPA{secrets.token_hex(8).upper()}", {
                "profile_name": profile_name,
                "role_name": attributes["role_name"],
                "arn": f"arn:aws:iam::{ACCOUNT_ID}:instance-profile/{profile_name}",
            }

        if kind == ResourceKind.INSTANCE:
            self._require(ResourceKind.KEY_PAIR, key_name=attributes["key_name"])
            self._require(ResourceKind.INSTANCE_PROFILE, profile_name=attributes["instance_profile"])
            self._ip_counter += 1
            instance_id = f"i-{secrets.token_hex(9)[:17]}"
            return instance_id, {
                "instance_id": instance_id,
                "public_ip": f"203.0.113.{10 + self._ip_counter % 240}",
                "private_ip": f"10.0.1.{10 + self._ip_counter % 240}",
                "state": "running",
                "key_name": attributes["key_name"],
            }

        if kind == ResourceKind.BUCKET:
            bucket_name = attributes["bucket_name"]
            if bucket_name in self._resources:
                raise ProviderError(f"Bucket '{bucket_name}' already exists")
            return bucket_name, {
                "bucket_name": bucket_name,
                "arn": f"arn:aws:s3:::{bucket_name}",
                "region": attributes.get("region"),
            }

        if kind == ResourceKind.BUCKET_VERSIONING:
            self._require(ResourceKind.BUCKET, bucket_name=attributes["bucket"])
            return f"{attributes['bucket']}/versioning", {
                "bucket": attributes["bucket"],
                "status": attributes.get("status", "Enabled"),
            }

        if kind == ResourceKind.BUCKET_ENCRYPTION:
            self._require(ResourceKind.BUCKET, bucket_name=attributes["bucket"])
            return f"{attributes['bucket']}/encryption", {
                "bucket": attributes["bucket"],
                "sse_algorithm": attributes["sse_algorithm"],
            }

        raise ProviderError(f"Unsupported resource kind: {kind}")

    def delete_resource(self, kind: ResourceKind, provider_id: str) -> None:
        self._simulate_latency()
        with self._lock:
            self.calls.append(("delete", kind.value))
            record = self._resources.get(provider_id)
            if record is None or record["kind"] != kind.value:
                raise ResourceNotFoundError(f"{kind.value} {provider_id} not found")

            if kind == ResourceKind.ROLE:
                role_name = record["attributes"]["role_name"]
                for other_kind in (ResourceKind.POLICY, ResourceKind.INSTANCE_PROFILE):
                    if self._find(other_kind, role_name=role_name):
                        raise ProviderError(
                            f"DeleteConflict: role '{role_name}' is still used by a {other_kind.value}"
                        )

            del self._resources[provider_id]
            self._save()
        logger.info(f"Deleted {kind.value} {provider_id}")

    def describe_resource(self, kind: ResourceKind, provider_id: str) -> Dict[str, Any]:
        with self._lock:
            self.calls.append(("describe", kind.value))
            record = self._resources.get(provider_id)
            if record is None or record["kind"] != kind.value:
                raise ResourceNotFoundError(f"{kind.value} {provider_id} not found")
            return dict(record["attributes"])

    def update_resource(self, kind: ResourceKind, provider_id: str, attributes: Dict[str, Any],
                        replace: bool = False) -> Tuple[str, Dict[str, Any]]:
        if replace:
            if kind in _NAMED_KINDS:
                try:
                    self.delete_resource(kind, provider_id)
                except ResourceNotFoundError:
                    logger.warning(f"{kind.value} {provider_id} already gone; creating its replacement")
                return self.create_resource(kind, attributes)
            return super().update_resource(kind, provider_id, attributes, replace=True)

        self._simulate_latency()
        with self._lock:
            self.calls.append(("update", kind.value))
            record = self._resources.get(provider_id)
            if record is None or record["kind"] != kind.value:
                raise ResourceNotFoundError(f"{kind.value} {provider_id} not found")

            if kind in _REBUILT_KINDS:
                del self._resources[provider_id]
                try:
                    _, outputs = self._build(kind, attributes)
                except ProviderError:
                    self._resources[provider_id] = record
                    raise
            else:
                outputs = record["attributes"]
            self._resources[provider_id] = {"kind": kind.value, "attributes": outputs, "tags": attributes.get("tags", {})}
            self._save()
        logger.info(f"Updated {kind.value} {provider_id} in place")
        return provider_id, dict(outputs)

    def tags(self, provider_id: str) -> Dict[str, str]:
        """Tags currently applied to a simulated resource."""
        with self._lock:
            record = self._resources.get(provider_id)
            if record is None:
                raise ResourceNotFoundError(f"{provider_id} not found")
            return dict(record.get("tags", {}))

    def resource_count(self) -> int:
        with self._lock:
            return len(self._resources)

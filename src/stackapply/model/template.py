"""The fixed resource template, its validation rules and reference resolution."""

import json
import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple
from ..config.settings import TemplateSettings
from ..state.models import ResourceState, ResourceStatus
from ..utils.errors import ValidationError, UnresolvedReferenceError, ConfigError
from ..utils.logging import get_logger
from .resources import ResourceKind, ResourceSpec, Reference, make_address

logger = get_logger("model.template")

DEFAULT_BOOTSTRAP_PATH = Path(__file__).parent / "bootstrap.sh"

SUPPORTED_ENCRYPTION = ("AES256", "aws:kms")

_AMI_PATTERN = re.compile(r"^ami-[0-9a-f]{8,17}$")
_BUCKET_PATTERN = re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")

EC2_TRUST_POLICY = json.dumps(
    {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Effect": "Allow",
                "Principal": {"Service": "ec2.amazonaws.com"},
                "Action": "sts:AssumeRole",
            }
        ],
    },
    sort_keys=True,
)


def build_template(settings: TemplateSettings, bootstrap_text: str) -> List[ResourceSpec]:
    """
    Declare the fixed resource graph from template settings.

    Declaration order is the tie-breaker for the topological sort, so it
    is kept stable.
    """
    project = settings.project
    tags = dict(settings.tags)
    tags.setdefault("Project", project)

    specs = [
        ResourceSpec(
            kind=ResourceKind.KEY_PAIR,
            name="deployer",
            attributes={
                "key_name": settings.key_name,
                "algorithm": settings.key_algorithm,
                "tags": tags,
            },
        ),
        ResourceSpec(
            kind=ResourceKind.ROLE,
            name="instance",
            attributes={
                "role_name": f"{project}-instance-role",
                "assume_role_policy": EC2_TRUST_POLICY,
                "tags": tags,
            },
        ),
        ResourceSpec(
            kind=ResourceKind.POLICY,
            name="bucket_access",
            attributes={
                "policy_name": f"{project}-bucket-access",
                "actions": list(settings.bucket_actions),
            },
            references=[
                Reference(slot="role_name", target_kind=ResourceKind.ROLE, target_name="instance", output="role_name"),
                Reference(slot="bucket_arn", target_kind=ResourceKind.BUCKET, target_name="artifacts", output="arn"),
            ],
        ),
        ResourceSpec(
            kind=ResourceKind.INSTANCE_PROFILE,
            name="instance",
            attributes={"profile_name": f"{project}-instance-profile"},
            references=[
                Reference(slot="role_name", target_kind=ResourceKind.ROLE, target_name="instance", output="role_name"),
            ],
            depends_on=[make_address(ResourceKind.POLICY, "bucket_access")],
        ),
        ResourceSpec(
            kind=ResourceKind.INSTANCE,
            name="web",
            attributes={
                "ami": settings.ami,
                "instance_type": settings.instance_type,
                "region": settings.region,
                "ssh_user": settings.ssh_user,
                "user_data": bootstrap_text,
                "tags": tags,
            },
            references=[
                Reference(slot="key_name", target_kind=ResourceKind.KEY_PAIR, target_name="deployer", output="key_name"),
                # A regenerated key pair keeps its name; the fingerprint ties the instance to the material.
                Reference(slot="key_fingerprint", target_kind=ResourceKind.KEY_PAIR, target_name="deployer", output="fingerprint"),
                Reference(slot="instance_profile", target_kind=ResourceKind.INSTANCE_PROFILE, target_name="instance", output="profile_name"),
            ],
            depends_on=[make_address(ResourceKind.POLICY, "bucket_access")],
        ),
        ResourceSpec(
            kind=ResourceKind.BUCKET,
            name="artifacts",
            attributes={
                "bucket_name": settings.bucket_name,
                "region": settings.region,
                "tags": tags,
            },
        ),
    ]

    if settings.bucket_versioning:
        specs.append(ResourceSpec(
            kind=ResourceKind.BUCKET_VERSIONING,
            name="artifacts",
            attributes={"status": "Enabled"},
            references=[
                Reference(slot="bucket", target_kind=ResourceKind.BUCKET, target_name="artifacts", output="bucket_name"),
            ],
        ))

    if settings.bucket_encryption:
        specs.append(ResourceSpec(
            kind=ResourceKind.BUCKET_ENCRYPTION,
            name="artifacts",
            attributes={"sse_algorithm": settings.bucket_encryption},
            references=[
                Reference(slot="bucket", target_kind=ResourceKind.BUCKET, target_name="artifacts", output="bucket_name"),
            ],
        ))

    return specs


def _require_non_empty(field: str) -> Callable[[Any], Optional[str]]:
    def check(value: Any) -> Optional[str]:
        if not isinstance(value, str) or not value.strip():
            return f"{field} must be a non-empty string"
        return None
    return check


def _check_ami(value: Any) -> Optional[str]:
    if not isinstance(value, str) or not _AMI_PATTERN.match(value):
        return f"ami '{value}' is not a valid image id (expected ami-<hex>)"
    return None


def _check_bucket_name(value: Any) -> Optional[str]:
    if not isinstance(value, str) or not _BUCKET_PATTERN.match(value) or ".." in value:
        return (
            f"bucket_name '{value}' is invalid: use 3-63 lowercase letters, digits, "
            "dots or hyphens, starting and ending with a letter or digit"
        )
    return None


def _check_encryption(value: Any) -> Optional[str]:
    if value not in SUPPORTED_ENCRYPTION:
        return f"sse_algorithm '{value}' is not supported (use one of: {', '.join(SUPPORTED_ENCRYPTION)})"
    return None


ATTRIBUTE_RULES: Dict[ResourceKind, Dict[str, Callable[[Any], Optional[str]]]] = {
    ResourceKind.KEY_PAIR: {"key_name": _require_non_empty("key_name")},
    ResourceKind.ROLE: {"role_name": _require_non_empty("role_name")},
    ResourceKind.POLICY: {"policy_name": _require_non_empty("policy_name")},
    ResourceKind.INSTANCE_PROFILE: {"profile_name": _require_non_empty("profile_name")},
    ResourceKind.INSTANCE: {
        "ami": _check_ami,
        "region": _require_non_empty("region"),
    },
    ResourceKind.BUCKET: {
        "bucket_name": _check_bucket_name,
        "region": _require_non_empty("region"),
    },
    ResourceKind.BUCKET_ENCRYPTION: {"sse_algorithm": _check_encryption},
}


def validate_specs(specs: List[ResourceSpec], allowed_instance_types: Optional[List[str]] = None) -> None:
    """
    Validate a declared resource set before anything else touches it.

    Args:
        specs: Declared resources
        allowed_instance_types: Allow-list for Instance.instance_type (skipped when None)

    Raises:
        ValidationError: On duplicates, dangling references or attribute rule failures
    """
    problems: List[str] = []
    seen = set()

    for spec in specs:
        if spec.address in seen:
            problems.append(f"{spec.address}: declared more than once")
        seen.add(spec.address)

    for spec in specs:
        for ref in spec.references:
            if ref.target_address not in seen:
                problems.append(f"{spec.address}: reference '{ref.slot}' targets missing resource {ref.target_address}")
            if ref.slot in spec.attributes:
                problems.append(f"{spec.address}: '{ref.slot}' is both a literal attribute and a reference")
        for address in spec.depends_on:
            if address not in seen:
                problems.append(f"{spec.address}: depends_on targets missing resource {address}")

        for attribute, rule in ATTRIBUTE_RULES.get(spec.kind, {}).items():
            problem = rule(spec.attributes.get(attribute))
            if problem:
                problems.append(f"{spec.address}: {problem}")

        if spec.kind == ResourceKind.INSTANCE and allowed_instance_types is not None:
            instance_type = spec.attributes.get("instance_type")
            if instance_type not in allowed_instance_types:
                problems.append(
                    f"{spec.address}: instance_type '{instance_type}' is not allowed "
                    f"(allowed: {', '.join(allowed_instance_types) or 'none'})"
                )

    if problems:
        raise ValidationError("Template validation failed:\n  " + "\n  ".join(problems))


def read_bootstrap_script(path: Optional[str] = None) -> str:
    """Read the first-boot script as opaque text (packaged default when path is None)."""
    script_path = Path(path) if path else DEFAULT_BOOTSTRAP_PATH
    try:
        return script_path.read_text(encoding='utf-8')
    except OSError as e:
        raise ConfigError(f"Cannot read bootstrap script {script_path}: {e}")


class ResourceModel:
    """Read-only view over the validated resource declarations."""

    def __init__(self, specs: List[ResourceSpec]):
        self._specs = list(specs)
        self._index = {spec.address: spec for spec in self._specs}

    @property
    def specs(self) -> List[ResourceSpec]:
        return list(self._specs)

    def get(self, kind: ResourceKind, name: str) -> Optional[ResourceSpec]:
        return self._index.get(make_address(kind, name))

    def get_by_address(self, address: str) -> Optional[ResourceSpec]:
        return self._index.get(address)

    def __len__(self) -> int:
        return len(self._specs)

    def __iter__(self):
        return iter(self._specs)

    def resolve(self, reference: Reference, states: Mapping[str, ResourceState]) -> Any:
        """
        Resolve a reference against known state.

        Raises:
            UnresolvedReferenceError: If the target is not Created or lacks the output
        """
        return resolve_reference(reference, states)

    def resolve_attributes(self, spec: ResourceSpec, states: Mapping[str, ResourceState]) -> Tuple[Dict[str, Any], List[str]]:
        return resolve_attributes(spec, states)


def resolve_reference(reference: Reference, states: Mapping[str, ResourceState]) -> Any:
    """Look up the referenced output on a Created target state."""
    state = states.get(reference.target_address)
    if state is None or state.status != ResourceStatus.CREATED:
        raise UnresolvedReferenceError(
            f"{reference.target_address} is not created yet (needed for '{reference.slot}')"
        )
    if reference.output not in state.attributes:
        raise UnresolvedReferenceError(
            f"{reference.target_address} has no output '{reference.output}' (needed for '{reference.slot}')"
        )
    return state.attributes[reference.output]


def resolve_attributes(spec: ResourceSpec, states: Mapping[str, ResourceState]) -> Tuple[Dict[str, Any], List[str]]:
    """
    Merge literal attributes with every resolvable reference.

    Returns:
        Tuple of (resolved attributes, slots that could not be resolved yet)
    """
    resolved = dict(spec.attributes)
    unresolved: List[str] = []
    for ref in spec.references:
        try:
            resolved[ref.slot] = resolve_reference(ref, states)
        except UnresolvedReferenceError:
            unresolved.append(ref.slot)
    return resolved, unresolved


def load_template(settings: TemplateSettings) -> ResourceModel:
    """
    Build and validate the resource template.

    Args:
        settings: Template settings

    Returns:
        Validated ResourceModel

    Raises:
        ValidationError: If the template fails validation
    """
    if not settings.region.strip():
        raise ValidationError("Template validation failed: region must be a non-empty string")

    bootstrap_text = read_bootstrap_script(settings.bootstrap_script)
    specs = build_template(settings, bootstrap_text)
    validate_specs(specs, settings.allowed_instance_types)

    logger.info(f"Loaded template with {len(specs)} resources")
    return ResourceModel(specs)

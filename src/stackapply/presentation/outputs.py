"""Output rendering and the private key sink."""

import os
import stat
import tempfile
from pathlib import Path
from typing import Dict, Iterable, Optional
from ..model.resources import ResourceKind
from ..secrets.keygen import SecretMaterial
from ..state.models import ResourceState, ResourceStatus
from ..utils.errors import IncompleteStateError, SecretSinkError
from ..utils.logging import get_logger

logger = get_logger("presentation.outputs")

CONNECT_PROTOCOL = "ssh"
PRIVATE_KEY_MODE = 0o600


class KeyFileSink:
    """
    Writes private keys to <directory>/<key_name>.pem with owner-only permissions.

    Keys are staged in a sibling temporary file and renamed over the key file
    only once the provider has accepted the public half, so a failed key pair
    update leaves the previous key in place.
    """

    def __init__(self, directory: str = "."):
        self.directory = Path(directory)

    def path_for(self, key_name: str) -> Path:
        return self.directory / f"{key_name}.pem"

    def stage(self, key_name: str, material: SecretMaterial) -> Path:
        """
        Write private key material to a temporary file beside the key file.

        Args:
            key_name: Provider key pair name (file stem)
            material: Generated key material

        Returns:
            Path of the staged file

        Raises:
            SecretSinkError: If the file cannot be written or its mode cannot be confirmed as 0600
        """
        tmp_path = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=f".{key_name}.", suffix=".pem.tmp", dir=str(self.directory))
            with os.fdopen(fd, 'wb') as f:
                f.write(material.private_key)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, PRIVATE_KEY_MODE)
            mode = stat.S_IMODE(os.stat(tmp_path).st_mode)
        except OSError as e:
            if tmp_path is not None:
                self.discard(Path(tmp_path))
            raise SecretSinkError(f"Failed to write private key for {key_name}: {e}")

        if mode & 0o077:
            self.discard(Path(tmp_path))
            raise SecretSinkError(
                f"Private key for {key_name} has mode {oct(mode)}; owner-only access (0600) could not be set"
            )
        return Path(tmp_path)

    def commit(self, key_name: str, staged: Path) -> Path:
        """Move a staged key over <key_name>.pem and return the final path."""
        path = self.path_for(key_name)
        try:
            os.replace(staged, path)
        except OSError as e:
            self.discard(staged)
            raise SecretSinkError(f"Failed to write private key {path}: {e}")
        logger.info(f"Wrote private key for {key_name} to {path}")
        return path

    def discard(self, staged: Path) -> None:
        """Remove a staged key that will not be used."""
        try:
            os.unlink(staged)
        except FileNotFoundError:
            pass

    def write(self, key_name: str, material: SecretMaterial) -> Path:
        """Stage and commit in one step."""
        return self.commit(key_name, self.stage(key_name, material))


def _find_created(states: Iterable[ResourceState], kind: ResourceKind) -> Optional[ResourceState]:
    for state in states:
        if state.kind == kind and state.status == ResourceStatus.CREATED:
            return state
    return None


def render(states: Iterable[ResourceState], key_dir: Optional[str] = None) -> Dict[str, str]:
    """
    Project final state into user-facing values.

    Args:
        states: Resource states (typically from the State Store)
        key_dir: Directory the private key was written to (key file name only when None)

    Returns:
        Mapping with instance_id, public_ip, key_file, ssh_command and bucket_name when known

    Raises:
        IncompleteStateError: If the instance is not Created
    """
    states = list(states)
    instance = _find_created(states, ResourceKind.INSTANCE)
    if instance is None:
        raise IncompleteStateError(
            "Instance is not created yet; run 'stackapply apply' before requesting outputs"
        )

    address = instance.attributes.get("public_ip")
    if not address:
        raise IncompleteStateError(f"{instance.address} has no public address")

    key_name = instance.attributes.get("key_name")
    key_pair = _find_created(states, ResourceKind.KEY_PAIR)
    if key_pair is not None and key_pair.attributes.get("key_file"):
        key_file = key_pair.attributes["key_file"]
    elif key_dir:
        key_file = str(Path(key_dir) / f"{key_name}.pem")
    else:
        key_file = f"{key_name}.pem"

    user = instance.attributes.get("ssh_user", "ubuntu")
    outputs = {
        "instance_id": instance.provider_id,
        "public_ip": address,
        "key_file": key_file,
        "ssh_command": f"{CONNECT_PROTOCOL} -i {key_file} {user}@{address}",
    }

    bucket = _find_created(states, ResourceKind.BUCKET)
    if bucket is not None:
        outputs["bucket_name"] = bucket.attributes.get("bucket_name", bucket.provider_id)
    return outputs

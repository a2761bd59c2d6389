"""Durable state store with atomic snapshot writes."""

import hashlib
import json
import os
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional
from pydantic import ValidationError as PydanticValidationError
from ..model.resources import ResourceKind, make_address
from ..utils.errors import StateCorruptionError, StateWriteError
from ..utils.logging import get_logger
from .models import ResourceState, ResourceStatus, StateSnapshot, SCHEMA_VERSION

logger = get_logger("state.store")

MAX_TOMBSTONES = 50


def compute_digest(payload: Dict[str, Any]) -> str:
    """Digest over the canonical JSON form of a snapshot (digest field excluded)."""
    canonical = json.dumps(
        {k: v for k, v in payload.items() if k != "digest"},
        sort_keys=True,
        separators=(",", ":"),
    )
    return "sha256:" + hashlib.sha256(canonical.encode('utf-8')).hexdigest()


class StateStore:
    """
    Record of the last-known real-world state of each declared resource.

    Every mutation is persisted immediately as a whole snapshot written to a
    temporary file and renamed over the previous one, so a crash leaves
    either the old or the new snapshot on disk. The previous snapshot is
    kept alongside as ``<path>.backup``.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self.backup_path = self.path.with_name(self.path.name + ".backup")
        self._snapshot: Optional[StateSnapshot] = None
        self._states: Dict[str, ResourceState] = {}

    def load(self) -> List[ResourceState]:
        """
        Load the snapshot from disk (empty on first run).

        Returns:
            Active resource states in commit order

        Raises:
            StateCorruptionError: If the snapshot fails an integrity check
        """
        if not self.path.exists():
            logger.info(f"No state found at {self.path}, starting empty")
            self._snapshot = StateSnapshot(lineage=str(uuid.uuid4()))
            self._states = {}
            return []

        try:
            raw = json.loads(self.path.read_text(encoding='utf-8'))
        except json.JSONDecodeError as e:
            raise StateCorruptionError(f"State file {self.path} is not valid JSON: {e}")
        except OSError as e:
            raise StateCorruptionError(f"Cannot read state file {self.path}: {e}")

        self._snapshot = self._validate(raw)
        self._states = {}
        for state in self._snapshot.resources:
            if state.address in self._states:
                raise StateCorruptionError(f"State file {self.path} lists {state.address} more than once")
            self._states[state.address] = state

        logger.info(
            f"Loaded state from {self.path} "
            f"(serial: {self._snapshot.serial}, resources: {len(self._states)})"
        )
        return list(self._states.values())

    def _validate(self, raw: Any) -> StateSnapshot:
        if not isinstance(raw, dict):
            raise StateCorruptionError(f"State file {self.path} must contain a JSON object")

        version = raw.get("schema_version")
        if not isinstance(version, int):
            raise StateCorruptionError(f"State file {self.path} has no valid schema_version")
        if version > SCHEMA_VERSION:
            raise StateCorruptionError(
                f"State file {self.path} uses schema version {version}, "
                f"newer than supported version {SCHEMA_VERSION}. Upgrade stackapply."
            )

        digest = raw.get("digest")
        if digest != compute_digest(raw):
            raise StateCorruptionError(
                f"State file {self.path} failed its integrity check (digest mismatch). "
                f"Refusing to continue; a previous snapshot may be available at {self.backup_path}"
            )

        try:
            return StateSnapshot.model_validate(raw)
        except PydanticValidationError as e:
            raise StateCorruptionError(f"State file {self.path} has invalid content: {e}")

    def _ensure_loaded(self) -> None:
        if self._snapshot is None:
            self.load()

    def states(self) -> List[ResourceState]:
        """Active resource states in commit order."""
        self._ensure_loaded()
        return list(self._states.values())

    def as_mapping(self) -> Dict[str, ResourceState]:
        """Active resource states keyed by address."""
        self._ensure_loaded()
        return dict(self._states)

    def tombstones(self) -> List[ResourceState]:
        self._ensure_loaded()
        return list(self._snapshot.tombstones)

    @property
    def serial(self) -> int:
        self._ensure_loaded()
        return self._snapshot.serial

    def get(self, kind: ResourceKind, name: str) -> Optional[ResourceState]:
        self._ensure_loaded()
        return self._states.get(make_address(kind, name))

    def get_by_address(self, address: str) -> Optional[ResourceState]:
        self._ensure_loaded()
        return self._states.get(address)

    def upsert(self, state: ResourceState) -> None:
        """Insert or replace the record for (kind, name) and persist."""
        self._ensure_loaded()
        previous = self._states.get(state.address)
        self._states[state.address] = state
        try:
            self._persist()
        except StateWriteError:
            if previous is None:
                del self._states[state.address]
            else:
                self._states[state.address] = previous
            raise
        logger.debug(f"Committed {state.address} ({state.status.value})")

    def remove(self, kind: ResourceKind, name: str) -> Optional[ResourceState]:
        """Drop the record for (kind, name), keeping a Destroyed tombstone, and persist."""
        self._ensure_loaded()
        address = make_address(kind, name)
        previous = self._states.pop(address, None)
        if previous is None:
            return None

        tombstone = previous.model_copy(update={"status": ResourceStatus.DESTROYED})
        tombstones = self._snapshot.tombstones
        self._snapshot.tombstones = (tombstones + [tombstone])[-MAX_TOMBSTONES:]
        try:
            self._persist()
        except StateWriteError:
            self._states[address] = previous
            self._snapshot.tombstones = tombstones
            raise
        logger.debug(f"Removed {address} from state")
        return previous

    def _persist(self) -> None:
        snapshot = self._snapshot.model_copy(update={
            "serial": self._snapshot.serial + 1,
            "resources": list(self._states.values()),
            "digest": None,
        })
        payload = snapshot.model_dump(mode="json", exclude={"digest"})
        payload["digest"] = compute_digest(payload)
        text = json.dumps(payload, indent=2, sort_keys=True) + "\n"

        self._write_atomic(text)
        snapshot.digest = payload["digest"]
        self._snapshot = snapshot

    def _write_atomic(self, text: str) -> None:
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
            )
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            if self.path.exists():
                shutil.copy2(self.path, self.backup_path)
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as e:
            raise StateWriteError(f"Failed to write state file {self.path}: {e}")
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)

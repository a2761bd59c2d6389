"""Tests for the durable state store."""

import json
import pytest
from stackapply.model.resources import ResourceKind
from stackapply.state.models import ResourceState, ResourceStatus, SCHEMA_VERSION
from stackapply.state.store import StateStore, compute_digest
from stackapply.utils.errors import StateCorruptionError, StateWriteError


def _created(kind=ResourceKind.ROLE, name="instance", provider_id="AROA123", **attributes):
    return ResourceState(kind=kind, name=name, provider_id=provider_id,
                         attributes=attributes, status=ResourceStatus.CREATED)


@pytest.fixture
def state_path(tmp_path):
    return tmp_path / "state" / "state.json"


class TestStateStore:
    """Test load, commit and reload."""

    def test_first_run_is_empty(self, state_path):
        store = StateStore(str(state_path))

        assert store.load() == []
        assert not state_path.exists()

    def test_upsert_persists_immediately(self, state_path):
        store = StateStore(str(state_path))
        store.load()
        store.upsert(_created(role_name="demo-role"))

        reloaded = StateStore(str(state_path))
        states = reloaded.load()

        assert len(states) == 1
        assert states[0].provider_id == "AROA123"
        assert states[0].attributes == {"role_name": "demo-role"}
        assert reloaded.serial == 1

    def test_upsert_replaces_record(self, state_path):
        store = StateStore(str(state_path))
        store.upsert(ResourceState(kind=ResourceKind.ROLE, name="instance", status=ResourceStatus.PENDING))
        store.upsert(_created())

        assert len(store.states()) == 1
        assert store.get(ResourceKind.ROLE, "instance").status == ResourceStatus.CREATED
        assert store.serial == 2

    def test_commit_order_preserved(self, state_path):
        store = StateStore(str(state_path))
        store.upsert(_created(kind=ResourceKind.BUCKET, name="b", provider_id="b"))
        store.upsert(_created(kind=ResourceKind.ROLE, name="r"))

        assert [s.address for s in StateStore(str(state_path)).load()] == ["Bucket.b", "Role.r"]

    def test_remove_keeps_tombstone(self, state_path):
        store = StateStore(str(state_path))
        store.upsert(_created())

        removed = store.remove(ResourceKind.ROLE, "instance")

        assert removed.provider_id == "AROA123"
        assert store.states() == []
        tombstones = StateStore(str(state_path)).tombstones()
        assert [t.status for t in tombstones] == [ResourceStatus.DESTROYED]

    def test_remove_unknown_is_noop(self, state_path):
        store = StateStore(str(state_path))

        assert store.remove(ResourceKind.ROLE, "missing") is None
        assert not state_path.exists()

    def test_previous_snapshot_kept_as_backup(self, state_path):
        store = StateStore(str(state_path))
        store.upsert(_created())
        store.upsert(_created(provider_id="AROA456"))

        backup = json.loads(store.backup_path.read_text())
        assert backup["resources"][0]["provider_id"] == "AROA123"
        assert backup["serial"] == 1

    def test_no_temporary_files_left(self, state_path):
        store = StateStore(str(state_path))
        store.upsert(_created())

        assert sorted(p.name for p in state_path.parent.iterdir()) == ["state.json"]

    def test_unknown_fields_survive_rewrite(self, state_path):
        store = StateStore(str(state_path))
        store.upsert(_created())
        payload = json.loads(state_path.read_text())
        payload["annotations"] = {"owner": "ops"}
        payload["digest"] = compute_digest(payload)
        state_path.write_text(json.dumps(payload))

        store = StateStore(str(state_path))
        store.load()
        store.upsert(_created(kind=ResourceKind.BUCKET, name="b", provider_id="b"))

        assert json.loads(state_path.read_text())["annotations"] == {"owner": "ops"}

    def test_unknown_record_fields_survive_rewrite(self, state_path):
        store = StateStore(str(state_path))
        store.upsert(_created().model_copy(update={"future_field": "keep-me"}))

        store = StateStore(str(state_path))
        store.load()
        store.upsert(_created(kind=ResourceKind.BUCKET, name="b", provider_id="b"))

        reloaded = StateStore(str(state_path))
        reloaded.load()
        assert reloaded.get(ResourceKind.ROLE, "instance").model_dump()["future_field"] == "keep-me"


class TestStateIntegrity:
    """Test integrity checks on load."""

    def test_tampered_snapshot_rejected(self, state_path):
        StateStore(str(state_path)).upsert(_created())
        payload = json.loads(state_path.read_text())
        payload["resources"][0]["provider_id"] = "AROA999"
        state_path.write_text(json.dumps(payload))

        with pytest.raises(StateCorruptionError, match="integrity check"):
            StateStore(str(state_path)).load()

    def test_invalid_json_rejected(self, state_path):
        state_path.parent.mkdir(parents=True)
        state_path.write_text("{not json")

        with pytest.raises(StateCorruptionError, match="not valid JSON"):
            StateStore(str(state_path)).load()

    def test_newer_schema_rejected(self, state_path):
        state_path.parent.mkdir(parents=True)
        payload = {"schema_version": SCHEMA_VERSION + 1, "serial": 1, "resources": []}
        payload["digest"] = compute_digest(payload)
        state_path.write_text(json.dumps(payload))

        with pytest.raises(StateCorruptionError, match="newer than supported"):
            StateStore(str(state_path)).load()

    def test_created_requires_provider_id(self):
        with pytest.raises(ValueError, match="no provider_id"):
            ResourceState(kind=ResourceKind.ROLE, name="r", status=ResourceStatus.CREATED)

    def test_failed_write_leaves_memory_unchanged(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        store = StateStore(str(blocker / "state.json"))
        store.load()

        with pytest.raises(StateWriteError):
            store.upsert(_created())

        assert store.states() == []

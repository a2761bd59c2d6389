"""Tests for the resource template, validation and reference resolution."""

import pytest
from stackapply.model.resources import Reference, ResourceKind, ResourceSpec
from stackapply.model.template import (
    build_template,
    load_template,
    read_bootstrap_script,
    resolve_attributes,
    resolve_reference,
    validate_specs,
)
from stackapply.state.models import ResourceState, ResourceStatus
from stackapply.utils.errors import ConfigError, UnresolvedReferenceError, ValidationError


class TestBuildTemplate:
    """Test the declared resource graph."""

    def test_declares_eight_resources_by_default(self, settings):
        model = load_template(settings.template)

        assert [spec.address for spec in model] == [
            "KeyPair.deployer",
            "Role.instance",
            "Policy.bucket_access",
            "InstanceProfile.instance",
            "Instance.web",
            "Bucket.artifacts",
            "BucketVersioning.artifacts",
            "BucketEncryption.artifacts",
        ]

    def test_bucket_settings_can_be_disabled(self, make_settings):
        settings = make_settings(bucket_versioning=False, bucket_encryption=None)
        model = load_template(settings.template)

        assert len(model) == 6
        assert model.get(ResourceKind.BUCKET_VERSIONING, "artifacts") is None
        assert model.get(ResourceKind.BUCKET_ENCRYPTION, "artifacts") is None

    def test_instance_references_key_pair_and_profile(self, settings):
        model = load_template(settings.template)
        instance = model.get(ResourceKind.INSTANCE, "web")

        assert instance.dependencies == [
            "KeyPair.deployer",
            "InstanceProfile.instance",
            "Policy.bucket_access",
        ]
        assert "key_name" not in instance.attributes
        assert [r.slot for r in instance.references] == ["key_name", "key_fingerprint", "instance_profile"]

    def test_project_tag_added(self, settings):
        spec = build_template(settings.template, "#!/bin/bash\n")[0]

        assert spec.attributes["tags"] == {"Owner": "tests", "Project": "demo"}

    def test_bootstrap_script_is_opaque_user_data(self, tmp_path, make_settings):
        script = tmp_path / "boot.sh"
        script.write_text("#!/bin/bash\necho custom\n")
        model = load_template(make_settings(bootstrap_script=str(script)).template)

        assert model.get(ResourceKind.INSTANCE, "web").attributes["user_data"] == "#!/bin/bash\necho custom\n"

    def test_missing_bootstrap_script(self, tmp_path):
        with pytest.raises(ConfigError):
            read_bootstrap_script(str(tmp_path / "missing.sh"))


class TestValidation:
    """Test load-time validation."""

    def test_invalid_ami(self, make_settings):
        with pytest.raises(ValidationError, match="ami"):
            load_template(make_settings(ami="ubuntu-latest").template)

    def test_instance_type_not_allowed(self, make_settings):
        with pytest.raises(ValidationError, match="instance_type 'm5.24xlarge' is not allowed"):
            load_template(make_settings(instance_type="m5.24xlarge").template)

    def test_empty_region(self, make_settings):
        with pytest.raises(ValidationError, match="region"):
            load_template(make_settings(region="  ").template)

    def test_invalid_bucket_name(self, make_settings):
        with pytest.raises(ValidationError, match="bucket_name"):
            load_template(make_settings(bucket_name="Not_A_Bucket").template)

    def test_unsupported_encryption(self, make_settings):
        with pytest.raises(ValidationError, match="sse_algorithm"):
            load_template(make_settings(bucket_encryption="rot13").template)

    def test_all_problems_reported_together(self, make_settings):
        with pytest.raises(ValidationError) as exc_info:
            load_template(make_settings(ami="bad", bucket_name="BAD").template)

        assert "ami" in str(exc_info.value)
        assert "bucket_name" in str(exc_info.value)

    def test_dangling_reference(self):
        specs = [
            ResourceSpec(
                kind=ResourceKind.POLICY,
                name="p",
                attributes={"policy_name": "p"},
                references=[Reference(slot="role_name", target_kind=ResourceKind.ROLE, target_name="missing", output="role_name")],
            )
        ]

        with pytest.raises(ValidationError, match="Role.missing"):
            validate_specs(specs)

    def test_duplicate_declaration(self):
        role = ResourceSpec(kind=ResourceKind.ROLE, name="r", attributes={"role_name": "r"})

        with pytest.raises(ValidationError, match="declared more than once"):
            validate_specs([role, role])

    def test_slot_cannot_be_literal_and_reference(self):
        specs = [
            ResourceSpec(kind=ResourceKind.ROLE, name="r", attributes={"role_name": "r"}),
            ResourceSpec(
                kind=ResourceKind.INSTANCE_PROFILE,
                name="ip",
                attributes={"profile_name": "ip", "role_name": "literal"},
                references=[Reference(slot="role_name", target_kind=ResourceKind.ROLE, target_name="r", output="role_name")],
            ),
        ]

        with pytest.raises(ValidationError, match="both a literal attribute and a reference"):
            validate_specs(specs)


class TestReferenceResolution:
    """Test resolving references against recorded state."""

    @pytest.fixture
    def policy_spec(self):
        return ResourceSpec(
            kind=ResourceKind.POLICY,
            name="p",
            attributes={"policy_name": "p"},
            references=[
                Reference(slot="role_name", target_kind=ResourceKind.ROLE, target_name="r", output="role_name"),
                Reference(slot="bucket_arn", target_kind=ResourceKind.BUCKET, target_name="b", output="arn"),
            ],
        )

    def test_resolves_created_outputs(self, policy_spec):
        states = {
            "Role.r": ResourceState(kind=ResourceKind.ROLE, name="r", provider_id="AROA1",
                                    attributes={"role_name": "demo-role"}, status=ResourceStatus.CREATED),
            "Bucket.b": ResourceState(kind=ResourceKind.BUCKET, name="b", provider_id="b",
                                      attributes={"arn": "arn:aws:s3:::b"}, status=ResourceStatus.CREATED),
        }

        resolved, unresolved = resolve_attributes(policy_spec, states)

        assert unresolved == []
        assert resolved == {"policy_name": "p", "role_name": "demo-role", "bucket_arn": "arn:aws:s3:::b"}

    def test_pending_target_is_unresolved(self, policy_spec):
        states = {
            "Role.r": ResourceState(kind=ResourceKind.ROLE, name="r", status=ResourceStatus.PENDING),
        }

        resolved, unresolved = resolve_attributes(policy_spec, states)

        assert unresolved == ["role_name", "bucket_arn"]
        assert "role_name" not in resolved

    def test_missing_output(self, policy_spec):
        states = {
            "Role.r": ResourceState(kind=ResourceKind.ROLE, name="r", provider_id="AROA1",
                                    attributes={}, status=ResourceStatus.CREATED),
        }

        with pytest.raises(UnresolvedReferenceError, match="no output 'role_name'"):
            resolve_reference(policy_spec.references[0], states)

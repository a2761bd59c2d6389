"""Shared fixtures: settings, workspaces and a simulated provider."""

import pytest
from stackapply.config.settings import EngineSettings, Settings, TemplateSettings
from stackapply.provider.local import LocalProvider
from stackapply.workspace import Workspace


TEMPLATE_DEFAULTS = {
    "project": "demo",
    "region": "us-east-1",
    "ami": "ami-0c7217cdde317cfec",
    "instance_type": "t3.micro",
    "allowed_instance_types": ["t2.micro", "t3.micro", "t3.small"],
    "key_name": "demo-key",
    "key_algorithm": "ed25519",
    "ssh_user": "ubuntu",
    "bucket_name": "demo-artifacts",
    "bucket_actions": ["s3:GetObject", "s3:ListBucket", "s3:PutObject"],
    "tags": {"Owner": "tests"},
}


@pytest.fixture
def make_settings(tmp_path):
    """Factory for Settings rooted in tmp_path; keyword arguments override template values."""
    def _make(engine=None, **template_overrides):
        template = dict(TEMPLATE_DEFAULTS)
        template.update(template_overrides)
        engine_values = {
            "provider": "local",
            "state_path": str(tmp_path / "state.json"),
            "local_cloud_path": str(tmp_path / "local-cloud.json"),
            "key_dir": str(tmp_path / "keys"),
            "max_concurrency": 4,
            "call_timeout": 30,
        }
        engine_values.update(engine or {})
        return Settings(template=TemplateSettings(**template), engine=EngineSettings(**engine_values))
    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings()


@pytest.fixture
def provider():
    """In-memory simulated cloud."""
    return LocalProvider()


@pytest.fixture
def workspace(settings, provider):
    return Workspace.from_settings(settings, provider=provider)

"""Pydantic models for validated stackapply settings."""

from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field


class TemplateSettings(BaseModel):
    """Variables consumed by the fixed resource template."""
    project: str = Field(..., description="Prefix used for generated resource names")
    region: str = Field(..., description="Cloud region all resources are created in")
    ami: str = Field(..., description="Machine image id for the instance")
    instance_type: str = Field(..., description="Instance size")
    allowed_instance_types: List[str] = Field(default_factory=list, description="Allow-list for instance_type")
    key_name: str = Field(..., description="Provider key pair name")
    key_algorithm: Literal["rsa", "ed25519"] = Field(default="rsa", description="Key pair algorithm")
    ssh_user: str = Field(default="ubuntu", description="Login user baked into the machine image")
    bucket_name: str = Field(..., description="Globally unique object storage bucket name")
    bucket_versioning: bool = Field(default=True, description="Declare the BucketVersioning resource")
    bucket_encryption: Optional[str] = Field(default="AES256", description="SSE algorithm, null disables the BucketEncryption resource")
    bucket_actions: List[str] = Field(default_factory=list, description="Actions granted on the bucket to the instance role")
    bootstrap_script: Optional[str] = Field(default=None, description="Path to first-boot script (packaged default when unset)")
    tags: Dict[str, str] = Field(default_factory=dict, description="Tags applied to taggable resources")


class EngineSettings(BaseModel):
    """Settings for planning, execution and persistence."""
    provider: Literal["local", "aws"] = Field(default="local", description="Provider client to use")
    state_path: str = Field(default=".stackapply/state.json", description="State snapshot location")
    local_cloud_path: str = Field(default=".stackapply/local-cloud.json", description="Backing file for the local provider")
    key_dir: str = Field(default=".", description="Directory private keys are written to")
    max_concurrency: int = Field(default=4, ge=1, description="Maximum concurrent provider calls")
    call_timeout: float = Field(default=600.0, gt=0, description="Deadline in seconds for a single provider call")
    aws_profile: Optional[str] = Field(default=None, description="Named AWS profile for the aws provider")


class Settings(BaseModel):
    """Complete validated settings tree."""
    template: TemplateSettings
    engine: EngineSettings = Field(default_factory=EngineSettings)

"""AWS provider - boto3 client for the template's resource kinds (optional)."""

from typing import Any, Dict, List, Optional, Tuple
from ..model.resources import ResourceKind
from ..utils.errors import ProviderError, ProviderTimeoutError, ResourceNotFoundError
from ..utils.logging import get_logger
from .base import ProviderClient, bucket_access_policy

logger = get_logger("provider.aws")

_NOT_FOUND_CODES = {
    "InvalidKeyPair.NotFound",
    "NoSuchEntity",
    "NoSuchBucket",
    "404",
    "NotFound",
    "InvalidInstanceID.NotFound",
    "ServerSideEncryptionConfigurationNotFoundError",
}
_TRANSIENT_CODES = {"Throttling", "ThrottlingException", "RequestLimitExceeded", "ServiceUnavailable"}


def _tag_list(tags: Dict[str, str]) -> List[Dict[str, str]]:
    return [{"Key": k, "Value": v} for k, v in sorted(tags.items())]


class AwsProvider(ProviderClient):
    """
    AWS-backed provider.

    Requires boto3 (install with the ``aws`` extra). Each call carries the
    configured timeout through botocore's connect/read timeouts.
    """

    name = "aws"

    def __init__(self, region: str, profile: Optional[str] = None, timeout: float = 600.0, session=None):
        """
        Initialize AWS provider.

        Args:
            region: AWS region
            profile: Optional named profile
            timeout: Socket timeout for each API call (seconds)
            session: Pre-built boto3 session (tests inject a stub here)
        """
        self.region = region
        self.profile = profile
        self.timeout = timeout
        self._session = session
        self._clients: Dict[str, Any] = {}

    @classmethod
    def from_settings(cls, settings) -> "AwsProvider":
        return cls(
            region=settings.template.region,
            profile=settings.engine.aws_profile,
            timeout=settings.engine.call_timeout,
        )

    def _client(self, service: str):
        if service in self._clients:
            return self._clients[service]

        if self._session is None:
            try:
                import boto3
            except ImportError:
                raise ProviderError("The aws provider requires boto3. Install with: pip install 'stackapply[aws]'")
            self._session = boto3.Session(profile_name=self.profile, region_name=self.region)

        from botocore.config import Config
        config = Config(
            connect_timeout=min(self.timeout, 60),
            read_timeout=self.timeout,
            retries={"max_attempts": 5, "mode": "standard"},
        )
        client = self._session.client(service, region_name=self.region, config=config)
        self._clients[service] = client
        return client

    def _call(self, service: str, operation: str, **kwargs) -> Dict[str, Any]:
        """Invoke one API operation, mapping botocore errors onto the provider error taxonomy."""
        from botocore.exceptions import ClientError, ConnectTimeoutError, ReadTimeoutError

        client = self._client(service)
        logger.debug(f"{service}.{operation}")
        try:
            return getattr(client, operation)(**kwargs)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            message = e.response.get("Error", {}).get("Message", str(e))
            if code in _NOT_FOUND_CODES:
                raise ResourceNotFoundError(f"{service}.{operation}: {code}: {message}")
            raise ProviderError(
                f"{service}.{operation} failed: {code}: {message}",
                transient=code in _TRANSIENT_CODES,
            )
        except (ConnectTimeoutError, ReadTimeoutError) as e:
            raise ProviderTimeoutError(f"{service}.{operation} timed out: {e}")

    def _wait(self, service: str, waiter_name: str, **kwargs) -> None:
        from botocore.exceptions import WaiterError

        delay = 5
        waiter = self._client(service).get_waiter(waiter_name)
        try:
            waiter.wait(WaiterConfig={"Delay": delay, "MaxAttempts": max(1, int(self.timeout // delay))}, **kwargs)
        except WaiterError as e:
            raise ProviderTimeoutError(f"{service} waiter {waiter_name} gave up: {e}")

    def create_resource(self, kind: ResourceKind, attributes: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        if kind == ResourceKind.KEY_PAIR:
            response = self._call(
                "ec2", "import_key_pair",
                KeyName=attributes["key_name"],
                PublicKeyMaterial=attributes["public_key"].encode('ascii'),
                TagSpecifications=[{"ResourceType": "key-pair", "Tags": _tag_list(attributes.get("tags", {}))}],
            )
            return response["KeyPairId"], {
                "key_name": response["KeyName"],
                "key_pair_id": response["KeyPairId"],
                "provider_fingerprint": response.get("KeyFingerprint"),
            }

        if kind == ResourceKind.ROLE:
            response = self._call(
                "iam", "create_role",
                RoleName=attributes["role_name"],
                AssumeRolePolicyDocument=attributes["assume_role_policy"],
                Tags=_tag_list(attributes.get("tags", {})),
            )
            role = response["Role"]
            return role["RoleName"], {"role_name": role["RoleName"], "arn": role["Arn"], "role_id": role["RoleId"]}

        if kind == ResourceKind.POLICY:
            document = bucket_access_policy(attributes.get("actions", []), attributes["bucket_arn"])
            self._call(
                "iam", "put_role_policy",
                RoleName=attributes["role_name"],
                PolicyName=attributes["policy_name"],
                PolicyDocument=document,
            )
            return f"{attributes['role_name']}:{attributes['policy_name']}", {
                "policy_name": attributes["policy_name"],
                "role_name": attributes["role_name"],
                "policy_document": document,
            }

        if kind == ResourceKind.INSTANCE_PROFILE:
            response = self._call("iam", "create_instance_profile", InstanceProfileName=attributes["profile_name"])
            profile = response["InstanceProfile"]
            self._call(
                "iam", "add_role_to_instance_profile",
                InstanceProfileName=attributes["profile_name"],
                RoleName=attributes["role_name"],
            )
            return profile["InstanceProfileName"], {
                "profile_name": profile["InstanceProfileName"],
                "role_name": attributes["role_name"],
                "arn": profile["Arn"],
            }

        if kind == ResourceKind.INSTANCE:
            response = self._call(
                "ec2", "run_instances",
                ImageId=attributes["ami"],
                InstanceType=attributes["instance_type"],
                KeyName=attributes["key_name"],
                IamInstanceProfile={"Name": attributes["instance_profile"]},
                UserData=attributes.get("user_data", ""),
                MinCount=1,
                MaxCount=1,
                TagSpecifications=[{"ResourceType": "instance", "Tags": _tag_list(attributes.get("tags", {}))}],
            )
            instance_id = response["Instances"][0]["InstanceId"]
            self._wait("ec2", "instance_running", InstanceIds=[instance_id])
            return instance_id, self._describe_instance(instance_id)

        if kind == ResourceKind.BUCKET:
            kwargs = {"Bucket": attributes["bucket_name"]}
            region = attributes.get("region") or self.region
            if region != "us-east-1":
                kwargs["CreateBucketConfiguration"] = {"LocationConstraint": region}
            self._call("s3", "create_bucket", **kwargs)
            self._call("s3", "put_public_access_block", Bucket=attributes["bucket_name"], PublicAccessBlockConfiguration={
                "BlockPublicAcls": True,
                "IgnorePublicAcls": True,
                "BlockPublicPolicy": True,
                "RestrictPublicBuckets": True,
            })
            if attributes.get("tags"):
                self._call("s3", "put_bucket_tagging", Bucket=attributes["bucket_name"],
                           Tagging={"TagSet": _tag_list(attributes["tags"])})
            return attributes["bucket_name"], {
                "bucket_name": attributes["bucket_name"],
                "arn": f"arn:aws:s3:::{attributes['bucket_name']}",
                "region": region,
            }

        if kind == ResourceKind.BUCKET_VERSIONING:
            status = attributes.get("status", "Enabled")
            self._call("s3", "put_bucket_versioning", Bucket=attributes["bucket"],
                       VersioningConfiguration={"Status": status})
            return attributes["bucket"], {"bucket": attributes["bucket"], "status": status}

        if kind == ResourceKind.BUCKET_ENCRYPTION:
            self._call("s3", "put_bucket_encryption", Bucket=attributes["bucket"],
                       ServerSideEncryptionConfiguration={"Rules": [{
                           "ApplyServerSideEncryptionByDefault": {"SSEAlgorithm": attributes["sse_algorithm"]},
                       }]})
            return attributes["bucket"], {"bucket": attributes["bucket"], "sse_algorithm": attributes["sse_algorithm"]}

        raise ProviderError(f"Unsupported resource kind: {kind}")

    def _describe_instance(self, instance_id: str) -> Dict[str, Any]:
        response = self._call("ec2", "describe_instances", InstanceIds=[instance_id])
        reservations = response.get("Reservations", [])
        if not reservations or not reservations[0].get("Instances"):
            raise ResourceNotFoundError(f"Instance {instance_id} not found")
        instance = reservations[0]["Instances"][0]
        state = instance.get("State", {}).get("Name")
        if state in ("terminated", "shutting-down"):
            raise ResourceNotFoundError(f"Instance {instance_id} is {state}")
        return {
            "instance_id": instance_id,
            "public_ip": instance.get("PublicIpAddress"),
            "private_ip": instance.get("PrivateIpAddress"),
            "state": state,
            "key_name": instance.get("KeyName"),
        }

    def delete_resource(self, kind: ResourceKind, provider_id: str) -> None:
        if kind == ResourceKind.KEY_PAIR:
            self._call("ec2", "delete_key_pair", KeyPairId=provider_id)
        elif kind == ResourceKind.ROLE:
            self._call("iam", "delete_role", RoleName=provider_id)
        elif kind == ResourceKind.POLICY:
            role_name, policy_name = provider_id.split(":", 1)
            self._call("iam", "delete_role_policy", RoleName=role_name, PolicyName=policy_name)
        elif kind == ResourceKind.INSTANCE_PROFILE:
            profile = self._call("iam", "get_instance_profile", InstanceProfileName=provider_id)["InstanceProfile"]
            for role in profile.get("Roles", []):
                self._call("iam", "remove_role_from_instance_profile",
                           InstanceProfileName=provider_id, RoleName=role["RoleName"])
            self._call("iam", "delete_instance_profile", InstanceProfileName=provider_id)
        elif kind == ResourceKind.INSTANCE:
            self._call("ec2", "terminate_instances", InstanceIds=[provider_id])
            self._wait("ec2", "instance_terminated", InstanceIds=[provider_id])
        elif kind == ResourceKind.BUCKET:
            self._call("s3", "delete_bucket", Bucket=provider_id)
        elif kind == ResourceKind.BUCKET_VERSIONING:
            # Versioning can only be suspended once enabled.
            self._call("s3", "put_bucket_versioning", Bucket=provider_id,
                       VersioningConfiguration={"Status": "Suspended"})
        elif kind == ResourceKind.BUCKET_ENCRYPTION:
            self._call("s3", "delete_bucket_encryption", Bucket=provider_id)
        else:
            raise ProviderError(f"Unsupported resource kind: {kind}")
        logger.info(f"Deleted {kind.value} {provider_id}")

    def describe_resource(self, kind: ResourceKind, provider_id: str) -> Dict[str, Any]:
        if kind == ResourceKind.KEY_PAIR:
            pair = self._call("ec2", "describe_key_pairs", KeyPairIds=[provider_id])["KeyPairs"][0]
            return {"key_name": pair["KeyName"], "key_pair_id": pair["KeyPairId"]}
        if kind == ResourceKind.ROLE:
            role = self._call("iam", "get_role", RoleName=provider_id)["Role"]
            return {"role_name": role["RoleName"], "arn": role["Arn"], "role_id": role["RoleId"]}
        if kind == ResourceKind.POLICY:
            role_name, policy_name = provider_id.split(":", 1)
            self._call("iam", "get_role_policy", RoleName=role_name, PolicyName=policy_name)
            return {"policy_name": policy_name, "role_name": role_name}
        if kind == ResourceKind.INSTANCE_PROFILE:
            profile = self._call("iam", "get_instance_profile", InstanceProfileName=provider_id)["InstanceProfile"]
            return {"profile_name": profile["InstanceProfileName"], "arn": profile["Arn"]}
        if kind == ResourceKind.INSTANCE:
            return self._describe_instance(provider_id)
        if kind == ResourceKind.BUCKET:
            self._call("s3", "head_bucket", Bucket=provider_id)
            return {"bucket_name": provider_id, "arn": f"arn:aws:s3:::{provider_id}"}
        if kind == ResourceKind.BUCKET_VERSIONING:
            status = self._call("s3", "get_bucket_versioning", Bucket=provider_id).get("Status")
            if status != "Enabled":
                raise ResourceNotFoundError(f"Versioning on {provider_id} is not enabled")
            return {"bucket": provider_id, "status": status}
        if kind == ResourceKind.BUCKET_ENCRYPTION:
            rules = self._call("s3", "get_bucket_encryption", Bucket=provider_id)[
                "ServerSideEncryptionConfiguration"]["Rules"]
            algorithm = rules[0]["ApplyServerSideEncryptionByDefault"]["SSEAlgorithm"]
            return {"bucket": provider_id, "sse_algorithm": algorithm}
        raise ProviderError(f"Unsupported resource kind: {kind}")

    def update_resource(self, kind: ResourceKind, provider_id: str, attributes: Dict[str, Any],
                        replace: bool = False) -> Tuple[str, Dict[str, Any]]:
        if replace:
            if kind in (ResourceKind.KEY_PAIR, ResourceKind.BUCKET):
                # Name-keyed: the old resource must be gone before the name can be reused.
                try:
                    self.delete_resource(kind, provider_id)
                except ResourceNotFoundError:
                    logger.warning(f"{kind.value} {provider_id} already gone; creating its replacement")
                return self.create_resource(kind, attributes)
            return super().update_resource(kind, provider_id, attributes, replace=True)

        tags = attributes.get("tags", {})
        if kind == ResourceKind.KEY_PAIR:
            self._retag_ec2(provider_id, tags)
        elif kind == ResourceKind.ROLE:
            self._call("iam", "update_assume_role_policy", RoleName=provider_id,
                       PolicyDocument=attributes["assume_role_policy"])
            current = self._call("iam", "list_role_tags", RoleName=provider_id).get("Tags", [])
            stale = [t["Key"] for t in current if t["Key"] not in tags]
            if stale:
                self._call("iam", "untag_role", RoleName=provider_id, TagKeys=stale)
            if tags:
                self._call("iam", "tag_role", RoleName=provider_id, Tags=_tag_list(tags))
        elif kind == ResourceKind.INSTANCE:
            self._retag_ec2(provider_id, tags)
        elif kind == ResourceKind.BUCKET:
            if tags:
                self._call("s3", "put_bucket_tagging", Bucket=provider_id, Tagging={"TagSet": _tag_list(tags)})
            else:
                self._call("s3", "delete_bucket_tagging", Bucket=provider_id)
        elif kind in (ResourceKind.POLICY, ResourceKind.BUCKET_VERSIONING, ResourceKind.BUCKET_ENCRYPTION):
            # put_* calls overwrite the previous configuration under the same id.
            return self.create_resource(kind, attributes)

        logger.info(f"Updated {kind.value} {provider_id} in place")
        return provider_id, self.describe_resource(kind, provider_id)

    def _retag_ec2(self, resource_id: str, tags: Dict[str, str]) -> None:
        """Make the EC2 tag set of one resource exactly match tags."""
        current = self._call("ec2", "describe_tags", Filters=[{"Name": "resource-id", "Values": [resource_id]}])
        stale = [{"Key": t["Key"]} for t in current.get("Tags", []) if t["Key"] not in tags]
        if stale:
            self._call("ec2", "delete_tags", Resources=[resource_id], Tags=stale)
        if tags:
            self._call("ec2", "create_tags", Resources=[resource_id], Tags=_tag_list(tags))

"""Abstract base class for provider clients."""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Tuple
from ..model.resources import ResourceKind
from ..utils.logging import get_logger

logger = get_logger("provider.base")


class ProviderClient(ABC):
    """
    Abstract interface for the cloud API surface.

    Provider clients are stateless with respect to stackapply: they never
    read or write the State Store. They can only:
    - Create a resource from resolved attributes
    - Delete a resource by provider id
    - Describe a resource by provider id
    """

    name = "abstract"

    @classmethod
    def from_settings(cls, settings) -> "ProviderClient":
        """Build the client from validated settings."""
        raise NotImplementedError(f"{cls.__name__} cannot be built from settings")

    @abstractmethod
    def create_resource(self, kind: ResourceKind, attributes: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        """
        Create one resource.

        Args:
            kind: Resource kind
            attributes: Fully resolved attributes

        Returns:
            Tuple of (provider_id, output attributes)

        Raises:
            ProviderError: If the provider rejects the request
        """
        pass

    @abstractmethod
    def delete_resource(self, kind: ResourceKind, provider_id: str) -> None:
        """
        Delete one resource.

        Raises:
            ResourceNotFoundError: If the resource no longer exists
            ProviderError: If the provider rejects the request
        """
        pass

    @abstractmethod
    def describe_resource(self, kind: ResourceKind, provider_id: str) -> Dict[str, Any]:
        """
        Read the current output attributes of one resource.

        Raises:
            ResourceNotFoundError: If the resource no longer exists
        """
        pass

    def update_resource(self, kind: ResourceKind, provider_id: str, attributes: Dict[str, Any],
                        replace: bool = False) -> Tuple[str, Dict[str, Any]]:
        """
        Bring an existing resource to the given attributes.

        Args:
            kind: Resource kind
            provider_id: Identifier of the existing resource
            attributes: Fully resolved attributes
            replace: An identifying attribute changed, so the resource cannot be modified in place

        The default always replaces the resource: create the new one first,
        then delete the old one. Providers override this to apply in-place
        changes when replace is False.
        """
        new_id, outputs = self.create_resource(kind, attributes)
        logger.info(f"Replaced {kind.value} {provider_id} with {new_id}")
        if new_id != provider_id:
            self.delete_resource(kind, provider_id)
        return new_id, outputs


def bucket_access_policy(actions, bucket_arn: str) -> str:
    """Inline policy document granting actions on one bucket and its objects only."""
    return json.dumps(
        {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Effect": "Allow",
                    "Action": sorted(actions),
                    "Resource": [bucket_arn, f"{bucket_arn}/*"],
                }
            ],
        },
        sort_keys=True,
    )

"""Typed interfaces for adapter-layer responsibilities."""

from dataclasses import dataclass, field
from typing import Protocol

from ephemeral_runner.domain import ComputeInstanceDescriptor, RegistryLookupResult


@dataclass(frozen=True)
class InstanceLaunchTemplate:
    """Invocation-independent launch parameters for runner instances.

    Attributes:
        image_id: Machine image id.
        instance_type: Instance size.
        subnet_id: Subnet the instance is placed in.
        security_group_id: Security group attached to the instance.
        iam_instance_profile_name: Optional instance profile name.
        resource_tags: `Key`/`Value` tag pairs for the instance and its volumes.
    """

    image_id: str
    instance_type: str
    subnet_id: str
    security_group_id: str
    iam_instance_profile_name: str | None = None
    resource_tags: tuple[tuple[str, str], ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class InstanceLaunchRequest:
    """One provisioning request.

    Attributes:
        template: Static launch parameters.
        user_data: Boot script text; the provider encodes it for transport.
    """

    template: InstanceLaunchTemplate
    user_data: str


class ComputeProvisionerPort(Protocol):
    """Port definition for starting, awaiting and terminating compute instances."""

    def provisioner_start(self, request: InstanceLaunchRequest) -> ComputeInstanceDescriptor:
        """Launch exactly one instance.

        Args:
            request: Launch request.

        Returns:
            ComputeInstanceDescriptor: Descriptor of the launched instance.

        Raises:
            ComputeProviderError: Raised when the provider rejects the request.
        """

    def provisioner_wait_running(self, instance_id: str) -> None:
        """Block until the instance is running.

        Args:
            instance_id: Provider instance id.

        Returns:
            None: Returns once the instance is running.

        Raises:
            ComputeWaitError: Raised when the instance fails or the wait times out.
        """

    def provisioner_terminate(self, instance_id: str) -> None:
        """Terminate one instance.

        Args:
            instance_id: Provider instance id.

        Returns:
            None: Returns once the provider accepted the request.

        Raises:
            ComputeProviderError: Raised when termination fails.
        """


class RunnerRegistryPort(Protocol):
    """Port definition for the registry the runner registers itself with."""

    def registry_get_registration_token(self) -> str:
        """Create a short-lived registration token.

        Returns:
            str: Registration token.

        Raises:
            RegistryError: Raised when the token cannot be created.
        """

    def registry_lookup(self, label: str | None, name: str | None) -> RegistryLookupResult:
        """Find the runner record by label, falling back to name.

        Args:
            label: Correlation label.
            name: Runner name.

        Returns:
            RegistryLookupResult: Lookup outcome; never raises for transport failures.
        """

    def registry_remove(self, label: str | None, name: str | None) -> bool:
        """Remove the runner record when it is safe to do so.

        Args:
            label: Correlation label.
            name: Explicit runner name.

        Returns:
            bool: True when a delete request was issued, False when skipped.

        Raises:
            RegistryError: Raised when the registry is unavailable or delete fails.
        """


class LifecycleOutputPort(Protocol):
    """Port definition for publishing invocation outputs to the caller."""

    def output_emit(self, name: str, value: str) -> None:
        """Publish one named output value.

        Args:
            name: Output name.
            value: Output value.

        Returns:
            None: Publishes as side effect.
        """

"""Adapter layer package for compute provider and runner registry boundaries."""

from .ec2_error_codes import (
	EC2_ALREADY_TERMINATED_CODES,
	EC2_RETRYABLE_START_CODES,
	Ec2ErrorCode,
	ec2_error_is_already_terminated,
	ec2_error_is_retryable_start_failure,
)
from .ec2_provisioner import Ec2ComputeProvisioner
from .errors import (
	ComputeProviderConnectionError,
	ComputeProviderError,
	ComputeWaitError,
	RegistrationTimeoutError,
	RegistryConnectionError,
	RegistryError,
	RegistryUnavailableError,
	WorkerLifecycleError,
)
from .github_registry import GitHubRunnerRegistry
from .interfaces import (
	ComputeProvisionerPort,
	InstanceLaunchRequest,
	InstanceLaunchTemplate,
	LifecycleOutputPort,
	RunnerRegistryPort,
)
from .outputs import GitHubOutputWriter

__all__ = [
	"ComputeProviderConnectionError",
	"ComputeProviderError",
	"ComputeProvisionerPort",
	"ComputeWaitError",
	"EC2_ALREADY_TERMINATED_CODES",
	"EC2_RETRYABLE_START_CODES",
	"Ec2ComputeProvisioner",
	"Ec2ErrorCode",
	"GitHubOutputWriter",
	"GitHubRunnerRegistry",
	"InstanceLaunchRequest",
	"InstanceLaunchTemplate",
	"LifecycleOutputPort",
	"RegistrationTimeoutError",
	"RegistryConnectionError",
	"RegistryError",
	"RegistryUnavailableError",
	"RunnerRegistryPort",
	"WorkerLifecycleError",
	"ec2_error_is_already_terminated",
	"ec2_error_is_retryable_start_failure",
]

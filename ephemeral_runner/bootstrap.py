"""Application bootstrap wiring for dependency assembly from validated settings."""

from ephemeral_runner.adapters import (
    Ec2ComputeProvisioner,
    GitHubOutputWriter,
    GitHubRunnerRegistry,
    InstanceLaunchTemplate,
)
from ephemeral_runner.config import RunnerSettings
from ephemeral_runner.domain import BootScriptConfig
from ephemeral_runner.jobs import (
    BackoffPolicy,
    RegistrationPoller,
    RegistrationPollerConfig,
    WorkerLifecycleConfig,
    WorkerLifecycleOrchestrator,
)


def bootstrap_create_registry(settings: RunnerSettings) -> GitHubRunnerRegistry:
    """Build the GitHub runner registry adapter.

    Args:
        settings: Validated runtime settings.

    Returns:
        GitHubRunnerRegistry: Registry adapter; the caller owns closing it.

    Raises:
        ValueError: Raised when registry settings are invalid.
    """

    return GitHubRunnerRegistry(
        token=settings.github_token,
        owner=settings.github_owner,
        repo=settings.github_repo,
        api_url=settings.github_api_url,
        request_timeout_seconds=settings.github_request_timeout_seconds,
    )


def bootstrap_create_lifecycle_config(settings: RunnerSettings) -> WorkerLifecycleConfig:
    """Translate settings into the orchestrator invocation configuration.

    Args:
        settings: Validated runtime settings.

    Returns:
        WorkerLifecycleConfig: Start launch parameters or stop targets, depending on mode.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    if settings.mode == "stop":
        return WorkerLifecycleConfig(
            runner_name=settings.runner_name,
            label=settings.label,
            ec2_instance_id=settings.ec2_instance_id,
        )

    repository_url = f"{settings.github_server_url.rstrip('/')}/{settings.github_owner}/{settings.github_repo}"
    return WorkerLifecycleConfig(
        launch_template=InstanceLaunchTemplate(
            image_id=settings.ec2_image_id,
            instance_type=settings.ec2_instance_type,
            subnet_id=settings.subnet_id,
            security_group_id=settings.security_group_id,
            iam_instance_profile_name=settings.iam_role_name,
            resource_tags=tuple((tag["Key"], tag["Value"]) for tag in settings.aws_resource_tags),
        ),
        boot_script=BootScriptConfig(
            repository_url=repository_url,
            runner_version=settings.runner_version,
            runner_home_dir=settings.runner_home_dir,
        ),
        runner_name=settings.runner_name,
    )


def bootstrap_create_lifecycle_orchestrator(
    settings: RunnerSettings,
    registry: GitHubRunnerRegistry,
) -> WorkerLifecycleOrchestrator:
    """Build the lifecycle orchestrator for one CLI invocation.

    Args:
        settings: Validated runtime settings.
        registry: Registry adapter shared by the orchestrator and the poller.

    Returns:
        WorkerLifecycleOrchestrator: Fully wired orchestrator instance.

    Raises:
        ValueError: Raised when settings produce invalid component configuration.
    """

    return WorkerLifecycleOrchestrator(
        provisioner=Ec2ComputeProvisioner(region_name=settings.aws_region),
        registry=registry,
        output_writer=GitHubOutputWriter(),
        poller=RegistrationPoller(
            registry=registry,
            config=RegistrationPollerConfig(
                quiet_period_seconds=settings.registration_quiet_period_seconds,
                interval_seconds=settings.registration_interval_seconds,
                timeout_seconds=settings.registration_timeout_seconds,
            ),
        ),
        config=bootstrap_create_lifecycle_config(settings),
        backoff_policy=BackoffPolicy(
            starting_delay_seconds=settings.backoff_starting_delay_seconds,
            multiplier=settings.backoff_multiplier,
            max_attempts=settings.backoff_max_attempts,
        ),
    )

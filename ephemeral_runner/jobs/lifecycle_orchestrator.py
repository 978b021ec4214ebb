"""Job-layer orchestrator for the ephemeral runner start and stop lifecycle."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, TypeVar

import structlog

from ephemeral_runner.adapters import (
    ComputeProviderConnectionError,
    ComputeProviderError,
    ComputeProvisionerPort,
    ComputeWaitError,
    InstanceLaunchRequest,
    InstanceLaunchTemplate,
    LifecycleOutputPort,
    RegistrationTimeoutError,
    RegistryConnectionError,
    RegistryError,
    RegistryUnavailableError,
    RunnerRegistryPort,
    WorkerLifecycleError,
    ec2_error_is_retryable_start_failure,
)
from ephemeral_runner.domain import (
    BootScriptConfig,
    ComputeInstanceDescriptor,
    RegistryRecord,
    domain_build_boot_script,
    domain_build_stage_event,
    domain_generate_correlation_label,
    domain_validate_correlation_label,
)

from .backoff import BackoffPolicy
from .interfaces import JobExecutionResult, JobOrchestratorPort
from .registration_poller import RegistrationPoller

logger = structlog.get_logger(__name__)

T = TypeVar("T")

OUTPUT_LABEL = "label"
OUTPUT_INSTANCE_ID = "ec2-instance-id"


@dataclass(frozen=True)
class WorkerLifecycleConfig:
    """Configuration values for one lifecycle invocation.

    Attributes:
        launch_template: Instance launch parameters, required for `start`.
        boot_script: Boot script configuration, required for `start`.
        runner_name: Explicit runner name; on `start` the instance host name is used when omitted.
        label: Correlation label of the runner to stop.
        ec2_instance_id: Instance id of the runner to stop.
    """

    launch_template: InstanceLaunchTemplate | None = None
    boot_script: BootScriptConfig | None = None
    runner_name: str | None = None
    label: str | None = None
    ec2_instance_id: str | None = None


@dataclass(frozen=True)
class LifecycleStartResult:
    """Values established by a successful `start`.

    Attributes:
        label: Correlation label.
        instance: Launched instance descriptor.
        record: Online registry record.
    """

    label: str
    instance: ComputeInstanceDescriptor
    record: RegistryRecord


class WorkerLifecycleOrchestrator(JobOrchestratorPort):
    """Concrete job orchestrator for ephemeral runner `start` and `stop` steps.

    Steps run strictly in sequence. Any failure aborts the remaining steps and
    nothing already done is rolled back; the outputs emitted during `start`
    are what a later `stop` uses to clean up.
    """

    _START_JOB_NAME = "start"
    _STOP_JOB_NAME = "stop"

    def __init__(
        self,
        provisioner: ComputeProvisionerPort,
        registry: RunnerRegistryPort,
        output_writer: LifecycleOutputPort,
        poller: RegistrationPoller,
        config: WorkerLifecycleConfig,
        backoff_policy: BackoffPolicy | None = None,
        label_factory: Callable[[], str] = domain_generate_correlation_label,
    ):
        """Initialize lifecycle orchestrator dependencies.

        Args:
            provisioner: Compute provisioner adapter.
            registry: Runner registry adapter.
            output_writer: Output publishing adapter.
            poller: Registration poller bound to the same registry.
            config: Invocation configuration.
            backoff_policy: Retry policy around the provisioning call.
            label_factory: Correlation label generator.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when dependencies are missing.
        """

        if provisioner is None:
            raise ValueError("provisioner must not be None")
        if registry is None:
            raise ValueError("registry must not be None")
        if output_writer is None:
            raise ValueError("output_writer must not be None")
        if poller is None:
            raise ValueError("poller must not be None")

        self._provisioner = provisioner
        self._registry = registry
        self._output_writer = output_writer
        self._poller = poller
        self._config = config
        self._backoff_policy = backoff_policy or BackoffPolicy()
        self._label_factory = label_factory

    def job_supported_names(self) -> tuple[str, ...]:
        """Return supported job names.

        Returns:
            tuple[str, ...]: Supported job names.

        Raises:
            RuntimeError: This implementation does not raise runtime errors.
        """

        return (self._START_JOB_NAME, self._STOP_JOB_NAME)

    def job_execute(self, job_name: str) -> JobExecutionResult:
        """Execute `start` or `stop` and report the outcome with a stage timeline.

        Args:
            job_name: Name of job to execute.

        Returns:
            JobExecutionResult: Final execution status payload.

        Raises:
            ValueError: Raised when job name is unsupported or configuration is incomplete.
        """

        normalized_job_name = job_name.strip().lower()
        if normalized_job_name not in self.job_supported_names():
            raise ValueError(f"unsupported job_name={normalized_job_name}")

        timeline: list[dict[str, object]] = [domain_build_stage_event(stage="run", status="started")]
        outputs: dict[str, str] = {}
        try:
            if normalized_job_name == self._START_JOB_NAME:
                self.lifecycle_start(timeline=timeline, outputs=outputs)
            else:
                self.lifecycle_stop(timeline=timeline)
        except WorkerLifecycleError as error:
            error_code = self._job_error_code_for_exception(error)
            timeline.append(
                domain_build_stage_event(
                    stage="run",
                    status="failed",
                    details={"error_type": type(error).__name__, "error_code": error_code, "error_message": str(error)},
                )
            )
            logger.error("lifecycle_failed", job_name=normalized_job_name, error_code=error_code, error=str(error))
            return JobExecutionResult(
                job_name=normalized_job_name,
                status="failed",
                outputs=outputs,
                error_code=error_code,
                error_message=str(error),
                stage_timeline=timeline,
            )

        timeline.append(domain_build_stage_event(stage="run", status="success"))
        logger.info("lifecycle_succeeded", job_name=normalized_job_name)
        return JobExecutionResult(
            job_name=normalized_job_name,
            status="success",
            outputs=outputs,
            stage_timeline=timeline,
        )

    def lifecycle_start(
        self,
        timeline: list[dict[str, object]] | None = None,
        outputs: dict[str, str] | None = None,
    ) -> LifecycleStartResult:
        """Provision a runner instance and wait until it is registered and online.

        Outputs are emitted right after the instance is created so callers can
        terminate it even when a later step fails.

        Args:
            timeline: Optional mutable stage timeline to append to.
            outputs: Optional mutable mapping receiving emitted outputs.

        Returns:
            LifecycleStartResult: Label, instance and online registry record.

        Raises:
            ValueError: Raised when launch configuration is missing.
            WorkerLifecycleError: Raised when any step fails.
        """

        launch_template = self._config.launch_template
        boot_script_config = self._config.boot_script
        if launch_template is None or boot_script_config is None:
            raise ValueError("start requires launch_template and boot_script configuration")

        stage_timeline = timeline if timeline is not None else []
        emitted_outputs = outputs if outputs is not None else {}

        label = domain_validate_correlation_label(self._label_factory())
        structlog.contextvars.bind_contextvars(label=label)
        stage_timeline.append(domain_build_stage_event(stage="label", status="completed", details={"label": label}))

        registration_token = self._job_run_stage(
            timeline=stage_timeline,
            stage="registration_token",
            operation=self._registry.registry_get_registration_token,
        )
        launch_request = InstanceLaunchRequest(
            template=launch_template,
            user_data=domain_build_boot_script(
                config=boot_script_config,
                registration_token=registration_token,
                label=label,
                runner_name=self._config.runner_name,
            ),
        )
        instance = self._job_run_stage(
            timeline=stage_timeline,
            stage="provision",
            operation=lambda: self._backoff_policy.backoff_retry(
                operation=lambda: self._provisioner.provisioner_start(launch_request),
                classify=ec2_error_is_retryable_start_failure,
            ),
            details_builder=lambda descriptor: {"instance_id": descriptor.instance_id, "host_name": descriptor.host_name},
        )

        self._output_writer.output_emit(OUTPUT_LABEL, label)
        emitted_outputs[OUTPUT_LABEL] = label
        self._output_writer.output_emit(OUTPUT_INSTANCE_ID, instance.instance_id)
        emitted_outputs[OUTPUT_INSTANCE_ID] = instance.instance_id
        stage_timeline.append(
            domain_build_stage_event(stage="outputs", status="completed", details=dict(emitted_outputs))
        )

        self._job_run_stage(
            timeline=stage_timeline,
            stage="wait_running",
            operation=lambda: self._provisioner.provisioner_wait_running(instance.instance_id),
        )

        runner_name = self._config.runner_name or instance.host_name or None
        poll_result = self._job_run_stage(
            timeline=stage_timeline,
            stage="registration",
            operation=lambda: self._poller.poller_run(label=label, name=runner_name),
            details_builder=lambda result: {
                "runner_name": result.record.name,
                "poll_count": result.poll_count,
                "elapsed_seconds": result.elapsed_seconds,
            },
        )
        return LifecycleStartResult(label=label, instance=instance, record=poll_result.record)

    def lifecycle_stop(self, timeline: list[dict[str, object]] | None = None) -> bool:
        """Terminate the configured instance, then remove its registry record.

        Args:
            timeline: Optional mutable stage timeline to append to.

        Returns:
            bool: True when a registry delete was issued, False when removal was skipped.

        Raises:
            ValueError: Raised when label or instance id is not configured.
            WorkerLifecycleError: Raised when termination or removal fails.
        """

        instance_id = self._config.ec2_instance_id
        label = self._config.label
        if not instance_id or not label:
            raise ValueError("stop requires label and ec2_instance_id configuration")
        label = domain_validate_correlation_label(label)

        stage_timeline = timeline if timeline is not None else []
        structlog.contextvars.bind_contextvars(label=label, instance_id=instance_id)

        self._job_run_stage(
            timeline=stage_timeline,
            stage="terminate",
            operation=lambda: self._provisioner.provisioner_terminate(instance_id),
        )
        return self._job_run_stage(
            timeline=stage_timeline,
            stage="remove_runner",
            operation=lambda: self._registry.registry_remove(label=label, name=self._config.runner_name),
            details_builder=lambda removed: {"removed": removed},
        )

    def _job_run_stage(
        self,
        timeline: list[dict[str, object]],
        stage: str,
        operation: Callable[[], T],
        details_builder: Callable[[T], dict[str, object]] | None = None,
    ) -> T:
        """Run one stage and record started, completed or failed events.

        Args:
            timeline: Mutable stage timeline.
            stage: Stage name.
            operation: Stage body.
            details_builder: Optional builder of completed-event details from the stage result.

        Returns:
            T: Stage result.

        Raises:
            WorkerLifecycleError: Re-raised after the failed event is recorded.
        """

        timeline.append(domain_build_stage_event(stage=stage, status="started"))
        try:
            result = operation()
        except WorkerLifecycleError as error:
            timeline.append(
                domain_build_stage_event(
                    stage=stage,
                    status="failed",
                    details={"error_type": type(error).__name__, "error_message": str(error)},
                )
            )
            raise
        details = details_builder(result) if details_builder is not None else None
        timeline.append(domain_build_stage_event(stage=stage, status="completed", details=details))
        return result

    def _job_error_code_for_exception(self, error: WorkerLifecycleError) -> str:
        """Map lifecycle exception type to deterministic failure code.

        Args:
            error: Caught lifecycle exception.

        Returns:
            str: Deterministic error code.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        if isinstance(error, RegistrationTimeoutError):
            return "LIFECYCLE_REGISTRATION_TIMEOUT"
        if isinstance(error, ComputeWaitError):
            return "LIFECYCLE_INSTANCE_WAIT_ERROR"
        if isinstance(error, ComputeProviderConnectionError):
            return "LIFECYCLE_PROVIDER_CONNECTION_ERROR"
        if isinstance(error, ComputeProviderError):
            if ec2_error_is_retryable_start_failure(error):
                return "LIFECYCLE_PROVIDER_RATE_LIMITED"
            return "LIFECYCLE_PROVIDER_ERROR"
        if isinstance(error, RegistryUnavailableError):
            return "LIFECYCLE_REGISTRY_UNAVAILABLE"
        if isinstance(error, RegistryConnectionError):
            return "LIFECYCLE_REGISTRY_CONNECTION_ERROR"
        if isinstance(error, RegistryError):
            return "LIFECYCLE_REGISTRY_ERROR"
        return "LIFECYCLE_UNEXPECTED_ERROR"

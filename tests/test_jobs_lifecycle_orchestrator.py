"""Regression tests for runner lifecycle start and stop orchestration."""

from __future__ import annotations

import httpx
import pytest

from ephemeral_runner.adapters import (
    ComputeProviderError,
    GitHubRunnerRegistry,
    InstanceLaunchRequest,
    InstanceLaunchTemplate,
    RegistryError,
)
from ephemeral_runner.domain import (
    BootScriptConfig,
    ComputeInstanceDescriptor,
    RegistryLookupResult,
    RegistryMatchKind,
    RegistryRecord,
    RegistryStatus,
)
from ephemeral_runner.jobs import (
    BackoffPolicy,
    RegistrationPoller,
    WorkerLifecycleConfig,
    WorkerLifecycleOrchestrator,
)

_LABEL = "abc123xyz0"
_RUNNERS_PATH = "/repos/octo/widgets/actions/runners"


class _FakeClock:
    """Deterministic monotonic clock advanced only by sleep calls."""

    def __init__(self):
        self.now = 0.0
        self.sleep_calls: list[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleep_calls.append(seconds)
        self.now += seconds


class _ProvisionerStub:
    """Provisioner stub with scripted start failures and an event log."""

    def __init__(self, events: list[tuple[str, object]], start_errors: list[Exception] | None = None):
        """Initialize provisioner stub.

        Args:
            events: Shared ordered event log.
            start_errors: Errors raised by consecutive start calls before success.

        Returns:
            None: Initializer does not return values.

        Raises:
            RuntimeError: This stub does not raise runtime errors.
        """

        self._events = events
        self._start_errors = list(start_errors or [])
        self.start_requests: list[InstanceLaunchRequest] = []
        self.terminate_error: Exception | None = None

    def provisioner_start(self, request: InstanceLaunchRequest) -> ComputeInstanceDescriptor:
        self.start_requests.append(request)
        self._events.append(("start", len(self.start_requests)))
        if self._start_errors:
            raise self._start_errors.pop(0)
        return ComputeInstanceDescriptor(instance_id="i-0abc", private_dns_name="ip-10-0-0-5.ec2.internal")

    def provisioner_wait_running(self, instance_id: str) -> None:
        self._events.append(("wait_running", instance_id))

    def provisioner_terminate(self, instance_id: str) -> None:
        self._events.append(("terminate", instance_id))
        if self.terminate_error is not None:
            raise self.terminate_error


class _RegistryStub:
    """Registry stub returning one scripted lookup result."""

    def __init__(self, events: list[tuple[str, object]], clock: _FakeClock, lookup_result: RegistryLookupResult):
        self._events = events
        self._clock = clock
        self._lookup_result = lookup_result
        self.lookup_arguments: list[tuple[str | None, str | None]] = []

    def registry_get_registration_token(self) -> str:
        self._events.append(("registration_token", None))
        return "AABBCC"

    def registry_lookup(self, label: str | None, name: str | None) -> RegistryLookupResult:
        self._events.append(("lookup", self._clock.now))
        self.lookup_arguments.append((label, name))
        return self._lookup_result

    def registry_remove(self, label: str | None, name: str | None) -> bool:
        self._events.append(("remove", (label, name)))
        return True


class _OutputRecorder:
    """Output port stub appending emitted values to the event log."""

    def __init__(self, events: list[tuple[str, object]]):
        self._events = events
        self.values: dict[str, str] = {}

    def output_emit(self, name: str, value: str) -> None:
        self._events.append(("output", name))
        self.values[name] = value


def _start_config(runner_name: str | None = None) -> WorkerLifecycleConfig:
    return WorkerLifecycleConfig(
        launch_template=InstanceLaunchTemplate(
            image_id="ami-0123456789abcdef0",
            instance_type="t3.micro",
            subnet_id="subnet-0abc",
            security_group_id="sg-0abc",
        ),
        boot_script=BootScriptConfig(repository_url="https://github.com/octo/widgets"),
        runner_name=runner_name,
    )


def _build_orchestrator(
    provisioner: _ProvisionerStub,
    registry,
    events: list[tuple[str, object]],
    clock: _FakeClock,
    config: WorkerLifecycleConfig,
) -> tuple[WorkerLifecycleOrchestrator, _OutputRecorder]:
    output_recorder = _OutputRecorder(events)
    orchestrator = WorkerLifecycleOrchestrator(
        provisioner=provisioner,
        registry=registry,
        output_writer=output_recorder,
        poller=RegistrationPoller(registry=registry, clock=clock.monotonic, sleep=clock.sleep),
        config=config,
        backoff_policy=BackoffPolicy(sleep=clock.sleep),
        label_factory=lambda: _LABEL,
    )
    return orchestrator, output_recorder


def _online_lookup() -> RegistryLookupResult:
    return RegistryLookupResult.found(
        record=RegistryRecord(
            record_id=11,
            name="ip-10-0-0-5",
            labels=frozenset({_LABEL}),
            status=RegistryStatus.ONLINE,
        ),
        match_kind=RegistryMatchKind.LABEL,
    )


def test_jobs_lifecycle_start_emits_outputs_before_registration_polling() -> None:
    """Succeed when the first poll after the quiet period finds the label online.

    Returns:
        None: Assertions validate step order, outputs and result payload.

    Raises:
        AssertionError: Raised when outputs are not emitted before polling.
    """

    events: list[tuple[str, object]] = []
    clock = _FakeClock()
    provisioner = _ProvisionerStub(events)
    registry = _RegistryStub(events, clock, _online_lookup())
    orchestrator, outputs = _build_orchestrator(provisioner, registry, events, clock, _start_config())

    result = orchestrator.job_execute(job_name="start")

    assert result.status == "success"
    assert result.outputs == {"label": _LABEL, "ec2-instance-id": "i-0abc"}
    assert outputs.values == result.outputs
    assert [event[0] for event in events] == [
        "registration_token",
        "start",
        "output",
        "output",
        "wait_running",
        "lookup",
    ]
    assert events[-1] == ("lookup", 30.0)
    assert registry.lookup_arguments == [(_LABEL, "ip-10-0-0-5")]
    assert f"--labels {_LABEL}" in provisioner.start_requests[0].user_data
    assert [event["stage"] for event in result.stage_timeline][-2:] == ["registration", "run"]


def test_jobs_lifecycle_start_retries_rate_limited_provisioning() -> None:
    """Retry rate-limited starts with 2s and 4s delays and return the final instance.

    Returns:
        None: Assertions validate backoff delays and single instance output.

    Raises:
        AssertionError: Raised when retry behavior is incorrect.
    """

    events: list[tuple[str, object]] = []
    clock = _FakeClock()
    rate_limited = [
        ComputeProviderError("Request limit exceeded.", error_code="RequestLimitExceeded") for _ in range(2)
    ]
    provisioner = _ProvisionerStub(events, start_errors=rate_limited)
    registry = _RegistryStub(events, clock, _online_lookup())
    orchestrator, _ = _build_orchestrator(provisioner, registry, events, clock, _start_config())

    result = orchestrator.lifecycle_start()

    assert result.instance.instance_id == "i-0abc"
    assert len(provisioner.start_requests) == 3
    assert clock.sleep_calls[:2] == [2.0, 4.0]
    assert sum(clock.sleep_calls[:2]) >= 6.0


def test_jobs_lifecycle_start_fails_on_first_non_retryable_provider_error() -> None:
    """Fail after one attempt on non-retryable errors and skip later steps.

    Returns:
        None: Assertions validate failed result and absence of outputs.

    Raises:
        AssertionError: Raised when later steps run after failure.
    """

    events: list[tuple[str, object]] = []
    clock = _FakeClock()
    provisioner = _ProvisionerStub(
        events,
        start_errors=[ComputeProviderError("Not authorized.", error_code="UnauthorizedOperation")],
    )
    registry = _RegistryStub(events, clock, _online_lookup())
    orchestrator, _ = _build_orchestrator(provisioner, registry, events, clock, _start_config())

    result = orchestrator.job_execute(job_name="start")

    assert result.status == "failed"
    assert result.error_code == "LIFECYCLE_PROVIDER_ERROR"
    assert result.outputs == {}
    assert len(provisioner.start_requests) == 1
    assert clock.sleep_calls == []
    assert [event[0] for event in events] == ["registration_token", "start"]


def test_jobs_lifecycle_start_registration_timeout_keeps_outputs_for_cleanup() -> None:
    """Fail with a timeout after at least 330s when the runner never comes online.

    Returns:
        None: Assertions validate timeout result, elapsed time and emitted outputs.

    Raises:
        AssertionError: Raised when timeout handling is incorrect.
    """

    events: list[tuple[str, object]] = []
    clock = _FakeClock()
    provisioner = _ProvisionerStub(events)
    registry = _RegistryStub(events, clock, RegistryLookupResult.not_found())
    orchestrator, _ = _build_orchestrator(provisioner, registry, events, clock, _start_config(runner_name="build-box"))

    result = orchestrator.job_execute(job_name="start")

    assert result.status == "failed"
    assert result.error_code == "LIFECYCLE_REGISTRATION_TIMEOUT"
    assert "timeout" in result.error_message
    assert clock.now >= 330.0
    assert result.outputs["ec2-instance-id"] == "i-0abc"
    assert registry.lookup_arguments[0] == (_LABEL, "build-box")
    last_lookup_time = [value for name, value in events if name == "lookup"][-1]
    assert last_lookup_time == clock.now
    assert "terminate" not in [event[0] for event in events]


def _build_github_registry(runners: list[dict[str, object]], delete_paths: list[str]) -> GitHubRunnerRegistry:
    state = {"runners": list(runners)}

    def _handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, json={"total_count": len(state["runners"]), "runners": state["runners"]})
        if request.method == "DELETE":
            delete_paths.append(request.url.path)
            runner_id = int(request.url.path.rsplit("/", 1)[1])
            state["runners"] = [runner for runner in state["runners"] if runner["id"] != runner_id]
            return httpx.Response(204)
        return httpx.Response(404)

    return GitHubRunnerRegistry(token="ghp_test", owner="octo", repo="widgets", transport=httpx.MockTransport(_handler))


def _stop_config(runner_name: str | None = None) -> WorkerLifecycleConfig:
    return WorkerLifecycleConfig(label=_LABEL, ec2_instance_id="i-0abc", runner_name=runner_name)


def test_jobs_lifecycle_stop_skips_removal_of_online_runner_matched_by_name() -> None:
    """Terminate the instance but keep an online runner matched only by explicit name.

    Returns:
        None: Assertions validate skipped delete and success status.

    Raises:
        AssertionError: Raised when the online runner is deleted.
    """

    events: list[tuple[str, object]] = []
    delete_paths: list[str] = []
    clock = _FakeClock()
    registry = _build_github_registry(
        runners=[{"id": 5, "name": "build-box", "status": "online", "busy": True, "labels": [{"name": "self-hosted"}]}],
        delete_paths=delete_paths,
    )
    orchestrator, _ = _build_orchestrator(
        _ProvisionerStub(events), registry, events, clock, _stop_config(runner_name="build-box")
    )

    result = orchestrator.job_execute(job_name="stop")

    assert result.status == "success"
    assert events == [("terminate", "i-0abc")]
    assert delete_paths == []


def test_jobs_lifecycle_stop_without_matching_record_is_noop() -> None:
    """Succeed without a delete request when no runner matches.

    Returns:
        None: Assertions validate no-op removal.

    Raises:
        AssertionError: Raised when a delete request is issued.
    """

    events: list[tuple[str, object]] = []
    delete_paths: list[str] = []
    registry = _build_github_registry(runners=[], delete_paths=delete_paths)
    orchestrator, _ = _build_orchestrator(_ProvisionerStub(events), registry, events, _FakeClock(), _stop_config())

    result = orchestrator.job_execute(job_name="stop")

    assert result.status == "success"
    assert delete_paths == []
    assert result.stage_timeline[-2]["details"] == {"removed": False}


def test_jobs_lifecycle_stop_twice_removes_record_only_once() -> None:
    """Make the second stop's removal a no-op after the first removed the record.

    Returns:
        None: Assertions validate idempotent teardown.

    Raises:
        AssertionError: Raised when the record is deleted twice.
    """

    events: list[tuple[str, object]] = []
    delete_paths: list[str] = []
    registry = _build_github_registry(
        runners=[{"id": 8, "name": "ip-10-0-0-5", "status": "offline", "busy": False, "labels": [{"name": _LABEL}]}],
        delete_paths=delete_paths,
    )
    orchestrator, _ = _build_orchestrator(_ProvisionerStub(events), registry, events, _FakeClock(), _stop_config())

    assert orchestrator.lifecycle_stop() is True
    assert orchestrator.lifecycle_stop() is False
    assert delete_paths == [f"{_RUNNERS_PATH}/8"]


def test_jobs_lifecycle_stop_terminate_failure_skips_removal() -> None:
    """Abort before registry removal when termination fails.

    Returns:
        None: Assertions validate failed result and untouched registry.

    Raises:
        AssertionError: Raised when removal runs after termination failure.
    """

    events: list[tuple[str, object]] = []
    clock = _FakeClock()
    provisioner = _ProvisionerStub(events)
    provisioner.terminate_error = ComputeProviderError("Not authorized.", error_code="UnauthorizedOperation")
    registry = _RegistryStub(events, clock, RegistryLookupResult.not_found())
    orchestrator, _ = _build_orchestrator(provisioner, registry, events, clock, _stop_config())

    result = orchestrator.job_execute(job_name="stop")

    assert result.status == "failed"
    assert [event[0] for event in events] == ["terminate"]
    assert result.stage_timeline[-2]["stage"] == "terminate"
    assert result.stage_timeline[-2]["status"] == "failed"


def test_jobs_lifecycle_rejects_unknown_job_and_maps_registry_errors() -> None:
    """Reject unsupported job names and map registry failures to registry error codes.

    Returns:
        None: Assertions validate job-name validation and error-code mapping.

    Raises:
        AssertionError: Raised when validation or mapping is incorrect.
    """

    events: list[tuple[str, object]] = []
    clock = _FakeClock()
    registry = _RegistryStub(events, clock, RegistryLookupResult.not_found())

    def _fail_token() -> str:
        raise RegistryError("GitHub POST returned HTTP 403", status_code=403)

    registry.registry_get_registration_token = _fail_token
    orchestrator, _ = _build_orchestrator(_ProvisionerStub(events), registry, events, clock, _start_config())

    with pytest.raises(ValueError, match="unsupported"):
        orchestrator.job_execute(job_name="restart")

    result = orchestrator.job_execute(job_name="start")

    assert result.status == "failed"
    assert result.error_code == "LIFECYCLE_REGISTRY_ERROR"
    assert events == []


def test_jobs_lifecycle_start_keeps_polling_through_malformed_registry_pages() -> None:
    """Keep waiting when the runner list briefly returns an HTML error page.

    Returns:
        None: Assertions validate that polling survives the malformed page.

    Raises:
        AssertionError: Raised when the malformed page aborts the start step.
    """

    list_responses = [
        httpx.Response(200, text="<html>Unicorn!</html>"),
        httpx.Response(
            200,
            json={
                "total_count": 1,
                "runners": [{"id": 3, "name": "ip-10-0-0-5", "status": "online", "labels": [{"name": _LABEL}]}],
            },
        ),
    ]

    def _handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(201, json={"token": "AABBCC"})
        return list_responses.pop(0)

    events: list[tuple[str, object]] = []
    clock = _FakeClock()
    registry = GitHubRunnerRegistry(
        token="ghp_test",
        owner="octo",
        repo="widgets",
        transport=httpx.MockTransport(_handler),
    )
    orchestrator, _ = _build_orchestrator(_ProvisionerStub(events), registry, events, clock, _start_config())

    result = orchestrator.job_execute(job_name="start")

    assert result.status == "success"
    assert list_responses == []
    assert clock.now == 60.0


def test_jobs_lifecycle_stop_rejects_malformed_label_before_teardown() -> None:
    """Refuse a stop label that could not have been generated.

    Returns:
        None: Assertions validate label validation on stop.

    Raises:
        AssertionError: Raised when teardown runs with a malformed label.
    """

    events: list[tuple[str, object]] = []
    clock = _FakeClock()
    registry = _RegistryStub(events, clock, RegistryLookupResult.not_found())
    config = WorkerLifecycleConfig(label="abc,def", ec2_instance_id="i-0abc")
    orchestrator, _ = _build_orchestrator(_ProvisionerStub(events), registry, events, clock, config)

    with pytest.raises(ValueError, match="commas"):
        orchestrator.lifecycle_stop()

    assert events == []

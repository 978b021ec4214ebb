"""Typed interfaces for job-layer orchestration responsibilities."""

from dataclasses import dataclass, field
from typing import Protocol


@dataclass(frozen=True)
class JobExecutionResult:
    """Result contract for one lifecycle step execution.

    Attributes:
        job_name: Job identifier (`start` or `stop`).
        status: Final execution state (`success` or `failed`).
        outputs: Published output values, for example `label` and `ec2-instance-id`.
        error_code: Deterministic failure code when failed.
        error_message: Failure message when failed.
        stage_timeline: Structured stage events in execution order.
    """

    job_name: str
    status: str
    outputs: dict[str, str] = field(default_factory=dict)
    error_code: str | None = None
    error_message: str | None = None
    stage_timeline: list[dict[str, object]] = field(default_factory=list)


class JobOrchestratorPort(Protocol):
    """Port definition for orchestrating runner lifecycle jobs."""

    def job_supported_names(self) -> tuple[str, ...]:
        """Return the set of workflow names this orchestrator can execute.

        Returns:
            tuple[str, ...]: Deterministic list of supported job names.

        Raises:
            RuntimeError: Raised when supported job metadata is unavailable.
        """

    def job_execute(self, job_name: str) -> JobExecutionResult:
        """Execute one named workflow in the job layer.

        Args:
            job_name: Workflow name.

        Returns:
            JobExecutionResult: Final execution status payload.

        Raises:
            ValueError: Raised when the job name is unsupported.
        """

"""Job layer package for runner lifecycle orchestration boundaries."""

from .backoff import BackoffPolicy
from .interfaces import JobExecutionResult, JobOrchestratorPort
from .lifecycle_orchestrator import (
	OUTPUT_INSTANCE_ID,
	OUTPUT_LABEL,
	LifecycleStartResult,
	WorkerLifecycleConfig,
	WorkerLifecycleOrchestrator,
)
from .registration_poller import (
	RegistrationPollResult,
	RegistrationPollState,
	RegistrationPoller,
	RegistrationPollerConfig,
)

__all__ = [
	"BackoffPolicy",
	"JobExecutionResult",
	"JobOrchestratorPort",
	"LifecycleStartResult",
	"OUTPUT_INSTANCE_ID",
	"OUTPUT_LABEL",
	"RegistrationPollResult",
	"RegistrationPollState",
	"RegistrationPoller",
	"RegistrationPollerConfig",
	"WorkerLifecycleConfig",
	"WorkerLifecycleOrchestrator",
]

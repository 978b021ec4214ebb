"""Domain models and pure helpers used across lifecycle layers."""

from .boot_script import BootScriptConfig, domain_build_boot_script
from .labels import domain_generate_correlation_label, domain_validate_correlation_label
from .models import (
    ComputeInstanceDescriptor,
    RegistryLookupOutcome,
    RegistryLookupResult,
    RegistryMatchKind,
    RegistryRecord,
    RegistryStatus,
)
from .timeline import domain_build_stage_event, domain_find_failed_stage

__all__ = [
    "BootScriptConfig",
    "ComputeInstanceDescriptor",
    "RegistryLookupOutcome",
    "RegistryLookupResult",
    "RegistryMatchKind",
    "RegistryRecord",
    "RegistryStatus",
    "domain_build_boot_script",
    "domain_build_stage_event",
    "domain_find_failed_stage",
    "domain_generate_correlation_label",
    "domain_validate_correlation_label",
]

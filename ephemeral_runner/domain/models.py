"""Typed domain models shared across lifecycle layers.

These contracts describe what the orchestrator observes about the two external
systems it drives: the compute instance it launched and the registry record the
instance creates for itself.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class RegistryStatus(str, Enum):
    """Connection status reported by the registry for one runner."""

    ONLINE = "online"
    OFFLINE = "offline"


class RegistryMatchKind(str, Enum):
    """Which filter selected a registry record during lookup."""

    LABEL = "label"
    NAME = "name"


class RegistryLookupOutcome(str, Enum):
    """Outcome of one registry lookup."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class ComputeInstanceDescriptor:
    """Snapshot of one compute instance as returned by the provider.

    Attributes:
        instance_id: Provider instance identifier.
        private_dns_name: Private DNS name assigned at launch, may be empty.
        private_ip_address: Private IPv4 address, when assigned.
        subnet_id: Subnet the instance was placed in.
        state: Provider state name at the time of the snapshot.
    """

    instance_id: str
    private_dns_name: str = ""
    private_ip_address: str | None = None
    subnet_id: str | None = None
    state: str = "pending"

    @property
    def host_name(self) -> str:
        """Return the short host name, which is the default runner name on the instance."""

        return self.private_dns_name.split(".")[0]


@dataclass(frozen=True)
class RegistryRecord:
    """Runner record owned by the external registry.

    Attributes:
        record_id: Registry-assigned numeric identifier.
        name: Runner name.
        labels: Label names attached to the runner.
        status: Connection status.
        busy: Whether the runner is executing a job.
    """

    record_id: int
    name: str
    labels: frozenset[str] = field(default_factory=frozenset)
    status: RegistryStatus = RegistryStatus.OFFLINE
    busy: bool = False

    @property
    def is_online(self) -> bool:
        """Return whether the registry reports the runner as connected."""

        return self.status is RegistryStatus.ONLINE


@dataclass(frozen=True)
class RegistryLookupResult:
    """Result contract for one registry lookup.

    `UNAVAILABLE` means the registry could not be listed, which is different
    from a successful listing that contains no matching record.

    Attributes:
        outcome: Lookup outcome.
        record: Matched record when `outcome` is `FOUND`.
        match_kind: Filter that selected the record.
        error_message: Transport failure description when `outcome` is `UNAVAILABLE`.
    """

    outcome: RegistryLookupOutcome
    record: RegistryRecord | None = None
    match_kind: RegistryMatchKind | None = None
    error_message: str | None = None

    @classmethod
    def found(cls, record: RegistryRecord, match_kind: RegistryMatchKind) -> RegistryLookupResult:
        return cls(outcome=RegistryLookupOutcome.FOUND, record=record, match_kind=match_kind)

    @classmethod
    def not_found(cls) -> RegistryLookupResult:
        return cls(outcome=RegistryLookupOutcome.NOT_FOUND)

    @classmethod
    def unavailable(cls, error_message: str) -> RegistryLookupResult:
        return cls(outcome=RegistryLookupOutcome.UNAVAILABLE, error_message=error_message)

    @property
    def is_online(self) -> bool:
        """Return whether a record was found and reports online status."""

        return self.record is not None and self.record.is_online

"""GitHub Actions self-hosted runner registry adapter."""

from __future__ import annotations

from typing import Any, Final

import httpx
import structlog

from ephemeral_runner.domain import (
    RegistryLookupOutcome,
    RegistryLookupResult,
    RegistryMatchKind,
    RegistryRecord,
    RegistryStatus,
)

from .errors import RegistryConnectionError, RegistryError, RegistryUnavailableError
from .interfaces import RunnerRegistryPort

logger = structlog.get_logger(__name__)


class GitHubRunnerRegistry(RunnerRegistryPort):
    """Registry implementation for repository-scoped self-hosted runners."""

    _API_VERSION: Final[str] = "2022-11-28"
    _PAGE_SIZE: Final[int] = 100

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        api_url: str = "https://api.github.com",
        request_timeout_seconds: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize GitHub registry adapter.

        Args:
            token: GitHub token with repository administration access.
            owner: Repository owner.
            repo: Repository name.
            api_url: REST API base URL.
            request_timeout_seconds: HTTP request timeout in seconds.
            transport: Optional httpx transport, used to substitute the network.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when required config values are invalid.
        """

        normalized_token = token.strip()
        normalized_owner = owner.strip()
        normalized_repo = repo.strip()
        if not normalized_token:
            raise ValueError("token must not be blank")
        if not normalized_owner:
            raise ValueError("owner must not be blank")
        if not normalized_repo:
            raise ValueError("repo must not be blank")
        if request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be > 0")

        self._runners_path = f"/repos/{normalized_owner}/{normalized_repo}/actions/runners"
        self._client = httpx.Client(
            base_url=api_url.strip().rstrip("/"),
            headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {normalized_token}",
                "X-GitHub-Api-Version": self._API_VERSION,
                "User-Agent": "ephemeral-runner",
            },
            timeout=request_timeout_seconds,
            transport=transport,
        )

    def registry_close(self) -> None:
        """Release pooled HTTP connections."""

        self._client.close()

    def registry_get_registration_token(self) -> str:
        """Create a registration token for a new self-hosted runner.

        Returns:
            str: Registration token.

        Raises:
            RegistryError: Raised when GitHub rejects the request or returns no token.
            RegistryConnectionError: Raised for transport failures.
        """

        try:
            response = self._registry_request("POST", f"{self._runners_path}/registration-token")
        except RegistryError:
            logger.error("registry_registration_token_failed")
            raise

        payload = self._registry_decode_payload(response)
        token = str(payload.get("token") or "")
        if not token:
            raise RegistryError("GitHub registration token response did not contain a token")
        logger.info("registry_registration_token_received")
        return token

    def registry_list_runners(self) -> list[RegistryRecord]:
        """List every runner registered with the repository.

        Returns:
            list[RegistryRecord]: All runner records across pages.

        Raises:
            RegistryError: Raised when any page cannot be fetched.
        """

        records: list[RegistryRecord] = []
        page = 1
        while True:
            response = self._registry_request(
                "GET",
                self._runners_path,
                params={"per_page": self._PAGE_SIZE, "page": page},
            )
            payload = self._registry_decode_payload(response)
            try:
                page_runners = payload.get("runners") or []
                records.extend(self._registry_parse_record(runner) for runner in page_runners)
                total_count = int(payload.get("total_count", len(records)))
            except (KeyError, TypeError, ValueError, AttributeError) as error:
                raise RegistryError(
                    f"GitHub runner list page {page} is malformed: {error!r}",
                    status_code=response.status_code,
                ) from error
            if not page_runners or len(records) >= total_count:
                return records
            page += 1

    def registry_lookup(self, label: str | None, name: str | None) -> RegistryLookupResult:
        """Find the runner by label, falling back to name.

        Within one filter the record with the highest id wins, since GitHub
        assigns ids in creation order and does not guarantee list ordering.

        Args:
            label: Correlation label.
            name: Runner name.

        Returns:
            RegistryLookupResult: `FOUND`, `NOT_FOUND`, or `UNAVAILABLE` when listing failed.

        Raises:
            RuntimeError: This method does not raise for registry failures.
        """

        logger.info("registry_lookup_started", label=label, runner_name=name)
        try:
            records = self.registry_list_runners()
        except RegistryError as error:
            logger.warning("registry_lookup_unavailable", error=str(error), status_code=error.status_code)
            return RegistryLookupResult.unavailable(error_message=str(error))

        logger.debug("registry_runners_listed", total=len(records))
        by_label = [record for record in records if label and label in record.labels]
        by_name = [record for record in records if name and record.name == name]
        logger.debug("registry_runners_filtered", by_label=len(by_label), by_name=len(by_name))

        if by_label:
            record = max(by_label, key=lambda candidate: candidate.record_id)
            logger.info(
                "registry_runner_found",
                match_kind="label",
                runner_name=record.name,
                status=record.status.value,
                busy=record.busy,
            )
            return RegistryLookupResult.found(record=record, match_kind=RegistryMatchKind.LABEL)
        if by_name:
            record = max(by_name, key=lambda candidate: candidate.record_id)
            logger.info(
                "registry_runner_found",
                match_kind="name",
                runner_name=record.name,
                status=record.status.value,
                busy=record.busy,
            )
            return RegistryLookupResult.found(record=record, match_kind=RegistryMatchKind.NAME)

        logger.info("registry_runner_not_found", label=label, runner_name=name)
        return RegistryLookupResult.not_found()

    def registry_remove(self, label: str | None, name: str | None) -> bool:
        """Delete the runner record unless it is missing or possibly still active.

        A record matched only by name is left alone while it is not offline,
        because the name may belong to a runner this invocation did not create.

        Args:
            label: Correlation label.
            name: Explicit runner name.

        Returns:
            bool: True when a delete request was issued, False when removal was skipped.

        Raises:
            RegistryUnavailableError: Raised when the runner list could not be fetched.
            RegistryError: Raised when the delete request fails.
        """

        lookup_result = self.registry_lookup(label=label, name=name)
        if lookup_result.outcome is RegistryLookupOutcome.UNAVAILABLE:
            raise RegistryUnavailableError(
                f"GitHub runner removal could not look up runners: {lookup_result.error_message}"
            )

        record = lookup_result.record
        if record is None:
            logger.info("registry_runner_removal_skipped", reason="not_found", label=label, runner_name=name)
            return False
        if lookup_result.match_kind is RegistryMatchKind.NAME and record.status is not RegistryStatus.OFFLINE:
            logger.info(
                "registry_runner_removal_skipped",
                reason="name_match_not_offline",
                runner_name=record.name,
                status=record.status.value,
                busy=record.busy,
            )
            return False

        try:
            self._registry_request("DELETE", f"{self._runners_path}/{record.record_id}")
        except RegistryError:
            logger.error("registry_runner_removal_failed", runner_name=record.name, runner_id=record.record_id)
            raise
        logger.info("registry_runner_removed", runner_name=record.name, runner_id=record.record_id, busy=record.busy)
        return True

    def _registry_request(self, method: str, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        """Execute one API request and map failures to registry errors.

        Args:
            method: HTTP method.
            path: Path relative to the API base URL.
            params: Optional query parameters.

        Returns:
            httpx.Response: Successful response.

        Raises:
            RegistryConnectionError: Raised for transport failures and timeouts.
            RegistryError: Raised for non-success HTTP status.
        """

        try:
            response = self._client.request(method, path, params=params)
        except httpx.HTTPError as error:
            raise RegistryConnectionError(f"GitHub {method} {path} request failed: {error}") from error

        if response.status_code >= 400:
            raise RegistryError(
                f"GitHub {method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _registry_decode_payload(response: httpx.Response) -> dict[str, Any]:
        """Decode a JSON object body and map malformed bodies to registry errors.

        Args:
            response: Successful API response.

        Returns:
            dict[str, Any]: Decoded JSON object.

        Raises:
            RegistryError: Raised when the body is not a JSON object.
        """

        request = response.request
        try:
            payload = response.json()
        except ValueError as error:
            raise RegistryError(
                f"GitHub {request.method} {request.url.path} returned a non-JSON body",
                status_code=response.status_code,
            ) from error
        if not isinstance(payload, dict):
            raise RegistryError(
                f"GitHub {request.method} {request.url.path} returned {type(payload).__name__}, expected an object",
                status_code=response.status_code,
            )
        return payload

    @staticmethod
    def _registry_parse_record(runner: dict[str, Any]) -> RegistryRecord:
        status_value = str(runner.get("status") or "").lower()
        return RegistryRecord(
            record_id=int(runner["id"]),
            name=str(runner.get("name") or ""),
            labels=frozenset(str(label.get("name")) for label in runner.get("labels") or []),
            status=RegistryStatus.ONLINE if status_value == RegistryStatus.ONLINE.value else RegistryStatus.OFFLINE,
            busy=bool(runner.get("busy", False)),
        )

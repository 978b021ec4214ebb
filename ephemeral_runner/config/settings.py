"""Typed runtime settings with dotenv support and startup validation."""

from typing import Any

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ephemeral_runner.domain import domain_validate_correlation_label


class SettingsLoadError(RuntimeError):
    """Raised when runtime settings cannot be loaded or validated."""


class RunnerSettings(BaseSettings):
    """Settings for one start or stop invocation of the runner lifecycle.

    Environment variable names map directly to field names in uppercase.
    Example: `ec2_image_id` reads from `EC2_IMAGE_ID`. Instances are frozen so
    the loaded configuration can be shared across components without copies.

    Attributes:
        mode: Lifecycle step to execute (`start` or `stop`).
        github_token: GitHub token allowed to manage repository runners.
        github_repository: Target repository in `owner/repo` form.
        github_api_url: GitHub REST API base URL.
        github_server_url: GitHub web base URL used by the runner `config.sh`.
        github_request_timeout_seconds: HTTP request timeout for registry calls.
        aws_region: Optional AWS region override for the EC2 client.
        ec2_image_id: AMI used for the runner instance.
        ec2_instance_type: EC2 instance type.
        subnet_id: Subnet the instance is launched in.
        security_group_id: Security group attached to the instance.
        iam_role_name: Optional IAM instance profile name.
        aws_resource_tags: Tags applied to the instance and its volumes.
        runner_name: Optional explicit runner name.
        runner_home_dir: Optional pre-installed runner directory on the AMI.
        runner_version: Runner release downloaded for fresh installs.
        label: Correlation label of the runner to stop.
        ec2_instance_id: Instance id of the runner to stop.
        backoff_starting_delay_seconds: Delay before the first provisioning retry.
        backoff_multiplier: Growth factor between provisioning retries.
        backoff_max_attempts: Total provisioning attempts.
        registration_quiet_period_seconds: Wait before the first registry poll.
        registration_interval_seconds: Wait between registry polls.
        registration_timeout_seconds: Polling deadline.
        log_level: Root log level.
        log_format: `console` or `json` log rendering.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
    )

    mode: str = Field(default="start")
    github_token: str = Field(min_length=1)
    github_repository: str = Field(min_length=1)
    github_api_url: str = Field(default="https://api.github.com")
    github_server_url: str = Field(default="https://github.com")
    github_request_timeout_seconds: float = Field(default=30.0, gt=0)
    aws_region: str | None = Field(default=None)
    ec2_image_id: str | None = Field(default=None)
    ec2_instance_type: str | None = Field(default=None)
    subnet_id: str | None = Field(default=None)
    security_group_id: str | None = Field(default=None)
    iam_role_name: str | None = Field(default=None)
    aws_resource_tags: list[dict[str, str]] = Field(default_factory=list)
    runner_name: str | None = Field(default=None)
    runner_home_dir: str | None = Field(default=None)
    runner_version: str = Field(default="2.303.0", min_length=1)
    label: str | None = Field(default=None)
    ec2_instance_id: str | None = Field(default=None)
    backoff_starting_delay_seconds: float = Field(default=2.0, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1)
    backoff_max_attempts: int = Field(default=5, ge=1)
    registration_quiet_period_seconds: float = Field(default=30.0, ge=0)
    registration_interval_seconds: float = Field(default=30.0, gt=0)
    registration_timeout_seconds: float = Field(default=300.0, gt=0)
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")

    @field_validator("mode", "log_format")
    @classmethod
    def _validate_lowercase_choice(cls, value: str, info) -> str:
        normalized_value = value.strip().lower()
        allowed_values = {"mode": ("start", "stop"), "log_format": ("console", "json")}[info.field_name]
        if normalized_value not in allowed_values:
            raise ValueError(f"value must be one of {', '.join(allowed_values)}")
        return normalized_value

    @field_validator("github_token", "github_repository", "runner_version")
    @classmethod
    def _validate_non_empty_string(cls, value: str) -> str:
        stripped_value = value.strip()
        if not stripped_value:
            raise ValueError("value must not be blank")
        return stripped_value

    @field_validator(
        "aws_region",
        "ec2_image_id",
        "ec2_instance_type",
        "subnet_id",
        "security_group_id",
        "iam_role_name",
        "runner_name",
        "runner_home_dir",
        "label",
        "ec2_instance_id",
    )
    @classmethod
    def _normalize_optional_string(cls, value: str | None) -> str | None:
        if value is None:
            return None
        stripped_value = value.strip()
        return stripped_value or None

    @field_validator("label")
    @classmethod
    def _validate_label(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return domain_validate_correlation_label(value)

    @field_validator("github_repository")
    @classmethod
    def _validate_repository_slug(cls, value: str) -> str:
        owner, separator, repo = value.partition("/")
        if not separator or not owner or not repo or "/" in repo:
            raise ValueError("github_repository must use the `owner/repo` form")
        return value

    @field_validator("aws_resource_tags")
    @classmethod
    def _validate_resource_tags(cls, value: list[dict[str, str]]) -> list[dict[str, str]]:
        for tag in value:
            if set(tag) != {"Key", "Value"}:
                raise ValueError("each aws_resource_tags entry must contain exactly `Key` and `Value`")
            if not tag["Key"].strip():
                raise ValueError("aws_resource_tags keys must not be blank")
        return value

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        normalized_value = value.strip().upper()
        if normalized_value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError("log_level must be a standard logging level name")
        return normalized_value

    @model_validator(mode="after")
    def _validate_mode_requirements(self) -> "RunnerSettings":
        if self.mode == "start":
            required_fields = ("ec2_image_id", "ec2_instance_type", "subnet_id", "security_group_id")
        else:
            required_fields = ("label", "ec2_instance_id")
        missing_fields = [field_name for field_name in required_fields if getattr(self, field_name) is None]
        if missing_fields:
            raise ValueError(f"mode={self.mode} requires: {', '.join(missing_fields)}")
        return self

    @property
    def github_owner(self) -> str:
        """Return repository owner parsed from `github_repository`."""

        return self.github_repository.partition("/")[0]

    @property
    def github_repo(self) -> str:
        """Return repository name parsed from `github_repository`."""

        return self.github_repository.partition("/")[2]


def config_load_settings(**overrides: Any) -> RunnerSettings:
    """Load and validate runtime settings from environment and dotenv.

    Args:
        overrides: Explicit field values taking precedence over the environment,
            typically command line flags. `None` values are ignored.

    Returns:
        RunnerSettings: Validated, immutable runtime settings object.

    Raises:
        SettingsLoadError: Raised when required settings are missing or invalid.
    """

    explicit_values = {key: value for key, value in overrides.items() if value is not None}
    try:
        return RunnerSettings(**explicit_values)
    except ValidationError as error:
        raise SettingsLoadError(
            f"Startup configuration validation failed. Update .env or environment variables. Details: {error}"
        ) from error

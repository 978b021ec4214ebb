"""Main module entrypoint for one runner lifecycle step.

This module validates startup configuration, runs `start` or `stop`, and exits
with a non-zero status when the step fails.
"""

import argparse

import structlog

from ephemeral_runner.adapters import WorkerLifecycleError
from ephemeral_runner.bootstrap import bootstrap_create_lifecycle_orchestrator, bootstrap_create_registry
from ephemeral_runner.config import (
    SettingsLoadError,
    config_bind_log_context,
    config_configure_logging,
    config_load_settings,
)
from ephemeral_runner.domain import domain_find_failed_stage

logger = structlog.get_logger(__name__)


def main(argv: list[str] | None = None) -> None:
    """Run the selected lifecycle step with validated startup configuration.

    Args:
        argv: Optional argument list; defaults to `sys.argv[1:]`.

    Returns:
        None: This function does not return a runtime value.

    Raises:
        SystemExit: Raised with status 1 when configuration or the lifecycle step fails.
    """

    argument_parser = argparse.ArgumentParser(description="Ephemeral self-hosted runner lifecycle")
    argument_parser.add_argument(
        "mode",
        nargs="?",
        default=None,
        choices=("start", "stop"),
        help="Lifecycle step: `start` provisions and registers a runner, `stop` tears it down. "
        "Defaults to the MODE setting",
        type=str,
    )
    argument_parser.add_argument("--label", dest="label", type=str, help="Correlation label of the runner to stop")
    argument_parser.add_argument(
        "--ec2-instance-id",
        dest="ec2_instance_id",
        type=str,
        help="Instance id of the runner to stop",
    )
    argument_parser.add_argument("--runner-name", dest="runner_name", type=str, help="Explicit runner name")
    parsed_arguments = argument_parser.parse_args(argv)

    try:
        settings = config_load_settings(
            mode=parsed_arguments.mode,
            label=parsed_arguments.label,
            ec2_instance_id=parsed_arguments.ec2_instance_id,
            runner_name=parsed_arguments.runner_name,
        )
    except SettingsLoadError as error:
        config_configure_logging()
        logger.error("settings_load_failed", error=str(error))
        raise SystemExit(1) from error

    config_configure_logging(log_level=settings.log_level, log_format=settings.log_format)
    config_bind_log_context(mode=settings.mode, repository=settings.github_repository)

    registry = bootstrap_create_registry(settings)
    try:
        orchestrator = bootstrap_create_lifecycle_orchestrator(settings, registry=registry)
        execution_result = orchestrator.job_execute(job_name=settings.mode)
    except WorkerLifecycleError as error:
        logger.error("lifecycle_setup_failed", error=str(error))
        raise SystemExit(1) from error
    finally:
        registry.registry_close()

    if execution_result.status != "success":
        logger.error(
            "lifecycle_step_failed",
            failed_stage=domain_find_failed_stage(execution_result.stage_timeline),
            error_code=execution_result.error_code,
            error=execution_result.error_message,
            outputs=execution_result.outputs,
        )
        raise SystemExit(1)


if __name__ == "__main__":
    main()

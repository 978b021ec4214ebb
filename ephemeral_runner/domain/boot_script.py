"""Instance user-data script rendering for self-registering runners.

User data runs as root on first boot. The script either installs the runner
release into a fresh `actions-runner` directory or, when the image already
ships the runner, changes into that pre-installed home directory. Both
variants then register with the registration token and start the runner.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass


@dataclass(frozen=True)
class BootScriptConfig:
    """Static inputs of the boot script that do not change per invocation.

    Attributes:
        repository_url: Web URL of the repository the runner registers with.
        runner_version: Runner release used for fresh installs.
        runner_home_dir: Pre-installed runner directory; `None` selects a fresh install.
    """

    repository_url: str
    runner_version: str = "2.303.0"
    runner_home_dir: str | None = None


def domain_build_boot_script(
    config: BootScriptConfig,
    registration_token: str,
    label: str,
    runner_name: str | None = None,
) -> str:
    """Render the boot script for one runner instance.

    Args:
        config: Static script configuration.
        registration_token: Short-lived registry registration token.
        label: Correlation label attached to the runner.
        runner_name: Explicit runner name; the instance host name is used when omitted.

    Returns:
        str: Newline-joined bash script.

    Raises:
        ValueError: Raised when the token or label is blank.
    """

    if not registration_token.strip():
        raise ValueError("registration_token must not be blank")
    if not label.strip():
        raise ValueError("label must not be blank")

    if config.runner_home_dir:
        install_lines = [f"cd {shlex.quote(config.runner_home_dir)}"]
    else:
        version = config.runner_version
        tarball = f"actions-runner-linux-${{RUNNER_ARCH}}-{version}.tar.gz"
        install_lines = [
            "mkdir actions-runner && cd actions-runner",
            'case $(uname -m) in aarch64) ARCH="arm64" ;; amd64|x86_64) ARCH="x64" ;; esac '
            "&& export RUNNER_ARCH=${ARCH}",
            f"curl -O -L https://github.com/actions/runner/releases/download/v{version}/{tarball}",
            f"tar xzf ./{tarball}",
        ]

    config_command = [
        "./config.sh",
        "--url",
        shlex.quote(config.repository_url),
        "--token",
        shlex.quote(registration_token),
        "--labels",
        shlex.quote(label),
        "--unattended",
    ]
    if runner_name:
        config_command.extend(["--name", shlex.quote(runner_name)])

    return "\n".join(
        [
            "#!/bin/bash",
            *install_lines,
            "export RUNNER_ALLOW_RUNASROOT=1",
            "export DOTNET_SYSTEM_GLOBALIZATION_INVARIANT=1",
            " ".join(config_command),
            "./run.sh",
        ]
    )

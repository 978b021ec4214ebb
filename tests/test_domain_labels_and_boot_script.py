"""Regression tests for correlation labels and boot script rendering."""

from __future__ import annotations

import pytest

from ephemeral_runner.domain import (
    BootScriptConfig,
    ComputeInstanceDescriptor,
    domain_build_boot_script,
    domain_generate_correlation_label,
    domain_validate_correlation_label,
)


def test_domain_labels_are_fixed_length_and_distinct() -> None:
    """Generate fixed-length lowercase alphanumeric labels without collisions.

    Returns:
        None: Assertions validate label shape and uniqueness.

    Raises:
        AssertionError: Raised when labels collide or have wrong shape.
    """

    labels = {domain_generate_correlation_label() for _ in range(500)}

    assert len(labels) == 500
    assert all(len(label) == 10 and label.isalnum() and label == label.lower() for label in labels)
    assert domain_validate_correlation_label(" abc123 ") == "abc123"
    for invalid_label in ("", "a,b", "a b"):
        with pytest.raises(ValueError):
            domain_validate_correlation_label(invalid_label)


def test_domain_boot_script_fresh_install_downloads_runner_release() -> None:
    """Render the fresh-install variant with the configured runner version.

    Returns:
        None: Assertions validate script content.

    Raises:
        AssertionError: Raised when install steps are missing.
    """

    script = domain_build_boot_script(
        config=BootScriptConfig(repository_url="https://github.com/octo/widgets", runner_version="2.303.0"),
        registration_token="AABBCC",
        label="abc123",
    )
    lines = script.splitlines()

    assert lines[0] == "#!/bin/bash"
    assert "mkdir actions-runner && cd actions-runner" in lines
    assert any("releases/download/v2.303.0/" in line for line in lines)
    assert (
        "./config.sh --url https://github.com/octo/widgets --token AABBCC --labels abc123 --unattended" in lines
    )
    assert lines[-1] == "./run.sh"


def test_domain_boot_script_preinstalled_home_dir_skips_download_and_sets_name() -> None:
    """Render the pre-installed variant and pass an explicit runner name.

    Returns:
        None: Assertions validate script content.

    Raises:
        AssertionError: Raised when the download step is present.
    """

    script = domain_build_boot_script(
        config=BootScriptConfig(
            repository_url="https://github.com/octo/widgets",
            runner_home_dir="/home/runner/actions runner",
        ),
        registration_token="AABBCC",
        label="abc123",
        runner_name="build-box",
    )

    assert "cd '/home/runner/actions runner'" in script
    assert "curl" not in script
    assert "--name build-box" in script
    with pytest.raises(ValueError):
        domain_build_boot_script(
            config=BootScriptConfig(repository_url="https://github.com/octo/widgets"),
            registration_token=" ",
            label="abc123",
        )


def test_domain_instance_host_name_is_first_dns_label() -> None:
    """Derive the runner default name from the private DNS name.

    Returns:
        None: Assertions validate host name derivation.

    Raises:
        AssertionError: Raised when host name is wrong.
    """

    assert ComputeInstanceDescriptor("i-0abc", private_dns_name="ip-10-0-0-5.ec2.internal").host_name == "ip-10-0-0-5"
    assert ComputeInstanceDescriptor("i-0abc").host_name == ""

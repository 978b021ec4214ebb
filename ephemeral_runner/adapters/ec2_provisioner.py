"""AWS EC2 compute provisioner for ephemeral runner instances."""

from __future__ import annotations

from typing import Any

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError, WaiterError

from ephemeral_runner.domain import ComputeInstanceDescriptor

from .ec2_error_codes import ec2_error_is_already_terminated
from .errors import ComputeProviderConnectionError, ComputeProviderError, ComputeWaitError
from .interfaces import ComputeProvisionerPort, InstanceLaunchRequest

logger = structlog.get_logger(__name__)


class Ec2ComputeProvisioner(ComputeProvisionerPort):
    """Provisioner implementation backed by the EC2 `RunInstances` family of calls."""

    def __init__(
        self,
        ec2_client: Any | None = None,
        region_name: str | None = None,
        wait_delay_seconds: int = 15,
        wait_max_attempts: int = 40,
    ):
        """Initialize EC2 provisioner.

        Args:
            ec2_client: Preconfigured boto3 EC2 client; one is created when omitted.
            region_name: AWS region used when creating the client.
            wait_delay_seconds: Delay between `DescribeInstances` polls of the running waiter.
            wait_max_attempts: Maximum polls of the running waiter.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when waiter settings are invalid.
            ComputeProviderConnectionError: Raised when the EC2 client cannot be created.
        """

        if wait_delay_seconds < 1:
            raise ValueError("wait_delay_seconds must be >= 1")
        if wait_max_attempts < 1:
            raise ValueError("wait_max_attempts must be >= 1")

        if ec2_client is None:
            try:
                ec2_client = boto3.client("ec2", region_name=region_name)
            except BotoCoreError as error:
                raise ComputeProviderConnectionError(f"EC2 client could not be created: {error}") from error
        self._client = ec2_client
        self._wait_delay_seconds = wait_delay_seconds
        self._wait_max_attempts = wait_max_attempts

    def provisioner_start(self, request: InstanceLaunchRequest) -> ComputeInstanceDescriptor:
        """Launch one instance with the rendered boot script as user data.

        Args:
            request: Launch request.

        Returns:
            ComputeInstanceDescriptor: Descriptor of the launched instance.

        Raises:
            ComputeProviderError: Raised when EC2 rejects the request.
            ComputeProviderConnectionError: Raised when EC2 cannot be reached.
        """

        parameters = self._provisioner_build_run_parameters(request)
        try:
            response = self._client.run_instances(**parameters)
        except ClientError as error:
            error_code = self._provisioner_error_code(error)
            logger.error("ec2_instance_start_failed", error_code=error_code, error=str(error))
            raise ComputeProviderError(f"EC2 instance start failed: {error}", error_code=error_code) from error
        except BotoCoreError as error:
            logger.error("ec2_instance_start_failed", error=str(error))
            raise ComputeProviderConnectionError(f"EC2 instance start failed: {error}") from error

        instances = response.get("Instances") or []
        if not instances:
            raise ComputeProviderError("EC2 RunInstances response did not contain an instance")

        instance = instances[0]
        descriptor = ComputeInstanceDescriptor(
            instance_id=instance["InstanceId"],
            private_dns_name=instance.get("PrivateDnsName") or "",
            private_ip_address=instance.get("PrivateIpAddress"),
            subnet_id=instance.get("SubnetId"),
            state=(instance.get("State") or {}).get("Name", "pending"),
        )
        logger.debug("ec2_instance_metadata", response=response)
        logger.info(
            "ec2_instance_started",
            instance_id=descriptor.instance_id,
            host_name=descriptor.host_name,
        )
        return descriptor

    def provisioner_wait_running(self, instance_id: str) -> None:
        """Block on the `instance_running` waiter.

        Args:
            instance_id: EC2 instance id.

        Returns:
            None: Returns once the instance is running.

        Raises:
            ComputeWaitError: Raised when the instance enters a failure state or the waiter gives up.
            ComputeProviderConnectionError: Raised when EC2 cannot be reached.
        """

        waiter = self._client.get_waiter("instance_running")
        try:
            waiter.wait(
                InstanceIds=[instance_id],
                WaiterConfig={"Delay": self._wait_delay_seconds, "MaxAttempts": self._wait_max_attempts},
            )
        except WaiterError as error:
            logger.error("ec2_instance_initialization_failed", instance_id=instance_id, error=str(error))
            raise ComputeWaitError(f"EC2 instance {instance_id} initialization error: {error}") from error
        except BotoCoreError as error:
            logger.error("ec2_instance_initialization_failed", instance_id=instance_id, error=str(error))
            raise ComputeProviderConnectionError(f"EC2 instance {instance_id} initialization error: {error}") from error
        logger.info("ec2_instance_running", instance_id=instance_id)

    def provisioner_terminate(self, instance_id: str) -> None:
        """Terminate one instance, treating an unknown instance id as already terminated.

        Args:
            instance_id: EC2 instance id.

        Returns:
            None: Returns once EC2 accepted the request or the instance is gone.

        Raises:
            ComputeProviderError: Raised when termination fails for any other reason.
            ComputeProviderConnectionError: Raised when EC2 cannot be reached.
        """

        try:
            self._client.terminate_instances(InstanceIds=[instance_id])
        except ClientError as error:
            error_code = self._provisioner_error_code(error)
            if ec2_error_is_already_terminated(error_code):
                logger.info("ec2_instance_already_terminated", instance_id=instance_id, error_code=error_code)
                return
            logger.error("ec2_instance_termination_failed", instance_id=instance_id, error_code=error_code)
            raise ComputeProviderError(
                f"EC2 instance {instance_id} termination error: {error}",
                error_code=error_code,
            ) from error
        except BotoCoreError as error:
            logger.error("ec2_instance_termination_failed", instance_id=instance_id, error=str(error))
            raise ComputeProviderConnectionError(f"EC2 instance {instance_id} termination error: {error}") from error
        logger.info("ec2_instance_terminated", instance_id=instance_id)

    def _provisioner_build_run_parameters(self, request: InstanceLaunchRequest) -> dict[str, Any]:
        """Build `RunInstances` keyword arguments from a launch request.

        Args:
            request: Launch request.

        Returns:
            dict[str, Any]: boto3 keyword arguments. `UserData` is passed as plain
                text because botocore base64-encodes it for `RunInstances`.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        template = request.template
        parameters: dict[str, Any] = {
            "ImageId": template.image_id,
            "InstanceType": template.instance_type,
            "MinCount": 1,
            "MaxCount": 1,
            "UserData": request.user_data,
            "SubnetId": template.subnet_id,
            "SecurityGroupIds": [template.security_group_id],
        }
        if template.iam_instance_profile_name:
            parameters["IamInstanceProfile"] = {"Name": template.iam_instance_profile_name}
        if template.resource_tags:
            tags = [{"Key": key, "Value": value} for key, value in template.resource_tags]
            parameters["TagSpecifications"] = [
                {"ResourceType": "instance", "Tags": tags},
                {"ResourceType": "volume", "Tags": tags},
            ]
        return parameters

    @staticmethod
    def _provisioner_error_code(error: ClientError) -> str | None:
        return error.response.get("Error", {}).get("Code")

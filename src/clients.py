"""
boto3 client wrapper for the EC2 and Auto Scaling control plane.
"""

import logging
from typing import Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from models import LaunchTemplateVersion, MachineImage, RefreshStatus, RolloutProgress

logger = logging.getLogger(__name__)

NOT_FOUND_IMAGE_CODES = {
    "InvalidAMIID.NotFound",
    "InvalidAMIID.Malformed",
    "InvalidAMIID.Unavailable",
}
NOT_FOUND_TEMPLATE_CODES = {
    "InvalidLaunchTemplateId.NotFound",
    "InvalidLaunchTemplateId.Malformed",
    "InvalidLaunchTemplateId.VersionNotFound",
}


def error_code(exc: ClientError) -> str:
    """Return the AWS error code carried by a ClientError."""
    return exc.response.get("Error", {}).get("Code", "")


class AwsFleetClient:
    """Thin client over STS, EC2 and Auto Scaling for image rollouts."""

    def __init__(
        self,
        region: str,
        timeout_s: int = 60,
        max_retries: int = 5,
        session: Optional[boto3.session.Session] = None,
    ):
        """
        Initialize the AWS clients.

        Args:
            region: AWS region name
            timeout_s: Connect/read timeout per API call in seconds
            max_retries: Maximum attempts for throttled or transient errors
            session: Optional pre-built boto3 session
        """
        self.region = region
        self.timeout_s = timeout_s
        self.max_retries = max_retries

        self.session = session or boto3.Session(region_name=region)
        config = Config(
            region_name=region,
            connect_timeout=timeout_s,
            read_timeout=timeout_s,
            retries={"max_attempts": max_retries, "mode": "standard"},
        )
        self.sts = self.session.client("sts", config=config)
        self.ec2 = self.session.client("ec2", config=config)
        self.autoscaling = self.session.client("autoscaling", config=config)

    def has_credentials(self) -> bool:
        """Return True when the boto3 credential chain resolves."""
        return self.session.get_credentials() is not None

    def get_caller_arn(self) -> Optional[str]:
        """Return the ARN of the calling identity, or None if it cannot be read."""
        try:
            return self.sts.get_caller_identity()["Arn"]
        except (ClientError, BotoCoreError) as e:
            logger.debug(f"get_caller_identity failed: {e}")
            return None

    def get_image(self, image_id: str) -> MachineImage:
        """
        Describe an AMI.

        Returns:
            MachineImage whose state is None when the image does not exist
        """
        try:
            resp = self.ec2.describe_images(ImageIds=[image_id])
        except ClientError as e:
            if error_code(e) in NOT_FOUND_IMAGE_CODES:
                return MachineImage(image_id=image_id, state=None)
            raise
        images = resp.get("Images", [])
        if not images:
            return MachineImage(image_id=image_id, state=None)
        return MachineImage(image_id=image_id, state=images[0].get("State"))

    def get_launch_template_name(self, template_id: str) -> Optional[str]:
        """Return the launch template name, or None if it cannot be found."""
        try:
            resp = self.ec2.describe_launch_templates(LaunchTemplateIds=[template_id])
        except ClientError as e:
            if error_code(e) in NOT_FOUND_TEMPLATE_CODES:
                return None
            raise
        templates = resp.get("LaunchTemplates", [])
        if not templates:
            return None
        return templates[0].get("LaunchTemplateName")

    def get_latest_version(self, template_id: str) -> Optional[LaunchTemplateVersion]:
        """Return the $Latest version of a launch template, or None."""
        try:
            resp = self.ec2.describe_launch_template_versions(
                LaunchTemplateId=template_id, Versions=["$Latest"]
            )
        except ClientError as e:
            if error_code(e) in NOT_FOUND_TEMPLATE_CODES:
                return None
            raise
        versions = resp.get("LaunchTemplateVersions", [])
        if not versions:
            return None
        return self._to_version(template_id, versions[0])

    def get_version(
        self, template_id: str, version: int
    ) -> Optional[LaunchTemplateVersion]:
        """Return a specific numbered version of a launch template, or None."""
        try:
            resp = self.ec2.describe_launch_template_versions(
                LaunchTemplateId=template_id, Versions=[str(version)]
            )
        except ClientError as e:
            if error_code(e) in NOT_FOUND_TEMPLATE_CODES:
                return None
            raise
        versions = resp.get("LaunchTemplateVersions", [])
        if not versions:
            return None
        return self._to_version(template_id, versions[0])

    @staticmethod
    def _to_version(template_id: str, item: Dict) -> LaunchTemplateVersion:
        return LaunchTemplateVersion(
            template_id=template_id,
            version_number=int(item["VersionNumber"]),
            image_id=item.get("LaunchTemplateData", {}).get("ImageId"),
            template_name=item.get("LaunchTemplateName"),
        )

    def create_version(
        self,
        template_id: str,
        source_version: int,
        image_id: str,
        description: Optional[str] = None,
    ) -> LaunchTemplateVersion:
        """
        Create a launch template version copied from source_version with a new AMI.

        Raises:
            ClientError: If the API call fails
            RuntimeError: If the response carries no version number
        """
        kwargs = {
            "LaunchTemplateId": template_id,
            "SourceVersion": str(source_version),
            "LaunchTemplateData": {"ImageId": image_id},
        }
        if description:
            kwargs["VersionDescription"] = description
        resp = self.ec2.create_launch_template_version(**kwargs)
        data = resp.get("LaunchTemplateVersion") or {}
        if data.get("VersionNumber") is None:
            raise RuntimeError(
                f"create_launch_template_version returned unexpected response: {resp}"
            )
        return LaunchTemplateVersion(
            template_id=template_id,
            version_number=int(data["VersionNumber"]),
            image_id=image_id,
            template_name=data.get("LaunchTemplateName"),
        )

    def describe_group(self, asg_name: str) -> Optional[Dict]:
        """Return the Auto Scaling group description, or None if absent."""
        resp = self.autoscaling.describe_auto_scaling_groups(
            AutoScalingGroupNames=[asg_name]
        )
        for group in resp.get("AutoScalingGroups", []):
            if group.get("AutoScalingGroupName") == asg_name:
                return group
        return None

    @staticmethod
    def group_launch_template(group: Dict) -> Dict:
        """Return the launch template spec of a group, including mixed policies."""
        if group.get("LaunchTemplate"):
            return group["LaunchTemplate"]
        mixed = group.get("MixedInstancesPolicy") or {}
        return (
            mixed.get("LaunchTemplate", {}).get("LaunchTemplateSpecification") or {}
        )

    def update_group_template(
        self, asg_name: str, template_id: str, version: int
    ) -> None:
        """Point an Auto Scaling group at a launch template version."""
        self.autoscaling.update_auto_scaling_group(
            AutoScalingGroupName=asg_name,
            LaunchTemplate={"LaunchTemplateId": template_id, "Version": str(version)},
        )

    def start_instance_refresh(self, asg_name: str, preferences: Dict) -> str:
        """Start a rolling instance refresh and return its id ('' if none)."""
        resp = self.autoscaling.start_instance_refresh(
            AutoScalingGroupName=asg_name,
            Strategy="Rolling",
            Preferences=preferences,
        )
        return resp.get("InstanceRefreshId") or ""

    def describe_instance_refresh(
        self, asg_name: str, refresh_id: str
    ) -> RolloutProgress:
        """Fetch status and completion percentage of one instance refresh."""
        resp = self.autoscaling.describe_instance_refreshes(
            AutoScalingGroupName=asg_name, InstanceRefreshIds=[refresh_id]
        )
        refreshes = resp.get("InstanceRefreshes", [])
        if not refreshes:
            return RolloutProgress(
                refresh_id=refresh_id, status=RefreshStatus.UNKNOWN, raw_status=None
            )
        refresh = refreshes[0]
        raw = refresh.get("Status")
        return RolloutProgress(
            refresh_id=refresh_id,
            status=RefreshStatus.from_platform(raw),
            raw_status=raw,
            percentage_complete=refresh.get("PercentageComplete"),
            status_reason=refresh.get("StatusReason"),
        )

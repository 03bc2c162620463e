"""
Image rollout logic: launch template versioning, fleet repointing and
instance refresh orchestration.
"""

import logging
import time
import warnings
from datetime import datetime
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from audit import utc_timestamp, write_record
from backoff import build_backoff
from clients import AwsFleetClient
from config import DeployConfig
from errors import (
    AccessError,
    CreationError,
    DependencyMissingError,
    ImageNotReadyError,
    RecordWriteError,
    ValidationError,
    VerificationWarning,
)
from models import (
    DeploymentRecord,
    DeploymentResult,
    FleetUpdate,
    LaunchTemplateVersion,
    MachineImage,
    RolloutProgress,
)
from monitor import RolloutMonitor

logger = logging.getLogger(__name__)

TEMPLATE_PERMISSIONS = (
    "Required permissions: ec2:DescribeLaunchTemplates, "
    "ec2:CreateLaunchTemplateVersion"
)
GROUP_PERMISSIONS = (
    "Required permissions: autoscaling:DescribeAutoScalingGroups, "
    "autoscaling:UpdateAutoScalingGroup"
)


class LaunchTemplateUpdater:
    """Creates launch template versions that swap in a new AMI."""

    def __init__(self, api: AwsFleetClient):
        self.api = api

    def verify_image(self, image_id: str) -> MachineImage:
        """
        Check that an AMI exists and is available.

        Raises:
            ImageNotReadyError: If the image is missing or not 'available'
        """
        logger.info("Verifying AMI exists and is available...")
        hints = []
        try:
            image = self.api.get_image(image_id)
        except (ClientError, BotoCoreError) as e:
            logger.debug(f"describe_images failed for {image_id}: {e}")
            image = MachineImage(image_id=image_id, state=None)
            hints = [
                f"The image lookup itself failed: {e}",
                "Required permissions: ec2:DescribeImages",
            ]
        if not image.is_available:
            raise ImageNotReadyError(image_id, image.state, hints=hints)
        logger.info(f"✓ AMI {image_id} is available for deployment")
        return image

    def describe_template(self, template_id: str) -> str:
        """
        Return the launch template name.

        Raises:
            AccessError: If the template cannot be read
        """
        logger.info("Verifying launch template access...")
        try:
            name = self.api.get_launch_template_name(template_id)
        except (ClientError, BotoCoreError) as e:
            raise AccessError(
                f"Cannot access launch template {template_id}: {e}",
                hints=[TEMPLATE_PERMISSIONS],
            ) from e
        if not name:
            raise AccessError(
                f"Cannot access launch template {template_id}",
                hints=[TEMPLATE_PERMISSIONS],
            )
        logger.info(f"✓ Launch template access verified: {name}")
        return name

    def current_version(self, template_id: str) -> LaunchTemplateVersion:
        """Return the template's latest version, raising AccessError if unreadable."""
        try:
            current = self.api.get_latest_version(template_id)
        except (ClientError, BotoCoreError) as e:
            raise AccessError(
                f"Failed to get current launch template version for {template_id}: {e}",
                hints=[TEMPLATE_PERMISSIONS],
            ) from e
        if current is None:
            raise AccessError(
                f"Failed to get current launch template version for {template_id}",
                hints=[TEMPLATE_PERMISSIONS],
            )
        return current

    def existing_version(
        self, template_id: str, version: int, image_id: str
    ) -> LaunchTemplateVersion:
        """
        Look up a previously created version and check it carries `image_id`.

        Raises:
            AccessError: The version does not exist or cannot be read
            ValidationError: The version launches a different AMI
        """
        logger.info(f"Checking existing launch template version {version}...")
        try:
            found = self.api.get_version(template_id, version)
        except (ClientError, BotoCoreError) as e:
            raise AccessError(
                f"Cannot read launch template {template_id} version {version}: {e}",
                hints=[TEMPLATE_PERMISSIONS],
            ) from e
        if found is None:
            raise AccessError(
                f"Launch template {template_id} has no version {version}",
                hints=["Omit --launch-template-version to create a new version"],
            )
        if found.image_id != image_id:
            raise ValidationError(
                f"Launch template version {version} uses AMI {found.image_id}, "
                f"not {image_id}",
                hints=[
                    "Pass the version that was created for this AMI, or omit "
                    "--launch-template-version to create a new one"
                ],
            )
        logger.info(f"✓ Version {version} uses AMI {image_id}")
        return found

    def create_version(
        self, template_id: str, image_id: str, check_image: bool = True
    ) -> LaunchTemplateVersion:
        """
        Create a new version of `template_id` that uses `image_id`.

        The new version is copied from the current one; only ImageId changes.

        Args:
            template_id: Launch template id
            image_id: AMI to deploy
            check_image: Verify the AMI first (skip if the caller already did)

        Returns:
            The created LaunchTemplateVersion

        Raises:
            ImageNotReadyError: Image not available (nothing is created)
            AccessError: Template cannot be read
            CreationError: Version creation failed or returned a bad number
        """
        if check_image:
            self.verify_image(image_id)

        logger.info("Getting current launch template version...")
        current = self.current_version(template_id)
        logger.info(f"Current launch template version: {current.version_number}")

        logger.info(f"Creating new launch template version with AMI: {image_id}")
        try:
            created = self.api.create_version(
                template_id,
                current.version_number,
                image_id,
                description=f"Rollout of {image_id}",
            )
        except (ClientError, BotoCoreError, RuntimeError) as e:
            raise CreationError(
                f"Failed to create new launch template version: {e}",
                hints=["Required permissions: ec2:CreateLaunchTemplateVersion"],
            ) from e

        if created.version_number <= current.version_number:
            raise CreationError(
                f"Invalid launch template version returned: {created.version_number} "
                f"(current version is {current.version_number})"
            )

        logger.info(f"✓ Created new launch template version: {created.version_number}")
        return created


class FleetUpdater:
    """Points an Auto Scaling group at a launch template version."""

    def __init__(self, api: AwsFleetClient, caller_arn: Optional[str] = None):
        self.api = api
        self.caller_arn = caller_arn

    def _describe(self, asg_name: str) -> dict:
        try:
            group = self.api.describe_group(asg_name)
        except (ClientError, BotoCoreError) as e:
            raise AccessError(
                f"Cannot access Auto Scaling Group {asg_name}: {e}",
                hints=[GROUP_PERMISSIONS],
            ) from e
        if group is None:
            raise AccessError(
                f"Cannot access Auto Scaling Group {asg_name}",
                hints=[GROUP_PERMISSIONS],
            )
        return group

    def verify_access(self, asg_name: str) -> dict:
        """Describe the group, raising AccessError if it cannot be read."""
        logger.info("Verifying Auto Scaling Group access...")
        group = self._describe(asg_name)
        logger.info("✓ Auto Scaling Group access verified")
        return group

    def point_to(self, asg_name: str, template_id: str, version: int) -> FleetUpdate:
        """
        Make `asg_name` launch instances from (template_id, version).

        A group that already uses this version is left untouched. After an
        update the group is re-read; a mismatch is reported as a
        VerificationWarning and does not abort.

        Raises:
            AccessError: Group missing or update not permitted
        """
        group = self._describe(asg_name)
        spec = self.api.group_launch_template(group)
        if (
            spec.get("LaunchTemplateId") == template_id
            and str(spec.get("Version")) == str(version)
        ):
            logger.info(
                f"Auto Scaling Group {asg_name} already uses launch template "
                f"version {version}; no update needed"
            )
            return FleetUpdate(
                asg_name=asg_name,
                template_id=template_id,
                version=version,
                changed=False,
                verified=True,
                actual_version=str(version),
            )

        logger.info("Updating Auto Scaling Group to use new launch template version...")
        try:
            self.api.update_group_template(asg_name, template_id, version)
        except (ClientError, BotoCoreError) as e:
            raise AccessError(
                f"Failed to update Auto Scaling Group {asg_name}: {e}",
                hints=[
                    "Missing IAM permission: autoscaling:UpdateAutoScalingGroup",
                    "Missing IAM permission: iam:PassRole (for launch template)",
                    "Missing IAM permission: ec2:RunInstances (for launch template)",
                    f"Current IAM identity: {self.caller_arn or 'unknown'}",
                ],
            ) from e
        logger.info("✓ Auto Scaling Group updated successfully")

        logger.info("Verifying Auto Scaling Group update...")
        actual = self.api.group_launch_template(self._describe(asg_name)).get(
            "Version"
        )
        verified = str(actual) == str(version)
        if verified:
            logger.info(
                f"✓ ASG successfully updated to use launch template version {version}"
            )
        else:
            message = (
                f"ASG launch template version mismatch. "
                f"Expected: {version}, Actual: {actual}"
            )
            logger.warning(message)
            warnings.warn(message, VerificationWarning, stacklevel=2)

        return FleetUpdate(
            asg_name=asg_name,
            template_id=template_id,
            version=version,
            changed=True,
            verified=verified,
            actual_version=None if actual is None else str(actual),
        )


class FleetDeployer:
    """Rolls a new AMI out to an Auto Scaling group."""

    def __init__(self, config: DeployConfig, api: Optional[AwsFleetClient] = None):
        """
        Args:
            config: Validated deployment configuration
            api: AWS client (built from config.region when omitted)
        """
        self.config = config
        self.api = api or AwsFleetClient(region=config.region)
        self.templates = LaunchTemplateUpdater(self.api)
        self.fleet = FleetUpdater(self.api)

        self.run_start_time: Optional[float] = None
        self.run_end_time: Optional[float] = None

    def _log_header(self) -> None:
        cfg = self.config
        logger.info("=" * 70)
        logger.info("AMI Rollout to Auto Scaling Group")
        logger.info("=" * 70)
        logger.info(f"AMI ID: {cfg.ami_id}")
        logger.info(f"Launch Template ID: {cfg.launch_template_id}")
        logger.info(f"Auto Scaling Group: {cfg.asg_name}")
        logger.info(f"AWS Region: {cfg.region}")
        logger.info(f"Project: {cfg.project_name}")
        logger.info(f"Environment: {cfg.environment}")
        logger.info(f"Wait for completion: {cfg.wait}")
        if cfg.wait:
            logger.info(f"Timeout: {cfg.timeout}s")
            logger.info(f"Poll interval: {cfg.poll_interval}s ({cfg.backoff})")
        if cfg.resume_version is not None:
            logger.info(f"Resuming with launch template version: {cfg.resume_version}")
        logger.info(f"Start time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        logger.info("=" * 70)

    def check_dependencies(self) -> None:
        """Raise DependencyMissingError when no AWS credentials are configured."""
        if not self.api.has_credentials():
            raise DependencyMissingError(
                "No AWS credentials found",
                hints=[
                    "Configure credentials with 'aws configure', environment "
                    "variables, or an instance profile and try again"
                ],
            )

    def start_refresh(self) -> str:
        """Start the instance refresh and return its id."""
        logger.info("Starting instance refresh for rolling deployment...")
        try:
            refresh_id = self.api.start_instance_refresh(
                self.config.asg_name, self.config.policy.to_preferences()
            )
        except (ClientError, BotoCoreError) as e:
            raise CreationError(
                f"Failed to start instance refresh: {e}",
                hints=["Required permissions: autoscaling:StartInstanceRefresh"],
            ) from e
        if not refresh_id:
            raise CreationError("Failed to start instance refresh: no refresh id returned")
        logger.info(f"✓ Instance refresh started with ID: {refresh_id}")
        return refresh_id

    def build_monitor(self, refresh_id: str) -> RolloutMonitor:
        cfg = self.config

        def fetch() -> RolloutProgress:
            try:
                return self.api.describe_instance_refresh(cfg.asg_name, refresh_id)
            except (ClientError, BotoCoreError) as e:
                raise AccessError(
                    f"Failed to read status of instance refresh {refresh_id}: {e}",
                    hints=[
                        "Required permissions: autoscaling:DescribeInstanceRefreshes",
                        f"The refresh keeps running in AWS; check it with "
                        f"'aws autoscaling describe-instance-refreshes "
                        f"--auto-scaling-group-name {cfg.asg_name}'",
                    ],
                ) from e

        return RolloutMonitor(
            refresh_id=refresh_id,
            fetch=fetch,
            timeout=cfg.timeout,
            backoff=build_backoff(cfg.backoff, cfg.poll_interval, cfg.max_poll_interval),
        )

    def run(self) -> DeploymentResult:
        """
        Execute the rollout.

        Returns:
            DeploymentResult describing what was created

        Raises:
            DeployError: Any failure; the run stops at the first one
        """
        cfg = self.config
        self.run_start_time = time.time()
        self._log_header()

        self.check_dependencies()

        logger.info("Checking AWS credentials...")
        caller_arn = self.api.get_caller_arn()
        self.fleet.caller_arn = caller_arn
        logger.info(
            f"Current IAM identity: {caller_arn or 'Unable to get caller identity'}"
        )

        self.templates.verify_image(cfg.ami_id)
        self.templates.describe_template(cfg.launch_template_id)
        self.fleet.verify_access(cfg.asg_name)

        if cfg.resume_version is not None:
            version = self.templates.existing_version(
                cfg.launch_template_id, cfg.resume_version, cfg.ami_id
            ).version_number
            logger.info(f"Skipping version creation; using existing version {version}")
        else:
            created = self.templates.create_version(
                cfg.launch_template_id, cfg.ami_id, check_image=False
            )
            version = created.version_number

        fleet_update = self.fleet.point_to(
            cfg.asg_name, cfg.launch_template_id, version
        )

        refresh_id = self.start_refresh()

        record = DeploymentRecord(
            refresh_id=refresh_id,
            ami_id=cfg.ami_id,
            new_version=version,
            launch_template_id=cfg.launch_template_id,
            asg_name=cfg.asg_name,
            deployment_date=utc_timestamp(),
            project_name=cfg.project_name,
            environment=cfg.environment,
            region=cfg.region,
        )
        try:
            record_path = write_record(record, cfg.output_dir)
        except OSError as e:
            raise RecordWriteError(refresh_id, cfg.output_dir, e) from e

        result = DeploymentResult(
            record=record,
            fleet_update=fleet_update,
            record_path=record_path,
            start_time=self.run_start_time,
        )

        if cfg.wait:
            final: RolloutProgress = self.build_monitor(refresh_id).wait()
            result.final_progress = final

        self.run_end_time = time.time()
        result.end_time = self.run_end_time
        self._print_summary(result)
        return result

    def _format_duration(self, seconds: float) -> str:
        """Format duration in human-readable format."""
        if seconds < 60:
            return f"{seconds:.1f}s"
        elif seconds < 3600:
            mins = int(seconds // 60)
            secs = seconds % 60
            return f"{mins}m {secs:.0f}s"
        else:
            hours = int(seconds // 3600)
            mins = int((seconds % 3600) // 60)
            secs = seconds % 60
            return f"{hours}h {mins}m {secs:.0f}s"

    def _print_summary(self, result: DeploymentResult) -> None:
        record = result.record
        logger.info("")
        logger.info("=" * 70)
        logger.info("DEPLOYMENT SUMMARY")
        logger.info("=" * 70)
        logger.info(f"AMI ID:                   {record.ami_id}")
        logger.info(f"Launch Template Version:  {record.new_version}")
        logger.info(f"Instance Refresh ID:      {record.refresh_id}")
        logger.info(f"Deployment file:          {result.record_path}")
        if not result.fleet_update.verified:
            logger.info(
                f"Fleet version check:      MISMATCH "
                f"(reported {result.fleet_update.actual_version})"
            )
        if result.final_progress is not None:
            logger.info(
                f"Refresh status:           {result.final_progress.status.value}"
            )
        logger.info(
            f"Total duration:           "
            f"{self._format_duration(result.end_time - result.start_time)}"
        )
        logger.info("")
        logger.info("Follow-up commands:")
        logger.info(
            f"  aws autoscaling describe-instance-refreshes "
            f"--auto-scaling-group-name {record.asg_name}"
        )
        logger.info(
            f"  aws autoscaling cancel-instance-refresh "
            f"--auto-scaling-group-name {record.asg_name}"
        )
        logger.info("=" * 70)

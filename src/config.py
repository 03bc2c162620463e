"""
Configuration management for the fleet image rollout tool.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from errors import ValidationError

DEFAULT_REGION = "ap-south-1"
DEFAULT_PROJECT_NAME = "packer-imagebuilder-poc"
DEFAULT_ENVIRONMENT = "dev"


@dataclass
class RolloutPolicy:
    """Instance refresh preferences, forwarded verbatim to Auto Scaling."""

    instance_warmup: int = 300
    min_healthy_percentage: int = 50
    checkpoint_delay: int = 600
    checkpoint_percentages: List[int] = field(default_factory=lambda: [50, 100])

    def to_preferences(self) -> Dict:
        return {
            "InstanceWarmup": self.instance_warmup,
            "MinHealthyPercentage": self.min_healthy_percentage,
            "CheckpointDelay": self.checkpoint_delay,
            "CheckpointPercentages": list(self.checkpoint_percentages),
        }


@dataclass
class DeployConfig:
    """Configuration for a single image rollout."""

    ami_id: str
    launch_template_id: str
    asg_name: str
    region: str = DEFAULT_REGION
    project_name: str = DEFAULT_PROJECT_NAME
    environment: str = DEFAULT_ENVIRONMENT
    wait: bool = False
    timeout: int = 1800
    poll_interval: float = 30.0
    backoff: str = "fixed"
    max_poll_interval: float = 300.0
    policy: RolloutPolicy = field(default_factory=RolloutPolicy)
    resume_version: Optional[int] = None
    output_dir: str = "."
    verbose: bool = False

    @classmethod
    def from_args(
        cls, args, environ: Optional[Mapping[str, str]] = None
    ) -> "DeployConfig":
        """
        Create configuration from command-line arguments.

        Values given on the command line win; the launch template, ASG name,
        region, project and environment fall back to environment variables.

        Args:
            args: Parsed argparse arguments
            environ: Environment mapping (defaults to os.environ)

        Returns:
            DeployConfig instance
        """
        env = os.environ if environ is None else environ

        policy = RolloutPolicy(
            instance_warmup=args.instance_warmup,
            min_healthy_percentage=args.min_healthy_percentage,
            checkpoint_delay=args.checkpoint_delay,
            checkpoint_percentages=list(args.checkpoint_percentages),
        )

        return cls(
            ami_id=args.ami_id or "",
            launch_template_id=(
                args.launch_template_id or env.get("LAUNCH_TEMPLATE_ID", "")
            ),
            asg_name=args.asg_name or env.get("ASG_NAME", ""),
            region=args.region or env.get("AWS_DEFAULT_REGION") or DEFAULT_REGION,
            project_name=(
                args.project_name or env.get("PROJECT_NAME") or DEFAULT_PROJECT_NAME
            ),
            environment=(
                args.environment or env.get("ENVIRONMENT") or DEFAULT_ENVIRONMENT
            ),
            wait=args.wait,
            timeout=args.timeout,
            poll_interval=args.poll_interval,
            backoff=args.backoff,
            max_poll_interval=args.max_poll_interval,
            policy=policy,
            resume_version=args.launch_template_version,
            output_dir=args.output_dir,
            verbose=args.verbose,
        )

    def validate(self) -> None:
        """Raise ValidationError when a required value is missing or out of range."""
        if not self.ami_id:
            raise ValidationError("AMI ID is required. Use -a or --ami-id")
        if not self.launch_template_id:
            raise ValidationError(
                "Launch Template ID is required. Use -l or --launch-template-id "
                "or set LAUNCH_TEMPLATE_ID environment variable"
            )
        if not self.asg_name:
            raise ValidationError(
                "Auto Scaling Group name is required. Use -g or --asg-name "
                "or set ASG_NAME environment variable"
            )
        if self.timeout <= 0:
            raise ValidationError(f"Timeout must be positive, got {self.timeout}")
        if self.poll_interval <= 0:
            raise ValidationError(
                f"Poll interval must be positive, got {self.poll_interval}"
            )
        if self.backoff not in ("fixed", "exponential"):
            raise ValidationError(f"Unknown backoff strategy: {self.backoff}")
        if not 0 <= self.policy.min_healthy_percentage <= 100:
            raise ValidationError(
                "Minimum healthy percentage must be between 0 and 100, "
                f"got {self.policy.min_healthy_percentage}"
            )
        percentages = self.policy.checkpoint_percentages
        if any(p < 1 or p > 100 for p in percentages) or percentages != sorted(
            set(percentages)
        ):
            raise ValidationError(
                "Checkpoint percentages must be strictly increasing values "
                f"between 1 and 100, got {percentages}"
            )
        if self.resume_version is not None and self.resume_version < 1:
            raise ValidationError(
                f"Launch template version must be >= 1, got {self.resume_version}"
            )

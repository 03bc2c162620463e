"""Console entry point for the fleet image rollout CLI."""

from __future__ import annotations

import argparse
import logging
from typing import List

from config import DEFAULT_ENVIRONMENT, DEFAULT_PROJECT_NAME, DEFAULT_REGION, DeployConfig
from deployer import FleetDeployer
from errors import DeployError
from log_utils import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description=(
            "Deploy a new AMI to an Auto Scaling Group via a launch template "
            "update and a rolling instance refresh."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Environment variables:\n"
            "  AWS_DEFAULT_REGION   AWS region\n"
            "  PROJECT_NAME         Project name\n"
            "  ENVIRONMENT          Environment name\n"
            "  LAUNCH_TEMPLATE_ID   Launch Template ID\n"
            "  ASG_NAME             Auto Scaling Group name\n\n"
            "Examples:\n"
            "  fleet-rollout -a ami-12345678 -l lt-abcdef123 -g my-asg\n"
            "  fleet-rollout -a ami-12345678 -l lt-abcdef123 -g my-asg --wait\n"
            "  fleet-rollout -a ami-12345678 -l lt-abcdef123 -g my-asg "
            "--wait --timeout 3600\n\n"
            "  # Using environment variables\n"
            "  export LAUNCH_TEMPLATE_ID=lt-abcdef123\n"
            "  export ASG_NAME=my-asg\n"
            "  fleet-rollout -a ami-12345678\n\n"
            "  # Resume after a version was created but the group not updated\n"
            "  fleet-rollout -a ami-12345678 -l lt-abcdef123 -g my-asg "
            "--launch-template-version 7"
        ),
    )

    target = parser.add_argument_group("deployment target")
    target.add_argument("-a", "--ami-id", metavar="AMI_ID", help="AMI ID to deploy (required)")
    target.add_argument(
        "-l",
        "--launch-template-id",
        metavar="ID",
        help="Launch Template ID (required, or LAUNCH_TEMPLATE_ID)",
    )
    target.add_argument(
        "-g",
        "--asg-name",
        metavar="NAME",
        help="Auto Scaling Group name (required, or ASG_NAME)",
    )
    target.add_argument(
        "-r", "--region", metavar="REGION", help=f"AWS region (default: {DEFAULT_REGION})"
    )
    target.add_argument(
        "-p",
        "--project-name",
        metavar="NAME",
        help=f"Project name (default: {DEFAULT_PROJECT_NAME})",
    )
    target.add_argument(
        "-e",
        "--environment",
        metavar="ENV",
        help=f"Environment (default: {DEFAULT_ENVIRONMENT})",
    )
    target.add_argument(
        "--launch-template-version",
        type=int,
        metavar="N",
        help=(
            "Use an existing launch template version instead of creating one. "
            "Resumes a run that created the version but did not update the group."
        ),
    )

    waiting = parser.add_argument_group("waiting")
    waiting.add_argument(
        "-w", "--wait", action="store_true", help="Wait for deployment completion"
    )
    waiting.add_argument(
        "-t",
        "--timeout",
        type=int,
        default=1800,
        metavar="SECONDS",
        help="Timeout in seconds (default: 1800)",
    )
    waiting.add_argument(
        "--poll-interval",
        type=float,
        default=30.0,
        metavar="SECONDS",
        help="Time between status checks, or the first delay for exponential backoff (default: 30)",
    )
    waiting.add_argument(
        "--backoff",
        choices=("fixed", "exponential"),
        default="fixed",
        help="Delay strategy between status checks (default: fixed)",
    )
    waiting.add_argument(
        "--max-poll-interval",
        type=float,
        default=300.0,
        metavar="SECONDS",
        help="Upper bound for exponential backoff delays (default: 300)",
    )

    policy = parser.add_argument_group("instance refresh preferences")
    policy.add_argument("--instance-warmup", type=int, default=300, metavar="SECONDS")
    policy.add_argument("--min-healthy-percentage", type=int, default=50, metavar="PCT")
    policy.add_argument("--checkpoint-delay", type=int, default=600, metavar="SECONDS")
    policy.add_argument(
        "--checkpoint-percentages",
        type=int,
        nargs="+",
        default=[50, 100],
        metavar="PCT",
    )

    output = parser.add_argument_group("logging and output")
    output.add_argument(
        "--output-dir",
        default=".",
        metavar="DIR",
        help="Directory for the deployment record file (default: current directory)",
    )
    output.add_argument(
        "--log-file",
        default="fleet-deploy.log",
        metavar="PATH",
        help="Log file path; pass an empty string to log to the console only "
        "(default: fleet-deploy.log)",
    )
    output.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    return parser


def main(argv: List[str] | None = None) -> int:
    """CLI main for console_scripts entry point."""
    parser = build_parser()
    args = parser.parse_args(args=argv)

    setup_logging(verbose=args.verbose, log_file=args.log_file)

    config = DeployConfig.from_args(args)

    try:
        config.validate()
        FleetDeployer(config).run()
    except DeployError as e:
        logger.error(str(e))
        for hint in e.hints:
            logger.error(f"  {hint}")
        return 1

    logger.info("Deployment completed successfully!")
    return 0

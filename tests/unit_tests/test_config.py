"""
Unit tests for configuration.
"""

import unittest
from argparse import Namespace
from config import DeployConfig, RolloutPolicy
from errors import ValidationError


def make_args(**overrides):
    values = dict(
        ami_id="ami-12345678",
        launch_template_id="lt-abcdef123",
        asg_name="my-asg",
        region=None,
        project_name=None,
        environment=None,
        wait=False,
        timeout=1800,
        poll_interval=30.0,
        backoff="fixed",
        max_poll_interval=300.0,
        instance_warmup=300,
        min_healthy_percentage=50,
        checkpoint_delay=600,
        checkpoint_percentages=[50, 100],
        launch_template_version=None,
        output_dir=".",
        verbose=False,
    )
    values.update(overrides)
    return Namespace(**values)


class TestRolloutPolicy(unittest.TestCase):
    """Test RolloutPolicy preferences payload."""

    def test_default_preferences(self):
        """Test defaults match the rollout policy used in production."""
        self.assertEqual(
            RolloutPolicy().to_preferences(),
            {
                "InstanceWarmup": 300,
                "MinHealthyPercentage": 50,
                "CheckpointDelay": 600,
                "CheckpointPercentages": [50, 100],
            },
        )


class TestDeployConfig(unittest.TestCase):
    """Test DeployConfig construction and validation."""

    def test_config_defaults(self):
        """Test default configuration values."""
        config = DeployConfig(
            ami_id="ami-1", launch_template_id="lt-1", asg_name="asg"
        )
        self.assertEqual(config.region, "ap-south-1")
        self.assertEqual(config.project_name, "packer-imagebuilder-poc")
        self.assertEqual(config.environment, "dev")
        self.assertFalse(config.wait)
        self.assertEqual(config.timeout, 1800)
        self.assertEqual(config.poll_interval, 30.0)
        self.assertEqual(config.backoff, "fixed")
        self.assertIsNone(config.resume_version)

    def test_config_from_args(self):
        """Test creating config from command-line arguments."""
        args = make_args(
            region="eu-west-1",
            project_name="proj",
            environment="prod",
            wait=True,
            timeout=3600,
            checkpoint_percentages=[25, 75, 100],
            launch_template_version=7,
        )
        config = DeployConfig.from_args(args, environ={})

        self.assertEqual(config.ami_id, "ami-12345678")
        self.assertEqual(config.launch_template_id, "lt-abcdef123")
        self.assertEqual(config.asg_name, "my-asg")
        self.assertEqual(config.region, "eu-west-1")
        self.assertEqual(config.project_name, "proj")
        self.assertEqual(config.environment, "prod")
        self.assertTrue(config.wait)
        self.assertEqual(config.timeout, 3600)
        self.assertEqual(config.policy.checkpoint_percentages, [25, 75, 100])
        self.assertEqual(config.resume_version, 7)

    def test_environment_fallbacks(self):
        """Test launch template, ASG, region, project and env fall back to env vars."""
        args = make_args(launch_template_id=None, asg_name=None)
        environ = {
            "LAUNCH_TEMPLATE_ID": "lt-from-env",
            "ASG_NAME": "asg-from-env",
            "AWS_DEFAULT_REGION": "us-east-2",
            "PROJECT_NAME": "env-project",
            "ENVIRONMENT": "staging",
        }
        config = DeployConfig.from_args(args, environ=environ)

        self.assertEqual(config.launch_template_id, "lt-from-env")
        self.assertEqual(config.asg_name, "asg-from-env")
        self.assertEqual(config.region, "us-east-2")
        self.assertEqual(config.project_name, "env-project")
        self.assertEqual(config.environment, "staging")

    def test_flags_override_environment(self):
        """Test command-line values win over environment variables."""
        args = make_args(region="eu-central-1")
        environ = {
            "LAUNCH_TEMPLATE_ID": "lt-from-env",
            "AWS_DEFAULT_REGION": "us-east-2",
        }
        config = DeployConfig.from_args(args, environ=environ)

        self.assertEqual(config.launch_template_id, "lt-abcdef123")
        self.assertEqual(config.region, "eu-central-1")

    def test_validate_accepts_valid_config(self):
        DeployConfig.from_args(make_args(), environ={}).validate()

    def test_validate_requires_ami(self):
        config = DeployConfig.from_args(make_args(ami_id=None), environ={})
        with self.assertRaises(ValidationError) as ctx:
            config.validate()
        self.assertIn("AMI ID is required", str(ctx.exception))

    def test_validate_requires_launch_template(self):
        config = DeployConfig.from_args(make_args(launch_template_id=None), environ={})
        with self.assertRaises(ValidationError) as ctx:
            config.validate()
        self.assertIn("LAUNCH_TEMPLATE_ID", str(ctx.exception))

    def test_validate_requires_asg_name(self):
        config = DeployConfig.from_args(make_args(asg_name=None), environ={})
        with self.assertRaises(ValidationError) as ctx:
            config.validate()
        self.assertIn("ASG_NAME", str(ctx.exception))

    def test_validate_rejects_bad_numbers(self):
        """Test out-of-range tunables are rejected."""
        bad = [
            make_args(timeout=0),
            make_args(poll_interval=0),
            make_args(min_healthy_percentage=101),
            make_args(checkpoint_percentages=[100, 50]),
            make_args(checkpoint_percentages=[0, 100]),
            make_args(launch_template_version=0),
        ]
        for args in bad:
            config = DeployConfig.from_args(args, environ={})
            with self.assertRaises(ValidationError):
                config.validate()


if __name__ == "__main__":
    unittest.main()

"""
Unit tests for deployment records.
"""

import os
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from audit import read_record, record_filename, utc_timestamp, write_record
from models import DeploymentRecord


def make_record(**overrides):
    values = dict(
        refresh_id="08b91cf7-8fa6-48af-b6a6-d227f40f1b9b",
        ami_id="ami-12345678",
        new_version=5,
        launch_template_id="lt-abcdef123",
        asg_name="my-asg",
        deployment_date="2024-05-01T12:00:00Z",
        project_name="packer-imagebuilder-poc",
        environment="dev",
        region="ap-south-1",
    )
    values.update(overrides)
    return DeploymentRecord(**values)


class TestTimestamps(unittest.TestCase):
    def test_utc_timestamp_format(self):
        now = datetime(2024, 5, 1, 17, 30, 5, tzinfo=timezone(timedelta(hours=5, minutes=30)))
        self.assertEqual(utc_timestamp(now), "2024-05-01T12:00:05Z")

    def test_record_filename(self):
        self.assertEqual(
            record_filename(datetime(2024, 5, 1, 12, 0, 5)),
            "deployment_20240501_120005.env",
        )


class TestWriteRecord(unittest.TestCase):
    """Test writing and reading deployment records."""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.now = datetime(2024, 5, 1, 12, 0, 5)

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_writes_key_value_lines_in_order(self):
        path = write_record(make_record(), self.tmpdir.name, now=self.now)

        self.assertEqual(os.path.basename(path), "deployment_20240501_120005.env")
        with open(path) as f:
            lines = f.read().splitlines()
        self.assertEqual(
            lines,
            [
                "REFRESH_ID=08b91cf7-8fa6-48af-b6a6-d227f40f1b9b",
                "AMI_ID=ami-12345678",
                "NEW_VERSION=5",
                "LAUNCH_TEMPLATE_ID=lt-abcdef123",
                "ASG_NAME=my-asg",
                "DEPLOYMENT_DATE=2024-05-01T12:00:00Z",
                "PROJECT_NAME=packer-imagebuilder-poc",
                "ENVIRONMENT=dev",
                "AWS_REGION=ap-south-1",
            ],
        )

    def test_read_record_round_trip(self):
        record = make_record()
        path = write_record(record, self.tmpdir.name, now=self.now)
        self.assertEqual(read_record(path), record)

    def test_is_write_once(self):
        """Test an existing record is never overwritten."""
        write_record(make_record(), self.tmpdir.name, now=self.now)
        with self.assertRaises(FileExistsError):
            write_record(make_record(refresh_id="other"), self.tmpdir.name, now=self.now)

    def test_creates_output_dir(self):
        target = os.path.join(self.tmpdir.name, "records", "dev")
        path = write_record(make_record(), target, now=self.now)
        self.assertTrue(os.path.exists(path))

    def test_read_record_missing_field(self):
        path = os.path.join(self.tmpdir.name, "broken.env")
        with open(path, "w") as f:
            f.write("REFRESH_ID=abc\nAMI_ID=ami-1\n")
        with self.assertRaises(ValueError):
            read_record(path)


if __name__ == "__main__":
    unittest.main()

"""
Write-once deployment records.
"""

import logging
import os
from dataclasses import fields
from datetime import datetime, timezone
from typing import Dict, Optional

from models import DeploymentRecord

logger = logging.getLogger(__name__)

# Record field -> key written to the file, in file order.
RECORD_KEYS = {
    "refresh_id": "REFRESH_ID",
    "ami_id": "AMI_ID",
    "new_version": "NEW_VERSION",
    "launch_template_id": "LAUNCH_TEMPLATE_ID",
    "asg_name": "ASG_NAME",
    "deployment_date": "DEPLOYMENT_DATE",
    "project_name": "PROJECT_NAME",
    "environment": "ENVIRONMENT",
    "region": "AWS_REGION",
}


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """Format a UTC timestamp as YYYY-mm-ddTHH:MM:SSZ."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def record_filename(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"deployment_{now.strftime('%Y%m%d_%H%M%S')}.env"


def write_record(
    record: DeploymentRecord, output_dir: str = ".", now: Optional[datetime] = None
) -> str:
    """
    Write a deployment record as KEY=value lines.

    Args:
        record: Record to write
        output_dir: Directory for the file (created if missing)
        now: Time used for the file name

    Returns:
        Path of the written file

    Raises:
        FileExistsError: If a record with the same name already exists
    """
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, record_filename(now))

    lines = [f"{key}={getattr(record, attr)}" for attr, key in RECORD_KEYS.items()]
    with open(path, "x") as f:
        f.write("\n".join(lines) + "\n")

    logger.info(f"Deployment information saved to: {path}")
    return path


def read_record(path: str) -> DeploymentRecord:
    """Parse a deployment record file written by write_record."""
    values: Dict[str, str] = {}
    with open(path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            values[key] = value

    by_key = {key: attr for attr, key in RECORD_KEYS.items()}
    kwargs = {by_key[k]: v for k, v in values.items() if k in by_key}
    missing = [f.name for f in fields(DeploymentRecord) if f.name not in kwargs]
    if missing:
        raise ValueError(f"Deployment record {path} is missing: {', '.join(missing)}")
    kwargs["new_version"] = int(kwargs["new_version"])
    return DeploymentRecord(**kwargs)

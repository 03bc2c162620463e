"""
Data models for the fleet image rollout tool.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class RefreshStatus(Enum):
    """Instance refresh status as reported by Auto Scaling."""

    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    SUCCESSFUL = "Successful"
    FAILED = "Failed"
    CANCELLED = "Cancelled"
    UNKNOWN = "Unknown"

    @classmethod
    def from_platform(cls, value: Optional[str]) -> "RefreshStatus":
        """Map a raw status string; anything unrecognised becomes UNKNOWN."""
        for status in cls:
            if status is not cls.UNKNOWN and status.value == value:
                return status
        return cls.UNKNOWN

    @property
    def is_terminal(self) -> bool:
        return self in (
            RefreshStatus.SUCCESSFUL,
            RefreshStatus.FAILED,
            RefreshStatus.CANCELLED,
        )


@dataclass
class MachineImage:
    """An AMI and its availability state."""

    image_id: str
    state: Optional[str]  # None when the image could not be found

    @property
    def is_available(self) -> bool:
        return self.state == "available"


@dataclass
class LaunchTemplateVersion:
    """An immutable launch template version."""

    template_id: str
    version_number: int
    image_id: Optional[str] = None
    template_name: Optional[str] = None


@dataclass
class FleetUpdate:
    """Outcome of pointing an Auto Scaling group at a template version."""

    asg_name: str
    template_id: str
    version: int
    changed: bool  # False when the group already used this version
    verified: bool
    actual_version: Optional[str] = None


@dataclass
class RolloutProgress:
    """One observation of an instance refresh."""

    refresh_id: str
    status: RefreshStatus
    raw_status: Optional[str] = None
    percentage_complete: Optional[int] = None
    status_reason: Optional[str] = None


@dataclass
class DeploymentRecord:
    """Write-once audit record of a deployment."""

    refresh_id: str
    ami_id: str
    new_version: int
    launch_template_id: str
    asg_name: str
    deployment_date: str  # ISO-8601 UTC, e.g. 2024-05-01T12:00:00Z
    project_name: str
    environment: str
    region: str


@dataclass
class DeploymentResult:
    """Everything a finished (or triggered) deployment produced."""

    record: DeploymentRecord
    fleet_update: FleetUpdate
    record_path: str
    final_progress: Optional[RolloutProgress] = None
    start_time: Optional[float] = None
    end_time: Optional[float] = None

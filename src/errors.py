"""
Error types for the fleet image rollout tool.
"""

from typing import List, Optional


class DeployError(Exception):
    """Base class for errors that abort a deployment."""

    def __init__(self, message: str, hints: Optional[List[str]] = None):
        super().__init__(message)
        self.hints = list(hints or [])


class ValidationError(DeployError):
    """A required input is missing or malformed."""


class DependencyMissingError(DeployError):
    """Required tooling or credentials are not available."""


class AccessError(DeployError):
    """A resource is unreachable, missing, or not authorized."""


class ImageNotReadyError(DeployError):
    """The machine image is not in the 'available' state."""

    def __init__(
        self, image_id: str, state: Optional[str], hints: Optional[List[str]] = None
    ):
        super().__init__(
            f"AMI {image_id} is not available (state: {state})", hints=hints
        )
        self.image_id = image_id
        self.state = state


class CreationError(DeployError):
    """Creating a launch template version or instance refresh failed."""


class RecordWriteError(DeployError):
    """The deployment record could not be written after the refresh started."""

    def __init__(self, refresh_id: str, path: str, reason: Exception):
        super().__init__(
            f"Instance refresh {refresh_id} is running but the deployment record "
            f"could not be written to {path}: {reason}",
            hints=[
                f"Note the refresh id {refresh_id}; the rollout continues in AWS",
                "Check that the output directory is writable and the file "
                "does not already exist",
            ],
        )
        self.refresh_id = refresh_id
        self.path = path


class RolloutTimeoutError(DeployError):
    """The monitor gave up waiting; the refresh itself keeps running."""

    def __init__(self, refresh_id: str, timeout: float, last_status: str):
        super().__init__(
            f"Timeout reached waiting for instance refresh {refresh_id} "
            f"after {timeout:.0f}s (last status: {last_status})",
            hints=[
                "The instance refresh is still running in AWS. Check it with "
                "'aws autoscaling describe-instance-refreshes'."
            ],
        )
        self.refresh_id = refresh_id
        self.timeout = timeout
        self.last_status = last_status


class RolloutFailedError(DeployError):
    """The instance refresh reached Failed or Cancelled."""

    def __init__(self, refresh_id: str, status: str):
        super().__init__(
            f"Instance refresh {refresh_id} failed with status: {status}"
        )
        self.refresh_id = refresh_id
        self.status = status


class VerificationWarning(UserWarning):
    """The fleet reports a different launch template version than requested."""

"""
Logging utilities for the fleet image rollout tool.

The console gets short operator-facing lines; the log file keeps the logger
name as well so a rollout can be traced back to the step that logged it.
"""

import logging
import sys
from typing import Iterable, Optional

CONSOLE_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# AWS SDK loggers that flood DEBUG output with wire traffic
NOISY_LOGGERS = ("boto3", "botocore", "urllib3", "s3transfer")


def setup_logging(
    verbose: bool = False,
    log_file: Optional[str] = "fleet-deploy.log",
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> logging.Logger:
    """
    Set up logging for a rollout run.

    Args:
        verbose: Enable verbose (DEBUG) logging for the tool's own modules
        log_file: Path to log file; None or "" logs to the console only
        quiet: Logger names held at WARNING even when verbose

    Returns:
        Logger instance
    """
    level = logging.DEBUG if verbose else logging.INFO

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    handlers = [console]

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        handlers.append(file_handler)

    # force=True so repeated runs in one process do not stack handlers
    logging.basicConfig(level=level, handlers=handlers, force=True)

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logging.getLogger(__name__)

#!/usr/bin/env python3
"""
AMI Rollout Tool for EC2 Auto Scaling Groups

- Creates a launch template version with the new AMI
- Points the Auto Scaling group at it
- Starts a rolling instance refresh (optionally waiting with --wait)

This script supports running directly from a source checkout that uses a
src/ layout: it adds the local `src/` directory to sys.path before importing.
For production use, prefer installing the project and using the
`fleet-rollout` console script.
"""

import os
import sys

# Add src/ to path to import modules directly
REPO_ROOT = os.path.dirname(os.path.abspath(__file__))
SRC_PATH = os.path.join(REPO_ROOT, "src")
if SRC_PATH not in sys.path:
    sys.path.insert(0, SRC_PATH)

from cli import main

if __name__ == "__main__":
    sys.exit(main())

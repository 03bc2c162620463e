"""
Pytest configuration for the rollout tool tests.

Puts src/ on sys.path so tests import the top-level modules (cli, deployer,
monitor, ...) the same way main.py does from a source checkout.
"""

import os
import sys

ROOT_DIR = os.path.dirname(os.path.abspath(__file__))
SRC_DIR = os.path.join(ROOT_DIR, "src")

if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

"""Launcher for Borg Time Machine without installing the package.

Usage:
    python run.py generate-config
    python run.py --config /etc/borg/borg-config.yaml backup
    python run.py --config /etc/borg/borg-config.yaml --log-level DEBUG list
"""

import sys

from borg_timemachine.cli import main

if __name__ == "__main__":
    sys.exit(main())

"""Command-line front end.

Usage:
    borg-timemachine generate-config [OUTPUT]
    borg-timemachine --config /etc/borg/borg-config.yaml init
    borg-timemachine --config /etc/borg/borg-config.yaml backup
    borg-timemachine --config /etc/borg/borg-config.yaml mount /mnt/borg-browse

Exit status is 0 on success and 1 on any reported error.
"""

import argparse
import logging
import os
import sys

from borg_timemachine.archiver.client import Archiver
from borg_timemachine.archiver.process_runner import ProcessRunner
from borg_timemachine.config.settings import (
    DEFAULT_OUTPUT_NAME,
    load_or_default,
    load_passphrase,
    write_example_config,
)
from borg_timemachine.cycle.orchestrator import CycleOrchestrator
from borg_timemachine.cycle.repository import RepositoryOperations
from borg_timemachine.errors import BorgTimeMachineError, ConfigError

logger = logging.getLogger("borg_timemachine")

PROG = "borg-timemachine"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Time Machine-style backups using Borg",
    )
    parser.add_argument(
        "-c", "--config",
        default=None,
        metavar="FILE",
        help="Path to configuration file (default: bundled example config)",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "WARNING"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Diagnostic logging level",
    )

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("init", help="Initialize a new Borg repository")
    sub.add_parser("backup", help="Run a backup cycle (create, prune, compact, check)")
    sub.add_parser("list", help="List all archives in the repository")
    mount = sub.add_parser("mount", help="Mount the repository for browsing")
    mount.add_argument("mount_point", metavar="MOUNT_POINT", help="Mount point directory")
    gen = sub.add_parser("generate-config", help="Generate an example configuration file")
    gen.add_argument(
        "output",
        nargs="?",
        default=DEFAULT_OUTPUT_NAME,
        metavar="OUTPUT",
        help=f"Output path for the example config (default: {DEFAULT_OUTPUT_NAME})",
    )
    sub.add_parser("check", help="Check repository integrity")
    sub.add_parser("info", help="Show repository info")
    return parser


def run_command(args, runner: ProcessRunner | None = None) -> None:
    """Execute the parsed command. Raises BorgTimeMachineError on failure."""
    if args.command == "generate-config":
        output = write_example_config(args.output)
        print(f"Example configuration written to: {output}")
        return

    try:
        config = load_or_default(args.config)
    except ConfigError as exc:
        print(f"Error loading configuration: {exc}", file=sys.stderr)
        print("\nGenerate an example config with:", file=sys.stderr)
        print(f"  {PROG} generate-config", file=sys.stderr)
        raise

    passphrase_file = config.security.passphrase_file
    try:
        passphrase = load_passphrase(passphrase_file)
    except ConfigError:
        print("\nCreate the passphrase file with:", file=sys.stderr)
        print(f"  echo 'your-strong-passphrase' > {passphrase_file}", file=sys.stderr)
        print(f"  chmod 600 {passphrase_file}", file=sys.stderr)
        raise

    runner = runner or ProcessRunner()
    logger.info("Running %s against %s", args.command, config.repository.path)

    if args.command == "backup":
        CycleOrchestrator(config, runner=runner, passphrase=passphrase).run()
        return

    archiver = Archiver(runner, config.repository.path, passphrase)
    repo = RepositoryOperations(
        archiver, config.repository.encryption,
        check_day=config.maintenance.check_day,
    )
    if args.command == "init":
        repo.init()
    elif args.command == "list":
        repo.list_archives()
    elif args.command == "mount":
        repo.mount(args.mount_point)
    elif args.command == "check":
        repo.check()
    elif args.command == "info":
        repo.info()


def main(argv=None, runner: ProcessRunner | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        run_command(args, runner=runner)
    except BorgTimeMachineError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

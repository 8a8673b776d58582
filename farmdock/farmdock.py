#!/usr/bin/env python3
"""farmdock: farmOS install tools CLI entrypoint."""

import argparse

from farmdock.commands.install import register_install_command
from farmdock.commands.teardown import register_teardown_command
from farmdock.commands.validate import register_validate_command
from farmdock.commands.wait import register_wait_command
from farmdock.logging_setup import setup_cli_logging


def main():
    parser = argparse.ArgumentParser(description="farmOS install tools")
    parser.add_argument("--verbose", action="store_true", help="Show detailed output")
    subparsers = parser.add_subparsers(dest="command", required=True)

    register_install_command(subparsers)
    register_validate_command(subparsers)
    register_wait_command(subparsers)
    register_teardown_command(subparsers)

    args = parser.parse_args()
    setup_cli_logging(verbose=args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()

"""Main module for the selection creator CLI."""

import sys
import argparse

from . import __version__
from .create_selection import add_run_arguments, run


def main() -> None:
    """
    Entry point for the unified command-line interface (CLI) of the selection creator.

    This function sets up an `ArgumentParser` with the "run" and "version"
    commands. "run" resolves the configuration (flags, environment, .env,
    then interactive prompts), runs the pipeline once and exits with the
    run's exit code.
    """
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="selection-creator",
        description="Selection Creator - publish event photos to S3 and register a DynamoDB selection",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Resolve everything from the environment / .env, prompting for the rest
  selection-creator run

  # Fully non-interactive, bounded to 4 simultaneous uploads
  selection-creator run --input-dir ./images/compressed --bucket my-photos \\
                        --username alice --event-id ev1 --event-title "Wedding" \\
                        --max-photos 50 --region eu-west-1 --concurrency 4 --no-input

  # Show version
  selection-creator version
        """,
    )

    subparsers: argparse._SubParsersAction = parser.add_subparsers(
        dest="command", help="Available commands"
    )

    run_parser: argparse.ArgumentParser = subparsers.add_parser(
        "run", help="Upload images and create the selection records"
    )
    add_run_arguments(run_parser)

    subparsers.add_parser("version", help="Show version information")

    args: argparse.Namespace = parser.parse_args()

    if args.command == "run":
        sys.exit(run(args))

    elif args.command == "version":
        print("Selection Creator CLI")
        print(f"Version {__version__}")
        print("S3 upload and DynamoDB selection registration for event photos")
        sys.exit(0)

    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()

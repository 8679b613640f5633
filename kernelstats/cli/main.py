# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI entrypoint for kernelstats.

This is the single root command; every operation is a subcommand:

    kernelstats catalog [--all]
    kernelstats fetch --verify --all -p 4 --kernel-git ~/src/linux
    kernelstats analyze --config kernelstats.yaml

The global options (--config, --log-level, --dry-run) are accepted before or
after the subcommand. The subcommand copies default to SUPPRESS, so a value
given before the subcommand name is not reset by the subparser.
"""

import argparse
import sys

from kernelstats.cli.commands import handle_analyze, handle_catalog, handle_fetch
from kernelstats.cli.exit_codes import USER_ERROR
from kernelstats.logging.logger import close_package_log_files


def _build_global_parser(suppress_defaults: bool = False) -> argparse.ArgumentParser:
    """
    Build the parent parser with global options.

    add_help=False so the help text doesn't collide between the parent and
    the subcommand parsers. With suppress_defaults, unset options leave no
    attribute behind and the root parser's value stands.
    """
    unset = argparse.SUPPRESS if suppress_defaults else None

    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "--config",
        type=str,
        default=unset,
        help="Path to YAML configuration file.",
    )
    parent.add_argument(
        "--log-level",
        type=str,
        default=unset,
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging verbosity level (default: from config, else INFO).",
    )
    parent.add_argument(
        "--dry-run",
        action="store_true",
        default=argparse.SUPPRESS if suppress_defaults else False,
        dest="dry_run",
        help="Show what would be acquired without touching the network or disk.",
    )
    return parent


def _add_selection_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--all",
        action="store_true",
        default=None,
        dest="all_releases",
        help="Use every catalog release, not just the important ones.",
    )
    parser.add_argument(
        "--mirror",
        type=str,
        default=None,
        dest="mirror_url",
        metavar="URL",
        help="Base URL of the kernel archive mirror.",
    )


def _add_acquisition_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--verify",
        action="store_true",
        default=None,
        help="Verify archives that are already in the cache.",
    )
    parser.add_argument(
        "--cache",
        type=str,
        default=None,
        metavar="DIR",
        help="Path to the cache directory.",
    )
    parser.add_argument(
        "--work",
        type=str,
        default=None,
        metavar="DIR",
        help="Path to the work directory.",
    )
    parser.add_argument(
        "--stats",
        type=str,
        default=None,
        metavar="DIR",
        help="Directory to store statistics in.",
    )
    parser.add_argument(
        "-p",
        "--parallelism",
        type=int,
        default=None,
        metavar="COUNT",
        help="How many downloads to perform in parallel.",
    )
    parser.add_argument(
        "--kernel-git",
        type=str,
        default=None,
        dest="kernel_git",
        metavar="DIR",
        help="Path to a kernel git clone whose tags are analyzed too.",
    )


def _register_subcommands(
    subparsers: argparse._SubParsersAction,  # type: ignore[type-arg]
    parent: argparse.ArgumentParser,
) -> None:
    """Register all subcommands with their handler functions."""
    commands = [
        ("catalog", "List catalog releases and their download URLs.", handle_catalog),
        ("fetch", "Download and verify release archives, list git tags.", handle_fetch),
        ("analyze", "Acquire sources and write per-release statistics.", handle_analyze),
    ]

    for name, help_text, handler in commands:
        parser = subparsers.add_parser(name, parents=[parent], help=help_text)
        parser.set_defaults(func=handler)
        _add_selection_options(parser)
        if name != "catalog":
            _add_acquisition_options(parser)


def build_parser() -> argparse.ArgumentParser:
    root_parser = argparse.ArgumentParser(
        prog="kernelstats",
        description="kernelstats: code statistics across Linux kernel releases.",
        parents=[_build_global_parser()],
    )
    subparsers = root_parser.add_subparsers(dest="command")
    _register_subcommands(subparsers, _build_global_parser(suppress_defaults=True))
    return root_parser


def main() -> None:
    """
    Main CLI entrypoint. This is what pyproject.toml's [project.scripts] points to.

    If no subcommand is given, we show help and exit with USER_ERROR.
    """
    root_parser = build_parser()
    args = root_parser.parse_args()

    if not hasattr(args, "func") or args.func is None:
        root_parser.print_help()
        sys.exit(USER_ERROR)

    try:
        exit_code = args.func(args)
    finally:
        close_package_log_files()
    sys.exit(exit_code)


if __name__ == "__main__":
    main()

# Copyright 2026 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# SPDX-License-Identifier: Apache-2.0

"""Command-line interface for monocrate.

Subcommands::

    monocrate prepare packages/app [packages/cli ...] [-o DIR] [-b minor]
    monocrate publish packages/app [--dry-run] [--npmrc FILE] [-b 1.2.3] [-f version.txt]
    monocrate explain MC-CLOSURE-CYCLE

``prepare`` assembles without publishing; ``publish`` assembles and then
publishes every package. Both print the resolved version on stdout (or
write it to ``--output-file``) so scripts can tag the release.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from rich_argparse import RichHelpFormatter

from monocrate import __version__
from monocrate.config import CONFLICT_POLICIES
from monocrate.errors import MonocrateError, explain, render_error
from monocrate.logging import configure_logging, get_logger
from monocrate.orchestrator import AssemblyOptions, run_assembly

logger = get_logger('monocrate.cli')


def _options_from_args(args: argparse.Namespace, *, publish: bool) -> AssemblyOptions:
    return AssemblyOptions(
        package_dirs=[Path(p) for p in args.packages],
        cwd=Path(args.cwd) if args.cwd else Path.cwd(),
        repo_root=Path(args.root) if args.root else None,
        output_dir=Path(args.output) if args.output else None,
        bump=args.bump,
        publish=publish,
        dry_run=getattr(args, 'dry_run', False),
        output_file=Path(args.output_file) if args.output_file else None,
        mirror_to=Path(args.mirror_to) if args.mirror_to else None,
        conflict_policy=args.conflict_policy,
        npmrc=Path(args.npmrc) if getattr(args, 'npmrc', None) else None,
    )


async def _cmd_prepare(args: argparse.Namespace) -> int:
    """Handle the ``prepare`` subcommand."""
    result = await run_assembly(_options_from_args(args, publish=False))
    for summary in result.summaries:
        logger.info('prepared', package=summary.publish_as, output_dir=str(summary.output_dir))
    return 0


async def _cmd_publish(args: argparse.Namespace) -> int:
    """Handle the ``publish`` subcommand."""
    result = await run_assembly(_options_from_args(args, publish=True))
    for summary in result.summaries:
        logger.info('published', package=summary.publish_as, version=summary.version, dry_run=args.dry_run)
    return 0


def _cmd_explain(args: argparse.Namespace) -> int:
    """Handle the ``explain`` subcommand."""
    result = explain(args.code)
    if result is None:
        print(f'Unknown error code: {args.code}')  # noqa: T201 - CLI output
        return 1
    print(result)  # noqa: T201 - CLI output
    return 0


def _add_assembly_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        'packages',
        nargs='+',
        metavar='PACKAGE_DIR',
        help='Directory of a package to assemble. Repeat for several packages.',
    )
    parser.add_argument(
        '--bump',
        '-b',
        default=None,
        help='patch, minor, major or an explicit version such as 1.2.3 (default: minor).',
    )
    parser.add_argument(
        '--output',
        '-o',
        default=None,
        help='Output directory (default: a new temporary directory).',
    )
    parser.add_argument(
        '--root',
        '-r',
        default=None,
        help='Monorepo root (default: auto-detected from the first package).',
    )
    parser.add_argument(
        '--cwd',
        default=None,
        help='Base directory for relative paths (default: the current directory).',
    )
    parser.add_argument(
        '--output-file',
        '-f',
        default=None,
        help='Write the resolved version to this file instead of stdout.',
    )
    parser.add_argument(
        '--mirror-to',
        '-m',
        default=None,
        help='Mirror committed sources of every in-repo package needed to build the subjects.',
    )
    parser.add_argument(
        '--conflict-policy',
        choices=sorted(CONFLICT_POLICIES),
        default=None,
        help='How to reconcile differing third-party version ranges (default: from monocrate.toml, else warn).',
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser.

    Returns:
        Configured :class:`argparse.ArgumentParser`.
    """
    RichHelpFormatter.styles['argparse.groups'] = 'bold yellow'
    parser = argparse.ArgumentParser(
        prog='monocrate',
        description='Assemble monorepo packages into self-contained, publishable packages.',
        formatter_class=RichHelpFormatter,
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}',
    )
    parser.add_argument(
        '--verbose',
        '-v',
        action='store_true',
        help='Log debug output.',
    )
    parser.add_argument(
        '--quiet',
        '-q',
        action='store_true',
        help='Log warnings and errors only.',
    )
    parser.add_argument(
        '--json-log',
        action='store_true',
        help='Emit logs as JSON lines.',
    )

    subparsers = parser.add_subparsers(dest='command')

    prepare_parser = subparsers.add_parser(
        'prepare',
        help='Assemble packages without publishing them.',
        formatter_class=RichHelpFormatter,
    )
    _add_assembly_arguments(prepare_parser)

    publish_parser = subparsers.add_parser(
        'publish',
        help='Assemble packages, then publish each of them.',
        formatter_class=RichHelpFormatter,
    )
    _add_assembly_arguments(publish_parser)
    publish_parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Preview mode: log the publish command without running it.',
    )
    publish_parser.add_argument(
        '--npmrc',
        default=None,
        help='npm config file with publish credentials (default: .npmrc at the monorepo root).',
    )

    explain_parser = subparsers.add_parser(
        'explain',
        help='Explain an error code.',
    )
    explain_parser.add_argument(
        'code',
        help='Error code, e.g. MC-CLOSURE-CYCLE.',
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=args.verbose, quiet=args.quiet, json_log=args.json_log)

    try:
        command = args.command
        if command == 'prepare':
            return asyncio.run(_cmd_prepare(args))
        if command == 'publish':
            return asyncio.run(_cmd_publish(args))
        if command == 'explain':
            return _cmd_explain(args)

        parser.print_help()  # noqa: T201 - CLI output
        print(  # noqa: T201 - CLI output
            f'\n{parser.prog}: error: please provide a command',
            file=sys.stderr,
        )
        return 2

    except MonocrateError as exc:
        render_error(exc)
        return 1
    except KeyboardInterrupt:
        logger.info('interrupted')
        return 130


def _main() -> None:
    """Wrapper for pyproject.toml [project.scripts] entry point."""
    sys.exit(main())


__all__ = [
    'build_parser',
    'main',
]

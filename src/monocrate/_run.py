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

"""Subprocess abstraction for monocrate.

External tool calls (``npm``, ``git``) go through :func:`run_command`,
which logs every invocation, supports dry-run, and returns a
:class:`CommandResult`. Async callers dispatch it with
:func:`asyncio.to_thread`.
"""

from __future__ import annotations

import os
import subprocess  # noqa: S404 - subprocess is the core purpose of this module
import time
from dataclasses import dataclass
from pathlib import Path

from monocrate.logging import get_logger

log = get_logger('monocrate.run')

DEFAULT_TIMEOUT_SECONDS = 300


@dataclass(frozen=True)
class CommandResult:
    """Result of a subprocess invocation.

    Attributes:
        command: The command that was executed.
        return_code: Process exit code (0 = success).
        stdout: Captured standard output.
        stderr: Captured standard error.
        duration: Wall-clock duration in milliseconds.
        dry_run: Whether the command was only logged.
    """

    command: list[str]
    return_code: int
    stdout: str = ''
    stderr: str = ''
    duration: float = 0.0
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        """Whether the command succeeded."""
        return self.return_code == 0

    @property
    def command_str(self) -> str:
        """The command as a single shell-style string."""
        return ' '.join(self.command)


def run_command(
    cmd: list[str],
    *,
    cwd: Path | str | None = None,
    env: dict[str, str] | None = None,
    timeout: int = DEFAULT_TIMEOUT_SECONDS,
    dry_run: bool = False,
) -> CommandResult:
    """Execute a subprocess command with logging and dry-run support.

    Args:
        cmd: Command and arguments as a list of strings.
        cwd: Working directory for the command.
        env: Extra environment variables (merged with the current env).
        timeout: Maximum seconds to wait before killing the process.
        dry_run: If ``True``, log the command but don't execute it.

    Returns:
        A :class:`CommandResult` with the command output.

    Raises:
        FileNotFoundError: If the executable does not exist.
        subprocess.TimeoutExpired: If the command exceeds ``timeout``.
    """
    cmd_str = ' '.join(cmd)
    log.debug('run_command', cmd=cmd_str, cwd=str(cwd or '.'), dry_run=dry_run)

    if dry_run:
        log.info('dry_run', cmd=cmd_str)
        return CommandResult(command=cmd, return_code=0, dry_run=True)

    full_env: dict[str, str] | None = None
    if env:
        full_env = {**os.environ, **env}

    start = time.monotonic()
    try:
        result = subprocess.run(  # noqa: S603 - trusted inputs
            cmd,
            cwd=cwd,
            env=full_env,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        duration = (time.monotonic() - start) * 1000
        log.error('command_timeout', cmd=cmd_str, timeout=timeout, duration=duration)
        raise

    duration = (time.monotonic() - start) * 1000
    if result.returncode != 0:
        log.warning(
            'command_failed',
            cmd=cmd_str,
            return_code=result.returncode,
            stderr=result.stderr[:500],
            duration=duration,
        )
    else:
        log.debug('command_ok', cmd=cmd_str, duration=duration)

    return CommandResult(
        command=cmd,
        return_code=result.returncode,
        stdout=result.stdout,
        stderr=result.stderr,
        duration=duration,
    )


TimeoutExpired = subprocess.TimeoutExpired

__all__ = [
    'DEFAULT_TIMEOUT_SECONDS',
    'CommandResult',
    'TimeoutExpired',
    'run_command',
]

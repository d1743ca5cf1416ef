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

"""Registry client: the three registry operations monocrate needs.

The :class:`RegistryClient` protocol is what the assembly engine talks
to. :class:`NpmRegistryClient` implements it against npm:

- ``list_publishable_files``: ``npm pack --dry-run --json``, so the file
  set is exactly what npm itself would pack (``files``, ``.npmignore``,
  the implicit ``package.json``/``README``/``LICENSE``).
- ``current_published_version``: ``GET /{package}`` on the registry,
  reading ``dist-tags.latest``. A 404 means "never published".
- ``publish``: ``npm publish`` in the assembled directory.

Scoped names (``@org/pkg``) are URL-encoded as ``@org%2Fpkg``.
"""

from __future__ import annotations

import asyncio
import json
import urllib.parse
from pathlib import Path
from typing import Protocol, runtime_checkable

import httpx

from monocrate._run import CommandResult, TimeoutExpired, run_command
from monocrate.errors import E, RegistryError
from monocrate.logging import get_logger
from monocrate.net import DEFAULT_POOL_SIZE, DEFAULT_TIMEOUT, get_with_retry, http_client

log = get_logger('monocrate.registry')

NPMRC_FILENAME = '.npmrc'
DEFAULT_REGISTRY_URL = 'https://registry.npmjs.org'


@runtime_checkable
class RegistryClient(Protocol):
    """Protocol for the registry operations used during assembly."""

    async def list_publishable_files(self, package_dir: Path) -> list[str]:
        """Return the POSIX paths, relative to ``package_dir``, that a publish would include."""
        ...

    async def current_published_version(self, package_name: str) -> str | None:
        """Return the latest published version, or ``None`` if never published."""
        ...

    async def publish(
        self,
        package_dir: Path,
        *,
        npmrc: Path | None = None,
        dry_run: bool = False,
    ) -> None:
        """Publish ``package_dir``; raise :class:`RegistryError` on failure."""
        ...


def _encode_package_name(name: str) -> str:
    """URL-encode a package name for the registry API."""
    if name.startswith('@'):
        return urllib.parse.quote(name, safe='@')
    return name


def _npm_error(result: CommandResult) -> RegistryError:
    """Build a :class:`RegistryError` from a failed npm invocation.

    npm reports ``--json`` failures as ``{"error": {"code", "summary", "detail"}}``.
    """
    status: str | int = result.return_code
    summary = result.stderr.strip() or result.stdout.strip()
    detail = ''
    for stream in (result.stdout, result.stderr):
        try:
            payload = json.loads(stream)
        except ValueError:
            continue
        error = payload.get('error') if isinstance(payload, dict) else None
        if isinstance(error, dict):
            status = str(error.get('code') or status)
            summary = str(error.get('summary') or summary)
            detail = str(error.get('detail') or '')
            break
    return RegistryError(
        f'"{result.command_str}" failed: {summary}',
        status=status,
        detail=detail,
    )


class NpmRegistryClient:
    """:class:`RegistryClient` backed by the npm CLI and registry API.

    Args:
        registry_url: Registry base URL. ``None`` means public npm for
            lookups and npm's own configuration for publishing.
        npm_command: Executable used for ``pack`` and ``publish``.
        include_npmrc: Add a package's ``.npmrc`` to its file list.
        timeout: HTTP timeout in seconds.
        pool_size: HTTP connection pool size.
    """

    def __init__(
        self,
        *,
        registry_url: str | None = None,
        npm_command: str = 'npm',
        include_npmrc: bool = True,
        timeout: float = DEFAULT_TIMEOUT,
        pool_size: int = DEFAULT_POOL_SIZE,
    ) -> None:
        """Initialize with registry settings."""
        self._registry_url = registry_url.rstrip('/') if registry_url else None
        self._npm = npm_command
        self._include_npmrc = include_npmrc
        self._timeout = timeout
        self._pool_size = pool_size

    @property
    def base_url(self) -> str:
        """The registry URL used for version lookups."""
        return self._registry_url or DEFAULT_REGISTRY_URL

    async def _npm_exec(self, args: list[str], cwd: Path, *, dry_run: bool = False) -> CommandResult:
        cmd = [self._npm, *args]
        try:
            return await asyncio.to_thread(run_command, cmd, cwd=cwd, dry_run=dry_run)
        except (OSError, TimeoutExpired) as exc:
            raise RegistryError(f'Failed to run "{" ".join(cmd)}": {exc}', detail=str(exc)) from exc

    async def list_publishable_files(self, package_dir: Path) -> list[str]:
        """List the files ``npm pack`` would include for ``package_dir``."""
        result = await self._npm_exec(['pack', '--dry-run', '--json', '--ignore-scripts'], package_dir)
        if not result.ok:
            raise _npm_error(result)
        try:
            payload = json.loads(result.stdout)
            files = [str(entry['path']) for entry in payload[0]['files']]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise RegistryError(
                f'Unexpected "npm pack" output for {package_dir}',
                detail=result.stdout[:500],
            ) from exc

        if self._include_npmrc and (package_dir / NPMRC_FILENAME).is_file() and NPMRC_FILENAME not in files:
            files.append(NPMRC_FILENAME)

        log.debug('publishable_files', package_dir=str(package_dir), count=len(files))
        return sorted(files)

    async def current_published_version(self, package_name: str) -> str | None:
        """Read ``dist-tags.latest`` for ``package_name``."""
        url = f'{self.base_url}/{_encode_package_name(package_name)}'
        try:
            async with http_client(pool_size=self._pool_size, timeout=self._timeout) as client:
                response = await get_with_retry(client, url)
        except httpx.HTTPError as exc:
            raise RegistryError(f'Registry lookup for "{package_name}" failed: {exc}', detail=url) from exc

        if response.status_code == 404:
            log.debug('package_not_published', package=package_name)
            return None
        if response.status_code != 200:
            raise RegistryError(
                f'Registry lookup for "{package_name}" returned HTTP {response.status_code}',
                status=response.status_code,
                detail=response.text[:500],
            )
        try:
            latest = response.json().get('dist-tags', {}).get('latest')
        except (ValueError, AttributeError) as exc:
            raise RegistryError(
                f'Registry returned malformed metadata for "{package_name}"',
                status=response.status_code,
            ) from exc
        log.debug('published_version', package=package_name, version=latest)
        return str(latest) if latest else None

    async def publish(
        self,
        package_dir: Path,
        *,
        npmrc: Path | None = None,
        dry_run: bool = False,
    ) -> None:
        """Run ``npm publish`` in ``package_dir``."""
        args = ['publish']
        if npmrc is not None:
            args += ['--userconfig', str(npmrc)]
        if self._registry_url:
            args += ['--registry', self._registry_url]
        result = await self._npm_exec(args, package_dir, dry_run=dry_run)
        if not result.ok:
            error = _npm_error(result)
            raise RegistryError(
                error.message,
                status=error.status,
                detail=error.detail,
                code=E.REGISTRY_PUBLISH_FAILED,
            )
        log.info('published', package_dir=str(package_dir), dry_run=result.dry_run)


__all__ = [
    'DEFAULT_REGISTRY_URL',
    'NPMRC_FILENAME',
    'NpmRegistryClient',
    'RegistryClient',
]

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

"""Tests for the npm registry client.

Uses httpx mock transport for registry lookups and a patched
``run_command`` for npm invocations, so neither npm nor the network
is needed.
"""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import httpx
import pytest
from monocrate._run import CommandResult
from monocrate.errors import E, RegistryError
from monocrate.registry import NpmRegistryClient, RegistryClient, _encode_package_name

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _mock_transport(responses: dict[str, tuple[int, str]]) -> Any:  # noqa: ANN401
    def handler(request: httpx.Request) -> httpx.Response:
        """Handler."""
        url = str(request.url)
        for suffix, (status, body) in responses.items():
            if url.endswith(suffix):
                return httpx.Response(status, text=body)
        return httpx.Response(404, text='{"error": "Not found"}')

    return handler


def _make_client_cm(transport: Any) -> Any:  # noqa: ANN401
    @asynccontextmanager
    async def _client_cm(**kw: Any) -> AsyncGenerator[httpx.AsyncClient]:  # noqa: ANN401
        async with httpx.AsyncClient(transport=httpx.MockTransport(transport)) as client:
            yield client

    return _client_cm


class _FakeRun:
    """Stands in for run_command and records every call."""

    def __init__(self, return_code: int = 0, stdout: str = '', stderr: str = '') -> None:
        self.calls: list[tuple[list[str], Path, bool]] = []
        self._return_code = return_code
        self._stdout = stdout
        self._stderr = stderr

    def __call__(self, cmd: list[str], *, cwd: Path, dry_run: bool = False, **kw: Any) -> CommandResult:  # noqa: ANN401
        self.calls.append((cmd, cwd, dry_run))
        return CommandResult(
            command=cmd,
            return_code=self._return_code,
            stdout=self._stdout,
            stderr=self._stderr,
            dry_run=dry_run,
        )


@pytest.fixture()
def npm() -> NpmRegistryClient:
    """Npm."""
    return NpmRegistryClient(registry_url='https://registry.test/', timeout=5.0, pool_size=1)


# ---------------------------------------------------------------------------
# Pure function tests
# ---------------------------------------------------------------------------


class TestEncodePackageName:
    """Tests for Encode Package Name."""

    def test_unscoped(self) -> None:
        """Test unscoped."""
        assert _encode_package_name('lodash') == 'lodash'

    def test_scoped(self) -> None:
        """Test scoped."""
        assert _encode_package_name('@org/lib') == '@org%2Flib'


class TestProtocol:
    """NpmRegistryClient satisfies the RegistryClient protocol."""

    def test_is_registry_client(self, npm: NpmRegistryClient) -> None:
        """Test is registry client."""
        assert isinstance(npm, RegistryClient)

    def test_base_url(self, npm: NpmRegistryClient) -> None:
        """The trailing slash is dropped; public npm is the default."""
        assert npm.base_url == 'https://registry.test'
        assert NpmRegistryClient().base_url == 'https://registry.npmjs.org'


# ---------------------------------------------------------------------------
# Version lookups
# ---------------------------------------------------------------------------


class TestCurrentPublishedVersion:
    """Tests for current_published_version()."""

    @pytest.mark.asyncio()
    async def test_latest(self, npm: NpmRegistryClient, monkeypatch: pytest.MonkeyPatch) -> None:
        """dist-tags.latest is returned."""
        body = json.dumps({'name': 'lib', 'dist-tags': {'latest': '1.2.3', 'next': '2.0.0-rc.1'}})
        transport = _mock_transport({'/lib': (200, body)})
        monkeypatch.setattr('monocrate.registry.http_client', _make_client_cm(transport))
        assert await npm.current_published_version('lib') == '1.2.3'

    @pytest.mark.asyncio()
    async def test_scoped(self, npm: NpmRegistryClient, monkeypatch: pytest.MonkeyPatch) -> None:
        """Scoped names are URL-encoded."""
        body = json.dumps({'dist-tags': {'latest': '0.4.0'}})
        transport = _mock_transport({'/@org%2Flib': (200, body)})
        monkeypatch.setattr('monocrate.registry.http_client', _make_client_cm(transport))
        assert await npm.current_published_version('@org/lib') == '0.4.0'

    @pytest.mark.asyncio()
    async def test_never_published(self, npm: NpmRegistryClient, monkeypatch: pytest.MonkeyPatch) -> None:
        """404 means never published."""
        monkeypatch.setattr('monocrate.registry.http_client', _make_client_cm(_mock_transport({})))
        assert await npm.current_published_version('ghost') is None

    @pytest.mark.asyncio()
    async def test_no_latest_tag(self, npm: NpmRegistryClient, monkeypatch: pytest.MonkeyPatch) -> None:
        """Metadata without a latest tag counts as unpublished."""
        transport = _mock_transport({'/lib': (200, '{"dist-tags": {}}')})
        monkeypatch.setattr('monocrate.registry.http_client', _make_client_cm(transport))
        assert await npm.current_published_version('lib') is None

    @pytest.mark.asyncio()
    async def test_forbidden(self, npm: NpmRegistryClient, monkeypatch: pytest.MonkeyPatch) -> None:
        """Other statuses raise RegistryError with the status."""
        transport = _mock_transport({'/lib': (403, 'forbidden')})
        monkeypatch.setattr('monocrate.registry.http_client', _make_client_cm(transport))
        with pytest.raises(RegistryError) as exc_info:
            await npm.current_published_version('lib')
        assert exc_info.value.status == 403


# ---------------------------------------------------------------------------
# npm pack / publish
# ---------------------------------------------------------------------------


class TestListPublishableFiles:
    """Tests for list_publishable_files()."""

    @pytest.mark.asyncio()
    async def test_pack_output(
        self, npm: NpmRegistryClient, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Paths come from npm pack --dry-run --json, plus .npmrc."""
        (tmp_path / '.npmrc').write_text('registry=https://registry.test/\n', encoding='utf-8')
        payload = [{'files': [{'path': 'package.json'}, {'path': 'dist/index.js'}]}]
        fake = _FakeRun(stdout=json.dumps(payload))
        monkeypatch.setattr('monocrate.registry.run_command', fake)

        files = await npm.list_publishable_files(tmp_path)
        assert files == ['.npmrc', 'dist/index.js', 'package.json']
        cmd, cwd, _ = fake.calls[0]
        assert cmd == ['npm', 'pack', '--dry-run', '--json', '--ignore-scripts']
        assert cwd == tmp_path

    @pytest.mark.asyncio()
    async def test_npmrc_opt_out(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """.npmrc is not added when disabled."""
        (tmp_path / '.npmrc').write_text('', encoding='utf-8')
        monkeypatch.setattr('monocrate.registry.run_command', _FakeRun(stdout='[{"files": []}]'))
        assert await NpmRegistryClient(include_npmrc=False).list_publishable_files(tmp_path) == []

    @pytest.mark.asyncio()
    async def test_pack_failure(self, npm: NpmRegistryClient, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """npm's JSON error is surfaced."""
        error = json.dumps({'error': {'code': 'EJSONPARSE', 'summary': 'Invalid package.json', 'detail': 'line 3'}})
        monkeypatch.setattr('monocrate.registry.run_command', _FakeRun(return_code=1, stdout=error))
        with pytest.raises(RegistryError) as exc_info:
            await npm.list_publishable_files(tmp_path)
        assert exc_info.value.status == 'EJSONPARSE'
        assert 'Invalid package.json' in exc_info.value.message
        assert exc_info.value.detail == 'line 3'

    @pytest.mark.asyncio()
    async def test_garbled_output(
        self, npm: NpmRegistryClient, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Unparseable pack output raises."""
        monkeypatch.setattr('monocrate.registry.run_command', _FakeRun(stdout='not json'))
        with pytest.raises(RegistryError):
            await npm.list_publishable_files(tmp_path)


class TestPublish:
    """Tests for publish()."""

    @pytest.mark.asyncio()
    async def test_publish_command(
        self, npm: NpmRegistryClient, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """The userconfig and registry are passed to npm publish."""
        fake = _FakeRun()
        monkeypatch.setattr('monocrate.registry.run_command', fake)
        npmrc = tmp_path / '.npmrc'
        await npm.publish(tmp_path, npmrc=npmrc, dry_run=True)
        cmd, cwd, dry_run = fake.calls[0]
        assert cmd == ['npm', 'publish', '--userconfig', str(npmrc), '--registry', 'https://registry.test']
        assert cwd == tmp_path
        assert dry_run is True

    @pytest.mark.asyncio()
    async def test_publish_failure(
        self, npm: NpmRegistryClient, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A failed publish raises with the publish error code."""
        monkeypatch.setattr('monocrate.registry.run_command', _FakeRun(return_code=1, stderr='E403 forbidden'))
        with pytest.raises(RegistryError) as exc_info:
            await npm.publish(tmp_path)
        assert exc_info.value.code is E.REGISTRY_PUBLISH_FAILED

    @pytest.mark.asyncio()
    async def test_missing_npm(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """A missing executable becomes a RegistryError."""

        def _raise(cmd: list[str], **kw: Any) -> CommandResult:  # noqa: ANN401
            raise FileNotFoundError(cmd[0])

        monkeypatch.setattr('monocrate.registry.run_command', _raise)
        with pytest.raises(RegistryError):
            await NpmRegistryClient(npm_command='no-such-npm').publish(tmp_path)

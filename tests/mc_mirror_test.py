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

"""Tests for monocrate.mirror module (requires a git executable)."""

from __future__ import annotations

import shutil
import subprocess  # noqa: S404 - test setup drives git directly
from pathlib import Path

import pytest
from monocrate.catalog import discover
from monocrate.errors import E, MonocrateError
from monocrate.mirror import mirror_sources

from tests._fakes import write_package, write_workspace

pytestmark = pytest.mark.skipif(shutil.which('git') is None, reason='git is not installed')


def _git(root: Path, *args: str) -> None:
    subprocess.run(  # noqa: S603, S607 - fixed git invocations
        ['git', '-c', 'user.name=test', '-c', 'user.email=test@example.com', *args],
        cwd=root,
        check=True,
        capture_output=True,
    )


def _committed_repo(root: Path) -> Path:
    write_workspace(root)
    write_package(root, 'packages/app', {'name': 'app'}, {'src/index.ts': 'export {};\n'})
    write_package(root, 'packages/lib', {'name': 'lib'}, {'src/lib.ts': 'export {};\n'})
    (root / '.gitignore').write_text('dist/\n', encoding='utf-8')
    _git(root, 'init', '-q')
    _git(root, 'add', '.')
    _git(root, 'commit', '-q', '-m', 'init')
    return root


class TestMirrorSources:
    """Tests for mirror_sources()."""

    @pytest.mark.asyncio()
    async def test_copies_committed_files(self, tmp_path: Path) -> None:
        """Committed files are mirrored; ignored build output is not."""
        root = _committed_repo(tmp_path / 'repo')
        (root / 'packages' / 'app' / 'dist').mkdir()
        (root / 'packages' / 'app' / 'dist' / 'index.js').write_text('', encoding='utf-8')
        mirror = tmp_path / 'mirror'
        (mirror / 'packages' / 'app').mkdir(parents=True)
        (mirror / 'packages' / 'app' / 'stale.txt').write_text('old', encoding='utf-8')
        catalog = await discover(root)

        count = await mirror_sources([catalog.get('app'), catalog.get('lib')], root, mirror)

        assert count == 4
        assert (mirror / 'packages' / 'app' / 'src' / 'index.ts').is_file()
        assert (mirror / 'packages' / 'lib' / 'package.json').is_file()
        assert not (mirror / 'packages' / 'app' / 'dist').exists()
        assert not (mirror / 'packages' / 'app' / 'stale.txt').exists()

    @pytest.mark.asyncio()
    async def test_untracked_files_abort(self, tmp_path: Path) -> None:
        """Untracked, non-ignored files stop the mirror."""
        root = _committed_repo(tmp_path / 'repo')
        (root / 'packages' / 'lib' / 'notes.md').write_text('wip', encoding='utf-8')
        catalog = await discover(root)
        with pytest.raises(MonocrateError) as exc_info:
            await mirror_sources([catalog.get('lib')], root, tmp_path / 'mirror')
        assert exc_info.value.code is E.FS_UNTRACKED_FILES
        assert 'packages/lib/notes.md' in exc_info.value.message

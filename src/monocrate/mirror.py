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

"""Mirror committed sources of closure members to another directory.

Only files committed at ``HEAD`` are copied (``git ls-tree``), so the
mirror shows exactly what was released. Untracked, non-ignored files
under a member abort the mirror, since they would silently be left out.
Each member's target directory is wiped before copying.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from monocrate._io import copy_file, make_dirs, remove_tree
from monocrate._run import TimeoutExpired, run_command
from monocrate.catalog import MonorepoPackage
from monocrate.errors import E, MonocrateError
from monocrate.logging import get_logger

log = get_logger('monocrate.mirror')


async def _git(args: list[str], repo_root: Path) -> list[str]:
    try:
        result = await asyncio.to_thread(run_command, ['git', *args], cwd=repo_root)
    except (OSError, TimeoutExpired) as exc:
        raise MonocrateError(code=E.FS_ERROR, message=f'Failed to run git: {exc}') from exc
    if not result.ok:
        raise MonocrateError(
            code=E.FS_ERROR,
            message=f'"{result.command_str}" failed: {result.stderr.strip()}',
            hint='Source mirroring requires a git checkout with at least one commit.',
        )
    return [line for line in result.stdout.splitlines() if line]


async def mirror_sources(members: list[MonorepoPackage], repo_root: Path, mirror_dir: Path) -> int:
    """Copy committed files of ``members`` to ``mirror_dir/<path in repo>``.

    Returns:
        The number of files mirrored.

    Raises:
        MonocrateError: If a member has untracked files or git fails.
    """
    plan: list[tuple[MonorepoPackage, list[str]]] = []
    for member in members:
        untracked = await _git(['ls-files', '--others', '--exclude-standard', '--', member.path_in_repo], repo_root)
        if untracked:
            raise MonocrateError(
                code=E.FS_UNTRACKED_FILES,
                message=f'Package "{member.name}" has untracked files: {", ".join(untracked[:5])}',
                hint='Commit or ignore them before mirroring sources.',
            )
        files = await _git(['ls-tree', '-r', '--name-only', 'HEAD', '--', member.path_in_repo], repo_root)
        plan.append((member, files))

    count = 0
    for member, files in plan:
        remove_tree(mirror_dir / member.path_in_repo)
        targets = [mirror_dir / rel for rel in files]
        await asyncio.gather(*(make_dirs(d) for d in {t.parent for t in targets}))
        await asyncio.gather(*(copy_file(repo_root / rel, target) for rel, target in zip(files, targets, strict=True)))
        count += len(files)
        log.debug('member_mirrored', package=member.name, files=len(files))

    log.info('sources_mirrored', mirror_dir=str(mirror_dir), packages=len(plan), files=count)
    return count


__all__ = [
    'mirror_sources',
]

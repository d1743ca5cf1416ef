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

"""Shared async file I/O helpers.

These wrap ``aiofiles`` with consistent error handling: every
:class:`OSError` becomes a :class:`~monocrate.errors.FileSystemError`
naming the path that failed.
"""

from __future__ import annotations

import shutil
from pathlib import Path

import aiofiles
import aiofiles.os

from monocrate.errors import FileSystemError


async def read_file(path: Path) -> str:
    """Read a UTF-8 text file asynchronously via aiofiles."""
    try:
        async with aiofiles.open(path, encoding='utf-8') as f:
            return await f.read()
    except OSError as exc:
        raise FileSystemError(
            f'Failed to read {path}: {exc}',
            path=path,
            hint=f'Check that {path} exists and is readable.',
        ) from exc
    except UnicodeDecodeError as exc:
        raise FileSystemError(
            f'{path} is not valid UTF-8: {exc}',
            path=path,
            hint='Text files in the build output must be UTF-8 encoded.',
        ) from exc


async def write_file(path: Path, content: str) -> None:
    """Write a UTF-8 text file asynchronously via aiofiles."""
    try:
        async with aiofiles.open(path, mode='w', encoding='utf-8') as f:
            await f.write(content)
    except OSError as exc:
        raise FileSystemError(
            f'Failed to write {path}: {exc}',
            path=path,
            hint=f'Check file permissions for {path}.',
        ) from exc


async def make_dirs(path: Path) -> None:
    """Create ``path`` and its parents; existing directories are fine."""
    try:
        await aiofiles.os.makedirs(path, exist_ok=True)
    except OSError as exc:
        raise FileSystemError(f'Failed to create directory {path}: {exc}', path=path) from exc


async def copy_file(source: Path, destination: Path) -> None:
    """Copy ``source`` to ``destination`` byte for byte.

    The destination directory must already exist.
    """
    try:
        async with aiofiles.open(source, mode='rb') as src, aiofiles.open(destination, mode='wb') as dst:
            await dst.write(await src.read())
    except FileNotFoundError as exc:
        raise FileSystemError(
            f'Expected file is missing: {source}',
            path=source,
            hint='Build the package before assembling it.',
        ) from exc
    except OSError as exc:
        raise FileSystemError(f'Failed to copy {source} to {destination}: {exc}', path=source) from exc
    try:
        shutil.copymode(source, destination)
    except OSError as exc:
        raise FileSystemError(f'Failed to copy permissions of {source}: {exc}', path=source) from exc


def remove_tree(path: Path) -> None:
    """Delete a directory tree if it exists."""
    if not path.exists():
        return
    try:
        shutil.rmtree(path)
    except OSError as exc:
        raise FileSystemError(f'Failed to remove {path}: {exc}', path=path) from exc


__all__ = [
    'copy_file',
    'make_dirs',
    'read_file',
    'remove_tree',
    'write_file',
]

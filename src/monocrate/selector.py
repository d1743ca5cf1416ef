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

"""File selection and output placement for closure members.

Output layout::

    out/
    ├── package.json              # transformed subject manifest
    ├── dist/index.js             # subject files at the root
    └── deps/
        ├── lib/dist/index.js     # "lib"
        └── __org__util/...       # "@org/util"

Scoped names are mangled (``@`` and ``/`` become ``__``) so that
``@a/util`` and ``@b/util`` never share a directory.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path

from monocrate.closure import PackageClosure
from monocrate.errors import FileSystemError
from monocrate.logging import get_logger
from monocrate.manifest import PackageManifest
from monocrate.registry import RegistryClient

log = get_logger('monocrate.selector')

DEPS_DIRNAME = 'deps'


def mangle_name(name: str) -> str:
    """Turn a package name into a single directory name."""
    return name.replace('@', '__').replace('/', '__')


@dataclass(frozen=True)
class PackageLocation:
    """Where one closure member comes from and where it goes.

    Attributes:
        name: Package name.
        from_dir: Absolute source directory.
        to_dir: Absolute destination directory.
        files: POSIX paths relative to ``from_dir`` to copy.
        manifest: The member's manifest, used for specifier resolution.
        path_in_repo: Source directory relative to the repo root.
    """

    name: str
    from_dir: Path
    to_dir: Path
    files: tuple[str, ...]
    manifest: PackageManifest
    path_in_repo: str


async def select_files(registry: RegistryClient, package_dir: Path) -> list[str]:
    """Return the publishable files of ``package_dir``.

    Raises:
        FileSystemError: If a listed file is absent, typically a missing build.
    """
    files = await registry.list_publishable_files(package_dir)
    for rel in files:
        if not (package_dir / rel).is_file():
            raise FileSystemError(
                f'File "{rel}" of {package_dir} is listed for publishing but does not exist',
                path=package_dir / rel,
                hint='Build the package before assembling it.',
            )
    return files


async def collect_locations(
    closure: PackageClosure,
    registry: RegistryClient,
    output_dir: Path,
) -> list[PackageLocation]:
    """Compute a :class:`PackageLocation` for every runtime member.

    The subject maps to ``output_dir`` itself; every other member maps to
    ``output_dir/deps/<mangled name>``.
    """
    members = closure.runtime_members
    file_lists = await asyncio.gather(*(select_files(registry, m.from_dir) for m in members))

    locations: list[PackageLocation] = []
    for member, files in zip(members, file_lists, strict=True):
        if member.name == closure.subject:
            to_dir = output_dir
        else:
            to_dir = output_dir / DEPS_DIRNAME / mangle_name(member.name)
        locations.append(
            PackageLocation(
                name=member.name,
                from_dir=member.from_dir,
                to_dir=to_dir,
                files=tuple(files),
                manifest=member.manifest,
                path_in_repo=member.path_in_repo,
            )
        )
        log.debug('package_location', package=member.name, to_dir=str(to_dir), files=len(files))
    return locations


__all__ = [
    'DEPS_DIRNAME',
    'PackageLocation',
    'collect_locations',
    'mangle_name',
    'select_files',
]

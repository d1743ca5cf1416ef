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

"""Assemble one subject package into an output directory.

Phases, each awaited before the next starts::

    1. closure      resolve_closure(subject)
    2. locations    file lists from the registry client, placement per member
    3. copy         mkdir all destination dirs, then copy all files (parallel)
    4. rewrite      validate module formats, rewrite in-repo specifiers
    5. manifest     transform + write package.json, always last

Writing the manifest last matters: the subject's own ``package.json`` is
among the copied files and would otherwise overwrite the transformed one.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path

from monocrate._io import copy_file, make_dirs
from monocrate.catalog import Catalog
from monocrate.closure import resolve_closure
from monocrate.logging import get_logger
from monocrate.manifest import write_manifest
from monocrate.registry import RegistryClient
from monocrate.rewriter import ImportRewriter
from monocrate.selector import PackageLocation, collect_locations, mangle_name
from monocrate.transform import transform_manifest

log = get_logger('monocrate.assembler')


@dataclass(frozen=True)
class AssemblySummary:
    """What one assembly produced.

    Attributes:
        package_name: The subject's manifest name.
        publish_as: The name written to the output manifest.
        output_dir: Where the assembly was written.
        version: The version written to the output manifest.
        runtime_members: Names of the packages that were copied.
        compiletime_members: Names of every package needed to build the subject.
        files_copied: Number of files copied.
        files_rewritten: Number of files whose specifiers changed.
    """

    package_name: str
    publish_as: str
    output_dir: Path
    version: str
    runtime_members: list[str] = field(default_factory=list)
    compiletime_members: list[str] = field(default_factory=list)
    files_copied: int = 0
    files_rewritten: int = 0


async def copy_files(locations: list[PackageLocation]) -> list[Path]:
    """Copy every location's files to its destination.

    Destination directories are created first, then files are copied
    concurrently. Destinations are disjoint by construction.

    Returns:
        The destination paths, in location then file order.
    """
    pairs = [(loc.from_dir / rel, loc.to_dir / rel) for loc in locations for rel in loc.files]
    dirs = sorted({dest.parent for _, dest in pairs} | {loc.to_dir for loc in locations})
    await asyncio.gather(*(make_dirs(d) for d in dirs))
    await asyncio.gather(*(copy_file(src, dest) for src, dest in pairs))
    log.debug('files_copied', count=len(pairs), dirs=len(dirs))
    return [dest for _, dest in pairs]


class PackageAssembler:
    """Assembles one subject package.

    Args:
        catalog: The workspace catalog.
        registry: Registry client used for file listing.
        subject: Name of the package to assemble.
        output_root: Directory under which outputs are placed.
        nested: Place the output in ``output_root/<mangled name>``
            rather than ``output_root`` itself (multi-subject runs).
        conflict_policy: Third-party range conflict policy.
        keep_dev_dependencies: Keep the subject's third-party devDependencies.
        strip_fields: Extra manifest fields to drop.
    """

    def __init__(
        self,
        catalog: Catalog,
        registry: RegistryClient,
        subject: str,
        output_root: Path,
        *,
        nested: bool = False,
        conflict_policy: str = 'warn',
        keep_dev_dependencies: bool = False,
        strip_fields: frozenset[str] = frozenset(),
    ) -> None:
        """Initialize for one subject."""
        self._catalog = catalog
        self._registry = registry
        self._subject = catalog.get(subject)
        self._output_root = output_root
        self._nested = nested
        self._policy = conflict_policy
        self._keep_dev = keep_dev_dependencies
        self._strip = strip_fields

    @property
    def package_name(self) -> str:
        """The subject's manifest name."""
        return self._subject.name

    @property
    def output_dir(self) -> Path:
        """Where this subject is assembled."""
        if self._nested:
            return self._output_root / mangle_name(self._subject.name)
        return self._output_root

    async def assemble(self, version: str | None) -> AssemblySummary:
        """Run every assembly phase and return a summary.

        Args:
            version: Version for the output manifest; ``None`` keeps the
                subject's declared version.
        """
        output_dir = self.output_dir
        closure = resolve_closure(self._subject.name, self._catalog)

        locations = await collect_locations(closure, self._registry, output_dir)
        await make_dirs(output_dir)
        copied = await copy_files(locations)

        rewritten = await ImportRewriter(locations, self._catalog).rewrite_all(copied)

        manifest = transform_manifest(
            closure,
            self._catalog,
            version,
            policy=self._policy,
            keep_dev_dependencies=self._keep_dev,
            strip_fields=self._strip,
        )
        await write_manifest(output_dir, manifest)

        summary = AssemblySummary(
            package_name=self._subject.name,
            publish_as=self._subject.publish_as,
            output_dir=output_dir,
            version=manifest['version'],
            runtime_members=closure.runtime_names,
            compiletime_members=closure.compiletime_names,
            files_copied=len(copied),
            files_rewritten=rewritten,
        )
        log.info(
            'package_assembled',
            package=summary.package_name,
            output_dir=str(output_dir),
            version=summary.version,
            files=summary.files_copied,
        )
        return summary


__all__ = [
    'AssemblySummary',
    'PackageAssembler',
    'copy_files',
]

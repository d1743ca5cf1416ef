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

"""Top-level assembly run for one or more subject packages.

Sequence::

    parse version specifier          fails before anything touches disk
           │
    find root, load config, discover catalog
           │
    resolve + unify versions         all subjects, before any assembly
           │
    assemble subject 1..N            sequentially, one output dir each
           │
    mirror sources (optional)
           │
    publish 1..N (optional)          only after every assembly succeeded
           │
    emit version                     stdout or --output-file

Any failure aborts the whole run; output directories this run created
are removed before the error propagates.
"""

from __future__ import annotations

import sys
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO

from monocrate._io import remove_tree
from monocrate.assembler import AssemblySummary, PackageAssembler
from monocrate.catalog import discover, find_repo_root
from monocrate.config import MonocrateConfig, load_config, validate_conflict_policy
from monocrate.errors import E, FileSystemError, MonocrateError
from monocrate.logging import get_logger
from monocrate.mirror import mirror_sources
from monocrate.registry import NPMRC_FILENAME, NpmRegistryClient, RegistryClient
from monocrate.versions import VersionSpecifier, parse_version_specifier, unify_versions

log = get_logger('monocrate.orchestrator')


@dataclass(frozen=True)
class AssemblyOptions:
    """Inputs of one monocrate run.

    Attributes:
        package_dirs: Subject package directories, relative to ``cwd`` or absolute.
        cwd: Base directory for relative paths.
        repo_root: Monorepo root; auto-detected from the first package when unset.
        output_dir: Output directory; a fresh temp dir when unset.
        bump: Version specifier text; the configured ``default_bump``
            (a minor increment unless configured) when unset.
        publish: Publish each assembled package.
        dry_run: Log the publish command instead of running it.
        output_file: Write the resolved version here instead of stdout.
        mirror_to: Mirror committed sources of every compile-time member here.
        conflict_policy: Overrides the configured conflict policy.
        npmrc: npm user config holding publish credentials; the repo
            root's ``.npmrc`` when unset and present.
    """

    package_dirs: list[Path]
    cwd: Path = field(default_factory=Path.cwd)
    repo_root: Path | None = None
    output_dir: Path | None = None
    bump: str | None = None
    publish: bool = False
    dry_run: bool = False
    output_file: Path | None = None
    mirror_to: Path | None = None
    conflict_policy: str | None = None
    npmrc: Path | None = None


@dataclass(frozen=True)
class AssemblyResult:
    """Outcome of a run.

    Attributes:
        output_dir: The output root.
        version: The unified resolved version.
        summaries: One summary per subject, in argument order.
    """

    output_dir: Path
    version: str | None
    summaries: list[AssemblySummary] = field(default_factory=list)


def _credentials_config(options: AssemblyOptions, cwd: Path, repo_root: Path) -> Path | None:
    if options.npmrc is not None:
        npmrc = (cwd / options.npmrc).resolve()
        if not npmrc.is_file():
            raise FileSystemError(
                f'npmrc file does not exist: {npmrc}',
                path=npmrc,
                hint='Pass an existing file to --npmrc.',
            )
        return npmrc
    default = repo_root / NPMRC_FILENAME
    return default if default.is_file() else None


def _emit_version(version: str, output_file: Path | None, stdout: TextIO) -> None:
    if output_file is None:
        print(version, file=stdout)  # noqa: T201 - CLI output
        return
    try:
        output_file.write_text(version, encoding='utf-8')
    except OSError as exc:
        raise FileSystemError(f'Failed to write {output_file}: {exc}', path=output_file) from exc


async def run_assembly(
    options: AssemblyOptions,
    *,
    registry: RegistryClient | None = None,
    config: MonocrateConfig | None = None,
    stdout: TextIO | None = None,
) -> AssemblyResult:
    """Assemble (and optionally publish) every subject in ``options``.

    Args:
        options: What to assemble and where.
        registry: Registry client; an :class:`NpmRegistryClient` built from
            the configuration when unset.
        config: Settings; loaded from ``monocrate.toml`` at the root when unset.
        stdout: Stream for the emitted version (defaults to ``sys.stdout``).

    Raises:
        MonocrateError: On any failure; nothing is published in that case.
    """
    specifier: VersionSpecifier | None = parse_version_specifier(options.bump)
    if not options.package_dirs:
        raise MonocrateError(
            code=E.CLOSURE_PACKAGE_NOT_FOUND,
            message='No package directories given',
            hint='Pass at least one package directory.',
        )

    cwd = options.cwd.resolve()
    if not cwd.is_dir():
        raise FileSystemError(f'cwd does not exist: {cwd}', path=cwd)
    package_dirs = [(cwd / d).resolve() for d in options.package_dirs]
    repo_root = (cwd / options.repo_root).resolve() if options.repo_root else find_repo_root(package_dirs[0])

    config = config or load_config(repo_root)
    if specifier is None:
        specifier = parse_version_specifier(config.default_bump)
    policy = validate_conflict_policy(options.conflict_policy or config.conflict_policy)
    registry = registry or NpmRegistryClient(
        registry_url=config.registry_url,
        npm_command=config.npm_command,
        include_npmrc=config.include_npmrc,
        timeout=config.http_timeout,
    )

    npmrc = _credentials_config(options, cwd, repo_root) if options.publish else None

    catalog = await discover(repo_root)
    subjects = [catalog.by_dir(d) for d in package_dirs]

    created: list[Path] = []
    if options.output_dir is None:
        output_root = Path(tempfile.mkdtemp(prefix='monocrate-'))
        created.append(output_root)
    else:
        output_root = (cwd / options.output_dir).resolve()
        if not output_root.exists():
            created.append(output_root)

    nested = len(subjects) > 1
    assemblers = [
        PackageAssembler(
            catalog,
            registry,
            subject.name,
            output_root,
            nested=nested,
            conflict_policy=policy,
            keep_dev_dependencies=config.keep_dev_dependencies,
            strip_fields=frozenset(config.strip_fields),
        )
        for subject in subjects
    ]

    succeeded = False
    try:
        versions = await unify_versions(registry, [s.publish_as for s in subjects], specifier)
        unified = next(iter(versions.values()), None)

        summaries: list[AssemblySummary] = []
        for subject, assembler in zip(subjects, assemblers, strict=True):
            summaries.append(await assembler.assemble(versions.get(subject.publish_as)))

        if options.mirror_to is not None:
            members = {m.name: m for s in summaries for m in map(catalog.get, s.compiletime_members)}
            await mirror_sources(list(members.values()), repo_root, (cwd / options.mirror_to).resolve())

        if options.publish:
            for summary in summaries:
                await registry.publish(summary.output_dir, npmrc=npmrc, dry_run=options.dry_run)
        succeeded = True
    finally:
        if not succeeded:
            for path in created:
                log.debug('removing_partial_output', path=str(path))
                remove_tree(path)

    if unified is not None:
        _emit_version(unified, (cwd / options.output_file) if options.output_file else None, stdout or sys.stdout)

    log.info(
        'assembly_complete',
        output_dir=str(output_root),
        version=unified,
        packages=[s.package_name for s in summaries],
        published=options.publish,
    )
    return AssemblyResult(output_dir=output_root, version=unified, summaries=summaries)


__all__ = [
    'AssemblyOptions',
    'AssemblyResult',
    'run_assembly',
]

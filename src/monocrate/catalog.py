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

"""Workspace catalog: the set of in-repo packages.

Workspace structure::

    monorepo/
    ├── package.json             # {"workspaces": ["packages/*"]}
    ├── pnpm-workspace.yaml      # or: packages: ['packages/*']
    └── packages/
        ├── app/
        │   └── package.json     # {"name": "app", "dependencies": {"lib": "workspace:*"}}
        └── lib/
            └── package.json

Member patterns come from the root ``package.json`` ``workspaces`` field
(an array, or an object with a ``packages`` array), then from
``pnpm-workspace.yaml``, then default to ``packages/*``. Patterns that
start with ``!`` exclude; anything under ``node_modules`` is ignored.

A package may publish under another name by setting
``"monocrate": {"publishName": "..."}`` in its manifest.
"""

from __future__ import annotations

import json
import os
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from monocrate._io import read_file
from monocrate.errors import (
    E,
    ManifestValidationError,
    MonocrateError,
    PackageNotFoundError,
    PublishNameCollisionError,
)
from monocrate.logging import get_logger
from monocrate.manifest import MANIFEST_FILENAME, PackageManifest, load_manifest

log = get_logger('monocrate.catalog')

PNPM_WORKSPACE_FILENAME = 'pnpm-workspace.yaml'
DEFAULT_PATTERNS: tuple[str, ...] = ('packages/*',)


@dataclass(frozen=True)
class MonorepoPackage:
    """One in-repo package.

    Attributes:
        name: The manifest name.
        from_dir: Absolute source directory.
        path_in_repo: POSIX path of ``from_dir`` relative to the repo root.
        manifest: The parsed ``package.json``.
        publish_as: The external name used when publishing.
    """

    name: str
    from_dir: Path
    path_in_repo: str
    manifest: PackageManifest
    publish_as: str


class Catalog:
    """Lookup table of workspace packages keyed by manifest name."""

    def __init__(self, root: Path, packages: list[MonorepoPackage]) -> None:
        """Initialize with the repo root and its packages."""
        self.root = root
        self._by_name: dict[str, MonorepoPackage] = {}
        for pkg in sorted(packages, key=lambda p: p.name):
            if pkg.name in self._by_name:
                raise MonocrateError(
                    code=E.WORKSPACE_DUPLICATE_PACKAGE,
                    message=f"Duplicate package name '{pkg.name}' found at {pkg.from_dir}",
                    hint='Each package in the workspace must have a unique name.',
                )
            self._by_name[pkg.name] = pkg

    def __iter__(self) -> Iterator[MonorepoPackage]:
        """Iterate packages sorted by name."""
        return iter(self._by_name.values())

    def __len__(self) -> int:
        """Number of packages."""
        return len(self._by_name)

    def __contains__(self, name: object) -> bool:
        """Whether ``name`` is an in-repo package."""
        return name in self._by_name

    @property
    def names(self) -> list[str]:
        """Sorted package names."""
        return list(self._by_name)

    def lookup(self, name: str) -> MonorepoPackage | None:
        """Return the package called ``name``, or ``None``."""
        return self._by_name.get(name)

    def get(self, name: str) -> MonorepoPackage:
        """Return the package called ``name``; raise if unknown."""
        pkg = self._by_name.get(name)
        if pkg is None:
            raise PackageNotFoundError(name)
        return pkg

    def by_dir(self, directory: Path) -> MonorepoPackage:
        """Return the package whose source directory is ``directory``."""
        target = directory.resolve()
        for pkg in self._by_name.values():
            if pkg.from_dir == target:
                return pkg
        raise MonocrateError(
            code=E.CLOSURE_PACKAGE_NOT_FOUND,
            message=f'Could not find a monorepo package at {target}',
            hint=f'Check that the directory is matched by the workspace patterns under {self.root}.',
        )


def _parse_yaml_simple(text: str) -> dict[str, list[str]]:
    """Minimal YAML parser for ``pnpm-workspace.yaml``.

    Only the flat shape pnpm uses is understood::

        packages:
          - 'packages/*'
          - '!packages/scratch'
    """
    result: dict[str, list[str]] = {}
    current_key: str | None = None

    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith('#'):
            continue

        if stripped.endswith(':') and not stripped.startswith('-'):
            current_key = stripped[:-1].strip()
            result[current_key] = []
            continue

        if stripped.startswith('-') and current_key is not None:
            value = stripped[1:].split(' #', 1)[0].strip()
            if len(value) >= 2 and value[0] == value[-1] and value[0] in '\'"':
                value = value[1:-1]
            result[current_key].append(value)

    return result


def _read_json_object(path: Path) -> dict[str, object] | None:
    """Read a JSON object from ``path``; ``None`` if the file is absent or not an object."""
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding='utf-8'))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MonocrateError(
            code=E.WORKSPACE_PARSE_ERROR,
            message=f'Failed to parse {path}: {exc}',
            hint=f'Check that {path} contains valid JSON.',
        ) from exc
    return data if isinstance(data, dict) else None


def _is_workspace_root(directory: Path) -> bool:
    if (directory / PNPM_WORKSPACE_FILENAME).is_file():
        return True
    data = _read_json_object(directory / MANIFEST_FILENAME)
    return data is not None and 'workspaces' in data


def find_repo_root(start: Path) -> Path:
    """Walk upward from ``start`` to the directory that declares the workspace.

    Raises:
        MonocrateError: If no ancestor has a ``package.json`` with
            ``workspaces`` or a ``pnpm-workspace.yaml``.
    """
    current = start.resolve()
    for candidate in (current, *current.parents):
        if _is_workspace_root(candidate):
            log.debug('found_repo_root', root=str(candidate))
            return candidate
    raise MonocrateError(
        code=E.WORKSPACE_NOT_FOUND,
        message=f'Could not find a monorepo root above {start}',
        hint='The root needs a package.json with "workspaces" or a pnpm-workspace.yaml. Or pass --root.',
    )


async def _workspace_patterns(root: Path) -> list[str]:
    """Return member patterns declared by the workspace at ``root``."""
    data = _read_json_object(root / MANIFEST_FILENAME)
    workspaces = data.get('workspaces') if data else None
    if isinstance(workspaces, dict):
        workspaces = workspaces.get('packages')
    if workspaces is not None:
        if not isinstance(workspaces, list) or not all(isinstance(p, str) for p in workspaces):
            raise MonocrateError(
                code=E.WORKSPACE_PARSE_ERROR,
                message=f'"workspaces" in {root / MANIFEST_FILENAME} must be an array of strings',
            )
        return list(workspaces)

    pnpm_path = root / PNPM_WORKSPACE_FILENAME
    if pnpm_path.is_file():
        patterns = _parse_yaml_simple(await read_file(pnpm_path)).get('packages', [])
        if patterns:
            return patterns

    return list(DEFAULT_PATTERNS)


def _glob_safe(root: Path, pattern: str) -> list[Path]:
    """Expand one pattern below ``root``; ``.`` and ``./`` are handled."""
    pattern = pattern.rstrip('/')
    while pattern.startswith('./'):
        pattern = pattern[2:]
    if pattern in {'', '.'}:
        return [root]
    return sorted(root.glob(pattern))


def _expand_member_globs(root: Path, patterns: list[str]) -> list[Path]:
    """Expand member patterns to directories that hold a ``package.json``."""
    include = [p for p in patterns if not p.startswith('!')]
    exclude = [p[1:] for p in patterns if p.startswith('!')]

    found: dict[Path, Path] = {}
    for pattern in include:
        for candidate in _glob_safe(root, pattern):
            if 'node_modules' in candidate.relative_to(root).parts:
                continue
            if candidate.is_dir() and (candidate / MANIFEST_FILENAME).is_file():
                found[candidate.resolve()] = candidate

    excluded: set[Path] = set()
    for pattern in exclude:
        excluded.update(c.resolve() for c in _glob_safe(root, pattern))

    result = sorted(path for path in found if path not in excluded)
    log.debug('expanded_member_globs', include=include, exclude=exclude, count=len(result))
    return result


def _validate_publish_names(packages: list[MonorepoPackage]) -> None:
    seen: dict[str, str] = {}
    for pkg in packages:
        other = seen.get(pkg.publish_as)
        if other is not None:
            raise PublishNameCollisionError(other, pkg.name, pkg.publish_as)
        seen[pkg.publish_as] = pkg.name


async def discover(root: Path) -> Catalog:
    """Discover every package in the workspace rooted at ``root``.

    Raises:
        MonocrateError: On duplicate names or a member outside the root.
        PublishNameCollisionError: If two packages share a publish name.
    """
    real_root = root.resolve()
    patterns = await _workspace_patterns(real_root)

    packages: list[MonorepoPackage] = []
    for pkg_dir in _expand_member_globs(real_root, patterns):
        real_dir = Path(os.path.realpath(pkg_dir))
        if not real_dir.is_relative_to(real_root):
            raise MonocrateError(
                code=E.WORKSPACE_OUTSIDE_ROOT,
                message=f'Package at {pkg_dir} resolves to {real_dir}, outside the monorepo root {real_root}',
                hint='Workspace packages must live inside the repository.',
            )
        manifest = await load_manifest(real_dir)
        try:
            name = manifest.name
        except ManifestValidationError:
            log.debug('skipped_nameless_package', path=str(real_dir))
            continue
        packages.append(
            MonorepoPackage(
                name=name,
                from_dir=real_dir,
                path_in_repo=real_dir.relative_to(real_root).as_posix() or '.',
                manifest=manifest,
                publish_as=manifest.publish_name or name,
            )
        )

    catalog = Catalog(real_root, packages)
    _validate_publish_names(list(catalog))
    log.info('discovered_packages', root=str(real_root), count=len(catalog))
    return catalog


__all__ = [
    'Catalog',
    'MonorepoPackage',
    'discover',
    'find_repo_root',
]

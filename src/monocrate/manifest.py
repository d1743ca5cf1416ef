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

"""The ``package.json`` model.

A :class:`PackageManifest` is an ordered key/value map of raw JSON
values with typed accessors for the fields monocrate reads (name,
version, entry points, dependency maps). Unknown fields are carried
through untouched, in their original order, so a transformed manifest
keeps everything that was not explicitly stripped.

Manifests are read once and not mutated afterwards: :meth:`to_dict`
hands out a deep copy for callers that build a new manifest.
"""

from __future__ import annotations

import copy
import json
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any

from monocrate._io import read_file, write_file
from monocrate.errors import ManifestValidationError

MANIFEST_FILENAME = 'package.json'

# Relation kinds, keyed by the manifest field that holds them.
DEPENDENCY_FIELDS: tuple[str, ...] = (
    'dependencies',
    'devDependencies',
    'peerDependencies',
    'optionalDependencies',
)


class PackageManifest(Mapping[str, Any]):
    """Read-only view over a parsed ``package.json``."""

    def __init__(self, data: Mapping[str, Any], *, source: Path | None = None) -> None:
        """Initialize from parsed JSON data."""
        self._data: dict[str, Any] = copy.deepcopy(dict(data))
        self.source = source

    def __getitem__(self, key: str) -> Any:  # noqa: ANN401 - JSON values are untyped
        """Return the raw value of a field."""
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        """Iterate field names in file order."""
        return iter(self._data)

    def __len__(self) -> int:
        """Number of top-level fields."""
        return len(self._data)

    def __repr__(self) -> str:
        """Show the package name and source."""
        return f'PackageManifest(name={self.name!r}, source={self.source!r})'

    def _string(self, key: str) -> str | None:
        value = self._data.get(key)
        if value is None:
            return None
        if not isinstance(value, str):
            raise ManifestValidationError(
                f'"{key}" must be a string in {self._where()}, got {type(value).__name__}',
            )
        return value

    def _where(self) -> str:
        return str(self.source) if self.source else 'package.json'

    @property
    def name(self) -> str:
        """The package name; raises if absent."""
        name = self._string('name')
        if not name:
            raise ManifestValidationError(
                f'Missing "name" in {self._where()}',
                hint='Every workspace package needs a "name" field.',
            )
        return name

    @property
    def version(self) -> str | None:
        """The declared version, if any."""
        return self._string('version')

    @property
    def main(self) -> str | None:
        """The ``main`` entry point, if any."""
        return self._string('main')

    @property
    def types(self) -> str | None:
        """The ``types`` entry point, if any."""
        return self._string('types')

    @property
    def module_type(self) -> str | None:
        """The ``type`` field (``"module"`` or ``"commonjs"``)."""
        return self._string('type')

    @property
    def is_esm(self) -> bool:
        """Whether plain ``.js`` files of this package are ES modules."""
        return self.module_type == 'module'

    @property
    def exports(self) -> Any:  # noqa: ANN401 - string, list or nested conditions map
        """The raw ``exports`` value, or ``None``."""
        return self._data.get('exports')

    @property
    def files(self) -> list[str] | None:
        """The ``files`` allow-list, if declared."""
        value = self._data.get('files')
        if value is None:
            return None
        if not isinstance(value, list):
            raise ManifestValidationError(f'"files" must be an array in {self._where()}')
        return [str(item) for item in value]

    def dependency_map(self, kind: str) -> dict[str, str]:
        """Return the dependency map stored under ``kind``.

        Args:
            kind: One of :data:`DEPENDENCY_FIELDS`.
        """
        value = self._data.get(kind)
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ManifestValidationError(f'"{kind}" must be an object in {self._where()}')
        result: dict[str, str] = {}
        for dep_name, spec in value.items():
            if not isinstance(spec, str) or not spec:
                raise ManifestValidationError(
                    f'No version for dependency "{dep_name}" in "{kind}" of {self._where()}',
                )
            result[dep_name] = spec
        return result

    @property
    def dependencies(self) -> dict[str, str]:
        """Production dependencies."""
        return self.dependency_map('dependencies')

    @property
    def dev_dependencies(self) -> dict[str, str]:
        """Development dependencies."""
        return self.dependency_map('devDependencies')

    @property
    def publish_name(self) -> str | None:
        """The ``monocrate.publishName`` alias, if set."""
        section = self._data.get('monocrate')
        if section is None:
            return None
        if not isinstance(section, dict):
            raise ManifestValidationError(f'"monocrate" must be an object in {self._where()}')
        alias = section.get('publishName')
        if alias is None:
            return None
        if not isinstance(alias, str) or not alias:
            raise ManifestValidationError(f'"monocrate.publishName" must be a non-empty string in {self._where()}')
        return alias

    def to_dict(self) -> dict[str, Any]:
        """Return a deep, mutable copy of the raw data."""
        return copy.deepcopy(self._data)


def parse_manifest(text: str, path: Path | None = None) -> PackageManifest:
    """Parse ``package.json`` text into a :class:`PackageManifest`."""
    where = str(path) if path else 'package.json'
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ManifestValidationError(
            f'Failed to parse {where}: {exc}',
            hint=f'Check that {where} contains valid JSON.',
        ) from exc
    if not isinstance(data, dict):
        raise ManifestValidationError(
            f'{where} is not a JSON object',
            hint=f'Expected a JSON object at the top level of {where}.',
        )
    return PackageManifest(data, source=path)


async def load_manifest(package_dir: Path) -> PackageManifest:
    """Read and parse ``package_dir/package.json``."""
    path = package_dir / MANIFEST_FILENAME
    return parse_manifest(await read_file(path), path)


def dump_manifest(data: Mapping[str, Any]) -> str:
    """Serialize manifest data with two-space indentation and a trailing newline."""
    return json.dumps(dict(data), indent=2, ensure_ascii=False) + '\n'


async def write_manifest(package_dir: Path, data: Mapping[str, Any]) -> Path:
    """Write ``data`` as ``package_dir/package.json`` and return the path."""
    path = package_dir / MANIFEST_FILENAME
    await write_file(path, dump_manifest(data))
    return path


__all__ = [
    'DEPENDENCY_FIELDS',
    'MANIFEST_FILENAME',
    'PackageManifest',
    'dump_manifest',
    'load_manifest',
    'parse_manifest',
    'write_manifest',
]

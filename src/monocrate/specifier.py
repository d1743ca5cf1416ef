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

"""Module specifier resolution, the way Node resolves package imports.

Given a target package's manifest and the subpath of an import
(``''`` for ``import 'lib'``, ``'utils/x'`` for ``import 'lib/utils/x'``),
:func:`resolve_specifier` returns the file, relative to the package
root, that Node would load. No file system access happens here.

Resolution order::

    exports present?
      ├─ yes: match "." / "./<subpath>" (exact key, then "*" patterns)
      │        └─ walk conditions in key order: import, node, default
      │           arrays: take the FIRST candidate, never check the disk
      └─ no match / no exports:
           bare    → main, else index.js
           subpath → <subpath>.js
"""

from __future__ import annotations

import posixpath
from collections.abc import Collection
from typing import Any

from monocrate.errors import ModuleResolutionError
from monocrate.manifest import PackageManifest

DEFAULT_CONDITIONS: tuple[str, ...] = ('import', 'node', 'default')


def split_specifier(specifier: str) -> tuple[str, str]:
    """Split a bare specifier into ``(package_name, subpath)``.

    ``'@org/pkg/a/b'`` gives ``('@org/pkg', 'a/b')``; ``'pkg'`` gives
    ``('pkg', '')``.
    """
    parts = specifier.split('/')
    count = 2 if specifier.startswith('@') else 1
    return '/'.join(parts[:count]), '/'.join(parts[count:])


def _is_conditions_map(value: dict[str, Any]) -> bool:
    """Whether a dict is a conditions map rather than a subpath map."""
    keys = list(value)
    dotted = [k.startswith('.') for k in keys]
    if any(dotted) and not all(dotted):
        raise ModuleResolutionError(
            '"exports" cannot mix subpath keys ("./x") with condition keys',
            hint='Use either "./"-prefixed keys or condition names at one level.',
        )
    return not any(dotted)


def _normalize_exports(exports: Any) -> dict[str, Any]:  # noqa: ANN401 - raw JSON
    """Return ``exports`` as a subpath map keyed by ``.`` / ``./x``."""
    if isinstance(exports, (str, list)):
        return {'.': exports}
    if isinstance(exports, dict):
        if _is_conditions_map(exports):
            return {'.': exports}
        return exports
    raise ModuleResolutionError(f'"exports" has an unsupported type: {type(exports).__name__}')


def _match_key(subpath_map: dict[str, Any], entry: str) -> tuple[Any, str | None] | None:
    """Find the export target for ``entry``.

    Returns ``(target, star_match)`` where ``star_match`` is the text the
    ``*`` matched (``None`` for exact keys), or ``None`` if nothing matches.
    """
    if entry in subpath_map and '*' not in entry:
        return subpath_map[entry], None

    best_key: str | None = None
    best_match: str | None = None
    for key in subpath_map:
        star = key.find('*')
        if star == -1 or key.find('*', star + 1) != -1:
            continue
        prefix, suffix = key[:star], key[star + 1 :]
        if not entry.startswith(prefix) or entry == prefix:
            continue
        if suffix and (not entry.endswith(suffix) or len(entry) < len(key)):
            continue
        if best_key is None or _pattern_key_compare(key, best_key) < 0:
            best_key = key
            best_match = entry[len(prefix) : len(entry) - len(suffix)]
    if best_key is not None:
        return subpath_map[best_key], best_match

    # Legacy folder mappings ("./dir/": "./lib/dir/").
    folder_keys = [k for k in subpath_map if k.endswith('/') and entry.startswith(k)]
    if folder_keys:
        key = max(folder_keys, key=len)
        target = subpath_map[key]
        if isinstance(target, str):
            return target + entry[len(key) :], None
        return target, None
    return None


def _pattern_key_compare(a: str, b: str) -> int:
    """Node's PATTERN_KEY_COMPARE: longer prefix first, then longer key."""
    a_base, b_base = a.index('*') + 1, b.index('*') + 1
    if a_base != b_base:
        return -1 if a_base > b_base else 1
    if len(a) != len(b):
        return -1 if len(a) > len(b) else 1
    return 0


def _resolve_target(
    target: Any,  # noqa: ANN401 - raw JSON
    star_match: str | None,
    conditions: Collection[str],
) -> str | None:
    """Resolve an export target to a path, or ``None`` if it is excluded."""
    if target is None:
        return None
    if isinstance(target, str):
        if not target.startswith('./'):
            raise ModuleResolutionError(
                f'Invalid export target "{target}": targets must start with "./"',
            )
        return target.replace('*', star_match) if star_match is not None else target
    if isinstance(target, list):
        for candidate in target:
            resolved = _resolve_target(candidate, star_match, conditions)
            if resolved is not None:
                return resolved
        return None
    if isinstance(target, dict):
        for condition, value in target.items():
            if condition in conditions:
                resolved = _resolve_target(value, star_match, conditions)
                if resolved is not None:
                    return resolved
        return None
    raise ModuleResolutionError(f'Invalid export target of type {type(target).__name__}')


def resolve_specifier(
    manifest: PackageManifest,
    subpath: str,
    *,
    conditions: Collection[str] = DEFAULT_CONDITIONS,
) -> str:
    """Resolve ``subpath`` of the package described by ``manifest``.

    Args:
        manifest: The target package's manifest.
        subpath: ``''`` for the bare entry point, otherwise the path after
            the package name (``'utils/helper'``).
        conditions: Export conditions to honor.

    Returns:
        A normalized POSIX path relative to the package root.

    Raises:
        ModuleResolutionError: If ``exports`` matches the entry but maps
            it to nothing under ``conditions``, or holds an invalid target.
    """
    exports = manifest.exports
    if exports is not None:
        entry = '.' if subpath == '' else f'./{subpath}'
        match = _match_key(_normalize_exports(exports), entry)
        if match is not None:
            target, star_match = match
            resolved = _resolve_target(target, star_match, conditions)
            if resolved is None:
                raise ModuleResolutionError(
                    f'"{entry}" of package "{manifest.name}" is not exported under conditions {sorted(conditions)}',
                    hint='Add an "import" or "default" condition to the export.',
                )
            return posixpath.normpath(resolved[2:])

    if subpath == '':
        return posixpath.normpath(manifest.main or 'index.js')
    return posixpath.normpath(f'{subpath}.js')


__all__ = [
    'DEFAULT_CONDITIONS',
    'resolve_specifier',
    'split_specifier',
]

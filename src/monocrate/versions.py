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

"""Version specifiers and version resolution.

A version specifier is either an increment keyword or an explicit
version::

    "patch" | "minor" | "major"   → Increment(part)
    "1.2.3", "2.0.0-rc.1+build.5" → Explicit(value)

Increments are applied to the version currently published on the
registry (``0.0.0`` when the package was never published)::

    published 1.2.3, minor → 1.3.0
    published 1.2.3, major → 2.0.0
    never published, patch → 0.0.1

When several packages are published together they all receive the
component-wise greatest of their individually resolved versions.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import Literal, TypeAlias

from monocrate.errors import E, MonocrateError
from monocrate.logging import get_logger
from monocrate.registry import RegistryClient

log = get_logger('monocrate.versions')

BumpPart = Literal['major', 'minor', 'patch']

_PARTS: tuple[BumpPart, ...] = ('major', 'minor', 'patch')
_EXPLICIT_RE = re.compile(r'^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)(-[0-9A-Za-z.-]+)?(\+[0-9A-Za-z.-]+)?$')
_CORE_RE = re.compile(r'^(\d+)\.(\d+)\.(\d+)')

UNPUBLISHED_VERSION = '0.0.0'


@dataclass(frozen=True)
class Increment:
    """Bump the published version's ``part``, zeroing lower parts."""

    part: BumpPart


@dataclass(frozen=True)
class Explicit:
    """Use ``value`` as the version."""

    value: str


VersionSpecifier: TypeAlias = Increment | Explicit


def parse_version_specifier(value: str | None) -> VersionSpecifier | None:
    """Parse user input into a :data:`VersionSpecifier`.

    Raises:
        MonocrateError: If ``value`` is neither a keyword nor a semantic version.
    """
    if value is None:
        return None
    if value in _PARTS:
        return Increment(value)  # type: ignore[arg-type]
    if _EXPLICIT_RE.match(value):
        return Explicit(value)
    raise MonocrateError(
        code=E.VERSION_INVALID,
        message=f'Invalid version specifier: "{value}"',
        hint='Expected "patch", "minor", "major" or an explicit version such as "1.2.3".',
    )


def parse_core(version: str) -> tuple[int, int, int]:
    """Return the numeric ``(major, minor, patch)`` of ``version``."""
    match = _CORE_RE.match(version.strip())
    if match is None:
        raise MonocrateError(
            code=E.VERSION_INVALID,
            message=f'Cannot parse version "{version}"',
            hint='Versions must start with MAJOR.MINOR.PATCH.',
        )
    major, minor, patch = match.groups()
    return int(major), int(minor), int(patch)


def apply_increment(version: str, part: BumpPart) -> str:
    """Increment ``part`` of ``version`` and zero every less significant part."""
    nums = list(parse_core(version))
    index = _PARTS.index(part)
    nums[index] += 1
    for lower in range(index + 1, len(nums)):
        nums[lower] = 0
    return '.'.join(str(n) for n in nums)


async def resolve_version(
    registry: RegistryClient,
    package_name: str,
    specifier: VersionSpecifier,
) -> str:
    """Resolve ``specifier`` for ``package_name`` to a concrete version.

    Explicit versions are returned unchanged without a registry lookup.
    """
    if isinstance(specifier, Explicit):
        return specifier.value
    current = await registry.current_published_version(package_name)
    base = current or UNPUBLISHED_VERSION
    resolved = apply_increment(base, specifier.part)
    log.info('version_resolved', package=package_name, published=current, bump=specifier.part, version=resolved)
    return resolved


def _prerelease_key(pre: str) -> tuple[tuple[int, int, str], ...]:
    # Numeric identifiers compare numerically and sort below alphanumeric ones.
    return tuple((0, int(part), '') if part.isdigit() else (1, 0, part) for part in pre.split('.'))


def _sort_key(version: str) -> tuple[tuple[int, int, int], int, tuple[tuple[int, int, str], ...]]:
    # A release sorts after its pre-releases; build metadata is ignored.
    core = parse_core(version)
    rest = _CORE_RE.sub('', version.strip(), count=1).split('+', 1)[0]
    if rest.startswith('-'):
        return core, 0, _prerelease_key(rest[1:])
    return core, 1, ()


def max_version(versions: list[str]) -> str:
    """Return the greatest of ``versions`` by semver precedence."""
    return max(versions, key=_sort_key)


async def unify_versions(
    registry: RegistryClient,
    package_names: list[str],
    specifier: VersionSpecifier | None,
) -> dict[str, str]:
    """Resolve one version per package, then give every package the greatest.

    Each package's version is resolved independently (concurrently), paired
    with its package, and only then reduced, so a lookup can never be
    attributed to the wrong package.

    Returns:
        Package name to unified version; empty when ``specifier`` is ``None``.
    """
    if specifier is None or not package_names:
        return {}
    resolved = await asyncio.gather(*(resolve_version(registry, name, specifier) for name in package_names))
    paired = dict(zip(package_names, resolved, strict=True))
    unified = max_version([v for v in paired.values() if v])
    log.info('versions_unified', packages=package_names, per_package=paired, version=unified)
    return dict.fromkeys(paired, unified)


__all__ = [
    'UNPUBLISHED_VERSION',
    'BumpPart',
    'Explicit',
    'Increment',
    'VersionSpecifier',
    'apply_increment',
    'max_version',
    'parse_core',
    'parse_version_specifier',
    'resolve_version',
    'unify_versions',
]

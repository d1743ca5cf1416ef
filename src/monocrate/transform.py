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

"""Build the published ``package.json`` from a closure.

Pipeline::

    closure.third_party          {"lodash": {"app": "^4.17.0", "lib": "^4.18.0"}}
          │
          ▼
    resolve_conflicts(policy)    highest │ warn │ error
          │                      → {"lodash": "^4.18.0"}
          ▼
    drop in-repo names           "lib": "workspace:*" never leaks
          │
          ▼
    strip workspace-only fields  workspaces, private, scripts,
          │                      devDependencies, monocrate
          ▼
    inject name / version        publish-as alias, resolved version
          │
          ▼
    require name + version

Conflict policies::

    highest   greatest coercible version wins, its range text is kept
    warn      same as highest, plus a warning per conflict
    error     VersionConflictError listing every contributor
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from monocrate.catalog import Catalog
from monocrate.closure import PackageClosure
from monocrate.errors import ManifestValidationError, VersionConflictError
from monocrate.logging import get_logger
from monocrate.selector import DEPS_DIRNAME

log = get_logger('monocrate.transform')

# Fields that only make sense inside the workspace.
STRIPPED_FIELDS: frozenset[str] = frozenset({
    'workspaces',
    'private',
    'scripts',
    'devDependencies',
    'monocrate',
})

# Publish-relevant fields that are always carried over.
PRESERVED_FIELDS: frozenset[str] = frozenset({
    'name',
    'version',
    'description',
    'main',
    'module',
    'types',
    'typings',
    'type',
    'exports',
    'files',
    'bin',
    'dependencies',
    'peerDependencies',
    'peerDependenciesMeta',
    'optionalDependencies',
    'engines',
    'repository',
    'keywords',
    'author',
    'license',
    'bugs',
    'homepage',
    'publishConfig',
})

_COERCE_RE = re.compile(r'(?<!\d)(\d{1,16})(?:\.(\d{1,16}))?(?:\.(\d{1,16}))?(?!\d)')


@dataclass(frozen=True)
class VersionConflict:
    """Differing ranges requested for one third-party dependency.

    Attributes:
        name: The dependency name.
        requested: Contributor package to requested range.
        resolved: The range that won, or ``None`` under the error policy.
    """

    name: str
    requested: dict[str, str] = field(default_factory=dict)
    resolved: str | None = None


def coerce_version(spec: str) -> tuple[int, int, int] | None:
    """Extract the first ``major[.minor[.patch]]`` from a range, like ``semver.coerce``.

    ``'^4.17.0'`` gives ``(4, 17, 0)``; ``'~2'`` gives ``(2, 0, 0)``;
    ``'latest'`` gives ``None``.
    """
    match = _COERCE_RE.search(spec)
    if match is None:
        return None
    major, minor, patch = match.groups()
    return int(major), int(minor or 0), int(patch or 0)


def _highest(requested: dict[str, str]) -> str:
    """Return the range whose coerced version is greatest.

    Uncoercible ranges lose to coercible ones; ties keep the first
    contributor in name order.
    """
    best_spec: str | None = None
    best_key: tuple[int, int, int] | None = None
    for contributor in sorted(requested):
        spec = requested[contributor]
        key = coerce_version(spec)
        if best_spec is None or (key is not None and (best_key is None or key > best_key)):
            best_spec, best_key = spec, key
    assert best_spec is not None  # noqa: S101 - requested is never empty
    return best_spec


def resolve_conflicts(
    third_party: dict[str, dict[str, str]],
    policy: str,
) -> tuple[dict[str, str], list[VersionConflict]]:
    """Merge third-party ranges under ``policy``.

    Args:
        third_party: Dependency name to ``{contributor: range}``.
        policy: ``'highest'``, ``'warn'`` or ``'error'``.

    Returns:
        The merged ``{dependency: range}`` map (sorted by name) and the
        conflicts that were resolved.

    Raises:
        VersionConflictError: Under the ``error`` policy, listing every conflict.
    """
    merged: dict[str, str] = {}
    conflicts: list[VersionConflict] = []
    for dep_name in sorted(third_party):
        requested = third_party[dep_name]
        distinct = set(requested.values())
        if len(distinct) == 1:
            merged[dep_name] = next(iter(distinct))
            continue
        if policy == 'error':
            conflicts.append(VersionConflict(name=dep_name, requested=dict(requested)))
            continue
        winner = _highest(requested)
        merged[dep_name] = winner
        conflicts.append(VersionConflict(name=dep_name, requested=dict(requested), resolved=winner))
        if policy == 'warn':
            log.warning('dependency_conflict_resolved', dependency=dep_name, requested=requested, resolved=winner)
        else:
            log.debug('dependency_conflict_resolved', dependency=dep_name, requested=requested, resolved=winner)

    if policy == 'error' and conflicts:
        raise VersionConflictError(conflicts)
    return merged, conflicts


def _without_in_repo(deps: dict[str, Any], catalog: Catalog) -> dict[str, Any]:
    return {name: spec for name, spec in deps.items() if name not in catalog}


def transform_manifest(
    closure: PackageClosure,
    catalog: Catalog,
    resolved_version: str | None,
    *,
    policy: str = 'warn',
    keep_dev_dependencies: bool = False,
    strip_fields: frozenset[str] = frozenset(),
) -> dict[str, Any]:
    """Build the output manifest of ``closure``'s subject.

    Args:
        closure: The subject's closure.
        catalog: The workspace catalog, used to drop in-repo names.
        resolved_version: Version to publish; ``None`` keeps the subject's own.
        policy: Conflict policy for third-party ranges.
        keep_dev_dependencies: Keep the subject's third-party devDependencies.
        strip_fields: Extra fields to drop (publish-relevant fields are kept).

    Returns:
        The output manifest as an ordered dict.

    Raises:
        VersionConflictError: Under the ``error`` policy.
        ManifestValidationError: If ``name`` or ``version`` ends up missing.
    """
    subject = closure.subject_package
    merged, _ = resolve_conflicts(closure.third_party, policy)
    merged = _without_in_repo(merged, catalog)

    ignored = sorted(strip_fields & PRESERVED_FIELDS)
    if ignored:
        log.warning('preserved_fields_not_stripped', fields=ignored)
    stripped = STRIPPED_FIELDS | (strip_fields - PRESERVED_FIELDS)

    out: dict[str, Any] = {}
    for key, value in subject.manifest.to_dict().items():
        if key == 'devDependencies' and keep_dev_dependencies:
            dev = closure.dev_third_party.get(subject.name, {})
            if dev:
                out[key] = dict(dev)
            continue
        if key in stripped:
            continue
        if key == 'dependencies':
            if merged:
                out[key] = merged
            continue
        if key in {'peerDependencies', 'optionalDependencies'} and isinstance(value, dict):
            kept = _without_in_repo(value, catalog)
            if kept:
                out[key] = kept
            continue
        if key == 'name':
            out[key] = subject.publish_as
            if resolved_version is not None and 'version' not in subject.manifest:
                out['version'] = resolved_version
            continue
        if key == 'version' and resolved_version is not None:
            out[key] = resolved_version
            continue
        out[key] = value

    if merged and 'dependencies' not in out:
        out['dependencies'] = merged

    has_in_repo_deps = len(closure.runtime_members) > 1
    files = out.get('files')
    if has_in_repo_deps and isinstance(files, list) and DEPS_DIRNAME not in files:
        out['files'] = [*files, DEPS_DIRNAME]

    for required in ('name', 'version'):
        if not out.get(required):
            raise ManifestValidationError(
                f'Output manifest of "{subject.name}" has no "{required}"',
                hint='Pass a version specifier (--bump) or set "version" in package.json.'
                if required == 'version'
                else '',
            )

    log.debug('manifest_transformed', package=subject.name, dependencies=len(merged))
    return out


__all__ = [
    'PRESERVED_FIELDS',
    'STRIPPED_FIELDS',
    'VersionConflict',
    'coerce_version',
    'resolve_conflicts',
    'transform_manifest',
]

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

"""Dependency closure of a subject package.

Key Concepts (ELI5)::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Concept             │ ELI5 Explanation                               │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Runtime member      │ An in-repo package reachable from the subject  │
    │                     │ through "dependencies" only. Gets shipped.     │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Compile-time member │ Reachable through "dependencies" or            │
    │                     │ "devDependencies". Needed to build, not run.   │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Third-party dep     │ Any dependency name that is not an in-repo     │
    │                     │ package. Its ranges are collected per          │
    │                     │ contributor and reconciled later.              │
    └─────────────────────┴────────────────────────────────────────────────┘

Traversal::

    app ──dep──→ lib ──dep──→ util          runtime:     app, lib, util
     │                                      compiletime: app, lib, util, testkit
     └──dev──→ testkit

Both traversals use an explicit stack and visit dependency names in
sorted order, so the member lists are reproducible. A back edge in the
production-or-development graph is reported as a
:class:`~monocrate.errors.CircularDependencyError` carrying the cycle.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

from monocrate.catalog import Catalog, MonorepoPackage
from monocrate.errors import CircularDependencyError, PackageNotFoundError
from monocrate.logging import get_logger

log = get_logger('monocrate.closure')

WORKSPACE_PROTOCOL = 'workspace:'


@dataclass(frozen=True)
class PackageClosure:
    """The in-repo packages a subject needs, plus its third-party ranges.

    Attributes:
        subject: The subject package name.
        runtime_members: Subject first, then every package reachable via
            production edges, in discovery order.
        compiletime_members: Subject first, then every package reachable
            via production or development edges, in discovery order.
        third_party: Dependency name to ``{contributor: range}`` for the
            production dependencies of runtime members.
        dev_third_party: Contributor to ``{dependency: range}`` for the
            third-party development dependencies of compile-time members.
    """

    subject: str
    runtime_members: list[MonorepoPackage]
    compiletime_members: list[MonorepoPackage]
    third_party: dict[str, dict[str, str]] = field(default_factory=dict)
    dev_third_party: dict[str, dict[str, str]] = field(default_factory=dict)

    @property
    def subject_package(self) -> MonorepoPackage:
        """The subject's catalog entry."""
        return self.runtime_members[0]

    @property
    def runtime_names(self) -> list[str]:
        """Names of the runtime members."""
        return [m.name for m in self.runtime_members]

    @property
    def compiletime_names(self) -> list[str]:
        """Names of the compile-time members."""
        return [m.name for m in self.compiletime_members]


def _in_repo_edges(
    pkg: MonorepoPackage,
    catalog: Catalog,
    *,
    include_dev: bool,
) -> list[str]:
    """Return sorted in-repo dependency names of ``pkg``.

    A ``workspace:`` range that names no catalog package is an error;
    any other unknown name is third-party and not an edge.
    """
    specs = dict(pkg.manifest.dependencies)
    if include_dev:
        for name, spec in pkg.manifest.dev_dependencies.items():
            specs.setdefault(name, spec)
    edges: list[str] = []
    for name in sorted(specs):
        if name in catalog:
            edges.append(name)
        elif specs[name].startswith(WORKSPACE_PROTOCOL):
            raise PackageNotFoundError(name, required_by=pkg.name)
    return edges


def _walk(
    subject: MonorepoPackage,
    catalog: Catalog,
    edges: Callable[[MonorepoPackage], list[str]],
) -> list[MonorepoPackage]:
    """Depth-first walk from ``subject``; raise on a back edge.

    Returns the reachable packages in discovery (pre-)order, subject first.
    """
    order: list[MonorepoPackage] = [subject]
    done: set[str] = set()
    visiting: set[str] = {subject.name}
    path: list[str] = [subject.name]
    stack: list[Iterator[str]] = [iter(edges(subject))]

    while stack:
        dep_name = next(stack[-1], None)
        if dep_name is None:
            stack.pop()
            finished = path.pop()
            visiting.discard(finished)
            done.add(finished)
            continue
        if dep_name in visiting:
            cycle = [*path[path.index(dep_name) :], dep_name]
            log.error('dependency_cycle', cycle=cycle)
            raise CircularDependencyError(cycle)
        if dep_name in done:
            continue
        dep = catalog.get(dep_name)
        order.append(dep)
        visiting.add(dep_name)
        path.append(dep_name)
        stack.append(iter(edges(dep)))

    return order


def resolve_closure(subject_name: str, catalog: Catalog) -> PackageClosure:
    """Compute the dependency closure of ``subject_name``.

    Raises:
        PackageNotFoundError: If the subject or a ``workspace:``
            dependency is not in the catalog.
        CircularDependencyError: If production-or-development edges
            reachable from the subject form a cycle.
    """
    subject = catalog.get(subject_name)

    compiletime = _walk(subject, catalog, lambda p: _in_repo_edges(p, catalog, include_dev=True))
    runtime = _walk(subject, catalog, lambda p: _in_repo_edges(p, catalog, include_dev=False))

    third_party: dict[str, dict[str, str]] = {}
    for member in runtime:
        for dep_name, spec in sorted(member.manifest.dependencies.items()):
            if dep_name not in catalog:
                third_party.setdefault(dep_name, {})[member.name] = spec

    dev_third_party: dict[str, dict[str, str]] = {}
    for member in compiletime:
        dev = {n: s for n, s in sorted(member.manifest.dev_dependencies.items()) if n not in catalog}
        if dev:
            dev_third_party[member.name] = dev

    closure = PackageClosure(
        subject=subject.name,
        runtime_members=runtime,
        compiletime_members=compiletime,
        third_party=dict(sorted(third_party.items())),
        dev_third_party=dev_third_party,
    )
    log.info(
        'closure_resolved',
        subject=subject.name,
        runtime=closure.runtime_names,
        compiletime=closure.compiletime_names,
        third_party=len(third_party),
    )
    return closure


__all__ = [
    'PackageClosure',
    'resolve_closure',
]

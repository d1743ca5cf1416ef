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

"""Structured error system for monocrate.

Every error has a unique ``MC-NAMED-KEY`` code, a human-readable message,
and an optional hint with a suggested fix. Each failure kind of the
assembly pipeline has its own :class:`MonocrateError` subclass so callers
can catch precisely what they care about.

Key Concepts (ELI5)::

    ┌──────────────────────────┬───────────────────────────────────────────┐
    │ Concept                  │ ELI5 Explanation                          │
    ├──────────────────────────┼───────────────────────────────────────────┤
    │ ErrorCode                │ A unique named ID like                    │
    │                          │ "MC-CLOSURE-CYCLE" for each error.        │
    ├──────────────────────────┼───────────────────────────────────────────┤
    │ ErrorInfo                │ code + message + hint. An error card      │
    │                          │ with a fix suggestion stapled on.         │
    ├──────────────────────────┼───────────────────────────────────────────┤
    │ MonocrateError           │ The base exception. Every pipeline stage  │
    │                          │ raises a subclass of it.                  │
    ├──────────────────────────┼───────────────────────────────────────────┤
    │ explain()                │ Looks up an error code and returns the    │
    │                          │ canonical explanation.                    │
    └──────────────────────────┴───────────────────────────────────────────┘

Code categories::

    MC-CONFIG-*       monocrate.toml errors
    MC-WORKSPACE-*    Workspace discovery errors
    MC-CLOSURE-*      Dependency closure errors
    MC-RESOLVE-*      Module specifier resolution errors
    MC-REWRITE-*      Import rewriting errors
    MC-MANIFEST-*     package.json errors
    MC-VERSION-*      Version specifier / conflict errors
    MC-FS-*           File system errors
    MC-REGISTRY-*     Registry client errors

Usage::

    from monocrate.errors import E, MonocrateError

    raise MonocrateError(
        code=E.MANIFEST_INVALID,
        message='Output manifest has no version',
        hint='Pass --bump or set "version" in package.json.',
    )
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, TextIO

from rich.console import Console
from rich.markup import escape as rich_escape

if TYPE_CHECKING:
    from monocrate.transform import VersionConflict


class ErrorCode(str, Enum):
    """Enumeration of all monocrate diagnostic codes."""

    # Configuration
    CONFIG_INVALID_KEY = 'MC-CONFIG-INVALID-KEY'
    CONFIG_INVALID_VALUE = 'MC-CONFIG-INVALID-VALUE'
    CONFIG_PARSE_ERROR = 'MC-CONFIG-PARSE-ERROR'

    # Workspace discovery
    WORKSPACE_NOT_FOUND = 'MC-WORKSPACE-NOT-FOUND'
    WORKSPACE_PARSE_ERROR = 'MC-WORKSPACE-PARSE-ERROR'
    WORKSPACE_DUPLICATE_PACKAGE = 'MC-WORKSPACE-DUPLICATE-PACKAGE'
    WORKSPACE_OUTSIDE_ROOT = 'MC-WORKSPACE-OUTSIDE-ROOT'
    WORKSPACE_PUBLISH_NAME_COLLISION = 'MC-WORKSPACE-PUBLISH-NAME-COLLISION'

    # Closure
    CLOSURE_PACKAGE_NOT_FOUND = 'MC-CLOSURE-PACKAGE-NOT-FOUND'
    CLOSURE_CYCLE = 'MC-CLOSURE-CYCLE'

    # Resolution / rewriting
    RESOLVE_FAILED = 'MC-RESOLVE-FAILED'
    REWRITE_INCOMPATIBLE_FORMAT = 'MC-REWRITE-INCOMPATIBLE-FORMAT'
    REWRITE_UNDECLARED_DEPENDENCY = 'MC-REWRITE-UNDECLARED-DEPENDENCY'

    # Manifest
    MANIFEST_INVALID = 'MC-MANIFEST-INVALID'

    # Versioning
    VERSION_INVALID = 'MC-VERSION-INVALID'
    VERSION_CONFLICT = 'MC-VERSION-CONFLICT'

    # File system
    FS_ERROR = 'MC-FS-ERROR'
    FS_UNTRACKED_FILES = 'MC-FS-UNTRACKED-FILES'

    # Registry
    REGISTRY_ERROR = 'MC-REGISTRY-ERROR'
    REGISTRY_PUBLISH_FAILED = 'MC-REGISTRY-PUBLISH-FAILED'


E = ErrorCode


@dataclass(frozen=True)
class ErrorInfo:
    """Metadata for a single error code.

    Attributes:
        code: The ``MC-NAMED-KEY`` error code.
        message: Human-readable description of what went wrong.
        hint: Optional suggestion for how to fix the error.
    """

    code: ErrorCode
    message: str
    hint: str = ''


class MonocrateError(Exception):
    """Base exception for all monocrate errors.

    Args:
        code: The error code from :class:`ErrorCode`.
        message: Human-readable description of what went wrong.
        hint: Optional suggestion for how to fix the error.
    """

    def __init__(self, code: ErrorCode, message: str, hint: str = '') -> None:
        """Initialize with an error code, message, and optional hint."""
        self.info = ErrorInfo(code=code, message=message, hint=hint)
        super().__init__(f'[{code.value}] {message}')

    @property
    def code(self) -> ErrorCode:
        """The error code."""
        return self.info.code

    @property
    def message(self) -> str:
        """The human-readable message."""
        return self.info.message

    @property
    def hint(self) -> str:
        """Suggestion for fixing this error, or empty string."""
        return self.info.hint


class PackageNotFoundError(MonocrateError):
    """A package name is not present in the workspace catalog."""

    def __init__(self, name: str, *, required_by: str = '') -> None:
        """Initialize with the missing package name."""
        self.name = name
        self.required_by = required_by
        if required_by:
            message = f'Package "{name}" (required by "{required_by}") was not found in the workspace'
        else:
            message = f'Package "{name}" was not found in the workspace'
        super().__init__(
            E.CLOSURE_PACKAGE_NOT_FOUND,
            message,
            hint='Check the workspace patterns in package.json or pnpm-workspace.yaml.',
        )


class CircularDependencyError(MonocrateError):
    """The dependency graph reachable from a subject contains a cycle.

    ``cycle`` is the ordered list of package names forming the cycle,
    with the first name repeated at the end (``a -> b -> a``).
    """

    def __init__(self, cycle: list[str]) -> None:
        """Initialize with the ordered cycle."""
        self.cycle = list(cycle)
        super().__init__(
            E.CLOSURE_CYCLE,
            f'Circular dependency detected: {" -> ".join(self.cycle)}',
            hint='Break the cycle by moving shared code into a separate package.',
        )


class ManifestValidationError(MonocrateError):
    """A package.json is malformed or lacks a required field."""

    def __init__(self, message: str, hint: str = '') -> None:
        """Initialize with a message and optional hint."""
        super().__init__(E.MANIFEST_INVALID, message, hint)


class ModuleResolutionError(MonocrateError):
    """A module specifier cannot be resolved against its target package."""

    def __init__(self, message: str, hint: str = '') -> None:
        """Initialize with a message and optional hint."""
        super().__init__(E.RESOLVE_FAILED, message, hint)


class IncompatibleModuleFormatError(MonocrateError):
    """A copied file uses a module format that cannot be rewritten."""

    def __init__(self, package: str, file: str) -> None:
        """Initialize with the owning package and the offending file."""
        self.package = package
        self.file = file
        super().__init__(
            E.REWRITE_INCOMPATIBLE_FORMAT,
            f'Package "{package}" contains a CommonJS file: {file}',
            hint='Only ES modules are supported. Use the .mjs extension or set "type": "module" in package.json.',
        )


class UndeclaredDependencyError(MonocrateError):
    """A file imports an in-repo package its owner does not declare."""

    def __init__(self, importer: str, dependency: str, file: str) -> None:
        """Initialize with the importing package, the dependency and the file."""
        self.importer = importer
        self.dependency = dependency
        self.file = file
        super().__init__(
            E.REWRITE_UNDECLARED_DEPENDENCY,
            f'Import of in-repo package "{dependency}" found in {file}, '
            f'but "{dependency}" is not listed in package.json dependencies',
            hint=f'Add "{dependency}" to the dependencies of "{importer}".',
        )


class VersionConflictError(MonocrateError):
    """Closure members request different ranges for a third-party dependency."""

    def __init__(self, conflicts: list[VersionConflict]) -> None:
        """Initialize with the unresolved conflicts."""
        self.conflicts = list(conflicts)
        lines = ['Third-party dependency version conflicts detected:']
        for conflict in self.conflicts:
            lines.append(f'  {conflict.name}:')
            for contributor, spec in conflict.requested.items():
                lines.append(f'    - {spec} (required by {contributor})')
        super().__init__(
            E.VERSION_CONFLICT,
            '\n'.join(lines),
            hint='Align the ranges across packages, or use conflict_policy = "highest".',
        )


class PublishNameCollisionError(MonocrateError):
    """Two workspace packages would publish under the same external name."""

    def __init__(self, first: str, second: str, publish_name: str) -> None:
        """Initialize with the two colliding packages."""
        self.first = first
        self.second = second
        self.publish_name = publish_name
        super().__init__(
            E.WORKSPACE_PUBLISH_NAME_COLLISION,
            f'Publish name collision: both "{first}" and "{second}" would be published as "{publish_name}"',
            hint='Give each package a distinct monocrate.publishName.',
        )


class FileSystemError(MonocrateError):
    """An expected file is missing or an I/O operation failed."""

    def __init__(self, message: str, *, path: object = None, hint: str = '') -> None:
        """Initialize with a message and the path involved."""
        self.path = path
        super().__init__(E.FS_ERROR, message, hint)


class RegistryError(MonocrateError):
    """A Registry Client operation failed."""

    def __init__(
        self,
        message: str,
        *,
        status: int | str | None = None,
        detail: str = '',
        code: ErrorCode = E.REGISTRY_ERROR,
    ) -> None:
        """Initialize with a message and the registry's status and detail."""
        self.status = status
        self.detail = detail
        super().__init__(code, message, hint=detail)


ERRORS: dict[ErrorCode, ErrorInfo] = {
    E.WORKSPACE_NOT_FOUND: ErrorInfo(
        code=E.WORKSPACE_NOT_FOUND,
        message='No workspace root found above the package directory.',
        hint='The root needs a package.json with "workspaces" or a pnpm-workspace.yaml. Or pass --root.',
    ),
    E.CLOSURE_CYCLE: ErrorInfo(
        code=E.CLOSURE_CYCLE,
        message='The in-repo dependencies of the package form a cycle.',
        hint='Break the cycle by moving shared code into a separate package.',
    ),
    E.REWRITE_INCOMPATIBLE_FORMAT: ErrorInfo(
        code=E.REWRITE_INCOMPATIBLE_FORMAT,
        message='A copied file is a CommonJS module; only ES modules can be rewritten.',
        hint='Use .mjs files or set "type": "module" in the package.json of the owning package.',
    ),
    E.REWRITE_UNDECLARED_DEPENDENCY: ErrorInfo(
        code=E.REWRITE_UNDECLARED_DEPENDENCY,
        message='A file imports an in-repo package that its package.json does not declare.',
        hint='Add the imported package to "dependencies".',
    ),
    E.VERSION_CONFLICT: ErrorInfo(
        code=E.VERSION_CONFLICT,
        message='Packages in the closure request different ranges of the same dependency.',
        hint='Align the ranges, or set conflict_policy = "highest" in monocrate.toml.',
    ),
    E.VERSION_INVALID: ErrorInfo(
        code=E.VERSION_INVALID,
        message='The version specifier is neither an increment keyword nor a semantic version.',
        hint='Use "major", "minor", "patch" or an explicit version such as "1.2.3".',
    ),
}


def explain(code: str) -> str | None:
    """Return a detailed explanation for an error code.

    Args:
        code: The error code string, e.g. ``"MC-CLOSURE-CYCLE"``.

    Returns:
        A formatted explanation string, or ``None`` if the code is unknown.
    """
    try:
        error_code = ErrorCode(code)
    except ValueError:
        return None

    info = ERRORS.get(error_code)
    if info is None:
        return f'{code}: No detailed explanation available.'

    lines = [f'{code}: {info.message}']
    if info.hint:
        lines.append(f'  Hint: {info.hint}')
    return '\n'.join(lines)


def render_error(exc: MonocrateError, *, file: TextIO | None = None) -> None:
    """Render an error in Rust-compiler style with color.

    Output format::

        error[MC-CLOSURE-CYCLE]: Circular dependency detected: a -> b -> a
          |
          = hint: Break the cycle by moving shared code into a separate package.

    Args:
        exc: The error to render.
        file: Output stream (defaults to ``sys.stderr``).
    """
    out = file or sys.stderr

    if out.isatty():
        console = Console(file=out, highlight=False)
        msg = rich_escape(exc.info.message)
        console.print(
            f'[bold red]error[/bold red][bold red]\\[{exc.code.value}][/bold red][bold]: {msg}[/bold]',
        )
        if exc.hint:
            console.print('  [dim]|[/dim]')
            console.print(f'  [dim]=[/dim] [cyan]hint[/cyan]: {rich_escape(exc.hint)}')
        console.print()
    else:
        print(f'error[{exc.code.value}]: {exc.info.message}', file=out)  # noqa: T201 - CLI output
        if exc.hint:
            print('  |', file=out)  # noqa: T201 - CLI output
            print(f'  = hint: {exc.hint}', file=out)  # noqa: T201 - CLI output
        print(file=out)  # noqa: T201 - CLI output


__all__ = [
    'ERRORS',
    'CircularDependencyError',
    'E',
    'ErrorCode',
    'ErrorInfo',
    'FileSystemError',
    'IncompatibleModuleFormatError',
    'ManifestValidationError',
    'ModuleResolutionError',
    'MonocrateError',
    'PackageNotFoundError',
    'PublishNameCollisionError',
    'RegistryError',
    'UndeclaredDependencyError',
    'VersionConflictError',
    'explain',
    'render_error',
]

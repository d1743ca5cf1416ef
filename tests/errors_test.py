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

"""Tests for monocrate.errors module."""

from __future__ import annotations

import io

import pytest
from monocrate.errors import (
    ERRORS,
    CircularDependencyError,
    E,
    ErrorCode,
    FileSystemError,
    IncompatibleModuleFormatError,
    MonocrateError,
    PackageNotFoundError,
    RegistryError,
    UndeclaredDependencyError,
    VersionConflictError,
    explain,
    render_error,
)
from monocrate.transform import VersionConflict


class TestErrorCode:
    """Tests for ErrorCode enum."""

    def test_all_codes_have_mc_prefix(self) -> None:
        """Every error code must start with 'MC-'."""
        for code in ErrorCode:
            assert code.value.startswith('MC-'), f'{code.name} does not start with MC-'

    def test_no_duplicate_values(self) -> None:
        """Error code values must be unique."""
        values = [c.value for c in ErrorCode]
        assert len(values) == len(set(values))

    def test_e_alias(self) -> None:
        """E is an alias for ErrorCode."""
        assert E is ErrorCode


class TestMonocrateError:
    """Tests for the base exception."""

    def test_str_includes_code(self) -> None:
        """str() carries the code and the message."""
        exc = MonocrateError(E.FS_ERROR, 'disk full', hint='free some space')
        assert str(exc) == '[MC-FS-ERROR] disk full'
        assert exc.code is E.FS_ERROR
        assert exc.message == 'disk full'
        assert exc.hint == 'free some space'

    def test_subclasses_are_monocrate_errors(self) -> None:
        """Every specific error can be caught as MonocrateError."""
        with pytest.raises(MonocrateError):
            raise PackageNotFoundError('ghost')


class TestSpecificErrors:
    """Tests for the messages of specific errors."""

    def test_cycle_message(self) -> None:
        """The cycle is spelled out with arrows."""
        exc = CircularDependencyError(['a', 'b', 'a'])
        assert exc.cycle == ['a', 'b', 'a']
        assert exc.message == 'Circular dependency detected: a -> b -> a'
        assert exc.code is E.CLOSURE_CYCLE

    def test_package_not_found_with_requirer(self) -> None:
        """The requiring package is named."""
        exc = PackageNotFoundError('ghost', required_by='app')
        assert '"ghost"' in exc.message
        assert '"app"' in exc.message

    def test_undeclared_dependency_message(self) -> None:
        """The message names the dependency and the file."""
        exc = UndeclaredDependencyError('app', 'lib', 'packages/app/dist/index.js')
        assert exc.message == (
            'Import of in-repo package "lib" found in packages/app/dist/index.js, '
            'but "lib" is not listed in package.json dependencies'
        )

    def test_incompatible_format_names_file(self) -> None:
        """The offending file appears in the message."""
        exc = IncompatibleModuleFormatError('lib', 'packages/lib/dist/index.cjs')
        assert 'packages/lib/dist/index.cjs' in exc.message
        assert exc.code is E.REWRITE_INCOMPATIBLE_FORMAT

    def test_version_conflict_lists_contributors(self) -> None:
        """Each contributor's range is listed under the dependency."""
        exc = VersionConflictError([VersionConflict('lodash', {'app': '^4.17.0', 'lib': '^4.18.0'})])
        lines = exc.message.splitlines()
        assert lines[0] == 'Third-party dependency version conflicts detected:'
        assert '  lodash:' in lines
        assert '    - ^4.17.0 (required by app)' in lines
        assert '    - ^4.18.0 (required by lib)' in lines

    def test_registry_error_carries_status(self) -> None:
        """Status and detail are kept; detail doubles as the hint."""
        exc = RegistryError('nope', status='E403', detail='forbidden')
        assert exc.status == 'E403'
        assert exc.hint == 'forbidden'
        assert exc.code is E.REGISTRY_ERROR

    def test_file_system_error_keeps_path(self) -> None:
        """The failing path is available to callers."""
        exc = FileSystemError('missing', path='dist/index.js')
        assert exc.path == 'dist/index.js'


class TestExplain:
    """Tests for explain()."""

    def test_known_code(self) -> None:
        """A catalogued code returns its message and hint."""
        result = explain('MC-CLOSURE-CYCLE')
        assert result is not None
        assert result.startswith('MC-CLOSURE-CYCLE: ')
        assert 'Hint:' in result

    def test_uncatalogued_code(self) -> None:
        """A valid code without an entry gets a generic line."""
        assert E.FS_ERROR not in ERRORS
        assert explain('MC-FS-ERROR') == 'MC-FS-ERROR: No detailed explanation available.'

    def test_unknown_code(self) -> None:
        """Unknown codes return None."""
        assert explain('MC-NOPE') is None


class TestRenderError:
    """Tests for render_error() on a non-terminal stream."""

    def test_plain_output(self) -> None:
        """Message and hint are printed compiler-style."""
        out = io.StringIO()
        render_error(MonocrateError(E.VERSION_INVALID, 'bad version', hint='use 1.2.3'), file=out)
        text = out.getvalue()
        assert text.startswith('error[MC-VERSION-INVALID]: bad version\n')
        assert '  = hint: use 1.2.3' in text

    def test_no_hint(self) -> None:
        """The hint block is omitted when there is no hint."""
        out = io.StringIO()
        render_error(MonocrateError(E.FS_ERROR, 'boom'), file=out)
        assert 'hint' not in out.getvalue()

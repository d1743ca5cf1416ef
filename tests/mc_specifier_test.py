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

"""Tests for monocrate.specifier module."""

from __future__ import annotations

from typing import Any

import pytest
from monocrate.errors import ModuleResolutionError
from monocrate.manifest import PackageManifest
from monocrate.specifier import resolve_specifier, split_specifier


def _pkg(**fields: Any) -> PackageManifest:  # noqa: ANN401
    return PackageManifest({'name': 'lib', **fields})


class TestSplitSpecifier:
    """Tests for split_specifier()."""

    @pytest.mark.parametrize(
        ('specifier', 'expected'),
        [
            ('lib', ('lib', '')),
            ('lib/utils/x', ('lib', 'utils/x')),
            ('@org/lib', ('@org/lib', '')),
            ('@org/lib/a/b', ('@org/lib', 'a/b')),
        ],
    )
    def test_split(self, specifier: str, expected: tuple[str, str]) -> None:
        """Scoped names keep their scope."""
        assert split_specifier(specifier) == expected


class TestFallbacks:
    """Resolution without an exports field."""

    def test_main(self) -> None:
        """The bare import uses main."""
        assert resolve_specifier(_pkg(main='dist/index.js'), '') == 'dist/index.js'

    def test_main_normalized(self) -> None:
        """A ./ prefix on main is dropped."""
        assert resolve_specifier(_pkg(main='./dist/index.js'), '') == 'dist/index.js'

    def test_index_default(self) -> None:
        """No main falls back to index.js."""
        assert resolve_specifier(_pkg(), '') == 'index.js'

    def test_subpath_appends_js(self) -> None:
        """Subpaths without exports resolve to <subpath>.js."""
        assert resolve_specifier(_pkg(main='dist/index.js'), 'utils/helper') == 'utils/helper.js'


class TestExports:
    """Resolution through the exports field."""

    def test_string(self) -> None:
        """A string export is the bare entry point."""
        assert resolve_specifier(_pkg(exports='./dist/main.js', main='other.js'), '') == 'dist/main.js'

    def test_conditions_in_key_order(self) -> None:
        """The first accepted condition in key order wins; types is ignored."""
        exports = {'types': './dist/index.d.ts', 'import': './dist/index.mjs', 'default': './dist/index.js'}
        assert resolve_specifier(_pkg(exports=exports), '') == 'dist/index.mjs'

    def test_nested_conditions(self) -> None:
        """Conditions can nest."""
        exports = {'.': {'node': {'import': './dist/node.mjs'}, 'default': './dist/browser.js'}}
        assert resolve_specifier(_pkg(exports=exports), '') == 'dist/node.mjs'

    def test_require_only_is_unresolvable(self) -> None:
        """An export with only a require condition cannot be imported."""
        exports = {'.': {'require': './dist/index.cjs'}}
        with pytest.raises(ModuleResolutionError):
            resolve_specifier(_pkg(exports=exports), '')

    def test_subpath_exact(self) -> None:
        """An exact subpath key matches."""
        exports = {'.': './dist/index.js', './utils': './dist/utils/index.js'}
        assert resolve_specifier(_pkg(exports=exports), 'utils') == 'dist/utils/index.js'

    def test_subpath_pattern(self) -> None:
        """A * pattern substitutes the matched text."""
        exports = {'./*': './dist/*.js', './internal/*': None}
        assert resolve_specifier(_pkg(exports=exports), 'a/b') == 'dist/a/b.js'

    def test_most_specific_pattern_wins(self) -> None:
        """The pattern with the longest prefix is chosen."""
        exports = {'./*': './dist/*.js', './features/*': './dist/features/*/index.js'}
        assert resolve_specifier(_pkg(exports=exports), 'features/x') == 'dist/features/x/index.js'

    def test_null_target_is_unresolvable(self) -> None:
        """A null target excludes the subpath."""
        exports = {'./*': './dist/*.js', './internal/*': None}
        with pytest.raises(ModuleResolutionError):
            resolve_specifier(_pkg(exports=exports), 'internal/secret')

    def test_array_takes_first(self) -> None:
        """Array targets resolve to the first usable entry without probing."""
        exports = {'.': [{'require': './a.cjs'}, './b.js', './c.js']}
        assert resolve_specifier(_pkg(exports=exports), '') == 'b.js'

    def test_unmatched_subpath_falls_back(self) -> None:
        """A subpath missing from exports falls back to <subpath>.js."""
        exports = {'.': './dist/index.js'}
        assert resolve_specifier(_pkg(exports=exports), 'extra') == 'extra.js'

    def test_folder_mapping(self) -> None:
        """Legacy trailing-slash keys map whole folders."""
        exports = {'./lib/': './dist/lib/'}
        assert resolve_specifier(_pkg(exports=exports), 'lib/x.js') == 'dist/lib/x.js'

    def test_invalid_target(self) -> None:
        """Targets must be ./-relative."""
        with pytest.raises(ModuleResolutionError):
            resolve_specifier(_pkg(exports='dist/index.js'), '')

    def test_mixed_keys(self) -> None:
        """Subpath and condition keys cannot share a level."""
        with pytest.raises(ModuleResolutionError):
            resolve_specifier(_pkg(exports={'.': './a.js', 'import': './b.js'}), '')

    def test_custom_conditions(self) -> None:
        """Callers may pass their own condition set."""
        exports = {'require': './dist/index.cjs', 'import': './dist/index.mjs'}
        assert resolve_specifier(_pkg(exports=exports), '', conditions={'require'}) == 'dist/index.cjs'

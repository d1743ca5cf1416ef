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

"""Tests for monocrate.config module."""

from __future__ import annotations

from pathlib import Path

import pytest
from monocrate.config import CONFIG_FILENAME, MonocrateConfig, load_config, validate_conflict_policy
from monocrate.errors import E, MonocrateError


def _write(root: Path, text: str) -> Path:
    (root / CONFIG_FILENAME).write_text(text, encoding='utf-8')
    return root


class TestLoadConfig:
    """Tests for load_config()."""

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        """No monocrate.toml means default settings."""
        config = load_config(tmp_path)
        assert config == MonocrateConfig()
        assert config.conflict_policy == 'warn'
        assert config.default_bump == 'minor'
        assert config.registry_url is None

    def test_reads_values(self, tmp_path: Path) -> None:
        """Valid keys are read and typed."""
        _write(
            tmp_path,
            'conflict_policy = "error"\n'
            'registry_url = "http://localhost:4873"\n'
            'keep_dev_dependencies = true\n'
            'strip_fields = ["eslintConfig", "jest"]\n'
            'http_timeout = 5\n',
        )
        config = load_config(tmp_path)
        assert config.conflict_policy == 'error'
        assert config.registry_url == 'http://localhost:4873'
        assert config.keep_dev_dependencies is True
        assert config.strip_fields == ['eslintConfig', 'jest']
        assert config.http_timeout == 5.0
        assert isinstance(config.http_timeout, float)
        assert config.config_path == tmp_path / CONFIG_FILENAME

    def test_unknown_key_suggests_fix(self, tmp_path: Path) -> None:
        """A typo gets a 'Did you mean' hint."""
        _write(tmp_path, 'conflict_polcy = "warn"\n')
        with pytest.raises(MonocrateError) as exc_info:
            load_config(tmp_path)
        assert exc_info.value.code is E.CONFIG_INVALID_KEY
        assert "Did you mean 'conflict_policy'?" in exc_info.value.hint

    def test_wrong_type(self, tmp_path: Path) -> None:
        """A string where a bool belongs is rejected."""
        _write(tmp_path, 'include_npmrc = "yes"\n')
        with pytest.raises(MonocrateError) as exc_info:
            load_config(tmp_path)
        assert exc_info.value.code is E.CONFIG_INVALID_VALUE

    def test_bool_is_not_a_number(self, tmp_path: Path) -> None:
        """Booleans are rejected for numeric keys."""
        _write(tmp_path, 'http_timeout = true\n')
        with pytest.raises(MonocrateError):
            load_config(tmp_path)

    def test_bad_policy(self, tmp_path: Path) -> None:
        """Unknown conflict policies are rejected."""
        _write(tmp_path, 'conflict_policy = "lowest"\n')
        with pytest.raises(MonocrateError) as exc_info:
            load_config(tmp_path)
        assert exc_info.value.code is E.CONFIG_INVALID_VALUE

    def test_non_string_strip_field(self, tmp_path: Path) -> None:
        """strip_fields entries must be strings."""
        _write(tmp_path, 'strip_fields = ["jest", 3]\n')
        with pytest.raises(MonocrateError):
            load_config(tmp_path)

    def test_parse_error(self, tmp_path: Path) -> None:
        """Malformed TOML is reported as a parse error."""
        _write(tmp_path, 'conflict_policy = \n')
        with pytest.raises(MonocrateError) as exc_info:
            load_config(tmp_path)
        assert exc_info.value.code is E.CONFIG_PARSE_ERROR


class TestValidateConflictPolicy:
    """Tests for validate_conflict_policy()."""

    @pytest.mark.parametrize('policy', ['highest', 'warn', 'error'])
    def test_valid(self, policy: str) -> None:
        """Known policies are returned unchanged."""
        assert validate_conflict_policy(policy) == policy

    def test_invalid(self) -> None:
        """Anything else raises."""
        with pytest.raises(MonocrateError):
            validate_conflict_policy('random')

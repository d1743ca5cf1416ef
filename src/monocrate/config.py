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

"""Configuration reader for monocrate.

Reads an optional ``monocrate.toml`` from the repository root and returns
a validated :class:`MonocrateConfig`. All keys are flat and optional;
command-line flags override whatever the file says.

Validation Pipeline::

    monocrate.toml
    ┌──────────────────────┐
    │ conflict_polcy = ... │  ← typo!
    └──────────┬───────────┘
               │
               ▼
    ┌──────────────────┐     ┌──────────────────────────────┐
    │ 1. Unknown key   │────→│ MC-CONFIG-INVALID-KEY:       │
    │    detection     │     │ hint: "Did you mean          │
    └────────┬─────────┘     │       'conflict_policy'?"    │
             │               └──────────────────────────────┘
             ▼
    ┌──────────────────┐     ┌──────────────────────────────┐
    │ 2. Type check    │────→│ MC-CONFIG-INVALID-VALUE      │
    └────────┬─────────┘     └──────────────────────────────┘
             ▼
    ┌──────────────────┐     ┌──────────────────────────────┐
    │ 3. Value check   │────→│ conflict_policy must be one  │
    └────────┬─────────┘     │ of highest / warn / error    │
             ▼               └──────────────────────────────┘
    ┌──────────────────┐
    │ MonocrateConfig  │
    └──────────────────┘

Supported keys::

    conflict_policy       = "warn"                        # highest | warn | error
    default_bump          = "minor"                       # major | minor | patch | X.Y.Z
    registry_url          = "http://localhost:4873"       # default: public npm
    include_npmrc         = true                          # copy .npmrc into the output
    keep_dev_dependencies = false                         # keep the subject's devDependencies
    strip_fields          = ["eslintConfig"]              # extra manifest fields to drop
    npm_command           = "npm"
    http_timeout          = 30.0
"""

from __future__ import annotations

import difflib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomlkit
import tomlkit.exceptions

from monocrate.errors import E, MonocrateError
from monocrate.logging import get_logger

logger = get_logger(__name__)

CONFIG_FILENAME = 'monocrate.toml'

CONFLICT_POLICIES: frozenset[str] = frozenset({'highest', 'warn', 'error'})

VALID_KEYS: frozenset[str] = frozenset({
    'conflict_policy',
    'default_bump',
    'registry_url',
    'include_npmrc',
    'keep_dev_dependencies',
    'strip_fields',
    'npm_command',
    'http_timeout',
})

_TYPE_MAP: dict[str, type | tuple[type, ...]] = {
    'conflict_policy': str,
    'default_bump': str,
    'registry_url': str,
    'include_npmrc': bool,
    'keep_dev_dependencies': bool,
    'strip_fields': list,
    'npm_command': str,
    'http_timeout': (int, float),
}


@dataclass(frozen=True)
class MonocrateConfig:
    """Validated monocrate settings.

    Attributes:
        conflict_policy: How differing third-party ranges are reconciled.
        default_bump: Version specifier used when none is given.
        registry_url: npm registry URL; public npm (and npm's own config
            for publishing) when unset.
        include_npmrc: Copy a package's ``.npmrc`` into the output.
        keep_dev_dependencies: Keep the subject's third-party
            ``devDependencies`` in the output manifest.
        strip_fields: Extra manifest fields to drop.
        npm_command: Executable used for ``pack`` and ``publish``.
        http_timeout: Registry HTTP timeout in seconds.
        config_path: The file the settings came from, if any.
    """

    conflict_policy: str = 'warn'
    default_bump: str = 'minor'
    registry_url: str | None = None
    include_npmrc: bool = True
    keep_dev_dependencies: bool = False
    strip_fields: list[str] = field(default_factory=list)
    npm_command: str = 'npm'
    http_timeout: float = 30.0
    config_path: Path | None = None


def _suggest_key(unknown: str) -> str | None:
    """Return the closest valid key for a typo, or None."""
    matches = difflib.get_close_matches(unknown, VALID_KEYS, n=1, cutoff=0.6)
    return matches[0] if matches else None


def _validate_value_type(key: str, value: Any) -> None:  # noqa: ANN401 - dynamic config values
    """Raise if a config value has the wrong type."""
    expected = _TYPE_MAP[key]
    # bool is an int subclass; reject it for numeric keys.
    if isinstance(value, bool) and expected != bool:
        ok = False
    else:
        ok = isinstance(value, expected)
    if not ok:
        type_name = expected.__name__ if isinstance(expected, type) else 'number'
        raise MonocrateError(
            code=E.CONFIG_INVALID_VALUE,
            message=f"'{key}' must be {type_name}, got {type(value).__name__}",
            hint=f'Check the value of {key} in {CONFIG_FILENAME}.',
        )


def validate_conflict_policy(value: str) -> str:
    """Return ``value`` if it names a conflict policy, else raise."""
    if value not in CONFLICT_POLICIES:
        raise MonocrateError(
            code=E.CONFIG_INVALID_VALUE,
            message=f"conflict_policy must be one of {sorted(CONFLICT_POLICIES)}, got '{value}'",
            hint="Use 'highest' to pick the greatest range silently, 'warn' to also log it, or 'error' to fail.",
        )
    return value


def load_config(repo_root: Path) -> MonocrateConfig:
    """Load and validate ``monocrate.toml`` from ``repo_root``.

    A missing file yields the defaults.

    Raises:
        MonocrateError: If the file cannot be parsed or holds invalid settings.
    """
    config_path = repo_root / CONFIG_FILENAME
    if not config_path.is_file():
        logger.debug('no_monocrate_config', path=str(config_path))
        return MonocrateConfig()

    try:
        text = config_path.read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as exc:
        raise MonocrateError(
            code=E.CONFIG_PARSE_ERROR,
            message=f'Failed to read {config_path}: {exc}',
        ) from exc

    try:
        doc = tomlkit.parse(text)
    except tomlkit.exceptions.TOMLKitError as exc:
        raise MonocrateError(
            code=E.CONFIG_PARSE_ERROR,
            message=f'Failed to parse {config_path}: {exc}',
        ) from exc

    raw: dict[str, Any] = doc.unwrap()

    for key in raw:
        if key not in VALID_KEYS:
            suggestion = _suggest_key(key)
            raise MonocrateError(
                code=E.CONFIG_INVALID_KEY,
                message=f"Unknown key '{key}' in {CONFIG_FILENAME}",
                hint=f"Did you mean '{suggestion}'?" if suggestion else f'Valid keys: {", ".join(sorted(VALID_KEYS))}',
            )

    for key, value in raw.items():
        _validate_value_type(key, value)

    if 'conflict_policy' in raw:
        validate_conflict_policy(raw['conflict_policy'])
    if 'strip_fields' in raw:
        for item in raw['strip_fields']:
            if not isinstance(item, str):
                raise MonocrateError(
                    code=E.CONFIG_INVALID_VALUE,
                    message=f"strip_fields entries must be strings, got {type(item).__name__}",
                )
    if 'http_timeout' in raw:
        raw['http_timeout'] = float(raw['http_timeout'])

    logger.debug('loaded_monocrate_config', path=str(config_path), keys=sorted(raw))
    return MonocrateConfig(**raw, config_path=config_path)


__all__ = [
    'CONFIG_FILENAME',
    'CONFLICT_POLICIES',
    'VALID_KEYS',
    'MonocrateConfig',
    'load_config',
    'validate_conflict_policy',
]

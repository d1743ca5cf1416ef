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

"""Rewrite in-repo import specifiers inside copied build output.

Key Concepts (ELI5)::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Concept             │ ELI5 Explanation                               │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Specifier           │ The string after "from" or inside import().    │
    │                     │ 'lib', 'lib/utils', './local.js'.              │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Rewriting           │ import { x } from 'lib'                        │
    │                     │   becomes                                      │
    │                     │ import { x } from './deps/lib/dist/index.js'   │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Format check        │ Only ES modules can be rewritten this way.     │
    │                     │ .cjs files, and .js files of packages without  │
    │                     │ "type": "module", are rejected up front.       │
    └─────────────────────┴────────────────────────────────────────────────┘

Which files are touched::

    .js  .mjs  .d.ts  .d.mts     scanned and rewritten
    .cjs .d.cts                  IncompatibleModuleFormatError
    .js without "type": "module" IncompatibleModuleFormatError
    everything else              copied verbatim

Specifiers are found with a small lexer that understands comments,
string and template literals, and regular expression literals, so text
such as ``// import x from 'lib'`` or ``"from 'lib'"`` is never
rewritten. Recognized forms are ``import ... from 's'``, ``import 's'``,
``export ... from 's'`` and ``import('s')`` (also in type positions of
declaration files). A dynamic import whose argument is computed
(``import(name)``, ``import(`./${x}.js`)``) is left as it is.
"""

from __future__ import annotations

import asyncio
import posixpath
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from monocrate._io import read_file, write_file
from monocrate.catalog import Catalog
from monocrate.errors import (
    IncompatibleModuleFormatError,
    ModuleResolutionError,
    UndeclaredDependencyError,
)
from monocrate.logging import get_logger
from monocrate.selector import PackageLocation
from monocrate.specifier import resolve_specifier, split_specifier

log = get_logger('monocrate.rewriter')

_ALWAYS_ESM = ('.mjs', '.d.mts', '.d.ts')
_ALWAYS_CJS = ('.cjs', '.d.cts')
_TYPE_DEPENDENT = ('.js',)

# After these keywords a "/" starts a regular expression, not a division.
_REGEX_AFTER_KEYWORDS = frozenset({
    'return',
    'typeof',
    'instanceof',
    'in',
    'of',
    'new',
    'delete',
    'void',
    'throw',
    'case',
    'do',
    'else',
    'yield',
    'await',
})
_REGEX_AFTER_PUNCT_EXCLUDED = frozenset({')', ']', '}'})
# A ")" closing the head of one of these starts a statement, so a "/" after it is a regex.
_CONTROL_HEAD_KEYWORDS = frozenset({'if', 'while', 'for', 'with'})


@dataclass(frozen=True)
class _Token:
    kind: str  # ident | string | template | template_part | number | punct | regex
    value: str
    start: int
    end: int


@dataclass(frozen=True)
class SpecifierSite:
    """A string literal holding a module specifier.

    ``start``/``end`` span the literal including its quotes.
    """

    specifier: str
    start: int
    end: int
    quote: str


def _is_ident_start(ch: str) -> bool:
    return ch.isalpha() or ch in '_$' or ord(ch) > 127


def _is_ident_part(ch: str) -> bool:
    return ch.isalnum() or ch in '_$' or ord(ch) > 127


class _Lexer:
    """Just enough of a JavaScript tokenizer to find import specifiers."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        # 'template' marks a "${" whose "}" resumes a template literal.
        self.braces: list[str] = []
        # Per open "(": whether it opened an if/while/for/with head.
        self.parens: list[bool] = []
        self.closed_control_head = False
        self.prev: _Token | None = None

    def tokens(self) -> Iterator[_Token]:
        text = self.text
        n = len(text)
        while self.pos < n:
            ch = text[self.pos]
            if ch.isspace():
                self.pos += 1
                continue
            if text.startswith('//', self.pos):
                end = text.find('\n', self.pos)
                self.pos = n if end == -1 else end
                continue
            if text.startswith('/*', self.pos):
                end = text.find('*/', self.pos + 2)
                self.pos = n if end == -1 else end + 2
                continue
            token = self._next_token(ch)
            self.prev = token
            yield token

    def _next_token(self, ch: str) -> _Token:
        start = self.pos
        if ch in '\'"':
            return self._string(ch)
        if ch == '`':
            return self._template(start, start + 1)
        if ch == '}' and self.braces and self.braces[-1] == 'template':
            self.braces.pop()
            return self._template(start, start + 1)
        if ch == '{':
            self.braces.append('brace')
            self.pos += 1
            return _Token('punct', ch, start, self.pos)
        if ch == '}':
            if self.braces:
                self.braces.pop()
            self.pos += 1
            return _Token('punct', ch, start, self.pos)
        if _is_ident_start(ch):
            end = start + 1
            while end < len(self.text) and _is_ident_part(self.text[end]):
                end += 1
            self.pos = end
            return _Token('ident', self.text[start:end], start, end)
        if ch.isdigit():
            end = start + 1
            while end < len(self.text) and (_is_ident_part(self.text[end]) or self.text[end] == '.'):
                end += 1
            self.pos = end
            return _Token('number', self.text[start:end], start, end)
        if ch == '/' and self._regex_allowed():
            return self._regex(start)
        if ch == '(':
            prev = self.prev
            self.parens.append(prev is not None and prev.kind == 'ident' and prev.value in _CONTROL_HEAD_KEYWORDS)
        elif ch == ')':
            self.closed_control_head = self.parens.pop() if self.parens else False
        self.pos += 1
        return _Token('punct', ch, start, self.pos)

    def _regex_allowed(self) -> bool:
        prev = self.prev
        if prev is None:
            return True
        if prev.kind == 'punct':
            if prev.value == ')':
                return self.closed_control_head
            return prev.value not in _REGEX_AFTER_PUNCT_EXCLUDED
        if prev.kind == 'ident':
            return prev.value in _REGEX_AFTER_KEYWORDS
        return False

    def _string(self, quote: str) -> _Token:
        text = self.text
        start = self.pos
        i = start + 1
        while i < len(text) and text[i] != quote and text[i] != '\n':
            i += 2 if text[i] == '\\' else 1
        end = min(i + 1, len(text))
        self.pos = end
        return _Token('string', text[start + 1 : min(i, len(text))], start, end)

    def _template(self, token_start: int, body_start: int) -> _Token:
        """Read template text up to the closing backtick or the next ``${``."""
        text = self.text
        i = body_start
        while i < len(text):
            if text[i] == '\\':
                i += 2
                continue
            if text[i] == '`':
                self.pos = i + 1
                whole = text[token_start] == '`'
                return _Token('template' if whole else 'template_part', text[body_start:i], token_start, i + 1)
            if text.startswith('${', i):
                self.braces.append('template')
                self.pos = i + 2
                return _Token('template_part', text[body_start:i], token_start, i + 2)
            i += 1
        self.pos = len(text)
        return _Token('template_part', text[body_start:], token_start, len(text))

    def _regex(self, start: int) -> _Token:
        text = self.text
        i = start + 1
        in_class = False
        while i < len(text) and text[i] != '\n':
            c = text[i]
            if c == '\\':
                i += 2
                continue
            if c == '[':
                in_class = True
            elif c == ']':
                in_class = False
            elif c == '/' and not in_class:
                break
            i += 1
        i += 1
        while i < len(text) and _is_ident_part(text[i]):
            i += 1
        self.pos = min(i, len(text))
        return _Token('regex', text[start : self.pos], start, self.pos)


def _site(token: _Token, text: str) -> SpecifierSite:
    return SpecifierSite(token.value, token.start, token.end, text[token.start])


def _is_literal(token: _Token | None) -> bool:
    return token is not None and token.kind in {'string', 'template'}


def find_specifiers(text: str) -> list[SpecifierSite]:
    """Return every static, re-export and dynamic import specifier in ``text``."""
    tokens = list(_Lexer(text).tokens())
    sites: list[SpecifierSite] = []

    def at(index: int) -> _Token | None:
        return tokens[index] if 0 <= index < len(tokens) else None

    def is_punct(token: _Token | None, value: str) -> bool:
        return token is not None and token.kind == 'punct' and token.value == value

    def is_ident(token: _Token | None, value: str) -> bool:
        return token is not None and token.kind == 'ident' and token.value == value

    def from_clause(index: int) -> None:
        if is_ident(at(index), 'from') and _is_literal(at(index + 1)):
            sites.append(_site(tokens[index + 1], text))

    for k, token in enumerate(tokens):
        if token.kind != 'ident' or token.value not in {'import', 'export'}:
            continue
        if is_punct(at(k - 1), '.'):
            continue
        nxt = at(k + 1)

        if token.value == 'import':
            if is_punct(nxt, '('):
                arg = at(k + 2)
                if _is_literal(arg) and (is_punct(at(k + 3), ')') or is_punct(at(k + 3), ',')):
                    sites.append(_site(arg, text))
                else:
                    log.debug('computed_import_skipped', offset=token.start)
                continue
            if is_punct(nxt, '.'):
                continue
            if _is_literal(nxt):
                sites.append(_site(nxt, text))
                continue
            j = k + 1
            while j < len(tokens):
                cur = tokens[j]
                if cur.kind == 'punct' and cur.value in {';', '=', '('}:
                    break
                if cur.kind == 'ident' and cur.value in {'import', 'export'}:
                    break
                if is_ident(cur, 'from') and _is_literal(at(j + 1)):
                    from_clause(j)
                    break
                j += 1
            continue

        j = k + 1
        if is_ident(at(j), 'type'):
            j += 1
        if is_punct(at(j), '*'):
            j += 1
            if is_ident(at(j), 'as'):
                j += 2
            from_clause(j)
        elif is_punct(at(j), '{'):
            depth = 0
            while j < len(tokens):
                if is_punct(tokens[j], '{'):
                    depth += 1
                elif is_punct(tokens[j], '}'):
                    depth -= 1
                    if depth == 0:
                        break
                j += 1
            from_clause(j + 1)

    return sites


def module_kind(file_name: str) -> str | None:
    """Classify a file name: ``'esm'``, ``'cjs'``, ``'js'`` (type-dependent) or ``None``."""
    if file_name.endswith(_ALWAYS_CJS):
        return 'cjs'
    if file_name.endswith(_ALWAYS_ESM):
        return 'esm'
    if file_name.endswith(_TYPE_DEPENDENT):
        return 'js'
    return None


def _is_external(specifier: str) -> bool:
    return specifier.startswith(('.', '/')) or ':' in specifier or not specifier


def relative_specifier(from_dir: Path, target: Path) -> str:
    """Return a ``./``- or ``../``-prefixed POSIX path from ``from_dir`` to ``target``."""
    rel = posixpath.relpath(target.as_posix(), from_dir.as_posix())
    return rel if rel.startswith('.') else f'./{rel}'


class ImportRewriter:
    """Rewrites in-repo specifiers of copied files to relative paths.

    Args:
        locations: Placement of every runtime member of the closure.
        catalog: The workspace catalog, used to tell in-repo names apart
            from third-party ones.
    """

    def __init__(self, locations: list[PackageLocation], catalog: Catalog) -> None:
        """Initialize with the closure's locations."""
        self._by_name = {loc.name: loc for loc in locations}
        # Longest destination first so files under deps/ map to their package.
        self._by_depth = sorted(locations, key=lambda loc: len(loc.to_dir.parts), reverse=True)
        self._catalog = catalog

    def owner_of(self, path: Path) -> PackageLocation:
        """Return the location whose destination directory contains ``path``."""
        for loc in self._by_depth:
            if path.is_relative_to(loc.to_dir):
                return loc
        raise ModuleResolutionError(f'{path} does not belong to any assembled package')

    def repo_path(self, path: Path) -> str:
        """Map an output path back to its repo-relative source path."""
        owner = self.owner_of(path)
        rel = path.relative_to(owner.to_dir).as_posix()
        return posixpath.join(owner.path_in_repo, rel) if owner.path_in_repo != '.' else rel

    def validate_formats(self, files: list[Path]) -> list[Path]:
        """Reject CommonJS files; return the files that need scanning."""
        rewritable: list[Path] = []
        for path in files:
            kind = module_kind(path.name)
            if kind is None:
                continue
            owner = self.owner_of(path)
            if kind == 'cjs' or (kind == 'js' and not owner.manifest.is_esm):
                log.error('incompatible_module_format', package=owner.name, file=self.repo_path(path))
                raise IncompatibleModuleFormatError(owner.name, self.repo_path(path))
            rewritable.append(path)
        return rewritable

    def rewrite_text(self, text: str, path: Path) -> str:
        """Return ``text`` (the contents of ``path``) with in-repo specifiers rewritten."""
        owner = self.owner_of(path)
        sites = find_specifiers(text)

        declared = owner.manifest.dependencies
        pieces: list[str] = []
        last = 0
        for site in sites:
            if _is_external(site.specifier):
                continue
            dep_name, subpath = split_specifier(site.specifier)
            if dep_name not in self._catalog:
                continue
            if dep_name != owner.name and dep_name not in declared:
                raise UndeclaredDependencyError(owner.name, dep_name, self.repo_path(path))
            target = self._by_name.get(dep_name)
            if target is None:
                raise ModuleResolutionError(
                    f'"{site.specifier}" in {self.repo_path(path)} names "{dep_name}", '
                    'which is not a runtime dependency of the assembled package',
                )
            new_spec = relative_specifier(path.parent, target.to_dir / resolve_specifier(target.manifest, subpath))
            pieces += [text[last : site.start], f'{site.quote}{new_spec}{site.quote}']
            last = site.end
            log.debug('specifier_rewritten', file=self.repo_path(path), old=site.specifier, new=new_spec)
        if not pieces:
            return text
        pieces.append(text[last:])
        return ''.join(pieces)

    async def _rewrite_file(self, path: Path) -> bool:
        text = await read_file(path)
        new_text = self.rewrite_text(text, path)
        if new_text == text:
            return False
        await write_file(path, new_text)
        return True

    async def rewrite_all(self, files: list[Path]) -> int:
        """Validate formats of ``files``, then rewrite them in place.

        Returns:
            The number of files that changed.
        """
        rewritable = self.validate_formats(files)
        changed = await asyncio.gather(*(self._rewrite_file(path) for path in rewritable))
        count = sum(changed)
        log.info('imports_rewritten', scanned=len(rewritable), changed=count)
        return count


__all__ = [
    'ImportRewriter',
    'SpecifierSite',
    'find_specifiers',
    'module_kind',
    'relative_specifier',
]

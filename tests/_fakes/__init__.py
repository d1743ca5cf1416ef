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

"""Shared test fakes for monocrate.

Provides a fake :class:`~monocrate.registry.RegistryClient` and helpers
that lay out a workspace under ``tmp_path`` so individual test modules
don't need to duplicate boilerplate.

Usage::

    from tests._fakes import FakeRegistryClient, write_package, write_workspace

    root = write_workspace(tmp_path)
    write_package(root, 'packages/lib', {'name': 'lib', 'type': 'module'}, {'dist/index.js': '...'})
    registry = FakeRegistryClient(published={'lib': '1.2.3'})
"""

from tests._fakes._registry import FakeRegistryClient as FakeRegistryClient
from tests._fakes._workspace import write_package as write_package, write_workspace as write_workspace

__all__ = [
    'FakeRegistryClient',
    'write_package',
    'write_workspace',
]

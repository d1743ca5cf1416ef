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

"""HTTP access to the npm registry.

The registry client only ever reads package metadata, so this module
offers exactly that: a pooled :class:`httpx.AsyncClient` that asks for
the abbreviated metadata document, and :func:`get_with_retry`, which
retries rate limiting, server errors and dropped connections with
exponential backoff. Retrying is the registry client's own policy; the
assembly engine never retries anything.

Usage::

    from monocrate.net import get_with_retry, http_client

    async with http_client(timeout=10.0) as client:
        response = await get_with_retry(client, 'https://registry.npmjs.org/lodash')
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Final

import httpx

from monocrate import __version__
from monocrate.logging import get_logger

log = get_logger('monocrate.net')

DEFAULT_POOL_SIZE: Final[int] = 10
DEFAULT_TIMEOUT: Final[float] = 30.0

MAX_RETRIES: Final[int] = 3
RETRY_BACKOFF_BASE: Final[float] = 1.0

RETRYABLE_STATUS_CODES: Final[frozenset[int]] = frozenset({429, 500, 502, 503, 504})

# The abbreviated document still carries dist-tags and is much smaller.
_METADATA_ACCEPT: Final[str] = 'application/vnd.npm.install-v1+json; q=1.0, application/json; q=0.8'

_TRANSIENT_ERRORS = (httpx.ConnectError, httpx.ReadTimeout, httpx.WriteTimeout, httpx.RemoteProtocolError)


@asynccontextmanager
async def http_client(
    *,
    pool_size: int = DEFAULT_POOL_SIZE,
    timeout: float = DEFAULT_TIMEOUT,
) -> AsyncGenerator[httpx.AsyncClient]:
    """Create a pooled client for registry metadata requests."""
    limits = httpx.Limits(max_connections=pool_size, max_keepalive_connections=pool_size)
    async with httpx.AsyncClient(
        limits=limits,
        timeout=httpx.Timeout(timeout),
        headers={'Accept': _METADATA_ACCEPT, 'User-Agent': f'monocrate/{__version__}'},
        follow_redirects=True,
    ) as client:
        yield client


async def get_with_retry(
    client: httpx.AsyncClient,
    url: str,
    *,
    max_retries: int = MAX_RETRIES,
    backoff_base: float = RETRY_BACKOFF_BASE,
) -> httpx.Response:
    """GET ``url``, retrying transient failures.

    Any response whose status is not transient (including 404) is returned
    as is for the caller to interpret.

    Args:
        client: The httpx async client to use.
        url: Metadata URL.
        max_retries: Retries after the first attempt.
        backoff_base: Delay in seconds before the first retry; doubled each time.

    Raises:
        httpx.HTTPStatusError: If the last attempt still got a transient status.
        httpx.TransportError: If the last attempt still failed to connect.
    """
    attempt = 0
    while True:
        try:
            response = await client.get(url)
        except _TRANSIENT_ERRORS as exc:
            if attempt >= max_retries:
                raise
            log.warning('registry_request_failed', url=url, error=str(exc), attempt=attempt + 1)
        else:
            if response.status_code not in RETRYABLE_STATUS_CODES:
                return response
            if attempt >= max_retries:
                response.raise_for_status()
            log.warning('registry_request_retry', url=url, status=response.status_code, attempt=attempt + 1)
        await asyncio.sleep(backoff_base * (2**attempt))
        attempt += 1


__all__ = [
    'DEFAULT_POOL_SIZE',
    'DEFAULT_TIMEOUT',
    'MAX_RETRIES',
    'RETRYABLE_STATUS_CODES',
    'get_with_retry',
    'http_client',
]

# SPDX-License-Identifier: GPL-3.0-or-later
#
# Copyright (C) 2025 Mark Sholund
#
# This file is part of the FastAPI Mirror Gateway project.
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""
Upstream resolution: build the upstream URL, forward an allow-listed set of
request headers, and pick the response to relay.

A single target gets exactly one attempt. An ambiguous target (several
mirrors of one type) is tried mirror by mirror, in configured order, until
one answers below 400.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence
import logging

from starlette.datastructures import Headers
import httpx

from mirror_gateway.errors import GatewayError, UpstreamTimeout, UpstreamTransportFailure
from mirror_gateway.registry import MirrorEntry

logger = logging.getLogger("uvicorn")

FORWARDED_REQUEST_HEADERS = (
    "range",
    "if-none-match",
    "if-modified-since",
    "accept",
    "user-agent",
    "authorization",
    "accept-encoding",
)


def via_value(existing: Optional[str], pseudonym: str) -> str:
    """Append this hop to an existing Via header value."""
    hop = f"1.1 {pseudonym}"
    return f"{existing}, {hop}" if existing else hop


def forward_headers(incoming: Headers, pseudonym: str) -> list[tuple[str, str]]:
    """
    Select the request headers sent upstream.

    Only FORWARDED_REQUEST_HEADERS survive; host, cookies and everything else
    are dropped. Via is extended rather than replaced.
    """
    headers = []
    for name in FORWARDED_REQUEST_HEADERS:
        for value in incoming.getlist(name):
            headers.append((name, value))
    via = ", ".join(incoming.getlist("via")) or None
    headers.append(("via", via_value(via, pseudonym)))
    return headers


def build_upstream_url(mirror: MirrorEntry, path: str, query: str = "") -> str:
    """
    ``origin + basePath + path (+ ?query)``

    Examples:
        >>> build_upstream_url(MirrorEntry("pypi", "official", "https://pypi.org/pypi/web/simple"), "/simple/requests/")
        'https://pypi.org/pypi/web/simple/simple/requests/'
    """
    if not path.startswith("/"):
        path = "/" + path
    url = f"{mirror.origin}{mirror.base_path}{path}"
    if query:
        url += f"?{query}"
    return url


@dataclass
class UpstreamAttempt:
    """Outcome of one try against one mirror."""

    mirror: MirrorEntry
    url: str
    status: Optional[int] = None
    error: Optional[GatewayError] = None

    @property
    def outcome(self) -> str:
        if self.error is not None:
            return "transport-failure"
        if self.status is not None and self.status >= 400:
            return "http-error"
        return "success"


async def send_upstream(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    headers: Iterable[tuple[str, str]],
) -> httpx.Response:
    """
    Open a streamed upstream response.

    The caller owns the returned response and must ``aclose()`` it.

    Raises:
        UpstreamTimeout: connect/read/write/pool timeout expired
        UpstreamTransportFailure: connection refused, DNS failure, reset, ...
    """
    headers = list(headers)
    request = client.build_request(method, url, headers=headers)
    # httpx adds its own Accept-Encoding; the body is relayed undecoded, so
    # only ask for what the client itself accepts
    if "accept-encoding" not in {name for name, _ in headers}:
        request.headers.pop("accept-encoding", None)
    try:
        return await client.send(request, stream=True)
    except httpx.TimeoutException as e:
        logger.warning("Upstream timeout for %s %s: %r", method, url, e)
        raise UpstreamTimeout(f"Upstream timed out: {url}") from e
    except httpx.HTTPError as e:
        logger.warning("Upstream transport error for %s %s: %r", method, url, e)
        raise UpstreamTransportFailure(f"Upstream unavailable: {url}") from e


async def fetch_single(
    client: httpx.AsyncClient,
    mirror: MirrorEntry,
    path: str,
    method: str,
    query: str,
    headers: Sequence[tuple[str, str]],
) -> httpx.Response:
    """One attempt, no retry; the upstream status is returned as-is."""
    url = build_upstream_url(mirror, path, query)
    return await send_upstream(client, method, url, headers)


async def fetch_first_success(
    client: httpx.AsyncClient,
    mirrors: Sequence[MirrorEntry],
    path: str,
    method: str,
    query: str,
    headers: Sequence[tuple[str, str]],
) -> tuple[httpx.Response, list[UpstreamAttempt]]:
    """
    Try ``mirrors`` strictly in order and return the first response below 400.

    When every mirror fails, the last error response (status >= 400) is
    returned so the client sees that status. If no mirror produced an HTTP
    response at all, the last transport failure is raised.

    Returns:
        (response, attempts) where attempts records every try in order

    Raises:
        UpstreamTimeout / UpstreamTransportFailure: no mirror answered
    """
    attempts: list[UpstreamAttempt] = []
    last_error_response: Optional[httpx.Response] = None

    for mirror in mirrors:
        url = build_upstream_url(mirror, path, query)
        attempt = UpstreamAttempt(mirror, url)
        attempts.append(attempt)
        try:
            response = await send_upstream(client, method, url, headers)
        except GatewayError as e:
            attempt.error = e
            continue

        attempt.status = response.status_code
        if response.status_code < 400:
            if last_error_response is not None:
                await last_error_response.aclose()
            return response, attempts

        logger.warning(
            "Mirror %s/%s answered %d for %s, trying next",
            mirror.type, mirror.repo_key, response.status_code, path,
        )
        if last_error_response is not None:
            await last_error_response.aclose()
        last_error_response = response

    if last_error_response is not None:
        return last_error_response, attempts

    failures = [a.error for a in attempts if a.error is not None]
    if failures:
        raise failures[-1]
    raise UpstreamTransportFailure("No upstream mirrors to try")

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

"""Turn an open upstream response into the response sent to the client."""

from typing import AsyncIterator
import logging

from fastapi import Response
from fastapi.responses import StreamingResponse
import httpx

from mirror_gateway.upstream import via_value

logger = logging.getLogger("uvicorn")

HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
})

CORS_HEADERS = {"access-control-allow-origin": "*"}


def relay_headers(upstream: httpx.Response, pseudonym: str) -> list[tuple[bytes, bytes]]:
    """
    Upstream response headers minus hop-by-hop ones, plus CORS and Via.

    Repeated headers (e.g. set-cookie) are kept as separate entries.
    """
    headers: list[tuple[bytes, bytes]] = []
    via = []
    for raw_name, raw_value in upstream.headers.raw:
        name = raw_name.decode("latin-1").lower()
        if name in HOP_BY_HOP_HEADERS or name in CORS_HEADERS:
            continue
        if name == "via":
            via.append(raw_value.decode("latin-1"))
            continue
        headers.append((name.encode("latin-1"), raw_value))

    for name, value in CORS_HEADERS.items():
        headers.append((name.encode("latin-1"), value.encode("latin-1")))
    headers.append((b"via", via_value(", ".join(via) or None, pseudonym).encode("latin-1")))
    return headers


def has_empty_body(upstream: httpx.Response) -> bool:
    if upstream.status_code < 200 or upstream.status_code in (204, 304):
        return True
    return upstream.headers.get("content-length") == "0"


async def stream_body(upstream: httpx.Response) -> AsyncIterator[bytes]:
    """
    Yield the upstream body chunk by chunk, undecoded.

    A failure here happens after the status line went out, so it is logged
    and re-raised for the server to abort the connection.
    """
    try:
        if upstream.is_stream_consumed:
            # transport already loaded the whole body
            if upstream.content:
                yield upstream.content
        else:
            async for chunk in upstream.aiter_raw():
                yield chunk
    except httpx.HTTPError as e:
        logger.error("Upstream stream failed mid-transfer for %s: %r", upstream.request.url, e)
        raise
    finally:
        await upstream.aclose()


async def relay(upstream: httpx.Response, method: str, pseudonym: str) -> Response:
    """
    Build the client response for ``upstream``.

    The status code is propagated unchanged. HEAD requests and empty upstream
    bodies get no body; everything else is streamed without buffering.
    """
    headers = relay_headers(upstream, pseudonym)

    if method == "HEAD" or has_empty_body(upstream):
        await upstream.aclose()
        response = Response(status_code=upstream.status_code)
    else:
        response = StreamingResponse(stream_body(upstream), status_code=upstream.status_code)

    response.raw_headers = headers
    return response

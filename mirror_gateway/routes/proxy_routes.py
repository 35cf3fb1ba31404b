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

from fastapi import APIRouter, Request, Response
import logging

import mirror_gateway.config as config
from mirror_gateway.errors import (
    ALLOW_HEADER_VALUE,
    BadMethod,
    InvalidPath,
    NoRoute,
)
from mirror_gateway.relay import relay
from mirror_gateway.routes.info_routes import repository_details
from mirror_gateway.routing import Explicit, Heuristic, HeuristicAmbiguous, PrefixRouter
from mirror_gateway.upstream import fetch_first_success, fetch_single, forward_headers
from mirror_gateway.validators import normalize_path, validate_request_path

logger = logging.getLogger("uvicorn")

router = APIRouter(tags=["Proxy"])

PROXY_METHODS = ["GET", "HEAD", "OPTIONS", "POST", "PUT", "PATCH", "DELETE"]

PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": ALLOW_HEADER_VALUE,
    "Access-Control-Allow-Headers": "*",
    "Access-Control-Max-Age": "86400",
}


def request_path(request: Request) -> str:
    """
    The path as the client sent it, percent-encoding intact.

    Scoped npm names (``@scope%2fname``) must reach the registry unchanged.
    """
    raw_path = request.scope.get("raw_path")
    if raw_path:
        return raw_path.decode("latin-1").split("?", 1)[0]
    return request.url.path


@router.api_route("/{full_path:path}", methods=PROXY_METHODS, include_in_schema=False)
async def proxy(full_path: str, request: Request):
    """
    Route any path to an upstream repository and relay its response.

    - OPTIONS: CORS preflight, answered here with 204
    - GET/HEAD: explicit prefix, then heuristic classification
    - anything else: 405
    """
    method = request.method.upper()
    if method == "OPTIONS":
        return Response(status_code=204, headers=PREFLIGHT_HEADERS)
    if method not in ("GET", "HEAD"):
        raise BadMethod(method)

    path = request_path(request)
    # SECURITY: reject traversal before anything is forwarded
    if not validate_request_path(path):
        logger.warning("Rejected path: %s", path)
        raise InvalidPath(f"Invalid path: {path}")
    path = normalize_path(path)

    prefix_router: PrefixRouter = request.app.state.prefix_router
    bare_type = path.strip("/")
    if bare_type in prefix_router.registry:
        return repository_details(prefix_router.registry, bare_type)

    decision = prefix_router.decide(path)

    client = request.app.state.client
    query = request.url.query
    headers = forward_headers(request.headers, config.VIA_PSEUDONYM)

    if isinstance(decision, (Explicit, Heuristic)):
        upstream = await fetch_single(client, decision.mirror, decision.path, method, query, headers)
        logger.info(
            "%s %s -> %s [%s] %d",
            method, path, upstream.request.url, decision.kind, upstream.status_code,
        )
    elif isinstance(decision, HeuristicAmbiguous):
        upstream, attempts = await fetch_first_success(
            client, decision.mirrors, decision.path, method, query, headers
        )
        logger.info(
            "%s %s -> %s [%s, %d attempt(s)] %d",
            method, path, upstream.request.url, decision.kind, len(attempts), upstream.status_code,
        )
    else:
        raise NoRoute()

    return await relay(upstream, method, config.VIA_PSEUDONYM)

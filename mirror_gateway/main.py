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

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from contextlib import asynccontextmanager
from typing import Optional
import logging

import httpx

import mirror_gateway.config as config
from mirror_gateway.errors import GatewayError
from mirror_gateway.registry import Registry, load_registry
from mirror_gateway.routes import info_routes, proxy_routes
from mirror_gateway.routing import PrefixRouter

logger = logging.getLogger('uvicorn')


def build_client(transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """Shared upstream client: pooled per origin, every phase bounded by the request timeout."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(config.REQUEST_TIMEOUT_SECONDS),
        limits=httpx.Limits(
            max_connections=config.MAX_CONNECTIONS,
            max_keepalive_connections=config.MAX_KEEPALIVE_CONNECTIONS,
        ),
        follow_redirects=config.FOLLOW_REDIRECTS,
        transport=transport,
    )


def create_app(
    registry: Optional[Registry] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the gateway application.

    Args:
        registry: Repository table to serve; loaded from config when omitted
        transport: httpx transport for upstream calls (tests inject a MockTransport)
    """
    if registry is None:
        registry = load_registry(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.client = build_client(transport)
        logger.info(
            f"Serving {len(app.state.prefix_router.routes)} mirrors for: {', '.join(registry.types())}"
        )
        try:
            yield
        finally:
            await app.state.client.aclose()
            logger.info("Shutting down FastAPI app")

    app = FastAPI(lifespan=lifespan)
    app.state.registry = registry
    app.state.prefix_router = PrefixRouter(registry)

    @app.middleware("http")
    async def allow_any_origin(request: Request, call_next):
        response = await call_next(request)
        response.headers["Access-Control-Allow-Origin"] = "*"
        return response

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
        return PlainTextResponse(
            exc.detail,
            status_code=exc.status_code,
            headers={**exc.headers, "Access-Control-Allow-Origin": "*"},
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error for %s %s", request.method, request.url.path)
        return PlainTextResponse(
            "Internal Server Error",
            status_code=500,
            headers={"Access-Control-Allow-Origin": "*"},
        )

    app.include_router(info_routes.router)
    app.include_router(proxy_routes.router)
    return app


app = create_app()

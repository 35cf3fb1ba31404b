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

from fastapi import APIRouter, Request
import os
import time

router = APIRouter(tags=["Info"])

SERVICE_NAME = "Multi-repository mirror gateway"
SERVICE_VERSION = "1.0"

_started = time.monotonic()


def _summary(registry) -> list[dict]:
    return [
        {"type": type_, "mirrors": [m.repo_key for m in registry.mirrors(type_)]}
        for type_ in registry.types()
    ]


@router.api_route("/", methods=["GET", "HEAD"])
async def root(request: Request):
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "repositories": _summary(request.app.state.registry),
        "usage": "/{type}/{mirrorName}/{path}",
        "health": "/health",
        "repos": "/repositories",
    }


@router.api_route("/health", methods=["GET", "HEAD"])
async def health():
    try:
        load = list(os.getloadavg())
    except (AttributeError, OSError):
        # not available on every platform
        load = None
    return {
        "status": "ok",
        "uptime": round(time.monotonic() - _started, 3),
        "load": load,
        "timestamp": int(time.time() * 1000),
    }


@router.api_route("/repositories", methods=["GET", "HEAD"])
async def repositories(request: Request):
    return {"repositories": _summary(request.app.state.registry)}


def repository_details(registry, repo_type: str) -> dict:
    """Details of one configured repository type, served for a bare ``/{type}`` path."""
    return {
        "type": repo_type,
        "mirrors": registry.as_dict()[repo_type],
    }

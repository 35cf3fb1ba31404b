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

"""Client-visible failures of the gateway and the status each one maps to."""

ALLOWED_METHODS = ("GET", "HEAD", "OPTIONS")
ALLOW_HEADER_VALUE = ", ".join(ALLOWED_METHODS)

USAGE_HINT = (
    "No repository matched this path.\n"
    "Use an explicit prefix:\n"
    "  /maven/{mirror}/{path}\n"
    "  /pypi/{mirror}/{path}\n"
    "  /npm/{mirror}/{path}\n"
    "  /go/{mirror}/{path}\n"
    "  /apt/{mirror}/{path}\n"
    "See /repositories for the configured mirrors.\n"
)


class GatewayError(Exception):
    """Base class for errors that end a request with a fixed status."""

    status_code: int = 500
    default_detail: str = "Internal Server Error"

    def __init__(self, detail: str | None = None, headers: dict[str, str] | None = None):
        self.detail = detail or self.default_detail
        self.headers = headers or {}
        super().__init__(self.detail)


class BadMethod(GatewayError):
    status_code = 405
    default_detail = "Method Not Allowed"

    def __init__(self, method: str):
        super().__init__(
            f"Method {method} is not supported; use {ALLOW_HEADER_VALUE}",
            headers={"Allow": ALLOW_HEADER_VALUE},
        )


class NoRoute(GatewayError):
    status_code = 404
    default_detail = USAGE_HINT


class InvalidPath(GatewayError):
    status_code = 400
    default_detail = "Invalid path"


class UnknownMirror(GatewayError):
    status_code = 502
    default_detail = "No upstream configured for this repository"


class UpstreamTransportFailure(GatewayError):
    status_code = 502
    default_detail = "Upstream unavailable"


class UpstreamTimeout(GatewayError):
    status_code = 504
    default_detail = "Upstream request timed out"

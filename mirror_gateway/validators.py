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
import re
from urllib.parse import unquote, urlparse


class ValidationError(ValueError):
    """Custom exception for validation failures"""
    pass


_REPEATED_SLASHES = re.compile(r"/{2,}")


def validate_request_path(path: str) -> bool:
    """
    Validate an incoming request path before it is routed anywhere.

    Rules:
    - Must be non-empty and start with a slash
    - No ``..`` segment, checked on the percent-decoded form as well
    - No backslashes or null bytes

    Args:
        path: Raw request path (without query string)

    Returns:
        True if the path may be forwarded, False otherwise

    Examples:
        >>> validate_request_path("/maven/central/junit/junit/4.13/junit-4.13.pom")
        True
        >>> validate_request_path("/npm/official/../../etc/passwd")
        False
        >>> validate_request_path("/simple/%2e%2e/secret")
        False
    """
    if not path or not path.startswith("/"):
        return False

    for candidate in (path, unquote(path)):
        if '\\' in candidate or '\0' in candidate:
            return False
        if ".." in candidate.split("/"):
            return False

    return True


def normalize_path(path: str) -> str:
    """
    Collapse repeated slashes and make sure the path has a leading slash.

    Examples:
        >>> normalize_path("a//b///c")
        '/a/b/c'
        >>> normalize_path("")
        '/'
    """
    path = _REPEATED_SLASHES.sub("/", path)
    if not path.startswith("/"):
        path = "/" + path
    return path


def validate_upstream_url(url: str) -> bool:
    """
    Validate a configured upstream base URL.

    Rules:
    - Absolute URL with an http or https scheme
    - Must name a host
    - No query string or fragment (the request's query is appended later)

    Examples:
        >>> validate_upstream_url("https://repo1.maven.org/maven2")
        True
        >>> validate_upstream_url("ftp://example.org/pub")
        False
        >>> validate_upstream_url("/relative/path")
        False
    """
    if not url:
        return False
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        return False
    if not parsed.hostname:
        return False
    if parsed.query or parsed.fragment:
        return False
    return True


def validate_repo_key(key: str) -> bool:
    """
    Validate a repository type or mirror key.

    Keys become literal path segments of the explicit prefix, so they must be
    a single non-empty segment.
    """
    if not key or len(key) > 100:
        return False
    return bool(re.match(r'^[a-zA-Z0-9][a-zA-Z0-9._-]*$', key))

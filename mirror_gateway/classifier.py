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
Best-effort guess of the repository type behind an unprefixed path.

Rules are tried in order and the first match wins. They are permissive on
purpose: a client pointed straight at the gateway without a ``/type/repo/``
prefix should still work for the common layouts, and occasional false
positives are accepted.
"""

from dataclasses import dataclass
from typing import Optional
import re

from mirror_gateway.registry import APT, GO, MAVEN, NPM, PYPI

MAVEN_ARTIFACT_SUFFIXES = (
    ".jar",
    ".pom",
    ".aar",
    ".zip",
    ".war",
    ".ear",
    ".module",
    ".sources.jar",
    ".javadoc.jar",
)
MAVEN_SIGNATURE_SUFFIXES = (".asc", ".sha1", ".md5")

# groupId segments / artifactId / numeric version / ...
_MAVEN_LAYOUT = re.compile(r"^/(?:[a-z0-9._-]+/){2,}\d[a-z0-9._-]*/")
_NPM_SCOPED = re.compile(r"^/@[^/]+(?:/|%2f)[^/]+")
_NPM_BARE_HYPHENATED = re.compile(r"^/[^/]*-[^/]*/?$")


@dataclass(frozen=True)
class Classification:
    """Guessed type; ``repo_key`` is None when every mirror of the type is a candidate."""

    type: str
    repo_key: Optional[str] = None


def _strip_signature(path: str) -> str:
    for suffix in MAVEN_SIGNATURE_SUFFIXES:
        if path.endswith(suffix):
            return path[: -len(suffix)]
    return path


def is_maven_path(path: str) -> bool:
    if _strip_signature(path).endswith(MAVEN_ARTIFACT_SUFFIXES):
        return True
    if _MAVEN_LAYOUT.match(path):
        return True
    return "/maven2/" in path


def is_pypi_path(path: str) -> bool:
    return "/simple/" in path


def is_npm_path(path: str) -> bool:
    if "/-/" in path or "/package/" in path:
        return True
    return bool(_NPM_SCOPED.match(path) or _NPM_BARE_HYPHENATED.match(path))


def is_go_path(path: str) -> bool:
    return "/@v/" in path or "/@latest" in path or path.startswith("/mod/")


def is_apt_path(path: str) -> bool:
    return "/dists/" in path or "/pool/" in path or path.endswith(".deb")


_RULES = (
    (is_maven_path, Classification(MAVEN)),
    (is_pypi_path, Classification(PYPI, "official")),
    (is_npm_path, Classification(NPM, "official")),
    (is_go_path, Classification(GO, "official")),
    (is_apt_path, Classification(APT, "ubuntu")),
)


def classify(path: str) -> Optional[Classification]:
    """
    Classify an unprefixed request path.

    Args:
        path: Request path without query string

    Returns:
        The first matching Classification, or None when no rule applies

    Examples:
        >>> classify("/com/example/lib/1.0/lib-1.0.jar")
        Classification(type='maven', repo_key=None)
        >>> classify("/simple/requests/")
        Classification(type='pypi', repo_key='official')
        >>> classify("/favicon.ico") is None
        True
    """
    lowered = path.lower()
    for matches, result in _RULES:
        if matches(lowered):
            return result
    return None

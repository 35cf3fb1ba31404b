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
Request routing: explicit ``/type/repoKey/`` prefixes first, heuristic
classification second.
"""

from dataclasses import dataclass
from typing import Optional, Union

from mirror_gateway.classifier import classify
from mirror_gateway.errors import UnknownMirror
from mirror_gateway.registry import MirrorEntry, Registry


@dataclass(frozen=True)
class PrefixRoute:
    prefix: str
    mirror: MirrorEntry


@dataclass(frozen=True)
class Explicit:
    """Path carried an explicit prefix; ``path`` is what remains after it."""

    mirror: MirrorEntry
    path: str
    kind = "explicit"


@dataclass(frozen=True)
class Heuristic:
    """Classifier resolved the path to one mirror."""

    mirror: MirrorEntry
    path: str
    kind = "heuristic"


@dataclass(frozen=True)
class HeuristicAmbiguous:
    """Classifier resolved a type only; every mirror of it is a candidate, in order."""

    mirrors: tuple[MirrorEntry, ...]
    path: str
    kind = "heuristic-ambiguous"


@dataclass(frozen=True)
class Unresolved:
    path: str
    kind = "unresolved"


RoutingDecision = Union[Explicit, Heuristic, HeuristicAmbiguous, Unresolved]


class PrefixRouter:
    """Flattened, read-only table of explicit prefixes derived from a Registry."""

    def __init__(self, registry: Registry):
        self.registry = registry
        self.routes: tuple[PrefixRoute, ...] = tuple(
            PrefixRoute(entry.prefix, entry) for entry in registry
        )

    def match(self, path: str) -> Optional[tuple[PrefixRoute, str]]:
        """
        Return the first route whose prefix starts ``path`` and the remainder.

        The remainder keeps its leading slash and defaults to ``/``. A path
        equal to the prefix without its trailing slash also matches.

        Examples:
            >>> router.match("/maven/central/junit/junit/maven-metadata.xml")
            (PrefixRoute(prefix='/maven/central/', ...), '/junit/junit/maven-metadata.xml')
        """
        if not path.startswith("/"):
            path = "/" + path
        for route in self.routes:
            if path.startswith(route.prefix):
                rest = path[len(route.prefix) - 1:]
                return route, rest or "/"
            if path == route.prefix[:-1]:
                return route, "/"
        return None

    def decide(self, path: str) -> RoutingDecision:
        """
        Work out where a request path goes.

        Raises:
            UnknownMirror: the classifier picked a type/repo that is not configured
        """
        matched = self.match(path)
        if matched is not None:
            route, rest = matched
            return Explicit(route.mirror, rest)

        guess = classify(path)
        if guess is None:
            return Unresolved(path)

        if guess.repo_key is None:
            mirrors = self.registry.mirrors(guess.type)
            if not mirrors:
                raise UnknownMirror(f"No {guess.type} mirrors configured")
            return HeuristicAmbiguous(tuple(mirrors), path)

        mirror = self.registry.get(guess.type, guess.repo_key)
        if mirror is None:
            raise UnknownMirror(f"No upstream configured for {guess.type}/{guess.repo_key}")
        return Heuristic(mirror, path)

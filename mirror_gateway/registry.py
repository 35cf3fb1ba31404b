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
Repository registry: the immutable table of configured upstream mirrors.

Built once at startup from a ``{type: {repoKey: url}}`` mapping and injected
into the router and the upstream resolver. Iteration order is the insertion
order of the mapping (type order, then repoKey order).
"""

from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping, Optional
from urllib.parse import urlparse
import json

from mirror_gateway.validators import (
    validate_repo_key,
    validate_upstream_url,
    ValidationError,
)

MAVEN = "maven"
PYPI = "pypi"
NPM = "npm"
GO = "go"
APT = "apt"


@dataclass(frozen=True)
class MirrorEntry:
    """One configured upstream: ``(type, repo_key, base_url)``."""

    type: str
    repo_key: str
    base_url: str

    @property
    def origin(self) -> str:
        """Scheme, host and port of the upstream."""
        parsed = urlparse(self.base_url)
        return f"{parsed.scheme}://{parsed.netloc}"

    @property
    def base_path(self) -> str:
        """Path prefix on the upstream, trailing slash stripped."""
        return urlparse(self.base_url).path.rstrip("/")

    @property
    def prefix(self) -> str:
        """Explicit routing prefix, e.g. ``/maven/central/``."""
        return f"/{self.type}/{self.repo_key}/"


class Registry:
    """Read-only mapping of repository type -> repo key -> MirrorEntry."""

    def __init__(self, entries: Iterable[MirrorEntry]):
        table: dict[str, dict[str, MirrorEntry]] = {}
        for entry in entries:
            mirrors = table.setdefault(entry.type, {})
            if entry.repo_key in mirrors:
                raise ValidationError(
                    f"Duplicate mirror key {entry.repo_key!r} for type {entry.type!r}"
                )
            mirrors[entry.repo_key] = entry
        self._table = MappingProxyType(
            {type_: MappingProxyType(mirrors) for type_, mirrors in table.items()}
        )

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Mapping[str, str]]) -> "Registry":
        """
        Build a registry from ``{type: {repoKey: url}}``, validating every key and URL.

        Raises:
            ValidationError: on an invalid key, URL or duplicate repo key
        """
        entries = []
        for type_, mirrors in mapping.items():
            if not validate_repo_key(type_):
                raise ValidationError(f"Invalid repository type: {type_!r}")
            if not isinstance(mirrors, Mapping):
                raise ValidationError(f"Mirrors for {type_!r} must be a mapping")
            for repo_key, url in mirrors.items():
                if not validate_repo_key(repo_key):
                    raise ValidationError(f"Invalid mirror key for {type_!r}: {repo_key!r}")
                if not isinstance(url, str) or not validate_upstream_url(url):
                    raise ValidationError(f"Invalid upstream URL for {type_}/{repo_key}: {url!r}")
                entries.append(MirrorEntry(type_, repo_key, url))
        return cls(entries)

    @classmethod
    def from_file(cls, path: Path) -> "Registry":
        """Load a registry from a JSON file holding ``{type: {repoKey: url}}``."""
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ValidationError(f"Cannot load repositories from {path}: {e}")
        if not isinstance(data, dict):
            raise ValidationError(f"Repositories file {path} must hold a JSON object")
        return cls.from_mapping(data)

    def __iter__(self) -> Iterator[MirrorEntry]:
        for mirrors in self._table.values():
            yield from mirrors.values()

    def __len__(self) -> int:
        return sum(len(mirrors) for mirrors in self._table.values())

    def __contains__(self, type_: object) -> bool:
        return type_ in self._table

    def types(self) -> list[str]:
        return list(self._table)

    def mirrors(self, type_: str) -> list[MirrorEntry]:
        """All mirrors of a type, in configured order (empty if the type is unknown)."""
        return list(self._table.get(type_, {}).values())

    def get(self, type_: str, repo_key: str) -> Optional[MirrorEntry]:
        return self._table.get(type_, {}).get(repo_key)

    def as_dict(self) -> dict[str, dict[str, str]]:
        return {
            type_: {key: entry.base_url for key, entry in mirrors.items()}
            for type_, mirrors in self._table.items()
        }


def load_registry(config) -> Registry:
    """Build the process-wide registry from the config module."""
    if config.REPOSITORIES_FILE is not None:
        return Registry.from_file(config.REPOSITORIES_FILE)
    return Registry.from_mapping(config.REPOSITORIES)

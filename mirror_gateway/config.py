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

from pathlib import Path
import os

# Server binding (used by `python -m mirror_gateway`)
HOST: str = os.environ.get("HOST", "0.0.0.0")
PORT: int = int(os.environ.get("PORT", "3000"))

# Network settings
REQUEST_TIMEOUT_SECONDS: float = float(os.environ.get("REQUEST_TIMEOUT_SECONDS", "30"))
MAX_CONNECTIONS: int = int(os.environ.get("MAX_CONNECTIONS", "100"))
MAX_KEEPALIVE_CONNECTIONS: int = int(os.environ.get("MAX_KEEPALIVE_CONNECTIONS", "20"))

# Relay 3xx responses to the client unless explicitly told to follow them
FOLLOW_REDIRECTS: bool = os.environ.get("FOLLOW_REDIRECTS", "false").lower() in ("1", "true", "yes")

# Token appended to the Via header in both directions
VIA_PSEUDONYM: str = os.environ.get("VIA_PSEUDONYM", "mirror-gateway")

# Optional JSON file replacing the built-in repository table
_repositories_file = os.environ.get("REPOSITORIES_FILE")
REPOSITORIES_FILE: Path | None = Path(_repositories_file) if _repositories_file else None

# Upstream repositories: type -> repoKey -> base URL.
# Order matters: explicit prefixes are matched in this order and ambiguous
# Maven paths are tried against the mirrors top to bottom.
REPOSITORIES: dict[str, dict[str, str]] = {
    "maven": {
        "central": "https://repo1.maven.org/maven2",
        "apache": "https://repo.maven.apache.org/maven2",
        "google": "https://dl.google.com/dl/android/maven2",
        "jitpack": "https://jitpack.io",
        "gradle-plugins": "https://plugins.gradle.org/m2",
        "spring-plugins": "https://repo.spring.io/plugins-release",
        "spring-milestones": "https://repo.spring.io/milestone",
        "spring-snapshots": "https://repo.spring.io/snapshot",
    },
    "pypi": {
        "official": "https://pypi.org/pypi/web/simple",
    },
    "npm": {
        "official": "https://registry.npmjs.org",
    },
    "go": {
        "official": "https://proxy.golang.org",
    },
    "apt": {
        "ubuntu": "http://archive.ubuntu.com/ubuntu",
        "debian": "http://deb.debian.org/debian",
    },
}

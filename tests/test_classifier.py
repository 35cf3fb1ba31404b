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

import pytest
from mirror_gateway.classifier import Classification, classify


@pytest.mark.parametrize("path", [
    "/com/example/lib/1.0/lib-1.0.jar",
    "/org/apache/commons/commons-lang3/3.12.0/commons-lang3-3.12.0.pom",
    "/com/android/tools/build/gradle/8.1.0/gradle-8.1.0.module",
    "/com/example/lib/1.0/lib-1.0.jar.sha1",
    "/com/example/lib/1.0/lib-1.0.pom.asc",
    "/com/example/lib/1.0/lib-1.0-sources.jar.md5",
    "/androidx/core/core/1.12.0/core-1.12.0.aar",
    "/org/example/app/2.1/app-2.1.war",
    "/junit/junit/4.13.2/",
    "/mirror/maven2/junit/junit/maven-metadata.xml",
    "/COM/Example/Lib/1.0/Lib-1.0.JAR",
])
def test_maven_paths_are_ambiguous(path):
    assert classify(path) == Classification("maven", None)


@pytest.mark.parametrize("path", [
    "/simple/requests/",
    "/simple/",
    "/pypi/simple/django/",
])
def test_pypi_paths(path):
    assert classify(path) == Classification("pypi", "official")


@pytest.mark.parametrize("path", [
    "/lodash/-/lodash-4.17.21.tgz",
    "/@types/react",
    "/@types%2Freact",
    "/@babel/core/-/core-7.23.0.tgz",
    "/left-pad",
    "/express-validator/",
    "/package/lodash",
])
def test_npm_paths(path):
    assert classify(path) == Classification("npm", "official")


@pytest.mark.parametrize("path", [
    "/github.com/stretchr/testify/@v/list",
    "/golang.org/x/text/@v/v0.14.0.info",
    "/github.com/google/uuid/@latest",
    "/mod/golang.org/x/net",
])
def test_go_paths(path):
    assert classify(path) == Classification("go", "official")


@pytest.mark.parametrize("path", [
    "/ubuntu/dists/jammy/Release",
    "/pool/main/c/curl/curl_7.81.0-1ubuntu1_amd64.deb",
    "/debian/pool/main/a/apt/",
    "/somewhere/package.deb",
])
def test_apt_paths_default_to_ubuntu(path):
    assert classify(path) == Classification("apt", "ubuntu")


@pytest.mark.parametrize("path", [
    "/",
    "/favicon.ico",
    "/health",
    "/lodash",
    "/some/random/path.txt",
])
def test_unclassifiable(path):
    assert classify(path) is None


def test_maven_rule_wins_over_later_rules():
    # A Go module zip also carries a Maven artifact suffix; first rule wins.
    assert classify("/golang.org/x/text/@v/v0.14.0.zip").type == "maven"


def test_pypi_rule_wins_over_npm():
    assert classify("/simple/python-dateutil/").type == "pypi"

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

import httpx
import pytest
from starlette.datastructures import Headers
import mirror_gateway.config as config
from mirror_gateway import upstream
from mirror_gateway.errors import UpstreamTimeout, UpstreamTransportFailure
from mirror_gateway.registry import MirrorEntry, Registry

MAVEN_MIRRORS = Registry.from_mapping(config.REPOSITORIES).mirrors("maven")
ARTIFACT = "/com/example/lib/1.0/lib-1.0.jar"


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# -----------------------
# URL and header helpers
# -----------------------

def test_build_upstream_url_joins_base_path():
    pypi = MirrorEntry("pypi", "official", "https://pypi.org/pypi/web/simple")
    assert upstream.build_upstream_url(pypi, "/simple/requests/") == \
        "https://pypi.org/pypi/web/simple/simple/requests/"


def test_build_upstream_url_appends_query_unchanged():
    npm = MirrorEntry("npm", "official", "https://registry.npmjs.org/")
    url = upstream.build_upstream_url(npm, "/lodash", "write=true&a=%2F")
    assert url == "https://registry.npmjs.org/lodash?write=true&a=%2F"


def test_build_upstream_url_adds_leading_slash():
    go = MirrorEntry("go", "official", "https://proxy.golang.org")
    assert upstream.build_upstream_url(go, "github.com/x/y/@v/list") == \
        "https://proxy.golang.org/github.com/x/y/@v/list"


def test_forward_headers_allow_list():
    incoming = Headers(raw=[
        (b"host", b"gateway.local"),
        (b"cookie", b"session=1"),
        (b"x-custom", b"secret"),
        (b"range", b"bytes=0-99"),
        (b"user-agent", b"pip/24.0"),
        (b"authorization", b"Bearer abc"),
        (b"accept", b"application/json"),
    ])
    forwarded = dict(upstream.forward_headers(incoming, "mirror-gateway"))
    assert forwarded == {
        "range": "bytes=0-99",
        "accept": "application/json",
        "user-agent": "pip/24.0",
        "authorization": "Bearer abc",
        "via": "1.1 mirror-gateway",
    }


def test_forward_headers_appends_via():
    incoming = Headers(raw=[(b"via", b"1.0 corp-proxy")])
    forwarded = dict(upstream.forward_headers(incoming, "mirror-gateway"))
    assert forwarded["via"] == "1.0 corp-proxy, 1.1 mirror-gateway"


def test_attempt_outcome():
    mirror = MAVEN_MIRRORS[0]
    assert upstream.UpstreamAttempt(mirror, "u", status=200).outcome == "success"
    assert upstream.UpstreamAttempt(mirror, "u", status=304).outcome == "success"
    assert upstream.UpstreamAttempt(mirror, "u", status=404).outcome == "http-error"
    failed = upstream.UpstreamAttempt(mirror, "u", error=UpstreamTransportFailure())
    assert failed.outcome == "transport-failure"


# -----------------------
# Single target
# -----------------------

@pytest.mark.asyncio
async def test_fetch_single_returns_error_status_without_retry():
    calls = []

    def handler(request):
        calls.append(str(request.url))
        return httpx.Response(503, content=b"busy")

    mirror = MirrorEntry("npm", "official", "https://registry.npmjs.org")
    async with mock_client(handler) as client:
        response = await upstream.fetch_single(client, mirror, "/lodash", "GET", "", [])
        assert response.status_code == 503
        await response.aclose()
    assert calls == ["https://registry.npmjs.org/lodash"]


@pytest.mark.asyncio
async def test_fetch_single_timeout():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    mirror = MirrorEntry("go", "official", "https://proxy.golang.org")
    async with mock_client(handler) as client:
        with pytest.raises(UpstreamTimeout) as exc_info:
            await upstream.fetch_single(client, mirror, "/x/@v/list", "GET", "", [])
    assert exc_info.value.status_code == 504


@pytest.mark.asyncio
async def test_fetch_single_connection_refused():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    mirror = MirrorEntry("go", "official", "https://proxy.golang.org")
    async with mock_client(handler) as client:
        with pytest.raises(UpstreamTransportFailure) as exc_info:
            await upstream.fetch_single(client, mirror, "/x/@v/list", "GET", "", [])
    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_send_upstream_forwards_headers_and_drops_default_encoding():
    seen = {}

    def handler(request):
        seen.update(request.headers)
        return httpx.Response(200)

    async with mock_client(handler) as client:
        response = await upstream.send_upstream(
            client, "GET", "https://registry.npmjs.org/lodash",
            [("range", "bytes=0-1"), ("via", "1.1 mirror-gateway")],
        )
        await response.aclose()
    assert seen["range"] == "bytes=0-1"
    assert seen["via"] == "1.1 mirror-gateway"
    assert "accept-encoding" not in seen


# -----------------------
# Ordered fallback
# -----------------------

@pytest.mark.asyncio
async def test_fallback_stops_at_first_success():
    seen = []

    def handler(request):
        seen.append(request.url.host)
        if request.url.host == "dl.google.com":
            return httpx.Response(200, content=b"jar-bytes")
        return httpx.Response(404)

    async with mock_client(handler) as client:
        response, attempts = await upstream.fetch_first_success(
            client, MAVEN_MIRRORS, ARTIFACT, "GET", "", []
        )
        assert response.status_code == 200
        assert str(response.request.url) == \
            "https://dl.google.com/dl/android/maven2/com/example/lib/1.0/lib-1.0.jar"
        await response.aclose()

    assert seen == ["repo1.maven.org", "repo.maven.apache.org", "dl.google.com"]
    assert [a.outcome for a in attempts] == ["http-error", "http-error", "success"]


@pytest.mark.asyncio
async def test_fallback_tries_every_mirror_in_order():
    seen = []

    def handler(request):
        seen.append(str(request.url))
        return httpx.Response(404)

    async with mock_client(handler) as client:
        response, attempts = await upstream.fetch_first_success(
            client, MAVEN_MIRRORS, ARTIFACT, "GET", "", []
        )
        await response.aclose()

    assert seen == [m.base_url + ARTIFACT for m in MAVEN_MIRRORS]
    assert len(attempts) == 8


@pytest.mark.asyncio
async def test_fallback_exhausted_returns_last_error_response():
    def handler(request):
        return httpx.Response(404, content=request.url.host.encode())

    async with mock_client(handler) as client:
        response, _ = await upstream.fetch_first_success(
            client, MAVEN_MIRRORS, ARTIFACT, "GET", "", []
        )
        assert response.status_code == 404
        assert response.request.url.path.startswith("/snapshot/")
        await response.aclose()


@pytest.mark.asyncio
async def test_fallback_prefers_http_error_over_later_transport_failure():
    def handler(request):
        host = request.url.host
        if host == "repo1.maven.org":
            return httpx.Response(404)
        if host == "repo.maven.apache.org":
            return httpx.Response(410)
        raise httpx.ConnectError("refused", request=request)

    async with mock_client(handler) as client:
        response, attempts = await upstream.fetch_first_success(
            client, MAVEN_MIRRORS, ARTIFACT, "GET", "", []
        )
        assert response.status_code == 410
        await response.aclose()

    assert attempts[-1].outcome == "transport-failure"


@pytest.mark.asyncio
async def test_fallback_skips_transport_failures():
    def handler(request):
        if request.url.host == "repo1.maven.org":
            raise httpx.ConnectTimeout("slow", request=request)
        return httpx.Response(200, content=b"ok")

    async with mock_client(handler) as client:
        response, attempts = await upstream.fetch_first_success(
            client, MAVEN_MIRRORS, ARTIFACT, "GET", "", []
        )
        assert response.status_code == 200
        await response.aclose()

    assert [a.outcome for a in attempts] == ["transport-failure", "success"]
    assert isinstance(attempts[0].error, UpstreamTimeout)


@pytest.mark.asyncio
async def test_fallback_all_transport_failures_raise_last():
    def handler(request):
        if request.url.host == "repo.spring.io":
            raise httpx.ReadTimeout("slow", request=request)
        raise httpx.ConnectError("refused", request=request)

    async with mock_client(handler) as client:
        with pytest.raises(UpstreamTimeout):
            await upstream.fetch_first_success(client, MAVEN_MIRRORS, ARTIFACT, "GET", "", [])


@pytest.mark.asyncio
async def test_fallback_without_mirrors():
    async with mock_client(lambda request: httpx.Response(200)) as client:
        with pytest.raises(UpstreamTransportFailure):
            await upstream.fetch_first_success(client, [], ARTIFACT, "GET", "", [])

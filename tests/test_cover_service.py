import asyncio

import httpx
import pytest

from cache_manager import CacheManager
from cover_service import CoverLookupError, CoverService, cover_url_from_search
from http_client import OptimizedHTTPClient


def make_service(handler, cache=None):
    client = OptimizedHTTPClient(timeout=1.0, transport=httpx.MockTransport(handler))
    return CoverService(client, cache=cache)


def lookup(service, title):
    async def run():
        try:
            return await service.fetch_cover_url(title)
        finally:
            await service.http_client.close()
    return asyncio.run(run())


def search_response(docs, num_found=None):
    return {"numFound": len(docs) if num_found is None else num_found, "docs": docs}


def test_zero_matches_returns_none():
    service = make_service(lambda request: httpx.Response(200, json=search_response([])))
    assert lookup(service, "No Such Book") is None


def test_first_isbn_builds_cover_url():
    def handler(request):
        assert request.url.path == "/search.json"
        assert request.url.params["title"] == "Dune"
        return httpx.Response(200, json=search_response([
            {"title": "Dune", "isbn": ["9780441013593", "0441013597"]},
            {"title": "Dune Messiah", "isbn": ["9780593098233"]},
        ]))

    service = make_service(handler)
    assert lookup(service, "Dune") == "https://covers.openlibrary.org/b/isbn/9780441013593-L.jpg"


def test_title_is_url_encoded():
    seen = []

    def handler(request):
        seen.append(str(request.url))
        return httpx.Response(200, json=search_response([]))

    lookup(make_service(handler), "War & Peace")
    assert "title=War+%26+Peace" in seen[0]


def test_first_match_without_isbn_returns_none():
    service = make_service(lambda request: httpx.Response(200, json=search_response([{"title": "Zine", "isbn": []}])))
    assert lookup(service, "Zine") is None

    service = make_service(lambda request: httpx.Response(200, json=search_response([{"title": "Zine"}])))
    assert lookup(service, "Zine") is None


def test_network_failure_returns_none():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    assert lookup(make_service(handler), "Dune") is None


def test_timeout_returns_none():
    def handler(request):
        raise httpx.ReadTimeout("too slow", request=request)

    assert lookup(make_service(handler), "Dune") is None


def test_server_error_returns_none():
    service = make_service(lambda request: httpx.Response(503, text="unavailable"))
    assert lookup(service, "Dune") is None


def test_malformed_payload_returns_none():
    service = make_service(lambda request: httpx.Response(200, text="<html>not json</html>"))
    assert lookup(service, "Dune") is None

    service = make_service(lambda request: httpx.Response(200, json=["not", "a", "dict"]))
    assert lookup(service, "Dune") is None


def test_results_are_cached():
    calls = []

    def handler(request):
        calls.append(request.url.params["title"])
        return httpx.Response(200, json=search_response([{"isbn": ["123"]}]))

    service = make_service(handler, cache=CacheManager())

    async def run():
        try:
            first = await service.fetch_cover_url("Dune")
            second = await service.fetch_cover_url("  dune ")
            return first, second
        finally:
            await service.http_client.close()

    first, second = asyncio.run(run())
    assert first == second == "https://covers.openlibrary.org/b/isbn/123-L.jpg"
    assert calls == ["Dune"]


def test_no_match_is_cached_but_failures_are_not():
    responses = [
        httpx.Response(500),
        httpx.Response(200, json=search_response([])),
    ]
    calls = []

    def handler(request):
        calls.append(1)
        return responses.pop(0)

    cache = CacheManager()
    service = make_service(handler, cache=cache)

    async def run():
        try:
            return [await service.fetch_cover_url("Dune") for _ in range(3)]
        finally:
            await service.http_client.close()

    assert asyncio.run(run()) == [None, None, None]
    # One failed request, one "no match" answer, then served from cache
    assert len(calls) == 2


def test_fetch_cover_urls_keeps_order_and_isolates_failures():
    async def handler(request):
        title = request.url.params["title"]
        if title == "Broken":
            raise httpx.ConnectError("down", request=request)
        if title == "Slow":
            await asyncio.sleep(0.05)
        return httpx.Response(200, json=search_response([{"isbn": [title.lower()]}]))

    service = make_service(handler)

    async def run():
        try:
            return await service.fetch_cover_urls(["Slow", "Broken", "Fast"])
        finally:
            await service.http_client.close()

    assert asyncio.run(run()) == [
        "https://covers.openlibrary.org/b/isbn/slow-L.jpg",
        None,
        "https://covers.openlibrary.org/b/isbn/fast-L.jpg",
    ]


def test_cover_url_from_search_custom_template():
    data = search_response([{"isbn": ["42"]}])
    assert cover_url_from_search(data, "https://img.example/{isbn}.png") == "https://img.example/42.png"


def test_cover_url_from_search_rejects_bad_payload():
    with pytest.raises(CoverLookupError):
        cover_url_from_search({"numFound": 3})

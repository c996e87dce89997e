"""
Tests pour le middleware de cache des reponses TMDB.

Verifie:
- La cle de cache ne contient jamais de parametre secret
- Seules les reponses GET 200 sont mises en cache
- Le TTL depend du chemin (discover/ vs details)
"""

import httpx
import pytest

from deckcache.adapters.api.caching import CachedResponse, CachingMiddleware, build_cache_key

BASE = "https://api.themoviedb.org/3"


class CountingHandler:
    """Handler qui repond toujours le meme statut et compte ses appels."""

    def __init__(self, status_code: int = 200, payload: dict | None = None) -> None:
        self.status_code = status_code
        self.payload = payload if payload is not None else {"id": 27205, "title": "Inception"}
        self.calls = 0

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        return httpx.Response(self.status_code, json=self.payload, request=request)


class TestBuildCacheKey:
    """Tests pour build_cache_key."""

    def test_strips_secret_params_case_insensitive(self):
        url = httpx.URL(f"{BASE}/discover/movie?api_key=SECRET&page=2&Token=abc&sort_by=popularity.desc")
        key = build_cache_key(url)

        assert key == "tmdb:http:/3/discover/movie?page=2&sort_by=popularity.desc"
        assert "SECRET" not in key
        assert "abc" not in key

    def test_no_query(self):
        assert build_cache_key(httpx.URL(f"{BASE}/movie/27205")) == "tmdb:http:/3/movie/27205"

    def test_only_secret_params(self):
        url = httpx.URL(f"{BASE}/movie/27205?api_key=SECRET")
        assert build_cache_key(url) == "tmdb:http:/3/movie/27205"

    def test_different_keys_share_entry(self):
        first = build_cache_key(httpx.URL(f"{BASE}/movie/1?api_key=AAA&language=fr-FR"))
        second = build_cache_key(httpx.URL(f"{BASE}/movie/1?api_key=BBB&language=fr-FR"))
        assert first == second


class TestCachingMiddleware:
    """Tests pour CachingMiddleware."""

    @pytest.mark.asyncio
    async def test_second_get_served_from_cache(self, response_cache):
        handler = CountingHandler()
        caching = CachingMiddleware(response_cache)

        first = await caching(httpx.Request("GET", f"{BASE}/movie/27205?api_key=A"), handler)
        second = await caching(httpx.Request("GET", f"{BASE}/movie/27205?api_key=B"), handler)

        assert handler.calls == 1
        assert first.json() == second.json() == {"id": 27205, "title": "Inception"}
        assert second.headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_cached_value_has_no_secret(self, response_cache):
        caching = CachingMiddleware(response_cache)

        await caching(httpx.Request("GET", f"{BASE}/movie/27205?api_key=SECRET"), CountingHandler())

        assert list(response_cache.entries) == ["tmdb:http:/3/movie/27205"]
        cached = response_cache.entries["tmdb:http:/3/movie/27205"]
        assert isinstance(cached, CachedResponse)
        assert cached.status_code == 200
        assert "SECRET" not in cached.body

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [404, 401, 500])
    async def test_non_200_not_cached(self, response_cache, status):
        handler = CountingHandler(status_code=status, payload={"status_code": 34})
        caching = CachingMiddleware(response_cache)

        await caching(httpx.Request("GET", f"{BASE}/movie/1"), handler)
        await caching(httpx.Request("GET", f"{BASE}/movie/1"), handler)

        assert handler.calls == 2
        assert response_cache.entries == {}

    @pytest.mark.asyncio
    async def test_non_get_bypasses_cache(self, response_cache):
        handler = CountingHandler()
        caching = CachingMiddleware(response_cache)

        await caching(httpx.Request("POST", f"{BASE}/movie/1/rating"), handler)
        await caching(httpx.Request("POST", f"{BASE}/movie/1/rating"), handler)

        assert handler.calls == 2
        assert response_cache.entries == {}

    @pytest.mark.asyncio
    async def test_ttl_by_path(self, response_cache):
        caching = CachingMiddleware(response_cache, discover_ttl=60, details_ttl=600)

        await caching(httpx.Request("GET", f"{BASE}/discover/movie?page=1"), CountingHandler())
        await caching(httpx.Request("GET", f"{BASE}/movie/27205"), CountingHandler())

        assert response_cache.ttls == {
            "tmdb:http:/3/discover/movie?page=1": 60,
            "tmdb:http:/3/movie/27205": 600,
        }

    @pytest.mark.asyncio
    async def test_zero_ttl_disables_caching(self, response_cache):
        handler = CountingHandler()
        caching = CachingMiddleware(response_cache, details_ttl=0)

        await caching(httpx.Request("GET", f"{BASE}/movie/27205"), handler)
        await caching(httpx.Request("GET", f"{BASE}/movie/27205"), handler)

        assert handler.calls == 2

    def test_resolve_ttl_relative_to_base_path(self, response_cache):
        caching = CachingMiddleware(response_cache, discover_ttl=30, details_ttl=900, base_path="/tmdb/3")

        assert caching.resolve_ttl(httpx.URL("https://proxy.local/tmdb/3/discover/movie")) == 30
        assert caching.resolve_ttl(httpx.URL("https://proxy.local/tmdb/3/movie/1")) == 900
        assert caching.resolve_ttl(httpx.URL("https://proxy.local/tmdb/3/genre/movie/list")) == 900

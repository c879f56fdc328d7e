import json

import httpx
import pytest

from wordkeeper.domain.errors import ReadFailureError
from wordkeeper.infrastructure.adapters.wordsapi import WordsApiClient
from wordkeeper.infrastructure.repositories import FileDictionaryCache

PAYLOAD = {
    "word": "pause",
    "pronunciation": {"all": "pɔz"},
    "results": [{"definition": "a temporary stop", "partOfSpeech": "noun"}],
}


def _client(tmp_path, handler):
    cache = FileDictionaryCache(tmp_path)
    return WordsApiClient("secret", cache, transport=httpx.MockTransport(handler)), cache


@pytest.mark.asyncio
async def test_lookup_fetches_and_caches(tmp_path):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=PAYLOAD)

    client, cache = _client(tmp_path, handler)
    response = await client.lookup("Pause")
    await client.close()

    assert response.pronunciation == "pɔz"
    assert response.results[0].definition == "a temporary stop"

    (request,) = seen
    assert request.url == "https://wordsapiv1.p.rapidapi.com/words/Pause"
    assert request.headers["X-RapidAPI-Key"] == "secret"
    assert request.headers["X-RapidAPI-Host"] == "wordsapiv1.p.rapidapi.com"

    assert cache.has_entry("pause")
    assert json.loads(cache.path_for("pause").read_text(encoding="utf-8")) == PAYLOAD


@pytest.mark.asyncio
async def test_lookup_uses_cache(tmp_path):
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    client, cache = _client(tmp_path, handler)
    cache.store("pause", PAYLOAD)

    response = await client.lookup("pause")
    assert response.word == "pause"


@pytest.mark.asyncio
async def test_refresh_bypasses_cache(tmp_path):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={**PAYLOAD, "pronunciation": "pɑz"})

    client, cache = _client(tmp_path, handler)
    cache.store("pause", PAYLOAD)

    response = await client.lookup("pause", refresh=True)
    assert len(calls) == 1
    assert response.pronunciation == "pɑz"
    assert cache.load()["pause"].pronunciation == "pɑz"


@pytest.mark.asyncio
async def test_unknown_word_returns_none(tmp_path):
    client, cache = _client(tmp_path, lambda request: httpx.Response(404, json={"success": False}))
    assert await client.lookup("qwzx") is None
    assert not cache.has_entry("qwzx")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="boom"),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json=["a", "list"]),
    ],
    ids=["server_error", "not_json", "not_object"],
)
async def test_bad_responses_raise(tmp_path, response):
    client, _ = _client(tmp_path, lambda request: response)
    with pytest.raises(ReadFailureError):
        await client.fetch("pause")


@pytest.mark.asyncio
async def test_transport_error_raises(tmp_path):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client, _ = _client(tmp_path, handler)
    with pytest.raises(ReadFailureError, match="dictionary request failed"):
        await client.fetch("pause")


@pytest.mark.asyncio
async def test_cache_hit_reads_only_its_own_entry(tmp_path):
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    client, cache = _client(tmp_path, handler)
    cache.store("pause", PAYLOAD)
    (tmp_path / "unrelated.json").write_text("{not json", encoding="utf-8")

    response = await client.lookup("Pause")
    assert response.pronunciation == "pɔz"

"""
WordsAPI client (RapidAPI). Fetched entries are written to the dictionary cache.
"""

import logging
from urllib.parse import quote

import httpx

from wordkeeper.domain.constants import DEFAULT_WORDSAPI_HOST, REQUEST_TIMEOUT
from wordkeeper.domain.errors import ReadFailureError
from wordkeeper.domain.models import DictionaryResponse
from wordkeeper.domain.ports import DictionaryCache
from wordkeeper.infrastructure.codec import dictionary_response_from_dict


class WordsApiClient:
    def __init__(
        self,
        api_key: str,
        cache: DictionaryCache,
        host: str = DEFAULT_WORDSAPI_HOST,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.api_key = api_key
        self.cache = cache
        self.host = host
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def base_url(self) -> str:
        return f"https://{self.host}"

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=REQUEST_TIMEOUT,
                transport=self._transport,
                headers={
                    "X-RapidAPI-Key": self.api_key,
                    "X-RapidAPI-Host": self.host,
                },
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch(self, word: str) -> dict | None:
        """
        Fetch the raw WordsAPI payload for `word`.

        Returns None when the word is unknown to the API.

        Raises:
            ReadFailureError: On transport errors or unexpected status codes.
        """
        client = await self._get_client()
        try:
            resp = await client.get(f"/words/{quote(word.strip())}")
        except httpx.HTTPError as e:
            raise ReadFailureError("dictionary request failed", word=word, error=str(e)) from e

        if resp.status_code == 404:
            self.logger.info(f"WordsAPI has no entry for '{word}'")
            return None
        if resp.status_code != 200:
            raise ReadFailureError(
                "dictionary request failed", word=word, status=resp.status_code
            )
        try:
            payload = resp.json()
        except ValueError as e:
            raise ReadFailureError("dictionary response is not JSON", word=word) from e
        if not isinstance(payload, dict):
            raise ReadFailureError("dictionary response is not an object", word=word)
        return payload

    async def lookup(self, word: str, refresh: bool = False) -> DictionaryResponse | None:
        """
        Return the dictionary entry for `word`, fetching and caching it when absent.
        """
        if not refresh:
            cached = self.cache.load_entry(word)
            if cached is not None:
                self.logger.debug(f"Dictionary cache hit for '{word}'")
                return cached

        payload = await self.fetch(word)
        if payload is None:
            return None
        self.cache.store(word, payload)
        return dictionary_response_from_dict(payload)

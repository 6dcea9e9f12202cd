import logging
from enum import StrEnum
from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname

import httpx

from linkload.dom import ImportDocument
from linkload.errors import FetchError
from linkload.typing import URI

log = logging.root


class ResponseType(StrEnum):
    Document = "document"
    Text = "text"


def path_of(uri: URI) -> Path:
    return Path(url2pathname(urlparse(uri).path))


class Fetcher:
    """Fetches documents and resources from `file:`/`http(s):` URLs or plain paths.

    The HTTP client is created on first use unless one is given, and is closed by
    `aclose()` only if the fetcher created it.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        self.client = client
        self.timeout = timeout
        self.owns_client = client is None

    async def __aenter__(self) -> "Fetcher":
        return self

    async def __aexit__(self, *_):
        await self.aclose()

    async def aclose(self):
        if self.owns_client and self.client is not None:
            await self.client.aclose()
            self.client = None

    async def fetch(
        self,
        url: URI,
        response_type: ResponseType = ResponseType.Document,
    ) -> ImportDocument | str:
        match response_type:
            case ResponseType.Document:
                return await self.fetch_document(url)
            case ResponseType.Text:
                return await self.fetch_text(url)

    async def fetch_document(self, url: URI) -> ImportDocument:
        return ImportDocument.parse(url, await self.fetch_text(url))

    async def fetch_text(self, url: URI) -> str:
        log.debug("Fetching %s", url)

        match urlparse(url).scheme:
            case "http" | "https":
                return await self.fetch_http(url)
            case "file":
                return self.read_file(url, path_of(url))
            # Plain paths, including Windows paths with a drive letter.
            case scheme if len(scheme) <= 1:
                return self.read_file(url, Path(url))
            case scheme:
                raise FetchError(url, reason=f"Unsupported URL scheme '{scheme}'")

    async def fetch_http(self, url: URI) -> str:
        if self.client is None:
            self.client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
            )

        try:
            response = await self.client.get(url)
        except httpx.HTTPError as e:
            raise FetchError(url, reason=str(e) or type(e).__name__) from e

        if not response.is_success:
            raise FetchError(url, response.status_code, response.reason_phrase)

        return response.text

    def read_file(self, url: URI, path: Path) -> str:
        if not path.is_file():
            raise FetchError(url, 404, "Not Found")

        try:
            return path.read_text("utf-8")
        except OSError as e:
            raise FetchError(url, reason=e.strerror or str(e)) from e
        except UnicodeDecodeError as e:
            raise FetchError(url, reason=f"Not valid UTF-8: {e.reason}") from e

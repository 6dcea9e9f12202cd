from linkload.typing import URI


class LinkLoadError(Exception):
    pass


class FetchError(LinkLoadError):
    """Raised when a document or resource cannot be fetched.

    `status` is the HTTP status code, or 404 for a missing local file. It is `None`
    when the request never got a response, e.g. on connection errors.
    """

    def __init__(self, url: URI, status: int | None = None, reason: str = "") -> None:
        self.url = url
        self.status = status
        self.reason = reason

        details = " ".join(str(part) for part in (status, reason) if part)
        super().__init__(f"Failed to fetch '{url}': {details}".rstrip(": "))


class NativeImportsUnavailable(LinkLoadError):
    def __init__(self, url: URI) -> None:
        self.url = url
        super().__init__(f"Native imports are not supported by this host: {url}")

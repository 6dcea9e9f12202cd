from linkload.typing import URI


def derive_path(url: URI) -> str:
    """Returns the directory part of `url`, including the trailing separator.

    Relative references found in a document fetched from `url` are resolved by
    prepending this path. A URL without any separator is a bare file name and has
    an empty path:

    ```python
    derive_path("https://example.com/ui/dialog.html")  # "https://example.com/ui/"
    derive_path("ui\\dialog.html")                     # "ui\\"
    derive_path("dialog.html")                         # ""
    ```
    """
    if not url or url.endswith(("/", "\\")):
        return url

    last_slash = url.rfind("/")

    if last_slash == -1:
        last_slash = url.rfind("\\")

    return "" if last_slash == -1 else url[: last_slash + 1]

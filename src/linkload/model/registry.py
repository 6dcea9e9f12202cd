import logging

from linkload.dom import ImportDocument
from linkload.typing import URI

log = logging.root


class ScriptOriginRegistry:
    """Maps the resolved URL of every scanned script to the import that declared it.

    A running script only knows its own URL, so this is how it finds out which
    import document it belongs to. Entries are never removed: the registry is
    append-only and lives as long as its owning `HTMLImports` instance.
    """

    def __init__(self) -> None:
        self.origins: dict[URI, ImportDocument] = {}

    def record(self, script_url: URI, doc: ImportDocument):
        if (previous := self.origins.get(script_url)) and previous is not doc:
            log.debug("Script %s re-declared by %s", script_url, doc.uri)
        self.origins[script_url] = doc

    def lookup(self, script_url: URI) -> ImportDocument | None:
        return self.origins.get(script_url)

    def __contains__(self, script_url: URI) -> bool:
        return script_url in self.origins

    def __len__(self) -> int:
        return len(self.origins)

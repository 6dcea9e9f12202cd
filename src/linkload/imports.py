import logging

from linkload.config import Settings, get_settings
from linkload.dom import ImportDocument
from linkload.fetcher import Fetcher
from linkload.host import Host
from linkload.model import ImportLoader, ImportProgress, ScriptOriginRegistry
from linkload.typing import URI

log = logging.root


class HTMLImports:
    """Entry point for adding imports to a host.

    Imports go through the host's native support when it has some, unless
    `Settings.force_polyfill` is set. Otherwise they are expanded by an
    `ImportLoader`. The choice is made once, when the instance is created.

    The instance owns the registry mapping scripts to the import documents that
    declared them. It only grows, and lives as long as the instance does.
    """

    def __init__(
        self,
        host: Host,
        fetcher: Fetcher | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()

        self.host = host
        self.owns_fetcher = fetcher is None
        self.fetcher = fetcher or Fetcher(timeout=settings.fetch_timeout)
        self.registry = ScriptOriginRegistry()
        self.loader = ImportLoader(self.host, self.fetcher, self.registry)
        self.use_native = host.supports_native_imports and not settings.force_polyfill

        if not self.use_native:
            log.info("Using the import loader, native imports are not in use")

    async def __aenter__(self) -> "HTMLImports":
        return self

    async def __aexit__(self, *_):
        if self.owns_fetcher:
            await self.fetcher.aclose()

    async def add_import(
        self,
        url: URI,
        async_hint: bool = False,
        progress: ImportProgress | None = None,
    ) -> ImportDocument | None:
        """Adds the import at `url` with all its dependencies.

        Returns the import document, or `None` if the import itself could not be
        loaded. Failures of nested imports, stylesheets or scripts are contained:
        they are logged and recorded in `progress.failures`.

        `async_hint` is only honored by native imports.
        """
        if self.use_native:
            return await self.host.native_import(url, async_hint)

        return await self.loader.expand(url, None, None, progress)

    def current_import_document(self) -> ImportDocument:
        """Returns the import document that declared the script currently running.

        Falls back to the host's main document when the script is unknown.
        """
        if self.use_native:
            return self.host.current_script_owner()

        script_url = self.host.current_script

        if script_url is not None and (doc := self.registry.lookup(script_url)):
            return doc

        log.warning("Unknown import for script: %s", script_url)
        return self.host.document

    def has_native_support(self) -> bool:
        return self.use_native

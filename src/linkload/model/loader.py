import asyncio
import logging
from typing import Awaitable, Iterable

from linkload.dom import ImportDocument
from linkload.fetcher import Fetcher
from linkload.host import Host
from linkload.model.context import ImportContext, ImportProgress, RootContext
from linkload.model.dependency import DependencyKind, Group, group_dependencies
from linkload.model.paths import derive_path
from linkload.model.registry import ScriptOriginRegistry
from linkload.model.scanner import ElementScanner
from linkload.typing import URI

log = logging.root

Prefetched = ImportDocument | Awaitable[ImportDocument]


def consume(futures: Iterable[Awaitable]):
    """Marks the outcome of futures nobody is going to await as retrieved."""
    for future in futures:
        if isinstance(future, asyncio.Future):
            future.add_done_callback(lambda f: f.cancelled() or f.exception())


class ImportLoader:
    """Expands import documents and loads their dependencies.

    Everything an import declares starts loading as early as possible, under two
    ordering rules:

    1. Scripts execute in the order they are declared, which the host guarantees
       for scripts injected in that order.
    2. Nothing declared after a nested import is injected before that import has
       been fully expanded, i.e. before its own scripts have all been injected.

    Stylesheets never block anything. Contiguous scripts are injected together.
    Nested imports are fetched as soon as they are discovered, but expanded one
    after another in declaration order.
    """

    def __init__(
        self,
        host: Host,
        fetcher: Fetcher,
        registry: ScriptOriginRegistry,
    ) -> None:
        self.host = host
        self.fetcher = fetcher
        self.registry = registry

    async def expand(
        self,
        url: URI,
        prefetched: Prefetched | None = None,
        root: RootContext | None = None,
        progress: ImportProgress | None = None,
    ) -> ImportDocument | None:
        """Expands the import at `url` and loads everything it depends on.

        Called without `root`, this is a top-level request: a new root context is
        created, and the call only returns once every stylesheet and script of the
        whole import tree has loaded. Nested calls share the root context of their
        request and return as soon as their own dependencies have been queued.

        Errors are contained: they are logged, recorded in the progress of the
        request, and turned into a `None` result.
        """
        if root is None:
            root = RootContext.create(self.host.resolve(url), progress)
            return await self.expand_in(url, prefetched, root, is_root=True)

        return await self.expand_in(url, prefetched, root, is_root=False)

    async def request(
        self,
        url: URI,
        progress: ImportProgress | None = None,
    ) -> RootContext:
        """Runs a top-level import request and returns its root context."""
        root = RootContext.create(self.host.resolve(url), progress)
        await self.expand_in(url, None, root, is_root=True)
        return root

    async def expand_in(
        self,
        url: URI,
        prefetched: Prefetched | None,
        root: RootContext,
        is_root: bool,
    ) -> ImportDocument | None:
        context = ImportContext(base_url=derive_path(url))
        expansion = root.expansion(self.host.resolve(url))

        try:
            doc = await self.obtain(url, prefetched)
            dependencies = ElementScanner(context, self.registry, self.host).scan(doc)
            grouping = group_dependencies(dependencies)

            expansion.doc = doc
            expansion.grouping = grouping
            expansion.imports = [self.host.resolve(dep.url) for dep in grouping.imports]

            root.style_loads.extend(
                self.host.inject_stylesheet(dep.url) for dep in grouping.stylesheets
            )

            # Fetches all new nested imports in parallel right away. Expanding them
            # still happens in order below.
            prefetches = {
                nested: asyncio.create_task(self.fetcher.fetch_document(nested))
                for nested in expansion.imports
                if root.claim(nested)
            }
            expansion.claimed = list(prefetches)

            try:
                for group in grouping.groups:
                    await self.load_group(group, prefetches, root)
            finally:
                consume(prefetches.values())

            # Nested imports don't wait for their own resources, so that sibling
            # imports are not held up. The root waits for the whole tree instead.
            if is_root:
                try:
                    await root.settle()
                finally:
                    consume(root.style_loads + root.script_loads)

                root.progress.mark_loaded()

            return context.doc

        except Exception as e:
            log.error("Unable to add import '%s': %s", url, e)
            expansion.failure = root.progress.fail(url, e)
            return None

    async def obtain(self, url: URI, prefetched: Prefetched | None) -> ImportDocument:
        match prefetched:
            case None:
                return await self.fetcher.fetch_document(self.host.resolve(url))
            case ImportDocument():
                return prefetched
            case _:
                return await prefetched

    async def load_group(
        self,
        group: Group,
        prefetches: dict[URI, asyncio.Task[ImportDocument]],
        root: RootContext,
    ):
        match group.kind:
            case DependencyKind.Import:
                key = self.host.resolve(group.head.url)

                # A missing prefetch means the import was queued elsewhere first.
                if (fetch := prefetches.pop(key, None)) is None:
                    log.debug("Skipping duplicate import %s", group.head.url)
                    return

                await self.expand(group.head.url, fetch, root)
                root.progress.mark_loaded()

            case DependencyKind.Script:
                # Injects the whole group at once. The host keeps them in order.
                root.script_loads.extend(
                    self.host.inject_script(dep.url) for dep in group
                )

            case kind:
                raise ValueError(f"Unexpected dependency group kind: {kind}")

import asyncio
import dataclasses as D
import logging
from contextvars import ContextVar
from enum import StrEnum
from pathlib import Path
from typing import Callable
from urllib.parse import urljoin

from linkload.dom import ImportDocument
from linkload.errors import NativeImportsUnavailable
from linkload.fetcher import Fetcher
from linkload.typing import URI
from linkload.util import must

log = logging.root

# The resolved URL of the script being executed, if any.
current_script: ContextVar[URI | None] = ContextVar("current_script", default=None)


class ElementKind(StrEnum):
    Script = "script"
    Stylesheet = "stylesheet"


class LoadState(StrEnum):
    Pending = "pending"
    Loaded = "loaded"
    Failed = "failed"


@D.dataclass
class InjectedElement:
    kind: ElementKind
    url: URI
    state: LoadState = LoadState.Pending
    source: str | None = D.field(default=None, repr=False)


ScriptRunner = Callable[[InjectedElement, str], None]


def log_execution(element: InjectedElement, source: str):
    log.info("Executing %s (%d characters)", element.url, len(source))


def default_location() -> URI:
    uri = Path.cwd().as_uri()
    return uri if uri.endswith("/") else uri + "/"


class Host:
    """The environment scripts and stylesheets are injected into.

    Injection is synchronous: the element is inserted into `head` right away, and
    the returned future completes once the resource has loaded (or fails if it
    could not be loaded). Hosts must execute scripts in insertion order.
    """

    supports_native_imports: bool = False

    def __init__(
        self,
        location: URI | None = None,
        document: ImportDocument | None = None,
    ) -> None:
        self.location = location or default_location()
        self.document = document or ImportDocument.empty(self.location)
        self.head: list[InjectedElement] = []

    def resolve(self, url: URI) -> URI:
        return urljoin(self.location, url)

    @property
    def current_script(self) -> URI | None:
        return current_script.get()

    def insert(self, kind: ElementKind, url: URI) -> InjectedElement:
        element = InjectedElement(kind, self.resolve(url))
        self.head.append(element)
        return element

    def inject_script(self, url: URI) -> asyncio.Future[None]:
        raise NotImplementedError

    def inject_stylesheet(self, url: URI) -> asyncio.Future[None]:
        raise NotImplementedError

    async def native_import(self, url: URI, async_hint: bool = False) -> ImportDocument:
        raise NativeImportsUnavailable(url)

    def current_script_owner(self) -> ImportDocument:
        return self.document


class DocumentHost(Host):
    """A host that fetches injected resources and runs scripts through `runner`.

    Resources are fetched in parallel, but a script only executes after every
    script inserted before it has executed or failed, the same way a browser treats
    dynamically inserted scripts that are not `async`.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        location: URI | None = None,
        runner: ScriptRunner | None = None,
    ) -> None:
        super().__init__(location)
        self.fetcher = fetcher
        self.runner = runner or log_execution
        self.executed: list[InjectedElement] = []
        self.last_script: asyncio.Future[None] | None = None

    def inject_script(self, url: URI) -> asyncio.Future[None]:
        element = self.insert(ElementKind.Script, url)
        load = asyncio.create_task(self.load_script(element, self.last_script))
        self.last_script = load
        return load

    def inject_stylesheet(self, url: URI) -> asyncio.Future[None]:
        element = self.insert(ElementKind.Stylesheet, url)
        return asyncio.create_task(self.load_resource(element))

    async def load_resource(self, element: InjectedElement):
        try:
            element.source = await self.fetcher.fetch_text(element.url)
        except Exception:
            element.state = LoadState.Failed
            raise

        element.state = LoadState.Loaded

    async def load_script(
        self,
        element: InjectedElement,
        previous: asyncio.Future[None] | None,
    ):
        fetching = asyncio.create_task(self.load_resource(element))

        if previous is not None:
            # The outcome of the previous script is reported by its own future.
            await asyncio.wait([previous])

        await fetching
        token = current_script.set(element.url)

        try:
            self.runner(element, must(element.source))
        except Exception:
            element.state = LoadState.Failed
            raise
        finally:
            current_script.reset(token)

        self.executed.append(element)


class DryRunHost(Host):
    """A host that records injections without loading anything."""

    def inject_script(self, url: URI) -> asyncio.Future[None]:
        return self.loaded(self.insert(ElementKind.Script, url))

    def inject_stylesheet(self, url: URI) -> asyncio.Future[None]:
        return self.loaded(self.insert(ElementKind.Stylesheet, url))

    def loaded(self, element: InjectedElement) -> asyncio.Future[None]:
        element.state = LoadState.Loaded
        future = asyncio.get_running_loop().create_future()
        future.set_result(None)
        return future

import asyncio
import dataclasses as D
from typing import Awaitable, Callable

from linkload.dom import ImportDocument
from linkload.model.dependency import Dependency, Grouping
from linkload.typing import URI


@D.dataclass
class ImportFailure:
    url: URI
    error: BaseException

    def __str__(self) -> str:
        return f"{self.url}: {self.error}"


@D.dataclass
class ImportProgress:
    """Progress of one top-level import request, shared by all nested imports.

    `total` counts the root import plus every distinct nested import discovered so
    far. `loaded` counts nested imports that finished expanding, plus the root once
    every stylesheet and script of the whole tree has loaded. Subtree failures do
    not propagate as exceptions, so they are collected in `failures` instead.
    """

    loaded: int = 0
    total: int = 0
    failures: list[ImportFailure] = D.field(default_factory=list)
    on_update: Callable[["ImportProgress"], None] | None = D.field(
        default=None, repr=False, compare=False
    )

    @property
    def done(self) -> bool:
        return self.total > 0 and self.loaded == self.total

    def reset(self):
        self.loaded = 0
        self.total = 1
        self.failures.clear()
        self.notify()

    def add_pending(self):
        self.total += 1
        self.notify()

    def mark_loaded(self):
        self.loaded += 1
        self.notify()

    def fail(self, url: URI, error: BaseException) -> ImportFailure:
        failure = ImportFailure(url, error)
        self.failures.append(failure)
        self.notify()
        return failure

    def notify(self):
        if self.on_update is not None:
            self.on_update(self)


@D.dataclass
class ImportContext:
    """State of a single expansion call. Not shared across recursion levels."""

    base_url: str
    doc: ImportDocument | None = None
    dependencies: list[Dependency] = D.field(default_factory=list)


@D.dataclass
class Expansion:
    """What became of one import of a request, kept for reporting."""

    url: URI
    doc: ImportDocument | None = None
    grouping: Grouping | None = None
    imports: list[URI] = D.field(default_factory=list)
    claimed: list[URI] = D.field(default_factory=list)
    failure: ImportFailure | None = None


@D.dataclass
class RootContext:
    """State shared by every expansion spawned from one top-level import request.

    Created by the top-level call and passed down explicitly to all nested calls.
    Only mutated from the event loop thread.
    """

    progress: ImportProgress
    url: URI
    imported_urls: set[URI] = D.field(default_factory=set)
    style_loads: list[Awaitable[None]] = D.field(default_factory=list)
    script_loads: list[Awaitable[None]] = D.field(default_factory=list)
    expansions: dict[URI, Expansion] = D.field(default_factory=dict)

    @staticmethod
    def create(url: URI, progress: ImportProgress | None = None) -> "RootContext":
        if progress is None:
            progress = ImportProgress()

        progress.reset()

        # The root is already queued, so that an import cycle leading back to it
        # stops there.
        return RootContext(progress, url, imported_urls={url})

    def claim(self, url: URI) -> bool:
        """Registers a nested import, returning `False` if it was already queued."""
        if url in self.imported_urls:
            return False

        self.imported_urls.add(url)
        self.progress.add_pending()
        return True

    def expansion(self, url: URI) -> Expansion:
        return self.expansions.setdefault(url, Expansion(url))

    async def settle(self):
        """Waits for every stylesheet and script injected anywhere in the tree.

        Raises the first failure, but only once every other load has finished.
        """
        outcomes = await asyncio.gather(
            *self.style_loads,
            *self.script_loads,
            return_exceptions=True,
        )

        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome

import unittest

from linkload.dom import ImportDocument
from linkload.errors import FetchError
from linkload.host import DocumentHost, DryRunHost, Host, InjectedElement, LoadState
from linkload.model import ImportLoader, ImportProgress, ScriptOriginRegistry

from .dsl import FakeFetcher, FakeSite, TickCounter
from .dsl.fake_site import SITE_ROOT

NESTED_SITE = FakeSite.parse(
    """\
    -- index.html --
    <link rel="import" href="a.html">
    <script src="index.js"></script>
    -- a.html --
    <script src="a1.js"></script>
    <link rel="import" href="b.html">
    <script src="a2.js"></script>
    -- b.html --
    <script src="b1.js"></script>
    <link rel="import" href="c.html">
    <script src="b2.js"></script>
    -- c.html --
    <script src="c1.js"></script>
    -- index.js --
    -- a1.js --
    -- a2.js --
    -- b1.js --
    -- b2.js --
    -- c1.js --
    """
)


class RecordingHost(DryRunHost):
    """Records the event loop turn every element is injected in."""

    def __init__(self, ticker: TickCounter) -> None:
        super().__init__(location=SITE_ROOT)
        self.ticker = ticker
        self.injected_at: dict[str, int] = {}

    def insert(self, kind, url) -> InjectedElement:
        element = super().insert(kind, url)
        self.injected_at[element.url] = self.ticker.ticks
        return element


class TestImportLoader(unittest.IsolatedAsyncioTestCase):
    def loader(self, host: Host, fetcher: FakeFetcher) -> ImportLoader:
        return ImportLoader(host, fetcher, ScriptOriginRegistry())

    def head_of(self, host: Host) -> list[str]:
        return [element.url.removeprefix(SITE_ROOT) for element in host.head]

    async def test_nested_imports_order(self):
        fetcher = NESTED_SITE.fetcher()
        host = DocumentHost(fetcher, location=SITE_ROOT)
        progress = ImportProgress()

        doc = await self.loader(host, fetcher).expand(
            NESTED_SITE.url("index.html"), progress=progress
        )

        assert doc is not None
        self.assertEqual(doc.uri, NESTED_SITE.url("index.html"))

        expected = ["a1.js", "b1.js", "c1.js", "b2.js", "a2.js", "index.js"]
        self.assertEqual(self.head_of(host), expected)
        self.assertEqual(
            [element.url for element in host.executed],
            NESTED_SITE.urls(*expected),
        )

        self.assertEqual((progress.loaded, progress.total), (4, 4))
        self.assertTrue(progress.done)
        self.assertEqual(progress.failures, [])

    async def test_scripts_execute_in_order(self):
        site = FakeSite.parse(
            """\
            -- index.html --
            <script src="s1.js"></script>
            <script src="s2.js"></script>
            <script src="s3.js"></script>
            -- s1.js --
            -- s2.js --
            -- s3.js --
            """
        )

        fetcher = site.fetcher(delays={"s1.js": 0.03, "s2.js": 0.02, "s3.js": 0.01})
        host = DocumentHost(fetcher, location=SITE_ROOT)

        await self.loader(host, fetcher).expand(site.url("index.html"))

        # Fetched in parallel, executed in order.
        self.assertEqual(
            fetcher.completed,
            site.urls("index.html", "s3.js", "s2.js", "s1.js"),
        )
        self.assertEqual(
            [element.url for element in host.executed],
            site.urls("s1.js", "s2.js", "s3.js"),
        )

    async def test_script_group_is_injected_at_once(self):
        site = FakeSite.parse(
            """\
            -- index.html --
            <script src="s1.js"></script>
            <script src="s2.js"></script>
            <script src="s3.js"></script>
            <link rel="import" href="x.html">
            <script src="s4.js"></script>
            -- x.html --
            """
        )

        async with TickCounter() as ticker:
            host = RecordingHost(ticker)
            await self.loader(host, site.fetcher()).expand(site.url("index.html"))

        turns = [host.injected_at[url] for url in site.urls("s1.js", "s2.js", "s3.js")]
        self.assertEqual(len(set(turns)), 1)

        # The script after the import waits for the import to be fetched.
        self.assertGreater(host.injected_at[site.url("s4.js")], turns[0])

    async def test_stylesheets_do_not_block(self):
        site = FakeSite.parse(
            """\
            -- index.html --
            <script src="a.js"></script>
            <link rel="import" href="x.html">
            <link rel="stylesheet" href="late.css">
            -- x.html --
            <link rel="stylesheet" href="x.css">
            <script src="x.js"></script>
            """
        )

        host = DryRunHost(location=SITE_ROOT)
        await self.loader(host, site.fetcher()).expand(site.url("index.html"))

        self.assertEqual(self.head_of(host), ["late.css", "a.js", "x.css", "x.js"])
        self.assertTrue(all(e.state == LoadState.Loaded for e in host.head))

    async def test_shared_import_is_fetched_once(self):
        site = FakeSite.parse(
            """\
            -- index.html --
            <link rel="import" href="a.html">
            <link rel="import" href="b.html">
            -- a.html --
            <link rel="import" href="shared.html">
            <script src="a.js"></script>
            -- b.html --
            <link rel="import" href="shared.html">
            <script src="b.js"></script>
            -- shared.html --
            <script src="shared.js"></script>
            """
        )

        fetcher = site.fetcher()
        host = DryRunHost(location=SITE_ROOT)
        progress = ImportProgress()

        await self.loader(host, fetcher).expand(site.url("index.html"), progress=progress)

        self.assertEqual(fetcher.requested(site.url("shared.html")), 1)
        self.assertEqual(self.head_of(host), ["shared.js", "a.js", "b.js"])
        self.assertEqual((progress.loaded, progress.total), (4, 4))

    async def test_duplicate_import_in_one_document(self):
        site = FakeSite.parse(
            """\
            -- index.html --
            <link rel="import" href="x.html">
            <script src="a.js"></script>
            <link rel="import" href="./x.html">
            -- x.html --
            <script src="x.js"></script>
            """
        )

        fetcher = site.fetcher()
        host = DryRunHost(location=SITE_ROOT)
        loader = self.loader(host, fetcher)

        root = await loader.request(site.url("index.html"))

        self.assertEqual(fetcher.requested(site.url("x.html")), 1)
        self.assertEqual(self.head_of(host), ["x.js", "a.js"])
        self.assertEqual(root.progress.total, 2)
        self.assertEqual(
            root.expansion(site.url("index.html")).claimed,
            [site.url("x.html")],
        )

    async def test_cycle(self):
        site = FakeSite.parse(
            """\
            -- a.html --
            <script src="a1.js"></script>
            <link rel="import" href="b.html">
            <script src="a2.js"></script>
            -- b.html --
            <link rel="import" href="a.html">
            <script src="b.js"></script>
            """
        )

        fetcher = site.fetcher()
        host = DryRunHost(location=SITE_ROOT)
        progress = ImportProgress()

        doc = await self.loader(host, fetcher).expand(site.url("a.html"), progress=progress)

        self.assertIsNotNone(doc)
        self.assertEqual(fetcher.requested(site.url("a.html")), 1)
        self.assertEqual(self.head_of(host), ["a1.js", "b.js", "a2.js"])
        self.assertEqual((progress.loaded, progress.total), (2, 2))

    async def test_nested_imports_are_prefetched(self):
        site = FakeSite.parse(
            """\
            -- index.html --
            <link rel="import" href="slow.html">
            <link rel="import" href="fast.html">
            -- slow.html --
            <script src="slow.js"></script>
            -- fast.html --
            <script src="fast.js"></script>
            """
        )

        fetcher = site.fetcher(delays={"slow.html": 0.02})
        host = DryRunHost(location=SITE_ROOT)

        await self.loader(host, fetcher).expand(site.url("index.html"))

        self.assertEqual(
            fetcher.requests,
            site.urls("index.html", "slow.html", "fast.html"),
        )
        self.assertEqual(
            fetcher.completed,
            site.urls("index.html", "fast.html", "slow.html"),
        )

        # Fetched early, but expanded in declaration order.
        self.assertEqual(self.head_of(host), ["slow.js", "fast.js"])

    async def test_progress_is_done_only_at_the_end(self):
        snapshots: list[tuple[int, int]] = []
        progress = ImportProgress(on_update=lambda p: snapshots.append((p.loaded, p.total)))

        fetcher = NESTED_SITE.fetcher(delays={"a1.js": 0.01, "index.js": 0.02})
        host = DocumentHost(fetcher, location=SITE_ROOT)

        await self.loader(host, fetcher).expand(
            NESTED_SITE.url("index.html"), progress=progress
        )

        self.assertEqual(snapshots[0], (0, 1))
        self.assertEqual(snapshots[-1], (4, 4))
        self.assertTrue(all(loaded < total for loaded, total in snapshots[:-1]))

        # The root is the last one to complete.
        self.assertEqual(len(host.executed), 6)

    async def test_progress_is_reset_per_request(self):
        progress = ImportProgress(loaded=3, total=5)
        fetcher = NESTED_SITE.fetcher()

        await self.loader(DryRunHost(location=SITE_ROOT), fetcher).expand(
            NESTED_SITE.url("c.html"), progress=progress
        )

        self.assertEqual((progress.loaded, progress.total), (1, 1))

    async def test_nested_failure_is_contained(self):
        site = FakeSite.parse(
            """\
            -- index.html --
            <script src="before.js"></script>
            <link rel="import" href="missing.html">
            <script src="after.js"></script>
            -- before.js --
            -- after.js --
            """
        )

        fetcher = site.fetcher()
        host = DocumentHost(fetcher, location=SITE_ROOT)
        progress = ImportProgress()

        with self.assertLogs(level="ERROR"):
            doc = await self.loader(host, fetcher).expand(
                site.url("index.html"), progress=progress
            )

        self.assertIsNotNone(doc)
        self.assertEqual(
            [element.url for element in host.executed],
            site.urls("before.js", "after.js"),
        )

        [failure] = progress.failures
        self.assertEqual(failure.url, site.url("missing.html"))
        self.assertIsInstance(failure.error, FetchError)
        self.assertEqual(failure.error.status, 404)

    async def test_sibling_import_after_failed_import(self):
        site = FakeSite.parse(
            """\
            -- index.html --
            <link rel="import" href="missing.html">
            <link rel="import" href="sibling.html">
            <script src="after.js"></script>
            -- sibling.html --
            <script src="sibling.js"></script>
            """
        )

        host = DryRunHost(location=SITE_ROOT)
        progress = ImportProgress()

        with self.assertLogs(level="ERROR"):
            doc = await self.loader(host, site.fetcher()).expand(
                site.url("index.html"), progress=progress
            )

        self.assertIsNotNone(doc)
        self.assertEqual(self.head_of(host), ["sibling.js", "after.js"])
        self.assertEqual((progress.loaded, progress.total), (3, 3))
        self.assertEqual([f.url for f in progress.failures], [site.url("missing.html")])

    async def test_failed_stylesheet_waits_for_scripts(self):
        site = FakeSite.parse(
            """\
            -- index.html --
            <link rel="stylesheet" href="missing.css">
            <script src="s1.js"></script>
            <script src="s2.js"></script>
            <script src="s3.js"></script>
            -- s1.js --
            -- s2.js --
            -- s3.js --
            """
        )

        fetcher = site.fetcher(delays={"s1.js": 0.01, "s2.js": 0.02, "s3.js": 0.03})
        host = DocumentHost(fetcher, location=SITE_ROOT)
        progress = ImportProgress()

        with self.assertLogs(level="ERROR"):
            doc = await self.loader(host, fetcher).expand(
                site.url("index.html"), progress=progress
            )

        self.assertIsNone(doc)
        self.assertEqual(
            [element.url for element in host.executed],
            site.urls("s1.js", "s2.js", "s3.js"),
        )
        self.assertEqual(host.head[0].state, LoadState.Failed)
        self.assertEqual([f.url for f in progress.failures], [site.url("index.html")])

    async def test_stylesheet_load_result(self):
        site = FakeSite.parse(
            """\
            -- a.css --
            p {}
            """
        )

        host = DocumentHost(site.fetcher(), location=SITE_ROOT)

        self.assertIsNone(await host.inject_stylesheet("a.css"))
        self.assertEqual(host.head[0].source, "p {}\n")
        self.assertEqual(host.head[0].state, LoadState.Loaded)

    async def test_root_failure(self):
        site = FakeSite.parse("")
        progress = ImportProgress()

        with self.assertLogs(level="ERROR"):
            doc = await self.loader(DryRunHost(location=SITE_ROOT), site.fetcher()).expand(
                site.url("missing.html"), progress=progress
            )

        self.assertIsNone(doc)
        self.assertEqual((progress.loaded, progress.total), (0, 1))
        self.assertEqual([f.url for f in progress.failures], [site.url("missing.html")])

    async def test_script_failure_fails_the_request(self):
        site = FakeSite.parse(
            """\
            -- index.html --
            <script src="broken.js"></script>
            -- broken.js --
            """
        )

        fetcher = site.fetcher(failing={"broken.js"})
        host = DocumentHost(fetcher, location=SITE_ROOT)
        progress = ImportProgress()

        with self.assertLogs(level="ERROR"):
            doc = await self.loader(host, fetcher).expand(
                site.url("index.html"), progress=progress
            )

        self.assertIsNone(doc)
        self.assertFalse(progress.done)
        self.assertEqual([f.url for f in progress.failures], [site.url("index.html")])
        self.assertEqual(host.head[0].state, LoadState.Failed)

    async def test_prefetched_root(self):
        site = FakeSite.parse(
            """\
            -- x.html --
            <script src="x.js"></script>
            """
        )

        url = site.url("index.html")
        prefetched = ImportDocument.parse(url, '<link rel="import" href="x.html">')
        fetcher = site.fetcher()
        host = DryRunHost(location=SITE_ROOT)

        doc = await self.loader(host, fetcher).expand(url, prefetched)

        self.assertIs(doc, prefetched)
        self.assertEqual(fetcher.requests, [site.url("x.html")])
        self.assertEqual(self.head_of(host), ["x.js"])

    async def test_relative_root_url(self):
        fetcher = NESTED_SITE.fetcher()
        host = DryRunHost(location=SITE_ROOT)

        doc = await self.loader(host, fetcher).expand("c.html")

        assert doc is not None
        self.assertEqual(doc.uri, NESTED_SITE.url("c.html"))
        self.assertEqual(self.head_of(host), ["c1.js"])


if __name__ == "__main__":
    unittest.main()

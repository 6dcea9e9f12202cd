import asyncio
import logging
from enum import StrEnum
from textwrap import dedent
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.progress import Progress
from rich.table import Table

from linkload.config import Settings, get_settings
from linkload.errors import FetchError
from linkload.fetcher import Fetcher
from linkload.host import DocumentHost, DryRunHost, InjectedElement
from linkload.imports import HTMLImports
from linkload.model import (
    ImportLoader,
    ImportProgress,
    RootContext,
    ScriptOriginRegistry,
)
from linkload.pretty import PrettyCST, PrettyImportTree

app = typer.Typer(
    no_args_is_help=True,
    rich_markup_mode="markdown",
)

URLArgument = Annotated[
    str,
    typer.Argument(help="The URL or file path of the import document."),
]

TimeoutOption = Annotated[
    float | None,
    typer.Option(
        "--timeout",
        help="Seconds before an HTTP fetch gives up. Waits forever by default.",
    ),
]


@app.callback()
def main(
    log_file: Annotated[
        str | None,
        typer.Option(help="Where to write logs. Defaults to `LINKLOAD_LOG_FILE`."),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(help="Log level. Defaults to `LINKLOAD_LOG_LEVEL`."),
    ] = None,
):
    settings = get_settings()

    logging.basicConfig(
        filename=log_file or settings.log_file,
        filemode="w",
        level=(log_level or settings.log_level).upper(),
    )


def settings_with(timeout: float | None) -> Settings:
    settings = get_settings()

    if timeout is not None:
        settings = settings.model_copy(update={"fetch_timeout": timeout})

    return settings


@app.command()
def load(url: URLArgument, timeout: TimeoutOption = None):
    """Loads an import with all its stylesheets, scripts and nested imports."""
    console = Console()
    settings = settings_with(timeout)
    executed: list[tuple[InjectedElement, str]] = []

    async def run() -> ImportProgress:
        async with Fetcher(timeout=settings.fetch_timeout) as fetcher:
            host = DocumentHost(fetcher)
            imports = HTMLImports(host, fetcher, settings)

            def record(element: InjectedElement, _: str):
                executed.append((element, imports.current_import_document().uri))

            host.runner = record

            with Progress(console=console, transient=True) as bar:
                task = bar.add_task(f"Loading {url}", total=1)

                def update(p: ImportProgress):
                    bar.update(task, completed=p.loaded, total=p.total)

                progress = ImportProgress(on_update=update)
                await imports.add_import(url, progress=progress)

            return progress

    progress = asyncio.run(run())

    table = Table("#", "Script", "Declared by", title="Execution order")
    for i, (element, owner) in enumerate(executed):
        table.add_row(str(i + 1), element.url, owner)

    console.print(table)
    console.print(f"Loaded {progress.loaded}/{progress.total} imports")

    for failure in progress.failures:
        console.print(f"[red]Failed:[/red] {escape(str(failure))}", highlight=False)

    if progress.failures:
        raise typer.Exit(code=1)


class TreeType(StrEnum):
    Imports = "i"
    TreeSitter = "t"


@app.command()
def tree(
    url: URLArgument,
    tree_type: Annotated[
        TreeType,
        typer.Option(
            "-t",
            "--tree-type",
            help=dedent(
                """\
                The type of tree to print:
                - `i`: The import tree, without loading any stylesheet or script
                - `t`: The tree-sitter CST of the document
                """
            ),
        ),
    ] = TreeType.Imports,
    timeout: TimeoutOption = None,
):
    """Prints the import tree or the syntax tree of an import document."""
    settings = settings_with(timeout)
    host = DryRunHost()

    async def plan() -> RootContext:
        async with Fetcher(timeout=settings.fetch_timeout) as fetcher:
            loader = ImportLoader(host, fetcher, ScriptOriginRegistry())
            return await loader.request(url)

    async def parse():
        async with Fetcher(timeout=settings.fetch_timeout) as fetcher:
            return await fetcher.fetch_document(host.resolve(url))

    match tree_type:
        case TreeType.Imports:
            root = asyncio.run(plan())
            printed = PrettyImportTree(root, root.url, resolve=host.resolve)
        case TreeType.TreeSitter:
            try:
                printed = PrettyCST(asyncio.run(parse()).cst)
            except FetchError as e:
                Console(stderr=True).print(f"[red]{escape(str(e))}[/red]")
                raise typer.Exit(code=1)

    Console(markup=False, highlight=False).print(printed)


if __name__ == "__main__":
    app()

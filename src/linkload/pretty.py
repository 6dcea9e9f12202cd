import dataclasses as D
from typing import Callable, Iterator

import tree_sitter as T

from linkload.model import DependencyKind, Expansion, Group, RootContext
from linkload.typing import URI

ESCAPE_TABLE: dict[int, str] = str.maketrans(
    {"\n": r"\n", "\t": r"\t", "\r": r"\r", '"': r"\""}
)


def escape(s: str, size: int = 50) -> str:
    escaped = s[0:size].translate(ESCAPE_TABLE)
    postfix = "" if len(s) <= size else f"[{len(s) - size} characters]"
    return f'"{escaped}{postfix}"'


def range_of(node: T.Node) -> str:
    (start_row, start_col), (end_row, end_col) = node.start_point, node.end_point
    return f"{start_row}:{start_col}-{end_row}:{end_col}"


class PrettyTree:
    """An abstract class for pretty-printing tree-like structures."""

    def node_text(self) -> str:
        """Returns a single-line string representing a tree node."""
        ...

    def children(self) -> list["PrettyTree"]:
        """Returns a list of child nodes."""
        ...

    def __repr__(self):
        def grow(lines: list[str], nodes: list[PrettyTree], branches: str = ""):
            for i, node in enumerate(nodes):
                last_child = i == len(nodes) - 1
                new_branch = ".   " if last_child else "|   "
                fork = "`-- " if last_child else "|-- "

                lines.append(f"{branches}{fork}{node.node_text()}")
                grow(lines, node.children(), branches + new_branch)

        lines = [self.node_text()]
        grow(lines, self.children())

        return "\n".join(lines)


@D.dataclass
class PrettyLeaf(PrettyTree):
    text: str

    def node_text(self) -> str:
        return self.text

    def children(self) -> list[PrettyTree]:
        return []

    def __repr__(self):
        return super().__repr__()


@D.dataclass
class PrettyImportTree(PrettyTree):
    """A class for pretty-printing the imports expanded by one import request.

    Each import lists its stylesheets first, then its script groups and nested
    imports in the order they were loaded. A nested import is expanded under the
    import that queued it first, and marked as a duplicate anywhere else.
    """

    root: RootContext
    url: URI
    label: str | None = None
    resolve: Callable[[URI], URI] | None = D.field(default=None, repr=False)

    @property
    def expansion(self) -> Expansion:
        return self.root.expansion(self.url)

    def node_text(self) -> str:
        repr = self.url if self.label is None else f"{self.label} {self.url}"

        match self.expansion:
            case Expansion(failure=failure) if failure is not None:
                return f"{repr} [failed: {failure.error}]"
            case Expansion(doc=None):
                return f"{repr} [not loaded]"
            case _:
                return repr

    def children(self) -> list[PrettyTree]:
        expansion = self.expansion

        if (grouping := expansion.grouping) is None:
            return []

        nested = iter(expansion.imports)
        unclaimed = list(expansion.claimed)

        stylesheets = [
            PrettyLeaf(f"{dep.kind} {self.resolved(dep.url)}")
            for dep in grouping.stylesheets
        ]

        return [
            *stylesheets,
            *(self.group_tree(group, nested, unclaimed) for group in grouping.groups),
        ]

    def resolved(self, url: URI) -> URI:
        return url if self.resolve is None else self.resolve(url)

    def group_tree(
        self,
        group: Group,
        nested: Iterator[URI],
        unclaimed: list[URI],
    ) -> PrettyTree:
        if group.kind != DependencyKind.Import:
            return PrettyGroup(group, self.resolved)

        # Only the first occurrence of a claimed import is expanded.
        if (url := next(nested)) in unclaimed:
            unclaimed.remove(url)
            return PrettyImportTree(self.root, url, "import", self.resolve)

        return PrettyLeaf(f"import {url} (duplicate)")

    def __repr__(self):
        return super().__repr__()


@D.dataclass
class PrettyGroup(PrettyTree):
    group: Group
    resolve: Callable[[URI], URI] = D.field(repr=False)

    def node_text(self) -> str:
        return f"{self.group.kind} group [{len(self.group)}]"

    def children(self) -> list[PrettyTree]:
        return [PrettyLeaf(self.resolve(dep.url)) for dep in self.group]

    def __repr__(self):
        return super().__repr__()


@D.dataclass
class PrettyCST(PrettyTree):
    """A class for pretty-printing a tree-sitter CST."""

    node: T.Node
    label: str | None = None

    def node_text(self) -> str:
        if not self.node.is_named and self.node.text:
            repr = f"{escape(self.node.text.decode())} [{range_of(self.node)}]"
        else:
            repr = f"{self.node.type} [{range_of(self.node)}]"

        return repr if self.label is None else f"{self.label}={repr}"

    def children(self) -> list["PrettyTree"]:
        return [
            PrettyCST(child, self.node.field_name_for_child(i))
            for i, child in enumerate(self.node.children)
        ]

    def __repr__(self):
        return super().__repr__()

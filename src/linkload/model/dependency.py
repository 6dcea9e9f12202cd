import dataclasses as D
from enum import StrEnum
from typing import Iterator, Sequence

from linkload.typing import URI


class DependencyKind(StrEnum):
    Import = "import"
    Stylesheet = "stylesheet"
    Script = "script"


@D.dataclass(frozen=True)
class Dependency:
    kind: DependencyKind
    url: URI

    def __str__(self) -> str:
        return f"{self.kind} {self.url}"


@D.dataclass
class Group:
    """A unit of scheduling: a solitary import, or a run of contiguous scripts."""

    dependencies: list[Dependency]

    def __post_init__(self):
        assert len(self.dependencies) > 0, "Empty dependency group"

        if self.kind == DependencyKind.Import:
            assert len(self.dependencies) == 1, "An import group has exactly 1 import"
        else:
            assert all(d.kind == self.kind for d in self.dependencies), self

    @property
    def kind(self) -> DependencyKind:
        return self.dependencies[0].kind

    @property
    def head(self) -> Dependency:
        return self.dependencies[0]

    def accepts(self, dep: Dependency) -> bool:
        return self.kind == DependencyKind.Script and dep.kind == DependencyKind.Script

    def __iter__(self) -> Iterator[Dependency]:
        return iter(self.dependencies)

    def __len__(self) -> int:
        return len(self.dependencies)


@D.dataclass
class Grouping:
    stylesheets: list[Dependency] = D.field(default_factory=list)
    groups: list[Group] = D.field(default_factory=list)

    @property
    def imports(self) -> list[Dependency]:
        return [g.head for g in self.groups if g.kind == DependencyKind.Import]

    def flatten(self, original: Sequence[Dependency]) -> list[Dependency]:
        """Rebuilds a dependency list from the groups.

        Stylesheets do not occupy group slots, so they are re-interleaved at the
        positions they take in `original`.
        """
        grouped = iter(d for g in self.groups for d in g)
        stylesheets = iter(self.stylesheets)

        return [
            next(stylesheets) if dep.kind == DependencyKind.Stylesheet else next(grouped)
            for dep in original
        ]


def group_dependencies(dependencies: Sequence[Dependency]) -> Grouping:
    """Splits an import's dependencies into chunks that can be loaded together.

    Stylesheets never block anything and are collected separately. Contiguous
    scripts share a group and may start loading at the same time, while every
    import forms a group of its own, a synchronization point that later groups
    have to wait on.
    """
    grouping = Grouping()
    current: Group | None = None

    for dep in dependencies:
        match dep.kind:
            case DependencyKind.Stylesheet:
                grouping.stylesheets.append(dep)
            case _ if current is not None and current.accepts(dep):
                current.dependencies.append(dep)
            case _:
                current = Group([dep])
                grouping.groups.append(current)

    return grouping

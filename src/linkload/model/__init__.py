from .context import Expansion, ImportContext, ImportFailure, ImportProgress, RootContext
from .dependency import Dependency, DependencyKind, Group, Grouping, group_dependencies
from .loader import ImportLoader
from .paths import derive_path
from .registry import ScriptOriginRegistry
from .scanner import ElementScanner

__all__ = [
    "Dependency",
    "DependencyKind",
    "ElementScanner",
    "Expansion",
    "Group",
    "Grouping",
    "ImportContext",
    "ImportFailure",
    "ImportLoader",
    "ImportProgress",
    "RootContext",
    "ScriptOriginRegistry",
    "derive_path",
    "group_dependencies",
]

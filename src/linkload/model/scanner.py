import logging

from linkload.dom import Element, ImportDocument
from linkload.host import Host
from linkload.model.context import ImportContext
from linkload.model.dependency import Dependency, DependencyKind
from linkload.model.registry import ScriptOriginRegistry
from linkload.util import must
from linkload.visitor import Visitor

log = logging.root

LINK_RELATIONS = {
    "import": DependencyKind.Import,
    "stylesheet": DependencyKind.Stylesheet,
}


class ElementScanner(Visitor):
    """Collects the imports, stylesheets and scripts declared by an import document.

    Only the direct children of head and body are inspected. Scripts are also
    recorded in the registry under their resolved URL, so that they can later find
    their import document while executing.
    """

    def __init__(
        self,
        context: ImportContext,
        registry: ScriptOriginRegistry,
        host: Host,
    ) -> None:
        self.context = context
        self.registry = registry
        self.host = host

    def scan(self, doc: ImportDocument) -> list[Dependency]:
        self.context.doc = doc
        self.visit_document(doc)
        return self.context.dependencies

    def add(self, kind: DependencyKind, ref: str) -> Dependency:
        dep = Dependency(kind, self.context.base_url + ref)
        self.context.dependencies.append(dep)
        return dep

    def visit_link(self, element: Element):
        rel = (element.get("rel") or "").lower()

        if (kind := LINK_RELATIONS.get(rel)) is None:
            log.warning("Unknown link rel in %s: %s", self.doc_uri, element)
        elif (href := element.get("href")) is None:
            log.warning("Ignoring link without href in %s: %s", self.doc_uri, element)
        else:
            self.add(kind, href)

    def visit_script(self, element: Element):
        if (src := element.get("src")) is None:
            log.warning("Ignoring inline script in %s", self.doc_uri)
            return

        dep = self.add(DependencyKind.Script, src)

        self.registry.record(self.host.resolve(dep.url), must(self.context.doc))

    @property
    def doc_uri(self) -> str:
        return self.context.doc.uri if self.context.doc else "<unknown>"

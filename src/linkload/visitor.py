from linkload.dom import Element, ImportDocument


class Visitor:
    """Dispatches the top-level elements of an import document by tag name."""

    def visit_document(self, doc: ImportDocument):
        for element in doc.top_level_elements():
            self.visit(element)

    def visit(self, element: Element):
        match element.tag:
            case "link":
                self.visit_link(element)
            case "script":
                self.visit_script(element)
            case "style":
                self.visit_style(element)
            case _:
                self.visit_other(element)

    def visit_link(self, element: Element):
        pass

    def visit_script(self, element: Element):
        pass

    def visit_style(self, element: Element):
        pass

    def visit_other(self, element: Element):
        pass

import dataclasses as D
import html
from typing import Iterator

import tree_sitter as T

from linkload.parsing import parse_html
from linkload.typing import URI
from linkload.util import head_or_none

ELEMENT_NODE_TYPES = ("element", "script_element", "style_element")
TAG_NODE_TYPES = ("start_tag", "self_closing_tag")


def text_of(node: T.Node | None) -> str:
    return "" if node is None or node.text is None else node.text.decode()


@D.dataclass
class Element:
    """A thin view over an HTML element node of the tree-sitter CST."""

    tag: str
    attributes: dict[str, str]
    node: T.Node = D.field(repr=False, compare=False)

    @staticmethod
    def from_cst(node: T.Node) -> "Element":
        assert node.type in ELEMENT_NODE_TYPES, node.type

        tag = next(child for child in node.children if child.type in TAG_NODE_TYPES)
        name = next(child for child in tag.named_children if child.type == "tag_name")

        return Element(
            tag=text_of(name).lower(),
            attributes=dict(
                attribute_of(child)
                for child in tag.named_children
                if child.type == "attribute"
            ),
            node=node,
        )

    @staticmethod
    def children_of(node: T.Node) -> list["Element"]:
        return [
            Element.from_cst(child)
            for child in node.named_children
            if child.type in ELEMENT_NODE_TYPES
        ]

    @property
    def children(self) -> list["Element"]:
        return Element.children_of(self.node)

    def get(self, name: str) -> str | None:
        return self.attributes.get(name.lower())

    def __str__(self) -> str:
        attributes = "".join(f' {k}="{v}"' for k, v in self.attributes.items())
        return f"<{self.tag}{attributes}>"


def attribute_of(node: T.Node) -> tuple[str, str]:
    name, *rest = node.named_children

    match rest:
        case [value] if value.type == "quoted_attribute_value":
            value = text_of(head_or_none(value.named_children))
        case [value]:
            value = text_of(value)
        case _:
            value = ""

    return text_of(name).lower(), html.unescape(value)


@D.dataclass(eq=False)
class ImportDocument:
    """A fetched and parsed HTML document.

    Documents compare by identity: two fetches of the same URL produce two distinct
    documents, the same way a browser creates a new document per fetch.
    """

    uri: URI
    source: str = D.field(repr=False)
    cst: T.Node = D.field(repr=False)

    @staticmethod
    def parse(uri: URI, source: str) -> "ImportDocument":
        return ImportDocument(uri, source, parse_html(source))

    @staticmethod
    def empty(uri: URI) -> "ImportDocument":
        return ImportDocument.parse(uri, "")

    @property
    def elements(self) -> list[Element]:
        return Element.children_of(self.cst)

    def top_level_elements(self) -> list[Element]:
        """Returns the direct children of the document's head and body, in order.

        Fragments without explicit `<html>`, `<head>` or `<body>` elements are
        handled the way an HTML parser places their content: elements found at the
        top level of the fragment count as direct children of head or body.
        """

        def unwrap(elements: list[Element]) -> Iterator[Element]:
            for element in elements:
                match element.tag:
                    # Without `</head>`, the body is parsed as a child of the head.
                    case "html" | "head" | "body":
                        yield from unwrap(element.children)
                    case _:
                        yield element

        return list(unwrap(self.elements))

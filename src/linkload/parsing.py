import tree_sitter as T
import tree_sitter_html as H


LANG_HTML = T.Language(H.language())
HTML_TS_PARSER = T.Parser(LANG_HTML)


def parse_html(source: str) -> T.Node:
    return HTML_TS_PARSER.parse(source.encode()).root_node

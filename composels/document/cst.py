"""
Tolerant concrete syntax tree for Compose YAML.

The text is parsed with tree-sitter's YAML grammar and the syntax tree is
mapped onto a small item-oriented shape that keeps every structural token
with its absolute character offset. Parsing never raises: tree-sitter
recovers from malformed input with ERROR and MISSING nodes, and the parts of
the tree that sit under them are reassembled by indentation so that a cursor
offset can always be mapped back onto the structure while the user is
halfway through typing a line.

Tree shape:
    Document
      root: CollectionItem (pseudo item holding directives, `---` and the value)
    BlockMap / BlockSeq / FlowCollection
      items: list[CollectionItem]
    CollectionItem
      start: tokens before the key (`-`, `?`, flow commas, props)
      key:   node or None
      sep:   tokens between key and value (`:`, spaces, props, newline)
      value: node or None
    Scalar
      plain, quoted, block or alias source text

Problems found while parsing are recorded as ParseIssue markers in
Document.issues.
"""

from __future__ import annotations

import bisect
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar, Union

import tree_sitter_yaml
from tree_sitter import Language, Parser

if TYPE_CHECKING:
    from tree_sitter import Node as SyntaxNode

# Token types
SEQ_ITEM_IND = "seq-item-ind"
EXPLICIT_KEY_IND = "explicit-key-ind"
MAP_VALUE_IND = "map-value-ind"
COMMA = "comma"
SPACE = "space"
NEWLINE = "newline"
ANCHOR = "anchor"
TAG = "tag"
COMMENT = "comment"
DIRECTIVE = "directive"
DOC_START = "doc-start"
DOC_END = "doc-end"
FLOW_START = "flow-start"
FLOW_END = "flow-end"

# Scalar types
PLAIN = "scalar"
SINGLE_QUOTED = "single-quoted-scalar"
DOUBLE_QUOTED = "double-quoted-scalar"
BLOCK_SCALAR = "block-scalar"
ALIAS = "alias"

# Issue severities
ERROR = "error"
WARNING = "warning"

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


@dataclass(frozen=True)
class SourceToken:
    """A single token with its absolute offset in the text."""

    type: str
    offset: int
    source: str

    @property
    def end(self) -> int:
        return self.offset + len(self.source)


@dataclass(frozen=True)
class ParseIssue:
    """An error or warning found while parsing."""

    offset: int
    length: int
    message: str
    severity: str = ERROR


@dataclass(frozen=True)
class Line:
    offset: int
    text: str
    eol: str

    @property
    def end(self) -> int:
        """Offset of the line break (or end of text)."""
        return self.offset + len(self.text)


@dataclass(eq=False)
class Scalar:
    type: str
    offset: int
    source: str
    issues: list[ParseIssue] = field(default_factory=list)

    @property
    def end(self) -> int:
        return self.offset + len(self.source)


@dataclass(eq=False)
class CollectionItem:
    start: list[SourceToken] = field(default_factory=list)
    key: Node | None = None
    sep: list[SourceToken] | None = None
    value: Node | None = None


@dataclass(eq=False)
class BlockMap:
    offset: int
    indent: int
    items: list[CollectionItem] = field(default_factory=list)
    compact: bool = False
    issues: list[ParseIssue] = field(default_factory=list)

    type: ClassVar[str] = "block-map"


@dataclass(eq=False)
class BlockSeq:
    offset: int
    indent: int
    items: list[CollectionItem] = field(default_factory=list)
    compact: bool = False
    issues: list[ParseIssue] = field(default_factory=list)

    type: ClassVar[str] = "block-seq"


@dataclass(eq=False)
class FlowCollection:
    offset: int
    indent: int
    start: SourceToken
    items: list[CollectionItem] = field(default_factory=list)
    end: list[SourceToken] = field(default_factory=list)
    issues: list[ParseIssue] = field(default_factory=list)

    type: ClassVar[str] = "flow-collection"

    @property
    def is_map(self) -> bool:
        return self.start.source == "{"

    @property
    def closing(self) -> SourceToken | None:
        """The closing bracket, or None when the collection is unterminated."""
        if self.end and self.end[-1].type == FLOW_END:
            return self.end[-1]
        return None


Node = Union[Scalar, BlockMap, BlockSeq, FlowCollection]
Collection = Union[BlockMap, BlockSeq, FlowCollection]


@dataclass(frozen=True)
class PathStep:
    """
    One containment level on the way from the document root to an item.

    `item` owns `collection` through its `field` ("key" or "value").
    """

    item: CollectionItem
    field: str
    collection: Collection


VisitPath = tuple[PathStep, ...]


@dataclass(eq=False)
class Document:
    text: str
    lines: list[Line]
    start: list[SourceToken]
    value: Node | None
    end: list[SourceToken]
    comments: list[SourceToken]
    issues: list[ParseIssue]
    root: CollectionItem | None = None

    def __post_init__(self) -> None:
        if self.root is None and (self.start or self.value is not None):
            self.root = CollectionItem(start=list(self.start), value=self.value)
        self._line_offsets = [line.offset for line in self.lines]
        self._comment_offsets = [comment.offset for comment in self.comments]

    def line_index(self, offset: int) -> int:
        """Index of the line containing `offset`."""
        return bisect.bisect_right(self._line_offsets, offset) - 1

    def column_of(self, offset: int) -> int:
        return offset - self.lines[self.line_index(offset)].offset

    def comment_at(self, offset: int) -> SourceToken | None:
        """
        Return the comment whose span contains `offset`.

        The end of a comment (the end of its line) counts as inside it.
        """
        index = bisect.bisect_right(self._comment_offsets, offset) - 1
        if index < 0:
            return None
        comment = self.comments[index]
        if comment.offset <= offset <= comment.end:
            return comment
        return None

    @property
    def errors(self) -> list[ParseIssue]:
        return [issue for issue in self.issues if issue.severity == ERROR]

    @property
    def warnings(self) -> list[ParseIssue]:
        return [issue for issue in self.issues if issue.severity == WARNING]


def is_scalar(node: object) -> bool:
    return isinstance(node, Scalar)


def is_collection(node: object) -> bool:
    return isinstance(node, (BlockMap, BlockSeq, FlowCollection))


def is_sequence(node: object) -> bool:
    if isinstance(node, FlowCollection):
        return not node.is_map
    return isinstance(node, BlockSeq)


def node_offset(node: Node) -> int:
    if isinstance(node, FlowCollection):
        return node.start.offset
    return node.offset


def item_start_offset(item: CollectionItem) -> int:
    """Offset of the first token of an item, or -1 for an empty item."""
    if item.start:
        return item.start[0].offset
    if item.key is not None:
        return node_offset(item.key)
    if item.sep:
        return item.sep[0].offset
    if item.value is not None:
        return node_offset(item.value)
    return -1


def walk(document: Document) -> Iterator[tuple[CollectionItem, VisitPath]]:
    """
    Pre-order traversal of every item together with its containment path.

    The root pseudo item comes first with an empty path. Items are produced
    in ascending offset order because keys precede values and collection
    items are stored in source order.
    """
    if document.root is None:
        return
    yield from _walk_item(document.root, ())


def _walk_item(
    item: CollectionItem, path: VisitPath
) -> Iterator[tuple[CollectionItem, VisitPath]]:
    yield item, path
    for field_name in ("key", "value"):
        node = getattr(item, field_name)
        if is_collection(node):
            step = PathStep(item, field_name, node)
            for child in node.items:
                yield from _walk_item(child, path + (step,))


def split_lines(text: str) -> list[Line]:
    """Split text on LF, CRLF and CR, keeping each line's offset."""
    lines = []
    position = 0
    for match in _LINE_BREAK.finditer(text):
        lines.append(Line(position, text[position:match.start()], match.group()))
        position = match.end()
    lines.append(Line(position, text[position:], ""))
    return lines


# Node types of the tree-sitter YAML grammar
_SCALAR_TYPES = {
    "plain_scalar": PLAIN,
    "single_quote_scalar": SINGLE_QUOTED,
    "double_quote_scalar": DOUBLE_QUOTED,
    "block_scalar": BLOCK_SCALAR,
    "alias": ALIAS,
}
_LEAF_SCALAR_TYPES = frozenset(
    ["string_scalar", "integer_scalar", "float_scalar", "boolean_scalar", "null_scalar"]
)
_WRAPPER_TYPES = frozenset(["block_node", "flow_node"])
_COLLECTION_TYPES = frozenset(["block_mapping", "block_sequence", "flow_mapping", "flow_sequence"])
_PROP_TYPES = {"anchor": ANCHOR, "tag": TAG}
_DIRECTIVE_TYPES = frozenset(["yaml_directive", "tag_directive", "reserved_directive"])
# Kept whole even when they hold errors
_LEAF_TYPES = frozenset(_SCALAR_TYPES) | frozenset(_PROP_TYPES)

_INDICATORS = frozenset("-?:,[]{}")
_CLOSING = {"[": "]", "{": "}"}
_WHITESPACE = " \t\r\n"

# Kinds of flattened pieces
_TOKEN = "token"
_PROP = "prop"
_NODE = "node"
_MAP_ITEM = "map-item"
_SEQ_ITEM = "seq-item"
_FLOW_ITEM = "flow-item"

_language: Language | None = None
_parser: Parser | None = None


def get_language() -> Language:
    """Load the tree-sitter YAML language once."""
    global _language
    if _language is None:
        language = tree_sitter_yaml.language()
        _language = language if isinstance(language, Language) else Language(language)
    return _language


def get_parser() -> Parser:
    global _parser
    if _parser is None:
        _parser = Parser(get_language())
    return _parser


def parse_cst(text: str) -> Document:
    """Parse `text` into a Document. Never raises."""
    return _TreeBuilder(text).build()


def _utf8_starts(text: str) -> list[int] | None:
    """UTF-8 byte offset of every character, or None when bytes and characters coincide."""
    if text.isascii():
        return None
    starts = []
    position = 0
    for char in text:
        starts.append(position)
        code = ord(char)
        position += 1 if code < 0x80 else 2 if code < 0x800 else 3 if code < 0x10000 else 4
    return starts


def _closing_quote(text: str, start: int, limit: int) -> tuple[int, bool]:
    """Scan the quoted scalar opening at `start`; return its end and whether it is closed."""
    quote = text[start]
    index = start + 1
    while index < limit:
        char = text[index]
        if quote == '"' and char == "\\":
            index += 2
            continue
        if char == quote:
            if quote == "'" and index + 1 < limit and text[index + 1] == "'":
                index += 2
                continue
            return index + 1, True
        index += 1
    return limit, False


@dataclass(eq=False)
class _Piece:
    """A fragment of a syntax tree that holds errors, in source order."""

    kind: str
    offset: int
    source: str = ""
    node: Node | None = None
    item: CollectionItem | None = None
    props: list[SourceToken] = field(default_factory=list)


class _TreeBuilder:
    def __init__(self, text: str) -> None:
        self.text = text
        self.lines = split_lines(text)
        self.issues: list[ParseIssue] = []
        self._line_offsets = [line.offset for line in self.lines]
        self._byte_starts = _utf8_starts(text)
        self._comments: dict[int, SourceToken] = {}
        self._skip_to = 0

    def build(self) -> Document:
        self._check_indentation()
        tree = get_parser().parse(self.text.encode("utf-8", "surrogatepass"))
        top = tree.root_node
        self._collect(top)

        start: list[SourceToken] = []
        end: list[SourceToken] = []
        parts: list[SyntaxNode] = []
        document_seen = False
        for child in top.children if top.type == "stream" else [top]:
            if child.type == "comment":
                continue
            if child.type != "document":
                parts.append(child)
                continue
            if document_seen:
                self._extra_document(child)
                break
            document_seen = True
            for part in child.children:
                self._document_part(part, start, end, parts)

        if parts:
            # Stray content ahead of the document markers comes first in the tree.
            first = self.span(parts[0])[0]
            start = [token for token in start if token.offset < first]
        root = CollectionItem(start=start)
        if len(parts) == 1 and not parts[0].has_error:
            props, root.value = self._node(parts[0])
            root.start.extend(props)
        elif parts:
            pieces: list[_Piece] = []
            for part in parts:
                self._flatten(part, pieces)
            _Assembler(self, root).run(pieces)

        return Document(
            text=self.text,
            lines=self.lines,
            start=root.start,
            value=root.value,
            end=end,
            comments=sorted(self._comments.values(), key=lambda token: token.offset),
            issues=sorted(self.issues, key=lambda issue: issue.offset),
            root=root if root.start or root.value is not None else None,
        )

    # Offsets and lines

    def offset(self, byte: int) -> int:
        if self._byte_starts is None:
            return byte
        return bisect.bisect_left(self._byte_starts, byte)

    def span(self, syntax: SyntaxNode) -> tuple[int, int]:
        return self.offset(syntax.start_byte), self.offset(syntax.end_byte)

    def line_index(self, offset: int) -> int:
        return bisect.bisect_right(self._line_offsets, offset) - 1

    def line_at(self, offset: int) -> Line:
        return self.lines[self.line_index(offset)]

    def column_of(self, offset: int) -> int:
        return offset - self.line_at(offset).offset

    def same_line(self, first: int, second: int) -> bool:
        return self.line_index(first) == self.line_index(second)

    def indicator(
        self, type_: str, offset: int, source: str, newline: bool = True
    ) -> list[SourceToken]:
        """
        Tokens for an indicator and the whitespace after it.

        When nothing follows on the line, the line break belongs to the
        indicator as well.
        """
        tokens = [SourceToken(type_, offset, source)]
        line = self.line_at(offset)
        position = offset + len(source)
        stop = position
        while stop < line.end and self.text[stop] in " \t":
            stop += 1
        if stop > position:
            tokens.append(SourceToken(SPACE, position, self.text[position:stop]))
        if newline and stop >= line.end and line.eol:
            tokens.append(SourceToken(NEWLINE, line.end, line.eol))
        return tokens

    def issue(
        self, offset: int, length: int, message: str, severity: str = ERROR
    ) -> ParseIssue:
        issue = ParseIssue(offset, max(length, 0), message, severity)
        self.issues.append(issue)
        return issue

    # Whole-text passes

    def _check_indentation(self) -> None:
        for line in self.lines:
            body = line.text.lstrip(" \t")
            indent = line.text[: len(line.text) - len(body)]
            if "\t" in indent and body and not body.startswith("#"):
                self.issue(line.offset, len(indent), "Tabs are not allowed as indentation", WARNING)

    def _collect(self, top: SyntaxNode) -> None:
        """Gather comments, ERROR nodes and MISSING nodes from the whole tree."""
        stack = [(top, False)]
        while stack:
            syntax, in_error = stack.pop()
            if syntax.type == "comment":
                self._add_comment(*self.span(syntax))
                continue
            if syntax.is_missing:
                self._missing(syntax)
                continue
            if syntax.type == "ERROR" and not in_error:
                start, end = self.span(syntax)
                self.issue(start, end - start, "Unexpected content")
                in_error = True
            stack.extend((child, in_error) for child in reversed(syntax.children))

    def _missing(self, syntax: SyntaxNode) -> None:
        # Unclosed brackets and quotes are reported where they are opened.
        if syntax.type in ("]", "}", '"', "'") or syntax.type.startswith("_"):
            return
        name = syntax.type.replace("_", " ") if syntax.is_named else syntax.type
        self.issue(self.span(syntax)[0], 0, f"Missing '{name}'")

    def _add_comment(self, start: int, end: int) -> None:
        source = self.text[start:end].rstrip("\r\n")
        self._comments[start] = SourceToken(COMMENT, start, source)

    def _document_part(
        self,
        part: SyntaxNode,
        start: list[SourceToken],
        end: list[SourceToken],
        parts: list[SyntaxNode],
    ) -> None:
        offset, stop = self.span(part)
        if part.type == "comment":
            return
        if part.type in _DIRECTIVE_TYPES:
            start.append(SourceToken(DIRECTIVE, offset, self.text[offset:stop]))
        elif part.type == "---":
            start.extend(self.indicator(DOC_START, offset, "---", newline=False))
        elif part.type == "...":
            end.append(SourceToken(DOC_END, offset, "..."))
        else:
            parts.append(part)

    def _extra_document(self, document: SyntaxNode) -> None:
        marker = next((child for child in document.children if child.type == "---"), None)
        offset, stop = self.span(marker if marker is not None else document)
        self.issue(offset, stop - offset, "Only the first document in a stream is used", WARNING)

    # Error-free subtrees

    def _node(
        self, syntax: SyntaxNode, indicator: int | None = None
    ) -> tuple[list[SourceToken], Node | None]:
        """
        Props and content of a node.

        `indicator` is the offset of the `-` or `?` that owns the node; a block
        collection starting on that same line is compact.
        """
        if syntax.type not in _WRAPPER_TYPES:
            return [], self._content(syntax, indicator)
        props: list[SourceToken] = []
        content = None
        for child in syntax.named_children:
            if child.type in _PROP_TYPES:
                start, end = self.span(child)
                props.extend(
                    self.indicator(_PROP_TYPES[child.type], start, self.text[start:end], False)
                )
            elif child.type != "comment" and content is None:
                content = child
        if content is None:
            return props, None
        return props, self._content(content, indicator)

    def _content(self, syntax: SyntaxNode, indicator: int | None) -> Node | None:
        kind = syntax.type
        start, end = self.span(syntax)
        compact = indicator is not None and self.same_line(indicator, start)
        if kind == "block_mapping":
            items = [
                self.pair(child)
                for child in syntax.named_children
                if child.type == "block_mapping_pair"
            ]
            return BlockMap(start, self.column_of(start), items, compact)
        if kind == "block_sequence":
            items = [
                self.sequence_item(child)
                for child in syntax.named_children
                if child.type == "block_sequence_item"
            ]
            return BlockSeq(start, self.column_of(start), items, compact)
        if kind in ("flow_mapping", "flow_sequence"):
            return self._flow(syntax)
        if kind in _WRAPPER_TYPES:
            return self._node(syntax, indicator)[1]
        return self._scalar(syntax)

    def _scalar(self, syntax: SyntaxNode) -> Scalar:
        start, end = self.span(syntax)
        type_ = _SCALAR_TYPES.get(syntax.type, PLAIN)
        source = self.text[start:end]
        if type_ == BLOCK_SCALAR:
            return Scalar(type_, start, source.rstrip(_WHITESPACE))
        if type_ in (SINGLE_QUOTED, DOUBLE_QUOTED):
            stop, closed = _closing_quote(source, 0, len(source))
            if not closed or stop != len(source):
                scalar = Scalar(type_, start, source.rstrip(_WHITESPACE))
                self.missing_quote(scalar)
                return scalar
        return Scalar(type_, start, source)

    def missing_quote(self, scalar: Scalar) -> None:
        scalar.issues.append(self.issue(scalar.offset, len(scalar.source), "Missing closing quote"))

    def pair(self, syntax: SyntaxNode) -> CollectionItem:
        """A block mapping pair or a flow pair."""
        start, end = self.span(syntax)
        key = syntax.child_by_field_name("key")
        value = syntax.child_by_field_name("value")
        item = CollectionItem()

        cursor = start
        explicit = self.text.startswith("?", start) and (
            start + 1 >= len(self.text) or self.text[start + 1] in _WHITESPACE
        )
        if explicit:
            item.start.extend(self.indicator(EXPLICIT_KEY_IND, start, "?"))
            cursor = start + 1
        if key is not None:
            props, item.key = self._node(key, start if explicit else None)
            item.start.extend(props)
            cursor = self.span(key)[1]

        colon = self._find(":", cursor, self.span(value)[0] if value is not None else end)
        if colon is not None:
            item.sep = self.indicator(MAP_VALUE_IND, colon, ":")
        if value is not None:
            props, item.value = self._node(value)
            (item.sep if item.sep is not None else item.start).extend(props)
        return item

    def sequence_item(self, syntax: SyntaxNode) -> CollectionItem:
        start = self.span(syntax)[0]
        item = CollectionItem(start=self.indicator(SEQ_ITEM_IND, start, "-"))
        for child in syntax.named_children:
            if child.type != "comment":
                props, item.value = self._node(child, start)
                item.start.extend(props)
                break
        return item

    def _flow(self, syntax: SyntaxNode) -> FlowCollection:
        start, end = self.span(syntax)
        opening = self.text[start]
        closing = _CLOSING.get(opening, "]")
        collection = FlowCollection(
            start, self.column_of(start), SourceToken(FLOW_START, start, opening)
        )
        cursor = start + 1
        for child in syntax.named_children:
            if child.type == "comment":
                continue
            child_start, child_end = self.span(child)
            pending = self._comma(cursor, child_start)
            if child.type == "flow_pair":
                item = self.pair(child)
                item.start[:0] = pending
            else:
                props, node = self._node(child)
                item = CollectionItem(start=pending + props)
                if collection.is_map:
                    item.key = node
                else:
                    item.value = node
            collection.items.append(item)
            cursor = child_end

        closed = end - 1 >= cursor and self.text[end - 1] == closing
        collection.end = self._comma(cursor, end - 1 if closed else end)
        if closed:
            collection.end.append(SourceToken(FLOW_END, end - 1, closing))
        else:
            collection.issues.append(self.issue(start, 1, f"Missing closing '{closing}'"))
        return collection

    def _comma(self, start: int, end: int) -> list[SourceToken]:
        comma = self._find(",", start, end)
        if comma is None:
            return []
        return self.indicator(COMMA, comma, ",", newline=False)

    def _find(self, char: str, start: int, end: int) -> int | None:
        """Offset of `char` between two nodes, skipping comments."""
        index = start
        while index < end:
            found = self.text[index]
            if found == char:
                return index
            if found == "#":
                index = max(self.line_at(index).end, index + 1)
                continue
            index += 1
        return None

    # Subtrees holding errors

    def _flatten(self, syntax: SyntaxNode, pieces: list[_Piece]) -> None:
        """
        Break a subtree that holds errors into pieces.

        Error-free subtrees stay whole; the structure above them is taken
        apart into indicator tokens and nodes, and text that no node
        accounts for is tokenized directly.
        """
        kind = syntax.type
        if kind == "comment" or syntax.is_missing or kind in _DIRECTIVE_TYPES:
            return
        start, end = self.span(syntax)
        if start < self._skip_to:
            self._scan(start, end, pieces)
            return
        if (not syntax.has_error or kind in _LEAF_TYPES) and self._whole(syntax, pieces):
            return
        if not syntax.is_named:
            if kind in _INDICATORS:
                pieces.append(_Piece(_TOKEN, start, source=kind))
            else:
                self._scan(start, end, pieces)
            return
        cursor = start
        for child in syntax.children:
            child_start, child_end = self.span(child)
            self._scan(cursor, child_start, pieces)
            self._flatten(child, pieces)
            cursor = max(cursor, child_end)
        self._scan(cursor, end, pieces)

    def _whole(self, syntax: SyntaxNode, pieces: list[_Piece]) -> bool:
        kind = syntax.type
        start, end = self.span(syntax)
        if kind == "block_mapping_pair":
            pieces.append(_Piece(_MAP_ITEM, start, item=self.pair(syntax)))
        elif kind == "flow_pair":
            pieces.append(_Piece(_FLOW_ITEM, start, item=self.pair(syntax)))
        elif kind == "block_sequence_item":
            pieces.append(_Piece(_SEQ_ITEM, start, item=self.sequence_item(syntax)))
        elif kind in _PROP_TYPES:
            token = SourceToken(_PROP_TYPES[kind], start, self.text[start:end])
            pieces.append(_Piece(_PROP, start, props=[token]))
        elif (
            kind in _WRAPPER_TYPES
            or kind in _COLLECTION_TYPES
            or kind in _SCALAR_TYPES
            or kind in _LEAF_SCALAR_TYPES
        ):
            props, node = self._node(syntax)
            if node is not None:
                pieces.append(_Piece(_NODE, start, node=node, props=props))
            else:
                pieces.extend(_Piece(_PROP, token.offset, props=[token]) for token in props)
        else:
            return False
        return True

    def _scan(self, start: int, end: int, pieces: list[_Piece]) -> None:
        """Tokenize text that no syntax node accounts for."""
        text = self.text
        index = max(start, self._skip_to)
        while index < end:
            char = text[index]
            if char in _WHITESPACE:
                index += 1
                continue
            line_end = self.line_at(index).end
            if char == "#" and (index == 0 or text[index - 1] in _WHITESPACE):
                self._add_comment(index, line_end)
                index = line_end
                continue
            spaced = index + 1 >= len(text) or text[index + 1] in _WHITESPACE
            if char in ",[]{}" or (char in "-?:" and spaced):
                pieces.append(_Piece(_TOKEN, index, source=char))
                index += 1
                continue
            if char in "\"'":
                stop, closed = _closing_quote(text, index, line_end)
                type_ = DOUBLE_QUOTED if char == '"' else SINGLE_QUOTED
                scalar = Scalar(type_, index, text[index:stop])
                if not closed:
                    self.missing_quote(scalar)
                pieces.append(_Piece(_NODE, index, node=scalar))
                self._skip_to = max(self._skip_to, stop)
                index = stop
                continue

            limit = min(end, line_end)
            stop = index + 1
            if char in "&!":
                while stop < limit and text[stop] not in " \t,[]{}":
                    stop += 1
                token = SourceToken(ANCHOR if char == "&" else TAG, index, text[index:stop])
                pieces.append(_Piece(_PROP, index, props=[token]))
                index = stop
                continue
            while stop < limit:
                following = text[stop]
                if following == ":" and (stop + 1 >= len(text) or text[stop + 1] in _WHITESPACE):
                    break
                if following == "#" and text[stop - 1] in " \t":
                    break
                stop += 1
            source = text[index:stop].rstrip(" \t")
            scalar = Scalar(ALIAS if char == "*" else PLAIN, index, source)
            pieces.append(_Piece(_NODE, index, node=scalar))
            index = stop


@dataclass(eq=False)
class _Frame:
    """A collection that is still open while pieces are reassembled."""

    collection: Collection
    column: int
    pending: list[SourceToken] = field(default_factory=list)
    open: bool = False

    @property
    def flow(self) -> bool:
        return isinstance(self.collection, FlowCollection)

    @property
    def last(self) -> CollectionItem | None:
        items = self.collection.items
        return items[-1] if items else None


class _Assembler:
    """
    Rebuild structure from flattened pieces.

    Block structure follows indentation and flow structure follows brackets.
    Pieces arrive in source order and every item is appended after the items
    created before it, so the tree stays in offset order.
    """

    def __init__(self, builder: _TreeBuilder, root: CollectionItem) -> None:
        self.builder = builder
        self.root = root
        self.frames: list[_Frame] = []
        self.props: list[SourceToken] = []
        self.line = -1

    def run(self, pieces: list[_Piece]) -> None:
        for index, piece in enumerate(pieces):
            following = pieces[index + 1] if index + 1 < len(pieces) else None
            self._feed(piece, following)
        while self._in_flow:
            self._close_flow(self.frames.pop())
        if self.props and self.root.value is None:
            self.root.start.extend(self.props)

    @property
    def _in_flow(self) -> bool:
        return bool(self.frames) and self.frames[-1].flow

    def _feed(self, piece: _Piece, following: _Piece | None) -> None:
        builder = self.builder
        column = builder.column_of(piece.offset)
        line = builder.line_index(piece.offset)
        if line != self.line:
            self.line = line
            self._close_flows_at(column)
            if not self._in_flow:
                self._dedent(column, piece)

        kind = piece.kind
        if kind == _PROP:
            self.props.extend(piece.props)
        elif kind == _TOKEN:
            self._token(piece, column)
        elif kind == _NODE:
            if self._in_flow:
                self._flow_node(piece.props, piece.node, piece.offset)
            elif self._is_key(piece, following):
                self._key(piece, column)
            else:
                self._value(self._take_props() + piece.props, piece.node, piece.offset)
        else:
            self._item(piece, column)

    def _take_props(self) -> list[SourceToken]:
        props, self.props = self.props, []
        return props

    def _is_key(self, piece: _Piece, following: _Piece | None) -> bool:
        if following is None or following.kind != _TOKEN or following.source != ":":
            return False
        end = piece.node.end if isinstance(piece.node, Scalar) else piece.offset
        return self.builder.same_line(max(end - 1, piece.offset), following.offset)

    # Block structure

    def _dedent(self, column: int, piece: _Piece) -> None:
        dash = piece.kind == _SEQ_ITEM or (piece.kind == _TOKEN and piece.source == "-")
        while self.frames and not self.frames[-1].flow:
            frame = self.frames[-1]
            if column < frame.column or (
                column == frame.column and isinstance(frame.collection, BlockSeq) and not dash
            ):
                self.frames.pop()
                continue
            break

    def _slot(self) -> tuple[CollectionItem, str] | None:
        """The item and field a new node would fill, if any."""
        if not self.frames:
            return (self.root, "value") if self.root.value is None else None
        item = self.frames[-1].last
        if item is None or item.value is not None:
            return None
        if any(token.type == EXPLICIT_KEY_IND for token in item.start) and item.sep is None:
            return (item, "key") if item.key is None else None
        if item.sep is not None or any(token.type == SEQ_ITEM_IND for token in item.start):
            return item, "value"
        return None

    def _value(self, props: list[SourceToken], node: Node | None, offset: int) -> None:
        slot = self._slot()
        if slot is None:
            if not self.frames:
                self.builder.issue(offset, 1, "Unexpected content after the document root")
                return
            self.builder.issue(offset, 1, "Unexpected content")
            self.frames[-1].collection.items.append(CollectionItem(start=props, value=node))
            return
        item, field_name = slot
        if isinstance(node, (BlockMap, BlockSeq)):
            node.compact = any(
                token.type in (SEQ_ITEM_IND, EXPLICIT_KEY_IND)
                and self.builder.same_line(token.offset, node.offset)
                for token in item.start
            )
        if field_name == "key":
            item.start.extend(props)
            item.key = node
        else:
            (item.sep if item.sep is not None else item.start).extend(props)
            item.value = node
        if isinstance(node, (BlockMap, BlockSeq)):
            # Later siblings at the same indentation continue this collection.
            self.frames.append(_Frame(node, node.indent))

    def _open(self, collection: BlockMap | BlockSeq) -> None:
        self._value(self._take_props(), collection, collection.offset)
        if not self.frames or self.frames[-1].collection is not collection:
            self.frames.append(_Frame(collection, collection.indent))

    def _block(self, cls: type, column: int, offset: int) -> BlockMap | BlockSeq:
        frame = self.frames[-1] if self.frames else None
        if frame is not None and isinstance(frame.collection, cls) and frame.column == column:
            return frame.collection
        collection = cls(offset, column)
        self._open(collection)
        return collection

    def _key(self, piece: _Piece, column: int) -> None:
        props = self._take_props()
        if props:
            column = self.builder.column_of(props[0].offset)
        mapping = self._block(BlockMap, column, props[0].offset if props else piece.offset)
        mapping.items.append(CollectionItem(start=props + piece.props, key=piece.node))

    def _item(self, piece: _Piece, column: int) -> None:
        item = piece.item
        if self._in_flow:
            self._flow_entry(item)
            return
        item.start[:0] = self._take_props()
        cls = BlockSeq if piece.kind == _SEQ_ITEM else BlockMap
        self._block(cls, column, piece.offset).items.append(item)

    def _token(self, piece: _Piece, column: int) -> None:
        char = piece.source
        offset = piece.offset
        builder = self.builder
        if char in "[{":
            self._open_flow(piece, column)
        elif self._in_flow:
            self._flow_token(piece)
        elif char == "-":
            sequence = self._block(BlockSeq, column, offset)
            start = self._take_props() + builder.indicator(SEQ_ITEM_IND, offset, "-")
            sequence.items.append(CollectionItem(start=start))
        elif char == "?":
            mapping = self._block(BlockMap, column, offset)
            start = self._take_props() + builder.indicator(EXPLICIT_KEY_IND, offset, "?")
            mapping.items.append(CollectionItem(start=start))
        elif char == ":":
            sep = builder.indicator(MAP_VALUE_IND, offset, ":")
            frame = self.frames[-1] if self.frames else None
            item = frame.last if frame is not None else None
            if (
                item is not None
                and isinstance(frame.collection, BlockMap)
                and item.sep is None
                and item.value is None
                and (
                    item.key is not None
                    or any(token.type == EXPLICIT_KEY_IND for token in item.start)
                )
            ):
                item.sep = sep
            else:
                mapping = self._block(BlockMap, column, offset)
                mapping.items.append(CollectionItem(start=self._take_props(), sep=sep))
        else:
            builder.issue(offset, 1, f"Unexpected '{char}'")
            self._value(self._take_props(), Scalar(PLAIN, offset, char), offset)

    # Flow structure

    def _open_flow(self, piece: _Piece, column: int) -> None:
        offset = piece.offset
        collection = FlowCollection(
            offset, column, SourceToken(FLOW_START, offset, piece.source)
        )
        if self._in_flow:
            self._flow_node([], collection, offset)
        else:
            self._value(self._take_props(), collection, offset)
        self.frames.append(_Frame(collection, column))

    def _close_flows_at(self, column: int) -> None:
        """Close unterminated flow collections once a line dedents to their owner."""
        if not self._in_flow:
            return
        owner = next((frame for frame in reversed(self.frames) if not frame.flow), None)
        if owner is None or column > owner.column:
            return
        while self._in_flow:
            self._close_flow(self.frames.pop())

    def _close_flow(self, frame: _Frame) -> None:
        collection = frame.collection
        closing = _CLOSING.get(collection.start.source, "]")
        collection.end = frame.pending
        collection.issues.append(
            self.builder.issue(collection.offset, 1, f"Missing closing '{closing}'")
        )

    def _flow_token(self, piece: _Piece) -> None:
        frame = self.frames[-1]
        collection = frame.collection
        char = piece.source
        offset = piece.offset
        builder = self.builder
        if char == ",":
            frame.pending = builder.indicator(COMMA, offset, ",", newline=False)
            frame.open = False
        elif char in "]}":
            expected = _CLOSING.get(collection.start.source, "]")
            if char != expected:
                builder.issue(offset, 1, f"Expected '{expected}' but found '{char}'")
            collection.end = frame.pending + [SourceToken(FLOW_END, offset, char)]
            self.frames.pop()
        elif char == ":":
            sep = builder.indicator(MAP_VALUE_IND, offset, ":")
            item = frame.last if frame.open else None
            if item is not None and item.sep is None:
                if item.key is None:
                    item.key, item.value = item.value, None
                item.sep = sep
            else:
                start = frame.pending + self._take_props()
                frame.pending = []
                collection.items.append(CollectionItem(start=start, sep=sep))
                frame.open = True
        elif char == "?":
            start = frame.pending + self._take_props()
            frame.pending = []
            start.extend(builder.indicator(EXPLICIT_KEY_IND, offset, "?"))
            collection.items.append(CollectionItem(start=start))
            frame.open = True
        else:
            builder.issue(offset, 1, f"Unexpected '{char}' in flow collection")
            self._flow_node([], Scalar(PLAIN, offset, char), offset)

    def _flow_node(self, props: list[SourceToken], node: Node | None, offset: int) -> None:
        frame = self.frames[-1]
        collection = frame.collection
        props = self._take_props() + props
        item = frame.last if frame.open else None
        if item is not None and item.value is None:
            explicit = any(token.type == EXPLICIT_KEY_IND for token in item.start)
            if item.sep is not None:
                item.sep.extend(props)
                item.value = node
                return
            if explicit and item.key is None:
                item.start.extend(props)
                item.key = node
                return
        if item is not None:
            self.builder.issue(offset, 1, "Missing ',' between flow collection items")
        item = CollectionItem(start=frame.pending + props)
        frame.pending = []
        if collection.is_map:
            item.key = node
        else:
            item.value = node
        collection.items.append(item)
        frame.open = True

    def _flow_entry(self, item: CollectionItem) -> None:
        frame = self.frames[-1]
        if frame.open:
            self.builder.issue(
                item_start_offset(item), 1, "Missing ',' between flow collection items"
            )
        item.start[:0] = frame.pending + self._take_props()
        frame.pending = []
        frame.collection.items.append(item)
        frame.open = True

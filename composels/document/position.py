"""
Logical path resolution.

Maps a cursor position onto a normalized structural address such as
`/services/foo/ports/<item>/<value>`, together with an indentation depth and
the region of the item the cursor sits in. The address is what completion,
hover and signature tables match against, so it has to be stable while the
document is malformed or half typed.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from lsprotocol.types import Position

from composels.document.compose_document import ComposeDocument
from composels.document.cst import (
    BlockMap,
    BlockSeq,
    Collection,
    CollectionItem,
    FlowCollection,
    Scalar,
    VisitPath,
    is_sequence,
    item_start_offset,
    walk,
)

ITEM = "<item>"
VALUE = "<value>"
SEP = "<sep>"
START = "<start>"
COMMENT = "<comment>"

REGION_START = "start"
REGION_KEY = "key"
REGION_SEP = "sep"
REGION_VALUE = "value"
REGION_COMMENT = "comment"

MERGE_KEY = "<<"


class ResolutionError(Exception):
    """The document has no structure to resolve a position against."""


@dataclass(frozen=True)
class PositionInfo:
    """Where a cursor sits in the document structure."""

    logical_path: str
    indent_depth: float
    region: str
    item: CollectionItem | None = field(default=None, compare=False, repr=False)


def resolve_position(document: ComposeDocument, position: Position) -> PositionInfo:
    """
    Resolve `position` to its logical path, indentation depth and region.

    Raises PositionOutOfRangeError for positions outside the document and
    ResolutionError when the document holds no items at all.
    """
    offset = document.offset_at(position)
    column = document.column_at(position)
    cst = document.cst
    text = document.text

    if cst.comment_at(offset) is not None:
        return PositionInfo(f"/{COMMENT}", -1, REGION_COMMENT)

    # The end of a text without a trailing line break belongs to its last character.
    probe = offset
    if offset == len(text) and offset > 0 and text[-1] not in "\r\n":
        probe = offset - 1

    found: tuple[CollectionItem, VisitPath] | None = None
    last_start = -1
    for item, path in walk(cst):
        start = item_start_offset(item)
        if start > probe:
            break
        if start < last_start:
            raise ResolutionError(f"Items are out of offset order at {start}")
        last_start = start
        found = item, path

    line = cst.lines[position.line].text
    indentation = len(line) - len(line.lstrip(" \t"))
    in_gap = not line.strip(" \t") or column < indentation
    if in_gap and not (found is not None and _inside_node(*found, probe)):
        return _resolve_gap(document, found, column)

    if found is None:
        if cst.root is None:
            raise ResolutionError("The document has no structural items")
        return PositionInfo("/", 0, REGION_START)

    item, path = found
    region = _region(item, probe)
    segments = _ancestor_segments(path)
    if path and is_sequence(path[-1].collection):
        segments.append(ITEM)
    if region == REGION_KEY and isinstance(item.key, Scalar):
        segments.append(item.key.source)
    else:
        segments.append(f"<{region}>")
    return PositionInfo("/" + "/".join(segments), _depth(path), region, item)


def _region(item: CollectionItem, offset: int) -> str:
    for token in item.start:
        if token.offset <= offset < token.end:
            return REGION_START
    key = item.key
    if isinstance(key, Scalar) and key.offset <= offset < key.end:
        return REGION_KEY
    for token in item.sep or ():
        if token.offset <= offset < token.end:
            return REGION_SEP
    return REGION_VALUE


def _segment(item: CollectionItem, container: Collection, field_name: str) -> str:
    """The path segment an item contributes when it owns a nested collection."""
    if is_sequence(container):
        return ITEM
    key = item.key
    if field_name == "value" and isinstance(key, Scalar) and key.source != MERGE_KEY:
        return key.source
    return ITEM


def _ancestor_segments(path: VisitPath) -> list[str]:
    # The first step is owned by the document root, which has no segment.
    return [
        _segment(step.item, path[index - 1].collection, step.field)
        for index, step in enumerate(path)
        if index > 0
    ]


def _weight(collection: Collection) -> float:
    if isinstance(collection, FlowCollection):
        return 0.5
    if isinstance(collection, (BlockMap, BlockSeq)) and collection.compact:
        return 0.5
    return 1


def _depth(path: VisitPath) -> float:
    return sum(_weight(step.collection) for step in path[1:])


def _contains_flow(collection: FlowCollection, offset: int) -> bool:
    closing = collection.closing
    return collection.start.offset < offset and (closing is None or offset <= closing.offset)


def _inside_node(item: CollectionItem, path: VisitPath, offset: int) -> bool:
    """True when `offset` is within a multi-line scalar or an open flow collection."""
    for node in (item.key, item.value):
        if isinstance(node, Scalar) and node.offset < offset < node.end:
            return True
        if isinstance(node, FlowCollection) and _contains_flow(node, offset):
            return True
    return any(
        isinstance(step.collection, FlowCollection) and _contains_flow(step.collection, offset)
        for step in path
    )


def _resolve_gap(
    document: ComposeDocument,
    found: tuple[CollectionItem, VisitPath] | None,
    column: int,
) -> PositionInfo:
    """
    Resolve a position on a blank line or inside a line's indentation.

    The cursor is where a new entry would be typed. Its parent is the deepest
    item, among the last item started before the cursor and its ancestors,
    whose indicator is left of the cursor column.
    """
    if found is None:
        return PositionInfo("/", 0, REGION_START)

    item, path = found
    chain = [(item, path)]
    chain.extend((path[index].item, path[:index]) for index in range(len(path) - 1, 0, -1))

    cst = document.cst
    for candidate, candidate_path in chain:
        if not candidate_path:
            continue
        if cst.column_of(item_start_offset(candidate)) >= column:
            continue
        segments = _ancestor_segments(candidate_path)
        segments.append(_segment(candidate, candidate_path[-1].collection, "value"))
        segments.append(START)
        return PositionInfo(
            "/" + "/".join(segments), _depth(candidate_path) + 1, REGION_START, candidate
        )
    return PositionInfo("/", 0, REGION_START)

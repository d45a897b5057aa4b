"""
Compose Document Snapshot

An immutable view of one version of a Compose file: its text, the tolerant
CST built from it and, on demand, the PyYAML node graph used by features
that only care about well-formed documents (code lens, image links, syntax
diagnostics).

Snapshots are never patched. Applying an edit produces a new snapshot and
leaves the previous one valid for requests that still hold it.
"""

from __future__ import annotations

from collections.abc import Sequence
from functools import cached_property

import yaml
from lsprotocol.types import Position, Range, TextDocumentContentChangeEvent
from pygls.workspace import PositionCodec, TextDocument

from composels.document.cst import Document, Line, parse_cst


class PositionOutOfRangeError(IndexError):
    """A position does not exist in the document."""


class ComposeDocument:
    """
    One parsed version of a Compose document.

    Positions given to and returned by a snapshot are in client units
    (UTF-16 by default); offsets are indexes into `text`.
    """

    def __init__(
        self,
        uri: str,
        text: str,
        version: int | None = None,
        position_codec: PositionCodec | None = None,
    ) -> None:
        self._uri = uri
        self._text = text
        self._version = version
        self._codec = position_codec or PositionCodec()
        self._cst = parse_cst(text)
        self._line_strings = [line.text + line.eol for line in self._cst.lines]

    @classmethod
    def parse(
        cls,
        uri: str,
        text: str,
        version: int | None = None,
        position_codec: PositionCodec | None = None,
    ) -> ComposeDocument:
        return cls(uri, text, version, position_codec)

    def update(
        self,
        changes: Sequence[TextDocumentContentChangeEvent],
        version: int | None,
    ) -> ComposeDocument:
        """Apply content changes and re-parse the whole resulting text."""
        document = TextDocument(
            self._uri,
            source=self._text,
            version=self._version,
            position_codec=self._codec,
        )
        for change in changes:
            document.apply_change(change)
        return ComposeDocument(self._uri, document.source, version, self._codec)

    @property
    def uri(self) -> str:
        return self._uri

    @property
    def version(self) -> int | None:
        return self._version

    @property
    def text(self) -> str:
        return self._text

    @property
    def cst(self) -> Document:
        return self._cst

    @property
    def position_codec(self) -> PositionCodec:
        return self._codec

    @property
    def line_count(self) -> int:
        return len(self._cst.lines)

    def _line(self, line: int) -> Line:
        if not 0 <= line < len(self._cst.lines):
            raise PositionOutOfRangeError(
                f"Line {line} is outside the document ({len(self._cst.lines)} lines)"
            )
        return self._cst.lines[line]

    def line_at(self, line: int | Position) -> str:
        """Text of a line, without its line break."""
        if isinstance(line, Position):
            line = line.line
        return self._line(line).text

    def line_offset(self, line: int) -> int:
        return self._line(line).offset

    def column_at(self, position: Position) -> int:
        """Character index (in server units) of `position` within its line."""
        line = self._line(position.line)
        length = self._codec.client_num_units(line.text)
        if not 0 <= position.character <= length:
            raise PositionOutOfRangeError(
                f"Character {position.character} is outside line {position.line} "
                f"({length} characters)"
            )
        return self._codec.position_from_client_units(self._line_strings, position).character

    def offset_at(self, position: Position) -> int:
        return self._line(position.line).offset + self.column_at(position)

    def position_at(self, offset: int) -> Position:
        if not 0 <= offset <= len(self._text):
            raise PositionOutOfRangeError(
                f"Offset {offset} is outside the document ({len(self._text)} characters)"
            )
        index = self._cst.line_index(offset)
        line = self._cst.lines[index]
        column = min(offset - line.offset, len(line.text))
        return self._codec.position_to_client_units(
            self._line_strings, Position(line=index, character=column)
        )

    def range_at(self, start: int, end: int) -> Range:
        return Range(start=self.position_at(start), end=self.position_at(end))

    @cached_property
    def _composed(self) -> tuple[yaml.Node | None, yaml.YAMLError | None]:
        try:
            for node in yaml.compose_all(self._text, Loader=yaml.SafeLoader):
                return node, None
            return None, None
        except yaml.YAMLError as e:
            return None, e

    @property
    def yaml_root(self) -> yaml.Node | None:
        """Root node of the first YAML document, or None if it does not compose."""
        return self._composed[0]

    @property
    def yaml_error(self) -> yaml.YAMLError | None:
        """The first PyYAML error for the first document, if any."""
        return self._composed[1]

    def __repr__(self) -> str:
        return f"ComposeDocument(uri={self._uri!r}, version={self._version!r})"

"""
Declarative completion tables.

A CompletionCollection is an ordered, immutable list of entries for one zone
of a Compose file. An entry applies when:

    - the logical path fully matches one of its path patterns, and
    - its indentation depth, if given, equals the resolved depth, and
    - its line matcher, if given, matches the text of the cursor line.

Every applicable entry contributes one item. Items are pure insertions at
the cursor; already-typed text is never replaced.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from lsprotocol.types import (
    CompletionItem,
    CompletionItemKind,
    InsertTextFormat,
    InsertTextMode,
    MarkupContent,
    MarkupKind,
)

from composels.document.position import PositionInfo

TEMPLATE_INDENT = "  "

# A line holding at most one bare word, e.g. a key being typed.
BARE_WORD_LINE = re.compile(r"^\s*[\w.-]*\s*$")


def reindent(text: str, tab_size: int) -> str:
    """Re-indent a template written with two spaces per level."""
    if tab_size == len(TEMPLATE_INDENT):
        return text
    lines = text.split("\n")
    result = [lines[0]]
    for line in lines[1:]:
        stripped = line.lstrip(" ")
        levels = (len(line) - len(stripped)) // len(TEMPLATE_INDENT)
        result.append(" " * (levels * tab_size) + stripped)
    return "\n".join(result)


@dataclass(frozen=True)
class CompletionEntry:
    label: str
    insert_text: str
    path_patterns: tuple[re.Pattern[str], ...]
    indentation_depth: float | None = None
    matcher: re.Pattern[str] | None = None
    kind: CompletionItemKind | None = CompletionItemKind.Property
    detail: str | None = None
    documentation: str | None = None
    advanced: bool = False

    def matches_location(self, position_info: PositionInfo) -> bool:
        if self.indentation_depth is not None and position_info.indent_depth != self.indentation_depth:
            return False
        return any(
            pattern.fullmatch(position_info.logical_path) for pattern in self.path_patterns
        )

    def is_active(self, position_info: PositionInfo, line: str) -> bool:
        if not self.matches_location(position_info):
            return False
        return self.matcher is None or self.matcher.search(line) is not None

    def to_completion_item(self, tab_size: int = 2) -> CompletionItem:
        insert_text = reindent(self.insert_text, tab_size)
        return CompletionItem(
            label=self.label,
            kind=self.kind,
            detail=self.detail,
            documentation=(
                MarkupContent(kind=MarkupKind.Markdown, value=self.documentation)
                if self.documentation
                else None
            ),
            insert_text=insert_text,
            insert_text_format=InsertTextFormat.Snippet,
            insert_text_mode=InsertTextMode.AdjustIndentation if "\n" in insert_text else None,
        )


class CompletionCollection:
    """An ordered, read-only table of completion entries for one zone."""

    def __init__(self, name: str, entries: Iterable[CompletionEntry]) -> None:
        self._name = name
        self._entries = tuple(entries)

    @property
    def name(self) -> str:
        return self._name

    @property
    def entries(self) -> tuple[CompletionEntry, ...]:
        return self._entries

    def matches_location(self, position_info: PositionInfo) -> bool:
        """True when any entry could apply at this path and depth."""
        return any(entry.matches_location(position_info) for entry in self._entries)

    def get_active_items(
        self,
        position_info: PositionInfo,
        line: str,
        tab_size: int = 2,
        basic: bool = True,
        advanced: bool = True,
    ) -> list[CompletionItem]:
        return [
            entry.to_completion_item(tab_size)
            for entry in self._entries
            if (advanced if entry.advanced else basic) and entry.is_active(position_info, line)
        ]


def patterns(*sources: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(source) for source in sources)

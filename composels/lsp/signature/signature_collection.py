"""
Declarative signature tables.

Each signature has a matcher with exactly one capture group per parameter.
The first signature whose matcher matches the cursor line is active, and the
capture spans of that match decide the active parameter.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from lsprotocol.types import ParameterInformation, SignatureHelp, SignatureInformation

from composels.utils.regexp_spans import Span, compute_spans


@dataclass(frozen=True)
class SignatureEntry:
    label: str
    parameters: tuple[str, ...]
    matcher: re.Pattern[str]
    documentation: str | None = None

    def __post_init__(self) -> None:
        if self.matcher.groups != len(self.parameters):
            raise ValueError(
                f"Signature {self.label!r} has {len(self.parameters)} parameters "
                f"but its matcher has {self.matcher.groups} groups"
            )

    def to_signature_information(self) -> SignatureInformation:
        return SignatureInformation(
            label=self.label,
            documentation=self.documentation,
            parameters=[ParameterInformation(label=parameter) for parameter in self.parameters],
        )


def active_parameter(spans: list[Span], column: int) -> int | None:
    """
    Index of the parameter whose span holds `column`.

    A span holds the column when the column is after its first character and
    at most at its end; an empty span holds only its own index. Columns before
    the first span select parameter 0, columns after the last span select the
    last parameter, and columns on delimiters between spans select none.
    """
    if not spans:
        return None
    for index, span in enumerate(spans):
        if span.index < column <= span.end:
            return index
        if span.length == 0 and column == span.index:
            return index
    if column <= spans[0].index:
        return 0
    if column > spans[-1].end:
        return len(spans) - 1
    return None


class SignatureCollection:
    """An ordered, read-only table of signatures."""

    def __init__(self, entries: Iterable[SignatureEntry]) -> None:
        self._entries = tuple(entries)

    @property
    def entries(self) -> tuple[SignatureEntry, ...]:
        return self._entries

    def get_active_signature(
        self, line: str, column: int, active_parameter_support: bool = True
    ) -> tuple[int | None, int | None]:
        """
        Return (active signature, active parameter) for a cursor on `line`.

        Clients without active parameter support only get the signature.
        """
        for index, entry in enumerate(self._entries):
            match = entry.matcher.search(line)
            if match is None:
                continue
            if not active_parameter_support:
                return index, None
            return index, active_parameter(compute_spans(match)[1:], column)
        return None, None

    def signature_help(
        self, line: str, column: int, active_parameter_support: bool = True
    ) -> SignatureHelp | None:
        signature, parameter = self.get_active_signature(line, column, active_parameter_support)
        if signature is None:
            return None
        return SignatureHelp(
            signatures=[entry.to_signature_information() for entry in self._entries],
            active_signature=signature,
            active_parameter=parameter,
        )

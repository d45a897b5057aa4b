from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class Span:
    """Where one capture group of a match sits in the subject string."""

    index: int
    length: int
    value: str | None

    @property
    def end(self) -> int:
        return self.index + self.length


def compute_spans(match: re.Match[str]) -> list[Span]:
    """
    Turn a regex match into ordered capture spans.

    Span 0 is the whole match, followed by one span per capture group. Each
    group is located by searching the subject forward from the end of the
    previous group's span for the first occurrence of the captured text, so
    groups must not overlap. A group that did not participate gets an empty
    span where the previous one ended.
    """
    subject = match.string
    spans = [Span(match.start(), len(match.group(0)), match.group(0))]
    previous_end = match.start()
    for group in range(1, match.re.groups + 1):
        value = match.group(group)
        if value is None:
            spans.append(Span(previous_end, 0, None))
            continue
        index = subject.find(value, previous_end)
        if index == -1:
            index = match.start(group)
        spans.append(Span(index, len(value), value))
        previous_end = index + len(value)
    return spans

"""Tokenizer for the rule mini-language embedded in column rule text.

Recognized forms:
- ``@RANDOM_INT_<N>_<M>``: uniform integer in ``[N, M]``
- ``@RANDOM_INT_<N>``: uniform integer in ``[0, N)``
- ``@<identifier>``: reference to another column by name

Random commands win over the generic reference pattern: a reference match
whose start offset falls inside a random-command span is dropped.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

__all__ = [
    "COLUMN_REFERENCE",
    "RANDOM_RANGE",
    "RANDOM_SINGLE",
    "HighlightSegment",
    "RuleToken",
    "describe_token",
    "highlight_segments",
    "random_tokens",
    "reference_tokens",
    "tokenize_rule",
]

COLUMN_REFERENCE = "column_reference"
RANDOM_SINGLE = "random_single"
RANDOM_RANGE = "random_range"

_RANGE_PATTERN = re.compile(r"@RANDOM_INT_(\d+)_(\d+)", re.ASCII)
_SINGLE_PATTERN = re.compile(r"@RANDOM_INT_(\d+)", re.ASCII)
_REFERENCE_PATTERN = re.compile(r"@(\w+)", re.ASCII)


@dataclass(frozen=True)
class RuleToken:
    kind: str
    text: str
    start: int
    end: int
    name: str | None = None
    bound: int | None = None
    low: int | None = None
    high: int | None = None

    @property
    def is_random(self) -> bool:
        return self.kind in {RANDOM_SINGLE, RANDOM_RANGE}


@dataclass(frozen=True)
class HighlightSegment:
    # kind: plain | reference | random
    kind: str
    text: str
    start: int
    end: int
    # for references: valid | invalid | circular
    state: str = ""


def _starts_inside(start: int, spans: list[RuleToken]) -> bool:
    return any(span.start <= start < span.end for span in spans)


def random_tokens(rule: str) -> list[RuleToken]:
    if not rule:
        return []

    commands: list[RuleToken] = []
    for match in _RANGE_PATTERN.finditer(rule):
        commands.append(
            RuleToken(
                kind=RANDOM_RANGE,
                text=match.group(0),
                start=match.start(),
                end=match.end(),
                low=int(match.group(1)),
                high=int(match.group(2)),
            )
        )

    ranges = list(commands)
    for match in _SINGLE_PATTERN.finditer(rule):
        if _starts_inside(match.start(), ranges):
            continue
        commands.append(
            RuleToken(
                kind=RANDOM_SINGLE,
                text=match.group(0),
                start=match.start(),
                end=match.end(),
                bound=int(match.group(1)),
            )
        )

    commands.sort(key=lambda token: token.start)
    return commands


def reference_tokens(rule: str, commands: list[RuleToken] | None = None) -> list[RuleToken]:
    if not rule:
        return []
    if commands is None:
        commands = random_tokens(rule)

    references: list[RuleToken] = []
    for match in _REFERENCE_PATTERN.finditer(rule):
        if _starts_inside(match.start(), commands):
            continue
        references.append(
            RuleToken(
                kind=COLUMN_REFERENCE,
                text=match.group(0),
                start=match.start(),
                end=match.end(),
                name=match.group(1),
            )
        )
    return references


def tokenize_rule(rule: str) -> list[RuleToken]:
    """Return every token of ``rule`` ordered by start offset, without overlaps."""
    commands = random_tokens(rule)
    references = reference_tokens(rule, commands)
    return sorted(commands + references, key=lambda token: token.start)


def describe_token(token: RuleToken) -> str:
    if token.kind == RANDOM_RANGE:
        return f"Random integer from {token.low} to {token.high}"
    if token.kind == RANDOM_SINGLE:
        bound = int(token.bound or 0)
        if bound <= 0:
            return "Random integer from an empty range"
        return f"Random integer from 0 to {bound - 1}"
    if token.kind == COLUMN_REFERENCE:
        return f"Reference to column '{token.name}'"
    return token.text


def highlight_segments(
    rule: str,
    tokens: list[RuleToken],
    reference_states: dict[int, str] | None = None,
) -> list[HighlightSegment]:
    """
    Split rule text into ordered plain/reference/random segments.

    reference_states maps a reference token start offset to its state
    (valid | invalid | circular); references missing from the map are "valid".
    """
    states = reference_states or {}
    segments: list[HighlightSegment] = []
    cursor = 0
    for token in sorted(tokens, key=lambda t: t.start):
        if token.start < cursor:
            continue
        if token.start > cursor:
            segments.append(HighlightSegment("plain", rule[cursor:token.start], cursor, token.start))
        if token.is_random:
            segments.append(HighlightSegment("random", token.text, token.start, token.end))
        else:
            segments.append(
                HighlightSegment(
                    "reference",
                    token.text,
                    token.start,
                    token.end,
                    state=states.get(token.start, "valid"),
                )
            )
        cursor = token.end
    if cursor < len(rule):
        segments.append(HighlightSegment("plain", rule[cursor:], cursor, len(rule)))
    return segments

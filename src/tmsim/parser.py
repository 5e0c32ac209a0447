"""Reader for the plain text machine format.

A machine file consists of directives and table rows, one per line::

    # binary increment
    init right
    blank _
    accept done
    right 0 0 R right
    right _ _ L carry
    ...

Lines starting with ``#`` or ``//`` are comments. ``init`` and ``blank`` must each appear exactly once, ``accept``,
``reject`` and ``output <label>`` assign output classifications to the states following them. Every other line is a
row of the transition table: ``state read write move next`` with ``move`` being one of ``L``, ``N`` or ``R``.
"""

import re
from collections.abc import Iterator
from dataclasses import dataclass

from tmsim.core import Location, Move, Specification, TableRow, TMError

TOKEN = re.compile(r"\S+")
WS = re.compile(r"\s")
COMMENTS = ("#", "//")
DIRECTIVES = ("init", "blank", "accept", "reject", "output")


class SpecSyntaxError(TMError):
    pass


@dataclass(frozen=True)
class Token:
    text: str
    location: Location


def tokenize(source: str) -> Iterator[list[Token]]:
    offset = 0
    for lineno, line in enumerate(source.splitlines(keepends=True), 1):
        if not line.lstrip().startswith(COMMENTS):
            tokens = [
                Token(m.group(), Location(offset + m.start(), offset + m.end(), lineno, m.start() + 1))
                for m in TOKEN.finditer(line)
            ]
            if tokens:
                yield tokens
        offset += len(line)


def end_of(source: str) -> Location:
    lines = source.splitlines() or [""]
    if source.endswith(("\n", "\r")):
        line, column = len(lines) + 1, 1
    else:
        line, column = len(lines), len(lines[-1]) + 1
    return Location(len(source), len(source), line, column)


def parse(source: str) -> Specification:
    init: Token | None = None
    blank: Token | None = None
    outputs: dict[str, str] = {}
    table: list[TableRow] = []

    def single(keyword: Token, args: list[Token], previous: Token | None) -> Token:
        if previous is not None:
            raise SpecSyntaxError(f"Duplicate '{keyword.text}' declaration", keyword.location)
        match args:
            case [value]:
                return value
            case []:
                raise SpecSyntaxError(f"Expected a value after '{keyword.text}'", keyword.location)
            case [_, extra, *_]:
                raise SpecSyntaxError(f"Unexpected '{extra.text}' after '{keyword.text}' value", extra.location)

    def classify(keyword: Token, label: str, states: list[Token]) -> None:
        if not states:
            raise SpecSyntaxError(f"Expected at least one state after '{keyword.text}'", keyword.location)
        for state in states:
            if outputs.get(state.text, label) != label:
                raise SpecSyntaxError(
                    f"State '{state.text}' is already classified as '{outputs[state.text]}'", state.location
                )
            outputs[state.text] = label

    for tokens in tokenize(source):
        first, *rest = tokens
        match first.text:
            case "init":
                init = single(first, rest, init)
            case "blank":
                blank = single(first, rest, blank)
            case "accept" | "reject":
                classify(first, first.text, rest)
            case "output":
                if not rest:
                    raise SpecSyntaxError("Expected an output label after 'output'", first.location)
                classify(first, rest[0].text, rest[1:])
            case _:
                table.append(parse_row(tokens))

    if init is None:
        raise SpecSyntaxError("Missing 'init' declaration", end_of(source))
    if blank is None:
        raise SpecSyntaxError("Missing 'blank' declaration", end_of(source))
    return Specification(init=init.text, blank=blank.text, outputs=outputs, table=tuple(table))


def parse_row(tokens: list[Token]) -> TableRow:
    match tokens:
        case [state, read, write, move, next]:
            try:
                direction = Move.parse(move.text)
            except ValueError as e:
                raise SpecSyntaxError(e.args[0], move.location) from e
            return TableRow(
                state=state.text,
                read=read.text,
                write=write.text,
                move=direction,
                next=next.text,
                location=Location(state.location.start, next.location.end, state.location.line, state.location.column),
            )
        case [*_, last] if len(tokens) < 5:
            raise SpecSyntaxError(
                f"Incomplete transition, expected 'state read write move next' but got {len(tokens)} items",
                Location(tokens[0].location.start, last.location.end, tokens[0].location.line, tokens[0].location.column),
            )
        case _:
            extra = tokens[5]
            raise SpecSyntaxError(f"Unexpected '{extra.text}' after transition", extra.location)


def highlight_range(source: str, location: Location) -> tuple[int, int]:
    """Widen an error location so it covers at least the whole word starting at it."""
    start = min(location.start, len(source))
    match WS.search(source, start):
        case None:
            length = len(source) - start
        case m:
            length = m.start() - start
    return start, max(start + length, location.end)

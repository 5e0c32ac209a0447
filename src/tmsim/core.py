from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import IntEnum
from types import MappingProxyType
from typing import Self


class Move(IntEnum):
    L = -1
    N = 0
    R = 1

    @classmethod
    def parse(cls, val: str) -> Self:
        match val:
            case "L" | "N" | "R":
                return getattr(cls, val)
            case _:
                raise ValueError(f"Invalid move '{val}', expected one of L, N, R")


@dataclass(frozen=True)
class Location:
    start: int
    end: int
    line: int = 1
    column: int = 1

    def __str__(self) -> str:
        return f"line {self.line}, column {self.column}"


class TMError(Exception):
    """Base class for errors that point at a span of the machine's source text."""

    def __init__(self, message: str, location: Location | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.location = location

    def __str__(self) -> str:
        if self.location is None:
            return self.message
        return f"{self.message} ({self.location})"


@dataclass(frozen=True)
class TableRow:
    state: str
    read: str
    write: str
    move: Move
    next: str
    location: Location | None = field(default=None, compare=False)


@dataclass(frozen=True)
class Specification:
    init: str
    blank: str
    outputs: Mapping[str, str] = field(default_factory=dict)
    table: tuple[TableRow, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "outputs", MappingProxyType(dict(self.outputs)))
        object.__setattr__(self, "table", tuple(self.table))

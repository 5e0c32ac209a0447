import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Self, TypeAlias

from rich.markup import escape

from tmsim.core import Move, Specification, TableRow, TMError

logger = logging.getLogger(__name__)

UNKNOWN_SYMBOL = "?"


class ConsistencyError(TMError):
    pass


@dataclass(frozen=True)
class Transition:
    state: str
    read: str
    write: str
    move: Move
    next: str

    @classmethod
    def from_row(cls, row: TableRow) -> Self:
        return cls(row.state, row.read, row.write, row.move, row.next)

    def same_outcome(self, row: TableRow) -> bool:
        return (self.write, self.move, self.next) == (row.write, row.move, row.next)

    def __str__(self) -> str:
        return f"{self.read}↦{self.write} {self.move.name}"


TransitionTable: TypeAlias = dict[str, dict[str, Transition]]


def build_table(spec: Specification, on_duplicate: Callable[[TableRow], None] | None = None) -> TransitionTable:
    table: TransitionTable = {spec.init: {}}
    for state in spec.outputs:
        table.setdefault(state, {})

    for row in spec.table:
        rules = table.setdefault(row.state, {})
        table.setdefault(row.next, {})
        if row.read not in rules:
            rules[row.read] = Transition.from_row(row)
        elif rules[row.read].same_outcome(row):
            if on_duplicate is None:
                logger.warning("Duplicate transition for state '%s' and symbol '%s'", row.state, row.read)
            else:
                on_duplicate(row)
        else:
            raise ConsistencyError(
                f"Inconsistent transitions for state '{row.state}' and symbol '{row.read}'", row.location
            )
    return table


def order_states(init: str, table: TransitionTable) -> list[str]:
    """Orders states by reversed depth first finishing time, starting from the initial state.

    States that can't be reached from `init` are picked up afterwards in table order. On acyclic graphs this is a
    topological order, on cyclic ones it's merely a stable and readable one.
    """
    remaining = dict.fromkeys(table)
    finished: list[str] = []
    root = init if init in remaining else next(iter(remaining), None)

    while root is not None:
        del remaining[root]
        stack = [(root, [t.next for t in table[root].values()], 0)]
        while stack:
            state, adjacent, i = stack.pop()
            for i in range(i, len(adjacent)):
                if adjacent[i] in remaining:
                    del remaining[adjacent[i]]
                    stack.append((state, adjacent, i + 1))
                    stack.append((adjacent[i], [t.next for t in table[adjacent[i]].values()], 0))
                    break
            else:
                finished.append(state)
        root = next(iter(remaining), None)

    finished.reverse()
    return finished


class Tape:
    """Bi-infinite tape that only stores non blank cells."""

    _left: dict[int, str]
    _right: dict[int, str]

    def __init__(self, blank: str, input: str = "") -> None:
        self.blank = blank
        self._left = {}
        self._right = {}
        for i, symbol in enumerate(input):
            self.write(i, symbol)

    def _side(self, index: int) -> tuple[dict[int, str], int]:
        return (self._left, -index - 1) if index < 0 else (self._right, index)

    def read(self, index: int) -> str:
        cells, slot = self._side(index)
        return cells.get(slot, self.blank)

    def write(self, index: int, symbol: str) -> None:
        cells, slot = self._side(index)
        if symbol == self.blank:
            cells.pop(slot, None)
        else:
            cells[slot] = symbol

    def rebase(self, old_blank: str, new_blank: str) -> bool:
        """Switches to a new blank symbol.

        Unset cells keep reading as blank. Stored cells that hold the new blank would silently turn into empty cells,
        so they're replaced by `UNKNOWN_SYMBOL` instead. Returns whether any cell had to be replaced.
        """
        self.blank = new_blank
        if old_blank == new_blank:
            return False
        affected = False
        for cells in (self._left, self._right):
            for slot in [slot for slot, symbol in cells.items() if symbol == new_blank]:
                affected = True
                if new_blank == UNKNOWN_SYMBOL:
                    del cells[slot]
                else:
                    cells[slot] = UNKNOWN_SYMBOL
        return affected

    def clear(self) -> None:
        self._left.clear()
        self._right.clear()

    def __len__(self) -> int:
        return len(self._left) + len(self._right)

    def cells(self) -> Iterator[tuple[int, str]]:
        yield from ((-slot - 1, self._left[slot]) for slot in sorted(self._left, reverse=True))
        yield from ((slot, self._right[slot]) for slot in sorted(self._right))

    def bounds(self) -> tuple[int, int] | None:
        if not self:
            return None
        lowest = -max(self._left) - 1 if self._left else min(self._right)
        highest = max(self._right) if self._right else -min(self._left) - 1
        return lowest, highest

    def window(self, start: int, stop: int) -> list[str]:
        return [self.read(i) for i in range(start, stop)]

    def symbols(self) -> set[str]:
        return {*self._left.values(), *self._right.values()}


@dataclass(frozen=True)
class Configuration:
    state: str | None
    head: int

    def __str__(self) -> str:
        return f"[{self.state}]@{self.head}"

    def pretty(self, tape: Tape, window: int = 8) -> str:
        """Rich markup of the tape around the head, with blanks greyed out and the head cell highlighted."""
        cells = []
        for i, symbol in enumerate(tape.window(self.head - window, self.head + window + 1), self.head - window):
            text = escape(symbol)
            if i == self.head:
                cells.append(f"[reverse]{text}[/]")
            elif symbol == tape.blank:
                cells.append(f"[grey58]{text}[/]")
            else:
                cells.append(text)
        return f"...{' '.join(cells)}...  [cyan]\\[{escape(str(self.state))}][/] @ {self.head}"

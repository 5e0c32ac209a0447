import logging
from collections.abc import Iterator
from dataclasses import dataclass
from enum import StrEnum

from tmsim.core import Move, Specification
from tmsim.turing_machine import Configuration, Tape, Transition, TransitionTable, build_table, order_states

logger = logging.getLogger(__name__)


class Status(StrEnum):
    running = "running"
    halted = "halted"
    stuck = "stuck"


@dataclass(frozen=True)
class Classification:
    status: Status
    output: str | None = None

    def __str__(self) -> str:
        match self.status:
            case Status.running:
                return "running..."
            case Status.halted:
                return str(self.output)
            case Status.stuck:
                return "stuck"


class Trace:
    """Stack of the transitions applied since the last reset."""

    def __init__(self) -> None:
        self._steps: list[Transition] = []

    def push(self, step: Transition) -> None:
        self._steps.append(step)

    def pop(self) -> Transition:
        return self._steps.pop()

    def clear(self) -> None:
        self._steps.clear()

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[Transition]:
        return iter(self._steps)

    def __getitem__(self, index: int) -> Transition:
        return self._steps[index]


@dataclass(frozen=True)
class LoadReport:
    blank_changed: bool = False
    tape_migrated: bool = False
    state_reverted: bool = False


class Machine:
    """A single tape Turing machine together with its tape, head and undo log.

    The machine is only ever mutated through its methods, each of which either fully applies or leaves everything
    unchanged.
    """

    def __init__(self, spec: Specification, table: TransitionTable | None = None) -> None:
        self.spec = spec
        self.table = build_table(spec) if table is None else table
        self.tape = Tape(spec.blank)
        self.trace = Trace()
        self.state: str | None = spec.init
        self.head = 0

    def load(self, spec: Specification, table: TransitionTable) -> LoadReport:
        """Installs a freshly built table, keeping the tape and head."""
        old_blank = self.spec.blank
        self.spec = spec
        self.table = table
        self.trace.clear()
        migrated = self.tape.rebase(old_blank, spec.blank)
        reverted = self.state is not None and self.state not in table
        if self.state is None or reverted:
            self.state = spec.init
        return LoadReport(blank_changed=old_blank != spec.blank, tape_migrated=migrated, state_reverted=reverted)

    @property
    def configuration(self) -> Configuration:
        return Configuration(self.state, self.head)

    @property
    def head_symbol(self) -> str:
        return self.tape.read(self.head)

    @head_symbol.setter
    def head_symbol(self, symbol: str) -> None:
        self.tape.write(self.head, symbol)

    @property
    def states(self) -> list[str]:
        return order_states(self.spec.init, self.table)

    def symbols(self) -> list[str]:
        symbols = self.tape.symbols()
        for row in self.spec.table:
            symbols.update((row.read, row.write))
        symbols.discard(self.spec.blank)
        return [self.spec.blank, *sorted(symbols)]

    def applicable_transition(self, state: str | None = None, symbol: str | None = None) -> Transition | None:
        state = self.state if state is None else state
        symbol = self.head_symbol if symbol is None else symbol
        if state is None:
            return None
        return self.table.get(state, {}).get(symbol)

    def classify(self) -> Classification:
        if self.applicable_transition() is not None:
            return Classification(Status.running)
        if self.state is not None and self.state in self.spec.outputs:
            return Classification(Status.halted, self.spec.outputs[self.state])
        return Classification(Status.stuck)

    def step_forward(self) -> bool:
        step = self.applicable_transition()
        if step is None:
            return False
        self.trace.push(step)
        self.head_symbol = step.write
        self.head += step.move
        self.state = step.next
        logger.debug("Step %d: %s %s -> %s", len(self.trace), step.state, step, step.next)
        return True

    def step_backward(self) -> bool:
        if not self.trace:
            return False
        step = self.trace.pop()
        self.head -= step.move
        self.head_symbol = step.read
        self.state = step.state
        logger.debug("Undid step %d: %s %s -> %s", len(self.trace) + 1, step.state, step, step.next)
        return True

    def change_state(self, target: str | None) -> bool:
        if not target or target not in self.table:
            return False
        self.state = target
        return True

    def move_head(self, delta: int) -> None:
        if not isinstance(delta, int) or isinstance(delta, bool) or delta not in (Move.L, Move.N, Move.R):
            raise ValueError(f"invalid move {delta}")
        self.head += delta

    def erase(self, direction: Move) -> None:
        if direction not in (Move.L, Move.R):
            raise ValueError(f"invalid erase direction {direction}")
        self.head_symbol = self.spec.blank
        self.head += direction

    def type_text(self, text: str) -> None:
        for symbol in text:
            if symbol == " ":
                symbol = self.spec.blank
            elif symbol.isspace():
                continue
            self.head_symbol = symbol
            self.head += Move.R

    def reset(self) -> None:
        self.trace.clear()
        self.state = self.spec.init

    def stop(self) -> None:
        self.reset()

    def home(self) -> None:
        self.head = 0

    def clear(self) -> None:
        self.tape.clear()

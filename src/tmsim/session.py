import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TypeAlias

from tmsim.config import Settings
from tmsim.core import Specification, TableRow
from tmsim.engine import Classification, Machine, Trace
from tmsim.parser import SpecSyntaxError, parse
from tmsim.scheduler import Debouncer, Scheduler
from tmsim.turing_machine import UNKNOWN_SYMBOL, ConsistencyError, Transition, TransitionTable, build_table

logger = logging.getLogger(__name__)

DEFAULT_SOURCE = "init halt\nblank *\n"


class Notice(StrEnum):
    halted = "halted"
    blank_changed = "blank_changed"
    invalid_state = "invalid_state"
    state_reverted = "state_reverted"
    duplicate_rule = "duplicate_rule"


Notify: TypeAlias = Callable[[Notice, str], None]
Parser: TypeAlias = Callable[[str], Specification]


@dataclass(frozen=True)
class Ok:
    spec: Specification
    table: TransitionTable


@dataclass(frozen=True)
class Err:
    error: SpecSyntaxError | ConsistencyError


class Simulator:
    """Everything a front end needs: the machine, its run loop, rebuilding from source and user notifications.

    Every user action pauses a running machine before it's applied, only the run loop itself steps without pausing.
    """

    def __init__(
        self,
        parser: Parser = parse,
        notify: Notify | None = None,
        settings: Settings | None = None,
        source: str = DEFAULT_SOURCE,
    ) -> None:
        self.parser = parser
        self._notify = notify
        self.settings = settings or Settings()
        spec = parser(source)
        self.machine = Machine(spec, build_table(spec))
        self.source = source
        self._placeholder = source == DEFAULT_SOURCE
        self.scheduler = Scheduler(self.machine.step_forward, self._halted, self.settings.delay)
        self.debouncer = Debouncer(self.rebuild, self.settings.debounce)

    def notify(self, notice: Notice, message: str) -> None:
        logger.info("%s: %s", notice, message)
        if self._notify is not None:
            self._notify(notice, message)

    def _halted(self) -> None:
        self.notify(Notice.halted, f"The machine has halted ({self.classify()})")

    def rebuild(self, source: str) -> Ok | Err:
        duplicates: list[TableRow] = []
        try:
            spec = self.parser(source)
            table = build_table(spec, duplicates.append)
        except (SpecSyntaxError, ConsistencyError) as e:
            logger.warning("Rebuild failed: %s", e)
            return Err(e)

        self.pause()
        self.source = source
        if self._placeholder:
            # leaving the placeholder machine is not a reverted state
            self.machine.state = None
            self._placeholder = False
        for row in duplicates:
            self.notify(Notice.duplicate_rule, f"Duplicate transition for state '{row.state}' and symbol '{row.read}'")
        report = self.machine.load(spec, table)
        if report.tape_migrated:
            self.notify(
                Notice.blank_changed,
                f"'{spec.blank}' is now the blank symbol. "
                f"Occurrences of '{spec.blank}' on tape have been changed to '{UNKNOWN_SYMBOL}'.",
            )
        if report.state_reverted:
            self.notify(Notice.state_reverted, "Current state does not exist anymore, reverting to initial state.")
        return Ok(spec, table)

    def queue_rebuild(self, source: str) -> None:
        self.debouncer.submit(source)

    @property
    def spec(self) -> Specification:
        return self.machine.spec

    @property
    def table(self) -> TransitionTable:
        return self.machine.table

    @property
    def state(self) -> str | None:
        return self.machine.state

    @property
    def head(self) -> int:
        return self.machine.head

    @property
    def head_symbol(self) -> str:
        return self.machine.head_symbol

    @property
    def trace(self) -> Trace:
        return self.machine.trace

    @property
    def states(self) -> list[str]:
        return self.machine.states

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def classify(self) -> Classification:
        return self.machine.classify()

    def applicable_transition(self) -> Transition | None:
        return self.machine.applicable_transition()

    def step_forward(self) -> bool:
        self.pause()
        return self.machine.step_forward()

    def step_backward(self) -> bool:
        self.pause()
        return self.machine.step_backward()

    def change_state(self, target: str) -> bool:
        self.pause()
        if not self.machine.change_state(target):
            self.notify(Notice.invalid_state, f"There is no state '{target}'")
            return False
        return True

    def move_head(self, delta: int) -> None:
        self.pause()
        self.machine.move_head(delta)

    def set_head_symbol(self, symbol: str) -> None:
        self.pause()
        self.machine.head_symbol = symbol

    def type_text(self, text: str) -> None:
        self.pause()
        self.machine.type_text(text)

    def reset(self) -> None:
        self.pause()
        self.machine.reset()

    def stop(self) -> None:
        self.pause()
        self.machine.stop()

    def home(self) -> None:
        self.pause()
        self.machine.home()

    def clear(self) -> None:
        self.pause()
        self.machine.clear()

    def start(self, delay: int | None = None, limit: int | None = None) -> None:
        self.scheduler.start(delay, limit)

    def pause(self) -> None:
        self.scheduler.pause()

    def toggle(self) -> None:
        if self.running:
            self.pause()
        else:
            self.start()

    def set_delay(self, delay: int) -> None:
        self.scheduler.delay = delay

import asyncio
import logging
from pathlib import Path
from typing import Annotated

from rich.console import Console
from rich.live import Live
from rich.logging import RichHandler
from rich.markup import escape
from rich.prompt import Prompt
from rich.table import Table
from rich.text import Text
from rich.theme import Theme
from typer import Argument, Context, Exit, Option, Typer

from tmsim.config import ConfigError, Settings, load_settings
from tmsim.core import Move, TMError
from tmsim.engine import Status, Trace
from tmsim.parser import highlight_range
from tmsim.session import Err, Notice, Simulator

MACHINE_FOLDER = Path(__file__).parent / "machines"
REFRESH = 0.05

app = Typer(pretty_exceptions_show_locals=False, no_args_is_help=True)
theme = Theme({
    "success": "green",
    "warning": "orange3",
    "error": "red",
    "attention": "magenta2",
    "heading": "blue",
    "info": "dim cyan",
})
console = Console(theme=theme)

NOTICE_STYLES = {
    Notice.halted: "attention",
    Notice.blank_changed: "warning",
    Notice.invalid_state: "error",
    Notice.state_reverted: "warning",
    Notice.duplicate_rule: "warning",
}


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def print_notice(notice: Notice, message: str) -> None:
    console.print(f"[{NOTICE_STYLES[notice]}]{escape(message)}[/]", highlight=False)


def resolve_machine(machine: str) -> Path:
    path = Path(machine)
    if path.is_file():
        return path
    bundled = MACHINE_FOLDER.joinpath(f"{machine}.tm")
    if bundled.is_file():
        return bundled
    console.print(f"[error]Could not find a machine file or bundled machine called '{machine}'.")
    raise Exit(1)


def report_error(source: str, error: TMError) -> None:
    console.print(f"[error]{escape(str(error))}[/]", highlight=False)
    if error.location is None:
        return
    start, end = highlight_range(source, error.location)
    line_start = source.rfind("\n", 0, start) + 1
    line_end = source.find("\n", end)
    snippet = Text(source[line_start : None if line_end == -1 else line_end] or " ")
    snippet.stylize("bold red underline", start - line_start, max(end, start + 1) - line_start)
    console.print(snippet)


def load(machine: str, settings: Settings) -> tuple[Simulator, Path]:
    path = resolve_machine(machine)
    simulator = Simulator(notify=print_notice, settings=settings)
    source = path.read_text()
    match simulator.rebuild(source):
        case Err(error):
            report_error(source, error)
            raise Exit(1)
        case _:
            return simulator, path


def transition_table(simulator: Simulator) -> Table:
    machine = simulator.machine
    symbols = machine.symbols()
    table = Table(show_lines=False, header_style="heading")
    table.add_column("")
    table.add_column("State")
    for symbol in symbols:
        table.add_column(escape(symbol), justify="center")
    active = simulator.applicable_transition()
    for state in simulator.states:
        annotation = " ".join(
            filter(None, ["Initial" if state == machine.spec.init else "", machine.spec.outputs.get(state, "")])
        )
        cells = []
        for symbol in symbols:
            match machine.table[state].get(symbol):
                case None:
                    cells.append("[grey58]HALT[/]")
                case step if step is active:
                    cells.append(f"[reverse]{escape(step.write)} {step.move.name} {escape(step.next)}[/]")
                case step:
                    cells.append(f"{escape(step.write)} {step.move.name} {escape(step.next)}")
        label = f"[cyan]{escape(state)}[/]" if state == simulator.state else escape(state)
        table.add_row(annotation, label, *cells)
    return table


def trace_table(trace: Trace) -> Table | str:
    if not trace:
        return "[info]No steps performed[/]"
    table = Table(header_style="heading")
    for column in ("#", "State", "Read", "Write", "Move", "Next"):
        table.add_column(column)
    for i, step in enumerate(trace, 1):
        table.add_row(str(i), *map(escape, (step.state, step.read, step.write)), step.move.name, escape(step.next))
    return table


def status_line(simulator: Simulator, window: int) -> Text:
    machine = simulator.machine
    outcome = simulator.classify()
    style = {Status.running: "info", Status.halted: "success", Status.stuck: "error"}[outcome.status]
    tape = machine.configuration.pretty(machine.tape, window)
    return Text.from_markup(f"{tape}  [{style}]{escape(str(outcome))}[/]  steps: {len(machine.trace)}")


def drive(simulator: Simulator, delay: int, limit: int | None, window: int) -> None:
    async def watch() -> None:
        simulator.start(delay, limit)
        with Live(status_line(simulator, window), console=console, transient=True) as live:
            while simulator.running:
                await asyncio.sleep(REFRESH)
                live.update(status_line(simulator, window))

    try:
        asyncio.run(watch())
    except KeyboardInterrupt:
        simulator.pause()
        console.print("[warning]Paused.")


@app.callback()
def main(
    ctx: Context,
    *,
    verbose: Annotated[bool, Option("--verbose", "-v", help="Log every step and rebuild.")] = False,
    config: Annotated[
        Path | None,
        Option("--config", "-c", help="TOML settings file. Defaults to 'tmsim.toml' in the working directory."),
    ] = None,
):
    """Simulate single tape Turing machines."""
    setup_logging(verbose)
    try:
        ctx.obj = load_settings(config)
    except ConfigError as e:
        console.print(f"[error]{e}")
        raise Exit(1) from e


@app.command()
def examples():
    """List the bundled example machines."""
    for path in sorted(MACHINE_FOLDER.glob("*.tm")):
        description = path.read_text().splitlines()[0].lstrip("#/ ")
        console.print(f"[heading]{path.stem}[/]  {description}", highlight=False)


@app.command()
def check(
    ctx: Context,
    machine: Annotated[str, Argument(help="Path to a machine file or the name of a bundled machine.")],
):
    """Check a machine file and print its transition table."""
    simulator, path = load(machine, ctx.obj)
    console.print(f"[success]'{path.name}' is a valid machine with {len(simulator.table)} states.")
    console.print(transition_table(simulator))


@app.command()
def run(
    ctx: Context,
    machine: Annotated[str, Argument(help="Path to a machine file or the name of a bundled machine.")],
    *,
    input: Annotated[str, Option("--input", "-i", help="Initial tape contents, starting at cell 0.")] = "",
    delay: Annotated[int | None, Option("--delay", "-d", min=0, help="Milliseconds between steps.")] = None,
    max_steps: Annotated[int | None, Option("--max-steps", "-n", min=0, help="Stop after this many steps.")] = None,
    show_trace: Annotated[bool, Option("--trace", "-t", help="Print every performed step.")] = False,
):
    """Run a machine until it halts or the step limit is reached."""
    settings: Settings = ctx.obj.replace(delay=delay, max_steps=max_steps)
    simulator, _ = load(machine, settings)
    simulator.type_text(input)
    simulator.home()
    drive(simulator, settings.delay, settings.max_steps, settings.window)

    outcome = simulator.classify()
    if outcome.status is Status.running:
        console.print(f"[warning]Stopped after {len(simulator.trace)} steps without halting.")
    console.print(status_line(simulator, settings.window))
    if show_trace:
        console.print(trace_table(simulator.trace))
    if outcome.status is Status.stuck:
        raise Exit(2)


SHELL_HELP = """[heading]Commands[/]
  f, forward        perform one step          b, back         undo the last step
  l, left           move the head left        r, right        move the head right
  run [ms]          run until halted          reset           initial state, empty tape, head home
  stop              initial state, keep tape  home            move the head to cell 0
  clear             empty the tape            state <name>    jump to a state
  write <symbol>    write under the head      type <text>     type text onto the tape
  show              print the table           trace           print the performed steps
  reload            re-read the machine file  quit            leave the shell"""


@app.command()
def shell(
    ctx: Context,
    machine: Annotated[str, Argument(help="Path to a machine file or the name of a bundled machine.")],
    *,
    input: Annotated[str, Option("--input", "-i", help="Initial tape contents, starting at cell 0.")] = "",
):
    """Step through a machine interactively."""
    settings: Settings = ctx.obj
    simulator, path = load(machine, settings)
    simulator.type_text(input)
    simulator.home()
    console.print(SHELL_HELP)

    while True:
        console.print(status_line(simulator, settings.window))
        command, _, arg = Prompt.ask("[heading]tm", console=console, default="f").strip().partition(" ")
        arg = arg.strip()
        try:
            match command:
                case "f" | "forward":
                    if not simulator.step_forward():
                        console.print(f"[attention]The machine has halted ({simulator.classify()}).")
                case "b" | "back":
                    if not simulator.step_backward():
                        console.print("[info]No steps performed.")
                case "l" | "left":
                    simulator.move_head(Move.L)
                case "r" | "right":
                    simulator.move_head(Move.R)
                case "run":
                    drive(simulator, int(arg) if arg else settings.delay, None, settings.window)
                case "reset":
                    simulator.reset()
                    simulator.home()
                    simulator.clear()
                case "stop":
                    simulator.stop()
                case "home":
                    simulator.home()
                case "clear":
                    simulator.clear()
                case "state" if arg:
                    simulator.change_state(arg)
                case "write" if arg:
                    simulator.set_head_symbol(arg)
                case "type":
                    simulator.type_text(arg)
                case "show":
                    console.print(transition_table(simulator))
                case "trace":
                    console.print(trace_table(simulator.trace))
                case "reload":
                    source = path.read_text()
                    match simulator.rebuild(source):
                        case Err(error):
                            report_error(source, error)
                        case _:
                            console.print(f"[success]Reloaded '{path.name}'.")
                case "q" | "quit" | "exit":
                    return
                case _:
                    console.print(SHELL_HELP)
        except ValueError as e:
            console.print(f"[error]{e}")


if __name__ == "__main__":
    app()

from pathlib import Path

import pytest

from tmsim.core import Specification
from tmsim.engine import Machine
from tmsim.parser import parse

MACHINES = Path(__file__).parents[1] / "src" / "tmsim" / "machines"


def bundled(name: str) -> str:
    return MACHINES.joinpath(f"{name}.tm").read_text()


def machine(source: str) -> Machine:
    return Machine(parse(source))


@pytest.fixture
def self_loop() -> Specification:
    return parse("init q0\nblank B\nq0 B 1 R q0\n")

import pytest

from tmsim.core import Location, Move, TableRow
from tmsim.parser import SpecSyntaxError, highlight_range, parse

from conftest import bundled

SOURCE = """\
# a comment
init q0
blank _
accept qa qb
reject qr
output done q9

// another comment
q0 _ 1 R q1
q1 1 1 L qa
"""


def test_parse_directives_and_rows():
    spec = parse(SOURCE)
    assert spec.init == "q0"
    assert spec.blank == "_"
    assert dict(spec.outputs) == {"qa": "accept", "qb": "accept", "qr": "reject", "q9": "done"}
    assert spec.table == (
        TableRow("q0", "_", "1", Move.R, "q1"),
        TableRow("q1", "1", "1", Move.L, "qa"),
    )


def test_row_locations_span_the_whole_row():
    spec = parse(SOURCE)
    first = spec.table[0].location
    assert first == Location(SOURCE.index("q0 _"), SOURCE.index("q0 _") + len("q0 _ 1 R q1"), 9, 1)
    assert spec.table[1].location.line == 10


def test_repeated_identical_output_is_allowed():
    spec = parse("init a\nblank _\naccept a\naccept a\n")
    assert dict(spec.outputs) == {"a": "accept"}


@pytest.mark.parametrize("name", ["binary_increment", "unary_add", "palindrome", "busy_beaver"])
def test_bundled_machines_parse(name: str):
    spec = parse(bundled(name))
    assert spec.table


@pytest.mark.parametrize(
    ("source", "message", "start"),
    [
        ("init a\nblank _\na _ 1 X b\n", "Invalid move 'X'", 21),
        ("init a\ninit b\nblank _\n", "Duplicate 'init'", 7),
        ("init a\nblank _ x\n", "Unexpected 'x'", 15),
        ("init\nblank _\n", "Expected a value after 'init'", 0),
        ("init a\nblank _\na _ 1 R\n", "Incomplete transition", 15),
        ("init a\nblank _\na _ 1 R b c\n", "Unexpected 'c'", 25),
        ("init a\nblank _\naccept b\nreject b\n", "already classified as 'accept'", 31),
        ("init a\nblank _\naccept\n", "Expected at least one state", 15),
        ("init a\nblank _\noutput\n", "Expected an output label", 15),
    ],
)
def test_syntax_errors_are_located(source: str, message: str, start: int):
    with pytest.raises(SpecSyntaxError, match=message) as info:
        parse(source)
    assert info.value.location is not None
    assert info.value.location.start == start


@pytest.mark.parametrize(
    ("source", "message"),
    [
        ("blank _\n", "Missing 'init'"),
        ("init a\n", "Missing 'blank'"),
        ("", "Missing 'init'"),
    ],
)
def test_missing_directives_point_at_the_end(source: str, message: str):
    with pytest.raises(SpecSyntaxError, match=message) as info:
        parse(source)
    assert info.value.location is not None
    assert info.value.location.start == len(source)


def test_missing_directive_line_numbers():
    with pytest.raises(SpecSyntaxError) as info:
        parse("init a\nfoo _ _ N foo")
    assert info.value.location == Location(20, 20, 2, 14)


def test_error_message_mentions_location():
    with pytest.raises(SpecSyntaxError) as info:
        parse("init a\nblank _\na _ 1 X b\n")
    assert str(info.value) == "Invalid move 'X', expected one of L, N, R (line 3, column 7)"


@pytest.mark.parametrize(
    ("location", "expected"),
    [
        (Location(4, 5), (4, 7)),
        (Location(4, 10), (4, 10)),
        (Location(8, 8), (8, 11)),
        (Location(11, 11), (11, 11)),
        (Location(3, 3), (3, 3)),
    ],
)
def test_highlight_range_covers_the_word(location: Location, expected: tuple[int, int]):
    assert highlight_range("foo bar baz", location) == expected

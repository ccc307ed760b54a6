import pytest

from scriptit.scriptit_datatypes import EvaluationError
from scriptit.scriptit_values import (
    apply_binary, apply_unary, display, equals, iterate, owned, parse_number, points_to,
    to_float, to_int, truthy, type_name,
)


def test_type_names():
    assert [type_name(v) for v in (None, True, 1, 1.5, "s", [], set(), {})] == [
        "NoneType", "bool", "int", "double", "str", "list", "set", "dict"
    ]


def test_truthiness():
    assert not any(truthy(v) for v in (None, False, 0, 0.0, "", [], set(), {}))
    assert all(truthy(v) for v in (True, 1, -0.5, "a", [0], {0}, {"k": None}))


def test_arithmetic():
    assert apply_binary('+', 2, 3) == 5
    assert apply_binary('+', "n=", 5) == "n=5"
    assert apply_binary('+', [1], [2]) == [1, 2]
    assert apply_binary('*', "ab", 3) == "ababab"
    assert apply_binary('/', 7, 2) == 3.5
    assert apply_binary('%', 7, 3) == 1
    assert apply_binary('^', 2, 10) == 1024
    assert isinstance(apply_binary('^', 2, 10), int)
    assert apply_binary('^', 2, -1) == 0.5
    assert apply_binary('-', {1, 2}, {2}) == {1}
    # integers never overflow
    assert apply_binary('*', 2 ** 64, 2 ** 64) == 2 ** 128


@pytest.mark.parametrize("op, a, b, message", [
    ('/', 1, 0, "Division by zero"),
    ('%', 1, 0, "Modulo by zero"),
    ('<', "a", 1, "Unsupported operand types for '<'"),
    ('-', "a", "b", "Unsupported operand types for '-'"),
])
def test_arithmetic_errors(op, a, b, message):
    with pytest.raises(EvaluationError) as exc:
        apply_binary(op, a, b, line=4)
    assert message in exc.value.message
    assert exc.value.line == 4


def test_equality_and_identity():
    assert equals(1, 1.0)
    assert equals(0.1 + 0.2, 0.3)
    assert not equals("1", 1)
    assert not equals(None, 0)
    assert equals([1, "a"], [1, "a"])
    assert apply_binary('is not', 1, 2)
    assert points_to(1, 1)
    assert not points_to(1, 1.0)
    assert apply_binary('not points', True, 1)


def test_unary():
    assert apply_unary('~', 5) == -5
    assert apply_unary('!', 0) is True
    with pytest.raises(EvaluationError):
        apply_unary('~', "x")


def test_number_literals():
    assert parse_number("42") == 42
    assert parse_number("3.25") == 3.25
    with pytest.raises(EvaluationError) as exc:
        parse_number("9" * 400 + ".0", line=2)
    assert "out of range" in exc.value.message


def test_conversions():
    assert to_int("42") == 42
    assert to_int(" 3.9 ") == 3
    assert to_int(None) == 0
    assert to_float("2.5") == 2.5
    with pytest.raises(EvaluationError):
        to_int("abc")


def test_iteration_order():
    assert iterate("ab") == ["a", "b"]
    assert iterate({3, 1, 2}) == [1, 2, 3]
    assert iterate({"b": 1, "a": 2}) == ["b", "a"]
    with pytest.raises(EvaluationError):
        iterate(5)


def test_owned_copies_containers_deeply():
    original = [[1], {"k": [2]}]
    copy = owned(original)
    copy[0].append(9)
    copy[1]["k"].append(9)
    assert original == [[1], {"k": [2]}]
    assert owned(5) == 5


def test_display():
    assert display("plain") == "plain"
    assert display(["a", 1, 2.5, None, True]) == "['a', 1, 2.5, None, True]"
    assert display({"k": "v"}) == "{'k': 'v'}"
    assert display({2, 1}) == "{1, 2}"
    assert display(set()) == "set()"
    assert display(5.0) == "5"


def test_edges():
    assert apply_binary('->', 1, "b") == {"__from__": 1, "__to__": "b", "__dir__": "directed"}
    assert apply_binary('<->', 1, 2)["__dir__"] == "bidirectional"
    assert apply_binary('---', 1, 2)["__dir__"] == "undirected"
    ends = [1]
    record = apply_binary('->', ends, 2)
    ends.append(9)
    assert record["__from__"] == [1]


HUGE = 10 ** 400


@pytest.mark.parametrize("op, a, b", [
    ('/', HUGE, 3),
    ('+', HUGE, 0.5),
    ('-', 0.5, HUGE),
    ('*', HUGE, 1.5),
    ('%', HUGE, 1.5),
])
def test_overflow_is_an_evaluation_error(op, a, b):
    with pytest.raises(EvaluationError) as exc:
        apply_binary(op, a, b, line=3)
    assert exc.value.message == f"Numeric overflow in '{op}'"
    assert exc.value.line == 3


def test_huge_ints_compare_exactly():
    assert not equals(HUGE, 1.5)
    assert equals(HUGE, HUGE)
    assert apply_binary('>', HUGE, 1.5)
    assert apply_binary('-', HUGE, HUGE) == 0


def test_out_of_range_conversions():
    with pytest.raises(EvaluationError) as exc:
        to_int("1e400", line=5)
    assert "Cannot convert '1e400' to int" in exc.value.message
    with pytest.raises(EvaluationError):
        to_float(HUGE)

"""
Operations on ScriptIt runtime values.

Values are plain Python objects: None, bool, int, float, str, list, set and
dict (string keys). Python's unbounded int takes care of integer overflow.
"""
import copy
import math
import operator
from typing import Any, Iterable, List

from scriptit.scriptit_datatypes import EvaluationError

FLOAT_TOLERANCE = 1e-9

TYPE_NAMES = {
    type(None): "NoneType",
    bool: "bool",
    int: "int",
    float: "double",
    str: "str",
    list: "list",
    set: "set",
    dict: "dict",
}


def type_name(value: Any) -> str:
    name = TYPE_NAMES.get(type(value))
    if name is not None:
        return name
    return getattr(value, "type_name", type(value).__name__)


def is_numeric(value: Any) -> bool:
    return isinstance(value, (int, float))   # bool is an int subclass


def is_integral(value: Any) -> bool:
    return isinstance(value, int)


def truthy(value: Any) -> bool:
    match value:
        case None:
            return False
        case bool() | int() | float():
            return value != 0
        case str() | list() | set() | dict():
            return len(value) > 0
        case _:
            return True


def parse_number(text: str, line: int = -1):
    if '.' not in text:
        return int(text)
    value = float(text)
    if math.isinf(value):
        raise EvaluationError(f"Numeric literal out of range: {text}", line)
    return value


def owned(value: Any) -> Any:
    """Copy containers on binding so no two names ever share one."""
    if isinstance(value, (list, set, dict)):
        return copy.deepcopy(value)
    return value


def display(value: Any) -> str:
    from scriptit.scriptit_printer import Printer
    return Printer().pformat(value)


def _require_numbers(op: str, a: Any, b: Any, line: int):
    if not (is_numeric(a) and is_numeric(b)):
        raise EvaluationError(
            f"Unsupported operand types for '{op}': {type_name(a)} and {type_name(b)}", line
        )


def _repeat(seq: Any, times: Any, op: str, line: int):
    if not is_integral(times):
        raise EvaluationError(
            f"Unsupported operand types for '{op}': {type_name(seq)} and {type_name(times)}", line
        )
    return _checked(op, lambda s, n: s * max(int(n), 0), seq, times, line)


def _checked(op: str, fn, a, b, line: int):
    # a huge int meeting a float, or an int quotient too large for a float
    try:
        return fn(a, b)
    except OverflowError:
        raise EvaluationError(f"Numeric overflow in '{op}'", line)


def add(a, b, line=-1):
    if isinstance(a, str) or isinstance(b, str):
        left = a if isinstance(a, str) else display(a)
        right = b if isinstance(b, str) else display(b)
        return left + right
    if isinstance(a, list) and isinstance(b, list):
        return a + b
    _require_numbers('+', a, b, line)
    return _checked('+', operator.add, a, b, line)


def sub(a, b, line=-1):
    if isinstance(a, set) and isinstance(b, set):
        return a - b
    _require_numbers('-', a, b, line)
    return _checked('-', operator.sub, a, b, line)


def mul(a, b, line=-1):
    if isinstance(a, (str, list)):
        return _repeat(a, b, '*', line)
    if isinstance(b, (str, list)):
        return _repeat(b, a, '*', line)
    _require_numbers('*', a, b, line)
    return _checked('*', operator.mul, a, b, line)


def div(a, b, line=-1):
    _require_numbers('/', a, b, line)
    if b == 0:
        raise EvaluationError("Division by zero", line)
    return _checked('/', operator.truediv, a, b, line)


def mod(a, b, line=-1):
    _require_numbers('%', a, b, line)
    if b == 0:
        raise EvaluationError("Modulo by zero", line)
    return _checked('%', operator.mod, a, b, line)


def power(a, b, line=-1):
    _require_numbers('^', a, b, line)
    if is_integral(a) and is_integral(b) and b >= 0:
        return int(a) ** int(b)
    if a == 0 and b < 0:
        raise EvaluationError("Division by zero", line)
    try:
        result = float(a) ** float(b)
    except OverflowError:
        raise EvaluationError("Numeric overflow in '^'", line)
    if isinstance(result, complex):
        raise EvaluationError("Negative base with fractional exponent", line)
    return result


def negate(a, line=-1):
    if not is_numeric(a):
        raise EvaluationError(f"Bad operand type for unary '-': {type_name(a)}", line)
    return -a


def logical_not(a, line=-1):
    return not truthy(a)


def equals(a, b) -> bool:
    """Loose equality used by `==` and `is`."""
    if isinstance(a, str) or isinstance(b, str):
        return isinstance(a, str) and isinstance(b, str) and a == b
    if a is None or b is None:
        return a is None and b is None
    if is_numeric(a) and is_numeric(b):
        if is_integral(a) and is_integral(b):
            return a == b
        try:
            return abs(a - b) < FLOAT_TOLERANCE
        except OverflowError:
            # an int beyond float range never lies within tolerance of a float
            return a == b
    return a == b


def points_to(a, b) -> bool:
    """Strict identity used by `points`: same runtime type and exact value."""
    return type_name(a) == type_name(b) and a == b


def compare(op: str, a, b, line=-1) -> bool:
    _require_numbers(op, a, b, line)
    match op:
        case '<':
            return a < b
        case '<=':
            return a <= b
        case '>':
            return a > b
        case '>=':
            return a >= b
    raise EvaluationError(f"Unknown comparison '{op}'", line)


EDGE_DIRECTIONS = {
    '->': "directed",
    '<->': "bidirectional",
    '---': "undirected",
}


def edge(op: str, a, b) -> dict:
    """Graph edge record built by `a -> b`, `a <-> b` and `a --- b`."""
    return {"__from__": owned(a), "__to__": owned(b), "__dir__": EDGE_DIRECTIONS[op]}


BINARY_OPERATORS = {
    '+': add,
    '-': sub,
    '*': mul,
    '/': div,
    '%': mod,
    '^': power,
}


def apply_binary(op: str, a, b, line=-1):
    handler = BINARY_OPERATORS.get(op)
    if handler is not None:
        return handler(a, b, line)
    match op:
        case '==' | 'is':
            return equals(a, b)
        case '!=' | 'is not':
            return not equals(a, b)
        case 'points':
            return points_to(a, b)
        case 'not points':
            return not points_to(a, b)
        case '<' | '<=' | '>' | '>=':
            return compare(op, a, b, line)
        case '->' | '<->' | '---':
            return edge(op, a, b)
    raise EvaluationError(f"Unknown operator '{op}'", line)


def apply_unary(op: str, a, line=-1):
    if op == '~':
        return negate(a, line)
    if op == '!':
        return logical_not(a, line)
    raise EvaluationError(f"Unknown unary operator '{op}'", line)


def _sort_key(value):
    return (type_name(value), value)


def ordered(values: Iterable) -> List:
    """Deterministic order for sets: sorted when comparable, else by type then value."""
    items = list(values)
    try:
        return sorted(items)
    except TypeError:
        try:
            return sorted(items, key=_sort_key)
        except TypeError:
            return items


def iterate(value, line=-1) -> List:
    match value:
        case list():
            return list(value)
        case str():
            return list(value)
        case set():
            return ordered(value)
        case dict():
            return list(value.keys())
    raise EvaluationError(f"Cannot iterate over {type_name(value)}", line)


def to_int(value, line=-1) -> int:
    match value:
        case bool() | int():
            return int(value)
        case float():
            if value != value or value in (float("inf"), float("-inf")):
                raise EvaluationError(f"Cannot convert {display(value)} to int", line)
            return int(value)
        case str():
            text = value.strip()
            try:
                return int(text)
            except ValueError:
                pass
            try:
                return int(float(text))
            except (ValueError, OverflowError):
                raise EvaluationError(f"Cannot convert '{value}' to int", line)
        case None:
            return 0
    raise EvaluationError(f"Cannot convert {type_name(value)} to int", line)


def to_float(value, line=-1) -> float:
    match value:
        case bool() | int() | float():
            try:
                return float(value)
            except OverflowError:
                raise EvaluationError(f"Cannot convert {type_name(value)} to double: value out of range", line)
        case str():
            try:
                return float(value.strip())
            except ValueError:
                raise EvaluationError(f"Cannot convert '{value}' to double", line)
        case None:
            return 0.0
    raise EvaluationError(f"Cannot convert {type_name(value)} to double", line)


def length(value, line=-1) -> int:
    if isinstance(value, (str, list, set, dict)):
        return len(value)
    raise EvaluationError(f"Object of type '{type_name(value)}' has no len()", line)

"""
Dot-method dispatch: `receiver.method(args)` resolved by runtime type and arity.

Each table is a class whose methods named `_name` become the ScriptIt method
`name`. The first parameter is the receiver; the remaining parameters fix the
accepted argument counts (parameters with defaults make a method accept a
range, e.g. `split()` and `split(sep)`). Mutating methods change the receiver
in place; the evaluator decides whether the change is written back.
"""
import inspect
from typing import Any, Dict, List, Tuple

from scriptit.scriptit_datatypes import EvaluationError, MethodNotFoundError
from scriptit.scriptit_printer import Printer
from scriptit.scriptit_values import (
    display, equals, is_integral, is_numeric, length, ordered, to_float, to_int, truthy, type_name
)


def item_at(seq, i, line):
    idx = to_int(i, line)
    if -len(seq) <= idx < len(seq):
        return seq[idx]
    raise EvaluationError(f"Index {idx} out of range for {type_name(seq)} of size {len(seq)}", line)


def slice_of(seq, start, stop, step=1, line=-1):
    step = to_int(step, line)
    if step == 0:
        raise EvaluationError("slice step cannot be zero", line)
    return seq[slice(
        None if start is None else to_int(start, line),
        None if stop is None else to_int(stop, line),
        step,
    )]


class MethodProvider:
    # line of the call being dispatched, for error messages
    line = -1


class UniversalMethods(MethodProvider):
    def _type(self, s): return type_name(s)
    def _str(self, s): return display(s)
    def _pretty_str(self, s): return Printer().pretty(s)
    def _len(self, s): return length(s, self.line)
    def _hash(self, s): return hash(Printer().repr(s))
    def _is_none(self, s): return s is None
    def _is_bool(self, s): return isinstance(s, bool)
    def _is_int(self, s): return is_integral(s) and not isinstance(s, bool)
    def _is_float(self, s): return isinstance(s, float)
    def _is_double(self, s): return isinstance(s, float)
    def _is_string(self, s): return isinstance(s, str)
    def _is_list(self, s): return isinstance(s, list)
    def _is_dict(self, s): return isinstance(s, dict)
    def _is_set(self, s): return isinstance(s, set)
    def _is_any_numeric(self, s): return is_numeric(s) and not isinstance(s, bool)
    def _isNone(self, s): return s is None
    def _isNumeric(self, s): return is_numeric(s) and not isinstance(s, bool)
    def _isIntegral(self, s): return is_integral(s) and not isinstance(s, bool)
    def _toInt(self, s): return to_int(s, self.line)
    def _toLong(self, s): return to_int(s, self.line)
    def _toLongLong(self, s): return to_int(s, self.line)
    def _toDouble(self, s): return to_float(s, self.line)
    def _toFloat(self, s): return to_float(s, self.line)
    def _toBool(self, s): return truthy(s)
    def _toString(self, s): return display(s)


class StringMethods(MethodProvider):
    def _upper(self, s): return s.upper()
    def _lower(self, s): return s.lower()
    def _strip(self, s): return s.strip()
    def _lstrip(self, s): return s.lstrip()
    def _rstrip(self, s): return s.rstrip()
    def _capitalize(self, s): return s.capitalize()
    def _sentence_case(self, s): return s[:1].upper() + s[1:].lower()
    def _title(self, s): return s.title()
    def _reverse(self, s): return s[::-1]
    def _isdigit(self, s): return s.isdigit()
    def _isalpha(self, s): return s.isalpha()
    def _isalnum(self, s): return s.isalnum()
    def _isspace(self, s): return s.isspace()
    def _empty(self, s): return len(s) == 0
    def _size(self, s): return len(s)

    def _split(self, s, sep=None):
        if sep is None:
            return s.split()
        sep = display(sep)
        if sep == "":
            return list(s)
        return s.split(sep)

    def _find(self, s, sub): return s.find(display(sub))
    def _count(self, s, sub): return s.count(display(sub))
    def _startswith(self, s, prefix): return s.startswith(display(prefix))
    def _endswith(self, s, suffix): return s.endswith(display(suffix))
    def _contains(self, s, sub): return display(sub) in s
    def _has(self, s, sub): return display(sub) in s

    def _join(self, s, items):
        if not isinstance(items, (list, set)):
            raise EvaluationError(f"join expects a list, got {type_name(items)}", self.line)
        seq = items if isinstance(items, list) else ordered(items)
        return s.join(display(x) for x in seq)

    def _zfill(self, s, width): return s.zfill(to_int(width, self.line))
    def _at(self, s, i): return item_at(s, i, self.line)
    def _replace(self, s, old, new): return s.replace(display(old), display(new))

    def _center(self, s, width, fill=" "):
        fill = display(fill)
        if len(fill) != 1:
            raise EvaluationError("center fill must be a single character", self.line)
        return s.center(to_int(width, self.line), fill)

    def _slice(self, s, start, stop, step=1): return slice_of(s, start, stop, step, self.line)


class ListMethods(MethodProvider):
    def _front(self, s):
        if not s:
            raise EvaluationError("front() on empty list", self.line)
        return s[0]

    def _back(self, s):
        if not s:
            raise EvaluationError("back() on empty list", self.line)
        return s[-1]

    def _pop(self, s):
        if not s:
            raise EvaluationError("pop from empty list", self.line)
        return s.pop()

    def _clear(self, s):
        s.clear()
        return None

    def _empty(self, s): return len(s) == 0
    def _size(self, s): return len(s)

    def _sort(self, s):
        s[:] = ordered(s)
        return s

    def _reverse(self, s):
        s.reverse()
        return s

    def _keys(self, s): return list(range(len(s)))

    def _append(self, s, value):
        s.append(value)
        return s

    def _extend(self, s, values):
        if not isinstance(values, (list, set, str)):
            raise EvaluationError(f"extend expects a list, got {type_name(values)}", self.line)
        s.extend(values if isinstance(values, list) else ordered(values) if isinstance(values, set) else list(values))
        return s

    def _remove(self, s, value):
        for i, item in enumerate(s):
            if equals(item, value):
                del s[i]
                return s
        raise EvaluationError(f"list.remove: {Printer().repr(value)} not in list", self.line)

    def _contains(self, s, value): return any(equals(x, value) for x in s)
    def _has(self, s, value): return self._contains(s, value)
    def _count(self, s, value): return sum(1 for x in s if equals(x, value))

    def _index(self, s, value):
        for i, item in enumerate(s):
            if equals(item, value):
                return i
        return -1

    def _at(self, s, i): return item_at(s, i, self.line)
    def _slice(self, s, start, stop, step=1): return slice_of(s, start, stop, step, self.line)

    def _insert(self, s, index, value):
        size = len(s)
        idx = to_int(index, self.line)
        if idx < 0:
            idx += size
        s.insert(min(max(idx, 0), size), value)
        return s


class SetMethods(MethodProvider):
    def _clear(self, s):
        s.clear()
        return None

    def _empty(self, s): return len(s) == 0
    def _size(self, s): return len(s)

    def _add(self, s, value):
        s.add(self.check_hashable(value))
        return s

    def _remove(self, s, value):
        if self.check_hashable(value) not in s:
            raise EvaluationError(f"set.remove: {Printer().repr(value)} not in set", self.line)
        s.remove(value)
        return s

    def _contains(self, s, value): return self.check_hashable(value) in s

    def _has(self, s, value): return self._contains(s, value)

    def _extend(self, s, values):
        if not isinstance(values, (list, set)):
            raise EvaluationError(f"extend expects a list or set, got {type_name(values)}", self.line)
        s.update(self.check_hashable(v) for v in values)
        return s

    def _update(self, s, values): return self._extend(s, values)

    def check_hashable(self, value):
        if isinstance(value, (list, set, dict)):
            raise EvaluationError(f"unhashable type: '{type_name(value)}'", self.line)
        return value


class DictMethods(MethodProvider):
    def _keys(self, s): return list(s.keys())
    def _values(self, s): return list(s.values())
    def _items(self, s): return [[k, v] for k, v in s.items()]

    def _clear(self, s):
        s.clear()
        return None

    def _empty(self, s): return len(s) == 0
    def _size(self, s): return len(s)
    def _contains(self, s, key): return display(key) in s
    def _has(self, s, key): return display(key) in s

    def _update(self, s, other):
        if not isinstance(other, dict):
            raise EvaluationError(f"update expects a dict, got {type_name(other)}", self.line)
        s.update(other)
        return s

    def _get(self, s, key, default=None): return s.get(display(key), default)


class MethodTable:
    """Maps method names to (callable, min_args, max_args)."""

    def __init__(self, provider):
        self.provider = provider
        self.entries: Dict[str, Tuple[Any, int, int]] = {}
        for name, member in inspect.getmembers(provider):
            if name.startswith('_') and not name.startswith('__') and callable(member):
                params = list(inspect.signature(member).parameters.values())[1:]
                required = sum(1 for p in params if p.default is inspect.Parameter.empty)
                self.entries[name[1:]] = (member, required, len(params))

    def __contains__(self, name):
        return name in self.entries

    def accepts(self, name, argc) -> bool:
        _, lo, hi = self.entries[name]
        return lo <= argc <= hi


class MethodDispatch:
    def __init__(self):
        self.universal = MethodTable(UniversalMethods())
        self.by_type = {
            str: MethodTable(StringMethods()),
            list: MethodTable(ListMethods()),
            set: MethodTable(SetMethods()),
            dict: MethodTable(DictMethods()),
        }

    def dtype_table(self, value):
        return self.by_type.get(type(value))

    def dispatch(self, receiver, method: str, args: List[Any], line: int = -1):
        argc = len(args)
        known = False
        for table in (self.dtype_table(receiver), self.universal):
            if table is None or method not in table:
                continue
            known = True
            if table.accepts(method, argc):
                fn = table.entries[method][0]
                table.provider.line = line
                return fn(receiver, *args)
        if known:
            raise MethodNotFoundError(
                f"Method '{method}' on {type_name(receiver)} does not accept {argc} argument(s)", line
            )
        raise MethodNotFoundError(f"Unknown method '{method}' on type '{type_name(receiver)}'", line)


_dispatcher = None


def dispatch(receiver, method: str, args: List[Any], line: int = -1):
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = MethodDispatch()
    return _dispatcher.dispatch(receiver, method, args, line)


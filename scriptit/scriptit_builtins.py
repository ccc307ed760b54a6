"""
Free-function builtins and the file handle registry.
"""
import inspect
import itertools
import math
from typing import Any, Dict, List, Optional

from scriptit.scriptit_datatypes import EvaluationError
from scriptit.scriptit_printer import Printer
from scriptit.scriptit_values import (
    add, display, is_numeric, iterate, length, ordered, to_float, to_int, truthy, type_name
)


class _NotFound:
    def __repr__(self):
        return "NOT_FOUND"


NOT_FOUND = _NotFound()


# ===================================================================
# Resource handles
# ===================================================================

class FileHandle:
    """An open file as seen from scripts."""
    type_name = "file"

    def __init__(self, fid: int, name: str, mode: str, stream):
        self.fid = fid
        self.name = name
        self.mode = mode
        self.stream = stream

    @property
    def closed(self) -> bool:
        return self.stream is None

    def __deepcopy__(self, memo):
        return self

    def __str__(self):
        state = "closed" if self.closed else "open"
        return f"<{state} file '{self.name}' mode '{self.mode}'>"

    __repr__ = __str__


class FileRegistry:
    """Owns every file a runner has opened.

    `release` is idempotent, so a `let ... be open(...)` block can always
    release its handle on exit even when the body already closed it.
    """

    VALID_MODES = ("r", "w", "a", "r+", "w+", "a+")

    def __init__(self):
        self.handles: Dict[int, FileHandle] = {}
        self._ids = itertools.count(1)

    def open(self, path: str, mode: str = "r", line: int = -1) -> FileHandle:
        if mode not in self.VALID_MODES:
            raise EvaluationError(f"Invalid file mode '{mode}'", line)
        try:
            stream = open(path, mode, encoding="utf-8")
        except OSError as e:
            raise EvaluationError(f"Cannot open file: {path} ({e.strerror})", line)
        handle = FileHandle(next(self._ids), path, mode, stream)
        self.handles[handle.fid] = handle
        return handle

    def acquire(self, value: Any) -> Any:
        """Resource protocol used by `let`: any value may be bound; files get released."""
        return value

    def release(self, handle: Any):
        if not isinstance(handle, FileHandle) or handle.closed:
            return
        try:
            handle.stream.close()
        finally:
            handle.stream = None
            self.handles.pop(handle.fid, None)

    def close_all(self):
        for handle in list(self.handles.values()):
            self.release(handle)


# ===================================================================
# The Standard Library
# ===================================================================

def _round_half_away(x: float) -> int:
    return int(math.copysign(math.floor(abs(x) + 0.5), x))


class StdLib:
    """Contains Python implementations for all ScriptIt builtins.

    Every method named `_name` is callable from scripts as `name(...)`.
    Argument counts are checked against the method signature.
    """

    def __init__(self, evaluator, files: Optional[FileRegistry] = None, input_fn=input):
        self.evaluator = evaluator
        self.files = files if files is not None else FileRegistry()
        self.input_fn = input_fn
        self.printer = Printer()
        self.line = -1
        self.functions = {}
        for name, member in inspect.getmembers(self):
            if name.startswith('_') and not name.startswith('__') and callable(member):
                self.functions[name[1:]] = (member, inspect.signature(member))

    def __contains__(self, name: str) -> bool:
        return name in self.functions

    def call_builtin(self, name: str, args: List[Any], line: int = -1):
        entry = self.functions.get(name)
        if entry is None:
            return NOT_FOUND
        member, sig = entry
        try:
            sig.bind(*args)
        except TypeError:
            raise EvaluationError(f"{name}() does not accept {len(args)} argument(s)", line)
        self.line = line
        return member(*args)

    def fail(self, message: str):
        raise EvaluationError(message, self.line)

    def apply_math(self, fn, x, name=None):
        if not is_numeric(x):
            self.fail(f"{name or fn.__name__}() expects a number, got {type_name(x)}")
        try:
            return fn(x)
        except (ValueError, ZeroDivisionError, OverflowError) as e:
            self.fail(f"{name or fn.__name__}({display(x)}): {e}")

    # --- I/O ---
    def _print(self, *args):
        self.evaluator.emit('stdout', " ".join(display(a) for a in args))
        return None

    def _pprint(self, value):
        self.evaluator.emit('stdout', self.printer.pretty(value))
        return None

    def _input(self, prompt=""):
        try:
            return self.input_fn(display(prompt))
        except EOFError:
            return ""

    def _open(self, path, mode="r"):
        if not isinstance(path, str):
            self.fail("open() expects a string filename")
        return self.files.open(path, display(mode), self.line)

    def _close(self, handle):
        if not isinstance(handle, FileHandle):
            self.fail(f"close() expects a file, got {type_name(handle)}")
        self.files.release(handle)
        return None

    def live(self, handle: FileHandle) -> FileHandle:
        if handle.closed:
            self.fail(f"I/O operation on closed file '{handle.name}'")
        return handle

    def _read(self, source):
        if isinstance(source, FileHandle):
            return self.live(source).stream.read()
        if not isinstance(source, str):
            self.fail("read() expects a string filename")
        try:
            with open(source, encoding="utf-8") as f:
                return f.read()
        except OSError:
            self.fail(f"Cannot open file: {source}")

    def _readLine(self, source):
        if isinstance(source, FileHandle):
            text = self.live(source).stream.readline()
            return text.rstrip("\n") if text else None
        if not isinstance(source, str):
            self.fail("readLine() expects a string filename")
        try:
            with open(source, encoding="utf-8") as f:
                return f.read().splitlines()
        except OSError:
            self.fail(f"Cannot open file: {source}")

    def _write(self, target, data, mode="w"):
        text = display(data)
        if isinstance(target, FileHandle):
            self.live(target).stream.write(text)
            return None
        if not isinstance(target, str):
            self.fail("write() expects a string filename")
        mode = "a" if display(mode) == "a" else "w"
        try:
            with open(target, mode, encoding="utf-8") as f:
                f.write(text)
        except OSError:
            self.fail(f"Cannot open file for writing: {target}")
        return None

    # --- Type / Conversion ---
    def _len(self, value): return length(value, self.line)
    def _type(self, value): return type_name(value)
    def _str(self, value): return display(value)
    def _repr(self, value): return self.printer.repr(value)
    def _int(self, value): return to_int(value, self.line)
    def _long(self, value): return to_int(value, self.line)
    def _long_long(self, value): return to_int(value, self.line)
    def _uint(self, value): return self.unsigned(value)
    def _ulong(self, value): return self.unsigned(value)
    def _ulong_long(self, value): return self.unsigned(value)
    def _float(self, value): return to_float(value, self.line)
    def _double(self, value): return to_float(value, self.line)
    def _long_double(self, value): return to_float(value, self.line)
    def _bool(self, value): return truthy(value)

    def unsigned(self, value):
        n = to_int(value, self.line)
        if n < 0:
            self.fail(f"Cannot convert negative value {n} to an unsigned type")
        return n

    def _isinstance(self, value, name):
        wanted = display(name)
        if wanted == "float":
            wanted = "double"
        return type_name(value) == wanted

    # --- Containers ---
    def _list(self, value=None):
        if value is None:
            return []
        return iterate(value, self.line)

    def _set(self, value=None):
        if value is None:
            return set()
        items = iterate(value, self.line)
        for item in items:
            if isinstance(item, (list, set, dict)):
                self.fail(f"unhashable type: '{type_name(item)}'")
        return set(items)

    def _dict(self, value=None):
        if value is None:
            return {}
        if isinstance(value, dict):
            return dict(value)
        if isinstance(value, list):
            out = {}
            for pair in value:
                if not (isinstance(pair, list) and len(pair) == 2):
                    self.fail("dict() expects a list of [key, value] pairs")
                out[display(pair[0])] = pair[1]
            return out
        self.fail(f"dict() cannot convert {type_name(value)}")

    def _range_list(self, start, end):
        sv, ev = to_int(start, self.line), to_int(end, self.line)
        step = 1 if sv <= ev else -1
        return list(range(sv, ev + step, step))

    def _append(self, seq, item):
        if not isinstance(seq, list):
            self.fail("append() requires a list as first argument")
        return seq + [item]

    def _pop(self, seq):
        if not isinstance(seq, list):
            self.fail("pop() requires a list")
        if not seq:
            self.fail("pop from empty list")
        return seq[-1]

    # --- Functional / Iteration ---
    def _sum(self, seq, start=0):
        if not isinstance(seq, (list, set)):
            self.fail("sum() requires a list")
        total = start
        for item in (seq if isinstance(seq, list) else ordered(seq)):
            total = add(total, item, self.line)
        return total

    def _sorted(self, seq, reverse=False):
        if not isinstance(seq, (list, set, str)):
            self.fail("sorted() requires a list")
        items = ordered(iterate(seq, self.line))
        if truthy(reverse):
            items.reverse()
        return items

    def _reversed(self, seq):
        if isinstance(seq, str):
            return seq[::-1]
        if not isinstance(seq, list):
            self.fail("reversed() requires a list or string")
        return seq[::-1]

    def _all(self, seq): return all(truthy(x) for x in iterate(seq, self.line))
    def _any(self, seq): return any(truthy(x) for x in iterate(seq, self.line))

    def _enumerate(self, seq):
        return [[i, item] for i, item in enumerate(iterate(seq, self.line))]

    def _zip(self, first, second):
        if not (isinstance(first, list) and isinstance(second, list)):
            self.fail("zip() requires two lists")
        return [[a, b] for a, b in zip(first, second)]

    # --- Math ---
    def _sin(self, x): return self.apply_math(math.sin, x)
    def _cos(self, x): return self.apply_math(math.cos, x)
    def _tan(self, x): return self.apply_math(math.tan, x)
    def _asin(self, x): return self.apply_math(math.asin, x)
    def _acos(self, x): return self.apply_math(math.acos, x)
    def _atan(self, x): return self.apply_math(math.atan, x)
    def _cot(self, x): return 1 / self.nonzero(self.apply_math(math.tan, x), "cot")
    def _sec(self, x): return 1 / self.nonzero(self.apply_math(math.cos, x), "sec")
    def _csc(self, x): return 1 / self.nonzero(self.apply_math(math.sin, x), "csc")
    def _log(self, x): return self.apply_math(math.log, x)
    def _log2(self, x): return self.apply_math(math.log2, x)
    def _log10(self, x): return self.apply_math(math.log10, x)
    def _sqrt(self, x): return self.apply_math(math.sqrt, x)
    def _ceil(self, x): return self.apply_math(math.ceil, x)
    def _floor(self, x): return self.apply_math(math.floor, x)
    def _round(self, x): return self.apply_math(_round_half_away, x, "round")

    def _abs(self, x):
        if not is_numeric(x):
            self.fail(f"abs() expects a number, got {type_name(x)}")
        return abs(x)

    def nonzero(self, x, name):
        if x == 0:
            self.fail(f"{name}() undefined: division by zero")
        return x

    def _min(self, *args): return self.extreme(min, "min", args)
    def _max(self, *args): return self.extreme(max, "max", args)

    def extreme(self, fn, name, args):
        if not args:
            self.fail(f"{name}() expects at least 1 argument")
        values = iterate(args[0], self.line) if len(args) == 1 else list(args)
        if not values:
            self.fail(f"{name}() arg is an empty sequence")
        if not all(is_numeric(v) for v in values) and not all(isinstance(v, str) for v in values):
            self.fail(f"{name}() expects numbers")
        return fn(values)

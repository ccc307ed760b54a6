"""
Formats ScriptIt values for display.
"""
import collections.abc


def format_float(value: float) -> str:
    if value != value:
        return "nan"
    if value in (float("inf"), float("-inf")):
        return "inf" if value > 0 else "-inf"
    return "%g" % value


class Printer:
    """Turns values into the text `print`, `str` and `repr` produce.

    `pformat` gives the display form (a top-level string prints bare),
    `repr` quotes strings, and `pretty` spreads nested containers over
    indented lines.
    """

    def __init__(self, indent_width=2):
        self._indent_char = " " * indent_width
        self._handlers = self._create_handlers()

    def pformat(self, obj, level=0):
        """Public entry point to format an object for display."""
        if isinstance(obj, str):
            return obj
        return self.repr(obj, level)

    def repr(self, obj, level=0):
        handler = self._get_handler(obj)
        return handler(obj, level)

    def pretty(self, obj, level=0):
        if isinstance(obj, str):
            return obj
        match obj:
            case list() if obj:
                return self._pformat_block([self.repr(x) for x in obj], level, "[", "]")
            case dict() if obj:
                items = [f"{self._pformat_str(k, level)}: {self.pretty(v, level + 1)}" for k, v in obj.items()]
                return self._pformat_block(items, level, "{", "}")
        return self.repr(obj, level)

    def _get_handler(self, obj):
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        if isinstance(obj, collections.abc.Mapping):
            return self._pformat_dict
        if isinstance(obj, collections.abc.Set):
            return self._pformat_set
        if isinstance(obj, list):
            return self._pformat_list
        return lambda o, l: str(o)

    def _create_handlers(self):
        return {
            str: self._pformat_str,
            int: self._pformat_primitive,
            float: self._pformat_float,
            bool: self._pformat_bool,
            type(None): self._pformat_none,
            list: self._pformat_list,
            set: self._pformat_set,
            dict: self._pformat_dict,
        }

    def _pformat_primitive(self, obj, level):
        return str(obj)

    def _pformat_float(self, obj, level):
        return format_float(obj)

    def _pformat_str(self, obj, level):
        escaped = obj.replace("\\", "\\\\").replace("'", "\\'").replace("\n", "\\n").replace("\t", "\\t")
        return f"'{escaped}'"

    def _pformat_bool(self, obj, level):
        return 'True' if obj else 'False'

    def _pformat_none(self, obj, level):
        return 'None'

    def _pformat_list(self, obj, level):
        return "[" + ", ".join(self.repr(x, level) for x in obj) + "]"

    def _pformat_set(self, obj, level):
        from scriptit.scriptit_values import ordered
        if not obj:
            return "set()"
        return "{" + ", ".join(self.repr(x, level) for x in ordered(obj)) + "}"

    def _pformat_dict(self, obj, level):
        pairs = (f"{self.repr(k, level)}: {self.repr(v, level)}" for k, v in obj.items())
        return "{" + ", ".join(pairs) + "}"

    def _pformat_block(self, lines, level, open_char, close_char):
        outer_indent = self._indent_char * level
        inner_indent = self._indent_char * (level + 1)
        body = ",\n".join(inner_indent + line for line in lines)
        return f"{open_char}\n{body}\n{outer_indent}{close_char}"

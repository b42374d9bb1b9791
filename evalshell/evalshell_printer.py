"""
A pretty-printer for return values and reported exceptions.
"""
import collections.abc
import traceback

from evalshell.evalshell_errors import BreakSignal, DomainFailure


class Printer:
    """Formats Python values into readable, mostly valid Python source."""

    def __init__(self, indent_width=2, width=80):
        self._indent_char = " " * indent_width
        self.width = width
        self._handlers = self._create_handlers()

    def pformat(self, obj, level=0):
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj, level)

    def _get_handler(self, obj):
        """Dispatcher to find the correct formatting method."""
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        # Subclasses with their own __repr__ know best how to show themselves
        if isinstance(obj, collections.abc.Mapping) and obj_type.__repr__ is dict.__repr__:
            return self._pformat_dict
        if isinstance(obj, BaseException):
            return self._pformat_exception
        return lambda o, l: repr(o)

    def _create_handlers(self):
        return {
            dict: self._pformat_dict,
            list: self._pformat_list,
            tuple: self._pformat_tuple,
            set: self._pformat_set,
            frozenset: self._pformat_set,
        }

    def _pformat_exception(self, obj, level):
        return f"<{type(obj).__name__}: {obj}>"

    def _pformat_items(self, parts, level, open_char, close_char):
        if not parts:
            return f"{open_char}{close_char}"
        flat = f"{open_char}{', '.join(parts)}{close_char}"
        if '\n' not in flat and len(flat) + len(self._indent_char) * level <= self.width:
            return flat
        # Too wide: one item per line, indented one level deeper than the brackets.
        outer_indent = self._indent_char * level
        inner_indent = self._indent_char * (level + 1)
        lines = [f"{inner_indent}{p}," for p in parts]
        return f"{open_char}\n" + "\n".join(lines) + f"\n{outer_indent}{close_char}"

    def _pformat_dict(self, obj, level):
        parts = [f"{self.pformat(k, level + 1)}: {self.pformat(v, level + 1)}" for k, v in obj.items()]
        return self._pformat_items(parts, level, "{", "}")

    def _pformat_list(self, obj, level):
        return self._pformat_items([self.pformat(x, level + 1) for x in obj], level, "[", "]")

    def _pformat_tuple(self, obj, level):
        if len(obj) == 1:
            return f"({self.pformat(obj[0], level + 1)},)"
        return self._pformat_items([self.pformat(x, level + 1) for x in obj], level, "(", ")")

    def _pformat_set(self, obj, level):
        if not obj:
            return f"{type(obj).__name__}()"
        try:
            items = sorted(obj)
        except TypeError:
            items = list(obj)
        body = self._pformat_items([self.pformat(x, level + 1) for x in items], level, "{", "}")
        return body if type(obj) is set else f"frozenset({body})"

    def format_return_value(self, value):
        return f"=> {self.pformat(value)}"

    def format_exception(self, e, verbose=False):
        """Render a reported exception for the error stream."""
        if isinstance(e, BreakSignal):
            return str(e)
        if isinstance(e, DomainFailure):
            msg = f"{e.kind}: {e}"
            filename = getattr(e, 'filename', None)
            lineno = getattr(e, 'lineno', None)
            if filename and lineno is not None:
                msg = f"{msg} (in {filename} on line {lineno})"
            original = e.original
        else:
            msg = f"{type(e).__name__}: {e}"
            original = e
        if verbose and original is not None and original.__traceback__ is not None:
            tb = "".join(traceback.format_exception(type(original), original, original.__traceback__))
            msg = f"{msg}\n{tb.rstrip()}"
        return msg

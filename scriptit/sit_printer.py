"""
A pretty-printer for ScriptIt values.
"""
import math

from scriptit.sit_datatypes import SitFunction
from scriptit.sit_operators import ordered_members


class Printer:
    """Formats ScriptIt values into their display and repr forms.

    The display form (`pformat`) is what `print` and `str` produce: strings
    appear raw at the top level. The repr form (`prepr`) quotes strings.
    Container elements always use the repr form.
    """

    def __init__(self, indent_width=2, width=72):
        self._indent_char = " " * indent_width
        self.width = width
        self._handlers = self._create_handlers()

    def pformat(self, obj, level=0):
        """Public entry point for the display form."""
        if isinstance(obj, str):
            return obj
        return self.prepr(obj, level)

    def prepr(self, obj, level=0):
        """Public entry point for the repr form."""
        handler = self._get_handler(obj)
        return handler(obj, level)

    def pretty(self, obj):
        """Repr form that breaks long containers one element per line."""
        flat = self.prepr(obj)
        if len(flat) <= self.width or not isinstance(obj, (tuple, frozenset)):
            return flat
        return self._pretty_block(obj, 0)

    def _get_handler(self, obj):
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        return lambda o, l: repr(o)

    def _create_handlers(self):
        return {
            str: self._pformat_str,
            int: self._pformat_primitive,
            float: self._pformat_float,
            bool: self._pformat_primitive,
            type(None): self._pformat_none,
            tuple: self._pformat_list,
            frozenset: self._pformat_set,
            SitFunction: self._pformat_function,
        }

    def _pformat_primitive(self, obj, level):
        return str(obj)

    def _pformat_none(self, obj, level):
        return "None"

    def _pformat_float(self, obj, level):
        if math.isnan(obj):
            return "nan"
        if math.isinf(obj):
            return "inf" if obj > 0 else "-inf"
        return format(obj, '.15g')

    def _pformat_str(self, obj, level):
        return repr(obj)

    def _members(self, obj):
        return ordered_members(obj) if isinstance(obj, frozenset) else obj

    def _pformat_list(self, obj, level):
        return "[" + ", ".join(self.prepr(item, level + 1) for item in obj) + "]"

    def _pformat_set(self, obj, level):
        return "{" + ", ".join(self.prepr(item, level + 1) for item in self._members(obj)) + "}"

    def _pformat_function(self, obj, level):
        return f"<fn {obj.name}({', '.join(obj.params)})>"

    def _pretty_block(self, obj, level):
        open_, close = ("[", "]") if isinstance(obj, tuple) else ("{", "}")
        if not obj:
            return open_ + close
        inner_indent = self._indent_char * (level + 1)
        lines = []
        for item in self._members(obj):
            text = self.prepr(item)
            if isinstance(item, (tuple, frozenset)) and len(inner_indent) + len(text) > self.width:
                text = self._pretty_block(item, level + 1)
            lines.append(f"{inner_indent}{text}")
        return open_ + "\n" + ",\n".join(lines) + "\n" + self._indent_char * level + close

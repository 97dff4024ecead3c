"""
Kind-dependent methods: `"hi".upper()`, `items.count(2)`, `upper() of name`.

Each kind has a table of methods, built from the `_`-prefixed members of a
methods class the same way `StdLib` builds the built-in table. A call looks
in the receiver's own table first, then in the universal table. Values are
immutable, so methods that change their receiver return a `Mutation`: the
evaluator rebinds the receiver variable to `Mutation.receiver` and the call
evaluates to `Mutation.value`.
"""
import inspect
from typing import Any, Callable, Dict, Optional

from scriptit.sit_datatypes import ArityError, SitTypeError
from scriptit.sit_operators import (
    kind_of, is_number, equals, iter_items, ordered_members, to_int, to_float, truthy,
)


class Mutation:
    """The result of a method that changes its receiver."""
    __slots__ = ("value", "receiver")

    def __init__(self, value: Any, receiver: Any):
        self.value = value
        self.receiver = receiver

    def __repr__(self) -> str:
        return f"Mutation({self.value!r}, receiver={self.receiver!r})"


def _require_str(method: str, value) -> str:
    if not isinstance(value, str):
        raise SitTypeError(f"{method}() expects a string argument, got {kind_of(value)}")
    return value


def _require_int(method: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise SitTypeError(f"{method}() expects an int argument, got {kind_of(value)}")
    return value


def _at(seq, index):
    i = _require_int("at", index)
    if not -len(seq) <= i < len(seq):
        raise SitTypeError(f"Index {i} out of range for {kind_of(seq)} of length {len(seq)}")
    return seq[i]


def _slice(seq, start, stop, step):
    bounds = [None if b is None else _require_int("slice", b) for b in (start, stop, step)]
    if bounds[2] == 0:
        raise SitTypeError("slice() step cannot be zero")
    return seq[bounds[0]:bounds[1]:bounds[2]]


def _contains(items, value) -> bool:
    return any(equals(item, value) for item in items)


def _first_index(items, value) -> int:
    for i, item in enumerate(items):
        if equals(item, value):
            return i
    return -1


def _sorted(values):
    try:
        return tuple(sorted(values))
    except TypeError:
        raise SitTypeError("sort() cannot compare values of different kinds")


class _MethodSet:
    """Base for the per-kind method classes; `table()` lists the methods by name."""

    def table(self) -> Dict[str, Callable]:
        out = {}
        for name, member in inspect.getmembers(self):
            if name.startswith('_') and not name.startswith('__') and callable(member):
                out[name[1:]] = member
        return out


class UniversalMethods(_MethodSet):
    def _type(self, s): return kind_of(s)
    def _str(self, s): return _printer().pformat(s)
    def _repr(self, s): return _printer().prepr(s)

    def _len(self, s):
        if isinstance(s, (str, tuple, frozenset)):
            return len(s)
        raise SitTypeError(f"len() is not defined for {kind_of(s)}")

    def _is_none(self, s): return s is None
    def _is_bool(self, s): return kind_of(s) == 'bool'
    def _is_int(self, s): return kind_of(s) == 'int'
    def _is_float(self, s): return kind_of(s) == 'float'
    def _is_string(self, s): return kind_of(s) == 'string'
    def _is_list(self, s): return kind_of(s) == 'list'
    def _is_set(self, s): return kind_of(s) == 'set'
    def _is_function(self, s): return kind_of(s) == 'function'
    def _is_numeric(self, s): return is_number(s)

    def _toInt(self, s): return to_int(s)
    def _toFloat(self, s): return to_float(s)
    def _toDouble(self, s): return to_float(s)
    def _toString(self, s): return _printer().pformat(s)
    def _toBool(self, s): return truthy(s)


class StringMethods(_MethodSet):
    def _upper(self, s): return s.upper()
    def _lower(self, s): return s.lower()
    def _strip(self, s): return s.strip()
    def _lstrip(self, s): return s.lstrip()
    def _rstrip(self, s): return s.rstrip()
    def _capitalize(self, s): return s.capitalize()
    def _title(self, s): return s.title()
    def _reverse(self, s): return s[::-1]
    def _isdigit(self, s): return s.isdigit()
    def _isalpha(self, s): return s.isalpha()
    def _isalnum(self, s): return s.isalnum()
    def _isspace(self, s): return s.isspace()
    def _empty(self, s): return s == ""
    def _size(self, s): return len(s)

    def _split(self, s, sep=None):
        if sep is None:
            return tuple(s.split())
        if _require_str("split", sep) == "":
            raise SitTypeError("split() separator cannot be empty")
        return tuple(s.split(sep))

    def _find(self, s, sub): return s.find(_require_str("find", sub))
    def _count(self, s, sub): return s.count(_require_str("count", sub))
    def _startswith(self, s, prefix): return s.startswith(_require_str("startswith", prefix))
    def _endswith(self, s, suffix): return s.endswith(_require_str("endswith", suffix))
    def _contains(self, s, sub): return _require_str("contains", sub) in s
    def _has(self, s, sub): return _require_str("has", sub) in s

    def _join(self, s, items):
        return s.join(_printer().pformat(item) for item in iter_items(items))

    def _zfill(self, s, width): return s.zfill(_require_int("zfill", width))
    def _at(self, s, index): return _at(s, index)

    def _replace(self, s, old, new):
        return s.replace(_require_str("replace", old), _require_str("replace", new))

    def _center(self, s, width, fill=" "):
        if len(_require_str("center", fill)) != 1:
            raise SitTypeError("center() fill must be a single character")
        return s.center(_require_int("center", width), fill)

    def _slice(self, s, start, stop, step=None): return _slice(s, start, stop, step)


class ListMethods(_MethodSet):
    def _front(self, values): return _at(values, 0)
    def _back(self, values): return _at(values, -1)
    def _empty(self, values): return len(values) == 0
    def _size(self, values): return len(values)
    def _sort(self, values): return _sorted(values)
    def _reverse(self, values): return values[::-1]
    def _keys(self, values): return tuple(range(len(values)))
    def _contains(self, values, item): return _contains(values, item)
    def _has(self, values, item): return _contains(values, item)
    def _count(self, values, item): return sum(1 for v in values if equals(v, item))
    def _index(self, values, item): return _first_index(values, item)
    def _at(self, values, index): return _at(values, index)
    def _slice(self, values, start, stop, step=None): return _slice(values, start, stop, step)

    def _pop(self, values):
        if not values:
            raise SitTypeError("pop() from an empty list")
        return Mutation(values[-1], values[:-1])

    def _clear(self, values):
        return Mutation(None, ())

    def _append(self, values, item):
        updated = values + (item,)
        return Mutation(updated, updated)

    def _extend(self, values, items):
        updated = values + iter_items(items)
        return Mutation(updated, updated)

    def _remove(self, values, item):
        i = _first_index(values, item)
        if i < 0:
            raise SitTypeError(f"remove(): {_printer().prepr(item)} is not in the list")
        updated = values[:i] + values[i + 1:]
        return Mutation(updated, updated)

    def _insert(self, values, index, item):
        i = _require_int("insert", index)
        if i < 0:
            i += len(values)
        i = min(max(i, 0), len(values))
        updated = values[:i] + (item,) + values[i:]
        return Mutation(updated, updated)


class SetMethods(_MethodSet):
    def _empty(self, members): return len(members) == 0
    def _size(self, members): return len(members)
    def _contains(self, members, item): return _contains(members, item)
    def _has(self, members, item): return _contains(members, item)
    def _sort(self, members): return tuple(ordered_members(members))

    def _clear(self, members):
        return Mutation(None, frozenset())

    def _add(self, members, item):
        updated = members | {item}
        return Mutation(updated, updated)

    def _remove(self, members, item):
        if not _contains(members, item):
            raise SitTypeError(f"remove(): {_printer().prepr(item)} is not in the set")
        updated = frozenset(m for m in members if not equals(m, item))
        return Mutation(updated, updated)

    def _extend(self, members, items):
        updated = members | frozenset(iter_items(items))
        return Mutation(updated, updated)

    def _update(self, members, items):
        return self._extend(members, items)


def _printer():
    from scriptit.sit_printer import Printer  # lazy import to avoid cycles
    return Printer()


class MethodDispatcher:
    """Resolves `receiver.name(args)` against the receiver's kind."""

    def __init__(self):
        self.universal = UniversalMethods().table()
        self.by_kind = {
            'string': StringMethods().table(),
            'list': ListMethods().table(),
            'set': SetMethods().table(),
        }
        self._signatures: Dict[Callable, inspect.Signature] = {}

    def lookup(self, receiver: Any, name: str) -> Optional[Callable]:
        method = self.by_kind.get(kind_of(receiver), {}).get(name)
        return method or self.universal.get(name)

    def call(self, receiver: Any, name: str, args) -> Any:
        """Calls a method; the result is a `Mutation` when the receiver changes."""
        method = self.lookup(receiver, name)
        if method is None:
            raise SitTypeError(f"Unknown method '{name}' on type '{kind_of(receiver)}'")
        sig = self._signatures.get(method)
        if sig is None:
            sig = self._signatures[method] = inspect.signature(method)
        try:
            sig.bind(receiver, *args)
        except TypeError:
            raise ArityError(
                f"Method '{name}' on {kind_of(receiver)} does not accept {len(args)} argument(s)")
        return method(receiver, *args)

    def call_pure(self, receiver: Any, name: str, args) -> Any:
        """Calls a method for its value only, leaving any variable untouched."""
        result = self.call(receiver, name, args)
        return result.value if isinstance(result, Mutation) else result

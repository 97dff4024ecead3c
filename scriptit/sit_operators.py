"""
Runtime kinds and operator semantics for ScriptIt values.

Every value a program can hold maps onto one Python representation
(lists are tuples, sets are frozensets). The functions here dispatch on
those kinds and raise `SitTypeError` for unsupported combinations.
"""
import math
from typing import Any, Callable, Dict, Tuple

from scriptit.sit_datatypes import SitFunction, SitTypeError, DivisionByZeroError


def kind_of(value: Any) -> str:
    """Returns the ScriptIt kind name reported by `type()`."""
    if value is None:
        return 'none'
    if isinstance(value, bool):
        return 'bool'
    if isinstance(value, int):
        return 'int'
    if isinstance(value, float):
        return 'float'
    if isinstance(value, str):
        return 'string'
    if isinstance(value, tuple):
        return 'list'
    if isinstance(value, frozenset):
        return 'set'
    if isinstance(value, SitFunction):
        return 'function'
    raise SitTypeError(f"Unsupported host value of type {type(value).__name__}")


def is_number(value: Any) -> bool:
    # Bool is part of the numeric domain.
    return isinstance(value, (int, float))


def truthy(value: Any) -> bool:
    if isinstance(value, SitFunction):
        return True
    return bool(value)


def ordered_members(members) -> list:
    """Orders set members for iteration and display."""
    try:
        return sorted(members)
    except TypeError:
        from scriptit.sit_printer import Printer  # lazy import to avoid cycles
        printer = Printer()
        return sorted(members, key=lambda v: (kind_of(v), printer.prepr(v)))


def iter_items(value: Any) -> Tuple[Any, ...]:
    """Returns the elements a `for ... in` loop visits, in container order."""
    if isinstance(value, str):
        return tuple(value)
    if isinstance(value, tuple):
        return value
    if isinstance(value, frozenset):
        return tuple(ordered_members(value))
    raise SitTypeError(f"Cannot iterate over {kind_of(value)}")


def _unsupported(op: str, a: Any, b: Any) -> SitTypeError:
    return SitTypeError(f"Unsupported operand kinds for '{op}': {kind_of(a)} and {kind_of(b)}")


def _stringify(value: Any) -> str:
    from scriptit.sit_printer import Printer  # lazy import to avoid cycles
    return Printer().pformat(value)


def _checked(op: str, fn: Callable, a: Any, b: Any) -> Any:
    try:
        return fn(a, b)
    except OverflowError:
        raise SitTypeError(f"Numeric result out of range for '{op}'")


def _repeat(op: str, seq: Any, count: Any) -> Any:
    if not isinstance(count, int):
        raise _unsupported(op, seq, count)
    if count < 0:
        raise SitTypeError(f"Cannot repeat {kind_of(seq)} a negative number of times")
    return seq * count


# --- Arithmetic ---

def add(a: Any, b: Any) -> Any:
    if is_number(a) and is_number(b):
        return _checked('+', lambda x, y: x + y, a, b)
    if isinstance(a, str) and isinstance(b, str):
        return a + b
    if isinstance(a, str) and is_number(b):
        return a + _stringify(b)
    if is_number(a) and isinstance(b, str):
        return _stringify(a) + b
    if isinstance(a, tuple) and isinstance(b, tuple):
        return a + b
    raise _unsupported('+', a, b)


def sub(a: Any, b: Any) -> Any:
    if is_number(a) and is_number(b):
        return _checked('-', lambda x, y: x - y, a, b)
    raise _unsupported('-', a, b)


def mul(a: Any, b: Any) -> Any:
    if is_number(a) and is_number(b):
        return _checked('*', lambda x, y: x * y, a, b)
    if isinstance(a, (str, tuple)):
        return _repeat('*', a, b)
    if isinstance(b, (str, tuple)):
        return _repeat('*', b, a)
    raise _unsupported('*', a, b)


def div(a: Any, b: Any) -> Any:
    if not (is_number(a) and is_number(b)):
        raise _unsupported('/', a, b)
    if b == 0:
        raise DivisionByZeroError("Division by zero")
    if isinstance(a, int) and isinstance(b, int):
        q, r = divmod(a, b)
        if r == 0:
            return q
    return _checked('/', lambda x, y: x / y, a, b)


def mod(a: Any, b: Any) -> Any:
    if not (is_number(a) and is_number(b)):
        raise _unsupported('%', a, b)
    if b == 0:
        raise DivisionByZeroError("Modulo by zero")
    if isinstance(a, int) and isinstance(b, int):
        r = abs(a) % abs(b)
        return -r if a < 0 else r
    return _checked('%', math.fmod, a, b)


def power(a: Any, b: Any) -> Any:
    if not (is_number(a) and is_number(b)):
        raise _unsupported('^', a, b)
    if a == 0 and b < 0:
        raise DivisionByZeroError("Division by zero")
    if isinstance(a, int) and isinstance(b, int) and b >= 0:
        return a ** b
    try:
        return math.pow(a, b)
    except ValueError:
        # Negative base with a fractional exponent.
        return math.nan
    except OverflowError:
        raise SitTypeError("Numeric result out of range for '^'")


def negate(a: Any) -> Any:
    if is_number(a):
        return -a
    raise SitTypeError(f"Unsupported operand kind for unary '-': {kind_of(a)}")


def logical_not(a: Any) -> bool:
    return not truthy(a)


# --- Comparison ---

def equals(a: Any, b: Any) -> bool:
    if is_number(a) and is_number(b):
        return a == b
    if kind_of(a) != kind_of(b):
        return False
    return a == b


def not_equals(a: Any, b: Any) -> bool:
    return not equals(a, b)


def points(a: Any, b: Any) -> bool:
    """Equality that also requires both sides to be the same kind."""
    return kind_of(a) == kind_of(b) and equals(a, b)


def _ordering(op: str, fn: Callable) -> Callable:
    def compare(a: Any, b: Any) -> bool:
        comparable = (
            (is_number(a) and is_number(b))
            or (isinstance(a, str) and isinstance(b, str))
            or (isinstance(a, tuple) and isinstance(b, tuple))
        )
        if not comparable:
            raise _unsupported(op, a, b)
        try:
            return bool(fn(a, b))
        except TypeError:
            raise _unsupported(op, a, b)
    return compare


less = _ordering('<', lambda a, b: a < b)
less_equal = _ordering('<=', lambda a, b: a <= b)
greater = _ordering('>', lambda a, b: a > b)
greater_equal = _ordering('>=', lambda a, b: a >= b)


BINARY_OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
    '+': add,
    '-': sub,
    '*': mul,
    '/': div,
    '%': mod,
    '^': power,
    '==': equals,
    '!=': not_equals,
    '<': less,
    '<=': less_equal,
    '>': greater,
    '>=': greater_equal,
    'is': equals,
    'is not': not_equals,
    'points': points,
    'not points': lambda a, b: not points(a, b),
}

# Compound assignment operator -> arithmetic operator.
COMPOUND_OPERATORS = {'+=': '+', '-=': '-', '*=': '*', '/=': '/', '%=': '%'}


# --- Conversions ---

def to_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise SitTypeError(f"Cannot convert {_stringify(value)} to int")
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return to_int(float(text))
        except ValueError:
            raise SitTypeError(f"Cannot convert '{value}' to int")
    raise SitTypeError(f"Cannot convert {kind_of(value)} to int")


def to_float(value: Any) -> float:
    if isinstance(value, (int, float)):
        try:
            return float(value)
        except OverflowError:
            raise SitTypeError("Int too large to convert to float")
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            raise SitTypeError(f"Cannot convert '{value}' to float")
    raise SitTypeError(f"Cannot convert {kind_of(value)} to float")


def to_list(value: Any) -> tuple:
    if isinstance(value, (str, tuple, frozenset)):
        return iter_items(value)
    raise SitTypeError(f"Cannot convert {kind_of(value)} to list")


def to_set(value: Any) -> frozenset:
    if isinstance(value, (str, tuple, frozenset)):
        return frozenset(iter_items(value))
    raise SitTypeError(f"Cannot convert {kind_of(value)} to set")

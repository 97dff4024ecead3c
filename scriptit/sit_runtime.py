"""
The ScriptIt standard library and the execution boundary.

`StdLib` holds the built-in functions, `ScriptRunner` parses and runs
source against a persistent session scope and turns every failure into
a formatted `ExecutionResult`.
"""
import sys
import math
import inspect
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from scriptit.sit_parser import parse
from scriptit.sit_lexer import tokenize
from scriptit.sit_interpreter import Evaluator, env_int
from scriptit.sit_printer import Printer
from scriptit.sit_file import file_read, file_read_lines, file_write
from scriptit.sit_operators import (
    add, kind_of, is_number, truthy, iter_items, to_int, to_float, to_list, to_set,
)
from scriptit.sit_datatypes import (
    Program, ExprStmt, Scope, SitError, SitSyntaxError, SitTypeError, SitIOError,
    DivisionByZeroError,
)

DEFAULT_RECURSION_LIMIT = 10000

# Names accepted by isinstance() in addition to the kind names.
KIND_ALIASES = {'str': 'string', 'double': 'float', 'NoneType': 'none', 'fn': 'function'}


# ===================================================================
# 1. Built-in helpers
# ===================================================================

def _require_number(name: str, x):
    if not is_number(x):
        raise SitTypeError(f"{name}() expects a number, got {kind_of(x)}")
    return x


def _float_math(name: str, fn, x):
    """Applies a math function, mapping domain errors to nan."""
    _require_number(name, x)
    try:
        return fn(x)
    except ValueError:
        return math.nan
    except OverflowError:
        raise SitTypeError(f"{name}() result out of range")


def _reciprocal(name: str, fn, x):
    denominator = _float_math(name, fn, x)
    if denominator == 0:
        raise DivisionByZeroError("Division by zero")
    return 1 / denominator


def _logarithm(fn):
    def apply(x):
        if x == 0:
            return -math.inf
        if x < 0:
            return math.nan
        return fn(x)
    return apply


def _round_half_away(x, digits=0):
    factor = 10 ** digits
    magnitude = math.floor(abs(x) * factor + 0.5) / factor
    return math.copysign(magnitude, x)


def _items(name: str, value):
    if not isinstance(value, (str, tuple, frozenset)):
        raise SitTypeError(f"{name}() expects a list, set or string, got {kind_of(value)}")
    return iter_items(value)


def _extreme(name: str, pick, args):
    items = _items(name, args[0]) if len(args) == 1 else args
    if not items:
        raise SitTypeError(f"{name}() of an empty sequence")
    try:
        return pick(items)
    except TypeError:
        raise SitTypeError(f"{name}() cannot compare values of different kinds")


def inclusive_range(start, end, step=None):
    """Counts from `start` to `end` inclusive, descending when `start > end`."""
    if not (is_number(start) and is_number(end)):
        raise SitTypeError("Range bounds must be numbers")
    if step is None:
        step = 1 if start <= end else -1
    elif not is_number(step):
        raise SitTypeError(f"Range step must be a number, not {kind_of(step)}")
    if step == 0:
        raise SitTypeError("Step cannot be zero in range")
    out = []
    i = start
    while (i <= end) if step > 0 else (i >= end):
        out.append(i)
        i = add(i, step)
    return tuple(out)


# ===================================================================
# 2. Standard library
# ===================================================================

class StdLib:
    """Contains Python implementations for all ScriptIt built-ins.

    Every method whose name starts with a single underscore is a built-in
    registered under the rest of its name.
    """
    def __init__(self, evaluator: Evaluator):
        self.evaluator = evaluator
        self.printer = Printer()

    def builtins(self) -> Dict[str, Any]:
        table = {}
        for name, member in inspect.getmembers(self):
            if name.startswith('_') and not name.startswith('__') and callable(member):
                table[name[1:]] = member
        return table

    # --- Output and input ---
    def _print(self, *args):
        self.evaluator.emit(" ".join(self.printer.pformat(a) for a in args))

    def _pprint(self, value):
        self.evaluator.emit(self.printer.pretty(value))

    def _input(self, prompt=""):
        stream = self.evaluator.input_stream
        if stream is None:
            raise SitIOError("input() is not available in this session")
        echo = self.evaluator.echo
        if echo is not None and prompt != "":
            echo.write(self.printer.pformat(prompt))
            echo.flush()
        line = stream.readline()
        return line.rstrip("\r\n")

    # --- Files ---
    async def _read(self, path):
        return await file_read(path, base_dir=self.evaluator.source_dir)

    async def _readLine(self, path):
        return tuple(await file_read_lines(path, base_dir=self.evaluator.source_dir))

    async def _write(self, path, data, mode="w"):
        await file_write(path, self.printer.pformat(data), mode, base_dir=self.evaluator.source_dir)

    # --- Math ---
    def _sqrt(self, x): return _float_math("sqrt", math.sqrt, x)
    def _abs(self, x): return abs(_require_number("abs", x))
    def _ceil(self, x): return _float_math("ceil", math.ceil, x)
    def _floor(self, x): return _float_math("floor", math.floor, x)
    def _sin(self, x): return _float_math("sin", math.sin, x)
    def _cos(self, x): return _float_math("cos", math.cos, x)
    def _tan(self, x): return _float_math("tan", math.tan, x)
    def _cot(self, x): return _reciprocal("cot", math.tan, x)
    def _sec(self, x): return _reciprocal("sec", math.cos, x)
    def _csc(self, x): return _reciprocal("csc", math.sin, x)
    def _asin(self, x): return _float_math("asin", math.asin, x)
    def _acos(self, x): return _float_math("acos", math.acos, x)
    def _atan(self, x): return _float_math("atan", math.atan, x)
    def _log(self, x): return _float_math("log", _logarithm(math.log), x)
    def _log2(self, x): return _float_math("log2", _logarithm(math.log2), x)
    def _log10(self, x): return _float_math("log10", _logarithm(math.log10), x)

    def _round(self, x, digits=None):
        _require_number("round", x)
        if isinstance(x, float) and (math.isnan(x) or math.isinf(x)):
            raise SitTypeError(f"Cannot round {self.printer.pformat(x)}")
        if digits is None:
            return int(x) if isinstance(x, int) else int(_round_half_away(x))
        if not isinstance(digits, int):
            raise SitTypeError(f"round() digits must be an int, got {kind_of(digits)}")
        return _float_math("round", lambda v: _round_half_away(v, digits), x)

    def _min(self, *args): return _extreme("min", min, args)
    def _max(self, *args): return _extreme("max", max, args)

    def _sum(self, values):
        total = 0
        for item in _items("sum", values):
            total = add(total, item)
        return total

    # --- Collections ---
    def _list(self, value=()):
        return to_list(value)

    def _set(self, value=frozenset()):
        return to_set(value)

    def _append(self, values, item):
        if not isinstance(values, tuple):
            raise SitTypeError(f"append() expects a list, got {kind_of(values)}")
        return values + (item,)

    def _pop(self, values):
        if not isinstance(values, tuple):
            raise SitTypeError(f"pop() expects a list, got {kind_of(values)}")
        if not values:
            raise SitTypeError("pop() from an empty list")
        return values[-1]

    def _len(self, value):
        if isinstance(value, (str, tuple, frozenset)):
            return len(value)
        raise SitTypeError(f"len() is not defined for {kind_of(value)}")

    def _sorted(self, values):
        items = _items("sorted", values)
        try:
            return tuple(sorted(items))
        except TypeError:
            raise SitTypeError("sorted() cannot compare values of different kinds")

    def _reversed(self, values):
        if isinstance(values, str):
            return values[::-1]
        return tuple(reversed(_items("reversed", values)))

    def _all(self, values): return all(truthy(v) for v in _items("all", values))
    def _any(self, values): return any(truthy(v) for v in _items("any", values))

    def _range_list(self, start, end, step=None):
        return inclusive_range(start, end, step)

    # --- String, list and set operations ---
    # Function forms of the kind methods; they never rebind a variable.
    def kind_method(self, name, receiver, *args):
        return self.evaluator.methods.call_pure(receiver, name, args)

    def _upper(self, s): return self.kind_method("upper", s)
    def _lower(self, s): return self.kind_method("lower", s)
    def _strip(self, s): return self.kind_method("strip", s)
    def _title(self, s): return self.kind_method("title", s)
    def _capitalize(self, s): return self.kind_method("capitalize", s)
    def _isdigit(self, s): return self.kind_method("isdigit", s)
    def _isalpha(self, s): return self.kind_method("isalpha", s)
    def _find(self, s, sub): return self.kind_method("find", s, sub)
    def _startswith(self, s, prefix): return self.kind_method("startswith", s, prefix)
    def _endswith(self, s, suffix): return self.kind_method("endswith", s, suffix)
    def _replace(self, s, old, new): return self.kind_method("replace", s, old, new)
    def _contains(self, container, item): return self.kind_method("contains", container, item)
    def _count(self, container, item): return self.kind_method("count", container, item)
    def _index(self, values, item): return self.kind_method("index", values, item)
    def _sort(self, values): return self.kind_method("sort", values)
    def _add(self, members, item): return self.kind_method("add", members, item)
    def _remove(self, container, item): return self.kind_method("remove", container, item)

    def _split(self, s, sep=None):
        if sep is None:
            return self.kind_method("split", s)
        return self.kind_method("split", s, sep)

    def _slice(self, value, start, stop, step=None):
        if step is None:
            return self.kind_method("slice", value, start, stop)
        return self.kind_method("slice", value, start, stop, step)

    # --- Types and conversion ---
    def _str(self, value): return self.printer.pformat(value)
    def _repr(self, value): return self.printer.prepr(value)
    def _int(self, value): return to_int(value)
    def _float(self, value): return to_float(value)
    def _bool(self, value): return truthy(value)
    def _type(self, value): return kind_of(value)

    def _isinstance(self, value, kind):
        if not isinstance(kind, str):
            raise SitTypeError(f"isinstance() expects a kind name, got {kind_of(kind)}")
        return kind_of(value) == KIND_ALIASES.get(kind, kind)


# ===================================================================
# 3. Execution boundary
# ===================================================================

@dataclass
class ExecutionResult:
    """The structured result of a script execution."""
    status: Literal['success', 'error']
    value: Any = None
    error_message: Optional[str] = None
    error_token: Optional[Dict] = None
    side_effects: List[Dict] = field(default_factory=list)

    def format_error(self) -> str:
        if self.status != 'error':
            return ""
        return f"Error: {self.error_message or 'Unknown error'}"

    @property
    def stdout(self) -> str:
        return "".join(e['message'] + "\n" for e in self.side_effects if e.get('topics') == ['stdout'])


def _raise_recursion_limit():
    limit = env_int("SIT_RECURSION_LIMIT", DEFAULT_RECURSION_LIMIT)
    if sys.getrecursionlimit() < limit:
        sys.setrecursionlimit(limit)


class ScriptRunner:
    """Parses and executes ScriptIt code against a persistent session scope."""

    def __init__(self, echo=None, error_echo=None):
        _raise_recursion_limit()
        self.evaluator = Evaluator(echo=echo)
        self.error_echo = error_echo
        self.stdlib = StdLib(self.evaluator)
        self.evaluator.builtins = self.stdlib.builtins()
        self.printer = Printer()
        self.root_scope = self._new_root_scope()

    @property
    def source_dir(self) -> Optional[str]:
        return self.evaluator.source_dir

    @source_dir.setter
    def source_dir(self, value: Optional[str]):
        self.evaluator.source_dir = value

    def _new_root_scope(self) -> Scope:
        scope = Scope()
        scope['PI'] = math.pi
        scope['e'] = math.e
        return scope

    def reset(self):
        """Discards every session binding, keeping only the constants."""
        self.root_scope = self._new_root_scope()

    def completions(self, prefix: str) -> List[str]:
        names = set(self.root_scope.keys())
        return sorted(n for n in names if n.startswith(prefix))

    # --- error formatting ---

    def _format_error(self, e: Exception, source: str) -> tuple[str, Optional[dict]]:
        match e:
            case SitError():
                msg = e.describe()
            case RecursionError():
                msg = "RecursionError: Maximum recursion depth exceeded"
            case _:
                msg = f"InternalError: {e.__class__.__name__}: {e}"

        token = None
        loc = getattr(e, 'loc', None)
        if loc and isinstance(loc, dict):
            line = loc.get('line'); col = loc.get('col')
            token = {'line': line, 'col': col, 'tag': loc.get('tag'), 'text': loc.get('text')}
            if line is not None and col is not None:
                msg = f"{msg}\n(line {line}, col {col})"
                context = self._source_context(source, line, col)
                if context:
                    msg = f"{msg}\n{context}"

        st = self._format_stacktrace()
        if st:
            msg += "\n" + st
        return msg, token

    def _source_context(self, source: str, line: int, col: Optional[int], radius: int = 2) -> str:
        lines = source.splitlines()
        if not line or line < 1 or line > len(lines):
            return ""
        start = max(1, line - radius)
        end = min(len(lines), line + radius)
        width = len(str(end))
        out = []
        for i in range(start, end + 1):
            prefix = ">" if i == line else " "
            out.append(f"{prefix} {str(i).rjust(width)} | {lines[i - 1]}")
            if i == line and col is not None:
                out.append(f"  {' ' * width} | {' ' * max(col - 1, 0)}^")
        return "\n".join(out)

    def _format_stacktrace(self) -> str:
        stack = self.evaluator.call_stack
        if not stack:
            return ""
        frames = []
        for frame in stack:
            args = " ".join(self.printer.prepr(a) for a in frame.get('args') or [])
            frames.append(f"({frame['name']} {args})" if args else f"({frame['name']})")
        return "ScriptIt stacktrace: " + " ".join(frames)

    def _record_error(self, e: Exception, source: str) -> tuple[str, Optional[dict]]:
        msg, token = self._format_error(e, source)
        self.evaluator.call_stack.clear()
        self.evaluator.emit(msg, topic='stderr')
        if self.error_echo is not None:
            print(f"Error: {msg}", file=self.error_echo, flush=True)
        return msg, token

    # --- execution ---

    async def handle_script(self, source_code: str, keep_going: bool = False) -> ExecutionResult:
        """Parses and runs a script in the session scope.

        With `keep_going`, each top-level statement is its own error boundary:
        a failing statement is reported and execution moves on to the next.
        """
        self.evaluator.side_effects = []
        self.evaluator.call_stack.clear()

        try:
            program = parse(source_code)
        except SitSyntaxError as e:
            msg, token = self._record_error(e, source_code)
            return ExecutionResult(status='error', error_message=msg, error_token=token,
                                   side_effects=self.evaluator.side_effects)

        if not keep_going:
            try:
                value = await self.evaluator.execute(program, self.root_scope)
            except Exception as e:
                msg, token = self._record_error(e, source_code)
                return ExecutionResult(status='error', error_message=msg, error_token=token,
                                       side_effects=self.evaluator.side_effects)
            return ExecutionResult(status='success', value=value, side_effects=self.evaluator.side_effects)

        value = None
        errors = []
        first_token = None
        for stmt in program.statements:
            try:
                result = await self.evaluator.execute(Program((stmt,), loc=stmt.loc), self.root_scope)
            except Exception as e:
                msg, token = self._record_error(e, source_code)
                errors.append(msg)
                first_token = first_token or token
                continue
            if isinstance(stmt, ExprStmt):
                value = result
        if errors:
            return ExecutionResult(status='error', value=value, error_message="\n".join(errors),
                                   error_token=first_token, side_effects=self.evaluator.side_effects)
        return ExecutionResult(status='success', value=value, side_effects=self.evaluator.side_effects)

    def needs_more_input(self, source: str) -> bool:
        """True when `source` opens more blocks than it closes (REPL continuation)."""
        depth = 0
        for tok in tokenize(source):
            if tok.kind == 'keyword' and tok.text in ('if', 'while', 'for', 'fn'):
                depth += 1
            elif tok.kind == 'punct' and tok.text == ';':
                depth -= 1
        return depth > 0

"""
Defines the core data types for the ScriptIt language runtime.

This module provides the syntax tree produced by the parser, the runtime
scope chain, function values, the `give` control result and the error
kinds every stage of the pipeline raises.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


# =================================================================
# Error kinds
# =================================================================

class SitError(Exception):
    """Base class for every error a ScriptIt program can raise.

    `label` is the user-facing kind name; `loc` is the source location
    (a dict with `line` and `col`) of the offending node or token, when known.
    """
    label = "Error"

    def __init__(self, message: str, loc: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.loc = loc

    def describe(self) -> str:
        return f"{self.label}: {self.message}"


class SitSyntaxError(SitError):
    label = "SyntaxError"

    def __init__(self, message: str, token: Any = None):
        loc = None
        if token is not None:
            loc = {'line': token.line, 'col': token.col, 'tag': token.kind, 'text': token.text}
        super().__init__(message, loc)
        self.token = token


class UndefinedVariableError(SitError):
    label = "UndefinedVariableError"


class ArityError(SitError):
    label = "ArityError"


class SitTypeError(SitError):
    label = "TypeError"


class DivisionByZeroError(SitError):
    label = "DivisionByZeroError"


class SitIOError(SitError):
    label = "IOError"


class SitRecursionError(SitError):
    label = "RecursionError"


# =================================================================
# Syntax tree
# =================================================================

@dataclass
class Node:
    """Base class for all syntax tree nodes.

    `loc` records where the node started in the source and is ignored by
    equality so tests can compare trees structurally.
    """
    loc: Optional[Dict[str, Any]] = field(default=None, compare=False, repr=False, kw_only=True)


@dataclass
class Program(Node):
    statements: Tuple[Node, ...]


# --- Expressions ---

@dataclass
class Literal(Node):
    value: Any


@dataclass
class Identifier(Node):
    name: str


@dataclass
class BinaryOp(Node):
    op: str
    left: Node
    right: Node


@dataclass
class LogicalOp(Node):
    """A short-circuiting `&&` / `||`; the right side may never be evaluated."""
    op: str
    left: Node
    right: Node


@dataclass
class UnaryOp(Node):
    op: str
    operand: Node


@dataclass
class Call(Node):
    name: str
    args: Tuple[Node, ...]


@dataclass
class MethodCall(Node):
    """`target.name(args)` or `name(args) of target`."""
    target: Node
    name: str
    args: Tuple[Node, ...]


@dataclass
class ListLit(Node):
    items: Tuple[Node, ...]


@dataclass
class SetLit(Node):
    items: Tuple[Node, ...]


# --- Statements ---

@dataclass
class VarDecl(Node):
    """`var a = 1, b.` and `let a be 1.`; a missing initializer declares None."""
    declarations: Tuple[Tuple[str, Optional[Node]], ...]


@dataclass
class Assign(Node):
    name: str
    op: str
    value: Node


@dataclass
class IncDec(Node):
    name: str
    op: str


@dataclass
class If(Node):
    branches: Tuple[Tuple[Node, Tuple[Node, ...]], ...]
    else_body: Optional[Tuple[Node, ...]] = None


@dataclass
class While(Node):
    condition: Node
    body: Tuple[Node, ...]


@dataclass
class ForRange(Node):
    name: str
    start: Node
    end: Node
    step: Optional[Node]
    body: Tuple[Node, ...]


@dataclass
class ForIn(Node):
    name: str
    iterable: Node
    body: Tuple[Node, ...]


@dataclass
class FuncDef(Node):
    name: str
    params: Tuple[str, ...]
    body: Tuple[Node, ...]


@dataclass
class ExprStmt(Node):
    expr: Node


@dataclass
class Give(Node):
    value: Node


@dataclass
class Pass(Node):
    pass


# =================================================================
# Core runtime types
# =================================================================

class Scope:
    """A mapping of names to values with a link to the enclosing scope.

    Reads walk the parent chain outward. Writes through `assign` stop at a
    scope whose `barrier` is set: a call frame may read outer bindings but
    never rebind them.
    """
    def __init__(self, parent: Optional['Scope'] = None, barrier: bool = False):
        self.bindings: Dict[str, Any] = {}
        self.parent = parent
        self.barrier = barrier

    @classmethod
    def new_call_frame(cls, defining_scope: 'Scope') -> 'Scope':
        """Creates the scope for one function invocation."""
        return cls(parent=defining_scope, barrier=True)

    def find_owner(self, name: str) -> Optional['Scope']:
        """Finds the innermost scope in the chain that binds `name`."""
        scope = self
        while scope is not None:
            if name in scope.bindings:
                return scope
            scope = scope.parent
        return None

    def define(self, name: str, value: Any):
        """Binds `name` in this scope, shadowing any outer binding."""
        self.bindings[name] = value

    def assign(self, name: str, value: Any):
        """Rebinds an existing name, honouring call-frame barriers."""
        scope = self
        while scope is not None:
            if name in scope.bindings:
                scope.bindings[name] = value
                return
            if scope.barrier:
                break
            scope = scope.parent
        if self.find_owner(name) is not None:
            raise UndefinedVariableError(
                f"Undefined variable '{name}' in current scope (cannot mutate outer scope)")
        raise UndefinedVariableError(f"Undefined variable: {name}")

    def __getitem__(self, name: str) -> Any:
        owner = self.find_owner(name)
        if owner is None:
            raise UndefinedVariableError(f"Undefined variable: {name}")
        return owner.bindings[name]

    def __setitem__(self, name: str, value: Any):
        self.define(name, value)

    def __contains__(self, name: str) -> bool:
        return self.find_owner(name) is not None

    def get(self, name: str, default: Any = None) -> Any:
        owner = self.find_owner(name)
        if owner is None:
            return default
        return owner.bindings[name]

    def keys(self):
        """Returns a view of the names bound directly in this scope."""
        return self.bindings.keys()

    def __repr__(self) -> str:
        keys = ', '.join(self.bindings.keys())
        parent_id = f", parent=#{id(self.parent)}" if self.parent else ""
        return f"<Scope bindings=[{keys}]{parent_id}>"


class SitFunction:
    """A function defined with `fn`.

    This is a closure: it bundles the parameter names, the body and the
    scope the definition ran in. Equality is identity.
    """
    def __init__(self, name: str, params: Tuple[str, ...], body: Tuple[Node, ...], closure: Scope):
        self.name = name
        self.params = tuple(params)
        self.body = body
        self.closure = closure

    @property
    def arity(self) -> int:
        return len(self.params)

    def __repr__(self) -> str:
        return f"<fn {self.name}({', '.join(self.params)})>"


class GiveSignal:
    """The control result of executing `give`: unwinds to the call boundary."""
    __slots__ = ("value",)

    def __init__(self, value: Any):
        self.value = value

    def __repr__(self) -> str:
        return f"GiveSignal({self.value!r})"


def is_give(x) -> bool:
    return isinstance(x, GiveSignal)


def unwrap_give(x):
    return x.value if is_give(x) else x

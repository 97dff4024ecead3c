"""
The core ScriptIt interpreter: an async tree-walking Evaluator.
"""
import inspect
import os
import sys
from typing import Any, Dict, Optional, Tuple

from scriptit.sit_datatypes import (
    Node, Program, VarDecl, Assign, IncDec, If, While, ForRange, ForIn, FuncDef,
    ExprStmt, Give, Pass, Literal, Identifier, BinaryOp, LogicalOp, UnaryOp, Call,
    ListLit, SetLit, MethodCall, Scope, SitFunction, GiveSignal, SitError, SitTypeError,
    ArityError, UndefinedVariableError, SitRecursionError, unwrap_give,
)
from scriptit.sit_operators import (
    BINARY_OPERATORS, COMPOUND_OPERATORS, add, sub, negate, logical_not, truthy,
    iter_items, is_number, kind_of,
)
from scriptit.sit_methods import MethodDispatcher, Mutation

DEFAULT_MAX_CALL_DEPTH = 500


def env_int(name: str, default: int) -> int:
    """Reads a positive integer setting from the environment, falling back to `default`."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        print(f"[WARN] ignoring {name}={raw!r}: not an integer, using {default}", file=sys.stderr)
        return default
    if value < 1:
        print(f"[WARN] ignoring {name}={raw!r}: must be positive, using {default}", file=sys.stderr)
        return default
    return value


class Evaluator:
    """Walks the syntax tree and executes it against a Scope.

    Statements return either None or a GiveSignal; a GiveSignal unwinds
    through enclosing blocks to the nearest call boundary.
    """
    def __init__(self, echo=None):
        self.side_effects = []
        self.call_stack = []
        self.builtins: Dict[str, Any] = {}
        self.echo = echo
        self.input_stream = sys.stdin
        self.source_dir: Optional[str] = None
        self.methods = MethodDispatcher()
        self.max_call_depth = env_int("SIT_MAX_CALL_DEPTH", DEFAULT_MAX_CALL_DEPTH)
        self._signatures: Dict[str, inspect.Signature] = {}

    # ---------- host plumbing ----------

    def emit(self, message: str, topic: str = 'stdout'):
        """Records an output event and streams it to `echo` when set."""
        self.side_effects.append({'topics': [topic], 'message': message})
        if self.echo is not None and topic == 'stdout':
            print(message, file=self.echo, flush=True)

    def _push_frame(self, name, func, args, call_site_node):
        loc = getattr(call_site_node, 'loc', None)
        self.call_stack.append({
            'name': name,
            'func': func,
            'args': args,
            'call_site': loc,
        })

    def _pop_frame(self):
        if self.call_stack:
            self.call_stack.pop()

    def _dbg(self, *parts):
        if os.environ.get("SIT_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    # ---------- statements ----------

    async def execute(self, program: Program, scope: Scope) -> Any:
        """Runs a program and returns the value of its last top-level expression statement."""
        result = None
        for stmt in program.statements:
            if isinstance(stmt, ExprStmt):
                result = await self.eval(stmt.expr, scope)
            else:
                await self.exec_stmt(stmt, scope)
        return result

    async def exec_block(self, body: Tuple[Node, ...], scope: Scope) -> Optional[GiveSignal]:
        for stmt in body:
            signal = await self.exec_stmt(stmt, scope)
            if signal is not None:
                return signal
        return None

    async def exec_stmt(self, stmt: Node, scope: Scope) -> Optional[GiveSignal]:
        try:
            return await self._exec(stmt, scope)
        except SitError as e:
            if e.loc is None:
                e.loc = stmt.loc
            raise

    async def _exec(self, stmt: Node, scope: Scope) -> Optional[GiveSignal]:
        match stmt:
            case ExprStmt(expr=expr):
                await self.eval(expr, scope)
            case VarDecl(declarations=declarations):
                for name, init in declarations:
                    value = await self.eval(init, scope) if init is not None else None
                    scope.define(name, value)
            case Assign(name=name, op='=', value=value_node):
                scope.assign(name, await self.eval(value_node, scope))
            case Assign(name=name, op=op, value=value_node):
                current = scope[name]
                rhs = await self.eval(value_node, scope)
                scope.assign(name, BINARY_OPERATORS[COMPOUND_OPERATORS[op]](current, rhs))
            case IncDec(name=name, op=op):
                current = scope[name]
                scope.assign(name, add(current, 1) if op == '++' else sub(current, 1))
            case If(branches=branches, else_body=else_body):
                for condition, body in branches:
                    if truthy(await self.eval(condition, scope)):
                        return await self.exec_block(body, scope)
                if else_body is not None:
                    return await self.exec_block(else_body, scope)
            case While(condition=condition, body=body):
                while truthy(await self.eval(condition, scope)):
                    signal = await self.exec_block(body, scope)
                    if signal is not None:
                        return signal
            case ForRange():
                return await self._exec_for_range(stmt, scope)
            case ForIn(name=name, iterable=iterable, body=body):
                for item in iter_items(await self.eval(iterable, scope)):
                    scope.define(name, item)
                    signal = await self.exec_block(body, scope)
                    if signal is not None:
                        return signal
            case FuncDef(name=name, params=params, body=body):
                scope.define(name, SitFunction(name, params, body, scope))
            case Give(value=value_node):
                return GiveSignal(await self.eval(value_node, scope))
            case Pass():
                pass
            case _:
                raise SitTypeError(f"Cannot execute node {type(stmt).__name__}")
        return None

    async def _exec_for_range(self, stmt: ForRange, scope: Scope) -> Optional[GiveSignal]:
        start = await self.eval(stmt.start, scope)
        end = await self.eval(stmt.end, scope)
        for bound in (start, end):
            if not is_number(bound):
                raise SitTypeError(f"Range bounds must be numbers, not {kind_of(bound)}")
        if stmt.step is None:
            step = 1 if start <= end else -1
        else:
            step = await self.eval(stmt.step, scope)
            if not is_number(step):
                raise SitTypeError(f"Range step must be a number, not {kind_of(step)}")
            if step == 0:
                raise SitTypeError("Step cannot be zero in range")
        self._dbg("RANGE", stmt.name, start, end, step)
        i = start
        while (i <= end) if step > 0 else (i >= end):
            scope.define(stmt.name, i)
            signal = await self.exec_block(stmt.body, scope)
            if signal is not None:
                return signal
            i = add(i, step)
        return None

    # ---------- expressions ----------

    async def eval(self, node: Node, scope: Scope) -> Any:
        """Public entry point for evaluating an expression node."""
        try:
            return await self._eval(node, scope)
        except SitError as e:
            if e.loc is None:
                e.loc = node.loc
            raise

    async def _eval(self, node: Node, scope: Scope) -> Any:
        match node:
            case Literal(value=value):
                return value
            case Identifier(name=name):
                return scope[name]
            case BinaryOp(op=op, left=left, right=right):
                lhs = await self.eval(left, scope)
                rhs = await self.eval(right, scope)
                return BINARY_OPERATORS[op](lhs, rhs)
            case LogicalOp(op=op, left=left, right=right):
                lhs = truthy(await self.eval(left, scope))
                if op == '&&' and not lhs:
                    return False
                if op == '||' and lhs:
                    return True
                return truthy(await self.eval(right, scope))
            case UnaryOp(op='-', operand=operand):
                return negate(await self.eval(operand, scope))
            case UnaryOp(op='!', operand=operand):
                return logical_not(await self.eval(operand, scope))
            case ListLit(items=items):
                return tuple([await self.eval(item, scope) for item in items])
            case SetLit(items=items):
                return frozenset([await self.eval(item, scope) for item in items])
            case Call():
                return await self._eval_call(node, scope)
            case MethodCall():
                return await self._eval_method_call(node, scope)
        raise SitTypeError(f"Cannot evaluate node {type(node).__name__}")

    async def _eval_call(self, node: Call, scope: Scope) -> Any:
        # A bound name shadows a built-in of the same name.
        owner = scope.find_owner(node.name)
        if owner is not None:
            func = owner.bindings[node.name]
            if not isinstance(func, SitFunction):
                raise SitTypeError(f"'{node.name}' is not a function (got {kind_of(func)})")
            args = [await self.eval(arg, scope) for arg in node.args]
            return await self.call_function(func, args, node)
        builtin = self.builtins.get(node.name)
        if builtin is None:
            raise UndefinedVariableError(f"Unknown function: {node.name}")
        args = [await self.eval(arg, scope) for arg in node.args]
        return await self.call_builtin(node.name, builtin, args, node)

    async def _eval_method_call(self, node: MethodCall, scope: Scope) -> Any:
        receiver = await self.eval(node.target, scope)
        args = [await self.eval(arg, scope) for arg in node.args]
        self._dbg("METHOD", kind_of(receiver), node.name, args)
        self._push_frame(node.name, None, [receiver, *args], node)
        _ok = False
        try:
            result = self.methods.call(receiver, node.name, args)
            _ok = True
        finally:
            if _ok:
                self._pop_frame()
        if isinstance(result, Mutation):
            # `items.append(3).` rebinds `items`; on a literal only the value remains.
            if isinstance(node.target, Identifier):
                scope.assign(node.target.name, result.receiver)
            return result.value
        return result

    async def call_function(self, func: SitFunction, args, call_site: Optional[Node] = None) -> Any:
        if len(args) != func.arity:
            raise ArityError(
                f"Function '{func.name}' expects {func.arity} argument(s), got {len(args)}")
        if len(self.call_stack) >= self.max_call_depth:
            raise SitRecursionError(f"Maximum call depth exceeded ({self.max_call_depth})")
        frame = Scope.new_call_frame(func.closure)
        for param, arg in zip(func.params, args):
            frame.define(param, arg)
        self._dbg("CALL", func.name, args)
        self._push_frame(func.name, func, args, call_site)
        _ok = False
        try:
            result = await self.exec_block(func.body, frame)
            _ok = True
        finally:
            # Frames stay on the stack when an error unwinds so the runner can trace them.
            if _ok:
                self._pop_frame()
        return unwrap_give(result)

    def _check_builtin_arity(self, name: str, builtin, args):
        sig = self._signatures.get(name)
        if sig is None:
            sig = self._signatures[name] = inspect.signature(builtin)
        try:
            sig.bind(*args)
        except TypeError:
            params = list(sig.parameters.values())
            if any(p.kind is p.VAR_POSITIONAL for p in params):
                expected = "more"
            else:
                required = sum(1 for p in params if p.default is p.empty)
                expected = str(required) if required == len(params) else f"{required} to {len(params)}"
            raise ArityError(f"Built-in '{name}' expects {expected} argument(s), got {len(args)}")

    async def call_builtin(self, name: str, builtin, args, call_site: Optional[Node] = None) -> Any:
        self._check_builtin_arity(name, builtin, args)
        self._push_frame(name, builtin, args, call_site)
        _ok = False
        try:
            if inspect.iscoroutinefunction(builtin):
                result = await builtin(*args)
            else:
                result = builtin(*args)
            _ok = True
        finally:
            if _ok:
                self._pop_frame()
        return result

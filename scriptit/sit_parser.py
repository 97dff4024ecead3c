"""
Recursive-descent parser turning ScriptIt tokens into a syntax tree.
"""
from typing import List, Optional, Tuple

from scriptit.sit_lexer import Token, tokenize
from scriptit.sit_datatypes import (
    Node, Program, VarDecl, Assign, IncDec, If, While, ForRange, ForIn, FuncDef,
    ExprStmt, Give, Pass, Literal, Identifier, BinaryOp, LogicalOp, UnaryOp, Call,
    ListLit, SetLit, MethodCall, SitSyntaxError,
)

ASSIGN_OPS = frozenset({'=', '+=', '-=', '*=', '/=', '%='})
COMPARISON_OPS = frozenset({'==', '!=', '<', '<=', '>', '>='})
# Keywords that end a block body without being consumed by it.
BLOCK_ENDS = frozenset({'elif', 'else'})


def _loc(tok: Token) -> dict:
    return {'line': tok.line, 'col': tok.col, 'tag': tok.kind, 'text': tok.text}


def _describe(tok: Token) -> str:
    if tok.kind == 'eof':
        return "end of input"
    return f"'{tok.text}'"


class Parser:
    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0
        self.function_depth = 0

    # ---------- token helpers ----------

    @property
    def current(self) -> Token:
        return self.tokens[self.pos]

    def peek(self, offset: int = 1) -> Token:
        idx = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[idx]

    def advance(self) -> Token:
        tok = self.current
        if tok.kind != 'eof':
            self.pos += 1
        return tok

    def check(self, kind: str, text: Optional[str] = None, tok: Optional[Token] = None) -> bool:
        tok = tok or self.current
        if tok.kind != kind:
            return False
        # Ops compare by canonical value so `and` matches `&&`.
        if text is not None:
            return (tok.value if kind == 'op' else tok.text) == text
        return True

    def check_punct(self, text: str) -> bool:
        return self.check('punct', text)

    def check_keyword(self, text: str) -> bool:
        return self.check('keyword', text)

    def eat(self, kind: str, text: Optional[str] = None) -> Token:
        if self.check(kind, text):
            return self.advance()
        expected = f"'{text}'" if text is not None else {'ident': "a name"}.get(kind, kind)
        self.error_here(f"Expected {expected}")

    def error_here(self, message: str):
        tok = self.current
        if tok.kind == 'error':
            raise SitSyntaxError(tok.value, tok)
        raise SitSyntaxError(f"{message} but found {_describe(tok)}", tok)

    # ---------- top level ----------

    def parse_program(self) -> Program:
        start = self.current
        statements = []
        while not self.check('eof'):
            if self.check_punct('.'):
                self.advance()
                continue
            statements.append(self.statement())
        return Program(tuple(statements), loc=_loc(start))

    def end_simple(self):
        """Consumes a statement terminator; it may be omitted before a block end."""
        if self.check_punct('.'):
            self.advance()
            return
        tok = self.current
        if tok.kind == 'eof' or self.check_punct(';') or (tok.kind == 'keyword' and tok.text in BLOCK_ENDS):
            return
        self.error_here("Expected '.' to end the statement")

    def block(self) -> Tuple[Node, ...]:
        """Parses statements up to a closing `;` (or `elif` / `else`), not consuming it."""
        body = []
        while True:
            tok = self.current
            if self.check_punct(';') or (tok.kind == 'keyword' and tok.text in BLOCK_ENDS):
                return tuple(body)
            if tok.kind == 'eof':
                self.error_here("Expected ';' to close the block")
            if self.check_punct('.'):
                self.advance()
                continue
            body.append(self.statement())

    # ---------- statements ----------

    def statement(self) -> Node:
        tok = self.current
        if tok.kind == 'keyword':
            match tok.text:
                case 'var':
                    return self.var_statement()
                case 'let':
                    return self.let_statement()
                case 'if':
                    return self.if_statement()
                case 'while':
                    return self.while_statement()
                case 'for':
                    return self.for_statement()
                case 'fn':
                    return self.func_def()
                case 'give':
                    return self.give_statement()
                case 'pass':
                    self.advance()
                    self.end_simple()
                    return Pass(loc=_loc(tok))
                case 'elif' | 'else':
                    raise SitSyntaxError(f"'{tok.text}' without a matching 'if'", tok)
        if self.check('op', '++') or self.check('op', '--'):
            self.advance()
            name = self.eat('ident').text
            self.end_simple()
            return IncDec(name, tok.value, loc=_loc(tok))
        if tok.kind == 'ident':
            nxt = self.peek()
            if nxt.kind == 'op' and nxt.value in ASSIGN_OPS:
                return self.assignment()
            if nxt.kind == 'op' and nxt.value in ('++', '--'):
                self.advance()
                self.advance()
                self.end_simple()
                return IncDec(tok.text, nxt.value, loc=_loc(tok))
        if self.check_punct(';'):
            raise SitSyntaxError("Unexpected ';' outside of a block", tok)
        expr = self.expression()
        self.end_simple()
        return ExprStmt(expr, loc=_loc(tok))

    def var_statement(self) -> VarDecl:
        start = self.advance()
        declarations = []
        while True:
            name = self.eat('ident').text
            init = None
            if self.check('op', '='):
                self.advance()
                init = self.expression()
            declarations.append((name, init))
            if self.check_punct(','):
                self.advance()
                continue
            if self.check('ident'):
                continue
            break
        self.end_simple()
        return VarDecl(tuple(declarations), loc=_loc(start))

    def let_statement(self) -> VarDecl:
        start = self.advance()
        name = self.eat('ident').text
        self.eat('keyword', 'be')
        value = self.expression()
        self.end_simple()
        return VarDecl(((name, value),), loc=_loc(start))

    def assignment(self) -> Assign:
        name_tok = self.advance()
        op = self.advance().value
        value = self.expression()
        self.end_simple()
        return Assign(name_tok.text, op, value, loc=_loc(name_tok))

    def if_statement(self) -> If:
        start = self.advance()
        branches = []
        condition = self.expression()
        self.eat('punct', ':')
        branches.append((condition, self.block()))
        else_body = None
        while self.check_keyword('elif'):
            self.advance()
            condition = self.expression()
            self.eat('punct', ':')
            branches.append((condition, self.block()))
        if self.check_keyword('else'):
            self.advance()
            self.eat('punct', ':')
            else_body = self.block()
            if self.check_keyword('elif') or self.check_keyword('else'):
                self.error_here("Expected ';' to close the if statement")
        self.eat('punct', ';')
        return If(tuple(branches), else_body, loc=_loc(start))

    def while_statement(self) -> While:
        start = self.advance()
        condition = self.expression()
        self.eat('punct', ':')
        body = self.block()
        self.eat('punct', ';')
        return While(condition, body, loc=_loc(start))

    def for_statement(self) -> Node:
        start = self.advance()
        name = self.eat('ident').text
        self.eat('keyword', 'in')
        if self.check('ident', 'range') and self.check('punct', '(', self.peek()):
            self.advance()
            self.advance()
            step = None
            if self.check_keyword('from'):
                self.advance()
                first = self.expression()
                self.eat('keyword', 'to')
                last = self.expression()
                if self.check_keyword('step'):
                    self.advance()
                    step = self.expression()
            else:
                first = Literal(0, loc=_loc(self.current))
                last = self.expression()
            self.eat('punct', ')')
            self.eat('punct', ':')
            body = self.block()
            self.eat('punct', ';')
            return ForRange(name, first, last, step, body, loc=_loc(start))
        iterable = self.expression()
        self.eat('punct', ':')
        body = self.block()
        self.eat('punct', ';')
        return ForIn(name, iterable, body, loc=_loc(start))

    def func_def(self) -> FuncDef:
        start = self.advance()
        name = self.eat('ident').text
        if self.check_punct('@'):
            self.advance()
        self.eat('punct', '(')
        params = []
        if not self.check_punct(')'):
            while True:
                param_tok = self.eat('ident')
                if param_tok.text in params:
                    raise SitSyntaxError(
                        f"Duplicate parameter '{param_tok.text}' in function '{name}'", param_tok)
                params.append(param_tok.text)
                if not self.check_punct(','):
                    break
                self.advance()
        self.eat('punct', ')')
        self.eat('punct', ':')
        self.function_depth += 1
        try:
            body = self.block()
        finally:
            self.function_depth -= 1
        if not body:
            raise SitSyntaxError("Empty function body not allowed, use 'pass'.", self.current)
        self.eat('punct', ';')
        return FuncDef(name, tuple(params), body, loc=_loc(start))

    def give_statement(self) -> Give:
        tok = self.current
        if self.function_depth == 0:
            raise SitSyntaxError("'give' used outside of a function", tok)
        self.advance()
        if self.check_punct('.') or self.check_punct(';') or self.check('eof'):
            value = Literal(None, loc=_loc(tok))
        else:
            value = self.expression()
        self.end_simple()
        return Give(value, loc=_loc(tok))

    # ---------- expressions ----------

    def expression(self) -> Node:
        node = self.or_expr()
        if self.check_keyword('of'):
            tok = self.advance()
            if not isinstance(node, Call):
                raise SitSyntaxError("'of' must follow a call such as upper() of name", tok)
            target = self.or_expr()
            node = MethodCall(target, node.name, node.args, loc=node.loc)
        return node

    def or_expr(self) -> Node:
        node = self.and_expr()
        while self.check('op', '||'):
            tok = self.advance()
            node = LogicalOp('||', node, self.and_expr(), loc=_loc(tok))
        return node

    def and_expr(self) -> Node:
        node = self.comparison()
        while self.check('op', '&&'):
            tok = self.advance()
            node = LogicalOp('&&', node, self.comparison(), loc=_loc(tok))
        return node

    def _comparison_op(self) -> Optional[str]:
        """Consumes a comparison operator if one is next and returns its name."""
        tok = self.current
        if tok.kind == 'op' and tok.value in COMPARISON_OPS:
            self.advance()
            return tok.value
        if self.check_keyword('is'):
            self.advance()
            if self.check('op', '!'):
                self.advance()
                return 'is not'
            return 'is'
        if self.check_keyword('points'):
            self.advance()
            return 'points'
        if self.check('op', '!') and self.check('keyword', 'points', self.peek()):
            self.advance()
            self.advance()
            return 'not points'
        return None

    def comparison(self) -> Node:
        node = self.additive()
        while True:
            tok = self.current
            op = self._comparison_op()
            if op is None:
                return node
            node = BinaryOp(op, node, self.additive(), loc=_loc(tok))

    def additive(self) -> Node:
        node = self.multiplicative()
        while self.check('op', '+') or self.check('op', '-'):
            tok = self.advance()
            node = BinaryOp(tok.value, node, self.multiplicative(), loc=_loc(tok))
        return node

    def _implicit_multiply(self) -> bool:
        # `2x`, `2(3 + 4)` and `(a)(b)` on one line multiply.
        prev = self.tokens[self.pos - 1] if self.pos > 0 else None
        if prev is None or prev.line != self.current.line:
            return False
        if not (prev.kind == 'number' or (prev.kind == 'punct' and prev.text == ')')):
            return False
        if self.check('ident'):
            nxt = self.peek()
            # `var a = 1 b = 2.` starts a new declarator instead.
            if nxt.kind == 'op' and nxt.value in ASSIGN_OPS:
                return False
            # `f(a) g(b)` is two calls missing a terminator, not a product.
            return not (prev.text == ')' and nxt.kind == 'punct' and nxt.text == '(')
        return self.check_punct('(')

    def multiplicative(self) -> Node:
        node = self.power()
        while True:
            tok = self.current
            if tok.kind == 'op' and tok.value in ('*', '/', '%'):
                self.advance()
                node = BinaryOp(tok.value, node, self.power(), loc=_loc(tok))
            elif self._implicit_multiply():
                node = BinaryOp('*', node, self.power(), loc=_loc(tok))
            else:
                return node

    def power(self) -> Node:
        node = self.unary()
        if self.check('op', '^'):
            tok = self.advance()
            # Right-associative: 2 ^ 3 ^ 2 is 2 ^ (3 ^ 2).
            node = BinaryOp('^', node, self.power(), loc=_loc(tok))
        return node

    def unary(self) -> Node:
        tok = self.current
        if self.check('op', '-') or self.check('op', '!'):
            self.advance()
            return UnaryOp(tok.value, self.unary(), loc=_loc(tok))
        return self.primary()

    def _method_dot(self) -> bool:
        # `x.upper()`: a dot touching both the value and the method name.
        # A dot followed by whitespace ends the statement.
        if not self.check_punct('.') or self.pos == 0:
            return False
        dot, prev = self.current, self.tokens[self.pos - 1]
        name, paren = self.peek(1), self.peek(2)
        return (
            prev.line == dot.line and prev.col + len(prev.text) == dot.col
            and name.kind == 'ident' and name.line == dot.line and name.col == dot.col + 1
            and paren.kind == 'punct' and paren.text == '('
        )

    def primary(self) -> Node:
        node = self.atom()
        while self._method_dot():
            self.advance()
            name_tok = self.advance()
            node = MethodCall(node, name_tok.text, self.arguments(')'), loc=_loc(name_tok))
        return node

    def atom(self) -> Node:
        tok = self.current
        match tok.kind:
            case 'number' | 'string':
                self.advance()
                return Literal(tok.value, loc=_loc(tok))
            case 'keyword' if tok.text in ('True', 'False', 'None'):
                self.advance()
                value = {'True': True, 'False': False, 'None': None}[tok.text]
                return Literal(value, loc=_loc(tok))
            case 'ident':
                self.advance()
                if self.check_punct('('):
                    return Call(tok.text, self.arguments(')'), loc=_loc(tok))
                return Identifier(tok.text, loc=_loc(tok))
            case 'punct' if tok.text == '(':
                self.advance()
                node = self.expression()
                self.eat('punct', ')')
                return node
            case 'punct' if tok.text == '[':
                return ListLit(self.arguments(']'), loc=_loc(tok))
            case 'punct' if tok.text == '{':
                return SetLit(self.arguments('}'), loc=_loc(tok))
        self.error_here("Expected an expression")

    def arguments(self, closer: str) -> Tuple[Node, ...]:
        """Parses a comma-separated list after its opening bracket up to `closer`."""
        self.advance()
        items = []
        while not self.check_punct(closer):
            items.append(self.expression())
            if self.check_punct(','):
                self.advance()
            elif not self.check_punct(closer):
                self.error_here(f"Expected ',' or '{closer}'")
        self.advance()
        return tuple(items)


def parse(source: str) -> Program:
    """Tokenizes and parses source text in one step."""
    return Parser(tokenize(source)).parse_program()

"""
Tokenizer for ScriptIt source text.

`tokenize` never raises: characters it cannot place and unterminated
strings come back as `error` tokens, which the parser reports.
"""
from dataclasses import dataclass
from typing import Any, List, Optional

KEYWORDS = frozenset({
    'var', 'let', 'be', 'fn', 'give', 'if', 'elif', 'else', 'while', 'for', 'in',
    'pass', 'True', 'False', 'None', 'is', 'points', 'from', 'to', 'step', 'of',
})

# Word operators lex to the same operator as their symbol.
WORD_OPERATORS = {'and': '&&', 'or': '||', 'not': '!'}

# Longest first so matching is greedy.
OPERATORS = (
    '==', '!=', '<=', '>=', '&&', '||', '+=', '-=', '*=', '/=', '%=', '++', '--',
    '+', '-', '*', '/', '%', '^', '<', '>', '=', '!',
)

PUNCTUATION = frozenset('()[]{},:;@.')

ESCAPES = {'n': '\n', 't': '\t', '\\': '\\', '"': '"', "'": "'"}

# Tokens after which a '.' ends a statement rather than starting a number.
_VALUE_END_KINDS = frozenset({'ident', 'number', 'string'})


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    value: Any = None
    line: int = 1
    col: int = 1

    def __repr__(self):
        return f"Token({self.kind}, {self.text!r}, {self.line}:{self.col})"


class Lexer:
    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.line = 1
        self.col = 1
        self.tokens: List[Token] = []

    def peek(self, offset: int = 0) -> Optional[str]:
        idx = self.pos + offset
        if idx >= len(self.source):
            return None
        return self.source[idx]

    def advance(self, count: int = 1):
        for _ in range(count):
            if self.pos >= len(self.source):
                return
            if self.source[self.pos] == "\n":
                self.line += 1
                self.col = 1
            else:
                self.col += 1
            self.pos += 1

    def startswith(self, text: str) -> bool:
        return self.source.startswith(text, self.pos)

    def emit(self, kind, text, value=None, line=None, col=None):
        self.tokens.append(Token(kind, text, value, line or self.line, col or self.col))

    def run(self) -> List[Token]:
        while self.pos < len(self.source):
            ch = self.source[self.pos]
            if ch in " \t\r\n":
                self.advance()
            elif self.startswith('-->'):
                self.skip_block_comment()
            elif ch == '#':
                while self.peek() is not None and self.peek() != "\n":
                    self.advance()
            elif ch in '"\'':
                self.read_string(ch)
            elif ch.isdigit() or (ch == '.' and self._starts_fraction()):
                self.read_number()
            elif ch.isalpha() or ch == '_':
                self.read_word()
            else:
                self.read_symbol(ch)
        self.emit('eof', '')
        return self.tokens

    def skip_block_comment(self):
        # Runs to end of input when the closing marker is missing.
        self.advance(3)
        while self.pos < len(self.source) and not self.startswith('<--'):
            self.advance()
        self.advance(3)

    def _starts_fraction(self) -> bool:
        nxt = self.peek(1)
        if nxt is None or not nxt.isdigit():
            return False
        if not self.tokens:
            return True
        last = self.tokens[-1]
        if last.kind in _VALUE_END_KINDS or last.text in (')', ']', '}'):
            return False
        return last.kind != 'keyword' or last.text not in ('True', 'False', 'None')

    def read_string(self, quote: str):
        line, col, start = self.line, self.col, self.pos
        self.advance()
        chars = []
        while True:
            ch = self.peek()
            if ch is None:
                self.emit('error', 'Unterminated string', "Unterminated string", line, col)
                return
            if ch == quote:
                self.advance()
                break
            if ch == '\\':
                esc = self.peek(1)
                if esc is None:
                    self.advance()
                    continue
                chars.append(ESCAPES.get(esc, esc))
                self.advance(2)
                continue
            chars.append(ch)
            self.advance()
        self.emit('string', self.source[start:self.pos], ''.join(chars), line, col)

    def read_number(self):
        line, col, start = self.line, self.col, self.pos
        while self.peek() is not None and self.peek().isdigit():
            self.advance()
        is_float = False
        if self.peek() == '.' and self.peek(1) is not None and self.peek(1).isdigit():
            is_float = True
            self.advance()
            while self.peek() is not None and self.peek().isdigit():
                self.advance()
        text = self.source[start:self.pos]
        value = float(text) if is_float else int(text)
        self.emit('number', text, value, line, col)

    def read_word(self):
        line, col, start = self.line, self.col, self.pos
        while self.peek() is not None and (self.peek().isalnum() or self.peek() == '_'):
            self.advance()
        text = self.source[start:self.pos]
        if text in WORD_OPERATORS:
            self.emit('op', text, WORD_OPERATORS[text], line, col)
        elif text in KEYWORDS:
            self.emit('keyword', text, text, line, col)
        else:
            self.emit('ident', text, text, line, col)

    def read_symbol(self, ch: str):
        line, col = self.line, self.col
        for op in OPERATORS:
            if self.startswith(op):
                self.advance(len(op))
                self.emit('op', op, op, line, col)
                return
        self.advance()
        if ch in PUNCTUATION:
            self.emit('punct', ch, ch, line, col)
        else:
            self.emit('error', ch, f"Unexpected character '{ch}'", line, col)


def tokenize(source: str) -> List[Token]:
    """Splits source text into tokens, ending with a single `eof` token."""
    return Lexer(source).run()

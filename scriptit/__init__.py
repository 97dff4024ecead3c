"""ScriptIt: a small dynamically typed scripting language."""

__version__ = "2.0"

from scriptit.sit_runtime import ScriptRunner, ExecutionResult, StdLib
from scriptit.sit_parser import Parser, parse
from scriptit.sit_lexer import Token, tokenize
from scriptit.sit_printer import Printer

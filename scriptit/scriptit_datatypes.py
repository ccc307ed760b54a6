"""
Defines the core data types for the ScriptIt language runtime.

This module provides the token records produced by the tokenizer, the
postfix expression items and statement nodes produced by the parser, the
runtime function record stored in scopes, and the error hierarchy shared
by every stage of the pipeline.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Union


# =================================================================
# Errors
# =================================================================

class ScriptItError(Exception):
    """Base class for every error the interpreter raises on purpose."""

    def __init__(self, message: str, line: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.line = line

    def __str__(self):
        if self.line is not None and self.line >= 0:
            return f"{self.message} (line {self.line})"
        return self.message


class StaticError(ScriptItError):
    """Raised before execution starts. Always carries a line number."""


class LexError(StaticError):
    pass


class ParseError(StaticError):
    pass


class EvaluationError(ScriptItError):
    """Raised mid-execution; aborts the current top-level unit."""


class UnknownFunctionError(EvaluationError):
    def __init__(self, name: str, argc: int, line: Optional[int] = None):
        super().__init__(f"Unknown function call: {name} with {argc} argument(s)", line)
        self.name = name
        self.argc = argc


class ForwardDeclarationError(EvaluationError):
    def __init__(self, name: str, line: Optional[int] = None):
        super().__init__(f"Function '{name}' was forward-declared but never defined", line)
        self.name = name


class UndefinedForMutation(EvaluationError):
    def __init__(self, name: str, line: Optional[int] = None):
        super().__init__(
            f"Undefined variable '{name}' in current scope (cannot mutate outer scope).", line
        )
        self.name = name


class MethodNotFoundError(EvaluationError):
    pass


class RecursionLimitError(EvaluationError):
    pass


# =================================================================
# Tokens
# =================================================================

class TokenType(Enum):
    NUMBER = "Number"
    STRING = "String"
    IDENTIFIER = "Identifier"
    KEYWORD = "Keyword"
    OPERATOR = "Operator"
    ASSIGN = "Assign"          # =  +=  -=  *=  /=  %=
    INCDEC = "IncDec"          # ++  --
    ARROW = "Arrow"            # ->
    DASH = "Dash"              # ---
    SWAP = "Swap"              # <->
    LPAREN = "LParen"
    RPAREN = "RParen"
    LBRACKET = "LBracket"
    RBRACKET = "RBracket"
    LBRACE = "LBrace"
    RBRACE = "RBrace"
    DOT = "Dot"
    COLON = "Colon"
    SEMICOLON = "Semicolon"
    COMMA = "Comma"
    AT = "At"
    NEWLINE = "Newline"
    EOF = "Eof"


KEYWORDS = frozenset({
    "var", "fn", "give", "if", "elif", "else", "for", "in", "range", "from",
    "to", "step", "pass", "while", "are", "new", "let", "be", "of", "is",
    "points",
})


@dataclass(frozen=True)
class Token:
    kind: TokenType
    text: str
    offset: int = -1
    line: int = -1

    def is_(self, kind: TokenType, text: Optional[str] = None) -> bool:
        return self.kind is kind and (text is None or self.text == text)

    def __repr__(self):
        return f"<{self.kind.value} {self.text!r} @{self.line}>"


# =================================================================
# Expressions
# =================================================================

@dataclass
class Call:
    """Postfix marker: pop `argc` arguments and call `name`."""
    name: str
    argc: int
    line: int = -1


@dataclass
class MethodCall:
    """Postfix marker: pop `argc` arguments, then the receiver, and dispatch."""
    name: str
    argc: int
    line: int = -1


@dataclass
class Build:
    """Postfix marker: pop `count` values and build a list, set or dict."""
    kind: str
    count: int
    line: int = -1


@dataclass
class Postfix:
    """A flat expression in postfix order.

    Items are tokens, call and build markers, and whole `Logical` nodes. A
    `Logical` item is one operand: the evaluator runs it lazily when reached,
    so `a + (b && c)` still short-circuits inside the sequence.
    """
    items: List[Any] = field(default_factory=list)
    line: int = -1

    def is_empty(self) -> bool:
        return not self.items


@dataclass
class Logical:
    """A short-circuit `&&` / `||` node. Operands are evaluated lazily."""
    op: str
    left: 'Expression'
    right: 'Expression'
    line: int = -1


Expression = Union[Postfix, Logical]


# =================================================================
# Statements
# =================================================================

@dataclass
class Block:
    statements: List[Any] = field(default_factory=list)


@dataclass
class Assign:
    name: str
    expr: Expression
    is_declaration: bool = False
    line: int = -1


@dataclass
class MultiAssign:
    """`var a = 1, b, c = 3.` style declaration of several names."""
    assignments: List[Assign] = field(default_factory=list)


@dataclass
class If:
    branches: List[tuple] = field(default_factory=list)   # [(Expression, Block)]
    else_block: Optional[Block] = None


@dataclass
class ForRange:
    var: str
    start: Expression
    end: Expression
    step: Optional[Expression] = None
    body: Block = field(default_factory=Block)
    line: int = -1


@dataclass
class ForIn:
    var: str
    iterable: Expression
    body: Block = field(default_factory=Block)
    line: int = -1


@dataclass
class While:
    condition: Expression
    body: Block = field(default_factory=Block)


@dataclass
class FunctionDefStmt:
    name: str
    params: List[str]
    is_ref: List[bool]
    body: Optional[Block] = None
    line: int = -1


@dataclass
class Return:
    expr: Expression
    line: int = -1


@dataclass
class Pass:
    pass


@dataclass
class ExprStmt:
    expr: Expression
    line: int = -1


@dataclass
class LetContext:
    name: str
    resource: Expression
    body: Block = field(default_factory=Block)
    line: int = -1


# =================================================================
# Runtime records
# =================================================================

@dataclass
class FunctionDef:
    name: str
    params: List[str]
    is_ref: List[bool]
    body: Optional[Block] = None

    @property
    def arity(self) -> int:
        return len(self.params)

    @property
    def key(self) -> str:
        return function_key(self.name, len(self.params))

    def __repr__(self):
        marks = ", ".join(("@" if r else "") + p for p, r in zip(self.params, self.is_ref))
        kind = "fn" if self.body is not None else "declared fn"
        return f"<{kind} {self.name}({marks})>"


def function_key(name: str, arity: int) -> str:
    return f"{name}/{arity}"


@dataclass
class Returned:
    """Control outcome of a `give` statement.

    Statement executors hand this back up the call chain; loops and blocks
    only check for it and pass it on. It is never raised.
    """
    value: Any = None


def is_return(x) -> bool:
    return isinstance(x, Returned)


def unwrap_return(x):
    return x.value if is_return(x) else x

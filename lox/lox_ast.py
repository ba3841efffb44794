"""
Syntax tree node types for Lox.

Two closed families: expressions (`Expr`) and statements (`Stmt`). The
parser builds them; the resolver and the interpreter both walk them.

Nodes deliberately keep object identity for equality and hashing: the
interpreter's scope-distance table is keyed by the node itself, so two
textually identical expressions at different places must stay distinct.
"""

from abc import ABC
from collections import deque
from typing import Any, List, Optional

from lox.lox_tokens import Token


# =================================================================
# Abstract Base Classes
# =================================================================

class Expr(ABC):
    """Abstract base class for all expression nodes."""
    pass


class Stmt(ABC):
    """Abstract base class for all statement nodes."""
    pass


# =================================================================
# Expressions
# =================================================================

class Literal(Expr):
    """A number, string, boolean or nil written directly in the source."""
    def __init__(self, value: Any):
        self.value = value

    def __repr__(self) -> str:
        return f"Literal({self.value!r})"


class Grouping(Expr):
    """A parenthesized expression."""
    def __init__(self, expression: Expr):
        self.expression = expression

    def __repr__(self) -> str:
        return f"Grouping({self.expression!r})"


class Unary(Expr):
    def __init__(self, operator: Token, right: Expr):
        self.operator = operator
        self.right = right

    def __repr__(self) -> str:
        return f"Unary({self.operator.lexeme!r}, {self.right!r})"


class Binary(Expr):
    def __init__(self, left: Expr, operator: Token, right: Expr):
        self.left = left
        self.operator = operator
        self.right = right

    def __repr__(self) -> str:
        return f"Binary({self.left!r}, {self.operator.lexeme!r}, {self.right!r})"


class Logical(Expr):
    """`and` / `or`; kept apart from Binary because it short-circuits."""
    def __init__(self, left: Expr, operator: Token, right: Expr):
        self.left = left
        self.operator = operator
        self.right = right

    def __repr__(self) -> str:
        return f"Logical({self.left!r}, {self.operator.lexeme!r}, {self.right!r})"


class Variable(Expr):
    def __init__(self, name: Token):
        self.name = name

    def __repr__(self) -> str:
        return f"Variable({self.name.lexeme!r})"


class Assign(Expr):
    def __init__(self, name: Token, value: Expr):
        self.name = name
        self.value = value

    def __repr__(self) -> str:
        return f"Assign({self.name.lexeme!r}, {self.value!r})"


class Call(Expr):
    """A call; `paren` is the closing parenthesis, used to locate errors."""
    def __init__(self, callee: Expr, paren: Token, arguments: List[Expr]):
        self.callee = callee
        self.paren = paren
        self.arguments = arguments

    def __repr__(self) -> str:
        return f"Call({self.callee!r}, {self.arguments!r})"


class Get(Expr):
    def __init__(self, object: Expr, name: Token):
        self.object = object
        self.name = name

    def __repr__(self) -> str:
        return f"Get({self.object!r}, {self.name.lexeme!r})"


class Set(Expr):
    def __init__(self, object: Expr, name: Token, value: Expr):
        self.object = object
        self.name = name
        self.value = value

    def __repr__(self) -> str:
        return f"Set({self.object!r}, {self.name.lexeme!r}, {self.value!r})"


class This(Expr):
    def __init__(self, keyword: Token):
        self.keyword = keyword

    def __repr__(self) -> str:
        return "This()"


class Super(Expr):
    def __init__(self, keyword: Token, method: Token):
        self.keyword = keyword
        self.method = method

    def __repr__(self) -> str:
        return f"Super({self.method.lexeme!r})"


# =================================================================
# Statements
# =================================================================

class ExpressionStmt(Stmt):
    def __init__(self, expression: Expr):
        self.expression = expression

    def __repr__(self) -> str:
        return f"ExpressionStmt({self.expression!r})"


class Print(Stmt):
    def __init__(self, expression: Expr):
        self.expression = expression

    def __repr__(self) -> str:
        return f"Print({self.expression!r})"


class Var(Stmt):
    def __init__(self, name: Token, initializer: Optional[Expr]):
        self.name = name
        self.initializer = initializer

    def __repr__(self) -> str:
        return f"Var({self.name.lexeme!r}, {self.initializer!r})"


class Block(Stmt):
    def __init__(self, statements: List[Stmt]):
        self.statements = statements

    def __repr__(self) -> str:
        return f"Block({self.statements!r})"


class If(Stmt):
    def __init__(self, condition: Expr, then_branch: Stmt, else_branch: Optional[Stmt]):
        self.condition = condition
        self.then_branch = then_branch
        self.else_branch = else_branch

    def __repr__(self) -> str:
        return f"If({self.condition!r}, {self.then_branch!r}, {self.else_branch!r})"


class While(Stmt):
    def __init__(self, condition: Expr, body: Stmt):
        self.condition = condition
        self.body = body

    def __repr__(self) -> str:
        return f"While({self.condition!r}, {self.body!r})"


class Function(Stmt):
    """A named function or method declaration.

    The body is a plain statement list rather than a Block: the call
    environment that holds the parameters is also the body's scope.
    """
    def __init__(self, name: Token, params: List[Token], body: List[Stmt]):
        self.name = name
        self.params = params
        self.body = body

    def __repr__(self) -> str:
        params = [p.lexeme for p in self.params]
        return f"Function({self.name.lexeme!r}, {params!r}, {self.body!r})"


class Return(Stmt):
    def __init__(self, keyword: Token, value: Optional[Expr]):
        self.keyword = keyword
        self.value = value

    def __repr__(self) -> str:
        return f"Return({self.value!r})"


class ClassDecl(Stmt):
    def __init__(self, name: Token, superclass: Optional[Variable], methods: List[Function]):
        self.name = name
        self.superclass = superclass
        self.methods = methods

    def __repr__(self) -> str:
        return f"ClassDecl({self.name.lexeme!r}, {self.superclass!r}, {self.methods!r})"


def first_line(node, default: int = 1) -> int:
    """Line of the shallowest token under `node`.

    Walks breadth-first without recursion, so it is safe on trees too deep
    for the recursive passes.
    """
    pending = deque([node])
    while pending:
        current = pending.popleft()
        if isinstance(current, Token):
            return current.line
        if isinstance(current, list):
            pending.extend(current)
        elif isinstance(current, (Expr, Stmt)):
            pending.extend(vars(current).values())
    return default

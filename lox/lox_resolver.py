"""
Static pass between parsing and evaluation.

Walks the tree once, keeping a stack of block scopes, and tells the
interpreter how many environments to hop for every local variable
reference. It also rejects programs that are well-formed but meaningless
(`return` at top level, `this` outside a class and so on).
"""
from enum import Enum, auto
from typing import Any, Dict, List, Optional

from lox.lox_tokens import Token
from lox.lox_ast import (
    Expr, Stmt,
    Assign, Binary, Call, Get, Grouping, Literal, Logical, Set, Super, This, Unary, Variable,
    Block, ClassDecl, ExpressionStmt, Function, If, Print, Return, Var, While,
    first_line,
)


class FunctionType(Enum):
    NONE = auto()
    FUNCTION = auto()
    METHOD = auto()
    INITIALIZER = auto()


class ClassType(Enum):
    NONE = auto()
    CLASS = auto()
    SUBCLASS = auto()


class Resolver:
    """Records scope distances into the interpreter and reports static errors.

    The global scope is never pushed: a name not found in any scope on the
    stack is left unrecorded and looked up in globals at run time.
    """
    def __init__(self, interpreter: Any, reporter: Optional[Any] = None):
        if reporter is None:
            reporter = interpreter.reporter
        self.interpreter = interpreter
        self.reporter = reporter
        # Each scope maps name -> "initializer finished".
        self.scopes: List[Dict[str, bool]] = []
        self.current_function = FunctionType.NONE
        self.current_class = ClassType.NONE

    def resolve(self, statements: List[Stmt]):
        """Resolves a batch of top-level statements."""
        for stmt in statements:
            try:
                self._resolve_stmt(stmt)
            except RecursionError:
                # Unwound mid-walk, so the scope stack and context flags are stale.
                self.scopes = []
                self.current_function = FunctionType.NONE
                self.current_class = ClassType.NONE
                self.reporter.syntax_error(first_line(stmt), "", "Expression nesting too deep.")

    def _resolve_statements(self, statements: List[Stmt]):
        for stmt in statements:
            self._resolve_stmt(stmt)

    # --- Statements ---

    def _resolve_stmt(self, stmt: Stmt):
        match stmt:
            case Block():
                self._begin_scope()
                self._resolve_statements(stmt.statements)
                self._end_scope()
            case ClassDecl():
                self._resolve_class(stmt)
            case Var():
                self._declare(stmt.name)
                if stmt.initializer is not None:
                    self._resolve_expr(stmt.initializer)
                self._define(stmt.name)
            case Function():
                # Defined before the body so the function can recurse.
                self._declare(stmt.name)
                self._define(stmt.name)
                self._resolve_function(stmt, FunctionType.FUNCTION)
            case ExpressionStmt():
                self._resolve_expr(stmt.expression)
            case If():
                self._resolve_expr(stmt.condition)
                self._resolve_stmt(stmt.then_branch)
                if stmt.else_branch is not None:
                    self._resolve_stmt(stmt.else_branch)
            case Print():
                self._resolve_expr(stmt.expression)
            case Return():
                self._resolve_return(stmt)
            case While():
                self._resolve_expr(stmt.condition)
                self._resolve_stmt(stmt.body)
            case _:
                raise NotImplementedError(f"Resolver cannot handle statement node: {stmt!r}")

    def _resolve_class(self, stmt: ClassDecl):
        enclosing_class = self.current_class
        self.current_class = ClassType.CLASS

        self._declare(stmt.name)
        self._define(stmt.name)

        if stmt.superclass is not None:
            if stmt.superclass.name.lexeme == stmt.name.lexeme:
                self.reporter.token_error(stmt.superclass.name, "A class can't inherit from itself.")
            self.current_class = ClassType.SUBCLASS
            self._resolve_expr(stmt.superclass)

            self._begin_scope()
            self.scopes[-1]["super"] = True

        self._begin_scope()
        self.scopes[-1]["this"] = True

        for method in stmt.methods:
            kind = FunctionType.INITIALIZER if method.name.lexeme == "init" else FunctionType.METHOD
            self._resolve_function(method, kind)

        self._end_scope()
        if stmt.superclass is not None:
            self._end_scope()

        self.current_class = enclosing_class

    def _resolve_function(self, function: Function, kind: FunctionType):
        enclosing_function = self.current_function
        self.current_function = kind

        # Parameters and body share one scope, matching the single call environment.
        self._begin_scope()
        for param in function.params:
            self._declare(param)
            self._define(param)
        self._resolve_statements(function.body)
        self._end_scope()

        self.current_function = enclosing_function

    def _resolve_return(self, stmt: Return):
        if self.current_function == FunctionType.NONE:
            self.reporter.token_error(stmt.keyword, "Can't return from top-level code.")

        if stmt.value is not None:
            if self.current_function == FunctionType.INITIALIZER:
                self.reporter.token_error(stmt.keyword, "Can't return a value from an initializer.")
            self._resolve_expr(stmt.value)

    # --- Expressions ---

    def _resolve_expr(self, expr: Expr):
        match expr:
            case Literal():
                pass
            case Grouping():
                self._resolve_expr(expr.expression)
            case Variable():
                if self.scopes and self.scopes[-1].get(expr.name.lexeme) is False:
                    self.reporter.token_error(expr.name, "Can't read local variable in its own initializer.")
                self._resolve_local(expr, expr.name)
            case Assign():
                self._resolve_expr(expr.value)
                self._resolve_local(expr, expr.name)
            case Unary():
                self._resolve_expr(expr.right)
            case Binary() | Logical():
                self._resolve_expr(expr.left)
                self._resolve_expr(expr.right)
            case Call():
                self._resolve_expr(expr.callee)
                for argument in expr.arguments:
                    self._resolve_expr(argument)
            case Get():
                # Property names are looked up dynamically; only the object resolves.
                self._resolve_expr(expr.object)
            case Set():
                self._resolve_expr(expr.value)
                self._resolve_expr(expr.object)
            case This():
                if self.current_class == ClassType.NONE:
                    self.reporter.token_error(expr.keyword, "Can't use 'this' outside of a class.")
                    return
                self._resolve_local(expr, expr.keyword)
            case Super():
                if self.current_class == ClassType.NONE:
                    self.reporter.token_error(expr.keyword, "Can't use 'super' outside of a class.")
                elif self.current_class != ClassType.SUBCLASS:
                    self.reporter.token_error(expr.keyword, "Can't use 'super' in a class with no superclass.")
                self._resolve_local(expr, expr.keyword)
            case _:
                raise NotImplementedError(f"Resolver cannot handle expression node: {expr!r}")

    def _resolve_local(self, expr: Expr, name: Token):
        for i in range(len(self.scopes) - 1, -1, -1):
            if name.lexeme in self.scopes[i]:
                self.interpreter.resolve(expr, len(self.scopes) - 1 - i)
                return

    # --- Scope stack ---

    def _begin_scope(self):
        self.scopes.append({})

    def _end_scope(self):
        self.scopes.pop()

    def _declare(self, name: Token):
        if not self.scopes:
            return
        scope = self.scopes[-1]
        if name.lexeme in scope:
            self.reporter.token_error(name, "There already is a variable with this name in this scope.")
        scope[name.lexeme] = False

    def _define(self, name: Token):
        if not self.scopes:
            return
        self.scopes[-1][name.lexeme] = True

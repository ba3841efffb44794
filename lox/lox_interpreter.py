"""
The core Lox interpreter: a tree-walking evaluator over the runtime object model.
"""
import math
import os
import sys
from typing import Any, Dict, List, Optional, TextIO

from lox.lox_tokens import Token, TokenType
from lox.lox_ast import (
    Expr, Stmt,
    Assign, Binary, Call, Get, Grouping, Literal, Logical, Set, Super, This, Unary, Variable,
    Block, ClassDecl, ExpressionStmt, Function, If, Print, Return, Var, While,
    first_line,
)
from lox.lox_datatypes import (
    Environment, LoxCallable, LoxClass, LoxFunction, LoxInstance, LoxRuntimeError,
    NativeFunction, Returning,
)
from lox.lox_printer import Printer


def is_truthy(value: Any) -> bool:
    """Only nil and false are falsy; 0 and "" are truthy."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    return True


def is_number(value: Any) -> bool:
    # bool is an int subclass in Python but never a Lox number.
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_equal(a: Any, b: Any) -> bool:
    """Lox equality: nil equals only nil, and values of different types are never equal."""
    if a is None and b is None:
        return True
    if a is None or b is None:
        return False
    if is_number(a) and is_number(b):
        return a == b
    if type(a) is not type(b):
        return False
    return a == b


def _divide(left: float, right: float) -> float:
    """IEEE-754 division; Python raises where Lox yields inf or nan."""
    try:
        return left / right
    except ZeroDivisionError:
        if left == 0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left) * math.copysign(1.0, right)


def _line_token(stmt: Stmt) -> Token:
    line = first_line(stmt)
    return Token(TokenType.EOF, "", None, line)


class Interpreter:
    """The Lox execution engine.

    Holds the global environment, the current environment and the
    scope-distance table filled in by the resolver. Runtime errors are
    raised as LoxRuntimeError and caught only in `interpret`.
    """
    def __init__(self, reporter: Optional[Any] = None, out: Optional[TextIO] = None):
        if reporter is None:
            from lox.lox_runtime import ErrorReporter
            reporter = ErrorReporter()
        self.reporter = reporter
        # None means "sys.stdout at the time of printing".
        self.out = out
        self.globals = Environment()
        self.environment = self.globals
        self.locals: Dict[Expr, int] = {}
        self.printer = Printer()
        self.call_stack: List[Dict[str, Any]] = []

    def _dbg(self, *parts):
        if os.environ.get("LOX_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    # --- Host-facing API ---

    def interpret(self, statements: List[Stmt]) -> Optional[LoxRuntimeError]:
        """Runs a batch of top-level statements.

        A runtime error stops the rest of the batch, is reported, and is
        handed back to the caller; None means the batch completed.
        """
        try:
            for stmt in statements:
                try:
                    self.execute(stmt)
                except RecursionError:
                    # Nested too deep outside any call; calls convert their own overflow.
                    self.environment = self.globals
                    raise LoxRuntimeError(_line_token(stmt), "Stack overflow.") from None
        except LoxRuntimeError as e:
            self._dbg("Runtime error", repr(e.message), "line", e.token.line)
            self.call_stack.clear()
            self.reporter.runtime_error(e.message, e.token.line)
            return e
        return None

    def resolve(self, expr: Expr, depth: int):
        """Called by the resolver for every local variable reference."""
        self.locals[expr] = depth

    def define_native(self, name: str, arity: int, fn) -> NativeFunction:
        native = NativeFunction(name, arity, fn)
        self.globals.define(name, native)
        return native

    def stringify(self, value: Any) -> str:
        return self.printer.pformat(value)

    # --- Statements ---

    def execute(self, stmt: Stmt) -> Optional[Returning]:
        """Executes one statement; a Returning outcome means a `return` is unwinding."""
        match stmt:
            case ExpressionStmt():
                self.evaluate(stmt.expression)
            case Print():
                value = self.evaluate(stmt.expression)
                print(self.stringify(value), file=self.out)
            case Var():
                value = None
                if stmt.initializer is not None:
                    value = self.evaluate(stmt.initializer)
                self.environment.define(stmt.name.lexeme, value)
            case Block():
                return self.execute_block(stmt.statements, Environment(parent=self.environment))
            case If():
                if is_truthy(self.evaluate(stmt.condition)):
                    return self.execute(stmt.then_branch)
                if stmt.else_branch is not None:
                    return self.execute(stmt.else_branch)
            case While():
                while is_truthy(self.evaluate(stmt.condition)):
                    outcome = self.execute(stmt.body)
                    if outcome is not None:
                        return outcome
            case Function():
                function = LoxFunction(stmt, self.environment, is_initializer=False)
                self.environment.define(stmt.name.lexeme, function)
            case Return():
                value = None
                if stmt.value is not None:
                    value = self.evaluate(stmt.value)
                return Returning(value)
            case ClassDecl():
                self._execute_class(stmt)
            case _:
                raise NotImplementedError(f"Interpreter cannot execute statement node: {stmt!r}")
        return None

    def execute_block(self, statements: List[Stmt], environment: Environment) -> Optional[Returning]:
        previous = self.environment
        try:
            self.environment = environment
            for stmt in statements:
                outcome = self.execute(stmt)
                if outcome is not None:
                    return outcome
        finally:
            self.environment = previous
        return None

    def _execute_class(self, stmt: ClassDecl):
        superclass = None
        if stmt.superclass is not None:
            superclass = self.evaluate(stmt.superclass)
            if not isinstance(superclass, LoxClass):
                raise LoxRuntimeError(stmt.superclass.name, "Superclass must be a class.")

        # Bound first so methods can refer to the class by name.
        self.environment.define(stmt.name.lexeme, None)

        if superclass is not None:
            self.environment = Environment(parent=self.environment)
            self.environment.define("super", superclass)

        methods: Dict[str, LoxFunction] = {}
        for method in stmt.methods:
            is_initializer = method.name.lexeme == "init"
            methods[method.name.lexeme] = LoxFunction(method, self.environment, is_initializer)

        klass = LoxClass(stmt.name.lexeme, superclass, methods)

        if superclass is not None:
            self.environment = self.environment.parent

        self._dbg("Class", klass.name, "super", superclass.name if superclass else None, "methods", list(methods))
        self.environment.assign(stmt.name, klass)

    # --- Expressions ---

    def evaluate(self, expr: Expr) -> Any:
        match expr:
            case Literal():
                return expr.value
            case Grouping():
                return self.evaluate(expr.expression)
            case Unary():
                return self._evaluate_unary(expr)
            case Binary():
                return self._evaluate_binary(expr)
            case Logical():
                left = self.evaluate(expr.left)
                if expr.operator.type == TokenType.OR:
                    if is_truthy(left):
                        return left
                elif not is_truthy(left):
                    return left
                return self.evaluate(expr.right)
            case Variable():
                return self._look_up_variable(expr.name, expr)
            case Assign():
                value = self.evaluate(expr.value)
                distance = self.locals.get(expr)
                if distance is not None:
                    self.environment.assign_at(distance, expr.name, value)
                else:
                    self.globals.assign(expr.name, value)
                return value
            case Call():
                return self._evaluate_call(expr)
            case Get():
                obj = self.evaluate(expr.object)
                if isinstance(obj, LoxInstance):
                    return obj.get(expr.name)
                raise LoxRuntimeError(expr.name, "Only instances have properties.")
            case Set():
                obj = self.evaluate(expr.object)
                if not isinstance(obj, LoxInstance):
                    raise LoxRuntimeError(expr.name, "Only instances have fields.")
                value = self.evaluate(expr.value)
                obj.set(expr.name, value)
                return value
            case This():
                return self._look_up_variable(expr.keyword, expr)
            case Super():
                return self._evaluate_super(expr)
            case _:
                raise NotImplementedError(f"Interpreter cannot evaluate expression node: {expr!r}")

    def _evaluate_unary(self, expr: Unary) -> Any:
        right = self.evaluate(expr.right)

        match expr.operator.type:
            case TokenType.BANG:
                return not is_truthy(right)
            case TokenType.MINUS:
                self._check_number_operand(expr.operator, right)
                return -right
        raise NotImplementedError(f"Unknown unary operator: {expr.operator.lexeme!r}")

    def _evaluate_binary(self, expr: Binary) -> Any:
        left = self.evaluate(expr.left)
        right = self.evaluate(expr.right)
        op = expr.operator

        match op.type:
            case TokenType.EQUAL_EQUAL:
                return is_equal(left, right)
            case TokenType.BANG_EQUAL:
                return not is_equal(left, right)
            case TokenType.PLUS:
                if is_number(left) and is_number(right):
                    return left + right
                if isinstance(left, str) and isinstance(right, str):
                    return left + right
                raise LoxRuntimeError(op, "Operands must be two numbers or two strings.")

        self._check_number_operands(op, left, right)
        match op.type:
            case TokenType.MINUS:
                return left - right
            case TokenType.STAR:
                return left * right
            case TokenType.SLASH:
                return _divide(left, right)
            case TokenType.GREATER:
                return left > right
            case TokenType.GREATER_EQUAL:
                return left >= right
            case TokenType.LESS:
                return left < right
            case TokenType.LESS_EQUAL:
                return left <= right
        raise NotImplementedError(f"Unknown binary operator: {op.lexeme!r}")

    def _evaluate_call(self, expr: Call) -> Any:
        callee = self.evaluate(expr.callee)
        arguments = [self.evaluate(argument) for argument in expr.arguments]

        if not isinstance(callee, LoxCallable):
            raise LoxRuntimeError(expr.paren, "Can only call functions and classes.")
        if len(arguments) != callee.arity():
            raise LoxRuntimeError(expr.paren, f"Expected {callee.arity()} arguments but got {len(arguments)}.")

        self._dbg("Call", self.stringify(callee), "argc", len(arguments), "line", expr.paren.line)
        self._push_frame(callee, expr.paren)
        try:
            return callee.call(self, arguments)
        except RecursionError:
            raise LoxRuntimeError(expr.paren, "Stack overflow.") from None
        except LoxRuntimeError as e:
            # Keep the deepest view of the stack; outer frames see the error later.
            if getattr(e, "stacktrace", None) is None:
                e.stacktrace = list(self.call_stack)
            raise
        finally:
            self._pop_frame()

    def _evaluate_super(self, expr: Super) -> Any:
        distance = self.locals[expr]
        superclass = self.environment.get_at(distance, "super")
        # `this` lives in the environment just inside the one holding `super`.
        instance = self.environment.get_at(distance - 1, "this")

        method = superclass.find_method(expr.method.lexeme)
        if method is None:
            raise LoxRuntimeError(expr.method, f"Undefined property '{expr.method.lexeme}'.")
        return method.bind(instance)

    def _look_up_variable(self, name: Token, expr: Expr) -> Any:
        distance = self.locals.get(expr)
        if distance is not None:
            return self.environment.get_at(distance, name.lexeme)
        return self.globals.get(name)

    def _check_number_operand(self, operator: Token, operand: Any):
        if is_number(operand):
            return
        raise LoxRuntimeError(operator, "Operand must be a number.")

    def _check_number_operands(self, operator: Token, left: Any, right: Any):
        if is_number(left) and is_number(right):
            return
        raise LoxRuntimeError(operator, "Operands must be numbers.")

    # --- Call stack bookkeeping for error reports ---

    def _push_frame(self, callee: LoxCallable, paren: Token):
        self.call_stack.append({
            'name': self.stringify(callee),
            'line': paren.line,
        })

    def _pop_frame(self):
        if self.call_stack:
            self.call_stack.pop()

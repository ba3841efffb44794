"""
Text renderings for Lox: runtime values as `print` shows them, and syntax
trees as parenthesized prefix text for debugging.
"""
from lox.lox_ast import (
    Assign, Binary, Call, Get, Grouping, Literal, Logical, Set, Super, This, Unary, Variable,
    Block, ClassDecl, ExpressionStmt, Function, If, Print, Return, Var, While,
)
from lox.lox_datatypes import LoxCallable, LoxInstance


class Printer:
    """Formats runtime values exactly as the `print` statement writes them."""

    def __init__(self):
        self._handlers = self._create_handlers()

    def pformat(self, obj) -> str:
        """Public entry point to format a value."""
        handler = self._get_handler(obj)
        return handler(obj)

    def _get_handler(self, obj):
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        if isinstance(obj, (LoxCallable, LoxInstance)):
            return self._pformat_object
        # Host values that leak in through natives
        return lambda o: str(o)

    def _create_handlers(self):
        return {
            type(None): self._pformat_nil,
            bool: self._pformat_bool,
            float: self._pformat_number,
            int: self._pformat_number,
            str: self._pformat_str,
        }

    def _pformat_nil(self, obj):
        return "nil"

    def _pformat_bool(self, obj):
        return "true" if obj else "false"

    def _pformat_number(self, obj):
        text = repr(float(obj))
        if text.endswith(".0"):
            text = text[:-2]
        return text

    def _pformat_str(self, obj):
        return obj

    def _pformat_object(self, obj):
        return str(obj)


class AstPrinter:
    """Renders syntax trees in Lisp-like prefix form, e.g. `(* (- 123) (group 45.67))`."""

    def print(self, node) -> str:
        match node:
            # Expressions
            case Literal():
                if isinstance(node.value, str):
                    return node.value
                return Printer().pformat(node.value)
            case Grouping():
                return self._parenthesize("group", node.expression)
            case Unary():
                return self._parenthesize(node.operator.lexeme, node.right)
            case Binary() | Logical():
                return self._parenthesize(node.operator.lexeme, node.left, node.right)
            case Variable():
                return node.name.lexeme
            case Assign():
                return self._parenthesize(f"= {node.name.lexeme}", node.value)
            case Call():
                return self._parenthesize("call", node.callee, *node.arguments)
            case Get():
                return self._parenthesize(f". {node.name.lexeme}", node.object)
            case Set():
                return self._parenthesize(f"= . {node.name.lexeme}", node.object, node.value)
            case This():
                return "this"
            case Super():
                return f"(super {node.method.lexeme})"

            # Statements
            case ExpressionStmt():
                return self._parenthesize(";", node.expression)
            case Print():
                return self._parenthesize("print", node.expression)
            case Var():
                if node.initializer is None:
                    return f"(var {node.name.lexeme})"
                return self._parenthesize(f"var {node.name.lexeme}", node.initializer)
            case Block():
                return self._parenthesize("block", *node.statements)
            case If():
                if node.else_branch is None:
                    return self._parenthesize("if", node.condition, node.then_branch)
                return self._parenthesize("if-else", node.condition, node.then_branch, node.else_branch)
            case While():
                return self._parenthesize("while", node.condition, node.body)
            case Function():
                params = " ".join(p.lexeme for p in node.params)
                return self._parenthesize(f"fun {node.name.lexeme} ({params})", *node.body)
            case Return():
                if node.value is None:
                    return "(return)"
                return self._parenthesize("return", node.value)
            case ClassDecl():
                head = f"class {node.name.lexeme}"
                if node.superclass is not None:
                    head += f" < {node.superclass.name.lexeme}"
                return self._parenthesize(head, *node.methods)
            case _:
                raise NotImplementedError(f"AstPrinter cannot handle node: {node!r}")

    def print_program(self, statements) -> str:
        return "\n".join(self.print(stmt) for stmt in statements)

    def _parenthesize(self, name, *nodes) -> str:
        parts = [name] + [self.print(n) for n in nodes]
        return f"({' '.join(parts)})"

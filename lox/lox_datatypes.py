"""
Defines the runtime object model for the Lox interpreter.

Environments, the callable values (native functions, user functions and
classes), instances, the runtime error and the `Returning` control outcome
that carries a `return` back to the nearest call boundary.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

from lox.lox_tokens import Token

if TYPE_CHECKING:
    from lox.lox_ast import Function
    from lox.lox_interpreter import Interpreter


class LoxRuntimeError(Exception):
    """A user-facing error raised while evaluating; carries the offending token for its line."""
    def __init__(self, token: Token, message: str):
        super().__init__(message)
        self.token = token
        self.message = message


class Returning:
    """Control outcome of executing a `return` statement.

    `Interpreter.execute` hands this back instead of None; blocks, loops and
    `if` pass it up untouched and only `LoxFunction.call` consumes it.
    """
    __slots__ = ("value",)

    def __init__(self, value: Any):
        self.value = value

    def __repr__(self) -> str:
        return f"Returning({self.value!r})"


# =================================================================
# Environments
# =================================================================

class Environment:
    """One lexical frame: name -> value bindings plus the enclosing frame.

    Frames are shared by reference. A closure keeps its defining frame alive
    and later writes through any holder are visible to all of them.
    """
    def __init__(self, parent: Optional['Environment'] = None):
        self.bindings: Dict[str, Any] = {}
        self.parent = parent

    def define(self, name: str, value: Any):
        # Redefinition is allowed; the global scope relies on it.
        self.bindings[name] = value

    def get(self, name: Token) -> Any:
        env = self
        while env is not None:
            if name.lexeme in env.bindings:
                return env.bindings[name.lexeme]
            env = env.parent
        raise LoxRuntimeError(name, f"Undefined variable '{name.lexeme}'.")

    def assign(self, name: Token, value: Any):
        env = self
        while env is not None:
            if name.lexeme in env.bindings:
                env.bindings[name.lexeme] = value
                return
            env = env.parent
        raise LoxRuntimeError(name, f"Undefined variable '{name.lexeme}'.")

    def ancestor(self, distance: int) -> 'Environment':
        env = self
        for _ in range(distance):
            env = env.parent
        return env

    def get_at(self, distance: int, name: str) -> Any:
        return self.ancestor(distance).bindings[name]

    def assign_at(self, distance: int, name: Token, value: Any):
        self.ancestor(distance).bindings[name.lexeme] = value

    def __contains__(self, name: str) -> bool:
        return name in self.bindings

    def __repr__(self) -> str:
        keys = ', '.join(self.bindings.keys())
        parent_id = f", parent=#{id(self.parent)}" if self.parent else ""
        return f"<Environment bindings=[{keys}]{parent_id}>"


# =================================================================
# Callables
# =================================================================

class LoxCallable(ABC):
    """Abstract base class for every value a Lox call expression can invoke."""

    @abstractmethod
    def arity(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def call(self, interpreter: 'Interpreter', arguments: List[Any]) -> Any:
        raise NotImplementedError


class NativeFunction(LoxCallable):
    """A host-provided function with a fixed arity."""
    def __init__(self, name: str, arity: int, fn: Callable[..., Any]):
        self.name = name
        self._arity = arity
        self.fn = fn

    def arity(self) -> int:
        return self._arity

    def call(self, interpreter: 'Interpreter', arguments: List[Any]) -> Any:
        return self.fn(*arguments)

    def __str__(self) -> str:
        return "<native fn>"

    def __repr__(self) -> str:
        return f"<NativeFunction name={self.name!r} arity={self._arity}>"


class LoxFunction(LoxCallable):
    """A user function or method: its declaration plus the environment it closes over."""
    def __init__(self, declaration: 'Function', closure: Environment, is_initializer: bool = False):
        self.declaration = declaration
        self.closure = closure
        self.is_initializer = is_initializer

    @property
    def name(self) -> str:
        return self.declaration.name.lexeme

    def bind(self, instance: 'LoxInstance') -> 'LoxFunction':
        """Returns a copy of this method whose closure defines `this` as instance."""
        env = Environment(parent=self.closure)
        env.define("this", instance)
        return LoxFunction(self.declaration, env, self.is_initializer)

    def arity(self) -> int:
        return len(self.declaration.params)

    def call(self, interpreter: 'Interpreter', arguments: List[Any]) -> Any:
        env = Environment(parent=self.closure)
        for param, arg in zip(self.declaration.params, arguments):
            env.define(param.lexeme, arg)

        outcome = interpreter.execute_block(self.declaration.body, env)

        # init() always yields the instance, even after a bare `return;`.
        if self.is_initializer:
            return self.closure.get_at(0, "this")
        if isinstance(outcome, Returning):
            return outcome.value
        return None

    def __str__(self) -> str:
        return f"<fn {self.name}>"

    def __repr__(self) -> str:
        return f"<LoxFunction name={self.name!r} arity={self.arity()}>"


class LoxClass(LoxCallable):
    """A class value. Calling it constructs an instance and runs `init` if one exists."""
    def __init__(self, name: str, superclass: Optional['LoxClass'], methods: Dict[str, LoxFunction]):
        self.name = name
        self.superclass = superclass
        self.methods = methods

    def find_method(self, name: str) -> Optional[LoxFunction]:
        klass = self
        while klass is not None:
            if name in klass.methods:
                return klass.methods[name]
            klass = klass.superclass
        return None

    def arity(self) -> int:
        initializer = self.find_method("init")
        return initializer.arity() if initializer else 0

    def call(self, interpreter: 'Interpreter', arguments: List[Any]) -> Any:
        instance = LoxInstance(self)
        initializer = self.find_method("init")
        if initializer is not None:
            initializer.bind(instance).call(interpreter, arguments)
        return instance

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        methods = ', '.join(self.methods.keys())
        return f"<LoxClass name={self.name!r} methods=[{methods}]>"


# =================================================================
# Instances
# =================================================================

class LoxInstance:
    """An object created by calling a class; fields appear on first assignment."""
    def __init__(self, klass: LoxClass):
        self.klass = klass
        self.fields: Dict[str, Any] = {}

    def get(self, name: Token) -> Any:
        # Fields shadow methods of the same name.
        if name.lexeme in self.fields:
            return self.fields[name.lexeme]

        method = self.klass.find_method(name.lexeme)
        if method is not None:
            return method.bind(self)

        raise LoxRuntimeError(name, f"Undefined property '{name.lexeme}'.")

    def set(self, name: Token, value: Any):
        self.fields[name.lexeme] = value

    def __str__(self) -> str:
        return f"{self.klass.name} instance"

    def __repr__(self) -> str:
        fields = ', '.join(self.fields.keys())
        return f"<LoxInstance class={self.klass.name!r} fields=[{fields}]>"

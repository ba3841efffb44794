import io

import pytest

from lox.lox_datatypes import (
    Environment, LoxClass, LoxFunction, LoxInstance, LoxRuntimeError, NativeFunction, Returning,
)
from lox.lox_tokens import Token, TokenType
from lox.lox_scanner import Scanner
from lox.lox_parser import Parser
from lox.lox_interpreter import Interpreter
from lox.lox_resolver import Resolver
from lox.lox_runtime import ErrorReporter


def name(lexeme, line=1):
    return Token(TokenType.IDENTIFIER, lexeme, None, line)


def declare(source, interpreter):
    """Parses and resolves a single function declaration."""
    function = Parser(Scanner(source).scan_tokens()).parse()[0]
    Resolver(interpreter).resolve([function])
    return function


@pytest.fixture
def interpreter():
    return Interpreter(reporter=ErrorReporter(stream=io.StringIO()), out=io.StringIO())


# --- Environment ---

def test_define_get_assign():
    env = Environment()
    env.define("a", 1.0)
    assert env.get(name("a")) == 1.0
    env.assign(name("a"), 2.0)
    assert env.get(name("a")) == 2.0
    assert "a" in env
    assert "b" not in env


def test_lookup_walks_the_parent_chain():
    outer = Environment()
    outer.define("a", "outer")
    inner = Environment(parent=outer)
    assert inner.get(name("a")) == "outer"
    inner.assign(name("a"), "changed")
    # Assignment lands in the frame that owns the binding.
    assert outer.bindings["a"] == "changed"
    assert "a" not in inner


def test_undefined_get_and_assign_raise():
    env = Environment()
    with pytest.raises(LoxRuntimeError) as exc:
        env.get(name("missing", line=4))
    assert exc.value.message == "Undefined variable 'missing'."
    assert exc.value.token.line == 4
    with pytest.raises(LoxRuntimeError):
        env.assign(name("missing"), 1)


def test_get_at_and_assign_at_use_exact_distance():
    root = Environment()
    root.define("x", "root")
    mid = Environment(parent=root)
    mid.define("x", "mid")
    leaf = Environment(parent=mid)
    assert leaf.ancestor(2) is root
    assert leaf.get_at(1, "x") == "mid"
    assert leaf.get_at(2, "x") == "root"
    leaf.assign_at(2, name("x"), "new")
    assert root.bindings["x"] == "new"
    assert mid.bindings["x"] == "mid"


def test_redefinition_overwrites():
    env = Environment()
    env.define("a", 1)
    env.define("a", 2)
    assert env.bindings == {"a": 2}


# --- Callables ---

def test_returning_carries_value():
    assert Returning(3.0).value == 3.0
    assert repr(Returning(None)) == "Returning(None)"


def test_native_function(interpreter):
    native = NativeFunction("add", 2, lambda a, b: a + b)
    assert native.arity() == 2
    assert native.call(interpreter, [1.0, 2.0]) == 3.0
    assert str(native) == "<native fn>"


def test_lox_function_call_and_return(interpreter):
    fn = LoxFunction(declare("fun add(a, b) { return a + b; }", interpreter), interpreter.globals)
    assert fn.name == "add"
    assert fn.arity() == 2
    assert str(fn) == "<fn add>"
    assert fn.call(interpreter, [2.0, 3.0]) == 5.0


def test_lox_function_without_return_gives_nil(interpreter):
    fn = LoxFunction(declare("fun noop() { 1; }", interpreter), interpreter.globals)
    assert fn.call(interpreter, []) is None


def test_bind_defines_this_in_a_fresh_environment(interpreter):
    klass = LoxClass("K", None, {})
    instance = LoxInstance(klass)
    method = LoxFunction(declare("fun m() {}", interpreter), interpreter.globals)
    bound = method.bind(instance)
    assert bound is not method
    assert bound.closure.parent is interpreter.globals
    assert bound.closure.get_at(0, "this") is instance
    assert "this" not in interpreter.globals


# --- Classes and instances ---

def test_find_method_walks_superclasses(interpreter):
    m = LoxFunction(declare("fun m() {}", interpreter), interpreter.globals)
    base = LoxClass("Base", None, {"m": m})
    derived = LoxClass("Derived", base, {})
    assert derived.find_method("m") is m
    assert derived.find_method("nope") is None
    assert str(derived) == "Derived"


def test_class_arity_comes_from_init(interpreter):
    init = LoxFunction(declare("fun init(a, b, c) {}", interpreter), interpreter.globals, is_initializer=True)
    assert LoxClass("A", None, {"init": init}).arity() == 3
    assert LoxClass("B", None, {}).arity() == 0


def test_instance_fields_and_methods(interpreter):
    m = LoxFunction(declare("fun m() {}", interpreter), interpreter.globals)
    klass = LoxClass("K", None, {"m": m})
    instance = klass.call(interpreter, [])
    assert isinstance(instance, LoxInstance)
    assert str(instance) == "K instance"

    bound = instance.get(name("m"))
    assert isinstance(bound, LoxFunction)
    assert bound.closure.get_at(0, "this") is instance

    instance.set(name("m"), "shadow")
    assert instance.get(name("m")) == "shadow"

    with pytest.raises(LoxRuntimeError) as exc:
        instance.get(name("missing"))
    assert exc.value.message == "Undefined property 'missing'."

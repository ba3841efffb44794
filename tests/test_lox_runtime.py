import io
import time

import pytest

from lox.lox_runtime import ErrorReporter, ExecutionResult, LoxRunner, StdLib, lox_native
from lox.lox_tokens import Token, TokenType
from lox.lox_datatypes import NativeFunction


def make_runner(**kwargs):
    out = io.StringIO()
    err = io.StringIO()
    runner = LoxRunner(reporter=ErrorReporter(stream=err), out=out, **kwargs)
    return runner, out, err


# --- ErrorReporter ---

def test_syntax_error_format_and_flag():
    stream = io.StringIO()
    reporter = ErrorReporter(stream=stream)
    reporter.syntax_error(3, " at 'x'", "Boom.")
    assert stream.getvalue() == "[line 3] Error at 'x': Boom.\n"
    assert reporter.had_error
    assert not reporter.had_runtime_error


def test_token_error_locations():
    reporter = ErrorReporter(stream=io.StringIO())
    reporter.token_error(Token(TokenType.EOF, "", None, 4), "Expect thing.")
    reporter.token_error(Token(TokenType.IDENTIFIER, "foo", None, 5), "Bad.")
    assert [d['where'] for d in reporter.diagnostics] == [" at end", " at 'foo'"]


def test_runtime_error_format_and_reset():
    stream = io.StringIO()
    reporter = ErrorReporter(stream=stream)
    reporter.syntax_error(1, "", "Syntax.")
    reporter.runtime_error("Oops.", 7)
    assert stream.getvalue().endswith("Oops.\n[line 7]\n")
    reporter.reset()
    assert not reporter.had_error
    # Runtime flag survives a reset.
    assert reporter.had_runtime_error


def test_reporter_defaults_to_stderr(capsys):
    ErrorReporter().syntax_error(1, "", "To stderr.")
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err == "[line 1] Error: To stderr.\n"


# --- Runner ---

def test_run_success():
    runner, out, _ = make_runner()
    result = runner.run('print "hi";')
    assert result.status == 'success'
    assert result.format_error() == ""
    assert out.getvalue() == "hi\n"


def test_output_defaults_to_stdout(capsys):
    LoxRunner(reporter=ErrorReporter(stream=io.StringIO())).run("print 1 + 1;")
    assert capsys.readouterr().out == "2\n"


def test_globals_persist_between_runs():
    runner, out, _ = make_runner()
    runner.run("var a = 1;")
    runner.run("fun inc() { a = a + 1; }")
    runner.run("inc(); print a;")
    assert out.getvalue() == "2\n"


def test_syntax_error_result_lists_every_diagnostic():
    runner, out, _ = make_runner()
    result = runner.run("var = 1;\nprint;")
    assert result.status == 'syntax-error'
    assert result.error_line == 1
    assert result.format_error() == (
        "[line 1] Error at '=': Expect variable name.\n"
        "[line 2] Error at ';': Expect expression."
    )
    assert out.getvalue() == ""


def test_syntax_error_does_not_leak_into_next_run():
    runner, out, _ = make_runner()
    assert runner.run("print ;").status == 'syntax-error'
    result = runner.run("print 1;")
    assert result.status == 'success'
    assert result.diagnostics == []


def test_resolve_and_execute_with_parsed_statements():
    from lox.lox_scanner import Scanner
    from lox.lox_parser import Parser

    runner, out, _ = make_runner()
    statements = Parser(Scanner("{ var x = 2; print x * x; }").scan_tokens()).parse()
    result = runner.resolve_and_execute(statements)
    assert result.status == 'success'
    assert out.getvalue() == "4\n"


def test_resolve_and_execute_reports_static_errors():
    from lox.lox_scanner import Scanner
    from lox.lox_parser import Parser

    runner, out, err = make_runner()
    statements = Parser(Scanner("return 1;").scan_tokens()).parse()
    result = runner.resolve_and_execute(statements)
    assert result.status == 'syntax-error'
    assert result.error_message == "Can't return from top-level code."
    assert "Error at 'return'" in err.getvalue()


def test_runtime_error_includes_lox_stacktrace():
    runner, _, _ = make_runner()
    source = "fun boom() { return 1 + nil; }\nfun outer() { boom(); }\nouter();"
    result = runner.run(source)
    assert result.status == 'runtime-error'
    assert [frame['name'] for frame in result.stacktrace] == ["<fn outer>", "<fn boom>"]
    assert result.format_error() == (
        "Operands must be two numbers or two strings.\n[line 1]\n"
        "Lox stacktrace: (<fn outer> line 3) (<fn boom> line 2)"
    )
    assert runner.interpreter.call_stack == []


def test_execution_result_format_without_stacktrace():
    result = ExecutionResult(status='runtime-error', error_message="Nope.", error_line=2)
    assert result.format_error() == "Nope.\n[line 2]"


# --- Natives ---

def test_clock_is_installed_from_stdlib(monkeypatch):
    monkeypatch.setattr(time, "time", lambda: 99.0)
    assert StdLib()._clock() == 99.0
    runner, out, _ = make_runner()
    runner.run("print clock();")
    assert out.getvalue() == "99\n"


def test_clock_arity_is_checked():
    runner, _, _ = make_runner()
    result = runner.run("clock(1);")
    assert result.error_message == "Expected 0 arguments but got 1."


def test_define_native():
    runner, out, _ = make_runner()
    native = runner.define_native("twice", 1, lambda x: x * 2)
    assert isinstance(native, NativeFunction)
    runner.run("print twice(21); print twice;")
    assert out.getvalue() == "42\n<native fn>\n"


class Host:
    def __init__(self):
        self.hp = 100.0

    @lox_native
    def take_damage(self, amount):
        self.hp -= amount
        return self.hp

    @lox_native
    def greet(self, first, last):
        return "hello " + first + " " + last

    def secret(self):
        return "not exposed"


def test_host_natives_bound_by_name_with_signature_arity():
    host = Host()
    runner, out, _ = make_runner(host_object=host)
    result = runner.run('print take_damage(5); print greet("a", "b");')
    assert result.status == 'success'
    assert out.getvalue() == "95\nhello a b\n"
    assert host.hp == 95.0


def test_unmarked_host_methods_stay_hidden():
    runner, _, _ = make_runner(host_object=Host())
    result = runner.run("secret();")
    assert result.error_message == "Undefined variable 'secret'."


def test_host_native_arity_from_signature():
    runner, _, _ = make_runner(host_object=Host())
    result = runner.run('greet("only");')
    assert result.error_message == "Expected 2 arguments but got 1."


def test_debug_tracing(monkeypatch, capsys):
    monkeypatch.setenv("LOX_DEBUG", "1")
    runner = LoxRunner(reporter=ErrorReporter(stream=io.StringIO()), out=io.StringIO())
    runner.run("fun f() {} f(); class A {}")
    err = capsys.readouterr().err
    assert "[DBG] Call <fn f>" in err
    assert "[DBG] Class A" in err


def test_no_debug_output_by_default(monkeypatch, capsys):
    monkeypatch.delenv("LOX_DEBUG", raising=False)
    LoxRunner(reporter=ErrorReporter(stream=io.StringIO()), out=io.StringIO()).run("fun f() {} f();")
    assert capsys.readouterr().err == ""


def test_runner_reports_nesting_too_deep_instead_of_raising():
    runner, out, _ = make_runner()
    result = runner.run("print " + "(" * 10000 + "1" + ")" * 10000 + ";")
    assert result.status == 'syntax-error'
    assert result.error_message == "Expression nesting too deep."
    assert out.getvalue() == ""


def test_call_with_deep_stack_returns_and_raises_like_a_direct_call():
    import sys
    from lox.lox_runtime import call_with_deep_stack, RECURSION_LIMIT

    limit = sys.getrecursionlimit()
    assert call_with_deep_stack(lambda a, b: a + b, 1, 2) == 3
    assert call_with_deep_stack(sys.getrecursionlimit) >= RECURSION_LIMIT
    with pytest.raises(KeyError):
        call_with_deep_stack({}.__getitem__, "missing")
    assert sys.getrecursionlimit() == limit

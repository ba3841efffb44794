"""
Host-facing side of Lox: the diagnostic reporter, the standard library of
natives and the runner that drives scan -> parse -> resolve -> evaluate.
"""
import inspect
import os
import sys
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, TextIO

from lox.lox_tokens import Token, TokenType
from lox.lox_scanner import Scanner
from lox.lox_parser import Parser
from lox.lox_resolver import Resolver
from lox.lox_interpreter import Interpreter
from lox.lox_datatypes import NativeFunction


# ===================================================================
# 1. Diagnostics
# ===================================================================

class ErrorReporter:
    """Collects syntax, static and runtime diagnostics and echoes them to a stream.

    `had_error` covers syntax and resolver errors and is cleared by `reset()`
    between REPL lines; `had_runtime_error` stays set once raised.
    """
    def __init__(self, stream: Optional[TextIO] = None):
        # None means "sys.stderr at the time of writing".
        self.stream = stream
        self.had_error = False
        self.had_runtime_error = False
        self.diagnostics: List[Dict[str, Any]] = []

    def _write(self, text: str):
        print(text, file=self.stream if self.stream is not None else sys.stderr)

    def syntax_error(self, line: int, where: str, message: str):
        self.diagnostics.append({'kind': 'syntax', 'line': line, 'where': where, 'message': message})
        self._write(f"[line {line}] Error{where}: {message}")
        self.had_error = True

    def token_error(self, token: Token, message: str):
        if token.type == TokenType.EOF:
            self.syntax_error(token.line, " at end", message)
        else:
            self.syntax_error(token.line, f" at '{token.lexeme}'", message)

    def runtime_error(self, message: str, line: int):
        self.diagnostics.append({'kind': 'runtime', 'line': line, 'where': '', 'message': message})
        self._write(f"{message}\n[line {line}]")
        self.had_runtime_error = True

    def reset(self):
        self.had_error = False


# ===================================================================
# 2. Natives
# ===================================================================

def lox_native(func):
    """A decorator to mark host methods that should be exposed to Lox as globals."""
    func._is_lox_native = True
    return func


class StdLib:
    """Python implementations of the built-in Lox functions.

    Every `_name` method becomes the global `name`; its arity is read from
    the signature.
    """
    def _clock(self):
        return time.time()


def _arity_of(fn) -> int:
    return len(inspect.signature(fn).parameters)


# ===================================================================
# 3. Host stack
# ===================================================================

# A Lox call nests about eight Python frames and one level of expression
# nesting about a dozen parser frames. The raised limit needs a thread stack
# large enough to hold it.
RECURSION_LIMIT = 50_000
THREAD_STACK_SIZE = 256 * 1024 * 1024


def call_with_deep_stack(fn, *args):
    """Runs fn(*args) on a worker thread with a large stack and a raised recursion limit.

    The caller blocks until it finishes; its return value or exception is
    handed back as if fn had been called directly.
    """
    outcome: Dict[str, Any] = {}

    def target():
        try:
            outcome['value'] = fn(*args)
        except BaseException as e:
            outcome['error'] = e

    previous_limit = sys.getrecursionlimit()
    previous_stack = threading.stack_size(THREAD_STACK_SIZE)
    sys.setrecursionlimit(max(previous_limit, RECURSION_LIMIT))
    try:
        worker = threading.Thread(target=target, name="lox-runner")
        worker.start()
        worker.join()
    finally:
        threading.stack_size(previous_stack)
        sys.setrecursionlimit(previous_limit)

    if 'error' in outcome:
        raise outcome['error']
    return outcome.get('value')


# ===================================================================
# 4. Runner
# ===================================================================

@dataclass
class ExecutionResult:
    """The structured result of running a piece of Lox source."""
    status: Literal['success', 'syntax-error', 'runtime-error']
    error_message: Optional[str] = None
    error_line: Optional[int] = None
    diagnostics: List[Dict[str, Any]] = field(default_factory=list)
    stacktrace: List[Dict[str, Any]] = field(default_factory=list)

    def format_error(self) -> str:
        """Renders the failure the same way the reporter printed it, plus the call stack if any."""
        if self.status == 'success':
            return ""
        if self.status == 'syntax-error':
            return "\n".join(f"[line {d['line']}] Error{d['where']}: {d['message']}" for d in self.diagnostics)

        msg = f"{self.error_message}\n[line {self.error_line}]"
        if self.stacktrace:
            frames = " ".join(f"({frame['name']} line {frame['line']})" for frame in self.stacktrace)
            msg += f"\nLox stacktrace: {frames}"
        return msg


class LoxRunner:
    """Owns one interpreter and runs source text through the whole pipeline.

    Globals persist across `run` calls, which is what the REPL relies on.
    """
    def __init__(self, reporter: Optional[ErrorReporter] = None, out: Optional[TextIO] = None, host_object: Any = None):
        self.reporter = reporter or ErrorReporter()
        self.interpreter = Interpreter(reporter=self.reporter, out=out)
        self.host_object = host_object

        stdlib = StdLib()
        for name, member in inspect.getmembers(stdlib):
            if name.startswith('_') and not name.startswith('__') and callable(member):
                self.define_native(name[1:], _arity_of(member), member)

        self._host_native_names: set[str] = set()
        self._bind_host_natives()

    def _dbg(self, *parts):
        if os.environ.get("LOX_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    def define_native(self, name: str, arity: int, fn) -> NativeFunction:
        return self.interpreter.define_native(name, arity, fn)

    def _bind_host_natives(self):
        """Bind @lox_native methods of the host object into globals under their own names."""
        host = self.host_object
        if host is None:
            return

        for name, member in inspect.getmembers(host):
            if not callable(member):
                continue
            # The decorator marks the function; getmembers hands back the bound method.
            is_native = getattr(member, "_is_lox_native", False)
            if not is_native:
                func = getattr(member, "__func__", None)
                if func is not None:
                    is_native = getattr(func, "_is_lox_native", False)
            if not is_native:
                continue
            self.define_native(name, _arity_of(member), member)
            self._host_native_names.add(name)
        self._dbg("Host natives", sorted(self._host_native_names))

    def run(self, source: str) -> ExecutionResult:
        """The main entry point to execute a script."""
        return call_with_deep_stack(self._run, source)

    def resolve_and_execute(self, statements) -> ExecutionResult:
        """Resolves already-parsed statements against this runner's interpreter and runs them."""
        self.reporter.reset()
        return call_with_deep_stack(self._resolve_and_execute, statements, len(self.reporter.diagnostics))

    def _run(self, source: str) -> ExecutionResult:
        self.reporter.reset()
        start = len(self.reporter.diagnostics)

        tokens = Scanner(source, self.reporter).scan_tokens()
        statements = Parser(tokens, self.reporter).parse()
        if self.reporter.had_error:
            return self._syntax_failure(start)

        return self._resolve_and_execute(statements, start)

    def _resolve_and_execute(self, statements, start: int) -> ExecutionResult:
        Resolver(self.interpreter, self.reporter).resolve(statements)
        if self.reporter.had_error:
            return self._syntax_failure(start)

        error = self.interpreter.interpret(statements)
        if error is not None:
            return ExecutionResult(
                status='runtime-error',
                error_message=error.message,
                error_line=error.token.line,
                diagnostics=self.reporter.diagnostics[start:],
                stacktrace=getattr(error, "stacktrace", None) or [],
            )
        return ExecutionResult(status='success', diagnostics=self.reporter.diagnostics[start:])

    def _syntax_failure(self, start: int) -> ExecutionResult:
        diagnostics = self.reporter.diagnostics[start:]
        first = diagnostics[0] if diagnostics else {}
        return ExecutionResult(
            status='syntax-error',
            error_message=first.get('message'),
            error_line=first.get('line'),
            diagnostics=diagnostics,
        )

import sys
from pathlib import Path

from lox.lox_runtime import ErrorReporter, LoxRunner, call_with_deep_stack
from lox.lox_scanner import Scanner
from lox.lox_parser import Parser
from lox.lox_serialize import serialize

USAGE = "Usage: lox.py [--ast json|yaml|text] [script]"

# Exit codes follow the BSD sysexits convention.
EXIT_USAGE = 64
EXIT_DATAERR = 65
EXIT_NOINPUT = 66
EXIT_SOFTWARE = 70


def read_line(prompt: str) -> str:
    """A basic prompt; returns "" at end of input."""
    sys.stdout.write(prompt)
    sys.stdout.flush()
    return sys.stdin.readline()


def _read_source(file_path: str) -> str:
    try:
        return Path(file_path).read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(EXIT_NOINPUT)


def run_script_file(file_path: str):
    """Run a Lox script file non-interactively and exit with the matching status."""
    source = _read_source(file_path)
    result = LoxRunner().run(source)
    # The reporter has already written the diagnostics to stderr.
    if result.status == 'syntax-error':
        raise SystemExit(EXIT_DATAERR)
    if result.status == 'runtime-error':
        raise SystemExit(EXIT_SOFTWARE)


def _render_ast(source: str, fmt: str):
    reporter = ErrorReporter()
    statements = Parser(Scanner(source, reporter).scan_tokens(), reporter).parse()
    if reporter.had_error:
        return None
    return serialize(statements, fmt)


def print_ast(file_path: str, fmt: str):
    """Parse a script and print its syntax tree instead of running it."""
    source = _read_source(file_path)
    try:
        text = call_with_deep_stack(_render_ast, source, fmt)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(EXIT_USAGE)
    if text is None:
        raise SystemExit(EXIT_DATAERR)
    print(text)


def repl():
    print("Lox REPL v0.1")
    print("Type 'exit' or press Ctrl+D to quit.")

    runner = LoxRunner()

    while True:
        raw = read_line("> ")
        if raw == "":
            print("\nExiting.")
            break
        line = raw.strip()

        if not line:
            continue
        if line == "exit":
            break

        # Errors are reported by the runner; the session carries on either way.
        runner.run(line)


def main(argv=None):
    """Run a script file when provided, otherwise start the interactive REPL."""
    args = list(sys.argv[1:] if argv is None else argv)

    if args and args[0] == "--ast":
        if len(args) != 3:
            print(USAGE)
            raise SystemExit(EXIT_USAGE)
        print_ast(args[2], args[1])
        return

    if len(args) > 1:
        print(USAGE)
        raise SystemExit(EXIT_USAGE)
    if len(args) == 1:
        run_script_file(args[0])
        return
    repl()


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\nExiting.")

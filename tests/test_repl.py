import importlib.util
import sys
from pathlib import Path
import uuid
import pytest


def _load_repl_module():
    """Dynamically load the top-level lox.py (REPL) as a module with a unique name."""
    repl_path = Path(__file__).resolve().parents[1] / "lox.py"
    mod_name = f"lox_repl_for_test_{uuid.uuid4().hex}"
    spec = importlib.util.spec_from_file_location(mod_name, str(repl_path))
    mod = importlib.util.module_from_spec(spec)
    sys.modules[mod_name] = mod
    assert spec.loader is not None
    spec.loader.exec_module(mod)
    return mod


def _feed(monkeypatch, repl, lines):
    it = iter(lines)
    monkeypatch.setattr(repl, "read_line", lambda prompt: next(it))


def test_repl_exit_immediately(monkeypatch, capsys):
    repl = _load_repl_module()
    _feed(monkeypatch, repl, ["exit\n"])

    repl.main([])
    out = capsys.readouterr().out
    assert "Lox REPL v0.1" in out
    assert "Type 'exit' or press Ctrl+D to quit." in out


def test_repl_eof_quits(monkeypatch, capsys):
    repl = _load_repl_module()
    _feed(monkeypatch, repl, [""])

    repl.main([])
    assert "Exiting." in capsys.readouterr().out


def test_repl_keeps_globals_between_lines(monkeypatch, capsys):
    repl = _load_repl_module()
    _feed(monkeypatch, repl, [
        "var a = 40;\n",
        "\n",
        "fun inc(x) { return x + 2; }\n",
        "print inc(a);\n",
        "exit\n",
    ])

    repl.main([])
    out, err = capsys.readouterr()
    assert "42\n" in out
    assert err == ""


def test_repl_errors_go_to_stderr_and_session_continues(monkeypatch, capsys):
    repl = _load_repl_module()
    _feed(monkeypatch, repl, [
        "print ;\n",
        'print -"x";\n',
        'print "still here";\n',
        "exit\n",
    ])

    repl.main([])
    out, err = capsys.readouterr()
    assert "[line 1] Error at ';': Expect expression." in err
    assert "Operand must be a number.\n[line 1]" in err
    assert "still here" in out


# --- File mode ---

def test_run_file_success(tmp_path, capsys):
    repl = _load_repl_module()
    script = tmp_path / "ok.lox"
    script.write_text('print "from file";\n', encoding="utf-8")

    repl.main([str(script)])
    assert capsys.readouterr().out == "from file\n"


@pytest.mark.parametrize("source, code", [
    ("print ;", 65),
    ("{ var a = a; }", 65),
    ("print nil + 1;", 70),
])
def test_run_file_exit_codes(tmp_path, capsys, source, code):
    repl = _load_repl_module()
    script = tmp_path / "bad.lox"
    script.write_text(source, encoding="utf-8")

    with pytest.raises(SystemExit) as exc:
        repl.main([str(script)])
    assert exc.value.code == code
    assert capsys.readouterr().err != ""


def test_missing_file(tmp_path, capsys):
    repl = _load_repl_module()
    with pytest.raises(SystemExit) as exc:
        repl.main([str(tmp_path / "nope.lox")])
    assert exc.value.code == 66
    assert "file not found" in capsys.readouterr().err


def test_too_many_arguments_prints_usage(capsys):
    repl = _load_repl_module()
    with pytest.raises(SystemExit) as exc:
        repl.main(["a.lox", "b.lox"])
    assert exc.value.code == 64
    assert "Usage: lox.py" in capsys.readouterr().out


@pytest.mark.parametrize("fmt, marker", [("json", '"type": "Print"'), ("yaml", "type: Print"), ("text", "(print 1)")])
def test_ast_dump(tmp_path, capsys, fmt, marker):
    repl = _load_repl_module()
    script = tmp_path / "ast.lox"
    script.write_text("print 1;", encoding="utf-8")

    repl.main(["--ast", fmt, str(script)])
    assert marker in capsys.readouterr().out


def test_ast_dump_rejects_unknown_format(tmp_path, capsys):
    repl = _load_repl_module()
    script = tmp_path / "ast.lox"
    script.write_text("print 1;", encoding="utf-8")

    with pytest.raises(SystemExit) as exc:
        repl.main(["--ast", "xml", str(script)])
    assert exc.value.code == 64

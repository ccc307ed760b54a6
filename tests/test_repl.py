import importlib.util
import io
import sys
from pathlib import Path
import uuid
import pytest


def _load_cli_module():
    """Dynamically load the top-level sit.py (REPL and CLI) as a module with a unique name."""
    cli_path = Path(__file__).resolve().parents[1] / "sit.py"
    mod_name = f"sit_cli_for_test_{uuid.uuid4().hex}"
    spec = importlib.util.spec_from_file_location(mod_name, str(cli_path))
    mod = importlib.util.module_from_spec(spec)
    sys.modules[mod_name] = mod
    assert spec.loader is not None
    spec.loader.exec_module(mod)
    return mod


def _feed(monkeypatch, mod, lines):
    it = iter(lines)

    def fake_input_line(prompt: str) -> str:
        return next(it, "")
    monkeypatch.setattr(mod, "input_line", fake_input_line)


def test_repl_exit_immediately(monkeypatch, capsys):
    sit = _load_cli_module()
    _feed(monkeypatch, sit, ["exit\n"])

    sit.repl()
    out = capsys.readouterr().out
    assert "ScriptIt REPL v0.1" in out
    assert "Type 'exit' or press Ctrl+D to quit." in out


def test_repl_prints_output_and_values(monkeypatch, capsys):
    sit = _load_cli_module()
    _feed(monkeypatch, sit, [
        'print("hello from sit").\n',
        "var x = 41.\n",
        "x + 1\n",
        "exit\n",
    ])

    sit.repl()
    out, err = capsys.readouterr()
    assert "hello from sit" in out
    assert "\n42\n" in out
    assert err == ""


def test_repl_errors_print_to_stderr(monkeypatch, capsys):
    sit = _load_cli_module()
    _feed(monkeypatch, sit, ["print(1 / 0).\n", "print(2).\n", "exit\n"])

    sit.repl()
    out, err = capsys.readouterr()
    assert "Error: Division by zero (line 1)" in err
    assert "  1 | print(1 / 0)." in err
    # the session survives the error
    assert "\n2\n" in out


def test_repl_wipe_clears_the_session(monkeypatch, capsys):
    sit = _load_cli_module()
    _feed(monkeypatch, sit, ["var x = 1.\n", "wipe\n", "print(x).\n", "exit\n"])

    sit.repl()
    out = capsys.readouterr().out
    assert "Session wiped. All variables and functions cleared." in out
    assert "\nNone\n" in out


def test_repl_reads_until_blocks_close(monkeypatch, capsys):
    sit = _load_cli_module()
    _feed(monkeypatch, sit, [
        "fn sq(n):\n",
        "    give n * n.\n",
        ";\n",
        "print(sq(7)).\n",
        "exit\n",
    ])

    sit.repl()
    out, err = capsys.readouterr()
    assert "49" in out
    assert err == ""


def test_repl_eof_quits(monkeypatch, capsys):
    sit = _load_cli_module()
    _feed(monkeypatch, sit, [])

    sit.repl()
    out = capsys.readouterr().out
    assert out.rstrip().endswith("Exiting.")


@pytest.mark.parametrize("source, expected", [
    ("var x = 1.", False),
    ("fn f(a):", True),
    ("for i in range(3):\n  if i > 1:\n  ;", True),
    ("while True: pass. ;", False),
    ('print("unterminated', False),
])
def test_needs_more(source, expected):
    sit = _load_cli_module()
    assert sit.needs_more(source) is expected


def test_script_file_runs_and_prints_the_result(tmp_path, capsys):
    sit = _load_cli_module()
    path = tmp_path / "prog.sit"
    path.write_text('print("start").\nvar a = 2.\ngive a * 21.\n', encoding="utf-8")

    sit.main([str(path)])
    out = capsys.readouterr().out
    assert out == "start\n42\n"


def test_script_file_errors_exit_nonzero(tmp_path, capsys):
    sit = _load_cli_module()
    path = tmp_path / "bad.sit"
    path.write_text("var a = 1.\nb = 2.\n", encoding="utf-8")

    with pytest.raises(SystemExit) as exc:
        sit.main([str(path)])
    assert exc.value.code == 1
    err = capsys.readouterr().err
    assert "Undefined variable 'b'" in err
    assert "  2 | b = 2." in err


def test_missing_script_file(tmp_path, capsys):
    sit = _load_cli_module()
    with pytest.raises(SystemExit) as exc:
        sit.main([str(tmp_path / "missing.sit")])
    assert exc.value.code == 1
    assert "Error: file not found" in capsys.readouterr().err


def test_script_from_stdin(monkeypatch, capsys):
    sit = _load_cli_module()
    monkeypatch.setattr(sys, "stdin", io.StringIO("var n = 5.\nprint(n * n)."))

    sit.main(["--script"])
    assert capsys.readouterr().out == "25\n"


def test_usage_and_unknown_options(capsys):
    sit = _load_cli_module()
    sit.main(["--help"])
    assert "usage: sit" in capsys.readouterr().out

    with pytest.raises(SystemExit) as exc:
        sit.main(["--bogus"])
    assert exc.value.code == 2
    assert "unknown option --bogus" in capsys.readouterr().err

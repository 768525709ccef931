import json
import sys

import pytest

import tbasic
from errors import TBasicParseError


def test_source_mode_runs_literal_text(capsys):
    assert tbasic.run_cli(["-source", 'StdWriteLine("hi " + (1 + 2))']) == 0
    assert capsys.readouterr().out == "hi 3\n"


def test_runs_a_file(tmp_path, capsys):
    script = tmp_path / "hello.bas"
    script.write_text('FOR i$ = 1 TO 3\nStdWrite(i$)\nNEXT\n', encoding="utf-8")
    assert tbasic.run_cli([str(script)]) == 0
    assert capsys.readouterr().out == "123"


def test_missing_file(tmp_path, capsys):
    assert tbasic.run_cli([str(tmp_path / "absent.bas")]) == 1
    assert "Failed to read" in capsys.readouterr().err


def test_source_flag_needs_a_program(capsys):
    assert tbasic.run_cli(["-source"]) == 1
    assert "-source requires a program string" in capsys.readouterr().err


def test_runtime_error_prints_traceback(capsys):
    assert tbasic.run_cli(["-source", "x$ = 1\ny$ = x$ / 0"]) == 1
    err = capsys.readouterr().err
    assert err.startswith("Traceback (most recent call last):")
    assert 'File "<string>", line 2, in y$' in err
    assert "TBasicDivideByZeroError: Attempted to divide by zero" in err


def test_traceback_json(capsys):
    assert tbasic.run_cli(["--traceback-json", "-source", "x$ = missing$"]) == 1
    err = capsys.readouterr().err
    data = json.loads(err[err.index("{"):])
    assert data["error"]["type"] == "UndefinedNameError"
    assert data["traceback"][0]["name"] == "x$"


def test_parse_errors_are_reported_briefly(capsys):
    assert tbasic.run_cli(["-source", "x$ = 1 _"]) == 1
    assert capsys.readouterr().err.startswith("ParseError:")


def test_format_parse_error():
    assert tbasic.format_parse_error(TBasicParseError("bad", line=4)) == "ParseError: line 4: bad"
    assert tbasic.format_parse_error(TBasicParseError("bad")) == "ParseError: bad"


def test_exit_returns_success(capsys):
    assert tbasic.run_cli(["-source", "StdWrite(1)\nEXIT\nStdWrite(2)"]) == 0
    assert capsys.readouterr().out == "1"


def test_main_exits_with_the_run_status(monkeypatch):
    monkeypatch.setattr(sys, "argv", ["tbasic", "-source", "x$ = 1 / 0"])
    with pytest.raises(SystemExit) as info:
        tbasic.main()
    assert info.value.code == 1


def _feed(monkeypatch, lines):
    pending = iter(lines)

    def _input(prompt=""):
        try:
            return next(pending)
        except StopIteration:
            raise EOFError

    monkeypatch.setattr("builtins.input", _input)


def test_repl_runs_lines_and_buffers_blocks(monkeypatch, capsys):
    _feed(monkeypatch, ["StdWrite(1)", "IF TRUE THEN", "StdWrite(2)", "END IF", "", "EXIT", "StdWrite(3)"])
    assert tbasic.run_repl(verbose=False) == 0
    out = capsys.readouterr().out
    assert "Libraries: statements 2.0.0, math 2.0.0" in out
    assert out.endswith("userio 2.0.0\n1\n2\n")


def test_repl_reports_errors_and_keeps_going(monkeypatch, capsys):
    _feed(monkeypatch, ["x$ = 1 / 0", "StdWrite(x$ + 5)"])
    assert tbasic.run_repl(verbose=False) == 0
    captured = capsys.readouterr()
    assert "TBasicDivideByZeroError" in captured.err
    # the failed assignment never bound x$
    assert "UndefinedNameError" in captured.err


def test_version_flag(capsys):
    with pytest.raises(SystemExit) as info:
        tbasic.run_cli(["--version"])
    assert info.value.code == 0
    assert "TBASIC 2.0" in capsys.readouterr().out

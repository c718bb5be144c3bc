import io

import pytest

from milu.repl import HISTORY_FILE, VERSION, evaluate, main, run_repl
from milu.script import ScriptContext
from milu.stdlib import default_context


def _run_eval(source, ctx=None):
    out, err = io.StringIO(), io.StringIO()
    ok = evaluate(ctx if ctx is not None else default_context(), source, out, err)
    return ok, out.getvalue(), err.getvalue()


def test_evaluate_prints_value_and_type():
    ok, out, err = _run_eval("1+1")
    assert ok is True
    assert out == "2 : integer\n"
    assert err == ""


def test_evaluate_string_result_uses_quoted_form():
    ok, out, _ = _run_eval("to_string(100*2)")
    assert ok is True
    assert out == '"200" : string\n'


def test_evaluate_defaults_context_when_none():
    ok, out, _ = _run_eval("(1,\"2\",false).1", ctx=None)
    assert ok is True
    assert out == '"2" : string\n'


def test_evaluate_uses_given_context_chain():
    ctx = ScriptContext(default_context())
    from milu.script import Integer

    ctx.set("a", Integer(1))
    ok, out, _ = _run_eval("a+1", ctx=ctx)
    assert ok is True
    assert out == "2 : integer\n"


def test_evaluate_reports_parser_error():
    ok, out, err = _run_eval("1 +* ")
    assert ok is False
    assert out == ""
    assert err.startswith("parser error: SyntaxError:")


def test_evaluate_reports_type_error():
    ok, out, err = _run_eval('[1,"true",false]')
    assert ok is False
    assert out == ""
    assert err.startswith("type inference error: ")


def test_evaluate_reports_undefined_identifier_as_type_error():
    ok, _, err = _run_eval("nope + 1")
    assert ok is False
    assert "nope" in err
    assert err.startswith("type inference error: ")


def test_evaluate_reports_eval_error():
    ok, out, err = _run_eval('to_integer("abc")')
    assert ok is False
    assert out == ""
    assert err.startswith("eval error: ")


def test_run_repl_joins_lines_until_terminator():
    stdin = io.StringIO("1+\n1;;\n")
    out, err = io.StringIO(), io.StringIO()
    history = run_repl(stdin, out, err, False)
    assert history == ["1+ 1;;"]
    assert out.getvalue() == "2 : integer\n"
    assert err.getvalue() == ""


def test_run_repl_evaluates_each_entry_in_order():
    stdin = io.StringIO("let a=1;b=2 in a+b;;\n[1,2,3][0];;\n")
    out, err = io.StringIO(), io.StringIO()
    history = run_repl(stdin, out, err, False)
    assert len(history) == 2
    assert out.getvalue().splitlines() == ["3 : integer", "1 : integer"]


def test_run_repl_ignores_unterminated_trailing_input():
    stdin = io.StringIO("1+1\n")
    out, err = io.StringIO(), io.StringIO()
    history = run_repl(stdin, out, err, False)
    assert history == []
    assert out.getvalue() == ""


def test_run_repl_keeps_going_after_errors():
    stdin = io.StringIO("1 +* ;;\n2*3;;\n")
    out, err = io.StringIO(), io.StringIO()
    history = run_repl(stdin, out, err, False)
    assert len(history) == 2
    assert out.getvalue() == "6 : integer\n"
    assert err.getvalue().startswith("parser error:")


def test_run_repl_interactive_banner_prompt_and_exit():
    stdin = io.StringIO("1+1;;\n")
    out, err = io.StringIO(), io.StringIO()
    run_repl(stdin, out, err, True)
    text = out.getvalue()
    assert f"This is the milu-repl {VERSION}" in text
    assert "Use `;;' to end an expression" in text
    assert "Press Ctrl-D to exit." in text
    assert "1> " in text
    assert "2> " in text
    assert "2 : integer" in text
    assert text.rstrip().endswith("Ctrl-D")


def test_run_repl_non_interactive_has_no_banner():
    stdin = io.StringIO("")
    out, err = io.StringIO(), io.StringIO()
    assert run_repl(stdin, out, err, False) == []
    assert out.getvalue() == ""


def test_main_evaluates_file(tmp_path, capsys):
    source = tmp_path / "expr.milu"
    source.write_text("1+1", encoding="utf-8")
    assert main([str(source)]) == 0
    captured = capsys.readouterr()
    assert captured.out == "2 : integer\n"


def test_main_file_with_error_reports_on_stderr(tmp_path, capsys):
    source = tmp_path / "bad.milu"
    source.write_text('[1,"true",false]', encoding="utf-8")
    assert main([str(source)]) == 0
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err.startswith("type inference error: ")


def test_main_missing_file_fails(tmp_path):
    assert main([str(tmp_path / "missing.milu")]) == 1


def test_main_version_exits(capsys):
    with pytest.raises(SystemExit) as info:
        main(["--version"])
    assert info.value.code == 0
    assert VERSION in capsys.readouterr().out


def test_main_repl_appends_history(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("sys.stdin", io.StringIO("1+\n2;;\n"))
    assert main([]) == 0
    captured = capsys.readouterr()
    assert captured.out == "3 : integer\n"
    history = (tmp_path / HISTORY_FILE).read_text(encoding="utf-8")
    assert history.splitlines() == ["1+ 2;;"]
import pytest

from scriptit import ScriptRunner, ExecutionResult, run_program, run_statement
from scriptit.scriptit_config import InterpreterConfig
from scriptit.scriptit_interpreter import Evaluator
from scriptit.scriptit_parser import parse
from scriptit.scriptit_scope import Scope
from scriptit.scriptit_tokenizer import tokenize
from scriptit.scriptit_datatypes import Returned, is_return


@pytest.fixture
def runner():
    return ScriptRunner(config=InterpreterConfig())


@pytest.fixture
def evaluator():
    return Evaluator(InterpreterConfig())


def test_constants_are_seeded(runner):
    res = runner.handle_script("print(PI, e).")
    assert res.status == 'success'
    assert res.side_effects[0]['message'] == "3.14159 2.71828"


def test_top_level_give_becomes_the_result(runner):
    res = runner.handle_script("var x = 20.\ngive x + 1.\nprint(x).")
    assert res.status == 'success'
    assert res.value == 21
    assert res.side_effects == []


def test_session_state_persists_between_scripts(runner):
    runner.handle_script("var total = 1.\nfn bump(@t): t += 1. ;")
    runner.handle_script("bump(total).")
    res = runner.handle_script("give total.")
    assert res.value == 2


def test_reset_restores_constants_only(runner):
    runner.handle_script("var x = 1.\nPI = 3.")
    runner.reset()
    res = runner.handle_script("give [x, PI].")
    assert res.value == [None, 3.14159265]


def test_errors_are_formatted(runner):
    res = runner.handle_script("var a = 1.\nprint(a / 0).")
    assert res.status == 'error'
    assert res.error_message == "Error: Division by zero (line 2)"
    assert res.error_token['line'] == 2
    assert res.format_error() == "Error: Division by zero (line 2)\n  2 | print(a / 0)."
    assert res.side_effects[-1] == {'topics': ['stderr'], 'message': res.error_message}


def test_success_has_no_error_text():
    assert ExecutionResult(status='success').format_error() == ""


def test_completions(runner):
    runner.handle_script("var total = 1.\nvar tally = 2.\nfn twice(x): give 2x. ;")
    assert runner.completions("t") == ["tally", "tan", "total", "twice", "type"]
    assert "PI" in runner.completions("P")


def test_run_program_against_a_scope(evaluator):
    scope = Scope()
    value = run_program("var x = 2.\nx * 5\ngive x.", scope, evaluator)
    assert value == 2
    assert scope.get('x') == 2
    assert [e['message'] for e in evaluator.side_effects] == ["10"]


def test_run_statement_returns_the_value_to_print(evaluator):
    scope = Scope()
    assert run_statement(tokenize("var y = 3."), scope, evaluator) is None
    assert run_statement(tokenize("y * 2"), scope, evaluator) == 6
    assert run_statement(tokenize("print(y)."), scope, evaluator) is None
    assert evaluator.side_effects == [{'topics': ['stdout'], 'message': "3"}]


def test_give_is_a_control_outcome_not_an_exception(evaluator):
    block = parse(tokenize("give 1 + 1."))
    outcome = evaluator.execute(block.statements[0], Scope())
    assert is_return(outcome)
    assert outcome == Returned(2)


def test_emit_calls_the_live_echo(evaluator):
    seen = []
    evaluator.echo = lambda topic, message: seen.append((topic, message))
    run_program('print("hi").', Scope(), evaluator)
    assert seen == [('stdout', "hi")]


def test_debug_tracing_goes_to_stderr(capsys):
    evaluator = Evaluator(InterpreterConfig(debug=True))
    run_program("fn f(): pass. ;\nf().", Scope(), evaluator)
    err = capsys.readouterr().err
    assert "[DBG] call f/0" in err


def test_runtime_errors_inside_calls_carry_a_stacktrace(runner):
    res = runner.handle_script("fn inner(x): give x / 0. ;\nfn outer(y): give inner(y + 1). ;\nouter(1).")
    assert res.status == 'error'
    assert res.error_message == "Error: Division by zero (line 1)\nStacktrace: outer(1) -> inner(2)"

    res = runner.handle_script("print(1 / 0).")
    assert res.error_message == "Error: Division by zero (line 1)"


def test_stacktrace_keeps_the_innermost_frames():
    runner = ScriptRunner(config=InterpreterConfig(max_call_depth=50))
    res = runner.handle_script("fn down(n): give down(n + 1). ;\ndown(0).")
    assert "Stacktrace: ... 42 more -> down(42) -> down(43)" in res.error_message
    assert res.error_message.endswith("-> down(49)")


def test_static_errors_have_no_stacktrace(runner):
    runner.handle_script("fn f(): give 1 / 0. ;\nf().")
    res = runner.handle_script('var s = "open')
    assert "Stacktrace" not in res.error_message

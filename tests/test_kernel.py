import io
import json

import pytest

from scriptit import ScriptRunner
from scriptit.scriptit_config import InterpreterConfig
from scriptit.scriptit_kernel import Kernel, KERNEL_VERSION


@pytest.fixture
def kernel():
    return Kernel(ScriptRunner(config=InterpreterConfig(), input_fn=lambda prompt="": ""))


def run_lines(kernel, *commands):
    stdin = io.StringIO("".join((c if isinstance(c, str) else json.dumps(c)) + "\n" for c in commands))
    stdout = io.StringIO()
    kernel.run(stdin, stdout)
    return [json.loads(line) for line in stdout.getvalue().splitlines()]


def test_execute_shares_state_between_cells(kernel):
    first, _ = kernel.handle({"action": "execute", "cell_id": "a", "code": "var x = 2.\nprint(x * 3)."})
    assert first == {
        "cell_id": "a", "status": "ok", "stdout": "6\n", "stderr": "", "result": "", "execution_count": 1,
    }
    second, keep_going = kernel.handle({"action": "execute", "cell_id": "b", "code": "give [x]."})
    assert keep_going
    assert second["result"] == "[2]"
    assert second["execution_count"] == 2


def test_execute_reports_errors(kernel):
    response, _ = kernel.handle({"action": "execute", "cell_id": "c", "code": 'print("a").\nprint(1 / 0).'})
    assert response["status"] == "error"
    assert response["stdout"] == "a\n"
    assert response["stderr"] == "Error: Division by zero (line 2)"


def test_complete_and_reset(kernel):
    kernel.handle({"action": "execute", "code": "var xylo = 1."})
    response, _ = kernel.handle({"action": "complete", "code": "xy"})
    assert response == {"status": "ok", "completions": ["xylo"]}

    response, _ = kernel.handle({"action": "reset"})
    assert response == {"status": "reset_ok"}
    assert kernel.handle({"action": "complete", "code": "xy"})[0]["completions"] == []


def test_unknown_action(kernel):
    response, keep_going = kernel.handle({"action": "dance"})
    assert response == {"status": "error", "stderr": "Unknown action: dance"}
    assert keep_going


def test_run_loop_stops_at_shutdown(kernel):
    responses = run_lines(
        kernel,
        {"action": "execute", "cell_id": "1", "code": "print(1)."},
        "not json",
        "[1, 2]",
        "",
        {"action": "shutdown"},
        {"action": "execute", "cell_id": "2", "code": "print(2)."},
    )
    assert responses[0] == {"status": "kernel_ready", "version": KERNEL_VERSION}
    assert responses[1]["stdout"] == "1\n"
    assert responses[2]["status"] == "error"
    assert responses[2]["stderr"].startswith("Invalid JSON")
    assert responses[3] == {"status": "error", "stderr": "Invalid command: expected a JSON object"}
    assert responses[4] == {"status": "shutdown_ok"}
    assert len(responses) == 5


def test_input_in_the_kernel_reads_empty(kernel):
    response, _ = kernel.handle({"action": "execute", "code": 'give input("? ") + "!".'})
    assert response["result"] == "!"

"""
JSON-lines notebook kernel.

Reads one JSON command per line on stdin and answers with one JSON object
per line on stdout. Cells share a single `ScriptRunner` session.
"""
import json
import sys
from typing import Any, Dict, Optional, TextIO, Tuple

from scriptit.scriptit_runtime import ScriptRunner
from scriptit.scriptit_values import display

KERNEL_VERSION = "2.0"


class Kernel:
    def __init__(self, runner: Optional[ScriptRunner] = None):
        self.runner = runner if runner is not None else ScriptRunner(input_fn=lambda prompt="": "")
        self.execution_count = 0

    def handle(self, cmd: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
        """Answers one command. The flag is False once the kernel should stop."""
        action = cmd.get("action", "")
        match action:
            case "shutdown":
                return {"status": "shutdown_ok"}, False
            case "reset":
                self.runner.reset()
                self.execution_count = 0
                return {"status": "reset_ok"}, True
            case "execute":
                return self._execute(str(cmd.get("cell_id", "")), str(cmd.get("code", ""))), True
            case "complete":
                return {"status": "ok", "completions": self.runner.completions(str(cmd.get("code", "")))}, True
        return {"status": "error", "stderr": f"Unknown action: {action}"}, True

    def _execute(self, cell_id: str, code: str) -> Dict[str, Any]:
        self.execution_count += 1
        result = self.runner.handle_script(code)
        stdout = "".join(
            effect['message'] + "\n" for effect in result.side_effects if effect.get('topics') == ['stdout']
        )
        return {
            "cell_id": cell_id,
            "status": "ok" if result.status == 'success' else "error",
            "stdout": stdout,
            "stderr": result.error_message or "",
            "result": display(result.value) if result.value is not None else "",
            "execution_count": self.execution_count,
        }

    def run(self, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None):
        stdin = stdin or sys.stdin
        stdout = stdout or sys.stdout

        def send(obj):
            stdout.write(json.dumps(obj) + "\n")
            stdout.flush()

        send({"status": "kernel_ready", "version": KERNEL_VERSION})
        for raw in stdin:
            line = raw.strip()
            if not line:
                continue
            try:
                cmd = json.loads(line)
            except json.JSONDecodeError as e:
                send({"status": "error", "stderr": f"Invalid JSON: {e.msg}"})
                continue
            if not isinstance(cmd, dict):
                send({"status": "error", "stderr": "Invalid command: expected a JSON object"})
                continue
            response, keep_going = self.handle(cmd)
            send(response)
            if not keep_going:
                break


def run_kernel(stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None):
    Kernel().run(stdin, stdout)

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from scriptit.scriptit_datatypes import (
    Block, ExprStmt, Token, ScriptItError, StaticError, is_return
)
from scriptit.scriptit_tokenizer import tokenize
from scriptit.scriptit_parser import parse
from scriptit.scriptit_scope import Scope
from scriptit.scriptit_interpreter import Evaluator
from scriptit.scriptit_builtins import FileRegistry
from scriptit.scriptit_config import InterpreterConfig
from scriptit.scriptit_values import display, owned
from scriptit.scriptit_printer import Printer


# ===================================================================
# Host entry points
# ===================================================================

def _run_top_level(block: Block, scope: Scope, evaluator: Evaluator, echo_values: bool) -> Any:
    """Runs a parsed unit directly in `scope`.

    With `echo_values`, each expression statement that yields a value is
    printed on the stdout topic. A top-level `give` ends the unit; its value
    is returned. Otherwise the result is the last expression value.
    """
    evaluator.hoist(block, scope)
    last = None
    for stmt in block.statements:
        if isinstance(stmt, ExprStmt):
            evaluator.current_line = stmt.line
            value = evaluator.evaluate(stmt.expr, scope)
            if value is not None:
                if echo_values:
                    evaluator.emit('stdout', display(value))
                last = value
            continue
        outcome = evaluator.execute(stmt, scope)
        if is_return(outcome):
            return outcome.value
    return None if echo_values else last


def run_program(source: str, scope: Scope, evaluator: Evaluator) -> Any:
    """Tokenizes, parses and runs a whole program against a persistent scope."""
    block = parse(tokenize(source))
    return _run_top_level(block, scope, evaluator, echo_values=True)


def run_statement(tokens: List[Token], scope: Scope, evaluator: Evaluator) -> Optional[Any]:
    """Runs the tokens of one statement; returns the value a REPL should print, if any."""
    block = parse(tokens)
    return _run_top_level(block, scope, evaluator, echo_values=False)


# ===================================================================
# Script runner
# ===================================================================

@dataclass
class ExecutionResult:
    """The structured result of a script execution."""
    status: Literal['success', 'error']
    value: Any = None
    error_message: Optional[str] = None
    error_token: Optional[Dict[str, Any]] = None
    side_effects: List[Dict] = field(default_factory=list)

    def format_error(self) -> str:
        """Formats the error message, followed by the offending source line when known."""
        if self.status != 'error':
            return ""
        msg = str(self.error_message or "Error: unknown error")
        if self.error_token and self.error_token.get('source'):
            return f"{msg}\n{self.error_token['source']}"
        return msg


class ScriptRunner:
    """Tokenizes, parses and executes ScriptIt code against one persistent session."""

    def __init__(self, config: Optional[InterpreterConfig] = None, input_fn=input):
        self.config = config if config is not None else InterpreterConfig.load()
        self.files = FileRegistry()
        self.evaluator = Evaluator(self.config, self.files, input_fn)
        self.root_scope = Scope()
        self.execution_count = 0
        self._seed_constants()

    def _seed_constants(self):
        for name, value in self.config.constants.items():
            self.root_scope.define(name, owned(value))

    def reset(self):
        """Wipes every variable and function, closes open files and restores the constants."""
        self.files.close_all()
        self.root_scope.clear()
        self.evaluator.side_effects.clear()
        self.execution_count = 0
        self._seed_constants()

    def completions(self, prefix: str) -> List[str]:
        names = set(self.root_scope.names())
        names.update(fn.name for fn in self.root_scope.functions.values())
        names.update(self.evaluator.stdlib.functions)
        return sorted(n for n in names if n.startswith(prefix))

    def _source_context(self, source: str, line: int) -> str:
        lines = source.splitlines()
        if not 1 <= line <= len(lines):
            return ""
        return f"  {line} | {lines[line - 1]}"

    def _format_stacktrace(self, limit: int = 8) -> str:
        stack = self.evaluator.call_stack
        if not stack:
            return ""
        frames = [
            f"{frame['name']}(" + ", ".join(Printer().repr(a) for a in frame['args']) + ")"
            for frame in stack[-limit:]
        ]
        if len(stack) > limit:
            frames.insert(0, f"... {len(stack) - limit} more")
        return "Stacktrace: " + " -> ".join(frames)

    def _format_error(self, e: Exception, source: str) -> tuple[str, Optional[dict]]:
        line = None
        match e:
            case StaticError():
                msg = f"Error: {e}"
                line = e.line
            case ScriptItError():
                line = e.line if e.line is not None and e.line >= 0 else self.evaluator.current_line
                msg = f"Error: {e}"
            case RecursionError():
                line = self.evaluator.current_line
                msg = "Error: Maximum call depth exceeded"
            case _:
                msg = f"Error: InternalError: {e}"

        if not isinstance(e, StaticError):
            trace = self._format_stacktrace()
            if trace:
                msg += "\n" + trace

        token = None
        if line is not None and line >= 0:
            token = {'line': line, 'source': self._source_context(source, line)}
        return msg, token

    def handle_script(self, source_code: str) -> ExecutionResult:
        """The main entry point to execute a script."""
        self.evaluator.side_effects.clear()
        self.evaluator.call_stack.clear()
        self.evaluator.call_depth = 0
        self.evaluator.current_line = -1
        self.execution_count += 1
        try:
            value = run_program(source_code, self.root_scope, self.evaluator)
        except Exception as e:
            err_msg, err_token = self._format_error(e, source_code)
            self.evaluator._dbg("error", type(e).__name__, err_msg)
            self.evaluator.side_effects.append({'topics': ['stderr'], 'message': err_msg})
            return ExecutionResult(
                status='error',
                error_message=err_msg,
                error_token=err_token,
                side_effects=self.evaluator.side_effects,
            )
        return ExecutionResult(
            status='success',
            value=value,
            side_effects=self.evaluator.side_effects,
        )

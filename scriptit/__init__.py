from scriptit.scriptit_runtime import ScriptRunner, ExecutionResult, run_program, run_statement

__all__ = ["ScriptRunner", "ExecutionResult", "run_program", "run_statement"]

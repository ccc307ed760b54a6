import os
import sys
from typing import Any, Callable, List, Optional

from scriptit.scriptit_datatypes import (
    TokenType, Token, Call, MethodCall, Build, Postfix, Logical,
    Block, Assign, MultiAssign, If, ForRange, ForIn, While, FunctionDefStmt,
    Return, Pass, ExprStmt, LetContext,
    FunctionDef, Returned, is_return, unwrap_return, function_key,
    EvaluationError, UnknownFunctionError, ForwardDeclarationError, RecursionLimitError,
)
from scriptit.scriptit_scope import Scope
from scriptit.scriptit_values import (
    apply_binary, apply_unary, iterate, is_integral, is_numeric, owned, parse_number, truthy, type_name,
    display,
)
from scriptit.scriptit_methods import dispatch
from scriptit.scriptit_builtins import StdLib, FileRegistry, NOT_FOUND
from scriptit.scriptit_config import InterpreterConfig, DEBUG_ENV

T = TokenType

LITERALS = {"True": True, "False": False, "None": None}

RANGE_SLACK = 1e-9


class Evaluator:
    """The ScriptIt execution engine."""

    def __init__(self, config: Optional[InterpreterConfig] = None,
                 files: Optional[FileRegistry] = None, input_fn=input):
        self.config = config or InterpreterConfig()
        self.side_effects: List[Any] = []
        # Optional live sink: called as echo(topic, message) for every emitted effect
        self.echo: Optional[Callable[[str, str], None]] = None
        self.stdlib = StdLib(self, files, input_fn)
        self.call_depth = 0
        # one {"name", "args"} frame per active user call; left in place when an error unwinds
        self.call_stack: List[dict] = []
        self.current_line = -1
        # each script call costs a handful of Python frames
        wanted = self.config.max_call_depth * 25 + 1000
        if sys.getrecursionlimit() < wanted:
            sys.setrecursionlimit(wanted)

    @property
    def files(self) -> FileRegistry:
        return self.stdlib.files

    def emit(self, topic: str, message: str):
        self.side_effects.append({'topics': [topic], 'message': message})
        if self.echo is not None:
            self.echo(topic, message)

    def _dbg(self, *parts):
        if self.config.debug or os.environ.get(DEBUG_ENV):
            print("[DBG]", *parts, file=sys.stderr)

    # ===================================================================
    # Statements
    # ===================================================================

    def hoist(self, block: Block, scope: Scope):
        """Registers every fully defined function of `block` before it runs."""
        for stmt in block.statements:
            if isinstance(stmt, FunctionDefStmt) and stmt.body is not None:
                scope.define_function(FunctionDef(stmt.name, list(stmt.params), list(stmt.is_ref), stmt.body))

    def execute_block(self, block: Block, scope: Scope) -> Optional[Returned]:
        return self.execute_body(block, Scope(parent=scope))

    def execute_body(self, block: Block, scope: Scope) -> Optional[Returned]:
        """Runs `block` directly in `scope` (no new frame)."""
        self.hoist(block, scope)
        for stmt in block.statements:
            outcome = self.execute(stmt, scope)
            if is_return(outcome):
                return outcome
        return None

    def execute(self, stmt: Any, scope: Scope) -> Optional[Returned]:
        """Executes one statement. Returns a `Returned` when a `give` ran, else None."""
        line = getattr(stmt, 'line', -1)
        if line >= 0:
            self.current_line = line

        match stmt:
            case Block():
                return self.execute_block(stmt, scope)

            case Assign():
                self._assign(stmt, scope)
                return None

            case MultiAssign():
                for assign in stmt.assignments:
                    self._assign(assign, scope)
                return None

            case If():
                for cond, body in stmt.branches:
                    if truthy(self.evaluate(cond, scope)):
                        return self.execute_block(body, scope)
                if stmt.else_block is not None:
                    return self.execute_block(stmt.else_block, scope)
                return None

            case ForRange():
                return self._run_range(stmt, scope)

            case ForIn():
                iterable = self.evaluate(stmt.iterable, scope)
                loop_scope = Scope(parent=scope)
                for item in iterate(owned(iterable), stmt.line):
                    loop_scope.define(stmt.var, owned(item))
                    outcome = self.execute_block(stmt.body, loop_scope)
                    if is_return(outcome):
                        return outcome
                return None

            case While():
                while truthy(self.evaluate(stmt.condition, scope)):
                    outcome = self.execute_block(stmt.body, scope)
                    if is_return(outcome):
                        return outcome
                return None

            case FunctionDefStmt():
                self._define_function(stmt, scope)
                return None

            case Return():
                return Returned(self.evaluate(stmt.expr, scope))

            case Pass():
                return None

            case ExprStmt():
                self.evaluate(stmt.expr, scope)
                return None

            case LetContext():
                return self._run_let(stmt, scope)

            case _:
                raise EvaluationError(f"Cannot execute {type(stmt).__name__}", self.current_line)

    def _assign(self, stmt: Assign, scope: Scope):
        value = owned(self.evaluate(stmt.expr, scope))
        if stmt.is_declaration:
            scope.define(stmt.name, value)
        else:
            scope.set(stmt.name, value, stmt.line)

    def _define_function(self, stmt: FunctionDefStmt, scope: Scope):
        if stmt.body is not None:
            existing = scope.functions.get(function_key(stmt.name, len(stmt.params)))
            if existing is None or existing.body is not stmt.body:
                scope.define_function(FunctionDef(stmt.name, list(stmt.params), list(stmt.is_ref), stmt.body))
            return
        # a bare signature never shadows a visible definition
        if not scope.has_function(stmt.name, len(stmt.params)):
            scope.declare_function(stmt.name, stmt.params, stmt.is_ref)

    def _run_range(self, stmt: ForRange, scope: Scope) -> Optional[Returned]:
        start = self.evaluate(stmt.start, scope)
        end = self.evaluate(stmt.end, scope)
        for bound in (start, end):
            if not is_numeric(bound):
                raise EvaluationError(f"range() bounds must be numbers, got {type_name(bound)}", stmt.line)
        if stmt.step is None:
            step = 1 if start <= end else -1
        else:
            step = self.evaluate(stmt.step, scope)
            if not is_numeric(step):
                raise EvaluationError(f"range() step must be a number, got {type_name(step)}", stmt.line)
            if step == 0:
                raise EvaluationError("Step cannot be zero in range", stmt.line)

        integral = all(is_integral(v) for v in (start, end, step))
        loop_scope = Scope(parent=scope)
        k = 0
        while True:
            # recomputed from the count so float steps do not drift
            value = start + k * step
            if step > 0 and value > end + RANGE_SLACK:
                break
            if step < 0 and value < end - RANGE_SLACK:
                break
            loop_scope.define(stmt.var, int(value) if integral else float(value))
            outcome = self.execute_block(stmt.body, loop_scope)
            if is_return(outcome):
                return outcome
            k += 1
        return None

    def _run_let(self, stmt: LetContext, scope: Scope) -> Optional[Returned]:
        value = self.evaluate(stmt.resource, scope)
        handle = self.files.acquire(value)
        let_scope = Scope(parent=scope)
        let_scope.define(stmt.name, owned(handle))
        try:
            return self.execute_block(stmt.body, let_scope)
        finally:
            self.files.release(handle)

    # ===================================================================
    # Expressions
    # ===================================================================

    def evaluate(self, expr: Any, scope: Scope) -> Any:
        match expr:
            case Logical(op='&&'):
                if not truthy(self.evaluate(expr.left, scope)):
                    return False
                return truthy(self.evaluate(expr.right, scope))
            case Logical(op='||'):
                if truthy(self.evaluate(expr.left, scope)):
                    return True
                return truthy(self.evaluate(expr.right, scope))
            case Postfix():
                return self._eval_postfix(expr, scope)
            case None:
                return None
        raise EvaluationError(f"Cannot evaluate {type(expr).__name__}", self.current_line)

    def _eval_postfix(self, expr: Postfix, scope: Scope) -> Any:
        # values and, in parallel, the variable each value was read from
        stack: List[Any] = []
        names: List[Optional[str]] = []

        def push(value, name=None):
            stack.append(value)
            names.append(name)

        def pop_n(n: int, line: int):
            if len(stack) < n:
                raise EvaluationError("Malformed expression", line)
            if n == 0:
                return [], []
            values, sources = stack[-n:], names[-n:]
            del stack[-n:]
            del names[-n:]
            return values, sources

        for item in expr.items:
            match item:
                case Token(kind=T.NUMBER):
                    push(parse_number(item.text, item.line))
                case Token(kind=T.STRING):
                    push(item.text)
                case Token(kind=T.IDENTIFIER):
                    if item.text in LITERALS:
                        push(LITERALS[item.text])
                    else:
                        push(scope.get(item.text), item.text)
                case Token(kind=T.OPERATOR, text='~' | '!'):
                    (operand,), _ = pop_n(1, item.line)
                    push(apply_unary(item.text, operand, item.line))
                case Token(kind=T.OPERATOR):
                    (left, right), _ = pop_n(2, item.line)
                    push(apply_binary(item.text, left, right, item.line))
                case Logical():
                    push(self.evaluate(item, scope))
                case Call():
                    args, sources = pop_n(item.argc, item.line)
                    push(self.call_function(item.name, args, sources, scope, item.line))
                case MethodCall():
                    args, _ = pop_n(item.argc, item.line)
                    (receiver,), (source,) = pop_n(1, item.line)
                    push(self.call_method(receiver, source, item.name, args, scope, item.line))
                case Build():
                    push(self._build(item, pop_n, scope))
                case _:
                    raise EvaluationError(f"Unexpected item in expression: {item!r}", expr.line)

        if not stack:
            return None
        if len(stack) != 1:
            raise EvaluationError("Malformed expression", expr.line)
        return stack[0]

    def _build(self, item: Build, pop_n, scope: Scope):
        match item.kind:
            case 'list':
                values, _ = pop_n(item.count, item.line)
                return [owned(v) for v in values]
            case 'set':
                values, _ = pop_n(item.count, item.line)
                for v in values:
                    if isinstance(v, (list, set, dict)):
                        raise EvaluationError(f"unhashable type: '{type_name(v)}'", item.line)
                return set(values)
            case 'dict':
                values, _ = pop_n(item.count * 2, item.line)
                return {display(values[i]): owned(values[i + 1]) for i in range(0, len(values), 2)}
        raise EvaluationError(f"Unknown literal kind '{item.kind}'", item.line)

    # ===================================================================
    # Calls
    # ===================================================================

    def call_function(self, name: str, args: List[Any], sources: List[Optional[str]],
                      scope: Scope, line: int = -1) -> Any:
        """Builtins first, then the user function registered for (name, argc)."""
        result = self.stdlib.call_builtin(name, args, line)
        if result is not NOT_FOUND:
            return result

        fn = scope.get_function(name, len(args))
        if fn is None:
            raise UnknownFunctionError(name, len(args), line)
        if fn.body is None:
            raise ForwardDeclarationError(name, line)
        if self.call_depth >= self.config.max_call_depth:
            raise RecursionLimitError("Maximum call depth exceeded", line)

        self._dbg("call", fn.key, args)
        call_scope = Scope(parent=scope, barrier=True)
        for param, arg in zip(fn.params, args):
            call_scope.define(param, owned(arg))

        self.call_depth += 1
        self.call_stack.append({"name": fn.name, "args": args})
        try:
            outcome = self.execute_body(fn.body, call_scope)
        finally:
            self.call_depth -= 1
        self.call_stack.pop()

        # write by-reference parameters back to the caller's variables
        for param, is_ref, source in zip(fn.params, fn.is_ref, sources):
            if is_ref and source is not None and scope.can_set(source):
                scope.set(source, owned(call_scope.get(param)), line)

        return unwrap_return(outcome)

    def call_method(self, receiver: Any, source: Optional[str], method: str,
                    args: List[Any], scope: Scope, line: int = -1) -> Any:
        """Dispatches `receiver.method(args)`.

        When the receiver was read from a variable this frame may mutate, the
        method runs on the stored value so mutations stick. Otherwise it runs
        on a copy and mutations are dropped.
        """
        args = [owned(a) for a in args]
        if source is not None and scope.can_set(source):
            target = scope.get(source)
        else:
            target = owned(receiver)
        return dispatch(target, method, args, line)

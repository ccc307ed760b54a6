"""
Parser for ScriptIt.

Statements are parsed by recursive descent. Expressions have two layers:
`||` and `&&` build `Logical` nodes so their right operand is evaluated
lazily, and everything below them goes through a shunting-yard pass that
emits a flat postfix sequence.
"""
from typing import List, Optional

from scriptit.scriptit_datatypes import (
    Token, TokenType, ParseError,
    Call, MethodCall, Build, Postfix, Logical, Expression,
    Block, Assign, MultiAssign, If, ForRange, ForIn, While, FunctionDefStmt,
    Return, Pass, ExprStmt, LetContext,
)

T = TokenType

PRECEDENCE = {
    '||': 1,
    '&&': 2,
    '==': 3, '!=': 3, 'is': 3, 'is not': 3, 'points': 3, 'not points': 3,
    '<': 4, '<=': 4, '>': 4, '>=': 4, '->': 4, '<->': 4, '---': 4,
    '+': 5, '-': 5,
    '*': 6, '/': 6, '%': 6,
    '^': 7,
    '~': 8, '!': 8,
}

UNARY_OPERATORS = {'-': '~', '!': '!'}

EDGE_TOKENS = (T.ARROW, T.SWAP, T.DASH)

COMPOUND_OPERATORS = {'+=': '+', '-=': '-', '*=': '*', '/=': '/', '%=': '%'}

# Tokens after which an adjacent operand means multiplication: `2x`, `(a)(b)`, `x y`.
OPERAND_ENDS = (T.NUMBER, T.IDENTIFIER, T.RPAREN, T.RBRACKET)
IMPLICIT_FACTOR_STARTS = (T.NUMBER, T.IDENTIFIER, T.LPAREN)
OPERAND_STARTS = (T.NUMBER, T.STRING, T.IDENTIFIER, T.LPAREN, T.LBRACKET, T.LBRACE)

LITERAL_NAMES = ("True", "False", "None")


def _none_literal(line: int) -> Postfix:
    return Postfix([Token(T.IDENTIFIER, "None", -1, line)], line)


def _items_of(expr: Expression) -> list:
    """Postfix items to splice into an enclosing sequence."""
    if isinstance(expr, Postfix):
        return list(expr.items)
    return [expr]


def _is_empty(expr: Expression) -> bool:
    return isinstance(expr, Postfix) and expr.is_empty()


class Parser:
    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        if not tokens or tokens[-1].kind is not T.EOF:
            last_line = tokens[-1].line if tokens else 1
            self.tokens = list(tokens) + [Token(T.EOF, "", -1, last_line)]
        self.pos = 0
        self.last_line = 1
        # >0 while inside (), [] or {}; newlines are insignificant there
        self.nesting = 0
        # nesting level at which '->' separates a dict key from its value
        self.key_nesting = -1

    # ===================================================================
    # Token helpers
    # ===================================================================

    def _peek_raw(self, ahead: int = 0) -> Token:
        idx = min(self.pos + ahead, len(self.tokens) - 1)
        return self.tokens[idx]

    def _skip_newlines(self):
        while self.tokens[self.pos].kind is T.NEWLINE:
            self.pos += 1

    def _peek(self) -> Token:
        """Next token, looking through newlines."""
        idx = self.pos
        while self.tokens[idx].kind is T.NEWLINE:
            idx += 1
        return self.tokens[idx]

    def _advance(self) -> Token:
        tok = self.tokens[self.pos]
        if tok.kind is not T.EOF:
            self.pos += 1
        if tok.line >= 0:
            self.last_line = tok.line
        return tok

    def _check(self, kind: TokenType, text: Optional[str] = None) -> bool:
        if kind is T.NEWLINE:
            return self._peek_raw().is_(kind)
        return self._peek().is_(kind, text)

    def _match(self, kind: TokenType, text: Optional[str] = None) -> Optional[Token]:
        if self._check(kind, text):
            if kind is not T.NEWLINE:
                self._skip_newlines()
            return self._advance()
        return None

    def _expect(self, kind: TokenType, text: Optional[str], message: str) -> Token:
        tok = self._match(kind, text)
        if tok is None:
            found = self._peek()
            shown = "end of input" if found.kind is T.EOF else f"'{found.text}'"
            raise ParseError(f"{message}, found {shown}", found.line)
        return tok

    def _at_end(self) -> bool:
        return self._peek().kind is T.EOF

    def _error(self, message: str, tok: Optional[Token] = None):
        line = tok.line if tok is not None else self._peek().line
        return ParseError(message, line)

    def _end_statement(self):
        """Consume the `.` terminator, or forgive its absence where layout makes it implicit."""
        if self._match(T.DOT):
            return
        nxt = self._peek()
        if nxt.kind in (T.EOF, T.SEMICOLON) or nxt.is_(T.KEYWORD, "elif") or nxt.is_(T.KEYWORD, "else"):
            return
        if nxt.line > self.last_line:
            return
        raise ParseError(f"Expected '.' before '{nxt.text}'", nxt.line)

    # ===================================================================
    # Statements
    # ===================================================================

    def parse_program(self) -> Block:
        block = self._parse_block(())
        if not self._at_end():
            tok = self._peek()
            raise self._error(f"Unexpected '{tok.text}'", tok)
        return block

    def _parse_block(self, terminators) -> Block:
        block = Block()
        while True:
            self._skip_newlines()
            tok = self._peek_raw()
            if tok.kind is T.EOF:
                return block
            if any(tok.is_(kind, text) for kind, text in terminators):
                return block
            if tok.kind is T.DOT:
                # empty statement
                self._advance()
                continue
            if tok.kind is T.SEMICOLON:
                raise self._error("Unexpected ';' with no open block", tok)
            block.statements.append(self._parse_statement())

    def _parse_body(self, what: str, terminators=((T.SEMICOLON, None),)) -> Block:
        self._expect(T.COLON, None, f"Expected ':' after {what}")
        return self._parse_block(terminators)

    def _close_block(self, what: str):
        self._expect(T.SEMICOLON, None, f"Expected ';' to close {what}")

    def _parse_statement(self):
        tok = self._peek()
        if tok.kind is T.KEYWORD:
            handler = {
                "if": self._parse_if,
                "for": self._parse_for,
                "while": self._parse_while,
                "fn": self._parse_function,
                "give": self._parse_give,
                "pass": self._parse_pass,
                "let": self._parse_let,
                "var": self._parse_var,
            }.get(tok.text)
            if handler is not None:
                self._match(T.KEYWORD, tok.text)
                return handler(tok)

        if tok.kind is T.INCDEC:
            return self._parse_prefix_step()

        if tok.kind is T.IDENTIFIER:
            self._skip_newlines()
            nxt = self._peek_raw(1)
            if nxt.kind is T.ASSIGN and nxt.text in COMPOUND_OPERATORS:
                return self._parse_compound_assign()
            if nxt.is_(T.ASSIGN, "="):
                name = self._advance()
                self._advance()
                expr = self._parse_required_expression(f"assignment to '{name.text}'")
                self._end_statement()
                return Assign(name.text, expr, False, name.line)
            if nxt.kind is T.INCDEC:
                name = self._advance()
                op = self._advance()
                return self._step_statement(name, op)

        expr = self.parse_expression()
        if _is_empty(expr):
            bad = self._peek()
            shown = "end of input" if bad.kind is T.EOF else f"'{bad.text}'"
            raise self._error(f"Unexpected {shown}", bad)
        self._end_statement()
        return ExprStmt(expr, tok.line)

    def _parse_if(self, kw: Token) -> If:
        stmt = If()
        stops = ((T.KEYWORD, "elif"), (T.KEYWORD, "else"), (T.SEMICOLON, None))
        cond = self._parse_required_expression("'if'")
        stmt.branches.append((cond, self._parse_body("if condition", stops)))
        while self._match(T.KEYWORD, "elif"):
            cond = self._parse_required_expression("'elif'")
            stmt.branches.append((cond, self._parse_body("elif condition", stops)))
        if self._match(T.KEYWORD, "else"):
            stmt.else_block = self._parse_body("else")
        self._close_block("if-structure")
        return stmt

    def _parse_for(self, kw: Token):
        var = self._expect(T.IDENTIFIER, None, "Expected loop variable after 'for'")
        self._expect(T.KEYWORD, "in", "Expected 'in' after loop variable")

        if self._match(T.KEYWORD, "range"):
            self._expect(T.LPAREN, None, "Expected '(' after 'range'")
            self.nesting += 1
            step = None
            if self._match(T.KEYWORD, "from"):
                start = self._parse_required_expression("'from'")
                self._expect(T.KEYWORD, "to", "Expected 'to' in range")
                end = self._parse_required_expression("'to'")
                if self._match(T.KEYWORD, "step"):
                    step = self._parse_required_expression("'step'")
            else:
                start = Postfix([Token(T.NUMBER, "0", -1, var.line)], var.line)
                end = self._parse_required_expression("'range('")
            self.nesting -= 1
            self._expect(T.RPAREN, None, "Expected ')' to close range")
            body = self._parse_body("range")
            self._close_block("for loop")
            return ForRange(var.text, start, end, step, body, var.line)

        iterable = self._parse_required_expression("'in'")
        body = self._parse_body("for-in iterable")
        self._close_block("for loop")
        return ForIn(var.text, iterable, body, var.line)

    def _parse_while(self, kw: Token) -> While:
        cond = self._parse_required_expression("'while'")
        body = self._parse_body("while condition")
        self._close_block("while loop")
        return While(cond, body)

    def _parse_function(self, kw: Token) -> FunctionDefStmt:
        name = self._expect(T.IDENTIFIER, None, "Expected function name after 'fn'")
        self._expect(T.LPAREN, None, f"Expected '(' after function name '{name.text}'")
        params: List[str] = []
        is_ref: List[bool] = []
        if not self._check(T.RPAREN):
            while True:
                ref = self._match(T.AT) is not None
                param = self._expect(T.IDENTIFIER, None, "Expected parameter name")
                if param.text in params:
                    raise ParseError(
                        f"Duplicate parameter name '{param.text}' in function '{name.text}'", param.line
                    )
                params.append(param.text)
                is_ref.append(ref)
                if not self._match(T.COMMA):
                    break
        self._expect(T.RPAREN, None, "Expected ')' after parameters")

        nxt = self._peek_raw()
        if nxt.kind in (T.DOT, T.NEWLINE, T.EOF):
            self._end_statement()
            return FunctionDefStmt(name.text, params, is_ref, None, name.line)

        body = self._parse_body(f"signature of '{name.text}'")
        self._close_block(f"function '{name.text}'")
        if not body.statements:
            raise ParseError("Empty function body not allowed, use 'pass'.", name.line)
        return FunctionDefStmt(name.text, params, is_ref, body, name.line)

    def _parse_give(self, kw: Token) -> Return:
        if self._peek_raw().kind is T.LPAREN and self._peek_raw(1).kind is T.RPAREN:
            self._advance()
            self._advance()
            expr = _none_literal(kw.line)
        else:
            expr = self.parse_expression()
            if _is_empty(expr):
                expr = _none_literal(kw.line)
        self._end_statement()
        return Return(expr, kw.line)

    def _parse_pass(self, kw: Token) -> Pass:
        self._end_statement()
        return Pass()

    def _parse_let(self, kw: Token):
        name = self._expect(T.IDENTIFIER, None, "Expected name after 'let'")
        self._expect(T.KEYWORD, "be", f"Expected 'be' after 'let {name.text}'")
        expr = self._parse_required_expression("'be'")
        if self._match(T.COLON):
            body = self._parse_block(((T.SEMICOLON, None),))
            self._close_block(f"let '{name.text}'")
            return LetContext(name.text, expr, body, name.line)
        self._end_statement()
        return Assign(name.text, expr, True, name.line)

    def _parse_var(self, kw: Token):
        assignments = [self._parse_one_var()]
        while True:
            if self._match(T.COMMA):
                assignments.append(self._parse_one_var())
                continue
            if self._starts_another_var():
                assignments.append(self._parse_one_var())
                continue
            break
        self._end_statement()
        if len(assignments) == 1:
            return assignments[0]
        return MultiAssign(assignments)

    def _starts_another_var(self) -> bool:
        # `var a = 1 b = 2.` and `var a b.` declare several names without commas.
        tok = self._peek_raw()
        if tok.kind is not T.IDENTIFIER or tok.text in LITERAL_NAMES:
            return False
        nxt = self._peek_raw(1)
        if nxt.kind is T.DOT:
            # `b.` ends the declaration list; `b.size()` is a method call
            method = self._peek_raw(2)
            return not (
                method.kind is T.IDENTIFIER
                and nxt.offset + 1 == method.offset
                and self._peek_raw(3).kind is T.LPAREN
            )
        return nxt.is_(T.ASSIGN, "=") or nxt.kind in (T.COMMA, T.IDENTIFIER, T.EOF, T.NEWLINE)

    def _parse_one_var(self) -> Assign:
        name = self._expect(T.IDENTIFIER, None, "Expected variable name after 'var'")
        if self._peek_raw().is_(T.ASSIGN, "="):
            self._advance()
            expr = self._parse_required_expression(f"'var {name.text} ='")
        else:
            expr = _none_literal(name.line)
        return Assign(name.text, expr, True, name.line)

    def _parse_compound_assign(self) -> Assign:
        name = self._advance()
        op = self._advance()
        rhs = self._parse_required_expression(f"'{op.text}'")
        items = [name] + _items_of(rhs) + [Token(T.OPERATOR, COMPOUND_OPERATORS[op.text], op.offset, op.line)]
        self._end_statement()
        return Assign(name.text, Postfix(items, name.line), False, name.line)

    def _parse_prefix_step(self) -> Assign:
        self._skip_newlines()
        op = self._advance()
        name = self._expect(T.IDENTIFIER, None, f"Expected variable name after '{op.text}'")
        return self._step_statement(name, op)

    def _step_statement(self, name: Token, op: Token) -> Assign:
        arith = '+' if op.text == '++' else '-'
        items = [name, Token(T.NUMBER, "1", -1, op.line), Token(T.OPERATOR, arith, op.offset, op.line)]
        self._end_statement()
        return Assign(name.text, Postfix(items, name.line), False, name.line)

    # ===================================================================
    # Expressions
    # ===================================================================

    def _parse_required_expression(self, after: str) -> Expression:
        expr = self.parse_expression()
        if _is_empty(expr):
            bad = self._peek()
            shown = "end of input" if bad.kind is T.EOF else f"'{bad.text}'"
            raise self._error(f"Expected expression after {after}, found {shown}", bad)
        return expr

    def parse_expression(self) -> Expression:
        expr = self._parse_or()
        if self._peek_raw().is_(T.KEYWORD, "of"):
            of = self._advance()
            # `f(args) of target` is `target.f(args)`
            if not (isinstance(expr, Postfix) and expr.items and isinstance(expr.items[-1], Call)):
                raise ParseError("'of' must follow a function call", of.line)
            target = self._parse_or()
            if _is_empty(target):
                raise self._error("Expected expression after 'of'")
            call = expr.items[-1]
            items = _items_of(target) + expr.items[:-1] + [MethodCall(call.name, call.argc, call.line)]
            return Postfix(items, expr.line)
        return expr

    def _peek_logical(self, op: str) -> bool:
        if self.nesting > 0:
            self._skip_newlines()
        return self._peek_raw().is_(T.OPERATOR, op)

    def _parse_or(self) -> Expression:
        left = self._parse_and()
        while self._peek_logical('||'):
            op = self._advance()
            self._skip_newlines()
            right = self._parse_and()
            self._check_logical_operands(left, right, op)
            left = Logical('||', left, right, op.line)
        return left

    def _parse_and(self) -> Expression:
        left = self._parse_sequence()
        while self._peek_logical('&&'):
            op = self._advance()
            self._skip_newlines()
            right = self._parse_sequence()
            self._check_logical_operands(left, right, op)
            left = Logical('&&', left, right, op.line)
        return left

    def _check_logical_operands(self, left, right, op: Token):
        if _is_empty(left) or _is_empty(right):
            raise ParseError(f"Operator '{op.text}' needs an operand on both sides", op.line)

    def _push_operator(self, out: list, ops: List[Token], op: Token):
        prec = PRECEDENCE[op.text]
        while ops and PRECEDENCE[ops[-1].text] >= prec:
            out.append(ops.pop())
        ops.append(op)

    def _is_method_dot(self) -> bool:
        dot, name, paren = self._peek_raw(), self._peek_raw(1), self._peek_raw(2)
        return (
            dot.kind is T.DOT
            and name.kind is T.IDENTIFIER
            and paren.kind is T.LPAREN
            and dot.offset + 1 == name.offset
        )

    def _parse_sequence(self) -> Postfix:
        """Shunting-yard over everything that binds tighter than `&&`."""
        start_line = self._peek().line
        out: list = []
        ops: List[Token] = []
        expect_operand = True
        started = False
        last_end: Optional[TokenType] = None

        while True:
            if self.nesting > 0 or (expect_operand and started):
                self._skip_newlines()
            tok = self._peek_raw()

            if tok.kind in OPERAND_STARTS:
                # `y =` starts the next declaration in `var x = 1 y = 2.`
                if tok.kind is T.IDENTIFIER and self._peek_raw(1).is_(T.ASSIGN, "="):
                    break
                if not expect_operand:
                    if tok.kind in IMPLICIT_FACTOR_STARTS and last_end in OPERAND_ENDS:
                        self._push_operator(out, ops, Token(T.OPERATOR, '*', tok.offset, tok.line))
                    else:
                        break
                last_end = self._parse_operand(out)
                expect_operand = False
                started = True
                continue

            if not expect_operand and self._is_method_dot():
                self._advance()
                name = self._advance()
                args = self._parse_arguments(T.LPAREN, T.RPAREN, f"method '{name.text}'")
                for arg in args:
                    out.extend(_items_of(arg))
                out.append(MethodCall(name.text, len(args), name.line))
                last_end = T.IDENTIFIER
                continue

            if tok.kind is T.OPERATOR and tok.text not in ('&&', '||'):
                self._advance()
                started = True
                if expect_operand:
                    if tok.text not in UNARY_OPERATORS:
                        raise ParseError(f"Unexpected operator '{tok.text}'", tok.line)
                    # prefix operators never pop the stack
                    ops.append(Token(T.OPERATOR, UNARY_OPERATORS[tok.text], tok.offset, tok.line))
                    continue
                if tok.text == '!':
                    if not self._peek_raw().is_(T.KEYWORD, "points"):
                        raise ParseError("Unexpected 'not' between operands", tok.line)
                    self._advance()
                    tok = Token(T.OPERATOR, 'not points', tok.offset, tok.line)
                self._push_operator(out, ops, tok)
                expect_operand = True
                continue

            if not expect_operand and tok.kind in EDGE_TOKENS:
                if tok.kind is T.ARROW and self.nesting == self.key_nesting:
                    break
                self._advance()
                self._push_operator(out, ops, Token(T.OPERATOR, tok.text, tok.offset, tok.line))
                expect_operand = True
                continue

            if not expect_operand and tok.is_(T.KEYWORD, "is"):
                self._advance()
                text = 'is'
                if self._peek_raw().is_(T.OPERATOR, '!'):
                    self._advance()
                    text = 'is not'
                self._push_operator(out, ops, Token(T.OPERATOR, text, tok.offset, tok.line))
                expect_operand = True
                continue

            if not expect_operand and tok.is_(T.KEYWORD, "points"):
                self._advance()
                self._push_operator(out, ops, Token(T.OPERATOR, 'points', tok.offset, tok.line))
                expect_operand = True
                continue

            break

        if started and expect_operand:
            found = self._peek_raw()
            shown = "end of input" if found.kind is T.EOF else f"'{found.text}'"
            raise ParseError(f"Expected operand, found {shown}", found.line)
        while ops:
            out.append(ops.pop())
        return Postfix(out, start_line)

    def _parse_operand(self, out: list) -> TokenType:
        """Parses one operand into `out`; returns the kind used for implicit multiplication."""
        tok = self._advance()

        if tok.kind in (T.NUMBER, T.STRING):
            out.append(tok)
            return tok.kind

        if tok.kind is T.IDENTIFIER:
            if self._peek_raw().kind is T.LPAREN:
                args = self._parse_arguments(T.LPAREN, T.RPAREN, f"call to '{tok.text}'")
                for arg in args:
                    out.extend(_items_of(arg))
                out.append(Call(tok.text, len(args), tok.line))
            else:
                out.append(tok)
            return T.IDENTIFIER

        if tok.kind is T.LPAREN:
            self.nesting += 1
            inner = self.parse_expression()
            self.nesting -= 1
            if _is_empty(inner):
                raise ParseError("Empty parentheses in expression", tok.line)
            self._expect(T.RPAREN, None, "Expected ')'")
            out.extend(_items_of(inner))
            return T.RPAREN

        if tok.kind is T.LBRACKET:
            self.pos -= 1
            elements = self._parse_arguments(T.LBRACKET, T.RBRACKET, "list")
            for elem in elements:
                out.extend(_items_of(elem))
            out.append(Build('list', len(elements), tok.line))
            return T.RBRACKET

        # `{a, b}` is a set, `{k -> v, ...}` and `{}` are dicts
        self.nesting += 1
        outer_key_nesting, self.key_nesting = self.key_nesting, self.nesting
        count = 0
        kind = 'dict' if self._check(T.RBRACE) else 'set'
        if kind == 'set':
            while True:
                first = self._parse_required_expression("'{'" if count == 0 else "','")
                out.extend(_items_of(first))
                if count == 0 and self._check(T.ARROW):
                    kind = 'dict'
                if kind == 'dict':
                    self._expect(T.ARROW, None, "Expected '->' in dict literal")
                    self.key_nesting = -1
                    value = self._parse_required_expression("'->'")
                    self.key_nesting = self.nesting
                    out.extend(_items_of(value))
                count += 1
                if not self._match(T.COMMA):
                    break
        self.key_nesting = outer_key_nesting
        self.nesting -= 1
        self._expect(T.RBRACE, None, f"Expected '}}' to close {kind}")
        out.append(Build(kind, count, tok.line))
        return T.RBRACE

    def _parse_arguments(self, open_kind: TokenType, close_kind: TokenType, what: str) -> List[Expression]:
        self._expect(open_kind, None, f"Expected opening bracket for {what}")
        self.nesting += 1
        args: List[Expression] = []
        if not self._check(close_kind):
            while True:
                args.append(self._parse_required_expression(f"'(' or ',' in {what}"))
                if not self._match(T.COMMA):
                    break
        self.nesting -= 1
        self._expect(close_kind, None, f"Expected closing bracket for {what}")
        return args


def parse(tokens: List[Token]) -> Block:
    return Parser(tokens).parse_program()

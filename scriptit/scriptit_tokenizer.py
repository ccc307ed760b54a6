"""
Turns ScriptIt source text into a flat list of tokens.
"""
from typing import List

from scriptit.scriptit_datatypes import Token, TokenType, LexError, KEYWORDS

T = TokenType

WORD_OPERATORS = {"and": "&&", "or": "||", "not": "!"}

# Two-word type names collapse into a single identifier.
MULTI_WORD_NAMES = {
    ("long", "double"): "long_double",
    ("long", "long"): "long_long",
    ("unsigned", "int"): "uint",
    ("unsigned", "long"): "ulong",
}

# Longest first; matched greedily before the single-character table.
MULTI_CHAR_SYMBOLS = [
    ("<->", T.SWAP),
    ("---", T.DASH),
    ("+=", T.ASSIGN), ("-=", T.ASSIGN), ("*=", T.ASSIGN), ("/=", T.ASSIGN), ("%=", T.ASSIGN),
    ("++", T.INCDEC), ("--", T.INCDEC),
    ("->", T.ARROW),
    ("==", T.OPERATOR), ("!=", T.OPERATOR), ("<=", T.OPERATOR), (">=", T.OPERATOR),
    ("&&", T.OPERATOR), ("||", T.OPERATOR),
]

SINGLE_CHAR_SYMBOLS = {
    '+': T.OPERATOR, '-': T.OPERATOR, '*': T.OPERATOR, '/': T.OPERATOR,
    '^': T.OPERATOR, '%': T.OPERATOR, '<': T.OPERATOR, '>': T.OPERATOR,
    '!': T.OPERATOR, '=': T.ASSIGN,
    ',': T.COMMA, '.': T.DOT, ':': T.COLON, ';': T.SEMICOLON, '@': T.AT,
    '(': T.LPAREN, ')': T.RPAREN, '[': T.LBRACKET, ']': T.RBRACKET,
    '{': T.LBRACE, '}': T.RBRACE,
}

STRING_ESCAPES = {'n': '\n', 't': '\t', '\\': '\\'}


def _is_ident_start(c: str) -> bool:
    return c.isascii() and (c.isalpha() or c == '_')


def _is_ident_char(c: str) -> bool:
    return c.isascii() and (c.isalnum() or c == '_')


class Tokenizer:
    """Single pass, one character of lookahead (two for a few operators)."""

    def tokenize(self, source: str) -> List[Token]:
        self.src = source
        self.i = 0
        self.line = 1
        self.tokens: List[Token] = []
        n = len(source)

        while self.i < n:
            c = source[self.i]

            if c == '`':
                self._line_continuation()
                continue
            if c == '\n':
                self._emit(T.NEWLINE, "\\n", self.i)
                self.line += 1
                self.i += 1
                continue
            if c.isspace():
                self.i += 1
                continue
            if source.startswith("-->", self.i):
                self._block_comment()
                continue
            if c == '#':
                while self.i < n and source[self.i] != '\n':
                    self.i += 1
                continue
            if c in ('"', "'"):
                self._string(c)
                continue
            if c.isdigit() or (c == '.' and self._peek_char(1).isdigit()):
                self._number()
                continue
            if _is_ident_start(c):
                self._word()
                continue
            if self._symbol():
                continue
            raise LexError(f"Unexpected character '{c}'", self.line)

        self._emit(T.EOF, "", n)
        return self.tokens

    def _peek_char(self, ahead: int = 0) -> str:
        j = self.i + ahead
        return self.src[j] if j < len(self.src) else ""

    def _emit(self, kind: TokenType, text: str, offset: int):
        self.tokens.append(Token(kind, text, offset, self.line))

    def _line_continuation(self):
        # A backtick followed only by blanks up to a newline swallows that newline.
        j = self.i + 1
        while j < len(self.src) and self.src[j] != '\n' and self.src[j].isspace():
            j += 1
        if j < len(self.src) and self.src[j] == '\n':
            self.line += 1
            self.i = j + 1
        else:
            # stray backtick
            self.i += 1

    def _block_comment(self):
        end = self.src.find("<--", self.i + 3)
        stop = len(self.src) if end == -1 else end + 3
        self.line += self.src.count('\n', self.i, stop)
        self.i = stop

    def _string(self, quote: str):
        start = self.i
        self.i += 1
        chars = []
        n = len(self.src)
        while self.i < n and self.src[self.i] != quote:
            c = self.src[self.i]
            if c == '\\' and self.i + 1 < n:
                self.i += 1
                esc = self.src[self.i]
                chars.append(quote if esc == quote else STRING_ESCAPES.get(esc, esc))
            else:
                if c == '\n':
                    self.line += 1
                chars.append(c)
            self.i += 1
        if self.i >= n:
            raise LexError("Unterminated string", self.line)
        self.i += 1
        self._emit(T.STRING, "".join(chars), start)

    def _number(self):
        start = self.i
        seen_dot = False
        while self.i < len(self.src):
            c = self.src[self.i]
            if c.isdigit():
                self.i += 1
            elif c == '.' and not seen_dot and self._peek_char(1).isdigit():
                # `3.` followed by anything but a digit leaves the dot for the next token
                seen_dot = True
                self.i += 1
            else:
                break
        self._emit(T.NUMBER, self.src[start:self.i], start)

    def _read_word_at(self, j: int):
        k = j
        while k < len(self.src) and _is_ident_char(self.src[k]):
            k += 1
        return self.src[j:k], k

    def _skip_blanks_from(self, j: int) -> int:
        while j < len(self.src) and self.src[j] == ' ':
            j += 1
        return j

    def _word(self):
        start = self.i
        word, end = self._read_word_at(self.i)
        self.i = end

        if word in ("long", "unsigned"):
            j = self._skip_blanks_from(end)
            if j < len(self.src) and _is_ident_start(self.src[j]):
                second, k = self._read_word_at(j)
                merged = MULTI_WORD_NAMES.get((word, second))
                if merged is not None:
                    self.i = k
                    if merged == "ulong":
                        j2 = self._skip_blanks_from(k)
                        third, k2 = self._read_word_at(j2)
                        if third == "long":
                            merged, self.i = "ulong_long", k2
                    self._emit(T.IDENTIFIER, merged, start)
                    return

        if word in KEYWORDS:
            self._emit(T.KEYWORD, word, start)
        elif word in WORD_OPERATORS:
            self._emit(T.OPERATOR, WORD_OPERATORS[word], start)
        else:
            self._emit(T.IDENTIFIER, word, start)

    def _symbol(self) -> bool:
        for text, kind in MULTI_CHAR_SYMBOLS:
            if self.src.startswith(text, self.i):
                self._emit(kind, text, self.i)
                self.i += len(text)
                return True
        kind = SINGLE_CHAR_SYMBOLS.get(self.src[self.i])
        if kind is None:
            return False
        self._emit(kind, self.src[self.i], self.i)
        self.i += 1
        return True


def tokenize(source: str) -> List[Token]:
    return Tokenizer().tokenize(source)

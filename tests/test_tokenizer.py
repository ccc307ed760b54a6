import pytest

from scriptit.scriptit_tokenizer import tokenize
from scriptit.scriptit_datatypes import TokenType, LexError

T = TokenType


def kinds(src):
    return [t.kind for t in tokenize(src)]


def texts(src):
    return [t.text for t in tokenize(src) if t.kind is not T.EOF]


@pytest.mark.parametrize("literal", ["0", "7", "42", "123456789012345678901234567890"])
def test_integer_literals_keep_their_text(literal):
    tokens = tokenize(literal)
    assert tokens[0].kind is T.NUMBER
    assert tokens[0].text == literal
    assert tokens[1].kind is T.EOF


def test_trailing_dot_is_a_terminator_not_part_of_the_number():
    tokens = tokenize("3.14.")
    assert [(t.kind, t.text) for t in tokens[:2]] == [(T.NUMBER, "3.14"), (T.DOT, ".")]
    assert tokens[2].kind is T.EOF


def test_integer_followed_by_dot():
    assert kinds("1.") == [T.NUMBER, T.DOT, T.EOF]


def test_leading_dot_number():
    tokens = tokenize(".5")
    assert tokens[0].kind is T.NUMBER
    assert tokens[0].text == ".5"


def test_statement_tokens_and_offsets():
    tokens = tokenize("x = 3.")
    assert [t.kind for t in tokens] == [T.IDENTIFIER, T.ASSIGN, T.NUMBER, T.DOT, T.EOF]
    assert [t.offset for t in tokens[:4]] == [0, 2, 4, 5]


def test_newlines_are_tokens_and_lines_advance():
    tokens = tokenize("a\nb")
    assert [t.kind for t in tokens] == [T.IDENTIFIER, T.NEWLINE, T.IDENTIFIER, T.EOF]
    assert tokens[0].line == 1
    assert tokens[2].line == 2


def test_backtick_continues_the_line():
    tokens = tokenize("a + `   \n b")
    assert T.NEWLINE not in [t.kind for t in tokens]
    assert tokens[2].text == "b"
    assert tokens[2].line == 2


def test_stray_backtick_is_ignored():
    assert texts("a ` b") == ["a", "b"]


def test_comments():
    tokens = tokenize("a --> spans\ntwo lines <-- b # trailing\nc")
    idents = [t for t in tokens if t.kind is T.IDENTIFIER]
    assert [t.text for t in idents] == ["a", "b", "c"]
    assert idents[1].line == 2
    assert idents[2].line == 3


def test_decrement_is_not_a_comment():
    assert kinds("x--.") == [T.IDENTIFIER, T.INCDEC, T.DOT, T.EOF]


def test_string_escapes():
    tokens = tokenize('"a\\"b\\n" \'it\\\'s\'')
    assert tokens[0].kind is T.STRING
    assert tokens[0].text == 'a"b\n'
    assert tokens[1].text == "it's"


def test_unterminated_string_is_a_lex_error():
    with pytest.raises(LexError) as exc:
        tokenize('var s = "abc')
    assert "Unterminated string" in str(exc.value)
    assert exc.value.line == 1


def test_unexpected_character():
    with pytest.raises(LexError) as exc:
        tokenize("x = 1.\ny = $")
    assert "Unexpected character '$'" in exc.value.message
    assert exc.value.line == 2


def test_keywords_and_word_operators():
    tokens = tokenize("if a and not b or c is d")
    assert tokens[0].kind is T.KEYWORD
    assert [t.text for t in tokens if t.kind is T.OPERATOR] == ["&&", "!", "||"]
    assert tokens[-2].kind is T.IDENTIFIER
    assert any(t.is_(T.KEYWORD, "is") for t in tokens)


def test_multi_word_type_names():
    assert texts("unsigned long long x") == ["ulong_long", "x"]
    assert texts("long double y") == ["long_double", "y"]
    assert texts("unsigned int z") == ["uint", "z"]
    assert texts("long long w") == ["long_long", "w"]


def test_operators_match_longest_first():
    assert texts("a += 1 -> <= == != && || ++") == ["a", "+=", "1", "->", "<=", "==", "!=", "&&", "||", "++"]
    assert [t.kind for t in tokenize("<-> ---")][:2] == [T.SWAP, T.DASH]

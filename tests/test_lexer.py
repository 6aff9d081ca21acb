# tests/test_lexer.py
"""
Tests for the C++ tokeniser.
"""

import pytest

from cppstyle.lexer import CommentStyle, Lexer, TokenKind, tokenize


def texts(source):
    return [t.text for t in Lexer(source).tokens()]


class TestBasicTokens:

    def test_simple_declaration(self):
        toks = Lexer("int x = 0;").tokens()
        assert [t.text for t in toks] == ["int", "x", "=", "0", ";"]
        assert [t.kind for t in toks] == [
            TokenKind.KEYWORD, TokenKind.IDENTIFIER, TokenKind.PUNCTUATION,
            TokenKind.LITERAL, TokenKind.PUNCTUATION,
        ]

    def test_positions_are_one_based(self):
        toks = Lexer("int x;\n  y = 2;").tokens()
        y = toks[3]
        assert y.text == "y"
        assert (y.line, y.column) == (2, 3)

    def test_file_is_recorded(self):
        toks = Lexer("x", file="a.cpp").tokens()
        assert toks[0].file == "a.cpp"

    def test_contextual_keywords_are_identifiers(self):
        toks = Lexer("final override").tokens()
        assert all(t.kind is TokenKind.IDENTIFIER for t in toks)

    def test_scope_operator(self):
        assert texts("std::size_t") == ["std", "::", "size_t"]

    def test_shift_right_splits_for_templates(self):
        assert texts("std::vector<std::vector<int>> v;") == [
            "std", "::", "vector", "<", "std", "::", "vector", "<", "int",
            ">", ">", "v", ";",
        ]

    def test_greater_equal_stays_whole(self):
        assert texts("a >= b") == ["a", ">=", "b"]

    def test_digit_separators(self):
        assert texts("1'000'000") == ["1'000'000"]


class TestLiterals:

    def test_string_prefix_is_one_token(self):
        toks = Lexer('u8"hi"').tokens()
        assert len(toks) == 1
        assert toks[0].kind is TokenKind.LITERAL

    def test_raw_string(self):
        toks = Lexer('R"xy(a)"b)xy" ;').tokens()
        assert toks[0].kind is TokenKind.LITERAL
        assert toks[0].text == 'R"xy(a)"b)xy"'
        assert toks[1].text == ";"

    def test_char_literal(self):
        toks = Lexer("'a'").tokens()
        assert toks[0].kind is TokenKind.LITERAL

    def test_unterminated_string_becomes_unknown(self):
        toks = Lexer('"abc\nint x;').tokens()
        assert toks[0].kind is TokenKind.UNKNOWN
        assert toks[1].text == "int"
        assert toks[1].line == 2


class TestComments:

    @pytest.mark.parametrize("source, style", [
        ("// plain", CommentStyle.LINE),
        ("/// doc", CommentStyle.DOC_LINE),
        ("//! doc", CommentStyle.DOC_LINE),
        ("//// banner", CommentStyle.LINE),
        ("/* block */", CommentStyle.BLOCK),
        ("/** doc */", CommentStyle.DOC_BLOCK),
        ("/*! doc */", CommentStyle.DOC_BLOCK),
        ("/**/", CommentStyle.BLOCK),
    ])
    def test_comment_styles(self, source, style):
        toks = Lexer(source).tokens()
        assert len(toks) == 1
        assert toks[0].kind is TokenKind.COMMENT
        assert toks[0].comment_style is style

    def test_doc_comment_flag(self):
        doc, plain = Lexer("/// a\n// b").tokens()
        assert doc.is_doc_comment
        assert not plain.is_doc_comment

    def test_unterminated_block_comment(self):
        toks = Lexer("/* abc").tokens()
        assert len(toks) == 1
        assert toks[0].text == "/* abc"

    def test_multi_line_block_comment_end_line(self):
        tok = Lexer("/*\n a\n*/").tokens()[0]
        assert (tok.line, tok.end_line) == (1, 3)


class TestDirectives:

    def test_directive_with_continuation(self):
        toks = Lexer("#define A \\\n  1\nint x;").tokens()
        assert toks[0].kind is TokenKind.DIRECTIVE
        assert toks[0].text == "#define A \\\n  1"
        assert toks[0].end_line == 2
        assert toks[1].text == "int"
        assert toks[1].line == 3

    def test_directive_is_not_code(self):
        tok = Lexer("#include <vector>").tokens()[0]
        assert not tok.is_code


class TestWhitespace:

    def test_leading_tab_position(self):
        toks = Lexer("\tint x;").tokens()
        assert toks[0].leading.tab_positions == ((1, 1),)

    def test_trailing_tab_position(self):
        toks = Lexer("int\tx;").tokens()
        assert toks[0].trailing.tab_positions == ((1, 4),)

    def test_newlines_counted(self):
        toks = Lexer("a\n\nb").tokens()
        assert toks[1].leading.newlines == 2


class TestRobustness:

    @pytest.mark.parametrize("source", ["int x = `;", "$", "@", "\x00", "a\\"])
    def test_never_raises(self, source):
        toks = Lexer(source).tokens()
        assert any(t.kind is TokenKind.UNKNOWN for t in toks)

    def test_empty_input(self):
        assert Lexer("").tokens() == []

    def test_restartable(self):
        lexer = Lexer("int a; int b;")
        assert list(lexer) == list(lexer)

    def test_bom_is_stripped(self):
        toks = Lexer("\ufeffint x;").tokens()
        assert toks[0].text == "int"
        assert toks[0].column == 1

    def test_bytes_input(self):
        assert [t.text for t in Lexer(b"int x;").tokens()] == ["int", "x", ";"]

    def test_tokenize_helper(self):
        assert [t.text for t in tokenize("a b")] == ["a", "b"]

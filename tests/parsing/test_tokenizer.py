from __future__ import annotations

import pytest

from spanscope.core.errors import ConfigError
from spanscope.parsing.ir import DiagnosticKind, Language, TokenKind
from spanscope.parsing.source import byte_length, decode_source, resolve_language
from spanscope.parsing.tokenizer import PLACEHOLDER, TokenStream, significant, tokenize


def _texts(source: str) -> list[str]:
    return [t.text for t in significant(tokenize(source))]


def test_tokens_cover_input_without_gaps(fixture_bytes) -> None:
    data = fixture_bytes("unicode_and_unusual.cpp")
    tokens = list(tokenize(data, "cpp", "u.cpp"))

    assert "".join(t.text for t in tokens) == data.decode("utf-8")
    assert tokens[0].start == 0
    assert tokens[-1].end == len(data)
    for left, right in zip(tokens, tokens[1:]):
        assert left.end == right.start


def test_stream_is_restartable() -> None:
    stream = tokenize("int main() { return 0; }")
    first = list(stream)
    second = list(stream)
    assert first == second
    assert stream.diagnostics == ()


def test_unicode_identifiers_are_single_tokens() -> None:
    tokens = list(significant(tokenize("int 变量1 = 42; double π = 3.14; char* résumé;")))
    idents = [t.text for t in tokens if t.kind is TokenKind.IDENTIFIER]
    assert idents == ["变量1", "π", "résumé"]

    pi = next(t for t in tokens if t.text == "π")
    assert (pi.start, pi.end) == (len("int 变量1 = 42; double ".encode("utf-8")), pi.start + 2)


def test_unterminated_block_comment_runs_to_eof() -> None:
    source = "int x;\n/* never closed\nint y = 2;\n"
    stream = tokenize(source, file_id="open.c")
    tokens = list(stream)

    assert tokens[-1].kind is TokenKind.COMMENT
    assert tokens[-1].end == len(source)
    assert [d.kind for d in stream.diagnostics] == [DiagnosticKind.UNTERMINATED_COMMENT]
    assert stream.diagnostics[0].file_id == "open.c"


def test_first_closer_ends_a_comment() -> None:
    tokens = list(tokenize("/* a /* b */ c */"))
    assert tokens[0].kind is TokenKind.COMMENT
    assert tokens[0].text == "/* a /* b */"
    assert [t.text for t in significant(tokens)] == ["c", "*", "/"]


def test_unterminated_string_stops_at_newline() -> None:
    stream = tokenize('char *s = "abc\nint x;\n')
    tokens = list(stream)
    literal = next(t for t in tokens if t.kind is TokenKind.LITERAL)

    assert literal.text == '"abc'
    assert [d.kind for d in stream.diagnostics] == [DiagnosticKind.UNTERMINATED_STRING]
    assert "int" in [t.text for t in tokens]


def test_braces_in_strings_and_comments_are_not_punctuation() -> None:
    texts = _texts('s = "{"; c = \'}\'; // {\n')
    assert "{" not in texts and "}" not in texts


def test_literal_roles() -> None:
    tokens = [t for t in significant(tokenize("x = 1'000'000 + 0x1Fu + 2.5e-3; s = u8\"a\"; c = 'q'; b = nullptr;"))
              if t.kind is TokenKind.LITERAL]
    assert [(t.text, t.literal) for t in tokens] == [
        ("1'000'000", "NUM"),
        ("0x1Fu", "NUM"),
        ("2.5e-3", "NUM"),
        ('u8"a"', "STR"),
        ("'q'", "CHR"),
        ("nullptr", "BOOL"),
    ]


def test_raw_string_is_one_token() -> None:
    source = 'auto r = R"x(has "quotes" and )" inside)x";'
    literal = next(t for t in tokenize(source) if t.kind is TokenKind.LITERAL)
    assert literal.text == 'R"x(has "quotes" and )" inside)x"'


def test_multi_character_operators() -> None:
    assert _texts("a->b && c || d <<= 2; ns::f(...)") == [
        "a", "->", "b", "&&", "c", "||", "d", "<<=", "2", ";", "ns", "::", "f", "(", "...", ")",
    ]


def test_macro_definition_is_plain_tokens() -> None:
    texts = _texts("#define FOO(x, y) ((x) * (y))")
    assert texts[:4] == ["#", "define", "FOO", "("]


def test_unusual_whitespace_is_one_token() -> None:
    tokens = list(tokenize("int    unusual\t\t   whitespace"))
    assert [t.kind for t in tokens] == [
        TokenKind.KEYWORD, TokenKind.WHITESPACE, TokenKind.IDENTIFIER, TokenKind.WHITESPACE, TokenKind.IDENTIFIER,
    ]
    assert tokens[3].text == "\t\t   "


def test_invalid_bytes_become_placeholder_tokens(fixture_bytes) -> None:
    data = fixture_bytes("invalid_utf8.c")
    stream = TokenStream(data, Language.C_LIKE, "bad.c")
    tokens = list(stream)

    warnings = [d for d in stream.diagnostics if d.kind is DiagnosticKind.ENCODING_WARNING]
    assert [d.offset for d in warnings] == [30, 88]

    placeholder = next(t for t in tokens if t.text == PLACEHOLDER)
    assert (placeholder.start, placeholder.end) == (88, 90)
    assert tokens[0].kind is TokenKind.COMMENT
    assert tokens[0].text.endswith("caf" + PLACEHOLDER + " */")
    assert tokens[-1].end == len(data)


def test_decode_source_passes_valid_text_through() -> None:
    text, diagnostics = decode_source("résumé")
    assert text == "résumé"
    assert diagnostics == []
    assert byte_length(text) == 8


def test_generic_mode_handles_hash_comments() -> None:
    tokens = list(significant(tokenize("# note {\nif x { y }", "generic")))
    assert [t.text for t in tokens] == ["if", "x", "{", "y", "}"]
    assert tokens[0].kind is TokenKind.KEYWORD


def test_language_aliases() -> None:
    assert resolve_language("C++") is Language.C_LIKE
    assert resolve_language(None) is Language.C_LIKE
    assert resolve_language("unknown") is Language.UNKNOWN
    with pytest.raises(ConfigError):
        resolve_language("cobol")
    with pytest.raises(ConfigError):
        TokenStream("x", "fortran")


def test_backtick_in_c_ends_at_line_end() -> None:
    source = "int a;\n#define Q `\nint c() { return 3; }\n"
    stream = tokenize(source, "c")
    tokens = list(significant(stream))

    tick = next(t for t in tokens if t.text.startswith("`"))
    assert tick.text == "`"
    assert [d.kind for d in stream.diagnostics] == [DiagnosticKind.UNTERMINATED_STRING]
    assert "c" in [t.text for t in tokens]


def test_script_template_literals_span_lines() -> None:
    stream = tokenize("const s = `a\n${b}`;\n", "js")
    literals = [t for t in stream if t.kind is TokenKind.LITERAL]

    assert [t.text for t in literals] == ["`a\n${b}`"]
    assert stream.diagnostics == ()
    assert resolve_language("ts") is Language.SCRIPT
    assert resolve_language("go") is Language.SCRIPT

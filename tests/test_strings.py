import pytest

from milu.strings import (
    StringParseError,
    parse_escaped_char,
    parse_escaped_whitespace,
    parse_string,
    parse_unicode,
)


def test_parse_simple_string():
    assert parse_string('"abc"') == ("abc", 5)


def test_parse_string_with_escapes():
    data = (
        '"tab:\\tafter tab, newline:\\nnew line, quote: \\", emoji: \\u{1F602}, '
        'newline:\\nescaped whitespace: \\    abc"'
    )
    result, end = parse_string(data)
    assert result == (
        "tab:\tafter tab, newline:\nnew line, quote: \", emoji: \U0001F602, "
        "newline:\nescaped whitespace: abc"
    )
    assert end == len(data)


def test_parse_string_stops_at_closing_quote():
    assert parse_string('"ab" + 1') == ("ab", 4)


def test_parse_string_at_offset():
    assert parse_string('x = "hi"', 4) == ("hi", 8)


def test_empty_string():
    assert parse_string('""') == ("", 2)


def test_all_simple_escapes():
    result, _ = parse_string('"\\n\\r\\t\\b\\f\\\\\\/\\""')
    assert result == "\n\r\t\b\f\\/\""


@pytest.mark.parametrize(
    "text",
    ['"abc', 'abc"', '"\\q"', '"\\u{}"', '"\\u{110000}"', '"\\u{D800}"', '"abc\\'],
)
def test_invalid_strings(text):
    with pytest.raises(StringParseError):
        parse_string(text)


def test_parse_unicode():
    assert parse_unicode("u{41}") == ("A", 5)
    assert parse_unicode("u{00AC}rest") == ("\u00ac", 7)
    assert parse_unicode("u{10FFFF}") == ("\U0010ffff", 9)


def test_parse_unicode_too_many_digits():
    with pytest.raises(StringParseError):
        parse_unicode("u{0000041}")


def test_parse_unicode_requires_prefix():
    with pytest.raises(StringParseError) as info:
        parse_unicode("{41}")
    assert info.value.position == 0


def test_parse_escaped_whitespace():
    assert parse_escaped_whitespace("\\  \n\t abc") == 6


def test_parse_escaped_whitespace_requires_space():
    with pytest.raises(StringParseError):
        parse_escaped_whitespace("\\abc")


def test_parse_escaped_char():
    assert parse_escaped_char("\\n") == ("\n", 2)
    assert parse_escaped_char("\\u{263A}") == ("\u263a", 8)


def test_parse_escaped_char_extra():
    with pytest.raises(StringParseError):
        parse_escaped_char("\\$")
    assert parse_escaped_char("\\$", 0, "$") == ("$", 2)
    assert parse_escaped_char("\\t", 0, "$") == ("\t", 2)


def test_error_position_reported():
    with pytest.raises(StringParseError) as info:
        parse_string('"ok\\z"')
    assert info.value.position == 3
import pytest

from dcsbinder.luareader import ParseError, parse
from dcsbinder.luatypes import LuaNumber, LuaTable, LuaTableEntry
from dcsbinder.luawriter import write

DIFF_SAMPLE = (
    "local diff = {\n"
    '\t["axisDiffs"] = {\n'
    '\t\t["a2001cdnil"] = {\n'
    '\t\t\t["changed"] = {\n'
    "\t\t\t\t[1] = {\n"
    '\t\t\t\t\t["filter"] = {\n'
    '\t\t\t\t\t\t["curvature"] = {\n'
    "\t\t\t\t\t\t\t[1] = 0.3,\n"
    "\t\t\t\t\t\t\t[2] = -0.15,\n"
    "\t\t\t\t\t\t},\n"
    '\t\t\t\t\t\t["deadzone"] = 0,\n'
    '\t\t\t\t\t\t["invert"] = false,\n'
    '\t\t\t\t\t\t["slider"] = true,\n'
    "\t\t\t\t\t},\n"
    '\t\t\t\t\t["key"] = "JOY_Y",\n'
    "\t\t\t\t},\n"
    "\t\t\t},\n"
    '\t\t\t["name"] = "Pitch",\n'
    "\t\t},\n"
    "\t},\n"
    '\t["keyDiffs"] = {},\n'
    "}\n"
    "return diff"
)

MODIFIERS_SAMPLE = (
    "local modifiers = {\n"
    '\t["JOY_BTN8"] = {\n'
    '\t\t["device"] = "MFDLeft {11111111-2222-3333-4444-555555555555}",\n'
    '\t\t["key"] = "JOY_BTN8",\n'
    '\t\t["switch"] = false,\n'
    "\t},\n"
    "}\n"
    "return modifiers"
)


def _curvature(parsed):
    axis = parsed.value.get_str("axisDiffs").get_str("a2001cdnil")
    changed = axis.get_str("changed")
    first = changed.entries[0]
    assert first.key == 1
    return first.value.get_str("filter").get_str("curvature")


@pytest.mark.parametrize("source", [DIFF_SAMPLE, MODIFIERS_SAMPLE])
def test_byte_equal_roundtrip(source):
    assert write(parse(source)) == source


def test_parses_nested_structure():
    parsed = parse(DIFF_SAMPLE)
    assert parsed.var_name == "diff"
    assert parsed.value.get_str("keyDiffs") == LuaTable([])
    axis = parsed.value.get_str("axisDiffs").get_str("a2001cdnil")
    assert axis.get_str("name") == "Pitch"


def test_numbers_keep_source_text():
    curvature = _curvature(parse(DIFF_SAMPLE))
    assert curvature.entries == [
        LuaTableEntry(1, LuaNumber("0.3")),
        LuaTableEntry(2, LuaNumber("-0.15")),
    ]


def test_booleans_and_nil():
    parsed = parse('local d = { ["a"] = true, ["b"] = false, ["c"] = nil }\nreturn d')
    assert [e.value for e in parsed.value.entries] == [True, False, None]


def test_modifiers_var_name_and_string():
    parsed = parse(MODIFIERS_SAMPLE)
    assert parsed.var_name == "modifiers"
    device = parsed.value.get_str("JOY_BTN8").get_str("device")
    assert device == "MFDLeft {11111111-2222-3333-4444-555555555555}"


def test_comments_quotes_and_long_strings():
    source = (
        "-- header comment\n"
        "local diff = { ['a'] = 'x'; [\"b\"] = [[raw]], } --[[ block\ncomment ]]\n"
        "return diff"
    )
    parsed = parse(source)
    assert parsed.value.entries == [LuaTableEntry("a", "x"), LuaTableEntry("b", "raw")]


def test_string_escapes_are_decoded():
    parsed = parse('local d = { ["a\\"b\\\\c"] = "line\\n" }\nreturn d')
    assert parsed.value.entries == [LuaTableEntry('a"b\\c', "line\n")]


def test_skips_non_table_locals():
    parsed = parse("local x = 5\nlocal d = { [1] = true }\nreturn d")
    assert parsed.var_name == "d"
    assert parsed.value.entries == [LuaTableEntry(1, True)]


def test_no_top_level_table():
    with pytest.raises(ParseError, match="could not find"):
        parse("return 1")


@pytest.mark.parametrize(
    "body",
    ["{ name = 1 }", "{ 1, 2 }", "{ [1.5] = 1 }", "{ [x] = 1 }"],
)
def test_unsupported_keys(body):
    with pytest.raises(ParseError, match="unsupported key form at <root>"):
        parse(f"local d = {body}\nreturn d")


def test_unsupported_value_reports_context():
    with pytest.raises(ParseError, match=r"unsupported value form at <root>\.a\.b"):
        parse('local d = { ["a"] = { ["b"] = foo } }\nreturn d')


def test_unsupported_key_in_nested_table_reports_context():
    with pytest.raises(ParseError, match=r"unsupported key form at <root>\[3\]"):
        parse("local d = { [3] = { x = 1 } }\nreturn d")


def test_unterminated_string_is_syntax_error():
    with pytest.raises(ParseError, match="syntax error"):
        parse('local d = { ["a] = 1 }')


def test_unterminated_table_is_syntax_error():
    with pytest.raises(ParseError, match="end of input"):
        parse('local d = { ["a"] = 1,')
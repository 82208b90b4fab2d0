"""Parse a ``.diff.lua`` or ``modifiers.lua`` source into a :class:`LuaFile`.

Only the subset DCS emits is understood: a top-level
``local <name> = { [key] = value, ... }`` whose keys are string or integer
literals and whose values are strings, numbers, booleans, ``nil`` or tables.
"""

from __future__ import annotations

import re
from typing import NamedTuple

from dcsbinder.luatypes import LuaFile, LuaKey, LuaNumber, LuaTable, LuaTableEntry, LuaValue


class ParseError(ValueError):
    """Raised when a source is not a DCS Lua config file."""


_KEYWORDS = frozenset(
    "and break do else elseif end false for function goto if in local nil not or "
    "repeat return then true until while".split()
)
_MULTI_SYMBOLS = ("...", "..", "==", "~=", "<=", ">=", "::", "//", "<<", ">>")
_SINGLE_SYMBOLS = frozenset("+-*/%^#&~|<>=(){}[];:,.")
_DIGITS = frozenset("0123456789")

_WHITESPACE_RE = re.compile(r"\s+")
_LONG_OPEN_RE = re.compile(r"\[(=*)\[")
_NUMBER_RE = re.compile(
    r"0[xX][0-9a-fA-F]*(?:\.[0-9a-fA-F]*)?(?:[pP][+-]?\d+)?"
    r"|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?"
)
_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_INT_RE = re.compile(r"[0-9]+")
_I64_MAX = 2**63 - 1

_SIMPLE_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "\\": "\\",
    '"': '"',
    "'": "'",
    "\n": "\n",
}


class _Token(NamedTuple):
    kind: str  # "string", "number", "name", "keyword" or "symbol"
    text: str
    value: str
    pos: int


def _syntax_error(message: str, pos: int) -> ParseError:
    return ParseError(f"syntax error at offset {pos}: {message}")


def _read_long_bracket(source: str, match: re.Match[str]) -> tuple[str, int]:
    close = "]" + match.group(1) + "]"
    end = source.find(close, match.end())
    if end < 0:
        raise _syntax_error("unterminated long bracket", match.start())
    return source[match.end() : end], end + len(close)


def _read_quoted(source: str, pos: int) -> tuple[str, int]:
    quote = source[pos]
    out: list[str] = []
    i = pos + 1
    n = len(source)
    while i < n:
        ch = source[i]
        if ch == quote:
            return "".join(out), i + 1
        if ch == "\n":
            break
        if ch != "\\":
            out.append(ch)
            i += 1
            continue
        i += 1
        if i >= n:
            break
        esc = source[i]
        if esc in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[esc])
            i += 1
        elif esc in _DIGITS:
            digits = re.match(r"[0-9]{1,3}", source[i:]).group(0)
            out.append(chr(int(digits)))
            i += len(digits)
        elif esc == "x" and re.fullmatch(r"[0-9a-fA-F]{2}", source[i + 1 : i + 3]):
            out.append(chr(int(source[i + 1 : i + 3], 16)))
            i += 3
        elif esc == "z":
            ws = _WHITESPACE_RE.match(source, i + 1)
            i = ws.end() if ws else i + 1
        else:
            raise _syntax_error(f"invalid escape `\\{esc}`", i - 1)
    raise _syntax_error("unterminated string", pos)


def _tokenize(source: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    n = len(source)
    while pos < n:
        ws = _WHITESPACE_RE.match(source, pos)
        if ws:
            pos = ws.end()
            continue
        ch = source[pos]
        if source.startswith("--", pos):
            long_open = _LONG_OPEN_RE.match(source, pos + 2)
            if long_open:
                _, pos = _read_long_bracket(source, long_open)
            else:
                newline = source.find("\n", pos)
                pos = n if newline < 0 else newline
            continue
        long_open = _LONG_OPEN_RE.match(source, pos)
        if long_open:
            text, end = _read_long_bracket(source, long_open)
            if text.startswith("\r\n"):
                text = text[2:]
            elif text.startswith("\n"):
                text = text[1:]
            tokens.append(_Token("string", source[pos:end], text, pos))
            pos = end
            continue
        if ch in "\"'":
            value, end = _read_quoted(source, pos)
            tokens.append(_Token("string", source[pos:end], value, pos))
            pos = end
            continue
        if ch in _DIGITS or (ch == "." and source[pos + 1 : pos + 2] in _DIGITS and pos + 1 < n):
            number = _NUMBER_RE.match(source, pos)
            tokens.append(_Token("number", number.group(0), number.group(0), pos))
            pos = number.end()
            continue
        name = _NAME_RE.match(source, pos)
        if name:
            word = name.group(0)
            kind = "keyword" if word in _KEYWORDS else "name"
            tokens.append(_Token(kind, word, word, pos))
            pos = name.end()
            continue
        symbol = next((s for s in _MULTI_SYMBOLS if source.startswith(s, pos)), None)
        if symbol is None and ch in _SINGLE_SYMBOLS:
            symbol = ch
        if symbol is None:
            raise _syntax_error(f"unexpected character `{ch}`", pos)
        tokens.append(_Token("symbol", symbol, symbol, pos))
        pos += len(symbol)
    return tokens


def _is_symbol(token: _Token | None, text: str) -> bool:
    return token is not None and token.kind == "symbol" and token.text == text


class _Parser:
    def __init__(self, tokens: list[_Token]) -> None:
        self._tokens = tokens
        self._pos = 0

    def _peek(self, offset: int = 0) -> _Token | None:
        index = self._pos + offset
        return self._tokens[index] if index < len(self._tokens) else None

    def _next(self) -> _Token:
        token = self._peek()
        if token is None:
            raise ParseError("syntax error: unexpected end of input")
        self._pos += 1
        return token

    def _expect(self, text: str) -> None:
        token = self._next()
        if not _is_symbol(token, text):
            raise _syntax_error(f"expected `{text}`, got `{token.text}`", token.pos)

    def find_top_table(self) -> tuple[str, LuaTable]:
        depth = 0
        while (token := self._peek()) is not None:
            if token.kind == "symbol" and token.text in ("(", "{", "["):
                depth += 1
            elif token.kind == "symbol" and token.text in (")", "}", "]"):
                depth = max(depth - 1, 0)
            elif depth == 0 and token.kind == "keyword" and token.text == "local":
                found = self._try_local_table()
                if found is not None:
                    return found
                continue
            self._pos += 1
        raise ParseError("could not find `local <name> = {...}` table at top level")

    def _try_local_table(self) -> tuple[str, LuaTable] | None:
        self._pos += 1  # `local`
        first = self._peek()
        if first is None or first.kind != "name":
            return None
        self._pos += 1
        while _is_symbol(self._peek(), ",") and (after := self._peek(1)) is not None and after.kind == "name":
            self._pos += 2
        if not _is_symbol(self._peek(), "="):
            return None
        self._pos += 1
        if not _is_symbol(self._peek(), "{"):
            return None
        self._pos += 1
        return first.text, self._parse_table("<root>")

    def _parse_table(self, context: str) -> LuaTable:
        entries: list[LuaTableEntry] = []
        while True:
            token = self._next()
            if _is_symbol(token, "}"):
                return LuaTable(entries)
            if not _is_symbol(token, "["):
                raise ParseError(
                    f"unsupported key form at {context}: expected [..] = .., got `{token.text}`"
                )
            key = self._parse_key(context)
            self._expect("=")
            child = f"{context}.{key}" if isinstance(key, str) else f"{context}[{key}]"
            entries.append(LuaTableEntry(key=key, value=self._parse_value(child)))
            separator = self._next()
            if _is_symbol(separator, "}"):
                return LuaTable(entries)
            if not (_is_symbol(separator, ",") or _is_symbol(separator, ";")):
                raise ParseError(
                    f"unsupported value form at {child}: unexpected `{separator.text}`"
                )

    def _parse_key(self, context: str) -> LuaKey:
        token = self._next()
        closes = _is_symbol(self._peek(), "]")
        if closes and token.kind == "string":
            self._pos += 1
            return token.value
        if (
            closes
            and token.kind == "number"
            and _INT_RE.fullmatch(token.text)
            and int(token.text) <= _I64_MAX
        ):
            self._pos += 1
            return int(token.text)
        raise ParseError(
            f'unsupported key form at {context}: expected ["..."] or [N], got `{token.text}`'
        )

    def _parse_value(self, context: str) -> LuaValue:
        token = self._next()
        if token.kind == "string":
            return token.value
        if token.kind == "number":
            return LuaNumber(token.text)
        if _is_symbol(token, "-") and (number := self._peek()) is not None and number.kind == "number":
            self._pos += 1
            return LuaNumber("-" + number.text)
        if token.kind == "keyword" and token.text in ("true", "false"):
            return token.text == "true"
        if token.kind == "keyword" and token.text == "nil":
            return None
        if _is_symbol(token, "{"):
            return self._parse_table(context)
        raise ParseError(f"unsupported value form at {context}: `{token.text}`")


def parse(source: str) -> LuaFile:
    """Parse DCS Lua config source text into a :class:`LuaFile`."""
    var_name, table = _Parser(_tokenize(source)).find_top_table()
    return LuaFile(var_name=var_name, value=table)
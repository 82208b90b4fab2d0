"""Typed model of a DCS Lua config file (``.diff.lua`` or ``modifiers.lua``).

A file is ``local <name> = <table>`` followed by ``return <name>``. Table
keys are ``str`` or ``int``; values are ``str``, :class:`LuaNumber`, ``bool``,
``None`` (Lua ``nil``) or :class:`LuaTable`. Numbers keep their source text
so that writing a parsed file back gives the same bytes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union


@dataclass(frozen=True)
class LuaNumber:
    """A number literal, kept as its original source text (e.g. ``"0.3"``)."""

    text: str

    def __str__(self) -> str:
        return self.text


@dataclass
class LuaTableEntry:
    """One ``[key] = value`` field of a table."""

    key: LuaKey
    value: LuaValue


@dataclass
class LuaTable:
    """A Lua table; entries keep their source order."""

    entries: list[LuaTableEntry] = field(default_factory=list)

    def get_str(self, key: str) -> LuaValue:
        """Value of the first string-keyed entry named ``key``, or ``None``."""
        return next(
            (e.value for e in self.entries if isinstance(e.key, str) and e.key == key),
            None,
        )


@dataclass
class LuaFile:
    """A whole file: the bound variable name and its table."""

    var_name: str
    value: LuaTable


LuaKey = Union[str, int]
LuaValue = Union[str, LuaNumber, bool, None, LuaTable]
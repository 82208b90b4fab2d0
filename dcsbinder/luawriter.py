"""Serialize a :class:`LuaFile` in DCS's exact ``.diff.lua`` layout.

Tabs for indentation, a trailing comma after every field, LF line endings
and no newline after the final ``return <name>``.
"""

from __future__ import annotations

from dcsbinder.luatypes import LuaFile, LuaKey, LuaNumber, LuaTable, LuaValue


def write(file: LuaFile) -> str:
    """Render ``file`` in DCS's canonical format."""
    out: list[str] = [f"local {file.var_name} = "]
    _write_table(out, 0, file.value)
    out.append(f"\nreturn {file.var_name}")
    return "".join(out)


def _write_table(out: list[str], depth: int, table: LuaTable) -> None:
    if not table.entries:
        out.append("{}")
        return
    out.append("{\n")
    for entry in table.entries:
        out.append("\t" * (depth + 1))
        out.append(_key_text(entry.key))
        out.append(" = ")
        _write_value(out, depth + 1, entry.value)
        out.append(",\n")
    out.append("\t" * depth)
    out.append("}")


def _key_text(key: LuaKey) -> str:
    if isinstance(key, bool):
        raise TypeError(f"unsupported Lua table key: {key!r}")
    if isinstance(key, str):
        return f"[{_string_literal(key)}]"
    if isinstance(key, int):
        return f"[{key}]"
    raise TypeError(f"unsupported Lua table key: {key!r}")


def _write_value(out: list[str], depth: int, value: LuaValue) -> None:
    if value is None:
        out.append("nil")
    elif isinstance(value, bool):
        out.append("true" if value else "false")
    elif isinstance(value, LuaNumber):
        out.append(value.text)
    elif isinstance(value, str):
        out.append(_string_literal(value))
    elif isinstance(value, LuaTable):
        _write_table(out, depth, value)
    else:
        raise TypeError(f"unsupported Lua value: {value!r}")


def _string_literal(s: str) -> str:
    return '"' + s.replace("\\", "\\\\").replace('"', '\\"') + '"'
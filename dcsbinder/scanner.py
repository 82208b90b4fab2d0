"""Walk a DCS ``Config/Input`` tree and classify every Lua file.

Layout under an install root::

    <Aircraft>/modifiers.lua
    <Aircraft>/joystick/<DeviceName> {GUID}.diff.lua
    <Aircraft>/keyboard/...
    <Aircraft>/mouse/...
    <Aircraft>/trackir/...
"""

from __future__ import annotations

import os
import re
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from os import PathLike
from pathlib import Path
from typing import Union

_FILENAME_RE = re.compile(
    r"(?P<name>.+?) \{(?P<guid>[0-9A-Fa-f]{8}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}"
    r"-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{12})\}(?P<suffix>[^.]*)\.diff\.lua"
)

_MAX_DEPTH = 3


class Subtype(Enum):
    """The input-subtype directory a file lives in."""

    JOYSTICK = "joystick"
    KEYBOARD = "keyboard"
    MOUSE = "mouse"
    TRACKIR = "trackir"

    @classmethod
    def from_dir_name(cls, name: str) -> Subtype | None:
        """Map a directory name to its subtype, or ``None`` if unknown."""
        try:
            return cls(name)
        except ValueError:
            return None


@dataclass(frozen=True)
class Active:
    """A canonical ``<name> {GUID}.diff.lua`` binding file."""

    device_name: str
    guid: str


@dataclass(frozen=True)
class UserArchived:
    """A binding file the user renamed with a suffix after the GUID."""

    device_name: str
    guid: str
    suffix: str


@dataclass(frozen=True)
class Modifiers:
    """An aircraft-level ``modifiers.lua``."""


@dataclass(frozen=True)
class ExportedProfile:
    """A ``.lua`` file that is not a ``.diff.lua`` binding."""


@dataclass(frozen=True)
class Malformed:
    """A ``.diff.lua`` file whose name does not carry a valid GUID."""

    reason: str


FileStatus = Union[Active, UserArchived, Modifiers, ExportedProfile, Malformed]


@dataclass(frozen=True)
class ScannedFile:
    """One file discovered during a scan."""

    install_root: Path
    aircraft: str
    subtype: Subtype | None
    path: Path
    status: FileStatus


def classify_file(file_name: str) -> FileStatus:
    """Classify a file name found inside a subtype directory."""
    match = _FILENAME_RE.fullmatch(file_name)
    if match:
        device_name, guid, suffix = match.group("name", "guid", "suffix")
        if suffix:
            return UserArchived(device_name=device_name, guid=guid, suffix=suffix)
        return Active(device_name=device_name, guid=guid)
    if file_name.endswith(".diff.lua"):
        return Malformed(
            reason=(
                f"name `{file_name}` ends in .diff.lua but doesn't match "
                "the canonical GUID shape"
            )
        )
    return ExportedProfile()


def _walk_files(directory: Path, parts: tuple[str, ...]) -> Iterator[tuple[Path, tuple[str, ...]]]:
    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError:
        return
    for entry in entries:
        rel = (*parts, entry.name)
        try:
            if entry.is_file(follow_symlinks=False):
                yield Path(entry.path), rel
            elif entry.is_dir(follow_symlinks=False) and len(rel) < _MAX_DEPTH:
                yield from _walk_files(Path(entry.path), rel)
        except OSError:
            continue


def scan(install_root: str | PathLike[str]) -> list[ScannedFile]:
    """Return every recognised file under ``install_root`` with its status.

    A missing or non-directory root gives an empty list.
    """
    root = Path(install_root)
    if not root.is_dir():
        return []

    found: list[ScannedFile] = []
    for path, rel in _walk_files(root, ()):
        file_name = rel[-1]
        if Path(file_name).suffix.lower() != ".lua":
            continue

        if len(rel) == 2:
            aircraft, subtype = rel[0], None
        elif len(rel) == 3:
            subtype = Subtype.from_dir_name(rel[1])
            if subtype is None:
                continue
            aircraft = rel[0]
        else:
            continue

        if subtype is None:
            if file_name != "modifiers.lua":
                continue
            status: FileStatus = Modifiers()
        else:
            status = classify_file(file_name)

        found.append(
            ScannedFile(
                install_root=root,
                aircraft=aircraft,
                subtype=subtype,
                path=path,
                status=status,
            )
        )
    return found
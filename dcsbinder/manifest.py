"""Manifest schema for remap operations.

A manifest is written before any file is touched, so its presence on disk
means an operation has started; a ``manifest.json.done`` sibling means it
finished. Anything in between can be rolled back from the listed backups.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from os import PathLike
from pathlib import Path
from typing import Any, Union

MANIFEST_VERSION = 1

_MANIFEST_NAME = "manifest.json"
_DONE_NAME = "manifest.json.done"


class OperationKind(Enum):
    """What a manifest's operation does."""

    REMAP = "remap"
    DISCARD_STALE = "discard_stale"
    UNDO = "undo"


@dataclass(frozen=True)
class BackupEntry:
    """An existing file copied into the backup folder before any mutation."""

    src: Path
    backup: Path
    blake3: str
    size: int


@dataclass(frozen=True)
class WriteFile:
    """Write ``dst`` with the bytes currently at ``source``."""

    dst: Path
    source: Path
    source_blake3: str


@dataclass(frozen=True)
class MoveFile:
    """Move ``src`` to ``dst``, typically into the backup folder."""

    src: Path
    dst: Path


@dataclass(frozen=True)
class StringReplace:
    """Replace every ``find`` in ``path`` by ``replace``.

    ``expected_replacements`` is the count seen at planning time; execution
    refuses to go on if the file now holds a different number.
    """

    path: Path
    find: str
    replace: str
    expected_replacements: int


Mutation = Union[WriteFile, MoveFile, StringReplace]


def _mutation_to_dict(mutation: Mutation) -> dict[str, Any]:
    if isinstance(mutation, WriteFile):
        return {
            "kind": "write_file",
            "dst": str(mutation.dst),
            "source": str(mutation.source),
            "source_blake3": mutation.source_blake3,
        }
    if isinstance(mutation, MoveFile):
        return {"kind": "move_file", "src": str(mutation.src), "dst": str(mutation.dst)}
    if isinstance(mutation, StringReplace):
        return {
            "kind": "string_replace",
            "path": str(mutation.path),
            "find": mutation.find,
            "replace": mutation.replace,
            "expected_replacements": mutation.expected_replacements,
        }
    raise TypeError(f"not a mutation: {mutation!r}")


def _mutation_from_dict(data: dict[str, Any]) -> Mutation:
    kind = data["kind"]
    if kind == "write_file":
        return WriteFile(
            dst=Path(data["dst"]),
            source=Path(data["source"]),
            source_blake3=str(data["source_blake3"]),
        )
    if kind == "move_file":
        return MoveFile(src=Path(data["src"]), dst=Path(data["dst"]))
    if kind == "string_replace":
        return StringReplace(
            path=Path(data["path"]),
            find=str(data["find"]),
            replace=str(data["replace"]),
            expected_replacements=int(data["expected_replacements"]),
        )
    raise ValueError(f"unknown mutation kind `{kind}`")


@dataclass
class Manifest:
    """The single source of truth for one remap or discard operation."""

    version: int
    operation_id: str
    operation: OperationKind
    timestamp: str
    backup_dir: Path
    install_root: Path
    device_name: str
    subtype: str
    source_guid: str
    target_guid: str
    backups: list[BackupEntry] = field(default_factory=list)
    mutations: list[Mutation] = field(default_factory=list)

    @staticmethod
    def path_in(backup_dir: str | PathLike[str]) -> Path:
        """Where the manifest lives inside ``backup_dir``."""
        return Path(backup_dir) / _MANIFEST_NAME

    @staticmethod
    def done_marker_in(backup_dir: str | PathLike[str]) -> Path:
        """Where the finalize marker lives inside ``backup_dir``."""
        return Path(backup_dir) / _DONE_NAME

    def to_json(self) -> str:
        """Serialize as pretty-printed JSON."""
        data = {
            "version": self.version,
            "operation_id": self.operation_id,
            "operation": self.operation.value,
            "timestamp": self.timestamp,
            "backup_dir": str(self.backup_dir),
            "install_root": str(self.install_root),
            "device_name": self.device_name,
            "subtype": self.subtype,
            "source_guid": self.source_guid,
            "target_guid": self.target_guid,
            "backups": [
                {
                    "src": str(b.src),
                    "backup": str(b.backup),
                    "blake3": b.blake3,
                    "size": b.size,
                }
                for b in self.backups
            ],
            "mutations": [_mutation_to_dict(m) for m in self.mutations],
        }
        return json.dumps(data, indent=2, ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str | bytes) -> Manifest:
        """Parse a manifest; raises ``ValueError`` if it is not one."""
        data = json.loads(text)
        try:
            return cls(
                version=int(data["version"]),
                operation_id=str(data["operation_id"]),
                operation=OperationKind(data["operation"]),
                timestamp=str(data["timestamp"]),
                backup_dir=Path(data["backup_dir"]),
                install_root=Path(data["install_root"]),
                device_name=str(data["device_name"]),
                subtype=str(data["subtype"]),
                source_guid=str(data["source_guid"]),
                target_guid=str(data["target_guid"]),
                backups=[
                    BackupEntry(
                        src=Path(b["src"]),
                        backup=Path(b["backup"]),
                        blake3=str(b["blake3"]),
                        size=int(b["size"]),
                    )
                    for b in data["backups"]
                ],
                mutations=[_mutation_from_dict(m) for m in data["mutations"]],
            )
        except (KeyError, TypeError, AttributeError) as exc:
            raise ValueError(f"invalid manifest: {exc!r}") from exc

    @classmethod
    def load(cls, path: str | PathLike[str]) -> Manifest:
        """Read and parse the manifest file at ``path``."""
        return cls.from_json(Path(path).read_bytes())
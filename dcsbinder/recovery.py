"""Find interrupted operations and roll operations back from their manifests."""

from __future__ import annotations

import contextlib
import os
import shutil
from dataclasses import dataclass
from os import PathLike
from pathlib import Path

from dcsbinder.manifest import Manifest, MoveFile, WriteFile


class RecoverError(Exception):
    """Raised when the backup folder or a manifest in it cannot be read."""


class UndoError(Exception):
    """Raised when an operation cannot be rolled back."""


@dataclass
class IncompleteOperation:
    """A manifest that was started but never finalized."""

    manifest_path: Path
    backup_dir: Path
    manifest: Manifest


def recover(backup_root: str | PathLike[str]) -> list[IncompleteOperation]:
    """Every manifest under ``backup_root`` that lacks a ``.done`` marker.

    A missing ``backup_root`` gives an empty list.
    """
    root = Path(backup_root)
    if not root.is_dir():
        return []
    try:
        entries = sorted(root.iterdir())
    except OSError as exc:
        raise RecoverError(f"could not read backup root {root}: {exc}") from exc

    found: list[IncompleteOperation] = []
    for directory in entries:
        if not directory.is_dir():
            continue
        manifest_path = Manifest.path_in(directory)
        if not manifest_path.is_file() or Manifest.done_marker_in(directory).exists():
            continue
        try:
            data = manifest_path.read_bytes()
        except OSError as exc:
            raise RecoverError(f"could not read manifest {manifest_path}: {exc}") from exc
        try:
            manifest = Manifest.from_json(data)
        except ValueError as exc:
            raise RecoverError(f"could not parse manifest {manifest_path}: {exc}") from exc
        found.append(
            IncompleteOperation(manifest_path=manifest_path, backup_dir=directory, manifest=manifest)
        )
    return found


def undo(manifest_path: str | PathLike[str]) -> None:
    """Roll back the operation described by the manifest at ``manifest_path``.

    Mutations are reversed newest first: written files that did not exist
    before are deleted and archived files are moved back. Then every backup
    is copied over its original.
    """
    path = Path(manifest_path)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise UndoError(f"could not read manifest {path}: {exc}") from exc
    try:
        manifest = Manifest.from_json(data)
    except ValueError as exc:
        raise UndoError(f"could not parse manifest {path}: {exc}") from exc

    backed_up = {Path(b.src) for b in manifest.backups}

    for mutation in reversed(manifest.mutations):
        if isinstance(mutation, WriteFile):
            dst = Path(mutation.dst)
            if dst not in backed_up and dst.exists():
                try:
                    dst.unlink()
                except OSError as exc:
                    raise UndoError(f"could not delete written file {dst}: {exc}") from exc
        elif isinstance(mutation, MoveFile):
            src, dst = Path(mutation.src), Path(mutation.dst)
            if dst.exists():
                with contextlib.suppress(OSError):
                    src.parent.mkdir(parents=True, exist_ok=True)
                try:
                    os.replace(dst, src)
                except OSError as exc:
                    raise UndoError(f"could not undo MoveFile ({dst} -> {src}): {exc}") from exc
        # String replacements are undone by the backup restore below.

    for entry in manifest.backups:
        src, backup = Path(entry.src), Path(entry.backup)
        with contextlib.suppress(OSError):
            src.parent.mkdir(parents=True, exist_ok=True)
        if backup.exists():
            try:
                shutil.copyfile(backup, src)
            except OSError as exc:
                raise UndoError(f"could not restore {src} from backup {backup}: {exc}") from exc

    with contextlib.suppress(OSError):
        Manifest.done_marker_in(manifest.backup_dir).write_bytes(b"undone")
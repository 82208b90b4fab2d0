"""Carry out a planned :class:`Manifest` as a two-phase commit.

1. Write the manifest atomically into ``manifest.backup_dir``.
2. Snapshot every file listed in ``manifest.backups``, checking its BLAKE3
   digest against the planned one.
3. Apply every mutation in order; file writes go through a temporary file
   and an atomic rename.
4. Write the ``manifest.json.done`` finalize marker.

Stopping part-way leaves the manifest without its marker, which
:func:`dcsbinder.recovery.recover` reports so it can be rolled back.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import tempfile
from pathlib import Path

from dcsbinder import config
from dcsbinder.hashing import file_blake3
from dcsbinder.manifest import BackupEntry, Manifest, MoveFile, Mutation, StringReplace, WriteFile


class ExecuteError(Exception):
    """Raised when a manifest cannot be carried out."""


def execute(manifest: Manifest, check_dcs_running: bool = True) -> Path:
    """Apply ``manifest`` and return the path of its ``.done`` marker.

    With ``check_dcs_running`` set, refuse to start while ``DCS.exe`` runs.
    """
    if check_dcs_running:
        pid = config.dcs_running()
        if pid is not None:
            raise ExecuteError(
                f"DCS.exe is running (PID {pid}); refusing to mutate files. "
                "Close DCS and retry."
            )

    backup_dir = Path(manifest.backup_dir)
    try:
        backup_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ExecuteError(f"could not create backup directory {backup_dir}: {exc}") from exc
    _write_manifest(manifest)

    for entry in manifest.backups:
        _snapshot_one(entry)

    for mutation in manifest.mutations:
        _apply_mutation(mutation)

    done = Manifest.done_marker_in(backup_dir)
    try:
        done.write_bytes(b"done")
    except OSError as exc:
        raise ExecuteError(f"could not write `.done` marker at {done}: {exc}") from exc
    return done


def _write_manifest(manifest: Manifest) -> None:
    path = Manifest.path_in(manifest.backup_dir)
    try:
        _atomic_write(path, manifest.to_json().encode("utf-8"))
    except OSError as exc:
        raise ExecuteError(f"could not write manifest at {path}: {exc}") from exc


def _snapshot_one(entry: BackupEntry) -> None:
    src, backup = Path(entry.src), Path(entry.backup)
    try:
        backup.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(src, backup)
        actual = file_blake3(backup)
    except OSError as exc:
        raise ExecuteError(f"could not back up {src} to {backup}: {exc}") from exc
    if actual != entry.blake3:
        raise ExecuteError(
            f"blake3 mismatch backing up {src}: expected {entry.blake3}, got {actual}"
        )


def _apply_mutation(mutation: Mutation) -> None:
    if isinstance(mutation, WriteFile):
        _apply_write(mutation)
    elif isinstance(mutation, MoveFile):
        _apply_move(mutation)
    elif isinstance(mutation, StringReplace):
        _apply_replace(mutation)
    else:
        raise ExecuteError(f"unknown mutation {mutation!r}")


def _apply_write(mutation: WriteFile) -> None:
    dst, source = Path(mutation.dst), Path(mutation.source)
    try:
        # Check the source again right before writing: it may have changed since planning.
        actual = file_blake3(source)
    except OSError as exc:
        raise ExecuteError(f"could not perform mutation `WriteFile` (dst={dst}): {exc}") from exc
    if actual != mutation.source_blake3:
        raise ExecuteError(
            f"blake3 mismatch reading source {source}: "
            f"expected {mutation.source_blake3}, got {actual}"
        )
    try:
        data = source.read_bytes()
        dst.parent.mkdir(parents=True, exist_ok=True)
        _atomic_write(dst, data)
    except OSError as exc:
        raise ExecuteError(f"could not perform mutation `WriteFile` (dst={dst}): {exc}") from exc


def _apply_move(mutation: MoveFile) -> None:
    src, dst = Path(mutation.src), Path(mutation.dst)
    try:
        dst.parent.mkdir(parents=True, exist_ok=True)
        os.replace(src, dst)
    except OSError as exc:
        raise ExecuteError(
            f"could not perform mutation `MoveFile` ({src} -> {dst}): {exc}"
        ) from exc


def _apply_replace(mutation: StringReplace) -> None:
    path = Path(mutation.path)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise ExecuteError(f"string-replace I/O on {path}: {exc}") from exc
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ExecuteError(f"string-replace I/O on {path}: file is not valid UTF-8") from exc
    actual = text.count(mutation.find)
    if actual != mutation.expected_replacements:
        raise ExecuteError(
            f"string-replace on {path} found {actual} occurrences, expected "
            f"{mutation.expected_replacements} (file mutated between plan and execute?)"
        )
    replaced = text.replace(mutation.find, mutation.replace)
    try:
        _atomic_write(path, replaced.encode("utf-8"))
    except OSError as exc:
        raise ExecuteError(f"string-replace I/O on {path}: {exc}") from exc


def _atomic_write(path: Path, data: bytes) -> None:
    """Write ``data`` to ``path`` through a temporary file in the same folder."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".dcsbinder-", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_name)
        raise
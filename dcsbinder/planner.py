"""Build a :class:`Manifest` for a remap or discard operation.

Planning reads files to hash them and to find what is affected, but never
writes anything.
"""

from __future__ import annotations

import os
import re
import time
import uuid
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from os import PathLike
from pathlib import Path

from dcsbinder.guid import Guid, GuidParseError
from dcsbinder.hashing import bytes_blake3, file_blake3
from dcsbinder.manifest import (
    MANIFEST_VERSION,
    BackupEntry,
    Manifest,
    MoveFile,
    Mutation,
    OperationKind,
    StringReplace,
    WriteFile,
)
from dcsbinder.scanner import Active, ScannedFile, Subtype

_GUID_RE = re.compile(
    r"\{[0-9A-Fa-f]{8}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{12}\}"
)


class PlanError(Exception):
    """Raised when an operation cannot be planned."""


def _uuid7() -> str:
    ms = time.time_ns() // 1_000_000
    rand = int.from_bytes(os.urandom(10), "big")
    value = (
        (ms & ((1 << 48) - 1)) << 80
        | 0x7 << 76
        | ((rand >> 68) & 0xFFF) << 64
        | 0b10 << 62
        | (rand & ((1 << 62) - 1))
    )
    return str(uuid.UUID(int=value))


def _now_rfc3339() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _allocate_backup_dir(backup_root: Path, timestamp: str, op_id: str) -> Path:
    short = "".join(c for c in op_id if c.isascii() and c.isalnum())[:8]
    safe_ts = timestamp.replace(":", "-").replace(".", "-")
    return backup_root / f"{safe_ts}_{short}"


def _relative(install_root: Path, original: Path) -> Path:
    try:
        return original.relative_to(install_root)
    except ValueError:
        return original


def _backup_path_for(backup_dir: Path, install_root: Path, original: Path) -> Path:
    return backup_dir / "snapshots" / _relative(install_root, original)


def _archive_path_for(backup_dir: Path, install_root: Path, original: Path) -> Path:
    return backup_dir / "archived" / _relative(install_root, original)


def _guid_matches(guid_str: str, guid: Guid) -> bool:
    try:
        return Guid.parse_dcs("{" + guid_str + "}") == guid
    except GuidParseError:
        return False


def _file_guid_matches(file: ScannedFile, guid: Guid) -> bool:
    return isinstance(file.status, Active) and _guid_matches(file.status.guid, guid)


def _file_hash(path: Path) -> str:
    try:
        return file_blake3(path)
    except OSError as exc:
        raise PlanError(f"could not hash {path}: {exc}") from exc


def _file_size(path: Path) -> int:
    try:
        return path.stat().st_size
    except OSError as exc:
        raise PlanError(f"could not hash {path}: {exc}") from exc


def _backup_entry(backup_dir: Path, install_root: Path, path: Path) -> BackupEntry:
    return BackupEntry(
        src=path,
        backup=_backup_path_for(backup_dir, install_root, path),
        blake3=_file_hash(path),
        size=_file_size(path),
    )


def _device_files(
    files: Iterable[ScannedFile], install_root: Path, device_name: str, subtype: Subtype
) -> list[ScannedFile]:
    return [
        f
        for f in files
        if f.install_root == install_root
        and f.subtype == subtype
        and isinstance(f.status, Active)
        and f.status.device_name == device_name
    ]


def _collect_guid_occurrences(data: bytes, target: Guid) -> list[tuple[str, int]]:
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        return []
    counts: dict[str, int] = {}
    for match in _GUID_RE.finditer(text):
        surface = match.group(0)
        try:
            parsed = Guid.parse_dcs(surface)
        except GuidParseError:
            continue
        if parsed == target:
            counts[surface] = counts.get(surface, 0) + 1
    return sorted(counts.items())


def _plan_modifiers_rewrite(
    install_root: Path,
    aircraft: str,
    source_guid: Guid,
    target_guid: Guid,
    backup_dir: Path,
    backups: list[BackupEntry],
    mutations: list[Mutation],
) -> None:
    modifiers_lua = install_root / aircraft / "modifiers.lua"
    if not modifiers_lua.is_file():
        return
    try:
        data = modifiers_lua.read_bytes()
    except OSError as exc:
        raise PlanError(f"could not read modifiers.lua at {modifiers_lua}: {exc}") from exc
    occurrences = _collect_guid_occurrences(data, source_guid)
    if not occurrences:
        return
    backups.append(
        BackupEntry(
            src=modifiers_lua,
            backup=_backup_path_for(backup_dir, install_root, modifiers_lua),
            blake3=bytes_blake3(data),
            size=len(data),
        )
    )
    target_dcs = target_guid.to_dcs_string()
    mutations.extend(
        StringReplace(path=modifiers_lua, find=text, replace=target_dcs, expected_replacements=count)
        for text, count in occurrences
    )


def _plan_for_aircraft(
    install_root: Path,
    aircraft: str,
    device_name: str,
    subtype: Subtype,
    source_guid: Guid,
    target_guid: Guid,
    candidates: Sequence[ScannedFile],
    backup_dir: Path,
    backups: list[BackupEntry],
    mutations: list[Mutation],
) -> bool:
    in_aircraft = [f for f in candidates if f.aircraft == aircraft]
    source_file = next((f for f in in_aircraft if _file_guid_matches(f, source_guid)), None)
    if source_file is None:
        return False

    source_path = source_file.path
    source_entry = _backup_entry(backup_dir, install_root, source_path)
    backups.append(source_entry)

    subtype_dir = source_path.parent if source_path.parent != source_path else (
        install_root / aircraft / subtype.value
    )
    target_path = subtype_dir / f"{device_name} {target_guid.to_dcs_string()}.diff.lua"

    target_file = next((f for f in in_aircraft if _file_guid_matches(f, target_guid)), None)
    if target_file is not None:
        backups.append(_backup_entry(backup_dir, install_root, target_file.path))

    for other in in_aircraft:
        if not isinstance(other.status, Active):
            continue
        if _guid_matches(other.status.guid, source_guid) or _guid_matches(
            other.status.guid, target_guid
        ):
            continue
        backups.append(_backup_entry(backup_dir, install_root, other.path))
        mutations.append(
            MoveFile(src=other.path, dst=_archive_path_for(backup_dir, install_root, other.path))
        )

    mutations.append(
        WriteFile(dst=target_path, source=source_path, source_blake3=source_entry.blake3)
    )
    mutations.append(
        MoveFile(src=source_path, dst=_archive_path_for(backup_dir, install_root, source_path))
    )

    _plan_modifiers_rewrite(
        install_root, aircraft, source_guid, target_guid, backup_dir, backups, mutations
    )
    return True


def plan(
    install_root: str | PathLike[str],
    device_name: str,
    subtype: Subtype,
    source_guid: Guid,
    target_guid: Guid,
    files: Iterable[ScannedFile],
    backup_root: str | PathLike[str],
) -> Manifest:
    """Plan a remap of ``device_name`` from ``source_guid`` to ``target_guid`` in every aircraft."""
    return plan_with_scope(
        install_root, device_name, subtype, source_guid, target_guid, files, backup_root, None
    )


def plan_with_scope(
    install_root: str | PathLike[str],
    device_name: str,
    subtype: Subtype,
    source_guid: Guid,
    target_guid: Guid,
    files: Iterable[ScannedFile],
    backup_root: str | PathLike[str],
    restrict_to_aircraft: str | None = None,
) -> Manifest:
    """Like :func:`plan`, optionally limited to one aircraft folder."""
    if source_guid == target_guid:
        raise PlanError(
            "source and target GUID are equal — nothing to do "
            f"({source_guid.to_dcs_string()})"
        )
    root = Path(install_root)
    operation_id = _uuid7()
    timestamp = _now_rfc3339()
    backup_dir = _allocate_backup_dir(Path(backup_root), timestamp, operation_id)

    backups: list[BackupEntry] = []
    mutations: list[Mutation] = []

    candidates = _device_files(files, root, device_name, subtype)
    aircrafts = sorted(
        {
            f.aircraft
            for f in candidates
            if restrict_to_aircraft is None or f.aircraft == restrict_to_aircraft
        }
    )

    had_any_source = False
    for aircraft in aircrafts:
        if _plan_for_aircraft(
            root,
            aircraft,
            device_name,
            subtype,
            source_guid,
            target_guid,
            candidates,
            backup_dir,
            backups,
            mutations,
        ):
            had_any_source = True

    if not had_any_source:
        raise PlanError(
            f"no source file found for device `{device_name}` with GUID "
            f"{source_guid.to_dcs_string()}"
        )

    return Manifest(
        version=MANIFEST_VERSION,
        operation_id=operation_id,
        operation=OperationKind.REMAP,
        timestamp=timestamp,
        backup_dir=backup_dir,
        install_root=root,
        device_name=device_name,
        subtype=subtype.value,
        source_guid=source_guid.to_dcs_string(),
        target_guid=target_guid.to_dcs_string(),
        backups=backups,
        mutations=mutations,
    )


def plan_discard_stale(
    install_root: str | PathLike[str],
    device_name: str,
    subtype: Subtype,
    stale_guid: Guid,
    files: Iterable[ScannedFile],
    backup_root: str | PathLike[str],
    restrict_to_aircraft: str | None = None,
) -> Manifest:
    """Plan moving the ``stale_guid`` files of a device into the backup folder.

    Nothing is written in their place and ``modifiers.lua`` is left alone.
    """
    root = Path(install_root)
    operation_id = _uuid7()
    timestamp = _now_rfc3339()
    backup_dir = _allocate_backup_dir(Path(backup_root), timestamp, operation_id)

    candidates = [
        f
        for f in _device_files(files, root, device_name, subtype)
        if (restrict_to_aircraft is None or f.aircraft == restrict_to_aircraft)
        and _file_guid_matches(f, stale_guid)
    ]
    if not candidates:
        raise PlanError(
            f"no source file found for device `{device_name}` with GUID "
            f"{stale_guid.to_dcs_string()}"
        )

    backups = [_backup_entry(backup_dir, root, f.path) for f in candidates]
    mutations: list[Mutation] = [
        MoveFile(src=f.path, dst=_archive_path_for(backup_dir, root, f.path)) for f in candidates
    ]

    return Manifest(
        version=MANIFEST_VERSION,
        operation_id=operation_id,
        operation=OperationKind.DISCARD_STALE,
        timestamp=timestamp,
        backup_dir=backup_dir,
        install_root=root,
        device_name=device_name,
        subtype=subtype.value,
        source_guid=stale_guid.to_dcs_string(),
        target_guid="",
        backups=backups,
        mutations=mutations,
    )
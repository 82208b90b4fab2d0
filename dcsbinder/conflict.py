"""Find GUID conflicts and orphaned bindings among scanned files.

Active files are grouped by ``(install_root, aircraft, subtype, device_name)``.
Device names are compared exactly; no fuzzy matching is done.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from dcsbinder.guid import Guid, GuidParseError
from dcsbinder.scanner import Active, ScannedFile, Subtype

_GroupKey = tuple[Path, str, Subtype, str]


@dataclass(frozen=True)
class Candidate:
    """One GUID a device is bound under, and the file that holds it."""

    guid: str
    path: Path


@dataclass
class Conflict:
    """Several active files for one device, under different GUIDs."""

    install_root: Path
    aircraft: str
    subtype: Subtype
    device_name: str
    candidates: list[Candidate] = field(default_factory=list)


@dataclass(frozen=True)
class Orphan:
    """A single binding whose GUID differs from the live device of the same name."""

    install_root: Path
    aircraft: str
    subtype: Subtype
    device_name: str
    stale_guid: str
    stale_path: Path
    live_guid: str


def _group_active(files: Iterable[ScannedFile]) -> dict[_GroupKey, list[Candidate]]:
    groups: dict[_GroupKey, list[Candidate]] = {}
    for file in files:
        if not isinstance(file.status, Active) or file.subtype is None:
            continue
        key = (file.install_root, file.aircraft, file.subtype, file.status.device_name)
        groups.setdefault(key, []).append(Candidate(guid=file.status.guid, path=file.path))
    return groups


def _report_order(item: Conflict | Orphan) -> tuple[Path, str, str, str]:
    return (item.install_root, item.aircraft, item.subtype.value, item.device_name)


def _canonical(guid: str) -> str | None:
    try:
        return Guid.parse_dcs("{" + guid + "}").to_dcs_string()
    except GuidParseError:
        return None


def detect(files: Iterable[ScannedFile]) -> list[Conflict]:
    """Every device bound under more than one distinct GUID.

    Candidates are sorted by GUID; conflicts by install, aircraft, subtype
    and device name.
    """
    conflicts = []
    for (install_root, aircraft, subtype, device_name), candidates in _group_active(files).items():
        if len({c.guid for c in candidates}) < 2:
            continue
        conflicts.append(
            Conflict(
                install_root=install_root,
                aircraft=aircraft,
                subtype=subtype,
                device_name=device_name,
                candidates=sorted(candidates, key=lambda c: c.guid),
            )
        )
    conflicts.sort(key=_report_order)
    return conflicts


def detect_orphans(
    files: Iterable[ScannedFile], live_devices: Sequence[tuple[str, Guid]]
) -> list[Orphan]:
    """Single-file devices whose GUID is not that of the live device with the same name.

    ``live_devices`` holds ``(product_name, instance_guid)`` pairs.
    """
    orphans = []
    for (install_root, aircraft, subtype, device_name), candidates in _group_active(files).items():
        if len(candidates) != 1:
            continue
        (candidate,) = candidates
        candidate_canonical = _canonical(candidate.guid)
        if candidate_canonical is None:
            continue
        live_guid = next((g for name, g in live_devices if name == device_name), None)
        if live_guid is None:
            continue
        live_canonical = live_guid.to_dcs_string()
        if live_canonical != candidate_canonical:
            orphans.append(
                Orphan(
                    install_root=install_root,
                    aircraft=aircraft,
                    subtype=subtype,
                    device_name=device_name,
                    stale_guid=candidate.guid,
                    stale_path=candidate.path,
                    live_guid=live_canonical,
                )
            )
    orphans.sort(key=_report_order)
    return orphans
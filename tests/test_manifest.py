import json
from pathlib import Path

import pytest

from dcsbinder.manifest import (
    MANIFEST_VERSION,
    BackupEntry,
    Manifest,
    MoveFile,
    OperationKind,
    StringReplace,
    WriteFile,
)

OLD_GUID_STR = "{4E50F3B0-2309-11ee-8015-444553540000}"
NEW_GUID_STR = "{CD3E4960-E0D2-11ef-8014-444553540000}"


def _sample(tmp_path: Path, operation=OperationKind.REMAP) -> Manifest:
    backup_dir = tmp_path / "backups" / "op"
    src = tmp_path / "Input" / "A-10C II" / "joystick" / f"MFDLeft {OLD_GUID_STR}.diff.lua"
    dst = tmp_path / "Input" / "A-10C II" / "joystick" / f"MFDLeft {NEW_GUID_STR}.diff.lua"
    modifiers = tmp_path / "Input" / "A-10C II" / "modifiers.lua"
    return Manifest(
        version=MANIFEST_VERSION,
        operation_id="test",
        operation=operation,
        timestamp="test",
        backup_dir=backup_dir,
        install_root=tmp_path / "Input",
        device_name="MFDLeft",
        subtype="joystick",
        source_guid=OLD_GUID_STR,
        target_guid=NEW_GUID_STR,
        backups=[BackupEntry(src=src, backup=backup_dir / "snapshots" / "x", blake3="ab", size=7)],
        mutations=[
            WriteFile(dst=dst, source=src, source_blake3="ab"),
            MoveFile(src=src, dst=backup_dir / "archived" / "x"),
            StringReplace(path=modifiers, find=OLD_GUID_STR, replace=NEW_GUID_STR, expected_replacements=2),
        ],
    )


def test_path_in_and_done_marker(tmp_path):
    assert Manifest.path_in(tmp_path) == tmp_path / "manifest.json"
    assert Manifest.done_marker_in(tmp_path) == tmp_path / "manifest.json.done"


def test_json_round_trip(tmp_path):
    manifest = _sample(tmp_path)
    restored = Manifest.from_json(manifest.to_json())
    assert restored == manifest


def test_json_round_trip_discard(tmp_path):
    manifest = _sample(tmp_path, OperationKind.DISCARD_STALE)
    data = json.loads(manifest.to_json())
    assert data["operation"] == "discard_stale"
    assert Manifest.from_json(manifest.to_json()).operation is OperationKind.DISCARD_STALE


def test_mutations_are_tagged_by_kind(tmp_path):
    data = json.loads(_sample(tmp_path).to_json())
    assert data["mutations"][0]["kind"] == "write_file"
    assert data["mutations"][2]["expected_replacements"] == 2
    assert data["version"] == MANIFEST_VERSION
    assert data["source_guid"] == OLD_GUID_STR


def test_load_from_file(tmp_path):
    manifest = _sample(tmp_path)
    path = Manifest.path_in(tmp_path)
    path.write_text(manifest.to_json(), encoding="utf-8")
    loaded = Manifest.load(path)
    assert loaded.device_name == "MFDLeft"
    assert loaded.mutations == manifest.mutations


def test_unknown_mutation_kind_rejected(tmp_path):
    data = json.loads(_sample(tmp_path).to_json())
    data["mutations"][0]["kind"] = "explode"
    with pytest.raises(ValueError):
        Manifest.from_json(json.dumps(data))


def test_missing_field_rejected(tmp_path):
    data = json.loads(_sample(tmp_path).to_json())
    del data["backups"]
    with pytest.raises(ValueError):
        Manifest.from_json(json.dumps(data))


def test_invalid_json_rejected():
    with pytest.raises(ValueError):
        Manifest.from_json("{not json")
from pathlib import Path

import pytest

from dcsbinder.executor import ExecuteError, execute
from dcsbinder.guid import Guid
from dcsbinder.manifest import (
    MANIFEST_VERSION,
    Manifest,
    OperationKind,
    StringReplace,
)
from dcsbinder.planner import plan
from dcsbinder.scanner import Subtype, scan

OLD_GUID_STR = "{1234ABCD-0001-11AA-8001-000000000001}"
NEW_GUID_STR = "{5678EF01-0002-22BB-8002-000000000002}"


def build_install(root: Path, aircrafts, devices) -> None:
    for aircraft in aircrafts:
        (root / aircraft / "joystick").mkdir(parents=True, exist_ok=True)
    for aircraft, filename, content in devices:
        (root / aircraft / "joystick" / filename).write_bytes(content)


def plan_remap(install_root: Path, backup_root: Path) -> Manifest:
    return plan(
        install_root,
        "MFDLeft",
        Subtype.JOYSTICK,
        Guid.parse_dcs(OLD_GUID_STR),
        Guid.parse_dcs(NEW_GUID_STR),
        scan(install_root),
        backup_root,
    )


def bare_manifest(tmp_path: Path, mutations) -> Manifest:
    return Manifest(
        version=MANIFEST_VERSION,
        operation_id="test",
        operation=OperationKind.REMAP,
        timestamp="test",
        backup_dir=tmp_path / "backups" / "op",
        install_root=tmp_path,
        device_name="Test",
        subtype="joystick",
        source_guid=OLD_GUID_STR,
        target_guid=NEW_GUID_STR,
        backups=[],
        mutations=mutations,
    )


def test_plan_and_execute_remap_single_aircraft(tmp_path):
    install_root = tmp_path / "Input"
    old_content = (
        b"-- old bindings (rich)\nlocal diff = { ['axisDiffs'] = {}, ['keyDiffs'] = {} }\nreturn diff"
    )
    new_content = (
        b"-- new bindings (sparse)\nlocal diff = { ['axisDiffs'] = {}, ['keyDiffs'] = {} }\nreturn diff"
    )
    build_install(
        install_root,
        ["A-10C II"],
        [
            ("A-10C II", f"MFDLeft {OLD_GUID_STR}.diff.lua", old_content),
            ("A-10C II", f"MFDLeft {NEW_GUID_STR}.diff.lua", new_content),
        ],
    )
    manifest = plan_remap(install_root, tmp_path / "backups")

    assert manifest.device_name == "MFDLeft"
    assert manifest.source_guid == OLD_GUID_STR
    assert manifest.target_guid == NEW_GUID_STR
    assert len(manifest.backups) == 2
    assert len(manifest.mutations) == 2

    done = execute(manifest, False)
    assert done.exists()
    assert done.read_bytes() == b"done"
    assert Manifest.path_in(manifest.backup_dir).exists()

    joystick_dir = install_root / "A-10C II" / "joystick"
    listing = sorted(p.name for p in joystick_dir.iterdir())
    assert listing == [f"MFDLeft {NEW_GUID_STR}.diff.lua"]
    assert (joystick_dir / listing[0]).read_bytes() == old_content

    archived_old = (
        manifest.backup_dir / "archived" / "A-10C II" / "joystick" / f"MFDLeft {OLD_GUID_STR}.diff.lua"
    )
    assert archived_old.is_file()
    assert archived_old.read_bytes() == old_content


def test_written_manifest_reads_back(tmp_path):
    install_root = tmp_path / "Input"
    build_install(
        install_root,
        ["A-10C II"],
        [("A-10C II", f"MFDLeft {OLD_GUID_STR}.diff.lua", b"-- OLD")],
    )
    manifest = plan_remap(install_root, tmp_path / "backups")
    execute(manifest, False)

    loaded = Manifest.load(Manifest.path_in(manifest.backup_dir))
    assert loaded == manifest


def test_snapshots_are_written(tmp_path):
    install_root = tmp_path / "Input"
    build_install(
        install_root,
        ["A-10C II"],
        [
            ("A-10C II", f"MFDLeft {OLD_GUID_STR}.diff.lua", b"-- OLD"),
            ("A-10C II", f"MFDLeft {NEW_GUID_STR}.diff.lua", b"-- NEW"),
        ],
    )
    manifest = plan_remap(install_root, tmp_path / "backups")
    execute(manifest, False)

    snapshots = {entry.backup.read_bytes() for entry in manifest.backups}
    assert snapshots == {b"-- OLD", b"-- NEW"}


def test_rewrites_modifiers_lua_when_guid_referenced(tmp_path):
    install_root = tmp_path / "Input"
    build_install(
        install_root,
        ["A-10C II"],
        [
            ("A-10C II", f"MFDLeft {OLD_GUID_STR}.diff.lua", b"-- OLD\nlocal diff = {}\nreturn diff"),
            ("A-10C II", f"MFDLeft {NEW_GUID_STR}.diff.lua", b"-- NEW\nlocal diff = {}\nreturn diff"),
        ],
    )
    modifiers_path = install_root / "A-10C II" / "modifiers.lua"
    modifiers_content = (
        "local modifiers = {\n"
        f'\t["JOY_BTN8"] = {{ ["device"] = "MFDLeft {OLD_GUID_STR}" }},\n'
        f'\t["JOY_BTN9"] = {{ ["device"] = "MFDLeft {OLD_GUID_STR}" }},\n'
        "}\nreturn modifiers"
    )
    modifiers_path.write_text(modifiers_content, encoding="utf-8")

    manifest = plan_remap(install_root, tmp_path / "backups")
    replaces = [m for m in manifest.mutations if isinstance(m, StringReplace)]
    assert len(replaces) == 1
    assert replaces[0].expected_replacements == 2

    execute(manifest, False)

    new_upper = modifiers_path.read_text(encoding="utf-8").upper()
    assert NEW_GUID_STR.upper() in new_upper
    assert OLD_GUID_STR.upper() not in new_upper


def test_source_changed_after_planning_is_refused(tmp_path):
    install_root = tmp_path / "Input"
    build_install(
        install_root,
        ["A-10C II"],
        [("A-10C II", f"MFDLeft {OLD_GUID_STR}.diff.lua", b"-- OLD")],
    )
    manifest = plan_remap(install_root, tmp_path / "backups")
    (install_root / "A-10C II" / "joystick" / f"MFDLeft {OLD_GUID_STR}.diff.lua").write_bytes(
        b"-- changed"
    )

    with pytest.raises(ExecuteError, match="blake3 mismatch"):
        execute(manifest, False)
    assert not Manifest.done_marker_in(manifest.backup_dir).exists()
    assert Manifest.path_in(manifest.backup_dir).is_file()


def test_string_replace_count_mismatch_is_refused(tmp_path):
    target = tmp_path / "modifiers.lua"
    target.write_text("abc abc", encoding="utf-8")
    manifest = bare_manifest(
        tmp_path, [StringReplace(path=target, find="abc", replace="xyz", expected_replacements=1)]
    )

    with pytest.raises(ExecuteError, match="found 2 occurrences, expected 1"):
        execute(manifest, False)
    assert target.read_text(encoding="utf-8") == "abc abc"


def test_string_replace_on_non_utf8_is_refused(tmp_path):
    target = tmp_path / "modifiers.lua"
    target.write_bytes(b"\xff\xfe abc")
    manifest = bare_manifest(
        tmp_path, [StringReplace(path=target, find="abc", replace="xyz", expected_replacements=1)]
    )

    with pytest.raises(ExecuteError, match="not valid UTF-8"):
        execute(manifest, False)


def test_string_replace_applies_exact_count(tmp_path):
    target = tmp_path / "modifiers.lua"
    target.write_text("a-b-a", encoding="utf-8")
    manifest = bare_manifest(
        tmp_path, [StringReplace(path=target, find="a", replace="zz", expected_replacements=2)]
    )

    execute(manifest, False)
    assert target.read_text(encoding="utf-8") == "zz-b-zz"
# dcsbinder

Find and repair DCS World controller bindings that were split across device
GUID changes.

DCS stores per-device bindings as files named `<Device> {GUID}.diff.lua` under
`Saved Games\DCS*\Config\Input\<Aircraft>\<subtype>\`. When a controller is
given a new instance GUID, DCS starts a fresh binding file and the profile you
built sits unused under the old GUID. `dcsbinder` finds devices bound under
more than one GUID and moves the content you choose over to the GUID you want,
across every aircraft, with a full backup and undo.

## Install

```
pip install .
```

Python 3.10 or later is required.

## Command line

All commands print `error: <message>` and exit with status 1 when they fail.

### scan

Scan every DCS install found under `%USERPROFILE%\Saved Games\` (`DCS`,
`DCS.openbeta` and `DCS.dcs_serverbeta`, wherever `Config\Input` exists):

```
dcsbinder scan
```

Scan one specific `Config/Input` folder and also list every file it
classified:

```
dcsbinder scan "C:\Users\me\Saved Games\DCS\Config\Input" --verbose
```

Files are classified as active bindings, user-archived bindings (text added
after the GUID, e.g. `MFDLeft {GUID}old.diff.lua`), `modifiers.lua`, exported
profiles (other `.lua` files) or malformed (`.diff.lua` names without a valid
GUID). For each conflict the report shows the subtype, aircraft and device
name, and every GUID and file found for that device. A warning is printed if
`DCS.exe` is running.

### remap

Make the content of the `--from-guid` file the binding for `--to-guid`, in
every aircraft that has the device:

```
dcsbinder remap --device MFDLeft \
    --from-guid "{11111111-2222-3333-4444-555555555555}" \
    --to-guid   "{AAAAAAAA-BBBB-CCCC-DDDD-EEEEEEEEEEEE}" \
    --dry-run
```

For each aircraft, the source file's bytes are written under the target GUID,
the source file and any other GUID files for that device are moved into the
backup folder, and GUID references in the aircraft's `modifiers.lua` are
rewritten to the target GUID. The plan is printed step by step before anything
happens.

- `--dry-run` prints the plan and stops.
- `--yes` skips the `Proceed? [y/N]` prompt.
- `--subtype` chooses `joystick` (default), `keyboard`, `mouse` or `trackir`.
- `--input-root` names the `Config/Input` folder; it is required when more
  than one install is found.

Remapping is refused while `DCS.exe` is running, and when the two GUIDs are
equal or no file for the device carries the source GUID.

### undo

Roll back a specific operation, or the completed operation whose backup
folder name sorts last (folder names begin with the UTC timestamp):

```
dcsbinder undo --manifest "<backup-dir>\manifest.json"
dcsbinder undo --last
```

### devices

```
dcsbinder devices
```

See the limitations below.

## How changes are made safely

Every operation is planned first without writing anything. Backups live in a
fresh folder under `backups` in the per-user application data directory
(`DCSBinder`). Before any binding file changes, a `manifest.json` is written
there, and every affected file is copied in and checked against its BLAKE3
digest. Writes go through a temporary file and a rename; replaced files are
moved into the backup folder instead of being deleted. A
`manifest.json.done` marker is written last. A manifest without that marker
marks an interrupted operation; `dcsbinder.recovery.recover` lists them and
`dcsbinder.recovery.undo` rolls them back.

## Library use

```python
from pathlib import Path

from dcsbinder.conflict import detect
from dcsbinder.executor import execute
from dcsbinder.guid import Guid
from dcsbinder.manifest import Manifest
from dcsbinder.planner import plan
from dcsbinder.recovery import undo
from dcsbinder.scanner import Subtype, scan

root = Path(r"C:\Users\me\Saved Games\DCS\Config\Input")
files = scan(root)
for conflict in detect(files):
    print(conflict.aircraft, conflict.device_name,
          [c.guid for c in conflict.candidates])

manifest = plan(
    root,
    "MFDLeft",
    Subtype.JOYSTICK,
    Guid.parse_dcs("{11111111-2222-3333-4444-555555555555}"),
    Guid.parse_dcs("{AAAAAAAA-BBBB-CCCC-DDDD-EEEEEEEEEEEE}"),
    files,
    Path("backups"),
)
execute(manifest, True)
undo(Manifest.path_in(manifest.backup_dir))
```

Other pieces:

- `dcsbinder.planner.plan_with_scope` limits a remap to one aircraft;
  `plan_discard_stale` only moves a device's files under a given GUID into the
  backup folder.
- `dcsbinder.conflict.detect_orphans` reports single-GUID devices whose GUID
  differs from that of a live device of the same name, given
  `(product_name, Guid)` pairs.
- `dcsbinder.luareader.parse` and `dcsbinder.luawriter.write` read and write
  `.diff.lua` / `modifiers.lua` files in DCS's own layout, keeping number text
  as written so a parse and write round trip reproduces the file byte for byte.

## What it does not do

- It does not enumerate attached controllers. `dcsbinder.device.enumerate_devices`
  always raises `DeviceEnumerationError`, so `dcsbinder devices` ends with an
  error, `dcsbinder scan` prints a warning and marks every GUID `[?    ]`
  instead of `[LIVE ]` or `[STALE]`, and you choose the GUIDs to remap
  yourself.
- There is no graphical interface, no diff view of binding files, no history
  or audit log of past operations, and no bulk remap of many devices at once.

## Running the tests

```
pip install ".[test]"
pytest
```
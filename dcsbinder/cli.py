"""Command line: scan installs, list devices, remap a binding and undo it."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Iterable, Sequence
from pathlib import Path

from dcsbinder import config, conflict, device, scanner
from dcsbinder.executor import ExecuteError, execute
from dcsbinder.guid import Guid, GuidParseError
from dcsbinder.manifest import Manifest, MoveFile, StringReplace, WriteFile
from dcsbinder.planner import PlanError, plan
from dcsbinder.recovery import UndoError, undo

_UNKNOWN = "[?    ]"
_LIVE = "[LIVE ]"
_STALE = "[STALE]"


class _CliError(Exception):
    """A command failed; the message is shown to the user."""


_ERRORS = (_CliError, PlanError, ExecuteError, UndoError, OSError)


def liveness_marker(guid: str, live: Iterable[str]) -> str:
    """``[LIVE ]``, ``[STALE]`` or ``[?    ]`` for a bare GUID against live canonical GUIDs."""
    try:
        canonical = Guid.parse_dcs("{" + guid + "}").to_dcs_string()
    except GuidParseError:
        return _UNKNOWN
    live_set = set(live)
    if canonical in live_set:
        return _LIVE
    if not live_set:
        return _UNKNOWN
    return _STALE


def _resolve_roots(input_root: Path | None) -> list[Path]:
    if input_root is not None:
        try:
            canon = Path(input_root).resolve(strict=True)
        except OSError as exc:
            raise _CliError(f"could not canonicalize {input_root}: {exc}") from exc
        if not canon.is_dir():
            raise _CliError(f"{canon} is not a directory")
        return [canon]
    return [install.input_root for install in config.discover_installs()]


def _subtype_text(subtype: scanner.Subtype | None) -> str:
    return subtype.value if subtype is not None else "-"


def _print_file_listing(files: Sequence[scanner.ScannedFile], live: set[str]) -> None:
    counts = {"active": 0, "archived": 0, "modifiers": 0, "exported": 0, "malformed": 0}
    for f in files:
        status = f.status
        sub = _subtype_text(f.subtype)
        if isinstance(status, scanner.Active):
            counts["active"] += 1
            marker = liveness_marker(status.guid, live)
            print(f"  ACTIVE   {marker} {f.aircraft} / {sub} / {status.device_name} {{{status.guid}}}")
        elif isinstance(status, scanner.UserArchived):
            counts["archived"] += 1
            print(
                f"  ARCHIVED      {f.aircraft} / {sub} / {status.device_name} "
                f"{{{status.guid}}}{status.suffix}"
            )
        elif isinstance(status, scanner.Modifiers):
            counts["modifiers"] += 1
            print(f"  MODIFIERS     {f.aircraft} / modifiers.lua")
        elif isinstance(status, scanner.ExportedProfile):
            counts["exported"] += 1
            print(f"  PROFILE       {f.aircraft} / {sub} / {f.path.name or '?'}")
        elif isinstance(status, scanner.Malformed):
            counts["malformed"] += 1
            print(f"  MALFORMED     {f.aircraft} / {sub} / {f.path.name or '?'} ({status.reason})")
    print()
    print(
        f"Files: {counts['active']} active, {counts['archived']} archived, "
        f"{counts['modifiers']} modifiers, {counts['exported']} profiles, "
        f"{counts['malformed']} malformed (total {len(files)})"
    )


def _print_conflict_report(conflicts: Sequence[conflict.Conflict], live: set[str]) -> None:
    if not conflicts:
        print("No GUID conflicts detected.")
        return
    print(f"Detected {len(conflicts)} GUID conflict(s):")
    print()
    for c in conflicts:
        print(f"  [{c.subtype.value}] {c.aircraft} / {c.device_name}")
        for cand in c.candidates:
            print(f"      {liveness_marker(cand.guid, live)} {{{cand.guid}}}")
            print(f"            {cand.path}")
        print()


def _cmd_scan(args: argparse.Namespace) -> None:
    roots = _resolve_roots(args.input_root)
    if not roots:
        raise _CliError(
            "no DCS install found. Provide an explicit `<input-root>` or install DCS "
            "under `%USERPROFILE%\\Saved Games\\`."
        )

    pid = config.dcs_running()
    if pid is not None:
        print(
            f"WARNING: DCS.exe is currently running (PID {pid}). Close DCS before any remap; "
            "scanning is safe but file mutations will be refused later.",
            file=sys.stderr,
        )
        print(file=sys.stderr)

    try:
        live_devices = device.enumerate_devices()
    except device.DeviceEnumerationError as exc:
        print(f"warning: could not enumerate live DirectInput devices: {exc}", file=sys.stderr)
        print(file=sys.stderr)
        live_devices = []
    live = {d.instance_guid.to_dcs_string() for d in live_devices}

    for root in roots:
        files = scanner.scan(root)
        conflicts = conflict.detect(files)
        print(f"=== {root} ===")
        print()
        if args.verbose:
            _print_file_listing(files, live)
            print()
        _print_conflict_report(conflicts, live)
        print()


def _cmd_devices(args: argparse.Namespace) -> None:
    try:
        devices = device.enumerate_devices()
    except device.DeviceEnumerationError as exc:
        raise _CliError(f"enumerating DirectInput devices: {exc}") from exc
    if not devices:
        print("No game controllers currently attached.")
        return
    print(f"{len(devices)} game controller(s) attached:")
    print()
    for d in devices:
        print(f"  {d.product_name}")
        print(f"      instance: {d.instance_guid}")
        print(f"      product : {d.product_guid}")
        print()


def _parse_guid(text: str, option: str) -> Guid:
    try:
        return Guid.parse_dcs(text)
    except GuidParseError as exc:
        raise _CliError(f"invalid {option} `{text}`: {exc}") from exc


def _backup_root() -> Path:
    return config.app_data_dir() / "backups"


def _prompt_confirm(message: str) -> bool:
    try:
        line = input(f"{message} [y/N]: ")
    except (EOFError, OSError):
        return False
    return line.strip().lower() in ("y", "yes")


def _describe_mutation(index: int, mutation: object) -> str:
    if isinstance(mutation, WriteFile):
        return f"    {index:>3}. WRITE   {mutation.dst}  <-  {mutation.source}"
    if isinstance(mutation, MoveFile):
        return f"    {index:>3}. MOVE    {mutation.src}  ->  {mutation.dst}"
    if isinstance(mutation, StringReplace):
        return (
            f"    {index:>3}. REWRITE {mutation.path} ({mutation.expected_replacements}x  "
            f"{mutation.find}  ->  {mutation.replace})"
        )
    raise TypeError(f"not a mutation: {mutation!r}")


def _cmd_remap(args: argparse.Namespace) -> None:
    roots = _resolve_roots(args.input_root)
    if len(roots) != 1:
        raise _CliError(
            f"remap requires exactly one --input-root (found {len(roots)}). Pass --input-root "
            "explicitly when more than one DCS install is present."
        )
    install_root = roots[0]

    pid = config.dcs_running()
    if pid is not None:
        raise _CliError(
            f"DCS.exe is running (PID {pid}). Close DCS before remap (sharing-violation risk)."
        )

    source = _parse_guid(args.from_guid, "--from-guid")
    target = _parse_guid(args.to_guid, "--to-guid")
    subtype = scanner.Subtype(args.subtype)

    files = scanner.scan(install_root)

    backup_root = _backup_root()
    try:
        backup_root.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise _CliError(f"creating backup root {backup_root}: {exc}") from exc

    manifest = plan(install_root, args.device, subtype, source, target, files, backup_root)

    print("Plan for remap:")
    print(f"  device        : {manifest.device_name}")
    print(f"  subtype       : {manifest.subtype}")
    print(f"  from-guid     : {manifest.source_guid}")
    print(f"  to-guid       : {manifest.target_guid}")
    print(f"  backups       : {len(manifest.backups)} file(s) to snapshot")
    print(f"  mutations     : {len(manifest.mutations)} step(s)")
    print(f"  backup-dir    : {manifest.backup_dir}")
    print()
    for index, mutation in enumerate(manifest.mutations, start=1):
        print(_describe_mutation(index, mutation))
    print()

    if args.dry_run:
        print("--dry-run: stopping before any file mutation.")
        return

    if not args.yes and not _prompt_confirm("Proceed?"):
        print("Aborted.")
        return

    done = execute(manifest, True)
    print()
    print("Done. Finalize marker written at:")
    print(f"    {done}")
    print(f'To undo: dcsbinder undo --manifest "{Manifest.path_in(manifest.backup_dir)}"')


def _latest_completed_manifest(backup_root: Path) -> Path:
    try:
        entries = list(backup_root.iterdir())
    except OSError as exc:
        raise _CliError(f"reading {backup_root}: {exc}") from exc
    completed = sorted(
        Manifest.path_in(d)
        for d in entries
        if d.is_dir() and Manifest.path_in(d).is_file() and Manifest.done_marker_in(d).exists()
    )
    if not completed:
        raise _CliError(f"no completed operations found under {backup_root}")
    return completed[-1]


def _cmd_undo(args: argparse.Namespace) -> None:
    if args.manifest is not None:
        manifest_path = Path(args.manifest)
    elif args.last:
        manifest_path = _latest_completed_manifest(_backup_root())
    else:
        raise _CliError("pass --last or --manifest <PATH>")
    print(f"Undoing {manifest_path}...")
    undo(manifest_path)
    print("Done.")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dcsbinder",
        description="Detect, diff, and remap DCS World controller bindings across GUID changes.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    scan_p = sub.add_parser(
        "scan",
        help="Walk a DCS Input directory and report devices, classifications, and GUID conflicts.",
    )
    scan_p.add_argument(
        "input_root",
        nargs="?",
        type=Path,
        help="A DCS install's Config/Input folder; every discovered install if omitted.",
    )
    scan_p.add_argument("--verbose", action="store_true", help="Show all scanned files.")
    scan_p.set_defaults(handler=_cmd_scan)

    dev_p = sub.add_parser("devices", help="List connected controllers and their GUIDs.")
    dev_p.set_defaults(handler=_cmd_devices)

    remap_p = sub.add_parser(
        "remap",
        help="Remap a binding's content under a new GUID across every aircraft folder.",
    )
    remap_p.add_argument("--device", required=True, help="Device name as in bind filenames.")
    remap_p.add_argument(
        "--subtype",
        default="joystick",
        choices=[s.value for s in scanner.Subtype],
        help="Input subtype directory the device lives in.",
    )
    remap_p.add_argument("--from-guid", required=True, metavar="GUID", dest="from_guid")
    remap_p.add_argument("--to-guid", required=True, metavar="GUID", dest="to_guid")
    remap_p.add_argument("--input-root", type=Path, dest="input_root")
    remap_p.add_argument("--dry-run", action="store_true", dest="dry_run")
    remap_p.add_argument("--yes", action="store_true", help="Skip the confirmation prompt.")
    remap_p.set_defaults(handler=_cmd_remap)

    undo_p = sub.add_parser("undo", help="Roll back a previous remap from its backup manifest.")
    group = undo_p.add_mutually_exclusive_group()
    group.add_argument("--last", action="store_true", help="Roll back the most recent operation.")
    group.add_argument("--manifest", type=Path, metavar="PATH", help="A manifest.json to roll back.")
    undo_p.set_defaults(handler=_cmd_undo)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line; returns the process exit status."""
    args = _build_parser().parse_args(argv)
    try:
        args.handler(args)
    except _ERRORS as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
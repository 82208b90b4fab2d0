"""Install discovery, the application data folder, and DCS process detection."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import platformdirs
import psutil


class DcsFlavor(Enum):
    """A DCS World release channel."""

    STABLE = "DCS"
    OPEN_BETA = "DCS.openbeta"
    SERVER_BETA = "DCS.dcs_serverbeta"

    def saved_games_dir(self) -> str:
        """Subdirectory under ``Saved Games`` for this flavor."""
        return self.value


@dataclass(frozen=True)
class DcsInstall:
    """One discovered DCS install."""

    flavor: DcsFlavor
    saved_games_root: Path
    input_root: Path


def saved_games_dir() -> Path | None:
    """``%USERPROFILE%/Saved Games`` if it exists, else ``None``."""
    user_profile = os.environ.get("USERPROFILE")
    if not user_profile:
        return None
    candidate = Path(user_profile) / "Saved Games"
    return candidate if candidate.is_dir() else None


def discover_installs() -> list[DcsInstall]:
    """Every install under ``Saved Games`` whose ``Config/Input`` exists."""
    saved_games = saved_games_dir()
    if saved_games is None:
        return []
    installs = []
    for flavor in DcsFlavor:
        root = saved_games / flavor.saved_games_dir()
        input_root = root / "Config" / "Input"
        if input_root.is_dir():
            installs.append(DcsInstall(flavor=flavor, saved_games_root=root, input_root=input_root))
    return installs


def app_data_dir() -> Path:
    """Per-user folder where backups and history live."""
    return platformdirs.user_data_path("DCSBinder", appauthor=False, roaming=True)


def dcs_running() -> int | None:
    """PID of a running ``DCS.exe`` (case-insensitive match), or ``None``."""
    for process in psutil.process_iter(["pid", "name"]):
        info = process.info
        name = info.get("name") or ""
        if name.lower() == "dcs.exe":
            return info.get("pid")
    return None
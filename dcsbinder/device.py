"""Live game-controller devices.

Enumerating attached controllers needs Windows DirectInput, which this
package cannot reach, so :func:`enumerate_devices` reports why it cannot run
on the current platform.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass

from dcsbinder.guid import Guid


class DeviceEnumerationError(RuntimeError):
    """Raised when attached controllers cannot be enumerated."""


@dataclass(frozen=True)
class LiveDevice:
    """One attached game controller.

    ``instance_guid`` is the GUID found in DCS bind filenames; ``product_guid``
    is shared by every physical copy of the same controller model.
    """

    instance_guid: Guid
    product_guid: Guid
    product_name: str


def enumerate_devices() -> list[LiveDevice]:
    """Enumerate attached game controllers.

    Raises :class:`DeviceEnumerationError` describing why enumeration is
    unavailable on the running platform.
    """
    platform = sys.platform
    if not platform.startswith("win"):
        raise DeviceEnumerationError(
            f"device enumeration requires Windows + DirectInput (running on {platform})"
        )
    raise DeviceEnumerationError(
        "device enumeration requires DirectInput, which is not accessible from this runtime"
    )
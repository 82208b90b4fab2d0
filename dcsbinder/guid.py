"""DCS-form GUIDs: ``{8-4-4-4-12}`` upper-case hex."""

from __future__ import annotations

from dataclasses import dataclass

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")
_GROUP_LENGTHS = (8, 4, 4, 4, 12)


class GuidParseError(ValueError):
    """Raised when a string is not a DCS-style GUID."""


@dataclass(frozen=True, order=True)
class Guid:
    """A 16-byte GUID, shown in DCS's canonical ``{8-4-4-4-12}`` upper-hex form.

    The byte order follows the hex string left to right, which is how DCS,
    regedit and the DirectInput instance GUIDs are written.
    """

    data: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.data, (bytes, bytearray)) or len(self.data) != 16:
            raise ValueError("a GUID holds exactly 16 bytes")
        object.__setattr__(self, "data", bytes(self.data))

    @classmethod
    def nil(cls) -> Guid:
        """The all-zero GUID."""
        return cls(bytes(16))

    @classmethod
    def from_bytes(cls, data: bytes) -> Guid:
        """Build a GUID from its 16 raw bytes."""
        return cls(bytes(data))

    @classmethod
    def parse_dcs(cls, s: str) -> Guid:
        """Parse ``{xxxxxxxx-xxxx-xxxx-xxxx-xxxxxxxxxxxx}`` or the bare form.

        Surrounding whitespace is ignored and hex digits are case-insensitive.
        """
        trimmed = s.strip()
        inner = trimmed
        if trimmed.startswith("{") and trimmed.endswith("}") and len(trimmed) >= 2:
            inner = trimmed[1:-1]

        parts = inner.split("-")
        if len(parts) != len(_GROUP_LENGTHS) or any(
            len(part.encode("utf-8")) != length
            for part, length in zip(parts, _GROUP_LENGTHS)
        ):
            raise GuidParseError(
                f"expected `{{8-4-4-4-12}}` GUID or bare `8-4-4-4-12`, got `{s}`"
            )

        hex_text = "".join(parts)
        if not set(hex_text) <= _HEX_DIGITS:
            raise GuidParseError(f"non-hex character in GUID `{s}`")
        return cls(bytes.fromhex(hex_text))

    def to_dcs_string(self) -> str:
        """Format as ``{8-4-4-4-12}`` upper-case hex, as DCS uses in filenames."""
        return "{" + self.to_bare_string() + "}"

    def to_bare_string(self) -> str:
        """Format as ``8-4-4-4-12`` upper-case hex, without braces."""
        h = self.data.hex().upper()
        return f"{h[0:8]}-{h[8:12]}-{h[12:16]}-{h[16:20]}-{h[20:32]}"

    def __str__(self) -> str:
        return self.to_dcs_string()
"""Scan DCS World input bindings for GUID conflicts and remap them with backup and undo."""

__version__ = "0.1.0.dev0"
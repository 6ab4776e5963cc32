"""The kinds of sorted indexes a database can hold."""

from __future__ import annotations

from enum import IntEnum, IntFlag
from typing import Optional


class IndexFlags(IntFlag):
    """Which pieces of metadata a database has indexed."""

    NAME = 1 << 0
    PATH = 1 << 1
    SIZE = 1 << 2
    MODIFICATION_TIME = 1 << 3
    ACCESS_TIME = 1 << 4
    CREATION_TIME = 1 << 5
    STATUS_CHANGE_TIME = 1 << 6


class IndexType(IntEnum):
    """The orderings in which a database keeps its entries."""

    NAME = 0
    PATH = 1
    SIZE = 2
    MODIFICATION_TIME = 3
    ACCESS_TIME = 4
    CREATION_TIME = 5
    STATUS_CHANGE_TIME = 6
    FILETYPE = 7
    EXTENSION = 8

    @classmethod
    def from_name(cls, name: str) -> "IndexType":
        """Return the index type whose display name is ``name``."""
        for index_type, display in _DISPLAY_NAMES.items():
            if display == name:
                return index_type
        raise ValueError(f"unknown index type name: {name!r}")

    def display_name(self) -> Optional[str]:
        """Return the human-readable name, or ``None`` if it has none."""
        return _DISPLAY_NAMES.get(self)


_DISPLAY_NAMES = {
    IndexType.NAME: "Name",
    IndexType.PATH: "Path",
    IndexType.SIZE: "Size",
    IndexType.MODIFICATION_TIME: "Date Modified",
    IndexType.FILETYPE: "Type",
    IndexType.EXTENSION: "Extension",
}
"""Files and folders as stored in the database, and the orderings over them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterator, Optional

_SEPARATOR = "/"


class EntryType(IntEnum):
    """What kind of filesystem object an entry stands for."""

    NONE = 0
    FOLDER = 1
    FILE = 2


@dataclass(eq=False)
class Entry:
    """A named node in the database tree.

    ``idx`` is the entry's position in the name-sorted list; ``mark`` is free
    for callers to use. Entries compare by identity.
    """

    name: str = ""
    size: int = 0
    mtime: int = 0
    idx: int = 0
    mark: int = 0
    parent: Optional["Folder"] = field(default=None, init=False, repr=False)

    entry_type = EntryType.NONE

    def attach_to(self, parent: Optional["Folder"]) -> None:
        """Make ``parent`` this entry's folder and count it there."""
        if parent is not None and not isinstance(parent, Folder):
            raise TypeError("an entry's parent must be a folder")
        self.parent = parent
        if parent is None:
            return
        if self.entry_type is EntryType.FOLDER:
            parent.num_folders += 1
        elif self.entry_type is EntryType.FILE:
            parent.num_files += 1

    def add_size_to_parents(self) -> None:
        """Add this entry's size to every folder above it."""
        for ancestor in self._ancestors():
            ancestor.size += self.size

    def _ancestors(self) -> Iterator["Folder"]:
        folder = self.parent
        while folder is not None:
            yield folder
            folder = folder.parent

    def depth(self) -> int:
        """Return the number of folders above this entry."""
        return sum(1 for _ in self._ancestors())

    def _parent_prefix(self) -> str:
        chain = list(self._ancestors())
        chain.reverse()
        return "".join(f"{folder.name}{_SEPARATOR}" for folder in chain)

    def path(self) -> str:
        """Return the path of the folder that holds this entry."""
        prefix = self._parent_prefix()
        if len(prefix) > 1:
            prefix = prefix[:-1]
        return prefix

    def full_path(self) -> str:
        """Return the path of this entry itself."""
        return self._parent_prefix() + (self.name or _SEPARATOR)

    def display_name(self) -> str:
        """Return the name, or the separator for the unnamed root."""
        return self.name or _SEPARATOR

    def extension(self) -> Optional[str]:
        """Return the text after the last dot of a file's name, if any."""
        if self.entry_type is EntryType.FOLDER:
            return None
        dot = self.name.rfind(".")
        if dot <= 0:
            return None
        return self.name[dot + 1:]


@dataclass(eq=False)
class Folder(Entry):
    """A directory; it keeps count of the entries attached to it."""

    db_idx: int = 0
    num_files: int = 0
    num_folders: int = 0

    entry_type = EntryType.FOLDER

    def num_children(self) -> int:
        """Return how many files and folders are attached to this folder."""
        return self.num_files + self.num_folders


@dataclass(eq=False)
class File(Entry):
    """A non-directory filesystem object."""

    entry_type = EntryType.FILE


# Version-aware string comparison states and result table.
_S_N, _S_I, _S_F, _S_Z = 0, 3, 6, 9
_CMP, _LEN = 2, 3

_NEXT_STATE = (
    _S_N, _S_I, _S_Z,
    _S_N, _S_I, _S_I,
    _S_N, _S_F, _S_F,
    _S_N, _S_F, _S_Z,
)

_RESULT_TYPE = (
    _CMP, _CMP, _CMP, _CMP, _LEN, _CMP, _CMP, _CMP, _CMP,
    _CMP, -1, -1, +1, _LEN, _LEN, +1, _LEN, _LEN,
    _CMP, _CMP, _CMP, _CMP, _CMP, _CMP, _CMP, _CMP, _CMP,
    _CMP, +1, +1, -1, _CMP, _CMP, -1, _CMP, _CMP,
)

_ZERO = ord("0")
_NINE = ord("9")


def _is_digit(byte: int) -> bool:
    return _ZERO <= byte <= _NINE


def _char_class(byte: int) -> int:
    return (byte == _ZERO) + _is_digit(byte)


def strverscmp(a: str, b: str) -> int:
    """Compare two strings, ordering runs of digits by numeric value.

    Runs with leading zeros sort as fractional parts, before other numbers.
    """
    if a == b:
        return 0
    s1 = a.encode("utf-8", "surrogateescape") + b"\0"
    s2 = b.encode("utf-8", "surrogateescape") + b"\0"

    i = 0
    c1, c2 = s1[0], s2[0]
    state = _S_N + _char_class(c1)
    while (diff := c1 - c2) == 0:
        if c1 == 0:
            return 0
        state = _NEXT_STATE[state]
        i += 1
        c1, c2 = s1[i], s2[i]
        state += _char_class(c1)

    result = _RESULT_TYPE[state * 3 + _char_class(c2)]
    if result == _CMP:
        return diff
    if result == _LEN:
        j = i + 1
        while _is_digit(s1[j]):
            if not _is_digit(s2[j]):
                return 1
            j += 1
        return -1 if _is_digit(s2[j]) else diff
    return result


def _strcmp(a: str, b: str) -> int:
    return (a > b) - (a < b)


def compare_by_name(a: Optional[Entry], b: Optional[Entry]) -> int:
    """Order entries by name, numbers in names by value."""
    if a is None or b is None:
        return 0
    return strverscmp(a.name or "", b.name or "")


def compare_by_size(a: Optional[Entry], b: Optional[Entry]) -> int:
    """Order entries by size; never reports two entries as equal."""
    size_a = a.size if a is not None else 0
    size_b = b.size if b is not None else 0
    return 1 if size_a > size_b else -1


def compare_by_modification_time(a: Optional[Entry], b: Optional[Entry]) -> int:
    """Order entries by modification time; never reports equality."""
    mtime_a = a.mtime if a is not None else 0
    mtime_b = b.mtime if b is not None else 0
    return 1 if mtime_a > mtime_b else -1


def compare_by_position(a: Optional[Entry], b: Optional[Entry]) -> int:
    """Treat all entries as equal, keeping their present order."""
    for entry in (a, b):
        if entry is not None and not isinstance(entry, Entry):
            raise TypeError("only entries can be compared by position")
    return 0


def compare_by_extension(a: Entry, b: Entry) -> int:
    """Order entries by extension, then by name."""
    result = _strcmp(a.extension() or "", b.extension() or "")
    if result == 0:
        return compare_by_name(a, b)
    return result


def _compare_folder_chains(a: Optional[Folder], b: Optional[Folder]) -> int:
    if a is None or b is None:
        return 0
    if a.parent is not None:
        result = _compare_folder_chains(a.parent, b.parent)
        if result != 0:
            return result
    return strverscmp(a.name, b.name)


def _nth_ancestor(folder: Optional[Folder], nth: int) -> Optional[Folder]:
    while folder is not None and nth > 0:
        folder = folder.parent
        nth -= 1
    return folder


def compare_by_path(a: Entry, b: Entry) -> int:
    """Order entries by the folders that hold them, then by name.

    Where one entry lies deeper under the same folders, the shallower
    one comes first.
    """
    depth_a = a.depth()
    depth_b = b.depth()
    if depth_a == depth_b:
        result = _compare_folder_chains(a.parent, b.parent)
        return result if result != 0 else compare_by_name(a, b)
    if depth_a > depth_b:
        parent_a = _nth_ancestor(a.parent, depth_a - depth_b)
        result = _compare_folder_chains(parent_a, b.parent)
        return result if result != 0 else 1
    parent_b = _nth_ancestor(b.parent, depth_b - depth_a)
    result = _compare_folder_chains(a.parent, parent_b)
    return result if result != 0 else -1
"""Reading and writing the binary database file.

The file starts with a small header, followed by a block of folders, a block
of files and any number of extra orderings stored as lists of entry indexes.
Entry names are prefix-compressed against the entry written before them.
All numbers are little-endian.
"""

from __future__ import annotations

import contextlib
import os
import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Callable, Dict, Iterator, List, Optional, Sequence, Union

try:
    import fcntl
except ImportError:  # pragma: no cover - platforms without flock
    fcntl = None  # type: ignore[assignment]

from .entry import Entry, File, Folder
from .index_types import IndexFlags, IndexType

MAGIC = b"FSDB"
MAJOR_VERSION = 0
MINOR_VERSION = 9
DATABASE_FILE_NAME = "fsearch.db"

_MAX_NAME_OFFSET = 255
_MAX_NAME_PART = 255

_U8 = struct.Struct("<B")
_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")
_I64 = struct.Struct("<q")

StatusCallback = Optional[Callable[[str], None]]
PathLike = Union[str, "os.PathLike[str]"]


class DatabaseFormatError(Exception):
    """The database file is damaged, truncated or of an unsupported version."""


@dataclass
class StoredDatabase:
    """The contents of a database file.

    ``folders`` and ``files`` are in name order; ``sorted_folders`` and
    ``sorted_files`` hold further orderings of the same entry objects.
    """

    index_flags: IndexFlags = IndexFlags(0)
    folders: List[Folder] = field(default_factory=list)
    files: List[File] = field(default_factory=list)
    sorted_folders: Dict[IndexType, List[Folder]] = field(default_factory=dict)
    sorted_files: Dict[IndexType, List[File]] = field(default_factory=dict)


def name_offset(previous: Optional[bytes], current: Optional[bytes]) -> int:
    """Return how many leading bytes two names share, at most 255."""
    if previous is None or current is None:
        return 0
    limit = min(len(previous), len(current), _MAX_NAME_OFFSET)
    offset = 0
    while offset < limit and previous[offset] == current[offset]:
        offset += 1
    return offset


def _encode_name(name: str) -> bytes:
    return name.encode("utf-8", "surrogateescape")


def _decode_name(raw: bytes) -> str:
    return raw.decode("utf-8", "surrogateescape")


def _encode_entry(out: bytearray, flags: int, entry: Entry, parent_idx: int, previous: bytes) -> bytes:
    current = _encode_name(entry.name)
    offset = name_offset(previous, current)
    tail = current[offset:]
    if len(tail) > _MAX_NAME_PART:
        raise ValueError(f"entry name is too long to store: {entry.name!r}")
    out += _U8.pack(offset)
    out += _U8.pack(len(tail))
    out += tail
    if flags & IndexFlags.SIZE:
        out += _I64.pack(entry.size)
    if flags & IndexFlags.MODIFICATION_TIME:
        out += _I64.pack(entry.mtime)
    out += _U32.pack(parent_idx)
    return current


def _index_list(entries: Sequence[Entry], expected: int, what: str) -> bytes:
    if len(entries) != expected:
        raise ValueError(f"sorted {what} list holds {len(entries)} entries, expected {expected}")
    return struct.pack(f"<{expected}I", *(entry.idx for entry in entries))


def write_database(stream: BinaryIO, stored: StoredDatabase) -> None:
    """Write ``stored`` to the binary ``stream``.

    Every entry's ``idx`` is set to its position in the name-ordered list.
    """
    flags = int(stored.index_flags)

    for position, folder in enumerate(stored.folders):
        folder.idx = position
    for position, file in enumerate(stored.files):
        file.idx = position

    folder_block = bytearray()
    previous = b""
    for folder in stored.folders:
        folder_block += _U16.pack(0)
        parent_idx = folder.parent.idx if folder.parent is not None else folder.idx
        previous = _encode_entry(folder_block, flags, folder, parent_idx, previous)

    file_block = bytearray()
    previous = b""
    for file in stored.files:
        parent_idx = file.parent.idx if file.parent is not None else 0
        previous = _encode_entry(file_block, flags, file, parent_idx, previous)

    num_folders = len(stored.folders)
    num_files = len(stored.files)

    sorted_block = bytearray()
    sorted_ids = [
        index_type
        for index_type in IndexType
        if index_type is not IndexType.NAME
        and index_type in stored.sorted_folders
        and index_type in stored.sorted_files
    ]
    sorted_block += _U32.pack(len(sorted_ids))
    for index_type in sorted_ids:
        sorted_block += _U32.pack(int(index_type))
        sorted_block += _index_list(stored.sorted_folders[index_type], num_folders, "folder")
        sorted_block += _index_list(stored.sorted_files[index_type], num_files, "file")

    header = bytearray(MAGIC)
    header += _U8.pack(MAJOR_VERSION)
    header += _U8.pack(MINOR_VERSION)
    header += _U64.pack(flags)
    header += _U32.pack(num_folders)
    header += _U32.pack(num_files)
    header += _U64.pack(len(folder_block))
    header += _U64.pack(len(file_block))
    header += _U32.pack(0)  # number of stored index locations
    header += _U32.pack(0)  # number of stored exclude locations

    stream.write(bytes(header))
    stream.write(bytes(folder_block))
    stream.write(bytes(file_block))
    stream.write(bytes(sorted_block))


def _read_exact(stream: BinaryIO, size: int, what: str) -> bytes:
    data = stream.read(size)
    if data is None or len(data) != size:
        raise DatabaseFormatError(f"unexpected end of file while reading {what}")
    return data


def _read_value(stream: BinaryIO, packer: struct.Struct, what: str) -> int:
    return packer.unpack(_read_exact(stream, packer.size, what))[0]


class _Block:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self.pos = 0

    def take(self, size: int) -> bytes:
        end = self.pos + size
        if end > len(self._data):
            raise DatabaseFormatError("entry block is truncated")
        chunk = self._data[self.pos:end]
        self.pos = end
        return chunk

    def value(self, packer: struct.Struct) -> int:
        return packer.unpack(self.take(packer.size))[0]

    def exhausted(self) -> bool:
        return self.pos == len(self._data)


def _decode_entry(block: _Block, flags: int, entry: Entry, previous: bytes) -> bytes:
    offset = block.value(_U8)
    length = block.value(_U8)
    if offset > len(previous):
        raise DatabaseFormatError("entry name refers past the previous name")
    current = previous[:offset] + block.take(length)
    entry.name = _decode_name(current)
    if flags & IndexFlags.SIZE:
        entry.size = block.value(_I64)
    if flags & IndexFlags.MODIFICATION_TIME:
        entry.mtime = block.value(_I64)
    return current


def _read_header(stream: BinaryIO) -> None:
    magic = _read_exact(stream, len(MAGIC), "magic number")
    if magic != MAGIC:
        raise DatabaseFormatError(f"invalid magic number: {magic!r}")
    major = _read_value(stream, _U8, "major version")
    if major != MAJOR_VERSION:
        raise DatabaseFormatError(f"unsupported major version {major}, expected {MAJOR_VERSION}")
    minor = _read_value(stream, _U8, "minor version")
    if minor > MINOR_VERSION:
        raise DatabaseFormatError(f"unsupported minor version {minor}, expected <= {MINOR_VERSION}")


def _read_folders(data: bytes, flags: int, folders: List[Folder]) -> None:
    block = _Block(data)
    previous = b""
    for folder in folders:
        block.take(_U16.size)  # database index, currently unused
        previous = _decode_entry(block, flags, folder, previous)
        parent_idx = block.value(_U32)
        if parent_idx != folder.idx:
            parent = folders[parent_idx] if parent_idx < len(folders) else None
            folder.attach_to(parent)
    if not block.exhausted():
        raise DatabaseFormatError("folder block size does not match its contents")


def _read_files(data: bytes, flags: int, num_files: int, folders: List[Folder]) -> List[File]:
    block = _Block(data)
    files: List[File] = []
    previous = b""
    for position in range(num_files):
        file = File(idx=position)
        previous = _decode_entry(block, flags, file, previous)
        parent_idx = block.value(_U32)
        file.attach_to(folders[parent_idx] if parent_idx < len(folders) else None)
        files.append(file)
    if not block.exhausted():
        raise DatabaseFormatError("file block size does not match its contents")
    return files


def _read_index_list(stream: BinaryIO, source: Sequence[Entry], what: str) -> list:
    count = len(source)
    indexes = struct.unpack(f"<{count}I", _read_exact(stream, 4 * count, what))
    result = []
    for index in indexes:
        if index >= count:
            raise DatabaseFormatError(f"sorted {what} refer to missing entry {index}")
        result.append(source[index])
    return result


def read_database(stream: BinaryIO, status_cb: StatusCallback = None) -> StoredDatabase:
    """Read a database from the binary ``stream``.

    Raises :class:`DatabaseFormatError` if the data is not a valid database.
    """
    _read_header(stream)
    flags = _read_value(stream, _U64, "index flags")
    num_folders = _read_value(stream, _U32, "number of folders")
    num_files = _read_value(stream, _U32, "number of files")
    folder_block_size = _read_value(stream, _U64, "folder block size")
    file_block_size = _read_value(stream, _U64, "file block size")
    _read_value(stream, _U32, "number of indexes")
    _read_value(stream, _U32, "number of excludes")

    folders = [Folder(idx=position) for position in range(num_folders)]

    if status_cb is not None:
        status_cb("Loading folders…")
    _read_folders(_read_exact(stream, folder_block_size, "folder block"), flags, folders)

    if status_cb is not None:
        status_cb("Loading files…")
    files = _read_files(_read_exact(stream, file_block_size, "file block"), flags, num_files, folders)

    stored = StoredDatabase(index_flags=IndexFlags(flags), folders=folders, files=files)

    num_sorted = _read_value(stream, _U32, "number of sorted arrays")
    for _ in range(num_sorted):
        sorted_id = _read_value(stream, _U32, "sorted array id")
        if not 1 <= sorted_id < len(IndexType):
            raise DatabaseFormatError(f"unsupported sorted array id: {sorted_id}")
        index_type = IndexType(sorted_id)
        stored.sorted_folders[index_type] = _read_index_list(stream, folders, "folders")
        stored.sorted_files[index_type] = _read_index_list(stream, files, "files")

    return stored


@contextlib.contextmanager
def _open_locked(path: Path, mode: str) -> Iterator[BinaryIO]:
    stream = open(path, mode)
    try:
        if fcntl is not None:
            try:
                fcntl.flock(stream.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
            except OSError as exc:
                raise BlockingIOError(f"database file is locked by another process: {path}") from exc
        yield stream
    finally:
        stream.close()


def save_database(directory: PathLike, stored: StoredDatabase) -> Path:
    """Write ``stored`` as the database file in ``directory``.

    The file is first written under a temporary name and then moved into
    place. Returns the path of the database file.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise NotADirectoryError(f"database directory does not exist: {directory}")
    target = directory / DATABASE_FILE_NAME
    temporary = target.with_name(target.name + ".tmp")
    try:
        with _open_locked(temporary, "wb") as stream:
            write_database(stream, stored)
        os.replace(temporary, target)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            temporary.unlink()
        raise
    return target


def load_database(path: PathLike, status_cb: StatusCallback = None) -> StoredDatabase:
    """Read the database file at ``path``.

    Raises :class:`OSError` if the file cannot be opened or is locked, and
    :class:`DatabaseFormatError` if its contents are invalid.
    """
    with _open_locked(Path(path), "rb") as stream:
        return read_database(stream, status_cb)
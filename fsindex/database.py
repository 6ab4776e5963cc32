"""An in-memory database of indexed files and folders."""

from __future__ import annotations

import contextlib
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from .entry import (
    Entry,
    File,
    Folder,
    compare_by_extension,
    compare_by_modification_time,
    compare_by_name,
    compare_by_path,
    compare_by_size,
)
from .index_types import IndexFlags, IndexType
from .scanner import ExcludePath, IndexLocation, ScanCancelled, ScanOptions, scan_folder
from .sorting import sort
from .storage import StoredDatabase, load_database, save_database

logger = logging.getLogger(__name__)

StatusCallback = Optional[Callable[[str], None]]
Cancelled = Optional[Callable[[], bool]]
PathLike = Union[str, "Path"]

SORTING_STATUS = "Sorting…"


def _is_cancelled(cancelled: Cancelled) -> bool:
    return bool(cancelled is not None and cancelled())


class Database:
    """Files and folders of the configured locations, kept in several orderings.

    Every ordering is a list of the same entry objects. Files and folders are
    kept apart; the name ordering is always present once the database holds
    entries.
    """

    def __init__(self, indexes: Optional[Iterable[IndexLocation]] = None,
                 excludes: Optional[Iterable[ExcludePath]] = None,
                 exclude_files: Optional[Sequence[str]] = None,
                 exclude_hidden: bool = False) -> None:
        self.indexes: List[IndexLocation] = sorted(
            (IndexLocation(i.path, i.enabled, i.update, i.one_filesystem) for i in indexes or ()),
            key=lambda index: index.path,
        )
        self.excludes: List[ExcludePath] = sorted(
            (ExcludePath(e.path, e.enabled) for e in excludes or ()),
            key=lambda exclude: exclude.path,
        )
        self.exclude_files: List[str] = list(exclude_files or ())
        self.exclude_hidden = exclude_hidden
        self.index_flags = IndexFlags(0)
        self._sorted_files: Dict[IndexType, List[File]] = {}
        self._sorted_folders: Dict[IndexType, List[Folder]] = {}
        self._views: List[Any] = []
        self._lock = threading.Lock()

    # views

    def register_view(self, view: Any) -> bool:
        """Add ``view``; return ``False`` if it was already registered."""
        if any(v is view for v in self._views):
            logger.debug("view is already registered for database")
            return False
        self._views.append(view)
        return True

    def unregister_view(self, view: Any) -> bool:
        """Remove ``view``; return ``False`` if it was not registered."""
        for position, registered in enumerate(self._views):
            if registered is view:
                del self._views[position]
                return True
        logger.debug("view isn't registered for database")
        return False

    # locking

    @contextlib.contextmanager
    def locked(self) -> Iterator["Database"]:
        """Hold the database's lock for the duration of the block."""
        with self._lock:
            yield self

    # counts

    def num_files(self) -> int:
        return len(self._sorted_files.get(IndexType.NAME, ()))

    def num_folders(self) -> int:
        return len(self._sorted_folders.get(IndexType.NAME, ()))

    def num_entries(self) -> int:
        return self.num_files() + self.num_folders()

    # orderings

    def has_entries_sorted_by(self, sort_type: Union[IndexType, int]) -> bool:
        """Return whether the database keeps an ordering of ``sort_type``."""
        try:
            sort_type = IndexType(sort_type)
        except ValueError:
            return False
        return sort_type in self._sorted_folders

    def files_sorted(self, sort_type: Union[IndexType, int]) -> Optional[List[File]]:
        """Return the files in the ``sort_type`` ordering, or ``None``.

        Raises :class:`ValueError` for an unknown sort type.
        """
        files = self._sorted_files.get(IndexType(sort_type))
        return list(files) if files is not None else None

    def folders_sorted(self, sort_type: Union[IndexType, int]) -> Optional[List[Folder]]:
        """Return the folders in the ``sort_type`` ordering, or ``None``.

        Raises :class:`ValueError` for an unknown sort type.
        """
        folders = self._sorted_folders.get(IndexType(sort_type))
        return list(folders) if folders is not None else None

    def entries_sorted(self, requested: Union[IndexType, int]
                       ) -> Optional[Tuple[IndexType, List[Folder], List[File]]]:
        """Return ``(sort_type, folders, files)`` in the requested ordering.

        Falls back to the name ordering when the requested one is missing and
        returns ``None`` when there is none at all. Raises
        :class:`ValueError` for an unknown sort type.
        """
        sort_type = IndexType(requested)
        if not self.has_entries_sorted_by(sort_type):
            sort_type = IndexType.NAME
        if not self.has_entries_sorted_by(sort_type):
            return None
        return (
            sort_type,
            list(self._sorted_folders[sort_type]),
            list(self._sorted_files.get(sort_type, ())),
        )

    # scanning

    def scan(self, cancelled: Cancelled = None, status_cb: StatusCallback = None) -> bool:
        """Rebuild the database from the enabled index locations.

        Returns ``True`` if at least one location was scanned and the scan was
        not cancelled.
        """
        self._sorted_files = {}
        self._sorted_folders = {}
        self.index_flags |= IndexFlags.NAME | IndexFlags.SIZE | IndexFlags.MODIFICATION_TIME

        files: List[File] = []
        folders: List[Folder] = []
        self._sorted_files[IndexType.NAME] = files
        self._sorted_folders[IndexType.NAME] = folders

        scanned_any = False
        for index in self.indexes:
            if not index.path or not index.enabled:
                continue
            if index.update:
                scanned_any = self._scan_location(index, files, folders, cancelled, status_cb) or scanned_any
            if _is_cancelled(cancelled):
                return False

        if status_cb is not None:
            status_cb(SORTING_STATUS)
        self._sort(cancelled)
        if _is_cancelled(cancelled):
            return False
        return scanned_any

    def _scan_location(self, index: IndexLocation, files: List[File], folders: List[Folder],
                       cancelled: Cancelled, status_cb: StatusCallback) -> bool:
        options = ScanOptions(
            excludes=self.excludes,
            exclude_files=self.exclude_files,
            exclude_hidden=self.exclude_hidden,
            one_filesystem=index.one_filesystem,
        )
        try:
            result = scan_folder(index.path, options, cancelled, status_cb)
        except ScanCancelled:
            logger.debug("scan cancelled: %s", index.path)
            return False
        except OSError as exc:
            logger.warning("failed to scan %s: %s", index.path, exc)
            return False
        folders.extend(result.folders)
        files.extend(result.files)
        logger.debug("scanned %s: %d files, %d folders", index.path,
                     len(result.files), len(result.folders))
        return True

    def _sort_entries(self, entries: List[Entry], target: Dict[IndexType, list],
                      cancelled: Cancelled) -> bool:
        by_path = sort(entries, compare_by_path, cancelled)
        if _is_cancelled(cancelled):
            return False
        target[IndexType.PATH] = by_path

        by_name = sort(by_path, compare_by_name, cancelled)
        if _is_cancelled(cancelled):
            return False
        target[IndexType.NAME] = by_name

        if self.index_flags & IndexFlags.SIZE:
            target[IndexType.SIZE] = sort(by_name, compare_by_size, cancelled)
            if _is_cancelled(cancelled):
                return False

        if self.index_flags & IndexFlags.MODIFICATION_TIME:
            target[IndexType.MODIFICATION_TIME] = sort(by_name, compare_by_modification_time, cancelled)
            if _is_cancelled(cancelled):
                return False
        return True

    def _sort(self, cancelled: Cancelled) -> None:
        files = self._sorted_files.get(IndexType.NAME)
        if files is not None:
            if not self._sort_entries(files, self._sorted_files, cancelled):
                return
            self._sorted_files[IndexType.EXTENSION] = sort(
                self._sorted_files[IndexType.NAME], compare_by_extension, cancelled)
            if _is_cancelled(cancelled):
                return

        folders = self._sorted_folders.get(IndexType.NAME)
        if folders is not None:
            if not self._sort_entries(folders, self._sorted_folders, cancelled):
                return
            # folders have no extension, so the name ordering stands in for it
            self._sorted_folders[IndexType.EXTENSION] = self._sorted_folders[IndexType.NAME]

    # persistence

    def save(self, directory: PathLike) -> Path:
        """Write the database file into ``directory`` and return its path."""
        stored = StoredDatabase(
            index_flags=self.index_flags,
            folders=self._sorted_folders.get(IndexType.NAME, []),
            files=self._sorted_files.get(IndexType.NAME, []),
            sorted_folders={k: v for k, v in self._sorted_folders.items() if k is not IndexType.NAME},
            sorted_files={k: v for k, v in self._sorted_files.items() if k is not IndexType.NAME},
        )
        return save_database(directory, stored)

    def load(self, path: PathLike, status_cb: StatusCallback = None) -> None:
        """Replace the contents with the database file at ``path``.

        On failure the exception propagates and the contents are unchanged.
        """
        stored = load_database(path, status_cb)
        sorted_folders: Dict[IndexType, List[Folder]] = {IndexType.NAME: stored.folders}
        sorted_folders.update(stored.sorted_folders)
        sorted_files: Dict[IndexType, List[File]] = {IndexType.NAME: stored.files}
        sorted_files.update(stored.sorted_files)
        self._sorted_folders = sorted_folders
        self._sorted_files = sorted_files
        self.index_flags = stored.index_flags
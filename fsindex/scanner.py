"""Walking directory trees into database entries."""

from __future__ import annotations

import logging
import os
import stat as stat_module
import time
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from typing import Callable, Iterable, Iterator, List, Optional, Sequence

from .entry import File, Folder

logger = logging.getLogger(__name__)

_SEPARATOR = "/"
_MAX_NAME_BYTES = 256
_STATUS_INTERVAL = 0.1

StatusCallback = Optional[Callable[[str], None]]
Cancelled = Optional[Callable[[], bool]]


@dataclass
class IndexLocation:
    """A directory tree that the database indexes."""

    path: str
    enabled: bool = True
    update: bool = True
    one_filesystem: bool = False


@dataclass
class ExcludePath:
    """A directory that is left out of the scan while enabled."""

    path: str
    enabled: bool = True


@dataclass
class ScanOptions:
    """What a scan skips and how far it goes."""

    excludes: Sequence[ExcludePath] = field(default_factory=list)
    exclude_files: Sequence[str] = field(default_factory=list)
    exclude_hidden: bool = False
    one_filesystem: bool = False


@dataclass
class ScanResult:
    """The folders and files found by a scan, in the order they were met.

    The first folder is the scanned root itself.
    """

    folders: List[Folder] = field(default_factory=list)
    files: List[File] = field(default_factory=list)

    @property
    def root(self) -> Optional[Folder]:
        return self.folders[0] if self.folders else None


class ScanCancelled(Exception):
    """The scan was stopped before it finished."""


def file_is_excluded(name: str, patterns: Optional[Iterable[str]]) -> bool:
    """Return whether ``name`` matches any of the shell-style ``patterns``."""
    if not patterns:
        return False
    return any(fnmatchcase(name, pattern) for pattern in patterns)


def directory_is_excluded(path: str, excludes: Optional[Iterable[ExcludePath]]) -> bool:
    """Return whether ``path`` is excluded.

    The first exclude whose path equals ``path`` decides, by whether it is
    enabled.
    """
    for exclude in excludes or ():
        if exclude.path == path:
            return exclude.enabled
    return False


def _check_cancelled(cancelled: Cancelled) -> None:
    if cancelled is not None and cancelled():
        logger.debug("scan cancelled")
        raise ScanCancelled()


class _Walk:
    def __init__(self, options: ScanOptions, cancelled: Cancelled,
                 status_cb: StatusCallback, root_device: Optional[int]) -> None:
        self.options = options
        self.cancelled = cancelled
        self.status_cb = status_cb
        self.root_device = root_device
        self.last_status = time.monotonic()
        self.result = ScanResult()

    def _open(self, folder_path: str) -> Iterator[os.DirEntry]:
        _check_cancelled(self.cancelled)
        dir_path = folder_path + _SEPARATOR
        iterator = os.scandir(dir_path)
        now = time.monotonic()
        if now - self.last_status > _STATUS_INTERVAL:
            if self.status_cb is not None:
                self.status_cb(dir_path)
            self.last_status = now
        return iterator

    def _skip_name(self, name: str) -> bool:
        if self.options.exclude_hidden and name.startswith("."):
            return True
        if name in (".", ".."):
            return True
        if file_is_excluded(name, self.options.exclude_files):
            return True
        if len(os.fsencode(name)) >= _MAX_NAME_BYTES:
            logger.warning("file name too long, skipping: %r", name)
            return True
        return False

    def run(self, root: Folder, root_path: str) -> ScanResult:
        self.result.folders.append(root)
        stack = [(self._open(root_path), root, root_path)]
        try:
            while stack:
                iterator, parent, parent_path = stack[-1]
                _check_cancelled(self.cancelled)
                dent = next(iterator, None)
                if dent is None:
                    iterator.close()
                    stack.pop()
                    continue
                child = self._visit(dent, parent, parent_path)
                if child is None:
                    continue
                folder, path = child
                try:
                    stack.append((self._open(path), folder, path))
                except OSError:
                    logger.debug("failed to open directory: %s", path)
        finally:
            for iterator, _, _ in stack:
                iterator.close()
        return self.result

    def _visit(self, dent: os.DirEntry, parent: Folder, parent_path: str):
        name = dent.name
        if self._skip_name(name):
            return None
        path = parent_path + _SEPARATOR + name
        try:
            st = dent.stat(follow_symlinks=False)
        except OSError:
            logger.debug("can't stat: %s", path)
            return None
        if self.options.one_filesystem and self.root_device != st.st_dev:
            logger.debug("different filesystem, skipping: %s", path)
            return None
        if stat_module.S_ISDIR(st.st_mode):
            if directory_is_excluded(path, self.options.excludes):
                logger.debug("excluded directory: %s", path)
                return None
            folder = Folder(name=name, mtime=int(st.st_mtime))
            folder.attach_to(parent)
            self.result.folders.append(folder)
            return folder, path
        file = File(name=name, size=st.st_size, mtime=int(st.st_mtime))
        file.attach_to(parent)
        file.add_size_to_parents()
        self.result.files.append(file)
        return None


def scan_folder(root: str, options: Optional[ScanOptions] = None,
                cancelled: Cancelled = None, status_cb: StatusCallback = None) -> ScanResult:
    """Scan the directory tree at the absolute path ``root``.

    Raises :class:`ValueError` for a relative path, :class:`NotADirectoryError`
    if ``root`` is not a directory, :class:`OSError` if it cannot be read and
    :class:`ScanCancelled` when ``cancelled`` reports true.
    """
    root = os.fspath(root)
    if not root.startswith(_SEPARATOR):
        raise ValueError(f"scan root must be an absolute path: {root!r}")
    if not os.path.isdir(root):
        raise NotADirectoryError(f"{root} doesn't exist")
    options = options if options is not None else ScanOptions()

    root_path = "" if root == _SEPARATOR else root
    try:
        root_device: Optional[int] = os.lstat(root).st_dev
    except OSError:
        logger.debug("can't stat: %s", root)
        root_device = None

    root_folder = Folder(name=root_path)
    result = _Walk(options, cancelled, status_cb, root_device).run(root_folder, root_path)
    logger.debug("scanned %d files, %d folders", len(result.files), len(result.folders))
    return result
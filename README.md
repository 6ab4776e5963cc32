# fsindex

`fsindex` walks directory trees and builds an in-memory index of every file
and folder it finds. The index keeps files and folders apart and holds each of
them in several orderings at once: by name, path, size, modification time and
(for files) extension. The index can be written to and read back from a
compact binary database file named `fsearch.db` (format version 0.9).

It is a library; there is no command-line program.

## Installation

```
pip install .
```

There are no runtime dependencies beyond the standard library.

## Scanning

```python
from fsindex.database import Database
from fsindex.index_types import IndexType
from fsindex.scanner import ExcludePath, IndexLocation

db = Database(
    indexes=[IndexLocation("/home/me/projects", one_filesystem=True)],
    excludes=[ExcludePath("/home/me/projects/build")],
    exclude_files=["*.o", "*.pyc"],
    exclude_hidden=True,
)

if db.scan():
    print(db.num_folders(), "folders,", db.num_files(), "files")
    for entry in db.files_sorted(IndexType.SIZE):
        print(entry.size, entry.full_path())
```

- `IndexLocation(path, enabled=True, update=True, one_filesystem=False)` is a
  tree to index. Paths must be absolute. Disabled locations, and locations
  with `update=False`, are skipped by `scan()`.
- `ExcludePath(path, enabled=True)` leaves out the directory with exactly that
  full path while enabled.
- `exclude_files` are shell-style patterns matched (case-sensitively) against
  each file and folder name.
- `exclude_hidden=True` skips every name starting with a dot.

`Database.scan(cancelled=None, status_cb=None)` returns `True` if at least one
location was scanned and the scan was not cancelled. `cancelled` is a callable
checked as the walk and the sorts proceed; once it returns `True` the scan stops
and `scan()` returns `False`. `status_cb` receives the directory being walked
(at most about every tenth of a second) and `"Sorting…"` before sorting starts.

Folder sizes are the sums of the sizes of the files below them.

## Reading the orderings

- `Database.files_sorted(sort_type)` and `Database.folders_sorted(sort_type)`
  return a new list in that ordering, or `None` if the database does not keep
  it.
- `Database.entries_sorted(requested)` returns `(sort_type, folders, files)`,
  falling back to name order when the requested ordering is missing, and
  `None` when the database holds no entries at all.
- `Database.has_entries_sorted_by(sort_type)` tells whether an ordering exists.
- `Database.num_files()`, `num_folders()` and `num_entries()` give the counts.
- `Database.locked()` is a context manager holding the database's lock.
- `Database.register_view(view)` / `unregister_view(view)` keep a list of
  objects by identity and report whether anything changed.

A scan builds the `NAME`, `PATH`, `SIZE`, `MODIFICATION_TIME` and `EXTENSION`
orderings. For folders the extension ordering is the name ordering.
`IndexType.display_name()` and `IndexType.from_name()` convert to and from
names such as `"Date Modified"`.

## Saving and loading

```python
path = db.save("/home/me/.local/share/fsindex")   # the directory must exist

restored = Database()
restored.load(path)
```

`save()` writes to `fsearch.db.tmp` under an exclusive, non-blocking `flock`
(where the platform has one), then renames it over `fsearch.db`; on failure
the temporary file is removed. It raises `NotADirectoryError` if the directory
does not exist and `BlockingIOError` if the file is locked by another process.

`load()` replaces the contents only if the whole file reads correctly. A wrong
magic number, an unsupported version, truncated data or indexes pointing at
missing entries raise `fsindex.storage.DatabaseFormatError`; files that cannot
be opened raise `OSError`.

## Lower-level pieces

- `fsindex.entry` – `File` and `Folder` entries with `path()`, `full_path()`,
  `display_name()`, `extension()` and `depth()`; `strverscmp` for natural
  ("version") ordering of names; and the comparison functions
  `compare_by_name`, `compare_by_path`, `compare_by_size`,
  `compare_by_modification_time`, `compare_by_extension` and
  `compare_by_position`.
- `fsindex.sorting` – `sort` (a stable, cancellable merge sort, insertion sort
  for fewer than 64 items), `binary_search`, `index_of` and `next_item`, all
  driven by three-way comparison functions.
- `fsindex.scanner` – `scan_folder(root, options, cancelled, status_cb)` walks
  one tree into a `ScanResult`, with `ScanOptions`, `file_is_excluded` and
  `directory_is_excluded`; it raises `ScanCancelled` when cancelled.
- `fsindex.storage` – `read_database` / `write_database` on binary streams,
  `load_database` / `save_database` on files, and the `StoredDatabase`
  container.

## What it does not do

- There is no search: no query matching, filters or regular expressions over
  the index. Callers work with the sorted lists directly.
- There is no command-line program, configuration file or user interface;
  locations and excludes are passed in code.
- No ordering by file type, access time, creation time or status-change time
  is built.
- The database file does not record the index locations, excludes or exclude
  patterns that produced it.
- Nothing updates the index on a schedule or watches for changes; call
  `scan()` again to rebuild it.

## Running the tests

```
pip install .[test]
pytest
```
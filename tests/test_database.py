import pytest

from fsindex.database import Database
from fsindex.entry import (
    compare_by_extension,
    compare_by_name,
    compare_by_path,
)
from fsindex.index_types import IndexFlags, IndexType
from fsindex.scanner import ExcludePath, IndexLocation
from fsindex.storage import DATABASE_FILE_NAME, DatabaseFormatError


@pytest.fixture
def tree(tmp_path):
    root = tmp_path / "root"
    root.mkdir()
    (root / "a.txt").write_bytes(b"abc")
    (root / "b10.log").write_bytes(b"0123456789")
    (root / "b2.log").write_bytes(b"x")
    (root / ".hidden").write_bytes(b"hh")
    sub = root / "sub"
    sub.mkdir()
    (sub / "c.txt").write_bytes(b"ccccc")
    deep = sub / "deep"
    deep.mkdir()
    (deep / "d.bin").write_bytes(b"")
    return root


def _db(root, **kwargs):
    return Database([IndexLocation(str(root))], **kwargs)


def _pairs(items):
    return zip(items, items[1:])


def test_scan_counts(tree):
    db = _db(tree)
    assert db.scan() is True
    assert db.num_files() == 6
    assert db.num_folders() == 3
    assert db.num_entries() == db.num_files() + db.num_folders()


def test_scan_sets_index_flags(tree):
    db = _db(tree)
    assert db.scan() is True
    assert db.index_flags == IndexFlags.NAME | IndexFlags.SIZE | IndexFlags.MODIFICATION_TIME
    assert IndexFlags.PATH not in IndexFlags(db.index_flags)


def test_orderings_are_sorted(tree):
    db = _db(tree)
    db.scan()
    names = db.files_sorted(IndexType.NAME)
    assert all(compare_by_name(a, b) <= 0 for a, b in _pairs(names))
    paths = db.files_sorted(IndexType.PATH)
    assert all(compare_by_path(a, b) <= 0 for a, b in _pairs(paths))
    sizes = db.files_sorted(IndexType.SIZE)
    assert [f.size for f in sizes] == sorted(f.size for f in names)
    mtimes = db.files_sorted(IndexType.MODIFICATION_TIME)
    assert [f.mtime for f in mtimes] == sorted(f.mtime for f in names)
    ext = db.files_sorted(IndexType.EXTENSION)
    assert all(compare_by_extension(a, b) <= 0 for a, b in _pairs(ext))


def test_orderings_hold_the_same_entries(tree):
    db = _db(tree)
    db.scan()
    base = {id(f) for f in db.files_sorted(IndexType.NAME)}
    for sort_type in (IndexType.PATH, IndexType.SIZE, IndexType.EXTENSION):
        assert {id(f) for f in db.files_sorted(sort_type)} == base


def test_folder_extension_ordering_is_name_ordering(tree):
    db = _db(tree)
    db.scan()
    assert db.folders_sorted(IndexType.EXTENSION) == db.folders_sorted(IndexType.NAME)


def test_version_order_of_names(tree):
    db = _db(tree)
    db.scan()
    names = [f.name for f in db.files_sorted(IndexType.NAME)]
    assert names.index("b2.log") < names.index("b10.log")


def test_root_size_is_sum_of_files(tree):
    db = _db(tree)
    db.scan()
    root = next(f for f in db.folders_sorted(IndexType.NAME) if f.parent is None)
    assert root.size == sum(f.size for f in db.files_sorted(IndexType.NAME))


def test_exclude_hidden(tree):
    db = _db(tree, exclude_hidden=True)
    db.scan()
    assert ".hidden" not in [f.name for f in db.files_sorted(IndexType.NAME)]
    assert db.num_files() == 5


def test_exclude_files(tree):
    db = _db(tree, exclude_files=["*.log"])
    db.scan()
    assert db.num_files() == 4


def test_exclude_directory(tree):
    db = _db(tree, excludes=[ExcludePath(str(tree / "sub"))])
    db.scan()
    assert db.num_folders() == 1
    assert "c.txt" not in [f.name for f in db.files_sorted(IndexType.NAME)]


def test_disabled_index_scans_nothing(tree):
    db = Database([IndexLocation(str(tree), enabled=False)])
    assert db.scan() is False
    assert db.num_entries() == 0


def test_missing_location_fails(tmp_path):
    db = Database([IndexLocation(str(tmp_path / "missing"))])
    assert db.scan() is False
    assert db.num_entries() == 0


def test_cancelled_scan(tree):
    db = _db(tree)
    assert db.scan(cancelled=lambda: True) is False


def test_status_callback_reports_sorting(tree):
    messages = []
    db = _db(tree)
    db.scan(status_cb=messages.append)
    assert messages[-1] == "Sorting…"


def test_has_entries_sorted_by(tree):
    db = _db(tree)
    assert db.has_entries_sorted_by(IndexType.NAME) is False
    db.scan()
    assert db.has_entries_sorted_by(IndexType.NAME) is True
    assert db.has_entries_sorted_by(IndexType.FILETYPE) is False
    assert db.has_entries_sorted_by(99) is False


def test_entries_sorted_fallback(tree):
    db = _db(tree)
    assert db.entries_sorted(IndexType.SIZE) is None
    db.scan()
    sort_type, folders, files = db.entries_sorted(IndexType.FILETYPE)
    assert sort_type is IndexType.NAME
    assert files == db.files_sorted(IndexType.NAME)
    assert folders == db.folders_sorted(IndexType.NAME)
    sort_type, _, files = db.entries_sorted(IndexType.SIZE)
    assert sort_type is IndexType.SIZE
    assert files == db.files_sorted(IndexType.SIZE)


def test_invalid_sort_type_raises(tree):
    db = _db(tree)
    with pytest.raises(ValueError):
        db.files_sorted(99)
    with pytest.raises(ValueError):
        db.entries_sorted(99)


def test_missing_ordering_is_none(tree):
    db = _db(tree)
    db.scan()
    assert db.folders_sorted(IndexType.FILETYPE) is None


def test_save_and_load_round_trip(tree, tmp_path):
    db = _db(tree)
    db.scan()
    out = tmp_path / "out"
    out.mkdir()
    path = db.save(out)
    assert path == out / DATABASE_FILE_NAME

    loaded = Database()
    loaded.load(path)
    assert loaded.num_files() == db.num_files()
    assert loaded.num_folders() == db.num_folders()
    assert loaded.index_flags == db.index_flags
    for sort_type in (IndexType.NAME, IndexType.PATH, IndexType.SIZE, IndexType.MODIFICATION_TIME):
        assert [f.full_path() for f in loaded.files_sorted(sort_type)] == \
            [f.full_path() for f in db.files_sorted(sort_type)]
        assert [f.full_path() for f in loaded.folders_sorted(sort_type)] == \
            [f.full_path() for f in db.folders_sorted(sort_type)]
    assert [f.size for f in loaded.files_sorted(IndexType.NAME)] == \
        [f.size for f in db.files_sorted(IndexType.NAME)]


def test_save_to_missing_directory(tree, tmp_path):
    db = _db(tree)
    db.scan()
    with pytest.raises(NotADirectoryError):
        db.save(tmp_path / "nowhere")


def test_load_invalid_file_keeps_contents(tree, tmp_path):
    db = _db(tree)
    db.scan()
    bad = tmp_path / "bad.db"
    bad.write_bytes(b"NOPE" + bytes(40))
    with pytest.raises(DatabaseFormatError):
        db.load(bad)
    assert db.num_files() == 6


def test_load_missing_file(tmp_path):
    db = Database()
    with pytest.raises(OSError):
        db.load(tmp_path / "absent.db")


def test_register_views():
    db = Database()
    view = object()
    assert db.register_view(view) is True
    assert db.register_view(view) is False
    assert db.unregister_view(view) is True
    assert db.unregister_view(view) is False


def test_locked_yields_database():
    db = Database()
    with db.locked() as held:
        assert held is db
    with db.locked() as held_again:
        assert held_again is db


def test_indexes_are_sorted_by_path():
    db = Database([IndexLocation("/b"), IndexLocation("/a")])
    assert [i.path for i in db.indexes] == ["/a", "/b"]
import os

import pytest

from fsindex.scanner import (
    ExcludePath,
    IndexLocation,
    ScanCancelled,
    ScanOptions,
    directory_is_excluded,
    file_is_excluded,
    scan_folder,
)


@pytest.fixture
def tree(tmp_path):
    (tmp_path / "a.txt").write_bytes(b"hello")
    (tmp_path / "image.png").write_bytes(b"1234567")
    sub = tmp_path / "sub"
    sub.mkdir()
    (sub / "b.txt").write_bytes(b"abc")
    (tmp_path / ".hidden").write_bytes(b"xy")
    (tmp_path / "empty").mkdir()
    return tmp_path


def test_file_is_excluded_matches_patterns():
    assert file_is_excluded("notes.txt", ["*.txt"]) is True
    assert file_is_excluded("notes.md", ["*.txt", "*.png"]) is False
    assert file_is_excluded("Notes.TXT", ["*.txt"]) is False


def test_file_is_excluded_without_patterns():
    assert file_is_excluded("anything", None) is False
    assert file_is_excluded("anything", []) is False


def test_directory_is_excluded_first_match_decides():
    excludes = [ExcludePath("/a", enabled=False), ExcludePath("/a", enabled=True)]
    assert directory_is_excluded("/a", excludes) is False
    assert directory_is_excluded("/b", [ExcludePath("/b")]) is True
    assert directory_is_excluded("/b/c", [ExcludePath("/b")]) is False
    assert directory_is_excluded("/b", None) is False


def test_index_location_defaults():
    location = IndexLocation("/data")
    assert (location.enabled, location.update, location.one_filesystem) == (True, True, False)


def test_scan_finds_all_entries(tree):
    result = scan_folder(str(tree))
    assert sorted(f.name for f in result.files) == [".hidden", "a.txt", "b.txt", "image.png"]
    assert sorted(f.name for f in result.folders[1:]) == ["empty", "sub"]
    assert result.root.name == str(tree)
    assert result.root.parent is None


def test_scan_paths_match_disk(tree):
    result = scan_folder(str(tree))
    for entry in result.files + result.folders:
        assert os.path.lexists(entry.full_path())
    by_name = {f.name: f for f in result.files}
    assert by_name["b.txt"].full_path() == str(tree / "sub" / "b.txt")
    assert by_name["b.txt"].path() == str(tree / "sub")


def test_scan_sizes_and_counts(tree):
    result = scan_folder(str(tree))
    by_name = {f.name: f for f in result.folders}
    total = sum(f.size for f in result.files)
    assert result.root.size == total
    assert by_name["sub"].size == 3
    assert by_name["empty"].size == 0
    assert result.root.num_files == 3
    assert result.root.num_folders == 2
    assert by_name["sub"].num_children() == 1


def test_scan_files_carry_mtime(tree):
    result = scan_folder(str(tree))
    by_name = {f.name: f for f in result.files}
    assert by_name["a.txt"].mtime == int(os.lstat(tree / "a.txt").st_mtime)


def test_scan_exclude_hidden(tree):
    result = scan_folder(str(tree), ScanOptions(exclude_hidden=True))
    assert ".hidden" not in {f.name for f in result.files}
    assert len(result.files) == 3


def test_scan_exclude_file_patterns(tree):
    result = scan_folder(str(tree), ScanOptions(exclude_files=["*.txt"]))
    assert sorted(f.name for f in result.files) == [".hidden", "image.png"]


def test_scan_exclude_directory(tree):
    options = ScanOptions(excludes=[ExcludePath(str(tree / "sub"))])
    result = scan_folder(str(tree), options)
    assert "sub" not in {f.name for f in result.folders}
    assert "b.txt" not in {f.name for f in result.files}


def test_scan_disabled_exclude_keeps_directory(tree):
    options = ScanOptions(excludes=[ExcludePath(str(tree / "sub"), enabled=False)])
    result = scan_folder(str(tree), options)
    assert "b.txt" in {f.name for f in result.files}


def test_scan_one_filesystem_keeps_same_device(tree):
    result = scan_folder(str(tree), ScanOptions(one_filesystem=True))
    assert len(result.files) == 4


def test_symlink_to_directory_is_a_file(tree):
    os.symlink(tree / "sub", tree / "link")
    result = scan_folder(str(tree))
    assert "link" in {f.name for f in result.files}
    assert "link" not in {f.name for f in result.folders}


def test_scan_cancelled(tree):
    with pytest.raises(ScanCancelled):
        scan_folder(str(tree), cancelled=lambda: True)


def test_scan_cancelled_midway(tree):
    calls = []

    def cancelled():
        calls.append(1)
        return len(calls) > 3

    with pytest.raises(ScanCancelled):
        scan_folder(str(tree), cancelled=cancelled)


def test_scan_missing_root(tmp_path):
    with pytest.raises(NotADirectoryError):
        scan_folder(str(tmp_path / "missing"))


def test_scan_file_root(tree):
    with pytest.raises(NotADirectoryError):
        scan_folder(str(tree / "a.txt"))


def test_scan_relative_root():
    with pytest.raises(ValueError):
        scan_folder("relative/path")
"""Tests for path helpers."""

from filestore.storage.paths import PathParts, build_path, dir_prefix, sanitize_path, to_key


class TestBuildPath:
    """Test joining path parts."""

    def test_file_path(self):
        assert build_path(["a", "b", "c.txt"]) == "/a/b/c.txt"

    def test_folder_path(self):
        assert build_path(["a", "b"], folder=True) == "/a/b/"

    def test_strips_duplicate_and_edge_slashes(self):
        assert build_path(["/a/", "//b", "c//d/"]) == "/a/b/c/d"

    def test_skips_empty_parts(self):
        assert build_path(["a", "", "/", "b"]) == "/a/b"

    def test_removes_parent_references(self):
        assert ".." not in build_path(["a", "..", "b"])
        assert sanitize_path("/a/../b") == "/a//b"


class TestPathParts:
    def test_to_path_and_file_path(self):
        parts = PathParts(["root", "data"])
        assert parts.to_path("sub") == "/root/data/sub/"
        assert parts.to_file_path("file.csv") == "/root/data/file.csv"


class TestKeys:
    def test_to_key(self):
        assert to_key("/a/b.txt") == "a/b.txt"
        assert to_key("a/b.txt") == "a/b.txt"

    def test_dir_prefix(self):
        assert dir_prefix("") == ""
        assert dir_prefix("a/b") == "a/b/"
        assert dir_prefix("a/b//") == "a/b/"

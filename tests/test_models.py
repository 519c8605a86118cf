"""Tests for the shared value types."""

import io

import pytest

from filestore.storage.exceptions import InvalidInputError, InvalidRangeError
from filestore.storage.models import ByteRange, ListingResult, Location, ObjectSource


class TestByteRange:
    """Test range expression parsing."""

    @pytest.mark.parametrize(
        "expression,unit,start,end",
        [
            ("bytes=0-20", "bytes", 0, 20),
            ("bytes=5-5", "bytes", 5, 5),
            ("items=100-2000", "items", 100, 2000),
        ],
    )
    def test_parse_valid(self, expression, unit, start, end):
        """Test that valid expressions yield their unit and bounds exactly."""
        parsed = ByteRange.parse(expression)
        assert (parsed.unit, parsed.start, parsed.end) == (unit, start, end)

    @pytest.mark.parametrize(
        "expression",
        ["", "0-20", "bytes=a-20", "bytes=0:20", "bytes=0-", "bytes 0-20", "bytes=-5", "bytes=0-20,30-40"],
    )
    def test_parse_malformed(self, expression):
        """Test that malformed expressions fail rather than clamp."""
        with pytest.raises(InvalidRangeError):
            ByteRange.parse(expression)

    def test_start_after_end_rejected(self):
        """Test that start > end is a parse failure."""
        with pytest.raises(InvalidRangeError):
            ByteRange.parse("bytes=10-2")

    def test_range_error_is_invalid_input(self):
        with pytest.raises(InvalidInputError):
            ByteRange.parse("nope")

    def test_length_is_inclusive(self):
        assert ByteRange.parse("bytes=0-20").length == 21


class TestLocation:
    """Test location helpers."""

    def test_nil_location(self):
        assert Location().is_nil()
        assert not Location(path="a").is_nil()
        assert not Location(paths=["a", "b"]).is_nil()

    def test_all_paths_prefers_array(self):
        assert Location(path="x", paths=["a", "b"]).all_paths() == ["a", "b"]
        assert Location(path="x").all_paths() == ["x"]
        assert Location().all_paths() == []


class TestObjectSource:
    """Test object source validation."""

    def test_requires_exactly_one_source(self):
        """Test that zero or several sources are rejected."""
        with pytest.raises(InvalidInputError):
            ObjectSource().validate()
        with pytest.raises(InvalidInputError):
            ObjectSource(data=b"a", reader=io.BytesIO(b"b")).validate()

    def test_nil_filepath_is_not_a_source(self):
        with pytest.raises(InvalidInputError):
            ObjectSource(filepath=Location()).validate()

    def test_data_length_is_derived(self):
        """Test that in-memory data sets its own content length."""
        source = ObjectSource(data=b"hello")
        with source.open() as reader:
            assert reader.read() == b"hello"
        assert source.content_length == 5

    def test_reader_length_is_explicit(self):
        reader = open(__file__, "rb")
        try:
            source = ObjectSource(reader=reader)
            with source.open():
                pass
            assert source.content_length is None
        finally:
            reader.close()

    def test_file_source_is_closed(self, temp_dir):
        path = temp_dir / "src.txt"
        path.write_bytes(b"content")
        source = ObjectSource(filepath=Location(path=str(path)))
        with source.open() as reader:
            assert reader.read() == b"content"
        assert reader.closed


class TestListingResult:
    """Test listing result serialization."""

    def test_wire_field_names(self):
        """Test that to_dict uses the serialized field names."""
        result = ListingResult(id=0, name="a.txt", size="3", path="dir", type=".txt")
        data = result.to_dict()
        assert data == {
            "id": 0,
            "fileName": "a.txt",
            "size": "3",
            "filePath": "dir",
            "type": ".txt",
            "isdir": False,
            "modified": None,
            "modifiedBy": "",
        }

    def test_parse_from_wire_names(self):
        result = ListingResult(**{"id": 1, "fileName": "b", "filePath": "/", "isdir": True})
        assert result.name == "b"
        assert result.is_dir

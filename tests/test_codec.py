"""Tests for presetfile.codec module."""

import base64

import pytest

from presetfile.codec import (
    FIELD_DELIMITER,
    RECORD_DELIMITER,
    EncodedPayload,
    FileRecord,
    LiveReference,
    MalformedRecordError,
    classify_value,
    decode,
    encode,
    is_encoded,
    split_filename,
)


@pytest.fixture
def records():
    """Two records with distinct content."""
    return [
        FileRecord.from_bytes("logo.png", b"\x89PNG\r\n\x1a\nfake"),
        FileRecord.from_bytes("notes.txt", b"hello world"),
    ]


class TestSplitFilename:
    """Tests for split_filename function."""

    def test_simple_name(self):
        """Test splitting a name with one extension."""
        assert split_filename("logo.png") == ("logo", "png")

    def test_last_dot_wins(self):
        """Test only the last dot separates the extension."""
        assert split_filename("archive.tar.gz") == ("archive.tar", "gz")

    def test_no_extension(self):
        """Test a name without a dot has an empty extension."""
        assert split_filename("README") == ("README", "")

    def test_dotfile(self):
        """Test a leading dot is treated as the extension separator."""
        assert split_filename(".htaccess") == ("", "htaccess")


class TestFileRecord:
    """Tests for FileRecord."""

    def test_from_bytes(self):
        """Test building a record from raw bytes."""
        record = FileRecord.from_bytes("logo.png", b"abc")
        assert record.content == base64.b64encode(b"abc").decode("ascii")
        assert record.extension == "png"
        assert record.name == "logo.png"

    def test_extension_lowercased(self):
        """Test the extension is lowercased but the name kept."""
        record = FileRecord.from_bytes("Photo.JPG", b"abc")
        assert record.extension == "jpg"
        assert record.name == "Photo.JPG"

    def test_data_decodes_content(self):
        """Test data returns the original bytes."""
        record = FileRecord.from_bytes("a.bin", bytes(range(256)))
        assert record.data == bytes(range(256))

    def test_invalid_base64(self):
        """Test data rejects content outside the base64 alphabet."""
        record = FileRecord(content="not base64!", extension="txt", name="a.txt")
        with pytest.raises(MalformedRecordError, match="a.txt"):
            record.data

    def test_wrapped_base64_is_accepted(self):
        """Test line breaks inside the content are ignored."""
        record = FileRecord(content="aGVs\nbG8=", extension="txt", name="a.txt")
        assert record.data == b"hello"
        assert record.decoded(strict=False) == b"hello"

    def test_lenient_drops_junk(self):
        """Test lenient decoding skips invalid characters."""
        record = FileRecord(content="aGVs!bG8", extension="txt", name="a.txt")
        assert record.decoded(strict=False) == b"hello"
        with pytest.raises(MalformedRecordError):
            record.decoded(strict=True)

    def test_lenient_never_raises_on_length(self):
        """Test lenient decoding tolerates a dangling character."""
        record = FileRecord(content="aGVsbG8hX", extension="txt", name="a.txt")
        assert record.decoded(strict=False) == b"hello!"


class TestEncode:
    """Tests for encode function."""

    def test_empty_list(self):
        """Test an empty list encodes to an empty string."""
        assert encode([]) == ""

    def test_single_record_layout(self):
        """Test the field and record delimiter layout."""
        record = FileRecord(content="YWJj", extension="txt", name="a.txt")
        assert encode([record]) == (
            "YWJj" + FIELD_DELIMITER + "txt" + FIELD_DELIMITER + "a.txt"
            + RECORD_DELIMITER
        )

    def test_every_record_terminated(self, records):
        """Test each record ends with the record delimiter."""
        encoded = encode(records)
        assert encoded.count(RECORD_DELIMITER) == 2
        assert encoded.endswith(RECORD_DELIMITER)

    def test_rejects_delimiter_in_name(self):
        """Test a name containing a delimiter is refused."""
        record = FileRecord(
            content="YWJj", extension="txt", name="a" + FIELD_DELIMITER + ".txt"
        )
        with pytest.raises(MalformedRecordError, match="reserved delimiter"):
            encode([record])


class TestDecode:
    """Tests for decode function."""

    def test_roundtrip_preserves_order(self, records):
        """Test decoding returns the encoded records in order."""
        assert decode(encode(records)) == records

    def test_empty_string(self):
        """Test an empty string decodes to no records."""
        assert decode("") == []

    def test_skips_empty_segments(self, records):
        """Test doubled delimiters are ignored."""
        encoded = RECORD_DELIMITER + encode(records) + RECORD_DELIMITER
        assert decode(encoded) == records

    def test_missing_trailing_delimiter(self):
        """Test the final terminator is optional."""
        text = FIELD_DELIMITER.join(["YWJj", "txt", "a.txt"])
        assert decode(text) == [FileRecord("YWJj", "txt", "a.txt")]

    def test_too_few_fields(self):
        """Test a record with two fields is malformed."""
        with pytest.raises(MalformedRecordError, match="expected 3"):
            decode("YWJj" + FIELD_DELIMITER + "txt" + RECORD_DELIMITER)

    def test_too_many_fields(self):
        """Test a record with four fields is malformed."""
        text = FIELD_DELIMITER.join(["YWJj", "txt", "a.txt", "extra"])
        with pytest.raises(MalformedRecordError):
            decode(text + RECORD_DELIMITER)


class TestIsEncoded:
    """Tests for is_encoded function."""

    def test_encoded_value(self, records):
        """Test encoded output is recognized."""
        assert is_encoded(encode(records))

    def test_empty(self):
        """Test an empty string is not encoded."""
        assert not is_encoded("")

    def test_plain_filename(self):
        """Test bare file names are not encoded."""
        assert not is_encoded("plainfilename.png")
        assert not is_encoded("/logo.png")


class TestClassifyValue:
    """Tests for classify_value function."""

    def test_plain_string_is_live(self):
        """Test a file name becomes a LiveReference."""
        assert classify_value("/logo.png") == LiveReference("/logo.png")

    def test_encoded_string(self, records):
        """Test encoded text becomes an EncodedPayload."""
        encoded = encode(records)
        assert classify_value(encoded) == EncodedPayload(encoded)

    def test_none_is_empty_live(self):
        """Test None becomes an empty LiveReference."""
        assert classify_value(None) == LiveReference("")

    def test_variants_pass_through(self):
        """Test explicit variants are returned unchanged."""
        payload = EncodedPayload("anything")
        assert classify_value(payload) is payload
        ref = LiveReference("x" + RECORD_DELIMITER)
        assert classify_value(ref) is ref

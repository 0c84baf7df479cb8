"""Transfer format for file-backed setting values.

A stored-file setting is moved through a preset as one flat string. Each
file becomes a record of three fields (base64 content, extension, name),
and records are concatenated, each one terminated by a record delimiter:

    content _-fileinfoseparator-_ ext _-fileinfoseparator-_ name _-multiplefilesseparator-_

A value is recognized as already being in transfer format when it ends
with the record delimiter. Anything else (typically the bare file name
that the live configuration stores) refers to files in the blob store.
"""

import base64
import binascii
import re
from dataclasses import dataclass

# Both delimiters contain characters outside the base64 alphabet, so they
# can never collide with encoded file content.
FIELD_DELIMITER = "_-fileinfoseparator-_"
RECORD_DELIMITER = "_-multiplefilesseparator-_"

_NON_BASE64_RE = re.compile(r"[^A-Za-z0-9+/]")


class PresetfileError(Exception):
    """Base exception for presetfile errors."""

    pass


class MalformedRecordError(PresetfileError):
    """Transfer-format text does not split into well-formed records."""

    pass


class UnsupportedSettingError(PresetfileError):
    """Setting has no owning plugin and cannot be stored as files."""

    pass


def split_filename(name: str) -> tuple[str, str]:
    """Split a file name into (basename, extension).

    The extension is everything after the last dot, without the dot.
    Names without a dot have an empty extension.
    """
    base, dot, ext = name.rpartition(".")
    if not dot:
        return name, ""
    return base, ext


@dataclass(frozen=True)
class FileRecord:
    """One file inside a transfer-format value."""

    content: str  # base64
    extension: str
    name: str

    @classmethod
    def from_bytes(cls, name: str, data: bytes) -> "FileRecord":
        """Build a record from raw file bytes."""
        _, ext = split_filename(name)
        return cls(
            content=base64.b64encode(data).decode("ascii"),
            extension=ext.lower(),
            name=name,
        )

    @property
    def data(self) -> bytes:
        """Decoded file content, strictly validated.

        Raises:
            MalformedRecordError: If the content is not valid base64.
        """
        return self.decoded(strict=True)

    def decoded(self, strict: bool = True) -> bytes:
        """Decode the content.

        Whitespace such as line wrapping is ignored in both modes. When not
        strict, characters outside the base64 alphabet are dropped and
        missing padding is added.

        Raises:
            MalformedRecordError: If the content cannot be decoded.
        """
        content = "".join(self.content.split())
        try:
            if strict:
                return base64.b64decode(content, validate=True)
            content = _NON_BASE64_RE.sub("", content)
            # A single trailing sextet cannot form a byte
            if len(content) % 4 == 1:
                content = content[:-1]
            return base64.b64decode(content + "=" * (-len(content) % 4))
        except (binascii.Error, ValueError) as e:
            raise MalformedRecordError(
                f"Invalid base64 content for file {self.name!r}: {e}"
            ) from e


@dataclass(frozen=True)
class LiveReference:
    """A setting value that points at files in the blob store."""

    value: str


@dataclass(frozen=True)
class EncodedPayload:
    """A setting value that already carries its files in transfer format."""

    value: str


def encode(records: list[FileRecord]) -> str:
    """Serialize records into one transfer-format string.

    Args:
        records: Records in the order they should be restored.

    Returns:
        Encoded value. Empty string for an empty list.

    Raises:
        MalformedRecordError: If a field contains one of the delimiters.
    """
    parts = []
    for record in records:
        fields = (record.content, record.extension, record.name)
        for value in fields:
            if FIELD_DELIMITER in value or RECORD_DELIMITER in value:
                raise MalformedRecordError(
                    f"File {record.name!r} contains a reserved delimiter"
                )
        parts.append(FIELD_DELIMITER.join(fields) + RECORD_DELIMITER)
    return "".join(parts)


def decode(text: str) -> list[FileRecord]:
    """Parse a transfer-format string back into records.

    Empty segments (the trailing terminator, doubled delimiters) are skipped.

    Raises:
        MalformedRecordError: If a segment does not have exactly three fields.
    """
    records = []
    for index, segment in enumerate(text.split(RECORD_DELIMITER)):
        if not segment:
            continue
        fields = segment.split(FIELD_DELIMITER)
        if len(fields) != 3:
            raise MalformedRecordError(
                f"Record {index} has {len(fields)} field(s), expected 3"
            )
        content, extension, name = fields
        records.append(FileRecord(content=content, extension=extension, name=name))
    return records


def is_encoded(text: str) -> bool:
    """Return True if text looks like a transfer-format value.

    This is a suffix check only: a live value that happens to end with
    the record delimiter is indistinguishable from an encoded one. Callers
    that know which kind of value they hold should pass a LiveReference
    or EncodedPayload instead of a plain string.
    """
    return bool(text) and text.endswith(RECORD_DELIMITER)


def classify_value(
    value: "str | LiveReference | EncodedPayload | None",
) -> "LiveReference | EncodedPayload":
    """Turn a raw setting value into an explicit variant.

    Plain strings are sniffed with is_encoded(). Variants pass through.
    """
    if isinstance(value, (LiveReference, EncodedPayload)):
        return value
    value = value or ""
    if is_encoded(value):
        return EncodedPayload(value)
    return LiveReference(value)

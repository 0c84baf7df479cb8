"""presetfile - Carry file-backed settings through configuration presets."""

__version__ = "1.0.0"

from .buckets import BUCKET_OVERRIDES, BucketAddress, resolve_bucket
from .codec import (
    EncodedPayload,
    FileRecord,
    LiveReference,
    MalformedRecordError,
    PresetfileError,
    UnsupportedSettingError,
    decode,
    encode,
    is_encoded,
)
from .filetypes import ExtensionClassifier, FileTypeRegistry, image_extensions
from .preview import PreviewOptions, render_preview
from .setting import SaveResult, SettingIdentity, StoredFileSetting, export_setting

__all__ = [
    "encode",
    "decode",
    "is_encoded",
    "FileRecord",
    "LiveReference",
    "EncodedPayload",
    "PresetfileError",
    "MalformedRecordError",
    "UnsupportedSettingError",
    "ExtensionClassifier",
    "FileTypeRegistry",
    "image_extensions",
    "BUCKET_OVERRIDES",
    "BucketAddress",
    "resolve_bucket",
    "PreviewOptions",
    "render_preview",
    "SettingIdentity",
    "StoredFileSetting",
    "SaveResult",
    "export_setting",
    "__version__",
]

"""Stored-file settings: capture, preview and restore through presets.

A stored-file setting keeps its value as files in a plugin-scoped blob
store bucket, while the config store only remembers the first file's name.
When a preset is exported the files are read from the bucket and
serialized into the transfer format; when a preset is applied the transfer
value is decoded and the bucket is replaced with exactly those files.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .buckets import SYSTEM_SCOPE, BucketAddress, bucket_address
from .codec import (
    EncodedPayload,
    FileRecord,
    LiveReference,
    MalformedRecordError,
    UnsupportedSettingError,
    classify_value,
    decode,
    encode,
)
from .filetypes import ExtensionClassifier, image_extensions
from .preview import PreviewOptions, render_preview
from .storage import AuditLog, BlobStore, ConfigStore

logger = logging.getLogger(__name__)

# Plugin value used by global (non-plugin) settings
NO_PLUGIN = "none"

# The config store keeps a single file name per setting: the first file
# in save order, prefixed with the bucket path.
PRIMARY_FILE_POLICY = "first"
PRIMARY_FILE_PREFIX = "/"


@dataclass(frozen=True)
class SettingIdentity:
    """Plugin and name of a setting."""

    plugin: str
    name: str

    @property
    def is_pluggable(self) -> bool:
        return self.plugin not in ("", NO_PLUGIN)

    def require_plugin(self) -> None:
        """Raise UnsupportedSettingError for global settings."""
        if not self.is_pluggable:
            raise UnsupportedSettingError(
                f"Setting {self.name!r} has no plugin; "
                "stored files require a plugin-scoped bucket"
            )


@dataclass
class SaveResult:
    """Outcome of a save that wrote at least one file."""

    log_id: int | None
    plugin: str
    name: str
    old_value: str | None
    new_value: str
    files: list[str] = field(default_factory=list)


class StoredFileSetting:
    """A file-backed setting value in transit through a preset.

    On construction the incoming value decides where the files come from:

    - empty: nothing is loaded.
    - a LiveReference (or a plain string not in transfer format): the
      files currently in the setting's bucket are read; ``value`` becomes
      their transfer-format encoding.
    - an EncodedPayload (or a transfer-format string): the value is
      decoded; ``value`` stays as given.

    Only one of ``files_current`` and ``files_new`` is ever populated.

    Args:
        identity: Plugin and name of the setting.
        value: Value held for the setting by the config store or preset.
        blob_store: Where the setting's files live.
        config_store: Receives the scalar value on save.
        audit_log: Receives a change entry on save.
        scope: Blob store scope of the setting's bucket.
        overrides: Bucket override table (see buckets.resolve_bucket).
        classifier: Image extension classifier for previews.
        preview: Preview rendering options.

    Raises:
        UnsupportedSettingError: If the setting has no plugin.
        MalformedRecordError: If an encoded value cannot be decoded.
    """

    def __init__(
        self,
        identity: SettingIdentity,
        value: str | LiveReference | EncodedPayload | None,
        blob_store: BlobStore,
        *,
        config_store: ConfigStore | None = None,
        audit_log: AuditLog | None = None,
        scope: int = SYSTEM_SCOPE,
        overrides: dict[str, dict[str, str]] | None = None,
        classifier: ExtensionClassifier | None = None,
        preview: PreviewOptions | None = None,
    ):
        identity.require_plugin()

        self.identity = identity
        self.blob_store = blob_store
        self.config_store = config_store
        self.audit_log = audit_log
        self.scope = scope
        self.overrides = overrides
        self.classifier = classifier if classifier is not None else image_extensions
        self.preview_options = preview or PreviewOptions()

        self.files_current: list[FileRecord] = []
        self.files_new: list[FileRecord] = []
        self.value_current = ""

        self.classifier.ensure_loaded()

        incoming = classify_value(value)
        if incoming.value:
            if isinstance(incoming, LiveReference):
                self._load_current()
            else:
                self.files_new = decode(incoming.value)

        self.value = self.value_current if self.value_current else incoming.value
        self.visible_value = self.render_preview()

    def __repr__(self) -> str:
        return (
            f"<StoredFileSetting {self.identity.plugin}/{self.identity.name} "
            f"source={self.source} files={len(self.files)}>"
        )

    @property
    def source(self) -> str:
        """Where the files came from: "current", "new" or "empty"."""
        if self.files_current:
            return "current"
        if self.files_new:
            return "new"
        return "empty"

    @property
    def files(self) -> list[FileRecord]:
        return self.files_current or self.files_new

    def address(self, name: str | None = None) -> BucketAddress:
        """Blob store address of this setting's bucket."""
        return bucket_address(
            self.identity.plugin,
            name or self.identity.name,
            scope=self.scope,
            overrides=self.overrides,
        )

    def _load_current(self) -> None:
        address = self.address()
        stored = self.blob_store.list_files(address)
        logger.debug(
            "Read %d file(s) from %s/%s", len(stored), address.plugin, address.bucket
        )
        for stored_file in stored:
            record = FileRecord.from_bytes(stored_file.name, stored_file.content)
            self.files_current.append(record)
            self.value_current += encode([record])

    def render_preview(self) -> str:
        """HTML preview of whichever file list is populated."""
        return render_preview(self.files, self.classifier, self.preview_options)

    def save_value(
        self, name: str | None = None, value: str | None = None
    ) -> SaveResult | None:
        """Replace the bucket's files with those in a transfer-format value.

        The value is decoded before anything is touched, so a malformed
        value leaves the bucket as it was. A value with no files changes
        nothing and returns None. Otherwise every file in the bucket is
        deleted, the decoded files are written in order, the config value
        is set to ``/`` + the first file name and the change is audited.

        Delete and write are not atomic: a failure while writing leaves
        the bucket partially filled.

        Args:
            name: Setting name to save under. Defaults to this setting's name.
            value: Transfer-format value. Defaults to ``self.value``.

        Returns:
            SaveResult, or None when there was nothing to persist.

        Raises:
            UnsupportedSettingError: If the setting has no plugin.
            MalformedRecordError: If the value cannot be decoded.
        """
        if value is None:
            value = self.value
        if not name:
            name = self.identity.name

        plugin = self.identity.plugin
        self.identity.require_plugin()

        address = self.address(name)
        records = decode(value or "")
        if not records:
            logger.debug("Nothing to persist for %s/%s", plugin, name)
            return None

        seen = set()
        for record in records:
            if not record.name:
                raise MalformedRecordError("Record has an empty file name")
            if record.name in seen:
                raise MalformedRecordError(f"Duplicate file name: {record.name!r}")
            seen.add(record.name)
        payloads = [(record.name, record.data) for record in records]

        self.blob_store.delete_all(address)

        primary = ""
        written = []
        for filename, data in payloads:
            self.blob_store.write_file(address, filename, data)
            written.append(filename)
            if not primary:
                primary = filename

        new_value = PRIMARY_FILE_PREFIX + primary
        old_value = None
        if self.config_store is not None:
            old_value = self.config_store.get_value(plugin, name)
            self.config_store.set_value(plugin, name, new_value)

        log_id = None
        if self.audit_log is not None:
            log_id = self.audit_log.record(plugin, name, old_value, new_value)

        return SaveResult(
            log_id=log_id,
            plugin=plugin,
            name=name,
            old_value=old_value,
            new_value=new_value,
            files=written,
        )


def export_setting(
    identity: SettingIdentity,
    blob_store: BlobStore,
    scope: int = SYSTEM_SCOPE,
    overrides: dict[str, dict[str, str]] | None = None,
) -> str:
    """Return the transfer-format value of the files stored for a setting.

    Reads the bucket regardless of what the config store holds. Returns
    an empty string when the bucket is empty.
    """
    setting = StoredFileSetting(
        identity,
        LiveReference(identity.name),
        blob_store,
        scope=scope,
        overrides=overrides,
    )
    return setting.value_current

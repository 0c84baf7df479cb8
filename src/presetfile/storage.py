"""Storage collaborators: blob store, config store and audit log.

Settings read and write their files through a BlobStore, write their
scalar value through a ConfigStore and report changes to an AuditLog.
Each has an in-memory implementation and a file-backed one.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from .buckets import BucketAddress
from .codec import PresetfileError

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = ".manifest.yaml"


class StorageError(PresetfileError):
    """Blob store or config store operation failed."""

    pass


@dataclass(frozen=True)
class StoredFile:
    """A file as held by a blob store."""

    id: int
    name: str
    content: bytes


def _check_filename(name: str) -> None:
    if not name or "/" in name or "\\" in name or name in (".", ".."):
        raise StorageError(f"Invalid file name: {name!r}")
    if name == MANIFEST_FILENAME:
        raise StorageError(f"Reserved file name: {name!r}")


class BlobStore(ABC):
    """Key-value file storage addressed by BucketAddress."""

    @abstractmethod
    def list_files(self, address: BucketAddress) -> list[StoredFile]:
        """Return the files in a bucket, ordered by id ascending."""
        ...

    @abstractmethod
    def delete_all(self, address: BucketAddress) -> None:
        """Remove every file in a bucket."""
        ...

    @abstractmethod
    def write_file(self, address: BucketAddress, name: str, content: bytes) -> StoredFile:
        """Create (or replace) a file in a bucket."""
        ...


class MemoryBlobStore(BlobStore):
    """Blob store kept in a dict. Ids are global and increase monotonically."""

    def __init__(self):
        self._buckets: dict[BucketAddress, dict[str, StoredFile]] = {}
        self._next_id = 1

    def list_files(self, address: BucketAddress) -> list[StoredFile]:
        files = self._buckets.get(address, {})
        return sorted(files.values(), key=lambda f: f.id)

    def delete_all(self, address: BucketAddress) -> None:
        self._buckets.pop(address, None)

    def write_file(self, address: BucketAddress, name: str, content: bytes) -> StoredFile:
        _check_filename(name)
        bucket = self._buckets.setdefault(address, {})
        existing = bucket.get(name)
        if existing is not None:
            stored = StoredFile(id=existing.id, name=name, content=bytes(content))
        else:
            stored = StoredFile(id=self._next_id, name=name, content=bytes(content))
            self._next_id += 1
        bucket[name] = stored
        return stored


class DirectoryBlobStore(BlobStore):
    """Blob store on the local filesystem.

    Files live under ``root/<scope>/<plugin>/<bucket>/<item_id><path>``.
    Each bucket directory has a YAML manifest recording file ids so that
    listing order is stable across processes.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def _bucket_dir(self, address: BucketAddress) -> Path:
        for part in (address.plugin, address.bucket):
            if not part or "/" in part or "\\" in part or part in (".", ".."):
                raise StorageError(f"Invalid bucket component: {part!r}")
        directory = (
            self.root
            / str(address.scope)
            / address.plugin
            / address.bucket
            / str(address.item_id)
        )
        for part in address.path.strip("/").split("/"):
            if part in ("..", "."):
                raise StorageError(f"Invalid bucket path: {address.path!r}")
            if part:
                directory = directory / part
        return directory

    def _read_manifest(self, directory: Path) -> dict[str, Any]:
        manifest_path = directory / MANIFEST_FILENAME
        if not manifest_path.is_file():
            return {"next_id": 1, "files": {}}
        try:
            with open(manifest_path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise StorageError(f"Invalid manifest {manifest_path}: {e}") from e
        except OSError as e:
            raise StorageError(f"Cannot read manifest {manifest_path}: {e}") from e
        data.setdefault("next_id", 1)
        data.setdefault("files", {})
        return data

    def _write_manifest(self, directory: Path, data: dict[str, Any]) -> None:
        manifest_path = directory / MANIFEST_FILENAME
        try:
            manifest_path.write_text(
                yaml.dump(data, default_flow_style=False, sort_keys=True)
            )
        except OSError as e:
            raise StorageError(f"Cannot write manifest {manifest_path}: {e}") from e

    def list_files(self, address: BucketAddress) -> list[StoredFile]:
        directory = self._bucket_dir(address)
        if not directory.is_dir():
            return []
        manifest = self._read_manifest(directory)
        files = []
        for name, file_id in manifest["files"].items():
            path = directory / name
            try:
                content = path.read_bytes()
            except OSError as e:
                raise StorageError(f"Cannot read stored file {path}: {e}") from e
            files.append(StoredFile(id=int(file_id), name=str(name), content=content))
        return sorted(files, key=lambda f: f.id)

    def delete_all(self, address: BucketAddress) -> None:
        directory = self._bucket_dir(address)
        if not directory.is_dir():
            return
        manifest = self._read_manifest(directory)
        try:
            for name in manifest["files"]:
                (directory / name).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot delete files in {directory}: {e}") from e
        manifest["files"] = {}
        self._write_manifest(directory, manifest)
        logger.debug("Emptied bucket %s", directory)

    def write_file(self, address: BucketAddress, name: str, content: bytes) -> StoredFile:
        _check_filename(name)
        directory = self._bucket_dir(address)
        try:
            directory.mkdir(parents=True, exist_ok=True)
            (directory / name).write_bytes(content)
        except OSError as e:
            raise StorageError(f"Cannot write {name} to {directory}: {e}") from e

        manifest = self._read_manifest(directory)
        file_id = manifest["files"].get(name)
        if file_id is None:
            file_id = manifest["next_id"]
            manifest["next_id"] = file_id + 1
            manifest["files"][name] = file_id
        self._write_manifest(directory, manifest)
        return StoredFile(id=int(file_id), name=name, content=bytes(content))


class ConfigStore(ABC):
    """Scalar configuration values keyed by (plugin, name)."""

    @abstractmethod
    def get_value(self, plugin: str, name: str) -> str | None: ...

    @abstractmethod
    def set_value(self, plugin: str, name: str, value: str) -> None: ...


class MemoryConfigStore(ConfigStore):
    def __init__(self, values: dict[str, dict[str, str]] | None = None):
        self.values: dict[str, dict[str, str]] = {
            plugin: dict(names) for plugin, names in (values or {}).items()
        }

    def get_value(self, plugin: str, name: str) -> str | None:
        return self.values.get(plugin, {}).get(name)

    def set_value(self, plugin: str, name: str, value: str) -> None:
        self.values.setdefault(plugin, {})[name] = value


class YamlConfigStore(ConfigStore):
    """Config values persisted as ``{plugin: {name: value}}`` in a YAML file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> dict[str, dict[str, str]]:
        if not self.path.is_file():
            return {}
        try:
            with open(self.path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise StorageError(f"Invalid YAML in {self.path}: {e}") from e
        except OSError as e:
            raise StorageError(f"Cannot read config store {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"Config store {self.path} must contain a mapping")
        return data

    def get_value(self, plugin: str, name: str) -> str | None:
        value = (self._load().get(plugin) or {}).get(name)
        return None if value is None else str(value)

    def set_value(self, plugin: str, name: str, value: str) -> None:
        data = self._load()
        data.setdefault(plugin, {})[name] = value
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                yaml.dump(data, default_flow_style=False, sort_keys=True)
            )
        except OSError as e:
            raise StorageError(f"Cannot write config store {self.path}: {e}") from e


@dataclass
class AuditEntry:
    """One recorded configuration change."""

    id: int
    plugin: str
    name: str
    old_value: str | None
    new_value: str
    time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class AuditLog(ABC):
    @abstractmethod
    def record(
        self, plugin: str, name: str, old_value: str | None, new_value: str
    ) -> int:
        """Record a change and return the entry id."""
        ...


class MemoryAuditLog(AuditLog):
    """Audit log kept in a list; every entry is also logged at INFO."""

    def __init__(self):
        self.entries: list[AuditEntry] = []

    def record(
        self, plugin: str, name: str, old_value: str | None, new_value: str
    ) -> int:
        entry = AuditEntry(
            id=len(self.entries) + 1,
            plugin=plugin,
            name=name,
            old_value=old_value,
            new_value=new_value,
        )
        self.entries.append(entry)
        logger.info(
            "Config change %d: %s/%s %r -> %r",
            entry.id,
            plugin,
            name,
            old_value,
            new_value,
        )
        return entry.id

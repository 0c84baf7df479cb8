"""File type registry and extension classification.

The registry maps lowercase extensions (no leading dot) to a MIME type and
a list of groups such as "image" or "document". The classifier collects
the extensions of one group into a set, once per process, and answers
membership queries against it.
"""

from __future__ import annotations

import logging
import mimetypes
import threading
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

# MIME types the interpreter's table gets wrong or lacks
MIME_OVERRIDES = {
    "md": "text/markdown",
    "markdown": "text/markdown",
    "svg": "image/svg+xml",
    "svgz": "image/svg+xml",
    "webp": "image/webp",
    "ico": "image/vnd.microsoft.icon",
    "avif": "image/avif",
    "scss": "text/x-scss",
    "woff2": "font/woff2",
}

# Group tags for common types. Groups derived from the MIME major type are
# added on top of these.
BUILTIN_GROUPS = {
    "bmp": ["image", "web_image"],
    "gif": ["image", "web_image"],
    "ico": ["image", "web_image"],
    "jpe": ["image", "web_image"],
    "jpeg": ["image", "web_image"],
    "jpg": ["image", "web_image"],
    "png": ["image", "web_image"],
    "svg": ["image", "web_image"],
    "svgz": ["image", "web_image"],
    "webp": ["image", "web_image"],
    "avif": ["image", "web_image"],
    "tif": ["image"],
    "tiff": ["image"],
    "css": ["web_file"],
    "scss": ["web_file"],
    "js": ["web_file"],
    "html": ["web_file"],
    "htm": ["web_file"],
    "woff": ["web_font"],
    "woff2": ["web_font"],
    "ttf": ["web_font"],
    "otf": ["web_font"],
    "pdf": ["document"],
    "txt": ["document"],
    "md": ["document"],
    "doc": ["document"],
    "docx": ["document"],
    "odt": ["document"],
    "zip": ["archive"],
    "gz": ["archive"],
    "tgz": ["archive"],
}

_MAJOR_GROUPS = {
    "image": "image",
    "audio": "audio",
    "video": "video",
    "text": "text",
    "font": "web_font",
}


@dataclass
class FileType:
    """Registry entry for one extension."""

    mime: str
    groups: list[str] = field(default_factory=list)


class FileTypeRegistry:
    """Extension to FileType mapping.

    Args:
        extra: Additional entries, e.g. from the ``filetypes:`` config
            section, as ``{ext: {"type": mime, "groups": [...]}}``.
            Extra entries replace built-in ones.
        include_system: Merge the interpreter's ``mimetypes`` table.
    """

    def __init__(
        self,
        extra: dict[str, dict] | None = None,
        include_system: bool = True,
    ):
        self._types: dict[str, FileType] = {}

        if include_system:
            mimetypes.init()
            for suffix, mime in mimetypes.types_map.items():
                self._add(suffix, mime, [])

        for ext, mime in MIME_OVERRIDES.items():
            self._add(ext, mime, [])

        for ext, groups in BUILTIN_GROUPS.items():
            entry = self._types.get(ext)
            if entry is None:
                self._add(ext, "application/octet-stream", groups)
            else:
                for group in groups:
                    if group not in entry.groups:
                        entry.groups.append(group)

        for ext, data in (extra or {}).items():
            data = data or {}
            ext = ext.lstrip(".").lower()
            self._types[ext] = FileType(
                mime=str(data.get("type", "application/octet-stream")),
                groups=[str(g) for g in data.get("groups", [])],
            )

    def _add(self, ext: str, mime: str, groups: list[str]) -> None:
        ext = ext.lstrip(".").lower()
        derived = _MAJOR_GROUPS.get(mime.split("/")[0])
        all_groups = list(groups)
        if derived and derived not in all_groups:
            all_groups.append(derived)
        existing = self._types.get(ext)
        if existing is not None:
            existing.mime = mime
            for group in all_groups:
                if group not in existing.groups:
                    existing.groups.append(group)
        else:
            self._types[ext] = FileType(mime=mime, groups=all_groups)

    def list_types(self) -> dict[str, FileType]:
        """Return all known types keyed by lowercase extension."""
        return dict(self._types)

    def mime_for(self, extension: str) -> str:
        entry = self._types.get(extension.lstrip(".").lower())
        return entry.mime if entry else "application/octet-stream"


class ExtensionClassifier:
    """Process-wide set of extensions belonging to one registry group.

    The set is built on the first ensure_loaded() call and never rebuilt.
    A lock guards the first build so concurrent first use is safe; reads
    after that only touch an immutable frozenset.
    """

    def __init__(self, group: str = "image"):
        self.group = group
        self._lock = threading.Lock()
        self._loaded = False
        self._extensions: frozenset[str] = frozenset()

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def extensions(self) -> frozenset[str]:
        """Dotted extension keys, e.g. ``{".png", ".jpg"}``."""
        return self._extensions

    def ensure_loaded(self, registry: FileTypeRegistry | None = None) -> None:
        """Build the extension set from the registry, once.

        Args:
            registry: Registry to read. Defaults to the system registry.
                Ignored once the set has been built.
        """
        if self._loaded:
            return
        with self._lock:
            if self._loaded:
                return
            if registry is None:
                registry = FileTypeRegistry()
            keys = set()
            for ext, data in registry.list_types().items():
                if self.group in data.groups:
                    keys.add("." + ext)
            if not keys:
                logger.warning(
                    "File type registry has no %r types; nothing will match",
                    self.group,
                )
            else:
                logger.debug("Loaded %d %s extension(s)", len(keys), self.group)
            self._extensions = frozenset(keys)
            self._loaded = True

    def contains(self, extension: str) -> bool:
        """Return True if the extension (no leading dot) is in the group."""
        self.ensure_loaded()
        return ("." + extension.lower()) in self._extensions

    is_image = contains

    def reset(self) -> None:
        """Forget the built set. Only meant for tests."""
        with self._lock:
            self._loaded = False
            self._extensions = frozenset()


# Shared by every setting in the process
image_extensions = ExtensionClassifier("image")

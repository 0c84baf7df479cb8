"""Mapping of setting identities to blob store buckets."""

from dataclasses import dataclass

# Settings whose files live in a bucket not named after the setting.
# {plugin: {setting name: bucket}}
BUCKET_OVERRIDES: dict[str, dict[str, str]] = {
    "theme_boost": {
        "presetfiles": "preset",
    },
}

# Scope of site-wide settings
SYSTEM_SCOPE = 1


@dataclass(frozen=True)
class BucketAddress:
    """Location of a setting's files in the blob store."""

    scope: int
    plugin: str
    bucket: str
    item_id: int = 0
    path: str = "/"


def merged_overrides(
    extra: dict[str, dict[str, str]] | None = None,
) -> dict[str, dict[str, str]]:
    """Return BUCKET_OVERRIDES with extra entries layered on top."""
    merged = {plugin: dict(names) for plugin, names in BUCKET_OVERRIDES.items()}
    for plugin, names in (extra or {}).items():
        merged.setdefault(plugin, {}).update(names)
    return merged


def resolve_bucket(
    plugin: str,
    name: str,
    overrides: dict[str, dict[str, str]] | None = None,
) -> str:
    """Return the bucket holding the files of setting ``plugin/name``.

    Falls back to the setting name when no override exists.
    """
    if overrides is None:
        overrides = BUCKET_OVERRIDES
    return overrides.get(plugin, {}).get(name, name)


def bucket_address(
    plugin: str,
    name: str,
    scope: int = SYSTEM_SCOPE,
    overrides: dict[str, dict[str, str]] | None = None,
) -> BucketAddress:
    """Build the full blob store address for a setting."""
    return BucketAddress(
        scope=scope,
        plugin=plugin,
        bucket=resolve_bucket(plugin, name, overrides),
    )

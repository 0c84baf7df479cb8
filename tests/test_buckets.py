"""Tests for presetfile.buckets module."""

from presetfile.buckets import (
    BUCKET_OVERRIDES,
    SYSTEM_SCOPE,
    BucketAddress,
    bucket_address,
    merged_overrides,
    resolve_bucket,
)


class TestResolveBucket:
    """Tests for resolve_bucket function."""

    def test_override(self):
        """Test a known override is applied."""
        assert resolve_bucket("theme_boost", "presetfiles") == "preset"

    def test_plugin_known_name_unknown(self):
        """Test other names of an overridden plugin keep their own bucket."""
        assert resolve_bucket("theme_boost", "other") == "other"

    def test_unknown_plugin(self):
        """Test unknown plugins use the setting name."""
        assert resolve_bucket("any_plugin", "x") == "x"

    def test_explicit_table(self):
        """Test an explicit table replaces the built-in one."""
        overrides = {"theme_boost": {"presetfiles": "preset"}}
        assert resolve_bucket("theme_boost", "presetfiles", overrides) == "preset"
        assert resolve_bucket("theme_boost", "other", overrides) == "other"
        assert resolve_bucket("any_plugin", "x", overrides) == "x"

    def test_empty_table_disables_builtin(self):
        """Test an empty table turns off every override."""
        assert resolve_bucket("theme_boost", "presetfiles", {}) == "presetfiles"


class TestMergedOverrides:
    """Tests for merged_overrides function."""

    def test_keeps_builtin(self):
        """Test built-in overrides survive a merge."""
        merged = merged_overrides({"mod_x": {"a": "b"}})
        assert merged["theme_boost"]["presetfiles"] == "preset"
        assert merged["mod_x"] == {"a": "b"}

    def test_extra_wins(self):
        """Test extra overrides take precedence."""
        merged = merged_overrides({"theme_boost": {"presetfiles": "other"}})
        assert merged["theme_boost"]["presetfiles"] == "other"

    def test_does_not_mutate_builtin(self):
        """Test merging leaves the built-in table alone."""
        merged_overrides({"theme_boost": {"presetfiles": "other"}})
        assert BUCKET_OVERRIDES["theme_boost"]["presetfiles"] == "preset"


class TestBucketAddress:
    """Tests for bucket_address function."""

    def test_defaults(self):
        """Test the default item id and path."""
        address = bucket_address("theme_boost", "presetfiles")
        assert address == BucketAddress(
            scope=SYSTEM_SCOPE, plugin="theme_boost", bucket="preset"
        )
        assert address.item_id == 0
        assert address.path == "/"

    def test_scope(self):
        """Test the scope is carried into the address."""
        assert bucket_address("mod_x", "logo", scope=5).scope == 5

"""Configuration management for presetfile.

Handles loading .presetfile.yaml files with directory traversal,
environment variable overrides, and default values.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .buckets import SYSTEM_SCOPE, merged_overrides
from .codec import PresetfileError
from .preview import PreviewOptions

CONFIG_FILENAME = ".presetfile.yaml"
ENV_STORAGE_DIR = "PRESETFILE_STORAGE_DIR"
ENV_SCOPE = "PRESETFILE_SCOPE"

DEFAULT_STORAGE_DIR = "filedir"
DEFAULT_CONFIG_STORE = "config.yaml"


@dataclass
class PreviewConfig:
    """Preview rendering settings."""

    text_bytes: int = 100
    image_width: int = 200
    escape: bool = True

    def to_options(self) -> PreviewOptions:
        return PreviewOptions(
            text_bytes=self.text_bytes,
            image_width=self.image_width,
            escape=self.escape,
        )


@dataclass
class PresetfileConfig:
    """Complete presetfile configuration."""

    scope: int = SYSTEM_SCOPE
    storage_dir: Path = field(default_factory=lambda: Path(DEFAULT_STORAGE_DIR))
    config_store: Path = field(default_factory=lambda: Path(DEFAULT_CONFIG_STORE))
    buckets: dict[str, dict[str, str]] = field(default_factory=dict)
    filetypes: dict[str, dict] = field(default_factory=dict)
    preview: PreviewConfig = field(default_factory=PreviewConfig)
    config_path: Path | None = None  # Path where config was loaded from

    @property
    def bucket_overrides(self) -> dict[str, dict[str, str]]:
        """Built-in bucket overrides with the configured ones on top."""
        return merged_overrides(self.buckets)

    def validate(self) -> None:
        """Validate configuration.

        Raises:
            PresetfileError: If configuration is invalid.
        """
        if self.scope < 0:
            raise PresetfileError("scope must be non-negative")

        if self.preview.text_bytes < 0:
            raise PresetfileError("preview.text_bytes must be non-negative")

        if self.preview.image_width <= 0:
            raise PresetfileError("preview.image_width must be positive")

        for plugin, names in self.buckets.items():
            if not isinstance(names, dict):
                raise PresetfileError(
                    f"buckets.{plugin} must map setting names to buckets"
                )
            for name, bucket in names.items():
                if not bucket or "/" in str(bucket):
                    raise PresetfileError(
                        f"Invalid bucket for {plugin}/{name}: {bucket!r}"
                    )

        for ext, data in self.filetypes.items():
            if not isinstance(data, dict) or "type" not in data:
                raise PresetfileError(f"filetypes.{ext} must define 'type'")


def find_config_file(start_path: Path | None = None) -> Path | None:
    """Find .presetfile.yaml by traversing up from start_path.

    Args:
        start_path: Directory to start searching from. Defaults to cwd.

    Returns:
        Path to config file if found, None otherwise.
    """
    if start_path is None:
        start_path = Path.cwd()
    else:
        start_path = Path(start_path).resolve()

    # If start_path is a file, use its parent directory
    if start_path.is_file():
        start_path = start_path.parent

    current = start_path
    while True:
        config_path = current / CONFIG_FILENAME
        if config_path.is_file():
            return config_path

        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config(
    config_path: Path | None = None,
    start_path: Path | None = None,
    storage_dir_override: Path | None = None,
    scope_override: int | None = None,
) -> PresetfileConfig:
    """Load configuration from file, environment, and overrides.

    Priority (highest to lowest):
    1. Function arguments
    2. Environment variables (PRESETFILE_STORAGE_DIR, PRESETFILE_SCOPE)
    3. Config file (.presetfile.yaml)
    4. Defaults

    Args:
        config_path: Explicit path to config file. If None, searches.
        start_path: Directory to start config file search from.
        storage_dir_override: Blob store directory from CLI argument.
        scope_override: Scope from CLI argument.

    Returns:
        Loaded and validated configuration.
    """
    config = PresetfileConfig()

    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.is_file():
            raise PresetfileError(f"Config file not found: {config_path}")
    else:
        config_path = find_config_file(start_path)

    if config_path is not None:
        config = _load_config_file(config_path)
        config.config_path = config_path

    env_storage = os.environ.get(ENV_STORAGE_DIR)
    if env_storage:
        config.storage_dir = Path(env_storage)

    env_scope = os.environ.get(ENV_SCOPE)
    if env_scope:
        try:
            config.scope = int(env_scope)
        except ValueError as e:
            raise PresetfileError(f"Invalid {ENV_SCOPE}: {env_scope!r}") from e

    if storage_dir_override is not None:
        config.storage_dir = Path(storage_dir_override)
    if scope_override is not None:
        config.scope = scope_override

    config.validate()
    return config


def _load_config_file(config_path: Path) -> PresetfileConfig:
    """Load configuration from a YAML file.

    Relative storage paths are resolved against the config file directory.

    Raises:
        PresetfileError: If file cannot be read or parsed.
    """
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise PresetfileError(f"Invalid YAML in {config_path}: {e}") from e
    except OSError as e:
        raise PresetfileError(f"Cannot read config file {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise PresetfileError(f"Config file {config_path} must contain a mapping")

    config = PresetfileConfig(config_path=config_path)
    base = config_path.parent

    if "scope" in data:
        try:
            config.scope = int(data["scope"])
        except (TypeError, ValueError) as e:
            raise PresetfileError(f"Invalid scope: {data['scope']!r}") from e

    for key in ("storage_dir", "config_store"):
        if key in data:
            path = Path(str(data[key]))
            if not path.is_absolute():
                path = base / path
            setattr(config, key, path)
        else:
            setattr(config, key, base / getattr(config, key))

    for section in ("buckets", "filetypes", "preview"):
        if data.get(section) is not None and not isinstance(data[section], dict):
            raise PresetfileError(f"'{section}' in {config_path} must be a mapping")

    if "buckets" in data and isinstance(data["buckets"], dict):
        for plugin, names in data["buckets"].items():
            if not isinstance(names, dict):
                raise PresetfileError(
                    f"buckets.{plugin} must map setting names to buckets"
                )
            config.buckets[str(plugin)] = {str(k): str(v) for k, v in names.items()}

    if "filetypes" in data and isinstance(data["filetypes"], dict):
        config.filetypes = {
            str(ext).lstrip(".").lower(): entry
            for ext, entry in data["filetypes"].items()
        }

    if "preview" in data and isinstance(data["preview"], dict):
        preview_data = data["preview"]
        try:
            config.preview = PreviewConfig(
                text_bytes=int(
                    preview_data.get("text_bytes", config.preview.text_bytes)
                ),
                image_width=int(
                    preview_data.get("image_width", config.preview.image_width)
                ),
                escape=bool(preview_data.get("escape", config.preview.escape)),
            )
        except (TypeError, ValueError) as e:
            raise PresetfileError(f"Invalid preview settings: {e}") from e

    return config


def create_default_config(path: Path | None = None) -> Path:
    """Create a default .presetfile.yaml config file.

    Args:
        path: Directory to create config in. Defaults to cwd.

    Returns:
        Path to created config file.

    Raises:
        PresetfileError: If file already exists or cannot be written.
    """
    if path is None:
        path = Path.cwd()
    else:
        path = Path(path)

    config_path = path / CONFIG_FILENAME

    if config_path.exists():
        raise PresetfileError(f"Config file already exists: {config_path}")

    config_content = f"""# presetfile configuration

# Scope of the settings' file buckets (1 = site-wide)
scope: {SYSTEM_SCOPE}

# Where stored files live (or use {ENV_STORAGE_DIR} env var)
storage_dir: "{DEFAULT_STORAGE_DIR}"

# YAML file holding scalar setting values
config_store: "{DEFAULT_CONFIG_STORE}"

# Settings whose files live in a differently named bucket
# buckets:
#   theme_boost:
#     presetfiles: preset

# Extra file types (only read before the first image lookup)
# filetypes:
#   heic:
#     type: "image/heic"
#     groups: ["image"]

# Preview rendering
preview:
  text_bytes: 100      # Bytes of text shown for non-image files
  image_width: 200     # Thumbnail width in pixels
  escape: true         # Escape file names and content
"""

    try:
        config_path.write_text(config_content)
    except OSError as e:
        raise PresetfileError(f"Cannot write config file: {e}") from e

    return config_path


def config_to_dict(config: PresetfileConfig) -> dict[str, Any]:
    """Convert config to dictionary for display."""
    return {
        "scope": config.scope,
        "storage_dir": str(config.storage_dir),
        "config_store": str(config.config_store),
        "buckets": config.bucket_overrides,
        "filetypes": config.filetypes or None,
        "preview": {
            "text_bytes": config.preview.text_bytes,
            "image_width": config.preview.image_width,
            "escape": config.preview.escape,
        },
        "config_path": str(config.config_path) if config.config_path else None,
    }

"""Command-line interface for presetfile."""

import logging
from pathlib import Path

import click
import yaml

from . import __version__
from .buckets import bucket_address
from .codec import EncodedPayload, LiveReference, PresetfileError
from .config import (
    CONFIG_FILENAME,
    config_to_dict,
    create_default_config,
    find_config_file,
    load_config,
)
from .filetypes import FileTypeRegistry, image_extensions
from .setting import SettingIdentity, StoredFileSetting, export_setting
from .storage import DirectoryBlobStore, MemoryAuditLog, YamlConfigStore


class _Context:
    """Lazily loaded configuration and stores shared by subcommands."""

    def __init__(self, config_path, storage_dir, scope):
        self.config_path = Path(config_path) if config_path else None
        self.storage_dir = Path(storage_dir) if storage_dir else None
        self.scope = scope
        self._config = None

    @property
    def config(self):
        if self._config is None:
            self._config = load_config(
                config_path=self.config_path,
                storage_dir_override=self.storage_dir,
                scope_override=self.scope,
            )
            # Extra file types only count if they arrive before the first lookup
            if not image_extensions.loaded:
                image_extensions.ensure_loaded(
                    FileTypeRegistry(extra=self._config.filetypes)
                )
        return self._config

    def setting(self, plugin, name, value):
        cfg = self.config
        return StoredFileSetting(
            SettingIdentity(plugin, name),
            value,
            DirectoryBlobStore(cfg.storage_dir),
            config_store=YamlConfigStore(cfg.config_store),
            audit_log=MemoryAuditLog(),
            scope=cfg.scope,
            overrides=cfg.bucket_overrides,
            preview=cfg.preview.to_options(),
        )


@click.group()
@click.version_option(version=__version__, prog_name="presetfile")
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True),
    help="Config file path",
)
@click.option(
    "-s",
    "--storage-dir",
    type=click.Path(file_okay=False),
    help="Blob store directory (or use config/env)",
)
@click.option("--scope", type=int, help="Scope of the settings' buckets")
@click.option("-v", "--verbose", is_flag=True, help="Log what is being done")
@click.pass_context
def main(ctx, config_path, storage_dir, scope, verbose):
    """Move file-backed settings in and out of presets.

    A file-backed setting stores one or more files in a plugin bucket.
    presetfile turns those files into a single transfer value that fits
    in a preset, and restores a transfer value back into the bucket.

    \b
    Quick start:
      presetfile config init                        # Create .presetfile.yaml
      presetfile export theme_boost logo > logo.txt # Capture stored files
      presetfile preview theme_boost logo logo.txt  # Look at a transfer value
      presetfile import theme_boost logo logo.txt   # Restore the files
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")
    ctx.obj = _Context(config_path, storage_dir, scope)


@main.command()
@click.argument("plugin")
@click.argument("name")
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, writable=True),
    help="Write the transfer value to a file instead of stdout",
)
@click.pass_obj
def export(obj, plugin, name, output):
    """Print the transfer value of the files stored for PLUGIN/NAME."""
    try:
        cfg = obj.config
        value = export_setting(
            SettingIdentity(plugin, name),
            DirectoryBlobStore(cfg.storage_dir),
            scope=cfg.scope,
            overrides=cfg.bucket_overrides,
        )
    except PresetfileError as e:
        raise click.ClickException(str(e))

    if not value:
        click.echo(f"No files stored for {plugin}/{name}", err=True)

    if output:
        Path(output).write_text(value, encoding="utf-8")
        click.echo(f"Exported: {plugin}/{name} -> {output}")
    else:
        click.echo(value, nl=False)


@main.command("import")
@click.argument("plugin")
@click.argument("name")
@click.argument("source", type=click.File("r"), default="-")
@click.pass_obj
def import_(obj, plugin, name, source):
    """Restore a transfer value from SOURCE (default stdin) into PLUGIN/NAME.

    All files currently stored for the setting are replaced.
    """
    value = source.read().strip()
    try:
        setting = obj.setting(plugin, name, EncodedPayload(value))
        result = setting.save_value()
    except PresetfileError as e:
        raise click.ClickException(str(e))

    if result is None:
        click.echo("Nothing to persist")
        return

    for filename in result.files:
        click.echo(f"Stored: {filename}")
    click.echo(f"{plugin}/{name}: {result.old_value!r} -> {result.new_value!r}")


@main.command()
@click.argument("plugin")
@click.argument("name")
@click.argument("source", type=click.File("r"), required=False)
@click.pass_obj
def preview(obj, plugin, name, source):
    """Print an HTML preview of PLUGIN/NAME.

    Previews the transfer value in SOURCE if given, otherwise the files
    currently stored for the setting.
    """
    try:
        if source is not None:
            value = EncodedPayload(source.read().strip())
        else:
            value = LiveReference(name)
        setting = obj.setting(plugin, name, value)
    except PresetfileError as e:
        raise click.ClickException(str(e))

    click.echo(setting.visible_value)


@main.command()
@click.argument("plugin")
@click.argument("name")
@click.pass_obj
def bucket(obj, plugin, name):
    """Show where the files of PLUGIN/NAME are stored."""
    try:
        cfg = obj.config
    except PresetfileError as e:
        raise click.ClickException(str(e))

    address = bucket_address(plugin, name, cfg.scope, cfg.bucket_overrides)
    click.echo(f"Bucket: {address.bucket}")
    click.echo(
        f"Address: scope={address.scope} plugin={address.plugin} "
        f"item={address.item_id} path={address.path}"
    )


@main.command()
@click.pass_obj
def types(obj):
    """List the file extensions previewed as images."""
    try:
        obj.config
    except PresetfileError as e:
        raise click.ClickException(str(e))

    for ext in sorted(image_extensions.extensions):
        click.echo(ext)


@main.group()
def config():
    """Manage presetfile configuration."""
    pass


@config.command("init")
@click.option(
    "-d",
    "--directory",
    type=click.Path(),
    default=".",
    help="Directory to create config in",
)
def config_init(directory):
    """Create a new .presetfile.yaml configuration file."""
    try:
        config_path = create_default_config(Path(directory))
        click.echo(f"Created: {config_path}")
    except PresetfileError as e:
        raise click.ClickException(str(e))


@config.command("show")
@click.pass_obj
def config_show(obj):
    """Display current configuration.

    Shows merged configuration from file, environment, and defaults.
    """
    try:
        data = config_to_dict(obj.config)
        click.echo(yaml.dump(data, default_flow_style=False, sort_keys=False))
    except PresetfileError as e:
        raise click.ClickException(str(e))


@config.command("where")
@click.option(
    "-d",
    "--directory",
    type=click.Path(exists=True),
    help="Directory to search from",
)
def config_where(directory):
    """Show which config file would be used.

    Searches up the directory tree for .presetfile.yaml.
    """
    start = Path(directory) if directory else Path.cwd()
    config_path = find_config_file(start)

    if config_path:
        click.echo(f"Config file: {config_path}")
    else:
        click.echo(f"No {CONFIG_FILENAME} found (searched from {start})")

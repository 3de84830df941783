"""Main entry point for layout-switcher CLI application."""

import logging
import signal
import sys
import threading
from datetime import timedelta
from pathlib import Path
from typing import Any

import typer

from common.backends import BackendNotAvailableError
from common.backends import create_backend
from common.backends import list_keyboard_devices
from common.logging_utils import setup_logging
from common.version import get_version_info
from switch_engine.clock import SystemClock
from switch_engine.engine import AutoSwitchEngine
from switch_engine.fingerprint import DeviceKey
from switch_engine.identity import pick_preferred
from switch_engine.profiles import Profile
from switch_engine.profiles import ProfileManager

from .config_loader import ConfigLoader
from .formatter import format_device
from .formatter import format_observation
from .formatter import format_watch_header
from .input_sources import CommandInputSourceService
from .models import AppConfig
from .state_file import StateStores
from .state_file import open_state
from .switcher_monitor import SwitcherMonitor

app = typer.Typer(
    help='⌨️  Layout Switcher - Follow the keyboard you type on with the right input layout',
    no_args_is_help=True
)

ConfigOption = typer.Option(None, '--config', help='Path to config file')


def _load_config(config: Path | None, debug: bool = False) -> AppConfig:
    """Load configuration or exit with a readable error."""
    try:
        app_config, _config_path = ConfigLoader.load(config)
    except FileNotFoundError as e:
        typer.echo(f'❌ Config file not found: {e}', err=True)
        typer.echo('\n💡 Tip: Create a config file at:', err=True)
        typer.echo('   ~/.config/layout-switcher/config.toml', err=True)
        raise typer.Exit(1) from e
    except Exception as e:
        typer.echo(f'❌ Failed to load config: {e}', err=True)
        raise typer.Exit(1) from e

    if debug:
        app_config.log_level = 'DEBUG'
        app_config.debug_mode = True

    return app_config


def _open_engine(config: Path | None) -> tuple[AutoSwitchEngine, StateStores]:
    """Open an engine over the persistent state, for one-shot commands."""
    app_config = _load_config(config)
    setup_logging('WARNING')
    stores = open_state(app_config.state_file)
    engine = AutoSwitchEngine(
        input_sources=CommandInputSourceService(app_config.sources, app_config.input),
        clock=SystemClock(),
        mapping_store=stores.mappings,
        override_store=stores.overrides,
        settings=stores.settings,
    )
    return engine, stores


def _find_device(engine: AutoSwitchEngine, device_id: str) -> DeviceKey:
    """Find a configured or connected keyboard by device id or primary id."""
    candidates = list(engine.mapping_store.all_known_device_keys())
    try:
        connected = list_keyboard_devices()
    except OSError:
        connected = []
    for device in connected:
        key = engine.canonicalize(device.fingerprint)
        if key not in candidates:
            candidates.append(key)

    for key in candidates:
        if key.id == device_id:
            return key
    same_primary = [key for key in candidates if key.primary_id == device_id]
    if same_primary:
        return pick_preferred(same_primary, None)

    typer.echo(f'❌ Unknown device: {device_id}', err=True)
    typer.echo("   Use 'layout-switcher devices' to list device ids", err=True)
    raise typer.Exit(1)


def _require_source(engine: AutoSwitchEngine, source_id: str) -> None:
    if not engine.input_sources.is_source_enabled(source_id):
        typer.echo(f'❌ Unknown or disabled input source: {source_id}', err=True)
        enabled = ', '.join(s.id for s in engine.input_sources.list_enabled_sources())
        typer.echo(f'   Enabled sources: {enabled}', err=True)
        raise typer.Exit(1)


def _echo_reload_hint() -> None:
    typer.echo("   A running switcher applies this on SIGHUP (pkill -HUP -f 'layout-switcher run')")


def setup_signal_handlers(monitor: SwitcherMonitor) -> None:
    """Setup signal handlers for graceful shutdown and state reload.

    Args:
        monitor: SwitcherMonitor instance to stop or reload
    """
    logger = logging.getLogger('layout_switcher')

    def stop_handler(signum: int, _frame: Any) -> None:
        """Handle SIGINT (Ctrl-C) and SIGTERM signals."""
        logger.info(f'Received signal {signum}, shutting down...')
        monitor.stop()
        if sys.stderr.isatty():
            typer.echo('\n\n👋 Stopping layout switcher...')

    def reload_handler(signum: int, _frame: Any) -> None:
        """Handle SIGHUP: reload state without blocking the interrupted thread."""
        logger.info(f'Received signal {signum}, reloading state...')
        threading.Thread(target=monitor.reload_state, daemon=True, name='state-reload').start()

    signal.signal(signal.SIGINT, stop_handler)
    signal.signal(signal.SIGTERM, stop_handler)
    signal.signal(signal.SIGHUP, reload_handler)


@app.command()
def run(
    config: Path | None = ConfigOption,
    debug: bool = typer.Option(False, '--debug', help='Enable debug logging'),
) -> None:
    """Run the layout switcher in the foreground.

    Watches every keyboard and selects the mapped input source when you
    start typing on another one. Stop with Ctrl+C.

    Examples:
        layout-switcher run
        layout-switcher run --debug
        layout-switcher run --config /path/to/config.toml
    """
    app_config = _load_config(config, debug)
    setup_logging(app_config.log_level, foreground=True, log_file=app_config.log_file)
    logger = logging.getLogger('layout_switcher')

    input_sources = CommandInputSourceService(app_config.sources, app_config.input)
    for command in input_sources.check_commands():
        typer.echo(f'⚠️  Warning: Command not found: {command}', err=True)

    try:
        backend = create_backend(rescan_interval=app_config.device_rescan_interval)
    except BackendNotAvailableError as e:
        typer.echo(f'❌ {e}', err=True)
        raise typer.Exit(1) from e

    monitor = SwitcherMonitor(app_config, input_sources, backend)
    setup_signal_handlers(monitor)

    typer.echo(f'✓ Starting layout switcher {get_version_info()}...')
    typer.echo('   Press Ctrl+C to stop')
    try:
        monitor.start()
    except KeyboardInterrupt:
        typer.echo('\n\n👋 Stopping layout switcher...')
    except BackendNotAvailableError as e:
        typer.echo(f'❌ {e}', err=True)
        raise typer.Exit(1) from e
    except Exception as e:
        logger.error(f'Fatal error: {e}', exc_info=True)
        raise typer.Exit(1) from e


@app.command()
def check_config(config: Path | None = ConfigOption) -> None:
    """Validate configuration file.

    Displays the configured input sources and checks that their commands
    exist.

    Examples:
        layout-switcher check-config
        layout-switcher check-config --config /path/to/config.toml
    """
    try:
        app_config, config_path = ConfigLoader.load(config)
    except FileNotFoundError as e:
        typer.echo(f'❌ Config file not found: {e}', err=True)
        raise typer.Exit(1) from e
    except Exception as e:
        typer.echo(f'❌ Configuration error: {e}', err=True)
        raise typer.Exit(1) from e

    typer.echo('✓ Configuration is valid\n')

    typer.echo(f'Config file: {config_path}')
    typer.echo(f'State file: {app_config.state_file}')
    typer.echo(f'Debounce: {app_config.debounce_ms}ms')
    typer.echo(f'Cooldown: {app_config.cooldown_ms}ms')
    typer.echo(f'Log level: {app_config.log_level}')
    if app_config.log_file:
        typer.echo(f'Log file: {app_config.log_file}')
    if app_config.input.query_command:
        typer.echo(f'Query command: {" ".join(app_config.input.query_command)}')

    typer.echo(f'\nConfigured sources ({len(app_config.sources)}):')
    input_sources = CommandInputSourceService(app_config.sources, app_config.input)
    missing = set(input_sources.check_commands())
    for idx, source in enumerate(app_config.sources, 1):
        typer.echo(f'\n{idx}. {source.id} ({source.name}){"" if source.enabled else " [DISABLED]"}')
        typer.echo(f'   Command: {" ".join(source.argv())}')
        if source.match:
            typer.echo(f'   Match: {source.match}')
        if source.command in missing:
            typer.echo('   ⚠️  Warning: Command not found')


@app.command()
def devices(config: Path | None = ConfigOption) -> None:
    """List connected keyboards with their device ids and mappings.

    Example:
        layout-switcher devices
    """
    engine, _stores = _open_engine(config)
    try:
        keyboards = list_keyboard_devices()
    except PermissionError as e:
        typer.echo(f'❌ {e}', err=True)
        raise typer.Exit(1) from e
    except OSError as e:
        typer.echo(f'❌ Error listing devices: {e}', err=True)
        raise typer.Exit(1) from e

    if not keyboards:
        typer.echo('❌ No keyboard devices found')
        raise typer.Exit(1)

    typer.echo('📱 Keyboard devices:\n')
    for idx, device in enumerate(keyboards, 1):
        key = engine.canonicalize(device.fingerprint)
        typer.echo(format_device(idx, device, key, engine.mapping_store.get_configuration(key)))
        typer.echo()


@app.command()
def watch(config: Path | None = ConfigOption) -> None:
    """Show which keyboard is typing and where it would switch, without switching.

    Example:
        layout-switcher watch
    """
    engine, _stores = _open_engine(config)
    try:
        backend = create_backend()
    except BackendNotAvailableError as e:
        typer.echo(f'❌ {e}', err=True)
        raise typer.Exit(1) from e

    last_key: list[DeviceKey | None] = [None]

    def on_event(fingerprint, _event_kind) -> None:
        key = engine.canonicalize(fingerprint)
        if key == last_key[0]:
            return
        last_key[0] = key
        sys.stdout.write(format_observation(key, engine.resolve_target(key)))
        sys.stdout.flush()

    def stop_handler(_signum: int, _frame: Any) -> None:
        backend.stop()

    signal.signal(signal.SIGTERM, stop_handler)
    sys.stdout.write(format_watch_header())
    try:
        backend.start(on_event)
    except KeyboardInterrupt:
        backend.stop()
    except BackendNotAvailableError as e:
        typer.echo(f'❌ {e}', err=True)
        raise typer.Exit(1) from e
    sys.stdout.write('\n\n👋 Exiting. Goodbye!\n')


@app.command(name='map')
def map_device(
    device_id: str = typer.Argument(..., help='Device id from "layout-switcher devices"'),
    source_id: str = typer.Argument(..., help='Input source id'),
    config: Path | None = ConfigOption,
) -> None:
    """Map a keyboard to an input source in the active profile.

    Example:
        layout-switcher map '1133-49948-usb-external-logitech k120@any-location' us
    """
    engine, _stores = _open_engine(config)
    key = _find_device(engine, device_id)
    _require_source(engine, source_id)
    engine.set_mapping(key, source_id)
    typer.echo(f'✓ {key.label} → {source_id}')
    _echo_reload_hint()


@app.command()
def unmap(
    device_id: str = typer.Argument(..., help='Device id'),
    config: Path | None = ConfigOption,
) -> None:
    """Remove a keyboard's mapping in the active profile (its fallback is kept)."""
    engine, _stores = _open_engine(config)
    key = _find_device(engine, device_id)
    engine.remove_mapping(key)
    typer.echo(f'✓ Removed mapping for {key.label}')
    _echo_reload_hint()


@app.command()
def fallback(
    device_id: str = typer.Argument(..., help='Device id'),
    source_id: str | None = typer.Argument(None, help='Fallback source id; omit to clear'),
    config: Path | None = ConfigOption,
) -> None:
    """Set or clear the per-device fallback source used when the mapping is unavailable."""
    engine, _stores = _open_engine(config)
    key = _find_device(engine, device_id)
    if source_id:
        _require_source(engine, source_id)
    engine.set_per_device_fallback(key, source_id)
    typer.echo(f'✓ Fallback for {key.label}: {source_id or "none"}')
    _echo_reload_hint()


@app.command(name='global-fallback')
def global_fallback(
    source_id: str | None = typer.Argument(None, help='Global fallback source id; omit to clear'),
    config: Path | None = ConfigOption,
) -> None:
    """Set or clear the source used for keyboards with nothing else configured."""
    engine, stores = _open_engine(config)
    if source_id:
        _require_source(engine, source_id)
    stores.settings.global_fallback_source_id = source_id
    typer.echo(f'✓ Global fallback: {source_id or "none"}')
    _echo_reload_hint()


@app.command()
def forget(
    device_id: str = typer.Argument(..., help='Device id'),
    config: Path | None = ConfigOption,
) -> None:
    """Forget everything stored for a keyboard in the active profile."""
    engine, _stores = _open_engine(config)
    key = _find_device(engine, device_id)
    engine.forget_device(key)
    typer.echo(f'✓ Forgot {key.label}')
    _echo_reload_hint()


@app.command()
def override(
    device_id: str = typer.Argument(..., help='Device id'),
    source_id: str = typer.Argument(..., help='Input source id'),
    minutes: int = typer.Option(60, '--minutes', min=1, help='Override duration in minutes'),
    config: Path | None = ConfigOption,
) -> None:
    """Temporarily send a keyboard to another source, ahead of its mapping.

    Example:
        layout-switcher override '1133-49948-usb-external-logitech k120@any-location' de --minutes 30
    """
    engine, _stores = _open_engine(config)
    key = _find_device(engine, device_id)
    _require_source(engine, source_id)
    entry = engine.set_temporary_override(key, source_id, timedelta(minutes=minutes), persist=True)
    if entry is None:
        typer.echo('❌ Override was not stored', err=True)
        raise typer.Exit(1)
    typer.echo(f'✓ {key.label} → {source_id} until {entry.expires_at.astimezone():%H:%M}')
    _echo_reload_hint()


@app.command(name='clear-override')
def clear_override(
    device_id: str = typer.Argument(..., help='Device id'),
    config: Path | None = ConfigOption,
) -> None:
    """Remove a keyboard's temporary override."""
    engine, _stores = _open_engine(config)
    key = _find_device(engine, device_id)
    engine.clear_temporary_override(key)
    typer.echo(f'✓ Cleared override for {key.label}')
    _echo_reload_hint()


@app.command()
def conflicts(config: Path | None = ConfigOption) -> None:
    """List mappings that point to missing or disabled input sources."""
    engine, _stores = _open_engine(config)
    found = engine.validate_mappings()
    if not found:
        typer.echo('✓ No mapping conflicts')
        return
    typer.echo(f'⚠️  {len(found)} mapping conflict(s):')
    for conflict in found:
        typer.echo(f'   {conflict.device_key.label} → {conflict.mapped_source_id} ({conflict.reason})')
        typer.echo(f'     ID: {conflict.device_key.id}')
    raise typer.Exit(1)


@app.command()
def resolve(
    device_id: str = typer.Argument(..., help='Device id'),
    config: Path | None = ConfigOption,
) -> None:
    """Show which source a keyboard resolves to and why."""
    engine, _stores = _open_engine(config)
    key = _find_device(engine, device_id)
    configuration = engine.mapping_store.get_configuration(key)
    live_override = engine.override_store.get(key.primary_id, engine.clock.now())

    typer.echo(f'{key.label}')
    typer.echo(f'   ID: {key.id}')
    typer.echo(f'   Profile: {engine.mapping_store.active_profile_id}')
    if live_override:
        until = live_override.expires_at.astimezone().strftime('%H:%M') if live_override.expires_at else 'restart'
        typer.echo(f'   Override: {live_override.source_id} (until {until})')
    if configuration:
        typer.echo(f'   Mapping: {configuration.mapping_source_id or "-"}')
        typer.echo(f'   Fallback: {configuration.per_device_fallback_source_id or "-"}')
    typer.echo(f'   Global fallback: {engine.settings.global_fallback_source_id or "-"}')
    typer.echo(f'   → Target: {engine.resolve_target(key) or "none"}')


@app.command()
def pause(
    minutes: int | None = typer.Option(None, '--minutes', min=1, help='Pause duration; omit to pause until resumed'),
    config: Path | None = ConfigOption,
) -> None:
    """Pause automatic switching."""
    engine, _stores = _open_engine(config)
    if minutes is None:
        engine.pause()
        typer.echo('✓ Auto-switch paused until resumed')
    else:
        until = engine.clock.now() + timedelta(minutes=minutes)
        engine.pause(until)
        typer.echo(f'✓ Auto-switch paused until {until.astimezone():%H:%M}')
    _echo_reload_hint()


@app.command()
def resume(config: Path | None = ConfigOption) -> None:
    """Resume automatic switching."""
    engine, _stores = _open_engine(config)
    engine.resume()
    engine.set_auto_switch_enabled(True)
    typer.echo('✓ Auto-switch resumed')
    _echo_reload_hint()


@app.command()
def disable(config: Path | None = ConfigOption) -> None:
    """Turn automatic switching off until 'resume'."""
    engine, _stores = _open_engine(config)
    engine.set_auto_switch_enabled(False)
    typer.echo('✓ Auto-switch disabled')
    _echo_reload_hint()


@app.command()
def ignore(
    device_id: str = typer.Argument(..., help='Device id'),
    config: Path | None = ConfigOption,
) -> None:
    """Never switch for a keyboard (e.g. a barcode scanner)."""
    _set_device_enabled(device_id, False, config)


@app.command()
def unignore(
    device_id: str = typer.Argument(..., help='Device id'),
    config: Path | None = ConfigOption,
) -> None:
    """Switch for a previously ignored keyboard again."""
    _set_device_enabled(device_id, True, config)


def _set_device_enabled(device_id: str, enabled: bool, config: Path | None) -> None:
    engine, stores = _open_engine(config)
    key = _find_device(engine, device_id)
    rule = stores.settings.device_filter
    rule.set_device_enabled(enabled, key.fingerprint)
    stores.settings.device_filter = rule
    typer.echo(f'✓ {key.label} {"enabled" if enabled else "ignored"}')
    _echo_reload_hint()


@app.command()
def profiles(config: Path | None = ConfigOption) -> None:
    """List mapping profiles; the active one is marked with *."""
    _engine, stores = _open_engine(config)
    active = stores.profiles.active_profile_id
    for profile in stores.profiles.profiles:
        marker = '*' if profile.id == active else ' '
        typer.echo(f'{marker} {profile.name} ({profile.id})')


@app.command(name='profile-create')
def profile_create(
    name: str = typer.Argument(..., help='Profile name'),
    config: Path | None = ConfigOption,
) -> None:
    """Create a new, empty mapping profile."""
    _engine, stores = _open_engine(config)
    profile = stores.profiles.create_profile(name)
    typer.echo(f'✓ Created profile {profile.name} ({profile.id})')


def _find_profile(manager: ProfileManager, profile: str) -> Profile:
    """Look a profile up by id, then by case-insensitive name, or exit 1."""
    target = manager.get(profile) or next(
        (p for p in manager.profiles if p.name.lower() == profile.strip().lower()), None
    )
    if target is None:
        typer.echo(f'❌ Unknown profile: {profile}', err=True)
        raise typer.Exit(1)
    return target


@app.command(name='profile-use')
def profile_use(
    profile: str = typer.Argument(..., help='Profile id or name'),
    config: Path | None = ConfigOption,
) -> None:
    """Make a profile active."""
    _engine, stores = _open_engine(config)
    target = _find_profile(stores.profiles, profile)
    stores.profiles.set_active_profile(target.id)
    typer.echo(f'✓ Active profile: {target.name}')
    _echo_reload_hint()


@app.command(name='profile-rename')
def profile_rename(
    profile: str = typer.Argument(..., help='Profile id or name'),
    name: str = typer.Argument(..., help='New profile name'),
    config: Path | None = ConfigOption,
) -> None:
    """Rename a mapping profile."""
    _engine, stores = _open_engine(config)
    target = _find_profile(stores.profiles, profile)
    if not stores.profiles.rename_profile(target.id, name):
        typer.echo('❌ Profile name must not be blank', err=True)
        raise typer.Exit(1)
    typer.echo(f'✓ Renamed profile {target.id} to {target.name}')
    _echo_reload_hint()


@app.command(name='profile-delete')
def profile_delete(
    profile: str = typer.Argument(..., help='Profile id or name'),
    config: Path | None = ConfigOption,
) -> None:
    """Delete a mapping profile together with its device mappings."""
    _engine, stores = _open_engine(config)
    target = _find_profile(stores.profiles, profile)
    if not stores.profiles.delete_profile(target.id):
        typer.echo('❌ The last remaining profile cannot be deleted', err=True)
        raise typer.Exit(1)
    stores.mappings.remove_profile_data(target.id)
    typer.echo(f'✓ Deleted profile {target.name}')
    active = stores.profiles.get(stores.profiles.active_profile_id)
    typer.echo(f'   Active profile: {active.name}')
    _echo_reload_hint()


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f'layout-switcher {get_version_info()}')


if __name__ == '__main__':
    app()

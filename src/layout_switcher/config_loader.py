"""Configuration loader for layout-switcher.

This module handles loading and validating TOML configuration files.
"""

import tomllib
from pathlib import Path
from typing import ClassVar

from .models import AppConfig
from .models import InputConfig
from .models import SourceConfig


class ConfigLoader:
    """Load and validate TOML configuration files."""

    DEFAULT_PATHS: ClassVar[list[Path]] = [
        Path.home() / '.config/layout-switcher/config.toml',
        Path('/etc/layout-switcher/config.toml'),
    ]

    @staticmethod
    def load(config_path: Path | None = None) -> tuple[AppConfig, Path]:
        """Load configuration from TOML file.

        Args:
            config_path: Path to config file. If None, tries default paths.

        Returns:
            tuple[AppConfig, Path]: Parsed configuration and path to loaded file

        Raises:
            FileNotFoundError: If config file not found
            ValueError: If configuration is invalid
            tomllib.TOMLDecodeError: If TOML syntax is invalid
        """
        if config_path:
            if not config_path.exists():
                raise FileNotFoundError(f'Config file not found: {config_path}')  # noqa: TRY003
            config = ConfigLoader._load_from_path(config_path)
            return (config, config_path.resolve())

        for path in ConfigLoader.DEFAULT_PATHS:
            if path.exists():
                config = ConfigLoader._load_from_path(path)
                return (config, path.resolve())

        paths_str = ', '.join(str(p) for p in ConfigLoader.DEFAULT_PATHS)
        raise FileNotFoundError(  # noqa: TRY003
            f'Config file not found. Tried: {paths_str}\n'
            f'Create a config file at one of these locations.'
        )

    @staticmethod
    def _load_from_path(path: Path) -> AppConfig:
        """Load and parse TOML from specific path.

        Raises:
            ValueError: If configuration is invalid
            tomllib.TOMLDecodeError: If TOML syntax is invalid
        """
        try:
            with path.open('rb') as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise tomllib.TOMLDecodeError(  # noqa: TRY003
                f'Invalid TOML syntax in {path}: {e}'
            ) from e

        return ConfigLoader._parse_config(data)

    @staticmethod
    def _parse_config(data: dict) -> AppConfig:
        """Parse TOML data into AppConfig.

        Args:
            data: Parsed TOML data

        Returns:
            AppConfig: Validated configuration object

        Raises:
            ValueError: If configuration is invalid
            TypeError: If a field has the wrong type
        """
        app_data = data.get('app', {})

        log_level = str(app_data.get('log_level', 'INFO')).upper()
        debug_mode = app_data.get('debug_mode', False)
        if not isinstance(debug_mode, bool):
            raise TypeError("'debug_mode' must be a boolean")  # noqa: TRY003

        log_file = None
        log_file_str = app_data.get('log_file')
        if log_file_str:
            log_file = Path(log_file_str).expanduser()

        optional_paths = {}
        state_file_str = app_data.get('state_file')
        if state_file_str:
            optional_paths['state_file'] = Path(state_file_str).expanduser()

        debounce_ms = ConfigLoader._number(app_data, 'debounce_ms', 400)
        cooldown_ms = ConfigLoader._number(app_data, 'cooldown_ms', 1500)
        rescan_interval = ConfigLoader._number(app_data, 'device_rescan_interval', 2.0)

        input_config = ConfigLoader._parse_input(data.get('input', {}))

        sources_data = data.get('sources', [])
        if not sources_data:
            raise ValueError('Configuration must have at least one [[sources]] section')  # noqa: TRY003

        sources = []
        for idx, source_data in enumerate(sources_data, 1):
            try:
                sources.append(ConfigLoader._parse_source(source_data))
            except ValueError as e:
                raise ValueError(f'Error in source #{idx}: {e}') from e  # noqa: TRY003

        try:
            config = AppConfig(
                log_level=log_level,
                log_file=log_file,
                debounce_ms=debounce_ms,
                cooldown_ms=cooldown_ms,
                device_rescan_interval=rescan_interval,
                debug_mode=debug_mode,
                input=input_config,
                sources=sources,
                **optional_paths,
            )
        except ValueError as e:
            raise ValueError(f'Invalid configuration: {e}') from e  # noqa: TRY003

        return config

    @staticmethod
    def _number(data: dict, name: str, default: float) -> float:
        value = data.get(name, default)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"'{name}' must be a number")  # noqa: TRY003
        return value

    @staticmethod
    def _string_list(data: dict, name: str) -> list[str] | None:
        value = data.get(name)
        if value is None:
            return None
        if not isinstance(value, list):
            raise TypeError(f"'{name}' must be a list")  # noqa: TRY003
        if not all(isinstance(item, str) for item in value):
            raise ValueError(f'All {name} entries must be strings')  # noqa: TRY003
        return value

    @staticmethod
    def _parse_input(data: dict) -> InputConfig:
        """Parse the [input] section.

        Raises:
            ValueError: If the section is invalid
        """
        try:
            return InputConfig(
                query_command=ConfigLoader._string_list(data, 'query_command'),
                command_timeout=ConfigLoader._number(data, 'command_timeout', 2.0),
            )
        except ValueError as e:
            raise ValueError(f'Error in [input]: {e}') from e  # noqa: TRY003

    @staticmethod
    def _parse_source(data: dict) -> SourceConfig:
        """Parse input source configuration from TOML data.

        Args:
            data: Source section from TOML

        Returns:
            SourceConfig: Parsed source configuration

        Raises:
            ValueError: If source configuration is invalid
        """
        source_id = data.get('id')
        if not source_id:
            raise ValueError("Source must have 'id' field")  # noqa: TRY003
        if not isinstance(source_id, str):
            raise TypeError("'id' must be a string")  # noqa: TRY003

        command = data.get('command')
        if not command:
            raise ValueError("Source must have 'command' field")  # noqa: TRY003
        if not isinstance(command, str):
            raise TypeError("'command' must be a string")  # noqa: TRY003

        args = ConfigLoader._string_list(data, 'args') or []

        name = data.get('name', '')
        if not isinstance(name, str):
            raise TypeError("'name' must be a string")  # noqa: TRY003

        match = data.get('match', '')
        if not isinstance(match, str):
            raise TypeError("'match' must be a string")  # noqa: TRY003

        enabled = data.get('enabled', True)
        if not isinstance(enabled, bool):
            raise TypeError("'enabled' must be a boolean")  # noqa: TRY003

        return SourceConfig(
            id=source_id,
            command=command,
            args=args,
            name=name,
            match=match,
            enabled=enabled,
        )

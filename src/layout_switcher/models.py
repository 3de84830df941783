"""Data models for layout-switcher configuration."""

from dataclasses import dataclass
from dataclasses import field
from datetime import timedelta
from pathlib import Path

LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR')


@dataclass
class SourceConfig:
    """Configuration for a single input source.

    Attributes:
        id: Stable source id used in device mappings (e.g. "us")
        command: Command that selects this source
        args: Command-line arguments for the command
        name: Human-readable name, defaults to the id
        match: Substring identifying this source in the query command's
            output; the id itself is used when empty
        enabled: Disabled sources are never selected and mappings to
            them are reported as conflicts
    """
    id: str
    command: str
    args: list[str] = field(default_factory=list)
    name: str = ''
    match: str = ''
    enabled: bool = True

    def argv(self) -> list[str]:
        """Return the full command line that selects this source."""
        return [self.command, *self.args]

    def __post_init__(self) -> None:
        """Validate the source configuration."""
        if not self.id or not self.id.strip():
            raise ValueError('Source must have an id')  # noqa: TRY003
        if not self.command:
            raise ValueError(f'Source {self.id} must have a command')  # noqa: TRY003
        self.id = self.id.strip()
        if not self.name:
            self.name = self.id


@dataclass
class InputConfig:
    """How the OS input source is queried.

    Attributes:
        query_command: Command whose output names the current source;
            None means the last selected source is assumed current
        command_timeout: Timeout in seconds for query and select commands
    """
    query_command: list[str] | None = None
    command_timeout: float = 2.0

    def __post_init__(self) -> None:
        if self.query_command is not None and not self.query_command:
            raise ValueError('query_command must not be empty')  # noqa: TRY003
        if self.command_timeout <= 0:
            raise ValueError(f'command_timeout must be positive, got {self.command_timeout}')  # noqa: TRY003


@dataclass
class AppConfig:
    """Application configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Path to log file (None for no file logging)
        state_file: JSON file holding mappings, overrides and settings
        debounce_ms: Stable time on a device before switching
        cooldown_ms: Minimum time between two successful switches
        device_rescan_interval: Seconds between hot-plug scans
        debug_mode: Enable debug mode with additional logging
        input: Input source query settings
        sources: Configured input sources
    """
    log_level: str = 'INFO'
    log_file: Path | None = None
    state_file: Path = field(default_factory=lambda: Path.home() / '.local/state/layout-switcher/state.json')
    debounce_ms: int = 400
    cooldown_ms: int = 1500
    device_rescan_interval: float = 2.0
    debug_mode: bool = False
    input: InputConfig = field(default_factory=InputConfig)
    sources: list[SourceConfig] = field(default_factory=list)

    @property
    def debounce(self) -> timedelta:
        return timedelta(milliseconds=self.debounce_ms)

    @property
    def cooldown(self) -> timedelta:
        return timedelta(milliseconds=self.cooldown_ms)

    def get_source(self, source_id: str) -> SourceConfig | None:
        for source in self.sources:
            if source.id == source_id:
                return source
        return None

    def __post_init__(self) -> None:
        """Validate the application configuration."""
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f'Invalid log_level: {self.log_level}')  # noqa: TRY003

        if self.debounce_ms < 0:
            raise ValueError(f'debounce_ms must not be negative, got {self.debounce_ms}')  # noqa: TRY003
        if self.cooldown_ms < 0:
            raise ValueError(f'cooldown_ms must not be negative, got {self.cooldown_ms}')  # noqa: TRY003
        if self.device_rescan_interval <= 0:
            raise ValueError(  # noqa: TRY003
                f'device_rescan_interval must be positive, got {self.device_rescan_interval}'
            )

        if not self.sources:
            raise ValueError('Configuration must have at least one source')  # noqa: TRY003

        seen_ids = set()
        for source in self.sources:
            if source.id in seen_ids:
                raise ValueError(f'Duplicate source id: {source.id}')  # noqa: TRY003
            seen_ids.add(source.id)

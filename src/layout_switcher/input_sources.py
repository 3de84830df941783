"""Command-driven input sources.

Selecting a source runs its configured command (``setxkbmap us``,
``gsettings ...``, ``swaymsg ...``). The current source is read from an
optional query command; without one the last source successfully selected
is assumed to still be current.
"""

import logging
import subprocess

from switch_engine.ports import InputSource

from .models import InputConfig
from .models import SourceConfig


class CommandInputSourceService:
    """Input-source service backed by external commands.

    Args:
        sources: Configured input sources
        input_config: Query command and command timeout
    """

    def __init__(self, sources: list[SourceConfig], input_config: InputConfig | None = None) -> None:
        self.sources = {source.id: source for source in sources}
        self.input_config = input_config or InputConfig()
        self.logger = logging.getLogger('layout_switcher.input_sources')
        self._last_selected: str | None = None

    def list_enabled_sources(self) -> list[InputSource]:
        return [
            InputSource(id=source.id, name=source.name)
            for source in self.sources.values()
            if source.enabled
        ]

    def is_source_enabled(self, source_id: str) -> bool:
        source = self.sources.get(source_id)
        return source is not None and source.enabled

    def current_source(self) -> str | None:
        """Return the id of the active source, or None if it cannot be told.

        Example:
            >>> service.current_source()
            'us'
        """
        if self.input_config.query_command is None:
            return self._last_selected

        output = self._run(self.input_config.query_command, capture=True)
        if output is None:
            return self._last_selected
        return self.match_output(output)

    def match_output(self, output: str) -> str | None:
        """Find the configured source named in the query command's output.

        A source's ``match`` string is searched for as a substring; sources
        without one must appear as a whole word on some line. The first
        configured source that matches wins.
        """
        lines = output.splitlines()
        for source in self.sources.values():
            if source.match:
                if source.match in output:
                    return source.id
            elif any(source.id in line.split() for line in lines):
                return source.id
        return None

    def select_source(self, source_id: str) -> bool:
        """Run the command that activates a source.

        Returns:
            bool: True if the command exited with status 0
        """
        source = self.sources.get(source_id)
        if source is None:
            self.logger.error(f'Unknown input source: {source_id}')
            return False
        if not source.enabled:
            self.logger.warning(f'Input source {source_id} is disabled')
            return False

        self.logger.debug(f'Selecting {source_id}: {" ".join(source.argv())}')
        if self._run(source.argv(), capture=False) is None:
            return False
        self._last_selected = source_id
        return True

    def _run(self, argv: list[str], capture: bool) -> str | None:
        """Run a command, returning its stdout ('' when not captured) or None on failure."""
        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=self.input_config.command_timeout,
                check=False,
            )
        except FileNotFoundError:
            self.logger.error(
                f'Command not found: {argv[0]}\n'
                f'Make sure the command exists and is in PATH'
            )
            return None
        except PermissionError:
            self.logger.error(
                f'Permission denied executing: {argv[0]}\n'
                f'Check file permissions and executable flag'
            )
            return None
        except subprocess.TimeoutExpired:
            self.logger.error(f'Command timed out after {self.input_config.command_timeout}s: {argv[0]}')
            return None
        except OSError as e:
            self.logger.error(f"Failed to execute command '{argv[0]}': {e}")
            return None

        if result.returncode != 0:
            stderr = result.stderr.strip()
            self.logger.error(f"Command '{argv[0]}' exited with {result.returncode}: {stderr}")
            return None
        return result.stdout if capture else ''

    def check_commands(self) -> list[str]:
        """Return the configured commands that cannot be found.

        This can be used to validate commands at startup.
        """
        import shutil

        commands = [source.command for source in self.sources.values()]
        if self.input_config.query_command:
            commands.append(self.input_config.query_command[0])
        missing = []
        for command in commands:
            if shutil.which(command) is None and command not in missing:
                missing.append(command)
        return missing

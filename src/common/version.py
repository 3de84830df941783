"""Version information for layout-switcher, read from pyproject.toml."""

import tomllib
from dataclasses import dataclass
from importlib import metadata
from pathlib import Path

DISTRIBUTION_NAME = 'layout-switcher'


@dataclass
class VersionInfo:
    """Version information.

    Attributes:
        version: Version string (e.g., "0.3.0")
        release_date: Release date in ISO format, or None
    """

    version: str
    release_date: str | None = None

    def __str__(self) -> str:
        if self.release_date:
            return f'v{self.version} ({self.release_date})'
        return f'v{self.version}'


def _find_pyproject_toml() -> Path | None:
    # common/ -> src/ -> project root
    candidate = Path(__file__).resolve().parent.parent.parent / 'pyproject.toml'
    if candidate.exists():
        return candidate
    return None


def get_version_info() -> VersionInfo:
    """Get version information.

    The source checkout's pyproject.toml wins (it also carries the release
    date); an installed distribution's metadata is used otherwise.

    Returns:
        VersionInfo: Version and release date, or version 'unknown'
    """
    pyproject_path = _find_pyproject_toml()
    if pyproject_path is not None:
        try:
            with pyproject_path.open('rb') as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError):
            data = {}
        project = data.get('project', {})
        if project.get('version'):
            release_date = data.get('tool', {}).get(DISTRIBUTION_NAME, {}).get('release_date')
            return VersionInfo(str(project['version']), str(release_date) if release_date else None)

    try:
        return VersionInfo(metadata.version(DISTRIBUTION_NAME))
    except metadata.PackageNotFoundError:
        return VersionInfo('unknown')


__version__ = get_version_info().version

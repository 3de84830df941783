"""Layout Switcher - select the input source mapped to the keyboard being typed on.

The switcher watches every keyboard through evdev and runs the configured
command for the source mapped to whichever keyboard is typing.
"""

from common.version import __version__

__all__ = ['__version__']

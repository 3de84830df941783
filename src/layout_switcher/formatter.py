"""Output formatting utilities for the layout-switcher CLI."""

from common.backends import KeyboardDeviceInfo
from common.version import __version__
from switch_engine.fingerprint import DeviceKey
from switch_engine.mapping_store import DeviceConfiguration


def format_watch_header() -> str:
    """Format the header printed by the watch command.

    Returns:
        str: Formatted header string
    """
    return f"""⌨️  Layout Switcher v{__version__}
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
Showing which keyboard is typing (no switching)
Press Ctrl+C to exit

Type on a keyboard...
"""


def format_device(index: int, device: KeyboardDeviceInfo, key: DeviceKey,
                  configuration: DeviceConfiguration | None) -> str:
    """Format one keyboard of the devices listing."""
    fingerprint = device.fingerprint
    lines = [
        f'  {index}. {device.name}{" [VIRTUAL]" if device.is_virtual else ""}',
        f'     Path: {device.path}',
        f'     ID: {key.id}',
        f'     Vendor/product: {fingerprint.vendor_id:04x}:{fingerprint.product_id:04x}'
        f' ({fingerprint.transport or "unknown"}, {"built-in" if fingerprint.is_built_in else "external"})',
    ]
    if configuration is not None:
        lines.append(f'     Mapped to: {configuration.mapping_source_id or "-"}')
        if configuration.per_device_fallback_source_id:
            lines.append(f'     Fallback: {configuration.per_device_fallback_source_id}')
    return '\n'.join(lines)


def format_observation(key: DeviceKey, target: str | None) -> str:
    """Format the message shown when typing moves to another keyboard.

    Args:
        key: Canonical key of the keyboard now typing
        target: Source the switcher would select, None if nothing applies

    Returns:
        str: Formatted message with a ready-to-run map command when unmapped
    """
    if target is not None:
        return f'\n✓ {key.label}\n  ID: {key.id}\n  Target: {target}\n'
    return f"""
✓ {key.label}
  ID: {key.id}
  Target: none

  💡 Map it with:
     layout-switcher map '{key.id}' <source-id>
"""

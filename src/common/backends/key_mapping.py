"""Mapping between evdev key codes and canonical key names (str).

Only modifiers need an explicit table: every other key is reported by its
lower-cased evdev suffix ('KEY_A' -> 'a', 'KEY_F1' -> 'f1'), which is enough
to tell a modifier tap from typing.
"""

EVDEV_MODIFIERS: dict[str, str] = {
    'KEY_LEFTCTRL': 'ctrl_l', 'KEY_RIGHTCTRL': 'ctrl_r',
    'KEY_LEFTSHIFT': 'shift_l', 'KEY_RIGHTSHIFT': 'shift_r',
    'KEY_LEFTALT': 'alt_l', 'KEY_RIGHTALT': 'alt_r',
    'KEY_LEFTMETA': 'super_l', 'KEY_RIGHTMETA': 'super_r',
    'KEY_CAPSLOCK': 'caps_lock', 'KEY_FN': 'fn',
}


def evdev_to_key_name(keycode: str | list[str] | tuple[str, ...]) -> str:
    """Convert an evdev keycode name to a canonical key name.

    evdev reports aliased codes as a list (e.g. ['KEY_MIN_INTERESTING',
    'KEY_MUTE']); the first entry is used.

    Args:
        keycode: evdev keycode name or list of alias names

    Returns:
        str: Canonical key name

    Raises:
        KeyError: If the keycode list is empty

    Examples:
        >>> evdev_to_key_name('KEY_LEFTSHIFT')
        'shift_l'
        >>> evdev_to_key_name('KEY_Q')
        'q'
    """
    if isinstance(keycode, (list, tuple)):
        if not keycode:
            raise KeyError('Empty keycode list')
        keycode = keycode[0]
    if keycode in EVDEV_MODIFIERS:
        return EVDEV_MODIFIERS[keycode]
    suffix = keycode[4:] if keycode.startswith('KEY_') else keycode
    return suffix.lower()

"""Key name utilities.

Backends report canonical key names ("ctrl_l", "shift_r", "a", "f1").
The switcher only needs to know whether a key is a modifier: a stray
modifier tap must not count as "typing on this keyboard".
"""

from typing import Any

MODIFIER_KEYS = frozenset({
    'ctrl_l', 'ctrl_r',
    'shift_l', 'shift_r',
    'alt_l', 'alt_r', 'alt_gr',
    'super', 'super_l', 'super_r',
    'caps_lock', 'fn',
})


def normalize_key(key: Any) -> str:
    """Normalize a key to its canonical string name.

    Examples:
        >>> normalize_key('Ctrl_L')
        'ctrl_l'
    """
    if isinstance(key, str):
        return key.lower()
    return str(key).lower()


def is_modifier_key(key: Any) -> bool:
    """Check if a key is a modifier key.

    Modifier keys are: Ctrl, Shift, Alt, AltGr, Super/Win/Cmd, Caps Lock, Fn.
    Unknown keys (None) are treated as non-modifiers.

    Examples:
        >>> is_modifier_key('shift_r')
        True
        >>> is_modifier_key('a')
        False
    """
    if key is None:
        return False
    return normalize_key(key) in MODIFIER_KEYS

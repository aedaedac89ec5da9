"""ANSI colouring for console messages.

Whether the terminal supports colour is decided by the caller and passed in.
"""

from __future__ import annotations

ANSI_CODES = {
    "black": 30,
    "red": 31,
    "green": 32,
    "yellow": 33,
    "blue": 34,
    "magenta": 35,
    "cyan": 36,
    "white": 37,
}
RESET = "\033[0m"


def colorize(text: str, color: str, supports_color: bool, bold: bool = False) -> str:
    if not supports_color:
        return text
    try:
        code = ANSI_CODES[color]
    except KeyError:
        raise ValueError(f"Unknown color: {color}") from None
    prefix = f"\033[1;{code}m" if bold else f"\033[{code}m"
    return f"{prefix}{text}{RESET}"

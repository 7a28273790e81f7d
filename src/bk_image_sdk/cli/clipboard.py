"""Clipboard access for the image reference argument."""

from __future__ import annotations

import shutil
import subprocess

_CLIPBOARD_COMMANDS = (
    ("pbpaste",),
    ("xclip", "-selection", "clipboard", "-o"),
    ("wl-paste", "--no-newline"),
)


def read_clipboard() -> str | None:
    """Return trimmed clipboard text, or None when no clipboard tool yields any."""
    for command in _CLIPBOARD_COMMANDS:
        if shutil.which(command[0]) is None:
            continue
        try:
            result = subprocess.run(
                list(command),
                check=True,
                text=True,
                capture_output=True,
                timeout=5,
            )
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError):
            continue
        text = result.stdout.strip()
        if text:
            return text
    return None

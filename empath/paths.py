"""Location of the per-user state directory and store file."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

from .constants import APP_NAME, DB_FILE


def default_state_dir(environ: Mapping[str, str] | None = None) -> Path:
    """Return ``$XDG_STATE_HOME/empath``, or ``~/.local/state/empath``.

    Relative XDG_STATE_HOME values are ignored, as XDG requires.
    """
    env = os.environ if environ is None else environ
    override = env.get("XDG_STATE_HOME", "")
    if override and os.path.isabs(override):
        return Path(override) / APP_NAME
    home = env.get("HOME")
    base = Path(home) if home else Path.home()
    return base / ".local" / "state" / APP_NAME


def database_path(state_dir: Path) -> Path:
    return state_dir / DB_FILE

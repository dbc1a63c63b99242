"""Locating ``teamhub.toml``.

A store is usually driven from inside its root or one of its
subdirectories, so the settings file is looked up in the working
directory and then in each enclosing directory. ``TEAMHUB_CONFIG``
pins an exact file instead and disables the search.
"""

from __future__ import annotations

import os
from pathlib import Path

CONFIG_FILENAME = "teamhub.toml"
CONFIG_ENV_VAR = "TEAMHUB_CONFIG"


def find_config(start: Path | None = None) -> Path | None:
    """The settings file that applies to *start* (default: cwd), if any.

    When ``TEAMHUB_CONFIG`` is set it is the only candidate: a value
    that does not name an existing file yields None rather than falling
    back to the directory search. Otherwise the nearest ``teamhub.toml``
    in *start* or an ancestor wins.
    """
    pinned = os.environ.get(CONFIG_ENV_VAR)
    if pinned:
        explicit = Path(pinned)
        return explicit if explicit.is_file() else None

    origin = (start or Path.cwd()).resolve()
    for directory in (origin, *origin.parents):
        settings_file = directory / CONFIG_FILENAME
        if settings_file.is_file():
            return settings_file
    return None

"""Bundled template discovery.

Locates the layouts and system pages shipped inside the cmsstage package.
"""

from importlib.resources import files
from pathlib import Path


def get_templates_dir() -> Path:
    """Return path to bundled templates.

    Returns:
        Path to the directory containing the default layout and system pages.

    Raises:
        FileNotFoundError: If templates are not bundled.
    """
    templates = files("cmsstage").joinpath("templates")
    if not templates.is_dir():
        msg = "Bundled templates not found. Reinstall cmsstage with its package data."
        raise FileNotFoundError(msg)
    return Path(str(templates))

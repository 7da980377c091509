"""Configuration management for mosaicmap.

This module handles loading and managing configuration settings using
Dynaconf. Settings are loaded from multiple locations in order of
increasing priority:

1. Global settings (/etc/mosaicmap/)
2. User settings (~/.config/mosaicmap/)
3. Current directory settings (./)
4. Environment variable specified file (MOSAICMAP_SETTINGS_FILE_FOR_DYNACONF)

Any key can also be overridden with a ``MOSAICMAP_`` prefixed environment
variable, e.g. ``MOSAICMAP_TILE_SIZE=512``.

Attributes
----------
USER_DIR : pathlib.Path
    Path to user configuration directory.
GLOB_DIR : pathlib.Path
    Path to global configuration directory.
CURR_DIR : pathlib.Path
    Path to current working directory.
DEFAULTS : dict
    Fallback values for every recognized key.
settings : Dynaconf
    The Dynaconf settings object with loaded configuration.
"""
import os
import pathlib

from dynaconf import Dynaconf

USER_DIR = pathlib.Path("~/.config/mosaicmap").expanduser()
GLOB_DIR = pathlib.Path("/etc/mosaicmap/")
CURR_DIR = pathlib.Path("./").absolute()
settings_files = [
    GLOB_DIR / "settings.toml",
    GLOB_DIR / ".secrets.toml",
    USER_DIR / "settings.toml",
    USER_DIR / ".secrets.toml",
    CURR_DIR / "settings.toml",
    CURR_DIR / ".secrets.toml"
    ]
extra_file = os.getenv("MOSAICMAP_SETTINGS_FILE_FOR_DYNACONF")
if extra_file:
    settings_files.append(pathlib.Path(extra_file).absolute())

DEFAULTS = {
    "url_template": "https://tile.openstreetmap.org/{z}/{x}/{y}.png",
    "tile_size": 256,
    "max_zoom": 20,
    "fit_max_zoom": 17,
    "width": 300,
    "height": 300,
    "fetch_workers": 8,
    "request_timeout": 10,
    "user_agent": "mosaicmap/0.1",
    "verbose": False,
}

settings = Dynaconf(
    merge_enabled = True,
    envvar_prefix="MOSAICMAP",
    settings_files=[str(fn) for fn in settings_files],
    environments=True,
    load_dotenv=True,
)


def get(key):
    """Return a setting, falling back to the built-in default.

    Parameters
    ----------
    key : str
        Setting name, one of the keys in `DEFAULTS`.

    Returns
    -------
    object
        The configured value, or the default when unset.
    """
    return settings.get(key, DEFAULTS[key])


def change_env(new_env):
    """Change the active Dynaconf environment.

    Parameters
    ----------
    new_env : str
        The environment name to switch to (e.g., 'development', 'production').
    """
    settings.setenv(new_env)
    settings.reload()

"""Configuration management for iconic.

Provides Config dataclass with unified directory structure and load_config()
function to parse CLI arguments, environment variables, and defaults.

Default home is ./iconic-data (relative to current working directory).
Can be overridden with --home CLI flag or ICONIC_HOME environment variable.
Precedence: CLI flag > env var > default
"""

import functools
import os
import sys
import tomllib
from dataclasses import dataclass
from pathlib import Path


@dataclass
class Config:
    """Configuration with unified directory structure.

    All iconic data lives under a single home directory with organized subdirectories.
    """

    home: Path

    @property
    def icons_dir(self) -> Path:
        """Directory for the normalized icon catalog."""
        return self.home / "icons"

    @property
    def input_dir(self) -> Path:
        """Drop folder for new icons waiting to be normalized."""
        return self.home / "input-icons"

    @property
    def rejected_dir(self) -> Path:
        """Drop-folder files that could not be ingested are moved here."""
        return self.home / "rejected"

    @property
    def logs_dir(self) -> Path:
        """Directory for application logs."""
        return self.home / "logs"

    @property
    def data_dir(self) -> Path:
        """Directory for the SQLite settings database."""
        return self.home / "data"

    @functools.cached_property
    def config_toml(self) -> dict:
        """Read config.toml from home root, defaulting to empty dict."""
        path = self.home / "config.toml"
        try:
            with path.open("rb") as f:
                return tomllib.load(f)
        except (IOError, ValueError):
            return {}

    def ensure_dirs(self) -> None:
        """Create all subdirectories."""
        for path in (self.icons_dir, self.input_dir, self.rejected_dir, self.logs_dir, self.data_dir):
            path.mkdir(parents=True, exist_ok=True)


def _home_from_args(args: list[str]) -> str | None:
    """Value following --home, if present."""
    if "--home" in args:
        i = args.index("--home")
        if i + 1 < len(args):
            return args[i + 1]
    return None


def load_config(args: list[str] | None = None) -> Config:
    """Resolve the home directory and create its subdirectories.

    The first of these wins: a `--home PATH` argument (sys.argv[1:] when
    `args` is None), the ICONIC_HOME environment variable, ./iconic-data.
    The returned Config always holds an absolute path.
    """
    if args is None:
        args = sys.argv[1:]
    home = _home_from_args(args) or os.environ.get("ICONIC_HOME") or "./iconic-data"
    cfg = Config(home=Path(home).resolve())
    cfg.ensure_dirs()
    return cfg


CONFIG: Config | None = None


def get_config() -> Config:
    """Returns the global CONFIG instance, loading it on first use."""
    global CONFIG
    if CONFIG is None:
        CONFIG = load_config()
    return CONFIG

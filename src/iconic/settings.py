"""Persisted icon settings.

Recognized keys:
    icon-selection-mode            static | cycle | random | per-query-random (default cycle)
    icon-rotation-interval         positive integer seconds (default 300)
    default-icon                   catalog filename (optional)
    date-specific-icons.<dd.mm>    catalog filename (optional, repeatable)

config.toml at the home root seeds these keys. Overrides go in a
[date-specific-icons] table, keyed either 24.12 or "24.12". Values changed
at runtime are written to the database and win over config.toml on the
next start.
"""

from dataclasses import dataclass, field

from loguru import logger

from .config import get_config
from .models import DateIcon, Setting
from .overrides import normalize_key
from .rotation import DEFAULT_INTERVAL

MODE_KEY = "icon-selection-mode"
INTERVAL_KEY = "icon-rotation-interval"
DEFAULT_ICON_KEY = "default-icon"
DATE_ICONS_KEY = "date-specific-icons"

DEFAULT_MODE = "cycle"


@dataclass
class IconSettings:
    mode: str = DEFAULT_MODE
    interval: int = DEFAULT_INTERVAL
    default_icon: str | None = None
    date_icons: dict[str, str] = field(default_factory=dict)


def _parse_interval(value: object, source: str) -> int | None:
    try:
        interval = int(str(value))
    except ValueError:
        logger.warning(f"{source}: invalid {INTERVAL_KEY} {value!r}, using default")
        return None
    if interval <= 0:
        logger.warning(f"{source}: {INTERVAL_KEY} must be positive, using default")
        return None
    return interval


def _flatten_date_keys(table: dict) -> dict[str, object]:
    """An unquoted 24.12 key is a TOML dotted key and parses as {"24": {"12": ...}}; join it back."""
    flat = {}
    for day, value in table.items():
        if isinstance(value, dict):
            for month, filename in value.items():
                flat[f"{day}.{month}"] = filename
        else:
            flat[str(day)] = value
    return flat


def settings_from_toml(toml: dict) -> IconSettings:
    """Build settings from a parsed config.toml, ignoring keys with bad values."""
    settings = IconSettings()
    if isinstance(toml.get(MODE_KEY), str):
        settings.mode = toml[MODE_KEY]
    if INTERVAL_KEY in toml:
        settings.interval = _parse_interval(toml[INTERVAL_KEY], "config.toml") or settings.interval
    if isinstance(toml.get(DEFAULT_ICON_KEY), str):
        settings.default_icon = toml[DEFAULT_ICON_KEY]
    date_icons = toml.get(DATE_ICONS_KEY)
    if isinstance(date_icons, dict):
        for key, filename in _flatten_date_keys(date_icons).items():
            try:
                settings.date_icons[normalize_key(str(key))] = str(filename)
            except ValueError as e:
                logger.warning(f"config.toml: ignoring date-specific icon: {e}")
    return settings


async def load_settings() -> IconSettings:
    """Load settings from config.toml, then apply values persisted in the database."""
    settings = settings_from_toml(get_config().config_toml)
    for row in await Setting.all():
        match row.key:
            case "icon-selection-mode":
                settings.mode = row.value
            case "icon-rotation-interval":
                settings.interval = _parse_interval(row.value, "database") or settings.interval
            case "default-icon":
                settings.default_icon = row.value or None  # empty means cleared at runtime
            case _:
                logger.debug(f"Ignoring unknown setting {row.key}")
    for date_icon in await DateIcon.all():
        if date_icon.filename:
            settings.date_icons[date_icon.day_key] = date_icon.filename
        else:
            settings.date_icons.pop(date_icon.day_key, None)  # removed at runtime
    return settings


async def save_mode(mode: str) -> None:
    await Setting.put(MODE_KEY, mode)


async def save_interval(interval: int) -> None:
    await Setting.put(INTERVAL_KEY, str(interval))


async def save_default_icon(filename: str | None) -> None:
    await Setting.put(DEFAULT_ICON_KEY, filename or "")


async def save_date_icon(day_key: str, filename: str) -> None:
    await DateIcon.update_or_create(day_key=day_key, defaults={"filename": filename})


async def delete_date_icon(day_key: str) -> None:
    """Record the removal, so a config.toml entry for the same day stays removed."""
    await DateIcon.update_or_create(day_key=day_key, defaults={"filename": ""})

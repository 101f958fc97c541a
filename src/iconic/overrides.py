"""Calendar overrides: day-keys (dd.mm) mapped to catalog filenames.

An override is stored by filename, not by index, so it survives refreshes
that reorder the catalog. If the file is later deleted or renamed, the key
dangles: resolution logs a warning and yields no override.
"""

import re
from datetime import datetime

from loguru import logger

from .catalog import CatalogSnapshot, IconEntry
from .errors import Dangling

_DAY_KEY_RE = re.compile(r"^\s*(?P<day>\d{1,2})[./-](?P<month>\d{1,2})\s*$")


def today(now: datetime) -> str:
    """Format `now` as the dd.mm day-key used for override lookup."""
    return now.strftime("%d.%m")


def normalize_key(day_key: str) -> str:
    """Normalize a user-supplied day-key such as ``1.2`` or ``01/02`` to ``01.02``.

    Raises ValueError for anything that is not a plausible day and month.
    """
    m = _DAY_KEY_RE.match(day_key)
    if not m:
        raise ValueError(f"Invalid date key {day_key!r}: expected dd.mm (e.g. 24.12)")
    day, month = int(m["day"]), int(m["month"])
    if not (1 <= day <= 31 and 1 <= month <= 12):
        raise ValueError(f"Date key out of range: {day_key!r} (day 1-31, month 1-12)")
    return f"{day:02d}.{month:02d}"


class DateOverrides:
    """In-memory DateOverrideMap. Persistence is the caller's job."""

    def __init__(self, mapping: dict[str, str] | None = None):
        self.mapping: dict[str, str] = {}
        for key, filename in (mapping or {}).items():
            try:
                self.mapping[normalize_key(key)] = filename
            except ValueError as e:
                logger.warning(f"Ignoring date-specific icon for {key}: {e}")

    def __contains__(self, day_key: str) -> bool:
        return day_key in self.mapping

    def __len__(self) -> int:
        return len(self.mapping)

    def add(self, day_key: str, identifier: str | int, snapshot: CatalogSnapshot) -> tuple[str, str]:
        """Bind `day_key` to the icon `identifier` names in `snapshot`.

        Returns the normalized key and the stored filename. Raises NotFound or ValueError.
        """
        key = normalize_key(day_key)
        entry = snapshot.resolve(identifier)
        self.mapping[key] = entry.name
        logger.info(f"Added date-specific icon for {key}: {entry.name}")
        return key, entry.name

    def remove(self, day_key: str) -> bool:
        """Remove the override for `day_key`. Returns False if there was none."""
        key = normalize_key(day_key)
        if self.mapping.pop(key, None) is None:
            return False
        logger.info(f"Removed date-specific icon for {key}")
        return True

    def lookup(self, now: datetime, snapshot: CatalogSnapshot) -> IconEntry | None:
        """Return the entry overriding `now`'s day. Raises Dangling if its file is gone."""
        key = today(now)
        filename = self.mapping.get(key)
        if filename is None:
            return None
        entry = snapshot.get(filename)
        if entry is None:
            raise Dangling(filename, f"Date-specific icon for {key}")
        return entry

    def resolve(self, now: datetime, snapshot: CatalogSnapshot) -> IconEntry | None:
        """Like lookup(), but a dangling override degrades to None with a warning."""
        try:
            return self.lookup(now, snapshot)
        except Dangling as e:
            logger.warning(f"{e}")
            return None

"""Icon selection for status queries.

Order of precedence for every query:
1. A date-specific override for today's dd.mm key, under every mode.
2. The mode's own policy:
   - static: the default icon
   - cycle: the icon pinned by the rotation scheduler, else the default
   - random / per-query-random: a uniformly random catalog entry, else the default
   - anything else: the default icon
3. Nothing, leaving the host's icon unset.

Selection only reads state; it never moves the cursor or touches the catalog.
"""

import random
from datetime import datetime
from enum import StrEnum

from loguru import logger

from .catalog import Catalog, IconEntry
from .icons import Icon
from .overrides import DateOverrides
from .rotation import RotationScheduler


class SelectionMode(StrEnum):
    STATIC = "static"
    CYCLE = "cycle"
    RANDOM = "random"
    # Behaves exactly like RANDOM; kept as its own mode for configurations that name it.
    PER_QUERY_RANDOM = "per-query-random"

    @classmethod
    def parse(cls, value: str) -> "SelectionMode":
        """Parse a mode name case-insensitively. Raises ValueError for unknown names."""
        name = value.strip().lower()
        if name == "per-ping-random":
            return cls.PER_QUERY_RANDOM
        try:
            return cls(name)
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise ValueError(f"Invalid mode {value!r}. Valid modes are: {valid}") from None


class SelectionEngine:
    def __init__(
        self,
        catalog: Catalog,
        overrides: DateOverrides,
        scheduler: RotationScheduler,
        mode: SelectionMode | str = SelectionMode.CYCLE,
        rng: random.Random | None = None,
    ):
        self.catalog = catalog
        self.overrides = overrides
        self.scheduler = scheduler
        self.mode = mode
        self.rng = rng or random.Random()

    def select(self, now: datetime) -> Icon | None:
        """Pick the icon for a status query at `now`, or None to leave it unset."""
        try:
            entry = self._select_entry(now)
        except Exception as e:
            logger.error(f"Error selecting icon: {e}")
            return None
        return entry.icon if entry else None

    def _select_entry(self, now: datetime) -> IconEntry | None:
        snapshot = self.catalog.snapshot
        override = self.overrides.resolve(now, snapshot)
        if override is not None:
            return override

        default = self.catalog.default
        match self.mode:
            case SelectionMode.STATIC:
                return default
            case SelectionMode.CYCLE:
                current = self.scheduler.current
                # The pinned entry must belong to the live snapshot
                if current is not None and snapshot.get(current.name) is current:
                    return current
                return default
            case SelectionMode.RANDOM | SelectionMode.PER_QUERY_RANDOM:
                if len(snapshot):
                    return snapshot[self.rng.randrange(len(snapshot))]
                return default
            case _:
                return default

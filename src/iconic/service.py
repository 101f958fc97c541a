"""Icon service layer for iconic.

Command-agnostic operations behind the /icon subcommands (refresh, download,
set, list, process, setinterval, setmode, adddateicon, removedateicon,
rename) plus the status-query hook. Each operation returns a value or raises
an IconError/ValueError; formatting replies and checking permissions is the
caller's job.

All methods must be called from the event loop. Blocking work is pushed to
worker threads by the catalog and ingestion layers.
"""

import asyncio
import random
from datetime import datetime

from loguru import logger

from . import settings as store
from .catalog import Catalog, IconEntry
from .config import Config, get_config
from .errors import NameConflict
from .fetch import RemoteFetcher
from .icons import Icon
from .ingest import IngestionPipeline, icon_filename
from .overrides import DateOverrides, normalize_key
from .rotation import RotationScheduler, validate_interval
from .selection import SelectionEngine, SelectionMode
from .settings import IconSettings


class IconService:
    """Wires catalog, overrides, rotation, selection and ingestion together."""

    def __init__(
        self,
        settings: IconSettings | None = None,
        config: Config | None = None,
        fetcher: RemoteFetcher | None = None,
        rng: random.Random | None = None,
    ):
        settings = settings or IconSettings()
        config = config or get_config()
        self.catalog = Catalog(config.icons_dir, settings.default_icon)
        self.overrides = DateOverrides(settings.date_icons)
        self.scheduler = RotationScheduler(self.catalog, settings.interval)
        self.selection = SelectionEngine(self.catalog, self.overrides, self.scheduler, _parse_mode(settings.mode), rng)
        self.ingestion = IngestionPipeline(self.catalog, config.input_dir, config.rejected_dir)
        self.fetcher = fetcher or RemoteFetcher()

    @classmethod
    async def load(cls, config: Config | None = None, **kwargs) -> "IconService":
        """Create a service from persisted settings. Requires the database."""
        return cls(await store.load_settings(), config, **kwargs)

    @property
    def mode(self) -> SelectionMode | str:
        return self.selection.mode

    async def start(self) -> None:
        """Ingest the drop folder, load the catalog and start rotation when in cycle mode."""
        logger.info("Loading icons...")
        await self.ingestion.process_input()
        if self.mode == SelectionMode.CYCLE:
            self.scheduler.start()

    async def stop(self) -> None:
        self.scheduler.stop()
        await self.fetcher.close()

    def on_status_query(self, now: datetime) -> Icon | None:
        """Pick the icon to answer a status query at `now`. None leaves the icon unset."""
        return self.selection.select(now)

    async def refresh(self) -> list[str]:
        """Rescan the icons directory. Returns the new ordered icon names."""
        snapshot = await self.catalog.refresh()
        return snapshot.names()

    async def download(self, url: str, name: str | None = None) -> IconEntry:
        """Fetch an image over HTTPS, normalize it into the catalog, and return the new entry."""
        filename = icon_filename(name)
        payload = await self.fetcher.fetch(url)
        return await self.ingestion.ingest_bytes(payload, filename)

    async def process_input(self) -> list[str]:
        """Normalize everything in the drop folder into the catalog. Returns stored names."""
        return await self.ingestion.process_input()

    async def set_default(self, identifier: str | int) -> IconEntry:
        """Make the icon named by index or filename the default. Raises NotFound."""
        entry = self.catalog.resolve(identifier)
        self.catalog.set_default(entry.name)
        await store.save_default_icon(entry.name)
        logger.info(f"Default icon set to {entry.name}")
        return entry

    async def set_interval(self, seconds: int) -> int:
        """Change the rotation interval, restarting rotation if it is running."""
        seconds = validate_interval(seconds)
        self.scheduler.interval = seconds
        await store.save_interval(seconds)
        logger.info(f"Icon rotation interval set to {seconds} seconds.")
        if self.mode == SelectionMode.CYCLE:
            self.scheduler.start()
        return seconds

    async def set_mode(self, mode: str) -> SelectionMode:
        """Switch selection mode. Rotation runs only in cycle mode. Raises ValueError."""
        parsed = SelectionMode.parse(mode)
        self.selection.mode = parsed
        await store.save_mode(parsed.value)
        logger.info(f"Icon selection mode set to {parsed.value}")
        self.scheduler.stop()
        if parsed == SelectionMode.CYCLE:
            self.scheduler.start()
        return parsed

    async def add_date_icon(self, day_key: str, identifier: str | int) -> tuple[str, str]:
        """Show the icon named by `identifier` on `day_key` every year. Returns (key, filename)."""
        key, filename = self.overrides.add(day_key, identifier, self.catalog.snapshot)
        await store.save_date_icon(key, filename)
        return key, filename

    async def remove_date_icon(self, day_key: str) -> bool:
        """Remove the override for `day_key`. Returns False if none was set."""
        removed = self.overrides.remove(day_key)
        if removed:
            await store.delete_date_icon(normalize_key(day_key))
        return removed

    async def rename(self, identifier: str | int, new_name: str) -> IconEntry:
        """Rename a catalog icon. Raises NotFound, NameConflict or ValueError.

        The default icon and date overrides keep pointing at the old filename.
        """
        entry = self.catalog.resolve(identifier)
        if not new_name.strip():
            raise ValueError("New icon name must not be empty")
        filename = icon_filename(new_name)
        source = self.catalog.directory / entry.name
        target = self.catalog.directory / filename
        if target.exists():
            raise NameConflict(filename)
        await asyncio.to_thread(source.rename, target)
        logger.info(f"Icon renamed from {entry.name} to {filename}")
        snapshot = await self.catalog.refresh()
        return snapshot.resolve(filename)

    # Defined last so the name does not shadow the builtin in annotations above.
    def list(self) -> list[str]:
        """Ordered icon names; a name's position is its index for this snapshot."""
        return self.catalog.names()


def _parse_mode(mode: str) -> SelectionMode | str:
    """Parse a persisted mode. Unknown names are kept as-is and serve the default icon."""
    try:
        return SelectionMode.parse(mode)
    except ValueError as e:
        logger.warning(f"{e}; serving the default icon only")
        return mode

"""Icon catalog: directory scanning and immutable ready-to-serve snapshots.

The catalog directory holds flat, normalized 64x64 PNG files. Each refresh
scans it in a worker thread, decodes every file into an Icon, and builds a
brand new CatalogSnapshot. The snapshot is swapped in on the event loop in a
single assignment, so a reader always sees either the old snapshot or the new
one, never a partial rebuild.

Indices are positions in one snapshot only. Anything that must survive a
refresh (the default icon, date overrides) is kept as a filename and resolved
again against whichever snapshot is live at the time.
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator

from loguru import logger

from .errors import InvalidImage, NotFound
from .icons import Icon, load_icon

CATALOG_SUFFIX = ".png"


@dataclass(frozen=True)
class IconEntry:
    index: int
    name: str
    icon: Icon


class CatalogSnapshot:
    """Ordered, indexable, read-only view of the catalog as of one scan."""

    def __init__(self, icons: list[Icon] | tuple[Icon, ...] = ()):
        self.entries: tuple[IconEntry, ...] = tuple(IconEntry(i, icon.name, icon) for i, icon in enumerate(icons))
        self._by_name = {entry.name: entry for entry in self.entries}

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[IconEntry]:
        return iter(self.entries)

    def __getitem__(self, index: int) -> IconEntry:
        return self.entries[index]

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def names(self) -> list[str]:
        return [entry.name for entry in self.entries]

    def get(self, name: str) -> IconEntry | None:
        return self._by_name.get(name)

    def resolve(self, identifier: str | int) -> IconEntry:
        """Find an entry by numeric index or literal filename. Raises NotFound."""
        index = _as_index(identifier)
        if index is not None:
            if 0 <= index < len(self.entries):
                return self.entries[index]
            raise NotFound(identifier)
        entry = self._by_name.get(str(identifier))
        if entry is None:
            raise NotFound(identifier)
        return entry


def _as_index(identifier: str | int) -> int | None:
    """Interpret `identifier` as an index if it is an int or a string of digits."""
    if isinstance(identifier, int):
        return identifier
    text = identifier.strip()
    if text.isdigit():
        return int(text)
    return None


def scan_directory(directory: Path) -> CatalogSnapshot:
    """Load every catalog file in `directory` into a new snapshot. Blocking.

    Files that fail to load are skipped with a warning; the rest still load.
    """
    icons = []
    try:
        paths = sorted(p for p in directory.iterdir() if p.is_file() and p.suffix.lower() == CATALOG_SUFFIX)
    except OSError as e:
        logger.warning(f"Cannot list icons directory {directory}: {e}")
        return CatalogSnapshot()
    for path in paths:
        try:
            icons.append(load_icon(path))
        except (InvalidImage, OSError) as e:
            logger.warning(f"Failed to load icon {path.name}: {e}")
    return CatalogSnapshot(icons)


class Catalog:
    """Owns the live snapshot and the configured default icon.

    All mutation happens on the event loop: refresh() awaits the worker-thread
    scan and only then swaps the result in and notifies listeners.
    """

    def __init__(self, directory: Path, default_name: str | None = None):
        self.directory = directory
        self.snapshot = CatalogSnapshot()
        self.default_name = default_name
        self.default: IconEntry | None = None
        self.listeners: list[Callable[[CatalogSnapshot], None]] = []
        self._started = 0  # Generation of the most recently started refresh
        self._applied = 0  # Generation of the snapshot currently live

    async def refresh(self) -> CatalogSnapshot:
        """Rescan the directory and swap in the new snapshot."""
        self._started += 1
        generation = self._started
        snapshot = await asyncio.to_thread(scan_directory, self.directory)
        if generation < self._applied:
            logger.debug(f"Discarding stale catalog scan (generation {generation} < {self._applied})")
            return self.snapshot
        self._applied = generation
        self.apply(snapshot)
        return snapshot

    def apply(self, snapshot: CatalogSnapshot) -> None:
        """Make `snapshot` live, re-resolve the default and notify listeners."""
        previous, self.snapshot = self.snapshot, snapshot
        self.default = self.lookup_default()
        if previous.names() != snapshot.names():
            logger.info(f"Loaded {len(snapshot)} icons.")
        for listener in self.listeners:
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Catalog listener {listener!r} failed: {e}")

    def resolve(self, identifier: str | int) -> IconEntry:
        return self.snapshot.resolve(identifier)

    def names(self) -> list[str]:
        return self.snapshot.names()

    def lookup_default(self) -> IconEntry | None:
        """Resolve the default icon by filename against the live snapshot."""
        if not self.default_name:
            return None
        entry = self.snapshot.get(self.default_name)
        if entry is None:
            logger.warning(f"Default icon file {self.default_name} does not exist.")
        return entry

    def set_default(self, name: str | None) -> IconEntry | None:
        self.default_name = name
        self.default = self.lookup_default()
        return self.default

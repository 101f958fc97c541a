"""Ingestion: validate, normalize and commit new images into the icon catalog.

Sources are the drop folder (input-icons/) and downloaded bytes. Each image
is decoded, scaled to 64x64 if needed, encoded as PNG and written atomically
into the catalog directory. Drop-folder files are deleted once their
normalized copy is written. A file that cannot be deleted is simply
normalized again on the next pass, which produces the same output. Files
that do not decode are moved to rejected/ instead of being retried forever.

Decode, resize and file I/O run in a worker thread. The catalog refresh that
follows every ingestion runs back on the event loop.
"""

import asyncio
import time
import uuid
from pathlib import Path

from loguru import logger

from .catalog import CATALOG_SUFFIX, Catalog, IconEntry
from .errors import InvalidImage
from .icons import normalize_bytes

INPUT_SUFFIXES = frozenset({".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp"})


def icon_filename(name: str | None) -> str:
    """Validate a user-chosen icon filename, generating one if empty and appending .png if missing.

    Raises ValueError for names that would escape the catalog directory.
    """
    if not name:
        return f"downloaded_{round(time.time() * 1000)}{CATALOG_SUFFIX}"
    name = name.strip()
    if not name or "/" in name or "\\" in name or name in (".", "..") or name.startswith("."):
        raise ValueError(f"Invalid icon name {name!r}")
    if not name.lower().endswith(CATALOG_SUFFIX):
        name += CATALOG_SUFFIX
    return name


def write_atomic(path: Path, payload: bytes) -> None:
    """Write `payload` to a temp file beside `path`, then rename it into place."""
    tmp_path = path.with_name(f".{path.stem}.tmp.{uuid.uuid4().hex}")
    try:
        tmp_path.write_bytes(payload)
        tmp_path.replace(path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


class IngestionPipeline:
    def __init__(self, catalog: Catalog, input_dir: Path, rejected_dir: Path):
        self.catalog = catalog
        self.input_dir = input_dir
        self.rejected_dir = rejected_dir

    @property
    def icons_dir(self) -> Path:
        return self.catalog.directory

    def store(self, payload: bytes, filename: str) -> Path:
        """Normalize `payload` and write it into the catalog as `filename`. Blocking.

        Raises InvalidImage if the payload does not decode; nothing is written then.
        """
        png = normalize_bytes(payload, filename)
        path = self.icons_dir / filename
        write_atomic(path, png)
        return path

    def ingest_file(self, source: Path) -> str:
        """Normalize one drop-folder file into the catalog and delete the source. Blocking.

        Returns the catalog filename. Raises InvalidImage or OSError, leaving the source in place.
        """
        filename = source.stem + CATALOG_SUFFIX
        self.store(source.read_bytes(), filename)
        try:
            source.unlink()
            logger.info(f"Input icon {source.name} processed and deleted.")
        except OSError as e:
            logger.warning(f"Failed to delete input icon {source.name}: {e}")
        return filename

    def reject(self, source: Path) -> None:
        """Move a drop-folder file aside so it is not retried on every pass. Blocking."""
        target = self.rejected_dir / source.name
        if target.exists():
            target = self.rejected_dir / f"{source.stem}_{round(time.time() * 1000)}{source.suffix}"
        try:
            source.replace(target)
            logger.info(f"Moved {source.name} to {target}")
        except OSError as e:
            logger.warning(f"Failed to move {source.name} to rejected: {e}")

    def scan_input(self) -> list[str]:
        """Ingest every accepted file in the drop folder. Blocking.

        Files that do not decode, or whose name collides with a file already
        stored in this pass, are moved to the rejected directory. Other
        per-file failures are logged and the file is retried next pass.
        """
        try:
            sources = sorted(p for p in self.input_dir.iterdir() if p.is_file() and p.suffix.lower() in INPUT_SUFFIXES)
        except OSError as e:
            logger.warning(f"Cannot list input directory {self.input_dir}: {e}")
            return []
        stored = []
        for source in sources:
            if source.stem + CATALOG_SUFFIX in stored:
                logger.warning(f"Input icon {source.name} would overwrite {source.stem}{CATALOG_SUFFIX}; rejecting")
                self.reject(source)
                continue
            try:
                stored.append(self.ingest_file(source))
            except InvalidImage as e:
                logger.warning(f"Invalid image file: {source.name} ({e})")
                self.reject(source)
            except OSError as e:
                logger.warning(f"Error processing image file {source.name}: {e}")
        return stored

    async def process_input(self) -> list[str]:
        """Ingest the drop folder in a worker thread, then refresh the catalog."""
        stored = await asyncio.to_thread(self.scan_input)
        if stored:
            logger.info(f"Processed {len(stored)} input icons: {', '.join(stored)}")
        await self.catalog.refresh()
        return stored

    async def ingest_bytes(self, payload: bytes, filename: str) -> IconEntry:
        """Normalize downloaded bytes into the catalog as `filename` and refresh.

        Returns the new catalog entry. Raises InvalidImage (the bytes are discarded).
        """
        await asyncio.to_thread(self.store, payload, filename)
        logger.info(f"Stored icon {filename}")
        snapshot = await self.catalog.refresh()
        return snapshot.resolve(filename)

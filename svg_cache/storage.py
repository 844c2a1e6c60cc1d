"""File-backed key-value store for generated SVG images."""

import contextlib
import re
import uuid
from pathlib import Path

import anyio
from loguru import logger

from .exceptions import StorageError

KEY_PATTERN = re.compile(r"[A-Za-z0-9_-]+")


class SvgStore:
    """Flat directory of ``{key}.svg`` files.

    Keys must already be sanitized; anything else is refused so a request
    can never address a file outside the directory.
    """

    suffix = ".svg"

    def __init__(self, root: Path | str):
        """Initialize the store.

        Args:
            root: Directory holding the cached files.
        """
        self.root = anyio.Path(root)

    async def startup(self) -> None:
        """Create the cache directory if it does not exist."""
        if not await self.root.exists():
            logger.info(f"Creating cache directory {self.root}")
        await self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> anyio.Path:
        """Get the file location for a key."""
        if not KEY_PATTERN.fullmatch(key):
            raise StorageError(f"Refusing unsanitized cache key: {key!r}")
        return self.root / f"{key}{self.suffix}"

    async def exists(self, key: str) -> bool:
        """Check whether an entry exists for the key."""
        return await self.path_for(key).is_file()

    async def read(self, key: str) -> str | None:
        """Read the stored body, or None when there is no entry."""
        try:
            data = await self.path_for(key).read_bytes()
        except FileNotFoundError:
            return None
        return data.decode("utf-8")

    async def write(self, key: str, content: str) -> None:
        """Persist content under the key.

        The body is written to a temporary file first and then moved into
        place, so readers only ever see complete files.
        """
        target = self.path_for(key)
        tmp = self.root / f".{key}.{uuid.uuid4().hex}.tmp"
        try:
            await tmp.write_bytes(content.encode("utf-8"))
            await tmp.replace(target)
        except OSError as e:
            logger.error(f"Failed to write {target}: {e}")
            with contextlib.suppress(OSError):
                await tmp.unlink(missing_ok=True)
            raise StorageError(f"Failed to write cache entry {key}: {e}") from e

    async def health_check(self) -> bool:
        """Check the cache directory is usable."""
        return await self.root.is_dir()

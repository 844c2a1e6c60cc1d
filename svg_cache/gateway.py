"""Cache gateway: key sanitization and the generate-or-serve flow."""

import asyncio
import re
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from functools import partial
from urllib.parse import unquote

import anyio
from loguru import logger

from .config import Settings
from .exceptions import (
    InvalidContentError,
    InvalidKeyError,
    KeyTooLongError,
    KeyTooShortError,
    ToolCallDecodeError,
    UnauthorizedError,
)
from .providers import SVG_OPEN, SvgGeneratorProtocol
from .storage import SvgStore

MIN_KEY_LENGTH = 3
MAX_KEY_LENGTH = 100

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def sanitize_name(raw_name: str) -> str:
    """Turn a user-supplied name into a cache key.

    The name is percent-decoded, then every character outside
    ``[A-Za-z0-9_-]`` becomes ``_``.

    Raises:
        KeyTooShortError: If the key is shorter than 3 characters.
        KeyTooLongError: If the key is longer than 100 characters.
    """
    key = _UNSAFE_CHARS.sub("_", unquote(raw_name, errors="replace"))

    if len(key) < MIN_KEY_LENGTH:
        raise KeyTooShortError("Filename too short")
    if len(key) > MAX_KEY_LENGTH:
        raise KeyTooLongError("Filename too long")

    return key


def resource_url(key: str) -> str:
    """Canonical URL of the cached image for a key."""
    return f"/{key}.svg"


@dataclass(frozen=True)
class CachedImage:
    """A persisted image."""

    key: str
    path: anyio.Path

    @property
    def url(self) -> str:
        return resource_url(self.key)


class CacheGateway:
    """Resolves names to cached images, generating missing ones."""

    def __init__(
        self,
        settings: Settings,
        store: SvgStore,
        generator: SvgGeneratorProtocol,
    ) -> None:
        """Initialize with injected dependencies."""
        self.settings = settings
        self.store = store
        self.generator = generator
        self._inflight: dict[str, asyncio.Task[None]] = {}

    async def startup(self) -> None:
        """Prepare the cache directory."""
        await self.store.startup()

    async def resolve(self, raw_name: str) -> CachedImage | None:
        """Find the cached image for a name.

        Returns:
            The cached image, or None on a cache miss.

        Raises:
            InvalidKeyError: If the sanitized key is out of range.
        """
        key = sanitize_name(raw_name)
        return await self._find(key)

    async def lookup(self, name: str) -> CachedImage | None:
        """Find a cached image by its exact key, without sanitizing."""
        try:
            if sanitize_name(name) != name:
                return None
        except InvalidKeyError:
            return None
        return await self._find(name)

    async def ensure(
        self,
        raw_name: str,
        supplied_secret: str | None = None,
        admit: Callable[[], None] | None = None,
    ) -> str:
        """Make sure an image exists for the name and return its URL.

        ``admit`` is called only on a cache miss, after the secret check and
        before generation starts. It may raise to refuse the generation.

        Raises:
            InvalidKeyError: If the sanitized key is out of range.
            UnauthorizedError: If generation is protected and the secret is wrong.
            RateLimitedError: If ``admit`` refuses the generation.
            InvalidContentError: If generation produced no SVG.
            UpstreamError: If the generation API call failed.
            StorageError: If the result could not be persisted.
        """
        key = sanitize_name(raw_name)

        if await self._find(key):
            logger.debug(f"Cache hit for {key}")
            return resource_url(key)

        logger.debug(f"Cache miss for {key}")
        self._authorize(supplied_secret)
        if admit is not None:
            admit()

        await self._generate_once(key)
        return resource_url(key)

    async def health_check(self) -> bool:
        """Check storage health."""
        try:
            return await self.store.health_check()
        except OSError as e:
            logger.error(f"Storage health check failed: {e}")
            return False

    async def _find(self, key: str) -> CachedImage | None:
        if await self.store.exists(key):
            return CachedImage(key=key, path=self.store.path_for(key))
        return None

    def _authorize(self, supplied_secret: str | None) -> None:
        if not self.settings.generation_protected:
            return
        expected = self.settings.secret_key or ""
        if supplied_secret is None or not secrets.compare_digest(
            supplied_secret.encode(), expected.encode()
        ):
            logger.warning("Rejected generation request with invalid key")
            raise UnauthorizedError("Invalid key")

    async def _generate_once(self, key: str) -> None:
        """Join the in-flight generation for the key, or start one."""
        task = self._inflight.get(key)
        if task is None:
            # The entry may have been stored since the caller missed
            if await self._find(key):
                logger.debug(f"{key} was stored while waiting, skipping generation")
                return
            task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._generate_and_store(key))
            self._inflight[key] = task
            task.add_done_callback(partial(self._finish_generation, key))
        else:
            logger.debug(f"Joining in-flight generation for {key}")
        await asyncio.shield(task)

    def _finish_generation(self, key: str, task: asyncio.Task[None]) -> None:
        self._inflight.pop(key, None)
        # Marks a failure as retrieved even when every waiter was cancelled
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Generation for {key} failed: {task.exception()!r}")

    async def _generate_and_store(self, key: str) -> None:
        try:
            generated = await self.generator.generate(key)
        except ToolCallDecodeError as e:
            logger.warning(f"Undecodable generation result for {key}: {e}")
            raise InvalidContentError("Invalid SVG content", content=None) from e

        content = generated.content
        if not content or not content.startswith(SVG_OPEN):
            logger.warning(f"Generated content for {key} is not an SVG document")
            raise InvalidContentError("Invalid SVG content", content=content)

        await self.store.write(key, content)
        logger.info(f"Stored {key}.svg ({len(content)} chars, model={generated.model})")

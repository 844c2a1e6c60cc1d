"""Domain-specific exceptions for the SVG cache service."""


class SvgCacheError(Exception):
    """Base exception for all SVG cache errors."""


class InvalidInputError(SvgCacheError):
    """The request did not carry a usable name."""


class InvalidKeyError(SvgCacheError):
    """The sanitized cache key falls outside the allowed length range."""


class KeyTooShortError(InvalidKeyError):
    """Sanitized key is shorter than the minimum length."""


class KeyTooLongError(InvalidKeyError):
    """Sanitized key is longer than the maximum length."""


class UnauthorizedError(SvgCacheError):
    """Supplied secret does not match the configured one."""


class InvalidContentError(SvgCacheError):
    """Generated content is missing or is not an SVG document."""

    def __init__(self, message: str, content: str | None = None) -> None:
        super().__init__(message)
        self.content = content


class ToolCallDecodeError(SvgCacheError):
    """The structured tool call payload could not be decoded."""


class UpstreamError(SvgCacheError):
    """The generation API call itself failed."""


class StorageError(SvgCacheError):
    """Error related to cache storage operations."""


class ConfigurationError(SvgCacheError):
    """Error related to configuration issues."""


class RateLimitedError(SvgCacheError):
    """The client exceeded the generation rate limit."""

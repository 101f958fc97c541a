"""Failure types raised by the icon catalog, ingestion and fetch layers.

Every failure the core reports to a caller is an IconError subclass. Callers
format their own messages; the core never produces user-facing text.
"""


class IconError(Exception):
    """Base class for all iconic failures."""


class NotFound(IconError, LookupError):
    """Raised when an index or filename does not match the current catalog."""

    def __init__(self, identifier: str | int) -> None:
        self.identifier = identifier
        super().__init__(f"No icon matches {identifier!r}")


class Dangling(NotFound):
    """Raised when a stored filename reference no longer exists in the catalog."""

    def __init__(self, filename: str, source: str) -> None:
        self.identifier = filename
        self.source = source
        IconError.__init__(self, f"{source} refers to missing icon {filename!r}")


class InvalidImage(IconError, ValueError):
    """Raised when bytes cannot be decoded as an image."""


class NameConflict(IconError, FileExistsError):
    """Raised when a rename target already exists in the catalog."""

    def __init__(self, filename: str) -> None:
        self.filename = filename
        super().__init__(f"An icon named {filename!r} already exists")


class FetchError(IconError):
    """Base class for remote download failures."""


class SchemeRejected(FetchError):
    """Raised before any network I/O when a URL is not https."""


class Timeout(FetchError):
    """Raised when connecting or reading exceeds the fetch timeout."""


class RemoteError(FetchError):
    """Raised for a non-200 response or a transport failure."""

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)


class UnsupportedContentType(FetchError):
    """Raised when the declared content type is not an image type."""

    def __init__(self, content_type: str) -> None:
        self.content_type = content_type
        super().__init__(f"URL does not point to an image (content-type {content_type!r})")


class TooLarge(FetchError):
    """Raised when a response declares or delivers more bytes than allowed."""

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(f"Image is too large ({size} bytes, limit {limit})")

"""Error taxonomy shared by the crawl pipeline."""

from __future__ import annotations


class CrawlerError(Exception):
    """Base class for every error raised by catalog-crawler."""


class NotFoundError(CrawlerError):
    """The requested entity no longer exists upstream."""

    def __init__(self, kind: str, entity_id: object) -> None:
        super().__init__(f"{kind} #{entity_id} not found")
        self.kind = kind
        self.entity_id = entity_id


class RedirectedError(CrawlerError):
    """The identifier now resolves to a different resource."""

    def __init__(self, kind: str, entity_id: object, location: str | None = None) -> None:
        super().__init__(f"{kind} #{entity_id} redirected to {location or 'unknown location'}")
        self.kind = kind
        self.entity_id = entity_id
        self.location = location


class SourceFetchError(CrawlerError):
    """Any upstream failure other than not-found or redirected."""


class PaginationError(CrawlerError):
    """Listing discovery exceeded its page bound."""


class FieldDefinitionError(CrawlerError):
    """A field registry was declared incorrectly."""


class FieldCycleError(FieldDefinitionError):
    """Fields depend on each other in a loop."""

    def __init__(self, path: list[str]) -> None:
        super().__init__("field dependency cycle: " + " -> ".join(path))
        self.path = path


class FieldComputationError(CrawlerError):
    """A field computation failed for one raw record."""

    def __init__(self, field: str, entity_id: object, cause: BaseException | None = None) -> None:
        message = f"field {field!r} failed for entity {entity_id!r}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)
        self.field = field
        self.entity_id = entity_id
        self.cause = cause


class UnknownJobKindError(CrawlerError):
    """A queued job has no dispatch handler."""


class StoreWriteError(CrawlerError):
    """The entity store rejected a write."""


class SessionNotFoundError(CrawlerError):
    """No crawl session with the given id exists."""


class InvalidSessionStateError(CrawlerError):
    """The session is not in a state that allows the requested step."""


__all__ = [
    "CrawlerError",
    "FieldComputationError",
    "FieldCycleError",
    "FieldDefinitionError",
    "InvalidSessionStateError",
    "NotFoundError",
    "PaginationError",
    "RedirectedError",
    "SessionNotFoundError",
    "SourceFetchError",
    "StoreWriteError",
    "UnknownJobKindError",
]

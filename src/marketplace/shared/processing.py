"""Synchronous command processing with persistence errors mapped to the marketplace taxonomy."""

from protean.exceptions import ExpectedVersionError, ObjectNotFoundError
from protean.utils.globals import current_domain

from marketplace.errors import ConcurrentModification, MarketplaceError, NotFound


def process(command, conflict: type[MarketplaceError] = ConcurrentModification, conflict_message: str | None = None):
    """Run ``command`` in its own unit of work and return the handler's result.

    A version conflict that outlived the framework's automatic retries means
    another writer committed first; it is raised as ``conflict``.
    """
    try:
        return current_domain.process(command, asynchronous=False)
    except ObjectNotFoundError as exc:
        raise NotFound(str(exc)) from exc
    except ExpectedVersionError as exc:
        raise conflict(conflict_message or "The record was modified concurrently, retry the request") from exc

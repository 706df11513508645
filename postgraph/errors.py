"""
Error types and error logging for postgraph.

Validation errors are raised on the write path and are never retryable
without changing the input. Lookup errors are raised on the read path and
never mutate state. The CLI logs full stack traces for debugging while
showing clean messages to users.
"""

import os
import traceback
from datetime import datetime, timezone
from pathlib import Path


class PostgraphError(Exception):
    """Base class for all postgraph errors."""


class TagValidationError(PostgraphError, ValueError):
    """A tag list was rejected by the taxonomy validator."""


class MalformedTagError(TagValidationError):
    """Tag is not of the form ``family/value``."""

    def __init__(self, tag: str):
        self.tag = tag
        super().__init__(f"Malformed tag (expected family/value): {tag!r}")


class UnknownFamilyError(TagValidationError):
    """Tag family is not part of the taxonomy."""

    def __init__(self, tag: str, family: str, allowed):
        self.tag = tag
        self.family = family
        self.allowed = tuple(allowed)
        super().__init__(
            f"Unknown tag family {family!r} in {tag!r}. "
            f"Allowed: {', '.join(self.allowed)}"
        )


class CardinalityError(TagValidationError):
    """Too few or too many tags of one family."""

    def __init__(self, family: str, minimum: int, maximum: int | None, observed: int):
        self.family = family
        self.minimum = minimum
        self.maximum = maximum
        self.observed = observed
        if maximum is not None and observed > maximum:
            detail = f"at most {maximum}"
        else:
            detail = f"at least {minimum}"
        super().__init__(
            f"Tag family {family!r} allows {detail}, got {observed}"
        )


class InvalidIdError(PostgraphError, ValueError):
    """Item identifier is not a normalized id."""


class ItemExistsError(PostgraphError, ValueError):
    """An item with this id has already been created."""


class MetadataError(PostgraphError, ValueError):
    """Post metadata (front matter) could not be parsed or is incomplete."""


class ItemNotFoundError(PostgraphError, LookupError):
    """No item with this id is known."""

    def __init__(self, id: str):
        self.id = id
        super().__init__(f"Item not found: {id}")


class GraphUnavailableError(PostgraphError, RuntimeError):
    """The engine was composed without graph support."""


def _error_log_path() -> Path:
    """Resolve error log path, respecting POSTGRAPH_STORE_PATH."""
    store = os.environ.get("POSTGRAPH_STORE_PATH")
    if store:
        return Path(store) / "postgraph-errors.log"
    return Path.home() / ".postgraph" / "postgraph-errors.log"


def log_exception(exc: Exception, context: str = "") -> Path:
    """
    Log exception with full traceback to file.

    Args:
        exc: The exception that occurred
        context: Optional context string (e.g., command name)

    Returns:
        Path to the error log file
    """
    log_path = _error_log_path()
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a") as f:
            f.write(f"\n{'='*60}\n")
            f.write(f"[{timestamp}]")
            if context:
                f.write(f" {context}")
            f.write("\n")
            f.write("".join(traceback.format_exception(exc)))
    except OSError:
        pass  # Can't write error log, don't crash over it
    return log_path

"""Failure types and the decision taken for each.

Nothing raised inside a reconciliation pass reaches the user. Every failure is
mapped to one of four kinds, and each kind has exactly one outcome: skip the
input, retry the call, abandon the mutation for this pass, or substitute a
default value.
"""

from enum import Enum


class ErrorKind(Enum):
    INVALID_INPUT = "invalid_input"
    TRANSIENT_STORE = "transient_store"
    CLASSIFICATION = "classification"
    PREFERENCE_LOAD = "preference_load"


class Decision(Enum):
    SKIP = "skip"
    RETRY = "retry"
    ABANDON = "abandon"
    DEFAULT = "default"


class TabGrouperError(Exception):
    kind: ErrorKind


class InvalidUrlError(TabGrouperError, ValueError):
    """URL is empty, unparseable, hostless or uses an excluded scheme."""

    kind = ErrorKind.INVALID_INPUT


class TabStoreError(TabGrouperError):
    """A host tab/group call failed. Assumed transient: the next event re-derives the need."""

    kind = ErrorKind.TRANSIENT_STORE


class TabNotFoundError(TabStoreError):
    pass


class ClassificationError(TabGrouperError):
    """Favicon could not be fetched, decoded or classified."""

    kind = ErrorKind.CLASSIFICATION


class PreferenceLoadError(TabGrouperError):
    kind = ErrorKind.PREFERENCE_LOAD


def classify_failure(kind: ErrorKind, retryable: bool = False) -> Decision:
    """Map a failure kind to what the caller must do about it.

    Args:
        kind: The failure kind
        retryable: Whether the failed call sits on a retrying path (group collapse)

    Returns:
        The decision for the caller
    """
    if kind is ErrorKind.INVALID_INPUT:
        return Decision.SKIP
    if kind is ErrorKind.TRANSIENT_STORE:
        return Decision.RETRY if retryable else Decision.ABANDON
    # Classification falls back to grey, preference loading to the defaults
    return Decision.DEFAULT

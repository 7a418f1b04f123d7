"""Exception hierarchy for the scheduling core.

ValidationError and StateError are programmer errors and are raised
immediately. StoreError and ConcurrencyConflict come from the persistence
layer and are reported up unchanged; nothing in the core retries them.
"""


class SRSError(Exception):
    """Base class for all scheduling-core errors."""


class ValidationError(SRSError):
    """An input or a card violates a domain invariant."""

    def __init__(self, message: str, invariant: str | None = None) -> None:
        super().__init__(message)
        self.invariant = invariant


class StateError(SRSError):
    """An operation was invoked in the wrong session or card state."""


class StoreError(SRSError):
    """The card store failed to persist or load data (including timeouts)."""


class ConcurrencyConflict(StoreError):
    """A card save was rejected because another writer updated it first."""

    def __init__(self, card_id: str, expected_version: int, actual_version: int | None) -> None:
        super().__init__(
            f"Card {card_id} was modified concurrently "
            f"(expected stored version {expected_version}, found {actual_version})"
        )
        self.card_id = card_id
        self.expected_version = expected_version
        self.actual_version = actual_version

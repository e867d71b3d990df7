# app/core/exceptions.py
#
# Ledger error taxonomy. Services raise these; app/core/exception_handlers.py
# turns them into HTTP responses.


class LedgerError(Exception):
    """Base class for every error raised by the inventory ledger."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    """Malformed or out-of-range input. Raised before anything is written."""


class ImmutableMovementError(ValidationError):
    """Attempt to edit or delete a recorded movement."""


class NotFoundError(LedgerError):
    """Referenced item or movement is absent, or the item is soft-deleted."""


class DuplicateSkuError(LedgerError):
    def __init__(self, sku: str):
        super().__init__(f"SKU '{sku}' already exists")
        self.sku = sku


class PartialApplicationError(LedgerError):
    """
    A movement row may exist without its balance update (or the reverse).

    The ledger and the stored balance disagree until someone runs a
    reconciliation, so this must reach an operator.
    """

    def __init__(self, item_id: int, message: str):
        super().__init__(message)
        self.item_id = item_id


class StorageError(Exception):
    """File storage rejected or failed an upload."""

"""Custom exceptions for the reconciliation engine."""

from typing import Any, Optional


class ReconciliationError(Exception):
    """Base exception for reconciliation errors."""

    def __init__(self, message: str, entity_id: Optional[Any] = None):
        super().__init__(message)
        self.entity_id = entity_id


class NotFoundError(ReconciliationError):
    """The referenced record does not exist or belongs to another tenant."""

    pass


class StatementNotFoundError(NotFoundError):
    """Bank statement not found."""

    def __init__(self, statement_id: Any):
        super().__init__(f"Statement not found: {statement_id}", statement_id)


class ItemNotFoundError(NotFoundError):
    """Bank statement item not found."""

    def __init__(self, item_id: Any):
        super().__init__(f"Statement item not found: {item_id}", item_id)


class MovementNotFoundError(NotFoundError):
    """Treasury movement not found."""

    def __init__(self, movement_id: Any):
        super().__init__(f"Treasury movement not found: {movement_id}", movement_id)


class ConflictError(ReconciliationError):
    """The reconciliation state does not allow the requested operation."""

    pass


class AlreadyReconciledError(ConflictError):
    """One side of a match is already reconciled."""

    pass


class ItemAlreadyReconciledError(AlreadyReconciledError):
    """Statement item already reconciled."""

    def __init__(self, item_id: Any):
        super().__init__(f"Item already reconciled: {item_id}", item_id)


class MovementAlreadyReconciledError(AlreadyReconciledError):
    """Treasury movement already reconciled."""

    def __init__(self, movement_id: Any):
        super().__init__(f"Movement already reconciled: {movement_id}", movement_id)


class ItemNotReconciledError(ConflictError):
    """Statement item has no match to undo."""

    def __init__(self, item_id: Any):
        super().__init__(f"Item is not reconciled: {item_id}", item_id)


class ConfigurationError(ReconciliationError):
    """Error in configuration."""

    pass


class ValidationError(ReconciliationError):
    """Input validation error."""

    pass

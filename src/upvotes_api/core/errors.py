"""Exception types shared by the status worker."""


class ReconciliationError(Exception):
    """Base class for status worker errors."""


class ConfigurationError(ReconciliationError):
    """Required configuration is missing or invalid."""


class StoreError(ReconciliationError):
    """The order store could not be read or written."""


class RunInProgressError(ReconciliationError):
    """Another reconciliation run holds the lease."""


class LeaseLostError(ReconciliationError):
    """The run lease was taken over by another run before this one finished."""


class OrderNotFoundError(ReconciliationError):
    """No order with the requested id exists."""

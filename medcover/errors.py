class CoverageError(Exception):
    """Base class for every error the coverage service raises on purpose."""

    kind = "CoverageError"


class InvalidInput(CoverageError):
    kind = "InvalidInput"


class NotFound(CoverageError):
    kind = "NotFound"


class RemoteUnavailable(CoverageError):
    """The ledger could not be reached or answered with something unusable."""

    kind = "RemoteUnavailable"


class PurchaseRejected(CoverageError):
    """The ledger completed the call and declined the purchase."""

    kind = "PurchaseRejected"


class AlreadyInProgress(CoverageError):
    kind = "AlreadyInProgress"


class PersistedLogCorrupt(CoverageError):
    # recorded on the log at load time, never raised to callers
    kind = "PersistedLogCorrupt"

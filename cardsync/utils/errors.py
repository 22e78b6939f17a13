"""Exception types raised by the sync pipeline."""


class CardSyncError(Exception):
    """Base class for pipeline errors."""


class CatalogError(CardSyncError):
    """The card catalog is missing or cannot be parsed. Aborts the run."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Catalog {path}: {reason}")


class MarketplaceError(CardSyncError):
    """A marketplace response could not be used (bad status, HTML interstitial, bad JSON)."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)

class ReconciliationError(Exception):
    """Base exception for the reconciliation service."""
    pass


class SheetFormatError(ReconciliationError):
    """Raised when an uploaded ledger cannot be read as a sheet of invoices."""
    pass


class ReconciliationIntegrityError(ReconciliationError):
    """Raised when a reconciliation run breaks one of its own invariants."""
    pass


class ReportRenderingError(ReconciliationError):
    """Raised when a workbook or PDF artifact fails to build."""
    pass

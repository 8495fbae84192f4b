"""Exception types for NiftyChart."""


class NiftyChartError(Exception):
    """Base class for all NiftyChart errors."""


class InvalidParameterError(NiftyChartError, ValueError):
    """Raised when an indicator parameter is out of range (e.g. period <= 0)."""


class EmptyInputError(NiftyChartError, ValueError):
    """Raised when an indicator needs at least one candle and got none."""


class FetchFailureError(NiftyChartError):
    """Raised when a candle source could not supply a snapshot."""

    def __init__(self, message: str, source: str = ""):
        super().__init__(message)
        self.source = source

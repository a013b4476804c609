"""Shared error classes for the funding tracker pipeline."""

from __future__ import annotations


class FundingTrackerError(RuntimeError):
    """Base exception raised by the funding tracker."""

    def __init__(self, message: str, code: str = "FUNDING_TRACKER_ERROR") -> None:
        super().__init__(message)
        self.code = code


class ExtractionFailure(FundingTrackerError):
    """Raised by a single extraction strategy; the next strategy is tried."""

    def __init__(self, message: str, code: str = "E_EXTRACTION") -> None:
        super().__init__(message, code=code)


class FeedFailure(FundingTrackerError):
    """Raised when one feed cannot be fetched or parsed."""

    def __init__(self, message: str, code: str = "E_FEED") -> None:
        super().__init__(message, code=code)


class HistoryLoadFailure(FundingTrackerError):
    """Raised when the history file is unreadable; callers treat it as empty."""

    def __init__(self, message: str, code: str = "E_HISTORY_LOAD") -> None:
        super().__init__(message, code=code)


class SinkFailure(FundingTrackerError):
    """Raised when reading or writing the spreadsheet sink fails."""

    def __init__(self, message: str, code: str = "E_SINK") -> None:
        super().__init__(message, code=code)


class ConfigurationError(FundingTrackerError):
    """Raised when startup configuration is invalid."""

    def __init__(self, message: str, code: str = "E_CONFIG") -> None:
        super().__init__(message, code=code)

from dataclasses import dataclass


class BackfolioError(Exception):
    """Base class for errors raised by backfolio."""


class InvalidRequest(BackfolioError, ValueError):
    """
    Structurally invalid backtest input.

    Raised before any simulation happens (bad allocation, non-positive capital,
    inverted date range, timeline too short). Never raised for data-quality
    problems, those end up in the integrity report.
    """


@dataclass(frozen=True)
class DataQualityIssue:
    """
    A recoverable anomaly found while aligning prices.

    Not an exception: issues are collected and scored by the integrity report.
    """
    category: str
    message: str

    def __str__(self) -> str:
        return self.message

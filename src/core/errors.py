"""Exceptions raised by the radar core."""

from typing import Optional


class RadarError(Exception):
    """Base class for radar errors."""


class DataUnavailable(RadarError):
    """
    The radar data source could not be read or parsed.

    Parameters
    ----------
    message : str
        Short, user-facing description
    cause : Optional[BaseException]
        Underlying error, also chained as ``__cause__`` when raised with ``from``
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


class InvalidGeometryError(RadarError, ValueError):
    """The drawing radius is not positive, so no layout can be computed."""

"""Exception hierarchy for the acquisition pipeline.

Failures are grouped by the boundary they stop at: argument errors end the
process before any I/O, edition errors abandon a single date, and page or
file errors are recorded and skipped.
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "CentennialError",
    "ConfigError",
    "InvalidArguments",
    "SessionError",
    "ControlTimeout",
    "DiscoveryTimeout",
    "NoPagesFound",
    "PageAcquisitionError",
    "DownloadTimeout",
    "ConversionError",
    "MergeError",
]


class CentennialError(RuntimeError):
    """Base exception for every pipeline failure."""


class ConfigError(CentennialError):
    """Raised when a settings file cannot be read or holds unknown keys."""


class InvalidArguments(CentennialError):
    """Raised for conflicting or malformed week/day selections."""


class SessionError(CentennialError):
    """Raised when the browser cannot be launched or stops responding."""


class ControlTimeout(CentennialError):
    """Raised by a session when a frame or control does not show up in time."""


class DiscoveryTimeout(CentennialError):
    """Raised when the page-selection control never becomes visible."""


class NoPagesFound(CentennialError):
    """Raised when an edition reports zero pages."""


class PageAcquisitionError(CentennialError):
    """Raised when one page cannot be downloaded or renamed."""

    def __init__(self, message: str, *, stage: str, page: Optional[int] = None) -> None:
        super().__init__(message)
        self.stage = stage
        self.page = page


class DownloadTimeout(PageAcquisitionError):
    """Raised when a triggered download never produces a complete file."""

    def __init__(self, message: str, *, page: Optional[int] = None) -> None:
        super().__init__(message, stage="download", page=page)


class ConversionError(CentennialError):
    """Raised when a page document cannot be rasterized."""


class MergeError(CentennialError):
    """Raised when per-page documents cannot be combined."""

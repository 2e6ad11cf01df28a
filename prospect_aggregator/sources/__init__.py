"""Source adapters feeding the search aggregator."""

from .base import DelayPolicy, GuardedSource, SourceAdapter, SourceError, SourceTimeoutError  # noqa: F401
from .email_finder import EmailFinderSource  # noqa: F401
from .places import PayloadSource, normalize_google_place, normalize_nominatim_place  # noqa: F401
from .sample import StaticSource  # noqa: F401
from .spreadsheet import SpreadsheetSource, UnsupportedFileTypeError  # noqa: F401

__all__ = [
    "DelayPolicy",
    "EmailFinderSource",
    "GuardedSource",
    "PayloadSource",
    "SourceAdapter",
    "SourceError",
    "SourceTimeoutError",
    "SpreadsheetSource",
    "StaticSource",
    "UnsupportedFileTypeError",
    "normalize_google_place",
    "normalize_nominatim_place",
]

"""Error types raised by balog.

StoreError and RenderError abort the current command. EnrichmentError is
caught by the save path and only logged. CollaboratorError is fatal when
publishing a report page and non-fatal when generating insights.
"""


class BalogError(Exception):
    """Base class for all balog errors."""


class StoreError(BalogError):
    """The local database could not be read or written."""


class EnrichmentError(BalogError):
    """A geolocation lookup failed."""


class RenderError(BalogError):
    """A report could not be encoded."""


class CollaboratorError(BalogError):
    """An external service (page publisher, summarizer) failed."""


class ConfigError(BalogError):
    """The config file could not be read or parsed."""

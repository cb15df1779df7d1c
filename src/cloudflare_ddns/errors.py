"""Error taxonomy shared by every component.

Transport-level exceptions (``requests``) are translated into these at the
provider and IP-source boundaries, so callers only ever branch on this module.
"""

from __future__ import annotations


class DDNSError(Exception):
    """Base class for all dynamic-DNS errors."""


class TransportError(DDNSError):
    """An external source could not be reached."""


class ParseError(DDNSError):
    """A response body did not have the expected shape."""


class ZoneNotFound(DDNSError):
    """The zone is unknown locally or to the provider."""


class RecordNotFound(DDNSError):
    """No record with the requested name exists in the zone."""


class ProviderError(DDNSError):
    """The authoritative DNS provider rejected or failed a call."""


class ConfigError(DDNSError):
    """Local configuration or input is missing a required field."""

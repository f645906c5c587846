"""Exceptions raised while reading, applying or creating IPS patches."""

import click


class IPSError(Exception):
    """Base class for patch errors."""


class FormatError(IPSError):
    """Patch does not start with the PATCH magic."""


class TruncatedStreamError(IPSError):
    """Patch ended in the middle of a record."""


class AddressRangeError(IPSError):
    """Offset does not fit in the 24-bit address field."""


class ConfigError(IPSError):
    """Configuration file is unreadable YAML or has bad keys or values."""


class UsageError(click.UsageError):
    """Missing or invalid command-line arguments."""

    exit_code = 1

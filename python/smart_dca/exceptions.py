"""Error taxonomy.

Skipped rebalances are not errors; they are returned as result variants.
"""

from __future__ import annotations


class SmartDcaError(Exception):
    """Base exception for all smart_dca errors."""

    pass


class InvalidInputError(SmartDcaError, ValueError):
    """Raised for malformed input (empty series, non-positive price, ...)."""

    pass


class ConfigurationError(SmartDcaError, ValueError):
    """Raised at configuration time (unknown rebalance period, bad bounds)."""

    pass


class UpstreamError(SmartDcaError, RuntimeError):
    """Raised by a collaborator (quote provider, storage) that failed."""

    pass

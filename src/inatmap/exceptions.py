"""Custom exception hierarchy for inatmap."""

from __future__ import annotations


class MapEnhancerError(Exception):
    """Base exception for all inatmap errors."""


class EnhancerConfigError(MapEnhancerError):
    """Invalid or missing configuration."""


class HostPageError(MapEnhancerError):
    """A DOM operation on the host page failed.

    Raised by host implementations when the page rejects an operation
    (navigation in flight, closed target, script error).  Failures of the
    mapping library itself are never raised; they are logged where the
    call is made.
    """

    def __init__(self, message: str, *, operation: str = "") -> None:
        self.operation = operation
        super().__init__(message)


class PreferenceStoreError(MapEnhancerError):
    """Reading or writing the persisted preference failed."""

    def __init__(self, message: str, *, key: str = "") -> None:
        self.key = key
        super().__init__(message)

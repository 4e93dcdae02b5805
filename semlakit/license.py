"""License manager that grants a single test feature."""

from __future__ import annotations

from enum import IntEnum

from .errors import MlleError

LICENSE_DOMAIN = 42
LICENSED_FEATURE = "test_licensed_feature"


class LicenseErrorCode(IntEnum):
    INVALID_REFERENCE = 0
    INITIALIZATION_FAILURE = 1
    NOT_INITIALIZED = 2
    CHECKOUT_FAILURE = 3
    CHECKIN_FAILURE = 4
    INTERNAL = 5
    BAD_FEATURE = 6


class LicenseError(MlleError):
    """A feature could not be checked out or in."""


def _as_text(feature: str | bytes) -> str:
    if isinstance(feature, (bytes, bytearray)):
        return bytes(feature).decode("latin-1")
    return feature


class License:
    """Grants the test feature and refuses every other one."""

    def __init__(self, libpath: str | None = None) -> None:
        self.libpath = libpath

    def checkout_feature(self, feature: str | bytes) -> bool:
        """Check out a feature; raise LicenseError when it is not licensed."""
        if _as_text(feature) == LICENSED_FEATURE:
            return True
        raise LicenseError(1, LicenseErrorCode.CHECKOUT_FAILURE, "Feature not licensed")

    def checkin_feature(self, feature: str | bytes) -> bool:
        """Return a feature; always succeeds."""
        return True

    def __enter__(self) -> License:
        return self

    def __exit__(self, *exc_info: object) -> None:
        return None
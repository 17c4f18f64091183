"""Exception hierarchy for the presigner.

PresignerError
 +-- PresigningConfigError   invalid start time / expiry (also a ValueError)
 +-- PresigningError         raised from the presigning hooks
 |    +-- MissingSigningConfigError
 +-- SigningError            signer could not produce a signature
"""

from typing import Optional


class PresignerError(Exception):
    """Base class for all presigner errors."""

    pass


class PresigningConfigError(PresignerError, ValueError):
    """Raised when a presigning configuration is invalid."""

    pass


class PresigningError(PresignerError):
    """Raised when a presigning hook cannot complete.

    These errors indicate the pipeline was assembled incorrectly. They abort
    the request and are never retried.
    """

    pass


class MissingSigningConfigError(PresigningError):
    """Raised when no signing configuration exists before signing."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message
            or "Presigning requires a SigningOperationConfig to be in the config "
            "bag before the signing stage. The signing setup plugin was not "
            "registered ahead of the presigning plugin."
        )


class SigningError(PresignerError):
    """Raised when a request cannot be signed."""

    pass

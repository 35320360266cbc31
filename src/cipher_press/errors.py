# errors.py
# Exception taxonomy for press/release.
#
# Every failure is terminal for the enclosing press() or release() call.
# Nothing in this package retries; callers that want resilience wrap the
# public operations themselves.


class PressError(Exception):
    """Base class for every error raised by cipher_press."""


# ---------------------------------------------------------------------------
# Validation: rejected before any work is done
# ---------------------------------------------------------------------------


class ValidationError(PressError, ValueError):
    """Raised when an input is rejected outright."""


class EmptyInputError(ValidationError):
    """Raised when press() or build_tree() receives an empty string."""


class KeyFormatError(ValidationError):
    """Raised when a private or public key is not valid secp256k1 hex."""


class PayloadSizeError(ValidationError):
    """Raised when a payload exceeds the size budget for its shape."""


class PayloadShapeError(ValidationError):
    """Raised when a payload is neither a character nor a well-formed hash pair."""


class BlobFormatError(ValidationError):
    """Raised when an encrypted blob is too short for the wire layout."""


# ---------------------------------------------------------------------------
# Integrity: tampering or the wrong key. Always fatal.
# ---------------------------------------------------------------------------


class IntegrityError(PressError):
    """Raised on MAC mismatch, AEAD tag mismatch or a corrupt blob header."""


# ---------------------------------------------------------------------------
# Lookup and reconstruction
# ---------------------------------------------------------------------------


class NodeNotFoundError(PressError, LookupError):
    """Raised when a node hash, its character, or its payload is unknown."""


class ReconstructionError(PressError):
    """Raised when release() cannot account for every character position."""

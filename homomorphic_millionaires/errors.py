"""
Exceptions raised by the encryption schemes and the comparison protocol.

All exceptions derive from :class:`HomomorphicError`. They additionally derive from the
built-in exception that best describes them, such that code that catches e.g. ``ValueError``
keeps working.
"""


class HomomorphicError(Exception):
    """
    Base class of all exceptions raised by this package.
    """


class InvalidKeySizeError(HomomorphicError, ValueError):
    """
    The requested key size is below the configured minimum.
    """


class PlaintextOutOfRangeError(HomomorphicError, ValueError):
    """
    A plaintext lies outside the plaintext domain of a scheme.
    """


class CiphertextOutOfRangeError(HomomorphicError, ValueError):
    """
    A ciphertext value lies outside the ciphertext space of a scheme.
    """


class KeyMismatchError(HomomorphicError, ValueError):
    """
    Two operands of a homomorphic operation were produced under different keys.
    """


class LengthMismatchError(HomomorphicError, ValueError):
    """
    Two ciphertext sequences that should have equal length do not.
    """


class DiscreteLogNotFoundError(HomomorphicError, ValueError):
    """
    The decrypted group element is not present in the precomputed lookup table.
    """


class KeyGenerationError(HomomorphicError, RuntimeError):
    """
    Key generation exhausted its retry budget.
    """


class ChannelError(HomomorphicError, ConnectionError):
    """
    The channel of a comparison session failed or was closed.
    """


class ProtocolAbortError(HomomorphicError, RuntimeError):
    """
    A comparison session received inconsistent or malformed data and was aborted.
    """


WARN_INEFFICIENT_HOM_OPERATION = (
    "Identified a fresh ciphertext as input to a homomorphic operation, which is no longer fresh "
    "after the operation. This indicates a potential inefficiency if the non-fresh input may also "
    "used in other operations (unused randomness). Solution: randomize ciphertexts as late as "
    "possible, e.g. by encrypting them with scheme.unsafe_encrypt and randomizing them just before "
    "sending."
)

WARN_UNFRESH_SERIALIZATION = (
    "Serializer identified and rerandomized a non-fresh ciphertext."
)

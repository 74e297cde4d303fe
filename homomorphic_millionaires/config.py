"""
Default parameters and the configuration object of the comparison protocol.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Mapping

from homomorphic_millionaires.errors import InvalidKeySizeError

KEY_SIZE = 2048
MIN_KEY_SIZE = 2048
ELGAMAL_MIN_KEY_SIZE = 1024
CERTAINTY = 40
DGK_FIELD_BITS = 16
DGK_T_BITS = 160
MAX_DGK_FIELD_BITS = 32

# smallest prime larger than 2^16
FIELD_SIZE = 65537
ELGAMAL_LOOKUP_SIZE = 2 * FIELD_SIZE - 2 + (1 << 16)
ELGAMAL_NEGATIVE_LOOKUP_SIZE = 9


class ComparisonMode(str, Enum):
    """
    Operating mode of the secure comparison.
    """

    PAILLIER = "paillier"
    DGK = "dgk"


def max_comparison_bit_length(mode: ComparisonMode, dgk_field_bits: int) -> int:
    r"""
    Largest operand bit length supported by a comparison mode.

    In Paillier mode the weighted bit differences $3 \cdot 2^l$ must not wrap around the DGK
    plaintext modulus $u > 2^{l_{DGK}}$, which leaves two bits of headroom. In DGK mode the
    operands are compared bitwise and may use the entire DGK field.

    :param mode: Comparison mode.
    :param dgk_field_bits: Bit length $l_{DGK}$ of the DGK plaintext space.
    :return: Maximum bit length of the comparison operands.
    """
    if ComparisonMode(mode) is ComparisonMode.PAILLIER:
        return dgk_field_bits - 2
    return dgk_field_bits


@dataclass(frozen=True)
class ElGamalLookupRange:
    r"""
    Plaintexts that an ElGamal secret key can decrypt.

    :param size: Plaintexts $[0, size)$ are decryptable.
    :param negative_size: Plaintexts $[p - 1 - negative\_size, p - 2]$ are decryptable.
    """

    size: int = ELGAMAL_LOOKUP_SIZE
    negative_size: int = ELGAMAL_NEGATIVE_LOOKUP_SIZE

    def __post_init__(self) -> None:
        if self.size < 1:
            raise ValueError(f"Lookup size should be positive, got {self.size}.")
        if self.negative_size < 0:
            raise ValueError(
                f"Negative lookup size should be non-negative, got {self.negative_size}."
            )


@dataclass(frozen=True)
class Configuration:
    """
    Parameters of a comparison deployment. The Key Holder generates its key material from these
    values, both roles use the mode and bit length.

    :param key_size_bits: Bit length of the Paillier and DGK moduli.
    :param min_key_size_bits: Smallest accepted modulus; lower it only for testing.
    :param dgk_field_bits: Bit length $l$ of the DGK plaintext space $u$ = next prime after $2^l$.
    :param dgk_t_bits: Bit length $t$ of the DGK secret primes $v_p$ and $v_q$.
    :param primality_certainty: The probability that a generated prime is composite is at most
        $2^{-certainty}$.
    :param comparison_mode: Either paillier (large domain) or dgk (small domain).
    :param bit_length: Bit length of the comparison operands. Defaults to the largest length the
        mode supports.
    :param elgamal_lookup_range: Decryptable range of ElGamal secret keys.
    """

    key_size_bits: int = KEY_SIZE
    min_key_size_bits: int = MIN_KEY_SIZE
    dgk_field_bits: int = DGK_FIELD_BITS
    dgk_t_bits: int = DGK_T_BITS
    primality_certainty: int = CERTAINTY
    comparison_mode: ComparisonMode = ComparisonMode.PAILLIER
    bit_length: int | None = None
    elgamal_lookup_range: ElGamalLookupRange = field(
        default_factory=ElGamalLookupRange
    )

    def __post_init__(self) -> None:
        # accept the plain string representation of the mode
        object.__setattr__(self, "comparison_mode", ComparisonMode(self.comparison_mode))
        if self.key_size_bits < self.min_key_size_bits:
            raise InvalidKeySizeError(
                f"Key size {self.key_size_bits} is below the minimum of {self.min_key_size_bits} bits."
            )
        if not 1 <= self.dgk_field_bits <= MAX_DGK_FIELD_BITS:
            raise ValueError(
                f"dgk_field_bits should lie in [1, {MAX_DGK_FIELD_BITS}], got {self.dgk_field_bits}."
            )
        if self.dgk_t_bits <= self.dgk_field_bits:
            raise ValueError("dgk_t_bits should be larger than dgk_field_bits.")
        if self.primality_certainty < 1:
            raise ValueError("primality_certainty should be positive.")
        maximum = max_comparison_bit_length(self.comparison_mode, self.dgk_field_bits)
        if maximum < 1:
            raise ValueError(
                f"The {self.comparison_mode.value} mode needs more than "
                f"{self.dgk_field_bits} DGK field bits."
            )
        if self.bit_length is None:
            object.__setattr__(self, "bit_length", maximum)
        elif not 1 <= self.bit_length <= maximum:
            raise ValueError(
                f"The {self.comparison_mode.value} mode supports operands of 1 to {maximum} bits, "
                f"got {self.bit_length}."
            )

    @property
    def comparison_bit_length(self) -> int:
        """
        Bit length of the comparison operands.
        """
        if self.bit_length is None:
            raise ValueError("The configuration has no operand bit length.")
        return self.bit_length

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> Configuration:
        """
        Create a configuration from a plain mapping, e.g. parsed from a configuration file.

        :param mapping: Option names and their values.
        :raise ValueError: When the mapping contains unknown options.
        :return: The configuration.
        """
        known = {option.name for option in fields(cls)}
        unknown = set(mapping) - known
        if unknown:
            raise ValueError(f"Unknown configuration options: {sorted(unknown)}.")
        options = dict(mapping)
        lookup_range = options.get("elgamal_lookup_range")
        if isinstance(lookup_range, Mapping):
            options["elgamal_lookup_range"] = ElGamalLookupRange(**lookup_range)
        elif isinstance(lookup_range, (list, tuple)):
            options["elgamal_lookup_range"] = ElGamalLookupRange(*lookup_range)
        return cls(**options)

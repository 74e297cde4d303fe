"""
Number theoretic utilities shared by the encryption schemes.
"""

from __future__ import annotations

import logging
import math
import secrets

from tno.mpc.encryption_schemes.utils import USE_GMPY2, is_prime

from homomorphic_millionaires.config import CERTAINTY
from homomorphic_millionaires.errors import InvalidKeySizeError, KeyGenerationError

if USE_GMPY2:
    import gmpy2

logger = logging.getLogger(__name__)


def random_below(bound: int) -> int:
    """
    Cryptographically secure uniform random integer.

    :param bound: Exclusive upper bound.
    :raise ValueError: When the bound is not positive.
    :return: Uniform random integer in [0, bound).
    """
    if bound <= 0:
        raise ValueError(f"Upper bound should be positive, got {bound}.")
    return secrets.randbelow(bound)


def random_unit(modulus: int) -> int:
    r"""
    Uniform random element of $\mathbb{Z}_{modulus}^*$.

    :param modulus: Modulus of the group, at least 2.
    :return: Random integer in [1, modulus) that is coprime to the modulus.
    """
    while True:
        candidate = random_below(modulus - 1) + 1
        if math.gcd(candidate, modulus) == 1:
            return candidate


def jacobi(a: int, n: int) -> int:
    r"""
    Compute the Jacobi symbol $(a / n)$ using the law of quadratic reciprocity.

    :param a: Integer of which the symbol is computed.
    :param n: Odd positive modulus.
    :raise ValueError: When $n$ is not odd and positive.
    :return: -1, 0 or 1.
    """
    if n <= 0 or n % 2 == 0:
        raise ValueError(f"The Jacobi symbol requires an odd positive modulus, got {n}.")
    a %= n
    result = 1
    while a != 0:
        while a % 2 == 0:
            a //= 2
            # (2 / n) = -1 iff n = 3, 5 mod 8
            if n % 8 in (3, 5):
                result = -result
        a, n = n, a
        if a % 4 == 3 and n % 4 == 3:
            result = -result
        a %= n
    return result if n == 1 else 0


def quadratic_non_residue(p: int, q: int) -> int:
    r"""
    Sample an element $y \in \mathbb{Z}_{pq}$ that is a quadratic non-residue modulo both $p$ and
    $q$, i.e. the Jacobi symbols $(y / p)$ and $(y / q)$ both equal -1.

    :param p: First odd prime.
    :param q: Second odd prime.
    :return: Quadratic non-residue modulo $p$ and $q$.
    """
    n = p * q
    while True:
        candidate = random_below(n)
        if jacobi(candidate, p) == -1 and jacobi(candidate, q) == -1:
            return candidate


def is_probable_prime(candidate: int, certainty: int = CERTAINTY) -> bool:
    """
    Probabilistic primality test. With gmpy2 available this runs ceil(certainty / 2) Miller-Rabin
    rounds, each of which errs with probability at most 1/4. Otherwise sympy's BPSW test is used,
    which has no known composite that passes.

    :param candidate: Integer to be tested.
    :param certainty: Required certainty in bits.
    :return: False if the candidate is composite, True if it is prime with the required certainty.
    """
    if candidate < 2:
        return False
    if USE_GMPY2:
        return bool(gmpy2.is_prime(candidate, max(1, math.ceil(certainty / 2))))
    return bool(is_prime(candidate))


def _retry_budget(bit_length: int, max_attempts: int | None) -> int:
    return 100 * bit_length if max_attempts is None else max_attempts


def generate_prime(
    bit_length: int, certainty: int = CERTAINTY, max_attempts: int | None = None
) -> int:
    """
    Generate a random prime of exactly the given bit length.

    :param bit_length: Bit length of the prime, at least 2.
    :param certainty: The prime is composite with probability at most 2^-certainty.
    :param max_attempts: Number of candidates that are tried before giving up. Defaults to
        100 times the bit length.
    :raise ValueError: When the bit length is smaller than 2.
    :raise KeyGenerationError: When no prime was found within the given number of attempts.
    :return: Random prime.
    """
    if bit_length < 2:
        raise ValueError(f"Primes have at least 2 bits, requested {bit_length}.")
    for _ in range(_retry_budget(bit_length, max_attempts)):
        # set the most significant bit and make the candidate odd
        candidate = random_below(1 << (bit_length - 1)) | (1 << (bit_length - 1)) | 1
        if is_probable_prime(candidate, certainty):
            return candidate
    raise KeyGenerationError(f"Could not find a prime of {bit_length} bits.")


def generate_safe_prime(
    bit_length: int, certainty: int = CERTAINTY, max_attempts: int | None = None
) -> int:
    """
    Generate a random safe prime p = 2p' + 1, with p' prime, of exactly the given bit length.

    :param bit_length: Bit length of the safe prime, at least 3.
    :param certainty: The primes are composite with probability at most 2^-certainty.
    :param max_attempts: Number of Sophie Germain candidates that are tried before giving up.
        Defaults to 100 times the square of the bit length.
    :raise ValueError: When the bit length is smaller than 3.
    :raise KeyGenerationError: When no safe prime was found within the given number of attempts.
    :return: Random safe prime.
    """
    if bit_length < 3:
        raise ValueError(f"Safe primes have at least 3 bits, requested {bit_length}.")
    attempts = 100 * bit_length**2 if max_attempts is None else max_attempts
    for _ in range(attempts):
        half = generate_prime(bit_length - 1, certainty)
        candidate = 2 * half + 1
        if candidate.bit_length() == bit_length and is_probable_prime(
            candidate, certainty
        ):
            return candidate
    raise KeyGenerationError(f"Could not find a safe prime of {bit_length} bits.")


def check_key_length(key_length: int, min_key_length: int) -> None:
    """
    Validate a requested key length against the configured minimum.

    :param key_length: Requested key length in bits.
    :param min_key_length: Minimum key length in bits.
    :raise InvalidKeySizeError: When the key length is below the minimum.
    """
    if key_length < min_key_length:
        raise InvalidKeySizeError(
            f"Key length of {key_length} bits is below the minimum of {min_key_length} bits."
        )

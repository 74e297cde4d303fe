"""
This module tests the number theoretic utilities.
"""

import math

import pytest
import sympy

from homomorphic_millionaires.errors import InvalidKeySizeError, KeyGenerationError
from homomorphic_millionaires.number_theory import (
    check_key_length,
    generate_prime,
    generate_safe_prime,
    is_probable_prime,
    jacobi,
    quadratic_non_residue,
    random_below,
    random_unit,
)

carmichael_numbers = [561, 1105, 1729, 2465, 2821, 6601, 8911, 41041, 825265, 321197185]


@pytest.mark.parametrize("bound", [1, 2, 7, 1 << 100])
def test_random_below_range(bound: int) -> None:
    """
    Test that random values lie below the bound.

    :param bound: Exclusive upper bound.
    """
    for _ in range(50):
        assert 0 <= random_below(bound) < bound


@pytest.mark.parametrize("bound", [0, -5])
def test_random_below_rejects_non_positive_bound(bound: int) -> None:
    """
    Test that a non-positive bound is rejected.

    :param bound: Invalid bound.
    """
    with pytest.raises(ValueError):
        random_below(bound)


@pytest.mark.parametrize("modulus", [2, 15, 97, 3 * 5 * 7 * 11])
def test_random_unit_is_coprime(modulus: int) -> None:
    """
    Test that random units are invertible modulo the modulus.

    :param modulus: Modulus of the group.
    """
    for _ in range(50):
        unit = random_unit(modulus)
        assert 1 <= unit < modulus
        assert math.gcd(unit, modulus) == 1


@pytest.mark.parametrize("n", [1, 3, 5, 9, 15, 21, 97, 105, 561, 7919])
def test_jacobi_matches_sympy(n: int) -> None:
    """
    Test the Jacobi symbol against sympy for all residues and some negative values.

    :param n: Odd positive modulus.
    """
    for a in range(-10, 2 * n):
        assert jacobi(a, n) == sympy.jacobi_symbol(a % n, n)


@pytest.mark.parametrize("n", [0, -3, 4, 100])
def test_jacobi_rejects_invalid_modulus(n: int) -> None:
    """
    Test that the Jacobi symbol is only defined for odd positive moduli.

    :param n: Invalid modulus.
    """
    with pytest.raises(ValueError):
        jacobi(3, n)


@pytest.mark.parametrize("p, q", [(7, 11), (101, 103), (7919, 104729)])
def test_quadratic_non_residue(p: int, q: int) -> None:
    """
    Test that the sampled value is a non-residue modulo both primes.

    :param p: First prime.
    :param q: Second prime.
    """
    y = quadratic_non_residue(p, q)
    assert sympy.legendre_symbol(y % p, p) == -1
    assert sympy.legendre_symbol(y % q, q) == -1


def test_is_probable_prime_small_numbers() -> None:
    """
    Test primality of all small numbers against sympy.
    """
    for candidate in range(-5, 3000):
        assert is_probable_prime(candidate) == sympy.isprime(candidate)


@pytest.mark.parametrize("candidate", carmichael_numbers)
def test_is_probable_prime_rejects_carmichael_numbers(candidate: int) -> None:
    """
    Test that Carmichael numbers are recognized as composite.

    :param candidate: Carmichael number.
    """
    assert not is_probable_prime(candidate)


@pytest.mark.parametrize(
    "candidate", [2**61 - 1, 2**89 - 1, 2**127 - 1, (2**61 - 1) * (2**89 - 1)]
)
def test_is_probable_prime_large_numbers(candidate: int) -> None:
    """
    Test primality of large numbers against sympy.

    :param candidate: Number to test.
    """
    assert is_probable_prime(candidate) == sympy.isprime(candidate)


@pytest.mark.parametrize("bit_length", [2, 3, 8, 32, 128])
def test_generate_prime(bit_length: int) -> None:
    """
    Test that generated primes are prime and have the requested bit length.

    :param bit_length: Requested bit length.
    """
    prime = generate_prime(bit_length)
    assert prime.bit_length() == bit_length
    assert sympy.isprime(prime)


@pytest.mark.parametrize("bit_length", [3, 16, 64])
def test_generate_safe_prime(bit_length: int) -> None:
    """
    Test that generated safe primes are of the form 2q + 1 with q prime.

    :param bit_length: Requested bit length.
    """
    prime = generate_safe_prime(bit_length)
    assert prime.bit_length() == bit_length
    assert sympy.isprime(prime)
    assert sympy.isprime((prime - 1) // 2)


def test_generate_prime_gives_up() -> None:
    """
    Test that prime generation fails once the attempts are exhausted.
    """
    with pytest.raises(KeyGenerationError):
        generate_prime(64, max_attempts=0)


def test_generate_prime_rejects_tiny_bit_length() -> None:
    """
    Test that primes of fewer than two bits are not requested.
    """
    with pytest.raises(ValueError):
        generate_prime(1)


def test_check_key_length() -> None:
    """
    Test that keys shorter than the minimum are rejected.
    """
    check_key_length(2048, 2048)
    with pytest.raises(InvalidKeySizeError):
        check_key_length(1024, 2048)

"""
This module tests key generation, encryption and the homomorphic operations of Paillier.
"""
import itertools

import pytest
import sympy

from tno.mpc.encryption_schemes.templates.encryption_scheme import (
    EncryptionSchemeWarning,
)

from homomorphic_millionaires.errors import (
    WARN_INEFFICIENT_HOM_OPERATION,
    WARN_UNFRESH_SERIALIZATION,
    CiphertextOutOfRangeError,
    InvalidKeySizeError,
    KeyMismatchError,
    PlaintextOutOfRangeError,
)
from homomorphic_millionaires.paillier import (
    Paillier,
    PaillierCiphertext,
    PaillierPublicKey,
    PaillierSecretKey,
)
from homomorphic_millionaires.test import conditional_pywarn, encrypt_with_freshness
from homomorphic_millionaires.test.conftest import TEST_KEY_LENGTH

plaintexts = [0, 1, 2, 17, 128, 129, 65535, 2**100 + 7]


def test_key_generation(paillier_scheme: Paillier) -> None:
    """
    Test the structure of a generated key pair.

    :param paillier_scheme: Paillier scheme with a test key.
    """
    public_key = paillier_scheme.public_key
    secret_key = paillier_scheme.secret_key
    assert public_key.n.bit_length() == 256
    assert public_key.g == public_key.n + 1
    assert secret_key.p * secret_key.q == public_key.n
    assert sympy.isprime(secret_key.p)
    assert sympy.isprime(secret_key.q)
    assert secret_key.lambda_value * secret_key.mu % public_key.n == 1


@pytest.mark.parametrize("key_length, min_key_length", [(255, 128), (128, 256)])
def test_key_generation_rejects_key_length(key_length: int, min_key_length: int) -> None:
    """
    Test that odd key lengths and key lengths below the minimum are rejected.

    :param key_length: Requested key length.
    :param min_key_length: Minimum key length.
    """
    with pytest.raises(InvalidKeySizeError):
        Paillier.generate_key_material(key_length, min_key_length=min_key_length)


def test_default_minimum_key_length() -> None:
    """
    Test that short keys are rejected unless the minimum is lowered explicitly.
    """
    with pytest.raises(InvalidKeySizeError):
        Paillier.generate_key_material(1024)


@pytest.mark.parametrize("value", plaintexts)
def test_encryption(paillier_scheme: Paillier, value: int) -> None:
    """
    Test the encryption and decryption of plaintexts.

    :param paillier_scheme: Paillier scheme with a test key.
    :param value: Plaintext.
    """
    ciphertext = paillier_scheme.encrypt(value)
    assert paillier_scheme.decrypt(ciphertext) == value


def test_encryption_largest_plaintext(paillier_scheme: Paillier) -> None:
    """
    Test the encryption of the largest plaintext.

    :param paillier_scheme: Paillier scheme with a test key.
    """
    value = paillier_scheme.public_key.n - 1
    assert paillier_scheme.decrypt(paillier_scheme.encrypt(value)) == value


@pytest.mark.parametrize("distance", [0, 1, 2**70])
def test_encryption_out_of_range(paillier_scheme: Paillier, distance: int) -> None:
    """
    Test that plaintexts outside [0, n) are rejected.

    :param paillier_scheme: Paillier scheme with a test key.
    :param distance: Distance of the plaintext to the plaintext space.
    """
    for value in (-1 - distance, paillier_scheme.public_key.n + distance):
        with pytest.raises(PlaintextOutOfRangeError):
            paillier_scheme.encrypt(value)


def test_encryption_is_probabilistic(paillier_scheme: Paillier) -> None:
    """
    Test that two encryptions of the same plaintext differ.

    :param paillier_scheme: Paillier scheme with a test key.
    """
    assert paillier_scheme.encrypt(42) != paillier_scheme.encrypt(42)


def test_randomization(paillier_scheme: Paillier) -> None:
    """
    Test that rerandomization changes the ciphertext but not the plaintext.

    :param paillier_scheme: Paillier scheme with a test key.
    """
    ciphertext = paillier_scheme.unsafe_encrypt(42)
    value_before = ciphertext.peek_value()
    ciphertext.randomize()
    assert ciphertext.peek_value() != value_before
    assert paillier_scheme.decrypt(ciphertext) == 42


@pytest.mark.parametrize(
    "value_1, value_2", list(itertools.combinations([0, 1, 5, 300, 2**90], 2))
)
def test_homomorphic_addition(
    paillier_scheme: Paillier, value_1: int, value_2: int
) -> None:
    """
    Test the addition of two ciphertexts and of a ciphertext and a plaintext.

    :param paillier_scheme: Paillier scheme with a test key.
    :param value_1: First plaintext.
    :param value_2: Second plaintext.
    """
    ciphertext_1 = paillier_scheme.unsafe_encrypt(value_1)
    ciphertext_2 = paillier_scheme.unsafe_encrypt(value_2)
    assert paillier_scheme.decrypt(ciphertext_1 + ciphertext_2) == value_1 + value_2
    assert paillier_scheme.decrypt(ciphertext_1 + value_2) == value_1 + value_2


def test_homomorphic_addition_wraps(paillier_scheme: Paillier) -> None:
    """
    Test that homomorphic addition works modulo n.

    :param paillier_scheme: Paillier scheme with a test key.
    """
    n = paillier_scheme.public_key.n
    ciphertext = paillier_scheme.unsafe_encrypt(n - 1) + paillier_scheme.unsafe_encrypt(3)
    assert paillier_scheme.decrypt(ciphertext) == 2


@pytest.mark.parametrize("value", [0, 1, 1000])
def test_homomorphic_negation(paillier_scheme: Paillier, value: int) -> None:
    """
    Test that negation yields the additive inverse modulo n.

    :param paillier_scheme: Paillier scheme with a test key.
    :param value: Plaintext.
    """
    n = paillier_scheme.public_key.n
    negated = -paillier_scheme.unsafe_encrypt(value)
    assert paillier_scheme.decrypt(negated) == (-value) % n
    assert paillier_scheme.decrypt(negated + paillier_scheme.unsafe_encrypt(value)) == 0


@pytest.mark.parametrize("value, scalar", [(7, 0), (7, 1), (7, 6), (123, 1000), (5, -2)])
def test_homomorphic_multiplication(
    paillier_scheme: Paillier, value: int, scalar: int
) -> None:
    """
    Test the multiplication of a ciphertext with a scalar.

    :param paillier_scheme: Paillier scheme with a test key.
    :param value: Plaintext.
    :param scalar: Scalar multiplier.
    """
    n = paillier_scheme.public_key.n
    ciphertext = paillier_scheme.unsafe_encrypt(value)
    assert paillier_scheme.decrypt(ciphertext * scalar) == value * scalar % n


def test_homomorphic_subtraction(paillier_scheme: Paillier) -> None:
    """
    Test the subtraction of ciphertexts and plaintexts.

    :param paillier_scheme: Paillier scheme with a test key.
    """
    ciphertext = paillier_scheme.unsafe_encrypt(100) - paillier_scheme.unsafe_encrypt(58)
    assert paillier_scheme.decrypt(ciphertext) == 42
    assert paillier_scheme.decrypt(1 - paillier_scheme.unsafe_encrypt(1)) == 0


def test_multiplication_requires_integer(paillier_scheme: Paillier) -> None:
    """
    Test that ciphertexts can only be multiplied with integers.

    :param paillier_scheme: Paillier scheme with a test key.
    """
    with pytest.raises(TypeError):
        paillier_scheme.unsafe_encrypt(1) * 1.5  # type: ignore[operator]


@pytest.mark.parametrize("is_fresh", (True, False))
def test_fresh_addition_warns(paillier_scheme: Paillier, is_fresh: bool) -> None:
    """
    Test that using a fresh ciphertext in a homomorphic operation warns.

    :param paillier_scheme: Paillier scheme with a test key.
    :param is_fresh: Freshness of the first ciphertext.
    """
    ciphertext_1 = encrypt_with_freshness(3, paillier_scheme, is_fresh)
    ciphertext_2 = paillier_scheme.unsafe_encrypt(4)
    with conditional_pywarn(is_fresh, match=WARN_INEFFICIENT_HOM_OPERATION):
        result = ciphertext_1 + ciphertext_2
    assert result.fresh is is_fresh
    assert not ciphertext_1.fresh


def test_addition_key_mismatch(paillier_scheme: Paillier) -> None:
    """
    Test that ciphertexts under different keys cannot be added.

    :param paillier_scheme: Paillier scheme with a test key.
    """
    other_scheme = Paillier.from_security_parameter(key_length=128, min_key_length=128)
    with pytest.raises(KeyMismatchError):
        paillier_scheme.unsafe_encrypt(1) + other_scheme.unsafe_encrypt(1)


def test_secret_key_mismatch(paillier_scheme: Paillier) -> None:
    """
    Test that a secret key of another public key is rejected.

    :param paillier_scheme: Paillier scheme with a test key.
    """
    other_public_key, _ = Paillier.generate_key_material(128, min_key_length=128)
    with pytest.raises(KeyMismatchError):
        Paillier(other_public_key, paillier_scheme.secret_key)


@pytest.mark.parametrize("raw_value", [0, -1])
def test_ciphertext_out_of_range(paillier_scheme: Paillier, raw_value: int) -> None:
    """
    Test that ciphertext values outside [1, n^2) are rejected.

    :param paillier_scheme: Paillier scheme with a test key.
    :param raw_value: Invalid ciphertext value.
    """
    with pytest.raises(CiphertextOutOfRangeError):
        PaillierCiphertext(raw_value, paillier_scheme)
    with pytest.raises(CiphertextOutOfRangeError):
        PaillierCiphertext(paillier_scheme.public_key.n_squared - raw_value, paillier_scheme)


def test_public_scheme_encrypts(paillier_scheme: Paillier) -> None:
    """
    Test that a scheme with only the public key encrypts for the full scheme.

    :param paillier_scheme: Paillier scheme with a test key.
    """
    public_scheme = Paillier(paillier_scheme.public_key, None)
    assert public_scheme == paillier_scheme
    assert paillier_scheme.decrypt(public_scheme.encrypt(99)) == 99


def test_key_serialization(paillier_scheme: Paillier) -> None:
    """
    Test that keys survive serialization to a dictionary.

    :param paillier_scheme: Paillier scheme with a test key.
    """
    public_key = paillier_scheme.public_key
    secret_key = paillier_scheme.secret_key
    assert PaillierPublicKey.deserialize(public_key.serialize()) == public_key
    assert PaillierSecretKey.deserialize(secret_key.serialize()) == secret_key


def test_serialization_randomization(paillier_scheme: Paillier) -> None:
    """
    Test that serializing a non-fresh ciphertext warns and rerandomizes it first.

    :param paillier_scheme: Paillier scheme with a test key.
    """
    ciphertext = paillier_scheme.unsafe_encrypt(7)
    value_non_randomized = ciphertext.peek_value()
    with pytest.warns(EncryptionSchemeWarning, match=WARN_UNFRESH_SERIALIZATION):
        ciphertext.serialize()
    assert ciphertext.peek_value() != value_non_randomized
    assert not ciphertext.fresh
    assert paillier_scheme.decrypt(ciphertext) == 7


def test_serialization_fresh_ciphertext(paillier_scheme: Paillier) -> None:
    """
    Test that a fresh ciphertext is serialized as is and marked as not fresh.

    :param paillier_scheme: Paillier scheme with a test key.
    """
    ciphertext = paillier_scheme.encrypt(7)
    ciphertext_prime = PaillierCiphertext.deserialize(ciphertext.serialize())
    assert not ciphertext.fresh
    assert not ciphertext_prime.fresh
    assert ciphertext == ciphertext_prime


def test_scheme_serialization() -> None:
    """
    Test that a deserialized scheme is the globally saved scheme with the same public key, or a
    new scheme without the secret key.
    """
    scheme = Paillier.from_security_parameter(
        key_length=TEST_KEY_LENGTH, min_key_length=TEST_KEY_LENGTH
    )
    assert "seckey" not in scheme.serialize()
    scheme_prime = Paillier.deserialize(scheme.serialize())
    assert scheme_prime == scheme
    assert scheme_prime.secret_key is None
    assert Paillier.deserialize(scheme.serialize()) is scheme_prime

    saved_scheme = Paillier.from_security_parameter(
        key_length=TEST_KEY_LENGTH, min_key_length=TEST_KEY_LENGTH
    )
    saved_scheme.save_globally()
    assert Paillier.deserialize(saved_scheme.serialize()) is saved_scheme

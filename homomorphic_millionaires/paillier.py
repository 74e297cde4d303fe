"""
Implementation of the additively homomorphic Paillier cryptosystem.
"""

from __future__ import annotations

import logging
import math
import time
import warnings
from dataclasses import asdict, dataclass
from functools import cached_property, partial
from typing import Any, Tuple, cast

from tno.mpc.communication import RepetitionError, Serialization
from tno.mpc.encryption_schemes.templates import (
    AsymmetricEncryptionScheme,
    EncodedPlaintext,
    EncryptionSchemeWarning,
    PublicKey,
    RandomizableCiphertext,
    RandomizedEncryptionScheme,
    SecretKey,
)
from tno.mpc.encryption_schemes.utils import mod_inv, pow_mod

from homomorphic_millionaires.config import CERTAINTY, KEY_SIZE, MIN_KEY_SIZE
from homomorphic_millionaires.errors import (
    WARN_INEFFICIENT_HOM_OPERATION,
    WARN_UNFRESH_SERIALIZATION,
    CiphertextOutOfRangeError,
    InvalidKeySizeError,
    KeyMismatchError,
    PlaintextOutOfRangeError,
)
from homomorphic_millionaires.number_theory import (
    check_key_length,
    generate_prime,
    random_unit,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=True)
class PaillierPublicKey(PublicKey):
    r"""
    PublicKey for the Paillier encryption scheme.

    :param n: Modulus $n$ of the plaintext space, the ciphertext space has modulus $n^2$.
    :param g: Generator of $\mathbb{Z}_{n^2}^*$, in practice $n + 1$.
    """

    n: int
    g: int

    @cached_property
    def n_squared(self) -> int:
        """
        Cached modulus of the ciphertext space.
        """
        return self.n * self.n

    def serialize(self, **_kwargs: Any) -> dict[str, Any]:
        r"""
        Export this key as a dictionary.

        :param \**_kwargs: Optional extra keyword arguments.
        :return: serialized version of this PaillierPublicKey.
        """
        return {name: int(value) for name, value in asdict(self).items()}

    @staticmethod
    def deserialize(obj: dict[str, Any], **_kwargs: Any) -> PaillierPublicKey:
        r"""
        Import a key that was exported with serialize.

        :param obj: serialized version of a PaillierPublicKey.
        :param \**_kwargs: Optional extra keyword arguments.
        :return: Deserialized PaillierPublicKey from the given dict.
        """
        return PaillierPublicKey(**obj)


@dataclass(frozen=True, eq=True)
class PaillierSecretKey(SecretKey):
    r"""
    SecretKey for the Paillier encryption scheme.

    :param p: Prime factor of $n$.
    :param q: Prime factor of $n$.
    :param lambda_value: Carmichael value $\lambda = \text{lcm}(p - 1, q - 1)$.
    :param mu: Decryption constant $\mu = L(g^\lambda \mod n^2)^{-1} \mod n$.
    """

    p: int
    q: int
    lambda_value: int
    mu: int

    @cached_property
    def n(self) -> int:
        """
        Cached modulus belonging to this secret key.
        """
        return self.p * self.q

    def serialize(self, **_kwargs: Any) -> dict[str, Any]:
        r"""
        Export this key as a dictionary.

        :param \**_kwargs: Optional extra keyword arguments.
        :return: serialized version of this PaillierSecretKey.
        """
        return {name: int(value) for name, value in asdict(self).items()}

    @staticmethod
    def deserialize(obj: dict[str, Any], **_kwargs: Any) -> PaillierSecretKey:
        r"""
        Import a key that was exported with serialize.

        :param obj: serialized version of a PaillierSecretKey.
        :param \**_kwargs: Optional extra keyword arguments.
        :return: Deserialized PaillierSecretKey from the given dict.
        """
        return PaillierSecretKey(**obj)


KeyMaterial = Tuple[PaillierPublicKey, PaillierSecretKey]
Plaintext = int


class PaillierCiphertext(RandomizableCiphertext[KeyMaterial, Plaintext, int, int, int]):
    """
    Ciphertext for the Paillier asymmetric encryption scheme. This ciphertext is rerandomizable
    and supports homomorphic operations.
    """

    scheme: Paillier

    def __init__(self, raw_value: int, scheme: Paillier, *, fresh: bool = False):
        r"""
        Construct a RandomizableCiphertext, with the given value for the given EncryptionScheme.

        :param raw_value: PaillierCiphertext value $c \in [1, n^2)$.
        :param scheme: Paillier scheme that is used to encrypt this ciphertext.
        :param fresh: Indicates whether fresh randomness is already applied to the raw_value.
        :raise TypeError: If the given scheme is not of the type Paillier.
        :raise CiphertextOutOfRangeError: If the value lies outside the ciphertext space.
        """
        if not isinstance(scheme, Paillier):
            raise TypeError(f"expected Paillier scheme, got {type(scheme)}")
        if not 0 < raw_value < scheme.public_key.n_squared:
            raise CiphertextOutOfRangeError(
                "Paillier ciphertext values should lie in [1, n^2)."
            )
        super().__init__(raw_value, scheme, fresh=fresh)

    def apply_randomness(self: PaillierCiphertext, randomization_value: int) -> None:
        """
        Rerandomize this ciphertext using the given random value.

        :param randomization_value: Random value used for rerandomization.
        """
        self._raw_value *= randomization_value
        self._raw_value %= self.scheme.public_key.n_squared

    def __eq__(self, other: object) -> bool:
        """
        Compare this PaillierCiphertext with another to determine (in)equality.

        :param other: Object to compare this PaillierCiphertext with.
        :raise TypeError: When other object is not a PaillierCiphertext.
        :return: Boolean value representing (in)equality of both objects.
        """
        if not isinstance(other, PaillierCiphertext):
            raise TypeError(
                f"Expected comparison with another PaillierCiphertext, not {type(other)}"
            )
        return self._raw_value == other._raw_value and self.scheme == other.scheme

    def copy(self: PaillierCiphertext) -> PaillierCiphertext:
        """
        Create a copy of this Ciphertext, with the same value and scheme. The copy is not
        randomized and is considered not fresh.

        :return: Copied PaillierCiphertext.
        """
        return PaillierCiphertext(raw_value=self._raw_value, scheme=self.scheme)

    # region Serialization logic

    def serialize(self, **_kwargs: Any) -> dict[str, Any]:
        r"""
        Serialization function for Paillier ciphertexts, which will be passed to the communication
        module.

        If the ciphertext is not fresh, it is randomized before serialization. After serialization,
        it is always marked as not fresh for security reasons.

        :param \**_kwargs: Optional extra keyword arguments.
        :return: serialized version of this PaillierCiphertext.
        """
        if not self.fresh:
            warnings.warn(WARN_UNFRESH_SERIALIZATION, EncryptionSchemeWarning)
            self.randomize()
        self._fresh = False
        return {
            "value": int(self._raw_value),
            "scheme": self.scheme,
        }

    @staticmethod
    def deserialize(obj: dict[str, Any], **_kwargs: Any) -> PaillierCiphertext:
        r"""
        Deserialization function for Paillier ciphertexts, which will be passed to the
        communication module.

        :param obj: serialized version of a PaillierCiphertext.
        :param \**_kwargs: Optional extra keyword arguments.
        :return: Deserialized PaillierCiphertext from the given dict.
        """
        return PaillierCiphertext(raw_value=obj["value"], scheme=obj["scheme"])

    # endregion


class Paillier(
    AsymmetricEncryptionScheme[
        KeyMaterial,
        Plaintext,
        int,
        int,
        PaillierCiphertext,
        PaillierPublicKey,
        PaillierSecretKey,
    ],
    RandomizedEncryptionScheme[
        KeyMaterial, Plaintext, int, int, PaillierCiphertext, int
    ],
):
    r"""
    Paillier Encryption Scheme. This is an AsymmetricEncryptionScheme, with a public and secret
    key. This is also a RandomizedEncryptionScheme, thus having internal randomness generation.

    Plaintexts are integers in $[0, n)$. Homomorphic operations work modulo $n$.
    """

    public_key: PaillierPublicKey
    secret_key: PaillierSecretKey

    def __init__(
        self,
        public_key: PaillierPublicKey,
        secret_key: PaillierSecretKey | None,
        debug: bool = False,
    ):
        """
        Construct a new Paillier encryption scheme with the given keypair.

        :param public_key: Public key for this Paillier Scheme.
        :param secret_key: Optional Secret Key for this Paillier Scheme (None when unknown).
        :param debug: flag to determine whether debug information should be displayed.
        :raise KeyMismatchError: When the secret key does not belong to the public key.
        """
        if secret_key is not None and secret_key.n != public_key.n:
            raise KeyMismatchError("The secret key does not belong to the public key.")
        self._generate_randomness = partial(  # type: ignore[method-assign]
            self._generate_randomness_from_args,
            public_n=public_key.n,
            public_n_squared=public_key.n_squared,
        )
        AsymmetricEncryptionScheme.__init__(
            self, public_key=public_key, secret_key=secret_key
        )
        RandomizedEncryptionScheme.__init__(
            self,
            debug=debug,
        )

    @staticmethod
    def generate_key_material(
        key_length: int = KEY_SIZE,
        certainty: int = CERTAINTY,
        min_key_length: int = MIN_KEY_SIZE,
    ) -> KeyMaterial:
        r"""
        Method to generate key material (PaillierPublicKey and PaillierSecretKey).

        :param key_length: Bit length of the public modulus $n$.
        :param certainty: The primes $p$ and $q$ are composite with probability at most
            $2^{-certainty}$.
        :param min_key_length: Smallest accepted key length.
        :raise InvalidKeySizeError: When the key length is below the minimum or odd.
        :return: Tuple with first the Public Key and then the Secret Key.
        """
        check_key_length(key_length, min_key_length)
        if key_length % 2 != 0:
            raise InvalidKeySizeError(f"Key length should be even, got {key_length}.")
        start = time.perf_counter()
        while True:
            p = generate_prime(key_length // 2, certainty)
            q = generate_prime(key_length // 2, certainty)
            n = p * q
            if (
                p != q
                and n.bit_length() == key_length
                and math.gcd(n, (p - 1) * (q - 1)) == 1
            ):
                break
        n_squared = n * n
        g = n + 1
        lambda_value = math.lcm(p - 1, q - 1)
        mu = mod_inv((pow_mod(g, lambda_value, n_squared) - 1) // n, n)
        logger.info(
            "Generated a %d-bit Paillier key in %.2f seconds.",
            key_length,
            time.perf_counter() - start,
        )
        return PaillierPublicKey(n, g), PaillierSecretKey(p, q, lambda_value, mu)

    def encode(self, plaintext: Plaintext) -> EncodedPlaintext[int]:
        """
        Encode an integer in the plaintext domain of this scheme.

        :param plaintext: Plaintext to be encoded.
        :raise PlaintextOutOfRangeError: If the plaintext is outside [0, n).
        :return: EncodedPlaintext object containing the encoded value.
        """
        if not isinstance(plaintext, int) or not 0 <= plaintext < self.public_key.n:
            raise PlaintextOutOfRangeError(
                f"Paillier plaintexts should be integers in [0, n), got {plaintext!r}."
            )
        return EncodedPlaintext(plaintext, self)

    def decode(self, encoded_plaintext: EncodedPlaintext[int]) -> Plaintext:
        """
        Decode an EncodedPlaintext.

        :param encoded_plaintext: Plaintext to be decoded.
        :return: decoded Plaintext value
        """
        return encoded_plaintext.value

    def _unsafe_encrypt_raw(
        self,
        plaintext: EncodedPlaintext[int],
    ) -> PaillierCiphertext:
        r"""
        Encrypts an encoded (raw) plaintext value, but does not apply randomization. With
        $g = n + 1$ we have $g^m = 1 + m \cdot n \mod n^2$. Raw values are reduced modulo $n$.

        :param plaintext: EncodedPlaintext object containing the raw value to be encrypted.
        :return: Non-randomized PaillierCiphertext object containing the encrypted plaintext.
        """
        n = self.public_key.n
        if self.public_key.g == n + 1:
            value = (1 + (plaintext.value % n) * n) % self.public_key.n_squared
        else:
            value = pow_mod(
                self.public_key.g, plaintext.value % n, self.public_key.n_squared
            )
        return PaillierCiphertext(value, self)

    def _decrypt_raw(self, ciphertext: PaillierCiphertext) -> EncodedPlaintext[int]:
        r"""
        Decrypts a ciphertext to its encoded plaintext value as
        $L(c^\lambda \mod n^2) \cdot \mu \mod n$, with $L(x) = (x - 1) / n$.

        :param ciphertext: PaillierCiphertext object containing the ciphertext to be decrypted.
        :raise CiphertextOutOfRangeError: If the ciphertext is not invertible modulo $n^2$.
        :return: EncodedPlaintext object containing the encoded decryption of the ciphertext.
        """
        n = self.public_key.n
        value = ciphertext.peek_value()
        if math.gcd(value, n) != 1:
            raise CiphertextOutOfRangeError(
                "Paillier ciphertext values should be invertible modulo n^2."
            )
        x = pow_mod(value, self.secret_key.lambda_value, self.public_key.n_squared)
        return EncodedPlaintext((x - 1) // n * self.secret_key.mu % n, self)

    def neg(self, ciphertext: PaillierCiphertext) -> PaillierCiphertext:
        """
        Negate the underlying plaintext of this ciphertext modulo n.

        The resulting ciphertext is fresh only if the input was fresh. The input is marked as
        non-fresh after the operation.

        :param ciphertext: PaillierCiphertext of which the underlying plaintext should be negated.
        :return: PaillierCiphertext object corresponding to the negated plaintext.
        """
        new_ciphertext_fresh = ciphertext.fresh
        if new_ciphertext_fresh:
            warnings.warn(
                WARN_INEFFICIENT_HOM_OPERATION, EncryptionSchemeWarning, stacklevel=2
            )

        return PaillierCiphertext(
            mod_inv(ciphertext.get_value(), self.public_key.n_squared),
            self,
            fresh=new_ciphertext_fresh,
        )

    def add(
        self,
        ciphertext_1: PaillierCiphertext,
        ciphertext_2: PaillierCiphertext | Plaintext,
    ) -> PaillierCiphertext:
        """
        Add the underlying plaintext value of ciphertext_1 with the underlying plaintext value of
        ciphertext_2, modulo n. The second operand may also be a plain integer.

        The resulting ciphertext is fresh only if at least one of the inputs was fresh. Both inputs
        are marked as non-fresh after the operation.

        :param ciphertext_1: First PaillierCiphertext of which the underlying plaintext is added.
        :param ciphertext_2: Either a second PaillierCiphertext of which the underlying
            plaintext is added to the first, or an integer.
        :raise KeyMismatchError: When ciphertext_2 was encrypted under a different key.
        :return: A PaillierCiphertext containing the encryption of the addition of both values.
        """
        if isinstance(ciphertext_2, int):
            ciphertext_2 = self.unsafe_encrypt(ciphertext_2, apply_encoding=False)
        elif ciphertext_1.scheme != ciphertext_2.scheme:
            raise KeyMismatchError(
                "The public key of your first ciphertext is not equal to the "
                "public key of your second ciphertext."
            )
        ciphertext_2 = cast(PaillierCiphertext, ciphertext_2)

        new_ciphertext_fresh = ciphertext_1.fresh or ciphertext_2.fresh
        if new_ciphertext_fresh:
            warnings.warn(
                WARN_INEFFICIENT_HOM_OPERATION, EncryptionSchemeWarning, stacklevel=2
            )

        return PaillierCiphertext(
            ciphertext_1.get_value()
            * ciphertext_2.get_value()
            % self.public_key.n_squared,
            self,
            fresh=new_ciphertext_fresh,
        )

    def mul(self, ciphertext: PaillierCiphertext, scalar: int) -> PaillierCiphertext:  # type: ignore[override]  # pylint: disable=arguments-renamed
        """
        Multiply the underlying plaintext value of ciphertext with the given scalar, modulo n.

        The resulting ciphertext is fresh only if the input was fresh. The input is marked as
        non-fresh after the operation.

        :param ciphertext: PaillierCiphertext of which the underlying plaintext is multiplied.
        :param scalar: A scalar with which the plaintext underlying ciphertext should be
            multiplied.
        :raise TypeError: When the scalar is not an integer.
        :return: PaillierCiphertext containing the encryption of the product of both values.
        """
        if not isinstance(scalar, int):
            raise TypeError(
                f"Type of scalar (second multiplicand) should be an integer and not"
                f" {type(scalar)}."
            )
        if scalar < 0:
            ciphertext = self.neg(ciphertext)
            scalar = -scalar

        new_ciphertext_fresh = ciphertext.fresh
        if new_ciphertext_fresh:
            warnings.warn(
                WARN_INEFFICIENT_HOM_OPERATION, EncryptionSchemeWarning, stacklevel=2
            )

        return PaillierCiphertext(
            pow_mod(ciphertext.get_value(), scalar, self.public_key.n_squared),
            self,
            fresh=new_ciphertext_fresh,
        )

    def __eq__(self, other: object) -> bool:
        """
        Compare this Paillier scheme with another to determine (in)equality. Does not take the
        secret key into account as it might not be known.

        :param other: Object to compare this Paillier scheme with.
        :return: Boolean value representing (in)equality of both objects.
        """
        return isinstance(other, Paillier) and self.public_key == other.public_key

    @staticmethod
    def _generate_randomness_from_args(public_n: int, public_n_squared: int) -> int:
        r"""
        Method to generate randomness $r^n \mod n^2$, with $r$ a random unit modulo $n$.

        :param public_n: Modulus of the plaintext space.
        :param public_n_squared: Modulus of the ciphertext space.
        :return: A random number.
        """
        return pow_mod(random_unit(public_n), public_n, public_n_squared)

    @classmethod
    def id_from_arguments(
        cls,
        public_key: PaillierPublicKey,
        **_kwargs: Any,
    ) -> int:
        r"""
        Method that turns the arguments for the constructor into an identifier. This identifier is
        used to find constructor calls that would result in identical schemes.

        :param public_key: PaillierPublicKey of the Paillier instance.
        :param \**_kwargs: Remaining constructor arguments, they do not influence the identity.
        :return: Identifier of the Paillier instance
        """
        return hash(public_key)


    # region Serialization logic

    def serialize(self, **_kwargs: Any) -> dict[str, Any]:
        r"""
        Serialization function for Paillier schemes, which will be passed to the communication
        module. The secret key is never serialized.

        :param \**_kwargs: Optional extra keyword arguments.
        :return: serialized version of this Paillier scheme.
        """
        return {"pubkey": self.public_key}

    @staticmethod
    def deserialize(obj: dict[str, Any], **_kwargs: Any) -> Paillier:
        r"""
        Deserialization function for Paillier schemes, which will be passed to the communication
        module. A scheme with the same public key that is already saved globally is reused,
        otherwise a scheme without secret key is created and saved globally.

        :param obj: serialized version of a Paillier scheme.
        :param \**_kwargs: Optional extra keyword arguments.
        :return: Deserialized Paillier scheme from the given dict.
        """
        public_key = obj["pubkey"]
        identifier = Paillier.id_from_arguments(public_key=public_key)
        if identifier in Paillier._instances:
            return Paillier.from_id(identifier)
        paillier = Paillier(public_key=public_key, secret_key=None)
        paillier.save_globally()
        return paillier

    # endregion


try:
    Serialization.register_class(Paillier, check_annotations=False)
    Serialization.register_class(PaillierCiphertext, check_annotations=False)
    Serialization.register_class(PaillierPublicKey, check_annotations=False)
    Serialization.register_class(PaillierSecretKey, check_annotations=False)
except RepetitionError:
    pass

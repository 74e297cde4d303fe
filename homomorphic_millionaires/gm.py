"""
Implementation of the Goldwasser-Micali cryptosystem, a bitwise probabilistic scheme that is
homomorphic with respect to XOR.
"""

from __future__ import annotations

import logging
import time
import warnings
from dataclasses import asdict, dataclass
from functools import cached_property, partial
from typing import Any, List, Sequence, Tuple, cast

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
from tno.mpc.encryption_schemes.utils import pow_mod

from homomorphic_millionaires.config import CERTAINTY, KEY_SIZE, MIN_KEY_SIZE
from homomorphic_millionaires.errors import (
    WARN_INEFFICIENT_HOM_OPERATION,
    WARN_UNFRESH_SERIALIZATION,
    CiphertextOutOfRangeError,
    InvalidKeySizeError,
    KeyMismatchError,
    LengthMismatchError,
    PlaintextOutOfRangeError,
)
from homomorphic_millionaires.number_theory import (
    check_key_length,
    generate_prime,
    jacobi,
    quadratic_non_residue,
    random_unit,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=True)
class GMPublicKey(PublicKey):
    """
    PublicKey for the Goldwasser-Micali encryption scheme.

    :param n: Modulus $n = p \\cdot q$.
    :param y: Quadratic non-residue modulo both $p$ and $q$.
    """

    n: int
    y: int

    def serialize(self, **_kwargs: Any) -> dict[str, Any]:
        r"""
        Export this key as a dictionary.

        :param \**_kwargs: Optional extra keyword arguments.
        :return: serialized version of this GMPublicKey.
        """
        return {name: int(value) for name, value in asdict(self).items()}

    @staticmethod
    def deserialize(obj: dict[str, Any], **_kwargs: Any) -> GMPublicKey:
        r"""
        Import a key that was exported with serialize.

        :param obj: serialized version of a GMPublicKey.
        :param \**_kwargs: Optional extra keyword arguments.
        :return: Deserialized GMPublicKey from the given dict.
        """
        return GMPublicKey(**obj)


@dataclass(frozen=True, eq=True)
class GMSecretKey(SecretKey):
    """
    SecretKey for the Goldwasser-Micali encryption scheme.

    :param p: Prime factor of $n$.
    :param q: Prime factor of $n$.
    """

    p: int
    q: int

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
        :return: serialized version of this GMSecretKey.
        """
        return {name: int(value) for name, value in asdict(self).items()}

    @staticmethod
    def deserialize(obj: dict[str, Any], **_kwargs: Any) -> GMSecretKey:
        r"""
        Import a key that was exported with serialize.

        :param obj: serialized version of a GMSecretKey.
        :param \**_kwargs: Optional extra keyword arguments.
        :return: Deserialized GMSecretKey from the given dict.
        """
        return GMSecretKey(**obj)


KeyMaterial = Tuple[GMPublicKey, GMSecretKey]
Plaintext = int


class GMCiphertext(RandomizableCiphertext[KeyMaterial, Plaintext, int, int, int]):
    """
    Encryption of a single bit under the Goldwasser-Micali scheme. Adding two ciphertexts
    yields the encryption of the XOR of their bits.
    """

    scheme: GM

    def __init__(self, raw_value: int, scheme: GM, *, fresh: bool = False):
        """
        Construct a RandomizableCiphertext, with the given value for the given EncryptionScheme.

        :param raw_value: GMCiphertext value.
        :param scheme: GM scheme that is used to encrypt this ciphertext.
        :param fresh: Indicates whether fresh randomness is already applied to the raw_value.
        :raise TypeError: If the given scheme is not of the type GM.
        :raise CiphertextOutOfRangeError: If the value does not lie in [1, n).
        """
        if not isinstance(scheme, GM):
            raise TypeError(f"expected GM scheme, got {type(scheme)}")
        if not 0 < raw_value < scheme.public_key.n:
            raise CiphertextOutOfRangeError("GM ciphertext values should lie in [1, n).")
        super().__init__(raw_value, scheme, fresh=fresh)

    def apply_randomness(self: GMCiphertext, randomization_value: int) -> None:
        """
        Rerandomize this ciphertext by multiplying it with a random square.

        :param randomization_value: Random square modulo n.
        """
        self._raw_value *= randomization_value
        self._raw_value %= self.scheme.public_key.n

    def __eq__(self, other: object) -> bool:
        """
        Compare this GMCiphertext with another to determine (in)equality.

        :param other: Object to compare this GMCiphertext with.
        :raise TypeError: When other object is not a GMCiphertext.
        :return: Boolean value representing (in)equality of both objects.
        """
        if not isinstance(other, GMCiphertext):
            raise TypeError(
                f"Expected comparison with another GMCiphertext, not {type(other)}"
            )
        return self._raw_value == other._raw_value and self.scheme == other.scheme

    def copy(self: GMCiphertext) -> GMCiphertext:
        """
        Create a copy of this Ciphertext, with the same value and scheme. The copy is not
        randomized and is considered not fresh.

        :return: Copied GMCiphertext.
        """
        return GMCiphertext(raw_value=self._raw_value, scheme=self.scheme)

    # region Serialization logic

    def serialize(self, **_kwargs: Any) -> dict[str, Any]:
        r"""
        Serialization function for GM ciphertexts, which will be passed to the communication
        module.

        If the ciphertext is not fresh, it is randomized before serialization. After serialization,
        it is always marked as not fresh for security reasons.

        :param \**_kwargs: Optional extra keyword arguments.
        :return: serialized version of this GMCiphertext.
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
    def deserialize(obj: dict[str, Any], **_kwargs: Any) -> GMCiphertext:
        r"""
        Deserialization function for GM ciphertexts, which will be passed to the
        communication module.

        :param obj: serialized version of a GMCiphertext.
        :param \**_kwargs: Optional extra keyword arguments.
        :return: Deserialized GMCiphertext from the given dict.
        """
        return GMCiphertext(raw_value=obj["value"], scheme=obj["scheme"])

    # endregion


class GM(
    AsymmetricEncryptionScheme[
        KeyMaterial,
        Plaintext,
        int,
        int,
        GMCiphertext,
        GMPublicKey,
        GMSecretKey,
    ],
    RandomizedEncryptionScheme[KeyMaterial, Plaintext, int, int, GMCiphertext, int],
):
    """
    Goldwasser-Micali Encryption Scheme. The templates interface encrypts single bits; use
    encrypt_message, decrypt_message and xor to work on integers bit by bit.
    """

    public_key: GMPublicKey
    secret_key: GMSecretKey

    def __init__(
        self,
        public_key: GMPublicKey,
        secret_key: GMSecretKey | None,
        debug: bool = False,
    ):
        """
        Construct a new GM encryption scheme with the given keypair.

        :param public_key: Public key for this GM Scheme.
        :param secret_key: Optional Secret Key for this GM Scheme (None when unknown).
        :param debug: flag to determine whether debug information should be displayed.
        :raise KeyMismatchError: When the secret key does not belong to the public key.
        """
        if secret_key is not None and secret_key.n != public_key.n:
            raise KeyMismatchError("The secret key does not belong to the public key.")
        self._generate_randomness = partial(  # type: ignore[method-assign]
            self._generate_randomness_from_args,
            public_n=public_key.n,
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
        """
        Method to generate key material (GMPublicKey and GMSecretKey).

        :param key_length: Bit length of the modulus n.
        :param certainty: Generated primes are composite with probability at most
            2^-certainty.
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
            if p != q and (p * q).bit_length() == key_length:
                break
        y = quadratic_non_residue(p, q)
        logger.info(
            "Generated a %d-bit GM key in %.2f seconds.",
            key_length,
            time.perf_counter() - start,
        )
        return GMPublicKey(p * q, y), GMSecretKey(p, q)

    def encode(self, plaintext: Plaintext) -> EncodedPlaintext[int]:
        """
        Encode a single bit.

        :param plaintext: Bit to be encoded.
        :raise PlaintextOutOfRangeError: If the plaintext is not 0 or 1.
        :return: EncodedPlaintext object containing the encoded value.
        """
        if plaintext not in (0, 1):
            raise PlaintextOutOfRangeError(
                f"GM encrypts single bits, got {plaintext!r}. Use encrypt_message for integers."
            )
        return EncodedPlaintext(int(plaintext), self)

    def decode(self, encoded_plaintext: EncodedPlaintext[int]) -> Plaintext:
        """
        Decode an EncodedPlaintext.

        :param encoded_plaintext: Plaintext to be decoded.
        :return: decoded bit
        """
        return encoded_plaintext.value

    def _unsafe_encrypt_raw(
        self,
        plaintext: EncodedPlaintext[int],
    ) -> GMCiphertext:
        r"""
        Encrypts a bit without randomization: $y$ for a one and $1$ for a zero. Randomization
        multiplies this with a random square $x^2 \mod n$.

        :param plaintext: EncodedPlaintext object containing the raw bit to be encrypted.
        :return: Non-randomized GMCiphertext object containing the encrypted bit.
        """
        return GMCiphertext(self.public_key.y if plaintext.value % 2 else 1, self)

    def _decrypt_raw(self, ciphertext: GMCiphertext) -> EncodedPlaintext[int]:
        """
        Decrypts a ciphertext bit; a Jacobi symbol of -1 with respect to p means the bit is one.

        :param ciphertext: GMCiphertext object containing the ciphertext to be decrypted.
        :raise CiphertextOutOfRangeError: If the ciphertext shares a factor with n.
        :return: EncodedPlaintext object containing the decrypted bit.
        """
        symbol = jacobi(ciphertext.peek_value(), self.secret_key.p)
        if symbol == 0:
            raise CiphertextOutOfRangeError("GM ciphertexts should be coprime to n.")
        return EncodedPlaintext(int(symbol == -1), self)

    def neg(self, ciphertext: GMCiphertext) -> GMCiphertext:
        """
        Negation modulo 2 is the identity; returns a ciphertext of the same bit.

        :param ciphertext: GMCiphertext to be negated.
        :return: GMCiphertext containing the same bit.
        """
        new_ciphertext_fresh = ciphertext.fresh
        if new_ciphertext_fresh:
            warnings.warn(
                WARN_INEFFICIENT_HOM_OPERATION, EncryptionSchemeWarning, stacklevel=2
            )
        return GMCiphertext(ciphertext.get_value(), self, fresh=new_ciphertext_fresh)

    def add(
        self,
        ciphertext_1: GMCiphertext,
        ciphertext_2: GMCiphertext | Plaintext,
    ) -> GMCiphertext:
        """
        XOR the underlying bits of both ciphertexts by multiplying them modulo n.

        The resulting ciphertext is fresh only if at least one of the inputs was fresh. Both inputs
        are marked as non-fresh after the operation.

        :param ciphertext_1: First GMCiphertext.
        :param ciphertext_2: Second GMCiphertext, or a plain bit.
        :raise KeyMismatchError: When ciphertext_2 was encrypted under a different key.
        :return: GMCiphertext containing the XOR of both bits.
        """
        if isinstance(ciphertext_2, int):
            ciphertext_2 = self.unsafe_encrypt(ciphertext_2 % 2, apply_encoding=False)
        elif ciphertext_1.scheme != ciphertext_2.scheme:
            raise KeyMismatchError(
                "The public key of your first ciphertext is not equal to the "
                "public key of your second ciphertext."
            )
        ciphertext_2 = cast(GMCiphertext, ciphertext_2)

        new_ciphertext_fresh = ciphertext_1.fresh or ciphertext_2.fresh
        if new_ciphertext_fresh:
            warnings.warn(
                WARN_INEFFICIENT_HOM_OPERATION, EncryptionSchemeWarning, stacklevel=2
            )

        return GMCiphertext(
            ciphertext_1.get_value() * ciphertext_2.get_value() % self.public_key.n,
            self,
            fresh=new_ciphertext_fresh,
        )

    def mul(self, ciphertext: GMCiphertext, scalar: int) -> GMCiphertext:  # type: ignore[override]  # pylint: disable=arguments-renamed
        """
        Multiply the underlying bit with a scalar modulo 2.

        :param ciphertext: GMCiphertext of which the underlying bit is multiplied.
        :param scalar: Integer multiplier.
        :raise TypeError: When the scalar is not an integer.
        :return: GMCiphertext containing the product of the bit and the scalar modulo 2.
        """
        if not isinstance(scalar, int):
            raise TypeError(
                f"Type of scalar (second multiplicand) should be an integer and not"
                f" {type(scalar)}."
            )
        new_ciphertext_fresh = ciphertext.fresh
        if new_ciphertext_fresh:
            warnings.warn(
                WARN_INEFFICIENT_HOM_OPERATION, EncryptionSchemeWarning, stacklevel=2
            )
        return GMCiphertext(
            pow_mod(ciphertext.get_value(), abs(scalar), self.public_key.n),
            self,
            fresh=new_ciphertext_fresh,
        )

    def encrypt_message(
        self, message: int, bit_length: int | None = None
    ) -> List[GMCiphertext]:
        """
        Encrypt an integer bit by bit. Every bit uses fresh randomness.

        :param message: Non-negative integer to be encrypted.
        :param bit_length: Number of bits to encrypt, defaults to the bit length of the message.
        :raise PlaintextOutOfRangeError: When the message is negative or does not fit in
            bit_length bits.
        :return: Encrypted bits, least significant bit first.
        """
        if message < 0:
            raise PlaintextOutOfRangeError("GM only encrypts non-negative integers.")
        if bit_length is None:
            bit_length = max(1, message.bit_length())
        if message >> bit_length:
            raise PlaintextOutOfRangeError(
                f"Message {message} does not fit in {bit_length} bits."
            )
        return [self.encrypt((message >> index) & 1) for index in range(bit_length)]

    def decrypt_message(self, ciphertexts: Sequence[GMCiphertext]) -> int:
        """
        Decrypt a sequence of encrypted bits, least significant bit first.

        :param ciphertexts: Encrypted bits.
        :return: The decrypted integer.
        """
        return sum(
            self.decrypt(ciphertext) << index
            for index, ciphertext in enumerate(ciphertexts)
        )

    @staticmethod
    def xor(
        ciphertexts_1: Sequence[GMCiphertext], ciphertexts_2: Sequence[GMCiphertext]
    ) -> List[GMCiphertext]:
        """
        XOR two encrypted messages bitwise.

        :param ciphertexts_1: Encrypted bits of the first message.
        :param ciphertexts_2: Encrypted bits of the second message.
        :raise LengthMismatchError: When the messages have a different number of bits.
        :return: Encrypted bits of the XOR of both messages.
        """
        if len(ciphertexts_1) != len(ciphertexts_2):
            raise LengthMismatchError(
                f"Cannot XOR messages of {len(ciphertexts_1)} and {len(ciphertexts_2)} bits."
            )
        return [
            bit_1 + bit_2 for bit_1, bit_2 in zip(ciphertexts_1, ciphertexts_2)
        ]

    def __eq__(self, other: object) -> bool:
        """
        Compare this GM scheme with another to determine (in)equality. Does not take the
        secret key into account as it might not be known.

        :param other: Object to compare this GM scheme with.
        :return: Boolean value representing (in)equality of both objects.
        """
        return isinstance(other, GM) and self.public_key == other.public_key

    @staticmethod
    def _generate_randomness_from_args(public_n: int) -> int:
        """
        Method to generate randomness for GM: the square of a random unit modulo n.

        :param public_n: Modulus n.
        :return: A random square.
        """
        return pow_mod(random_unit(public_n), 2, public_n)

    @classmethod
    def id_from_arguments(
        cls,
        public_key: GMPublicKey,
        **_kwargs: Any,
    ) -> int:
        r"""
        Method that turns the arguments for the constructor into an identifier. This identifier is
        used to find constructor calls that would result in identical schemes.

        :param public_key: GMPublicKey of the GM instance.
        :param \**_kwargs: Remaining constructor arguments, they do not influence the identity.
        :return: Identifier of the GM instance
        """
        return hash(public_key)

    # region Serialization logic

    def serialize(self, **_kwargs: Any) -> dict[str, Any]:
        r"""
        Serialization function for GM schemes, which will be passed to the communication
        module. The secret key is never serialized.

        :param \**_kwargs: Optional extra keyword arguments.
        :return: serialized version of this GM scheme.
        """
        return {"pubkey": self.public_key}

    @staticmethod
    def deserialize(obj: dict[str, Any], **_kwargs: Any) -> GM:
        r"""
        Deserialization function for GM schemes, which will be passed to the communication
        module. A scheme with the same public key that is already saved globally is reused,
        otherwise a scheme without secret key is created and saved globally.

        :param obj: serialized version of a GM scheme.
        :param \**_kwargs: Optional extra keyword arguments.
        :return: Deserialized GM scheme from the given dict.
        """
        public_key = obj["pubkey"]
        identifier = GM.id_from_arguments(public_key=public_key)
        if identifier in GM._instances:
            return GM.from_id(identifier)
        scheme = GM(public_key=public_key, secret_key=None)
        scheme.save_globally()
        return scheme

    # endregion


try:
    Serialization.register_class(GM, check_annotations=False)
    Serialization.register_class(GMCiphertext, check_annotations=False)
    Serialization.register_class(GMPublicKey, check_annotations=False)
    Serialization.register_class(GMSecretKey, check_annotations=False)
except RepetitionError:
    pass

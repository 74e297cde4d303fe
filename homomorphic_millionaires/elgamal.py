"""
Implementation of exponential ElGamal, an additively homomorphic variant of the ElGamal
cryptosystem that decrypts a bounded plaintext domain through a precomputed discrete logarithm
table.
"""

from __future__ import annotations

import logging
import time
import warnings
from dataclasses import asdict, dataclass
from functools import cached_property, partial
from types import MappingProxyType
from typing import Any, Mapping, Tuple, cast

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

from homomorphic_millionaires.config import (
    CERTAINTY,
    ELGAMAL_MIN_KEY_SIZE,
    KEY_SIZE,
    ElGamalLookupRange,
)
from homomorphic_millionaires.errors import (
    WARN_INEFFICIENT_HOM_OPERATION,
    WARN_UNFRESH_SERIALIZATION,
    CiphertextOutOfRangeError,
    DiscreteLogNotFoundError,
    KeyMismatchError,
    PlaintextOutOfRangeError,
)
from homomorphic_millionaires.number_theory import (
    check_key_length,
    generate_safe_prime,
    random_below,
)

logger = logging.getLogger(__name__)

CiphertextValue = Tuple[int, int]


@dataclass(frozen=True, eq=True)
class ElGamalPublicKey(PublicKey):
    r"""
    PublicKey for the ElGamal encryption scheme.

    :param p: Safe prime modulus $p = 2q + 1$.
    :param g: Generator of $\mathbb{Z}_p^*$, of order $p - 1 = 2q$.
    :param h: Public value $h = g^x \mod p$.
    """

    p: int
    g: int
    h: int

    @cached_property
    def q(self) -> int:
        """
        Cached Sophie Germain prime $q = (p - 1) / 2$.
        """
        return (self.p - 1) // 2

    def serialize(self, **_kwargs: Any) -> dict[str, Any]:
        r"""
        Export this key as a dictionary.

        :param \**_kwargs: Optional extra keyword arguments.
        :return: serialized version of this ElGamalPublicKey.
        """
        return {name: int(value) for name, value in asdict(self).items()}

    @staticmethod
    def deserialize(obj: dict[str, Any], **_kwargs: Any) -> ElGamalPublicKey:
        r"""
        Import a key that was exported with serialize.

        :param obj: serialized version of an ElGamalPublicKey.
        :param \**_kwargs: Optional extra keyword arguments.
        :return: Deserialized ElGamalPublicKey from the given dict.
        """
        return ElGamalPublicKey(**obj)


@dataclass(frozen=True, eq=True)
class ElGamalSecretKey(SecretKey):
    """
    SecretKey for the ElGamal encryption scheme.

    :param x: Secret exponent.
    """

    x: int

    def serialize(self, **_kwargs: Any) -> dict[str, Any]:
        r"""
        Export this key as a dictionary.

        :param \**_kwargs: Optional extra keyword arguments.
        :return: serialized version of this ElGamalSecretKey.
        """
        return {name: int(value) for name, value in asdict(self).items()}

    @staticmethod
    def deserialize(obj: dict[str, Any], **_kwargs: Any) -> ElGamalSecretKey:
        r"""
        Import a key that was exported with serialize.

        :param obj: serialized version of an ElGamalSecretKey.
        :param \**_kwargs: Optional extra keyword arguments.
        :return: Deserialized ElGamalSecretKey from the given dict.
        """
        return ElGamalSecretKey(**obj)


KeyMaterial = Tuple[ElGamalPublicKey, ElGamalSecretKey]
Plaintext = int


class ElGamalCiphertext(
    RandomizableCiphertext[
        KeyMaterial, Plaintext, int, CiphertextValue, CiphertextValue
    ]
):
    r"""
    Ciphertext for the ElGamal encryption scheme, a pair of group elements
    $(g^r, g^m \cdot h^r)$. This ciphertext is rerandomizable and supports homomorphic
    operations.
    """

    scheme: ElGamal

    def __init__(
        self, raw_value: CiphertextValue, scheme: ElGamal, *, fresh: bool = False
    ):
        """
        Construct a RandomizableCiphertext, with the given value for the given EncryptionScheme.

        :param raw_value: Pair of integers in [1, p).
        :param scheme: ElGamal scheme that is used to encrypt this ciphertext.
        :param fresh: Indicates whether fresh randomness is already applied to the raw_value.
        :raise TypeError: If the given scheme is not of the type ElGamal.
        :raise CiphertextOutOfRangeError: If a component lies outside [1, p).
        """
        if not isinstance(scheme, ElGamal):
            raise TypeError(f"expected ElGamal scheme, got {type(scheme)}")
        if len(raw_value) != 2 or not all(
            0 < component < scheme.public_key.p for component in raw_value
        ):
            raise CiphertextOutOfRangeError(
                "ElGamal ciphertexts should be pairs of integers in [1, p)."
            )
        super().__init__(tuple(raw_value), scheme, fresh=fresh)

    def apply_randomness(
        self: ElGamalCiphertext, randomization_value: CiphertextValue
    ) -> None:
        """
        Rerandomize this ciphertext using the given random value $(g^r, h^r)$.

        :param randomization_value: Random value used for rerandomization.
        """
        modulus = self.scheme.public_key.p
        self._raw_value = (
            self._raw_value[0] * randomization_value[0] % modulus,
            self._raw_value[1] * randomization_value[1] % modulus,
        )

    def __eq__(self, other: object) -> bool:
        """
        Compare this ElGamalCiphertext with another to determine (in)equality.

        :param other: Object to compare this ElGamalCiphertext with.
        :raise TypeError: When other object is not an ElGamalCiphertext.
        :return: Boolean value representing (in)equality of both objects.
        """
        if not isinstance(other, ElGamalCiphertext):
            raise TypeError(
                f"Expected comparison with another ElGamalCiphertext, not {type(other)}"
            )
        return self._raw_value == other._raw_value and self.scheme == other.scheme

    def copy(self: ElGamalCiphertext) -> ElGamalCiphertext:
        """
        Create a copy of this Ciphertext, with the same value and scheme. The copy is not
        randomized and is considered not fresh.

        :return: Copied ElGamalCiphertext.
        """
        return ElGamalCiphertext(raw_value=self._raw_value, scheme=self.scheme)

    # region Serialization logic

    def serialize(self, **_kwargs: Any) -> dict[str, Any]:
        r"""
        Serialization function for ElGamal ciphertexts, which will be passed to the communication
        module.

        If the ciphertext is not fresh, it is randomized before serialization. After serialization,
        it is always marked as not fresh for security reasons.

        :param \**_kwargs: Optional extra keyword arguments.
        :return: serialized version of this ElGamalCiphertext.
        """
        if not self.fresh:
            warnings.warn(WARN_UNFRESH_SERIALIZATION, EncryptionSchemeWarning)
            self.randomize()
        self._fresh = False
        return {
            "value": [int(component) for component in self._raw_value],
            "scheme": self.scheme,
        }

    @staticmethod
    def deserialize(obj: dict[str, Any], **_kwargs: Any) -> ElGamalCiphertext:
        r"""
        Deserialization function for ElGamal ciphertexts, which will be passed to the
        communication module.

        :param obj: serialized version of an ElGamalCiphertext.
        :param \**_kwargs: Optional extra keyword arguments.
        :return: Deserialized ElGamalCiphertext from the given dict.
        """
        first, second = obj["value"]
        return ElGamalCiphertext(raw_value=(first, second), scheme=obj["scheme"])

    # endregion


class ElGamal(
    AsymmetricEncryptionScheme[
        KeyMaterial,
        Plaintext,
        int,
        CiphertextValue,
        ElGamalCiphertext,
        ElGamalPublicKey,
        ElGamalSecretKey,
    ],
    RandomizedEncryptionScheme[
        KeyMaterial, Plaintext, int, CiphertextValue, ElGamalCiphertext, CiphertextValue
    ],
):
    r"""
    Exponential ElGamal Encryption Scheme. A plaintext $m$ is encrypted as
    $(g^r, g^m \cdot h^r)$, so multiplying ciphertexts adds plaintexts modulo $p - 1$.

    Decryption recovers $g^m$ and looks up $m$ in a table that is built once, when the scheme is
    constructed with a secret key. Only plaintexts in the configured lookup range decrypt.
    """

    public_key: ElGamalPublicKey
    secret_key: ElGamalSecretKey

    def __init__(
        self,
        public_key: ElGamalPublicKey,
        secret_key: ElGamalSecretKey | None,
        lookup_range: ElGamalLookupRange | None = None,
        debug: bool = False,
    ):
        r"""
        Construct a new ElGamal encryption scheme with the given keypair.

        With a secret key, this builds the decryption table. That costs one modular
        multiplication and one table entry per decryptable plaintext, i.e.
        $O(size + negative\_size)$.

        :param public_key: Public key for this ElGamal Scheme.
        :param secret_key: Optional Secret Key for this ElGamal Scheme (None when unknown).
        :param lookup_range: Decryptable plaintexts, defaults to
            $[0, 2 \cdot 65537 - 2 + 2^{16}) \cup [p - 10, p - 2]$.
        :param debug: flag to determine whether debug information should be displayed.
        :raise KeyMismatchError: When the secret key does not belong to the public key.
        """
        if secret_key is not None and (
            pow_mod(public_key.g, secret_key.x, public_key.p) != public_key.h
        ):
            raise KeyMismatchError("The secret key does not belong to the public key.")
        self._generate_randomness = partial(  # type: ignore[method-assign]
            self._generate_randomness_from_args,
            public_p=public_key.p,
            public_g=public_key.g,
            public_h=public_key.h,
        )
        AsymmetricEncryptionScheme.__init__(
            self, public_key=public_key, secret_key=secret_key
        )
        RandomizedEncryptionScheme.__init__(
            self,
            debug=debug,
        )

        self.lookup_range = (
            lookup_range if lookup_range is not None else ElGamalLookupRange()
        )
        self.decryption_table: Mapping[int, int] | None = None
        if secret_key is not None:
            self.decryption_table = ElGamal._create_decryption_table(
                public_key, self.lookup_range
            )

    @staticmethod
    def _create_decryption_table(
        public_key: ElGamalPublicKey, lookup_range: ElGamalLookupRange
    ) -> Mapping[int, int]:
        r"""
        Create the table $g^m \mod p \mapsto m$ for all $m$ in the lookup range.

        :param public_key: ElGamal public key.
        :param lookup_range: Decryptable plaintexts.
        :raise ValueError: When the lookup range does not fit in the group of order $p - 1$.
        :return: Read-only decryption table.
        """
        p, g = public_key.p, public_key.g
        if lookup_range.size + lookup_range.negative_size > p - 1:
            raise ValueError("The lookup range is larger than the plaintext group.")
        start = time.perf_counter()
        decryption_table = {}
        value = 1
        for plaintext in range(lookup_range.size):
            decryption_table[value] = plaintext
            value = value * g % p
        # g^(p - 1 - k) = g^-k, since g has order p - 1
        g_inverse = mod_inv(g, p)
        value = g_inverse
        for k in range(1, lookup_range.negative_size + 1):
            decryption_table[value] = p - 1 - k
            value = value * g_inverse % p
        logger.info(
            "Built ElGamal decryption table with %d entries in %.2f seconds.",
            len(decryption_table),
            time.perf_counter() - start,
        )
        return MappingProxyType(decryption_table)

    @staticmethod
    def generate_key_material(
        key_length: int = KEY_SIZE,
        certainty: int = CERTAINTY,
        min_key_length: int = ELGAMAL_MIN_KEY_SIZE,
    ) -> KeyMaterial:
        r"""
        Method to generate key material (ElGamalPublicKey and ElGamalSecretKey).

        The modulus is a safe prime $p = 2q + 1$. The only possible orders of an element of
        $\mathbb{Z}_p^*$ are $1, 2, q$ and $2q$, so a random $g$ with $g^2 \neq 1$ and $g^q \neq 1$
        generates the whole group. Plaintexts then live in $\mathbb{Z}_{p-1}$ without aliasing.

        :param key_length: Bit length of the prime $p$.
        :param certainty: Generated primes are composite with probability at most
            $2^{-certainty}$.
        :param min_key_length: Smallest accepted key length.
        :raise InvalidKeySizeError: When the key length is below the minimum.
        :return: Tuple with first the Public Key and then the Secret Key.
        """
        check_key_length(key_length, min_key_length)
        start = time.perf_counter()
        p = generate_safe_prime(key_length, certainty)
        q = (p - 1) // 2
        while True:
            g = random_below(p - 3) + 2
            if pow_mod(g, 2, p) != 1 and pow_mod(g, q, p) != 1:
                break
        x = random_below(p - 2) + 1
        h = pow_mod(g, x, p)
        logger.info(
            "Generated a %d-bit ElGamal key in %.2f seconds.",
            key_length,
            time.perf_counter() - start,
        )
        return ElGamalPublicKey(p, g, h), ElGamalSecretKey(x)

    def encode(self, plaintext: Plaintext) -> EncodedPlaintext[int]:
        """
        Encode an integer in the plaintext domain [0, p - 1) of this scheme.

        :param plaintext: Plaintext to be encoded.
        :raise PlaintextOutOfRangeError: If the plaintext is outside [0, p - 1).
        :return: EncodedPlaintext object containing the encoded value.
        """
        if not isinstance(plaintext, int) or not 0 <= plaintext < self.public_key.p - 1:
            raise PlaintextOutOfRangeError(
                f"ElGamal plaintexts should be integers in [0, p - 1), got {plaintext!r}."
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
    ) -> ElGamalCiphertext:
        r"""
        Encrypts an encoded (raw) plaintext value as $(1, g^m \mod p)$. Randomization turns this
        into $(g^r, g^m \cdot h^r)$.

        :param plaintext: EncodedPlaintext object containing the raw value to be encrypted.
        :return: Non-randomized ElGamalCiphertext object containing the encrypted plaintext.
        """
        p = self.public_key.p
        return ElGamalCiphertext(
            (1, pow_mod(self.public_key.g, plaintext.value % (p - 1), p)), self
        )

    def _decrypt_raw(self, ciphertext: ElGamalCiphertext) -> EncodedPlaintext[int]:
        r"""
        Decrypts a ciphertext $(c_1, c_2)$ by computing $g^m = c_2 \cdot (c_1^x)^{-1} \mod p$
        and looking up $m$.

        :param ciphertext: ElGamalCiphertext object containing the ciphertext to be decrypted.
        :raise ValueError: When this scheme was constructed without a secret key.
        :raise DiscreteLogNotFoundError: When $g^m$ is not in the decryption table.
        :return: EncodedPlaintext object containing the encoded decryption of the ciphertext.
        """
        if self.decryption_table is None:
            raise ValueError("This scheme has no decryption table.")
        p = self.public_key.p
        gr, hrgm = ciphertext.peek_value()
        gm = hrgm * mod_inv(pow_mod(gr, self.secret_key.x, p), p) % p
        plaintext = self.decryption_table.get(gm)
        if plaintext is None:
            raise DiscreteLogNotFoundError(
                "The plaintext lies outside the lookup range of this scheme."
            )
        return EncodedPlaintext(plaintext, self)

    def neg(self, ciphertext: ElGamalCiphertext) -> ElGamalCiphertext:
        """
        Negate the underlying plaintext of this ciphertext modulo p - 1.

        The resulting ciphertext is fresh only if the input was fresh. The input is marked as
        non-fresh after the operation.

        :param ciphertext: ElGamalCiphertext of which the underlying plaintext should be negated.
        :return: ElGamalCiphertext object corresponding to the negated plaintext.
        """
        new_ciphertext_fresh = ciphertext.fresh
        if new_ciphertext_fresh:
            warnings.warn(
                WARN_INEFFICIENT_HOM_OPERATION, EncryptionSchemeWarning, stacklevel=2
            )

        p = self.public_key.p
        gr, hrgm = ciphertext.get_value()
        return ElGamalCiphertext(
            (mod_inv(gr, p), mod_inv(hrgm, p)), self, fresh=new_ciphertext_fresh
        )

    def add(
        self,
        ciphertext_1: ElGamalCiphertext,
        ciphertext_2: ElGamalCiphertext | Plaintext,
    ) -> ElGamalCiphertext:
        """
        Add the underlying plaintexts by multiplying both ciphertexts componentwise.

        The resulting ciphertext is fresh only if at least one of the inputs was fresh. Both inputs
        are marked as non-fresh after the operation.

        :param ciphertext_1: First ElGamalCiphertext of which the underlying plaintext is added.
        :param ciphertext_2: Either a second ElGamalCiphertext of which the underlying plaintext
            is added to the first, or an integer.
        :raise KeyMismatchError: When ciphertext_2 was encrypted under a different key.
        :return: An ElGamalCiphertext containing the encryption of the addition of both values.
        """
        if isinstance(ciphertext_2, int):
            ciphertext_2 = self.unsafe_encrypt(ciphertext_2, apply_encoding=False)
        elif ciphertext_1.scheme != ciphertext_2.scheme:
            raise KeyMismatchError(
                "The public key of your first ciphertext is not equal to the "
                "public key of your second ciphertext."
            )
        ciphertext_2 = cast(ElGamalCiphertext, ciphertext_2)

        new_ciphertext_fresh = ciphertext_1.fresh or ciphertext_2.fresh
        if new_ciphertext_fresh:
            warnings.warn(
                WARN_INEFFICIENT_HOM_OPERATION, EncryptionSchemeWarning, stacklevel=2
            )

        p = self.public_key.p
        gr_1, hrgm_1 = ciphertext_1.get_value()
        gr_2, hrgm_2 = ciphertext_2.get_value()
        return ElGamalCiphertext(
            (gr_1 * gr_2 % p, hrgm_1 * hrgm_2 % p), self, fresh=new_ciphertext_fresh
        )

    def mul(self, ciphertext: ElGamalCiphertext, scalar: int) -> ElGamalCiphertext:  # type: ignore[override]  # pylint: disable=arguments-renamed
        """
        Multiply the underlying plaintext with a scalar by raising both components to its power.

        The resulting ciphertext is fresh only if the input was fresh. The input is marked as
        non-fresh after the operation.

        :param ciphertext: ElGamalCiphertext of which the underlying plaintext is multiplied.
        :param scalar: A scalar with which the plaintext underlying ciphertext should be
            multiplied.
        :raise TypeError: When the scalar is not an integer.
        :return: ElGamalCiphertext containing the encryption of the product of both values.
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

        p = self.public_key.p
        gr, hrgm = ciphertext.get_value()
        return ElGamalCiphertext(
            (pow_mod(gr, scalar, p), pow_mod(hrgm, scalar, p)),
            self,
            fresh=new_ciphertext_fresh,
        )

    def __eq__(self, other: object) -> bool:
        """
        Compare this ElGamal scheme with another to determine (in)equality. Does not take the
        secret key into account as it might not be known.

        :param other: Object to compare this ElGamal scheme with.
        :return: Boolean value representing (in)equality of both objects.
        """
        return isinstance(other, ElGamal) and self.public_key == other.public_key

    @staticmethod
    def _generate_randomness_from_args(
        public_p: int, public_g: int, public_h: int
    ) -> CiphertextValue:
        r"""
        Method to generate randomness $(g^r, h^r)$ for ElGamal, with $r$ uniform in $[1, p - 1)$.

        :param public_p: Modulus $p$.
        :param public_g: Generator $g$.
        :param public_h: Public value $h$.
        :return: A random pair.
        """
        r = random_below(public_p - 2) + 1
        return pow_mod(public_g, r, public_p), pow_mod(public_h, r, public_p)

    @classmethod
    def id_from_arguments(
        cls,
        public_key: ElGamalPublicKey,
        **_kwargs: Any,
    ) -> int:
        r"""
        Method that turns the arguments for the constructor into an identifier. This identifier is
        used to find constructor calls that would result in identical schemes.

        :param public_key: ElGamalPublicKey of the ElGamal instance.
        :param \**_kwargs: Remaining constructor arguments, they do not influence the identity.
        :return: Identifier of the ElGamal instance
        """
        return hash(public_key)

    # region Serialization logic

    def serialize(self, **_kwargs: Any) -> dict[str, Any]:
        r"""
        Serialization function for ElGamal schemes, which will be passed to the communication
        module. The secret key is never serialized.

        :param \**_kwargs: Optional extra keyword arguments.
        :return: serialized version of this ElGamal scheme.
        """
        return {"pubkey": self.public_key}

    @staticmethod
    def deserialize(obj: dict[str, Any], **_kwargs: Any) -> ElGamal:
        r"""
        Deserialization function for ElGamal schemes, which will be passed to the communication
        module. A scheme with the same public key that is already saved globally is reused,
        otherwise a scheme without secret key is created and saved globally.

        :param obj: serialized version of an ElGamal scheme.
        :param \**_kwargs: Optional extra keyword arguments.
        :return: Deserialized ElGamal scheme from the given dict.
        """
        public_key = obj["pubkey"]
        identifier = ElGamal.id_from_arguments(public_key=public_key)
        if identifier in ElGamal._instances:
            return ElGamal.from_id(identifier)
        scheme = ElGamal(public_key=public_key, secret_key=None)
        scheme.save_globally()
        return scheme

    # endregion


try:
    Serialization.register_class(ElGamal, check_annotations=False)
    Serialization.register_class(ElGamalCiphertext, check_annotations=False)
    Serialization.register_class(ElGamalPublicKey, check_annotations=False)
    Serialization.register_class(ElGamalSecretKey, check_annotations=False)
except RepetitionError:
    pass

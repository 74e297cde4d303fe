"""
The DGK cryptosystem of Damgard, Geisler and Kroigaard. Its plaintext space $[0, u)$ is small,
which makes decryption by table lookup practical and allows a fast test for zero.
"""

from __future__ import annotations

import logging
import secrets
import time
import warnings
from dataclasses import asdict, dataclass
from functools import cached_property, partial
from types import MappingProxyType
from typing import Any, Mapping, Sequence, Tuple, cast

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
from tno.mpc.encryption_schemes.utils import mod_inv, next_prime, pow_mod
from tno.mpc.encryption_schemes.utils.utils import extended_euclidean

from homomorphic_millionaires.config import (
    CERTAINTY,
    DGK_FIELD_BITS,
    DGK_T_BITS,
    KEY_SIZE,
    MAX_DGK_FIELD_BITS,
    MIN_KEY_SIZE,
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
    generate_prime,
    is_probable_prime,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=True)
class DGKPublicKey(PublicKey):
    r"""
    Public part of a DGK key pair.

    :param g: Element of order $u \cdot v_p \cdot v_q$ in $\mathbb{Z}_n^*$.
    :param h: Element of order $v_p \cdot v_q$ in $\mathbb{Z}_n^*$, used for randomization.
    :param u: Plaintext modulus, the smallest prime larger than $2^l$.
    :param n: Ciphertext modulus $n = p \cdot q$.
    :param t: Bit length of the secret primes $v_p$ and $v_q$.
    :param l: Bit length of the plaintext space.
    """

    g: int
    h: int
    u: int
    n: int
    t: int
    l: int

    def serialize(self, **_kwargs: Any) -> dict[str, Any]:
        r"""
        :param \**_kwargs: Unused.
        :return: The key fields as a dictionary.
        """
        return {name: int(value) for name, value in asdict(self).items()}

    @staticmethod
    def deserialize(obj: dict[str, Any], **_kwargs: Any) -> DGKPublicKey:
        r"""
        :param obj: Key fields as returned by serialize.
        :param \**_kwargs: Unused.
        :return: The public key.
        """
        return DGKPublicKey(**obj)


@dataclass(frozen=True, eq=True)
class DGKSecretKey(SecretKey):
    r"""
    Secret part of a DGK key pair.

    :param v_p: Secret prime of $t$ bits dividing $p - 1$.
    :param v_q: Secret prime of $t$ bits dividing $q - 1$.
    :param p: Prime factor of $n$.
    :param q: Prime factor of $n$.
    """

    v_p: int
    v_q: int
    p: int
    q: int

    @cached_property
    def v_p_v_q(self) -> int:
        """
        Order of the randomization subgroup, $v_p \\cdot v_q$.
        """
        return self.v_p * self.v_q

    def serialize(self, **_kwargs: Any) -> dict[str, Any]:
        r"""
        :param \**_kwargs: Unused.
        :return: The key fields as a dictionary.
        """
        return {name: int(value) for name, value in asdict(self).items()}

    @staticmethod
    def deserialize(obj: dict[str, Any], **_kwargs: Any) -> DGKSecretKey:
        r"""
        :param obj: Key fields as returned by serialize.
        :param \**_kwargs: Unused.
        :return: The secret key.
        """
        return DGKSecretKey(**obj)


KeyMaterial = Tuple[DGKPublicKey, DGKSecretKey]
Plaintext = int


class DGKCiphertext(RandomizableCiphertext[KeyMaterial, Plaintext, int, int, int]):
    r"""
    DGK ciphertext $g^m h^r \bmod n$. Supports the homomorphic operations of the scheme and
    rerandomization.
    """

    scheme: DGK

    def __init__(self, raw_value: int, scheme: DGK, *, fresh: bool = False):
        """
        :param raw_value: Ciphertext value in [1, n).
        :param scheme: DGK scheme this ciphertext belongs to.
        :param fresh: Whether randomness has already been applied to raw_value.
        :raise TypeError: When scheme is not a DGK scheme.
        :raise CiphertextOutOfRangeError: When raw_value lies outside [1, n).
        """
        if not isinstance(scheme, DGK):
            raise TypeError(f"expected DGK scheme, got {type(scheme)}")
        if not 0 < raw_value < scheme.public_key.n:
            raise CiphertextOutOfRangeError("DGK ciphertext values should lie in [1, n).")
        super().__init__(raw_value, scheme, fresh=fresh)

    def apply_randomness(self: DGKCiphertext, randomization_value: int) -> None:
        r"""
        Multiply the ciphertext with $h^r \bmod n$.

        :param randomization_value: The value $h^r \bmod n$.
        """
        self._raw_value = self._raw_value * randomization_value % self.scheme.public_key.n

    def is_zero(self: DGKCiphertext) -> bool:
        """
        Shorthand for DGK.is_zero on this ciphertext.

        :return: Whether the plaintext is zero.
        """
        return self.scheme.is_zero(self)

    def __eq__(self, other: object) -> bool:
        """
        :param other: Ciphertext to compare with.
        :raise TypeError: When other is not a DGKCiphertext.
        :return: Whether both ciphertexts have the same value under the same scheme.
        """
        if not isinstance(other, DGKCiphertext):
            raise TypeError(
                f"Expected comparison with another DGKCiphertext, not {type(other)}"
            )
        return self._raw_value == other._raw_value and self.scheme == other.scheme

    def copy(self: DGKCiphertext) -> DGKCiphertext:
        """
        :return: Non-fresh ciphertext with the same value and scheme.
        """
        return DGKCiphertext(raw_value=self._raw_value, scheme=self.scheme)

    # region Serialization logic

    def serialize(self, **_kwargs: Any) -> dict[str, Any]:
        r"""
        Serialization function for DGK ciphertexts, which will be passed to the communication
        module.

        If the ciphertext is not fresh, it is randomized before serialization. After serialization,
        it is always marked as not fresh for security reasons.

        :param \**_kwargs: Optional extra keyword arguments.
        :return: serialized version of this DGKCiphertext.
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
    def deserialize(obj: dict[str, Any], **_kwargs: Any) -> DGKCiphertext:
        r"""
        Deserialization function for DGK ciphertexts, which will be passed to the
        communication module.

        :param obj: serialized version of a DGKCiphertext.
        :param \**_kwargs: Optional extra keyword arguments.
        :return: Deserialized DGKCiphertext from the given dict.
        """
        return DGKCiphertext(raw_value=obj["value"], scheme=obj["scheme"])

    # endregion


def _prime_with_cofactor(
    base: int, bit_length: int, certainty: int, exclude: int = 0
) -> Tuple[int, int]:
    r"""
    Find a prime $r$ of the given bit length such that $base \cdot r + 1$ is prime as well.

    :param base: Even cofactor.
    :param bit_length: Bit length of $r$.
    :param certainty: Primality certainty.
    :param exclude: Value that $r$ may not take.
    :return: The prime $base \cdot r + 1$ and $r$.
    """
    while True:
        random_prime = generate_prime(bit_length, certainty)
        if random_prime == exclude:
            continue
        candidate = base * random_prime + 1
        if is_probable_prime(candidate, certainty):
            return candidate, random_prime


def _cyclic_generator(modulus: int, factors: Sequence[int]) -> int:
    r"""
    Sample a generator of $\mathbb{Z}_p^*$ for prime $p$, given the prime factors of $p - 1$
    (Algorithm 4.80 of the Handbook of Applied Cryptography).

    :param modulus: Prime $p$.
    :param factors: Distinct prime factors of $p - 1$.
    :return: A generator of $\mathbb{Z}_p^*$.
    """
    while True:
        candidate = secrets.randbelow(modulus - 1) + 1
        if all(pow_mod(candidate, (modulus - 1) // factor, modulus) != 1 for factor in factors):
            return candidate


def _composite_generator(
    p: int, q: int, p_factors: Sequence[int], q_factors: Sequence[int]
) -> int:
    r"""
    Sample an element of maximal order $\mathrm{lcm}(p - 1, q - 1)$ in $\mathbb{Z}_{pq}^*$ by
    combining generators modulo $p$ and $q$ with the Chinese remainder theorem (Algorithm 4.83
    of the Handbook of Applied Cryptography).

    :param p: First prime.
    :param q: Second prime.
    :param p_factors: Distinct prime factors of $p - 1$.
    :param q_factors: Distinct prime factors of $q - 1$.
    :return: Element of maximal order.
    """
    generator_p = _cyclic_generator(p, p_factors)
    generator_q = _cyclic_generator(q, q_factors)
    _gcd, coefficient_p, coefficient_q = extended_euclidean(p, q)
    return (generator_p * q * coefficient_q + generator_q * p * coefficient_p) % (p * q)


class DGK(
    AsymmetricEncryptionScheme[
        KeyMaterial,
        Plaintext,
        int,
        int,
        DGKCiphertext,
        DGKPublicKey,
        DGKSecretKey,
    ],
    RandomizedEncryptionScheme[KeyMaterial, Plaintext, int, int, DGKCiphertext, int],
):
    """
    DGK encryption scheme on integer plaintexts in $[0, u)$. Homomorphic operations work
    modulo $u$.

    Decryption looks the value $c^{v_p} \\bmod p$ up in a table with $u$ entries. Schemes that
    only need to test for zero can skip building the table.
    """

    public_key: DGKPublicKey
    secret_key: DGKSecretKey

    def __init__(
        self,
        public_key: DGKPublicKey,
        secret_key: DGKSecretKey | None,
        full_decryption: bool = True,
        debug: bool = False,
    ):
        """
        With a secret key and full_decryption, the decryption table is built here, once, at
        the cost of $u$ modular multiplications. It is read-only afterwards.

        :param public_key: DGK public key.
        :param secret_key: DGK secret key, or None for a scheme that only encrypts.
        :param full_decryption: Build the decryption table. Without it, only is_zero works.
        :param debug: Whether to display debug information.
        :raise KeyMismatchError: When the secret key does not belong to the public key.
        """
        if secret_key is not None and secret_key.p * secret_key.q != public_key.n:
            raise KeyMismatchError("The secret key does not belong to the public key.")
        self._generate_randomness = partial(  # type: ignore[method-assign]
            self._generate_randomness_from_args,
            public_h=public_key.h,
            public_n=public_key.n,
            public_t=public_key.t,
        )
        AsymmetricEncryptionScheme.__init__(
            self, public_key=public_key, secret_key=secret_key
        )
        RandomizedEncryptionScheme.__init__(self, debug=debug)

        self.decryption_table: Mapping[int, int] | None = None
        if secret_key is not None and full_decryption:
            self.decryption_table = DGK._create_decryption_table(public_key, secret_key)

    @staticmethod
    def _create_decryption_table(
        public_key: DGKPublicKey, secret_key: DGKSecretKey
    ) -> Mapping[int, int]:
        r"""
        :param public_key: DGK public key.
        :param secret_key: DGK secret key.
        :return: Read-only mapping $(g^{v_p})^m \bmod p \mapsto m$ for $m \in [0, u)$.
        """
        start = time.perf_counter()
        base = pow_mod(public_key.g, secret_key.v_p, secret_key.p)
        table = {}
        power = 1
        for plaintext in range(public_key.u):
            table[power] = plaintext
            power = power * base % secret_key.p
        logger.info(
            "Built DGK decryption table with %d entries in %.2f seconds.",
            public_key.u,
            time.perf_counter() - start,
        )
        return MappingProxyType(table)

    def get_message_from_value(self, value: int) -> int:
        r"""
        Look up the plaintext belonging to $c^{v_p} \bmod p$.

        :param value: The value $c^{v_p} \bmod p$ of a ciphertext $c$.
        :raise ValueError: When the scheme was built without decryption table.
        :raise DiscreteLogNotFoundError: When the value is not in the table.
        :return: The plaintext.
        """
        if self.decryption_table is None:
            raise ValueError(
                "This DGK scheme has no decryption table and can only test for zero. "
                "Construct it with full_decryption=True to decrypt."
            )
        try:
            return self.decryption_table[value]
        except KeyError:
            raise DiscreteLogNotFoundError("This value could not be decrypted.") from None

    @staticmethod
    def generate_key_material(
        n_bits: int = KEY_SIZE,
        l: int = DGK_FIELD_BITS,
        t: int = DGK_T_BITS,
        certainty: int = CERTAINTY,
        min_key_length: int = MIN_KEY_SIZE,
    ) -> KeyMaterial:
        r"""
        Generate a DGK key pair.

        The primes are $p = 2 u v_p p_r + 1$ and $q = 2 u v_q q_r + 1$ with $v_p$, $v_q$ of
        $t$ bits and random primes $p_r \neq q_r$. Then $g$ gets order $u v_p v_q$ and $h$
        order $v_p v_q$.

        :param n_bits: Bit length of $n$.
        :param l: Bit length of the plaintext space.
        :param t: Bit length of $v_p$ and $v_q$.
        :param certainty: Generated primes are composite with probability at most
            $2^{-certainty}$.
        :param min_key_length: Smallest accepted bit length of $n$.
        :raise InvalidKeySizeError: When n_bits is below min_key_length.
        :raise ValueError: When $l$ or $t$ are out of range, or n_bits cannot hold the prime
            factors.
        :return: Public key and secret key.
        """
        check_key_length(n_bits, min_key_length)
        if not 1 <= l <= MAX_DGK_FIELD_BITS:
            raise ValueError(f"l should lie in [1, {MAX_DGK_FIELD_BITS}], got {l}.")
        if t <= l:
            raise ValueError(f"t should be larger than l, got t={t} and l={l}.")
        u = next_prime(1 << l)

        start = time.perf_counter()
        while True:
            v_p = generate_prime(t, certainty)
            v_q = generate_prime(t, certainty)
            if v_p == v_q:
                continue
            p_base = 2 * u * v_p
            q_base = 2 * u * v_q
            spare_bits = n_bits - p_base.bit_length() - q_base.bit_length()
            if spare_bits < 4:
                raise ValueError(
                    f"n_bits is too small, it should be at least {n_bits - spare_bits + 4}"
                )
            p, p_random = _prime_with_cofactor(
                p_base, n_bits // 2 - p_base.bit_length() + 1, certainty
            )
            q, q_random = _prime_with_cofactor(
                q_base, n_bits // 2 - q_base.bit_length() + 1, certainty, exclude=p_random
            )
            # v_p may only divide p - 1, v_q only q - 1
            if (q - 1) % v_p == 0 or (p - 1) % v_q == 0:
                continue
            n = p * q
            if n.bit_length() == n_bits:
                break

        p_factors = (2, u, v_p, p_random)
        q_factors = (2, u, v_q, q_random)
        g = _composite_generator(p, q, p_factors, q_factors)
        h = g
        while h == g:
            h = _composite_generator(p, q, p_factors, q_factors)
        # both have order 2 u v_p v_q p_r q_r
        cofactor = 2 * p_random * q_random
        g = pow_mod(g, cofactor, n)
        h = pow_mod(h, cofactor * u, n)
        logger.info(
            "Generated a %d-bit DGK key with plaintext modulus %d in %.2f seconds.",
            n_bits,
            u,
            time.perf_counter() - start,
        )
        return DGKPublicKey(g, h, u, n, t, l), DGKSecretKey(v_p, v_q, p, q)

    def encode(self, plaintext: Plaintext) -> EncodedPlaintext[int]:
        """
        :param plaintext: Integer in [0, u).
        :raise PlaintextOutOfRangeError: When the plaintext lies outside [0, u).
        :return: The encoded plaintext.
        """
        if not isinstance(plaintext, int) or not 0 <= plaintext < self.public_key.u:
            raise PlaintextOutOfRangeError(
                f"DGK plaintexts should be integers in [0, {self.public_key.u}), "
                f"got {plaintext!r}."
            )
        return EncodedPlaintext(plaintext, self)

    def decode(self, encoded_plaintext: EncodedPlaintext[int]) -> Plaintext:
        """
        :param encoded_plaintext: Encoded plaintext.
        :return: The plaintext.
        """
        return encoded_plaintext.value

    def _unsafe_encrypt_raw(
        self,
        plaintext: EncodedPlaintext[int],
    ) -> DGKCiphertext:
        r"""
        Compute $g^m \bmod n$, reducing $m$ modulo $u$ first, without randomization.

        :param plaintext: Encoded plaintext $m$.
        :return: Non-randomized ciphertext.
        """
        exponent = plaintext.value % self.public_key.u
        return DGKCiphertext(pow_mod(self.public_key.g, exponent, self.public_key.n), self)

    def _decrypt_raw(self, ciphertext: DGKCiphertext) -> EncodedPlaintext[int]:
        """
        :param ciphertext: Ciphertext to decrypt.
        :raise ValueError: When the scheme has no decryption table.
        :return: The encoded plaintext.
        """
        value = pow_mod(ciphertext.peek_value(), self.secret_key.v_p, self.secret_key.p)
        return EncodedPlaintext(self.get_message_from_value(value), self)

    def is_zero(self, ciphertext: DGKCiphertext) -> bool:
        r"""
        Test whether a ciphertext encrypts zero: $c^{v_p v_q} \equiv 1 \pmod p$ exactly when
        $m = 0$. Does not need the decryption table.

        :param ciphertext: Ciphertext to test.
        :return: Whether the plaintext is zero.
        """
        value = pow_mod(ciphertext.peek_value(), self.secret_key.v_p_v_q, self.secret_key.p)
        return value == 1

    def neg(self, ciphertext: DGKCiphertext) -> DGKCiphertext:
        """
        Encryption of $u - m$, the modular inverse of the ciphertext.

        :param ciphertext: Ciphertext of $m$.
        :return: Ciphertext of $-m \\bmod u$, fresh when the input was fresh.
        """
        fresh = ciphertext.fresh
        if fresh:
            warnings.warn(WARN_INEFFICIENT_HOM_OPERATION, EncryptionSchemeWarning, stacklevel=2)
        return DGKCiphertext(
            mod_inv(ciphertext.get_value(), self.public_key.n), self, fresh=fresh
        )

    def add(
        self,
        ciphertext_1: DGKCiphertext,
        ciphertext_2: DGKCiphertext | Plaintext,
    ) -> DGKCiphertext:
        """
        Encryption of the sum of both plaintexts modulo $u$.

        The result is fresh when either input was fresh. Both inputs lose their freshness.

        :param ciphertext_1: First ciphertext.
        :param ciphertext_2: Second ciphertext or a plaintext integer.
        :raise KeyMismatchError: When the ciphertexts belong to different keys.
        :return: Ciphertext of the sum.
        """
        if isinstance(ciphertext_2, int):
            ciphertext_2 = self.unsafe_encrypt(ciphertext_2, apply_encoding=False)
        elif ciphertext_1.scheme != ciphertext_2.scheme:
            raise KeyMismatchError("Cannot add DGK ciphertexts of different public keys.")
        ciphertext_2 = cast(DGKCiphertext, ciphertext_2)

        fresh = ciphertext_1.fresh or ciphertext_2.fresh
        if fresh:
            warnings.warn(WARN_INEFFICIENT_HOM_OPERATION, EncryptionSchemeWarning, stacklevel=2)
        return DGKCiphertext(
            ciphertext_1.get_value() * ciphertext_2.get_value() % self.public_key.n,
            self,
            fresh=fresh,
        )

    def mul(self, ciphertext: DGKCiphertext, scalar: int) -> DGKCiphertext:  # type: ignore[override]  # pylint: disable=arguments-renamed
        """
        Encryption of the plaintext times a public integer, modulo $u$.

        :param ciphertext: Ciphertext of $m$.
        :param scalar: Integer factor, negative factors negate the ciphertext first.
        :raise TypeError: When scalar is not an integer.
        :return: Ciphertext of $m \\cdot scalar \\bmod u$, fresh when the input was fresh.
        """
        if not isinstance(scalar, int):
            raise TypeError(f"The scalar should be an integer, not {type(scalar)}.")
        if scalar < 0:
            ciphertext = self.neg(ciphertext)
            scalar = -scalar

        fresh = ciphertext.fresh
        if fresh:
            warnings.warn(WARN_INEFFICIENT_HOM_OPERATION, EncryptionSchemeWarning, stacklevel=2)
        return DGKCiphertext(
            pow_mod(ciphertext.get_value(), scalar, self.public_key.n), self, fresh=fresh
        )

    def __eq__(self, other: object) -> bool:
        """
        Schemes are equal when their public keys are, secret keys are not compared.

        :param other: Object to compare with.
        :return: Whether both are DGK schemes with the same public key.
        """
        return isinstance(other, DGK) and self.public_key == other.public_key

    @staticmethod
    def _generate_randomness_from_args(public_h: int, public_n: int, public_t: int) -> int:
        r"""
        :param public_h: Generator $h$ of the randomization subgroup.
        :param public_n: Modulus $n$.
        :param public_t: Bit length $t$ of $v_p$ and $v_q$.
        :return: $h^r \bmod n$ for a random exponent $r$ of $2.5 t$ bits.
        """
        exponent = secrets.randbelow((1 << int(2.5 * (public_t + 1))) - 1) + 1
        return pow_mod(public_h, exponent, public_n)

    @classmethod
    def id_from_arguments(
        cls,
        public_key: DGKPublicKey,
        **_kwargs: Any,
    ) -> int:
        r"""
        Identifier of the scheme that the constructor arguments describe.

        :param public_key: DGK public key.
        :param \**_kwargs: Other constructor arguments, they do not change the identity.
        :return: Hash of the public key.
        """
        return hash(public_key)

    # region Serialization logic

    def serialize(self, **_kwargs: Any) -> dict[str, Any]:
        r"""
        Serialization function for DGK schemes, which will be passed to the communication
        module. The secret key is never serialized.

        :param \**_kwargs: Optional extra keyword arguments.
        :return: serialized version of this DGK scheme.
        """
        return {"pubkey": self.public_key}

    @staticmethod
    def deserialize(obj: dict[str, Any], **_kwargs: Any) -> DGK:
        r"""
        Deserialization function for DGK schemes, which will be passed to the communication
        module. A scheme with the same public key that is already saved globally is reused,
        otherwise a scheme without secret key is created and saved globally.

        :param obj: serialized version of a DGK scheme.
        :param \**_kwargs: Optional extra keyword arguments.
        :return: Deserialized DGK scheme from the given dict.
        """
        public_key = obj["pubkey"]
        identifier = DGK.id_from_arguments(public_key=public_key)
        if identifier in DGK._instances:
            return DGK.from_id(identifier)
        scheme = DGK(public_key=public_key, secret_key=None, full_decryption=False)
        scheme.save_globally()
        return scheme

    # endregion


try:
    Serialization.register_class(DGK, check_annotations=False)
    Serialization.register_class(DGKCiphertext, check_annotations=False)
    Serialization.register_class(DGKPublicKey, check_annotations=False)
    Serialization.register_class(DGKSecretKey, check_annotations=False)
except RepetitionError:
    pass

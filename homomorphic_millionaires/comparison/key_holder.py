"""Party that holds the secret keys. Bob; B in the paper."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, List, Optional, Tuple, cast

from homomorphic_millionaires.comparison.communicator import Communicator
from homomorphic_millionaires.comparison.session import (
    ComparisonSession,
    Operation,
    expect_bit,
    expect_ciphertext,
    expect_list,
)
from homomorphic_millionaires.comparison.utils import to_bits
from homomorphic_millionaires.config import (
    ComparisonMode,
    Configuration,
    max_comparison_bit_length,
)
from homomorphic_millionaires.dgk import DGK, DGKCiphertext
from homomorphic_millionaires.errors import PlaintextOutOfRangeError
from homomorphic_millionaires.paillier import Paillier, PaillierCiphertext

logger = logging.getLogger(__name__)


class KeyHolder:
    """
    Player Bob in the comparison protocols, holds the Paillier and DGK secret keys.
    """

    def __init__(
        self,
        scheme_paillier: Paillier,
        scheme_dgk: DGK,
        communicator: Communicator,
        other_party: str = "",
        mode: ComparisonMode | str = ComparisonMode.PAILLIER,
        bit_length: Optional[int] = None,
        session_id: int = 0,
    ) -> None:
        r"""
        :param scheme_paillier: Paillier encryption scheme, including secret key.
        :param scheme_dgk: DGK encryption scheme, including secret key. Only zero tests are
            needed, so the scheme does not need a decryption table.
        :param communicator: Object for handling communication with the ValueHolder.
        :param other_party: Identifier of the other party.
        :param mode: Comparison mode, either paillier or dgk.
        :param bit_length: Bit length $l$ of the comparison operands, $0 \leq x, y < 2^l$.
            Defaults to the largest length that the DGK key supports in the given mode.
        :param session_id: Keeps track of the sessions.
        :raise ValueError: When a scheme lacks its secret key or the bit length is not supported.
        """
        if scheme_paillier.secret_key is None or scheme_dgk.secret_key is None:
            raise ValueError("The KeyHolder needs the Paillier and DGK secret keys.")
        self.mode = ComparisonMode(mode)
        maximum = max_comparison_bit_length(self.mode, scheme_dgk.public_key.l)
        if bit_length is None:
            bit_length = maximum
        if not 1 <= bit_length <= maximum:
            raise ValueError(
                f"The {self.mode.value} mode supports operands of 1 to {maximum} bits with "
                f"this DGK key, got {bit_length}."
            )
        self.scheme_paillier = scheme_paillier
        self.scheme_dgk = scheme_dgk
        self.communicator = communicator
        self.other_party = other_party
        self.bit_length = bit_length
        self.session_id = session_id

    @classmethod
    def from_configuration(
        cls,
        configuration: Configuration,
        communicator: Communicator,
        other_party: str = "",
    ) -> KeyHolder:
        """
        Generate fresh Paillier and DGK key material as configured and create a KeyHolder.

        :param configuration: Deployment configuration.
        :param communicator: Object for handling communication with the ValueHolder.
        :param other_party: Identifier of the other party.
        :return: The KeyHolder.
        """
        logger.info(
            "Generating %d-bit Paillier and DGK keys for the KeyHolder.",
            configuration.key_size_bits,
        )
        scheme_paillier = Paillier.from_security_parameter(
            key_length=configuration.key_size_bits,
            certainty=configuration.primality_certainty,
            min_key_length=configuration.min_key_size_bits,
        )
        scheme_dgk = DGK.from_security_parameter(
            n_bits=configuration.key_size_bits,
            l=configuration.dgk_field_bits,
            t=configuration.dgk_t_bits,
            certainty=configuration.primality_certainty,
            min_key_length=configuration.min_key_size_bits,
            full_decryption=False,
        )
        return cls(
            scheme_paillier,
            scheme_dgk,
            communicator,
            other_party,
            mode=configuration.comparison_mode,
            bit_length=configuration.comparison_bit_length,
        )

    async def compare(self, y: int, strict: bool = False) -> bool:
        r"""
        Determine whether the operand of Alice is at least as large as the operand of Bob. Both
        parties learn the outcome.

        :param y: Operand $y$ of Bob, $0 \leq y < 2^l$.
        :param strict: Determine $x > y$ instead of $x \geq y$.
        :raise PlaintextOutOfRangeError: When the operand does not lie in $[0, 2^l)$.
        :return: $x \geq y$, or $x > y$ when strict.
        """
        self._check_operand(y)
        operation = Operation.STRICT_COMPARISON if strict else Operation.COMPARISON
        async with self._session(operation) as session:
            if self.mode is ComparisonMode.DGK:
                beta = y if strict else (1 << self.bit_length) - 1 - y
                delta = await self._bitwise_comparison(session, beta, self.bit_length)
                return bool(delta) != strict
            y_enc = self.scheme_paillier.unsafe_encrypt(y, apply_encoding=False)
            y_enc.randomize()
            await session.send("operand", y_enc)
            await self._secure_comparison(session)
            outcome = self._decrypt_bit(await session.recv("result"), "result")
            await session.send("outcome", outcome)
            logger.debug("Comparison in session %d returned %d", session.session_id, outcome)
            return bool(outcome)

    async def perform_secure_comparison(self) -> None:
        """
        Performs the secure comparison for Bob, including the required communication with
        Alice. Only Alice obtains the, encrypted, result.
        """
        async with self._session(Operation.ENCRYPTED_COMPARISON) as session:
            await self._secure_comparison(session)

    async def private_comparison(self, beta: int) -> bool:
        r"""
        Compare a private value of Alice with a private value of Bob bitwise under DGK. Both
        parties learn the outcome.

        :param beta: Operand $\beta$ of Bob, $0 \leq \beta < 2^l$.
        :raise PlaintextOutOfRangeError: When the operand does not lie in $[0, 2^l)$.
        :return: $\alpha \leq \beta$.
        """
        self._check_operand(beta)
        async with self._session(Operation.PRIVATE_COMPARISON) as session:
            return bool(await self._bitwise_comparison(session, beta, self.bit_length))

    async def multiplication(self) -> None:
        """
        Help Alice to multiply two ciphertexts: decrypt her blinded values, multiply them and
        return the encrypted product.
        """
        async with self._session(Operation.MULTIPLICATION) as session:
            x_blinded, y_blinded = (
                self._decrypt(value, "blinded factor")
                for value in expect_list(
                    await session.recv("multiplication_1"), 2, "blinded factors"
                )
            )
            product_enc = self.scheme_paillier.unsafe_encrypt(
                x_blinded * y_blinded % self.scheme_paillier.public_key.n,
                apply_encoding=False,
            )
            product_enc.randomize()
            await session.send("multiplication_2", product_enc)

    async def division(self, divisor: int) -> None:
        r"""
        Help Alice to divide a ciphertext by a public divisor.

        :param divisor: Public divisor $d$, $1 \leq d < 2^l$.
        :raise ValueError: When the divisor does not lie in $[1, 2^l)$.
        """
        if not 1 <= divisor < (1 << self.bit_length):
            raise ValueError(
                f"The divisor should lie in [1, 2^{self.bit_length}), got {divisor}."
            )
        async with self._session(Operation.DIVISION, divisor) as session:
            z = self._decrypt(await session.recv("division_1"), "[[z]]")
            quotient_enc = self.scheme_paillier.unsafe_encrypt(
                z // divisor, apply_encoding=False
            )
            quotient_enc.randomize()
            await session.send("division_2", quotient_enc)
            await self._bitwise_comparison(session, z % divisor, self.bit_length)

    async def encrypted_equals(self) -> bool:
        r"""
        Help Alice to determine whether two values are equal. Bob decrypts the blinded
        difference $z$, returns the DGK encrypted bits of $z \bmod 2^{l+1}$ and tests the masked
        sum of differing bits for zero. Both parties learn the outcome.

        :return: $x = y$.
        """
        async with self._session(Operation.EQUALITY) as session:
            l = self.bit_length
            z = self._decrypt(await session.recv("equality_1"), "[[z]]")
            b_is_enc = KeyHolder.step_4b(z % (1 << (l + 1)), l + 1, self.scheme_dgk)
            for b in b_is_enc:
                b.randomize()
            await session.send("equality_2", b_is_enc)
            e_enc = self._dgk_ciphertexts([await session.recv("equality_3")], 1, "[e]")[0]
            outcome = int(self.scheme_dgk.is_zero(e_enc))
            await session.send("equality_4", outcome)
            logger.debug("Equality test in session %d returned %d", session.session_id, outcome)
            return bool(outcome)

    async def get_k_values(self) -> int:
        """
        Help Alice to select the k smallest or largest of her encrypted values. Bob runs secure
        comparisons until Alice signals the end and decrypts their outcomes flipped by a random
        bit of Alice.

        :return: Number of comparisons performed.
        """
        comparisons = 0
        async with self._session(Operation.K_VALUES) as session:
            while True:
                session.next_round()
                if not expect_bit(await session.recv("k_values_next"), "continuation"):
                    break
                await self._secure_comparison(session)
                masked = self._decrypt_bit(
                    await session.recv("k_values_masked"), "masked outcome"
                )
                await session.send("k_values_bit", masked)
                comparisons += 1
        logger.debug("Selection of k values took %d comparisons", comparisons)
        return comparisons

    def _check_operand(self, value: int) -> None:
        if not 0 <= value < (1 << self.bit_length):
            raise PlaintextOutOfRangeError(
                f"Operands should lie in [0, 2^{self.bit_length}), got {value}."
            )

    @asynccontextmanager
    async def _session(
        self, operation: Operation, argument: int = 0
    ) -> AsyncIterator[ComparisonSession]:
        """
        Start a new session and send the session parameters and public keys to Alice.

        :param operation: Protocol that Bob intends to run.
        :param argument: Public argument of the protocol, e.g. the divisor.
        :return: Context manager that yields the session.
        """
        self.session_id += 1
        session = ComparisonSession(
            self.communicator, self.other_party, self.session_id, "key holder"
        )
        async with session:
            await session.send(
                "setup",
                [
                    operation.value,
                    self.mode.value,
                    self.bit_length,
                    argument,
                    [self.scheme_paillier.public_key, self.scheme_dgk.public_key],
                ],
            )
            yield session

    def _decrypt(self, value: Any, description: str) -> int:
        ciphertext = expect_ciphertext(
            value, PaillierCiphertext, self.scheme_paillier, description
        )
        return cast(int, self.scheme_paillier.decrypt(ciphertext, apply_encoding=False))

    def _decrypt_bit(self, value: Any, description: str) -> int:
        return expect_bit(self._decrypt(value, description), description)

    def _dgk_ciphertexts(
        self, value: Any, length: int, description: str
    ) -> List[DGKCiphertext]:
        return [
            expect_ciphertext(item, DGKCiphertext, self.scheme_dgk, description)
            for item in expect_list(value, length, description)
        ]

    async def _secure_comparison(self, session: ComparisonSession) -> None:
        l = self.bit_length
        if l > max_comparison_bit_length(
            ComparisonMode.PAILLIER, self.scheme_dgk.public_key.l
        ):
            raise ValueError(
                f"Encrypted operands of {l} bits do not fit the DGK key, at most "
                f"{self.scheme_dgk.public_key.l - 2} bits are supported."
            )
        z_value = await session.recv("step_1")

        # step 2
        z_plain, beta = KeyHolder.step_2(self._decrypt(z_value, "[[z]]"), l)

        # step 4a
        d_enc = KeyHolder.step_4a(z_plain, self.scheme_dgk, self.scheme_paillier)

        # step 4b
        beta_is_enc = KeyHolder.step_4b(beta, l, self.scheme_dgk)

        d_enc.randomize()
        for b in beta_is_enc:
            b.randomize()
        await session.send("step_4b", [d_enc, beta_is_enc])
        c_is_enc = self._dgk_ciphertexts(await session.recv("step_4i"), l + 1, "[c_i]")

        # step 4j
        delta_b = KeyHolder.step_4j(c_is_enc, self.scheme_dgk)

        # step 5
        zeta_1_enc, zeta_2_enc, delta_b_enc = KeyHolder.step_5(
            z_plain, l, delta_b, self.scheme_paillier
        )
        zeta_1_enc.randomize()
        zeta_2_enc.randomize()
        delta_b_enc.randomize()
        await session.send("step_5", [zeta_1_enc, zeta_2_enc, delta_b_enc])

    async def _bitwise_comparison(
        self, session: ComparisonSession, beta: int, bit_length: int
    ) -> int:
        r"""
        DGK comparison of the plaintext $\alpha$ of Alice with the plaintext $\beta$ of Bob.

        :param session: Current session.
        :param beta: Plaintext $\beta$ of Bob.
        :param bit_length: Number of bits of $\alpha$ and $\beta$.
        :return: The bit $(\alpha \leq \beta)$.
        """
        beta_is_enc = KeyHolder.step_4b(beta, bit_length, self.scheme_dgk)
        for b in beta_is_enc:
            b.randomize()
        await session.send("bitwise_bits", beta_is_enc)

        c_is_enc = self._dgk_ciphertexts(
            await session.recv("bitwise_masked"), bit_length + 1, "[c_i]"
        )
        delta_b_enc = self.scheme_dgk.unsafe_encrypt(
            KeyHolder.step_4j(c_is_enc, self.scheme_dgk), apply_encoding=False
        )
        delta_b_enc.randomize()
        await session.send("bitwise_share", delta_b_enc)

        delta_enc = self._dgk_ciphertexts(
            [await session.recv("bitwise_result")], 1, r"[\delta]"
        )[0]
        delta = 0 if self.scheme_dgk.is_zero(delta_enc) else 1
        await session.send("bitwise_outcome", delta)
        return delta

    @staticmethod
    def step_2(z: int, l: int) -> Tuple[int, int]:
        r"""
        $B$ decrypts $[[z]]$, and computes $\beta = z \mod 2^l$.

        :param z: Decrypted value of $[[z]]$.
        :param l: Fixed value, such that $0 \leq x,y < 2^l$.
        :return: Tuple containing as first entry the plaintext value of $z$.
            The second entry is the value $\beta = z \mod 2^l$.
        """
        return z, z % (1 << l)

    @staticmethod
    def step_4a(z: int, scheme_dgk: DGK, scheme_paillier: Paillier) -> DGKCiphertext:
        r"""
        $B$ computes the encrypted bit $[d]$ where $d = (z < (N - 1)/2)$ is the bit informing $A$
        whether a carryover has occurred.

        :param z: Plaintext value of $z$.
        :param scheme_dgk: DGK encryption scheme.
        :param scheme_paillier: Paillier encryption scheme.
        :return: Encrypted value of the bit $d = (z < (N - 1)/2)$: $[d]$.
        """
        return scheme_dgk.unsafe_encrypt(
            int(z < (scheme_paillier.public_key.n - 1) // 2),
            apply_encoding=False,
        )

    @staticmethod
    def step_4b(beta: int, l: int, scheme_dgk: DGK) -> List[DGKCiphertext]:
        r"""
        $B$ computes the encrypted bits $[\beta_i], 0 \leq i < l$.

        :param beta: The value $\beta$.
        :param l: Number of bits of $\beta$.
        :param scheme_dgk: DGK encryption scheme.
        :return: List containing the encrypted bits $[\beta_i]$, least significant first.
        """
        return [
            scheme_dgk.unsafe_encrypt(bit, apply_encoding=False)
            for bit in to_bits(beta, l)
        ]

    @staticmethod
    def step_4j(c_is_enc: List[DGKCiphertext], scheme_dgk: DGK) -> int:
        r"""
        $B$ checks whether one of the numbers $c_i$ is decrypted to zero. If he finds one,
        $\delta_B \leftarrow 1$, else $\delta_B \leftarrow 0$.

        :param c_is_enc: Encrypted values $[c_i]$.
        :param scheme_dgk: DGK encryption scheme.
        :return: Value $\delta_B$.
        """
        return int(any(map(scheme_dgk.is_zero, c_is_enc)))

    @staticmethod
    def step_5(
        z: int, l: int, delta_b: int, scheme_paillier: Paillier
    ) -> Tuple[PaillierCiphertext, PaillierCiphertext, PaillierCiphertext]:
        r"""
        $B$ computes $\zeta_1 = z \div 2^l$ and encrypts it to $[[\zeta_1]]$ and computes
        $\zeta_2 = (z + N) \div 2^l$ and encrypts it to $[[\zeta_2]]$. $B$ also encrypts
        $\delta_B$ to $[[\delta_B]]$.

        :param z: Plaintext value of $z$.
        :param l: Fixed value, such that $0 \leq x,y < 2^l$.
        :param delta_b: The value $\delta_B$ from step 4j.
        :param scheme_paillier: Paillier encryption scheme.
        :return: The encrypted values $[[\zeta_1]]$, $[[\zeta_2]]$ and $[[\delta_B]]$.
        """
        n = scheme_paillier.public_key.n
        zeta_1_enc = scheme_paillier.unsafe_encrypt(z // (1 << l), apply_encoding=False)
        zeta_2_enc = scheme_paillier.unsafe_encrypt(
            (z + n) // (1 << l) if z < (n - 1) // 2 else z // (1 << l),
            apply_encoding=False,
        )
        return (
            zeta_1_enc,
            zeta_2_enc,
            scheme_paillier.unsafe_encrypt(delta_b, apply_encoding=False),
        )

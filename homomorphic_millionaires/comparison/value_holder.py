"""Value Holder of the two-party protocols, i.e. performs step 1. Alice; A in the paper."""

from __future__ import annotations

from contextlib import asynccontextmanager
from secrets import randbelow
from typing import Any, AsyncIterator, List, Optional, Tuple, Union, cast

from homomorphic_millionaires.comparison.communicator import Communicator
from homomorphic_millionaires.comparison.session import (
    ComparisonSession,
    Operation,
    expect_bit,
    expect_ciphertext,
    expect_int,
    expect_list,
    expect_public_keys,
)
from homomorphic_millionaires.comparison.utils import shuffle, to_bits
from homomorphic_millionaires.config import (
    ComparisonMode,
    Configuration,
    max_comparison_bit_length,
)
from homomorphic_millionaires.dgk import DGK, DGKCiphertext
from homomorphic_millionaires.errors import (
    KeyMismatchError,
    PlaintextOutOfRangeError,
    ProtocolAbortError,
)
from homomorphic_millionaires.paillier import Paillier, PaillierCiphertext

# statistical security of the blinding in the division protocol
SIGMA = 80


class ValueHolder:
    """
    Player Alice in the comparison protocols. She holds a private operand, or ciphertexts under
    the keys of Bob, and learns the result.
    """

    def __init__(
        self,
        communicator: Communicator,
        other_party: str = "",
        mode: ComparisonMode | str = ComparisonMode.PAILLIER,
        bit_length: Optional[int] = None,
        scheme_paillier: Optional[Paillier] = None,
        scheme_dgk: Optional[DGK] = None,
        session_id: int = 0,
    ) -> None:
        r"""
        :param communicator: Object for handling communication with the KeyHolder.
        :param other_party: Identifier of the other party.
        :param mode: Comparison mode, either paillier or dgk.
        :param bit_length: Bit length $l$ of the comparison operands, $0 \leq x, y < 2^l$. When
            None, the largest length that the public keys of the KeyHolder support is used.
        :param scheme_paillier: Paillier encryption scheme (without secret key) that the KeyHolder
            is expected to use. When None, the first key received is trusted.
        :param scheme_dgk: DGK encryption scheme (without secret key) that the KeyHolder is
            expected to use. When None, the first key received is trusted.
        :param session_id: Keeps track of the sessions.
        """
        self.communicator = communicator
        self.other_party = other_party
        self.mode = ComparisonMode(mode)
        self.bit_length = bit_length
        self.scheme_paillier = scheme_paillier
        self.scheme_dgk = scheme_dgk
        self.session_id = session_id

    @classmethod
    def from_configuration(
        cls,
        configuration: Configuration,
        communicator: Communicator,
        other_party: str = "",
    ) -> ValueHolder:
        """
        Create a ValueHolder with the mode and bit length of a configuration.

        :param configuration: Deployment configuration.
        :param communicator: Object for handling communication with the KeyHolder.
        :param other_party: Identifier of the other party.
        :return: The ValueHolder.
        """
        return cls(
            communicator,
            other_party,
            mode=configuration.comparison_mode,
            bit_length=configuration.comparison_bit_length,
        )

    async def compare(
        self, x: Union[int, PaillierCiphertext], strict: bool = False
    ) -> bool:
        r"""
        Determine whether the operand of Alice is at least as large as the operand of Bob. Both
        parties learn the outcome.

        :param x: Operand $x$ of Alice. In paillier mode either a plaintext or a ciphertext under
            the Paillier key of Bob, in dgk mode a plaintext.
        :param strict: Determine $x > y$ instead of $x \geq y$.
        :raise TypeError: When a ciphertext is given in dgk mode.
        :raise PlaintextOutOfRangeError: When a plaintext operand does not lie in $[0, 2^l)$.
        :return: $x \geq y$, or $x > y$ when strict.
        """
        if not isinstance(x, int):
            if self.mode is ComparisonMode.DGK:
                raise TypeError("The dgk mode only compares plaintext operands.")
            if not isinstance(x, PaillierCiphertext):
                raise TypeError(f"Expected an integer or PaillierCiphertext, not {type(x)}.")
        elif self.bit_length is not None:
            self._check_operand(x, self.bit_length)
        operation = Operation.STRICT_COMPARISON if strict else Operation.COMPARISON
        async with self._session(operation) as session:
            l = cast(int, self.bit_length)
            if isinstance(x, int):
                self._check_operand(x, l)
            if self.mode is ComparisonMode.DGK:
                x = cast(int, x)
                # x >= y iff (2^l - 1 - x) <= (2^l - 1 - y), x > y iff not x <= y
                alpha = x if strict else (1 << l) - 1 - x
                delta = await self._bitwise_comparison(session, alpha, l)
                return bool(delta) != strict
            x_enc = self._paillier_operand(x)
            y_enc = self._paillier_ciphertext(await session.recv("operand"), "[[y]]")
            result_enc = await self._secure_comparison(session, x_enc, y_enc, strict)
            result_enc.randomize()
            await session.send("result", result_enc)
            outcome = expect_bit(await session.recv("outcome"), "outcome")
            return bool(outcome)

    async def perform_secure_comparison(
        self,
        x_enc: PaillierCiphertext,
        y_enc: PaillierCiphertext,
    ) -> PaillierCiphertext:
        r"""
        Performs all steps of the secure comparison protocol for Alice.
        Performs required communication with Bob.

        :param x_enc: First encrypted input variable $[[x]]$.
        :param y_enc: Second encrypted input variable $[[y]]$.
        :raise KeyMismatchError: When an input is not encrypted under the Paillier key of Bob.
        :return: Encrypted value of $(x \geq y)$: $[[(x \geq y)]]$.
        """
        async with self._session(Operation.ENCRYPTED_COMPARISON) as session:
            return await self._secure_comparison(
                session, self._paillier_operand(x_enc), self._paillier_operand(y_enc)
            )

    async def private_comparison(self, alpha: int) -> bool:
        r"""
        Compare a private value of Alice with a private value of Bob bitwise under DGK. Both
        parties learn the outcome.

        :param alpha: Operand $\alpha$ of Alice, $0 \leq \alpha < 2^l$.
        :raise PlaintextOutOfRangeError: When the operand does not lie in $[0, 2^l)$.
        :return: $\alpha \leq \beta$.
        """
        if self.bit_length is not None:
            self._check_operand(alpha, self.bit_length)
        async with self._session(Operation.PRIVATE_COMPARISON) as session:
            l = cast(int, self.bit_length)
            self._check_operand(alpha, l)
            return bool(await self._bitwise_comparison(session, alpha, l))

    async def multiplication(
        self, x_enc: PaillierCiphertext, y_enc: PaillierCiphertext
    ) -> PaillierCiphertext:
        r"""
        Compute the product of two encrypted values with the help of Bob, who only sees blinded
        values.

        :param x_enc: Encrypted value $[[x]]$.
        :param y_enc: Encrypted value $[[y]]$.
        :raise KeyMismatchError: When an input is not encrypted under the Paillier key of Bob.
        :return: Encrypted value $[[x \cdot y \mod N]]$.
        """
        async with self._session(Operation.MULTIPLICATION) as session:
            scheme = cast(Paillier, self.scheme_paillier)
            x_enc = self._paillier_operand(x_enc)
            y_enc = self._paillier_operand(y_enc)
            n = scheme.public_key.n
            a = randbelow(n)
            b = randbelow(n)
            x_blinded = x_enc + a
            y_blinded = y_enc + b
            x_blinded.randomize()
            y_blinded.randomize()
            await session.send("multiplication_1", [x_blinded, y_blinded])
            product_enc = self._paillier_ciphertext(
                await session.recv("multiplication_2"), "[[(x + a)(y + b)]]"
            )
            # (x + a)(y + b) - b x - a y - a b = x y
            return product_enc - b * x_enc - a * y_enc - a * b % n

    async def division(
        self, x_enc: PaillierCiphertext, divisor: int
    ) -> PaillierCiphertext:
        r"""
        Divide an encrypted value by a public divisor with the help of Bob, rounding down.

        Alice blinds $[[x]]$ with a random $r$ of $l + \sigma$ bits, Bob divides the blinded
        value $z$ and both compare $r \bmod d$ with $z \bmod d$ to correct the carry.

        :param x_enc: Encrypted value $[[x]]$, $0 \leq x < 2^l$.
        :param divisor: Public divisor $d$, $1 \leq d < 2^l$.
        :raise ValueError: When the divisor does not lie in $[1, 2^l)$ or the Paillier modulus
            is too small to hide $x$.
        :return: Encrypted value $[[\lfloor x / d \rfloor]]$.
        """
        if self.bit_length is not None:
            self._check_divisor(divisor, self.bit_length)
        async with self._session(Operation.DIVISION, divisor) as session:
            l = cast(int, self.bit_length)
            self._check_divisor(divisor, l)
            scheme = cast(Paillier, self.scheme_paillier)
            if l + SIGMA + 2 > scheme.public_key.n.bit_length():
                raise ValueError(
                    f"The Paillier modulus should have more than {l + SIGMA + 2} bits."
                )
            x_enc = self._paillier_operand(x_enc)
            r = randbelow(1 << (l + SIGMA))
            z_enc = x_enc + r
            z_enc.randomize()
            await session.send("division_1", z_enc)
            quotient_enc = self._paillier_ciphertext(
                await session.recv("division_2"), "[[z // d]]"
            )
            # t = (z mod d < r mod d) is the borrow of the division
            no_borrow = await self._bitwise_comparison(session, r % divisor, l)
            return quotient_enc - (r // divisor + 1 - no_borrow)

    async def encrypted_equals(
        self,
        x_enc: Union[int, PaillierCiphertext],
        y_enc: Union[int, PaillierCiphertext],
    ) -> bool:
        r"""
        Determine whether two values are equal with the help of Bob. Both parties learn the
        outcome.

        Alice sends $[[z]] = [[x - y + r]]$ with $2^l \leq r < N - 2^l$ and Bob returns the DGK
        encrypted bits of $z \bmod 2^{l+1}$. As $|x - y| < 2^l$, these bits equal the bits of
        $r \bmod 2^{l+1}$ exactly when $x = y$. Alice sums the XORs of both, multiplies the sum
        by a random $\rho \in [1, u)$ and Bob tests the product for zero.

        :param x_enc: Value $x$, $0 \leq x < 2^l$, or its encryption $[[x]]$.
        :param y_enc: Value $y$, $0 \leq y < 2^l$, or its encryption $[[y]]$.
        :raise KeyMismatchError: When an input is not encrypted under the Paillier key of Bob.
        :raise PlaintextOutOfRangeError: When a plaintext input does not lie in $[0, 2^l)$.
        :raise ValueError: When the Paillier modulus is too small for $l$-bit values.
        :return: $x = y$.
        """
        async with self._session(Operation.EQUALITY) as session:
            scheme_paillier = cast(Paillier, self.scheme_paillier)
            scheme_dgk = cast(DGK, self.scheme_dgk)
            l = cast(int, self.bit_length)
            for value in (x_enc, y_enc):
                if isinstance(value, int):
                    self._check_operand(value, l)
            n = scheme_paillier.public_key.n
            if (1 << (l + 2)) >= n:
                raise ValueError(f"The Paillier modulus is too small for {l}-bit operands.")
            r = randbelow(n - (1 << (l + 1))) + (1 << l)
            z_enc = self._paillier_operand(x_enc) - self._paillier_operand(y_enc) + r
            z_enc.randomize()
            await session.send("equality_1", z_enc)

            b_is_enc = self._dgk_ciphertexts(
                await session.recv("equality_2"), l + 1, "[b_i]"
            )
            xor_is_enc = ValueHolder.step_4d(to_bits(r % (1 << (l + 1)), l + 1), b_is_enc)
            e_enc = xor_is_enc[0]
            for xor_i_enc in xor_is_enc[1:]:
                e_enc += xor_i_enc
            # a non-zero sum stays non-zero modulo the prime u
            e_enc = e_enc * (randbelow(scheme_dgk.public_key.u - 1) + 1)
            e_enc.randomize()
            await session.send("equality_3", e_enc)
            return bool(expect_bit(await session.recv("equality_4"), "equality outcome"))

    async def get_k_values(
        self,
        values: List[PaillierCiphertext],
        k: int,
        smallest: bool = True,
    ) -> List[PaillierCiphertext]:
        r"""
        Select the $k$ smallest, or largest, of a list of values encrypted under the Paillier
        key of Bob.

        Every pass of bubble sort moves the most extreme remaining value to the end of the list,
        so $k$ passes suffice. Only Alice learns the outcome of each comparison: she flips
        $[[(x \geq y)]]$ with a random bit before Bob decrypts it. Bob learns the number of
        comparisons.

        :param values: Encrypted values $[[x_i]]$, $0 \leq x_i < 2^l$.
        :param k: Number of values to select, $1 \leq k \leq$ the number of values.
        :param smallest: Select the smallest values, otherwise the largest.
        :raise ValueError: When k is out of range.
        :raise KeyMismatchError: When a value is not encrypted under the Paillier key of Bob.
        :return: The selected ciphertexts, most extreme first.
        """
        if not 1 <= k <= len(values):
            raise ValueError(f"k should lie in [1, {len(values)}], got {k}.")
        async with self._session(Operation.K_VALUES) as session:
            items = [self._paillier_operand(value) for value in values]
            for i in range(k):
                for j in range(len(items) - i - 1):
                    session.next_round()
                    await session.send("k_values_next", 1)
                    x_geq_y = await self._revealed_comparison(
                        session, items[j], items[j + 1]
                    )
                    if x_geq_y != smallest:
                        items[j], items[j + 1] = items[j + 1], items[j]
            session.next_round()
            await session.send("k_values_next", 0)
            return items[::-1][:k]

    @staticmethod
    def _check_operand(value: int, bit_length: int) -> None:
        if not 0 <= value < (1 << bit_length):
            raise PlaintextOutOfRangeError(
                f"Operands should lie in [0, 2^{bit_length}), got {value}."
            )

    @staticmethod
    def _check_divisor(divisor: int, bit_length: int) -> None:
        if not 1 <= divisor < (1 << bit_length):
            raise ValueError(f"The divisor should lie in [1, 2^{bit_length}), got {divisor}.")

    @asynccontextmanager
    async def _session(
        self, operation: Operation, argument: int = 0
    ) -> AsyncIterator[ComparisonSession]:
        """
        Start a new session and receive the session parameters and public keys of Bob.

        :param operation: Protocol that Alice intends to run.
        :param argument: Public argument of the protocol, e.g. the divisor.
        :raise ProtocolAbortError: When Bob runs another protocol, with other parameters or
            with unexpected public keys.
        :return: Context manager that yields the session.
        """
        self.session_id += 1
        session = ComparisonSession(
            self.communicator, self.other_party, self.session_id, "value holder"
        )
        async with session:
            await self._receive_setup(session, operation, argument)
            yield session

    async def _receive_setup(
        self, session: ComparisonSession, operation: Operation, argument: int
    ) -> None:
        setup = expect_list(await session.recv("setup"), 5, "session setup")
        received_operation, mode, bit_length, received_argument, keys = setup
        if expect_int(received_operation, "operation") != operation:
            raise ProtocolAbortError(
                f"Bob runs protocol {received_operation}, expected {operation.value}."
            )
        if mode != self.mode.value:
            raise ProtocolAbortError(f"Bob uses mode {mode!r}, expected {self.mode.value!r}.")
        if expect_int(received_argument, "argument") != argument:
            raise ProtocolAbortError(
                f"Bob uses argument {received_argument}, expected {argument}."
            )
        paillier_key, dgk_key = expect_public_keys(keys)
        expect_int(bit_length, "bit length")
        if self.bit_length is None:
            self.bit_length = bit_length
        elif bit_length != self.bit_length:
            raise ProtocolAbortError(
                f"Bob uses bit length {bit_length}, expected {self.bit_length}."
            )
        if not 1 <= bit_length <= max_comparison_bit_length(self.mode, dgk_key.l):
            raise ProtocolAbortError(
                f"Bit length {bit_length} is not supported by the DGK key of Bob."
            )

        if self.scheme_paillier is None:
            self.scheme_paillier = Paillier(public_key=paillier_key, secret_key=None)
        elif self.scheme_paillier.public_key != paillier_key:
            raise ProtocolAbortError("Bob sent an unexpected Paillier public key.")
        if self.scheme_dgk is None:
            self.scheme_dgk = DGK(
                public_key=dgk_key, secret_key=None, full_decryption=False
            )
        elif self.scheme_dgk.public_key != dgk_key:
            raise ProtocolAbortError("Bob sent an unexpected DGK public key.")

    def _paillier_operand(self, value: Union[int, PaillierCiphertext]) -> PaillierCiphertext:
        scheme = cast(Paillier, self.scheme_paillier)
        if isinstance(value, int):
            return scheme.unsafe_encrypt(value, apply_encoding=False)
        if value.scheme != scheme:
            raise KeyMismatchError(
                "The operand is not encrypted under the Paillier key of Bob."
            )
        return value

    def _paillier_ciphertext(self, value: Any, description: str) -> PaillierCiphertext:
        return expect_ciphertext(
            value, PaillierCiphertext, self.scheme_paillier, description
        )

    def _dgk_ciphertexts(
        self, value: Any, length: int, description: str
    ) -> List[DGKCiphertext]:
        return [
            expect_ciphertext(item, DGKCiphertext, self.scheme_dgk, description)
            for item in expect_list(value, length, description)
        ]

    async def _secure_comparison(
        self,
        session: ComparisonSession,
        x_enc: PaillierCiphertext,
        y_enc: PaillierCiphertext,
        strict: bool = False,
    ) -> PaillierCiphertext:
        scheme_paillier = cast(Paillier, self.scheme_paillier)
        scheme_dgk = cast(DGK, self.scheme_dgk)
        l = cast(int, self.bit_length)
        if l > max_comparison_bit_length(ComparisonMode.PAILLIER, scheme_dgk.public_key.l):
            raise ValueError(
                f"Encrypted operands of {l} bits do not fit the DGK key, at most "
                f"{scheme_dgk.public_key.l - 2} bits are supported."
            )

        # step 1
        z_enc, r_plain = ValueHolder.step_1(x_enc, y_enc, l, scheme_paillier, strict)
        z_enc.randomize()
        await session.send("step_1", z_enc)

        # step 3
        alpha = ValueHolder.step_3(r_plain, l)

        d_value, beta_values = expect_list(await session.recv("step_4b"), 2, "step 4b")
        d_enc = self._dgk_ciphertexts([d_value], 1, "[d]")[0]
        beta_is_enc = self._dgk_ciphertexts(beta_values, l, r"[\beta_i]")

        # step 4c
        d_enc = ValueHolder.step_4c(d_enc, r_plain, scheme_dgk, scheme_paillier)

        # step 4d
        alpha_is_xor_beta_is_enc = ValueHolder.step_4d(alpha, beta_is_enc)

        # step 4e
        w_is_enc_step4e, alpha_tilde = ValueHolder.step_4e(
            r_plain, alpha, alpha_is_xor_beta_is_enc, d_enc, scheme_paillier
        )

        # step 4f
        w_is_enc = ValueHolder.step_4f(w_is_enc_step4e)

        # step 4g
        s_plain, delta_a = ValueHolder.step_4g()

        # step 4h
        c_is_enc_step4h = ValueHolder.step_4h(
            s_plain,
            alpha,
            alpha_tilde,
            d_enc,
            beta_is_enc,
            w_is_enc,
            delta_a,
            scheme_dgk,
        )

        # step 4i
        c_is_enc = ValueHolder.step_4i(c_is_enc_step4h, scheme_dgk, do_shuffle=True)
        for c in c_is_enc:
            c.randomize()
        await session.send("step_4i", c_is_enc)

        zeta_1_value, zeta_2_value, delta_b_value = expect_list(
            await session.recv("step_5"), 3, "step 5"
        )
        zeta_1_enc = self._paillier_ciphertext(zeta_1_value, r"[[\zeta_1]]")
        zeta_2_enc = self._paillier_ciphertext(zeta_2_value, r"[[\zeta_2]]")
        delta_b_enc = self._paillier_ciphertext(delta_b_value, r"[[\delta_B]]")

        # step 6
        beta_lt_alpha_enc = ValueHolder.step_6(delta_a, delta_b_enc)

        # step 7
        return ValueHolder.step_7(
            zeta_1_enc, zeta_2_enc, r_plain, l, beta_lt_alpha_enc, scheme_paillier
        )

    async def _revealed_comparison(
        self,
        session: ComparisonSession,
        x_enc: PaillierCiphertext,
        y_enc: PaillierCiphertext,
    ) -> bool:
        x_geq_y_enc = await self._secure_comparison(session, x_enc, y_enc)
        flip = randbelow(2)
        masked_enc = 1 - x_geq_y_enc if flip else x_geq_y_enc
        masked_enc.randomize()
        await session.send("k_values_masked", masked_enc)
        masked = expect_bit(await session.recv("k_values_bit"), "masked outcome")
        return bool(masked ^ flip)

    async def _bitwise_comparison(
        self, session: ComparisonSession, alpha: int, bit_length: int
    ) -> int:
        r"""
        DGK comparison of the plaintext $\alpha$ of Alice with the plaintext $\beta$ of Bob.

        The $c_i$ of step 4h are computed without carry correction, i.e. with $[d] = [0]$. Alice
        learns $[\delta_B]$ from Bob and returns $[\delta_A \oplus \delta_B]$, which Bob decrypts
        with the zero test and announces.

        :param session: Current session.
        :param alpha: Plaintext $\alpha$ of Alice.
        :param bit_length: Number of bits of $\alpha$ and $\beta$.
        :return: The bit $(\alpha \leq \beta)$.
        """
        scheme_dgk = cast(DGK, self.scheme_dgk)
        alpha_bits = to_bits(alpha, bit_length)
        beta_is_enc = self._dgk_ciphertexts(
            await session.recv("bitwise_bits"), bit_length, r"[\beta_i]"
        )
        alpha_is_xor_beta_is_enc = ValueHolder.step_4d(alpha_bits, beta_is_enc)
        s_plain, delta_a = ValueHolder.step_4g()
        c_is_enc = ValueHolder.step_4h(
            s_plain,
            alpha_bits,
            alpha_bits,
            scheme_dgk.unsafe_encrypt(0, apply_encoding=False),
            beta_is_enc,
            alpha_is_xor_beta_is_enc,
            delta_a,
            scheme_dgk,
        )
        c_is_enc = ValueHolder.step_4i(c_is_enc, scheme_dgk, do_shuffle=True)
        for c in c_is_enc:
            c.randomize()
        await session.send("bitwise_masked", c_is_enc)

        delta_b_enc = self._dgk_ciphertexts(
            [await session.recv("bitwise_share")], 1, r"[\delta_B]"
        )[0]
        delta_enc = delta_b_enc if delta_a == 0 else 1 - delta_b_enc
        delta_enc.randomize()
        await session.send("bitwise_result", delta_enc)
        return expect_bit(await session.recv("bitwise_outcome"), r"\delta")

    @staticmethod
    def step_1(
        x_enc: PaillierCiphertext,
        y_enc: PaillierCiphertext,
        l: int,
        scheme_paillier: Paillier,
        strict: bool = False,
    ) -> Tuple[PaillierCiphertext, int]:
        r"""
        $A$ chooses a random number $r, 0 \leq r < N$, and computes
        $$[[z]] \leftarrow [[x - y + 2^l + r]] = [[x]] \cdot [[y]]^{-1} \cdot [[2^l + r]]
        \mod N^2.$$
        For the strict predicate $x - 1$ takes the place of $x$.

        :param x_enc: Encrypted value of $x$: $[[x]]$.
        :param y_enc: Encrypted value of $y$: $[[y]]$.
        :param l: Fixed value, such that $0 \leq x,y < 2^l$, for any $x$, $y$ that will be given as
            input to this method.
        :param scheme_paillier: Paillier encryption scheme.
        :param strict: Prepare the comparison $x > y$ instead of $x \geq y$.
        :raise ValueError: When the Paillier modulus is too small for $l$.
        :return: Tuple containing as first entry the encrypted value of $z$. The second entry is
            the randomness value $r$.
        """
        if (1 << (l + 2)) >= scheme_paillier.public_key.n // 2:
            raise ValueError(f"The Paillier modulus is too small for {l}-bit operands.")
        r = randbelow(scheme_paillier.public_key.n)
        return (
            x_enc
            - y_enc
            + scheme_paillier.unsafe_encrypt(
                (1 << l) + r - int(strict), apply_encoding=False
            ),
            r,
        )

    @staticmethod
    def step_3(r: int, l: int) -> List[int]:
        r"""
        $A$ computes $\alpha = r \mod 2^l$.

        :param r: The randomness value $r$ from step 1.
        :param l: Fixed value, such that $0 \leq x,y < 2^l$.
        :return: Value $\alpha = r \mod 2^l$ as bits.
        """
        return to_bits(r % (1 << l), l)

    @staticmethod
    def step_4c(
        d_enc: DGKCiphertext, r: int, scheme_dgk: DGK, scheme_paillier: Paillier
    ) -> DGKCiphertext:
        r"""
        $A$ corrects $[d]$ by setting $[d] \leftarrow [0]$ whenever $0 \leq r < (N - 1)/2$.

        :param d_enc: Encrypted value of $d$: $[d]$.
        :param r: The randomness value $r$ from step 1.
        :param scheme_dgk: DGK encryption scheme.
        :param scheme_paillier: Paillier encryption scheme.
        :return: Corrected encrypted value of $d$: $[d]$.
        """
        if r < (scheme_paillier.public_key.n - 1) // 2:
            d_enc = scheme_dgk.unsafe_encrypt(0, apply_encoding=False)
        return d_enc

    @staticmethod
    def step_4d(
        alpha: List[int], beta_is_enc: List[DGKCiphertext]
    ) -> List[DGKCiphertext]:
        r"""
        For each $i, 0 \leq i < l$, $A$ computes $[\alpha_i \oplus \beta_i]$ as follows:
        if $\alpha_i = 0$ then $[\alpha_i \oplus \beta_i] \leftarrow [\beta_i]$ else
        $[\alpha_i \oplus \beta_i] \leftarrow [1] \cdot [\beta_i]^{-1} \mod n$.

        :param alpha: The bits of $\alpha$.
        :param beta_is_enc: List containing the encrypted values of $\beta_i$.
        :return: List containing the encrypted values of the bits $\alpha_i \oplus \beta_i$.
        """
        return [
            beta_i_enc if alpha_i == 0 else 1 - beta_i_enc
            for alpha_i, beta_i_enc in zip(alpha, beta_is_enc)
        ]

    @staticmethod
    def step_4e(
        r: int,
        alpha: List[int],
        alpha_is_xor_beta_is_enc: List[DGKCiphertext],
        d_enc: DGKCiphertext,
        scheme_paillier: Paillier,
    ) -> Tuple[List[DGKCiphertext], List[int]]:
        r"""
        A computes $\tilde{\alpha} = (r - N) \mod 2^l$, the corrected value of $\alpha$ in case a
        carry-over actually did occur and adjusts $[\alpha_i \oplus \beta_i]$ for each $i$:
        If $\alpha_i = \tilde{\alpha}_i$ then $[w_i] \leftarrow [\alpha_i \oplus \beta_i]$
        else $[w_i] \leftarrow [\alpha_i \oplus \beta_i] \cdot [d]^{-1} \mod n$

        :param r: The randomness value $r$ from step 1.
        :param alpha: The bits of $\alpha$ from step 3.
        :param alpha_is_xor_beta_is_enc: Encrypted bits $[\alpha_i \oplus \beta_i]$.
        :param d_enc: Encrypted value of $d$: $[d]$.
        :param scheme_paillier: Paillier encryption scheme.
        :return: Tuple containing the encrypted values $[w_i]$ and the bits of
            $\tilde{\alpha}$.
        """
        l = len(alpha_is_xor_beta_is_enc)
        alpha_tilde = to_bits((r - scheme_paillier.public_key.n) % (1 << l), l)
        w_is_enc = [
            xor_enc if alpha_i == alpha_tilde_i else xor_enc - d_enc
            for alpha_i, alpha_tilde_i, xor_enc in zip(
                alpha, alpha_tilde, alpha_is_xor_beta_is_enc
            )
        ]
        return w_is_enc, alpha_tilde

    @staticmethod
    def step_4f(w_is_enc: List[DGKCiphertext]) -> List[DGKCiphertext]:
        r"""
        For each $i, 0 \leq i < l$, $A$ computes $[w_i] \leftarrow [w_i]^{2^i} \mod n$
        such that these values will not interfere each other when added.

        :param w_is_enc: Encrypted values $[w_i]$.
        :return: Weighted encrypted values $[w_i]$.
        """
        return [w_i_enc * (1 << i) for i, w_i_enc in enumerate(w_is_enc)]

    @staticmethod
    def step_4g() -> Tuple[int, int]:
        r"""
        $A$ chooses a uniformly random bit $\delta_A$ and computes $s = 1 - 2 \cdot \delta_A$.

        :return: Tuple containing the value $s$ and the bit $\delta_A$.
        """
        delta_a = randbelow(2)
        return 1 - 2 * delta_a, delta_a

    @staticmethod
    def step_4h(
        s: int,
        alpha: List[int],
        alpha_tilde: List[int],
        d_enc: DGKCiphertext,
        beta_is_enc: List[DGKCiphertext],
        w_is_enc: List[DGKCiphertext],
        delta_a: int,
        scheme_dgk: DGK,
    ) -> List[DGKCiphertext]:
        r"""
        For each $i, 0 \leq i < l$, $A$ computes $[c_i] = [s] \cdot [\alpha_i] \cdot
        [d]^{\tilde{\alpha}_i-\alpha_i} \cdot [\beta_i]^{-1} \cdot
        (\Pi^{l-1}_{j=i+1}[w_j])^3 \mod n$.
        The additional value $[c_{-1}]$, with $c_{-1}=\delta_A + \Sigma^{l-1}_{i=0} w_i$, makes
        the comparison work in case of equality.

        :param s: The value $s$ from step 4g.
        :param alpha: The bits of $\alpha$.
        :param alpha_tilde: The bits of $\tilde{\alpha}$.
        :param d_enc: Encrypted value of $d$: $[d]$.
        :param beta_is_enc: Encrypted bits $[\beta_i]$.
        :param w_is_enc: Encrypted values $[w_i]$.
        :param delta_a: The bit $\delta_A$ from step 4g.
        :param scheme_dgk: DGK encryption scheme.
        :return: List containing $[c_{-1}]$ followed by the encrypted values $[c_i]$.
        """
        l = len(beta_is_enc)
        c_is_enc = [
            scheme_dgk.unsafe_encrypt(s, apply_encoding=False) for _ in range(l)
        ]
        w_is_enc_sum: Union[int, DGKCiphertext] = 0

        # only three powers of [d] occur
        d_enc_mult_table = {
            -1: d_enc * -1,
            0: d_enc * 0,
            1: d_enc * 1,
        }

        for i in range(l - 1, -1, -1):
            c_is_enc[i] += (
                alpha[i]
                + d_enc_mult_table[alpha_tilde[i] - alpha[i]]
                - beta_is_enc[i]
                + 3 * w_is_enc_sum
            )
            w_is_enc_sum += w_is_enc[i]
        c_is_enc.insert(0, cast(DGKCiphertext, delta_a + w_is_enc_sum))
        return c_is_enc

    @staticmethod
    def step_4i(
        c_is_enc: List[DGKCiphertext], scheme_dgk: DGK, do_shuffle: bool = True
    ) -> List[DGKCiphertext]:
        r"""
        $A$ blinds the numbers $c_i$ by raising them to a random non-zero exponent
        $r_i \in \{1,\ldots,u-1\}$.

        :param c_is_enc: Encrypted values $[c_i]$.
        :param scheme_dgk: DGK encryption scheme.
        :param do_shuffle: Whether the blinded values should be shuffled randomly.
        :return: Blinded encrypted values $[c_i]$.
        """
        u = scheme_dgk.public_key.u
        c_is_enc_masked = [c_i_enc * (randbelow(u - 1) + 1) for c_i_enc in c_is_enc]
        return shuffle(c_is_enc_masked) if do_shuffle else c_is_enc_masked

    @staticmethod
    def step_6(delta_a: int, delta_b_enc: PaillierCiphertext) -> PaillierCiphertext:
        r"""
        $A$ computes $[[(\beta < \alpha)]]$ as follows: if $\delta_A = 1$ then
        $[[(\beta < \alpha)]] \leftarrow [[\delta_B]]$ else
        $[[(\beta < \alpha)]] \leftarrow [[1]] \cdot [[\delta_B]]^{-1} \mod N^2$.

        :param delta_a: The bit $\delta_A$ from step 4g.
        :param delta_b_enc: Encrypted value of $\delta_B$: $[[\delta_B]]$.
        :return: Encrypted value of $(\beta < \alpha)$: $[[(\beta < \alpha)]]$.
        """
        if delta_a == 1:
            return delta_b_enc
        return 1 - delta_b_enc

    @staticmethod
    def step_7(
        zeta_1_enc: PaillierCiphertext,
        zeta_2_enc: PaillierCiphertext,
        r: int,
        l: int,
        beta_lt_alpha_enc: PaillierCiphertext,
        scheme_paillier: Paillier,
    ) -> PaillierCiphertext:
        r"""
        $A$ computes $[[(x \geq y)]] \leftarrow
        [[\zeta]] \cdot ([[ r \div 2^l]] \cdot [[(\beta < \alpha)]])^{-1} \mod N^2$, where
        $\zeta = \zeta_1$, if $r < (N - 1) / 2$, else $\zeta = \zeta_2$.

        :param zeta_1_enc: Encrypted value of $\zeta_1$: $[[\zeta_1]]$.
        :param zeta_2_enc: Encrypted value of $\zeta_2$: $[[\zeta_2]]$.
        :param r: The randomness value $r$ from step 1.
        :param l: Fixed value, such that $0 \leq x,y < 2^l$.
        :param beta_lt_alpha_enc: Encrypted value of $(\beta < \alpha)$.
        :param scheme_paillier: Paillier encryption scheme.
        :return: Encrypted value of $(x \geq y)$: $[[(x \geq y)]]$.
        """
        zeta_enc = (
            zeta_1_enc if r < (scheme_paillier.public_key.n - 1) // 2 else zeta_2_enc
        )
        return zeta_enc - (
            scheme_paillier.unsafe_encrypt(r // (1 << l), apply_encoding=False)
            + beta_lt_alpha_enc
        )

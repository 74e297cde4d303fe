"""
This module tests the two-party protocols between the ValueHolder (Alice) and the KeyHolder (Bob).
"""
import asyncio
import logging
from typing import List, Tuple

import pytest

from tno.mpc.communication import Pool

from homomorphic_millionaires.comparison import KeyHolder, QueueCommunicator, ValueHolder
from homomorphic_millionaires.config import ComparisonMode, Configuration
from homomorphic_millionaires.dgk import DGK
from homomorphic_millionaires.errors import (
    ChannelError,
    KeyMismatchError,
    PlaintextOutOfRangeError,
    ProtocolAbortError,
)
from homomorphic_millionaires.paillier import Paillier
from homomorphic_millionaires.test import RecordingCommunicator
from homomorphic_millionaires.test.conftest import TEST_KEY_LENGTH

Parties = Tuple[ValueHolder, KeyHolder]

PAILLIER_BITS = 14
DGK_BITS = 16

comparison_pairs = [
    (128, 129),
    (129, 128),
    (128, 128),
    (0, 0),
    (0, 1),
    (1, 0),
    (5, 12),
    (12, 5),
]


def create_parties(
    paillier_scheme: Paillier,
    dgk_scheme: DGK,
    mode: ComparisonMode,
    communicators: Tuple[QueueCommunicator, QueueCommunicator],
) -> Parties:
    """
    Create Alice and Bob on both ends of a channel.

    :param paillier_scheme: Paillier scheme of Bob.
    :param dgk_scheme: DGK scheme of Bob.
    :param mode: Comparison mode of both parties.
    :param communicators: Channel end of Alice and channel end of Bob.
    :return: Alice and Bob.
    """
    alice_communicator, bob_communicator = communicators
    alice = ValueHolder(alice_communicator, "bob", mode=mode)
    bob = KeyHolder(paillier_scheme, dgk_scheme, bob_communicator, "alice", mode=mode)
    return alice, bob


@pytest.fixture(name="paillier_parties")
def fixture_paillier_parties(
    paillier_scheme: Paillier,
    dgk_scheme: DGK,
    communicator_pair: Tuple[QueueCommunicator, QueueCommunicator],
) -> Parties:
    """
    Alice and Bob in paillier mode.

    :param paillier_scheme: Paillier scheme of Bob.
    :param dgk_scheme: DGK scheme of Bob.
    :param communicator_pair: Connected channel ends.
    :return: Alice and Bob.
    """
    return create_parties(
        paillier_scheme, dgk_scheme, ComparisonMode.PAILLIER, communicator_pair
    )


@pytest.fixture(name="dgk_parties")
def fixture_dgk_parties(
    paillier_scheme: Paillier,
    dgk_scheme: DGK,
    communicator_pair: Tuple[QueueCommunicator, QueueCommunicator],
) -> Parties:
    """
    Alice and Bob in dgk mode.

    :param paillier_scheme: Paillier scheme of Bob.
    :param dgk_scheme: DGK scheme of Bob.
    :param communicator_pair: Connected channel ends.
    :return: Alice and Bob.
    """
    return create_parties(paillier_scheme, dgk_scheme, ComparisonMode.DGK, communicator_pair)


@pytest.fixture(name="parties", params=[ComparisonMode.PAILLIER, ComparisonMode.DGK])
def fixture_parties(
    request: pytest.FixtureRequest,
    paillier_scheme: Paillier,
    dgk_scheme: DGK,
    communicator_pair: Tuple[QueueCommunicator, QueueCommunicator],
) -> Parties:
    """
    Alice and Bob in every comparison mode.

    :param request: Fixture request with the comparison mode as parameter.
    :param paillier_scheme: Paillier scheme of Bob.
    :param dgk_scheme: DGK scheme of Bob.
    :param communicator_pair: Connected channel ends.
    :return: Alice and Bob.
    """
    return create_parties(paillier_scheme, dgk_scheme, request.param, communicator_pair)


def test_default_bit_length(paillier_parties: Parties, dgk_parties: Parties) -> None:
    """
    Test that Bob uses the largest operand size of his mode by default.

    :param paillier_parties: Alice and Bob in paillier mode.
    :param dgk_parties: Alice and Bob in dgk mode.
    """
    assert paillier_parties[1].bit_length == PAILLIER_BITS
    assert dgk_parties[1].bit_length == DGK_BITS


@pytest.mark.asyncio
@pytest.mark.parametrize("x, y", comparison_pairs)
async def test_compare(parties: Parties, x: int, y: int) -> None:
    """
    Test that both parties learn whether x is at least y.

    :param parties: Alice and Bob.
    :param x: Operand of Alice.
    :param y: Operand of Bob.
    """
    alice, bob = parties
    result_alice, result_bob = await asyncio.gather(alice.compare(x), bob.compare(y))
    assert result_alice is result_bob is (x >= y)


@pytest.mark.asyncio
@pytest.mark.parametrize("x, y", comparison_pairs)
async def test_compare_strict(parties: Parties, x: int, y: int) -> None:
    """
    Test that both parties learn whether x is larger than y.

    :param parties: Alice and Bob.
    :param x: Operand of Alice.
    :param y: Operand of Bob.
    """
    alice, bob = parties
    result_alice, result_bob = await asyncio.gather(
        alice.compare(x, strict=True), bob.compare(y, strict=True)
    )
    assert result_alice is result_bob is (x > y)


@pytest.mark.asyncio
@pytest.mark.parametrize("strict", [False, True])
async def test_compare_extremes(parties: Parties, strict: bool) -> None:
    """
    Test comparisons of the smallest and largest operands of the mode.

    :param parties: Alice and Bob.
    :param strict: Whether to compare strictly.
    """
    alice, bob = parties
    maximum = (1 << bob.bit_length) - 1
    for x, y in [(maximum, maximum), (maximum, 0), (0, maximum), (maximum - 1, maximum)]:
        result_alice, result_bob = await asyncio.gather(
            alice.compare(x, strict=strict), bob.compare(y, strict=strict)
        )
        expected = x > y if strict else x >= y
        assert result_alice is result_bob is expected
    assert alice.session_id == bob.session_id == 4


@pytest.mark.asyncio
@pytest.mark.parametrize("x, y", [(3, 2), (2, 3), (7, 7)])
async def test_compare_encrypted_operand(
    paillier_parties: Parties, paillier_scheme: Paillier, x: int, y: int
) -> None:
    """
    Test that Alice compares an operand that is encrypted under the key of Bob.

    :param paillier_parties: Alice and Bob in paillier mode.
    :param paillier_scheme: Paillier scheme of Bob.
    :param x: Operand of Alice.
    :param y: Operand of Bob.
    """
    alice, bob = paillier_parties
    x_enc = paillier_scheme.unsafe_encrypt(x)
    result_alice, result_bob = await asyncio.gather(alice.compare(x_enc), bob.compare(y))
    assert result_alice is result_bob is (x >= y)


@pytest.mark.asyncio
async def test_compare_encrypted_operand_dgk_mode(
    dgk_parties: Parties, paillier_scheme: Paillier
) -> None:
    """
    Test that the dgk mode rejects encrypted operands before starting a session.

    :param dgk_parties: Alice and Bob in dgk mode.
    :param paillier_scheme: Paillier scheme of Bob.
    """
    alice, _bob = dgk_parties
    with pytest.raises(TypeError):
        await alice.compare(paillier_scheme.unsafe_encrypt(1))
    assert alice.session_id == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("value", [-1, 1 << PAILLIER_BITS])
async def test_compare_out_of_range(
    paillier_scheme: Paillier,
    dgk_scheme: DGK,
    communicator_pair: Tuple[QueueCommunicator, QueueCommunicator],
    value: int,
) -> None:
    """
    Test that operands outside of [0, 2^l) are rejected before starting a session.

    :param paillier_scheme: Paillier scheme of Bob.
    :param dgk_scheme: DGK scheme of Bob.
    :param communicator_pair: Connected channel ends.
    :param value: Invalid operand.
    """
    alice_communicator, bob_communicator = communicator_pair
    alice = ValueHolder(alice_communicator, bit_length=PAILLIER_BITS)
    bob = KeyHolder(paillier_scheme, dgk_scheme, bob_communicator)
    with pytest.raises(PlaintextOutOfRangeError):
        await alice.compare(value)
    with pytest.raises(PlaintextOutOfRangeError):
        await bob.compare(value)
    assert alice.session_id == bob.session_id == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("x, y", [(10, 4), (4, 10), (9, 9)])
async def test_perform_secure_comparison(
    paillier_parties: Parties, paillier_scheme: Paillier, x: int, y: int
) -> None:
    """
    Test that Alice obtains the encrypted outcome of comparing two ciphertexts.

    :param paillier_parties: Alice and Bob in paillier mode.
    :param paillier_scheme: Paillier scheme of Bob.
    :param x: First encrypted operand.
    :param y: Second encrypted operand.
    """
    alice, bob = paillier_parties
    x_enc = paillier_scheme.unsafe_encrypt(x)
    y_enc = paillier_scheme.unsafe_encrypt(y)
    result_enc, _ = await asyncio.gather(
        alice.perform_secure_comparison(x_enc, y_enc), bob.perform_secure_comparison()
    )
    assert paillier_scheme.decrypt(result_enc) == int(x >= y)


@pytest.mark.asyncio
async def test_perform_secure_comparison_foreign_ciphertext(
    paillier_parties: Parties, paillier_scheme: Paillier
) -> None:
    """
    Test that ciphertexts under another key are rejected.

    :param paillier_parties: Alice and Bob in paillier mode.
    :param paillier_scheme: Paillier scheme of Bob.
    """
    alice, bob = paillier_parties
    other_scheme = Paillier.from_security_parameter(
        key_length=TEST_KEY_LENGTH, min_key_length=TEST_KEY_LENGTH
    )
    bob_task = asyncio.create_task(bob.perform_secure_comparison())
    with pytest.raises(KeyMismatchError):
        await alice.perform_secure_comparison(
            other_scheme.unsafe_encrypt(1), paillier_scheme.unsafe_encrypt(1)
        )
    with pytest.raises(ChannelError):
        await bob_task


@pytest.mark.asyncio
@pytest.mark.parametrize("alpha, beta", [(3, 9), (9, 3), (6, 6), (0, 2**16 - 1)])
async def test_private_comparison(dgk_parties: Parties, alpha: int, beta: int) -> None:
    """
    Test that both parties learn whether alpha is at most beta.

    :param dgk_parties: Alice and Bob in dgk mode.
    :param alpha: Operand of Alice.
    :param beta: Operand of Bob.
    """
    alice, bob = dgk_parties
    result_alice, result_bob = await asyncio.gather(
        alice.private_comparison(alpha), bob.private_comparison(beta)
    )
    assert result_alice is result_bob is (alpha <= beta)


@pytest.mark.asyncio
@pytest.mark.parametrize("x, y", [(0, 5), (3, 7), (2**13, 2**13), (2**14 - 1, 2**14 - 1)])
async def test_multiplication(
    paillier_parties: Parties, paillier_scheme: Paillier, x: int, y: int
) -> None:
    """
    Test the multiplication of two ciphertexts.

    :param paillier_parties: Alice and Bob in paillier mode.
    :param paillier_scheme: Paillier scheme of Bob.
    :param x: First factor.
    :param y: Second factor.
    """
    alice, bob = paillier_parties
    x_enc = paillier_scheme.unsafe_encrypt(x)
    y_enc = paillier_scheme.unsafe_encrypt(y)
    product_enc, _ = await asyncio.gather(
        alice.multiplication(x_enc, y_enc), bob.multiplication()
    )
    assert paillier_scheme.decrypt(product_enc) == x * y


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "x, divisor",
    [(100, 7), (0, 3), (13, 13), (12, 13), (2**14 - 1, 1), (2**14 - 1, 2**14 - 1), (5, 9)],
)
async def test_division(
    paillier_parties: Parties, paillier_scheme: Paillier, x: int, divisor: int
) -> None:
    """
    Test the division of a ciphertext by a public divisor.

    :param paillier_parties: Alice and Bob in paillier mode.
    :param paillier_scheme: Paillier scheme of Bob.
    :param x: Encrypted dividend.
    :param divisor: Public divisor.
    """
    alice, bob = paillier_parties
    quotient_enc, _ = await asyncio.gather(
        alice.division(paillier_scheme.unsafe_encrypt(x), divisor), bob.division(divisor)
    )
    assert paillier_scheme.decrypt(quotient_enc) == x // divisor


@pytest.mark.asyncio
async def test_division_divisor_mismatch(
    paillier_parties: Parties, paillier_scheme: Paillier
) -> None:
    """
    Test that Alice aborts when Bob divides by another divisor.

    :param paillier_parties: Alice and Bob in paillier mode.
    :param paillier_scheme: Paillier scheme of Bob.
    """
    alice, bob = paillier_parties
    bob_task = asyncio.create_task(bob.division(4))
    with pytest.raises(ProtocolAbortError):
        await alice.division(paillier_scheme.unsafe_encrypt(1), 5)
    with pytest.raises(ChannelError):
        await bob_task


@pytest.mark.asyncio
async def test_consecutive_protocols(
    paillier_parties: Parties, paillier_scheme: Paillier
) -> None:
    """
    Test that different protocols are run one after the other over the same channel.

    :param paillier_parties: Alice and Bob in paillier mode.
    :param paillier_scheme: Paillier scheme of Bob.
    """
    alice, bob = paillier_parties
    assert all(await asyncio.gather(alice.compare(3), bob.compare(2)))
    product_enc, _ = await asyncio.gather(
        alice.multiplication(
            paillier_scheme.unsafe_encrypt(6), paillier_scheme.unsafe_encrypt(7)
        ),
        bob.multiplication(),
    )
    assert paillier_scheme.decrypt(product_enc) == 42
    results = await asyncio.gather(alice.compare(2, strict=True), bob.compare(2, strict=True))
    assert not any(results)
    assert alice.session_id == bob.session_id == 3


@pytest.mark.asyncio
async def test_messages_are_randomized(paillier_scheme: Paillier, dgk_scheme: DGK) -> None:
    """
    Test that repeating a comparison with the same operands yields different messages.

    :param paillier_scheme: Paillier scheme of Bob.
    :param dgk_scheme: DGK scheme of Bob.
    """
    alice_communicator, bob_communicator = RecordingCommunicator.pair()
    alice = ValueHolder(alice_communicator)
    bob = KeyHolder(paillier_scheme, dgk_scheme, bob_communicator)
    for _ in range(2):
        await asyncio.gather(alice.compare(20), bob.compare(10))
    step_1 = [
        message
        for msg_id, message in alice_communicator.sent
        if msg_id.startswith("step_1_")
    ]
    operands = [
        message
        for msg_id, message in bob_communicator.sent
        if msg_id.startswith("operand_")
    ]
    assert len(step_1) == len(operands) == 2
    assert step_1[0].peek_value() != step_1[1].peek_value()
    assert operands[0].peek_value() != operands[1].peek_value()


@pytest.mark.asyncio
async def test_unexpected_public_key(
    paillier_scheme: Paillier,
    dgk_scheme: DGK,
    communicator_pair: Tuple[QueueCommunicator, QueueCommunicator],
    caplog: pytest.LogCaptureFixture,
) -> None:
    """
    Test that Alice aborts when Bob presents another key than she expects.

    :param paillier_scheme: Paillier scheme of Bob.
    :param dgk_scheme: DGK scheme of Bob.
    :param communicator_pair: Connected channel ends.
    :param caplog: Captured log records.
    """
    alice_communicator, bob_communicator = communicator_pair
    other_scheme = Paillier.from_security_parameter(
        key_length=TEST_KEY_LENGTH, min_key_length=TEST_KEY_LENGTH
    )
    alice = ValueHolder(
        alice_communicator,
        scheme_paillier=Paillier(other_scheme.public_key, None),
        scheme_dgk=DGK(dgk_scheme.public_key, None, full_decryption=False),
    )
    bob = KeyHolder(paillier_scheme, dgk_scheme, bob_communicator)
    bob_task = asyncio.create_task(bob.compare(1))
    with caplog.at_level(logging.WARNING):
        with pytest.raises(ProtocolAbortError):
            await alice.compare(2)
    assert any("aborted session 1" in record.getMessage() for record in caplog.records)
    with pytest.raises(ChannelError):
        await bob_task


@pytest.mark.asyncio
async def test_mode_mismatch(
    paillier_scheme: Paillier,
    dgk_scheme: DGK,
    communicator_pair: Tuple[QueueCommunicator, QueueCommunicator],
) -> None:
    """
    Test that Alice aborts when Bob runs the comparison in another mode.

    :param paillier_scheme: Paillier scheme of Bob.
    :param dgk_scheme: DGK scheme of Bob.
    :param communicator_pair: Connected channel ends.
    """
    alice_communicator, bob_communicator = communicator_pair
    alice = ValueHolder(alice_communicator, mode="dgk")
    bob = KeyHolder(paillier_scheme, dgk_scheme, bob_communicator, mode="paillier")
    bob_task = asyncio.create_task(bob.compare(1))
    with pytest.raises(ProtocolAbortError):
        await alice.compare(2)
    with pytest.raises(ChannelError):
        await bob_task


@pytest.mark.asyncio
async def test_channel_closed(paillier_parties: Parties) -> None:
    """
    Test that Bob fails when Alice disappears during a comparison.

    :param paillier_parties: Alice and Bob in paillier mode.
    """
    alice, bob = paillier_parties
    bob_task = asyncio.create_task(bob.compare(3))
    await asyncio.sleep(0)
    alice.communicator.close()  # type: ignore[attr-defined]
    with pytest.raises(ChannelError):
        await bob_task
    with pytest.raises(ChannelError):
        await alice.compare(3)


def test_key_holder_requires_secret_keys(paillier_scheme: Paillier, dgk_scheme: DGK) -> None:
    """
    Test that Bob cannot be created from public schemes or with unsupported bit lengths.

    :param paillier_scheme: Paillier scheme of Bob.
    :param dgk_scheme: DGK scheme of Bob.
    """
    communicator, _ = QueueCommunicator.pair()
    public_paillier = Paillier(paillier_scheme.public_key, None)
    with pytest.raises(ValueError):
        KeyHolder(public_paillier, dgk_scheme, communicator)
    with pytest.raises(ValueError):
        KeyHolder(paillier_scheme, dgk_scheme, communicator, bit_length=PAILLIER_BITS + 1)
    KeyHolder(paillier_scheme, dgk_scheme, communicator, mode="dgk", bit_length=DGK_BITS)


@pytest.mark.asyncio
async def test_from_configuration(
    communicator_pair: Tuple[QueueCommunicator, QueueCommunicator]
) -> None:
    """
    Test that both roles are created from one configuration.

    :param communicator_pair: Connected channel ends.
    """
    configuration = Configuration(
        key_size_bits=TEST_KEY_LENGTH,
        min_key_size_bits=TEST_KEY_LENGTH,
        dgk_field_bits=8,
        dgk_t_bits=40,
        comparison_mode="dgk",
    )
    alice_communicator, bob_communicator = communicator_pair
    alice = ValueHolder.from_configuration(configuration, alice_communicator)
    bob = KeyHolder.from_configuration(configuration, bob_communicator)
    assert alice.bit_length == bob.bit_length == 8
    assert bob.scheme_dgk.public_key.l == 8
    result_alice, result_bob = await asyncio.gather(alice.compare(200), bob.compare(201))
    assert not result_alice and not result_bob


@pytest.mark.asyncio
async def test_concurrent_comparisons(paillier_scheme: Paillier, dgk_scheme: DGK) -> None:
    """
    Test that comparisons over separate channels run concurrently with the same keys.

    :param paillier_scheme: Paillier scheme shared by both instances of Bob.
    :param dgk_scheme: DGK scheme shared by both instances of Bob.
    """
    operands = [(5, 6), (6, 5), (100, 100)]
    coroutines = []
    for mode, (x, y) in zip(
        [ComparisonMode.PAILLIER, ComparisonMode.DGK, ComparisonMode.PAILLIER], operands
    ):
        alice, bob = create_parties(
            paillier_scheme, dgk_scheme, mode, QueueCommunicator.pair()
        )
        coroutines.extend([alice.compare(x), bob.compare(y)])
    results = await asyncio.gather(*coroutines)
    expected = [x >= y for x, y in operands for _ in range(2)]
    assert results == expected


@pytest.mark.asyncio
async def test_abort_wakes_key_holder(
    paillier_scheme: Paillier,
    dgk_scheme: DGK,
    communicator_pair: Tuple[QueueCommunicator, QueueCommunicator],
) -> None:
    """
    Test that Bob fails instead of waiting when Alice rejects her operand after the setup.

    :param paillier_scheme: Paillier scheme of Bob.
    :param dgk_scheme: DGK scheme of Bob.
    :param communicator_pair: Connected channel ends.
    """
    alice_communicator, bob_communicator = communicator_pair
    alice = ValueHolder(alice_communicator)
    bob = KeyHolder(paillier_scheme, dgk_scheme, bob_communicator)
    bob_task = asyncio.create_task(bob.compare(1))
    with pytest.raises(PlaintextOutOfRangeError):
        await alice.compare(1 << PAILLIER_BITS)
    with pytest.raises(ChannelError):
        await asyncio.wait_for(bob_task, timeout=10)
    assert alice_communicator.closed


@pytest.mark.asyncio
@pytest.mark.parametrize("x, y", [(0, 0), (0, 1), (1, 0), (77, 77), (77, 78), (2**13, 0)])
async def test_encrypted_equals(parties: Parties, x: int, y: int) -> None:
    """
    Test that both parties learn whether two plaintext values are equal.

    :param parties: Alice and Bob.
    :param x: First value.
    :param y: Second value.
    """
    alice, bob = parties
    result_alice, result_bob = await asyncio.gather(
        alice.encrypted_equals(x, y), bob.encrypted_equals()
    )
    assert result_alice is result_bob is (x == y)


@pytest.mark.asyncio
@pytest.mark.parametrize("x, y", [(9, 9), (9, 10), (2**14 - 1, 2**14 - 1), (2**14 - 1, 0)])
async def test_encrypted_equals_ciphertexts(
    paillier_parties: Parties, paillier_scheme: Paillier, x: int, y: int
) -> None:
    """
    Test the equality of values that are encrypted under the key of Bob.

    :param paillier_parties: Alice and Bob in paillier mode.
    :param paillier_scheme: Paillier scheme of Bob.
    :param x: First encrypted value.
    :param y: Second encrypted value.
    """
    alice, bob = paillier_parties
    result_alice, result_bob = await asyncio.gather(
        alice.encrypted_equals(
            paillier_scheme.unsafe_encrypt(x), paillier_scheme.unsafe_encrypt(y)
        ),
        bob.encrypted_equals(),
    )
    assert result_alice is result_bob is (x == y)


@pytest.mark.asyncio
async def test_encrypted_equals_out_of_range(paillier_parties: Parties) -> None:
    """
    Test that Alice rejects a plaintext outside of [0, 2^l) and Bob is released.

    :param paillier_parties: Alice and Bob in paillier mode.
    """
    alice, bob = paillier_parties
    bob_task = asyncio.create_task(bob.encrypted_equals())
    with pytest.raises(PlaintextOutOfRangeError):
        await alice.encrypted_equals(3, 1 << PAILLIER_BITS)
    with pytest.raises(ChannelError):
        await bob_task


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "values, k, smallest, expected",
    [
        ([5, 1, 9, 1, 7], 2, True, [1, 1]),
        ([5, 1, 9, 1, 7], 3, False, [9, 7, 5]),
        ([5, 1, 9, 1, 7], 5, True, [1, 1, 5, 7, 9]),
        ([2**14 - 1, 0], 1, False, [2**14 - 1]),
        ([3], 1, True, [3]),
    ],
)
async def test_get_k_values(
    paillier_parties: Parties,
    paillier_scheme: Paillier,
    values: List[int],
    k: int,
    smallest: bool,
    expected: List[int],
) -> None:
    """
    Test that Alice selects the k smallest or largest of her encrypted values.

    :param paillier_parties: Alice and Bob in paillier mode.
    :param paillier_scheme: Paillier scheme of Bob.
    :param values: Plaintexts of the encrypted values.
    :param k: Number of values to select.
    :param smallest: Select the smallest values, otherwise the largest.
    :param expected: Plaintexts of the selected values, most extreme first.
    """
    alice, bob = paillier_parties
    ciphertexts = [paillier_scheme.unsafe_encrypt(value) for value in values]
    selected, comparisons = await asyncio.gather(
        alice.get_k_values(ciphertexts, k, smallest=smallest), bob.get_k_values()
    )
    assert [paillier_scheme.decrypt(value) for value in selected] == expected
    assert comparisons == sum(len(values) - 1 - i for i in range(k))
    assert alice.session_id == bob.session_id == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("k", [0, 4])
async def test_get_k_values_invalid_k(
    paillier_parties: Parties, paillier_scheme: Paillier, k: int
) -> None:
    """
    Test that k outside of [1, number of values] is rejected before starting a session.

    :param paillier_parties: Alice and Bob in paillier mode.
    :param paillier_scheme: Paillier scheme of Bob.
    :param k: Invalid number of values to select.
    """
    alice, _bob = paillier_parties
    ciphertexts = [paillier_scheme.unsafe_encrypt(value) for value in (1, 2, 3)]
    with pytest.raises(ValueError):
        await alice.get_k_values(ciphertexts, k)
    assert alice.session_id == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("x, y", [(0, 1), (1, 0), (42, 42)])
async def test_compare_over_pool(
    http_pool_duo: Tuple[Pool, Pool],
    paillier_scheme: Paillier,
    dgk_scheme: DGK,
    x: int,
    y: int,
) -> None:
    """
    Test the comparison and the encrypted comparison between parties that communicate through
    an http pool.

    :param http_pool_duo: Communication pools of Alice and Bob.
    :param paillier_scheme: Paillier scheme of Bob.
    :param dgk_scheme: DGK scheme of Bob.
    :param x: Operand of Alice.
    :param y: Operand of Bob.
    """
    pool_alice, pool_bob = http_pool_duo
    alice_id = next(iter(pool_bob.pool_handlers))
    bob_id = next(iter(pool_alice.pool_handlers))
    alice = ValueHolder(pool_alice, bob_id)
    bob = KeyHolder(paillier_scheme, dgk_scheme, pool_bob, alice_id)
    result_alice, result_bob = await asyncio.gather(alice.compare(x), bob.compare(y))
    assert result_alice is result_bob is (x >= y)

    result_enc, _ = await asyncio.gather(
        alice.perform_secure_comparison(
            paillier_scheme.unsafe_encrypt(x), paillier_scheme.unsafe_encrypt(y)
        ),
        bob.perform_secure_comparison(),
    )
    assert paillier_scheme.decrypt(result_enc) == int(x >= y)

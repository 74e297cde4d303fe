"""
Fixtures shared by the tests of the homomorphic_millionaires library.
"""
from typing import Tuple

import pytest

from homomorphic_millionaires.comparison.communicator import QueueCommunicator
from homomorphic_millionaires.dgk import DGK
from homomorphic_millionaires.paillier import Paillier

# small keys keep the tests fast, the minimum key length is lowered accordingly
TEST_KEY_LENGTH = 256
TEST_DGK_T = 40
TEST_DGK_L = 16


@pytest.fixture(name="paillier_scheme", scope="session")
def fixture_paillier_scheme() -> Paillier:
    """
    Paillier scheme with a small test key.

    :return: Paillier scheme including secret key.
    """
    return Paillier.from_security_parameter(
        key_length=TEST_KEY_LENGTH, min_key_length=TEST_KEY_LENGTH
    )


@pytest.fixture(name="dgk_scheme", scope="session")
def fixture_dgk_scheme() -> DGK:
    """
    DGK scheme with a small test key, 16-bit plaintext space and full decryption.

    :return: DGK scheme including secret key.
    """
    return DGK.from_security_parameter(
        n_bits=TEST_KEY_LENGTH,
        l=TEST_DGK_L,
        t=TEST_DGK_T,
        min_key_length=TEST_KEY_LENGTH,
    )


@pytest.fixture(name="communicator_pair")
def fixture_communicator_pair() -> Tuple[QueueCommunicator, QueueCommunicator]:
    """
    Connected in-process channel ends.

    :return: Channel end of Alice and channel end of Bob.
    """
    return QueueCommunicator.pair()

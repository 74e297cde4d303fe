"""
Testing module of the homomorphic_millionaires library
"""
from contextlib import contextmanager
from typing import Any, Iterator, List, Tuple

import pytest

from tno.mpc.encryption_schemes.templates.encryption_scheme import (
    EncryptionSchemeWarning,
)

from homomorphic_millionaires.comparison.communicator import QueueCommunicator


def encrypt_with_freshness(m: int, scheme: Any, safe: bool) -> Any:
    """
    Encrypt a plaintext in safe or unsafe mode.

    Safe mode will yield a fresh ciphertext, unsafe mode will yield a non-fresh ciphertext.

    :param m: Plaintext message to be encrypted
    :param scheme: Scheme to encrypt the message with
    :param safe: Perform safe encrypt if true, unsafe encrypt otherwise
    :return: Ciphertext object with requested freshness
    """
    if safe:
        return scheme.encrypt(m)
    return scheme.unsafe_encrypt(m)


@contextmanager
def conditional_pywarn(truthy: bool, match: str) -> Iterator[None]:
    """
    Conditionally wraps statement in pytest.warns context manager.

    :param truthy: Flags whether statement should be ran in pytest.warns
    :param match: Match parameter for pytest.warns
    :return: Context manager
    :yield: Nothing, the wrapped statement runs inside
    """
    if truthy:
        with pytest.warns(EncryptionSchemeWarning) as record:
            yield
            assert (
                len(record) >= 1  # Duplicate warnings possible
            ), f"Expected to catch one EncryptionSchemeWarning, caught {len(record)}."
            for rec_msg in (str(rec.message) for rec in record):
                assert (
                    rec_msg == match
                ), f'Expected message "{match}", received message "{rec_msg}".'
    else:
        yield


class RecordingCommunicator(QueueCommunicator):
    """
    Queue channel end that keeps a copy of every message it sends.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.sent: List[Tuple[str, Any]] = []

    async def send(self, party_id: str, message: Any, msg_id: str) -> None:
        self.sent.append((msg_id, message))
        await super().send(party_id, message, msg_id)

"""
A single run of one of the two-party protocols.
"""

from __future__ import annotations

import logging
from enum import IntEnum
from types import TracebackType
from typing import Any, List, Optional, Tuple, Type, TypeVar

from homomorphic_millionaires.comparison.communicator import (
    ClosableCommunicator,
    Communicator,
)
from homomorphic_millionaires.dgk import DGKPublicKey
from homomorphic_millionaires.errors import HomomorphicError, ProtocolAbortError
from homomorphic_millionaires.paillier import PaillierPublicKey

logger = logging.getLogger(__name__)


class Operation(IntEnum):
    """
    Protocol that both parties run in a session.
    """

    COMPARISON = 1
    STRICT_COMPARISON = 2
    ENCRYPTED_COMPARISON = 3
    PRIVATE_COMPARISON = 4
    MULTIPLICATION = 5
    DIVISION = 6
    EQUALITY = 7
    K_VALUES = 8


class ComparisonSession:
    """
    Message exchange of one protocol run. Every message is tagged with the session id and the
    round within the session, a session cannot be used anymore once it has ended.

    When the session ends with an exception, a closable channel is closed, such that the other
    party does not wait forever and no stale messages remain for later sessions.
    """

    def __init__(
        self,
        communicator: Communicator,
        other_party: str,
        session_id: int,
        role: str,
    ) -> None:
        """
        :param communicator: Channel to the other party.
        :param other_party: Identifier of the other party.
        :param session_id: Identifier of this session, unique per pair of roles.
        :param role: Name of the local role, used in log messages.
        """
        self.communicator = communicator
        self.other_party = other_party
        self.session_id = session_id
        self.role = role
        self.round = 0
        self.ended = False

    def next_round(self) -> None:
        """
        Start the next round of a protocol that repeats its steps.
        """
        self.round += 1

    def msg_id(self, step: str) -> str:
        """
        Message identifier of a protocol step in this session.

        :param step: Name of the step.
        :return: The message identifier.
        """
        if self.round:
            return f"{step}_round_{self.round}_session_{self.session_id}"
        return f"{step}_session_{self.session_id}"

    async def send(self, step: str, message: Any) -> None:
        """
        Send the message of a protocol step.

        :param step: Name of the step.
        :param message: Message content.
        :raise ProtocolAbortError: When the session has ended.
        """
        if self.ended:
            raise ProtocolAbortError(f"Session {self.session_id} has ended.")
        logger.debug("%s sends %s", self.role, self.msg_id(step))
        await self.communicator.send(self.other_party, message, msg_id=self.msg_id(step))

    async def recv(self, step: str) -> Any:
        """
        Receive the message of a protocol step.

        :param step: Name of the step.
        :raise ProtocolAbortError: When the session has ended.
        :return: Message content.
        """
        if self.ended:
            raise ProtocolAbortError(f"Session {self.session_id} has ended.")
        message = await self.communicator.recv(
            self.other_party, msg_id=self.msg_id(step)
        )
        logger.debug("%s received %s", self.role, self.msg_id(step))
        return message

    async def __aenter__(self) -> ComparisonSession:
        logger.debug("%s starts session %d", self.role, self.session_id)
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        self.ended = True
        if exc_value is None:
            logger.debug("%s ended session %d", self.role, self.session_id)
            return
        if isinstance(exc_value, HomomorphicError):
            logger.warning(
                "%s aborted session %d: %s", self.role, self.session_id, exc_value
            )
        else:
            logger.warning(
                "%s aborted session %d with %s",
                self.role,
                self.session_id,
                type(exc_value).__name__,
            )
        if isinstance(self.communicator, ClosableCommunicator):
            self.communicator.close()


def expect_int(value: Any, description: str) -> int:
    """
    Validate that a received value is an integer.

    :param value: Received value.
    :param description: Name of the value, used in the error message.
    :raise ProtocolAbortError: When the value is not an integer.
    :return: The value.
    """
    if not isinstance(value, int) or isinstance(value, bool):
        raise ProtocolAbortError(f"Expected an integer as {description}.")
    return value


def expect_bit(value: Any, description: str) -> int:
    """
    Validate that a received value is a bit.

    :param value: Received value.
    :param description: Name of the value, used in the error message.
    :raise ProtocolAbortError: When the value is not 0 or 1.
    :return: The value.
    """
    if expect_int(value, description) not in (0, 1):
        raise ProtocolAbortError(f"Expected a bit as {description}, got {value}.")
    return value


def expect_list(value: Any, length: int, description: str) -> List[Any]:
    """
    Validate that a received value is a sequence of the given length.

    :param value: Received value.
    :param length: Expected number of items.
    :param description: Name of the value, used in the error message.
    :raise ProtocolAbortError: When the value is not a list or tuple of the given length.
    :return: The items as a list.
    """
    if not isinstance(value, (list, tuple)) or len(value) != length:
        raise ProtocolAbortError(f"Expected a list of {length} items as {description}.")
    return list(value)


CiphertextType = TypeVar("CiphertextType")


def expect_ciphertext(
    value: Any,
    ciphertext_type: Type[CiphertextType],
    scheme: Any,
    description: str,
) -> CiphertextType:
    """
    Validate that a received value is a ciphertext under the given scheme and bind it to that
    scheme.

    :param value: Received value.
    :param ciphertext_type: Expected ciphertext class.
    :param scheme: Local scheme with the expected public key.
    :param description: Name of the value, used in the error message.
    :raise ProtocolAbortError: When the value is not a ciphertext under the public key of the
        scheme.
    :return: Ciphertext with the same value that belongs to the local scheme.
    """
    if not isinstance(value, ciphertext_type):
        raise ProtocolAbortError(
            f"Expected a {ciphertext_type.__name__} as {description}, not {type(value)}."
        )
    if value.scheme != scheme:  # type: ignore[attr-defined]
        raise ProtocolAbortError(f"Received {description} under an unexpected key.")
    return ciphertext_type(value.peek_value(), scheme)  # type: ignore[attr-defined,call-arg]


def expect_public_keys(value: Any) -> Tuple[PaillierPublicKey, DGKPublicKey]:
    """
    Validate the public keys of the Key Holder.

    :param value: Received value.
    :raise ProtocolAbortError: When the value does not hold a Paillier and a DGK public key.
    :return: Paillier and DGK public key.
    """
    paillier_key, dgk_key = expect_list(value, 2, "public keys")
    if not isinstance(paillier_key, PaillierPublicKey) or not isinstance(
        dgk_key, DGKPublicKey
    ):
        raise ProtocolAbortError("Expected a Paillier and a DGK public key.")
    if paillier_key.n < 3 or not 0 < paillier_key.g < paillier_key.n_squared:
        raise ProtocolAbortError("Received an invalid Paillier public key.")
    if dgk_key.n < 3 or dgk_key.u < 2 or not 0 < dgk_key.g < dgk_key.n:
        raise ProtocolAbortError("Received an invalid DGK public key.")
    return paillier_key, dgk_key

"""
Channels over which the two parties of a comparison exchange messages.

A :class:`tno.mpc.communication.Pool` satisfies the :class:`Communicator` protocol and is the
channel to use between processes or hosts. :class:`QueueCommunicator` connects two parties in
the same event loop and can be closed, which makes the blocked peer fail.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Protocol, Tuple, runtime_checkable

from tno.mpc.communication import Serialization

from homomorphic_millionaires.errors import ChannelError, ProtocolAbortError

logger = logging.getLogger(__name__)


class Communicator(Protocol):
    """
    Reliable, ordered channel to the other party.
    """

    async def send(self, party_id: str, message: Any, msg_id: str) -> None: ...

    async def recv(self, party_id: str, msg_id: str) -> Any: ...


@runtime_checkable
class ClosableCommunicator(Communicator, Protocol):
    """
    Channel that can be closed, after which receives on both ends fail with a ChannelError.
    """

    def close(self) -> None: ...


def unpack(frame: bytes, msg_id: str) -> Any:
    """
    Deserialize a frame and verify that it carries the expected message.

    :param frame: Serialized message, as produced by Serialization.pack.
    :param msg_id: Identifier of the expected message.
    :raise ProtocolAbortError: When the frame is malformed or carries another message.
    :return: Message content.
    """
    try:
        received_id, message = Serialization.unpack(frame)
    except Exception as error:  # pylint: disable=broad-exception-caught
        raise ProtocolAbortError(f"Could not deserialize message {msg_id!r}.") from error
    if received_id != msg_id:
        raise ProtocolAbortError(
            f"Expected message {msg_id!r}, but received {received_id!r}."
        )
    return message


class QueueCommunicator:
    """
    In-process channel end backed by asyncio queues. Messages are serialized on send and
    deserialized on receive, exactly as a Pool would, so both ends never share objects.
    """

    def __init__(
        self,
        inbox: asyncio.Queue[Optional[bytes]],
        outbox: asyncio.Queue[Optional[bytes]],
    ) -> None:
        """
        :param inbox: Queue with frames from the other end.
        :param outbox: Queue with frames for the other end.
        """
        self._inbox = inbox
        self._outbox = outbox
        self.closed = False

    @classmethod
    def pair(cls) -> Tuple[QueueCommunicator, QueueCommunicator]:
        """
        Create the two connected ends of a channel.

        :return: Both channel ends.
        """
        queue_1: asyncio.Queue[Optional[bytes]] = asyncio.Queue()
        queue_2: asyncio.Queue[Optional[bytes]] = asyncio.Queue()
        return cls(queue_1, queue_2), cls(queue_2, queue_1)

    async def send(self, party_id: str, message: Any, msg_id: str) -> None:
        """
        Send a message to the other end.

        :param party_id: ID of the receiving party.
        :param message: Message to be sent.
        :param msg_id: ID of the message.
        :raise ChannelError: When the channel is closed.
        """
        del party_id
        if self.closed:
            raise ChannelError("Cannot send over a closed channel.")
        await self._outbox.put(
            Serialization.pack(message, msg_id=msg_id, use_pickle=False)
        )

    async def recv(self, party_id: str, msg_id: str) -> Any:
        """
        Receive the next message from the other end.

        :param party_id: ID of the sending party.
        :param msg_id: ID of the expected message.
        :raise ChannelError: When the channel is or gets closed.
        :return: The contents of the message.
        """
        del party_id
        if self.closed:
            raise ChannelError("Cannot receive from a closed channel.")
        frame = await self._inbox.get()
        if frame is None:
            self.closed = True
            raise ChannelError("The channel was closed.")
        return unpack(frame, msg_id)

    def close(self) -> None:
        """
        Close this end of the channel. Pending and future receives on both ends fail.
        """
        if self.closed:
            return
        self.closed = True
        logger.debug("Closing queue channel.")
        self._outbox.put_nowait(None)
        self._inbox.put_nowait(None)

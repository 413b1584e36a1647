""":mod:`plume.connection` defines the chat connection interface.

Plume does not talk to the chat network itself: a transport (socket
lifecycle, message decoding, credentials) does, and hands a connection object
to the bot for each inbound message. This module defines what the bot and its
plugins can expect from that object.

.. warning::

    A connection is used concurrently by every message being handled. Its
    methods must be safe to call from several dispatch cycles at once.

"""
#
# Licensed under the Eiffel Forum License 2.
from __future__ import annotations

import abc
from typing import Any, NamedTuple, Optional, Sequence


__all__ = [
    'AbstractConnection',
    'Participant',
]


class Participant(NamedTuple):
    """One entry of a group's roster."""
    identity: str
    """The participant's identity."""
    admin: Optional[str] = None
    """The participant's admin rank (``None`` for regular members)."""

    @property
    def is_admin(self) -> bool:
        """Tell if the participant has a non-false admin rank."""
        return bool(self.admin)


class AbstractConnection(abc.ABC):
    """Abstract class defining the interface of a chat connection.

    Some methods of this class **MUST** be overridden by a subclass, or the
    bot will not be able to resolve message authorization.

    Plugins may use any other method the transport's connection provides;
    Plume itself only needs the ones defined here.
    """
    @abc.abstractmethod
    def resolve_own_identity(self) -> str:
        """Get the bot account's own identity.

        :return: the identity, as known by the transport (it may contain a
                 device part, see :func:`plume.tools.decode_identity`)
        """

    @abc.abstractmethod
    async def fetch_group_roster(self, chat_id: str) -> Sequence[Participant]:
        """Fetch the list of participants of a group chat.

        :param chat_id: the group's identity
        :return: the group's participants, with their admin rank
        :raise Exception: any transport error; the caller deals with it
        """

    @abc.abstractmethod
    async def send_text(
        self,
        chat_id: str,
        text: str,
        quoted: Any = None,
    ) -> Any:
        """Send a text message to a chat.

        :param chat_id: the destination chat's identity
        :param text: the text to send
        :param quoted: an optional raw message to quote in the reply
        :return: the transport's own result, if any
        """

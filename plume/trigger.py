"""Triggers are how Plume tells handlers about the message they react to.

A :class:`Message` is the main type of input plugins will see: one inbound
chat message, already decoded by the transport.

A :class:`CommandInvocation` is what Plume makes out of a message's body when
it starts with the command prefix: the trigger key, its arguments, and the
trailing text. Plugin authors get these values through their execution
context, and can reasonably expect they will never build one themselves.
"""
#
# Licensed under the Eiffel Forum License 2.

from __future__ import annotations

import re
from typing import Any, NamedTuple, Optional, Union


__all__ = [
    'CommandInvocation',
    'Message',
    'parse_command',
]


class Message:
    """One inbound chat message.

    :param str sender: identity of the message's author
    :param str chat: identity of the chat where the message was sent
    :param bool is_group: whether the chat is a group
    :param str body: the message's text, if any
    :param raw: the raw transport payload (opaque to Plume)
    :param bool from_me: whether the bot itself sent this message

    A message is read-only once built::

        >>> message = Message('628123@s.whatsapp.net', '628123@s.whatsapp.net')
        >>> message.body = 'hi'
        Traceback (most recent call last):
          ...
        AttributeError: Message is read-only

    .. py:attribute:: sender

        Identity of the message's author.

    .. py:attribute:: chat

        Identity of the chat: the group for group messages, the other party
        for private messages.

    .. py:attribute:: is_group

        ``True`` for messages sent in a group chat.

    .. py:attribute:: body

        The message's text. It can be empty (media without caption, stickers,
        reactions, etc.), in which case it is ``''``.

    .. py:attribute:: raw

        The transport's payload, passed as-is to plugins.

    .. py:attribute:: from_me

        ``True`` when the message was sent by the bot's own account.

    """
    __slots__ = ('sender', 'chat', 'is_group', 'body', 'raw', 'from_me')

    def __init__(
        self,
        sender: str,
        chat: str,
        is_group: bool = False,
        body: Optional[str] = None,
        raw: Any = None,
        from_me: bool = False,
    ):
        object.__setattr__(self, 'sender', sender)
        object.__setattr__(self, 'chat', chat)
        object.__setattr__(self, 'is_group', bool(is_group))
        object.__setattr__(self, 'body', body or '')
        object.__setattr__(self, 'raw', raw)
        object.__setattr__(self, 'from_me', bool(from_me))

    def __setattr__(self, name, value):
        raise AttributeError('Message is read-only')

    def __delattr__(self, name):
        raise AttributeError('Message is read-only')

    def __repr__(self):
        return '<Message from %s in %s%s: %r>' % (
            self.sender,
            self.chat,
            ' (group)' if self.is_group else '',
            self.body,
        )


class CommandInvocation(NamedTuple):
    """Result of parsing a prefixed message body."""
    key: str
    """The candidate trigger key (the first token, lowercased)."""
    args: tuple[str, ...]
    """The remaining tokens."""
    text: str
    """The remaining tokens joined by a single space."""


def parse_command(
    prefix: Union[str, re.Pattern],
    body: str,
) -> Optional[CommandInvocation]:
    """Parse a message ``body`` as a prefixed command.

    :param prefix: the command-prefix pattern (a regex or its source)
    :param body: the message's body
    :return: the parsed command, or ``None`` if ``body`` has no prefix

    The prefix must match at the start of the body. It is stripped, and what
    remains is split on whitespace: the first token (lowercased) is the
    trigger key, the other tokens are the arguments::

        >>> parse_command(r'[/.]', '/Ping hello  world')
        CommandInvocation(key='ping', args=('hello', 'world'), text='hello world')

    A body made only of the prefix gives an empty key.
    """
    if not body:
        return None

    match = re.match(prefix, body)
    if match is None:
        return None

    tokens = body[match.end():].split()
    if not tokens:
        return CommandInvocation('', tuple(), '')

    key = tokens[0].lower()
    args = tuple(tokens[1:])
    return CommandInvocation(key, args, ' '.join(args))

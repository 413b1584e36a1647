"""Test tools, factories, pytest fixtures, and mocks."""
#
# Licensed under the Eiffel Forum License 2.
from __future__ import annotations

import asyncio
from typing import Any, TYPE_CHECKING


if TYPE_CHECKING:
    from plume.bot import Plume
    from plume.connection import AbstractConnection
    from plume.trigger import Message


def handle_message(
    bot: Plume,
    message: Message,
    connection: AbstractConnection,
    store: Any = None,
    chat_update: Any = None,
) -> None:
    """Run one dispatch cycle of the ``bot`` to completion.

    Plume's dispatcher is a coroutine. This helper function can be used to
    replace this::

        asyncio.run(bot.handle_message(message, connection))

    By this::

        from plume.tests import handle_message

        handle_message(bot, message, connection)

    """
    asyncio.run(
        bot.handle_message(message, connection, store, chat_update))

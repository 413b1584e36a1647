"""Authorization facts for one inbound message.

For every message, Plume resolves three facts before running any handler:

* is the sender an admin of the group?
* is the bot's own account an admin of the group?
* is the sender one of the bot's owners?

These facts are resolved fresh for every message, and never cached.
"""
#
# Licensed under the Eiffel Forum License 2.
from __future__ import annotations

import logging
from typing import Iterable, NamedTuple, Optional, TYPE_CHECKING

from plume.tools import identifiers


if TYPE_CHECKING:
    from plume.connection import AbstractConnection, Participant
    from plume.trigger import Message


__all__ = [
    'AuthorizationContext',
    'NO_AUTHORIZATION',
    'has_admin_rank',
    'resolve_authorization',
]

LOGGER = logging.getLogger(__name__)


class AuthorizationContext(NamedTuple):
    """Admin and owner facts resolved for one message."""
    is_admin: bool = False
    """The sender is an admin of the group (``False`` outside groups)."""
    is_bot_admin: bool = False
    """The bot is an admin of the group (``False`` outside groups)."""
    is_owner: bool = False
    """The sender is one of the bot's owners."""


NO_AUTHORIZATION = AuthorizationContext()
"""Authorization context with every flag set to ``False``."""


def has_admin_rank(
    roster: Iterable[Participant],
    identity: Optional[str],
    unlisted_is_admin: bool = True,
) -> bool:
    """Tell if ``identity`` has a non-false admin rank in the ``roster``.

    :param roster: the group's participants
    :param identity: the identity to look for
    :param unlisted_is_admin: what to answer when ``identity`` is not in
                              the ``roster``
    :return: ``True`` if the participant is listed with an admin rank

    .. important::

        A participant absent from the roster has no admin rank at all, and
        its rank is therefore "not explicitly false". The historical behavior
        is to treat it as an admin, and this is still the default. Set the
        ``core.unlisted_is_admin`` option to ``false`` to treat unlisted
        participants as regular members instead.

    """
    for participant in roster:
        if participant.identity == identity:
            return participant.is_admin

    return unlisted_is_admin


async def resolve_authorization(
    message: Message,
    connection: AbstractConnection,
    owners: Iterable[str] = tuple(),
    domain: str = identifiers.DEFAULT_DOMAIN,
    unlisted_is_admin: bool = True,
) -> AuthorizationContext:
    """Resolve the authorization context of a ``message``.

    :param message: the inbound message
    :param connection: the connection the message came from
    :param owners: configured owner identities (phone numbers, any format)
    :param domain: domain suffix used to normalize owner identities
    :param unlisted_is_admin: see :func:`has_admin_rank`
    :return: the message's authorization context

    For group messages, the group's roster is fetched through the
    ``connection``. If that fails, the error is logged and both admin flags
    are ``False`` for this message: no admin data means no admin rights.
    """
    own_identity = identifiers.decode_identity(
        connection.resolve_own_identity())
    is_owner = message.sender in identifiers.owner_identities(
        own_identity, owners, domain)

    if not message.is_group:
        return AuthorizationContext(False, False, is_owner)

    try:
        roster = list(await connection.fetch_group_roster(message.chat))
    except Exception as error:
        LOGGER.warning(
            'Unable to fetch roster of %s; no admin data for this message: %s',
            message.chat, error)
        return AuthorizationContext(False, False, is_owner)

    return AuthorizationContext(
        has_admin_rank(roster, message.sender, unlisted_is_admin),
        has_admin_rank(roster, own_identity, unlisted_is_admin),
        is_owner,
    )

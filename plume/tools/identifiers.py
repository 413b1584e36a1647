"""Identity helpers.

A chat identity (a "JID") looks like ``<user>@<domain>``, for example
``6281234567890@s.whatsapp.net`` for a user, or ``<id>@g.us`` for a group.
Some transports add a device suffix to the user part
(``6281234567890:12@s.whatsapp.net``), which must be removed before an
identity can be compared with another one.
"""
#
# Licensed under the Eiffel Forum License 2.

from __future__ import annotations

import re
from typing import Iterable, Optional


__all__ = [
    'DEFAULT_DOMAIN',
    'decode_identity',
    'normalize_identity',
    'owner_identities',
]

DEFAULT_DOMAIN = 's.whatsapp.net'
"""Domain suffix used for user identities."""

_DEVICE_REGEX = re.compile(r'^(?P<user>[^:@]+):\d+@(?P<domain>.+)$')
_NON_DIGITS = re.compile(r'[^0-9]')


def decode_identity(identity: Optional[str]) -> Optional[str]:
    """Remove the device part from an ``identity``, if any.

    :param identity: a raw identity, as sent by the transport
    :return: the identity without its device part

    Identities without a device part (and empty values) are returned as-is::

        >>> decode_identity('628123:4@s.whatsapp.net')
        '628123@s.whatsapp.net'
        >>> decode_identity('628123@s.whatsapp.net')
        '628123@s.whatsapp.net'

    """
    if not identity:
        return identity

    match = _DEVICE_REGEX.match(identity)
    if match is None:
        return identity

    return '%s@%s' % (match.group('user'), match.group('domain'))


def normalize_identity(value: str, domain: str = DEFAULT_DOMAIN) -> str:
    """Normalize a phone-number-like ``value`` into a user identity.

    :param value: a phone number or an identity, in any format
    :param domain: the domain suffix to append
    :return: the digits of ``value``, followed by ``@`` and ``domain``

    Every non-digit character is stripped, including the domain of
    ``value`` if it already has one::

        >>> normalize_identity('+62 812-3456')
        '628123456@s.whatsapp.net'

    .. note::

        The device part of an identity is made of digits too: decode the
        identity with :func:`decode_identity` first.

    """
    return _NON_DIGITS.sub('', str(value)) + '@' + domain


def owner_identities(
    own_identity: Optional[str],
    owners: Iterable[str],
    domain: str = DEFAULT_DOMAIN,
) -> frozenset[str]:
    """Build the set of identities considered as owners.

    :param own_identity: the bot's own identity (decoded)
    :param owners: configured owner values (phone numbers or identities)
    :param domain: the domain suffix to append
    :return: the normalized owner identities

    The bot's own account is always an owner.
    """
    values = list(owners)
    if own_identity:
        values.insert(0, decode_identity(own_identity))

    return frozenset(
        normalize_identity(value, domain)
        for value in values
        if value
    )

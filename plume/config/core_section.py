"""Plume's ``[core]`` configuration section."""
#
# Licensed under the Eiffel Forum License 2.
from __future__ import annotations

import re

from plume.config.types import (
    BooleanAttribute,
    ChoiceAttribute,
    DirectoryAttribute,
    ListAttribute,
    PatternAttribute,
    StaticSection,
    ValidatedAttribute,
)
from plume.tools.identifiers import DEFAULT_DOMAIN


COMMAND_DEFAULT_PREFIX = r'[/!#$%+£¢€¥^°=¶∆×÷π√✓©®:;?&.\-]'
"""Default prefix used for commands."""


class CoreSection(StaticSection):
    """The config section used for configuring the bot itself."""

    db_filename = ValidatedAttribute('db_filename')
    """The filename for Plume's settings store (a SQLite database).

    :default: ``<basename>.db`` in the config's home directory

    The special value ``:memory:`` keeps the store in memory, for the
    lifetime of the process.
    """

    exclude = ListAttribute('exclude')
    """A list of plugins which should not be loaded.

    .. highlight:: ini

    Plugins are named after their file, relative to their plugin directory,
    without the ``.py`` extension::

        exclude =
            sticker
            group/_antilink

    """

    extra = ListAttribute('extra')
    """A list of other directories in which to search for plugin files.

    Example:

    .. code-block:: ini

        extra =
            /home/myuser/custom-plume-plugins/

    """

    fallback = ValidatedAttribute('fallback')
    """Python file handling prefixed messages that match no command.

    :default: none

    The file must define a ``handle(message, connection, chat_update)``
    function. A relative path is relative to the config's home directory.
    """

    identity_domain = ValidatedAttribute(
        'identity_domain', default=DEFAULT_DOMAIN)
    """Domain appended to owner phone numbers to build their identity.

    :default: ``s.whatsapp.net``
    """

    logdir = DirectoryAttribute('logdir', default='logs')
    """Directory in which to place logs.

    :default: ``logs``

    If the given value is not an absolute path, it will be interpreted relative
    to the directory containing the config file with which Plume was started.
    """

    logging_datefmt = ValidatedAttribute('logging_datefmt')
    """The format string to use for timestamps in logs.

    If not set, the ``datefmt`` argument is not provided, and :mod:`logging`
    will use the Python default.
    """

    logging_format = ValidatedAttribute(
        'logging_format',
        default='[%(asctime)s] %(name)-20s %(levelname)-8s - %(message)s')
    """The logging format string to use for logs.

    :default: ``[%(asctime)s] %(name)-20s %(levelname)-8s - %(message)s``

    For example::

        [2024-10-21 12:47:44,272] plume.bot            INFO     - Loaded 12 commands and 3 event handlers
    """

    logging_level = ChoiceAttribute('logging_level',
                                    ['CRITICAL', 'ERROR', 'WARNING', 'INFO',
                                     'DEBUG'],
                                    'INFO')
    """The lowest severity of logs to display.

    :default: ``INFO``
    """

    owner = ListAttribute('owner')
    """The bot's owners, as phone numbers.

    Any format is accepted: every non-digit character is removed before the
    number is compared with a sender's identity::

        owner =
            628123456789
            +62 812-3456-7891

    The bot's own account is always an owner.
    """

    plugin_dir = DirectoryAttribute('plugin_dir', default='plugins')
    """Directory scanned (recursively) for plugin files.

    :default: ``plugins``
    """

    prefix = PatternAttribute(
        'prefix', default=re.compile(COMMAND_DEFAULT_PREFIX))
    """The prefix to add to the beginning of commands as a regular expression.

    :default: one of the characters ``/!#$%+£¢€¥^°=¶∆×÷π√✓©®:;?&.-``

    The pattern is matched at the start of the message's body, and what it
    matches is removed before looking for the command's name.
    """

    unlisted_is_admin = BooleanAttribute('unlisted_is_admin', default=True)
    """Treat a sender missing from a group's roster as an admin.

    :default: ``true``

    .. warning::

        This is the historical behavior. Set it to ``false`` so that only
        participants listed with an admin rank are admins.

    """

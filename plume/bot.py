"""Plume's bot: plugin loading and message dispatch.

The :class:`Plume` object is created once, from the configuration, and set up
once with :meth:`Plume.setup`: it loads every plugin, and freezes the handler
manager. Then the transport calls :meth:`Plume.handle_message` for each
inbound message.
"""
#
# Licensed under the Eiffel Forum License 2.
from __future__ import annotations

import asyncio
import logging
import os
import threading
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError

from plume import logger, plugins, privileges
from plume.db import (
    CHAT_DEFAULTS,
    INSTALLATION_DEFAULTS,
    USER_DEFAULTS,
    PlumeDB,
)
from plume.plugins import outcomes, rules as plugin_rules
from plume.tools import identifiers
from plume.trigger import Message, parse_command


__all__ = ['Plume']

LOGGER = logging.getLogger(__name__)


class Plume:
    """The bot: a handler manager and a message dispatcher.

    :param config: the bot's configuration
    :type config: :class:`plume.config.Config`
    :param db: the settings store (optional; built from ``config`` if not
               given)
    :type db: :class:`plume.db.PlumeDB`
    """
    def __init__(self, config, db: Optional[PlumeDB] = None):
        self.settings = config
        self._plugins: dict[str, plugins.handlers.AbstractPluginHandler] = {}
        self._rules_manager = plugin_rules.Manager()
        self._fallback = None
        self._healed: set[tuple[str, str]] = set()
        self._heal_lock = threading.Lock()

        self.db = db if db is not None else PlumeDB(config)
        """The bot's settings store, as a :class:`plume.db.PlumeDB`."""

    @property
    def config(self):
        """The bot's configuration, same as :attr:`settings`."""
        return self.settings

    @property
    def rules(self) -> plugin_rules.Manager:
        """Handler manager."""
        return self._rules_manager

    @property
    def fallback(self):
        """The fallback handler's ``handle`` function, if any."""
        return self._fallback

    # setup

    def setup(self):
        """Set up the bot before it can handle messages.

        The setup phase is in charge of:

        * setting up logging (configure Python's built-in :mod:`logging`)
        * loading and registering the bot's plugins
        * loading the fallback handler, if configured

        Then the handler manager is frozen: no handler can be registered
        after that.
        """
        self.setup_logging()
        self.setup_plugins()
        self.setup_fallback()
        self._rules_manager.freeze()

    def setup_logging(self):
        """Set up logging based on config options."""
        logger.setup_logging(self.settings)

    def setup_plugins(self):
        """Load plugins into the bot."""
        load_success = 0
        load_error = 0
        load_disabled = 0
        load_skipped = 0

        LOGGER.info('Loading plugins...')
        for plugin, is_enabled in plugins.enumerate_plugins(self.settings):
            name = plugin.name
            if not is_enabled:
                load_disabled = load_disabled + 1
                continue

            try:
                plugin.load()
            except Exception as e:
                load_error = load_error + 1
                LOGGER.exception('Error loading %s: %s', name, e)
            except SystemExit:
                load_error = load_error + 1
                LOGGER.exception(
                    'Error loading %s (plugin tried to exit)', name)
            else:
                try:
                    handler = plugin.register(self._rules_manager)
                except Exception as e:
                    load_error = load_error + 1
                    LOGGER.exception('Error registering %s: %s', name, e)
                else:
                    self._plugins[name] = plugin
                    if handler is None:
                        load_skipped = load_skipped + 1
                        LOGGER.debug('Plugin %s registers nothing', name)
                    else:
                        load_success = load_success + 1
                        LOGGER.info(
                            'Plugin loaded: %s (%s)', name, handler.KIND)

        total = sum([load_success, load_error, load_disabled, load_skipped])
        if total and load_success:
            LOGGER.info(
                'Registered %d plugins, %d failed, %d disabled, %d skipped',
                load_success,
                load_error,
                load_disabled,
                load_skipped)
        else:
            LOGGER.warning("Warning: Couldn't load any plugins")

        LOGGER.info(
            'Loaded %d commands and %d event handlers',
            self._rules_manager.command_count,
            self._rules_manager.event_handler_count)

    def setup_fallback(self):
        """Load the fallback handler, if configured.

        A fallback handler that cannot be loaded is not an error: the bot
        runs without it.
        """
        filename = self.settings.core.fallback
        if not filename:
            LOGGER.debug('No fallback handler configured')
            return

        filename = os.path.expanduser(filename)
        if not os.path.isabs(filename):
            filename = os.path.join(self.settings.homedir, filename)

        try:
            plugin = plugins.handlers.PyFilePlugin(filename)
            plugin.load()
        except Exception as error:
            LOGGER.info('No fallback handler: %s', error)
            return

        handle = plugin.get_attribute('handle')
        if not callable(handle):
            LOGGER.info(
                'No fallback handler: %s has no "handle" function', filename)
            return

        self._fallback = handle
        LOGGER.info('Fallback handler loaded: %s', filename)

    def has_plugin(self, name):
        """Check if the bot has loaded a plugin of the specified name.

        :param str name: name of the plugin to check for
        :return: whether the bot has a plugin named ``name`` loaded
        :rtype: bool
        """
        return name in self._plugins

    def get_plugin_meta(self, name):
        """Get info about a loaded plugin by its name.

        :param str name: name of the plugin about which to get info
        :return: the plugin's metadata (see
                 :meth:`~.plugins.handlers.AbstractPluginHandler.get_meta_description`)
        :rtype: :class:`dict`
        :raise KeyError: when there is no ``name`` plugin loaded
        """
        return self._plugins[name].get_meta_description()

    # settings defaults

    def heal_defaults(self, message: Message, own_identity: str):
        """Make sure default settings exist for the message's entities.

        :param message: the inbound message
        :param own_identity: the bot account's identity

        The sender (user settings), the chat (chat settings), and the bot's
        own account (installation settings) are each initialized once per
        process. A storage error is logged, and the entity will be tried
        again with the next message.

        This method blocks on the settings store: :meth:`handle_message`
        runs it in a worker thread, one call at a time.
        """
        entities = (
            ('user', message.sender, USER_DEFAULTS),
            ('chat', message.chat, CHAT_DEFAULTS),
            ('installation', own_identity, INSTALLATION_DEFAULTS),
        )
        with self._heal_lock:
            for kind, entity, defaults in entities:
                if not entity or (kind, entity) in self._healed:
                    continue

                try:
                    self.db.ensure_defaults(kind, entity, defaults)
                except SQLAlchemyError:
                    LOGGER.exception(
                        'Unable to initialize %s settings for %s',
                        kind, entity)
                else:
                    self._healed.add((kind, entity))

    # dispatch

    async def call_event_handler(
        self,
        handler: plugin_rules.EventHandler,
        message: Message,
        context: plugin_rules.EventContext,
    ) -> outcomes.Outcome:
        """Execute an event ``handler`` and report its failure, if any.

        :return: the outcome of the execution
        """
        outcome = await outcomes.invoke(
            str(handler), handler.observe, message, context)
        if not outcome.ok:
            self.error(message, outcome)
        return outcome

    async def call_command(
        self,
        command: plugin_rules.Command,
        message: Message,
        context: plugin_rules.ExecutionContext,
    ) -> outcomes.Outcome:
        """Execute a ``command`` and report its failure, if any.

        :return: the outcome of the execution
        """
        outcome = await outcomes.invoke(
            str(command), command.run, message, context)
        if not outcome.ok:
            self.error(message, outcome)
        return outcome

    async def call_fallback(self, message, connection, chat_update=None):
        """Execute the fallback handler, if any.

        :return: the outcome of the execution, or ``None`` without fallback
        :rtype: :class:`~plume.plugins.outcomes.Outcome`
        """
        if self._fallback is None:
            return None

        outcome = await outcomes.invoke(
            'fallback', self._fallback, message, connection, chat_update)
        if not outcome.ok:
            self.error(message, outcome)
        return outcome

    async def handle_message(
        self,
        message: Optional[Message],
        connection,
        store: Any = None,
        chat_update: Any = None,
    ):
        """Dispatch an inbound ``message`` to the registered handlers.

        :param message: the inbound message
        :param connection: the connection the message came from
        :type connection: :class:`~plume.connection.AbstractConnection`
        :param store: the transport's store, given as-is to event handlers
        :param chat_update: the raw chat update, given as-is to event handlers

        Every event handler is executed, in load order. Then, if the message
        has a body, at most one command is executed:

        * if the body starts with the prefix, the command stored under the
          (lowercased) first word, or else the fallback handler
        * otherwise, the first no-prefix command matching the whole body

        A handler that fails is reported; it never stops the dispatch.
        """
        if message is None or message.from_me:
            return

        own_identity = identifiers.decode_identity(
            connection.resolve_own_identity())
        await asyncio.to_thread(self.heal_defaults, message, own_identity)

        core = self.settings.core
        authorization = await privileges.resolve_authorization(
            message,
            connection,
            owners=core.owner,
            domain=core.identity_domain,
            unlisted_is_admin=core.unlisted_is_admin,
        )

        event_context = plugin_rules.EventContext(
            connection=connection,
            is_admin=authorization.is_admin,
            is_bot_admin=authorization.is_bot_admin,
            store=store,
            chat_update=chat_update,
        )
        for handler in self._rules_manager.get_event_handlers():
            await self.call_event_handler(handler, message, event_context)

        if not message.body:
            return

        invocation = parse_command(core.prefix, message.body)
        if invocation is not None:
            command = self._rules_manager.get_command(invocation.key)
            if command is None:
                LOGGER.debug('No command for "%s"', invocation.key)
                await self.call_fallback(message, connection, chat_update)
                return

            context = plugin_rules.ExecutionContext(
                connection=connection,
                text=invocation.text,
                args=invocation.args,
                is_admin=authorization.is_admin,
                is_owner=authorization.is_owner,
            )
            await self.call_command(command, message, context)
            return

        command = self._rules_manager.find_no_prefix(message.body)
        if command is None:
            return

        # single spaces: consecutive ones give empty arguments
        args = tuple(message.body.split(' '))
        context = plugin_rules.ExecutionContext(
            connection=connection,
            text=message.body,
            args=args,
            is_admin=authorization.is_admin,
            is_owner=authorization.is_owner,
        )
        await self.call_command(command, message, context)

    def error(self, message=None, outcome=None):
        """Called internally when a handler fails.

        :param message: the message the handler was executed for
        :type message: :class:`plume.trigger.Message`
        :param outcome: the failed outcome
        :type outcome: :class:`~plume.plugins.outcomes.Outcome`
        """
        text = 'Unexpected error'
        exc_info = None
        if outcome is not None:
            text = '{} in {} ({})'.format(text, outcome.label, outcome.error)
            exc_info = outcome.error

        if message is not None:
            text = '{} from {} in {}. Message was: {}'.format(
                text, message.sender, message.chat, message.body)

        LOGGER.error(text, exc_info=exc_info)

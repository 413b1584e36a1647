"""Plume's plugin rules management.

A plugin file is classified once, at load time, into one of three handler
variants:

* :class:`EventHandler`: invoked for every inbound message
* :class:`Command`: invoked when a prefixed message names it
* :class:`NoPrefixTrigger`: a command that is also invoked when the whole
  body of a message matches its name or one of its pattern aliases

These handlers are then registered into a :class:`Manager`, which holds the
command table and the event handler list, and answers the dispatcher's
lookups.

Event handlers and commands do not share an entry point: an event handler
is only ever called through :meth:`EventHandler.observe` with an
:class:`EventContext`, and a command through :meth:`Command.run` with an
:class:`ExecutionContext`.

.. important::

    Command table keys are stored exactly as declared by the plugin. The
    prefix path looks up an already lowercased key, while the no-prefix path
    compares lowercased strings on both sides: a command named ``Ping`` is
    reachable as ``ping`` without prefix, but never as ``/Ping``.

"""
#
# Licensed under the Eiffel Forum License 2.
from __future__ import annotations

import logging
import re
from typing import (
    Any,
    Callable,
    Iterable,
    NamedTuple,
    Optional,
    Sequence,
    TYPE_CHECKING,
)

from plume.plugins.exceptions import PluginFrozenError


if TYPE_CHECKING:
    from plume.connection import AbstractConnection


__all__ = [
    'AbstractHandler',
    'Command',
    'EventContext',
    'EventHandler',
    'ExecutionContext',
    'Manager',
    'NoPrefixTrigger',
]


LOGGER = logging.getLogger(__name__)

KIND_EVENT = 'event'
"""Kind of event handlers."""
KIND_COMMAND = 'command'
"""Kind of prefixed commands."""
KIND_NO_PREFIX = 'no-prefix'
"""Kind of commands that can be invoked without prefix."""


class ExecutionContext(NamedTuple):
    """Context given to a command's body."""
    connection: AbstractConnection
    """The connection the message came from."""
    text: str
    """The text after the trigger key."""
    args: tuple[str, ...]
    """The tokens after the trigger key."""
    is_admin: bool = False
    """The sender is an admin of the group."""
    is_owner: bool = False
    """The sender is one of the bot's owners."""


class EventContext(NamedTuple):
    """Context given to an event handler's body."""
    connection: AbstractConnection
    """The connection the message came from."""
    is_admin: bool = False
    """The sender is an admin of the group."""
    is_bot_admin: bool = False
    """The bot is an admin of the group."""
    store: Any = None
    """The store object given by the transport, as-is."""
    chat_update: Any = None
    """The raw chat update the message was decoded from."""


class AbstractHandler:
    """Abstract definition of a plugin's handler.

    :param handler: the handler's body, a function or a coroutine function
    :param str plugin: name of the plugin that defines this handler
    :param str label: label of the handler, for logging and reporting
    :param str doc: optional description of the handler

    Any handler class must be an implementation of this class. The ``KIND``
    class attribute tells the variant apart without inspecting the instance.
    """
    KIND: str = ''

    def __init__(
        self,
        handler: Callable,
        plugin: Optional[str] = None,
        label: Optional[str] = None,
        doc: Optional[str] = None,
    ):
        self._handler = handler
        self._plugin_name = plugin
        self._label = label or getattr(handler, '__name__', None) or 'handler'
        self._doc = doc or ''

    def __str__(self):
        plugin = self.get_plugin_name() or '(no-plugin)'
        return '<%s %s.%s>' % (
            self.__class__.__name__, plugin, self.get_rule_label())

    def get_plugin_name(self) -> Optional[str]:
        """Get the handler's plugin name."""
        return self._plugin_name

    def get_rule_label(self) -> str:
        """Get the handler's label."""
        return self._label

    def get_doc(self) -> str:
        """Get the handler's description."""
        return self._doc


class EventHandler(AbstractHandler):
    """Handler invoked for every inbound message.

    Its body receives the message and an :class:`EventContext`.
    """
    KIND = KIND_EVENT

    def observe(self, message, context: EventContext):
        """Call the body for an inbound ``message``.

        :return: what the body returns, which can be an awaitable
        """
        return self._handler(message, context)


class Command(AbstractHandler):
    """Handler invoked by name, after the command prefix.

    :param str name: the command's primary trigger key
    :param aliases: the command's aliases, each one either a string (a
                    literal alias) or a compiled regex (a pattern alias)
    :param handler: the command's body

    Its body receives the message and an :class:`ExecutionContext`.

    Literal aliases are table keys, like the name. Pattern aliases are never
    table keys: they are only tested by :class:`NoPrefixTrigger` against the
    whole lowercased body of a message.
    """
    KIND = KIND_COMMAND

    def __init__(
        self,
        name: str,
        handler: Callable,
        aliases: Optional[Iterable[Any]] = None,
        **kwargs,
    ):
        kwargs.setdefault('label', name)
        super().__init__(handler, **kwargs)
        self._name = name
        self._aliases = tuple(aliases or ())

    @property
    def name(self) -> str:
        return self._name

    @property
    def aliases(self) -> tuple:
        return self._aliases

    @property
    def literal_aliases(self) -> tuple[str, ...]:
        """The aliases that are plain strings."""
        return tuple(
            alias for alias in self._aliases
            if isinstance(alias, str))

    @property
    def pattern_aliases(self) -> tuple[re.Pattern, ...]:
        """The aliases that are compiled regexes."""
        return tuple(
            alias for alias in self._aliases
            if isinstance(alias, re.Pattern))

    def get_keys(self) -> tuple[str, ...]:
        """Get the command table keys of this command.

        :return: the command's name, then its literal aliases, in order
        """
        return (self._name,) + self.literal_aliases

    def run(self, message, context: ExecutionContext):
        """Call the body for the ``message`` that invoked the command.

        :return: what the body returns, which can be an awaitable
        """
        return self._handler(message, context)

    def match_no_prefix(self, key: str, body: str) -> bool:
        """Tell if a non-prefixed ``body`` invokes this command.

        A plain command is never invoked without a prefix.
        """
        return False


class NoPrefixTrigger(Command):
    """Command that can also be invoked without the command prefix."""
    KIND = KIND_NO_PREFIX

    def match_no_prefix(self, key: str, body: str) -> bool:
        """Tell if a non-prefixed ``body`` invokes this command.

        :param key: the command table key being tested
        :param body: the message's body
        :return: ``True`` when the lowercased ``body`` equals the lowercased
                 ``key``, or when one of the pattern aliases matches it

        Pattern aliases are searched anywhere in the lowercased body, the
        same way a regex ``test`` would.
        """
        lowered = body.lower()
        if lowered == key.lower():
            return True

        return any(
            pattern.search(lowered) is not None
            for pattern in self.pattern_aliases)


class Manager:
    """Manager of plugin handlers.

    This manager stores the command table and the event handler list:

    * :meth:`register_event_handler` appends an event handler
    * :meth:`register_command` inserts a command under its name and each of
      its literal aliases

    Once the load phase is over, :meth:`freeze` turns the manager read-only:
    no handler can be registered anymore, and concurrent reads need no lock.
    """
    def __init__(self):
        self._commands: dict[str, Command] = {}
        self._event_handlers: list[EventHandler] = []
        self._frozen = False

    @property
    def frozen(self) -> bool:
        """Tell if the manager is read-only."""
        return self._frozen

    def freeze(self):
        """Make the manager read-only."""
        self._frozen = True

    def _check_frozen(self):
        if self._frozen:
            raise PluginFrozenError(
                'Handlers cannot be registered after the load phase.')

    def register_event_handler(self, handler: EventHandler):
        """Register an event handler.

        :param handler: the event handler to register
        :raise PluginFrozenError: when the manager is frozen
        """
        self._check_frozen()
        self._event_handlers.append(handler)
        LOGGER.debug('Event handler registered: %s', str(handler))

    def register_command(self, command: Command):
        """Register a command under its name and literal aliases.

        :param command: the command to register
        :raise PluginFrozenError: when the manager is frozen

        Keys are inserted as-is. A key already in the table is replaced (it
        keeps its place in the table order) and a warning is logged.
        """
        self._check_frozen()
        for key in command.get_keys():
            existing = self._commands.get(key)
            if existing is not None and existing is not command:
                LOGGER.warning(
                    'Command key "%s" of %s overrides %s',
                    key, str(command), str(existing))
            self._commands[key] = command
        LOGGER.debug('Command registered: %s', str(command))

    def get_command(self, key: str) -> Optional[Command]:
        """Get the command stored under ``key``, exactly as given."""
        return self._commands.get(key)

    def get_all_commands(self) -> Sequence[tuple[str, Command]]:
        """Get the ``(key, command)`` entries of the table, in order."""
        return tuple(self._commands.items())

    def get_event_handlers(self) -> Sequence[EventHandler]:
        """Get the event handlers, in load order."""
        return tuple(self._event_handlers)

    def find_no_prefix(self, body: str) -> Optional[Command]:
        """Find the command a non-prefixed ``body`` invokes, if any.

        :param body: the message's body
        :return: the first matching command, in table order

        Only :class:`NoPrefixTrigger` entries can match.
        """
        for key, command in self._commands.items():
            if command.match_no_prefix(key, body):
                return command

        return None

    @property
    def command_count(self) -> int:
        """Number of keys in the command table."""
        return len(self._commands)

    @property
    def event_handler_count(self) -> int:
        """Number of registered event handlers."""
        return len(self._event_handlers)

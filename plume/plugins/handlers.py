"""Plume's plugin handlers.

Between a plugin file and Plume's core, a Plugin Handler is used: it acts as a
proxy between the bot and the plugin, making a clear separation between how
the bot behaves and how the plugins work.

From the :class:`~plume.bot.Plume` class, a plugin must be:

* loaded, using :meth:`~AbstractPluginHandler.load`
* and registered, using :meth:`~AbstractPluginHandler.register`

It is when a plugin is registered that its exported shape is read, and turned
into one of the handler variants of :mod:`plume.plugins.rules`.

.. important::

    This is for Plume core development and advanced developers. Plugin
    authors only need to know the shape their file exports.

"""
#
# Licensed under the Eiffel Forum License 2.
from __future__ import annotations

import abc
import importlib.util
import inspect
import os
import re
import sys
from typing import Optional

from . import exceptions, rules


MODULE_PREFIX = 'plume_plugins.'
"""Prefix of the module name of every plugin file."""
EVENT_MARKER = '_'
"""A plugin file with this prefix can be an event handler."""


class AbstractPluginHandler(abc.ABC):
    """Base class for plugin handlers.

    This abstract class defines the interface Plume uses to load a plugin and
    register its handler.
    """
    @abc.abstractmethod
    def load(self):
        """Load the plugin.

        This method must be called first, in order to register the plugin
        later.
        """

    @abc.abstractmethod
    def get_label(self) -> str:
        """Retrieve a display label for the plugin.

        :return: a human readable label for display purpose
        """

    @abc.abstractmethod
    def get_meta_description(self) -> dict:
        """Retrieve a meta description for the plugin.

        :return: meta description information
        :rtype: :class:`dict`

        The expected keys are:

        * name: a short name for the plugin
        * label: a descriptive label for the plugin
        * type: the plugin's type
        * kind: the kind of handler the plugin exports
        * source: the plugin's source (filesystem path)
        """

    @abc.abstractmethod
    def is_loaded(self) -> bool:
        """Tell if the plugin is loaded or not.

        :return: ``True`` if the plugin is loaded, ``False`` otherwise
        """

    @abc.abstractmethod
    def get_handler(self) -> Optional[rules.AbstractHandler]:
        """Build the plugin's handler from its exported shape.

        :return: the plugin's handler, or ``None`` if the plugin exports no
                 callable body
        :raise PluginShapeError: when the exported shape is malformed
        """

    def register(self, manager: rules.Manager):
        """Register the plugin's handler into the ``manager``.

        :param manager: the bot's handler manager
        :return: the registered handler, or ``None``
        :raise PluginShapeError: when the exported shape is malformed
        """
        handler = self.get_handler()
        if handler is None:
            return None

        if isinstance(handler, rules.EventHandler):
            manager.register_event_handler(handler)
        else:
            manager.register_command(handler)

        return handler


def _check_aliases(filename, aliases):
    if aliases is None:
        return tuple()

    if not isinstance(aliases, (list, tuple)):
        raise exceptions.PluginShapeError(
            filename, '"aliases" must be a list or a tuple')

    for alias in aliases:
        if not isinstance(alias, (str, re.Pattern)):
            raise exceptions.PluginShapeError(
                filename,
                'alias %r is neither a string nor a compiled regex' % alias)

    return tuple(aliases)


class PyFilePlugin(AbstractPluginHandler):
    """Plume plugin loaded from a Python file on the filesystem.

    :param str filename: path to the plugin's ``.py`` file
    :param str root: the plugin directory the file was found in (optional)
    :raise PluginError: if ``filename`` is not a Python file

    The plugin's name is its path relative to ``root``, without extension,
    with ``/`` as separator::

        >>> plugin = PyFilePlugin('/home/plume/plugins/group/_antilink.py',
        ...                       '/home/plume/plugins')
        >>> plugin.name
        'group/_antilink'
        >>> plugin.is_event_file
        True

    The file is loaded as a module named after the plugin, under the
    ``plume_plugins`` namespace, without being in the Python path.
    """
    PLUGIN_TYPE = 'python-file'
    """The plugin's type."""

    def __init__(self, filename, root=None):
        basename = os.path.basename(filename)
        good_file = (
            os.path.isfile(filename) and
            basename.endswith('.py') and basename != '__init__.py'
        )
        if not good_file:
            raise exceptions.PluginError('Invalid Plume plugin: %s' % filename)

        if root:
            relative = os.path.relpath(filename, root)
        else:
            relative = basename

        self.name = relative[:-3].replace(os.sep, '/')
        self.filename = filename
        self.path = filename
        self.module_name = MODULE_PREFIX + self.name.replace('/', '.')
        self._module = None

    @property
    def is_event_file(self) -> bool:
        """Tell if the file's name carries the event marker."""
        return os.path.basename(self.path).startswith(EVENT_MARKER)

    def _load(self):
        spec = importlib.util.spec_from_file_location(
            self.module_name, self.path)
        if spec is None or spec.loader is None:
            raise exceptions.PluginLoadError(
                self.path, 'no loader for this file')

        module = importlib.util.module_from_spec(spec)
        sys.modules[self.module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as error:
            sys.modules.pop(self.module_name, None)
            raise exceptions.PluginLoadError(self.path, error) from error

        return module

    def load(self):
        """Import the plugin's file.

        :raise PluginLoadError: when the file cannot be imported
        """
        self._module = self._load()

    def is_loaded(self):
        return self._module is not None

    def get_attribute(self, name, default=None):
        """Get an attribute of the plugin's module.

        :param str name: the attribute's name
        :param default: value to return if the attribute does not exist
        """
        return getattr(self._module, name, default)

    def get_label(self):
        """Retrieve a display label for the plugin.

        :return: a human readable label for display purpose
        :rtype: str

        This is the module's ``description`` attribute if any, or the first
        line of its docstring, or else ``<name> plugin``.
        """
        default_label = '%s plugin' % self.name

        if not self.is_loaded():
            return default_label

        description = getattr(self._module, 'description', None)
        if isinstance(description, str) and description.strip():
            return description.strip()

        module_doc = getattr(self._module, '__doc__', None)
        if not module_doc:
            return default_label

        lines = inspect.cleandoc(module_doc).splitlines()
        return default_label if not lines else lines[0]

    def get_kind(self) -> Optional[str]:
        """Get the kind of handler the plugin exports.

        :return: ``event``, ``command``, ``no-prefix``, or ``None`` if the
                 plugin is not loaded or exports no callable body
        :raise PluginShapeError: when the exported shape is malformed
        """
        if not self.is_loaded():
            return None

        handler = self.get_handler()
        if handler is None:
            return None

        return handler.KIND

    def get_meta_description(self):
        """Retrieve a meta description for the plugin.

        :return: meta description information
        :rtype: :class:`dict`

        Example::

            {
                'name': 'tools/ping',
                'label': 'ping plugin',
                'type': 'python-file',
                'kind': 'command',
                'source': '/home/plume/plugins/tools/ping.py',
            }

        The ``kind`` is ``None`` when the plugin is not loaded, exports no
        callable body, or exports a malformed shape.
        """
        try:
            kind = self.get_kind()
        except exceptions.PluginShapeError:
            kind = None

        return {
            'label': self.get_label(),
            'type': self.PLUGIN_TYPE,
            'kind': kind,
            'name': self.name,
            'source': self.path,
        }

    def get_handler(self):
        """Build the plugin's handler from its exported shape.

        :return: the plugin's handler, or ``None`` if the plugin exports no
                 callable body
        :rtype: :class:`~plume.plugins.rules.AbstractHandler`
        :raise PluginShapeError: when the exported shape is malformed

        A file whose name starts with ``_`` and that defines a ``main``
        function exports an event handler. Otherwise, a module that defines
        an ``execute`` function exports a command, which requires a ``name``;
        the command can be invoked without prefix if ``no_prefix`` is true.
        """
        module = self._module
        main = getattr(module, 'main', None)
        execute = getattr(module, 'execute', None)
        label = self.get_label()

        if self.is_event_file and callable(main):
            return rules.EventHandler(
                main, plugin=self.name, label=self.name, doc=label)

        if not callable(execute):
            return None

        name = getattr(module, 'name', None)
        if not isinstance(name, str) or not name:
            raise exceptions.PluginShapeError(
                self.path, '"name" must be a non-empty string')

        aliases = _check_aliases(self.path, getattr(module, 'aliases', None))
        if getattr(module, 'no_prefix', False):
            handler_class = rules.NoPrefixTrigger
        else:
            handler_class = rules.Command

        return handler_class(
            name,
            execute,
            aliases=aliases,
            plugin=self.name,
            doc=label,
        )

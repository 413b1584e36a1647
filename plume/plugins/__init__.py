"""Plume's plugins interface.

Plume uses plugins and uses what are called Plugin Handlers as an interface
between the bot and its plugins. This interface is defined by the
:class:`~.handlers.AbstractPluginHandler` abstract class.

Plugins are Python files found, recursively, in these directories:

* the ``core.plugin_dir`` directory (``plugins`` in the config's home
  directory by default)
* the extra directories defined by ``core.extra``

To find all plugins, the :func:`~.enumerate_plugins` function can be used.
The :func:`~.find_directory_plugins` function does the same for one
directory.

The plugins are scanned once, when the bot starts; there is no reload.
"""
#
# Licensed under the Eiffel Forum License 2.
from __future__ import annotations

import itertools
import os

from . import exceptions, handlers, outcomes, rules  # noqa


def _list_plugin_filenames(directory):
    # yield the absolute path of every plugin file, depth first, sorted by
    # name at each level
    base = os.path.abspath(directory)
    for entry in sorted(os.scandir(base), key=lambda item: item.name):
        if entry.is_dir():
            if entry.name.startswith('.') or entry.name == '__pycache__':
                continue
            yield from _list_plugin_filenames(entry.path)
        elif entry.name.endswith('.py') and entry.name != '__init__.py':
            yield entry.path


def find_directory_plugins(directory):
    """List plugins from a ``directory``, recursively.

    :param str directory: directory path to search
    :return: yield instances of :class:`~.handlers.PyFilePlugin` found in
             ``directory`` and its subdirectories
    """
    root = os.path.abspath(directory)
    for abspath in _list_plugin_filenames(root):
        yield handlers.PyFilePlugin(abspath, root)


def enumerate_plugins(settings):
    """Yield Plume's plugins.

    :param settings: Plume's configuration
    :type settings: :class:`plume.config.Config`
    :return: yield 2-value tuples: an instance of
             :class:`~.handlers.AbstractPluginHandler`, and if the plugin is
             enabled or not

    A plugin is enabled unless its name is in ``core.exclude``. Missing
    directories are ignored.
    """
    source_dirs = [settings.core.plugin_dir]
    if settings.core.extra:
        source_dirs = source_dirs + list(settings.core.extra)

    from_directories = [
        find_directory_plugins(source_dir)
        for source_dir in source_dirs
        if source_dir and os.path.isdir(source_dir)
    ]

    disabled = settings.core.exclude

    for plugin in itertools.chain(*from_directories):
        yield plugin, plugin.name not in disabled

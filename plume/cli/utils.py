"""Shared helpers of Plume's command line tools."""
#
# Licensed under the Eiffel Forum License 2.
from __future__ import annotations

import os

from plume import config


__all__ = [
    'COLORS',
    'paint',
    'resolve_config',
    'add_config_arguments',
    'load_settings',
]

CONFIG_ENV = 'PLUME_CONFIG'
"""Environment variable naming the config to use when ``-c`` is absent."""

RESET = '\033[0m'
COLORS = {
    'red': '\033[31m',
    'green': '\033[32m',
    'yellow': '\033[33m',
}


def paint(text, color):
    """Wrap ``text`` in the ANSI sequences of ``color``.

    :param str text: text to paint
    :param str color: one of the keys of :data:`COLORS`
    :rtype: str
    """
    return COLORS[color] + text + RESET


def resolve_config(name, config_dir):
    """Get the path of the config file called ``name``.

    :param str name: a path to an existing file, or the name of a config
                     in ``config_dir``, with or without its ``.cfg``
                     extension
    :param str config_dir: directory of named configs
    :return: the absolute path of an existing file, or the path where the
             named config would be
    """
    if os.path.isfile(name):
        return os.path.abspath(name)

    candidate = os.path.join(config_dir, name + '.cfg')
    if os.path.isfile(candidate):
        return candidate

    return os.path.join(config_dir, name)


def add_config_arguments(parser):
    """Add ``-c/--config`` and ``--config-dir`` to an argument ``parser``."""
    parser.add_argument(
        '-c', '--config',
        default=None,
        metavar='filename',
        dest='config',
        help='Config name (looked up in --config-dir) or path. '
             'Defaults to $%s, then to "default".' % CONFIG_ENV)
    parser.add_argument(
        '--config-dir',
        default=config.DEFAULT_HOMEDIR,
        dest='configdir',
        help='Directory of named configs (default: %(default)s).')


def load_settings(options):
    """Load the config selected by the command line ``options``.

    :param options: arguments parsed with :func:`add_config_arguments`
    :rtype: :class:`plume.config.Config`
    :raise plume.config.ConfigurationNotFound: when the file doesn't exist
    :raise ValueError: when the ``[core]`` section is invalid

    ``-c`` wins over the ``PLUME_CONFIG`` environment variable; an empty
    variable counts as unset.
    """
    name = options.config or os.environ.get(CONFIG_ENV) or 'default'
    filename = resolve_config(name, options.configdir)

    if not os.path.isfile(filename):
        raise config.ConfigurationNotFound(filename=filename)

    return config.Config(filename)

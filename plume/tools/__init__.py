"""Useful miscellaneous tools and shortcuts for Plume plugins."""
#
# Licensed under the Eiffel Forum License 2.

from __future__ import annotations

import logging
import sys

# shortcuts
from .identifiers import (  # NOQA
    decode_identity,
    normalize_identity,
    owner_identities,
)


def stderr(string):
    """Print the given ``string`` to stderr.

    :param str string: the string to output
    """
    print(string, file=sys.stderr)


def get_logger(plugin_name):
    """Return a logger for a plugin.

    :param str plugin_name: name of the plugin
    :return: the logger for the given plugin

    This::

        from plume import tools
        LOGGER = tools.get_logger('ping')

    is equivalent to this::

        import logging
        LOGGER = logging.getLogger('plume.externals.ping')

    Plume configures logging for the ``plume`` namespace only. Plugins are
    loaded from files outside of the package, so ``logging.getLogger(__name__)``
    would put them outside of that namespace; this function puts the
    ``plugin_name`` back inside it.
    """
    return logging.getLogger('plume.externals.%s' % plugin_name)

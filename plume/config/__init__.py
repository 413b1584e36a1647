"""Plume's configuration: an INI file read through typed sections.

The ``[core]`` section is always there, as
:class:`~plume.config.core_section.CoreSection`::

    >>> from plume import config
    >>> settings = config.Config('/home/bot/.plume/default.cfg')
    >>> settings.core.owner
    ['628123456789']
    >>> settings.core.plugin_dir
    '/home/bot/.plume/plugins'

for this file:

.. code-block:: ini

    [core]
    owner = 628123456789
    prefix = [/!.]

Plugins needing their own settings define their section with
:meth:`Config.define_section` and a :class:`~plume.config.types.StaticSection`
subclass. Undefined sections are not exposed.
"""
#
# Licensed under the Eiffel Forum License 2.
from __future__ import annotations

import configparser
import os

from . import core_section, types


__all__ = [
    'core_section',
    'types',
    'DEFAULT_HOMEDIR',
    'ConfigurationError',
    'ConfigurationNotFound',
    'Config',
]

DEFAULT_HOMEDIR = os.path.join(os.path.expanduser('~'), '.plume')
"""Directory where the CLI looks for config files by name."""


class ConfigurationError(Exception):
    """Base exception for configuration problems."""


class ConfigurationNotFound(ConfigurationError):
    """The configuration file does not exist.

    :param str filename: path of the missing file
    """
    def __init__(self, filename):
        super().__init__(filename)
        self.filename = filename

    def __str__(self):
        return 'Unable to find the configuration file %s' % self.filename


class Config:
    """The bot's configuration, loaded from ``filename``.

    :param str filename: path of the INI file
    :param bool validate: whether a missing required value in ``[core]`` is
                          an error (default ``True``)
    :raise ValueError: when a ``[core]`` option has an invalid value
    """
    def __init__(self, filename, validate=True):
        self.filename = filename
        self.basename = os.path.splitext(os.path.basename(filename))[0]
        """File name without its extension: ``group.bot`` for
        ``group.bot.cfg``. Log files and the default database are named
        after it."""
        self.parser = configparser.RawConfigParser(allow_no_value=True)
        self.parser.read(self.filename, encoding='utf-8')
        self.define_section('core', core_section.CoreSection,
                            validate=validate)

    @property
    def homedir(self):
        """Directory of the config file.

        Relative paths of the configuration (plugin directory, log
        directory, database, fallback handler) are relative to it.
        """
        return os.path.dirname(os.path.abspath(self.filename))

    def save(self):
        """Write the current settings back to the config file.

        Comments of the original file are lost.
        """
        with open(self.filename, 'w', encoding='utf-8') as cfgfile:
            self.parser.write(cfgfile)

    def define_section(self, name, cls_, validate=True):
        """Expose the ``[name]`` section through ``cls_``.

        :param str name: name of the section
        :param cls\\_: the section's definition
        :type cls\\_: subclass of :class:`~.types.StaticSection`
        :param bool validate: whether a missing required value is an error
        :raise ValueError: if ``cls_`` is not a ``StaticSection``, if the
                           section is already defined by another class, or
                           if one of its values is invalid
        """
        if not (isinstance(cls_, type)
                and issubclass(cls_, types.StaticSection)):
            raise ValueError('Class must be a subclass of StaticSection.')

        current = self.__dict__.get(name)
        if current is not None and type(current) is not cls_:
            raise ValueError(
                'Section %s is already defined by %s'
                % (name, type(current).__name__))

        setattr(self, name, cls_(self, name, validate=validate))

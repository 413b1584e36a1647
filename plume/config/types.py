"""Typed options of Plume's configuration sections.

A section is a subclass of :class:`StaticSection` with option descriptors as
class attributes. Reading an option looks, in this order, at:

* the ``PLUME_<SECTION>_<OPTION>`` environment variable,
* the config file,
* the option's default.

For example, a plugin that keeps quiet in some group chats could use::

    >>> class QuietSection(StaticSection):
    ...     chats = ListAttribute('chats')
    ...     reply_in_private = BooleanAttribute('reply_in_private')
    ...
    >>> settings.define_section('quiet', QuietSection)
    >>> settings.quiet.chats
    []
    >>> settings.quiet.chats = ['120363041234@g.us']
    >>> settings.quiet.chats
    ['120363041234@g.us']
"""
#
# Licensed under the Eiffel Forum License 2.
from __future__ import annotations

import os.path
import re


__all__ = [
    'NO_DEFAULT',
    'StaticSection',
    'BaseValidated',
    'ValidatedAttribute',
    'BooleanAttribute',
    'ListAttribute',
    'ChoiceAttribute',
    'PatternAttribute',
    'DirectoryAttribute',
]

ENV_PREFIX = 'PLUME'

TRUE_VALUES = frozenset(['1', 'yes', 'y', 'true', 'on'])
FALSE_VALUES = frozenset(['0', 'no', 'n', 'false', 'off', ''])


class NO_DEFAULT:
    """Default of an option that must be configured."""


class StaticSection:
    """A section of the config file, read through option descriptors.

    :param config: the config object holding this section
    :type config: :class:`plume.config.Config`
    :param str section_name: name of the section in the config file
    :param bool validate: whether a missing required option is an error
    :raise ValueError: when an option has an invalid value, or when a
                       required option is missing and ``validate`` is true

    Every option is read once when the section is created, so an invalid
    config file fails at startup rather than in the middle of a message.
    """
    def __init__(self, config, section_name, validate=True):
        if not config.parser.has_section(section_name):
            config.parser.add_section(section_name)
        self._parent = config
        self._parser = config.parser
        self._section_name = section_name

        for attr in self.option_names():
            try:
                getattr(self, attr)
            except ValueError as error:
                raise ValueError(
                    'Invalid value for %s.%s: %s'
                    % (section_name, attr, error))
            except AttributeError:
                if validate:
                    raise ValueError(
                        'Missing required value for %s.%s'
                        % (section_name, attr))

    @classmethod
    def option_names(cls):
        """List the attribute names of the section's options."""
        return sorted(
            attr for attr in dir(cls)
            if isinstance(getattr(cls, attr), BaseValidated))


class BaseValidated:
    """Base descriptor for an option of a :class:`StaticSection`.

    :param str name: the option's name in the config file
    :param default: the value of an unset option; use :class:`NO_DEFAULT`
                    for an option that must be configured

    The base class reads and writes strings as they are. Subclasses override
    :meth:`parse` and :meth:`serialize`.
    """
    def __init__(self, name, default=None):
        self.name = name
        self.default = default

    def env_name(self, section_name):
        """Name of the environment variable overriding this option."""
        return '%s_%s_%s' % (
            ENV_PREFIX, section_name.upper(), self.name.upper())

    def read(self, section):
        """Read the raw string of this option from ``section``.

        :return: the string value, or :class:`NO_DEFAULT` when the option
                 is not set and has a default
        :raise AttributeError: when the option is not set and has no default
        """
        env_name = self.env_name(section._section_name)
        if env_name in os.environ:
            return os.environ[env_name]
        if section._parser.has_option(section._section_name, self.name):
            return section._parser.get(section._section_name, self.name)
        if self.default is NO_DEFAULT:
            raise AttributeError(
                'Missing required value for %s.%s'
                % (section._section_name, self.name))
        return NO_DEFAULT

    def parse(self, value, section):
        return value

    def serialize(self, value, section):
        return str(value)

    def __get__(self, instance, owner=None):
        if instance is None:
            return self

        value = self.read(instance)
        if value is NO_DEFAULT:
            return self.default
        return self.parse(value, instance)

    def __set__(self, instance, value):
        if value is None:
            if self.default is NO_DEFAULT:
                raise ValueError(
                    'Cannot unset %s: it has no default' % self.name)
            instance._parser.remove_option(instance._section_name, self.name)
            return
        instance._parser.set(
            instance._section_name,
            self.name,
            self.serialize(value, instance))

    def __delete__(self, instance):
        instance._parser.remove_option(instance._section_name, self.name)


class ValidatedAttribute(BaseValidated):
    """A string option, such as ``core.identity_domain``."""


class BooleanAttribute(BaseValidated):
    """A yes/no option, such as ``core.unlisted_is_admin``.

    Accepted values (case insensitive) are ``1``, ``yes``, ``y``, ``true``
    and ``on`` for true, and ``0``, ``no``, ``n``, ``false``, ``off`` or an
    empty value for false. Anything else is a :exc:`ValueError`.
    """
    def __init__(self, name, default=False):
        super().__init__(name, default=default)

    def parse(self, value, section):
        lowered = value.strip().lower()
        if lowered in TRUE_VALUES:
            return True
        if lowered in FALSE_VALUES:
            return False
        raise ValueError('%r is not a yes/no value' % value)

    def serialize(self, value, section):
        if isinstance(value, str):
            value = self.parse(value, section)
        return 'true' if value else 'false'


class ListAttribute(BaseValidated):
    """An option holding a list of strings, such as ``core.owner``.

    .. code-block:: ini

        [core]
        owner =
            628123456789
            +62 812-3456-7891
        exclude = sticker, group/_antilink

    Items are written one per line; a value on a single line is split on
    commas instead. Items are stripped and empty ones are dropped.
    """
    def __init__(self, name, default=None):
        super().__init__(name, default=default or [])

    def __get__(self, instance, owner=None):
        value = super().__get__(instance, owner)
        if instance is not None and value is self.default:
            return list(value)
        return value

    def parse(self, value, section):
        if '\n' in value:
            items = value.splitlines()
        else:
            items = value.split(',')
        items = (item.strip().strip(',').strip() for item in items)
        return [item for item in items if item]

    def serialize(self, value, section):
        if isinstance(value, str) or not isinstance(value, (list, tuple, set)):
            raise ValueError('%s must be a list, not %r' % (self.name, value))
        if not value:
            return ''
        # leading newline: commas inside items are kept
        return '\n' + '\n'.join(value)


class ChoiceAttribute(BaseValidated):
    """An option with a fixed set of values, such as ``core.logging_level``.

    :param choices: accepted values
    :type choices: tuple or list of str
    """
    def __init__(self, name, choices, default=None):
        super().__init__(name, default=default)
        self.choices = tuple(choices)

    def _check(self, value):
        if value not in self.choices:
            raise ValueError(
                '%r is not one of %s' % (value, ', '.join(self.choices)))
        return value

    def parse(self, value, section):
        return self._check(value)

    def serialize(self, value, section):
        return self._check(value)


class PatternAttribute(BaseValidated):
    """A regular expression option, such as ``core.prefix``.

    The option is read as a compiled :class:`re.Pattern`; it can be set from
    either a pattern or a string.
    """
    def parse(self, value, section):
        try:
            return re.compile(value)
        except re.error as error:
            raise ValueError('invalid pattern %r: %s' % (value, error))

    def serialize(self, value, section):
        if isinstance(value, re.Pattern):
            return value.pattern
        self.parse(value, section)
        return value


class DirectoryAttribute(BaseValidated):
    """A directory option, such as ``core.plugin_dir``.

    A relative path is relative to the config's
    :attr:`~plume.config.Config.homedir`, and so is the default. The
    directory is created when it doesn't exist yet.
    """
    def __get__(self, instance, owner=None):
        if instance is None:
            return self

        value = self.read(instance)
        if value is NO_DEFAULT:
            value = self.default
        return self.parse(value, instance)

    def parse(self, value, section):
        if value is None:
            return None

        path = os.path.expanduser(value)
        if not os.path.isabs(path):
            path = os.path.join(section._parent.homedir, path)

        if not os.path.isdir(path):
            try:
                os.makedirs(path)
            except OSError as error:
                raise ValueError('cannot create directory %s: %s'
                                 % (path, error))
        return path

    def serialize(self, value, section):
        self.parse(value, section)
        return value  # kept relative in the file

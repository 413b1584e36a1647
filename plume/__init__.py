"""
Plume is a chat bot core: it loads handler plugins from a directory and routes
inbound chat messages to them.

It's designed to be easy to extend: drop a Python file in the plugins
directory and it becomes a command, a no-prefix trigger, or an event handler.
"""
#
# Licensed under the Eiffel Forum License 2.

from __future__ import annotations

from collections import namedtuple
import importlib.metadata
import re


__all__ = [
    'bot',
    'config',
    'connection',
    'db',
    'logger',
    'plugins',
    'privileges',
    'tools',
    'trigger',
    'version_info',
]


try:
    __version__ = importlib.metadata.version('plume-bot')
except importlib.metadata.PackageNotFoundError:
    # running from a source checkout that was never installed
    __version__ = '0.0.0.dev0'


def _version_info(version=__version__):
    regex = re.compile(r'(\d+)\.(\d+)\.(\d+)(?:[\-\.]?(a|b|rc|dev)(\d+))?.*')
    version_match = regex.match(version)

    if version_match is None:
        raise RuntimeError("Can't parse version number!")

    version_groups = version_match.groups()
    major, minor, micro = (int(piece) for piece in version_groups[0:3])
    level = version_groups[3]
    serial = int(version_groups[4] or 0)
    if level == 'a':
        level = 'alpha'
    elif level == 'b':
        level = 'beta'
    elif level == 'rc':
        level = 'candidate'
    elif not level and version_groups[4] is None:
        level = 'final'
    else:
        level = 'alpha'

    VersionInfo = namedtuple('VersionInfo',
                             'major, minor, micro, releaselevel, serial')
    return VersionInfo(major, minor, micro, level, serial)


version_info = _version_info()

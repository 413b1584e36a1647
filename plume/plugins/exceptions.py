"""Plume's plugins exceptions."""
#
# Licensed under the Eiffel Forum License 2.
from __future__ import annotations


class PluginError(Exception):
    """Base class for plugin related exceptions."""


class PluginLoadError(PluginError):
    """Exception raised when a plugin file cannot be imported.

    :param str filename: path of the plugin file
    :param Exception error: the original error
    """
    def __init__(self, filename, error):
        self.filename = filename
        self.error = error
        message = 'Unable to import plugin %s: %s' % (filename, error)
        super().__init__(message)


class PluginShapeError(PluginError):
    """Exception raised when a plugin exports a malformed shape.

    :param str filename: path of the plugin file
    :param str reason: what is wrong with the plugin's shape
    """
    def __init__(self, filename, reason):
        self.filename = filename
        self.reason = reason
        message = 'Invalid plugin %s: %s' % (filename, reason)
        super().__init__(message)


class PluginFrozenError(PluginError):
    """Exception raised when registering a handler after the load phase."""

"""Plume Plugins Command Line Interface (CLI): ``plume-plugins``"""
#
# Licensed under the Eiffel Forum License 2.
from __future__ import annotations

import argparse
import inspect

from plume import config, plugins, tools
from plume.plugins import exceptions
from . import utils


ERR_CODE = 1
"""Error code: program exited with an error"""

STATUS_OK = 'ok'
STATUS_SKIPPED = 'skipped'
STATUS_EXCLUDED = 'excluded'
STATUS_ERROR = 'error'


def build_parser():
    """Configure an argument parser for ``plume-plugins``.

    :return: the argument parser
    :rtype: :class:`argparse.ArgumentParser`
    """
    parser = argparse.ArgumentParser(
        description='Plume plugins tool')

    # Subparser: plume-plugins <sub-parser> <sub-options>
    subparsers = parser.add_subparsers(
        help='Action to perform',
        dest='action')

    # plume-plugins show <name>
    show_parser = subparsers.add_parser(
        'show',
        formatter_class=argparse.RawTextHelpFormatter,
        help="Show plugin details",
        description="Show detailed information about a plugin.")
    utils.add_config_arguments(show_parser)
    show_parser.add_argument('name', help='Plugin name')

    # plume-plugins list
    list_parser = subparsers.add_parser(
        'list',
        formatter_class=argparse.RawTextHelpFormatter,
        help="List available Plume plugins",
        description=inspect.cleandoc("""
            List available Plume plugins from the plugin directories.

            Each plugin is listed with the kind of handler it exports:
            event, command, no-prefix, or unknown.

            Loadable plugins are displayed in green; excluded, in red;
            broken ones, in yellow.
        """))
    utils.add_config_arguments(list_parser)
    list_parser.add_argument(
        '-C', '--no-color',
        help='Disable colors',
        dest='no_color',
        action='store_true',
        default=False)
    list_parser.add_argument(
        '-n', '--name-only',
        help='Display only plugin names',
        dest='name_only',
        action='store_true',
        default=False)

    return parser


def describe_plugin(plugin, is_enabled):
    """Describe a ``plugin`` for display purpose.

    :param plugin: the plugin to describe
    :type plugin: :class:`~plume.plugins.handlers.AbstractPluginHandler`
    :param bool is_enabled: whether the plugin is excluded or not
    :return: the plugin's description, with ``name``, ``kind``, ``label``,
             ``source``, and ``status`` keys, and its ``handler`` (if any)
    :rtype: dict

    The plugin is loaded to read its exported shape, but nothing is
    registered.
    """
    description = {
        'name': plugin.name,
        'kind': 'unknown',
        'label': plugin.get_label(),
        'source': plugin.path,
        'status': STATUS_OK,
        'handler': None,
    }

    if not is_enabled:
        description['status'] = STATUS_EXCLUDED
        return description

    try:
        plugin.load()
        handler = plugin.get_handler()
    except exceptions.PluginError as error:
        description.update({
            'label': 'Error: %s' % (
                ('%s' % error) or 'unknown loading exception'),
            'status': STATUS_ERROR,
        })
        return description

    description['label'] = plugin.get_label()
    if handler is None:
        description['status'] = STATUS_SKIPPED
    else:
        description['kind'] = handler.KIND
        description['handler'] = handler

    return description


def _colorize(description):
    status = description['status']
    name = description['name']
    if status == STATUS_OK:
        name = utils.paint(name, 'green')
    elif status == STATUS_ERROR:
        name = utils.paint(name, 'yellow')
        description['status'] = utils.paint(status, 'red')
    elif status == STATUS_EXCLUDED:
        name = utils.paint(name, 'red')
    description['name'] = name
    return description


def handle_list(options):
    """List Plume plugins.

    :param options: parsed arguments
    :type options: :class:`argparse.Namespace`
    :return: 0 if everything went fine
    """
    settings = utils.load_settings(options)
    items = sorted(
        plugins.enumerate_plugins(settings),
        key=lambda item: item[0].name)

    template = '{name}/{kind} {label} ({source}) [{status}]'
    if options.name_only:
        template = '{name}'

    for plugin, is_enabled in items:
        description = describe_plugin(plugin, is_enabled)
        if not options.no_color:
            description = _colorize(description)
        print(template.format(**description))

    return 0  # successful operation


def handle_show(options):
    """Show plugin details.

    :param options: parsed arguments
    :type options: :class:`argparse.Namespace`
    :return: 0 if everything went fine;
             1 if the plugin doesn't exist or can't be loaded
    """
    plugin_name = options.name
    settings = utils.load_settings(options)
    usable_plugins = dict(
        (plugin.name, (plugin, is_enabled))
        for plugin, is_enabled in plugins.enumerate_plugins(settings))

    # plugin does not exist
    if plugin_name not in usable_plugins:
        tools.stderr('No plugin named %s' % plugin_name)
        return ERR_CODE

    plugin, is_enabled = usable_plugins[plugin_name]
    # describe it even when excluded
    description = describe_plugin(plugin, True)
    if not is_enabled:
        description['status'] = STATUS_EXCLUDED

    print('Plugin:', description['name'])
    print('Status:', description['status'])
    print('Kind:', description['kind'])
    print('Source:', description['source'])
    print('Label:', description['label'])

    if description['status'] == STATUS_ERROR:
        print('Loading failed')
        return ERR_CODE

    handler = description['handler']
    if handler is None or handler.KIND == 'event':
        return 0  # successful operation

    patterns = [pattern.pattern for pattern in handler.pattern_aliases]
    print('Name:', handler.name)
    print('Aliases:', ', '.join(handler.literal_aliases) or '-')
    print('Patterns:', ', '.join(patterns) or '-')

    return 0  # successful operation


def main(argv=None):
    """Console entry point for ``plume-plugins``."""
    parser = build_parser()
    options = parser.parse_args(argv)
    action = options.action

    if not action:
        parser.print_help()
        return ERR_CODE

    try:
        if action == 'list':
            return handle_list(options)
        elif action == 'show':
            return handle_show(options)
    except KeyboardInterrupt:
        tools.stderr('Bye!')
        return ERR_CODE
    except config.ConfigurationNotFound as err:
        tools.stderr(err)
        tools.stderr('Create a config file first, or use -c/--config.')
        return ERR_CODE
    except ValueError as err:
        tools.stderr(err)
        return ERR_CODE

"""Tests for the ``plume.bot`` module"""
from __future__ import annotations

import logging
import re
import threading

import pytest

from plume import bot, db
from plume.plugins import exceptions, rules
from plume.tests import handle_message
from plume.tests.factories import DEFAULT_GROUP, DEFAULT_SENDER


TMP_CONFIG = """
[core]
owner = 628111111111
db_filename = :memory:
prefix = [/!.]
plugin_dir = {plugin_dir}
"""

TMP_CONFIG_STRICT = TMP_CONFIG + """
unlisted_is_admin = false
"""

OWN_IDENTITY = '628000000000@s.whatsapp.net'

PING_PLUGIN = """
\"\"\"Ping the bot.\"\"\"
name = 'ping'
aliases = ['p']


async def execute(message, context):
    await context.connection.send_text(
        message.chat, 'pong %s (%s)' % (context.text, ','.join(context.args)))
"""

HALO_PLUGIN = """
import re

name = 'Halo'
no_prefix = True
aliases = [re.compile(r'^(hai|hi) ')]


async def execute(message, context):
    await context.connection.send_text(
        message.chat, 'halo: %s (%s)' % (context.text, ','.join(context.args)))
"""

HALO_SECOND_PLUGIN = """
name = 'halo2'
aliases = ['hai']
no_prefix = True


async def execute(message, context):
    await context.connection.send_text(message.chat, 'second')
"""

ROBOT_PLUGIN = """
name = 'android'
aliases = ['Robot']
no_prefix = True


async def execute(message, context):
    await context.connection.send_text(message.chat, 'beep: %s' % message.body)
"""

WHOAMI_PLUGIN = """
name = 'whoami'


def execute(message, context):
    context.connection.message_sent.append(
        (message.chat, 'admin=%s owner=%s' % (context.is_admin, context.is_owner)))
"""

BOOM_PLUGIN = """
name = 'boom'


def execute(message, context):
    raise RuntimeError('boom!')
"""

EVENT_FIRST = """
async def main(message, context):
    await context.connection.send_text(
        message.chat,
        'event:first admin=%s bot_admin=%s' % (
            context.is_admin, context.is_bot_admin))
"""

EVENT_BROKEN = """
def main(message, context):
    raise ValueError('broken event')
"""

EVENT_SECOND = """
def main(message, context):
    context.connection.message_sent.append(
        (message.chat, 'event:second store=%s' % context.store))
"""

FALLBACK_HANDLER = """
async def handle(message, connection, chat_update):
    await connection.send_text(message.chat, 'fallback: %s' % message.body)
"""


@pytest.fixture
def plugin_dir(tmp_path):
    directory = tmp_path / 'plugins'
    directory.mkdir()
    return directory


def write_plugin(directory, name, content):
    path = directory / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding='utf-8')
    return path


@pytest.fixture
def tmpconfig(configfactory, plugin_dir):
    return configfactory('test.cfg', TMP_CONFIG.format(plugin_dir=plugin_dir))


@pytest.fixture
def mockbot(tmpconfig, botfactory, plugin_dir):
    write_plugin(plugin_dir, 'ping.py', PING_PLUGIN)
    write_plugin(plugin_dir, 'halo.py', HALO_PLUGIN)
    write_plugin(plugin_dir, 'whoami.py', WHOAMI_PLUGIN)
    write_plugin(plugin_dir, 'boom.py', BOOM_PLUGIN)
    return botfactory.preloaded(tmpconfig)


@pytest.fixture
def connection(connectionfactory):
    return connectionfactory()


# Setup

def test_setup_plugins(mockbot):
    assert mockbot.has_plugin('ping')
    assert mockbot.has_plugin('halo')
    assert not mockbot.has_plugin('unknown')
    assert mockbot.rules.frozen

    meta = mockbot.get_plugin_meta('ping')
    assert meta['kind'] == 'command'
    assert meta['label'] == 'Ping the bot.'

    with pytest.raises(KeyError):
        mockbot.get_plugin_meta('unknown')


def test_setup_plugins_counts(tmpconfig, botfactory, plugin_dir, caplog):
    write_plugin(plugin_dir, 'ping.py', PING_PLUGIN)
    write_plugin(plugin_dir, 'halo.py', HALO_PLUGIN)
    write_plugin(plugin_dir, '_first.py', EVENT_FIRST)
    write_plugin(plugin_dir, 'broken.py', 'raise ImportError("missing")\n')
    write_plugin(plugin_dir, 'noname.py', 'def execute(m, c):\n    pass\n')
    write_plugin(plugin_dir, 'helpers.py', 'VALUE = 1\n')

    with caplog.at_level(logging.INFO, logger='plume.bot'):
        mockbot = botfactory.preloaded(tmpconfig)

    assert mockbot.rules.command_count == 3, 'ping, p, and Halo'
    assert mockbot.rules.event_handler_count == 1
    assert not mockbot.has_plugin('broken')
    assert not mockbot.has_plugin('noname')
    assert mockbot.has_plugin('helpers')

    messages = [record.getMessage() for record in caplog.records]
    assert 'Registered 3 plugins, 2 failed, 0 disabled, 1 skipped' in messages
    assert 'Loaded 3 commands and 1 event handlers' in messages

    errors = [
        record for record in caplog.records
        if record.levelname == 'ERROR'
    ]
    assert len(errors) == 2
    assert all(record.exc_info for record in errors)


def test_setup_plugins_exclude(configfactory, botfactory, plugin_dir):
    write_plugin(plugin_dir, 'ping.py', PING_PLUGIN)
    write_plugin(plugin_dir, 'halo.py', HALO_PLUGIN)
    settings = configfactory('test.cfg', TMP_CONFIG.format(
        plugin_dir=plugin_dir) + 'exclude = halo\n')

    mockbot = botfactory.preloaded(settings)

    assert mockbot.has_plugin('ping')
    assert not mockbot.has_plugin('halo')
    assert mockbot.rules.get_command('Halo') is None


def test_setup_plugins_none(tmpconfig, botfactory, caplog):
    with caplog.at_level(logging.INFO, logger='plume.bot'):
        mockbot = botfactory.preloaded(tmpconfig)

    assert mockbot.rules.command_count == 0
    messages = [record.getMessage() for record in caplog.records]
    assert "Warning: Couldn't load any plugins" in messages
    assert 'Loaded 0 commands and 0 event handlers' in messages


def test_setup_frozen(mockbot):
    with pytest.raises(exceptions.PluginFrozenError):
        mockbot.rules.register_command(
            rules.Command('late', lambda message, context: None))


def test_setup_fallback_missing(configfactory, botfactory, plugin_dir, caplog):
    settings = configfactory('test.cfg', TMP_CONFIG.format(
        plugin_dir=plugin_dir) + 'fallback = missing.py\n')

    with caplog.at_level(logging.INFO, logger='plume.bot'):
        mockbot = botfactory.preloaded(settings)

    assert mockbot.fallback is None
    assert any(
        record.getMessage().startswith('No fallback handler')
        for record in caplog.records)


# Dispatch

def test_ping(mockbot, connection, messagefactory):
    message = messagefactory('/ping hello world')

    handle_message(mockbot, message, connection)

    assert connection.message_sent == [
        (DEFAULT_SENDER, 'pong hello world (hello,world)'),
    ]


def test_ping_alias(mockbot, connection, messagefactory):
    handle_message(mockbot, messagefactory('!p'), connection)
    handle_message(mockbot, messagefactory('.PING  a   b'), connection)

    assert connection.message_sent == [
        (DEFAULT_SENDER, 'pong  ()'),
        (DEFAULT_SENDER, 'pong a b (a,b)'),
    ]


def test_ping_no_prefix(mockbot, connection, messagefactory):
    handle_message(mockbot, messagefactory('ping'), connection)
    handle_message(mockbot, messagefactory('#ping'), connection)

    assert connection.message_sent == [], (
        'A plain command requires the prefix')


def test_no_prefix_trigger(mockbot, connection, messagefactory):
    handle_message(mockbot, messagefactory('halo'), connection)
    handle_message(mockbot, messagefactory('HALO'), connection)

    assert connection.message_sent == [
        (DEFAULT_SENDER, 'halo: halo (halo)'),
        (DEFAULT_SENDER, 'halo: HALO (HALO)'),
    ]


def test_no_prefix_trigger_case_asymmetry(mockbot, connection, messagefactory):
    handle_message(mockbot, messagefactory('/Halo'), connection)
    handle_message(mockbot, messagefactory('/halo'), connection)

    assert connection.message_sent == [], (
        'The prefixed key is lowercased, the table key is not')


def test_no_prefix_literal_alias_case_asymmetry(
    tmpconfig, botfactory, plugin_dir, connection, messagefactory,
):
    write_plugin(plugin_dir, 'robot.py', ROBOT_PLUGIN)
    mockbot = botfactory.preloaded(tmpconfig)

    for body in ['robot', 'ROBOT', '/Robot', '/robot']:
        handle_message(mockbot, messagefactory(body), connection)

    assert connection.message_sent == [
        (DEFAULT_SENDER, 'beep: robot'),
        (DEFAULT_SENDER, 'beep: ROBOT'),
    ], 'Without a prefix the alias ignores case; with one it never matches'

    handle_message(mockbot, messagefactory('/android'), connection)
    assert connection.message_sent[-1] == (DEFAULT_SENDER, 'beep: /android')


def test_no_prefix_trigger_whole_body(mockbot, connection, messagefactory):
    handle_message(mockbot, messagefactory('halo semua'), connection)

    assert connection.message_sent == []


def test_no_prefix_trigger_pattern(mockbot, connection, messagefactory):
    handle_message(mockbot, messagefactory('Hai Semua'), connection)

    assert connection.message_sent == [
        (DEFAULT_SENDER, 'halo: Hai Semua (Hai,Semua)'),
    ]


def test_no_prefix_trigger_args_single_spaces(mockbot, connection, messagefactory):
    handle_message(mockbot, messagefactory('hai  semua'), connection)

    assert connection.message_sent == [
        (DEFAULT_SENDER, 'halo: hai  semua (hai,,semua)'),
    ], 'Arguments are split on single spaces'


def test_no_prefix_first_match(
    tmpconfig, botfactory, plugin_dir, connection, messagefactory,
):
    write_plugin(plugin_dir, 'a_halo.py', HALO_PLUGIN)
    write_plugin(plugin_dir, 'b_halo.py', HALO_SECOND_PLUGIN)
    mockbot = botfactory.preloaded(tmpconfig)

    handle_message(mockbot, messagefactory('hai all'), connection)
    handle_message(mockbot, messagefactory('hai'), connection)

    assert connection.message_sent == [
        (DEFAULT_SENDER, 'halo: hai all (hai,all)'),
        (DEFAULT_SENDER, 'second'),
    ]


def test_one_command_per_message(
    tmpconfig, botfactory, plugin_dir, connection, messagefactory,
):
    write_plugin(plugin_dir, 'a_halo.py', HALO_PLUGIN)
    write_plugin(plugin_dir, 'b_halo.py', HALO_PLUGIN.replace("'Halo'", "'hAlo'"))
    mockbot = botfactory.preloaded(tmpconfig)

    handle_message(mockbot, messagefactory('halo'), connection)

    assert len(connection.message_sent) == 1


def test_empty_body(
    tmpconfig, botfactory, plugin_dir, connection, messagefactory,
):
    write_plugin(plugin_dir, '_first.py', EVENT_FIRST)
    write_plugin(plugin_dir, 'ping.py', PING_PLUGIN)
    mockbot = botfactory.preloaded(tmpconfig)

    handle_message(mockbot, messagefactory(None), connection)
    handle_message(mockbot, messagefactory(''), connection)

    assert connection.message_sent == [
        (DEFAULT_SENDER, 'event:first admin=False bot_admin=False'),
        (DEFAULT_SENDER, 'event:first admin=False bot_admin=False'),
    ]


def test_event_handlers_order(
    tmpconfig, botfactory, plugin_dir, connection, messagefactory,
):
    write_plugin(plugin_dir, '_1first.py', EVENT_FIRST)
    write_plugin(plugin_dir, '_2broken.py', EVENT_BROKEN)
    write_plugin(plugin_dir, '_3second.py', EVENT_SECOND)
    write_plugin(plugin_dir, 'ping.py', PING_PLUGIN)
    mockbot = botfactory.preloaded(tmpconfig)

    handle_message(
        mockbot, messagefactory('/ping'), connection, store='STORE')

    assert connection.message_sent == [
        (DEFAULT_SENDER, 'event:first admin=False bot_admin=False'),
        (DEFAULT_SENDER, 'event:second store=STORE'),
        (DEFAULT_SENDER, 'pong  ()'),
    ]


def test_event_handler_error_logged(
    tmpconfig, botfactory, plugin_dir, connection, messagefactory, caplog,
):
    write_plugin(plugin_dir, '_broken.py', EVENT_BROKEN)
    mockbot = botfactory.preloaded(tmpconfig)

    with caplog.at_level(logging.ERROR, logger='plume.bot'):
        handle_message(mockbot, messagefactory('hello'), connection)

    assert len(caplog.records) == 1
    record = caplog.records[0]
    assert record.levelname == 'ERROR'
    assert '_broken' in record.getMessage()
    assert 'broken event' in record.getMessage()
    assert record.exc_info is not None
    assert record.exc_info[0] is ValueError


def test_command_error(mockbot, connection, messagefactory, caplog):
    with caplog.at_level(logging.ERROR, logger='plume.bot'):
        handle_message(mockbot, messagefactory('/boom'), connection)

    assert connection.message_sent == [], (
        'A failing command does not trigger the fallback')
    assert len(caplog.records) == 1
    assert 'boom!' in caplog.records[0].getMessage()

    # the next message is still handled
    handle_message(mockbot, messagefactory('/ping'), connection)
    assert connection.message_sent == [(DEFAULT_SENDER, 'pong  ()')]


def test_from_me_ignored(
    tmpconfig, botfactory, plugin_dir, connection, messagefactory,
):
    write_plugin(plugin_dir, '_first.py', EVENT_FIRST)
    write_plugin(plugin_dir, 'ping.py', PING_PLUGIN)
    mockbot = botfactory.preloaded(tmpconfig)

    handle_message(mockbot, messagefactory('/ping', from_me=True), connection)
    handle_message(mockbot, None, connection)

    assert connection.message_sent == []
    assert mockbot.db.get_user_values(DEFAULT_SENDER) == {}


# Fallback

def test_fallback(
    configfactory, botfactory, plugin_dir, connection, messagefactory,
):
    write_plugin(plugin_dir, 'ping.py', PING_PLUGIN)
    write_plugin(plugin_dir.parent, 'fallback.py', FALLBACK_HANDLER)
    settings = configfactory('test.cfg', TMP_CONFIG.format(
        plugin_dir=plugin_dir) + 'fallback = fallback.py\n')
    mockbot = botfactory.preloaded(settings)

    assert mockbot.fallback is not None

    handle_message(mockbot, messagefactory('/unknown thing'), connection)
    handle_message(mockbot, messagefactory('/ping'), connection)
    handle_message(mockbot, messagefactory('unknown thing'), connection)

    assert connection.message_sent == [
        (DEFAULT_SENDER, 'fallback: /unknown thing'),
        (DEFAULT_SENDER, 'pong  ()'),
    ]


def test_fallback_none(mockbot, connection, messagefactory):
    assert mockbot.fallback is None

    handle_message(mockbot, messagefactory('/unknown'), connection)

    assert connection.message_sent == []


# Authorization

def test_group_admin(mockbot, connectionfactory, messagefactory):
    connection = connectionfactory(rosters={
        DEFAULT_GROUP: [(DEFAULT_SENDER, 'admin'), (OWN_IDENTITY, None)],
    })
    message = messagefactory('/whoami', is_group=True)

    handle_message(mockbot, message, connection)

    assert connection.message_sent == [
        (DEFAULT_GROUP, 'admin=True owner=False'),
    ]
    assert connection.roster_fetches == [DEFAULT_GROUP]


def test_group_member(mockbot, connectionfactory, messagefactory):
    connection = connectionfactory(rosters={
        DEFAULT_GROUP: [(DEFAULT_SENDER, None)],
    })
    message = messagefactory('/whoami', is_group=True)

    handle_message(mockbot, message, connection)

    assert connection.message_sent == [
        (DEFAULT_GROUP, 'admin=False owner=False'),
    ]


def test_group_unlisted_sender(mockbot, connectionfactory, messagefactory):
    connection = connectionfactory(rosters={
        DEFAULT_GROUP: [(OWN_IDENTITY, 'admin')],
    })
    message = messagefactory('/whoami', is_group=True)

    handle_message(mockbot, message, connection)

    assert connection.message_sent == [
        (DEFAULT_GROUP, 'admin=True owner=False'),
    ]


def test_group_unlisted_sender_strict(
    configfactory, botfactory, plugin_dir, connectionfactory, messagefactory,
):
    write_plugin(plugin_dir, 'whoami.py', WHOAMI_PLUGIN)
    settings = configfactory('test.cfg', TMP_CONFIG_STRICT.format(
        plugin_dir=plugin_dir))
    mockbot = botfactory.preloaded(settings)
    connection = connectionfactory(rosters={
        DEFAULT_GROUP: [(OWN_IDENTITY, 'admin')],
    })
    message = messagefactory('/whoami', is_group=True)

    handle_message(mockbot, message, connection)

    assert connection.message_sent == [
        (DEFAULT_GROUP, 'admin=False owner=False'),
    ]


def test_group_roster_failure(
    mockbot, connection, messagefactory, caplog,
):
    connection.fail_roster = True
    message = messagefactory('/whoami', is_group=True)

    with caplog.at_level(logging.WARNING):
        handle_message(mockbot, message, connection)

    assert connection.message_sent == [
        (DEFAULT_GROUP, 'admin=False owner=False'),
    ]
    assert any(
        record.levelname == 'WARNING' and record.name == 'plume.privileges'
        for record in caplog.records)


def test_owner(mockbot, connection, messagefactory):
    message = messagefactory('/whoami', sender='628111111111@s.whatsapp.net')

    handle_message(mockbot, message, connection)

    assert connection.message_sent == [
        ('628111111111@s.whatsapp.net', 'admin=False owner=True'),
    ]


def test_event_context_authorization(
    tmpconfig, botfactory, plugin_dir, connectionfactory, messagefactory,
):
    write_plugin(plugin_dir, '_first.py', EVENT_FIRST)
    mockbot = botfactory.preloaded(tmpconfig)
    connection = connectionfactory(rosters={
        DEFAULT_GROUP: [(DEFAULT_SENDER, None), (OWN_IDENTITY, 'admin')],
    })

    handle_message(mockbot, messagefactory('hello', is_group=True), connection)

    assert connection.message_sent == [
        (DEFAULT_GROUP, 'event:first admin=False bot_admin=True'),
    ]
    assert connection.roster_fetches == [DEFAULT_GROUP], (
        'The roster is fetched once per message')


# Settings defaults

def test_heal_defaults(mockbot, connection, messagefactory):
    message = messagefactory('hello', is_group=True)

    handle_message(mockbot, message, connection)

    assert mockbot.db.get_user_values(DEFAULT_SENDER) == db.USER_DEFAULTS
    assert mockbot.db.get_chat_values(DEFAULT_GROUP) == db.CHAT_DEFAULTS
    assert mockbot.db.get_installation_values(
        OWN_IDENTITY) == db.INSTALLATION_DEFAULTS


def test_heal_defaults_once(mockbot, connection, messagefactory):
    handle_message(mockbot, messagefactory('hello'), connection)
    mockbot.db.delete_user_value(DEFAULT_SENDER, 'limit')

    handle_message(mockbot, messagefactory('hello'), connection)

    values = mockbot.db.get_user_values(DEFAULT_SENDER)
    assert 'limit' not in values, 'Defaults are healed once per process'


def test_heal_defaults_keep_values(mockbot, connection, messagefactory):
    mockbot.db.set_user_value(DEFAULT_SENDER, 'limit', 5)
    mockbot.db.set_user_value(DEFAULT_SENDER, 'nickname', 'Budi')

    handle_message(mockbot, messagefactory('hello'), connection)

    values = mockbot.db.get_user_values(DEFAULT_SENDER)
    assert values['limit'] == 5
    assert values['nickname'] == 'Budi'
    assert values['warn'] == 0


def test_heal_defaults_storage_error(
    mockbot, connection, messagefactory, monkeypatch, caplog,
):
    from sqlalchemy.exc import OperationalError

    calls = []

    def failing(kind, entity, defaults):
        calls.append((kind, entity))
        raise OperationalError('INSERT', {}, Exception('locked'))

    monkeypatch.setattr(mockbot.db, 'ensure_defaults', failing)

    with caplog.at_level(logging.ERROR, logger='plume.bot'):
        handle_message(mockbot, messagefactory('/ping x'), connection)
        handle_message(mockbot, messagefactory('/ping y'), connection)

    assert connection.message_sent == [
        (DEFAULT_SENDER, 'pong x (x)'),
        (DEFAULT_SENDER, 'pong y (y)'),
    ], 'A storage error does not stop the dispatch'
    assert len(calls) == 6, 'Entities are healed again after an error'
    assert len(caplog.records) == 6


def test_heal_defaults_off_event_loop(
    mockbot, connection, messagefactory, monkeypatch,
):
    threads = []
    ensure_defaults = mockbot.db.ensure_defaults

    def recording(kind, entity, defaults):
        threads.append(threading.get_ident())
        return ensure_defaults(kind, entity, defaults)

    monkeypatch.setattr(mockbot.db, 'ensure_defaults', recording)

    handle_message(mockbot, messagefactory('/ping x'), connection)

    assert len(threads) == 3
    assert threading.get_ident() not in threads, (
        'The settings store is not used from the event loop thread')
    assert connection.message_sent == [(DEFAULT_SENDER, 'pong x (x)')]


# Error reporting

def test_error_message(mockbot, messagefactory, caplog):
    from plume.plugins.outcomes import Outcome

    error = RuntimeError('oops')
    message = messagefactory('/boom now')

    with caplog.at_level(logging.ERROR, logger='plume.bot'):
        mockbot.error(message, Outcome('<Command boom.boom>', error=error))

    assert len(caplog.records) == 1
    text = caplog.records[0].getMessage()
    assert re.search(r'Unexpected error in <Command boom\.boom> \(oops\)', text)
    assert DEFAULT_SENDER in text
    assert text.endswith('Message was: /boom now')


def test_bot_config_property(tmpconfig):
    mockbot = bot.Plume(tmpconfig)

    assert mockbot.config is tmpconfig
    assert mockbot.settings is tmpconfig
    assert mockbot.fallback is None
    assert not mockbot.rules.frozen

from __future__ import annotations

import os
import re

import pytest

from plume.config import types


QUIET_CONFIG = """
[core]
owner = 628111111111

[quiet]
chats =
    120363041234@g.us
    120363045678@g.us
reply_in_private = yes
level = warn
"""


class QuietSection(types.StaticSection):
    chats = types.ListAttribute('chats')
    reply_in_private = types.BooleanAttribute('reply_in_private')
    level = types.ChoiceAttribute('level', ['mute', 'warn'], default='mute')
    banner = types.ValidatedAttribute('banner', default='Shh.')
    trigger = types.PatternAttribute('trigger', default=re.compile(r'^shh'))
    archive = types.DirectoryAttribute('archive', default='quiet-archive')


class TokenSection(types.StaticSection):
    token = types.ValidatedAttribute('token', default=types.NO_DEFAULT)


@pytest.fixture
def settings(configfactory):
    return configfactory('quiet.cfg', QUIET_CONFIG)


def test_option_names():
    assert QuietSection.option_names() == [
        'archive', 'banner', 'chats', 'level', 'reply_in_private', 'trigger',
    ]


def test_env_name():
    option = types.BooleanAttribute('unlisted_is_admin')

    assert option.env_name('core') == 'PLUME_CORE_UNLISTED_IS_ADMIN'


def test_section_values(settings):
    settings.define_section('quiet', QuietSection)

    assert settings.quiet.chats == ['120363041234@g.us', '120363045678@g.us']
    assert settings.quiet.reply_in_private is True
    assert settings.quiet.level == 'warn'
    assert settings.quiet.banner == 'Shh.'
    assert settings.quiet.trigger.match('shh please')


def test_section_defaults(configfactory):
    settings = configfactory('empty.cfg', '[core]\n')
    settings.define_section('quiet', QuietSection)

    assert settings.quiet.chats == []
    assert settings.quiet.reply_in_private is False
    assert settings.quiet.level == 'mute'


def test_list_default_is_a_copy(configfactory):
    settings = configfactory('empty.cfg', '[core]\n')

    settings.core.owner.append('628999')

    assert settings.core.owner == []


@pytest.mark.parametrize('raw, expected', [
    ('628111', ['628111']),
    ('628111, 628222', ['628111', '628222']),
    ('\n628111\n+62 812-3456-7891,\n', ['628111', '+62 812-3456-7891']),
    ('', []),
])
def test_list_parse(raw, expected):
    option = types.ListAttribute('owner')

    assert option.parse(raw, None) == expected


def test_list_serialize():
    option = types.ListAttribute('exclude')

    assert option.serialize([], None) == ''
    assert option.serialize(['sticker', 'group/_antilink'], None) == (
        '\nsticker\ngroup/_antilink')

    with pytest.raises(ValueError):
        option.serialize('sticker', None)


@pytest.mark.parametrize('raw', ['1', 'yes', 'Y', 'true', 'ON'])
def test_boolean_parse_true(raw):
    assert types.BooleanAttribute('flag').parse(raw, None) is True


@pytest.mark.parametrize('raw', ['0', 'no', 'N', 'False', 'off', ''])
def test_boolean_parse_false(raw):
    assert types.BooleanAttribute('flag').parse(raw, None) is False


def test_boolean_parse_invalid(configfactory):
    with pytest.raises(ValueError):
        configfactory('bad.cfg', '[core]\nunlisted_is_admin = maybe\n')


def test_boolean_serialize():
    option = types.BooleanAttribute('flag')

    assert option.serialize(True, None) == 'true'
    assert option.serialize(False, None) == 'false'
    assert option.serialize('no', None) == 'false'


def test_choice_invalid(settings):
    with pytest.raises(ValueError):
        types.ChoiceAttribute('level', ['mute', 'warn']).parse('shout', None)

    settings.parser.set('quiet', 'level', 'shout')
    with pytest.raises(ValueError):
        settings.define_section('quiet', QuietSection)


def test_pattern_invalid():
    option = types.PatternAttribute('prefix')

    with pytest.raises(ValueError):
        option.parse('[/!', None)
    with pytest.raises(ValueError):
        option.serialize('[/!', None)


def test_pattern_serialize():
    option = types.PatternAttribute('prefix')

    assert option.serialize(re.compile(r'[/!]'), None) == '[/!]'
    assert option.serialize(r'[.]', None) == '[.]'


def test_directory_relative_to_homedir(settings, tmpdir):
    settings.define_section('quiet', QuietSection)

    archive = settings.quiet.archive

    assert archive == tmpdir.join('quiet-archive').strpath
    assert os.path.isdir(archive)


def test_directory_absolute(settings, tmpdir):
    target = tmpdir.join('elsewhere', 'archive').strpath
    settings.define_section('quiet', QuietSection)

    settings.quiet.archive = target

    assert settings.quiet.archive == target
    assert os.path.isdir(target)


def test_set_and_unset(settings):
    settings.define_section('quiet', QuietSection)

    settings.quiet.chats = ['120363049999@g.us']
    settings.quiet.reply_in_private = False
    assert settings.quiet.chats == ['120363049999@g.us']
    assert settings.parser.get('quiet', 'reply_in_private') == 'false'

    settings.quiet.level = None
    assert settings.quiet.level == 'mute'

    del settings.quiet.chats
    assert settings.quiet.chats == []


def test_required_option(settings):
    with pytest.raises(ValueError):
        settings.define_section('token', TokenSection)

    settings.define_section('token', TokenSection, validate=False)
    with pytest.raises(AttributeError):
        settings.token.token
    with pytest.raises(ValueError):
        settings.token.token = None


def test_env_override(settings, monkeypatch):
    monkeypatch.setenv('PLUME_QUIET_LEVEL', 'mute')
    monkeypatch.setenv('PLUME_QUIET_CHATS', '120363040000@g.us')
    settings.define_section('quiet', QuietSection)

    assert settings.quiet.level == 'mute'
    assert settings.quiet.chats == ['120363040000@g.us']


def test_define_section_twice(settings):
    class OtherSection(types.StaticSection):
        chats = types.ListAttribute('chats')

    settings.define_section('quiet', QuietSection)
    settings.define_section('quiet', QuietSection)

    with pytest.raises(ValueError):
        settings.define_section('quiet', OtherSection)


def test_define_section_not_static(settings):
    with pytest.raises(ValueError):
        settings.define_section('quiet', object)


def test_undefined_section(settings):
    with pytest.raises(AttributeError):
        settings.quiet

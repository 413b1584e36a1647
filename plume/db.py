"""Plume's settings store.

Plume keeps three kinds of settings, each one a key-value mapping:

* user settings, per sender identity
* chat settings, per chat identity
* installation settings, per bot account identity

Values are serialized to JSON before being stored, and decoded transparently
upon retrieval.
"""
#
# Licensed under the Eiffel Forum License 2.
from __future__ import annotations

import errno
import json
import logging
import os.path

from sqlalchemy import Column, String, Text, create_engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool


LOGGER = logging.getLogger(__name__)

MEMORY_FILENAME = ':memory:'
"""Special filename to keep the store in memory."""

USER_DEFAULTS = {
    'banned': False,
    'banned_date': 0,
    'limit': 100,
    'premium': False,
    'premium_date': 0,
    'warn': 0,
}
"""Default settings of a user."""

CHAT_DEFAULTS = {
    'is_banned': False,
    'welcome': True,
    'autoread': False,
    'detect': False,
    'delete': True,
    'anti_link': False,
    'anti_spam': False,
    'anti_bot': True,
    'anti_sticker': False,
    'anti_badword': False,
    'anti_toxic': False,
    'simi': False,
    'ai': False,
    'viewonce': False,
    'expired': 0,
}
"""Default settings of a chat."""

INSTALLATION_DEFAULTS = {
    'self': False,
    'autoread': False,
    'composing': True,
    'restrict': True,
    'autorestart': True,
    'gconly': True,
    'restart_db': 0,
    'status': 0,
    'anticall': True,
    'clear': True,
    'clear_time': 0,
    'freply': True,
}
"""Default settings of the bot's installation."""


def _deserialize(value):
    if value is None:
        return None
    # sqlite can return ints for strings that look like ints
    value = str(value)
    # ignore json parsing errors for values written by something else
    try:
        value = json.loads(value)
    except ValueError:
        pass
    return value


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


BASE = declarative_base()


class UserValues(BASE):
    """User values table SQLAlchemy class."""
    __tablename__ = 'user_values'
    user = Column(String(255), primary_key=True)
    key = Column(String(255), primary_key=True)
    value = Column(Text)


class ChatValues(BASE):
    """Chat values table SQLAlchemy class."""
    __tablename__ = 'chat_values'
    chat = Column(String(255), primary_key=True)
    key = Column(String(255), primary_key=True)
    value = Column(Text)


class InstallationValues(BASE):
    """Installation values table SQLAlchemy class."""
    __tablename__ = 'installation_values'
    installation = Column(String(255), primary_key=True)
    key = Column(String(255), primary_key=True)
    value = Column(Text)


class PlumeDB:
    """Settings store class.

    :param config: Plume's configuration settings
    :type config: :class:`plume.config.Config`

    This defines a simplified interface for the bot's settings. Direct access
    to the database is also available through :meth:`session`, to serve more
    complex plugins' needs.

    When configured with a relative filename, the file is assumed to be in
    the config's home directory. Without a filename, ``<basename>.db`` is used.
    """
    def __init__(self, config):
        path = config.core.db_filename
        if path == MEMORY_FILENAME:
            self.filename = MEMORY_FILENAME
            self.url = 'sqlite://'
            # one connection shared by every session, or each one gets its
            # own empty database
            self.engine = create_engine(
                self.url,
                connect_args={'check_same_thread': False},
                poolclass=StaticPool)
        else:
            if path is None:
                path = os.path.join(config.homedir, config.basename + '.db')
            path = os.path.expanduser(path)
            if not os.path.isabs(path):
                path = os.path.normpath(os.path.join(config.homedir, path))
            if not os.path.isdir(os.path.dirname(path)):
                raise OSError(
                    errno.ENOENT,
                    'Cannot create database file. '
                    'No such directory: "{}". Check that configuration setting '
                    'core.db_filename is valid'.format(os.path.dirname(path)),
                    path
                )
            self.filename = path
            self.url = 'sqlite:///%s' % path
            # healing runs in worker threads
            self.engine = create_engine(
                self.url,
                connect_args={'check_same_thread': False},
                pool_recycle=3600)

        # Catch any errors connecting to database
        try:
            with self.engine.connect():
                pass
        except OperationalError:
            LOGGER.error('Unable to connect to database %s', self.filename)
            raise

        BASE.metadata.create_all(self.engine)

        self.ssession = scoped_session(sessionmaker(bind=self.engine))
        self._tables = {
            'user': (UserValues, UserValues.user),
            'chat': (ChatValues, ChatValues.chat),
            'installation': (
                InstallationValues, InstallationValues.installation),
        }

    def session(self):
        """Get a SQLAlchemy Session object.

        :rtype: :class:`sqlalchemy.orm.session.Session`
        """
        return self.ssession()

    def get_uri(self):
        """Return a direct URL for the database."""
        return self.url

    # GENERIC KEY-VALUE FUNCTIONS

    def _query_value(self, session, kind, entity, key):
        model, column = self._tables[kind]
        return session.query(model) \
            .filter(column == entity) \
            .filter(model.key == key) \
            .one_or_none()

    def _set_value(self, kind, entity, key, value):
        model, column = self._tables[kind]
        value = json.dumps(value, ensure_ascii=False)
        session = self.ssession()
        try:
            result = self._query_value(session, kind, entity, key)
            if result:
                result.value = value
            else:
                session.add(model(**{column.key: entity, 'key': key,
                                     'value': value}))
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            self.ssession.remove()

    def _delete_value(self, kind, entity, key):
        session = self.ssession()
        try:
            result = self._query_value(session, kind, entity, key)
            if result:
                session.delete(result)
                session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            self.ssession.remove()

    def _get_value(self, kind, entity, key, default=None):
        session = self.ssession()
        try:
            result = self._query_value(session, kind, entity, key)
            if result is None:
                return default
            return _deserialize(result.value)
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            self.ssession.remove()

    def _get_values(self, session, kind, entity):
        model, column = self._tables[kind]
        rows = session.query(model).filter(column == entity).all()
        return {row.key: _deserialize(row.value) for row in rows}

    def get_values(self, kind, entity):
        """Get every value stored for an ``entity``.

        :param str kind: one of ``user``, ``chat``, or ``installation``
        :param str entity: the entity's identity
        :return: the entity's settings
        :rtype: dict
        :raise ~sqlalchemy.exc.SQLAlchemyError: if there is a database error
        """
        session = self.ssession()
        try:
            return self._get_values(session, kind, entity)
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            self.ssession.remove()

    def ensure_defaults(self, kind, entity, defaults):
        """Get an entity's settings, initializing the missing ones.

        :param str kind: one of ``user``, ``chat``, or ``installation``
        :param str entity: the entity's identity
        :param dict defaults: the default settings
        :return: the entity's settings, once initialized
        :rtype: dict
        :raise ~sqlalchemy.exc.SQLAlchemyError: if there is a database error

        Settings already stored keep their value, except when the default is
        a number and the stored value is not: such a value is reset to its
        default. Stored keys absent from ``defaults`` are left untouched.
        """
        model, column = self._tables[kind]
        session = self.ssession()
        try:
            rows = session.query(model).filter(column == entity).all()
            stored = {row.key: row for row in rows}
            for key, default in defaults.items():
                row = stored.get(key)
                if row is None:
                    session.add(model(**{
                        column.key: entity,
                        'key': key,
                        'value': json.dumps(default, ensure_ascii=False),
                    }))
                elif (_is_number(default) and
                        not _is_number(_deserialize(row.value))):
                    row.value = json.dumps(default, ensure_ascii=False)
            session.commit()
            return self._get_values(session, kind, entity)
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            self.ssession.remove()

    # USER FUNCTIONS

    def set_user_value(self, user, key, value):
        """Set or update a value in the key-value store for ``user``.

        :param str user: the user's identity
        :param str key: the name by which this ``value`` may be accessed later
        :param mixed value: the value to set for this ``key`` under ``user``
        :raise ~sqlalchemy.exc.SQLAlchemyError: if there is a database error
        """
        self._set_value('user', user, key, value)

    def delete_user_value(self, user, key):
        """Delete a value from the key-value store for ``user``."""
        self._delete_value('user', user, key)

    def get_user_value(self, user, key, default=None):
        """Get a value from the key-value store for ``user``.

        :param str user: the user's identity
        :param str key: the name by which the desired value was saved
        :param mixed default: value to return if ``key`` does not have a value
                              set (optional)
        :raise ~sqlalchemy.exc.SQLAlchemyError: if there is a database error
        """
        return self._get_value('user', user, key, default)

    def get_user_values(self, user):
        """Get every value stored for ``user``."""
        return self.get_values('user', user)

    def ensure_user_defaults(self, user, defaults=None):
        """Initialize the missing settings of ``user``.

        :param str user: the user's identity
        :param dict defaults: the default settings (optional; defaults to
                              :data:`USER_DEFAULTS`)
        :return: the user's settings
        :rtype: dict
        """
        return self.ensure_defaults('user', user, defaults or USER_DEFAULTS)

    # CHAT FUNCTIONS

    def set_chat_value(self, chat, key, value):
        """Set or update a value in the key-value store for ``chat``.

        :param str chat: the chat's identity
        :param str key: the name by which this ``value`` may be accessed later
        :param mixed value: the value to set for this ``key`` under ``chat``
        :raise ~sqlalchemy.exc.SQLAlchemyError: if there is a database error
        """
        self._set_value('chat', chat, key, value)

    def delete_chat_value(self, chat, key):
        """Delete a value from the key-value store for ``chat``."""
        self._delete_value('chat', chat, key)

    def get_chat_value(self, chat, key, default=None):
        """Get a value from the key-value store for ``chat``."""
        return self._get_value('chat', chat, key, default)

    def get_chat_values(self, chat):
        """Get every value stored for ``chat``."""
        return self.get_values('chat', chat)

    def ensure_chat_defaults(self, chat, defaults=None):
        """Initialize the missing settings of ``chat``.

        :param str chat: the chat's identity
        :param dict defaults: the default settings (optional; defaults to
                              :data:`CHAT_DEFAULTS`)
        :return: the chat's settings
        :rtype: dict
        """
        return self.ensure_defaults('chat', chat, defaults or CHAT_DEFAULTS)

    # INSTALLATION FUNCTIONS

    def set_installation_value(self, installation, key, value):
        """Set or update a value in the key-value store for ``installation``.

        :param str installation: the bot account's identity
        :param str key: the name by which this ``value`` may be accessed later
        :param mixed value: the value to set for this ``key``
        :raise ~sqlalchemy.exc.SQLAlchemyError: if there is a database error
        """
        self._set_value('installation', installation, key, value)

    def delete_installation_value(self, installation, key):
        """Delete a value from the key-value store for ``installation``."""
        self._delete_value('installation', installation, key)

    def get_installation_value(self, installation, key, default=None):
        """Get a value from the key-value store for ``installation``."""
        return self._get_value('installation', installation, key, default)

    def get_installation_values(self, installation):
        """Get every value stored for ``installation``."""
        return self.get_values('installation', installation)

    def ensure_installation_defaults(self, installation, defaults=None):
        """Initialize the missing settings of ``installation``.

        :param str installation: the bot account's identity
        :param dict defaults: the default settings (optional; defaults to
                              :data:`INSTALLATION_DEFAULTS`)
        :return: the installation's settings
        :rtype: dict
        """
        return self.ensure_defaults(
            'installation', installation, defaults or INSTALLATION_DEFAULTS)

"""Logging configuration for Plume.

Plume's own modules log through ``logging.getLogger(__name__)``, and plugins
through :func:`plume.tools.get_logger`: every logger is a child of the
``plume`` logger configured here.

Three outputs are set up:

* ``console``: everything from ``core.logging_level`` up, on stderr
* ``logfile``: the same lines, in ``<logdir>/<basename>.plume.log``
* ``errorfile``: handler and plugin failures only (``ERROR`` and up, with
  their tracebacks), in ``<logdir>/<basename>.error.log``

Both files rotate at midnight.
"""
#
# Licensed under the Eiffel Forum License 2.
from __future__ import annotations

from logging.config import dictConfig
import os


LOG_FILES = {
    'logfile': ('plume', 'DEBUG'),
    'errorfile': ('error', 'ERROR'),
}
"""Log file handlers, as ``name: (file suffix, lowest level)``."""


def _log_file(settings, suffix, level):
    filename = '%s.%s.log' % (settings.basename, suffix)
    return {
        'class': 'logging.handlers.TimedRotatingFileHandler',
        'filename': os.path.join(settings.core.logdir, filename),
        'when': 'midnight',
        'level': level,
        'formatter': 'plume',
    }


def get_logging_config(settings):
    """Build the :func:`~logging.config.dictConfig` dict for ``settings``.

    :param settings: the bot's settings
    :type settings: :class:`plume.config.Config`
    :rtype: dict
    """
    handlers = {
        name: _log_file(settings, suffix, level)
        for name, (suffix, level) in LOG_FILES.items()
    }
    handlers['console'] = {
        'class': 'logging.StreamHandler',
        'level': 'DEBUG',
        'formatter': 'plume',
    }

    return {
        'version': 1,
        # keep the loggers of SQLAlchemy and friends alive
        'disable_existing_loggers': False,
        'formatters': {
            'plume': {
                'format': settings.core.logging_format,
                'datefmt': settings.core.logging_datefmt,
            },
        },
        'handlers': handlers,
        'loggers': {
            'plume': {
                'level': settings.core.logging_level,
                'handlers': ['console'] + sorted(LOG_FILES),
            },
        },
    }


def setup_logging(settings):
    """Configure the ``plume`` logger from the bot's ``settings``."""
    dictConfig(get_logging_config(settings))

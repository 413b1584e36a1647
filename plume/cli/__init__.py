"""Plume's command line tools."""
#
# Licensed under the Eiffel Forum License 2.
from __future__ import annotations

from .utils import (  # noqa
    add_config_arguments,
    load_settings,
    resolve_config,
)

# Copyright 2024 SkyPilot Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Logging utilities for lambdeploy.

Every module obtains its logger through :func:`init_logger`, which attaches a
single colored stream handler to the ``lambdeploy`` root logger the first
time it is called.
"""
import logging
import os
import sys
import threading

import colorama

_ROOT_LOGGER_NAME = 'lambdeploy'
_DATE_FORMAT = '%H:%M:%S'
_FORMAT = '[%(asctime)s] %(levelname)s: %(message)s'

_LEVEL_COLORS = {
    logging.DEBUG: colorama.Style.DIM,
    logging.INFO: colorama.Fore.BLUE,
    logging.WARNING: colorama.Fore.YELLOW,
    logging.ERROR: colorama.Fore.RED,
    logging.CRITICAL: colorama.Fore.RED + colorama.Style.BRIGHT,
}

_setup_lock = threading.Lock()
_root_configured = False


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name of each record."""

    def format(self, record: logging.LogRecord) -> str:
        color = _LEVEL_COLORS.get(record.levelno, '')
        original = record.levelname
        if color:
            record.levelname = f'{color}{original}{colorama.Style.RESET_ALL}'
        try:
            return super().format(record)
        finally:
            record.levelname = original


FORMATTER = ColoredFormatter(_FORMAT, datefmt=_DATE_FORMAT)


def _level_from_env() -> int:
    level_name = os.environ.get('LOG_LEVEL', 'INFO').upper()
    if level_name == 'WARN':
        level_name = 'WARNING'
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        return logging.INFO
    return level


def _setup_root_logger() -> None:
    global _root_configured
    with _setup_lock:
        if _root_configured:
            return
        root_logger = logging.getLogger(_ROOT_LOGGER_NAME)
        root_logger.setLevel(_level_from_env())
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(FORMATTER)
        root_logger.addHandler(handler)
        # Keep records out of whatever the host application configured.
        root_logger.propagate = False
        _root_configured = True


def init_logger(name: str) -> logging.Logger:
    _setup_root_logger()
    return logging.getLogger(name)


def set_level(level: int) -> None:
    """Overrides the level picked up from ``LOG_LEVEL``."""
    _setup_root_logger()
    logging.getLogger(_ROOT_LOGGER_NAME).setLevel(level)

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
"""Utility functions for UX."""
import contextlib
import sys
from typing import Iterator

import colorama

_SPINNER_PREFIX = f'{colorama.Style.BRIGHT}⚙︎{colorama.Style.RESET_ALL}'


@contextlib.contextmanager
def print_exception_no_traceback() -> Iterator[None]:
    """A context manager that prints out an exception without traceback.

    Mainly for UX: user-facing errors, e.g., a missing configuration field,
    should not print a long traceback.

    Example usage:

        with print_exception_no_traceback():
            if error():
                raise ValueError('...')
    """
    original_limit = getattr(sys, 'tracebacklimit', None)
    sys.tracebacklimit = 0
    try:
        yield
    finally:
        if original_limit is None:
            del sys.tracebacklimit
        else:
            sys.tracebacklimit = original_limit


def spinner_message(message: str) -> str:
    return f'{_SPINNER_PREFIX} {message}'


def finishing_message(message: str) -> str:
    return f'{colorama.Fore.GREEN}✓ {message}{colorama.Style.RESET_ALL}'


def error_message(message: str) -> str:
    return f'{colorama.Fore.RED}✗ {message}{colorama.Style.RESET_ALL}'

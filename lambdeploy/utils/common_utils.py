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
"""Utility functions shared across lambdeploy."""
import json
from typing import Any


def format_exception(e: BaseException, use_bracket: bool = False) -> str:
    """Formats an exception as '<ExceptionClass>: <message>'."""
    name = type(e).__name__
    if use_bracket:
        return f'[{name}] {e}'
    return f'{name}: {e}'


def dump_json(obj: Any) -> str:
    """Pretty-prints a remote response for debug logging.

    Falls back to ``str()`` for objects json cannot encode (e.g. the
    ``datetime`` values boto3 returns).
    """
    try:
        return json.dumps(obj, indent=2, sort_keys=True, default=str)
    except (TypeError, ValueError):
        return str(obj)

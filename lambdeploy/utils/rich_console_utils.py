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
"""Shared rich console."""
import threading
from typing import Optional

import rich.console

_console: Optional[rich.console.Console] = None
_console_lock = threading.Lock()


def get_console() -> rich.console.Console:
    global _console
    with _console_lock:
        if _console is None:
            _console = rich.console.Console(soft_wrap=True)
        return _console

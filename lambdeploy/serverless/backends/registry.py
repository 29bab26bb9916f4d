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
"""Registry for control-plane backends."""
import importlib
from typing import Dict, List

from lambdeploy.serverless import config as config_lib
from lambdeploy.serverless.backends import abstract_backend
from lambdeploy.utils import ux_utils

DEFAULT_PROVIDER = 'aws'

_REGISTRY: Dict[str, str] = {
    'aws': 'lambdeploy.serverless.backends.aws_backend.AWSControlPlaneClient',
}


def supported_providers() -> List[str]:
    return sorted(_REGISTRY)


def get_backend(
    provider: str,
    config: config_lib.DeployerConfig,
) -> abstract_backend.ControlPlaneClient:
    """Get a control-plane client for a given provider.

    The backend module is imported lazily so its SDK is only required when
    that provider is used.
    """
    backend_class_path = _REGISTRY.get(provider.lower())
    if backend_class_path is None:
        with ux_utils.print_exception_no_traceback():
            raise ValueError(
                f'Provider {provider!r} is not supported. Supported '
                f'providers: {", ".join(supported_providers())}.')

    module_path, class_name = backend_class_path.rsplit('.', 1)
    module = importlib.import_module(module_path)
    cls = getattr(module, class_name)
    return cls(config)

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
"""Creates or updates a function's code and configuration."""
from typing import Any, Dict

from lambdeploy import deploy_logging
from lambdeploy.serverless import data_models
from lambdeploy.serverless.backends import abstract_backend

logger = deploy_logging.init_logger(__name__)

# Carried by a create, but applied by the code update on an existing
# function; a configuration update must not repeat them.
_CODE_FIELDS = ('Code', 'Publish')


def function_payload(spec: data_models.FunctionSpec, remote_name: str,
                     role: str, archive: bytes) -> Dict[str, Any]:
    """The full create payload for a function."""
    vpc = spec.vpc or data_models.VpcConfig()
    return {
        'FunctionName': remote_name,
        'Runtime': spec.runtime,
        'MemorySize': spec.memory_mb or data_models.DEFAULT_MEMORY_MB,
        'Timeout': spec.timeout_seconds or data_models.DEFAULT_TIMEOUT_SECONDS,
        'Description': spec.description,
        'Role': role,
        'Handler': spec.handler,
        'Code': {
            'ZipFile': archive
        },
        'Environment': {
            'Variables': dict(spec.env)
        },
        'VpcConfig': {
            'SubnetIds': list(vpc.subnet_ids),
            'SecurityGroupIds': list(vpc.security_group_ids),
        },
        'Publish': True,
    }


def deploy(client: abstract_backend.ControlPlaneClient,
           function: data_models.RegisteredFunction, remote_name: str,
           role: str) -> data_models.FunctionConfiguration:
    """Upserts a function.

    An existing function gets its code updated first, then its
    configuration. A missing one is created in a single call.

    Returns:
        The resulting remote configuration.
    """
    payload = function_payload(function.spec, remote_name, role,
                               function.archive)
    existing = client.get_function(remote_name)
    if existing is None:
        logger.info(f'Create Function {remote_name!r}')
        result = client.create_function(payload)
    else:
        logger.info(f'Update Function Code {remote_name!r}')
        client.update_function_code(remote_name, function.archive,
                                    payload['Publish'])
        logger.info(f'Update Function Configuration {remote_name!r}')
        config = {
            k: v for k, v in payload.items() if k not in _CODE_FIELDS
        }
        result = client.update_function_configuration(config)
    logger.debug(f'Function {result.name!r} is {result.arn}')
    return result

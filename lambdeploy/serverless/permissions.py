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
"""Invocation permissions for trigger sources.

Permission statements cannot be updated in place, so each deploy deletes
the statement and adds it again. The grant is best-effort: a failed delete
usually means the statement never existed, and a failed add is logged and
leaves the rest of the session to proceed.
"""
from lambdeploy import deploy_logging
from lambdeploy.serverless import exceptions as serverless_exceptions
from lambdeploy.serverless.backends import abstract_backend
from lambdeploy.utils import common_utils

logger = deploy_logging.init_logger(__name__)

API_GATEWAY_PRINCIPAL = 'apigateway.amazonaws.com'
EVENTS_PRINCIPAL = 'events.amazonaws.com'


def replace_permission(client: abstract_backend.ControlPlaneClient, *,
                       function_name: str, statement_id: str, principal: str,
                       source_arn: str, label: str) -> bool:
    """Deletes then re-adds a permission statement on a function.

    Args:
        label: Human-readable name of the grant, used in log messages.

    Returns:
        Whether the statement was added.
    """
    logger.info(f'Delete {label!r} Permission')
    try:
        client.remove_permission(function_name, statement_id)
    except serverless_exceptions.ControlPlaneError as e:
        logger.debug(f'Permission {statement_id!r} not removed: '
                     f'{common_utils.format_exception(e)}')

    logger.info(f'Add {label!r} Permission')
    try:
        result = client.add_permission(function_name, statement_id, principal,
                                       source_arn)
    except serverless_exceptions.ControlPlaneError as e:
        logger.warning(f'Failed to add permission {statement_id!r}: '
                       f'{common_utils.format_exception(e)}')
        return False
    logger.debug(common_utils.dump_json(result))
    return True

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
"""Binds schedule rules (event triggers) to functions."""
from lambdeploy import deploy_logging
from lambdeploy.serverless import config as config_lib
from lambdeploy.serverless import data_models
from lambdeploy.serverless import exceptions as serverless_exceptions
from lambdeploy.serverless import permissions
from lambdeploy.serverless import utils
from lambdeploy.serverless.backends import abstract_backend
from lambdeploy.utils import common_utils

logger = deploy_logging.init_logger(__name__)


def statement_id(function_name: str, trigger: data_models.EventTrigger) -> str:
    """The id shared by a trigger's permission statement and its rule."""
    return utils.sanitize_statement_id(f'{function_name}-{trigger.name}',
                                       max_len=utils.RULE_NAME_MAX_LEN)


def replace_permission(client: abstract_backend.ControlPlaneClient,
                       config: config_lib.DeployerConfig,
                       trigger: data_models.EventTrigger,
                       function: data_models.FunctionConfiguration) -> bool:
    rule_name = statement_id(function.name, trigger)
    return permissions.replace_permission(
        client,
        function_name=function.name,
        statement_id=rule_name,
        principal=permissions.EVENTS_PRINCIPAL,
        source_arn=utils.rule_arn(config.region, config.account_id, rule_name),
        label=f'{config.stage_name}/{trigger.name}',
    )


def replace_rule(client: abstract_backend.ControlPlaneClient,
                 config: config_lib.DeployerConfig,
                 trigger: data_models.EventTrigger,
                 function: data_models.FunctionConfiguration) -> str:
    """Deletes then re-creates the trigger's rule.

    Returns:
        The rule ARN. When the rule cannot be created, the ARN it would have
        had; the failure is logged and the target step reports it.
    """
    rule_name = statement_id(function.name, trigger)
    label = f'{config.stage_name}/{trigger.name}'

    logger.info(f'Delete Event Rule {label!r}')
    try:
        client.delete_rule(rule_name)
    except serverless_exceptions.ControlPlaneError as e:
        logger.debug(f'Rule {rule_name!r} not deleted: '
                     f'{common_utils.format_exception(e)}')

    logger.info(f'Put Event Rule {label!r}')
    try:
        return client.put_rule(rule_name, trigger.schedule,
                               trigger.description)
    except serverless_exceptions.ControlPlaneError as e:
        logger.warning(f'Failed to put rule {rule_name!r}: '
                       f'{common_utils.format_exception(e)}')
        return utils.rule_arn(config.region, config.account_id, rule_name)


def replace_targets(client: abstract_backend.ControlPlaneClient,
                    config: config_lib.DeployerConfig,
                    trigger: data_models.EventTrigger,
                    function: data_models.FunctionConfiguration) -> None:
    """Leaves exactly one target on the rule: the function."""
    rule_name = statement_id(function.name, trigger)
    label = f'{config.stage_name}/{trigger.name}'

    target_ids = client.list_targets(rule_name)
    if target_ids:
        logger.info(f'Delete Rule Targets {label!r}')
        client.remove_targets(rule_name, target_ids)

    logger.info(f'Create Rule Target {label!r}')
    client.put_target(rule_name, trigger.name, function.arn)


def bind(client: abstract_backend.ControlPlaneClient,
         config: config_lib.DeployerConfig, trigger: data_models.EventTrigger,
         function: data_models.FunctionConfiguration) -> str:
    """Wires a schedule rule to its function.

    Returns:
        The rule ARN.
    """
    replace_permission(client, config, trigger, function)
    arn = replace_rule(client, config, trigger, function)
    replace_targets(client, config, trigger, function)
    return arn

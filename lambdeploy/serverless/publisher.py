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
"""Publishes deployment snapshots of an API container."""
from lambdeploy import deploy_logging
from lambdeploy.serverless import config as config_lib
from lambdeploy.serverless import data_models
from lambdeploy.serverless.backends import abstract_backend

logger = deploy_logging.init_logger(__name__)


def snapshot_description(config: config_lib.DeployerConfig,
                         function_name: str,
                         trigger: data_models.APITrigger) -> str:
    return (f'{config.stage_name}__{function_name}__'
            f'{trigger.method}{trigger.path}')


def upsert_deployment(
        client: abstract_backend.ControlPlaneClient,
        config: config_lib.DeployerConfig,
        container: data_models.APIContainer, function_name: str,
        trigger: data_models.APITrigger) -> data_models.DeploymentSnapshot:
    """Publishes the container to the stage unless it already was.

    A snapshot is identified by its description; if one with the same
    description exists, it is returned and nothing is published.
    """
    description = snapshot_description(config, function_name, trigger)
    for snapshot in client.list_deployments(container.id):
        if snapshot.description == description:
            logger.debug(f'Deployment {description!r} already exists.')
            return snapshot

    logger.info(f'Create {config.stage_name!r} deployment')
    snapshot = client.create_deployment(container.id, config.stage_name,
                                        description)
    logger.debug(f'Created deployment {snapshot.id!r}.')
    return snapshot

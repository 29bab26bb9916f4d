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
"""Binds HTTP routes (API triggers) to functions.

Methods, responses and integrations are looked up and only created when
absent. Order matters: the method must exist before its response and
integration, and the integration before its response.
"""
import dataclasses
from typing import Any, Callable, Dict, Optional

from lambdeploy import deploy_logging
from lambdeploy.serverless import config as config_lib
from lambdeploy.serverless import data_models
from lambdeploy.serverless import permissions
from lambdeploy.serverless import utils
from lambdeploy.serverless.backends import abstract_backend
from lambdeploy.utils import common_utils

logger = deploy_logging.init_logger(__name__)

STATUS_OK = '200'
EMPTY_MODEL = 'Empty'
# Functions are always invoked with POST, whatever the public method is.
INTEGRATION_HTTP_METHOD = 'POST'
TEMPLATE_CONTENT_TYPE = 'application/json'

# Maps the incoming request onto the function's event payload.
REQUEST_TEMPLATE = """{
  "body": $input.json('$'),
  "headers": {
    #foreach($header in $input.params().header.keySet())
    "$header": "$util.escapeJavaScript($input.params().header.get($header))" #if($foreach.hasNext),#end
    #end
  },
  "method": "$context.httpMethod",
  "params": {
    #foreach($param in $input.params().path.keySet())
    "$param": "$util.escapeJavaScript($input.params().path.get($param))" #if($foreach.hasNext),#end
    #end
  },
  "query": {
    #foreach($queryParam in $input.params().querystring.keySet())
    "$queryParam": "$util.escapeJavaScript($input.params().querystring.get($queryParam))" #if($foreach.hasNext),#end
    #end
  }
}
"""


@dataclasses.dataclass(frozen=True)
class APIBinding:
    """Everything needed to wire one route to one function."""
    config: config_lib.DeployerConfig
    container: data_models.APIContainer
    node: data_models.ResourceNode
    trigger: data_models.APITrigger
    function: data_models.FunctionConfiguration

    @property
    def http_method(self) -> str:
        return self.trigger.method


def statement_id(config: config_lib.DeployerConfig,
                 container: data_models.APIContainer,
                 function_name: str,
                 trigger: data_models.APITrigger) -> str:
    """The permission statement id of a route.

    Derived from the stage, the container name, the function name and the
    route, so repeated deploys address the same statement and two routes of
    one function do not overwrite each other.
    """
    return utils.sanitize_statement_id(
        f'{config.stage_name}-{container.name}-{function_name}-'
        f'{trigger.method}{trigger.path}')


def _get_or_create(lookup: Callable[[], Optional[Dict[str, Any]]],
                   create: Callable[[], Dict[str, Any]],
                   message: str) -> Dict[str, Any]:
    existing = lookup()
    if existing is not None:
        return existing
    logger.info(message)
    created = create()
    logger.debug(common_utils.dump_json(created))
    return created


def upsert_method(client: abstract_backend.ControlPlaneClient,
                  binding: APIBinding) -> Dict[str, Any]:
    container_id, resource_id = binding.container.id, binding.node.id
    method = client.get_method(container_id, resource_id, binding.http_method)
    if method is not None:
        return method

    logger.info(f'Put Method {binding.trigger.route!r}')
    url = utils.invoke_url(binding.container.id, binding.config.region,
                           binding.config.stage_name, binding.trigger.path)
    logger.info(f'{binding.http_method} {url}')
    method = client.put_method(container_id, resource_id, binding.http_method)
    logger.debug(common_utils.dump_json(method))
    return method


def upsert_method_response(client: abstract_backend.ControlPlaneClient,
                           binding: APIBinding) -> Dict[str, Any]:
    container_id, resource_id = binding.container.id, binding.node.id
    return _get_or_create(
        lambda: client.get_method_response(container_id, resource_id,
                                           binding.http_method, STATUS_OK),
        lambda: client.put_method_response(
            container_id, resource_id, binding.http_method, STATUS_OK,
            {binding.trigger.content_type: EMPTY_MODEL}),
        f'Put Method Response {binding.trigger.route!r}',
    )


def upsert_integration(client: abstract_backend.ControlPlaneClient,
                       binding: APIBinding) -> Dict[str, Any]:
    container_id, resource_id = binding.container.id, binding.node.id
    uri = utils.integration_uri(binding.config.region, binding.function.arn)
    return _get_or_create(
        lambda: client.get_integration(container_id, resource_id,
                                       binding.http_method),
        lambda: client.put_integration(
            container_id,
            resource_id,
            binding.http_method,
            integration_http_method=INTEGRATION_HTTP_METHOD,
            uri=uri,
            request_templates={TEMPLATE_CONTENT_TYPE: REQUEST_TEMPLATE}),
        f'Put Integration {binding.trigger.route!r}',
    )


def upsert_integration_response(client: abstract_backend.ControlPlaneClient,
                                binding: APIBinding) -> Dict[str, Any]:
    container_id, resource_id = binding.container.id, binding.node.id
    return _get_or_create(
        lambda: client.get_integration_response(
            container_id, resource_id, binding.http_method, STATUS_OK),
        lambda: client.put_integration_response(
            container_id, resource_id, binding.http_method, STATUS_OK,
            {binding.trigger.content_type: ''}),
        f'Put Integration Response {binding.trigger.route!r}',
    )


def replace_permission(client: abstract_backend.ControlPlaneClient,
                       binding: APIBinding) -> bool:
    config = binding.config
    source_arn = utils.execute_api_arn(config.region, config.account_id,
                                       binding.container.id,
                                       binding.http_method,
                                       binding.trigger.path)
    return permissions.replace_permission(
        client,
        function_name=binding.function.name,
        statement_id=statement_id(config, binding.container,
                                  binding.function.name, binding.trigger),
        principal=permissions.API_GATEWAY_PRINCIPAL,
        source_arn=source_arn,
        label=f'{config.stage_name} {binding.trigger.route}',
    )


def bind(client: abstract_backend.ControlPlaneClient,
         binding: APIBinding) -> str:
    """Wires a route to its function.

    Returns:
        The public invoke URL of the route.
    """
    upsert_method(client, binding)
    upsert_method_response(client, binding)
    upsert_integration(client, binding)
    upsert_integration_response(client, binding)
    replace_permission(client, binding)
    return utils.invoke_url(binding.container.id, binding.config.region,
                            binding.config.stage_name, binding.trigger.path)

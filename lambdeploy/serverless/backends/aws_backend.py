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
"""Amazon Web Services (AWS) backend for the serverless control plane.

REST APIs, resources, methods, integrations and deployments live in API
Gateway; functions and their permissions in Lambda; schedule rules and
their targets in CloudWatch Events.
"""
import contextlib
from typing import Any, Callable, Dict, Iterator, List, Optional

import boto3
from botocore import exceptions as botocore_exceptions

from lambdeploy import deploy_logging
from lambdeploy.serverless import config as config_lib
from lambdeploy.serverless import data_models
from lambdeploy.serverless import exceptions as serverless_exceptions
from lambdeploy.serverless.backends import abstract_backend

logger = deploy_logging.init_logger(__name__)

# Error codes the AWS services use for a missing object.
_NOT_FOUND_CODES = frozenset({'NotFoundException', 'ResourceNotFoundException'})

_AUTHORIZATION_NONE = 'NONE'
_INTEGRATION_TYPE = 'AWS'
_CONTENT_HANDLING = 'CONVERT_TO_TEXT'


@contextlib.contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    """Re-raises botocore failures as control-plane errors."""
    try:
        yield
    except botocore_exceptions.ClientError as e:
        error = e.response.get('Error', {})
        code = error.get('Code', '')
        message = f'{operation} failed: {error.get("Message") or e}'
        if code in _NOT_FOUND_CODES:
            raise serverless_exceptions.ResourceNotFoundError(
                message, operation=operation, code=code) from e
        raise serverless_exceptions.ControlPlaneError(
            message, operation=operation, code=code) from e
    except botocore_exceptions.BotoCoreError as e:
        raise serverless_exceptions.ControlPlaneError(
            f'{operation} failed: {e}', operation=operation) from e


def _strip_metadata(response: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in response.items() if k != 'ResponseMetadata'}


def _to_function_configuration(
        response: Dict[str, Any]) -> data_models.FunctionConfiguration:
    return data_models.FunctionConfiguration(
        name=response['FunctionName'],
        arn=response['FunctionArn'],
        version=response.get('Version'),
    )


class AWSControlPlaneClient(abstract_backend.ControlPlaneClient):
    """AWS implementation of the control-plane client."""

    def __init__(self,
                 config: config_lib.DeployerConfig,
                 session: Optional[boto3.session.Session] = None) -> None:
        super().__init__()
        if session is None:
            session = boto3.session.Session(
                aws_access_key_id=config.access_key_id,
                aws_secret_access_key=config.secret_access_key,
                region_name=config.region,
            )
        self.session = session
        self.gateway_client = session.client('apigateway')
        self.lambda_client = session.client('lambda')
        self.events_client = session.client('events')

    def _call(self, operation: str, method: Callable[..., Dict[str, Any]],
              **kwargs: Any) -> Dict[str, Any]:
        with _translate_errors(operation):
            return _strip_metadata(method(**kwargs))

    def _lookup(self, operation: str, method: Callable[..., Dict[str, Any]],
                **kwargs: Any) -> Optional[Dict[str, Any]]:
        try:
            return self._call(operation, method, **kwargs)
        except serverless_exceptions.ResourceNotFoundError:
            return None

    def _paginate(self, client: Any, operation: str, result_key: str,
                  **kwargs: Any) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        with _translate_errors(operation):
            for page in client.get_paginator(operation).paginate(**kwargs):
                items.extend(page.get(result_key, []))
        return items

    # --- API containers and resources ---

    def list_containers(self) -> List[data_models.APIContainer]:
        items = self._paginate(self.gateway_client, 'get_rest_apis', 'items')
        return [
            data_models.APIContainer(id=item['id'], name=item.get('name', ''))
            for item in items
        ]

    def create_container(self, name: str) -> data_models.APIContainer:
        response = self._call('create_rest_api',
                              self.gateway_client.create_rest_api,
                              name=name)
        return data_models.APIContainer(id=response['id'],
                                        name=response['name'])

    def list_resources(self,
                       container_id: str) -> List[data_models.ResourceNode]:
        items = self._paginate(self.gateway_client,
                               'get_resources',
                               'items',
                               restApiId=container_id)
        return [
            data_models.ResourceNode(path=item['path'], id=item['id'])
            for item in items
            if item.get('path')
        ]

    def create_resource(self, container_id: str, parent_id: str,
                        path_part: str) -> data_models.ResourceNode:
        response = self._call('create_resource',
                              self.gateway_client.create_resource,
                              restApiId=container_id,
                              parentId=parent_id,
                              pathPart=path_part)
        return data_models.ResourceNode(path=response['path'],
                                        id=response['id'])

    # --- Methods and integrations ---

    def get_method(self, container_id: str, resource_id: str,
                   http_method: str) -> Optional[Dict[str, Any]]:
        return self._lookup('get_method',
                            self.gateway_client.get_method,
                            restApiId=container_id,
                            resourceId=resource_id,
                            httpMethod=http_method)

    def put_method(self, container_id: str, resource_id: str,
                   http_method: str) -> Dict[str, Any]:
        return self._call('put_method',
                          self.gateway_client.put_method,
                          restApiId=container_id,
                          resourceId=resource_id,
                          httpMethod=http_method,
                          authorizationType=_AUTHORIZATION_NONE,
                          requestParameters={})

    def get_method_response(self, container_id: str, resource_id: str,
                            http_method: str,
                            status_code: str) -> Optional[Dict[str, Any]]:
        return self._lookup('get_method_response',
                            self.gateway_client.get_method_response,
                            restApiId=container_id,
                            resourceId=resource_id,
                            httpMethod=http_method,
                            statusCode=status_code)

    def put_method_response(self, container_id: str, resource_id: str,
                            http_method: str, status_code: str,
                            response_models: Dict[str, str]) -> Dict[str, Any]:
        return self._call('put_method_response',
                          self.gateway_client.put_method_response,
                          restApiId=container_id,
                          resourceId=resource_id,
                          httpMethod=http_method,
                          statusCode=status_code,
                          responseModels=response_models)

    def get_integration(self, container_id: str, resource_id: str,
                        http_method: str) -> Optional[Dict[str, Any]]:
        return self._lookup('get_integration',
                            self.gateway_client.get_integration,
                            restApiId=container_id,
                            resourceId=resource_id,
                            httpMethod=http_method)

    def put_integration(self, container_id: str, resource_id: str,
                        http_method: str, *, integration_http_method: str,
                        uri: str,
                        request_templates: Dict[str, str]) -> Dict[str, Any]:
        return self._call('put_integration',
                          self.gateway_client.put_integration,
                          restApiId=container_id,
                          resourceId=resource_id,
                          httpMethod=http_method,
                          type=_INTEGRATION_TYPE,
                          integrationHttpMethod=integration_http_method,
                          uri=uri,
                          requestTemplates=request_templates,
                          contentHandling=_CONTENT_HANDLING)

    def get_integration_response(self, container_id: str, resource_id: str,
                                 http_method: str,
                                 status_code: str) -> Optional[Dict[str, Any]]:
        return self._lookup('get_integration_response',
                            self.gateway_client.get_integration_response,
                            restApiId=container_id,
                            resourceId=resource_id,
                            httpMethod=http_method,
                            statusCode=status_code)

    def put_integration_response(
            self, container_id: str, resource_id: str, http_method: str,
            status_code: str,
            response_templates: Dict[str, str]) -> Dict[str, Any]:
        return self._call('put_integration_response',
                          self.gateway_client.put_integration_response,
                          restApiId=container_id,
                          resourceId=resource_id,
                          httpMethod=http_method,
                          statusCode=status_code,
                          responseTemplates=response_templates)

    # --- Deployments ---

    def list_deployments(
            self, container_id: str) -> List[data_models.DeploymentSnapshot]:
        items = self._paginate(self.gateway_client,
                               'get_deployments',
                               'items',
                               restApiId=container_id)
        return [
            data_models.DeploymentSnapshot(
                id=item['id'], description=item.get('description', ''))
            for item in items
        ]

    def create_deployment(self, container_id: str, stage_name: str,
                          description: str) -> data_models.DeploymentSnapshot:
        response = self._call('create_deployment',
                              self.gateway_client.create_deployment,
                              restApiId=container_id,
                              stageName=stage_name,
                              stageDescription=stage_name,
                              description=description)
        return data_models.DeploymentSnapshot(
            id=response['id'], description=response.get('description', ''))

    # --- Permissions ---

    def add_permission(self, function_name: str, statement_id: str,
                       principal: str, source_arn: str) -> Dict[str, Any]:
        return self._call('add_permission',
                          self.lambda_client.add_permission,
                          FunctionName=function_name,
                          StatementId=statement_id,
                          Action='lambda:InvokeFunction',
                          Principal=principal,
                          SourceArn=source_arn)

    def remove_permission(self, function_name: str, statement_id: str) -> None:
        self._call('remove_permission',
                   self.lambda_client.remove_permission,
                   FunctionName=function_name,
                   StatementId=statement_id)

    # --- Schedule rules ---

    def put_rule(self, name: str, schedule: str, description: str) -> str:
        response = self._call('put_rule',
                              self.events_client.put_rule,
                              Name=name,
                              ScheduleExpression=schedule,
                              Description=description)
        return response['RuleArn']

    def delete_rule(self, name: str) -> None:
        self._call('delete_rule', self.events_client.delete_rule, Name=name)

    def list_targets(self, rule_name: str) -> List[str]:
        targets = self._paginate(self.events_client,
                                 'list_targets_by_rule',
                                 'Targets',
                                 Rule=rule_name)
        return [target['Id'] for target in targets]

    def remove_targets(self, rule_name: str, target_ids: List[str]) -> None:
        response = self._call('remove_targets',
                              self.events_client.remove_targets,
                              Rule=rule_name,
                              Ids=target_ids)
        if response.get('FailedEntryCount'):
            raise serverless_exceptions.ControlPlaneError(
                f'remove_targets failed for rule {rule_name!r}: '
                f'{response.get("FailedEntries")}',
                operation='remove_targets')

    def put_target(self, rule_name: str, target_id: str, arn: str) -> None:
        response = self._call('put_targets',
                              self.events_client.put_targets,
                              Rule=rule_name,
                              Targets=[{'Id': target_id, 'Arn': arn}])
        if response.get('FailedEntryCount'):
            raise serverless_exceptions.ControlPlaneError(
                f'put_targets failed for rule {rule_name!r}: '
                f'{response.get("FailedEntries")}',
                operation='put_targets')

    # --- Functions ---

    def get_function(
            self, name: str) -> Optional[data_models.FunctionConfiguration]:
        response = self._lookup('get_function',
                                self.lambda_client.get_function,
                                FunctionName=name)
        if response is None:
            return None
        return _to_function_configuration(response['Configuration'])

    def create_function(
            self,
            config: Dict[str, Any]) -> data_models.FunctionConfiguration:
        response = self._call('create_function',
                              self.lambda_client.create_function, **config)
        return _to_function_configuration(response)

    def update_function_code(
            self, name: str, zip_file: bytes,
            publish: bool) -> data_models.FunctionConfiguration:
        response = self._call('update_function_code',
                              self.lambda_client.update_function_code,
                              FunctionName=name,
                              ZipFile=zip_file,
                              Publish=publish)
        # Lambda rejects a configuration update while the code update is
        # still being applied.
        logger.debug(f'Waiting for {name!r} code update to complete.')
        with _translate_errors('wait_function_updated'):
            self.lambda_client.get_waiter('function_updated_v2').wait(
                FunctionName=name)
        return _to_function_configuration(response)

    def update_function_configuration(
            self,
            config: Dict[str, Any]) -> data_models.FunctionConfiguration:
        response = self._call('update_function_configuration',
                              self.lambda_client.update_function_configuration,
                              **config)
        return _to_function_configuration(response)

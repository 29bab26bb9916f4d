"""Shared fixtures: an in-memory control plane and ready-made deployers."""

import itertools
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from lambdeploy.serverless import data_models
from lambdeploy.serverless import exceptions
from lambdeploy.serverless.config import DeployerConfig
from lambdeploy.serverless.deployer import Deployer

ROOT_ID = 'root'
ACCOUNT_ID = '123456789012'

MethodKey = Tuple[str, str, str]
ResponseKey = Tuple[str, str, str, str]


class FakeControlPlane:
    """Control plane kept in dicts; every call is appended to ``calls``.

    ``fail`` maps an operation name to an exception raised on its next calls,
    ``hooks`` maps an operation name to a callable run before it.
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.fail: Dict[str, Exception] = {}
        self.hooks: Dict[str, Callable[[], None]] = {}

        self.containers: Dict[str, data_models.APIContainer] = {}
        self.resources: Dict[str, Dict[str, data_models.ResourceNode]] = {}
        self.methods: Dict[MethodKey, Dict[str, Any]] = {}
        self.method_responses: Dict[ResponseKey, Dict[str, Any]] = {}
        self.integrations: Dict[MethodKey, Dict[str, Any]] = {}
        self.integration_responses: Dict[ResponseKey, Dict[str, Any]] = {}
        self.deployments: Dict[str, List[data_models.DeploymentSnapshot]] = {}
        self.permissions: Dict[str, Dict[str, Dict[str, str]]] = {}
        self.rules: Dict[str, Dict[str, str]] = {}
        self.targets: Dict[str, Dict[str, str]] = {}
        self.functions: Dict[str, Dict[str, Any]] = {}

    # -- helpers ------------------------------------------------------------

    def _record(self, op: str, *args: Any) -> None:
        self.calls.append((op, args))
        hook = self.hooks.get(op)
        if hook is not None:
            hook()
        if op in self.fail:
            raise self.fail[op]

    def _new_id(self, prefix: str) -> str:
        return f'{prefix}{next(self._ids)}'

    def ops(self, *names: str) -> List[Tuple[str, Tuple[Any, ...]]]:
        return [call for call in self.calls if call[0] in names]

    def count(self, name: str) -> int:
        return len(self.ops(name))

    def _path_of(self, container_id: str, resource_id: str) -> str:
        for node in self.resources[container_id].values():
            if node.id == resource_id:
                return node.path
        raise exceptions.ResourceNotFoundError(f'no resource {resource_id}')

    def _function_config(self,
                         name: str) -> data_models.FunctionConfiguration:
        return data_models.FunctionConfiguration(
            name=name,
            arn=f'arn:aws:lambda:us-east-1:{ACCOUNT_ID}:function:{name}')

    # -- containers and resources -------------------------------------------

    def list_containers(self):
        self._record('list_containers')
        return list(self.containers.values())

    def create_container(self, name):
        self._record('create_container', name)
        container = data_models.APIContainer(id=self._new_id('api'),
                                             name=name)
        self.containers[container.id] = container
        self.resources[container.id] = {
            '/': data_models.ResourceNode(path='/', id=ROOT_ID)
        }
        self.deployments[container.id] = []
        return container

    def list_resources(self, container_id):
        self._record('list_resources', container_id)
        return list(self.resources[container_id].values())

    def create_resource(self, container_id, parent_id, path_part):
        self._record('create_resource', container_id, parent_id, path_part)
        parent_path = self._path_of(container_id, parent_id)
        path = parent_path.rstrip('/') + '/' + path_part
        node = data_models.ResourceNode(path=path, id=self._new_id('res'))
        self.resources[container_id][path] = node
        return node

    # -- methods and integrations -------------------------------------------

    def get_method(self, container_id, resource_id, http_method):
        self._record('get_method', container_id, resource_id, http_method)
        return self.methods.get((container_id, resource_id, http_method))

    def put_method(self, container_id, resource_id, http_method):
        self._record('put_method', container_id, resource_id, http_method)
        method = {'httpMethod': http_method, 'authorizationType': 'NONE'}
        self.methods[(container_id, resource_id, http_method)] = method
        return method

    def get_method_response(self, container_id, resource_id, http_method,
                            status_code):
        key = (container_id, resource_id, http_method, status_code)
        self._record('get_method_response', *key)
        return self.method_responses.get(key)

    def put_method_response(self, container_id, resource_id, http_method,
                            status_code, response_models):
        key = (container_id, resource_id, http_method, status_code)
        self._record('put_method_response', *key, response_models)
        response = {
            'statusCode': status_code,
            'responseModels': response_models
        }
        self.method_responses[key] = response
        return response

    def get_integration(self, container_id, resource_id, http_method):
        self._record('get_integration', container_id, resource_id,
                     http_method)
        return self.integrations.get((container_id, resource_id, http_method))

    def put_integration(self, container_id, resource_id, http_method, *,
                        integration_http_method, uri, request_templates):
        self._record('put_integration', container_id, resource_id,
                     http_method)
        integration = {
            'httpMethod': integration_http_method,
            'uri': uri,
            'requestTemplates': request_templates,
        }
        self.integrations[(container_id, resource_id, http_method)] = (
            integration)
        return integration

    def get_integration_response(self, container_id, resource_id,
                                 http_method, status_code):
        key = (container_id, resource_id, http_method, status_code)
        self._record('get_integration_response', *key)
        return self.integration_responses.get(key)

    def put_integration_response(self, container_id, resource_id,
                                 http_method, status_code,
                                 response_templates):
        key = (container_id, resource_id, http_method, status_code)
        self._record('put_integration_response', *key)
        response = {
            'statusCode': status_code,
            'responseTemplates': response_templates
        }
        self.integration_responses[key] = response
        return response

    # -- deployments --------------------------------------------------------

    def list_deployments(self, container_id):
        self._record('list_deployments', container_id)
        return list(self.deployments[container_id])

    def create_deployment(self, container_id, stage_name, description):
        self._record('create_deployment', container_id, stage_name,
                     description)
        snapshot = data_models.DeploymentSnapshot(id=self._new_id('dep'),
                                                  description=description)
        self.deployments[container_id].append(snapshot)
        return snapshot

    # -- permissions --------------------------------------------------------

    def add_permission(self, function_name, statement_id, principal,
                       source_arn):
        self._record('add_permission', function_name, statement_id,
                     principal, source_arn)
        statements = self.permissions.setdefault(function_name, {})
        if statement_id in statements:
            raise exceptions.ControlPlaneError(
                'statement exists', code='ResourceConflictException')
        statements[statement_id] = {
            'principal': principal,
            'source_arn': source_arn
        }
        return {'Statement': statement_id}

    def remove_permission(self, function_name, statement_id):
        self._record('remove_permission', function_name, statement_id)
        statements = self.permissions.get(function_name, {})
        if statement_id not in statements:
            raise exceptions.ResourceNotFoundError('no such statement')
        del statements[statement_id]

    # -- rules --------------------------------------------------------------

    def put_rule(self, name, schedule, description):
        self._record('put_rule', name, schedule, description)
        self.rules[name] = {'schedule': schedule, 'description': description}
        self.targets.setdefault(name, {})
        return f'arn:aws:events:us-east-1:{ACCOUNT_ID}:rule/{name}'

    def delete_rule(self, name):
        self._record('delete_rule', name)
        if name not in self.rules:
            raise exceptions.ResourceNotFoundError('no such rule')
        del self.rules[name]

    def list_targets(self, rule_name):
        self._record('list_targets', rule_name)
        return list(self.targets.get(rule_name, {}))

    def remove_targets(self, rule_name, target_ids):
        self._record('remove_targets', rule_name, tuple(target_ids))
        for target_id in target_ids:
            self.targets[rule_name].pop(target_id, None)

    def put_target(self, rule_name, target_id, arn):
        self._record('put_target', rule_name, target_id, arn)
        self.targets.setdefault(rule_name, {})[target_id] = arn

    # -- functions ----------------------------------------------------------

    def get_function(self,
                     name) -> Optional[data_models.FunctionConfiguration]:
        self._record('get_function', name)
        if name not in self.functions:
            return None
        return self._function_config(name)

    def create_function(self, config):
        self._record('create_function', config['FunctionName'])
        self.functions[config['FunctionName']] = dict(config)
        return self._function_config(config['FunctionName'])

    def update_function_code(self, name, zip_file, publish):
        self._record('update_function_code', name, publish)
        self.functions[name]['Code'] = {'ZipFile': zip_file}
        return self._function_config(name)

    def update_function_configuration(self, config):
        self._record('update_function_configuration', config['FunctionName'],
                     tuple(sorted(config)))
        self.functions[config['FunctionName']].update(config)
        return self._function_config(config['FunctionName'])


@pytest.fixture
def config():
    """A complete configuration for stage 'dev'."""
    return DeployerConfig(
        api_name='GedditQuoteFetcher',
        stage_name='dev',
        region='us-east-1',
        access_key_id='AKIDEXAMPLE',
        secret_access_key='secret',
        account_id=ACCOUNT_ID,
        role=f'arn:aws:iam::{ACCOUNT_ID}:role/lambda',
    )


@pytest.fixture
def fake():
    return FakeControlPlane()


@pytest.fixture
def deployer(config, fake):
    return Deployer(config, fake)


@pytest.fixture
def quote_file(tmp_path):
    """A function source file named quote.js."""
    path = tmp_path / 'quote.js'
    path.write_text(
        "exports.get = (event, context, cb) => cb(null, 'quote')\n")
    return path


@pytest.fixture
def quote_spec(quote_file):
    return data_models.FunctionSpec(
        name='Geddit-Quotes',
        handler='quote.get',
        files=[str(quote_file)],
        description='Geddit Quotes',
        runtime='nodejs18.x',
    )

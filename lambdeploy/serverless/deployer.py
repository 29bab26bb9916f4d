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
"""Deployer: the orchestrator that converges remote state to declarations.

Functions and triggers are registered up front; `deploy()` then runs the
phases in a fixed order, each failing fast:

1. Resolve the API container and load its resource tree (only if any
   trigger is an HTTP route).
2. Upsert every function's code and configuration.
3. Bind every trigger to its function.
4. Publish a deployment snapshot for every HTTP route.
"""
import copy
import threading
import typing
from typing import Callable, Dict, List, Optional, Tuple

from lambdeploy import deploy_logging
from lambdeploy.serverless import api_trigger
from lambdeploy.serverless import config as config_lib
from lambdeploy.serverless import data_models
from lambdeploy.serverless import event_trigger
from lambdeploy.serverless import exceptions as serverless_exceptions
from lambdeploy.serverless import function_deployer
from lambdeploy.serverless import publisher
from lambdeploy.serverless import resource_tree
from lambdeploy.serverless import utils
from lambdeploy.serverless.backends import abstract_backend

logger = deploy_logging.init_logger(__name__)


class Deployer:
    """Registers functions and triggers, and deploys them.

    One Deployer runs at most one deploy at a time; a concurrent or
    re-entrant `deploy()` raises AlreadyDeployingError without touching the
    control plane.
    """

    def __init__(self, config: config_lib.DeployerConfig,
                 client: abstract_backend.ControlPlaneClient) -> None:
        self.config = config
        self._client = client
        self._functions: Dict[int, data_models.RegisteredFunction] = {}
        self._triggers: List[data_models.Trigger] = []
        self._next_function_id = 1
        self._deploy_lock = threading.Lock()

        # Per-session state, reset by clean().
        self._container: Optional[data_models.APIContainer] = None
        self._tree: Optional[resource_tree.ResourceTree] = None
        self._deployed: Dict[int, data_models.FunctionConfiguration] = {}

    @property
    def functions(self) -> List[data_models.RegisteredFunction]:
        return list(self._functions.values())

    @property
    def triggers(self) -> List[data_models.Trigger]:
        return list(self._triggers)

    @property
    def is_deploying(self) -> bool:
        return self._deploy_lock.locked()

    def register_function(
            self,
            spec: data_models.FunctionSpec) -> data_models.RegisteredFunction:
        """Accepts a function and packages its code.

        Raises:
            RegistrationError: If the entry point matches no declared file, a
                declared file does not exist, or the name is already taken.
        """
        if any(f.name == spec.name for f in self._functions.values()):
            raise serverless_exceptions.RegistrationError(
                f'Function {spec.name!r} is already registered.')
        archive = utils.package_code(spec.files, spec.handler)
        function = data_models.RegisteredFunction(
            id=self._next_function_id,
            spec=copy.deepcopy(spec),
            archive=archive,
        )
        self._next_function_id += 1
        self._functions[function.id] = function
        logger.debug(f'Registered function {spec.name!r} as #{function.id}.')
        return function

    def register_trigger(self, trigger: data_models.Trigger) -> None:
        """Adds a trigger for a function registered on this deployer.

        Raises:
            BindingError: If the trigger's function id is unknown.
        """
        if trigger.function_id not in self._functions:
            raise serverless_exceptions.BindingError(
                f'Trigger {trigger!r} references function id '
                f'{trigger.function_id}, which is not registered.')
        self._triggers.append(trigger)

    def clean(self) -> None:
        self._container = None
        self._tree = None
        self._deployed = {}

    def deploy(
        self,
        status_callback: Optional[Callable[[str], None]] = None,
    ) -> Dict[str, str]:
        """Deploys every registered function and trigger.

        Returns:
            Deployment outputs: function name -> function ARN, route
            ('GET /path') -> invoke URL, rule name -> rule ARN.

        Raises:
            AlreadyDeployingError: If a deploy is already running.
            ConfigurationError: If the configuration is incomplete.
            ControlPlaneError: If a remote call fails.
        """
        if self.is_deploying:
            raise serverless_exceptions.AlreadyDeployingError()
        problems = self.config.validate()
        if problems:
            for problem in problems:
                logger.error(f'Invalid configuration: {problem}')
            raise serverless_exceptions.ConfigurationError(problems)
        if not self._deploy_lock.acquire(blocking=False):
            raise serverless_exceptions.AlreadyDeployingError()

        def _update_status(message: str) -> None:
            logger.debug(message)
            if status_callback:
                status_callback(message)

        try:
            self.clean()
            outputs: Dict[str, str] = {}

            if any(isinstance(t, data_models.APITrigger)
                   for t in self._triggers):
                _update_status(f'Resolving API {self.config.api_name!r}...')
                self._container, self._tree = resource_tree.resolve_container(
                    self._client, self.config.api_name)

            for function in self._functions.values():
                _update_status(f'Deploying function {function.name!r}...')
                deployed = function_deployer.deploy(
                    self._client, function,
                    function.remote_name(self.config.stage_name),
                    self.config.role)
                self._deployed[function.id] = deployed
                outputs[function.name] = deployed.arn

            for trigger in self._triggers:
                _update_status(f'Binding trigger {_describe(trigger)}...')
                key, value = self._bind(trigger)
                outputs[key] = value

            for trigger in self._triggers:
                if isinstance(trigger, data_models.APITrigger):
                    _update_status(f'Publishing {trigger.route!r}...')
                    publisher.upsert_deployment(
                        self._client, self.config, self._require_container(),
                        self._deployed[trigger.function_id].name, trigger)

            _update_status('Deployment complete.')
            return outputs
        finally:
            self.clean()
            self._deploy_lock.release()

    def _bind(self, trigger: data_models.Trigger) -> Tuple[str, str]:
        function = self._deployed[trigger.function_id]
        if isinstance(trigger, data_models.APITrigger):
            tree = self._require_tree()
            node = tree.upsert_path(trigger.path)
            binding = api_trigger.APIBinding(config=self.config,
                                             container=tree.container,
                                             node=node,
                                             trigger=trigger,
                                             function=function)
            return trigger.route, api_trigger.bind(self._client, binding)
        elif isinstance(trigger, data_models.EventTrigger):
            arn = event_trigger.bind(self._client, self.config, trigger,
                                     function)
            return trigger.name, arn
        else:
            typing.assert_never(trigger)

    def _require_container(self) -> data_models.APIContainer:
        if self._container is None:
            raise serverless_exceptions.ServerlessDeploymentError(
                'API container not resolved.')
        return self._container

    def _require_tree(self) -> resource_tree.ResourceTree:
        if self._tree is None:
            raise serverless_exceptions.ServerlessDeploymentError(
                'Resource tree not loaded.')
        return self._tree


def _describe(trigger: data_models.Trigger) -> str:
    if isinstance(trigger, data_models.APITrigger):
        return repr(trigger.route)
    return repr(trigger.name)

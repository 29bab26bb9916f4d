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
"""Abstract interface for control-plane clients."""
from typing import Any, Dict, List, Optional, Protocol

from lambdeploy.serverless import data_models


class ControlPlaneClient(Protocol):
    """Abstract interface for a serverless control plane.

    Each cloud that the deployer supports must provide a class that
    implements this protocol.

    Probing methods (``get_*``) return ``None`` when the object does not exist
    and raise ``ControlPlaneError`` for every other failure, so callers can
    tell a true absence from a failed lookup. Deleting methods raise
    ``ResourceNotFoundError`` when there is nothing to delete.
    """

    # --- API containers and resources ---

    def list_containers(self) -> List[data_models.APIContainer]:
        """Lists every API container. There is no lookup by name."""
        raise NotImplementedError

    def create_container(self, name: str) -> data_models.APIContainer:
        raise NotImplementedError

    def list_resources(self,
                       container_id: str) -> List[data_models.ResourceNode]:
        """Lists every resource node of a container, root included."""
        raise NotImplementedError

    def create_resource(self, container_id: str, parent_id: str,
                        path_part: str) -> data_models.ResourceNode:
        raise NotImplementedError

    # --- Methods and integrations ---

    def get_method(self, container_id: str, resource_id: str,
                   http_method: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def put_method(self, container_id: str, resource_id: str,
                   http_method: str) -> Dict[str, Any]:
        """Creates a method with no required parameters and no auth."""
        raise NotImplementedError

    def get_method_response(self, container_id: str, resource_id: str,
                            http_method: str,
                            status_code: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def put_method_response(self, container_id: str, resource_id: str,
                            http_method: str, status_code: str,
                            response_models: Dict[str, str]) -> Dict[str, Any]:
        raise NotImplementedError

    def get_integration(self, container_id: str, resource_id: str,
                        http_method: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def put_integration(self, container_id: str, resource_id: str,
                        http_method: str, *, integration_http_method: str,
                        uri: str,
                        request_templates: Dict[str, str]) -> Dict[str, Any]:
        """Binds a method to invoke a function.

        Args:
            integration_http_method: The verb used toward the function, which
                may differ from the public `http_method`.
            uri: The invocation URI of the target function.
            request_templates: Content type -> request mapping template.
        """
        raise NotImplementedError

    def get_integration_response(self, container_id: str, resource_id: str,
                                 http_method: str,
                                 status_code: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def put_integration_response(
            self, container_id: str, resource_id: str, http_method: str,
            status_code: str,
            response_templates: Dict[str, str]) -> Dict[str, Any]:
        raise NotImplementedError

    # --- Deployments ---

    def list_deployments(
            self, container_id: str) -> List[data_models.DeploymentSnapshot]:
        raise NotImplementedError

    def create_deployment(self, container_id: str, stage_name: str,
                          description: str) -> data_models.DeploymentSnapshot:
        raise NotImplementedError

    # --- Permissions ---

    def add_permission(self, function_name: str, statement_id: str,
                       principal: str, source_arn: str) -> Dict[str, Any]:
        raise NotImplementedError

    def remove_permission(self, function_name: str, statement_id: str) -> None:
        raise NotImplementedError

    # --- Schedule rules ---

    def put_rule(self, name: str, schedule: str, description: str) -> str:
        """Creates a schedule rule and returns its ARN."""
        raise NotImplementedError

    def delete_rule(self, name: str) -> None:
        raise NotImplementedError

    def list_targets(self, rule_name: str) -> List[str]:
        """Returns the ids of every target attached to a rule."""
        raise NotImplementedError

    def remove_targets(self, rule_name: str, target_ids: List[str]) -> None:
        raise NotImplementedError

    def put_target(self, rule_name: str, target_id: str, arn: str) -> None:
        raise NotImplementedError

    # --- Functions ---

    def get_function(
            self, name: str) -> Optional[data_models.FunctionConfiguration]:
        raise NotImplementedError

    def create_function(
            self,
            config: Dict[str, Any]) -> data_models.FunctionConfiguration:
        """Creates a function from a full configuration, code included."""
        raise NotImplementedError

    def update_function_code(
            self, name: str, zip_file: bytes,
            publish: bool) -> data_models.FunctionConfiguration:
        raise NotImplementedError

    def update_function_configuration(
            self,
            config: Dict[str, Any]) -> data_models.FunctionConfiguration:
        """Updates configuration only. `config` must not carry code."""
        raise NotImplementedError

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
"""Reconciles the resource-path tree of an API container.

The control plane creates a resource under its parent's id, so every path
is materialized parent-first. The tree is loaded once per deploy session
from the remote listing and then kept in sync with every creation.
"""
from typing import Dict, Optional, Tuple

from lambdeploy import deploy_logging
from lambdeploy.serverless import data_models
from lambdeploy.serverless import exceptions as serverless_exceptions
from lambdeploy.serverless import utils
from lambdeploy.serverless.backends import abstract_backend

logger = deploy_logging.init_logger(__name__)

ResourceMap = Dict[str, data_models.ResourceNode]


class ResourceTree:
    """The resource nodes of one container, keyed by full path."""

    def __init__(self,
                 client: abstract_backend.ControlPlaneClient,
                 container: data_models.APIContainer,
                 nodes: Optional[ResourceMap] = None) -> None:
        self._client = client
        self.container = container
        self.nodes: ResourceMap = dict(nodes or {})

    @classmethod
    def load(cls, client: abstract_backend.ControlPlaneClient,
             container: data_models.APIContainer) -> 'ResourceTree':
        """Builds the tree from every resource the container currently has."""
        nodes = {
            node.path: node for node in client.list_resources(container.id)
        }
        logger.debug(f'Loaded {len(nodes)} resources of {container.name!r}.')
        return cls(client, container, nodes)

    def get(self, path: str) -> Optional[data_models.ResourceNode]:
        return self.nodes.get(utils.normalize_path(path))

    def upsert_path(self, path: str) -> data_models.ResourceNode:
        """Ensures `path` and all of its ancestors exist.

        Existing nodes are returned unchanged, so calling this again for the
        same path makes no remote calls.

        Raises:
            ServerlessDeploymentError: If the container has no root resource.
        """
        path = utils.normalize_path(path)
        if path == utils.ROOT_PATH:
            # The root is created along with the container.
            root = self.nodes.get(utils.ROOT_PATH)
            if root is None:
                raise serverless_exceptions.ServerlessDeploymentError(
                    f'API {self.container.name!r} has no root resource.')
            return root

        parent_path = utils.parent_of(path)
        parent = self.nodes.get(parent_path)
        if parent is None:
            parent = self.upsert_path(parent_path)

        node = self.nodes.get(path)
        if node is not None:
            return node

        logger.info(f'Create Resource {path!r}')
        node = self._client.create_resource(self.container.id, parent.id,
                                            utils.last_segment(path))
        # The map is keyed by the path we asked for, whatever form the
        # remote echoes back.
        if node.path != path:
            node = data_models.ResourceNode(path=path, id=node.id)
        self.nodes[path] = node
        return node


def resolve_container(
    client: abstract_backend.ControlPlaneClient, name: str
) -> Tuple[data_models.APIContainer, ResourceTree]:
    """Finds the container named `name`, creating it if absent.

    Containers cannot be fetched by name, so every container is listed and
    matched on its exact name.

    Returns:
        The container and its freshly loaded resource tree.
    """
    container = next(
        (item for item in client.list_containers() if item.name == name),
        None)
    if container is None:
        logger.info(f'Create RestAPI {name!r}')
        container = client.create_container(name)
    return container, ResourceTree.load(client, container)

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
"""Core data structures for serverless functions."""
import dataclasses
from typing import Dict, List, Optional, Union

from lambdeploy.serverless import utils

DEFAULT_MEMORY_MB = 128
DEFAULT_TIMEOUT_SECONDS = 15
DEFAULT_RUNTIME = 'python3.12'
DEFAULT_CONTENT_TYPE = 'application/json'


# --- Function Definitions ---


@dataclasses.dataclass(frozen=True)
class VpcConfig:
    """Network placement for a function, passed through to the control plane.

    Attributes:
        subnet_ids: Subnets the function's network interfaces attach to.
        security_group_ids: Security groups applied to those interfaces.
    """
    subnet_ids: List[str] = dataclasses.field(default_factory=list)
    security_group_ids: List[str] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class FunctionSpec:
    """A declared compute function.

    Attributes:
        name: The function name. The remote name is prefixed with the stage.
        handler: The entry point, in 'module.function' format. 'module' must
            be the file stem of one of `files`.
        files: Paths of the source files that make up the function. They are
            archived flat, by basename.
        description: Free-form description stored on the remote function.
        memory_mb: Memory allocated to the function in megabytes.
        timeout_seconds: The function's execution timeout.
        runtime: The code runtime environment, e.g., 'python3.12'.
        env: Environment variables injected into the function's runtime.
        vpc: Optional network placement.
    """
    name: str
    handler: str
    files: List[str]
    description: str = ''
    memory_mb: int = DEFAULT_MEMORY_MB
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    runtime: str = DEFAULT_RUNTIME
    env: Dict[str, str] = dataclasses.field(default_factory=dict)
    vpc: Optional[VpcConfig] = None


@dataclasses.dataclass(frozen=True)
class RegisteredFunction:
    """A FunctionSpec accepted by a Deployer.

    `id` is the only key triggers may use to refer to the function.
    """
    id: int
    spec: FunctionSpec
    archive: bytes = dataclasses.field(repr=False)

    @property
    def name(self) -> str:
        return self.spec.name

    def remote_name(self, stage_name: str) -> str:
        return f'{stage_name}-{self.spec.name}'


# --- Trigger Definitions (Type-Safe) ---
# Each trigger kind is its own frozen dataclass, combined with a Union. The
# binder dispatches over the Union exhaustively, so adding a kind without
# handling it is a type-checking error.


@dataclasses.dataclass(frozen=True)
class APITrigger:
    """An HTTP route that invokes a function.

    Attributes:
        function_id: The id of the RegisteredFunction to invoke.
        method: The public HTTP method, e.g., 'GET'. Upper-cased.
        path: The URL path, e.g., '/quote/{quoteId}'. A leading slash is
            enforced and empty segments are dropped.
        content_type: The response content type.
    """
    function_id: int
    method: str
    path: str
    content_type: str = DEFAULT_CONTENT_TYPE

    def __post_init__(self) -> None:
        object.__setattr__(self, 'method', self.method.upper())
        object.__setattr__(self, 'path', utils.normalize_path(self.path))

    @property
    def route(self) -> str:
        return f'{self.method} {self.path}'


@dataclasses.dataclass(frozen=True)
class EventTrigger:
    """A schedule rule that invokes a function.

    Attributes:
        function_id: The id of the RegisteredFunction to invoke.
        name: The rule name.
        schedule: A schedule expression, e.g., 'rate(1 minute)' or
            'cron(0 12 * * ? *)'.
        description: Human-readable description stored on the rule.
    """
    function_id: int
    name: str
    schedule: str
    description: str = ''


Trigger = Union[APITrigger, EventTrigger]


# --- Remote Objects ---


@dataclasses.dataclass(frozen=True)
class APIContainer:
    """The remote REST API that groups resource paths and methods."""
    id: str
    name: str


@dataclasses.dataclass(frozen=True)
class ResourceNode:
    """One path materialized in an APIContainer."""
    path: str
    id: str


@dataclasses.dataclass(frozen=True)
class DeploymentSnapshot:
    """A published deployment of an APIContainer."""
    id: str
    description: str


@dataclasses.dataclass(frozen=True)
class FunctionConfiguration:
    """The remote configuration of a deployed function."""
    name: str
    arn: str
    version: Optional[str] = None

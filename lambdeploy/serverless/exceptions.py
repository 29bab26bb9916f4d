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
"""Custom exceptions for the serverless module."""
from typing import List, Optional


class ServerlessError(Exception):
    """Base class for serverless-related errors."""
    pass


class ConfigurationError(ServerlessError):
    """Raised when the deployer configuration is incomplete or invalid.

    Attributes:
        problems: Every violation found, not just the first one.
    """

    def __init__(self, problems: List[str]) -> None:
        self.problems = list(problems)
        details = '\n'.join(f'  - {problem}' for problem in self.problems)
        super().__init__(f'Invalid configuration:\n{details}')


class RegistrationError(ServerlessError):
    """Raised when a function specification cannot be registered."""
    pass


class BindingError(ServerlessError):
    """Raised when a trigger references a function that was not registered."""
    pass


class ManifestError(ServerlessError):
    """Raised when a deployment manifest is malformed."""
    pass


class ServerlessDeploymentError(ServerlessError):
    """Raised when a serverless deployment fails."""
    pass


class AlreadyDeployingError(ServerlessDeploymentError):
    """Raised when deploy() is called while a deployment is in flight."""

    def __init__(self, message: str = 'Already deploying') -> None:
        super().__init__(f'Unable to deploy: {message}')


class ControlPlaneError(ServerlessDeploymentError):
    """Raised when a control-plane call fails.

    Attributes:
        operation: The name of the remote operation that failed.
        code: The provider's error code, if it reported one.
    """

    def __init__(self,
                 message: str,
                 *,
                 operation: Optional[str] = None,
                 code: Optional[str] = None) -> None:
        super().__init__(message)
        self.operation = operation
        self.code = code


class ResourceNotFoundError(ControlPlaneError):
    """Raised when a remote object addressed by a mutating call is absent."""
    pass

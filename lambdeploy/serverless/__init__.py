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
"""User-facing APIs for lambdeploy serverless deployments."""
import os
import pathlib
from typing import Callable, Dict, Optional

import filelock

from lambdeploy.serverless import config as config_lib
from lambdeploy.serverless import exceptions
from lambdeploy.serverless import manifest as manifest_lib
from lambdeploy.serverless.backends import abstract_backend
from lambdeploy.serverless.backends import registry
from lambdeploy.serverless.deployer import Deployer

DEFAULT_LOCK_DIR = os.path.expanduser('~/.lambdeploy/locks')


def lock_path(api_name: str, lock_dir: Optional[str] = None) -> str:
    """The host-wide lock file guarding deploys of one API."""
    safe_name = ''.join(c if c.isalnum() or c in '-_' else '_'
                        for c in api_name)
    return os.path.join(lock_dir or DEFAULT_LOCK_DIR, f'{safe_name}.lock')


def deploy(
    manifest: manifest_lib.Manifest,
    *,
    config: config_lib.DeployerConfig,
    provider: str = registry.DEFAULT_PROVIDER,
    client: Optional[abstract_backend.ControlPlaneClient] = None,
    lock_dir: Optional[str] = None,
    status_callback: Optional[Callable[[str], None]] = None,
) -> Dict[str, str]:
    """Deploys every function and trigger declared in a manifest.

    Manifest values override `config`. Besides the per-Deployer guard, a
    file lock keyed by the API name keeps two processes on this machine
    from deploying the same API at once.

    Args:
        manifest: The parsed manifest.
        config: Base configuration, usually DeployerConfig.from_env().
        provider: The control-plane provider, used when `client` is None.
        client: An already constructed control-plane client.
        lock_dir: Directory for lock files.

    Returns:
        The deployment outputs of Deployer.deploy().
    """
    config = config.with_overrides(**manifest.config)
    problems = config.validate()
    if problems:
        raise exceptions.ConfigurationError(problems)
    if client is None:
        client = registry.get_backend(provider, config)

    deployer = Deployer(config, client)
    manifest.register(deployer)

    path = lock_path(config.api_name, lock_dir)
    pathlib.Path(path).parent.mkdir(parents=True, exist_ok=True)
    try:
        with filelock.FileLock(path, timeout=0):
            return deployer.deploy(status_callback=status_callback)
    except filelock.Timeout as e:
        raise exceptions.AlreadyDeployingError(
            f'another process holds {path}') from e


def load_manifest(path: str) -> manifest_lib.Manifest:
    return manifest_lib.load(pathlib.Path(path))


__all__ = [
    'Deployer',
    'deploy',
    'load_manifest',
    'lock_path',
]

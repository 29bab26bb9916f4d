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
"""Loads deployment manifests.

A manifest is a YAML file declaring the functions to deploy and the
triggers bound to each of them:

    api_name: GedditQuoteFetcher
    stage_name: dev
    functions:
      - name: Geddit-Quotes
        handler: quote.get
        files: [quote.js]
        runtime: nodejs18.x
        triggers:
          - kind: api
            method: GET
            path: /quote/{quoteId}
          - kind: event
            name: quote-refresh
            schedule: rate(5 minutes)

File paths are resolved relative to the manifest's directory. Credentials
are never read from a manifest; they come from the environment.
"""
import dataclasses
import pathlib
from typing import Any, Dict, List, Optional, Tuple

import yaml

from lambdeploy import deploy_logging
from lambdeploy.serverless import data_models
from lambdeploy.serverless import deployer as deployer_lib
from lambdeploy.serverless import exceptions as serverless_exceptions

logger = deploy_logging.init_logger(__name__)

DEFAULT_FILENAME = 'lambdeploy.yaml'

# Configuration fields a manifest may set.
CONFIG_FIELDS = ('api_name', 'stage_name', 'region', 'account_id', 'role')

_FUNCTION_FIELDS = {
    'name', 'handler', 'files', 'description', 'memory_mb', 'timeout_seconds',
    'runtime', 'environment', 'vpc', 'triggers'
}
_TRIGGER_FIELDS = {
    'api': {'method', 'path', 'content_type'},
    'event': {'name', 'schedule', 'description'},
}
_TRIGGER_REQUIRED = {
    'api': ('method', 'path'),
    'event': ('name', 'schedule'),
}


@dataclasses.dataclass(frozen=True)
class TriggerDeclaration:
    """A trigger as declared, before its function has an id."""
    kind: str
    params: Tuple[Tuple[str, Any], ...]

    def bind(self, function_id: int) -> data_models.Trigger:
        params = dict(self.params)
        if self.kind == 'api':
            return data_models.APITrigger(function_id=function_id, **params)
        return data_models.EventTrigger(function_id=function_id, **params)


@dataclasses.dataclass
class FunctionDeclaration:
    spec: data_models.FunctionSpec
    triggers: List[TriggerDeclaration] = dataclasses.field(
        default_factory=list)


@dataclasses.dataclass
class Manifest:
    """A parsed manifest.

    Attributes:
        config: Configuration values set by the manifest, by field name.
        functions: The declared functions, in file order.
        path: Where the manifest was loaded from, if anywhere.
    """
    config: Dict[str, str]
    functions: List[FunctionDeclaration]
    path: Optional[pathlib.Path] = None

    def register(self, deployer: 'deployer_lib.Deployer') -> None:
        """Registers every function and its triggers on `deployer`."""
        for declaration in self.functions:
            function = deployer.register_function(declaration.spec)
            for trigger in declaration.triggers:
                deployer.register_trigger(trigger.bind(function.id))


def _fail(where: str, message: str) -> serverless_exceptions.ManifestError:
    return serverless_exceptions.ManifestError(f'{where}: {message}')


def _check_fields(where: str, data: Dict[str, Any], allowed: set) -> None:
    unknown = set(data) - allowed
    if unknown:
        raise _fail(where, f'unknown fields {sorted(unknown)}')


def _parse_trigger(where: str, data: Any) -> TriggerDeclaration:
    if not isinstance(data, dict):
        raise _fail(where, 'a trigger must be a mapping')
    data = dict(data)
    kind = str(data.pop('kind', '')).lower()
    if kind not in _TRIGGER_FIELDS:
        raise _fail(where, f"'kind' must be one of {sorted(_TRIGGER_FIELDS)}")
    _check_fields(where, data, _TRIGGER_FIELDS[kind])
    missing = [key for key in _TRIGGER_REQUIRED[kind] if not data.get(key)]
    if missing:
        raise _fail(where, f'missing {missing}')
    params = tuple(sorted((key, str(value)) for key, value in data.items()))
    return TriggerDeclaration(kind=kind, params=params)


def _parse_vpc(where: str, data: Any) -> Optional[data_models.VpcConfig]:
    if data is None:
        return None
    if not isinstance(data, dict):
        raise _fail(where, "'vpc' must be a mapping")
    _check_fields(where, data, {'subnet_ids', 'security_group_ids'})
    return data_models.VpcConfig(
        subnet_ids=[str(s) for s in data.get('subnet_ids') or []],
        security_group_ids=[
            str(s) for s in data.get('security_group_ids') or []
        ],
    )


def _parse_function(where: str, data: Any,
                    base_dir: pathlib.Path) -> FunctionDeclaration:
    if not isinstance(data, dict):
        raise _fail(where, 'a function must be a mapping')
    _check_fields(where, data, _FUNCTION_FIELDS)
    for key in ('name', 'handler', 'files'):
        if not data.get(key):
            raise _fail(where, f'missing {key!r}')

    files = data['files']
    if isinstance(files, str):
        files = [files]
    environment = data.get('environment') or {}
    if not isinstance(environment, dict):
        raise _fail(where, "'environment' must be a mapping")

    spec = data_models.FunctionSpec(
        name=str(data['name']),
        handler=str(data['handler']),
        files=[str(base_dir / str(f)) for f in files],
        description=str(data.get('description', '')),
        memory_mb=int(data.get('memory_mb', data_models.DEFAULT_MEMORY_MB)),
        timeout_seconds=int(
            data.get('timeout_seconds',
                     data_models.DEFAULT_TIMEOUT_SECONDS)),
        runtime=str(data.get('runtime', data_models.DEFAULT_RUNTIME)),
        env={str(k): str(v) for k, v in environment.items()},
        vpc=_parse_vpc(where, data.get('vpc')),
    )
    triggers = [
        _parse_trigger(f'{where}.triggers[{i}]', trigger)
        for i, trigger in enumerate(data.get('triggers') or [])
    ]
    return FunctionDeclaration(spec=spec, triggers=triggers)


def parse(data: Any, base_dir: pathlib.Path) -> Manifest:
    """Builds a Manifest from already-decoded YAML."""
    if not isinstance(data, dict):
        raise _fail('manifest', 'the top level must be a mapping')
    _check_fields('manifest', data, set(CONFIG_FIELDS) | {'functions'})
    functions_data = data.get('functions') or []
    if not isinstance(functions_data, list):
        raise _fail('manifest', "'functions' must be a list")
    try:
        functions = [
            _parse_function(f'functions[{i}]', item, base_dir)
            for i, item in enumerate(functions_data)
        ]
    except (TypeError, ValueError) as e:
        raise _fail('manifest', str(e)) from e
    config = {
        key: str(data[key]) for key in CONFIG_FIELDS if data.get(key)
    }
    return Manifest(config=config, functions=functions)


def load(path: pathlib.Path) -> Manifest:
    """Loads and parses a manifest file.

    Raises:
        ManifestError: If the file is missing, is not valid YAML, or does not
            describe a deployment.
    """
    path = pathlib.Path(path)
    try:
        with open(path, encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise _fail(str(path), f'cannot read manifest: {e}') from e
    except yaml.YAMLError as e:
        raise _fail(str(path), f'invalid YAML: {e}') from e

    manifest = parse(data, path.resolve().parent)
    manifest.path = path
    logger.debug(f'Loaded manifest from {path} with '
                 f'{len(manifest.functions)} function(s).')
    return manifest

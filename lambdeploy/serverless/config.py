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
"""Deployer configuration.

Values come from the environment (the same variable names the AWS tooling
uses), optionally overridden by a manifest or command-line flags. The
resulting object is passed explicitly to every component; nothing is set
process-wide.
"""
import dataclasses
import os
import re
from typing import Dict, List, Optional

_STAGE_NAME_RE = re.compile(r'[A-Za-z0-9]+')

# Field name -> environment variable.
ENV_VARS: Dict[str, str] = {
    'api_name': 'AWS_API_NAME',
    'stage_name': 'STAGE',
    'region': 'AWS_REGION',
    'access_key_id': 'AWS_ACCESS_KEY_ID',
    'secret_access_key': 'AWS_SECRET_ACCESS_KEY',
    'account_id': 'AWS_ACCOUNT_ID',
    'role': 'AWS_ROLE',
}

REQUIRED_FIELDS = (
    'account_id',
    'region',
    'access_key_id',
    'secret_access_key',
    'api_name',
    'role',
    'stage_name',
)


@dataclasses.dataclass(frozen=True)
class DeployerConfig:
    """Identity, credentials and naming for one deployment target.

    Attributes:
        api_name: Name of the REST API that groups every HTTP route.
        stage_name: Stage to publish to. Alphanumeric only; also prefixes
            remote function names.
        region: Cloud region, e.g., 'ap-southeast-2'.
        access_key_id: Access key used to sign control-plane calls.
        secret_access_key: Secret for `access_key_id`.
        account_id: Account that owns the functions, used to build ARNs.
        role: ARN of the execution role assumed by deployed functions.
    """
    api_name: str = ''
    stage_name: str = ''
    region: str = ''
    access_key_id: str = dataclasses.field(default='', repr=False)
    secret_access_key: str = dataclasses.field(default='', repr=False)
    account_id: str = ''
    role: str = ''

    @classmethod
    def from_env(cls,
                 environ: Optional[Dict[str, str]] = None) -> 'DeployerConfig':
        if environ is None:
            environ = dict(os.environ)
        values = {
            field: environ.get(var, '').strip()
            for field, var in ENV_VARS.items()
        }
        return cls(**values)

    def with_overrides(self, **overrides: Optional[str]) -> 'DeployerConfig':
        """Returns a copy with every non-empty override applied."""
        unknown = set(overrides) - set(ENV_VARS)
        if unknown:
            raise TypeError(
                f'Unknown configuration fields: {", ".join(sorted(unknown))}')
        changes = {k: v for k, v in overrides.items() if v}
        return dataclasses.replace(self, **changes)

    def validate(self) -> List[str]:
        """Returns every problem with this configuration.

        An empty list means the configuration is complete.
        """
        problems = []
        for field in REQUIRED_FIELDS:
            if not getattr(self, field):
                problems.append(f'No {field!r} set (env: {ENV_VARS[field]}).')
        if self.stage_name and not _STAGE_NAME_RE.fullmatch(self.stage_name):
            problems.append(
                f'Stage name {self.stage_name!r} must be alphanumeric.')
        return problems
